"""Run needs detection over a JSON file of interaction samples."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from engines.needs_pipeline import NeedsDetectionPipeline
from engines.validation import ValidationError
from env_validation import load_settings


def load_samples(path: str | Path) -> List[Mapping[str, Any]]:
    """Read one sample object or a list of them from ``path``."""

    path_obj = Path(path)
    if not path_obj.exists():
        raise FileNotFoundError(f"Sample file not found: {path_obj}")
    with path_obj.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    if isinstance(data, Mapping):
        return [data]
    if not isinstance(data, list):
        raise ValueError("Sample file must contain a JSON object or a list of objects")
    return data


def build_report(samples: Sequence[Mapping[str, Any]], pipeline: NeedsDetectionPipeline) -> Dict[str, object]:
    """Detect needs for every sample; invalid samples are reported, not raised."""

    results: List[Dict[str, object]] = []
    rejected = 0
    for index, sample in enumerate(samples):
        try:
            result = pipeline.detect(sample)
        except ValidationError as exc:
            rejected += 1
            results.append({"index": index, "error": exc.message, "field": exc.field})
            continue
        results.append(
            {
                "index": index,
                "model_source": result.model_source,
                "scores": dict(result.profile.scores),
                "severities": result.profile.severities(),
                "confidence": result.profile.confidence,
                "learning_style": result.learner.learning_style,
                "next_assessment_days": result.next_assessment_days,
                "warnings": list(result.vector.warnings),
            }
        )
    return {
        "total_samples": len(samples),
        "rejected": rejected,
        "results": results,
    }


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("samples", type=str, help="Path to a JSON file with interaction samples")
    parser.add_argument(
        "--model-url",
        type=str,
        default=None,
        help="Scoring endpoint to call (default: NEEDS_MODEL_URL, rule-only when unset)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Optional path to write the JSON report instead of stdout.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = load_settings()
    if args.model_url:
        settings = type(settings)(**{**settings.as_dict(), "model_url": args.model_url})

    pipeline = NeedsDetectionPipeline(settings)
    try:
        report = build_report(load_samples(args.samples), pipeline)
    finally:
        pipeline.close()
    payload = json.dumps(report, indent=2, ensure_ascii=False)

    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
    print(payload)
    return 1 if report["rejected"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
