import copy
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


BASE_SAMPLE = {
    "readingSpeed": 120,
    "readingAccuracy": 0.95,
    "readingComprehension": 0.85,
    "mathAccuracy": 0.9,
    "mathSpeed": 0.8,
    "attentionSpan": 20,
    "taskCompletion": 0.9,
    "helpRequests": 1,
    "audioPreference": 0.3,
    "visualPreference": 0.4,
    "kinestheticPreference": 0.3,
    "readingErrors": {
        "substitutions": 0,
        "omissions": 0,
        "insertions": 1,
        "reversals": 0,
        "transpositions": 0,
    },
    "mathErrors": {"calculation": 1, "procedural": 0, "conceptual": 0, "visual": 0},
    "responseTime": {"mean": 3000, "variance": 2, "outliers": 1},
    "language": "es",
    "culturalBackground": "maya",
    "socioeconomicContext": "rural-low",
}


def make_sample(**overrides):
    """Copy of ``BASE_SAMPLE``; nested blocks are merged, not replaced."""
    sample = copy.deepcopy(BASE_SAMPLE)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(sample.get(key), dict):
            sample[key].update(value)
        else:
            sample[key] = value
    return sample


@pytest.fixture
def valid_sample():
    return make_sample()


@pytest.fixture
def dyslexia_sample():
    return make_sample(readingSpeed=40, readingErrors={"reversals": 5, "omissions": 4})


@pytest.fixture
def profile_store(tmp_path):
    from profile_store import ProfileStore

    store = ProfileStore(str(tmp_path / "profiles.db"))
    yield store
    store.close()
