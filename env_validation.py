"""Environment variable validation and engine settings."""

import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class EnvironmentConfigError(Exception):
    """Raised when required environment variables are missing or invalid."""
    pass


_NUMERIC_VARS = {
    "NEEDS_MODEL_TIMEOUT": float,
    "SENSORY_TOLERANCE": float,
    "DIFFICULTY_BIAS_THRESHOLD": float,
    "ESCALATION_STREAK": int,
    "DEESCALATION_STREAK": int,
    "ASSESSMENT_QUESTION_COUNT": int,
    "PROFILE_HISTORY_LIMIT": int,
}

# Counts that must be at least one for the difficulty controller to start.
_POSITIVE_VARS = ("ESCALATION_STREAK", "DEESCALATION_STREAK", "ASSESSMENT_QUESTION_COUNT")


def validate_environment() -> None:
    """Validate engine environment variables.

    Raises EnvironmentConfigError if validation fails.
    """
    defaults = {
        "DB_PATH": os.getenv("DB_PATH") or "data.db",
    }

    # Apply defaults before validation so dependent modules see consistent values.
    for var, value in defaults.items():
        if not os.getenv(var):
            os.environ[var] = value
            logger.info("Environment variable %s not set; using default '%s'", var, value)

    optional_vars = {
        "NEEDS_MODEL_URL": "Inference collaborator endpoint (rule-only analysis when unset)",
        "CULTURAL_CONTEXT_PATH": "Cultural weights and adaptations file",
    }

    value = os.getenv("NEEDS_MODEL_URL")
    if value and not (value.startswith("http://") or value.startswith("https://")):
        raise EnvironmentConfigError(f"Invalid URL format for NEEDS_MODEL_URL: {value}")

    for var, cast in _NUMERIC_VARS.items():
        raw = os.getenv(var)
        if raw is None or raw == "":
            continue
        try:
            parsed = cast(raw)
        except ValueError as exc:
            raise EnvironmentConfigError(f"{var} must be {cast.__name__}, got '{raw}'") from exc
        if parsed < 0:
            raise EnvironmentConfigError(f"{var} must not be negative")
        if var in _POSITIVE_VARS and parsed < 1:
            raise EnvironmentConfigError(f"{var} must be at least 1")

    for var, description in optional_vars.items():
        if not os.getenv(var):
            logger.warning("Optional environment variable not set: %s (%s)", var, description)


def get_env_bool(name: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on", "enabled"}


def get_env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r; using %s", name, value, default)
        return default


def get_env_int(name: str, default: int, minimum: Optional[int] = None) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        parsed = int(value)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %s", name, value, default)
        return default
    if minimum is not None and parsed < minimum:
        logger.warning("Ignoring %s=%s below %s; using %s", name, parsed, minimum, default)
        return default
    return parsed


@dataclass(frozen=True)
class EngineSettings:
    """Product-tuning constants; defaults are the agreed heuristics."""

    model_url: Optional[str] = None
    model_timeout: float = 5.0
    model_enabled: bool = True
    sensory_tolerance: float = 0.1
    escalation_streak: int = 3
    deescalation_streak: int = 2
    bias_threshold: float = 0.6
    question_count: int = 10
    history_limit: int = 10
    db_path: str = "data.db"

    def as_dict(self) -> Dict[str, object]:
        return dict(vars(self))


def load_settings() -> EngineSettings:
    """Build ``EngineSettings`` from the current environment."""
    defaults = EngineSettings()
    return EngineSettings(
        model_url=os.getenv("NEEDS_MODEL_URL") or None,
        model_timeout=get_env_float("NEEDS_MODEL_TIMEOUT", defaults.model_timeout),
        model_enabled=get_env_bool("NEEDS_MODEL_ENABLED", defaults.model_enabled),
        sensory_tolerance=get_env_float("SENSORY_TOLERANCE", defaults.sensory_tolerance),
        escalation_streak=get_env_int("ESCALATION_STREAK", defaults.escalation_streak, minimum=1),
        deescalation_streak=get_env_int("DEESCALATION_STREAK", defaults.deescalation_streak, minimum=1),
        bias_threshold=get_env_float("DIFFICULTY_BIAS_THRESHOLD", defaults.bias_threshold),
        question_count=get_env_int("ASSESSMENT_QUESTION_COUNT", defaults.question_count, minimum=1),
        history_limit=get_env_int("PROFILE_HISTORY_LIMIT", defaults.history_limit),
        db_path=os.getenv("DB_PATH") or defaults.db_path,
    )
