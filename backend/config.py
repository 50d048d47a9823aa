"""Tunable thresholds for the turn engine.

Every value here was tuned by hand against conversation logs; all of them can
be overridden from the environment (or backend/.env).
"""

import os
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=env_path, override=False)


def _env_int(name: str, default: int, lo: int, hi: int) -> int:
    raw = os.getenv(name, "")
    try:
        v = int(raw) if raw else default
    except Exception:
        v = default
    return max(lo, min(hi, v))


def _env_float(name: str, default: float, lo: float, hi: float) -> float:
    raw = os.getenv(name, "")
    try:
        v = float(raw) if raw else default
    except Exception:
        v = default
    return max(lo, min(hi, v))


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    return str(raw).strip().lower() in ("1", "true", "yes", "on")


# Self-acceptance
SA_DEFAULT = _env_float("TURN_SA_DEFAULT", 0.5, 0.0, 1.0)
SA_SELF_ATTACK_DELTA = _env_float("TURN_SA_SELF_ATTACK_DELTA", -0.15, -0.5, 0.0)
SA_ACCEPTANCE_DELTA = _env_float("TURN_SA_ACCEPTANCE_DELTA", 0.10, 0.0, 0.5)
SA_INNER_I_MULTIPLIER = _env_float("TURN_SA_INNER_I_MULTIPLIER", 1.2, 1.0, 2.0)
SA_DELTA_CAP = _env_float("TURN_SA_DELTA_CAP", 0.4, 0.05, 1.0)

# Rotation interlocks
ROTATION_SA_FLOOR = _env_float("TURN_ROTATION_SA_FLOOR", 0.3, 0.0, 1.0)
ROTATION_MIN_STREAK = _env_int("TURN_ROTATION_MIN_STREAK", 2, 1, 10)

# Continuity
CONTINUITY_MAX_JUMP = _env_int("TURN_CONTINUITY_MAX_JUMP", 2, 1, 6)
AFFECT_SWITCH_STRENGTH = _env_float("TURN_AFFECT_SWITCH_STRENGTH", 0.3, 0.0, 2.0)

# Volatility / slack
VOLATILITY_HYSTERESIS = _env_float("TURN_VOLATILITY_HYSTERESIS", 0.25, 0.0, 0.9)

# Polarity
POLARITY_BAND = _env_float("TURN_POLARITY_BAND", 0.25, 0.05, 0.9)

# Priority
PRIORITY_QUESTION_CUTOFF = _env_float("TURN_PRIORITY_QUESTION_CUTOFF", 0.2, 0.0, 1.0)
PRIORITY_ACTION_FORWARD_FLOOR = _env_float("TURN_PRIORITY_ACTION_FORWARD_FLOOR", 0.35, 0.0, 1.0)

# Content guard
GUARD_WARN_THRESHOLD = _env_int("TURN_GUARD_WARN_THRESHOLD", 2, 1, 10)
GUARD_FATAL_THRESHOLD = _env_int("TURN_GUARD_FATAL_THRESHOLD", 2, 1, 10)
GUARD_SHORT_TEXT_CHARS = _env_int("TURN_GUARD_SHORT_TEXT_CHARS", 160, 40, 1000)

# Minimum acceptable reply length (chars) per turn class
MIN_LEN_MICRO = _env_int("TURN_MIN_LEN_MICRO", 0, 0, 400)
MIN_LEN_CANDIDATE_LIST = _env_int("TURN_MIN_LEN_CANDIDATE_LIST", 0, 0, 400)
MIN_LEN_CONCRETIZE = _env_int("TURN_MIN_LEN_CONCRETIZE", 24, 0, 400)
MIN_LEN_CHAT = _env_int("TURN_MIN_LEN_CHAT", 40, 0, 400)
MIN_LEN_PLANNED = _env_int("TURN_MIN_LEN_PLANNED", 80, 0, 800)

# Candidate lists
CANDIDATE_LIST_MIN_LINES = _env_int("TURN_CANDIDATE_LIST_MIN_LINES", 2, 1, 5)
CANDIDATE_LIST_MAX_LINES = _env_int("TURN_CANDIDATE_LIST_MAX_LINES", 5, 2, 10)
CANDIDATE_LINE_MIN_CHARS = _env_int("TURN_CANDIDATE_LINE_MIN_CHARS", 4, 1, 40)
CANDIDATE_LINE_MAX_CHARS = _env_int("TURN_CANDIDATE_LINE_MAX_CHARS", 60, 20, 200)

# Generation
GEN_TEMPERATURE = _env_float("TURN_GEN_TEMPERATURE", 0.7, 0.0, 2.0)
GEN_RETRY_TEMPERATURE = _env_float("TURN_GEN_RETRY_TEMPERATURE", 0.4, 0.0, 2.0)
GEN_MAX_TOKENS = _env_int("TURN_GEN_MAX_TOKENS", 420, 64, 4000)

# Render
RENDER_COMFORT_ENABLED = _env_bool("TURN_RENDER_COMFORT_ENABLED", True)
