"""Depth stages and affect codes: ordering and normalization helpers."""

import re
from typing import Optional

BANDS = ("S", "R", "C", "I", "T", "F")

DEPTH_ORDER = (
    "S1", "S2", "S3",
    "R1", "R2", "R3",
    "C1", "C2", "C3",
    "I1", "I2", "I3",
    "T1", "T2", "T3",
    "F1",
)

AFFECT_LABELS = {
    "Q1": "endurance / pressure",
    "Q2": "anger / growth",
    "Q3": "anxiety / stability",
    "Q4": "fear / release",
    "Q5": "emptiness / passion",
}


def normalize_depth(value) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip().upper()
    if not s:
        return None
    if s == "F":
        return "F1"
    if len(s) == 1 and s in BANDS:
        return f"{s}1"
    m = re.fullmatch(r"([SRCIT])([1-3])", s)
    if m:
        return s
    if re.fullmatch(r"F[1-3]", s):
        return "F1"
    return None


def normalize_affect(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return f"Q{value}" if 1 <= value <= 5 else None
    s = str(value).strip()
    m = re.fullmatch(r"[QqEe]?([1-5])", s)
    if m:
        return f"Q{m.group(1)}"
    return None


def band_of(depth: Optional[str]) -> Optional[str]:
    d = normalize_depth(depth)
    return d[0] if d else None


def is_band(depth: Optional[str], *bands: str) -> bool:
    b = band_of(depth)
    return b is not None and b in bands


def stage_index(depth: Optional[str]) -> int:
    d = normalize_depth(depth)
    if d is None:
        return -1
    return DEPTH_ORDER.index(d)


def stage_distance(a: Optional[str], b: Optional[str]) -> int:
    ia, ib = stage_index(a), stage_index(b)
    if ia < 0 or ib < 0:
        return 0
    return abs(ia - ib)


def band_distance(a: Optional[str], b: Optional[str]) -> int:
    ba, bb = band_of(a), band_of(b)
    if ba is None or bb is None:
        return 0
    return abs(BANDS.index(ba) - BANDS.index(bb))


def step_toward(current: str, target: str) -> str:
    """Move exactly one stage from current toward target."""
    ic, it = stage_index(current), stage_index(target)
    if ic < 0:
        return normalize_depth(target) or current
    if it < 0 or ic == it:
        return DEPTH_ORDER[ic]
    return DEPTH_ORDER[ic + 1] if it > ic else DEPTH_ORDER[ic - 1]


def deeper_of(a: Optional[str], b: Optional[str]) -> Optional[str]:
    if stage_index(a) < 0:
        return normalize_depth(b)
    if stage_index(b) < 0:
        return normalize_depth(a)
    return normalize_depth(a) if stage_index(a) >= stage_index(b) else normalize_depth(b)
