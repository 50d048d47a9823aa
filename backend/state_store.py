"""Per-user ConversationState persistence.

Stored rows may carry older or alias key names; they are mapped onto the
canonical field names exactly once, here, on the way in.
"""

import sys
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from axes import normalize_affect, normalize_depth
from errors import StateStoreError
from models import ConversationStateRecord
from schemas import ConversationState, DescentGate, RotationLoop
from telemetry import append_turn_telemetry
from text_utils import clamp

KEY_ALIASES = {
    "depth_stage": ("depth_stage", "depthStage", "depth", "stage"),
    "affect_code": ("affect_code", "affectCode", "qCode", "q_code", "q", "affect"),
    "phase": ("phase",),
    "self_acceptance": ("self_acceptance", "selfAcceptance", "sa"),
    "volatility": ("volatility",),
    "slack": ("slack",),
    "rotation_loop": ("rotation_loop", "rotationLoop", "loop"),
    "descent_gate": ("descent_gate", "descentGate", "gate"),
    "affect_streak": ("affect_streak", "affectStreak"),
    "goal_streak": ("goal_streak", "goalStreak"),
    "intent_anchor": ("intent_anchor", "intentAnchor"),
    "situation_summary": ("situation_summary", "situationSummary", "summary"),
    "situation_topic": ("situation_topic", "situationTopic", "topic"),
    "turn_count": ("turn_count", "turnCount"),
}


def _pick(raw: dict, names: tuple) -> Any:
    for name in names:
        if name in raw and raw[name] is not None:
            return raw[name]
    return None


def _level(value: Any) -> Optional[int]:
    try:
        return int(clamp(int(round(float(value))), 0, 3))
    except (TypeError, ValueError):
        return None


def _unit(value: Any) -> Optional[float]:
    try:
        return float(clamp(float(value), 0.0, 1.0))
    except (TypeError, ValueError):
        return None


def _gate(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return DescentGate.ACCEPTED.value if value else DescentGate.CLOSED.value
    v = str(value).strip().lower()
    return v if v in {g.value for g in DescentGate} else None


def _loop(value: Any) -> Optional[str]:
    v = str(value).strip().upper()
    return v if v in {x.value for x in RotationLoop} else None


def _phase(value: Any) -> Optional[str]:
    v = str(value).strip().lower()
    return {"inner": "Inner", "outer": "Outer"}.get(v)


def _streak(value: Any) -> Optional[dict]:
    if not isinstance(value, dict):
        return None
    code = value.get("value", value.get("code", value.get("kind")))
    try:
        length = max(0, int(value.get("length", value.get("count", 0)) or 0))
    except (TypeError, ValueError):
        length = 0
    if code is None:
        length = 0
    return {"value": code, "length": length}


def _anchor(value: Any) -> Optional[dict]:
    if isinstance(value, str):
        return {"text": value, "fixed": False} if value.strip() else None
    if isinstance(value, dict) and str(value.get("text") or "").strip():
        return {"text": str(value["text"]), "fixed": bool(value.get("fixed", False))}
    return None


def canonicalize_state_dict(raw: Optional[dict]) -> dict:
    """Map alias keys and legacy value shapes onto ConversationState fields.

    Only keys that resolve to a usable value appear in the result.
    """
    raw = raw if isinstance(raw, dict) else {}
    out: dict = {}
    for field, names in KEY_ALIASES.items():
        value = _pick(raw, names)
        if value is None:
            continue
        if field == "depth_stage":
            value = normalize_depth(str(value))
        elif field == "affect_code":
            value = normalize_affect(str(value))
        elif field == "phase":
            value = _phase(value)
        elif field == "self_acceptance":
            value = _unit(value)
        elif field in ("volatility", "slack"):
            value = _level(value)
        elif field == "rotation_loop":
            value = _loop(value)
        elif field == "descent_gate":
            value = _gate(value)
        elif field in ("affect_streak", "goal_streak"):
            value = _streak(value)
        elif field == "intent_anchor":
            value = _anchor(value)
        elif field == "turn_count":
            value = _level_count(value)
        else:
            value = str(value).strip() or None
        if value is not None:
            out[field] = value
    return out


def _level_count(value: Any) -> Optional[int]:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return None


def load_state(db: Session, user_id: str) -> ConversationState:
    try:
        record = db.query(ConversationStateRecord).filter(ConversationStateRecord.user_id == user_id).first()
    except SQLAlchemyError as exc:
        print(f"[state_store] read failed user={user_id}: {exc}", file=sys.stderr)
        raise StateStoreError(user_id, str(exc)[:200]) from exc
    if record is None:
        return ConversationState()
    return ConversationState(**canonicalize_state_dict(record.data))


def upsert_state_delta(db: Session, user_id: str, delta: dict) -> bool:
    """Merge a partial state into the stored row. Untouched fields keep their values."""
    changes = canonicalize_state_dict(delta)
    try:
        record = db.query(ConversationStateRecord).filter(ConversationStateRecord.user_id == user_id).first()
        if record is None:
            record = ConversationStateRecord(user_id=user_id, data=changes)
            db.add(record)
        else:
            merged = canonicalize_state_dict(record.data)
            merged.update(changes)
            # reassign so the JSON column is flagged dirty
            record.data = merged
        db.commit()
        return True
    except SQLAlchemyError as exc:
        db.rollback()
        print(f"[state_store] write failed user={user_id}: {exc}", file=sys.stderr)
        append_turn_telemetry("state_write_failed", {"user_id": user_id, "error": str(exc)[:200]})
        return False
