"""Turn telemetry: JSONL event logging and a windowed summary reader."""

import json
import os
from collections import deque
from datetime import datetime, timezone, timedelta
from pathlib import Path
from typing import Optional

from text_utils import normalize_whitespace

_BACKEND_DIR = Path(__file__).resolve().parent


def telemetry_path() -> Path:
    return _BACKEND_DIR / (os.getenv("TURN_TELEMETRY_LOG", "turn_telemetry.log") or "turn_telemetry.log")


def telemetry_enabled() -> bool:
    return (os.getenv("TURN_TELEMETRY_ENABLED", "1") or "1").strip().lower() in (
        "1", "true", "yes", "on",
    )


def append_turn_telemetry(event: str, payload: Optional[dict] = None) -> None:
    if not telemetry_enabled():
        return
    try:
        data = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": normalize_whitespace(event or "event"),
            "payload": payload or {},
        }
        path = telemetry_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(data, ensure_ascii=False, default=str) + "\n")
    except Exception:
        pass


def _parse_iso_utc(ts_raw: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(str(ts_raw).replace("Z", "+00:00"))
    except Exception:
        return None


def read_turn_telemetry_summary(hours: int = 24, limit: int = 6) -> dict:
    h = max(1, min(168, int(hours or 24)))
    n = max(1, min(25, int(limit or 6)))
    now_utc = datetime.now(timezone.utc)
    cutoff = now_utc - timedelta(hours=h)
    path = telemetry_path()

    counts: dict[str, int] = {}
    outcome_counts: dict[str, int] = {}
    reason_counts: dict[str, int] = {}
    recent: deque = deque(maxlen=n)
    parse_errors = 0
    file_exists = path.exists()

    if file_exists:
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    raw = (line or "").strip()
                    if not raw:
                        continue
                    try:
                        item = json.loads(raw)
                    except Exception:
                        parse_errors += 1
                        continue
                    ts = _parse_iso_utc(str(item.get("ts") or ""))
                    if not ts or ts < cutoff:
                        continue
                    event = normalize_whitespace(str(item.get("event") or "event")) or "event"
                    counts[event] = counts.get(event, 0) + 1
                    payload_obj = item.get("payload") if isinstance(item.get("payload"), dict) else {}
                    if event == "turn_complete":
                        tag = normalize_whitespace(str(payload_obj.get("rewrite_tag") or "")) or "UNKNOWN"
                        outcome_counts[tag] = outcome_counts.get(tag, 0) + 1
                    if event == "rewrite_reject":
                        for r in payload_obj.get("reasons") or []:
                            rr = normalize_whitespace(str(r or ""))
                            if rr:
                                reason_counts[rr] = reason_counts.get(rr, 0) + 1
                    recent.append(
                        {
                            "ts": ts.isoformat(),
                            "event": event,
                            "payload": item.get("payload") or {},
                        }
                    )
        except Exception:
            pass

    turns = counts.get("turn_complete", 0)
    fallbacks = sum(v for k, v in outcome_counts.items() if k.startswith("FALLBACK"))
    fallback_rate = round((fallbacks / turns) * 100.0, 2) if turns > 0 else 0.0

    return {
        "status": "ok",
        "now_utc": now_utc.isoformat(),
        "window_hours": h,
        "telemetry_enabled": telemetry_enabled(),
        "file_exists": file_exists,
        "file_path": str(path.name),
        "counts": counts,
        "outcome_counts": outcome_counts,
        "reject_reason_counts": reason_counts,
        "fallback_rate_percent": fallback_rate,
        "backend_error_count": counts.get("backend_error", 0),
        "state_write_failures": counts.get("state_write_failed", 0),
        "recent": list(recent),
        "parse_errors": parse_errors,
    }
