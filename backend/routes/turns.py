"""Turn routes: run a turn, inspect stored state, read telemetry."""

import sys

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from deps import get_backend, get_db
from errors import StateStoreError
from orchestrator import build_state_delta, run_turn
from schemas import ConversationState, TurnRequest, TurnResponse
from state_store import load_state, upsert_state_delta
from telemetry import read_turn_telemetry_summary

router = APIRouter(prefix="/api/turns", tags=["turns"])


def _load_or_503(db: Session, user_id: str) -> ConversationState:
    try:
        return load_state(db, user_id)
    except StateStoreError as exc:
        raise HTTPException(status_code=503, detail="State store unavailable") from exc


@router.get("/telemetry/summary")
async def turn_telemetry_summary(hours: int = 24, limit: int = 6):
    return read_turn_telemetry_summary(hours=hours, limit=limit)


@router.post("/{user_id}", response_model=TurnResponse)
async def post_turn(
    user_id: str,
    request: TurnRequest,
    db: Session = Depends(get_db),
    backend=Depends(get_backend),
):
    if not user_id.strip():
        raise HTTPException(status_code=400, detail="user_id is required")
    if not isinstance(request.text, str) or (not request.text.strip() and not request.silence):
        raise HTTPException(status_code=400, detail="text must not be empty")

    previous = _load_or_503(db, user_id)
    result = await run_turn(previous, request, backend)
    delta = build_state_delta(previous, result.state)
    saved = upsert_state_delta(db, user_id, delta) if delta else True
    if not saved:
        print(f"[turn] state not saved user={user_id}; reply still returned", file=sys.stderr)
    return TurnResponse(text=result.text, meta=result.meta, state=result.state, state_saved=saved)


@router.get("/{user_id}/state", response_model=ConversationState)
async def get_state(user_id: str, db: Session = Depends(get_db)):
    return _load_or_503(db, user_id)
