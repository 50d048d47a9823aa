"""Tests for state canonicalization and persistence."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from database import Base
from errors import StateStoreError
from models import ConversationStateRecord
from schemas import ConversationState, DescentGate, RotationLoop
from state_store import canonicalize_state_dict, load_state, upsert_state_delta


@pytest.fixture
def db():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


class BrokenSession:
    """Session double whose every query fails like a dropped connection."""

    def __init__(self):
        self.rolled_back = False

    def query(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    def rollback(self):
        self.rolled_back = True


class TestCanonicalize:
    def test_alias_keys(self):
        out = canonicalize_state_dict(
            {"depthStage": "s2", "qCode": 3, "sa": 0.7, "descentGate": True, "rotationLoop": "tcf"}
        )
        assert out == {
            "depth_stage": "S2",
            "affect_code": "Q3",
            "self_acceptance": 0.7,
            "descent_gate": "accepted",
            "rotation_loop": "TCF",
        }

    def test_canonical_key_wins_over_alias(self):
        out = canonicalize_state_dict({"depth_stage": "R1", "depth": "S2"})
        assert out["depth_stage"] == "R1"

    def test_unusable_values_are_dropped(self):
        out = canonicalize_state_dict({"depth": "Z9", "q": "happy", "gate": "maybe", "sa": "lots"})
        assert out == {}

    def test_value_shapes_are_clamped(self):
        out = canonicalize_state_dict({"self_acceptance": 1.7, "volatility": 5, "slack": -2, "phase": "inner"})
        assert out == {"self_acceptance": 1.0, "volatility": 3, "slack": 0, "phase": "Inner"}

    def test_streak_and_anchor_shapes(self):
        out = canonicalize_state_dict(
            {"goalStreak": {"kind": "uncover", "count": 2}, "intentAnchor": "finish the novel"}
        )
        assert out["goal_streak"] == {"value": "uncover", "length": 2}
        assert out["intent_anchor"] == {"text": "finish the novel", "fixed": False}

    def test_non_dict_input(self):
        assert canonicalize_state_dict(None) == {}
        assert canonicalize_state_dict(["depth", "S2"]) == {}


class TestPersistence:
    def test_missing_row_is_fresh_state(self, db):
        assert load_state(db, "nobody") == ConversationState()

    def test_legacy_row_loads_canonical(self, db):
        db.add(ConversationStateRecord(user_id="legacy", data={"depth": "I2", "q": "Q5", "turnCount": 7}))
        db.commit()
        state = load_state(db, "legacy")
        assert state.depth_stage == "I2"
        assert state.affect_code == "Q5"
        assert state.turn_count == 7

    def test_upsert_merges_without_nulling(self, db):
        assert upsert_state_delta(db, "u1", {"depth_stage": "S2", "affect_code": "Q3", "turn_count": 1})
        assert upsert_state_delta(db, "u1", {"depth_stage": "R1", "affect_code": None, "turn_count": 2})
        state = load_state(db, "u1")
        assert state.depth_stage == "R1"
        assert state.affect_code == "Q3"
        assert state.turn_count == 2

    def test_enum_fields_round_trip(self, db):
        upsert_state_delta(db, "u2", {"rotation_loop": "TCF", "descent_gate": "accepted"})
        state = load_state(db, "u2")
        assert state.rotation_loop == RotationLoop.TCF
        assert state.descent_gate == DescentGate.ACCEPTED

    def test_read_failure_raises(self):
        with pytest.raises(StateStoreError) as excinfo:
            load_state(BrokenSession(), "u3")
        assert excinfo.value.user_id == "u3"

    def test_write_failure_returns_false_and_logs(self, telemetry_file):
        session = BrokenSession()
        assert upsert_state_delta(session, "u4", {"depth_stage": "S1"}) is False
        assert session.rolled_back
        assert '"state_write_failed"' in telemetry_file.read_text(encoding="utf-8")
