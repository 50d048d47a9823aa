"""Pytest configuration and fixtures."""

import os
import sys
import tempfile
from pathlib import Path

import pytest

_TMP = Path(tempfile.mkdtemp(prefix="turn_engine_tests_"))

# environment must be settled before any backend module is imported
os.environ["TURN_TELEMETRY_ENABLED"] = "0"
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'turn_state.db'}"
os.environ["LLM_CALL_LOG"] = str(_TMP / "llm_call_log.txt")

BACKEND = Path(__file__).resolve().parents[1]
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

from errors import BackendError  # noqa: E402
from schemas import ConversationState, SignalCandidates  # noqa: E402


class ScriptedBackend:
    """Generation backend double: returns queued replies, raises queued exceptions."""

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls = []

    async def generate(self, messages, temperature=None, max_tokens=None):
        self.calls.append({"messages": messages, "temperature": temperature, "max_tokens": max_tokens})
        if not self.replies:
            raise BackendError("transport", "no scripted reply left")
        item = self.replies.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def scripted_backend():
    """Factory: scripted_backend(["reply", BackendError(...)])."""
    return ScriptedBackend


@pytest.fixture
def fresh_state():
    return ConversationState()


@pytest.fixture
def signals():
    """Factory for SignalCandidates with keyword overrides."""
    def _make(**kw):
        return SignalCandidates(**kw)
    return _make


@pytest.fixture
def telemetry_file(tmp_path, monkeypatch):
    path = tmp_path / "turn_telemetry.log"
    monkeypatch.setenv("TURN_TELEMETRY_ENABLED", "1")
    monkeypatch.setenv("TURN_TELEMETRY_LOG", str(path))
    return path
