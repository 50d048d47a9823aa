"""Error taxonomy for the turn engine."""

from typing import Optional


class TurnEngineError(Exception):
    """Base class for every error the turn engine raises on purpose."""


class SignalExtractionDegraded(TurnEngineError):
    """Input carried no usable signal; callers fall back to the previous state."""


class BackendError(TurnEngineError):
    """Generation backend failed (transport, timeout, status, malformed body)."""

    def __init__(self, kind: str, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind}: {detail}" if detail else kind)


class ContractViolation(TurnEngineError):
    """Generated text broke a hard output contract."""

    def __init__(self, reason: str, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason}: {detail}" if detail else reason)


class GuardRejection(TurnEngineError):
    """Content-quality guard refused the text."""

    def __init__(self, verdict):
        self.verdict = verdict
        reasons = ",".join(getattr(verdict, "reasons", []) or [])
        super().__init__(f"{getattr(verdict, 'level', 'FATAL')}: {reasons}")


class StateStoreError(TurnEngineError):
    def __init__(self, user_id: str, detail: Optional[str] = None):
        self.user_id = user_id
        super().__init__(f"state store failed for {user_id}: {detail or 'unknown'}")
