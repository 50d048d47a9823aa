"""Tests for the Draft -> Validate -> Accept/Retry/Fallback stage machine."""

import pytest

from errors import BackendError
from quality_gate import GateContext
from rewrite_pipeline import STATIC_FALLBACK_TEXT, RewriteRequest, RewriteTag, run_rewrite_pipeline
from schemas import ContentPlan, Slot, SlotPolicy

MESSAGES = [{"role": "system", "content": "contract"}, {"role": "user", "content": "hi"}]
GOOD = "It sounds like the week pressed on you from every side, and you kept showing up anyway."
TWO_QUESTIONS = "What happened after that? Why did it land so hard?"


def _req(ctx=None, seed=""):
    return RewriteRequest(messages=MESSAGES, ctx=ctx or GateContext(), seed_text=seed)


class TestAccept:
    @pytest.mark.asyncio
    async def test_first_draft_accepted(self, scripted_backend):
        backend = scripted_backend([GOOD])
        out = await run_rewrite_pipeline(backend, _req())
        assert out.tag == RewriteTag.ACCEPTED
        assert out.text == GOOD
        assert out.attempts == 1
        assert out.trace == ["DRAFT", "VALIDATE", "ACCEPT"]

    @pytest.mark.asyncio
    async def test_repaired_draft(self, scripted_backend):
        backend = scripted_backend(["@TASK mirror\n" + GOOD])
        out = await run_rewrite_pipeline(backend, _req())
        assert out.tag == RewriteTag.ACCEPTED_REPAIRED
        assert out.text == GOOD

    @pytest.mark.asyncio
    async def test_retry_after_rejection(self, scripted_backend):
        backend = scripted_backend([TWO_QUESTIONS, GOOD])
        out = await run_rewrite_pipeline(backend, _req())
        assert out.tag == RewriteTag.ACCEPTED_RETRY
        assert out.text == GOOD
        assert "QCOUNT_TOO_MANY" in out.reasons
        retry_messages = backend.calls[1]["messages"]
        assert retry_messages[len(MESSAGES)] == {"role": "assistant", "content": TWO_QUESTIONS}
        assert backend.calls[1]["temperature"] < backend.calls[0]["temperature"]

    @pytest.mark.asyncio
    async def test_retry_after_backend_error_resends_request(self, scripted_backend):
        backend = scripted_backend([BackendError("timeout", "slow"), GOOD])
        out = await run_rewrite_pipeline(backend, _req())
        assert out.tag == RewriteTag.ACCEPTED_RETRY
        assert backend.calls[1]["messages"] == MESSAGES

    @pytest.mark.asyncio
    async def test_short_retry_tolerated_after_question_overload(self, scripted_backend):
        backend = scripted_backend([TWO_QUESTIONS, "That sounds heavy."])
        out = await run_rewrite_pipeline(backend, _req(GateContext(min_len=80)))
        assert out.tag == RewriteTag.ACCEPTED_RETRY
        assert out.text == "That sounds heavy."


class TestFallback:
    @pytest.mark.asyncio
    async def test_never_more_than_two_calls(self, scripted_backend):
        backend = scripted_backend([TWO_QUESTIONS] * 5)
        await run_rewrite_pipeline(backend, _req())
        assert len(backend.calls) == 2

    @pytest.mark.asyncio
    async def test_seed_comes_first(self, scripted_backend):
        backend = scripted_backend([TWO_QUESTIONS, TWO_QUESTIONS])
        out = await run_rewrite_pipeline(backend, _req(seed="Good to see you back after last week."))
        assert out.tag == RewriteTag.FALLBACK_SEED
        assert out.text == "Good to see you back after last week."

    @pytest.mark.asyncio
    async def test_directive_only_seed_is_skipped(self, scripted_backend):
        worse = "You should rest. You need to sleep. What now? Why not?"
        backend = scripted_backend([TWO_QUESTIONS, worse])
        out = await run_rewrite_pipeline(backend, _req(seed="@TASK mirror\n@NEXT rest"))
        assert out.tag == RewriteTag.FALLBACK_CANDIDATE
        assert out.text == TWO_QUESTIONS

    @pytest.mark.asyncio
    async def test_warn_retry_beats_fatal_draft(self, scripted_backend):
        warned = "That week sounds heavy, and it may help to talk to someone right now about it."
        backend = scripted_backend([TWO_QUESTIONS, warned])
        out = await run_rewrite_pipeline(backend, _req())
        assert out.tag == RewriteTag.FALLBACK_CANDIDATE
        assert out.text == warned

    @pytest.mark.asyncio
    async def test_static_when_nothing_usable(self, scripted_backend):
        backend = scripted_backend([BackendError("timeout", "a"), BackendError("http_error", "b")])
        out = await run_rewrite_pipeline(backend, _req())
        assert out.tag == RewriteTag.FALLBACK_STATIC
        assert out.text == STATIC_FALLBACK_TEXT
        assert out.attempts == 2

    @pytest.mark.asyncio
    async def test_locked_spans_survive_every_path(self, scripted_backend):
        span = "Breathe in for four, out for six."
        backend = scripted_backend([BackendError("timeout", "a"), BackendError("timeout", "b")])
        out = await run_rewrite_pipeline(backend, _req(GateContext(locked_spans=[span])))
        assert span in out.text
        assert out.text.strip()


class TestSlotKeys:
    @pytest.mark.asyncio
    async def test_slot_keys_reappear_unchanged(self, scripted_backend):
        plan = ContentPlan(policy=SlotPolicy.FINAL, slots=[Slot(key="CORE", text="a"), Slot(key="ADD", text="b")])
        backend = scripted_backend([GOOD])
        out = await run_rewrite_pipeline(backend, _req(GateContext(plan=plan)))
        assert out.slot_keys == ["CORE", "ADD"]
