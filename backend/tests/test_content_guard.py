"""Tests for the heuristic content-quality guard."""

from content_guard import count_questions, score_content
from schemas import VerdictLevel

CALM = "It sounds like the week pressed on you from every side, and you kept showing up anyway."


class TestQuestions:
    def test_opener_without_mark_counts(self):
        assert count_questions("Do you want to talk about it.") == 1

    def test_two_questions_fatal(self):
        v = score_content("What happened then? How did it feel?")
        assert v.level == VerdictLevel.FATAL
        assert "QCOUNT_TOO_MANY" in v.reasons

    def test_question_when_none_allowed(self):
        v = score_content(CALM + " What stays with you?", max_questions=0)
        assert v.level == VerdictLevel.WARN
        assert "QUESTION_NOT_ALLOWED" in v.reasons

    def test_single_allowed_question_is_ok(self):
        v = score_content(CALM + " What stays with you?", max_questions=1)
        assert v.ok
        assert v.reasons == ["QUESTION_PRESENT"]


class TestTone:
    def test_calm_reflection_ok(self):
        v = score_content(CALM)
        assert v.ok
        assert v.level == VerdictLevel.OK
        assert v.reasons == []

    def test_directives(self):
        v = score_content("You should rest. You need to stop working so late.")
        assert v.level == VerdictLevel.FATAL
        assert "DIRECTIVE_TOO_MANY" in v.reasons

    def test_single_urgency_warns(self):
        v = score_content("Please reach out to someone right now, it sounds heavy.")
        assert v.level == VerdictLevel.WARN
        assert "URGENCY_PRESENT" in v.reasons

    def test_short_cheerleading_is_fatal(self):
        v = score_content("You've got this! Stay positive.")
        assert v.level == VerdictLevel.FATAL
        assert "GENERIC_SHORT" in v.reasons

    def test_option_list_outside_list_contract(self):
        text = "- Take a walk\n- Call a friend\nMaybe that helps."
        v = score_content(text)
        assert "OPTION_LIST" in v.reasons
        assert v.level == VerdictLevel.WARN
        assert score_content(text, list_contract=True).level == VerdictLevel.OK
