"""Tests for the clarification loop."""

import pytest

from conftest import (
    DANGLING_CONDITION_TEXT,
    LATENCY_ANSWER,
    LOGIN_TEXT,
    NO_ACTOR_TEXT,
    VAGUE_TEXT,
)
from specforge.clarification import ClarificationController, ClarificationStatus
from specforge.detector import GapDetector
from specforge.exceptions import (
    ClarificationRejectedError,
    NoPendingClarificationError,
    SessionFrozenError,
)
from specforge.session import SessionState
from specforge.types import TAG_CLARIFIED, TAG_FAILURE, GapCategory, StatementKind


@pytest.fixture
def controller():
    return ClarificationController(GapDetector())


class TestResolve:
    """Selecting the next question."""

    def test_blocking_gap_becomes_pending(self, engine, controller):
        """The first blocking gap is asked and the session awaits input."""
        session = engine.submit(VAGUE_TEXT)
        step = controller.resolve(session)
        assert step.status is ClarificationStatus.NEEDS_INPUT
        assert step.gap.category is GapCategory.VAGUE_QUALIFIER
        assert step.question == step.gap.question
        assert session.state is SessionState.AWAITING_INPUT
        assert session.pending_gap == step.gap

    def test_no_blocking_gap_resolves(self, engine, controller):
        """Non-blocking gaps alone never halt the loop."""
        session = engine.submit(LOGIN_TEXT)
        step = controller.resolve(session)
        assert step.status is ClarificationStatus.RESOLVED
        assert step.needs_input is False
        assert session.pending_gap is None


class TestSubmit:
    """Merging answers."""

    def test_vague_answer_merges(self, engine, controller):
        """A concrete answer resolves the statement and advances the revision."""
        session = engine.submit(VAGUE_TEXT)
        controller.resolve(session)
        step = controller.submit(session, LATENCY_ANSWER)

        assert step.status is ClarificationStatus.RESOLVED
        assert session.revision == 1
        statement = session.statements["s1"]
        assert statement.resolved is True
        assert statement.clarification == LATENCY_ANSWER
        assert session.gaps == []

    def test_merge_is_recorded(self, engine, controller):
        """Each merge leaves a history record carrying the new revision."""
        session = engine.submit(VAGUE_TEXT)
        controller.resolve(session)
        controller.submit(session, LATENCY_ANSWER + ".")
        assert len(session.history) == 1
        record = session.history[0]
        assert record.revision == 1
        assert record.category == GapCategory.VAGUE_QUALIFIER.value
        assert record.answer == LATENCY_ANSWER

    def test_vague_answer_is_rejected(self, engine, controller):
        """An answer that is itself vague leaves the session untouched."""
        session = engine.submit(VAGUE_TEXT)
        controller.resolve(session)
        with pytest.raises(ClarificationRejectedError) as exc_info:
            controller.submit(session, "it should be quick")
        assert "quick" in exc_info.value.reason
        assert session.revision == 0
        assert session.statements["s1"].clarification is None

    def test_unmeasurable_answer_is_rejected(self, engine, controller):
        """An answer with nothing to check against is rejected."""
        session = engine.submit(VAGUE_TEXT)
        controller.resolve(session)
        with pytest.raises(ClarificationRejectedError):
            controller.submit(session, "as good as possible")
        assert session.revision == 0

    def test_empty_answer_is_rejected(self, engine, controller):
        """Whitespace is not an answer."""
        session = engine.submit(VAGUE_TEXT)
        controller.resolve(session)
        with pytest.raises(ClarificationRejectedError):
            controller.submit(session, "   ")

    def test_nothing_pending(self, engine, controller):
        """Submitting without a pending gap is an error."""
        session = engine.submit(LOGIN_TEXT)
        with pytest.raises(NoPendingClarificationError):
            controller.submit(session, "anything")

    def test_conditional_answer_adds_outcome(self, engine, controller):
        """Answering a dangling condition adds an Outcome linked to it."""
        session = engine.submit(DANGLING_CONDITION_TEXT)
        step = controller.resolve(session)
        assert step.gap.category is GapCategory.UNRESOLVED_CONDITIONAL

        step = controller.submit(session, "reject the payment with status 402")
        assert step.status is ClarificationStatus.RESOLVED
        added = session.statements["s4"]
        assert added.kind is StatementKind.OUTCOME
        assert added.links == ("s3",)
        assert added.has_tag(TAG_CLARIFIED)
        assert session.statements["s3"].resolved is True
        assert session.gaps == []

    def test_actor_answer_links_action(self, engine, controller):
        """Answering a missing actor adds an Actor and links the action."""
        session = engine.submit(NO_ACTOR_TEXT)
        controller.resolve(session)
        controller.submit(session, "finance managers")

        actor = session.statements["s2"]
        assert actor.kind is StatementKind.ACTOR
        assert actor.text == "finance managers"
        assert session.statements["s1"].links == ("s2",)
        assert session.blocking_gaps == []

    def test_non_blocking_gap_can_be_answered(self, engine, controller):
        """A negative-path gap may be answered explicitly."""
        session = engine.submit(LOGIN_TEXT)
        gap = session.non_blocking_gaps[0]
        controller.submit(session, 'show the message "Invalid credentials"', gap)

        added = session.statements["s5"]
        assert added.has_tag(TAG_FAILURE)
        assert added.links == ("s2",)
        assert session.gaps == []
        assert session.revision == 1

    def test_frozen_session_refuses_answers(self, engine, controller):
        """No merge is accepted once a document was synthesized."""
        session = engine.submit(LOGIN_TEXT)
        engine.synthesize(session)
        with pytest.raises(SessionFrozenError):
            controller.submit(session, "anything", session.gaps[0])


class TestRun:
    """Driving the loop against an answer channel."""

    def test_channel_answers(self, engine, controller):
        """The loop asks until no blocking gap remains."""
        questions = []

        def channel(question):
            questions.append(question)
            return LATENCY_ANSWER

        session = engine.submit(VAGUE_TEXT)
        step = controller.run(session, channel)
        assert step.status is ClarificationStatus.RESOLVED
        assert len(questions) == 1

    def test_rejection_is_reasked(self, engine, controller):
        """A rejected answer re-asks the question with the reason in front."""
        answers = iter(["quickly", LATENCY_ANSWER])
        questions = []

        def channel(question):
            questions.append(question)
            return next(answers)

        session = engine.submit(VAGUE_TEXT)
        step = controller.run(session, channel)
        assert step.status is ClarificationStatus.RESOLVED
        assert len(questions) == 2
        assert questions[1].startswith("answer is itself vague ('quickly')")
        assert session.revision == 1

    def test_withdrawn_channel_cancels(self, engine, controller):
        """A channel returning None cancels and keeps the last revision."""
        session = engine.submit(VAGUE_TEXT)
        step = controller.run(session, lambda question: None)
        assert step.status is ClarificationStatus.CANCELLED
        assert session.state is SessionState.CANCELLED
        assert session.revision == 0
        assert len(step.open_gaps) == 1

    def test_cancelled_session_resumes(self, engine, controller):
        """A cancelled session can be resumed from where it stopped."""
        session = engine.submit(VAGUE_TEXT)
        controller.run(session, lambda question: "")
        step = controller.resolve(session)
        assert step.needs_input
        step = controller.submit(session, LATENCY_ANSWER)
        assert step.status is ClarificationStatus.RESOLVED
