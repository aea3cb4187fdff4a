"""
Clarification loop.

The controller walks a session's blocking gaps one question at a time. Each
answer is merged into a copy of the statement set, the gaps are detected
again over that copy, and only then is the result committed to the session.
A rejected answer therefore leaves the session exactly as it was.

Usage:
    controller = ClarificationController(detector)
    step = controller.resolve(session)
    while step.needs_input:
        step = controller.submit(session, ask_user(step.question))
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from specforge.detector import GapDetector
from specforge.exceptions import ClarificationRejectedError, NoPendingClarificationError
from specforge.logging_config import LogContext, get_logger
from specforge.measures import is_binary_checkable
from specforge.session import MergeRecord, Session, SessionState
from specforge.types import (
    TAG_CLARIFIED,
    TAG_FAILURE,
    Gap,
    GapCategory,
    Statement,
    StatementKind,
)

logger = get_logger(__name__)

# Receives a question, returns the answer; None or blank means "stop asking".
AnswerChannel = Callable[[str], Optional[str]]


class ClarificationStatus(str, Enum):
    NEEDS_INPUT = "needs_input"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ClarificationStep:
    """Outcome of one controller call."""

    status: ClarificationStatus
    session_id: str
    revision: int
    gap: Optional[Gap] = None
    open_gaps: tuple[Gap, ...] = ()

    @property
    def question(self) -> Optional[str]:
        return self.gap.question if self.gap else None

    @property
    def needs_input(self) -> bool:
        return self.status is ClarificationStatus.NEEDS_INPUT


class ClarificationController:
    """Asks for and merges answers until no blocking gap remains."""

    def __init__(self, detector: GapDetector):
        self.detector = detector
        self.vocabulary = detector.vocabulary

    def resolve(self, session: Session) -> ClarificationStep:
        """Advance the session to its next question, or report it resolved."""
        session.ensure_open()
        blocking = session.blocking_gaps
        if not blocking:
            session.state = SessionState.OPEN
            session.pending_gap = None
            return ClarificationStep(ClarificationStatus.RESOLVED, session.id, session.revision)

        gap = blocking[0]
        session.pending_gap = gap
        session.state = SessionState.AWAITING_INPUT
        return ClarificationStep(
            ClarificationStatus.NEEDS_INPUT,
            session.id,
            session.revision,
            gap=gap,
            open_gaps=tuple(blocking),
        )

    def submit(self, session: Session, answer: str, gap: Optional[Gap] = None) -> ClarificationStep:
        """Merge an answer for ``gap`` (default: the pending one) and advance.

        Any gap of the session may be answered explicitly, including
        non-blocking ones.

        Raises:
            SessionFrozenError: If the session already produced a document
            NoPendingClarificationError: If no gap is given and none is pending
            ClarificationRejectedError: If the answer cannot be merged
        """
        session.ensure_open()
        target = gap or session.pending_gap
        if target is None:
            raise NoPendingClarificationError(session.id)

        with LogContext(session_id=session.id, revision=session.revision):
            statements, created = self._merge(session, target, answer)
            gaps = self.detector.detect(statements.values())
            record = MergeRecord(
                revision=session.revision + 1,
                category=target.category.value,
                related_statement_ids=target.related_statement_ids,
                answer=_clean(answer),
                created_statement_ids=tuple(created),
            )
            revision = session.commit(statements.values(), gaps, record)
            logger.info(
                "Merged clarification",
                category=target.category.value,
                statements=list(target.related_statement_ids),
                created=list(created),
                new_revision=revision,
                open_gaps=len(gaps),
            )
        return self.resolve(session)

    def cancel(self, session: Session) -> ClarificationStep:
        """Stop asking; the session keeps its last committed revision."""
        session.ensure_open()
        session.state = SessionState.CANCELLED
        session.pending_gap = None
        logger.info(
            "Clarification cancelled",
            session_id=session.id,
            revision=session.revision,
            open_gaps=len(session.blocking_gaps),
        )
        return ClarificationStep(
            ClarificationStatus.CANCELLED,
            session.id,
            session.revision,
            open_gaps=tuple(session.blocking_gaps),
        )

    def run(self, session: Session, channel: AnswerChannel) -> ClarificationStep:
        """Drive the loop against a channel until resolved or cancelled.

        A rejected answer re-asks the same question with the rejection reason
        prepended.
        """
        step = self.resolve(session)
        prompt = step.question
        while step.needs_input:
            answer = channel(prompt or "")
            if answer is None or not answer.strip():
                return self.cancel(session)
            try:
                step = self.submit(session, answer)
                prompt = step.question
            except ClarificationRejectedError as e:
                logger.warning("Answer rejected", session_id=session.id, reason=e.reason)
                step = self.resolve(session)
                prompt = f"{e.reason}. {step.question}"
        return step

    # ------------------------------------------------------------------
    # Merging

    def _merge(
        self, session: Session, gap: Gap, answer: str
    ) -> tuple[dict[str, Statement], list[str]]:
        """Build the post-merge statement set without touching the session."""
        text = _clean(answer)
        if not text:
            raise ClarificationRejectedError(gap.question, answer, "answer is empty")
        missing = [sid for sid in gap.related_statement_ids if sid not in session.statements]
        if missing:
            raise ClarificationRejectedError(
                gap.question, answer, f"unknown statement(s) {', '.join(missing)}"
            )

        statements = dict(session.statements)
        related = [statements[sid] for sid in gap.related_statement_ids]
        created: list[str] = []

        def add(kind: StatementKind, links: tuple[str, ...] = (), tags: tuple[str, ...] = (), group: int = 0) -> str:
            sid = session.next_statement_id(statements)
            statements[sid] = Statement(
                id=sid,
                kind=kind,
                text=text,
                group=group,
                links=links,
                tags=(TAG_CLARIFIED,) + tags,
                resolved=True,
                session_id=session.id,
            )
            created.append(sid)
            return sid

        if gap.category in (GapCategory.VAGUE_QUALIFIER, GapCategory.MISSING_ACCEPTANCE_CRITERION):
            self._require_concrete(gap, answer, text)
            if related:
                for stmt in related:
                    statements[stmt.id] = stmt.resolve(text)
            else:
                add(StatementKind.OUTCOME)

        elif gap.category is GapCategory.UNRESOLVED_CONDITIONAL:
            for condition in related:
                add(StatementKind.OUTCOME, links=(condition.id,), group=condition.group)
                statements[condition.id] = condition.resolve()

        elif gap.category is GapCategory.MISSING_ACTOR:
            if related:
                for action in related:
                    actor_id = add(StatementKind.ACTOR, group=action.group)
                    statements[action.id] = action.with_link(actor_id).resolve()
            else:
                add(StatementKind.ACTOR)

        elif gap.category is GapCategory.MISSING_NEGATIVE_PATH:
            for action in related:
                add(
                    StatementKind.OUTCOME,
                    links=(action.id,),
                    tags=(TAG_FAILURE,),
                    group=action.group,
                )
                statements[action.id] = action.resolve()

        return statements, created

    def _require_concrete(self, gap: Gap, answer: str, text: str) -> None:
        vague = self.vocabulary.vague_terms_in(text)
        if vague:
            raise ClarificationRejectedError(
                gap.question, answer, f"answer is itself vague ('{vague[0][0]}')"
            )
        if not is_binary_checkable(text, self.vocabulary):
            raise ClarificationRejectedError(
                gap.question,
                answer,
                "answer needs a concrete value, limit, status or observable state",
            )


def _clean(answer: str) -> str:
    return " ".join((answer or "").split()).rstrip(".;")


__all__ = [
    "AnswerChannel",
    "ClarificationController",
    "ClarificationStatus",
    "ClarificationStep",
]
