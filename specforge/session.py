"""
Clarification session state.

A Session owns the statements extracted from one raw input, the gaps
currently detected over them, and a revision counter that moves forward by
exactly one on every successful merge. Sessions are single-writer; callers
that share one across threads must serialize access themselves.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from specforge.exceptions import SessionFrozenError
from specforge.types import Gap, Statement, statement_id, statement_index


class SessionState(str, Enum):
    OPEN = "open"
    AWAITING_INPUT = "awaiting_input"
    CANCELLED = "cancelled"  # resumable; the last committed revision is kept
    FROZEN = "frozen"  # a document was synthesized; no further merges


def new_session_id() -> str:
    return f"session_{uuid.uuid4().hex[:12]}"


@dataclass
class MergeRecord:
    """One committed clarification."""

    revision: int
    category: str
    related_statement_ids: tuple[str, ...]
    answer: str
    created_statement_ids: tuple[str, ...] = ()
    merged_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "revision": self.revision,
            "category": self.category,
            "related_statement_ids": list(self.related_statement_ids),
            "answer": self.answer,
            "created_statement_ids": list(self.created_statement_ids),
            "merged_at": self.merged_at.isoformat(),
        }


@dataclass
class Session:
    """Mutable holder of one clarification dialogue.

    Attributes:
        raw_text: The submitted input, kept for reporting.
        id: Session identifier stamped onto every statement.
        statements: Statements keyed by id, in id order.
        gaps: Gaps detected at the current revision.
        revision: Number of merges committed so far.
        state: Lifecycle state.
        pending_gap: Gap whose question is awaiting an answer.
        parent_id: Id of the session this one was branched from.
        history: Committed merges, oldest first.
    """

    raw_text: str
    id: str = field(default_factory=new_session_id)
    statements: dict[str, Statement] = field(default_factory=dict)
    gaps: list[Gap] = field(default_factory=list)
    revision: int = 0
    state: SessionState = SessionState.OPEN
    pending_gap: Optional[Gap] = None
    parent_id: Optional[str] = None
    history: list[MergeRecord] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def start(
        cls, raw_text: str, statements: Iterable[Statement], gaps: Iterable[Gap]
    ) -> Session:
        session = cls(raw_text=raw_text)
        session.statements = session._adopt(statements)
        session.gaps = list(gaps)
        return session

    # ------------------------------------------------------------------
    # Views

    @property
    def statement_list(self) -> list[Statement]:
        return list(self.statements.values())

    @property
    def blocking_gaps(self) -> list[Gap]:
        return [g for g in self.gaps if g.blocking]

    @property
    def non_blocking_gaps(self) -> list[Gap]:
        return [g for g in self.gaps if not g.blocking]

    @property
    def is_frozen(self) -> bool:
        return self.state is SessionState.FROZEN

    def next_statement_id(self, statements: Optional[dict[str, Statement]] = None) -> str:
        pool = statements if statements is not None else self.statements
        highest = max((statement_index(sid) for sid in pool), default=0)
        return statement_id(highest + 1)

    # ------------------------------------------------------------------
    # Mutation

    def ensure_open(self) -> None:
        if self.is_frozen:
            raise SessionFrozenError(self.id, self.revision)

    def commit(
        self,
        statements: Iterable[Statement],
        gaps: Iterable[Gap],
        record: Optional[MergeRecord] = None,
    ) -> int:
        """Atomically replace statements and gaps and advance the revision."""
        self.ensure_open()
        adopted = self._adopt(statements)
        new_gaps = list(gaps)
        self.statements = adopted
        self.gaps = new_gaps
        self.revision += 1
        self.pending_gap = None
        if record is not None:
            record.revision = self.revision
            self.history.append(record)
        return self.revision

    def freeze(self) -> None:
        self.ensure_open()
        self.state = SessionState.FROZEN
        self.pending_gap = None

    def branch(self) -> Session:
        """Open a new session continuing from this one's current revision.

        Works on frozen sessions too, which is how a synthesized result is
        revised without mutating the original.
        """
        child = Session(raw_text=self.raw_text, parent_id=self.id, revision=self.revision)
        child.statements = child._adopt(self.statements.values())
        child.gaps = list(self.gaps)
        child.history = list(self.history)
        return child

    def _adopt(self, statements: Iterable[Statement]) -> dict[str, Statement]:
        ordered = sorted(statements, key=lambda s: s.index)
        return {
            s.id: s if s.session_id == self.id else replace(s, session_id=self.id)
            for s in ordered
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "state": self.state.value,
            "revision": self.revision,
            "created_at": self.created_at.isoformat(),
            "statements": [s.to_dict() for s in self.statements.values()],
            "gaps": [g.to_dict() for g in self.gaps],
            "pending_gap": self.pending_gap.to_dict() if self.pending_gap else None,
            "history": [r.to_dict() for r in self.history],
        }


__all__ = ["Session", "SessionState", "MergeRecord", "new_session_id"]
