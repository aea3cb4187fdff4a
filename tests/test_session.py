"""Tests for session state and revisions."""

import pytest

from specforge.exceptions import SessionFrozenError
from specforge.session import MergeRecord, Session, SessionState, new_session_id
from specforge.types import Gap, GapCategory, Statement, StatementKind


def make_statements():
    return [
        Statement(id="s2", kind=StatementKind.ACTION, text="log in", links=("s1",)),
        Statement(id="s1", kind=StatementKind.ACTOR, text="Users"),
    ]


class TestSessionStart:
    """Opening a session."""

    def test_session_id_shape(self):
        """Ids are prefixed and unique."""
        first, second = new_session_id(), new_session_id()
        assert first.startswith("session_")
        assert first != second

    def test_statements_are_adopted(self):
        """Statements are keyed by id, ordered, and stamped with the session id."""
        session = Session.start("Users must log in", make_statements(), [])
        assert list(session.statements) == ["s1", "s2"]
        assert all(s.session_id == session.id for s in session.statement_list)
        assert session.revision == 0
        assert session.state is SessionState.OPEN

    def test_gap_views(self):
        """Blocking and non-blocking views partition the gaps."""
        gaps = [
            Gap(GapCategory.MISSING_ACTOR, ("s2",), "Who?", blocking=True),
            Gap(GapCategory.MISSING_NEGATIVE_PATH, ("s2",), "Else?", blocking=False),
        ]
        session = Session.start("x", make_statements(), gaps)
        assert session.blocking_gaps == gaps[:1]
        assert session.non_blocking_gaps == gaps[1:]

    def test_next_statement_id(self):
        """New statements continue the numbering."""
        session = Session.start("x", make_statements(), [])
        assert session.next_statement_id() == "s3"


class TestCommit:
    """Atomic revision changes."""

    def test_commit_advances_revision(self):
        """Each commit moves the revision forward by exactly one."""
        session = Session.start("x", make_statements(), [])
        extra = Statement(id="s3", kind=StatementKind.OUTCOME, text="redirect to /home")
        record = MergeRecord(revision=0, category="missing_negative_path", related_statement_ids=("s2",), answer="a")

        revision = session.commit(session.statement_list + [extra], [], record)
        assert revision == 1
        assert session.revision == 1
        assert "s3" in session.statements
        assert session.statements["s3"].session_id == session.id
        assert session.history == [record]
        assert record.revision == 1

    def test_commit_clears_pending(self):
        """A commit answers whatever was pending."""
        gap = Gap(GapCategory.MISSING_ACTOR, ("s2",), "Who?", blocking=True)
        session = Session.start("x", make_statements(), [gap])
        session.pending_gap = gap
        session.commit(session.statement_list, [])
        assert session.pending_gap is None


class TestFreeze:
    """Frozen sessions and branching."""

    def test_frozen_session_rejects_commit(self):
        """Nothing changes a frozen session."""
        session = Session.start("x", make_statements(), [])
        session.freeze()
        assert session.is_frozen
        with pytest.raises(SessionFrozenError) as exc_info:
            session.commit(session.statement_list, [])
        assert exc_info.value.session_id == session.id
        assert session.revision == 0

    def test_freeze_twice(self):
        """Freezing is one-way."""
        session = Session.start("x", make_statements(), [])
        session.freeze()
        with pytest.raises(SessionFrozenError):
            session.freeze()

    def test_branch_from_frozen(self):
        """A branch continues from the parent's revision and stays open."""
        session = Session.start("x", make_statements(), [])
        session.commit(session.statement_list, [])
        session.freeze()

        child = session.branch()
        assert child.parent_id == session.id
        assert child.id != session.id
        assert child.revision == 1
        assert child.state is SessionState.OPEN
        assert all(s.session_id == child.id for s in child.statement_list)
        assert all(s.session_id == session.id for s in session.statement_list)

    def test_to_dict(self):
        """The session serializes with its statements and history."""
        session = Session.start("x", make_statements(), [])
        data = session.to_dict()
        assert data["id"] == session.id
        assert data["state"] == "open"
        assert [s["id"] for s in data["statements"]] == ["s1", "s2"]
        assert data["pending_gap"] is None
