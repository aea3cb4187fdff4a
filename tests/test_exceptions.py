"""
Tests for custom exception types.
"""

import pytest

from specforge.exceptions import (
    # Base
    SpecForgeError,
    # Input
    InputError,
    MalformedInputError,
    # Session
    SessionError,
    SessionFrozenError,
    BlockingGapUnresolvedError,
    ClarificationCancelledError,
    ClarificationRejectedError,
    NoPendingClarificationError,
    # Synthesis
    SynthesisError,
    ArtifactSealedError,
    DanglingReferenceError,
    RenderParseError,
    # Configuration
    ConfigurationError,
    VocabularyError,
)
from specforge.types import Gap, GapCategory


def blocking_gap():
    return Gap(GapCategory.VAGUE_QUALIFIER, ("s1",), "How fast?", blocking=True)


class TestHierarchy:
    """Every error is a SpecForgeError."""

    @pytest.mark.parametrize(
        "exc_class,parent",
        [
            (MalformedInputError, InputError),
            (SessionFrozenError, SessionError),
            (BlockingGapUnresolvedError, SessionError),
            (ClarificationCancelledError, SessionError),
            (ClarificationRejectedError, SessionError),
            (NoPendingClarificationError, SessionError),
            (ArtifactSealedError, SynthesisError),
            (DanglingReferenceError, SynthesisError),
            (RenderParseError, SynthesisError),
            (VocabularyError, ConfigurationError),
        ],
    )
    def test_parents(self, exc_class, parent):
        """Each error sits under its family and the base class."""
        assert issubclass(exc_class, parent)
        assert issubclass(exc_class, SpecForgeError)


class TestBaseError:
    """Message and details."""

    def test_message_only(self):
        """Without details str() is the message."""
        error = SpecForgeError("broken")
        assert str(error) == "broken"
        assert error.details == {}

    def test_with_details(self):
        """Details are appended to str()."""
        error = SpecForgeError("broken", {"key": "value"})
        assert "broken" in str(error)
        assert "key" in str(error)


class TestSpecificErrors:
    """Attributes carried by specific errors."""

    def test_malformed_input(self):
        """The default reason is descriptive."""
        error = MalformedInputError()
        assert "no extractable statement" in str(error)
        assert error.details["reason"] == error.reason

    def test_blocking_gap_unresolved(self):
        """The error carries the blocking gaps."""
        error = BlockingGapUnresolvedError("session_1", [blocking_gap()])
        assert error.gaps == (blocking_gap(),)
        assert error.details["categories"] == ["vague_qualifier"]
        assert "1 blocking gap" in error.message

    def test_cancelled(self):
        """A cancellation records the revision it stopped at."""
        error = ClarificationCancelledError("session_1", 2, [blocking_gap()])
        assert error.revision == 2
        assert error.details["open_gaps"] == 1

    def test_rejected(self):
        """A rejection keeps the question, answer and reason."""
        error = ClarificationRejectedError("How fast?", "very", "answer is itself vague")
        assert error.reason == "answer is itself vague"
        assert error.answer == "very"
        assert str(error).startswith("Answer rejected: answer is itself vague")

    def test_render_parse_line(self):
        """A parse error may name the offending line."""
        assert RenderParseError("bad", 7).details == {"reason": "bad", "line": 7}
        assert "line" not in RenderParseError("bad").details

    def test_vocabulary_error(self):
        """Vocabulary errors name their source."""
        error = VocabularyError("vocab.yaml", "bad")
        assert error.source == "vocab.yaml"
        assert "vocab.yaml" in str(error)
