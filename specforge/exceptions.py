"""
Custom exception types for specforge.

This module defines the exception hierarchy used by the synthesis pipeline.
Only MalformedInputError and BlockingGapUnresolvedError abort the call that
raised them; both are recoverable by supplying more input or answers.
Incomplete acceptance criteria are not exceptions at all: they travel as
IncompleteCriterion markers inside the document.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

if TYPE_CHECKING:
    from specforge.types import Gap


class SpecForgeError(Exception):
    """Base exception for all specforge errors.

    All custom exceptions inherit from this class so callers can catch
    every specforge-specific failure with a single handler.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


# ============================================================================
# Input Errors
# ============================================================================


class InputError(SpecForgeError):
    """Base exception for problems with the raw requirement text."""

    pass


class MalformedInputError(InputError):
    """Raised when raw text yields no statement at all (empty or whitespace-only)."""

    def __init__(self, reason: str = "input contains no extractable statement"):
        super().__init__(f"Malformed input: {reason}", {"reason": reason})
        self.reason = reason


# ============================================================================
# Session Errors
# ============================================================================


class SessionError(SpecForgeError):
    """Base exception for session lifecycle errors."""

    pass


class SessionFrozenError(SessionError):
    """Raised when a frozen session is asked to change."""

    def __init__(self, session_id: str, revision: int):
        super().__init__(
            f"Session {session_id} is frozen at revision {revision}",
            {"session_id": session_id, "revision": revision},
        )
        self.session_id = session_id
        self.revision = revision


class BlockingGapUnresolvedError(SessionError):
    """Raised when synthesis is attempted while blocking gaps remain.

    Fatal to the synthesis call only. The session stays usable.
    """

    def __init__(self, session_id: str, gaps: Sequence["Gap"]):
        self.session_id = session_id
        self.gaps = tuple(gaps)
        super().__init__(
            f"Session {session_id} has {len(self.gaps)} blocking gap(s)",
            {
                "session_id": session_id,
                "categories": [gap.category.value for gap in self.gaps],
            },
        )


class ClarificationCancelledError(SessionError):
    """Raised when the clarification channel withdraws before blocking gaps clear."""

    def __init__(self, session_id: str, revision: int, gaps: Sequence["Gap"]):
        self.session_id = session_id
        self.revision = revision
        self.gaps = tuple(gaps)
        super().__init__(
            f"Clarification cancelled for session {session_id} at revision {revision}",
            {"session_id": session_id, "revision": revision, "open_gaps": len(self.gaps)},
        )


class ClarificationRejectedError(SessionError):
    """Raised when an answer cannot be merged into the session."""

    def __init__(self, question: str, answer: str, reason: str):
        super().__init__(
            f"Answer rejected: {reason}",
            {"question": question, "answer": answer, "reason": reason},
        )
        self.question = question
        self.answer = answer
        self.reason = reason


class NoPendingClarificationError(SessionError):
    """Raised when an answer is submitted but no gap is awaiting one."""

    def __init__(self, session_id: str):
        super().__init__(
            f"Session {session_id} has no pending clarification",
            {"session_id": session_id},
        )
        self.session_id = session_id


# ============================================================================
# Synthesis / Artifact Errors
# ============================================================================


class SynthesisError(SpecForgeError):
    """Base exception for synthesis and packaging errors."""

    pass


class ArtifactSealedError(SynthesisError):
    """Raised when a packaged document is mutated."""

    def __init__(self, attribute: str):
        super().__init__(
            f"Cannot modify '{attribute}': document is sealed",
            {"attribute": attribute},
        )
        self.attribute = attribute


class DanglingReferenceError(SynthesisError):
    """Raised when a criterion links to a statement missing from the frozen revision."""

    def __init__(self, statement_id: str, revision: int):
        super().__init__(
            f"Criterion references unknown statement {statement_id} at revision {revision}",
            {"statement_id": statement_id, "revision": revision},
        )
        self.statement_id = statement_id
        self.revision = revision


class RenderParseError(SynthesisError):
    """Raised when rendered specification text cannot be parsed back."""

    def __init__(self, reason: str, line: int | None = None):
        details: dict[str, Any] = {"reason": reason}
        if line is not None:
            details["line"] = line
        super().__init__(f"Cannot parse rendered document: {reason}", details)
        self.reason = reason
        self.line = line


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(SpecForgeError):
    """Raised when engine configuration is invalid."""

    pass


class VocabularyError(ConfigurationError):
    """Raised when the vocabulary file is missing, malformed, or unsupported."""

    def __init__(self, source: str, reason: str):
        super().__init__(
            f"Invalid vocabulary {source}: {reason}",
            {"source": source, "reason": reason},
        )
        self.source = source
        self.reason = reason


__all__ = [
    "SpecForgeError",
    "InputError",
    "MalformedInputError",
    "SessionError",
    "SessionFrozenError",
    "BlockingGapUnresolvedError",
    "ClarificationCancelledError",
    "ClarificationRejectedError",
    "NoPendingClarificationError",
    "SynthesisError",
    "ArtifactSealedError",
    "DanglingReferenceError",
    "RenderParseError",
    "ConfigurationError",
    "VocabularyError",
]
