"""
Handoff packaging.

Seals a synthesized document and wraps it, together with its rendering and
any non-blocking gaps, in an immutable artifact for downstream generators.
Packaging serializes and seals; it never re-runs synthesis.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from specforge.__version__ import ARTIFACT_SCHEMA_VERSION
from specforge.exceptions import DanglingReferenceError
from specforge.logging_config import get_logger
from specforge.render import render_document
from specforge.serialization import canonical_json
from specforge.session import Session
from specforge.types import Gap, SpecDocument, SpecFormat, Statement

logger = get_logger(__name__)


def _digest(payload: Any) -> str:
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class HandoffArtifact:
    """Sealed, content-addressed package of one synthesized document."""

    artifact_id: str
    schema_version: str
    format: SpecFormat
    session_id: str
    revision: int
    document: SpecDocument
    gaps: tuple[Gap, ...]
    rendered: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "artifact_id": self.artifact_id,
            "schema_version": self.schema_version,
            "format": self.format.value,
            "session_id": self.session_id,
            "revision": self.revision,
            "document": self.document.to_dict(),
            "gaps": [g.to_dict() for g in self.gaps],
            "rendered": self.rendered,
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HandoffArtifact:
        document = SpecDocument.from_dict(data["document"]).seal()
        return cls(
            artifact_id=data["artifact_id"],
            schema_version=data.get("schema_version", ARTIFACT_SCHEMA_VERSION),
            format=SpecFormat(data["format"]),
            session_id=data.get("session_id", ""),
            revision=int(data.get("revision", 0)),
            document=document,
            gaps=tuple(Gap.from_dict(g) for g in data.get("gaps", [])),
            rendered=data.get("rendered", ""),
        )

    @classmethod
    def from_json(cls, text: str) -> HandoffArtifact:
        return cls.from_dict(json.loads(text))

    def verify_digest(self) -> bool:
        """True when the artifact id still matches the packaged content."""
        return self.artifact_id == artifact_digest(self.document)


@dataclass(frozen=True)
class GapReport:
    """Snapshot of a session's open gaps, for callers that cannot answer them."""

    report_id: str
    session_id: str
    revision: int
    state: str
    statements: tuple[Statement, ...]
    gaps: tuple[Gap, ...]
    created_at: str

    @property
    def blocking(self) -> tuple[Gap, ...]:
        return tuple(g for g in self.gaps if g.blocking)

    def to_dict(self) -> dict[str, Any]:
        return {
            "report_id": self.report_id,
            "session_id": self.session_id,
            "revision": self.revision,
            "state": self.state,
            "created_at": self.created_at,
            "statements": [s.to_dict() for s in self.statements],
            "gaps": [g.to_dict() for g in self.gaps],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def render_text(self) -> str:
        lines = [f"Session {self.session_id} (revision {self.revision}, {self.state})"]
        if not self.gaps:
            lines.append("No gaps detected.")
        for gap in self.gaps:
            marker = "BLOCKING" if gap.blocking else "open"
            related = ", ".join(gap.related_statement_ids) or "-"
            lines.append(f"[{marker}] {gap.category.value} ({related}): {gap.question}")
        return "\n".join(lines) + "\n"


def artifact_digest(document: SpecDocument) -> str:
    return _digest(
        {
            "schema_version": ARTIFACT_SCHEMA_VERSION,
            "session_id": document.session_id,
            "revision": document.revision,
            "document": document.to_dict(),
        }
    )


class HandoffPackager:
    def package(self, document: SpecDocument, gaps: Iterable[Gap] = ()) -> HandoffArtifact:
        """Seal ``document`` and wrap it in an artifact.

        Raises:
            DanglingReferenceError: If a criterion or branch names a statement
                the document does not carry
        """
        known = {s.id for s in document.statements}
        if known:
            referenced = [b.statement_id for s in document.sections for b in s.branches]
            referenced += [c.linked_statement_id for c in document.criteria]
            for sid in referenced:
                if sid not in known:
                    raise DanglingReferenceError(sid, document.revision)

        document.seal()
        artifact = HandoffArtifact(
            artifact_id=artifact_digest(document),
            schema_version=ARTIFACT_SCHEMA_VERSION,
            format=document.format,
            session_id=document.session_id,
            revision=document.revision,
            document=document,
            gaps=tuple(g for g in gaps if not g.blocking),
            rendered=render_document(document),
        )
        logger.info(
            "Packaged artifact",
            artifact_id=artifact.artifact_id[:12],
            format=document.format.value,
            criteria=len(document.criteria),
        )
        return artifact

    def package_gap_report(self, session: Session) -> GapReport:
        created_at = datetime.now(timezone.utc).isoformat()
        payload = {
            "session_id": session.id,
            "revision": session.revision,
            "gaps": [g.to_dict() for g in session.gaps],
        }
        return GapReport(
            report_id=_digest(payload),
            session_id=session.id,
            revision=session.revision,
            state=session.state.value,
            statements=tuple(session.statement_list),
            gaps=tuple(session.gaps),
            created_at=created_at,
        )


def package(document: SpecDocument, gaps: Iterable[Gap] = ()) -> HandoffArtifact:
    return HandoffPackager().package(document, gaps)


def package_gap_report(session: Session) -> GapReport:
    return HandoffPackager().package_gap_report(session)


__all__ = [
    "HandoffArtifact",
    "HandoffPackager",
    "GapReport",
    "artifact_digest",
    "package",
    "package_gap_report",
]
