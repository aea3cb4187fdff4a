"""
Core data model for the requirement-to-specification pipeline.

Statements are extracted from raw text, Gaps are detected over the statement
set, and a SpecDocument is synthesized once no blocking Gap remains. All
value types are frozen; the only mutable container is SpecDocument, which is
sealed when packaged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional, Union

from specforge.exceptions import ArtifactSealedError
from specforge.serialization import SerializableMixin, deserialize_value

_STATEMENT_ID = re.compile(r"^s(\d+)$")


def statement_id(index: int) -> str:
    """Build the id of the statement at 1-based input position ``index``."""
    return f"s{index}"


def statement_index(sid: str) -> int:
    """Numeric position of a statement id; unknown shapes sort last."""
    match = _STATEMENT_ID.match(sid)
    return int(match.group(1)) if match else 1_000_000


class StatementKind(str, Enum):
    """What an extracted clause expresses."""

    ACTOR = "actor"
    ACTION = "action"
    CONDITION = "condition"
    OUTCOME = "outcome"
    CONSTRAINT = "constraint"


class GapCategory(str, Enum):
    """Detected deficiency. Declaration order is the prompt order for ties."""

    VAGUE_QUALIFIER = "vague_qualifier"
    MISSING_NEGATIVE_PATH = "missing_negative_path"
    UNRESOLVED_CONDITIONAL = "unresolved_conditional"
    MISSING_ACTOR = "missing_actor"
    MISSING_ACCEPTANCE_CRITERION = "missing_acceptance_criterion"

    @property
    def rank(self) -> int:
        return list(GapCategory).index(self)


class SpecFormat(str, Enum):
    """Target shape of the synthesized document."""

    BEHAVIORAL = "behavioral"
    CONTRACT = "contract"
    FUNCTIONAL = "functional"


class PrecedenceStrategy(str, Enum):
    """How overlapping conditions in a rule table are ordered."""

    FIRST_SEEN = "first_seen"  # input order, first matching row wins
    MOST_SPECIFIC = "most_specific"  # more conjuncts first, ties keep input order


# Tags carried by statements
TAG_IMPLICIT = "implicit"  # not present verbatim in the input (e.g. an endpoint's caller)
TAG_ENDPOINT = "endpoint"
TAG_FAILURE = "failure"
TAG_CLARIFIED = "from_clarification"
HTTP_TAG_PREFIX = "http:"


@dataclass(frozen=True)
class Statement(SerializableMixin):
    """Atomic clause extracted from the input.

    Attributes:
        id: Position-based id (``s1``, ``s2``, ...), stable within a session.
        kind: What the clause expresses.
        text: Normalized clause text.
        source_offset: ``(start, end)`` span in the raw input; ``None`` for
            statements created from a clarification answer.
        group: Index of the sentence the clause came from.
        links: Ids of related statements (an Action's Actor, an Outcome's
            Condition).
        tags: Lexical annotations such as ``http:200`` or ``endpoint``.
        resolved: False until any detected ambiguity is cleared.
        clarification: Answer text that resolved the statement.
        session_id: Owning session; stamped when the session adopts it.
    """

    id: str
    kind: StatementKind
    text: str
    source_offset: Optional[tuple[int, int]] = None
    group: int = 0
    links: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    resolved: bool = False
    clarification: Optional[str] = None
    session_id: str = ""

    @property
    def index(self) -> int:
        return statement_index(self.id)

    @property
    def effective_text(self) -> str:
        """Clause text followed by its clarification, if any."""
        if self.clarification:
            return f"{self.text} ({self.clarification})"
        return self.text

    @property
    def http_status(self) -> Optional[int]:
        for tag in self.tags:
            if tag.startswith(HTTP_TAG_PREFIX):
                return int(tag[len(HTTP_TAG_PREFIX):])
        return None

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def resolve(self, clarification: Optional[str] = None) -> Statement:
        """Return a copy marked resolved, optionally carrying a clarification."""
        return replace(
            self,
            resolved=True,
            clarification=clarification if clarification is not None else self.clarification,
        )

    def with_link(self, other_id: str) -> Statement:
        if other_id in self.links:
            return self
        return replace(self, links=self.links + (other_id,))


@dataclass(frozen=True)
class Gap(SerializableMixin):
    """A detected ambiguity or omission.

    Blocking gaps prevent synthesis. Identity for deduplication is
    ``(category, related_statement_ids)``.
    """

    category: GapCategory
    related_statement_ids: tuple[str, ...]
    question: str
    blocking: bool
    term: Optional[str] = None

    @property
    def key(self) -> tuple[GapCategory, tuple[str, ...]]:
        return (self.category, self.related_statement_ids)

    @property
    def sort_key(self) -> tuple[tuple[int, ...], int]:
        return (tuple(statement_index(s) for s in self.related_statement_ids), self.category.rank)


@dataclass(frozen=True)
class Branch(SerializableMixin):
    """One rendered line of a section that refers to a statement.

    ``role`` is one of ``given``, ``when``, ``condition``, ``then``,
    ``constraint`` (behavioral), ``success``, ``failure``, ``constraint``
    (contract), ``rule``, ``invariant`` (functional). Only outcome-bearing
    roles produce acceptance criteria.
    """

    statement_id: str
    role: str
    text: str
    clarification: Optional[str] = None
    condition: Optional[str] = None
    status: Optional[int] = None
    severity: int = 0
    category: Optional[str] = None

    OUTCOME_ROLES = frozenset({"then", "constraint", "success", "failure", "rule", "invariant"})

    @property
    def is_outcome(self) -> bool:
        return self.role in self.OUTCOME_ROLES

    @property
    def effective_text(self) -> str:
        if self.clarification:
            return f"{self.text} ({self.clarification})"
        return self.text


@dataclass(frozen=True)
class Section(SerializableMixin):
    """An ordered rendered block: a scenario, a contract entry, or a rule table."""

    kind: str
    title: str
    branches: tuple[Branch, ...] = ()
    notes: tuple[str, ...] = ()

    @property
    def statement_ids(self) -> tuple[str, ...]:
        return tuple(b.statement_id for b in self.branches)

    @property
    def outcome_branches(self) -> tuple[Branch, ...]:
        return tuple(b for b in self.branches if b.is_outcome)


@dataclass(frozen=True)
class AcceptanceCriterion(SerializableMixin):
    """A single binary (met / not met) check derived from one statement."""

    description: str
    linked_statement_id: str
    expected_result: str
    section: str = ""

    @property
    def incomplete(self) -> bool:
        return False


@dataclass(frozen=True)
class IncompleteCriterion(SerializableMixin):
    """Marker placed where a criterion could not be made binary."""

    linked_statement_id: str
    reason: str
    section: str = ""

    @property
    def incomplete(self) -> bool:
        return True

    @property
    def note(self) -> str:
        return f"Incomplete criterion for {self.linked_statement_id}: {self.reason}"


CriterionEntry = Union[AcceptanceCriterion, IncompleteCriterion]


def criterion_from_dict(data: dict[str, Any]) -> CriterionEntry:
    if data.get("incomplete"):
        return IncompleteCriterion.from_dict(data)
    return AcceptanceCriterion.from_dict(data)


def criterion_to_dict(entry: CriterionEntry) -> dict[str, Any]:
    data = entry.to_dict()
    data["incomplete"] = entry.incomplete
    return data


@dataclass
class SpecDocument(SerializableMixin):
    """The synthesized specification.

    Mutable while the pipeline fills it in; ``seal()`` converts every
    collection to a tuple and rejects any further attribute assignment.
    """

    format: SpecFormat
    sections: list[Section] = field(default_factory=list)
    criteria: list[CriterionEntry] = field(default_factory=list)
    unresolved_assumptions: list[str] = field(default_factory=list)
    session_id: str = ""
    revision: int = 0
    statements: tuple[Statement, ...] = ()
    precedence: PrecedenceStrategy = PrecedenceStrategy.FIRST_SEEN
    _sealed: bool = field(default=False, repr=False, compare=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_sealed", False):
            raise ArtifactSealedError(name)
        super().__setattr__(name, value)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> SpecDocument:
        if self._sealed:
            return self
        self.sections = tuple(self.sections)
        self.criteria = tuple(self.criteria)
        self.unresolved_assumptions = tuple(self.unresolved_assumptions)
        self._sealed = True
        return self

    def statement(self, sid: str) -> Optional[Statement]:
        for stmt in self.statements:
            if stmt.id == sid:
                return stmt
        return None

    @property
    def acceptance_criteria(self) -> list[AcceptanceCriterion]:
        return [c for c in self.criteria if isinstance(c, AcceptanceCriterion)]

    @property
    def incomplete_criteria(self) -> list[IncompleteCriterion]:
        return [c for c in self.criteria if isinstance(c, IncompleteCriterion)]

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["criteria"] = [criterion_to_dict(c) for c in self.criteria]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SpecDocument:
        return cls(
            format=SpecFormat(data["format"]),
            sections=[Section.from_dict(s) for s in data.get("sections", [])],
            criteria=[criterion_from_dict(c) for c in data.get("criteria", [])],
            unresolved_assumptions=list(data.get("unresolved_assumptions", [])),
            session_id=data.get("session_id", ""),
            revision=int(data.get("revision", 0)),
            statements=tuple(Statement.from_dict(s) for s in data.get("statements", [])),
            precedence=deserialize_value(
                data.get("precedence", PrecedenceStrategy.FIRST_SEEN.value), PrecedenceStrategy
            ),
        )


__all__ = [
    "StatementKind",
    "GapCategory",
    "SpecFormat",
    "PrecedenceStrategy",
    "Statement",
    "Gap",
    "Branch",
    "Section",
    "AcceptanceCriterion",
    "IncompleteCriterion",
    "CriterionEntry",
    "SpecDocument",
    "statement_id",
    "statement_index",
    "criterion_from_dict",
    "criterion_to_dict",
    "TAG_IMPLICIT",
    "TAG_ENDPOINT",
    "TAG_FAILURE",
    "TAG_CLARIFIED",
    "HTTP_TAG_PREFIX",
]
