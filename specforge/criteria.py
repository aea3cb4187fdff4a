"""
Acceptance criteria derivation.

One criterion per distinct outcome-bearing branch of a document. A branch
that cannot be reduced to a binary check yields an IncompleteCriterion
whose note is carried into the document's unresolved assumptions. A
placeholder criterion is never produced.
"""

from __future__ import annotations

from typing import Iterable, Optional

from specforge.logging_config import get_logger
from specforge.measures import expected_result
from specforge.types import (
    AcceptanceCriterion,
    Branch,
    CriterionEntry,
    Gap,
    IncompleteCriterion,
    Section,
    SpecDocument,
)
from specforge.vocabulary import Vocabulary, get_default_vocabulary

logger = get_logger(__name__)

INCOMPLETE_REASON = "no comparator, numeric bound or enumerable state to check against"


def _describe(section: Section, branch: Branch, expected: str, rank: Optional[int]) -> str:
    if section.kind == "scenario":
        prefix = f"Scenario '{section.title}': "
    elif section.kind == "contract":
        condition = f" {branch.condition}" if branch.condition else ""
        prefix = f"{section.title}{condition}: "
    elif section.kind == "rule_table":
        prefix = f"Rule {rank} ({branch.condition}): "
    else:
        prefix = "Invariant: "
    return f"{prefix}{branch.text}; met when the result is {expected}"


def _ranks(section: Section) -> dict[str, int]:
    """Rank of each rule row; rows sharing a condition share a rank."""
    ranks: dict[str, int] = {}
    by_condition: dict[Optional[str], int] = {}
    for branch in section.outcome_branches:
        if branch.condition not in by_condition:
            by_condition[branch.condition] = len(by_condition) + 1
        ranks[branch.statement_id] = by_condition[branch.condition]
    return ranks


class CriteriaExtractor:
    def __init__(self, vocabulary: Optional[Vocabulary] = None):
        self.vocabulary = vocabulary or get_default_vocabulary()

    def derive(self, sections: Iterable[Section]) -> list[CriterionEntry]:
        entries: list[CriterionEntry] = []
        seen: set[str] = set()
        for section in sections:
            ranks = _ranks(section) if section.kind == "rule_table" else {}
            for branch in section.outcome_branches:
                if branch.statement_id in seen:
                    continue
                seen.add(branch.statement_id)
                expected = expected_result(
                    branch.text,
                    self.vocabulary,
                    status=branch.status,
                    clarification=branch.clarification,
                )
                if expected is None:
                    entries.append(
                        IncompleteCriterion(
                            linked_statement_id=branch.statement_id,
                            reason=f"'{branch.effective_text}' has {INCOMPLETE_REASON}",
                            section=section.title,
                        )
                    )
                else:
                    entries.append(
                        AcceptanceCriterion(
                            description=_describe(
                                section, branch, expected, ranks.get(branch.statement_id)
                            ),
                            linked_statement_id=branch.statement_id,
                            expected_result=expected,
                            section=section.title,
                        )
                    )
        logger.debug(
            "Derived criteria",
            criteria=len(entries),
            incomplete=sum(1 for e in entries if isinstance(e, IncompleteCriterion)),
        )
        return entries


def unresolved_assumptions(
    non_blocking_gaps: Iterable[Gap], criteria: Iterable[CriterionEntry]
) -> list[str]:
    """Open questions at freeze time followed by incomplete-criterion notes."""
    notes = [gap.question for gap in non_blocking_gaps]
    for entry in criteria:
        if isinstance(entry, IncompleteCriterion) and entry.note not in notes:
            notes.append(entry.note)
    return notes


def derive_criteria(
    document: SpecDocument, vocabulary: Optional[Vocabulary] = None
) -> list[CriterionEntry]:
    """Derive criteria for every outcome branch of a document."""
    return CriteriaExtractor(vocabulary).derive(document.sections)


def criteria_signature(entries: Iterable[CriterionEntry]) -> list[tuple]:
    """Comparable form of a criteria list, used for round-trip checks."""
    signature = []
    for entry in entries:
        if isinstance(entry, AcceptanceCriterion):
            signature.append((entry.linked_statement_id, entry.expected_result, entry.description))
        else:
            signature.append((entry.linked_statement_id, None, entry.reason))
    return signature


__all__ = [
    "CriteriaExtractor",
    "derive_criteria",
    "unresolved_assumptions",
    "criteria_signature",
    "INCOMPLETE_REASON",
]
