"""
Gap detection.

Rule checks over a statement set. Each check emits Gaps with a prefilled
question; the combined list is deduplicated by ``(category, related ids)``
and ordered by statement position so prompts come out in input order.

Blocking categories: vague qualifiers, unresolved conditionals and missing
actors. Missing negative paths and missing acceptance criteria are recorded
as assumptions instead of halting synthesis.
"""

from __future__ import annotations

from typing import Iterable, Optional

from specforge.logging_config import get_logger
from specforge.measures import is_binary_checkable
from specforge.relations import StatementGraph, is_failure, status_of
from specforge.types import Gap, GapCategory, Statement, StatementKind
from specforge.vocabulary import Vocabulary, get_default_vocabulary

logger = get_logger(__name__)

BLOCKING_CATEGORIES = frozenset(
    {
        GapCategory.VAGUE_QUALIFIER,
        GapCategory.UNRESOLVED_CONDITIONAL,
        GapCategory.MISSING_ACTOR,
    }
)

EMPTY_INPUT_ACTOR_QUESTION = "Who uses the system, and what do they do?"
NO_OUTCOME_QUESTION = (
    "No observable result is described. What result should a test check for?"
)


class GapDetector:
    """Runs every gap check against a statement set."""

    def __init__(self, vocabulary: Optional[Vocabulary] = None):
        self.vocabulary = vocabulary or get_default_vocabulary()

    def detect(self, statements: Iterable[Statement]) -> list[Gap]:
        graph = StatementGraph(statements)
        if not graph.ordered:
            gaps = [
                self._gap(GapCategory.MISSING_ACTOR, (), EMPTY_INPUT_ACTOR_QUESTION),
                self._gap(GapCategory.MISSING_ACCEPTANCE_CRITERION, (), NO_OUTCOME_QUESTION),
            ]
        else:
            gaps = []
            gaps.extend(self._vague_qualifiers(graph))
            gaps.extend(self._missing_negative_paths(graph))
            gaps.extend(self._unresolved_conditionals(graph))
            gaps.extend(self._missing_actors(graph))
            gaps.extend(self._missing_acceptance_criteria(graph))

        unique: dict[tuple, Gap] = {}
        for gap in gaps:
            unique.setdefault(gap.key, gap)
        ordered = sorted(unique.values(), key=lambda g: g.sort_key)

        logger.debug(
            "Detected gaps",
            statements=len(graph.ordered),
            gaps=len(ordered),
            blocking=sum(1 for g in ordered if g.blocking),
        )
        return ordered

    # ------------------------------------------------------------------
    # Checks

    def _vague_qualifiers(self, graph: StatementGraph) -> list[Gap]:
        gaps = []
        for stmt in graph.ordered:
            if stmt.clarification:
                continue
            found = self.vocabulary.vague_terms_in(stmt.text)
            if not found:
                continue
            terms = ", ".join(f"'{term}'" for term, _ in found)
            noun = "term" if len(found) == 1 else "terms"
            question = (
                f"'{stmt.text}' uses the vague {noun} {terms}. "
                f"{self.vocabulary.question_for(found[0][1])}"
            )
            gaps.append(
                self._gap(GapCategory.VAGUE_QUALIFIER, (stmt.id,), question, term=found[0][0])
            )
        return gaps

    def _missing_negative_paths(self, graph: StatementGraph) -> list[Gap]:
        gaps = []
        for action in graph.of_kind(StatementKind.ACTION):
            actor = graph.linked_actor(action) or graph.scope_actor(action)
            actor_id = actor.id if actor else None
            if any(
                self._is_failure_outcome(graph, stmt)
                for stmt in graph.of_kind(StatementKind.OUTCOME)
                if action.id in stmt.links or _scope_id(graph, stmt) == actor_id
            ):
                continue
            who = actor.text if actor else "the caller"
            hint = self.vocabulary.negative_hint(action.text)
            question = f"What should happen when {who} cannot {action.text} (for example {hint})?"
            gaps.append(self._gap(GapCategory.MISSING_NEGATIVE_PATH, (action.id,), question))
        return gaps

    def _unresolved_conditionals(self, graph: StatementGraph) -> list[Gap]:
        return [
            self._gap(
                GapCategory.UNRESOLVED_CONDITIONAL,
                (condition.id,),
                f"What should happen {_lower_first(condition.text)}?",
            )
            for condition in graph.of_kind(StatementKind.CONDITION)
            if not graph.condition_is_answered(condition)
        ]

    def _missing_actors(self, graph: StatementGraph) -> list[Gap]:
        return [
            self._gap(GapCategory.MISSING_ACTOR, (action.id,), f"Who performs '{action.text}'?")
            for action in graph.of_kind(StatementKind.ACTION)
            if graph.linked_actor(action) is None
        ]

    def _missing_acceptance_criteria(self, graph: StatementGraph) -> list[Gap]:
        checked = [
            s
            for s in graph.ordered
            if s.kind in (StatementKind.OUTCOME, StatementKind.CONSTRAINT)
        ]
        if not checked:
            return [self._gap(GapCategory.MISSING_ACCEPTANCE_CRITERION, (), NO_OUTCOME_QUESTION)]
        return [
            self._gap(
                GapCategory.MISSING_ACCEPTANCE_CRITERION,
                (stmt.id,),
                f"How can '{stmt.text}' be checked? "
                "Give a concrete value, limit, status or observable state.",
            )
            for stmt in checked
            if not is_binary_checkable(stmt.effective_text, self.vocabulary, status_of(stmt))
        ]

    # ------------------------------------------------------------------

    def _is_failure_outcome(self, graph: StatementGraph, outcome: Statement) -> bool:
        return is_failure(outcome, self.vocabulary, graph.conditions_of(outcome))

    @staticmethod
    def _gap(
        category: GapCategory,
        related: tuple[str, ...],
        question: str,
        term: Optional[str] = None,
    ) -> Gap:
        return Gap(
            category=category,
            related_statement_ids=related,
            question=question,
            blocking=category in BLOCKING_CATEGORIES,
            term=term,
        )


def _lower_first(text: str) -> str:
    return text[:1].lower() + text[1:]


def _scope_id(graph: StatementGraph, stmt: Statement) -> Optional[str]:
    actor = graph.scope_actor(stmt)
    return actor.id if actor else None


def detect(statements: Iterable[Statement], vocabulary: Optional[Vocabulary] = None) -> list[Gap]:
    """Detect gaps with the given (or default) vocabulary."""
    return GapDetector(vocabulary).detect(statements)


__all__ = [
    "GapDetector",
    "detect",
    "BLOCKING_CATEGORIES",
    "EMPTY_INPUT_ACTOR_QUESTION",
    "NO_OUTCOME_QUESTION",
]
