"""
Specification synthesis.

Maps a gap-free statement set onto the sections of one of three formats:

- behavioral: one scenario per actor goal and distinct condition; success
  paths first, alternate paths next, failure paths last.
- contract: one entry per invocation target; branches success first, then
  failures by ascending severity, ties in input order.
- functional: a decision table whose row order is its precedence, followed
  by invariants (unconditional outcomes and constraints).

Every branch keeps the id of the statement it renders so that criteria and
assumptions trace back to the input.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from specforge.logging_config import get_logger
from specforge.relations import (
    StatementGraph,
    condition_value,
    failure_category,
    is_failure,
    is_fallback_condition,
    is_success_condition,
    status_of,
)
from specforge.types import (
    TAG_ENDPOINT,
    Branch,
    PrecedenceStrategy,
    Section,
    SpecDocument,
    SpecFormat,
    Statement,
    StatementKind,
)
from specforge.vocabulary import FailureCategory, Vocabulary, get_default_vocabulary

logger = get_logger(__name__)

PRECEDENCE_NOTES = {
    PrecedenceStrategy.FIRST_SEEN: (
        "Precedence: rows are evaluated top to bottom and the first matching "
        "condition wins; rows keep the order their conditions first appear in "
        "the input; fallback rows come last."
    ),
    PrecedenceStrategy.MOST_SPECIFIC: (
        "Precedence: rows are evaluated top to bottom and the first matching "
        "condition wins; rows with more conjuncts come first, ties keep input "
        "order; fallback rows come last."
    ),
}

_WORD = re.compile(r"[a-z]{4,}")
_AND = re.compile(r"\band\b", re.IGNORECASE)
_STOPWORDS = frozenset(
    {
        "must", "should", "shall", "with", "that", "this", "have", "from", "when",
        "then", "will", "return", "returns", "show", "shows", "error", "errors",
        "they", "them", "their", "into", "than", "user", "users",
    }
)


def _content_words(text: str) -> set[str]:
    return {w.rstrip("s") for w in _WORD.findall(text.lower()) if w not in _STOPWORDS}


def _ids(statements: Iterable[Statement]) -> tuple[str, ...]:
    return tuple(s.id for s in statements)


class SpecSynthesizer:
    """Builds SpecDocument sections for a chosen format."""

    def __init__(
        self,
        vocabulary: Optional[Vocabulary] = None,
        precedence: PrecedenceStrategy = PrecedenceStrategy.FIRST_SEEN,
    ):
        self.vocabulary = vocabulary or get_default_vocabulary()
        self.precedence = precedence

    def synthesize(
        self,
        statements: Iterable[Statement],
        format: SpecFormat,
        *,
        session_id: str = "",
        revision: int = 0,
        precedence: Optional[PrecedenceStrategy] = None,
    ) -> SpecDocument:
        strategy = precedence or self.precedence
        graph = StatementGraph(statements)
        if format is SpecFormat.BEHAVIORAL:
            sections = self._behavioral(graph)
        elif format is SpecFormat.CONTRACT:
            sections = self._contract(graph)
        else:
            sections = self._functional(graph, strategy)

        document = SpecDocument(
            format=format,
            sections=sections,
            session_id=session_id,
            revision=revision,
            statements=tuple(graph.ordered),
            precedence=strategy,
        )
        logger.info(
            "Synthesized document",
            format=format.value,
            sections=len(sections),
            statements=len(graph.ordered),
        )
        return document

    # ------------------------------------------------------------------
    # Behavioral

    def _behavioral(self, graph: StatementGraph) -> list[Section]:
        scopes: dict[Optional[str], list[Statement]] = {}
        for stmt in graph.ordered:
            if stmt.kind is StatementKind.ACTOR:
                scopes.setdefault(stmt.id, [])
                continue
            actor = graph.scope_actor(stmt)
            scopes.setdefault(actor.id if actor else None, []).append(stmt)

        primaries: list[tuple[int, Section]] = []
        alternates: list[tuple[int, Section]] = []
        negatives: list[tuple[int, Section]] = []

        for actor_id, members in scopes.items():
            actor = graph.by_id.get(actor_id) if actor_id else None
            who = actor.text if actor else "The system"
            actions = [m for m in members if m.kind is StatementKind.ACTION]
            given = (Branch(actor.id, "given", actor.text, actor.clarification),) if actor else ()

            primary_conditions: list[Statement] = []
            primary_results: list[Statement] = []
            alternate: dict[tuple[str, ...], tuple[list[Statement], list[Statement]]] = {}
            negative: dict[tuple[str, ...], tuple[list[Statement], list[Statement]]] = {}

            for member in members:
                if member.kind is StatementKind.CONSTRAINT:
                    primary_results.append(member)
                    continue
                if member.kind is not StatementKind.OUTCOME:
                    continue
                conditions = graph.conditions_of(member)
                if is_failure(member, self.vocabulary, conditions):
                    negative.setdefault(_ids(conditions), (conditions, []))[1].append(member)
                elif conditions and all(is_success_condition(c, self.vocabulary) for c in conditions):
                    primary_conditions.extend(c for c in conditions if c not in primary_conditions)
                    primary_results.append(member)
                elif conditions:
                    alternate.setdefault(_ids(conditions), (conditions, []))[1].append(member)
                else:
                    primary_results.append(member)

            if actions or primary_results or not (alternate or negative):
                title = f"{who}: {actions[0].text}" if actions else who
                branches = (
                    given
                    + tuple(Branch(a.id, "when", a.text, a.clarification) for a in actions)
                    + tuple(Branch(c.id, "condition", c.text, c.clarification) for c in primary_conditions)
                    + tuple(self._result_branch(r) for r in primary_results)
                )
                first = actor.index if actor else min((m.index for m in members), default=0)
                primaries.append((first, Section("scenario", title, branches, ("path: primary",))))

            for conditions, results in alternate.values():
                section = self._conditional_scenario(
                    graph, who, given, actions, conditions, results, "alternate"
                )
                alternates.append((conditions[0].index, section))
            for conditions, results in negative.values():
                section = self._conditional_scenario(
                    graph, who, given, actions, conditions, results, "negative"
                )
                anchor = conditions[0].index if conditions else results[0].index
                negatives.append((anchor, section))

        return (
            [s for _, s in sorted(primaries, key=lambda item: item[0])]
            + [s for _, s in sorted(alternates, key=lambda item: item[0])]
            + [s for _, s in sorted(negatives, key=lambda item: item[0])]
        )

    def _conditional_scenario(
        self,
        graph: StatementGraph,
        who: str,
        given: tuple[Branch, ...],
        actions: list[Statement],
        conditions: list[Statement],
        results: list[Statement],
        path: str,
    ) -> Section:
        anchor = conditions[0] if conditions else results[0]
        action = graph.scope_action(anchor) or (actions[0] if actions else None)
        if conditions:
            title = f"{who}: " + " and ".join(c.text for c in conditions)
        elif action is not None:
            title = f"{who}: {action.text} fails"
        else:
            title = f"{who}: failure"
        when = (Branch(action.id, "when", action.text, action.clarification),) if action else ()
        branches = (
            given
            + when
            + tuple(Branch(c.id, "condition", c.text, c.clarification) for c in conditions)
            + tuple(self._result_branch(r) for r in results)
        )
        return Section("scenario", title, branches, (f"path: {path}",))

    @staticmethod
    def _result_branch(stmt: Statement) -> Branch:
        role = "constraint" if stmt.kind is StatementKind.CONSTRAINT else "then"
        return Branch(stmt.id, role, stmt.text, stmt.clarification, status=stmt.http_status)

    # ------------------------------------------------------------------
    # Contract

    def _contract(self, graph: StatementGraph) -> list[Section]:
        entries: dict[Optional[str], list[Statement]] = {}
        targets: dict[str, str] = {}
        for stmt in graph.ordered:
            if stmt.kind is StatementKind.ACTION:
                target = self._target_key(graph, stmt)
                # Repeated mentions of one target merge into its first entry
                entries.setdefault(targets.setdefault(target, stmt.id), [])
            elif stmt.kind is StatementKind.ACTOR:
                continue
            else:
                action = graph.scope_action(stmt)
                key = targets[self._target_key(graph, action)] if action else None
                entries.setdefault(key, []).append(stmt)

        sections = []
        for action_id, members in entries.items():
            action = graph.by_id.get(action_id) if action_id else None
            sections.append(self._contract_entry(graph, action, members))
        return sections

    @staticmethod
    def _target_key(graph: StatementGraph, action: Statement) -> str:
        actor = graph.linked_actor(action) or graph.scope_actor(action)
        who = actor.text.lower() if actor else ""
        return f"{who}|{action.text.lower()}"

    def _contract_entry(
        self, graph: StatementGraph, action: Optional[Statement], members: list[Statement]
    ) -> Section:
        actor = (graph.linked_actor(action) or graph.scope_actor(action)) if action else None
        if action is None:
            title = "General"
        elif action.has_tag(TAG_ENDPOINT) or actor is None:
            title = action.text
        else:
            title = f"{actor.text} {action.text}"

        head: tuple[Branch, ...] = ()
        if actor is not None:
            head += (Branch(actor.id, "caller", actor.text, actor.clarification),)
        if action is not None:
            head += (Branch(action.id, "operation", action.text, action.clarification),)

        constraints = [m for m in members if m.kind is StatementKind.CONSTRAINT]
        successes: list[Branch] = []
        failures: list[tuple[int, int, Branch]] = []
        for outcome in (m for m in members if m.kind is StatementKind.OUTCOME):
            conditions = graph.conditions_of(outcome)
            condition = " and ".join(c.text for c in conditions) or None
            status = status_of(outcome)
            if not is_failure(outcome, self.vocabulary, conditions):
                successes.append(
                    Branch(
                        outcome.id,
                        "success",
                        outcome.text,
                        outcome.clarification,
                        condition=condition,
                        status=status,
                    )
                )
                continue
            category = self._classify_failure(outcome, conditions, constraints, status)
            failures.append(
                (
                    category.severity,
                    outcome.index,
                    Branch(
                        outcome.id,
                        "failure",
                        outcome.text,
                        outcome.clarification,
                        condition=condition,
                        status=status,
                        severity=category.severity,
                        category=category.name,
                    ),
                )
            )

        failures.sort(key=lambda item: (item[0], item[1]))
        branches = (
            head
            + tuple(successes)
            + tuple(b for _, _, b in failures)
            + tuple(Branch(c.id, "constraint", c.text, c.clarification) for c in constraints)
        )
        notes = () if failures else ("no failure branch documented",)
        return Section("contract", title, branches, notes)

    def _classify_failure(
        self,
        outcome: Statement,
        conditions: list[Statement],
        constraints: list[Statement],
        status: Optional[int],
    ) -> FailureCategory:
        """Failure category, judged by status, wording, then attached constraints.

        A failure whose wording only says "error" is a validation failure when
        it shares a content word with a constraint of the same target.
        Anything still unknown ranks as internal.
        """
        internal = self.vocabulary.category_named("internal")
        category = failure_category(outcome, self.vocabulary, conditions)
        if status is None and (category is None or category is internal):
            words = _content_words(" ".join([outcome.effective_text] + [c.text for c in conditions]))
            for constraint in constraints:
                if words & _content_words(constraint.effective_text):
                    validation = self.vocabulary.category_named("validation")
                    if validation is not None:
                        return validation
        if category is not None:
            return category
        if internal is not None:
            return internal
        return self.vocabulary.failure_categories[-1]

    # ------------------------------------------------------------------
    # Functional

    def _functional(self, graph: StatementGraph, precedence: PrecedenceStrategy) -> list[Section]:
        rows: list[tuple[list[Statement], Statement]] = []
        invariants: list[Statement] = []
        for stmt in graph.ordered:
            if stmt.kind is StatementKind.CONSTRAINT:
                invariants.append(stmt)
            elif stmt.kind is StatementKind.OUTCOME:
                conditions = graph.conditions_of(stmt)
                if conditions:
                    rows.append((conditions, stmt))
                else:
                    invariants.append(stmt)

        def sort_key(row: tuple[list[Statement], Statement]) -> tuple:
            conditions, outcome = row
            fallback = any(is_fallback_condition(c) for c in conditions)
            seen = (min(c.index for c in conditions), outcome.index)
            if precedence is PrecedenceStrategy.MOST_SPECIFIC:
                return (fallback, -self._specificity(conditions)) + seen
            return (fallback,) + seen

        sections = []
        if rows:
            branches = []
            for conditions, outcome in sorted(rows, key=sort_key):
                branches.append(
                    Branch(
                        outcome.id,
                        "rule",
                        outcome.text,
                        outcome.clarification,
                        condition=self._condition_text(conditions),
                    )
                )
            sections.append(
                Section("rule_table", "Decision table", tuple(branches), (PRECEDENCE_NOTES[precedence],))
            )
        if invariants:
            sections.append(
                Section(
                    "invariants",
                    "Invariants",
                    tuple(Branch(s.id, "invariant", s.text, s.clarification) for s in invariants),
                )
            )
        context = [
            Branch(s.id, s.kind.value, s.text, s.clarification)
            for s in graph.ordered
            if s.kind in (StatementKind.ACTOR, StatementKind.ACTION)
        ]
        if context:
            sections.append(Section("context", "Context", tuple(context)))
        return sections

    def _condition_text(self, conditions: list[Statement]) -> str:
        parts = []
        for condition in conditions:
            if is_fallback_condition(condition):
                parts.append(condition.text.lower())
            else:
                parts.append(condition_value(condition, self.vocabulary))
        return " and ".join(parts)

    def _specificity(self, conditions: list[Statement]) -> int:
        return sum(1 + len(_AND.findall(condition_value(c, self.vocabulary))) for c in conditions)


def synthesize(
    statements: Iterable[Statement],
    format: SpecFormat,
    vocabulary: Optional[Vocabulary] = None,
    precedence: PrecedenceStrategy = PrecedenceStrategy.FIRST_SEEN,
    session_id: str = "",
    revision: int = 0,
) -> SpecDocument:
    return SpecSynthesizer(vocabulary, precedence).synthesize(
        statements, format, session_id=session_id, revision=revision
    )


__all__ = ["SpecSynthesizer", "synthesize", "PRECEDENCE_NOTES"]
