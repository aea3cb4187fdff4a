"""
Structural relations over a statement set.

Answers the questions several stages ask: which actor a statement belongs
to, which action's scope it sits in, which conditions guard an outcome, and
whether an outcome describes a failure.
"""

from __future__ import annotations

from typing import Iterable, Optional

from specforge.measures import find_status
from specforge.types import TAG_FAILURE, Statement, StatementKind
from specforge.vocabulary import FailureCategory, Vocabulary, find_terms

_FALLBACK_MARKERS = ("otherwise", "else")


class StatementGraph:
    """Index over an ordered statement set.

    Scope rules: a statement belongs to the nearest preceding Actor and the
    nearest preceding Action. An Action linked to an Actor belongs to that
    Actor regardless of position.
    """

    def __init__(self, statements: Iterable[Statement]):
        self.ordered: list[Statement] = sorted(statements, key=lambda s: s.index)
        self.by_id: dict[str, Statement] = {s.id: s for s in self.ordered}
        self._position = {s.id: i for i, s in enumerate(self.ordered)}
        self._actor_scope: dict[str, Optional[str]] = {}
        self._action_scope: dict[str, Optional[str]] = {}

        actor: Optional[str] = None
        action: Optional[str] = None
        for stmt in self.ordered:
            if stmt.kind is StatementKind.ACTOR:
                actor = stmt.id
            elif stmt.kind is StatementKind.ACTION:
                action = stmt.id
                linked = self.linked_actor(stmt)
                if linked is not None:
                    actor = linked.id
            self._actor_scope[stmt.id] = actor
            self._action_scope[stmt.id] = action

    def of_kind(self, kind: StatementKind) -> list[Statement]:
        return [s for s in self.ordered if s.kind is kind]

    def linked_actor(self, action: Statement) -> Optional[Statement]:
        for sid in action.links:
            linked = self.by_id.get(sid)
            if linked is not None and linked.kind is StatementKind.ACTOR:
                return linked
        return None

    def scope_actor(self, stmt: Statement) -> Optional[Statement]:
        sid = self._actor_scope.get(stmt.id)
        return self.by_id.get(sid) if sid else None

    def scope_action(self, stmt: Statement) -> Optional[Statement]:
        for sid in stmt.links:
            linked = self.by_id.get(sid)
            if linked is not None and linked.kind is StatementKind.ACTION:
                return linked
        sid = self._action_scope.get(stmt.id)
        return self.by_id.get(sid) if sid else None

    def neighbour(self, stmt: Statement, step: int) -> Optional[Statement]:
        """Statement ``step`` positions away within the same sentence group."""
        position = self._position[stmt.id] + step
        if 0 <= position < len(self.ordered):
            other = self.ordered[position]
            if other.group == stmt.group:
                return other
        return None

    def conditions_of(self, outcome: Statement) -> list[Statement]:
        """Conditions guarding an outcome.

        Linked conditions win. Without links, the run of Conditions directly
        preceding the outcome in its sentence applies (nested conditionals
        flatten into that run).
        """
        linked = [
            self.by_id[sid]
            for sid in outcome.links
            if sid in self.by_id and self.by_id[sid].kind is StatementKind.CONDITION
        ]
        if linked:
            return sorted(linked, key=lambda s: s.index)
        if outcome.links:
            return []
        run: list[Statement] = []
        prev = self.neighbour(outcome, -1)
        while prev is not None and prev.kind is StatementKind.CONDITION:
            run.insert(0, prev)
            prev = self.neighbour(prev, -1)
        return run

    def outcomes_of(self, condition: Statement) -> list[Statement]:
        return [
            o
            for o in self.of_kind(StatementKind.OUTCOME)
            if any(c.id == condition.id for c in self.conditions_of(o))
        ]

    def condition_is_answered(self, condition: Statement) -> bool:
        """True when some Outcome in the same or an adjacent clause resolves the condition."""
        if condition.resolved or self.outcomes_of(condition):
            return True
        # Trailing form "X if Y": the outcome sits right before the condition
        prev = self.neighbour(condition, -1)
        if prev is not None and prev.kind is StatementKind.OUTCOME and not prev.links:
            return True
        # Nested form "if A, if B, X": defer to the inner condition
        nxt = self.neighbour(condition, 1)
        if nxt is not None and nxt.kind is StatementKind.CONDITION:
            return self.condition_is_answered(nxt)
        return False


def status_of(stmt: Statement) -> Optional[int]:
    status = stmt.http_status
    if status is None and stmt.kind is StatementKind.OUTCOME:
        status = find_status(stmt.text)
    return status


def failure_category(
    stmt: Statement,
    vocabulary: Vocabulary,
    conditions: Iterable[Statement] = (),
) -> Optional[FailureCategory]:
    """Failure category implied by a statement, its status, or its conditions."""
    status = status_of(stmt)
    if status is not None:
        if status < 400:
            return None
        return vocabulary.category_for_status(status)
    text = " ".join([stmt.effective_text] + [c.text for c in conditions])
    return vocabulary.failure_category(text)


def is_failure(stmt: Statement, vocabulary: Vocabulary, conditions: Iterable[Statement] = ()) -> bool:
    if stmt.has_tag(TAG_FAILURE):
        return True
    return failure_category(stmt, vocabulary, conditions) is not None


def is_success_condition(condition: Statement, vocabulary: Vocabulary) -> bool:
    return bool(find_terms(condition.text, vocabulary.success_conditions)) and (
        vocabulary.failure_category(condition.text) is None
    )


def is_fallback_condition(condition: Statement) -> bool:
    return condition.text.lower().startswith(_FALLBACK_MARKERS)


def condition_value(condition: Statement, vocabulary: Vocabulary) -> str:
    """Condition text without its leading marker ("if absent" -> "absent")."""
    text = condition.text
    lowered = text.lower()
    for marker in sorted(vocabulary.conditional_markers, key=len, reverse=True):
        if lowered.startswith(marker + " "):
            return text[len(marker) + 1:].strip() or text
    return text


__all__ = [
    "StatementGraph",
    "status_of",
    "failure_category",
    "is_failure",
    "is_success_condition",
    "is_fallback_condition",
    "condition_value",
]
