"""
Output format selection.

Scores the statement set against three signal vocabularies and picks the
target format. HTTP methods count only in upper case and paths are removed
before counting so that ``/users/{id}`` does not read as actor language.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from specforge.logging_config import get_logger
from specforge.types import TAG_IMPLICIT, SpecFormat, Statement, StatementKind
from specforge.vocabulary import Vocabulary, count_terms, get_default_vocabulary

logger = get_logger(__name__)

_PATH = re.compile(r"(?<![\w])/[^\s,;]*")

# Tie-break order, strongest first
TIE_BREAK = (SpecFormat.FUNCTIONAL, SpecFormat.CONTRACT, SpecFormat.BEHAVIORAL)


@dataclass(frozen=True)
class FormatScores:
    behavioral: int
    contract: int
    functional: int
    actor_facing: bool = False

    def score_for(self, fmt: SpecFormat) -> int:
        return getattr(self, fmt.value)

    def winner(self) -> SpecFormat:
        """Highest score; ties go Functional, then Contract, then Behavioral."""
        best = max(self.score_for(fmt) for fmt in TIE_BREAK)
        for fmt in TIE_BREAK:
            if self.score_for(fmt) == best:
                return fmt
        return SpecFormat.FUNCTIONAL

    def to_dict(self) -> dict:
        return {
            "behavioral": self.behavioral,
            "contract": self.contract,
            "functional": self.functional,
            "actor_facing": self.actor_facing,
            "selected": self.winner().value,
        }


class FormatSelector:
    def __init__(self, vocabulary: Optional[Vocabulary] = None):
        self.vocabulary = vocabulary or get_default_vocabulary()

    def score(self, statements: Iterable[Statement]) -> FormatScores:
        signals = self.vocabulary.signals
        behavioral = contract = functional = 0
        actor_facing = False
        for stmt in statements:
            if stmt.kind is StatementKind.ACTOR and not stmt.has_tag(TAG_IMPLICIT):
                actor_facing = True
            text = stmt.effective_text
            contract += count_terms(text, self.vocabulary.http_methods, case_sensitive=True)
            words = _PATH.sub(" ", text)
            behavioral += count_terms(words, signals["behavioral"])
            contract += count_terms(words, signals["contract"])
            functional += count_terms(words, signals["functional"])

        # A rule table has no place for actor-facing behaviour
        if actor_facing:
            functional = 0
        return FormatScores(behavioral, contract, functional, actor_facing)

    def select(self, statements: Iterable[Statement]) -> SpecFormat:
        scores = self.score(list(statements))
        selected = scores.winner()
        logger.debug("Selected format", format=selected.value, **scores.to_dict())
        return selected


def select(statements: Iterable[Statement], vocabulary: Optional[Vocabulary] = None) -> SpecFormat:
    return FormatSelector(vocabulary).select(statements)


def score(statements: Iterable[Statement], vocabulary: Optional[Vocabulary] = None) -> FormatScores:
    return FormatSelector(vocabulary).score(statements)


__all__ = ["FormatScores", "FormatSelector", "TIE_BREAK", "select", "score"]
