"""
Measurable-value analysis.

Decides whether a clause can be reduced to a binary check and, if so, what
concrete expected result a test would assert. Used by the gap detector, the
clarification merge and the acceptance criteria extractor so that all three
agree on what "testable" means.

    >>> str(find_measure("under 200 ms for the 95th percentile"))
    '≤200ms p95'
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from specforge.vocabulary import Vocabulary, find_terms

# Ordered longest first so that "less than or equal to" wins over "less than"
_WORD_COMPARATORS: tuple[tuple[str, str], ...] = (
    ("less than or equal to", "≤"),
    ("greater than or equal to", "≥"),
    ("no more than", "≤"),
    ("not more than", "≤"),
    ("no less than", "≥"),
    ("not less than", "≥"),
    ("maximum of", "≤"),
    ("minimum of", "≥"),
    ("a maximum of", "≤"),
    ("a minimum of", "≥"),
    ("at most", "≤"),
    ("at least", "≥"),
    ("less than", "<"),
    ("fewer than", "<"),
    ("more than", ">"),
    ("greater than", ">"),
    ("equal to", "="),
    ("up to", "≤"),
    ("within", "≤"),
    ("under", "≤"),
    ("below", "≤"),
    ("max", "≤"),
    ("min", "≥"),
    ("over", ">"),
    ("above", ">"),
    ("exceeds", ">"),
    ("exceed", ">"),
    ("exactly", "="),
    ("equals", "="),
)
_SYMBOL_COMPARATORS = {"<=": "≤", ">=": "≥", "≤": "≤", "≥": "≥", "<": "<", ">": ">", "=": "="}

_CMP_WORDS = "|".join(
    r"\s+".join(re.escape(p) for p in word.split())
    for word, _ in sorted(_WORD_COMPARATORS, key=lambda c: -len(c[0]))
)
_MEASURE = re.compile(
    rf"(?:(?<![\w])(?P<cmp>{_CMP_WORDS})\s+|(?P<sym><=|>=|≤|≥|<|>|=)\s*)?"
    r"(?<![\w/.{])(?P<num>\d+(?:\.\d+)?)"
    r"(?:\s*(?P<unit>%|[A-Za-z]+(?:/[A-Za-z]+)?))?",
    re.IGNORECASE,
)
_PERCENTILE = re.compile(
    r"(?<![\w])(?:(?P<a>\d{1,2}(?:\.\d+)?)(?:st|nd|rd|th)?[\s-]*percentile|p(?P<b>\d{2}(?:\.\d+)?))(?![\w])",
    re.IGNORECASE,
)
_TRAILING_COMPARATOR = re.compile(rf"(?<![\w])(?:{_CMP_WORDS})$", re.IGNORECASE)
_STATUS = re.compile(r"(?<![\w.$€£/])(?P<code>[1-5]\d\d)(?![\w.%])")
_PATH = re.compile(r"(?<![\w])(/[\w\-.{}:]+)+/?")
_QUOTED = re.compile(r"[\"“]([^\"”]{1,80})[\"”]")
_DIGIT = re.compile(r"\d")

_UNIT_ALIASES = {
    "ms": "ms",
    "msec": "ms",
    "msecs": "ms",
    "millisecond": "ms",
    "milliseconds": "ms",
    "s": "s",
    "sec": "s",
    "secs": "s",
    "second": "s",
    "seconds": "s",
    "min": "min",
    "mins": "min",
    "minute": "min",
    "minutes": "min",
    "h": "h",
    "hr": "h",
    "hrs": "h",
    "hour": "h",
    "hours": "h",
    "%": "%",
    "percent": "%",
    "kb": "KB",
    "mb": "MB",
    "gb": "GB",
    "rps": "req/s",
    "req/s": "req/s",
}
_COMPACT_UNITS = frozenset(_UNIT_ALIASES.values())

# Words that can follow a number without being its unit
_NOT_UNITS = frozenset(
    {
        "a", "an", "and", "or", "for", "the", "in", "of", "to", "at", "on", "if",
        "when", "unless", "with", "not", "no", "is", "are", "be", "then", "else",
        "otherwise", "by", "per", "from", "after", "before", "ok", "created",
        "accepted", "response", "status", "code", "error", "errors",
    }
)


@dataclass(frozen=True)
class Measure:
    """A normalized measurable bound such as ``≤200ms p95``."""

    comparator: str
    value: str
    unit: str = ""
    percentile: Optional[str] = None

    def __str__(self) -> str:
        unit = self.unit
        if unit and unit not in _COMPACT_UNITS:
            unit = f" {unit}"
        rendered = f"{self.comparator}{self.value}{unit}"
        if self.percentile:
            rendered += f" p{self.percentile}"
        return rendered


def _comparator_symbol(word: Optional[str], symbol: Optional[str]) -> Optional[str]:
    if symbol:
        return _SYMBOL_COMPARATORS[symbol]
    if word:
        normalized = " ".join(word.lower().split())
        for phrase, sym in _WORD_COMPARATORS:
            if phrase == normalized:
                return sym
    return None


def _normalize_unit(raw: Optional[str], tail: str) -> str:
    if not raw:
        return ""
    unit = raw.lower()
    if unit in _NOT_UNITS:
        return ""
    if unit in ("requests", "request", "req") and re.match(r"\s*(?:per\s+second|/\s*s)\b", tail, re.I):
        return "req/s"
    return _UNIT_ALIASES.get(unit, unit)


def find_percentile(text: str) -> Optional[str]:
    match = _PERCENTILE.search(text)
    if not match:
        return None
    return match.group("a") or match.group("b")


def find_measure(text: str) -> Optional[Measure]:
    """Extract the first measurable bound in text.

    A bound needs a comparator or a recognized unit; a bare number such as
    an HTTP status is not a measure.
    """
    percentile = find_percentile(text)
    stripped = _PERCENTILE.sub(" ", text) if percentile else text
    for match in _MEASURE.finditer(stripped):
        comparator = _comparator_symbol(match.group("cmp"), match.group("sym"))
        unit = _normalize_unit(match.group("unit"), stripped[match.end():])
        if comparator is None and unit not in _COMPACT_UNITS:
            continue
        return Measure(
            comparator=comparator or "",
            value=match.group("num"),
            unit=unit,
            percentile=percentile,
        )
    return None


def find_status(text: str) -> Optional[int]:
    """Return an HTTP status code mentioned in text, if any.

    A three-digit number counts as a status when nothing unit-like follows
    it and no comparator precedes it.
    """
    for match in _STATUS.finditer(text):
        before = text[: match.start()].rstrip()
        if _TRAILING_COMPARATOR.search(before) or before.endswith(tuple(_SYMBOL_COMPARATORS)):
            continue
        after = text[match.end():].lstrip()
        next_word = re.match(r"[A-Za-z%]+", after)
        if next_word and next_word.group(0).lower() not in _NOT_UNITS:
            # "404 Not Found", "201 Created" style reason phrases are fine
            if not next_word.group(0)[0].isupper():
                continue
        return int(match.group("code"))
    return None


def find_path(text: str) -> Optional[str]:
    match = _PATH.search(text)
    return match.group(0).rstrip(".:") if match else None


def has_comparator(text: str) -> bool:
    return bool(find_terms(text, tuple(word for word, _ in _WORD_COMPARATORS))) or any(
        sym in text for sym in ("<=", ">=", "≤", "≥")
    )


def is_binary_checkable(text: str, vocabulary: Vocabulary, status: Optional[int] = None) -> bool:
    """True when text contains a comparator, a numeric bound, or an enumerable state."""
    if status is not None:
        return True
    if find_measure(text) or find_status(text) or find_path(text):
        return True
    if _QUOTED.search(text) or _DIGIT.search(text):
        return True
    if has_comparator(text):
        return True
    return bool(find_terms(text, vocabulary.enumerable_states))


def _clean(text: str) -> str:
    return " ".join(text.split()).rstrip(".;,")


def expected_result(
    text: str,
    vocabulary: Vocabulary,
    status: Optional[int] = None,
    clarification: Optional[str] = None,
) -> Optional[str]:
    """Concrete value or observable condition a test would assert, or None.

    Clarification text takes precedence over the original clause because it
    was supplied to make the clause concrete.
    """
    if clarification:
        measure = find_measure(clarification)
        if measure:
            return str(measure)
        if is_binary_checkable(clarification, vocabulary):
            return _clean(clarification)

    measure = find_measure(text)
    if measure:
        return str(measure)
    code = status if status is not None else find_status(text)
    if code is not None:
        return f"HTTP {code}"
    if is_binary_checkable(text, vocabulary):
        return _clean(text)
    return None


__all__ = [
    "Measure",
    "find_measure",
    "find_percentile",
    "find_status",
    "find_path",
    "has_comparator",
    "is_binary_checkable",
    "expected_result",
]
