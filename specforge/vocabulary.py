"""
Signal vocabulary for the synthesis pipeline.

The vocabulary is static, versioned configuration data: vague terms, role
words, verb lists, failure categories and the selector's signal terms. It is
loaded from YAML once, validated, and exposed as an immutable object that
every stage receives at construction time.

Usage:
    from specforge.vocabulary import get_default_vocabulary, load_vocabulary

    vocab = get_default_vocabulary()          # packaged data/vocabulary.yaml
    custom = load_vocabulary("my_vocab.yaml")  # caller-supplied file
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import yaml

from specforge.exceptions import VocabularyError

SUPPORTED_VERSIONS = (1,)

DEFAULT_VOCABULARY_PATH = Path(__file__).parent / "data" / "vocabulary.yaml"

_LIST_SECTIONS = (
    "conditional_markers",
    "success_conditions",
    "modal_obligation",
    "modals",
    "stative_verbs",
    "roles",
    "intent_verbs",
    "outcome_verbs",
    "http_methods",
    "enumerable_states",
)
_MAP_SECTIONS = ("vague_terms", "dimension_questions", "negative_path_hints")
_SIGNAL_FORMATS = ("behavioral", "contract", "functional")


@lru_cache(maxsize=1024)
def term_pattern(term: str, case_sensitive: bool = False) -> re.Pattern[str]:
    """Compile a whole-word pattern for a (possibly multi-word) term.

    Word boundaries also exclude ``/`` and ``-`` so that path segments such
    as ``/users`` and compounds such as ``user-friendly`` do not match the
    bare word.
    """
    body = r"\s+".join(re.escape(part) for part in term.split())
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(rf"(?<![\w/\-{{}}]){body}(?![\w/\-{{}}])", flags)


def find_terms(text: str, terms: tuple[str, ...], case_sensitive: bool = False) -> list[str]:
    """Return the terms found in text, ordered by first position in the text."""
    hits: list[tuple[int, int, str]] = []
    for index, term in enumerate(terms):
        match = term_pattern(term, case_sensitive).search(text)
        if match:
            hits.append((match.start(), index, term))
    return [term for _, _, term in sorted(hits)]


def count_terms(text: str, terms: tuple[str, ...], case_sensitive: bool = False) -> int:
    """Count every occurrence of every term in text."""
    return sum(len(term_pattern(term, case_sensitive).findall(text)) for term in terms)


@dataclass(frozen=True)
class FailureCategory:
    """A class of failure outcome with its severity rank and HTTP statuses."""

    name: str
    severity: int
    statuses: frozenset[int]
    keywords: tuple[str, ...]

    def matches(self, text: str) -> bool:
        return bool(find_terms(text, self.keywords))


@dataclass(frozen=True)
class Vocabulary:
    """Immutable signal vocabulary.

    Attributes mirror the sections of the YAML file. Mapping attributes are
    read-only proxies.
    """

    version: int
    source: str
    conditional_markers: tuple[str, ...]
    success_conditions: tuple[str, ...]
    modal_obligation: tuple[str, ...]
    modals: tuple[str, ...]
    stative_verbs: tuple[str, ...]
    roles: tuple[str, ...]
    intent_verbs: tuple[str, ...]
    outcome_verbs: tuple[str, ...]
    http_methods: tuple[str, ...]
    enumerable_states: tuple[str, ...]
    vague_terms: Mapping[str, str]
    dimension_questions: Mapping[str, str]
    negative_path_hints: Mapping[str, str]
    default_negative_hint: str
    failure_categories: tuple[FailureCategory, ...]
    signals: Mapping[str, tuple[str, ...]]

    def vague_terms_in(self, text: str) -> list[tuple[str, str]]:
        """Return ``(term, dimension)`` pairs for banned terms present in text."""
        terms = tuple(self.vague_terms)
        return [(term, self.vague_terms[term]) for term in find_terms(text, terms)]

    def question_for(self, dimension: str) -> str:
        return self.dimension_questions.get(dimension, self.dimension_questions["acceptance"])

    def failure_category(self, text: str) -> Optional[FailureCategory]:
        """Return the first failure category whose keywords appear in text."""
        for category in self.failure_categories:
            if category.matches(text):
                return category
        return None

    def category_for_status(self, status: int) -> Optional[FailureCategory]:
        for category in self.failure_categories:
            if status in category.statuses:
                return category
        if 400 <= status < 500:
            return self.category_named("validation")
        if status >= 500:
            return self.category_named("internal")
        return None

    def category_named(self, name: str) -> Optional[FailureCategory]:
        for category in self.failure_categories:
            if category.name == name:
                return category
        return None

    def negative_hint(self, text: str) -> str:
        hints = find_terms(text, tuple(self.negative_path_hints))
        if hints:
            return self.negative_path_hints[hints[0]]
        return self.default_negative_hint


def _require_list(data: dict[str, Any], key: str, source: str) -> tuple[str, ...]:
    value = data.get(key)
    if not isinstance(value, list) or not value:
        raise VocabularyError(source, f"section '{key}' must be a non-empty list")
    return tuple(str(item) for item in value)


def _require_map(data: dict[str, Any], key: str, source: str) -> Mapping[str, str]:
    value = data.get(key)
    if not isinstance(value, dict) or not value:
        raise VocabularyError(source, f"section '{key}' must be a non-empty mapping")
    return MappingProxyType({str(k): str(v) for k, v in value.items()})


def _parse_failure_categories(data: dict[str, Any], source: str) -> tuple[FailureCategory, ...]:
    raw = data.get("failure_categories")
    if not isinstance(raw, list) or not raw:
        raise VocabularyError(source, "section 'failure_categories' must be a non-empty list")
    categories = []
    for entry in raw:
        if not isinstance(entry, dict) or "name" not in entry or "severity" not in entry:
            raise VocabularyError(source, f"failure category entry is malformed: {entry!r}")
        try:
            severity = int(entry["severity"])
            statuses = frozenset(int(s) for s in entry.get("statuses", []))
        except (TypeError, ValueError) as e:
            raise VocabularyError(source, f"failure category {entry['name']!r}: {e}") from e
        categories.append(
            FailureCategory(
                name=str(entry["name"]),
                severity=severity,
                statuses=statuses,
                keywords=tuple(str(k) for k in entry.get("keywords", [])),
            )
        )
    return tuple(sorted(categories, key=lambda c: c.severity))


def vocabulary_from_dict(data: Any, source: str = "<dict>") -> Vocabulary:
    """Build a validated Vocabulary from already-parsed YAML data.

    Raises:
        VocabularyError: If a section is missing, mistyped, or the version is unsupported
    """
    if not isinstance(data, dict):
        raise VocabularyError(source, "top level must be a mapping")
    version = data.get("version")
    if version not in SUPPORTED_VERSIONS:
        raise VocabularyError(source, f"unsupported version {version!r}")

    lists = {key: _require_list(data, key, source) for key in _LIST_SECTIONS}
    maps = {key: _require_map(data, key, source) for key in _MAP_SECTIONS}

    questions = maps["dimension_questions"]
    if "acceptance" not in questions:
        raise VocabularyError(source, "dimension_questions must define 'acceptance'")
    unknown = sorted(set(maps["vague_terms"].values()) - set(questions))
    if unknown:
        raise VocabularyError(source, f"vague terms use undefined dimensions: {unknown}")

    raw_signals = data.get("signals")
    if not isinstance(raw_signals, dict):
        raise VocabularyError(source, "section 'signals' must be a mapping")
    signals = {fmt: _require_list(raw_signals, fmt, source) for fmt in _SIGNAL_FORMATS}

    return Vocabulary(
        version=int(version),
        source=source,
        vague_terms=maps["vague_terms"],
        dimension_questions=questions,
        negative_path_hints=maps["negative_path_hints"],
        default_negative_hint=str(data.get("default_negative_hint", "an error")),
        failure_categories=_parse_failure_categories(data, source),
        signals=MappingProxyType(signals),
        **lists,
    )


def load_vocabulary(path: str | Path | None = None) -> Vocabulary:
    """Load and validate a vocabulary file.

    Args:
        path: YAML file to load; defaults to the packaged vocabulary

    Raises:
        VocabularyError: If the file is unreadable or invalid
    """
    vocab_path = Path(path) if path else DEFAULT_VOCABULARY_PATH
    source = str(vocab_path)
    try:
        with vocab_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as e:
        raise VocabularyError(source, f"cannot read file: {e}") from e
    except yaml.YAMLError as e:
        raise VocabularyError(source, f"invalid YAML: {e}") from e
    return vocabulary_from_dict(data, source)


@lru_cache(maxsize=1)
def get_default_vocabulary() -> Vocabulary:
    """Return the packaged vocabulary, loaded once per process."""
    return load_vocabulary()


__all__ = [
    "FailureCategory",
    "Vocabulary",
    "DEFAULT_VOCABULARY_PATH",
    "find_terms",
    "count_terms",
    "term_pattern",
    "load_vocabulary",
    "vocabulary_from_dict",
    "get_default_vocabulary",
]
