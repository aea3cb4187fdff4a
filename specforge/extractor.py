"""
Lexical statement extraction.

Splits raw requirement text into sentences and clauses and classifies each
clause as an Actor, Action, Condition, Outcome or Constraint using only the
signal vocabulary. No semantic model is involved, so identical input always
yields identical statements.

Clause rules, in order:

1. A clause naming an HTTP method and path becomes an implicit caller
   Actor, an endpoint Action, and Outcomes for whatever follows the path.
2. A clause opening with a conditional marker becomes a Condition; a
   consequence in the same clause ("on success redirect to /x") becomes an
   Outcome linked to it.
3. A role word followed by a modal or an intent verb becomes an Actor and a
   linked Action.
4. A system subject followed by an outcome verb becomes an Outcome.
5. A clause carrying a modal obligation becomes a Constraint.
6. A clause opening with an outcome verb, a status code or "error" becomes
   an Outcome.
7. A clause opening with an intent verb becomes an Action with no Actor.
8. Anything else is a Constraint.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterator, Optional

from specforge.logging_config import get_logger
from specforge.measures import find_status
from specforge.types import (
    HTTP_TAG_PREFIX,
    TAG_ENDPOINT,
    TAG_IMPLICIT,
    Statement,
    StatementKind,
    statement_id,
)
from specforge.vocabulary import Vocabulary, find_terms, get_default_vocabulary

logger = get_logger(__name__)

IMPLICIT_CALLER = "API client"

_SENTENCE_END = re.compile(r"[.!?](?=\s|$)|;|\n")
_COMMA = re.compile(r",(?!\d)")
_THEN = re.compile(r"\s+then\s+", re.IGNORECASE)
_LEADING_JUNK = re.compile(
    r"(?:[\s,;:*•–-]+|\d+[.)]\s+|(?:and|or|but|so|then|also)(?=\s)\s*)+", re.IGNORECASE
)
_TRAILING_JUNK = re.compile(r"[\s,;:.!?]+$")
_LETTER = re.compile(r"[A-Za-z]")
_MID_CONDITION = re.compile(r"\s+(?=(?:if|when|whenever|unless|in\s+case)\s)", re.IGNORECASE)
_NEGATION = re.compile(r"^(?:not|never)\b", re.IGNORECASE)
_CREATES = re.compile(r"\bcreat", re.IGNORECASE)
_FIRST_WORD = re.compile(r"\s*\S+")

_SYSTEM_SUBJECT = (
    r"(?:the\s+)?(?:system|application|app|service|server|api|backend|platform|site|website)"
    r"|it|we"
)
_FALLBACK_MARKERS = ("otherwise", "else")

# Words that make the following verb part of the condition's own predicate
_AUXILIARIES = frozenset(
    {
        "has", "have", "had", "is", "are", "was", "were", "be", "been", "to",
        "not", "will", "can", "cannot", "should", "must", "may", "would", "did",
        "does", "do", "the", "a", "an",
    }
)
_STATIVE_FORMS = ("is", "are", "was", "were", "has", "been")


def _alternation(terms: tuple[str, ...]) -> str:
    ordered = sorted(set(terms), key=len, reverse=True)
    return "|".join(r"\s+".join(re.escape(part) for part in term.split()) for term in ordered)


def _inflections(verbs: tuple[str, ...]) -> tuple[str, ...]:
    """Base and third-person forms; multi-word verbs inflect the first word."""
    forms: list[str] = []
    for verb in verbs:
        head, _, tail = verb.partition(" ")
        suffix = f" {tail}" if tail else ""
        forms.extend([verb, f"{head}s{suffix}", f"{head}es{suffix}"])
    return tuple(forms)


def _normalize(text: str) -> str:
    return " ".join(text.split())


def _trim(raw: str, start: int, end: int) -> tuple[int, int]:
    """Shrink a span past leading conjunctions/bullets and trailing punctuation."""
    match = _LEADING_JUNK.match(raw, start, end)
    if match:
        start = match.end()
    tail = _TRAILING_JUNK.search(raw, start, end)
    if tail:
        end = tail.start()
    return start, max(start, end)


@dataclass
class _Draft:
    kind: StatementKind
    start: int
    end: int
    group: int
    text: str
    links: list[int] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    trailing: bool = False


@dataclass
class _EndpointContext:
    method: Optional[str] = None
    group: Optional[int] = None
    success_tagged: bool = False

    def open(self, method: str, group: int) -> None:
        self.method = method
        self.group = group
        self.success_tagged = False


class LexicalExtractor:
    """Vocabulary-driven clause splitter and classifier."""

    def __init__(self, vocabulary: Optional[Vocabulary] = None):
        self.vocabulary = vocabulary or get_default_vocabulary()
        v = self.vocabulary

        modals = _alternation(v.modals)
        outcome_verbs = _alternation(v.outcome_verbs)
        base_outcome_verbs = _alternation(tuple(w for w in v.outcome_verbs if not w.endswith("s")))

        self._marker_re = re.compile(rf"^(?:{_alternation(v.conditional_markers)})(?![\w-])", re.I)
        self._role_re = re.compile(
            rf"^(?P<subject>(?P<prefix>(?:[\w'-]+\s+){{0,2}})(?:{_alternation(v.roles)}))(?![\w-])\s*",
            re.I,
        )
        self._modal_re = re.compile(
            rf"^(?:{modals})\s+(?:(?:also|first|only|always|then|be\s+able\s+to)\s+)*", re.I
        )
        self._intent_re = re.compile(rf"^(?:{_alternation(_inflections(v.intent_verbs))})(?![\w-])", re.I)
        self._stative_re = re.compile(
            rf"^(?:{_alternation(_inflections(v.stative_verbs) + _STATIVE_FORMS)})(?![\w-])", re.I
        )
        self._outcome_start_re = re.compile(
            rf"^(?:(?:{outcome_verbs})(?![\w-])|[1-5]\d\d(?!\d)|(?:an?\s+)?errors?(?![\w-]))", re.I
        )
        self._system_re = re.compile(
            rf"^(?:{_SYSTEM_SUBJECT})\s+(?:(?:{modals})\s+)?(?:{outcome_verbs})(?![\w-])", re.I
        )
        self._endpoint_re = re.compile(
            rf"(?<![\w])(?P<method>{_alternation(v.http_methods)})\s+(?P<path>/[^\s,;]*)"
        )
        self._alternative_re = re.compile(
            rf"\s+or\s+(?=(?:[1-5]\d\d(?!\d)|an?\s+error\b|errors?\b|otherwise\b|(?:{outcome_verbs})(?![\w-])))",
            re.I,
        )
        self._consequence_re = re.compile(
            rf"\s(?=(?:{base_outcome_verbs})\s+\S|(?:{_SYSTEM_SUBJECT})\s+(?:(?:{modals})\s+)?(?:{outcome_verbs})(?![\w-]))",
            re.I,
        )

    # ------------------------------------------------------------------
    # Public API

    def extract(self, raw_text: str) -> list[Statement]:
        """Split raw text into classified statements.

        Returns an empty list for empty or whitespace-only input; the caller
        decides whether that is an error.
        """
        if not raw_text or not raw_text.strip():
            return []

        drafts: list[_Draft] = []
        endpoint = _EndpointContext()
        for group, (start, end) in enumerate(self._sentences(raw_text)):
            first = len(drafts)
            after_condition = False
            for c_start, c_end in self._clauses(raw_text, start, end):
                after_condition = self._clause(
                    raw_text, c_start, c_end, group, drafts, endpoint, after_condition
                )
            self._pair_conditions(drafts, first)

        statements = self._finalize(drafts)
        logger.debug(
            "Extracted statements",
            statements=len(statements),
            sentences=statements[-1].group + 1 if statements else 0,
        )
        return statements

    # ------------------------------------------------------------------
    # Segmentation

    def _sentences(self, raw: str) -> Iterator[tuple[int, int]]:
        cursor = 0
        for match in _SENTENCE_END.finditer(raw):
            span = _trim(raw, cursor, match.start())
            if _LETTER.search(raw, span[0], span[1]):
                yield span
            cursor = match.end()
        span = _trim(raw, cursor, len(raw))
        if _LETTER.search(raw, span[0], span[1]):
            yield span

    def _clauses(self, raw: str, start: int, end: int) -> list[tuple[int, int]]:
        """Split a sentence at commas that open a new clause.

        Commas inside enumerations ("email, password and name") stay put;
        a comma closing a leading condition always splits.
        """
        pieces: list[tuple[int, int]] = []
        cursor = start
        for match in _COMMA.finditer(raw, start, end):
            pieces.append((cursor, match.start()))
            cursor = match.end()
        pieces.append((cursor, end))

        clauses: list[list[int]] = []
        in_condition = False
        for p_start, p_end in pieces:
            s, e = _trim(raw, p_start, p_end)
            if s >= e:
                continue
            text = raw[s:e]
            opens_condition = self._is_condition(text)
            if not clauses:
                clauses.append([s, e])
                in_condition = opens_condition
                continue
            lead = raw[p_start:p_end].strip().lower()
            if in_condition and not opens_condition and lead.startswith(("and ", "or ")) and not (
                self._outcome_start_re.match(text)
            ):
                # "If A, and B, do X": the conjunct extends the condition
                clauses[-1][1] = e
            elif in_condition or opens_condition or self._opens_clause(text):
                clauses.append([s, e])
                in_condition = opens_condition
            else:
                clauses[-1][1] = e
        return [(s, e) for s, e in clauses]

    def _alternatives(self, raw: str, start: int, end: int) -> list[tuple[int, int]]:
        """Split "X or 404" style alternatives into separate clauses."""
        spans = []
        cursor = start
        for match in self._alternative_re.finditer(raw, start, end):
            spans.append(_trim(raw, cursor, match.start()))
            cursor = match.end()
        spans.append(_trim(raw, cursor, end))
        return [span for span in spans if span[0] < span[1]]

    def _split_trailing_condition(
        self, raw: str, start: int, end: int
    ) -> tuple[tuple[int, int], Optional[tuple[int, int]]]:
        match = _MID_CONDITION.search(raw, start, end)
        if not match or match.start() == start:
            return (start, end), None
        main = _trim(raw, start, match.start())
        condition = _trim(raw, match.end(), end)
        if main[0] >= main[1] or condition[0] >= condition[1]:
            return (start, end), None
        return main, condition

    # ------------------------------------------------------------------
    # Classification

    def _is_condition(self, text: str) -> bool:
        return bool(self._marker_re.match(text))

    def _opens_clause(self, text: str) -> bool:
        return bool(
            self._outcome_start_re.match(text)
            or self._system_re.match(text)
            or self._match_role(text)
        )

    def _match_role(self, text: str) -> Optional[re.Match[str]]:
        match = self._role_re.match(text)
        if not match:
            return None
        for word in match.group("prefix").split():
            if self._intent_re.match(word) or self._outcome_start_re.match(word):
                return None
        return match

    def _clause(
        self,
        raw: str,
        start: int,
        end: int,
        group: int,
        drafts: list[_Draft],
        endpoint: _EndpointContext,
        after_condition: bool,
    ) -> bool:
        """Classify one clause; return True when it is a bare condition."""
        text = raw[start:end]
        match = self._endpoint_re.search(text)
        if match:
            self._endpoint(raw, start, end, match, group, drafts, endpoint)
            return False
        if self._is_condition(text):
            return self._condition(raw, start, end, group, drafts, endpoint)
        if after_condition:
            self._outcomes(raw, start, end, group, drafts, endpoint)
            return False
        for a_start, a_end in self._alternatives(raw, start, end):
            main, condition = self._split_trailing_condition(raw, a_start, a_end)
            self._plain(raw, main[0], main[1], group, drafts, endpoint)
            if condition:
                self._add_trailing(drafts, raw, condition, group)
        return False

    def _endpoint(
        self,
        raw: str,
        start: int,
        end: int,
        match: re.Match[str],
        group: int,
        drafts: list[_Draft],
        endpoint: _EndpointContext,
    ) -> None:
        method = match.group("method")
        path = match.group("path").rstrip(".:")
        method_start = start + match.start("method")
        path_end = start + match.end("path")

        caller = self._add(
            drafts,
            StatementKind.ACTOR,
            raw,
            method_start,
            start + match.end("method"),
            group,
            text=IMPLICIT_CALLER,
            tags=[TAG_IMPLICIT],
        )
        self._add(
            drafts,
            StatementKind.ACTION,
            raw,
            method_start,
            path_end,
            group,
            text=f"{method} {path}",
            tags=[TAG_ENDPOINT],
            links=[caller] if caller is not None else [],
        )
        endpoint.open(method, group)

        rest = _trim(raw, path_end, end)
        if rest[0] < rest[1]:
            self._outcomes(raw, rest[0], rest[1], group, drafts, endpoint)

    def _condition(
        self,
        raw: str,
        start: int,
        end: int,
        group: int,
        drafts: list[_Draft],
        endpoint: _EndpointContext,
    ) -> bool:
        text = raw[start:end]
        then = _THEN.search(text)
        if then:
            split: Optional[int] = then.start()
            consequence_start = start + then.end()
        else:
            split = self._consequence_split(text)
            consequence_start = start + split if split is not None else end

        if split is None:
            self._add(drafts, StatementKind.CONDITION, raw, start, end, group)
            return True

        condition = _trim(raw, start, start + split)
        self._add(drafts, StatementKind.CONDITION, raw, condition[0], condition[1], group)
        consequence = _trim(raw, consequence_start, end)
        if consequence[0] < consequence[1]:
            self._outcomes(raw, consequence[0], consequence[1], group, drafts, endpoint)
            return False
        return True

    def _consequence_split(self, text: str) -> Optional[int]:
        """Offset where an unpunctuated consequence starts inside a condition clause."""
        lowered = text.lower()
        for marker in _FALLBACK_MARKERS:
            if lowered.startswith(marker + " "):
                return len(marker)
        marker = self._marker_re.match(text)
        if not marker:
            return None
        subject = _FIRST_WORD.match(text, marker.end())
        if not subject:
            return None
        for match in self._consequence_re.finditer(text, subject.end()):
            preceding = text[: match.start()].split()
            if preceding and preceding[-1].lower() in _AUXILIARIES:
                continue
            return match.end()
        return None

    def _outcomes(
        self,
        raw: str,
        start: int,
        end: int,
        group: int,
        drafts: list[_Draft],
        endpoint: _EndpointContext,
    ) -> None:
        for a_start, a_end in self._alternatives(raw, start, end):
            main, condition = self._split_trailing_condition(raw, a_start, a_end)
            self._add_outcome(raw, main[0], main[1], group, drafts, endpoint)
            if condition:
                self._add_trailing(drafts, raw, condition, group)

    def _plain(
        self,
        raw: str,
        start: int,
        end: int,
        group: int,
        drafts: list[_Draft],
        endpoint: _EndpointContext,
    ) -> None:
        text = raw[start:end]
        role = self._match_role(text)
        if role:
            rest = text[role.end():]
            modal = self._modal_re.match(rest)
            verb_start = start + role.end() + (modal.end() if modal else 0)
            verb_text = raw[verb_start:end]
            if (
                verb_text
                and (modal or self._intent_re.match(verb_text))
                and not self._stative_re.match(verb_text)
                and not _NEGATION.match(verb_text)
            ):
                actor = self._add(
                    drafts, StatementKind.ACTOR, raw, start, start + role.end("subject"), group
                )
                self._add(
                    drafts,
                    StatementKind.ACTION,
                    raw,
                    verb_start,
                    end,
                    group,
                    links=[actor] if actor is not None else [],
                )
                return

        if self._system_re.match(text):
            self._add_outcome(raw, start, end, group, drafts, endpoint)
        elif find_terms(text, self.vocabulary.modal_obligation):
            self._add(drafts, StatementKind.CONSTRAINT, raw, start, end, group)
        elif self._outcome_start_re.match(text):
            self._add_outcome(raw, start, end, group, drafts, endpoint)
        elif self._intent_re.match(text):
            self._add(drafts, StatementKind.ACTION, raw, start, end, group)
        else:
            self._add(drafts, StatementKind.CONSTRAINT, raw, start, end, group)

    def _add_outcome(
        self,
        raw: str,
        start: int,
        end: int,
        group: int,
        drafts: list[_Draft],
        endpoint: _EndpointContext,
    ) -> None:
        text = _normalize(raw[start:end])
        tags: list[str] = []
        if endpoint.method:
            status = find_status(text)
            if status is not None:
                tags.append(f"{HTTP_TAG_PREFIX}{status}")
            elif (
                endpoint.group == group
                and not endpoint.success_tagged
                and self.vocabulary.failure_category(text) is None
            ):
                # An endpoint's unqualified success branch implies 200 (201 on create)
                code = 201 if endpoint.method == "POST" and _CREATES.search(text) else 200
                tags.append(f"{HTTP_TAG_PREFIX}{code}")
                endpoint.success_tagged = True
        self._add(drafts, StatementKind.OUTCOME, raw, start, end, group, tags=tags)

    @staticmethod
    def _add(
        drafts: list[_Draft],
        kind: StatementKind,
        raw: str,
        start: int,
        end: int,
        group: int,
        text: Optional[str] = None,
        tags: Optional[list[str]] = None,
        links: Optional[list[int]] = None,
    ) -> Optional[int]:
        text = text or _normalize(raw[start:end])
        if not text:
            return None
        drafts.append(_Draft(kind, start, end, group, text, list(links or []), list(tags or [])))
        return len(drafts) - 1

    def _add_trailing(
        self, drafts: list[_Draft], raw: str, span: tuple[int, int], group: int
    ) -> None:
        """Add the condition split off the end of a clause ("404 if absent")."""
        index = self._add(drafts, StatementKind.CONDITION, raw, span[0], span[1], group)
        if index is not None:
            drafts[index].trailing = True

    # ------------------------------------------------------------------
    # Linking and finalization

    @staticmethod
    def _pair_conditions(drafts: list[_Draft], first: int) -> None:
        """Link each run of Conditions in a sentence to the Outcome(s) it guards.

        A trailing condition ("404 if absent") guards the Outcome it was split
        from. Any other run followed by Outcomes guards all of them.
        """
        i = first
        while i < len(drafts):
            if drafts[i].kind is not StatementKind.CONDITION:
                i += 1
                continue
            if drafts[i].trailing and i > first and drafts[i - 1].kind is StatementKind.OUTCOME:
                if i not in drafts[i - 1].links:
                    drafts[i - 1].links.append(i)
                i += 1
                continue
            j = i + 1
            while (
                j < len(drafts)
                and drafts[j].kind is StatementKind.CONDITION
                and not drafts[j].trailing
            ):
                j += 1
            run = range(i, j)
            targets: list[int] = []
            k = j
            while k < len(drafts) and drafts[k].kind is StatementKind.OUTCOME:
                targets.append(k)
                k += 1
            if not targets and i > first and drafts[i - 1].kind is StatementKind.OUTCOME:
                previous = drafts[i - 1]
                if not any(drafts[link].kind is StatementKind.CONDITION for link in previous.links):
                    targets.append(i - 1)
            for target in targets:
                for condition in run:
                    if condition not in drafts[target].links:
                        drafts[target].links.append(condition)
            i = j

    @staticmethod
    def _finalize(drafts: list[_Draft]) -> list[Statement]:
        ids = [statement_id(n) for n in range(1, len(drafts) + 1)]
        return [
            Statement(
                id=ids[n],
                kind=draft.kind,
                text=draft.text,
                source_offset=(draft.start, draft.end),
                group=draft.group,
                links=tuple(ids[link] for link in draft.links),
                tags=tuple(draft.tags),
            )
            for n, draft in enumerate(drafts)
        ]


def extract(raw_text: str, vocabulary: Optional[Vocabulary] = None) -> list[Statement]:
    """Extract statements from raw text with the given (or default) vocabulary."""
    return LexicalExtractor(vocabulary).extract(raw_text)


__all__ = ["LexicalExtractor", "extract", "IMPLICIT_CALLER"]
