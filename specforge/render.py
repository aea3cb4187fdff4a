"""
Document rendering and parsing.

Each format has a text rendering that a reviewer can read and a parser that
rebuilds the document's sections from it:

- behavioral: Gherkin-like scenarios; every step line carries a trailing
  ``# <statement id> <role>`` annotation.
- contract: YAML (via PyYAML ``safe_dump``/``safe_load``).
- functional: Markdown tables, one per section.

Parsing a rendering and deriving criteria from the result gives the same
criteria as the original document. Criteria and assumption appendices are
informational and ignored by the parsers.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Optional

import yaml

from specforge.exceptions import RenderParseError
from specforge.types import (
    AcceptanceCriterion,
    Branch,
    PrecedenceStrategy,
    Section,
    SpecDocument,
    SpecFormat,
)

# ============================================================================
# Shared helpers


def _criteria_lines(document: SpecDocument) -> list[str]:
    lines = []
    for entry in document.criteria:
        if isinstance(entry, AcceptanceCriterion):
            lines.append(f"[{entry.linked_statement_id}] {entry.description}")
        else:
            lines.append(f"[{entry.linked_statement_id}] INCOMPLETE: {entry.reason}")
    return lines


def _header_fields(document: SpecDocument) -> list[tuple[str, str]]:
    return [
        ("format", document.format.value),
        ("session", document.session_id or "-"),
        ("revision", str(document.revision)),
        ("precedence", document.precedence.value),
    ]


def _document_from_header(fmt: SpecFormat, header: dict[str, str]) -> SpecDocument:
    declared = header.get("format")
    if declared != fmt.value:
        raise RenderParseError(f"expected format {fmt.value!r}, found {declared!r}")
    try:
        revision = int(header.get("revision", "0"))
        precedence = PrecedenceStrategy(header.get("precedence", PrecedenceStrategy.FIRST_SEEN.value))
    except ValueError as e:
        raise RenderParseError(f"invalid header: {e}") from e
    session = header.get("session", "")
    return SpecDocument(
        format=fmt,
        session_id="" if session == "-" else session,
        revision=revision,
        precedence=precedence,
    )


# ============================================================================
# Behavioral

_STEP = re.compile(
    r"^\s+(?:Given|When|Then|And|But)\s+(?P<text>.*?)\s{2}#\s(?P<sid>\S+)\s(?P<role>\w+)"
    r"(?:\sstatus=(?P<status>\d{3}))?(?:\s\|\sclarified:\s(?P<clar>.*))?$"
)
_HEADER = re.compile(r"^#\s(?P<key>format|session|revision|precedence):\s(?P<value>.*)$")
_NOTE_PREFIX = "# note: "


def _step_keyword(role: str, previous_role: Optional[str]) -> str:
    # Condition text keeps its own marker ("when ...", "if ..."), so it never opens with When
    if role == "condition":
        return "And" if previous_role is not None else "Given"
    groups = {"given": "given", "when": "when", "condition": "when", "then": "then", "constraint": "then"}
    group = groups.get(role, "then")
    if previous_role is not None and groups.get(previous_role, "then") == group:
        return "And"
    return group.capitalize()


def render_behavioral(document: SpecDocument) -> str:
    lines = [f"# {key}: {value}" for key, value in _header_fields(document)]
    for section in document.sections:
        lines.append("")
        lines.append(f"Scenario: {section.title}")
        for note in section.notes:
            lines.append(f"  {_NOTE_PREFIX}{note}")
        previous: Optional[str] = None
        for branch in section.branches:
            annotation = f"# {branch.statement_id} {branch.role}"
            if branch.status is not None:
                annotation += f" status={branch.status}"
            if branch.clarification:
                annotation += f" | clarified: {branch.clarification}"
            keyword = _step_keyword(branch.role, previous)
            lines.append(f"  {keyword} {branch.text}  {annotation}")
            previous = branch.role
    _append_comment_appendix(lines, document)
    return "\n".join(lines) + "\n"


def _append_comment_appendix(lines: list[str], document: SpecDocument) -> None:
    criteria = _criteria_lines(document)
    if criteria:
        lines.append("")
        lines.append("# Acceptance criteria")
        lines.extend(f"#   - {line}" for line in criteria)
    if document.unresolved_assumptions:
        lines.append("")
        lines.append("# Unresolved assumptions")
        lines.extend(f"#   - {note}" for note in document.unresolved_assumptions)


def parse_behavioral(text: str) -> SpecDocument:
    header: dict[str, str] = {}
    sections: list[Section] = []
    title: Optional[str] = None
    notes: list[str] = []
    branches: list[Branch] = []

    def close() -> None:
        if title is not None:
            sections.append(Section("scenario", title, tuple(branches), tuple(notes)))

    for number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        if line.startswith("Scenario: "):
            close()
            title = line[len("Scenario: "):]
            notes, branches = [], []
            continue
        if title is None:
            match = _HEADER.match(line)
            if match:
                header[match.group("key")] = match.group("value").strip()
                continue
        stripped = line.strip()
        if stripped.startswith(_NOTE_PREFIX) and title is not None:
            notes.append(stripped[len(_NOTE_PREFIX):])
            continue
        if stripped.startswith("#"):
            continue
        match = _STEP.match(line)
        if not match or title is None:
            raise RenderParseError("unrecognized scenario line", number)
        status = match.group("status")
        branches.append(
            Branch(
                statement_id=match.group("sid"),
                role=match.group("role"),
                text=match.group("text"),
                clarification=match.group("clar"),
                status=int(status) if status else None,
            )
        )
    close()

    document = _document_from_header(SpecFormat.BEHAVIORAL, header)
    document.sections = sections
    return document


# ============================================================================
# Contract

_BRANCH_FIELDS = ("statement", "role", "text", "clarification", "condition", "status", "severity", "category")


def render_contract(document: SpecDocument) -> str:
    data: dict[str, Any] = dict(_header_fields(document))
    data["revision"] = document.revision
    data["entries"] = [
        {
            "title": section.title,
            "notes": list(section.notes),
            "branches": [
                {
                    "statement": b.statement_id,
                    "role": b.role,
                    "text": b.text,
                    "clarification": b.clarification,
                    "condition": b.condition,
                    "status": b.status,
                    "severity": b.severity,
                    "category": b.category,
                }
                for b in section.branches
            ],
        }
        for section in document.sections
    ]
    if document.criteria:
        data["acceptance_criteria"] = _criteria_lines(document)
    if document.unresolved_assumptions:
        data["unresolved_assumptions"] = list(document.unresolved_assumptions)
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)


def parse_contract(text: str) -> SpecDocument:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise RenderParseError(f"invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise RenderParseError("contract rendering must be a mapping")

    header = {key: str(data.get(key, "")) for key in ("format", "session", "revision", "precedence")}
    document = _document_from_header(SpecFormat.CONTRACT, header)

    sections = []
    for entry in data.get("entries") or []:
        try:
            branches = tuple(
                Branch(
                    statement_id=str(raw["statement"]),
                    role=str(raw["role"]),
                    text=str(raw["text"]),
                    clarification=raw.get("clarification"),
                    condition=raw.get("condition"),
                    status=int(raw["status"]) if raw.get("status") is not None else None,
                    severity=int(raw.get("severity") or 0),
                    category=raw.get("category"),
                )
                for raw in entry.get("branches") or []
            )
            sections.append(
                Section("contract", str(entry["title"]), branches, tuple(entry.get("notes") or ()))
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise RenderParseError(f"malformed contract entry: {e}") from e
    document.sections = sections
    return document


# ============================================================================
# Functional

_TABLE_COLUMNS = {
    "rule_table": ("Rank", "When", "Then", "Statement", "Clarification"),
    "invariants": ("Rule", "Statement", "Clarification"),
    "context": ("Role", "Text", "Statement", "Clarification"),
}
_COMMENT_HEADER = re.compile(r"^<!--\s*(?P<body>.*?)\s*-->$")
_SECTION_MARKER = re.compile(r"^<!--\s*section:\s*(?P<kind>\w+)\s*-->$")
_CELL_SPLIT = re.compile(r"(?<!\\)\|")


def _cell(value: Optional[str]) -> str:
    return (value or "").replace("|", "\\|")


def _uncell(value: str) -> Optional[str]:
    value = value.strip().replace("\\|", "|")
    return value or None


def _table_row(section: Section, branch: Branch, ranks: dict[str, int]) -> list[str]:
    if section.kind == "rule_table":
        return [
            str(ranks[branch.statement_id]),
            _cell(branch.condition),
            _cell(branch.text),
            branch.statement_id,
            _cell(branch.clarification),
        ]
    if section.kind == "invariants":
        return [_cell(branch.text), branch.statement_id, _cell(branch.clarification)]
    return [branch.role, _cell(branch.text), branch.statement_id, _cell(branch.clarification)]


def _branch_from_row(kind: str, cells: list[Optional[str]], number: int) -> Branch:
    try:
        if kind == "rule_table":
            _, condition, text, sid, clarification = cells
            return Branch(str(sid), "rule", text or "", clarification, condition=condition)
        if kind == "invariants":
            text, sid, clarification = cells
            return Branch(str(sid), "invariant", text or "", clarification)
        role, text, sid, clarification = cells
        return Branch(str(sid), str(role), text or "", clarification)
    except ValueError as e:
        raise RenderParseError(f"wrong number of cells for a {kind} row", number) from e


def render_functional(document: SpecDocument) -> str:
    header = " | ".join(f"{key}: {value}" for key, value in _header_fields(document))
    lines = [f"<!-- {header} -->", "# Functional specification"]
    for section in document.sections:
        columns = _TABLE_COLUMNS.get(section.kind, _TABLE_COLUMNS["context"])
        ranks: dict[str, int] = {}
        seen: dict[Optional[str], int] = {}
        for branch in section.branches:
            seen.setdefault(branch.condition, len(seen) + 1)
            ranks[branch.statement_id] = seen[branch.condition]
        lines.extend(["", f"## {section.title}", f"<!-- section: {section.kind} -->"])
        lines.extend(f"> {note}" for note in section.notes)
        lines.append("")
        lines.append("| " + " | ".join(columns) + " |")
        lines.append("|" + "|".join(" --- " for _ in columns) + "|")
        for branch in section.branches:
            lines.append("| " + " | ".join(_table_row(section, branch, ranks)) + " |")

    criteria = _criteria_lines(document)
    if criteria:
        lines.extend(["", "## Acceptance criteria", ""])
        lines.extend(f"- {line}" for line in criteria)
    if document.unresolved_assumptions:
        lines.extend(["", "## Unresolved assumptions", ""])
        lines.extend(f"- {note}" for note in document.unresolved_assumptions)
    return "\n".join(lines) + "\n"


def parse_functional(text: str) -> SpecDocument:
    lines = text.splitlines()
    header: dict[str, str] = {}
    if lines:
        match = _COMMENT_HEADER.match(lines[0].strip())
        if match:
            for part in match.group("body").split(" | "):
                key, _, value = part.partition(":")
                header[key.strip()] = value.strip()

    sections: list[Section] = []
    title: Optional[str] = None
    kind: Optional[str] = None
    notes: list[str] = []
    branches: list[Branch] = []
    table_lines = 0

    def close() -> None:
        if title is not None and kind is not None:
            sections.append(Section(kind, title, tuple(branches), tuple(notes)))

    for number, line in enumerate(lines, start=1):
        stripped = line.strip()
        if stripped.startswith("## "):
            close()
            title, kind, notes, branches, table_lines = stripped[3:], None, [], [], 0
            continue
        marker = _SECTION_MARKER.match(stripped)
        if marker and title is not None:
            kind = marker.group("kind")
            continue
        if kind is None:
            continue
        if stripped.startswith("> "):
            notes.append(stripped[2:])
        elif stripped.startswith("|"):
            table_lines += 1
            if table_lines <= 2:
                continue  # column header and separator
            cells = [_uncell(c) for c in _CELL_SPLIT.split(stripped.strip("|"))]
            branches.append(_branch_from_row(kind, cells, number))
    close()

    document = _document_from_header(SpecFormat.FUNCTIONAL, header)
    document.sections = sections
    return document


# ============================================================================
# Dispatch

_RENDERERS: dict[SpecFormat, Callable[[SpecDocument], str]] = {
    SpecFormat.BEHAVIORAL: render_behavioral,
    SpecFormat.CONTRACT: render_contract,
    SpecFormat.FUNCTIONAL: render_functional,
}
_PARSERS: dict[SpecFormat, Callable[[str], SpecDocument]] = {
    SpecFormat.BEHAVIORAL: parse_behavioral,
    SpecFormat.CONTRACT: parse_contract,
    SpecFormat.FUNCTIONAL: parse_functional,
}


def render_document(document: SpecDocument) -> str:
    return _RENDERERS[document.format](document)


def detect_format(text: str) -> SpecFormat:
    """Infer the format of a rendering from its header."""
    head = text.lstrip()
    if head.startswith("<!--"):
        return SpecFormat.FUNCTIONAL
    if head.startswith("# format: behavioral"):
        return SpecFormat.BEHAVIORAL
    if head.startswith("format: contract"):
        return SpecFormat.CONTRACT
    raise RenderParseError("cannot determine the format of the rendering", 1)


def parse_document(text: str, format: Optional[SpecFormat] = None) -> SpecDocument:
    """Rebuild a document's sections from its rendering.

    Raises:
        RenderParseError: If the text is not a rendering of the given format
    """
    return _PARSERS[format or detect_format(text)](text)


__all__ = [
    "render_document",
    "parse_document",
    "detect_format",
    "render_behavioral",
    "render_contract",
    "render_functional",
    "parse_behavioral",
    "parse_contract",
    "parse_functional",
]
