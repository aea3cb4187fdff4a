"""
specforge: requirement-to-specification synthesis

Turns a short paragraph of informal requirements into a testable,
structured specification. Ambiguities are surfaced as questions and
resolved in a clarification loop before anything is synthesized.

=== PIPELINE ===

EXTRACTION:
- Lexical clause splitting into Actor / Action / Condition / Outcome / Constraint
- Endpoint phrases ("GET /users/{id}") become an implicit caller and an operation
- Deterministic: identical input always yields identical statements

GAP DETECTION:
- Vague qualifiers, unresolved conditionals, missing actors (blocking)
- Missing negative paths, missing acceptance criteria (recorded as assumptions)

CLARIFICATION:
- One question at a time; answers merged into a revisioned session
- Rejected answers leave the session unchanged

SYNTHESIS:
- Behavioral scenarios, interface contracts, or decision tables
- Acceptance criteria derived from every outcome branch
- Sealed, content-addressed handoff artifacts

Usage:
    from specforge import SpecEngine

    engine = SpecEngine()
    artifact = engine.run("GET /users/{id} returns the user or 404 if absent")
    print(artifact.rendered)
"""

from __future__ import annotations

import importlib
from typing import Any

_EXPORT_MAP = {
    'AcceptanceCriterion': ('specforge.types', 'AcceptanceCriterion'),
    'ArtifactSealedError': ('specforge.exceptions', 'ArtifactSealedError'),
    'BlockingGapUnresolvedError': ('specforge.exceptions', 'BlockingGapUnresolvedError'),
    'Branch': ('specforge.types', 'Branch'),
    'ClarificationCancelledError': ('specforge.exceptions', 'ClarificationCancelledError'),
    'ClarificationController': ('specforge.clarification', 'ClarificationController'),
    'ClarificationRejectedError': ('specforge.exceptions', 'ClarificationRejectedError'),
    'ClarificationStatus': ('specforge.clarification', 'ClarificationStatus'),
    'ClarificationStep': ('specforge.clarification', 'ClarificationStep'),
    'ConfigurationError': ('specforge.exceptions', 'ConfigurationError'),
    'CriteriaExtractor': ('specforge.criteria', 'CriteriaExtractor'),
    'DanglingReferenceError': ('specforge.exceptions', 'DanglingReferenceError'),
    'EngineConfig': ('specforge.config', 'EngineConfig'),
    'FormatScores': ('specforge.selector', 'FormatScores'),
    'FormatSelector': ('specforge.selector', 'FormatSelector'),
    'Gap': ('specforge.types', 'Gap'),
    'GapCategory': ('specforge.types', 'GapCategory'),
    'GapDetector': ('specforge.detector', 'GapDetector'),
    'GapReport': ('specforge.packager', 'GapReport'),
    'HandoffArtifact': ('specforge.packager', 'HandoffArtifact'),
    'HandoffPackager': ('specforge.packager', 'HandoffPackager'),
    'IncompleteCriterion': ('specforge.types', 'IncompleteCriterion'),
    'LexicalExtractor': ('specforge.extractor', 'LexicalExtractor'),
    'MalformedInputError': ('specforge.exceptions', 'MalformedInputError'),
    'NoPendingClarificationError': ('specforge.exceptions', 'NoPendingClarificationError'),
    'PrecedenceStrategy': ('specforge.types', 'PrecedenceStrategy'),
    'RenderParseError': ('specforge.exceptions', 'RenderParseError'),
    'Section': ('specforge.types', 'Section'),
    'Session': ('specforge.session', 'Session'),
    'SessionFrozenError': ('specforge.exceptions', 'SessionFrozenError'),
    'SessionState': ('specforge.session', 'SessionState'),
    'SpecDocument': ('specforge.types', 'SpecDocument'),
    'SpecEngine': ('specforge.engine', 'SpecEngine'),
    'SpecForgeError': ('specforge.exceptions', 'SpecForgeError'),
    'SpecFormat': ('specforge.types', 'SpecFormat'),
    'SpecSynthesizer': ('specforge.synthesizer', 'SpecSynthesizer'),
    'Statement': ('specforge.types', 'Statement'),
    'StatementKind': ('specforge.types', 'StatementKind'),
    'Vocabulary': ('specforge.vocabulary', 'Vocabulary'),
    'VocabularyError': ('specforge.exceptions', 'VocabularyError'),
    'configure_logging': ('specforge.logging_config', 'configure_logging'),
    'derive_criteria': ('specforge.criteria', 'derive_criteria'),
    'detect': ('specforge.detector', 'detect'),
    'extract': ('specforge.extractor', 'extract'),
    'get_default_vocabulary': ('specforge.vocabulary', 'get_default_vocabulary'),
    'get_engine_config': ('specforge.config', 'get_engine_config'),
    'get_logger': ('specforge.logging_config', 'get_logger'),
    'load_vocabulary': ('specforge.vocabulary', 'load_vocabulary'),
    'package': ('specforge.packager', 'package'),
    'parse_document': ('specforge.render', 'parse_document'),
    'render_document': ('specforge.render', 'render_document'),
    'select': ('specforge.selector', 'select'),
    'synthesize': ('specforge.synthesizer', 'synthesize'),
}

__all__ = sorted(_EXPORT_MAP) + ['__version__']


def __getattr__(name: str) -> Any:
    """Lazily import public symbols so ``import specforge`` stays cheap."""
    try:
        module_name, attr_name = _EXPORT_MAP[name]
    except KeyError as exc:
        raise AttributeError(f"module 'specforge' has no attribute {name!r}") from exc
    module = importlib.import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(__all__))


from specforge.__version__ import __version__  # noqa: E402
