"""
Pipeline facade.

SpecEngine wires the stages together behind the operations callers use:
submit raw text, clarify, synthesize, package. Stage objects are built once
per engine from its configuration and vocabulary and hold no per-session
state, so one engine serves any number of sessions.

Usage:
    engine = SpecEngine()
    session = engine.submit("Users must log in; on success redirect to /dashboard")
    step = engine.clarify(session)
    while step.needs_input:
        step = engine.answer(session, input(step.question))
    artifact = engine.package(engine.synthesize(session))
"""

from __future__ import annotations

from typing import Optional

from specforge.clarification import (
    AnswerChannel,
    ClarificationController,
    ClarificationStatus,
    ClarificationStep,
)
from specforge.config import EngineConfig, get_engine_config
from specforge.criteria import (
    CriteriaExtractor,
    criteria_signature,
    unresolved_assumptions,
)
from specforge.detector import GapDetector
from specforge.exceptions import (
    BlockingGapUnresolvedError,
    ClarificationCancelledError,
    MalformedInputError,
)
from specforge.extractor import LexicalExtractor
from specforge.logging_config import LogContext, get_logger, log_function
from specforge.packager import GapReport, HandoffArtifact, HandoffPackager
from specforge.render import parse_document
from specforge.selector import FormatScores, FormatSelector
from specforge.session import Session
from specforge.synthesizer import SpecSynthesizer
from specforge.types import Gap, SpecDocument, SpecFormat
from specforge.vocabulary import Vocabulary, get_default_vocabulary, load_vocabulary

logger = get_logger(__name__)


class SpecEngine:
    """Requirement-to-specification pipeline."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        vocabulary: Optional[Vocabulary] = None,
    ):
        self.config = config or get_engine_config()
        if vocabulary is None:
            vocabulary = (
                load_vocabulary(self.config.vocabulary_path)
                if self.config.vocabulary_path
                else get_default_vocabulary()
            )
        self.vocabulary = vocabulary
        self.extractor = LexicalExtractor(vocabulary)
        self.detector = GapDetector(vocabulary)
        self.controller = ClarificationController(self.detector)
        self.selector = FormatSelector(vocabulary)
        self.synthesizer = SpecSynthesizer(vocabulary, self.config.precedence)
        self.criteria = CriteriaExtractor(vocabulary)
        self.packager = HandoffPackager()

    # ------------------------------------------------------------------
    # Session lifecycle

    def submit(self, raw_text: str) -> Session:
        """Extract statements and detect gaps for a new session.

        Raises:
            MalformedInputError: If the text yields no statement at all
        """
        statements = self.extractor.extract(raw_text)
        if not statements:
            raise MalformedInputError()
        session = Session.start(raw_text, statements, self.detector.detect(statements))
        logger.info(
            "Session opened",
            session_id=session.id,
            statements=len(session.statements),
            gaps=len(session.gaps),
            blocking=len(session.blocking_gaps),
        )
        return session

    def gaps(self, session: Session) -> list[Gap]:
        return list(session.gaps)

    def clarify(self, session: Session) -> ClarificationStep:
        return self.controller.resolve(session)

    def answer(self, session: Session, answer: str, gap: Optional[Gap] = None) -> ClarificationStep:
        return self.controller.submit(session, answer, gap)

    def cancel(self, session: Session) -> ClarificationStep:
        return self.controller.cancel(session)

    def scores(self, session: Session) -> FormatScores:
        return self.selector.score(session.statement_list)

    # ------------------------------------------------------------------
    # Synthesis and packaging

    def synthesize(self, session: Session, format: Optional[SpecFormat] = None) -> SpecDocument:
        """Produce the document for a session with no blocking gap and freeze it.

        Raises:
            SessionFrozenError: If the session already produced a document
            BlockingGapUnresolvedError: If a blocking gap is still open
        """
        session.ensure_open()
        blocking = session.blocking_gaps
        if blocking:
            raise BlockingGapUnresolvedError(session.id, blocking)

        with LogContext(session_id=session.id, revision=session.revision):
            statements = session.statement_list
            selected = format or self.selector.select(statements)
            document = self.synthesizer.synthesize(
                statements, selected, session_id=session.id, revision=session.revision
            )
            document.criteria = self.criteria.derive(document.sections)
            document.unresolved_assumptions = unresolved_assumptions(
                session.non_blocking_gaps, document.criteria
            )
            session.freeze()
            logger.info(
                "Session frozen",
                format=selected.value,
                criteria=len(document.criteria),
                assumptions=len(document.unresolved_assumptions),
            )
        return document

    def package(self, document: SpecDocument, session: Optional[Session] = None) -> HandoffArtifact:
        gaps = session.non_blocking_gaps if session is not None else ()
        return self.packager.package(document, gaps)

    def gap_report(self, session: Session) -> GapReport:
        return self.packager.package_gap_report(session)

    @log_function(level="DEBUG", log_result=True)
    def run(
        self,
        raw_text: str,
        channel: Optional[AnswerChannel] = None,
        format: Optional[SpecFormat] = None,
    ) -> HandoffArtifact:
        """One-shot pipeline: submit, clarify through ``channel``, synthesize, package.

        Raises:
            MalformedInputError: If the text yields no statement
            ClarificationCancelledError: If the channel stops answering
            BlockingGapUnresolvedError: If gaps block and no channel was given
        """
        session = self.submit(raw_text)
        if channel is not None:
            step = self.controller.run(session, channel)
        else:
            step = self.controller.resolve(session)

        if step.status is ClarificationStatus.CANCELLED:
            raise ClarificationCancelledError(session.id, session.revision, session.blocking_gaps)
        if step.needs_input:
            raise BlockingGapUnresolvedError(session.id, session.blocking_gaps)

        document = self.synthesize(session, format)
        return self.package(document, session)

    def verify_round_trip(self, artifact: HandoffArtifact) -> bool:
        """True when parsing the rendering yields the packaged criteria."""
        parsed = parse_document(artifact.rendered, artifact.format)
        rebuilt = self.criteria.derive(parsed.sections)
        matches = criteria_signature(rebuilt) == criteria_signature(artifact.document.criteria)
        if not matches:
            logger.warning(
                "Round-trip mismatch",
                artifact_id=artifact.artifact_id[:12],
                expected=len(artifact.document.criteria),
                rebuilt=len(rebuilt),
            )
        return matches


__all__ = ["SpecEngine"]
