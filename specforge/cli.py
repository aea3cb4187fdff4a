"""
Command line interface.

Usage:
    specforge synthesize requirements.txt               # interactive clarification
    specforge synthesize requirements.txt --answers answers.yaml --output artifact.json
    specforge gaps requirements.txt --json
    specforge select requirements.txt
    specforge verify artifact.json

Exit codes:
    0  success
    1  round-trip verification failed
    2  unusable input (empty, malformed, too long) or bad configuration
    3  blocking gaps left unresolved or clarification cancelled
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

import yaml

from specforge.__version__ import __version__
from specforge.clarification import AnswerChannel, ClarificationStatus
from specforge.config import get_engine_config
from specforge.engine import SpecEngine
from specforge.exceptions import (
    BlockingGapUnresolvedError,
    ClarificationCancelledError,
    ConfigurationError,
    InputError,
    RenderParseError,
)
from specforge.logging_config import configure_logging
from specforge.packager import HandoffArtifact
from specforge.session import Session
from specforge.types import Gap, PrecedenceStrategy, SpecFormat

EXIT_OK = 0
EXIT_VERIFY_FAILED = 1
EXIT_BAD_INPUT = 2
EXIT_UNRESOLVED = 3


def _read_input(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _load_answers(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if not isinstance(data, (list, dict)):
        raise ConfigurationError(f"answers file {path} must hold a list or a mapping")
    return data


def _gap_keys(gap: Gap) -> list[str]:
    related = ",".join(gap.related_statement_ids)
    keys = [f"{gap.category.value}:{related}"]
    if gap.related_statement_ids:
        keys.append(gap.related_statement_ids[0])
    keys.append(gap.category.value)
    return keys


def scripted_channel(answers: Any, session: Session) -> AnswerChannel:
    """Answer questions from a list (in order) or a mapping.

    Mapping keys may be ``<category>:<ids>``, a statement id, or a category;
    the most specific key present wins. Running out of answers cancels, and
    so does a mapping answer asked for the same gap twice (it was rejected).
    """
    queue = list(answers) if isinstance(answers, list) else []
    given: set[tuple] = set()

    def channel(question: str) -> Optional[str]:
        if isinstance(answers, dict):
            gap = session.pending_gap
            if gap is None:
                return None
            for key in _gap_keys(gap):
                if key in answers:
                    if (gap.key, key) in given:
                        return None
                    given.add((gap.key, key))
                    return str(answers[key])
            return None
        if not queue:
            return None
        return str(queue.pop(0))

    return channel


def interactive_channel(prompt: Callable[[str], str] = input, out=None) -> AnswerChannel:
    """Ask on the terminal; an empty answer or end of input cancels."""

    def channel(question: str) -> Optional[str]:
        print(f"\n? {question}", file=out or sys.stderr)
        try:
            return prompt("> ")
        except EOFError:
            return None

    return channel


def _print_gaps(gaps: Sequence[Gap]) -> None:
    for gap in gaps:
        related = ", ".join(gap.related_statement_ids) or "-"
        marker = "BLOCKING" if gap.blocking else "open"
        print(f"  [{marker}] {gap.category.value} ({related}): {gap.question}", file=sys.stderr)


def _write(text: str, output: Optional[str]) -> None:
    if output:
        Path(output).write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)


def _engine(args: argparse.Namespace) -> SpecEngine:
    config = get_engine_config()
    if getattr(args, "precedence", None):
        config = config.with_overrides(precedence=args.precedence)
    if getattr(args, "vocabulary", None):
        config = config.with_overrides(vocabulary_path=args.vocabulary)
    return SpecEngine(config)


def _checked_input(args: argparse.Namespace, engine: SpecEngine) -> Optional[str]:
    raw = _read_input(args.input)
    if engine.config.exceeds_input_limit(raw):
        print(
            f"ERROR: input has {len(raw)} characters; the limit is "
            f"{engine.config.max_input_chars} (set SPECFORGE_MAX_INPUT_CHARS to change it)",
            file=sys.stderr,
        )
        return None
    return raw


def cmd_synthesize(args: argparse.Namespace) -> int:
    engine = _engine(args)
    raw = _checked_input(args, engine)
    if raw is None:
        return EXIT_BAD_INPUT

    session = engine.submit(raw)
    if args.answers:
        channel = scripted_channel(_load_answers(args.answers), session)
    elif args.non_interactive:
        channel = None
    else:
        channel = interactive_channel()

    step = engine.controller.run(session, channel) if channel else engine.clarify(session)
    if step.status is not ClarificationStatus.RESOLVED:
        print(
            f"Session {session.id} stopped at revision {session.revision} "
            f"with {len(session.blocking_gaps)} blocking gap(s)",
            file=sys.stderr,
        )
        report = engine.gap_report(session)
        if args.json:
            sys.stdout.write(report.to_json() + "\n")
        else:
            sys.stderr.write(report.render_text())
        return EXIT_UNRESOLVED

    fmt = SpecFormat(args.format) if args.format else None
    document = engine.synthesize(session, fmt)
    artifact = engine.package(document, session)
    _write(artifact.to_json() if args.json else artifact.rendered, args.output)
    return EXIT_OK


def cmd_gaps(args: argparse.Namespace) -> int:
    engine = _engine(args)
    raw = _checked_input(args, engine)
    if raw is None:
        return EXIT_BAD_INPUT
    report = engine.gap_report(engine.submit(raw))
    _write(report.to_json() + "\n" if args.json else report.render_text(), None)
    return EXIT_UNRESOLVED if report.blocking else EXIT_OK


def cmd_select(args: argparse.Namespace) -> int:
    engine = _engine(args)
    raw = _checked_input(args, engine)
    if raw is None:
        return EXIT_BAD_INPUT
    scores = engine.scores(engine.submit(raw))
    if args.json:
        print(json.dumps(scores.to_dict(), indent=2))
    else:
        print(f"selected:   {scores.winner().value}")
        print(f"behavioral: {scores.behavioral}")
        print(f"contract:   {scores.contract}")
        print(f"functional: {scores.functional}" + (" (actor-facing)" if scores.actor_facing else ""))
    return EXIT_OK


def cmd_verify(args: argparse.Namespace) -> int:
    engine = _engine(args)
    artifact = HandoffArtifact.from_json(Path(args.artifact).read_text(encoding="utf-8"))
    digest_ok = artifact.verify_digest()
    round_trip_ok = engine.verify_round_trip(artifact)
    print(f"artifact:   {artifact.artifact_id}")
    print(f"digest:     {'OK' if digest_ok else 'MISMATCH'}")
    print(f"round trip: {'OK' if round_trip_ok else 'MISMATCH'}")
    return EXIT_OK if digest_ok and round_trip_ok else EXIT_VERIFY_FAILED


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="specforge",
        description="Turn informal requirements into a testable specification",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-json", action="store_true", help="Emit JSON log records")
    parser.add_argument("--vocabulary", help="Vocabulary YAML replacing the packaged one")
    parser.add_argument(
        "--precedence",
        choices=[p.value for p in PrecedenceStrategy],
        help="Rule-table ordering strategy",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    synth = sub.add_parser("synthesize", help="Clarify and synthesize a specification")
    synth.add_argument("input", help="Requirements text file, or - for stdin")
    synth.add_argument("--answers", help="YAML list or mapping of clarification answers")
    synth.add_argument(
        "--non-interactive", action="store_true", help="Fail instead of asking questions"
    )
    synth.add_argument("--format", choices=[f.value for f in SpecFormat], help="Force a format")
    synth.add_argument("--output", "-o", help="Write the result to a file")
    synth.add_argument("--json", action="store_true", help="Write the artifact JSON")
    synth.set_defaults(func=cmd_synthesize)

    gaps = sub.add_parser("gaps", help="List detected gaps without asking")
    gaps.add_argument("input", help="Requirements text file, or - for stdin")
    gaps.add_argument("--json", action="store_true", help="Write the gap report JSON")
    gaps.set_defaults(func=cmd_gaps)

    select = sub.add_parser("select", help="Show format selection scores")
    select.add_argument("input", help="Requirements text file, or - for stdin")
    select.add_argument("--json", action="store_true")
    select.set_defaults(func=cmd_select)

    verify = sub.add_parser("verify", help="Check an artifact's digest and round trip")
    verify.add_argument("artifact", help="Artifact JSON file")
    verify.set_defaults(func=cmd_verify)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level, json_output=True if args.log_json else None)

    try:
        return args.func(args)
    except (InputError, ConfigurationError, RenderParseError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT
    except (BlockingGapUnresolvedError, ClarificationCancelledError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        _print_gaps(e.gaps)
        return EXIT_UNRESOLVED


if __name__ == "__main__":
    sys.exit(main())
