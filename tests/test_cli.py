"""Tests for the command line interface."""

import io
import json

import pytest
import yaml

from conftest import ENDPOINT_TEXT, LATENCY_ANSWER, LOGIN_TEXT, VAGUE_TEXT
from specforge import cli
from specforge.cli import (
    EXIT_BAD_INPUT,
    EXIT_OK,
    EXIT_UNRESOLVED,
    EXIT_VERIFY_FAILED,
    interactive_channel,
    main,
    scripted_channel,
)


@pytest.fixture(autouse=True)
def quiet_cli(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)
    for name in ("SPECFORGE_MAX_INPUT_CHARS", "SPECFORGE_PRECEDENCE", "SPECFORGE_VOCABULARY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def write_input(tmp_path):
    def write(text, name="requirements.txt"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return str(path)

    return write


class TestGaps:
    """specforge gaps"""

    def test_blocking_gaps_exit_unresolved(self, write_input, capsys):
        """A vague requirement reports a blocking gap."""
        assert main(["gaps", write_input(VAGUE_TEXT)]) == EXIT_UNRESOLVED
        out = capsys.readouterr().out
        assert "[BLOCKING] vague_qualifier (s1)" in out

    def test_json_report(self, write_input, capsys):
        """The JSON report lists statements and gaps."""
        assert main(["gaps", write_input(ENDPOINT_TEXT), "--json"]) == EXIT_OK
        report = json.loads(capsys.readouterr().out)
        assert report["gaps"] == []
        assert len(report["statements"]) == 5

    def test_empty_input(self, write_input, capsys):
        """Whitespace-only input is unusable."""
        assert main(["gaps", write_input("   \n")]) == EXIT_BAD_INPUT
        assert "Malformed input" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        """An unreadable input file is reported, not raised."""
        assert main(["gaps", str(tmp_path / "absent.txt")]) == EXIT_BAD_INPUT
        assert "ERROR" in capsys.readouterr().err

    def test_input_limit(self, write_input, monkeypatch, capsys):
        """Input over the configured limit is refused."""
        monkeypatch.setenv("SPECFORGE_MAX_INPUT_CHARS", "10")
        assert main(["gaps", write_input(LOGIN_TEXT)]) == EXIT_BAD_INPUT
        assert "the limit is 10" in capsys.readouterr().err


class TestSelect:
    """specforge select"""

    def test_json_scores(self, write_input, capsys):
        """An HTTP endpoint selects the contract format."""
        assert main(["select", write_input(ENDPOINT_TEXT), "--json"]) == EXIT_OK
        scores = json.loads(capsys.readouterr().out)
        assert scores["selected"] == "contract"

    def test_text_scores(self, write_input, capsys):
        """Text output names the selected format."""
        assert main(["select", write_input(LOGIN_TEXT)]) == EXIT_OK
        assert "selected:   behavioral" in capsys.readouterr().out


class TestSynthesize:
    """specforge synthesize"""

    def test_non_interactive_without_blocking_gaps(self, write_input, capsys):
        """Non-blocking gaps do not stop synthesis."""
        assert main(["synthesize", write_input(LOGIN_TEXT), "--non-interactive"]) == EXIT_OK
        assert "Scenario" in capsys.readouterr().out

    def test_non_interactive_with_blocking_gaps(self, write_input, capsys):
        """Blocking gaps stop a non-interactive run."""
        assert main(["synthesize", write_input(VAGUE_TEXT), "--non-interactive"]) == EXIT_UNRESOLVED
        err = capsys.readouterr().err
        assert "1 blocking gap(s)" in err
        assert "vague_qualifier" in err

    def test_answers_list(self, write_input, tmp_path, capsys):
        """A list of answers is consumed in order."""
        answers = tmp_path / "answers.yaml"
        answers.write_text(yaml.safe_dump([LATENCY_ANSWER]), encoding="utf-8")
        code = main(["synthesize", write_input(VAGUE_TEXT), "--answers", str(answers)])
        assert code == EXIT_OK
        assert "200" in capsys.readouterr().out

    def test_answers_mapping(self, write_input, tmp_path, capsys):
        """Mapping answers are matched by gap key."""
        answers = tmp_path / "answers.yaml"
        answers.write_text(yaml.safe_dump({"vague_qualifier:s1": LATENCY_ANSWER}), encoding="utf-8")
        code = main(["synthesize", write_input(VAGUE_TEXT), "--answers", str(answers)])
        assert code == EXIT_OK

    def test_answers_exhausted(self, write_input, tmp_path):
        """Running out of answers cancels the session."""
        answers = tmp_path / "answers.yaml"
        answers.write_text(yaml.safe_dump({"missing_actor": "admins"}), encoding="utf-8")
        code = main(["synthesize", write_input(VAGUE_TEXT), "--answers", str(answers)])
        assert code == EXIT_UNRESOLVED

    def test_rejected_mapping_answer_cancels(self, write_input, tmp_path, capsys):
        """A mapping answer that is rejected is not resubmitted forever."""
        answers = tmp_path / "answers.yaml"
        answers.write_text(yaml.safe_dump({"vague_qualifier": "quickly"}), encoding="utf-8")
        code = main(["synthesize", write_input(VAGUE_TEXT), "--answers", str(answers)])
        assert code == EXIT_UNRESOLVED
        assert "cancelled" in capsys.readouterr().err

    def test_unresolved_prints_full_gap_report(self, write_input, capsys):
        """Stopping early reports open gaps as well as blocking ones."""
        assert main(["synthesize", write_input(VAGUE_TEXT), "--non-interactive"]) == EXIT_UNRESOLVED
        err = capsys.readouterr().err
        assert "[BLOCKING] vague_qualifier (s1)" in err
        assert "[open] missing_acceptance_criterion (s1)" in err

    def test_unresolved_json_gap_report(self, write_input, capsys):
        """With --json the gap report is written as JSON."""
        code = main(["synthesize", write_input(VAGUE_TEXT), "--non-interactive", "--json"])
        assert code == EXIT_UNRESOLVED
        report = json.loads(capsys.readouterr().out)
        assert [g["category"] for g in report["gaps"]] == [
            "vague_qualifier",
            "missing_acceptance_criterion",
        ]
        assert report["statements"][0]["id"] == "s1"

    def test_answers_must_be_collection(self, write_input, tmp_path):
        """A scalar answers file is a configuration error."""
        answers = tmp_path / "answers.yaml"
        answers.write_text("just one answer\n", encoding="utf-8")
        code = main(["synthesize", write_input(VAGUE_TEXT), "--answers", str(answers)])
        assert code == EXIT_BAD_INPUT

    def test_json_artifact_then_verify(self, write_input, tmp_path, capsys):
        """A written artifact verifies cleanly."""
        artifact = tmp_path / "artifact.json"
        code = main(["synthesize", write_input(ENDPOINT_TEXT), "--json", "-o", str(artifact)])
        assert code == EXIT_OK
        data = json.loads(artifact.read_text(encoding="utf-8"))
        assert data["document"]["format"] == "contract"

        assert main(["verify", str(artifact)]) == EXIT_OK
        out = capsys.readouterr().out
        assert "digest:     OK" in out
        assert "round trip: OK" in out

    def test_verify_detects_tampering(self, write_input, tmp_path, capsys):
        """Editing the rendered text breaks the round trip."""
        artifact = tmp_path / "artifact.json"
        main(["synthesize", write_input(ENDPOINT_TEXT), "--json", "-o", str(artifact)])
        data = json.loads(artifact.read_text(encoding="utf-8"))
        data["rendered"] = data["rendered"].replace("404", "410")
        artifact.write_text(json.dumps(data), encoding="utf-8")

        assert main(["verify", str(artifact)]) == EXIT_VERIFY_FAILED
        assert "round trip: MISMATCH" in capsys.readouterr().out

    def test_forced_format(self, write_input, capsys):
        """--format overrides the selector."""
        code = main(["synthesize", write_input(LOGIN_TEXT), "--non-interactive", "--format", "functional"])
        assert code == EXIT_OK
        assert "# Functional specification" in capsys.readouterr().out


class TestChannels:
    """Answer channels."""

    def test_interactive_prints_question(self):
        """The question goes to the given stream and the prompt answer comes back."""
        out = io.StringIO()
        channel = interactive_channel(prompt=lambda _: "yes", out=out)
        assert channel("Who?") == "yes"
        assert "? Who?" in out.getvalue()

    def test_interactive_eof_cancels(self):
        """End of input is treated as no answer."""

        def prompt(_):
            raise EOFError

        channel = interactive_channel(prompt=prompt, out=io.StringIO())
        assert channel("Who?") is None

    def test_scripted_list(self, engine):
        """List answers are returned in order then run out."""
        session = engine.submit(VAGUE_TEXT)
        channel = scripted_channel(["a", "b"], session)
        assert [channel("q"), channel("q"), channel("q")] == ["a", "b", None]

    def test_scripted_mapping_prefers_specific_key(self, engine):
        """The category-and-ids key beats the bare category."""
        session = engine.submit(VAGUE_TEXT)
        engine.clarify(session)
        channel = scripted_channel(
            {"vague_qualifier": "generic", "vague_qualifier:s1": "specific"}, session
        )
        assert channel("q") == "specific"

    def test_scripted_mapping_without_pending_gap(self, engine):
        """No pending gap means no answer."""
        session = engine.submit(VAGUE_TEXT)
        assert scripted_channel({"s1": "x"}, session)("q") is None

    def test_scripted_mapping_answers_each_gap_once(self, engine):
        """Asking again for the same gap yields no answer."""
        session = engine.submit(VAGUE_TEXT)
        engine.clarify(session)
        channel = scripted_channel({"vague_qualifier": "quickly"}, session)
        assert channel("q") == "quickly"
        assert channel("q") is None
