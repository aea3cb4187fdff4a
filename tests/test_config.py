"""Tests for engine configuration."""

import pytest

from specforge.config import DEFAULT_MAX_INPUT_CHARS, EngineConfig, get_engine_config
from specforge.exceptions import ConfigurationError
from specforge.types import PrecedenceStrategy


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SPECFORGE_MAX_INPUT_CHARS", "SPECFORGE_PRECEDENCE", "SPECFORGE_VOCABULARY"):
        monkeypatch.delenv(name, raising=False)


class TestEngineConfig:
    """Defaults and validation."""

    def test_defaults(self):
        """Default config uses first-seen precedence and the packaged vocabulary."""
        config = EngineConfig()
        assert config.max_input_chars == DEFAULT_MAX_INPUT_CHARS
        assert config.precedence is PrecedenceStrategy.FIRST_SEEN
        assert config.vocabulary_path is None

    def test_string_precedence_is_coerced(self):
        """Precedence may be given by name."""
        config = EngineConfig(precedence="most_specific")
        assert config.precedence is PrecedenceStrategy.MOST_SPECIFIC

    def test_unknown_precedence(self):
        """An unknown strategy is a configuration error."""
        with pytest.raises(ConfigurationError):
            EngineConfig(precedence="loudest")

    def test_invalid_limit(self):
        """The input limit must be positive."""
        with pytest.raises(ConfigurationError):
            EngineConfig(max_input_chars=0)

    def test_with_overrides(self):
        """Overrides produce a new config and leave the original alone."""
        base = EngineConfig()
        updated = base.with_overrides(max_input_chars=10, precedence="most_specific")
        assert updated.max_input_chars == 10
        assert updated.precedence is PrecedenceStrategy.MOST_SPECIFIC
        assert base.max_input_chars == DEFAULT_MAX_INPUT_CHARS

    def test_frozen(self):
        """Configs are immutable."""
        with pytest.raises(AttributeError):
            EngineConfig().max_input_chars = 5

    def test_exceeds_input_limit(self):
        """The limit is a plain character count."""
        config = EngineConfig(max_input_chars=5)
        assert config.exceeds_input_limit("123456")
        assert not config.exceeds_input_limit("12345")


class TestEnvironment:
    """SPECFORGE_* overrides."""

    def test_no_env(self):
        """Without variables the base config is returned unchanged."""
        base = EngineConfig(max_input_chars=42)
        assert get_engine_config(base) is base

    def test_env_overrides(self, monkeypatch):
        """Variables override the base config."""
        monkeypatch.setenv("SPECFORGE_MAX_INPUT_CHARS", "500")
        monkeypatch.setenv("SPECFORGE_PRECEDENCE", "MOST_SPECIFIC")
        monkeypatch.setenv("SPECFORGE_VOCABULARY", "/tmp/vocab.yaml")
        config = get_engine_config()
        assert config.max_input_chars == 500
        assert config.precedence is PrecedenceStrategy.MOST_SPECIFIC
        assert config.vocabulary_path == "/tmp/vocab.yaml"

    def test_invalid_int_is_ignored(self, monkeypatch):
        """A non-numeric limit falls back to the base value."""
        monkeypatch.setenv("SPECFORGE_MAX_INPUT_CHARS", "lots")
        assert get_engine_config().max_input_chars == DEFAULT_MAX_INPUT_CHARS

    def test_invalid_precedence_raises(self, monkeypatch):
        """An unknown strategy in the environment is an error."""
        monkeypatch.setenv("SPECFORGE_PRECEDENCE", "random")
        with pytest.raises(ConfigurationError):
            get_engine_config()
