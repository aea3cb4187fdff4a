"""
Engine configuration.

Provides the process-wide settings for the synthesis pipeline with support
for environment variable overrides. Settings are immutable once built.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from specforge.exceptions import ConfigurationError
from specforge.types import PrecedenceStrategy

# Recommended ceiling for raw input. The core never enforces it; callers
# (the CLI among them) check it before submitting text.
DEFAULT_MAX_INPUT_CHARS = 20_000


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for a SpecEngine instance.

    Attributes:
        max_input_chars: Recommended maximum raw input length for callers.
        precedence: Ordering strategy for rule-table conditions.
        vocabulary_path: Optional vocabulary YAML replacing the packaged one.

    Example:
        config = EngineConfig(precedence=PrecedenceStrategy.MOST_SPECIFIC)
        engine = SpecEngine(config)
    """

    max_input_chars: int = DEFAULT_MAX_INPUT_CHARS
    precedence: PrecedenceStrategy = PrecedenceStrategy.FIRST_SEEN
    vocabulary_path: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_input_chars < 1:
            raise ConfigurationError("max_input_chars must be at least 1")
        if not isinstance(self.precedence, PrecedenceStrategy):
            object.__setattr__(self, "precedence", _parse_precedence(str(self.precedence)))

    def with_overrides(
        self,
        max_input_chars: Optional[int] = None,
        precedence: Optional[PrecedenceStrategy | str] = None,
        vocabulary_path: Optional[str] = None,
    ) -> EngineConfig:
        """Create a new config with the specified overrides applied."""
        return EngineConfig(
            max_input_chars=(
                max_input_chars if max_input_chars is not None else self.max_input_chars
            ),
            precedence=precedence if precedence is not None else self.precedence,
            vocabulary_path=(
                vocabulary_path if vocabulary_path is not None else self.vocabulary_path
            ),
        )

    def exceeds_input_limit(self, raw_text: str) -> bool:
        return len(raw_text) > self.max_input_chars


def _parse_precedence(value: str) -> PrecedenceStrategy:
    try:
        return PrecedenceStrategy(value.strip().lower())
    except ValueError as e:
        choices = ", ".join(p.value for p in PrecedenceStrategy)
        raise ConfigurationError(
            f"Unknown precedence strategy {value!r}", {"choices": choices}
        ) from e


def _get_env_int(name: str) -> Optional[int]:
    """Get an integer from environment variable, or None if not set/invalid."""
    value = os.environ.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def get_engine_config(base: Optional[EngineConfig] = None) -> EngineConfig:
    """Get engine configuration with environment overrides applied.

    Environment variables:
        SPECFORGE_MAX_INPUT_CHARS: Override the recommended input ceiling
        SPECFORGE_PRECEDENCE: ``first_seen`` or ``most_specific``
        SPECFORGE_VOCABULARY: Path to a vocabulary YAML file

    Args:
        base: Config to apply overrides to (defaults to EngineConfig())

    Raises:
        ConfigurationError: If SPECFORGE_PRECEDENCE names an unknown strategy
    """
    config = base or EngineConfig()

    env_max = _get_env_int("SPECFORGE_MAX_INPUT_CHARS")
    env_precedence = os.environ.get("SPECFORGE_PRECEDENCE")
    env_vocabulary = os.environ.get("SPECFORGE_VOCABULARY") or None

    if any(v is not None for v in (env_max, env_precedence, env_vocabulary)):
        return config.with_overrides(
            max_input_chars=env_max,
            precedence=_parse_precedence(env_precedence) if env_precedence else None,
            vocabulary_path=env_vocabulary,
        )
    return config


__all__ = [
    "DEFAULT_MAX_INPUT_CHARS",
    "EngineConfig",
    "get_engine_config",
]
