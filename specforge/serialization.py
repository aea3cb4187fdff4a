"""
Serialization utilities for specforge dataclasses.

Provides SerializableMixin for consistent serialization/deserialization of
the pipeline's data model. Handles the patterns the model uses:
- Enum → value
- Nested dataclasses → recursive to_dict()
- Tuples (frozen collections) ↔ JSON lists
- Optional / union fields

Usage:
    @dataclass(frozen=True)
    class Gap(SerializableMixin):
        category: GapCategory
        related_statement_ids: tuple[str, ...]

    data = gap.to_dict()
    # {"category": "vague_qualifier", "related_statement_ids": ["s1"]}
    restored = Gap.from_dict(data)
"""

from __future__ import annotations

import json
import logging
import types
from dataclasses import fields, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Type, TypeVar, Union, get_args, get_origin, get_type_hints

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="SerializableMixin")


def serialize_value(value: Any) -> Any:
    """Recursively serialize a value for JSON export.

    Handles:
    - None → None
    - datetime → ISO format string (UTC if naive)
    - Enum → value
    - Dataclass with to_dict() → recursive serialization
    - List/tuple/frozenset → list (frozensets sorted for stable output)
    - Dict → recursive serialization of values
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, frozenset):
        return sorted(serialize_value(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    if isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    return value


def _unwrap_optional(target_type: Any) -> Any:
    origin = get_origin(target_type)
    if origin is Union or origin is types.UnionType:
        for arg in get_args(target_type):
            if arg is not type(None):  # noqa: E721
                return arg
    return target_type


def deserialize_value(value: Any, target_type: Any) -> Any:
    """Deserialize a value to a target type.

    Handles:
    - str → Enum (by value or name)
    - dict → dataclass with from_dict()
    - list → tuple (recursing into the element type)
    - str → datetime
    """
    if value is None:
        return None

    target_type = _unwrap_optional(target_type)
    origin = get_origin(target_type)

    if origin is tuple and isinstance(value, (list, tuple)):
        args = [a for a in get_args(target_type) if a is not Ellipsis]
        if len(args) == 1:
            return tuple(deserialize_value(v, args[0]) for v in value)
        if len(args) == len(value):
            return tuple(deserialize_value(v, a) for v, a in zip(value, args))
        return tuple(value)

    if origin is list and isinstance(value, list):
        args = get_args(target_type)
        return [deserialize_value(v, args[0]) for v in value] if args else list(value)

    if target_type is datetime and isinstance(value, str):
        return datetime.fromisoformat(value)

    if isinstance(target_type, type) and issubclass(target_type, Enum):
        for member in target_type:
            if member.value == value or member.name == value:
                return member
        raise ValueError(f"{value!r} is not a valid {target_type.__name__}")

    if (
        isinstance(target_type, type)
        and is_dataclass(target_type)
        and hasattr(target_type, "from_dict")
        and isinstance(value, dict)
    ):
        return target_type.from_dict(value)

    return value


class SerializableMixin:
    """Mixin providing consistent serialization for dataclasses.

    Configuration:
    - _exclude_fields: Tuple of field names to exclude from serialization
    """

    _exclude_fields: ClassVar[tuple[str, ...]] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dictionary.

        Raises:
            TypeError: If the class is not a dataclass
        """
        if not is_dataclass(self):
            raise TypeError(f"{self.__class__.__name__} must be a dataclass")

        result: Dict[str, Any] = {}
        for f in fields(self):
            if f.name in self._exclude_fields or f.name.startswith("_"):
                continue
            result[f.name] = serialize_value(getattr(self, f.name))
        return result

    @classmethod
    def from_dict(cls: Type[T], data: Dict[str, Any]) -> T:
        """Deserialize from dictionary; unknown keys are ignored.

        Raises:
            TypeError: If the class is not a dataclass
        """
        if not is_dataclass(cls):
            raise TypeError(f"{cls.__name__} must be a dataclass")

        try:
            hints = get_type_hints(cls)
        except (NameError, AttributeError, TypeError) as e:
            logger.debug(f"Failed to get type hints for {cls.__name__}: {type(e).__name__}: {e}")
            hints = {}

        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            if not f.init or f.name not in data:
                continue
            kwargs[f.name] = deserialize_value(data[f.name], hints.get(f.name, Any))
        return cls(**kwargs)


def canonical_json(data: Any) -> str:
    """Serialize to a canonical JSON string (sorted keys, no whitespace).

    Equal content always produces byte-identical output, which makes the
    result suitable for hashing.
    """
    return json.dumps(
        serialize_value(data),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


__all__ = [
    "SerializableMixin",
    "serialize_value",
    "deserialize_value",
    "canonical_json",
]
