"""Codec contract shared by every backend.

A codec turns typed values into records (bytes or text) and back. Each
backend pairs with exactly one codec for its whole lifetime; records written
by one codec are not readable by another.
"""

from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Union

from pydantic import TypeAdapter

Record = Union[bytes, str]


@lru_cache(maxsize=256)
def _cached_adapter(value_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(value_type)


def type_adapter(value_type: Any) -> TypeAdapter[Any]:
    """Return a (cached where possible) pydantic adapter for a type.

    Args:
        value_type: Any annotation pydantic can validate

    Returns:
        TypeAdapter validating and serializing that type
    """
    try:
        return _cached_adapter(value_type)
    except TypeError:
        # Unhashable annotations (rare) bypass the cache
        return TypeAdapter(value_type)


def describe_type(value_type: Any) -> str:
    """Readable name for a type annotation, used in error messages."""
    return getattr(value_type, "__qualname__", None) or repr(value_type)


class Codec(ABC):
    """Serialization strategy paired with a backend.

    Attributes:
        name: Short codec identifier
        record_type: ``bytes`` or ``str``, the shape of produced records
        evolvable: True when records keep field names, so a newer value
            shape can still decode them through name-based aliases
    """

    name: str = "codec"
    record_type: type = bytes
    evolvable: bool = False

    @abstractmethod
    def encode(self, value: Any) -> Record:
        """Serialize a value into a record.

        Args:
            value: Value to serialize

        Returns:
            Record in this codec's format

        Raises:
            EncodeError: If the value cannot be represented
        """

    @abstractmethod
    def encode_string(self, value: str) -> Record:
        """Serialize a plain string, skipping generic value conversion.

        Must return exactly what ``encode(value)`` returns for the same string.
        """

    @abstractmethod
    def decode(self, record: Record, value_type: Any = Any) -> Any:
        """Deserialize a record into ``value_type``.

        Args:
            record: Stored record
            value_type: Target type; ``Any`` returns the plain decoded structure

        Returns:
            Decoded value

        Raises:
            DecodeError: If the record is malformed or does not match the type
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
