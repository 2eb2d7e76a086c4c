"""JSON text codec for hosts that only store strings."""

from typing import Any

from pydantic_core import from_json, to_json

from pkvstore.codecs.base import Codec, Record, describe_type, type_adapter
from pkvstore.errors import DecodeError, EncodeError


class JsonCodec(Codec):
    """Self-describing UTF-8 JSON records, human-inspectable in the host.

    Field names are kept, so values decoded through aliases tolerate schema
    changes the same way ``StructMapCodec`` does.

    JSON has no binary type. ``bytes`` values are written as UTF-8 text and
    only come back as ``bytes`` when read with a ``bytes`` annotation; bytes
    that are not valid UTF-8 raise ``EncodeError``.
    """

    name = "json"
    record_type = str
    evolvable = True

    def encode(self, value: Any) -> str:
        try:
            return to_json(value).decode("utf-8")
        except (ValueError, TypeError) as exc:
            raise EncodeError(
                f"Value of type {type(value).__name__} is not JSON serializable: {exc}"
            ) from exc

    def encode_string(self, value: str) -> str:
        return self.encode(value)

    def decode(self, record: Record, value_type: Any = Any) -> Any:
        if isinstance(record, bytes):
            try:
                record = record.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise DecodeError(f"JSON record is not valid UTF-8: {exc}") from exc

        try:
            if value_type is Any:
                return from_json(record)
            return type_adapter(value_type).validate_json(record)
        except (ValueError, TypeError) as exc:
            raise DecodeError(
                f"Record does not match {describe_type(value_type)}: {exc}"
            ) from exc
