"""MessagePack codecs.

Two binary layouts share msgpack as the wire format:

- ``StructMapCodec`` writes models as maps keyed by field name. Readers may
  reorder, add, drop or alias fields, which is what makes schema migration
  possible.
- ``PositionalCodec`` writes models as arrays in field declaration order.
  Records are smaller, but any change to a model's field list makes old
  records undecodable.
"""

import dataclasses
import types
import typing
from collections.abc import Mapping, Sequence
from typing import Any, Union

import msgpack
from pydantic import AliasChoices, AliasPath, BaseModel
from pydantic_core import to_jsonable_python

from pkvstore.codecs.base import Codec, Record, describe_type, type_adapter
from pkvstore.errors import DecodeError, EncodeError

_UNPACK_ERRORS = (ValueError, TypeError, msgpack.exceptions.UnpackException)
_PACK_ERRORS = (ValueError, TypeError, OverflowError)


def _pack(obj: Any) -> bytes:
    try:
        return msgpack.packb(obj, use_bin_type=True)
    except _PACK_ERRORS as exc:
        raise EncodeError(f"MessagePack serialization failed: {exc}") from exc


def _unpack(record: Record) -> Any:
    if isinstance(record, str):
        raise DecodeError("MessagePack record must be bytes, got text")
    try:
        return msgpack.unpackb(record, raw=False, strict_map_key=False)
    except _UNPACK_ERRORS as exc:
        raise DecodeError(f"MessagePack deserialization failed: {exc}") from exc


def _jsonable(value: Any) -> Any:
    try:
        return to_jsonable_python(value)
    except (ValueError, TypeError) as exc:
        raise EncodeError(
            f"Value of type {type(value).__name__} is not serializable: {exc}"
        ) from exc


def _validate(data: Any, value_type: Any) -> Any:
    if value_type is Any:
        return data
    try:
        return type_adapter(value_type).validate_python(data)
    except (ValueError, TypeError) as exc:
        raise DecodeError(
            f"Record does not match {describe_type(value_type)}: {exc}"
        ) from exc


def _input_key(name: str, field: Any) -> str:
    """Key pydantic expects in input data for a model field."""
    if field.alias:
        return field.alias
    alias = field.validation_alias
    if isinstance(alias, str):
        return alias
    if isinstance(alias, AliasChoices):
        for choice in alias.choices:
            if isinstance(choice, str):
                return choice
    if isinstance(alias, AliasPath):
        # Records never carry nested paths
        return name
    return name


def _map_key(key: Any) -> Any:
    if isinstance(key, (bytes, bytearray)):
        return bytes(key)
    return _jsonable(key)


def _plain(value: Any, positional: bool) -> Any:
    """Reduce a value to msgpack-native data.

    Models and dataclass instances become maps keyed by input name, or lists
    in field order when ``positional`` is set. Binary data stays bytes so it
    is packed as msgpack bin and unpacks as bytes again. Other leaves go
    through pydantic's JSON-compatible conversion (datetimes, enums, UUIDs).
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, BaseModel):
        fields = type(value).model_fields
        if positional:
            return [_plain(getattr(value, name), positional) for name in fields]
        data = {
            _input_key(name, field): _plain(getattr(value, name), positional)
            for name, field in fields.items()
        }
        for name, extra in (value.model_extra or {}).items():
            data[name] = _plain(extra, positional)
        return data
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        if positional:
            return [_plain(getattr(value, f.name), positional) for f in dataclasses.fields(value)]
        return {f.name: _plain(getattr(value, f.name), positional) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {_map_key(k): _plain(v, positional) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(item, positional) for item in value]
    return _jsonable(value)


class StructMapCodec(Codec):
    """MessagePack with models encoded as name-keyed maps.

    Example:
        >>> codec = StructMapCodec()
        >>> record = codec.encode(User(name="alice", age=32))
        >>> codec.decode(record, User)
        User(name='alice', age=32)
    """

    name = "msgpack-map"
    record_type = bytes
    evolvable = True

    def encode(self, value: Any) -> bytes:
        if isinstance(value, str):
            return self.encode_string(value)
        return _pack(_plain(value, positional=False))

    def encode_string(self, value: str) -> bytes:
        return _pack(value)

    def decode(self, record: Record, value_type: Any = Any) -> Any:
        return _validate(_unpack(record), value_type)


# ----------------------------------------------------------------------
# Positional layout
# ----------------------------------------------------------------------


def _model_fields(annotation: Any) -> Union[list[tuple[str, Any]], None]:
    """(input key, annotation) pairs for a model or dataclass, else None."""
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return [
            (_input_key(name, field), field.annotation)
            for name, field in annotation.model_fields.items()
        ]
    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        hints = typing.get_type_hints(annotation)
        return [(f.name, hints.get(f.name, Any)) for f in dataclasses.fields(annotation)]
    return None


def _from_positional(data: Any, annotation: Any) -> Any:
    """Rebuild name-keyed mappings from positional data, guided by type hints."""
    origin = typing.get_origin(annotation)

    if origin is typing.Annotated:
        return _from_positional(data, typing.get_args(annotation)[0])

    fields = _model_fields(annotation)
    if fields is not None:
        if not isinstance(data, list):
            return data
        if len(data) != len(fields):
            raise DecodeError(
                f"Positional record has {len(data)} fields, "
                f"{describe_type(annotation)} declares {len(fields)}"
            )
        return {
            key: _from_positional(item, field_type)
            for (key, field_type), item in zip(fields, data)
        }

    if origin is Union or origin is types.UnionType:
        if isinstance(data, list):
            for candidate in typing.get_args(annotation):
                candidate_fields = _model_fields(candidate)
                if candidate_fields is not None and len(candidate_fields) == len(data):
                    return _from_positional(data, candidate)
            for candidate in typing.get_args(annotation):
                if typing.get_origin(candidate) in (list, set, frozenset, tuple):
                    return _from_positional(data, candidate)
        return data

    args = typing.get_args(annotation)
    if isinstance(data, list) and origin in (list, set, frozenset, Sequence):
        item_type = args[0] if args else Any
        return [_from_positional(item, item_type) for item in data]
    if isinstance(data, list) and origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return [_from_positional(item, args[0]) for item in data]
        if args and len(args) == len(data):
            return [_from_positional(item, arg) for item, arg in zip(data, args)]
        return data
    if isinstance(data, dict) and origin in (dict, Mapping):
        value_type = args[1] if len(args) == 2 else Any
        return {k: _from_positional(v, value_type) for k, v in data.items()}
    return data


class PositionalCodec(Codec):
    """Compact MessagePack with models encoded as positional arrays.

    No field names are stored, so this codec is not evolvable: adding,
    removing or reordering model fields invalidates existing records.
    """

    name = "msgpack-positional"
    record_type = bytes
    evolvable = False

    def encode(self, value: Any) -> bytes:
        if isinstance(value, str):
            return self.encode_string(value)
        return _pack(_plain(value, positional=True))

    def encode_string(self, value: str) -> bytes:
        return _pack(value)

    def decode(self, record: Record, value_type: Any = Any) -> Any:
        data = _unpack(record)
        if value_type is Any:
            return data
        return _validate(_from_positional(data, value_type), value_type)
