"""Value codecs paired with store backends."""

from pkvstore.codecs.base import Codec, Record
from pkvstore.codecs.json_codec import JsonCodec
from pkvstore.codecs.msgpack_codec import PositionalCodec, StructMapCodec

__all__ = ["Codec", "Record", "JsonCodec", "PositionalCodec", "StructMapCodec"]
