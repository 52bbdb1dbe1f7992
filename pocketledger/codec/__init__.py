"""Serialization codecs for records and colors."""

from pocketledger.codec.color import (
    FALLBACK_COLOR,
    SYSTEM_COLORS,
    Color,
    HexColor,
    format_hex,
    parse_hex,
)
from pocketledger.codec.records import SCHEMA_VERSION, RecordCodec

__all__ = [
    "FALLBACK_COLOR",
    "SCHEMA_VERSION",
    "SYSTEM_COLORS",
    "Color",
    "HexColor",
    "RecordCodec",
    "format_hex",
    "parse_hex",
]
