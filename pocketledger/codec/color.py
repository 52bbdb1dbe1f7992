"""
Hex Color Codec

Colors are stored as hex strings. Parsing is forgiving, formatting is strict:

- `parse_hex` strips every non-alphanumeric character first ("#", spaces,
  dashes), then accepts 3 digits (RGB, each nibble duplicated), 6 digits
  (RGB, opaque) or 8 digits (ARGB, alpha FIRST). Anything else - wrong
  length, non-hex letters, non-string input - resolves to FALLBACK_COLOR.
  It never raises.
- `format_hex` always emits "#RRGGBB".

KNOWN ROUND-TRIP GAP: alpha is dropped on re-encode, so an 8-digit color
with alpha < FF comes back opaque after a save/load cycle. This matches the
behaviour existing data was written with and is kept on purpose.
"""

import math
import re
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer


_NON_ALNUM = re.compile(r"[^0-9A-Za-z]")
_HEX_DIGITS = re.compile(r"^[0-9A-Fa-f]+$")


class Color(BaseModel):
    """
    An sRGB color with fractional channels in [0, 1].
    """
    model_config = ConfigDict(frozen=True)

    red: float = Field(ge=0.0, le=1.0)
    green: float = Field(ge=0.0, le=1.0)
    blue: float = Field(ge=0.0, le=1.0)
    alpha: float = Field(default=1.0, ge=0.0, le=1.0)

    @classmethod
    def from_rgb255(cls, red: int, green: int, blue: int, alpha: int = 255) -> "Color":
        return cls(
            red=red / 255,
            green=green / 255,
            blue=blue / 255,
            alpha=alpha / 255,
        )

    @classmethod
    def from_hex(cls, text: Any) -> "Color":
        return parse_hex(text)

    def rgb255(self) -> tuple[int, int, int]:
        """Channels as 0-255 integers, rounded to nearest."""
        return (
            channel_to_byte(self.red),
            channel_to_byte(self.green),
            channel_to_byte(self.blue),
        )

    def to_hex(self) -> str:
        return format_hex(self)


FALLBACK_COLOR = Color(red=1.0, green=1.0, blue=1.0, alpha=1.0)

# Platform system palette, used for seeded categories and folders
SYSTEM_COLORS: dict[str, str] = {
    "red": "#FF3B30",
    "orange": "#FF9500",
    "yellow": "#FFCC00",
    "green": "#34C759",
    "mint": "#00C7BE",
    "teal": "#30B0C7",
    "cyan": "#32ADE6",
    "blue": "#007AFF",
    "indigo": "#5856D6",
    "purple": "#AF52DE",
    "pink": "#FF2D55",
    "brown": "#A2845E",
    "gray": "#8E8E93",
}


def channel_to_byte(value: float) -> int:
    """Map a 0-1 channel to 0-255, rounding half up."""
    clamped = min(max(value, 0.0), 1.0)
    return int(math.floor(clamped * 255 + 0.5))


def parse_hex(text: Any) -> Color:
    """
    Decode a hex color string.

    Returns FALLBACK_COLOR for anything that is not 3, 6 or 8 hex digits
    once non-alphanumeric characters are removed.
    """
    if not isinstance(text, str):
        return FALLBACK_COLOR

    digits = _NON_ALNUM.sub("", text)
    if not _HEX_DIGITS.match(digits):
        return FALLBACK_COLOR

    value = int(digits, 16)
    if len(digits) == 3:
        alpha = 255
        red = (value >> 8) * 17
        green = (value >> 4 & 0xF) * 17
        blue = (value & 0xF) * 17
    elif len(digits) == 6:
        alpha = 255
        red = value >> 16
        green = value >> 8 & 0xFF
        blue = value & 0xFF
    elif len(digits) == 8:
        alpha = value >> 24
        red = value >> 16 & 0xFF
        green = value >> 8 & 0xFF
        blue = value & 0xFF
    else:
        return FALLBACK_COLOR

    return Color.from_rgb255(red, green, blue, alpha)


def format_hex(color: Color) -> str:
    """Encode a color as #RRGGBB. Alpha is not written."""
    red, green, blue = color.rgb255()
    return f"#{red:02X}{green:02X}{blue:02X}"


def _coerce_color(value: Any) -> Any:
    if isinstance(value, str):
        return parse_hex(value)
    return value


# Field type for models: accepts Color or hex text, serializes to hex in JSON
HexColor = Annotated[
    Color,
    BeforeValidator(_coerce_color),
    PlainSerializer(format_hex, return_type=str, when_used="json"),
]
