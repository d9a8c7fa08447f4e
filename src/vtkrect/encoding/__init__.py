"""Wire encodings and appended-section framing."""

from vtkrect.encoding.codec import (
    AppendedSection,
    AppendedSectionWriter,
    AppendedSlot,
    locate_appended_section,
    plan_offsets,
)
from vtkrect.encoding.strategies import (
    Base64Encoding,
    RawBinaryEncoding,
    TextEncoding,
    strategy_for,
)

__all__ = [
    "AppendedSection",
    "AppendedSectionWriter",
    "AppendedSlot",
    "Base64Encoding",
    "RawBinaryEncoding",
    "TextEncoding",
    "locate_appended_section",
    "plan_offsets",
    "strategy_for",
]
