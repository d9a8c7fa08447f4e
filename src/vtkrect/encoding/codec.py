"""Appended-section framing and offset bookkeeping.

When several arrays are placed in the appended section their length-prefixed
blocks are concatenated in write order after a single ``_`` sentinel::

    <AppendedData encoding="raw">
     _[N0][payload 0][N1][payload 1]...
    </AppendedData>

Each ``DataArray`` header carries ``offset`` = the summed length of every
earlier block (a left fold), so every block is materialized before the first
header is emitted. With ``encoding="base64"`` every block is base64-rendered on
its own and offsets count encoded characters.
"""

from __future__ import annotations

import base64
import itertools
import logging
import math
import re
from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np

from vtkrect.constants import (
    APPENDED_CLOSE,
    APPENDED_ENCODINGS,
    APPENDED_OPEN,
    APPENDED_SENTINEL,
    VTK_FILE,
)
from vtkrect.core.bases import BinaryLayout, Precision
from vtkrect.encoding.strategies import RawBinaryEncoding, b64decode
from vtkrect.errors import (
    ConfigurationError,
    LengthMismatch,
    MalformedEncoding,
    UnsupportedDatasetType,
)

logger = logging.getLogger(__name__)

_ENCODING_ATTR = re.compile(rb"""encoding\s*=\s*["']([^"']*)["']""")


@dataclass(frozen=True)
class AppendedSlot:
    """Position of one block inside the appended section.

    Attributes:
        name: Array (or coordinate) name owning the block.
        offset: Start of the block, relative to the byte after ``_``.
        length: Block length on the wire (prefix + payload, encoded).
    """

    name: str
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length


def plan_offsets(lengths: Iterable[int]) -> list[int]:
    """Fold block lengths into offsets, strictly left to right."""
    return list(itertools.accumulate(lengths, initial=0))[:-1]


def _check_section_encoding(encoding: str) -> str:
    if encoding not in APPENDED_ENCODINGS:
        raise ConfigurationError(
            "unknown appended section encoding",
            expected=list(APPENDED_ENCODINGS),
            actual=encoding,
        )
    return encoding


class AppendedSectionWriter:
    """Accumulates appended blocks in write order.

    Args:
        encoding: ``"raw"`` or ``"base64"``.
        layout: Byte order and header type of the document.
    """

    def __init__(self, encoding: str = "raw", layout: BinaryLayout | None = None) -> None:
        self.encoding = _check_section_encoding(encoding)
        self.layout = layout or BinaryLayout()
        self._raw = RawBinaryEncoding()
        self._names: list[str] = []
        self._blocks: list[bytes] = []

    def reserve(self, name: str, values: np.ndarray, precision: Precision) -> AppendedSlot:
        """Materialize the block for *values* and assign its offset.

        Returns:
            The slot the block occupies; its offset is final.
        """
        block = self._raw.encode(values, precision, self.layout)
        if self.encoding == "base64":
            block = base64.b64encode(block)
        slot = AppendedSlot(name=name, offset=self.length, length=len(block))
        self._names.append(name)
        self._blocks.append(block)
        logger.debug("Reserved appended slot %s at offset %d (%d bytes)", name, slot.offset, slot.length)
        return slot

    @property
    def length(self) -> int:
        return sum(len(block) for block in self._blocks)

    @property
    def slots(self) -> list[AppendedSlot]:
        lengths = [len(block) for block in self._blocks]
        return [
            AppendedSlot(name=name, offset=offset, length=length)
            for name, offset, length in zip(self._names, plan_offsets(lengths), lengths)
        ]

    def __bool__(self) -> bool:
        return bool(self._blocks)

    def payload(self) -> bytes:
        """Return the concatenated section content (without the sentinel)."""
        return b"".join(self._blocks)


@dataclass(frozen=True)
class SplitDocument:
    """A document split at the appended-section start marker.

    Attributes:
        head: XML text with the appended section removed (always well-formed
            up to the synthesized closing ``VTKFile`` tag).
        encoding: Appended section encoding, or None without a section.
        section: Bytes following the ``_`` sentinel, or None.
        terminated: False when the closing ``</AppendedData>`` tag is missing.
    """

    head: bytes
    encoding: str | None = None
    section: bytes | None = None
    terminated: bool = True


def locate_appended_section(content: bytes) -> SplitDocument:
    """Find the single ``<AppendedData>`` section of a document.

    Raises:
        MalformedEncoding: If the start tag or the ``_`` sentinel is broken.
        UnsupportedDatasetType: If the section encoding is unknown.
    """
    start = content.find(APPENDED_OPEN)
    if start == -1:
        return SplitDocument(head=content)

    tag_end = content.find(b">", start)
    if tag_end == -1:
        raise MalformedEncoding("unterminated <AppendedData> start tag")
    tag = content[start:tag_end + 1]
    match = _ENCODING_ATTR.search(tag)
    if match is None:
        raise MalformedEncoding("<AppendedData> is missing its encoding attribute")
    encoding = match.group(1).decode("ascii", errors="replace")
    if encoding not in APPENDED_ENCODINGS:
        raise UnsupportedDatasetType(
            "unsupported appended section encoding",
            expected=list(APPENDED_ENCODINGS),
            actual=encoding,
        )

    head = content[:start] + b"</" + VTK_FILE.encode("ascii") + b">"
    if tag.endswith(b"/>"):
        return SplitDocument(head=head, encoding=encoding, section=b"")

    sentinel = content.find(APPENDED_SENTINEL, tag_end + 1)
    if sentinel == -1 or content[tag_end + 1:sentinel].strip():
        raise MalformedEncoding("appended section does not start with the '_' sentinel")
    data_start = sentinel + 1

    close = content.rfind(APPENDED_CLOSE, data_start)
    if close == -1:
        return SplitDocument(
            head=head, encoding=encoding, section=content[data_start:], terminated=False,
        )
    return SplitDocument(head=head, encoding=encoding, section=content[data_start:close])


class AppendedSection:
    """Read-side view of an appended section.

    Args:
        data: Bytes following the ``_`` sentinel.
        encoding: ``"raw"`` or ``"base64"``.
        layout: Byte order and header type of the document.
        terminated: Whether the closing tag was found after the data.
    """

    def __init__(
        self,
        data: bytes,
        encoding: str = "raw",
        layout: BinaryLayout | None = None,
        terminated: bool = True,
    ) -> None:
        self.data = data
        self.encoding = _check_section_encoding(encoding)
        self.layout = layout or BinaryLayout()
        self.terminated = terminated
        self._raw = RawBinaryEncoding()

    @property
    def content_length(self) -> int:
        """Length of the section up to the line break before its closing tag."""
        data = self.data.rstrip(b" \t")
        if data.endswith(b"\r\n"):
            return len(data) - 2
        if data.endswith(b"\n"):
            return len(data) - 1
        return len(data)

    def _check_offset(self, offset: int, name: str | None) -> None:
        if offset < 0 or offset >= len(self.data):
            raise LengthMismatch(
                "offset points outside the appended section",
                name=name,
                expected=f"0 <= offset < {len(self.data)}",
                actual=offset,
            )

    def _prefix_chars(self) -> int:
        return 4 * math.ceil(self.layout.prefix_size / 3)

    def block_length(self, offset: int, name: str | None = None) -> int:
        """Return the wire length of the block at *offset*.

        Raises:
            LengthMismatch: If the block extends past the end of the section.
        """
        self._check_offset(offset, name)
        if self.encoding == "raw":
            nbytes = self._raw.read_prefix(self.data, self.layout, offset, name)
            length = self.layout.prefix_size + nbytes
        else:
            head = self.data[offset:offset + self._prefix_chars()]
            if len(head) < self._prefix_chars():
                raise LengthMismatch(
                    "base64 block is shorter than its byte-count header",
                    name=name,
                    expected=self._prefix_chars(),
                    actual=len(head),
                )
            nbytes = self._raw.read_prefix(b64decode(head, name), self.layout, 0, name)
            length = 4 * math.ceil((self.layout.prefix_size + nbytes) / 3)
        available = len(self.data) - offset
        if length > available:
            raise LengthMismatch(
                "appended block is truncated",
                name=name,
                expected=length,
                actual=available,
            )
        return length

    def decode(
        self,
        offset: int,
        precision: Precision,
        expected_count: int | None = None,
        name: str | None = None,
    ) -> np.ndarray:
        """Decode the block at *offset* into a flat native-endian array."""
        length = self.block_length(offset, name)
        if self.encoding == "raw":
            values, _ = self._raw.decode_at(
                self.data, precision, self.layout, offset, expected_count, name,
            )
            return values
        block = b64decode(self.data[offset:offset + length], name)
        values, _ = self._raw.decode_at(block, precision, self.layout, 0, expected_count, name)
        return values

    def scan(self, references: Iterable[tuple[str, int]]) -> list[AppendedSlot]:
        """Validate the block layout for every ``(name, offset)`` reference.

        Blocks must tile the section from offset 0 without gaps or overlaps,
        and nothing but whitespace may follow the last block.

        Returns:
            Slots sorted by offset.

        Raises:
            LengthMismatch: On truncation, overlap, gaps or unclaimed bytes.
            MalformedEncoding: If the section's closing tag is missing.
        """
        slots = sorted(
            (AppendedSlot(name, offset, self.block_length(offset, name)) for name, offset in references),
            key=lambda slot: slot.offset,
        )
        expected_offsets = plan_offsets(slot.length for slot in slots)
        for slot, expected in zip(slots, expected_offsets):
            if slot.offset != expected:
                raise LengthMismatch(
                    "appended blocks overlap or leave a gap",
                    name=slot.name,
                    expected=expected,
                    actual=slot.offset,
                )
        end = slots[-1].end if slots else 0
        if self.data[end:].strip():
            raise LengthMismatch(
                "appended section holds bytes no array refers to",
                expected=end,
                actual=len(self.data),
            )
        if not self.terminated:
            raise MalformedEncoding("appended section is missing its closing tag")
        logger.debug("Scanned appended section: %d blocks, %d bytes", len(slots), end)
        return slots
