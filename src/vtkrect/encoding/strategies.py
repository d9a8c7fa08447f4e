"""Text, raw-binary and base64 encodings of a flat numeric sequence.

Raw binary framing (one block)::

    [ header_type byte count N ][ N payload bytes in byte_order ]

Base64 is layered on top of that framing: the whole block (prefix + payload)
is base64-encoded as one stream, which is what VTK readers expect for both
inline ``format="binary"`` arrays and base64 appended sections.

Example::

    from vtkrect.core.bases import BinaryLayout, Encoding, Precision
    from vtkrect.encoding.strategies import strategy_for

    layout = BinaryLayout()
    text = strategy_for(Encoding.BASE64).encode(values, Precision.FLOAT64, layout)
"""

from __future__ import annotations

import base64
import binascii
import logging
import re

import numpy as np

from vtkrect.core.bases import BinaryLayout, Encoding, EncodingStrategy, Precision
from vtkrect.errors import LengthMismatch, MalformedEncoding, MalformedNumber

logger = logging.getLogger(__name__)

# Plain decimal forms only: no digit separators, hex or complex literals.
_INTEGER_TOKEN = re.compile(r"[+-]?\d+")
_FLOAT_TOKEN = re.compile(r"[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)", re.IGNORECASE)


def _check_count(count: int, expected_count: int | None, name: str | None, unit: str) -> None:
    if expected_count is not None and count != expected_count:
        raise LengthMismatch(
            f"{unit} count disagrees with the expected length",
            name=name,
            expected=expected_count,
            actual=count,
        )


def format_values(values: np.ndarray, precision: Precision) -> list[str]:
    """Format each value with the shortest text that round-trips at *precision*."""
    if precision is Precision.FLOAT64:
        # Python floats repr as the shortest round-tripping string
        return [repr(v) for v in values.astype(np.float64).tolist()]
    if precision is Precision.FLOAT32:
        # numpy renders float32 scalars with the shortest unique digits
        return [str(v) for v in values.astype(np.float32)]
    return [str(v) for v in values.tolist()]


class TextEncoding(EncodingStrategy):
    """Whitespace-separated decimal text.

    Args:
        values_per_line: Wrap the rendered values after this many tokens.
    """

    encoding = Encoding.ASCII

    def __init__(self, values_per_line: int = 6) -> None:
        if values_per_line < 1:
            raise ValueError(f"values_per_line must be >= 1, got {values_per_line}")
        self.values_per_line = values_per_line

    def encode(
        self,
        values: np.ndarray,
        precision: Precision,
        layout: BinaryLayout,
    ) -> str:
        tokens = format_values(np.asarray(values), precision)
        step = self.values_per_line
        lines = [" ".join(tokens[i:i + step]) for i in range(0, len(tokens), step)]
        return "\n".join(lines)

    def decode(
        self,
        wire: str | bytes,
        precision: Precision,
        layout: BinaryLayout,
        expected_count: int | None = None,
        name: str | None = None,
    ) -> np.ndarray:
        if isinstance(wire, bytes):
            wire = wire.decode("ascii", errors="replace")
        tokens = wire.split()
        dtype = precision.native_dtype
        pattern = _FLOAT_TOKEN if precision.is_float else _INTEGER_TOKEN
        for index, token in enumerate(tokens):
            if not pattern.fullmatch(token):
                raise MalformedNumber(
                    f"cannot parse token {token!r} at index {index} as {precision.value}",
                    name=name,
                )
        if precision.is_float:
            with np.errstate(over="ignore"):
                values = np.array(tokens, dtype=dtype)
            for index in np.flatnonzero(np.isinf(values)):
                if "inf" not in tokens[index].lower():
                    raise MalformedNumber(
                        f"token {tokens[index]!r} at index {index} overflows {precision.value}",
                        name=name,
                    )
        else:
            info = np.iinfo(dtype)
            for index, token in enumerate(tokens):
                if not info.min <= int(token) <= info.max:
                    raise MalformedNumber(
                        f"token {token!r} at index {index} is out of range for {precision.value}",
                        name=name,
                    )
            values = np.array([int(token) for token in tokens], dtype=dtype)
        _check_count(values.size, expected_count, name, "token")
        return values


class RawBinaryEncoding(EncodingStrategy):
    """Length-prefixed native bytes in the document's byte order."""

    encoding = Encoding.RAW

    def encode(
        self,
        values: np.ndarray,
        precision: Precision,
        layout: BinaryLayout,
    ) -> bytes:
        payload = np.ascontiguousarray(values, dtype=layout.payload_dtype(precision)).tobytes()
        prefix = np.array([len(payload)], dtype=layout.prefix_dtype).tobytes()
        return prefix + payload

    def read_prefix(
        self,
        wire: bytes,
        layout: BinaryLayout,
        start: int = 0,
        name: str | None = None,
    ) -> int:
        """Return the payload byte count stored at *start*.

        Raises:
            LengthMismatch: If fewer bytes than a full prefix remain.
        """
        end = start + layout.prefix_size
        if end > len(wire):
            raise LengthMismatch(
                "binary block is shorter than its byte-count header",
                name=name,
                expected=layout.prefix_size,
                actual=max(len(wire) - start, 0),
            )
        return int(np.frombuffer(wire, dtype=layout.prefix_dtype, count=1, offset=start)[0])

    def decode(
        self,
        wire: str | bytes,
        precision: Precision,
        layout: BinaryLayout,
        expected_count: int | None = None,
        name: str | None = None,
    ) -> np.ndarray:
        return self.decode_at(wire, precision, layout, 0, expected_count, name)[0]

    def decode_at(
        self,
        wire: bytes,
        precision: Precision,
        layout: BinaryLayout,
        start: int = 0,
        expected_count: int | None = None,
        name: str | None = None,
    ) -> tuple[np.ndarray, int]:
        """Decode the block beginning at *start*.

        Returns:
            ``(values, consumed)`` where *consumed* is prefix + payload bytes.
        """
        nbytes = self.read_prefix(wire, layout, start, name)
        itemsize = precision.itemsize
        if expected_count is not None and nbytes != expected_count * itemsize:
            raise LengthMismatch(
                "block byte count disagrees with the expected length",
                name=name,
                expected=expected_count * itemsize,
                actual=nbytes,
            )
        if nbytes % itemsize:
            raise LengthMismatch(
                f"block byte count is not a multiple of the {precision.value} item size",
                name=name,
                expected=itemsize,
                actual=nbytes,
            )
        data_start = start + layout.prefix_size
        available = len(wire) - data_start
        if nbytes > available:
            raise LengthMismatch(
                "binary block is truncated",
                name=name,
                expected=nbytes,
                actual=available,
            )
        values = np.frombuffer(
            wire,
            dtype=layout.payload_dtype(precision),
            count=nbytes // itemsize,
            offset=data_start,
        )
        return values.astype(precision.native_dtype), layout.prefix_size + nbytes


class Base64Encoding(EncodingStrategy):
    """Base64 text of a complete raw-binary block."""

    encoding = Encoding.BASE64

    def __init__(self) -> None:
        self._raw = RawBinaryEncoding()

    def encode(
        self,
        values: np.ndarray,
        precision: Precision,
        layout: BinaryLayout,
    ) -> str:
        return base64.b64encode(self._raw.encode(values, precision, layout)).decode("ascii")

    def decode(
        self,
        wire: str | bytes,
        precision: Precision,
        layout: BinaryLayout,
        expected_count: int | None = None,
        name: str | None = None,
    ) -> np.ndarray:
        block = b64decode(wire, name)
        values, consumed = self._raw.decode_at(block, precision, layout, 0, expected_count, name)
        if consumed != len(block):
            raise LengthMismatch(
                "base64 content holds bytes beyond its block",
                name=name,
                expected=consumed,
                actual=len(block),
            )
        return values


def b64decode(wire: str | bytes, name: str | None = None) -> bytes:
    """Strict base64 decode that ignores embedded whitespace.

    Raises:
        MalformedEncoding: On an invalid alphabet or bad padding.
    """
    if isinstance(wire, str):
        try:
            wire = wire.encode("ascii")
        except UnicodeEncodeError:
            raise MalformedEncoding("base64 content is not ASCII", name=name) from None
    compact = b"".join(wire.split())
    try:
        return base64.b64decode(compact, validate=True)
    except binascii.Error as exc:
        raise MalformedEncoding(f"invalid base64 content: {exc}", name=name) from exc


def strategy_for(encoding: Encoding, values_per_line: int = 6) -> EncodingStrategy:
    """Return the strategy implementing *encoding*."""
    encoding = Encoding(encoding)
    if encoding is Encoding.ASCII:
        return TextEncoding(values_per_line)
    if encoding is Encoding.BASE64:
        return Base64Encoding()
    return RawBinaryEncoding()
