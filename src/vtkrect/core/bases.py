"""Core enumerations, binary layout and the encoding strategy interface.

Defines the shared vocabulary every other module builds on:
- ``Precision`` — numeric width of coordinates and arrays (VTK ``type`` names)
- ``Encoding`` — wire encoding of a mesh or array (text, raw, base64)
- ``Placement`` — inline content vs. a slot in the appended section
- ``BinaryLayout`` — byte order and block-header type of one document
- ``EncodingStrategy`` — ABC for the three encode/decode transforms
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

import numpy as np

from vtkrect.constants import DEFAULT_BYTE_ORDER, DEFAULT_HEADER_TYPE, LEGACY_HEADER_TYPE
from vtkrect.errors import ConfigurationError, PrecisionMismatch, UnsupportedDatasetType

_ENDIAN = {"LittleEndian": "<", "BigEndian": ">"}
_HEADER_DTYPES = {"UInt32": "u4", "UInt64": "u8"}


class Precision(str, Enum):
    """Numeric width shared by all coordinates and arrays of a document."""

    FLOAT32 = "Float32"
    FLOAT64 = "Float64"
    INT32 = "Int32"
    INT64 = "Int64"

    @property
    def itemsize(self) -> int:
        return self.dtype().itemsize

    @property
    def is_float(self) -> bool:
        return self in (Precision.FLOAT32, Precision.FLOAT64)

    def dtype(self, byte_order: str = "LittleEndian") -> np.dtype:
        """Return the numpy dtype for this precision in the given byte order."""
        code = {
            Precision.FLOAT32: "f4",
            Precision.FLOAT64: "f8",
            Precision.INT32: "i4",
            Precision.INT64: "i8",
        }[self]
        return np.dtype(_ENDIAN[byte_order] + code)

    @property
    def native_dtype(self) -> np.dtype:
        return self.dtype().newbyteorder("=")

    @classmethod
    def from_dtype(cls, dtype: np.dtype) -> Precision:
        """Pick the narrowest precision that holds *dtype* without loss.

        Raises:
            ConfigurationError: If *dtype* has no lossless VTK equivalent.
        """
        dtype = np.dtype(dtype)
        if dtype.kind == "f":
            for candidate in (cls.FLOAT32, cls.FLOAT64):
                if np.can_cast(dtype, candidate.native_dtype, casting="safe"):
                    return candidate
        elif dtype.kind in "biu":
            for candidate in (cls.INT32, cls.INT64):
                if np.can_cast(dtype, candidate.native_dtype, casting="safe"):
                    return candidate
        raise ConfigurationError(
            f"dtype {dtype} has no lossless VTK precision",
            actual=str(dtype),
        )

    @classmethod
    def from_attribute(cls, value: str | None, name: str | None = None) -> Precision:
        """Parse the ``type`` attribute of a ``DataArray`` element."""
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedDatasetType(
                "unsupported DataArray type",
                name=name,
                expected=[p.value for p in cls],
                actual=value,
            ) from None


def as_precision(value: Precision | str | np.dtype | type) -> Precision:
    """Normalize a precision given as an enum, VTK type name or numpy dtype."""
    if isinstance(value, Precision):
        return value
    if isinstance(value, str) and value in {p.value for p in Precision}:
        return Precision(value)
    return Precision.from_dtype(np.dtype(value))


def coerce_values(
    values,
    precision: Precision | str | None = None,
    name: str | None = None,
) -> tuple[np.ndarray, Precision]:
    """Convert *values* to a read-only native array of the declared precision.

    numpy arrays must convert losslessly; plain sequences are converted as
    long as no float is forced into an integer precision.

    Returns:
        ``(array, precision)``; *precision* is inferred from the data when None.

    Raises:
        PrecisionMismatch: If the conversion would lose information.
    """
    arr = np.asarray(values)
    if precision is None:
        precision = Precision.from_dtype(arr.dtype)
    precision = as_precision(precision)
    target = precision.native_dtype
    lossy = (
        not np.can_cast(arr.dtype, target, casting="safe")
        if isinstance(values, np.ndarray)
        else arr.dtype.kind == "f" and not precision.is_float
    )
    if lossy:
        raise PrecisionMismatch(
            "values cannot be stored without loss",
            name=name,
            expected=precision.value,
            actual=str(arr.dtype),
        )
    out = np.array(arr, dtype=target)
    out.setflags(write=False)
    return out, precision


class Encoding(str, Enum):
    """Wire encoding of a mesh or array."""

    ASCII = "ascii"
    BASE64 = "base64"
    RAW = "raw"

    @property
    def default_placement(self) -> Placement:
        return Placement.APPENDED if self is Encoding.RAW else Placement.INLINE


class Placement(str, Enum):
    """Where the encoded content of an array lives."""

    INLINE = "inline"
    APPENDED = "appended"


def resolve_placement(
    encoding: Encoding,
    placement: Placement | None,
    name: str | None = None,
) -> Placement:
    """Validate an encoding/placement pair, filling in the default placement.

    Text content can only be inline and raw bytes can only live in the
    appended section; base64 may be either.

    Raises:
        ConfigurationError: On an impossible combination.
    """
    if placement is None:
        return encoding.default_placement
    placement = Placement(placement)
    if encoding is Encoding.ASCII and placement is Placement.APPENDED:
        raise ConfigurationError("ascii content cannot be appended", name=name)
    if encoding is Encoding.RAW and placement is Placement.INLINE:
        raise ConfigurationError("raw binary content cannot be inline", name=name)
    return placement


@dataclass(frozen=True)
class BinaryLayout:
    """Byte order and block header type of one document.

    Attributes:
        byte_order: ``"LittleEndian"`` or ``"BigEndian"``.
        header_type: ``"UInt32"`` or ``"UInt64"``; width of the byte-count
            prefix in front of every binary block.
    """

    byte_order: str = DEFAULT_BYTE_ORDER
    header_type: str = DEFAULT_HEADER_TYPE

    def __post_init__(self) -> None:
        if self.byte_order not in _ENDIAN:
            raise ConfigurationError(
                "unknown byte order", expected=list(_ENDIAN), actual=self.byte_order,
            )
        if self.header_type not in _HEADER_DTYPES:
            raise ConfigurationError(
                "unknown header type", expected=list(_HEADER_DTYPES), actual=self.header_type,
            )

    @classmethod
    def from_attributes(cls, byte_order: str | None, header_type: str | None) -> BinaryLayout:
        """Build a layout from ``VTKFile`` attributes, applying VTK's defaults."""
        byte_order = byte_order or DEFAULT_BYTE_ORDER
        header_type = header_type or LEGACY_HEADER_TYPE
        if byte_order not in _ENDIAN:
            raise UnsupportedDatasetType(
                "unsupported byte_order", expected=list(_ENDIAN), actual=byte_order,
            )
        if header_type not in _HEADER_DTYPES:
            raise UnsupportedDatasetType(
                "unsupported header_type", expected=list(_HEADER_DTYPES), actual=header_type,
            )
        return cls(byte_order=byte_order, header_type=header_type)

    @property
    def prefix_dtype(self) -> np.dtype:
        return np.dtype(_ENDIAN[self.byte_order] + _HEADER_DTYPES[self.header_type])

    @property
    def prefix_size(self) -> int:
        return self.prefix_dtype.itemsize

    def payload_dtype(self, precision: Precision) -> np.dtype:
        return precision.dtype(self.byte_order)


class EncodingStrategy(ABC):
    """Abstract base for the transforms between a flat sequence and its wire form."""

    encoding: Encoding

    @abstractmethod
    def encode(
        self,
        values: np.ndarray,
        precision: Precision,
        layout: BinaryLayout,
    ) -> str | bytes:
        """Render a flat array in wire order.

        Args:
            values: 1-D array, already in wire order.
            precision: Declared precision of the values.
            layout: Byte order and header type of the document.

        Returns:
            ``str`` for text-based encodings, ``bytes`` for raw binary.
        """

    @abstractmethod
    def decode(
        self,
        wire: str | bytes,
        precision: Precision,
        layout: BinaryLayout,
        expected_count: int | None = None,
        name: str | None = None,
    ) -> np.ndarray:
        """Invert :meth:`encode`, returning a flat native-endian array.

        Args:
            wire: Encoded content.
            precision: Declared precision of the values.
            layout: Byte order and header type of the document.
            expected_count: If given, the element count the content must hold.
            name: Array name, used for error context.

        Raises:
            LengthMismatch: If the content holds a different element count.
        """
