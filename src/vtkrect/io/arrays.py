"""Array contract: flat wire order, DataArray fragments and recovery.

Scalar arrays are shaped ``(nx, ny[, nz])`` and multi-component arrays
``(components, nx, ny[, nz])``, component axis first. On the wire the values
run component fastest, then x, then y, then z, which is numpy's Fortran order
over the component-first array::

    data[c, i, j, k]  <->  flat[c + C * (i + nx * (j + ny * k))]

A 1-D array holding the full flattened length is taken to be in wire order
already.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from xml.sax.saxutils import quoteattr

import numpy as np

from vtkrect.constants import DATA_ARRAY, FORMAT_APPENDED, FORMAT_ASCII, FORMAT_BINARY
from vtkrect.core.bases import (
    BinaryLayout,
    Encoding,
    Placement,
    Precision,
    as_precision,
    coerce_values,
    resolve_placement,
)
from vtkrect.encoding.codec import AppendedSection, AppendedSectionWriter, AppendedSlot
from vtkrect.encoding.strategies import strategy_for
from vtkrect.errors import (
    ConfigurationError,
    MalformedEncoding,
    PrecisionMismatch,
    ShapeMismatch,
)
from vtkrect.geometry.rectilinear import Spans

logger = logging.getLogger(__name__)

_FORMATS = (FORMAT_ASCII, FORMAT_BINARY, FORMAT_APPENDED)


def expected_shape(spans: Spans, components: int = 1) -> tuple[int, ...]:
    """Shape of a recovered array on *spans* with *components* per point."""
    if components == 1:
        return spans.shape
    return (components, *spans.shape)


def flatten(
    data,
    spans: Spans,
    components: int = 1,
    name: str | None = None,
) -> np.ndarray:
    """Lay *data* out in wire order.

    Raises:
        ShapeMismatch: If *data* is neither the expected shape nor a flat
            array of the full length.
    """
    arr = np.asarray(data)
    length = spans.array_length(components)
    if arr.ndim == 1 and arr.size == length:
        return arr
    shape = expected_shape(spans, components)
    if arr.shape != shape:
        raise ShapeMismatch(
            "array shape disagrees with spans x components",
            name=name,
            expected=shape,
            actual=arr.shape,
        )
    return arr.ravel(order="F")


def unflatten(
    flat: np.ndarray,
    spans: Spans,
    components: int = 1,
    name: str | None = None,
) -> np.ndarray:
    """Inverse of :func:`flatten`: reshape a wire-order sequence.

    Raises:
        ShapeMismatch: If the element count disagrees with spans x components.
    """
    flat = np.asarray(flat)
    length = spans.array_length(components)
    if flat.size != length:
        raise ShapeMismatch(
            "element count disagrees with spans x components",
            name=name,
            expected=length,
            actual=flat.size,
        )
    return flat.reshape(expected_shape(spans, components), order="F")


@dataclass(eq=False)
class NamedArray:
    """One point-data array together with its wire description.

    Attributes:
        name: ``Name`` attribute; unique within a document.
        data: Shaped or wire-order values.
        components: Values per point (1 = scalar).
        precision: Numeric width; inferred from *data* when None.
        encoding: Wire encoding.
        placement: Inline or appended; derived from *encoding* when None.
    """

    name: str
    data: np.ndarray
    components: int = 1
    precision: Precision | None = None
    encoding: Encoding = Encoding.ASCII
    placement: Placement | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationError("array name must not be empty")
        if int(self.components) < 1:
            raise ConfigurationError(
                "component count must be at least 1", name=self.name, actual=self.components,
            )
        self.components = int(self.components)
        self.data, self.precision = coerce_values(self.data, self.precision, name=self.name)
        self.encoding = Encoding(self.encoding)
        self.placement = resolve_placement(self.encoding, self.placement, name=self.name)

    @classmethod
    def from_data(
        cls,
        name: str,
        data,
        dims: int,
        precision: Precision | None = None,
        encoding: Encoding = Encoding.ASCII,
        placement: Placement | None = None,
    ) -> NamedArray:
        """Wrap a shaped array, reading the component count off its leading axis."""
        arr = np.asarray(data)
        components = arr.shape[0] if arr.ndim == dims + 1 else 1
        return cls(name, arr, components, precision, encoding, placement)

    def with_encoding(self, encoding: Encoding, placement: Placement | None = None) -> NamedArray:
        return NamedArray(self.name, self.data, self.components, self.precision, encoding, placement)


def as_named_arrays(
    arrays: Sequence[NamedArray] | Mapping[str, np.ndarray],
    dims: int,
    encoding: Encoding = Encoding.ASCII,
    placement: Placement | None = None,
) -> list[NamedArray]:
    """Normalize a name -> ndarray mapping (or a list of NamedArray) to NamedArrays."""
    if isinstance(arrays, Mapping):
        return [
            NamedArray.from_data(name, data, dims, encoding=encoding, placement=placement)
            for name, data in arrays.items()
        ]
    return list(arrays)


@dataclass
class WriteContext:
    """Per-document state shared by every :func:`emit` call.

    Attributes:
        spans: Spans of the piece being written.
        layout: Byte order and header type.
        appended: Collector for appended blocks, None if nothing is appended.
        values_per_line: Wrapping width of text content.
    """

    spans: Spans
    layout: BinaryLayout = field(default_factory=BinaryLayout)
    appended: AppendedSectionWriter | None = None
    values_per_line: int = 6


@dataclass(frozen=True)
class Fragment:
    """A rendered ``DataArray`` element and the appended slot it refers to."""

    xml: str
    slot: AppendedSlot | None = None


def _open_tag(attrs: list[tuple[str, object]], close: bool = False) -> str:
    rendered = " ".join(f"{key}={quoteattr(str(value))}" for key, value in attrs)
    return f"<{DATA_ARRAY} {rendered}{'/' if close else ''}>"


def emit_values(
    name: str,
    flat: np.ndarray,
    precision: Precision,
    encoding: Encoding,
    placement: Placement,
    context: WriteContext,
    components: int = 1,
) -> Fragment:
    """Render one wire-order sequence as a ``DataArray`` element.

    Inline content is encoded into the element body. Appended content is
    materialized into the context's section writer, whose running offset is
    written into the element header.

    Raises:
        ConfigurationError: If appended content has no matching section.
    """
    attrs: list[tuple[str, object]] = [("type", precision.value), ("Name", name)]
    if components > 1:
        attrs.append(("NumberOfComponents", components))

    if placement is Placement.APPENDED:
        section = context.appended
        if section is None or section.encoding != encoding.value:
            raise ConfigurationError(
                "appended array does not match the appended section encoding",
                name=name,
                expected=None if section is None else section.encoding,
                actual=encoding.value,
            )
        slot = section.reserve(name, flat, precision)
        attrs += [("format", FORMAT_APPENDED), ("offset", slot.offset)]
        return Fragment(_open_tag(attrs, close=True), slot)

    content = strategy_for(encoding, context.values_per_line).encode(flat, precision, context.layout)
    attrs.append(("format", FORMAT_ASCII if encoding is Encoding.ASCII else FORMAT_BINARY))
    logger.debug("Emitted inline %s array %s (%d values)", encoding.value, name, flat.size)
    return Fragment(f"{_open_tag(attrs)}\n{content}\n</{DATA_ARRAY}>")


def emit(array: NamedArray, context: WriteContext) -> Fragment:
    """Render a :class:`NamedArray` for the piece described by *context*."""
    flat = flatten(array.data, context.spans, array.components, array.name)
    return emit_values(
        array.name,
        flat,
        array.precision,
        array.encoding,
        array.placement,
        context,
        array.components,
    )


@dataclass(frozen=True)
class ArrayHandle:
    """Undecoded reference to one ``DataArray`` found while parsing.

    Attributes:
        name: ``Name`` attribute.
        precision: Declared ``type``.
        components: ``NumberOfComponents`` (default 1).
        format: ``ascii``, ``binary`` or ``appended``.
        text: Element body for inline formats.
        offset: Offset into the appended section for ``appended``.
        section: The document's appended section, if any.
        layout: Byte order and header type of the document.
    """

    name: str
    precision: Precision
    components: int = 1
    format: str = FORMAT_ASCII
    text: str | None = None
    offset: int | None = None
    section: AppendedSection | None = None
    layout: BinaryLayout = field(default_factory=BinaryLayout)

    def __post_init__(self) -> None:
        if self.format not in _FORMATS:
            raise MalformedEncoding(
                "unknown DataArray format", name=self.name, expected=list(_FORMATS), actual=self.format,
            )
        if self.format == FORMAT_APPENDED and self.offset is None:
            raise MalformedEncoding("appended DataArray has no offset", name=self.name)

    @property
    def encoding(self) -> Encoding:
        if self.format == FORMAT_ASCII:
            return Encoding.ASCII
        if self.format == FORMAT_BINARY:
            return Encoding.BASE64
        if self.section is not None and self.section.encoding == "base64":
            return Encoding.BASE64
        return Encoding.RAW

    @property
    def placement(self) -> Placement:
        return Placement.APPENDED if self.format == FORMAT_APPENDED else Placement.INLINE

    def decode_flat(self, expected_count: int | None = None) -> np.ndarray:
        """Decode the content into a flat wire-order array.

        Raises:
            LengthMismatch: On broken framing or a count other than *expected_count*.
            MalformedEncoding: On bad base64 or a missing appended section.
            MalformedNumber: On an unparsable text token.
        """
        if self.format == FORMAT_APPENDED:
            if self.section is None:
                raise MalformedEncoding("appended DataArray but no AppendedData section", name=self.name)
            return self.section.decode(self.offset, self.precision, expected_count, self.name)
        return strategy_for(self.encoding).decode(
            self.text or "", self.precision, self.layout, expected_count, self.name,
        )


def recover(
    handle: ArrayHandle,
    spans: Spans,
    precision: Precision,
    expected_precision: Precision | str | None = None,
    flat: bool = False,
) -> np.ndarray:
    """Decode a handle and reshape it onto *spans*.

    Args:
        handle: Array reference from the parser.
        spans: Spans of the piece.
        precision: Precision of the document.
        expected_precision: Precision the caller requires, if any.
        flat: Return the wire-order sequence instead of the shaped array.

    Raises:
        PrecisionMismatch: If the declared type differs from the document's
            or the caller's expectation.
        ShapeMismatch: If the element count disagrees with spans x components.
        LengthMismatch: If the block framing itself is inconsistent.
    """
    if expected_precision is not None:
        expected_precision = as_precision(expected_precision)
        if handle.precision is not expected_precision:
            raise PrecisionMismatch(
                "declared array type differs from the requested precision",
                name=handle.name,
                expected=expected_precision.value,
                actual=handle.precision.value,
            )
    if handle.precision is not precision:
        raise PrecisionMismatch(
            "declared array type differs from the document precision",
            name=handle.name,
            expected=precision.value,
            actual=handle.precision.value,
        )
    values = handle.decode_flat()
    shaped = unflatten(values, spans, handle.components, handle.name)
    logger.debug("Recovered %s with shape %s", handle.name, shaped.shape)
    if flat:
        return values
    return shaped
