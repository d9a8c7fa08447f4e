"""Document parsing for ``.vtr`` files.

The parser moves through::

    IDLE -> HEADER_READ -> GEOMETRY_READ -> ARRAYS_RESOLVED -> DONE

The header (dataset type, byte order, header type, extents) gates everything
else; coordinates are decoded next and checked against the piece extent.
Point-data arrays are indexed into :class:`ArrayHandle` objects and only
decoded on request, but the appended section is scanned up front so a
truncated or inconsistent file fails at parse time.
"""

from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import numpy as np

from vtkrect.constants import (
    COORDINATE_NAMES,
    COORDINATES,
    DATA_ARRAY,
    DATASET_TYPE,
    FORMAT_APPENDED,
    FORMAT_ASCII,
    FORMAT_BINARY,
    PIECE,
    POINT_DATA,
    VTK_FILE,
)
from vtkrect.core.bases import BinaryLayout, Precision
from vtkrect.encoding.codec import AppendedSection, AppendedSlot, locate_appended_section
from vtkrect.errors import (
    MalformedEncoding,
    MissingArray,
    PrecisionMismatch,
    ShapeMismatch,
    UnsupportedDatasetType,
)
from vtkrect.geometry.rectilinear import Domain, Mesh, Spans, build_domain
from vtkrect.io.arrays import ArrayHandle, NamedArray, recover

logger = logging.getLogger(__name__)


class ParseState(Enum):
    IDLE = 0
    HEADER_READ = 1
    GEOMETRY_READ = 2
    ARRAYS_RESOLVED = 3
    DONE = 4


@dataclass(eq=False)
class ParsedDocument:
    """Result of :func:`parse_document`.

    Attributes:
        domain: Geometry of the piece, coordinates decoded.
        layout: Byte order and header type declared by the file.
        arrays: Point-data handles in document order.
        coordinates: Coordinate handles keyed by axis.
        appended_slots: Appended blocks sorted by offset.
        appended_encoding: ``"raw"``, ``"base64"`` or None.
        appended_length: Length of the appended section content.
    """

    domain: Domain
    layout: BinaryLayout
    arrays: dict[str, ArrayHandle] = field(default_factory=dict)
    coordinates: dict[str, ArrayHandle] = field(default_factory=dict)
    appended_slots: list[AppendedSlot] = field(default_factory=list)
    appended_encoding: str | None = None
    appended_length: int = 0

    @property
    def names(self) -> list[str]:
        return list(self.arrays)

    def handle(self, name: str) -> ArrayHandle:
        try:
            return self.arrays[name]
        except KeyError:
            raise MissingArray(
                "no point-data array with this name", name=name, expected=self.names,
            ) from None

    def recover(self, name: str, expected_precision: Precision | str | None = None) -> np.ndarray:
        """Decode and reshape one array (see :func:`vtkrect.io.arrays.recover`)."""
        return recover(self.handle(name), self.domain.spans, self.domain.precision, expected_precision)

    def to_named_arrays(self) -> list[NamedArray]:
        """Decode every array, keeping each one's encoding and placement."""
        out = []
        for name, handle in self.arrays.items():
            out.append(
                NamedArray(
                    name,
                    self.recover(name),
                    handle.components,
                    handle.precision,
                    handle.encoding,
                    handle.placement,
                )
            )
        return out


def _read_source(source) -> bytes:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    if isinstance(source, (str, os.PathLike)):
        return Path(source).read_bytes()
    if hasattr(source, "read"):
        content = source.read()
        if isinstance(content, str):
            raise TypeError("source must be opened in binary mode")
        return content
    raise TypeError(f"cannot read a document from {type(source).__name__}")


def _index_array(
    element: ET.Element,
    layout: BinaryLayout,
    section: AppendedSection | None,
    default_name: str | None = None,
) -> ArrayHandle:
    name = element.get("Name") or default_name
    if not name:
        raise MalformedEncoding("DataArray has no Name attribute")
    precision = Precision.from_attribute(element.get("type"), name)
    try:
        components = int(element.get("NumberOfComponents", "1"))
    except ValueError:
        raise MalformedEncoding(
            "NumberOfComponents is not an integer",
            name=name,
            actual=element.get("NumberOfComponents"),
        ) from None
    if components < 1:
        raise MalformedEncoding("NumberOfComponents must be at least 1", name=name, actual=components)
    fmt = element.get("format", FORMAT_ASCII)
    offset = None
    if fmt == FORMAT_APPENDED:
        try:
            offset = int(element.get("offset", ""))
        except ValueError:
            raise MalformedEncoding(
                "appended DataArray has no integer offset", name=name, actual=element.get("offset"),
            ) from None
    elif fmt not in (FORMAT_ASCII, FORMAT_BINARY):
        raise UnsupportedDatasetType(
            "unsupported DataArray format",
            name=name,
            expected=[FORMAT_ASCII, FORMAT_BINARY, FORMAT_APPENDED],
            actual=fmt,
        )
    return ArrayHandle(
        name=name,
        precision=precision,
        components=components,
        format=fmt,
        text=element.text,
        offset=offset,
        section=section,
        layout=layout,
    )


class DocumentParser:
    """Single-use parser for one document.

    Args:
        content: Complete file content.
        dims: 2 or 3 to force the dimensionality; None infers it from the
            extents and the z coordinate.
    """

    def __init__(self, content: bytes, dims: int | None = None) -> None:
        self.content = content
        self.dims = dims
        self.state = ParseState.IDLE

    def _advance(self, expected: ParseState, new: ParseState) -> None:
        if self.state is not expected:
            raise RuntimeError(f"parser is in state {self.state.name}, expected {expected.name}")
        logger.debug("Parser state %s -> %s", self.state.name, new.name)
        self.state = new

    def _read_header(self) -> tuple[ET.Element, BinaryLayout, AppendedSection | None]:
        split = locate_appended_section(self.content)
        try:
            root = ET.fromstring(split.head)
        except ET.ParseError as exc:
            raise UnsupportedDatasetType(f"not an XML VTK file: {exc}") from exc
        if root.tag != VTK_FILE or root.get("type") != DATASET_TYPE:
            raise UnsupportedDatasetType(
                "not a RectilinearGrid VTK file",
                expected=f"{VTK_FILE} type={DATASET_TYPE}",
                actual=f"{root.tag} type={root.get('type')}",
            )
        if root.get("compressor"):
            raise UnsupportedDatasetType("compressed files are not supported", actual=root.get("compressor"))
        layout = BinaryLayout.from_attributes(root.get("byte_order"), root.get("header_type"))
        section = None
        if split.section is not None:
            section = AppendedSection(split.section, split.encoding, layout, split.terminated)
        self._advance(ParseState.IDLE, ParseState.HEADER_READ)
        return root, layout, section

    def _read_geometry(
        self,
        root: ET.Element,
        layout: BinaryLayout,
        section: AppendedSection | None,
    ) -> tuple[ET.Element, Domain, dict[str, ArrayHandle]]:
        grid = root.find(DATASET_TYPE)
        if grid is None:
            raise UnsupportedDatasetType(f"missing <{DATASET_TYPE}> element")
        pieces = grid.findall(PIECE)
        if len(pieces) != 1:
            raise UnsupportedDatasetType("exactly one Piece is supported", expected=1, actual=len(pieces))
        piece = pieces[0]
        whole_extent, piece_extent = grid.get("WholeExtent"), piece.get("Extent")
        dims = self.dims
        if dims is None:
            inferred = {Spans.from_extent(whole_extent).dims, Spans.from_extent(piece_extent).dims}
            dims = 2 if inferred == {2} else 3
        whole = Spans.from_extent(whole_extent, dims)
        spans = Spans.from_extent(piece_extent, dims)

        coords_element = piece.find(COORDINATES)
        elements = [] if coords_element is None else coords_element.findall(DATA_ARRAY)
        if len(elements) != 3:
            raise MissingArray(
                "Coordinates must hold three DataArrays", name=COORDINATES, expected=3, actual=len(elements),
            )
        handles = {
            axis: _index_array(element, layout, section, default_name=axis)
            for axis, element in zip(COORDINATE_NAMES, elements)
        }
        precision = handles["x"].precision
        lengths = dict(zip(COORDINATE_NAMES, (spans.x_len, spans.y_len, spans.z_len)))
        values = {}
        for axis, handle in handles.items():
            if handle.precision is not precision:
                raise PrecisionMismatch(
                    "coordinate arrays disagree on precision",
                    name=handle.name,
                    axis=axis,
                    expected=precision.value,
                    actual=handle.precision.value,
                )
            flat = handle.decode_flat()
            if flat.size != lengths[axis]:
                raise ShapeMismatch(
                    "coordinate count disagrees with the piece extent",
                    name=handle.name,
                    axis=axis,
                    expected=lengths[axis],
                    actual=flat.size,
                )
            values[axis] = flat
        # a 2-D piece is always written with z at 0; anything else is one 3-D layer
        if self.dims is None and spans.dims == 2 and np.any(values["z"] != 0):
            logger.debug("Single z coordinate %s is not 0, reading as 3-D", values["z"][0])
            whole = Spans.from_extent(whole_extent, 3)
            spans = Spans.from_extent(piece_extent, 3)
        x_handle = handles["x"]
        mesh = Mesh(
            values["x"],
            values["y"],
            values["z"] if spans.dims == 3 else None,
            precision=precision,
            encoding=x_handle.encoding,
            placement=x_handle.placement,
        )
        domain = build_domain(mesh, spans, whole)
        self._advance(ParseState.HEADER_READ, ParseState.GEOMETRY_READ)
        return piece, domain, handles

    def _resolve_arrays(
        self,
        piece: ET.Element,
        layout: BinaryLayout,
        section: AppendedSection | None,
        coordinates: dict[str, ArrayHandle],
    ) -> tuple[dict[str, ArrayHandle], list[AppendedSlot]]:
        arrays: dict[str, ArrayHandle] = {}
        point_data = piece.find(POINT_DATA)
        if point_data is not None:
            for element in point_data.findall(DATA_ARRAY):
                handle = _index_array(element, layout, section)
                if handle.name in arrays:
                    raise MalformedEncoding("duplicate point-data array name", name=handle.name)
                arrays[handle.name] = handle
        cell_data = piece.find("CellData")
        if cell_data is not None and len(cell_data):
            logger.warning("Ignoring %d CellData arrays", len(cell_data))

        references = [
            (handle.name, handle.offset)
            for handle in [*coordinates.values(), *arrays.values()]
            if handle.format == FORMAT_APPENDED
        ]
        slots: list[AppendedSlot] = []
        if section is not None:
            slots = section.scan(references)
        elif references:
            raise MalformedEncoding(
                "appended DataArray but no AppendedData section", name=references[0][0],
            )
        self._advance(ParseState.GEOMETRY_READ, ParseState.ARRAYS_RESOLVED)
        return arrays, slots

    def parse(self) -> ParsedDocument:
        root, layout, section = self._read_header()
        piece, domain, coordinates = self._read_geometry(root, layout, section)
        arrays, slots = self._resolve_arrays(piece, layout, section, coordinates)
        self._advance(ParseState.ARRAYS_RESOLVED, ParseState.DONE)
        return ParsedDocument(
            domain=domain,
            layout=layout,
            arrays=arrays,
            coordinates=coordinates,
            appended_slots=slots,
            appended_encoding=None if section is None else section.encoding,
            appended_length=0 if section is None else section.content_length,
        )


def parse_document(source, dims: int | None = None) -> ParsedDocument:
    """Parse a RectilinearGrid document from a path, bytes or binary file.

    Args:
        source: Path, ``bytes`` or binary file object.
        dims: 2 or 3 to force the dimensionality; None infers 2 only for a z
            extent of ``0 0`` with its single z coordinate at 0.

    Raises:
        UnsupportedDatasetType: Not a single-piece, uncompressed RectilinearGrid.
        InvalidSpan: Malformed extents.
        LengthMismatch: Truncated or inconsistent binary content.
        MalformedEncoding: Broken base64, framing or appended section.
        ShapeMismatch: Coordinate counts that disagree with the extent.
        PrecisionMismatch: Coordinates of different types.
    """
    content = _read_source(source)
    document = DocumentParser(content, dims).parse()
    logger.info(
        "Parsed %dD RectilinearGrid: spans=%s, %s, %d arrays",
        document.domain.dims,
        document.domain.spans.as_tuple(),
        document.domain.precision.value,
        len(document.arrays),
    )
    return document


def recover_array(
    document: ParsedDocument,
    name: str,
    expected_precision: Precision | str | None = None,
) -> np.ndarray:
    """Decode and reshape the array *name* of a parsed document.

    Raises:
        MissingArray: If *name* is absent.
        PrecisionMismatch: If the declared type differs from *expected_precision*.
        ShapeMismatch: If the element count disagrees with the spans.
    """
    return document.recover(name, expected_precision)


def read_document(source, dims: int | None = None) -> tuple[Domain, dict[str, np.ndarray]]:
    """Parse a document and recover every point-data array."""
    document = parse_document(source, dims)
    return document.domain, {name: document.recover(name) for name in document.names}
