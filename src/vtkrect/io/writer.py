"""Document assembly: validate descriptors, then render one ``.vtr`` file.

The writer walks a fixed sequence of states::

    IDLE -> HEADER_WRITTEN -> GEOMETRY_WRITTEN -> INLINE_ARRAYS_WRITTEN
         -> APPENDED_HEADERS_WRITTEN -> APPENDED_PAYLOAD_WRITTEN -> CLOSED

Every DataArray fragment is materialized before the header is emitted, so all
appended offsets are final by the time they are written. The document is built
in memory and handed to the sink only once it is closed.
"""

from __future__ import annotations

import logging
import os
import textwrap
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from xml.sax.saxutils import quoteattr

import numpy as np

from vtkrect.config import WriterConfig
from vtkrect.constants import (
    APPENDED_DATA,
    APPENDED_SENTINEL,
    COORDINATES,
    DATASET_TYPE,
    FILE_VERSION,
    INDENT,
    PIECE,
    POINT_DATA,
    VTK_FILE,
)
from vtkrect.core.bases import BinaryLayout, Placement
from vtkrect.encoding.codec import AppendedSectionWriter
from vtkrect.errors import ConfigurationError
from vtkrect.geometry.rectilinear import Domain
from vtkrect.io.arrays import (
    Fragment,
    NamedArray,
    WriteContext,
    as_named_arrays,
    emit,
    emit_values,
    flatten,
)

logger = logging.getLogger(__name__)


class WriteState(Enum):
    IDLE = 0
    HEADER_WRITTEN = 1
    GEOMETRY_WRITTEN = 2
    INLINE_ARRAYS_WRITTEN = 3
    APPENDED_HEADERS_WRITTEN = 4
    APPENDED_PAYLOAD_WRITTEN = 5
    CLOSED = 6


@dataclass(eq=False)
class VtkDocument:
    """A domain plus its point-data arrays, validated as a whole.

    Raises:
        ConfigurationError: On duplicate names or mixed appended encodings.
        PrecisionMismatch: If an array's precision differs from the mesh.
        ShapeMismatch: If an array does not fit the piece spans.
    """

    domain: Domain
    arrays: list[NamedArray] = field(default_factory=list)

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for array in self.arrays:
            if array.name in seen:
                raise ConfigurationError("duplicate array name", name=array.name)
            seen.add(array.name)
            self.domain.check_precision(array.precision, array.name)
            flatten(array.data, self.domain.spans, array.components, array.name)
        encodings = {
            item.encoding.value
            for item in [self.domain.mesh, *self.arrays]
            if item.placement is Placement.APPENDED
        }
        if len(encodings) > 1:
            raise ConfigurationError(
                "appended arrays must share one section encoding",
                expected="one of raw/base64",
                actual=sorted(encodings),
            )

    @property
    def appended_encoding(self) -> str | None:
        """Encoding of the appended section, None when nothing is appended."""
        for item in [self.domain.mesh, *self.arrays]:
            if item.placement is Placement.APPENDED:
                return item.encoding.value
        return None


class DocumentWriter:
    """Renders a :class:`VtkDocument` through the write states.

    Args:
        document: Validated document.
        layout: Byte order and header type.
        values_per_line: Wrapping width of ascii content.
    """

    def __init__(
        self,
        document: VtkDocument,
        layout: BinaryLayout | None = None,
        values_per_line: int = 6,
    ) -> None:
        self.document = document
        self.layout = layout or BinaryLayout()
        section_encoding = document.appended_encoding
        self.context = WriteContext(
            spans=document.domain.spans,
            layout=self.layout,
            appended=(
                AppendedSectionWriter(section_encoding, self.layout)
                if section_encoding is not None
                else None
            ),
            values_per_line=values_per_line,
        )
        self.state = WriteState.IDLE
        self._parts: list[bytes] = []

    def _advance(self, expected: WriteState, new: WriteState) -> None:
        if self.state is not expected:
            raise RuntimeError(f"writer is in state {self.state.name}, expected {expected.name}")
        logger.debug("Writer state %s -> %s", self.state.name, new.name)
        self.state = new

    def _emit(self, text: str, depth: int) -> None:
        self._parts.append(textwrap.indent(text, INDENT * depth).encode("utf-8") + b"\n")

    def _materialize(self) -> tuple[list[Fragment], list[Fragment]]:
        mesh = self.document.domain.mesh
        coordinates = [
            emit_values(
                axis, coords, mesh.precision, mesh.encoding, mesh.placement, self.context,
            )
            for axis, coords in mesh.wire_coordinates()
        ]
        arrays = [emit(array, self.context) for array in self.document.arrays]
        return coordinates, arrays

    def write_header(self) -> None:
        domain = self.document.domain
        self._advance(WriteState.IDLE, WriteState.HEADER_WRITTEN)
        self._parts.append(b'<?xml version="1.0"?>\n')
        self._emit(
            f"<{VTK_FILE} type={quoteattr(DATASET_TYPE)} version={quoteattr(FILE_VERSION)} "
            f"byte_order={quoteattr(self.layout.byte_order)} "
            f"header_type={quoteattr(self.layout.header_type)}>",
            0,
        )
        self._emit(f"<{DATASET_TYPE} WholeExtent={quoteattr(domain.whole.to_extent())}>", 1)
        self._emit(f"<{PIECE} Extent={quoteattr(domain.spans.to_extent())}>", 2)

    def write_geometry(self, fragments: list[Fragment]) -> None:
        self._advance(WriteState.HEADER_WRITTEN, WriteState.GEOMETRY_WRITTEN)
        self._emit(f"<{COORDINATES}>", 3)
        for fragment in fragments:
            self._emit(fragment.xml, 4)
        self._emit(f"</{COORDINATES}>", 3)

    def write_point_data(self, fragments: list[Fragment]) -> None:
        """Write every point-data fragment in declaration order."""
        self._advance(WriteState.GEOMETRY_WRITTEN, WriteState.INLINE_ARRAYS_WRITTEN)
        self._emit(f"<{POINT_DATA}>", 3)
        for fragment in fragments:
            self._emit(fragment.xml, 4)
        self._emit(f"</{POINT_DATA}>", 3)
        self._advance(WriteState.INLINE_ARRAYS_WRITTEN, WriteState.APPENDED_HEADERS_WRITTEN)
        self._emit(f"</{PIECE}>", 2)
        self._emit(f"</{DATASET_TYPE}>", 1)

    def write_appended(self) -> None:
        self._advance(WriteState.APPENDED_HEADERS_WRITTEN, WriteState.APPENDED_PAYLOAD_WRITTEN)
        section = self.context.appended
        if not section:
            return
        self._emit(f"<{APPENDED_DATA} encoding={quoteattr(section.encoding)}>", 1)
        self._parts.append(INDENT.encode("ascii") * 2 + APPENDED_SENTINEL + section.payload() + b"\n")
        self._emit(f"</{APPENDED_DATA}>", 1)

    def close(self) -> None:
        self._advance(WriteState.APPENDED_PAYLOAD_WRITTEN, WriteState.CLOSED)
        self._emit(f"</{VTK_FILE}>", 0)

    def render(self) -> bytes:
        """Run every state and return the complete document."""
        coordinates, arrays = self._materialize()
        self.write_header()
        self.write_geometry(coordinates)
        self.write_point_data(arrays)
        self.write_appended()
        self.close()
        return b"".join(self._parts)


def render_document(
    domain: Domain,
    arrays: Sequence[NamedArray] | Mapping[str, np.ndarray] = (),
    config: WriterConfig | None = None,
) -> bytes:
    """Render a complete RectilinearGrid document.

    Args:
        domain: Geometry of the piece.
        arrays: ``NamedArray`` descriptors, or a ``name -> ndarray`` mapping
            encoded with ``config.default_encoding``.
        config: Writer configuration; defaults to ``WriterConfig()``.

    Returns:
        The document bytes.
    """
    config = config or WriterConfig()
    named = as_named_arrays(arrays, domain.dims, config.encoding, config.placement)
    document = VtkDocument(domain, named)
    writer = DocumentWriter(document, config.layout(), config.text.values_per_line)
    return writer.render()


def write_document(
    sink,
    domain: Domain,
    arrays: Sequence[NamedArray] | Mapping[str, np.ndarray] = (),
    config: WriterConfig | None = None,
) -> int:
    """Render a document and write it to a path or binary file object.

    Returns:
        Number of bytes written.
    """
    content = render_document(domain, arrays, config)
    if isinstance(sink, (str, os.PathLike)):
        Path(sink).write_bytes(content)
        target = str(sink)
    else:
        sink.write(content)
        target = getattr(sink, "name", type(sink).__name__)
    logger.info(
        "Wrote %s: spans=%s, %d arrays, %d bytes",
        target, domain.spans.as_tuple(), len(arrays), len(content),
    )
    return len(content)
