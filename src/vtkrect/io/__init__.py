"""Reading and writing RectilinearGrid documents."""

from vtkrect.io.arrays import ArrayHandle, NamedArray, emit, flatten, recover, unflatten
from vtkrect.io.reader import ParsedDocument, parse_document, read_document, recover_array
from vtkrect.io.writer import VtkDocument, render_document, write_document

__all__ = [
    "ArrayHandle",
    "NamedArray",
    "ParsedDocument",
    "VtkDocument",
    "emit",
    "flatten",
    "parse_document",
    "read_document",
    "recover",
    "recover_array",
    "render_document",
    "unflatten",
    "write_document",
]
