"""vtkrect — VTK XML RectilinearGrid (.vtr) reader and writer.

Example::

    import numpy as np
    from vtkrect import Mesh, Spans, build_domain, read_document, write_document

    mesh = Mesh(np.linspace(0, 1, 4), np.linspace(0, 1, 3))
    domain = build_domain(mesh, Spans.from_shape(4, 3))
    write_document("out.vtr", domain, {"rho": np.ones((4, 3))})
    domain, arrays = read_document("out.vtr")
"""

from vtkrect.config import WriterConfig
from vtkrect.core.bases import Encoding, Placement, Precision
from vtkrect.geometry import Domain, Mesh, Spans, build_domain, combine_pieces
from vtkrect.io import (
    NamedArray,
    ParsedDocument,
    parse_document,
    read_document,
    recover_array,
    render_document,
    write_document,
)

__version__ = "0.1.0"

__all__ = [
    "Domain",
    "Encoding",
    "Mesh",
    "NamedArray",
    "ParsedDocument",
    "Placement",
    "Precision",
    "Spans",
    "WriterConfig",
    "build_domain",
    "combine_pieces",
    "parse_document",
    "read_document",
    "recover_array",
    "render_document",
    "write_document",
]
