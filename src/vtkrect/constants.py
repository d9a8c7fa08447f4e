"""File-format constants — single source of truth for element and attribute names.

Import from here instead of spelling XML names inline.
"""

# Dataset
DATASET_TYPE = "RectilinearGrid"
FILE_VERSION = "1.0"
DEFAULT_BYTE_ORDER = "LittleEndian"
DEFAULT_HEADER_TYPE = "UInt64"
# Readers must assume UInt32 block headers when ``header_type`` is absent
LEGACY_HEADER_TYPE = "UInt32"

# Elements
VTK_FILE = "VTKFile"
PIECE = "Piece"
COORDINATES = "Coordinates"
POINT_DATA = "PointData"
DATA_ARRAY = "DataArray"
APPENDED_DATA = "AppendedData"

# DataArray ``format`` attribute values
FORMAT_ASCII = "ascii"
FORMAT_BINARY = "binary"
FORMAT_APPENDED = "appended"

# Appended section
APPENDED_SENTINEL = b"_"
APPENDED_OPEN = b"<" + APPENDED_DATA.encode("ascii")
APPENDED_CLOSE = b"</" + APPENDED_DATA.encode("ascii") + b">"
APPENDED_ENCODINGS = ("raw", "base64")

# Coordinate array names, in axis order
COORDINATE_NAMES = ("x", "y", "z")

# Indentation unit for the rendered XML
INDENT = "  "
