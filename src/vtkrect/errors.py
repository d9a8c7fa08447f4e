"""Error taxonomy for reading and writing rectilinear-grid VTK files.

Every failure the engine can detect is raised as a subclass of
:class:`VtkError`. The classes carry structured context (array name, axis,
expected and actual values) both as attributes and in the message, so a caller
can diagnose a malformed file without re-reading raw bytes.

Hierarchy::

    VtkError (ValueError)
    ├── InvalidSpan
    ├── PrecisionMismatch
    ├── MissingArray
    ├── MalformedEncoding
    ├── MalformedNumber
    ├── LengthMismatch
    │   └── ShapeMismatch
    ├── UnsupportedDatasetType
    └── ConfigurationError
"""

from __future__ import annotations

from typing import Any


class VtkError(ValueError):
    """Base class for all structural errors raised by ``vtkrect``.

    Args:
        message: Human readable description.
        name: Array (or coordinate) name the error concerns, if any.
        axis: Axis label (``"x"``, ``"y"``, ``"z"``) the error concerns, if any.
        expected: Expected value (length, precision, ...).
        actual: Value actually found.
    """

    def __init__(
        self,
        message: str,
        *,
        name: str | None = None,
        axis: str | None = None,
        expected: Any = None,
        actual: Any = None,
    ) -> None:
        self.name = name
        self.axis = axis
        self.expected = expected
        self.actual = actual
        super().__init__(self._format(message))

    def _format(self, message: str) -> str:
        context = []
        if self.name is not None:
            context.append(f"array={self.name!r}")
        if self.axis is not None:
            context.append(f"axis={self.axis}")
        if self.expected is not None:
            context.append(f"expected={self.expected}")
        if self.actual is not None:
            context.append(f"actual={self.actual}")
        if not context:
            return message
        return f"{message} ({', '.join(context)})"


class InvalidSpan(VtkError):
    """A spans / extent is malformed (``end < start``, wrong arity, not contained)."""


class LengthMismatch(VtkError):
    """A declared byte or element count disagrees with the data actually present."""


class ShapeMismatch(LengthMismatch):
    """An array's length or shape disagrees with ``spans x components``."""


class PrecisionMismatch(VtkError):
    """Declared and expected numeric widths differ."""


class MissingArray(VtkError):
    """A named array is absent from the document."""


class MalformedEncoding(VtkError):
    """Bad base64 alphabet/padding, broken binary framing or malformed XML."""


class MalformedNumber(VtkError):
    """A text token could not be parsed as a number of the declared precision."""


class UnsupportedDatasetType(VtkError):
    """The file is not a single-piece, uncompressed VTK RectilinearGrid file."""


class ConfigurationError(VtkError):
    """Array or mesh descriptors were combined in an invalid way."""
