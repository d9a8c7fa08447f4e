"""Rectilinear geometry — spans, coordinate meshes and domains.

A ``Spans`` gives the index range a piece occupies inside a larger logical
grid; a ``Mesh`` gives the point coordinates along each axis. Together (plus
an optional whole-grid ``Spans``) they form a ``Domain``.

Span convention: the length of an axis is ``end - start``. A piece covering
the first two points of an axis has ``start=0, end=2`` and two coordinates.
VTK extents are inclusive point indices, so the wire form of that axis is
``"0 1"``; :meth:`Spans.to_extent` and :meth:`Spans.from_extent` convert.
"""

from __future__ import annotations

import logging
import operator
from dataclasses import dataclass, field

import numpy as np

from vtkrect.core.bases import Encoding, Placement, Precision, coerce_values, resolve_placement
from vtkrect.errors import InvalidSpan, PrecisionMismatch, ShapeMismatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Spans:
    """Index range of a piece along 2 or 3 axes.

    Attributes:
        x_start, x_end: Range along x (length ``x_end - x_start``).
        y_start, y_end: Range along y.
        z_start, z_end: Range along z, both None for a 2-D piece.
    """

    x_start: int
    x_end: int
    y_start: int
    y_end: int
    z_start: int | None = None
    z_end: int | None = None

    def __post_init__(self) -> None:
        if (self.z_start is None) != (self.z_end is None):
            raise InvalidSpan("z span needs both a start and an end", axis="z")
        for attr in ("x_start", "x_end", "y_start", "y_end", "z_start", "z_end"):
            value = getattr(self, attr)
            if value is None:
                continue
            try:
                object.__setattr__(self, attr, operator.index(value))
            except TypeError:
                raise InvalidSpan(
                    f"span bound {attr} must be an integer", axis=attr[0], actual=value,
                ) from None
        for axis, start, end in self.bounds():
            if end < start:
                raise InvalidSpan(
                    "span end precedes its start",
                    axis=axis,
                    expected=f"end >= {start}",
                    actual=end,
                )

    @classmethod
    def from_shape(cls, nx: int, ny: int, nz: int | None = None) -> Spans:
        """Spans of a standalone grid with the given point counts, starting at 0."""
        if nz is None:
            return cls(0, nx, 0, ny)
        return cls(0, nx, 0, ny, 0, nz)

    @classmethod
    def from_tuple(cls, bounds) -> Spans:
        """Build from ``(x0, x1, y0, y1[, z0, z1])``."""
        bounds = tuple(bounds)
        if len(bounds) not in (4, 6):
            raise InvalidSpan("spans need 4 or 6 bounds", expected="4 or 6", actual=len(bounds))
        return cls(*bounds)

    # --- Derived lengths ---

    def bounds(self) -> list[tuple[str, int, int]]:
        """Return ``(axis, start, end)`` for each axis present."""
        out = [("x", self.x_start, self.x_end), ("y", self.y_start, self.y_end)]
        if self.z_start is not None:
            out.append(("z", self.z_start, self.z_end))
        return out

    @property
    def dims(self) -> int:
        return 2 if self.z_start is None else 3

    @property
    def x_len(self) -> int:
        return self.x_end - self.x_start

    @property
    def y_len(self) -> int:
        return self.y_end - self.y_start

    @property
    def z_len(self) -> int:
        """Length along z; a 2-D piece counts as one layer."""
        if self.z_start is None:
            return 1
        return self.z_end - self.z_start

    @property
    def shape(self) -> tuple[int, ...]:
        """Point counts per axis, ``(nx, ny)`` or ``(nx, ny, nz)``."""
        return tuple(end - start for _, start, end in self.bounds())

    @property
    def num_points(self) -> int:
        return self.x_len * self.y_len * self.z_len

    def array_length(self, components: int = 1) -> int:
        """Flattened length of an array with *components* values per point."""
        return self.num_points * components

    def as_tuple(self) -> tuple[int, ...]:
        return tuple(bound for _, start, end in self.bounds() for bound in (start, end))

    # --- Multi-piece composition ---

    def contains(self, other: Spans) -> bool:
        if other.dims != self.dims:
            return False
        return all(
            outer_start <= inner_start and inner_end <= outer_end
            for (_, outer_start, outer_end), (_, inner_start, inner_end)
            in zip(self.bounds(), other.bounds())
        )

    def offset_within(self, whole: Spans) -> tuple[int, ...]:
        """Index of this piece's first point inside *whole*, per axis.

        Raises:
            InvalidSpan: If the piece lies outside *whole*.
        """
        if not whole.contains(self):
            raise InvalidSpan(
                "piece is not contained in the whole grid",
                expected=whole.as_tuple(),
                actual=self.as_tuple(),
            )
        return tuple(
            start - whole_start
            for (_, start, _), (_, whole_start, _) in zip(self.bounds(), whole.bounds())
        )

    # --- Wire form ---

    def to_extent(self) -> str:
        """Render as an inclusive VTK extent (always six values)."""
        values = [bound for _, start, end in self.bounds() for bound in (start, end - 1)]
        if self.dims == 2:
            values += [0, 0]
        return " ".join(str(v) for v in values)

    @classmethod
    def from_extent(cls, extent: str | None, dims: int | None = None) -> Spans:
        """Parse an inclusive VTK extent string.

        Args:
            extent: Six whitespace-separated integers.
            dims: 2 or 3; None infers 2 only when the z extent is ``"0 0"``,
                the form a 2-D piece is written with.

        Raises:
            InvalidSpan: On a malformed extent or a z range that cannot be 2-D.
        """
        if extent is None:
            raise InvalidSpan("extent attribute is missing")
        tokens = extent.split()
        if len(tokens) != 6:
            raise InvalidSpan("extent needs six values", expected=6, actual=len(tokens))
        try:
            values = [int(token) for token in tokens]
        except ValueError:
            raise InvalidSpan("extent values must be integers", actual=extent) from None
        z_single = values[4] == values[5]
        if dims is None:
            dims = 2 if values[4] == values[5] == 0 else 3
        if dims not in (2, 3):
            raise InvalidSpan("dimensionality must be 2 or 3", actual=dims)
        if dims == 2 and not z_single:
            raise InvalidSpan(
                "a 2-D extent must hold a single z point",
                axis="z",
                expected="1 point",
                actual=f"{values[4]} {values[5]}",
            )
        bounds = []
        for axis_index in range(dims):
            start, last = values[2 * axis_index], values[2 * axis_index + 1]
            bounds += [start, last + 1]
        return cls.from_tuple(bounds)


@dataclass(eq=False)
class Mesh:
    """Point coordinates along each axis.

    Attributes:
        x, y: Coordinate sequences.
        z: Coordinate sequence, None for a 2-D mesh.
        precision: Numeric width; inferred from ``x`` when None.
        encoding: Wire encoding of the coordinate arrays.
        placement: Inline or appended; derived from *encoding* when None.
    """

    x: np.ndarray
    y: np.ndarray
    z: np.ndarray | None = None
    precision: Precision | None = None
    encoding: Encoding = Encoding.ASCII
    placement: Placement | None = None

    def __post_init__(self) -> None:
        self.x, self.precision = coerce_values(self.x, self.precision, name="x")
        self.y, _ = coerce_values(self.y, self.precision, name="y")
        if self.z is not None:
            self.z, _ = coerce_values(self.z, self.precision, name="z")
        for axis, coords in self.coordinates():
            if coords.ndim != 1:
                raise ShapeMismatch(
                    "coordinates must be one-dimensional",
                    name=axis, axis=axis, expected=1, actual=coords.ndim,
                )
        self.encoding = Encoding(self.encoding)
        self.placement = resolve_placement(self.encoding, self.placement, name="coordinates")

    @property
    def dims(self) -> int:
        return 2 if self.z is None else 3

    def coordinates(self) -> list[tuple[str, np.ndarray]]:
        """Return ``(axis, coordinates)`` for each axis present."""
        axes = [("x", self.x), ("y", self.y)]
        if self.z is not None:
            axes.append(("z", self.z))
        return axes

    def wire_coordinates(self) -> list[tuple[str, np.ndarray]]:
        """Coordinates as written to a file: a 2-D mesh gets a single z at 0."""
        if self.z is not None:
            return self.coordinates()
        return self.coordinates() + [("z", np.zeros(1, dtype=self.x.dtype))]

    def with_encoding(self, encoding: Encoding, placement: Placement | None = None) -> Mesh:
        """Same coordinates, different wire encoding."""
        return Mesh(self.x, self.y, self.z, self.precision, encoding, placement)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mesh):
            return NotImplemented
        if self.dims != other.dims or self.precision is not other.precision:
            return False
        return all(
            np.array_equal(a, b)
            for (_, a), (_, b) in zip(self.coordinates(), other.coordinates())
        )


@dataclass(eq=False)
class Domain:
    """Complete geometric description of one piece.

    Attributes:
        mesh: Point coordinates.
        spans: Index range of this piece.
        whole: Index range of the whole grid; defaults to *spans*.
    """

    mesh: Mesh
    spans: Spans
    whole: Spans | None = field(default=None)

    def __post_init__(self) -> None:
        if self.whole is None:
            self.whole = self.spans
        if self.mesh.dims != self.spans.dims:
            raise ShapeMismatch(
                "mesh and spans have different dimensionality",
                expected=self.spans.dims,
                actual=self.mesh.dims,
            )
        for (axis, coords), length in zip(self.mesh.coordinates(), self.spans.shape):
            if coords.size != length:
                raise ShapeMismatch(
                    "coordinate count disagrees with the span length",
                    name=axis, axis=axis, expected=length, actual=coords.size,
                )
        if self.whole.dims != self.spans.dims:
            raise InvalidSpan(
                "whole grid and piece have different dimensionality",
                expected=self.spans.dims,
                actual=self.whole.dims,
            )
        # raises InvalidSpan when the piece sticks out of the whole grid
        self.spans.offset_within(self.whole)

    @property
    def dims(self) -> int:
        return self.spans.dims

    @property
    def precision(self) -> Precision:
        return self.mesh.precision

    @property
    def origin(self) -> tuple[int, ...]:
        """Offset of this piece inside the whole grid."""
        return self.spans.offset_within(self.whole)

    def check_precision(self, precision: Precision, name: str | None = None) -> None:
        """Raise ``PrecisionMismatch`` unless *precision* matches the mesh."""
        if precision is not self.precision:
            raise PrecisionMismatch(
                "array precision differs from the document precision",
                name=name,
                expected=self.precision.value,
                actual=precision.value,
            )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Domain):
            return NotImplemented
        return (
            self.spans == other.spans
            and self.whole == other.whole
            and self.mesh == other.mesh
        )


def build_domain(mesh: Mesh, spans: Spans, whole: Spans | None = None) -> Domain:
    """Combine a mesh and spans into a validated domain.

    Raises:
        InvalidSpan: If the piece does not fit inside *whole*.
        ShapeMismatch: If coordinate counts disagree with the spans.
    """
    domain = Domain(mesh=mesh, spans=spans, whole=whole)
    logger.debug(
        "Built %dD domain: spans=%s whole=%s precision=%s",
        domain.dims, spans.as_tuple(), domain.whole.as_tuple(), domain.precision.value,
    )
    return domain

