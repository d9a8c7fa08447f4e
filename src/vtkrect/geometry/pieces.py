"""Recombine domain-decomposed pieces into one grid.

A solver running on several processes typically writes one file per process,
each holding a slab of the global grid. ``combine_pieces`` stitches such slabs
back together along one axis:

    piece 0: x in [0, 3)   piece 1: x in [3, 6)   ->   x in [0, 6)

Pieces may be given in any order; they are sorted by their start index.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping, Sequence

import numpy as np

from vtkrect.core.bases import Precision
from vtkrect.errors import (
    ConfigurationError,
    InvalidSpan,
    MissingArray,
    PrecisionMismatch,
    ShapeMismatch,
)
from vtkrect.geometry.rectilinear import Domain, Mesh, build_domain

logger = logging.getLogger(__name__)

_AXIS_INDEX = {"x": 0, "y": 1, "z": 2}


def _check_neighbours(previous: Domain, current: Domain, axis: str) -> None:
    index = _AXIS_INDEX[axis]
    prev_bounds = previous.spans.bounds()
    cur_bounds = current.spans.bounds()
    if cur_bounds[index][1] != prev_bounds[index][2]:
        raise InvalidSpan(
            "pieces do not abut",
            axis=axis,
            expected=prev_bounds[index][2],
            actual=cur_bounds[index][1],
        )
    for other, ((name, prev_start, prev_end), (_, cur_start, cur_end)) in enumerate(
        zip(prev_bounds, cur_bounds)
    ):
        if other == index:
            continue
        if (prev_start, prev_end) != (cur_start, cur_end):
            raise InvalidSpan(
                "pieces disagree on a shared axis",
                axis=name,
                expected=(prev_start, prev_end),
                actual=(cur_start, cur_end),
            )
        prev_coords = previous.mesh.coordinates()[other][1]
        cur_coords = current.mesh.coordinates()[other][1]
        if not np.array_equal(prev_coords, cur_coords):
            raise ShapeMismatch("pieces disagree on shared coordinates", name=name, axis=name)


def _combine_field(
    name: str,
    fields: list[np.ndarray],
    domains: list[Domain],
    index: int,
    precision: Precision,
) -> np.ndarray:
    dims = domains[0].dims
    first = fields[0]
    # scalars are (nx, ny[, nz]); vectors carry a leading component axis
    vector = first.ndim == dims + 1
    for arr, domain in zip(fields, domains):
        expected = (first.shape[0], *domain.spans.shape) if vector else domain.spans.shape
        if arr.shape != expected:
            raise ShapeMismatch(
                "piece array does not match its spans",
                name=name,
                expected=expected,
                actual=arr.shape,
            )
        found = Precision.from_dtype(arr.dtype)
        if found is not precision:
            raise PrecisionMismatch(
                "piece array precision differs from the mesh precision",
                name=name,
                expected=precision.value,
                actual=found.value,
            )
    return np.concatenate(fields, axis=index + 1 if vector else index)


def combine_pieces(
    pieces: Sequence[tuple[Domain, Mapping[str, np.ndarray]]],
    axis: str = "x",
) -> tuple[Domain, dict[str, np.ndarray]]:
    """Stitch pieces that tile a grid along *axis* into one domain.

    Args:
        pieces: ``(domain, arrays)`` per piece; arrays are shaped
            ``(nx, ny[, nz])`` or ``(components, nx, ny[, nz])``.
        axis: ``"x"``, ``"y"`` or ``"z"``.

    Returns:
        ``(domain, arrays)`` of the combined grid.

    Raises:
        InvalidSpan: If the pieces do not tile the axis contiguously.
        ShapeMismatch: If shared coordinates or array shapes disagree.
        MissingArray: If an array is absent from some piece.
        PrecisionMismatch: If precisions differ between pieces.
    """
    if not pieces:
        raise ConfigurationError("no pieces to combine")
    if axis not in _AXIS_INDEX:
        raise InvalidSpan("unknown axis", axis=axis, expected=list(_AXIS_INDEX))
    index = _AXIS_INDEX[axis]

    first = pieces[0][0]
    if index >= first.dims:
        raise InvalidSpan("axis is not present in a 2-D grid", axis=axis)
    for domain, _ in pieces[1:]:
        if domain.dims != first.dims:
            raise ShapeMismatch(
                "pieces have different dimensionality",
                expected=first.dims,
                actual=domain.dims,
            )
        first.check_precision(domain.precision)
    ordered = sorted(pieces, key=lambda piece: piece[0].spans.bounds()[index][1])
    domains = [domain for domain, _ in ordered]
    for previous, current in zip(domains, domains[1:]):
        _check_neighbours(previous, current, axis)

    # coordinates along the stitched axis are concatenated, others are shared
    coords = [c for _, c in domains[0].mesh.coordinates()]
    coords[index] = np.concatenate([d.mesh.coordinates()[index][1] for d in domains])
    mesh = Mesh(
        *coords,
        precision=first.precision,
        encoding=first.mesh.encoding,
        placement=first.mesh.placement,
    )
    last = domains[-1]
    spans = dataclasses.replace(
        domains[0].spans, **{f"{axis}_end": last.spans.bounds()[index][2]},
    )
    whole = first.whole if all(d.whole == first.whole for d in domains) else None
    domain = build_domain(mesh, spans, whole)

    names = list(ordered[0][1].keys())
    combined: dict[str, np.ndarray] = {}
    for name in names:
        fields = []
        for piece_domain, arrays in ordered:
            if name not in arrays:
                raise MissingArray(
                    "array missing from a piece",
                    name=name,
                    actual=piece_domain.spans.as_tuple(),
                )
            fields.append(np.asarray(arrays[name]))
        combined[name] = _combine_field(name, fields, domains, index, first.precision)
    for _, arrays in ordered[1:]:
        extra = set(arrays) - set(names)
        if extra:
            raise MissingArray("array missing from the first piece", name=sorted(extra)[0])

    logger.info(
        "Combined %d pieces along %s into spans %s (%d arrays)",
        len(ordered), axis, spans.as_tuple(), len(combined),
    )
    return domain, combined
