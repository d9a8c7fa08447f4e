"""Tests for stitching domain-decomposed pieces back together."""

from __future__ import annotations

import numpy as np
import pytest

from vtkrect.errors import InvalidSpan, MissingArray, PrecisionMismatch, ShapeMismatch
from vtkrect.geometry.pieces import combine_pieces
from vtkrect.geometry.rectilinear import Mesh, Spans, build_domain
from vtkrect.io.reader import read_document
from vtkrect.io.writer import render_document


@pytest.fixture
def global_fields():
    rng = np.random.default_rng(11)
    return {
        "rho": rng.random((6, 4)),
        "velocity": rng.random((2, 6, 4)),
    }


def _split_x(fields, bounds):
    """Cut the 6x4 global grid into x-slabs given by ``(start, end)`` pairs."""
    x = np.linspace(0.0, 1.0, 6)
    y = np.linspace(0.0, 0.3, 4)
    whole = Spans(0, 6, 0, 4)
    pieces = []
    for start, end in bounds:
        mesh = Mesh(x[start:end], y)
        domain = build_domain(mesh, Spans(start, end, 0, 4), whole)
        arrays = {
            "rho": fields["rho"][start:end],
            "velocity": fields["velocity"][:, start:end],
        }
        pieces.append((domain, arrays))
    return pieces


class TestCombinePieces:
    def test_recovers_global_grid(self, global_fields):
        domain, arrays = combine_pieces(_split_x(global_fields, [(0, 2), (2, 5), (5, 6)]))
        assert domain.spans == Spans(0, 6, 0, 4)
        assert domain.whole == Spans(0, 6, 0, 4)
        np.testing.assert_array_equal(domain.mesh.x, np.linspace(0.0, 1.0, 6))
        np.testing.assert_array_equal(arrays["rho"], global_fields["rho"])
        np.testing.assert_array_equal(arrays["velocity"], global_fields["velocity"])

    def test_order_independent(self, global_fields):
        pieces = _split_x(global_fields, [(3, 6), (0, 3)])
        _, arrays = combine_pieces(pieces)
        np.testing.assert_array_equal(arrays["rho"], global_fields["rho"])

    def test_along_y(self):
        x = [0.0, 1.0]
        lower = build_domain(Mesh(x, [0.0, 1.0]), Spans(0, 2, 0, 2))
        upper = build_domain(Mesh(x, [2.0]), Spans(0, 2, 2, 3))
        domain, arrays = combine_pieces(
            [(lower, {"f": np.zeros((2, 2))}), (upper, {"f": np.ones((2, 1))})], axis="y",
        )
        assert domain.spans == Spans(0, 2, 0, 3)
        np.testing.assert_array_equal(arrays["f"][:, 2], [1.0, 1.0])

    def test_gap_rejected(self, global_fields):
        with pytest.raises(InvalidSpan):
            combine_pieces(_split_x(global_fields, [(0, 2), (3, 6)]))

    def test_overlap_rejected(self, global_fields):
        with pytest.raises(InvalidSpan):
            combine_pieces(_split_x(global_fields, [(0, 3), (2, 6)]))

    def test_shared_axis_must_match(self):
        a = build_domain(Mesh([0.0], [0.0, 1.0]), Spans(0, 1, 0, 2))
        b = build_domain(Mesh([1.0], [0.0, 2.0]), Spans(1, 2, 0, 2))
        with pytest.raises(ShapeMismatch):
            combine_pieces([(a, {}), (b, {})])

    def test_missing_array(self, global_fields):
        pieces = _split_x(global_fields, [(0, 3), (3, 6)])
        del pieces[1][1]["velocity"]
        with pytest.raises(MissingArray):
            combine_pieces(pieces)

    def test_extra_array(self, global_fields):
        pieces = _split_x(global_fields, [(0, 3), (3, 6)])
        pieces[1][1]["extra"] = np.zeros((3, 4))
        with pytest.raises(MissingArray):
            combine_pieces(pieces)

    def test_precision_must_match(self, global_fields):
        pieces = _split_x(global_fields, [(0, 3), (3, 6)])
        pieces[1][1]["rho"] = pieces[1][1]["rho"].astype(np.float32)
        with pytest.raises(PrecisionMismatch):
            combine_pieces(pieces)

    def test_components_must_match(self, global_fields):
        pieces = _split_x(global_fields, [(0, 3), (3, 6)])
        pieces[1][1]["velocity"] = np.zeros((3, 3, 4))
        with pytest.raises(ShapeMismatch):
            combine_pieces(pieces)

    def test_axis_absent_in_2d(self, global_fields):
        with pytest.raises(InvalidSpan):
            combine_pieces(_split_x(global_fields, [(0, 6)]), axis="z")

    def test_combined_document_round_trip(self, global_fields):
        pieces = [
            read_document(render_document(domain, arrays))
            for domain, arrays in _split_x(global_fields, [(0, 3), (3, 6)])
        ]
        domain, arrays = combine_pieces(pieces)
        _, reread = read_document(render_document(domain, arrays))
        np.testing.assert_array_equal(reread["velocity"], global_fields["velocity"])
