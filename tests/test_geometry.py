"""Tests for spans, meshes and domains."""

from __future__ import annotations

import numpy as np
import pytest

from vtkrect.core.bases import Encoding, Placement, Precision
from vtkrect.errors import ConfigurationError, InvalidSpan, PrecisionMismatch, ShapeMismatch
from vtkrect.geometry.rectilinear import Domain, Mesh, Spans, build_domain


# ── Spans ──────────────────────────────────────────────────────


class TestSpans:
    def test_lengths_are_exclusive(self):
        spans = Spans(0, 4, 2, 5)
        assert spans.x_len == 4
        assert spans.y_len == 3
        assert spans.z_len == 1
        assert spans.dims == 2
        assert spans.shape == (4, 3)
        assert spans.num_points == 12

    def test_array_length_scales_with_components(self):
        spans = Spans.from_shape(4, 3, 2)
        assert spans.array_length() == 24
        assert spans.array_length(3) == 72

    def test_end_before_start_rejected(self):
        with pytest.raises(InvalidSpan) as excinfo:
            Spans(5, 2, 0, 1)
        assert excinfo.value.axis == "x"
        assert excinfo.value.actual == 2

    def test_z_end_before_start_rejected(self):
        with pytest.raises(InvalidSpan) as excinfo:
            Spans(0, 2, 0, 2, 3, 1)
        assert excinfo.value.axis == "z"

    def test_half_specified_z_rejected(self):
        with pytest.raises(InvalidSpan):
            Spans(0, 2, 0, 2, 0)

    def test_non_integer_bound_rejected(self):
        with pytest.raises(InvalidSpan):
            Spans(0, 2.5, 0, 2)

    def test_numpy_integers_accepted(self):
        spans = Spans(np.int64(0), np.int32(3), 0, 2)
        assert spans.x_len == 3
        assert type(spans.x_end) is int

    def test_empty_axis_allowed(self):
        assert Spans(3, 3, 0, 2).num_points == 0

    def test_from_tuple_arity(self):
        assert Spans.from_tuple((0, 1, 0, 2, 0, 3)).dims == 3
        with pytest.raises(InvalidSpan):
            Spans.from_tuple((0, 1, 0))

    def test_offset_within_whole(self):
        whole = Spans(0, 10, 0, 8)
        assert Spans(4, 7, 2, 8).offset_within(whole) == (4, 2)

    def test_offset_outside_whole_rejected(self):
        with pytest.raises(InvalidSpan):
            Spans(8, 12, 0, 2).offset_within(Spans(0, 10, 0, 8))


class TestExtent:
    def test_2d_extent_is_inclusive_with_flat_z(self):
        assert Spans(0, 2, 0, 2).to_extent() == "0 1 0 1 0 0"

    def test_3d_extent(self):
        assert Spans(2, 5, 0, 3, 1, 4).to_extent() == "2 4 0 2 1 3"

    def test_parse_infers_2d(self):
        assert Spans.from_extent("0 1 0 1 0 0") == Spans(0, 2, 0, 2)

    def test_parse_infers_3d(self):
        assert Spans.from_extent("0 3 0 2 0 1") == Spans(0, 4, 0, 3, 0, 2)

    def test_offset_single_layer_infers_3d(self):
        assert Spans.from_extent("0 1 0 1 3 3") == Spans(0, 2, 0, 2, 3, 4)

    def test_forced_3d_single_layer(self):
        spans = Spans.from_extent("0 3 0 2 0 0", dims=3)
        assert spans.dims == 3
        assert spans.z_len == 1

    def test_forced_2d_with_thick_z_rejected(self):
        with pytest.raises(InvalidSpan):
            Spans.from_extent("0 3 0 2 0 4", dims=2)

    def test_wrong_arity_rejected(self):
        with pytest.raises(InvalidSpan):
            Spans.from_extent("0 1 0 1")

    def test_non_integer_rejected(self):
        with pytest.raises(InvalidSpan):
            Spans.from_extent("0 a 0 1 0 0")

    def test_missing_extent_rejected(self):
        with pytest.raises(InvalidSpan):
            Spans.from_extent(None)

    def test_inverted_extent_rejected(self):
        # inclusive "5 2" -> exclusive end 3 < start 5
        with pytest.raises(InvalidSpan):
            Spans.from_extent("5 2 0 1 0 0")


# ── Mesh ───────────────────────────────────────────────────────


class TestMesh:
    def test_precision_inferred_from_x(self):
        mesh = Mesh(np.zeros(3, dtype=np.float32), [0.0, 1.0])
        assert mesh.precision is Precision.FLOAT32
        assert mesh.y.dtype == np.float32

    def test_coordinates_are_read_only(self):
        mesh = Mesh([0.0, 1.0], [0.0, 1.0])
        with pytest.raises(ValueError):
            mesh.x[0] = 5.0

    def test_lossy_coordinates_rejected(self):
        with pytest.raises(PrecisionMismatch):
            Mesh(np.zeros(2, dtype=np.float32), np.zeros(2, dtype=np.float64))

    def test_two_dimensional_coordinates_rejected(self):
        with pytest.raises(ShapeMismatch):
            Mesh(np.zeros((2, 2)), [0.0, 1.0])

    def test_wire_coordinates_add_flat_z(self):
        axes = Mesh([0.0, 1.0], [0.0, 1.0]).wire_coordinates()
        assert [axis for axis, _ in axes] == ["x", "y", "z"]
        np.testing.assert_array_equal(axes[2][1], [0.0])

    def test_default_placement_follows_encoding(self):
        assert Mesh([0.0], [0.0], encoding=Encoding.RAW).placement is Placement.APPENDED
        assert Mesh([0.0], [0.0], encoding=Encoding.BASE64).placement is Placement.INLINE

    def test_ascii_appended_rejected(self):
        with pytest.raises(ConfigurationError):
            Mesh([0.0], [0.0], encoding=Encoding.ASCII, placement=Placement.APPENDED)

    def test_raw_inline_rejected(self):
        with pytest.raises(ConfigurationError):
            Mesh([0.0], [0.0], encoding=Encoding.RAW, placement=Placement.INLINE)

    def test_equality_ignores_encoding(self):
        mesh = Mesh([0.0, 1.0], [0.0, 1.0])
        assert mesh == mesh.with_encoding(Encoding.BASE64)


# ── Domain ─────────────────────────────────────────────────────


class TestDomain:
    def test_whole_defaults_to_spans(self, domain_2d):
        assert domain_2d.whole == domain_2d.spans
        assert domain_2d.origin == (0, 0)

    def test_coordinate_count_checked(self):
        mesh = Mesh([0.0, 1.0, 2.0], [0.0, 1.0])
        with pytest.raises(ShapeMismatch) as excinfo:
            build_domain(mesh, Spans(0, 2, 0, 2))
        assert excinfo.value.axis == "x"
        assert excinfo.value.expected == 2
        assert excinfo.value.actual == 3

    def test_dimensionality_checked(self):
        mesh = Mesh([0.0, 1.0], [0.0, 1.0])
        with pytest.raises(ShapeMismatch):
            build_domain(mesh, Spans(0, 2, 0, 2, 0, 1))

    def test_piece_inside_whole(self):
        mesh = Mesh([0.0, 1.0], [0.0, 1.0])
        domain = build_domain(mesh, Spans(3, 5, 0, 2), whole=Spans(0, 8, 0, 2))
        assert domain.origin == (3, 0)

    def test_piece_outside_whole_rejected(self):
        mesh = Mesh([0.0, 1.0], [0.0, 1.0])
        with pytest.raises(InvalidSpan):
            Domain(mesh, Spans(7, 9, 0, 2), whole=Spans(0, 8, 0, 2))

    def test_check_precision(self, domain_2d):
        domain_2d.check_precision(Precision.FLOAT64)
        with pytest.raises(PrecisionMismatch):
            domain_2d.check_precision(Precision.FLOAT32, name="rho")
