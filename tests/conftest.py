"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import numpy as np
import pytest

from vtkrect.geometry.rectilinear import Mesh, Spans, build_domain


@pytest.fixture
def grid_shape_2d():
    """Small 2-D grid for fast unit tests."""
    return (4, 3)


@pytest.fixture
def grid_shape_3d():
    return (4, 3, 2)


@pytest.fixture
def domain_2d(grid_shape_2d):
    """Float64 2-D domain starting at index 0."""
    nx, ny = grid_shape_2d
    mesh = Mesh(np.linspace(0.0, 1.0, nx), np.linspace(-1.0, 1.0, ny))
    return build_domain(mesh, Spans.from_shape(nx, ny))


@pytest.fixture
def domain_3d(grid_shape_3d):
    """Float64 3-D domain starting at index 0."""
    nx, ny, nz = grid_shape_3d
    mesh = Mesh(
        np.linspace(0.0, 1.0, nx),
        np.linspace(0.0, 0.5, ny),
        np.linspace(0.0, 0.25, nz),
    )
    return build_domain(mesh, Spans.from_shape(nx, ny, nz))


@pytest.fixture
def fields_2d(grid_shape_2d):
    """A scalar and a 2-component vector field on the 2-D grid."""
    rng = np.random.default_rng(42)
    return {
        "rho": rng.random(grid_shape_2d),
        "velocity": rng.random((2, *grid_shape_2d)),
    }


@pytest.fixture
def fields_3d(grid_shape_3d):
    """A scalar and a 3-component vector field on the 3-D grid."""
    rng = np.random.default_rng(7)
    return {
        "pressure": rng.random(grid_shape_3d) * 1e5,
        "B": rng.standard_normal((3, *grid_shape_3d)),
    }
