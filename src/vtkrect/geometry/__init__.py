"""Geometry module — spans, coordinate meshes, domains and piece composition."""

from vtkrect.geometry.pieces import combine_pieces
from vtkrect.geometry.rectilinear import Domain, Mesh, Spans, build_domain

__all__ = ["Domain", "Mesh", "Spans", "build_domain", "combine_pieces"]
