"""
Core mesh splitting functionality.
"""

from .errors import (
    DegenerateCell, DegenerateGeometry, DuplicateSeed, InvalidDomain, InvalidSeed,
    MeshSplitError, SplitWarning,
)
from .geometry import Mesh, Plane, Side, side_of, intersect_edge_with_plane, polygon_normal_and_area
from .voronoi_cells import Cell, DomainBounds, Face, Seed, compute_cell, generate_cells
from .mesh_clipper import clip_mesh, clip_mesh_by_plane
from .mesh_splitter import SplitResult, split_mesh

__all__ = ['DegenerateCell', 'DegenerateGeometry', 'DuplicateSeed', 'InvalidDomain', 'InvalidSeed',
           'MeshSplitError', 'SplitWarning',
           'Mesh', 'Plane', 'Side', 'side_of', 'intersect_edge_with_plane', 'polygon_normal_and_area',
           'Cell', 'DomainBounds', 'Face', 'Seed', 'compute_cell', 'generate_cells',
           'clip_mesh', 'clip_mesh_by_plane', 'SplitResult', 'split_mesh']
