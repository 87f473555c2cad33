"""
Geometry kernel for mesh splitting.

This module provides the primitive types and predicates the cell generator
and the mesh clipper are built on:
- Planes as half-spaces {x : normal . x <= offset}
- Side-of-plane classification with a numeric tolerance
- Edge/plane intersection
- Polygon normal and area via Newell's method
- An immutable triangle mesh with volume and watertightness helpers
"""

from collections import Counter
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, List, NamedTuple, Tuple

import numpy as np
import structlog

from .errors import DegenerateGeometry

logger = structlog.get_logger()


class Side(IntEnum):
    """Position of a point relative to a plane."""
    INSIDE = -1
    ON_PLANE = 0
    OUTSIDE = 1


class Plane(NamedTuple):
    """Half-space bounded by a plane; points with normal . x <= offset are inside."""
    normal: np.ndarray
    offset: float

    @classmethod
    def from_point_normal(cls, point, normal) -> "Plane":
        """Build a plane through ``point``; ``normal`` points to the outside."""
        normal = np.asarray(normal, dtype=np.float64)
        length = np.linalg.norm(normal)
        if length == 0.0:
            raise DegenerateGeometry("Plane normal has zero length")
        normal = normal / length
        return cls(normal, float(np.dot(normal, np.asarray(point, dtype=np.float64))))

    @classmethod
    def from_bisector(cls, own, other) -> "Plane":
        """
        Perpendicular bisector between two seed positions.

        The inside of the returned plane is the half-space closer to ``own``.
        """
        own = np.asarray(own, dtype=np.float64)
        other = np.asarray(other, dtype=np.float64)
        return cls.from_point_normal(0.5 * (own + other), other - own)

    def signed_distance(self, points) -> np.ndarray:
        """Signed distance of one point or an (n, 3) array of points."""
        return np.asarray(points, dtype=np.float64) @ self.normal - self.offset

    def flipped(self) -> "Plane":
        return Plane(-self.normal, -self.offset)


def side_of(plane: Plane, point, eps: float) -> Side:
    """Classify a point as inside, outside or on the plane within ``eps``."""
    distance = float(plane.signed_distance(point))
    if distance > eps:
        return Side.OUTSIDE
    if distance < -eps:
        return Side.INSIDE
    return Side.ON_PLANE


def classify_points(plane: Plane, points: np.ndarray, eps: float) -> np.ndarray:
    """Vectorized ``side_of``; returns an int array of ``Side`` values."""
    distances = plane.signed_distance(points)
    sides = np.zeros(len(distances), dtype=np.int8)
    sides[distances > eps] = Side.OUTSIDE
    sides[distances < -eps] = Side.INSIDE
    return sides


def intersect_edge_with_plane(p0, p1, plane: Plane, eps: float) -> np.ndarray:
    """
    Intersect the segment p0-p1 with a plane.

    The endpoints are expected on strictly opposite sides of the plane.

    Raises:
        DegenerateGeometry: if the segment is parallel to the plane within eps
    """
    p0 = np.asarray(p0, dtype=np.float64)
    p1 = np.asarray(p1, dtype=np.float64)
    direction = p1 - p0
    denominator = float(np.dot(plane.normal, direction))
    if abs(denominator) < eps:
        raise DegenerateGeometry(
            f"Edge {p0.tolist()} -> {p1.tolist()} is parallel to the cutting plane"
        )
    t = (plane.offset - float(np.dot(plane.normal, p0))) / denominator
    t = min(max(t, 0.0), 1.0)
    return p0 + t * direction


def polygon_normal_and_area(vertices) -> Tuple[np.ndarray, float]:
    """
    Unit normal and area of a planar polygon using Newell's method.

    A zero area (and zero normal) marks a degenerate polygon.
    """
    points = np.asarray(vertices, dtype=np.float64)
    if len(points) < 3:
        return np.zeros(3), 0.0
    following = np.roll(points, -1, axis=0)
    normal = np.array([
        np.sum((points[:, 1] - following[:, 1]) * (points[:, 2] + following[:, 2])),
        np.sum((points[:, 2] - following[:, 2]) * (points[:, 0] + following[:, 0])),
        np.sum((points[:, 0] - following[:, 0]) * (points[:, 1] + following[:, 1])),
    ])
    length = float(np.linalg.norm(normal))
    if length == 0.0:
        return np.zeros(3), 0.0
    return normal / length, 0.5 * length


def plane_basis(normal) -> Tuple[np.ndarray, np.ndarray]:
    """Two orthonormal in-plane axes (u, v) with u x v == normal."""
    normal = np.asarray(normal, dtype=np.float64)
    axis = np.zeros(3)
    axis[int(np.argmin(np.abs(normal)))] = 1.0
    u = np.cross(axis, normal)
    u /= np.linalg.norm(u)
    v = np.cross(normal, u)
    return u, v


def triangle_areas(vertices: np.ndarray, triangles: np.ndarray) -> np.ndarray:
    """Area of every triangle."""
    if len(triangles) == 0:
        return np.zeros(0)
    a = vertices[triangles[:, 0]]
    b = vertices[triangles[:, 1]]
    c = vertices[triangles[:, 2]]
    return 0.5 * np.linalg.norm(np.cross(b - a, c - a), axis=1)


@dataclass(frozen=True, eq=False)
class Mesh:
    """
    Triangle mesh with read-only vertex and index arrays.

    Triangles are wound counter-clockwise seen from outside, so a closed mesh
    has positive volume.
    """
    vertices: np.ndarray
    triangles: np.ndarray

    def __post_init__(self):
        vertices = np.array(self.vertices, dtype=np.float64).reshape(-1, 3)
        triangles = np.array(self.triangles, dtype=np.int64).reshape(-1, 3)
        vertices.flags.writeable = False
        triangles.flags.writeable = False
        object.__setattr__(self, "vertices", vertices)
        object.__setattr__(self, "triangles", triangles)

    @classmethod
    def empty(cls) -> "Mesh":
        return cls(np.zeros((0, 3)), np.zeros((0, 3), dtype=np.int64))

    @classmethod
    def concatenate(cls, meshes: Iterable["Mesh"]) -> "Mesh":
        """Merge meshes into one, keeping their vertices separate."""
        vertices = []
        triangles = []
        offset = 0
        for mesh in meshes:
            vertices.append(mesh.vertices)
            triangles.append(mesh.triangles + offset)
            offset += mesh.n_vertices
        if not vertices:
            return cls.empty()
        return cls(np.vstack(vertices), np.vstack(triangles))

    @property
    def n_vertices(self) -> int:
        return len(self.vertices)

    @property
    def n_triangles(self) -> int:
        return len(self.triangles)

    @property
    def is_empty(self) -> bool:
        return self.n_triangles == 0

    @property
    def bounds(self) -> np.ndarray:
        """[[min_x, min_y, min_z], [max_x, max_y, max_z]] of referenced vertices."""
        if self.is_empty:
            return np.zeros((2, 3))
        used = self.vertices[np.unique(self.triangles)]
        return np.array([used.min(axis=0), used.max(axis=0)])

    def volume(self) -> float:
        """Signed enclosed volume (divergence theorem)."""
        if self.is_empty:
            return 0.0
        a = self.vertices[self.triangles[:, 0]]
        b = self.vertices[self.triangles[:, 1]]
        c = self.vertices[self.triangles[:, 2]]
        return float(np.sum(np.einsum("ij,ij->i", a, np.cross(b, c))) / 6.0)

    def surface_area(self) -> float:
        return float(np.sum(triangle_areas(self.vertices, self.triangles)))

    def open_edges(self) -> List[Tuple[int, int]]:
        """
        Undirected edges that break the closed 2-manifold property.

        An edge is fine when each direction appears exactly once.
        """
        if self.is_empty:
            return []
        t = self.triangles
        directed = np.concatenate([t[:, [0, 1]], t[:, [1, 2]], t[:, [2, 0]]])
        counts = Counter(map(tuple, directed.tolist()))
        broken = set()
        for (a, b), count in counts.items():
            if count != 1 or counts.get((b, a), 0) != 1:
                broken.add((min(a, b), max(a, b)))
        return sorted(broken)

    def is_watertight(self) -> bool:
        return not self.open_edges()

    def compact(self) -> "Mesh":
        """Drop vertices no triangle references."""
        if self.is_empty:
            return Mesh.empty()
        used, remapped = np.unique(self.triangles, return_inverse=True)
        return Mesh(self.vertices[used], remapped.reshape(-1, 3))

    def translated(self, offset) -> "Mesh":
        return Mesh(self.vertices + np.asarray(offset, dtype=np.float64), self.triangles)
