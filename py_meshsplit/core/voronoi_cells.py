"""
Voronoi cell generation restricted to an axis-aligned domain.

Each cell starts as the domain box and is clipped by the bisector plane of
every nearby seed, nearest first. Seeds farther than twice the current cell
radius cannot cut the cell any more, so the scan stops there.

During construction a cell lives in a small arena (vertex positions plus
faces as integer loops). Once finished it is converted into immutable
``Face``/``Cell`` values and the arena is thrown away.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import structlog
from scipy.spatial import cKDTree

from .errors import DegenerateCell, DuplicateSeed, InvalidDomain, InvalidSeed
from .geometry import (
    Mesh,
    Plane,
    Side,
    classify_points,
    intersect_edge_with_plane,
    plane_basis,
    polygon_normal_and_area,
)

logger = structlog.get_logger()

# Relative tolerance used when none is configured
DEFAULT_RELATIVE_TOLERANCE = 1e-6

# Box corners are indexed x + 2y + 4z; loops wind counter-clockwise from outside
_BOX_FACES = (
    ((0, 4, 6, 2), (-1.0, 0.0, 0.0)),
    ((1, 3, 7, 5), (1.0, 0.0, 0.0)),
    ((0, 1, 5, 4), (0.0, -1.0, 0.0)),
    ((2, 6, 7, 3), (0.0, 1.0, 0.0)),
    ((0, 2, 3, 1), (0.0, 0.0, -1.0)),
    ((4, 5, 7, 6), (0.0, 0.0, 1.0)),
)


@dataclass(frozen=True)
class DomainBounds:
    """Axis-aligned box the tessellation is restricted to."""
    minimum: Tuple[float, float, float]
    maximum: Tuple[float, float, float]

    def __post_init__(self):
        try:
            minimum = tuple(float(v) for v in self.minimum)
            maximum = tuple(float(v) for v in self.maximum)
        except (TypeError, ValueError) as exc:
            raise InvalidDomain(f"Domain bounds are not numeric: {exc}") from exc
        if len(minimum) != 3 or len(maximum) != 3:
            raise InvalidDomain("Domain bounds need three coordinates per corner")
        if not (np.all(np.isfinite(minimum)) and np.all(np.isfinite(maximum))):
            raise InvalidDomain("Domain bounds must be finite")
        if any(hi <= lo for lo, hi in zip(minimum, maximum)):
            raise InvalidDomain(f"Domain has non-positive extent: {minimum} .. {maximum}")
        object.__setattr__(self, "minimum", minimum)
        object.__setattr__(self, "maximum", maximum)

    @classmethod
    def cube(cls, half_extent: float) -> "DomainBounds":
        """Cube centred on the origin."""
        if not half_extent > 0:
            raise InvalidDomain(f"Domain half-extent must be positive, got {half_extent}")
        return cls((-half_extent,) * 3, (half_extent,) * 3)

    @property
    def size(self) -> np.ndarray:
        return np.subtract(self.maximum, self.minimum)

    @property
    def extent(self) -> float:
        """Largest side length."""
        return float(np.max(self.size))

    def tolerance(self, override: Optional[float] = None) -> float:
        """
        Numeric tolerance, relative to the domain scale unless overridden.

        Raises:
            ValueError: if ``override`` is not a positive number
        """
        if override is not None:
            if not override > 0:
                raise ValueError(f"Tolerance must be positive, got {override}")
            return float(override)
        return DEFAULT_RELATIVE_TOLERANCE * self.extent

    def contains(self, point, margin: float = 0.0) -> bool:
        """True if ``point`` lies strictly inside the box shrunk by ``margin``."""
        p = np.asarray(point, dtype=np.float64)
        return bool(
            np.all(p > np.add(self.minimum, margin)) and np.all(p < np.subtract(self.maximum, margin))
        )

    def corners(self) -> np.ndarray:
        lo, hi = self.minimum, self.maximum
        return np.array([
            (hi[0] if i & 1 else lo[0], hi[1] if i & 2 else lo[1], hi[2] if i & 4 else lo[2])
            for i in range(8)
        ])

    def planes(self) -> List[Plane]:
        """The six wall planes with the box on their inside."""
        corners = self.corners()
        return [Plane.from_point_normal(corners[loop[0]], normal) for loop, normal in _BOX_FACES]


@dataclass(frozen=True)
class Seed:
    """Generator point of one Voronoi cell."""
    id: int
    position: Tuple[float, float, float]

    def __post_init__(self):
        object.__setattr__(self, "id", int(self.id))
        object.__setattr__(self, "position", tuple(float(v) for v in self.position))

    @property
    def point(self) -> np.ndarray:
        return np.array(self.position)


@dataclass(frozen=True, eq=False)
class Face:
    """
    Planar convex polygon on a cell boundary.

    Vertices wind counter-clockwise seen from outside the cell. ``neighbor``
    is the seed across the face, or None when the face lies on the domain wall.
    """
    vertices: np.ndarray
    plane: Plane
    neighbor: Optional[int] = None

    def __post_init__(self):
        vertices = np.array(self.vertices, dtype=np.float64).reshape(-1, 3)
        vertices.flags.writeable = False
        object.__setattr__(self, "vertices", vertices)

    @property
    def is_boundary(self) -> bool:
        return self.neighbor is None

    @property
    def normal(self) -> np.ndarray:
        return polygon_normal_and_area(self.vertices)[0]

    @property
    def area(self) -> float:
        return polygon_normal_and_area(self.vertices)[1]


@dataclass(frozen=True, eq=False)
class Cell:
    """Convex Voronoi cell of one seed."""
    seed_id: int
    position: np.ndarray
    faces: Tuple[Face, ...] = field(default_factory=tuple)

    @property
    def planes(self) -> List[Plane]:
        return [face.plane for face in self.faces]

    @property
    def neighbors(self) -> List[int]:
        """Ids of the seeds sharing a face with this cell."""
        return sorted({face.neighbor for face in self.faces if face.neighbor is not None})

    @property
    def vertices(self) -> np.ndarray:
        return np.unique(np.vstack([face.vertices for face in self.faces]), axis=0)

    def volume(self) -> float:
        """Sum of face pyramids: V = 1/3 * sum(area * offset)."""
        return sum(face.area * face.plane.offset for face in self.faces) / 3.0

    def contains(self, point, eps: float = 0.0) -> bool:
        return all(plane.signed_distance(point) <= eps for plane in self.planes)

    def to_mesh(self) -> Mesh:
        """Fan-triangulated surface of the cell, one vertex block per face."""
        vertices = []
        triangles = []
        offset = 0
        for face in self.faces:
            n = len(face.vertices)
            vertices.append(face.vertices)
            triangles.extend((offset, offset + i, offset + i + 1) for i in range(1, n - 1))
            offset += n
        if not vertices:
            return Mesh.empty()
        return Mesh(np.vstack(vertices), np.array(triangles, dtype=np.int64))


@dataclass
class _ArenaFace:
    loop: List[int]
    plane: Plane
    neighbor: Optional[int]


class _ConvexPolyhedron:
    """Mutable convex polyhedron used while one cell is being built."""

    def __init__(self, vertices: List[np.ndarray], faces: List[_ArenaFace]):
        self.vertices = vertices
        self.faces = faces

    @classmethod
    def from_domain(cls, domain: DomainBounds) -> "_ConvexPolyhedron":
        corners = domain.corners()
        faces = [
            _ArenaFace(list(loop), plane, None)
            for (loop, _), plane in zip(_BOX_FACES, domain.planes())
        ]
        return cls(list(corners), faces)

    def used_vertices(self) -> List[int]:
        return sorted({v for face in self.faces for v in face.loop})

    def max_radius(self, center: np.ndarray) -> float:
        used = self.used_vertices()
        if not used:
            return 0.0
        points = np.array([self.vertices[v] for v in used])
        return float(np.max(np.linalg.norm(points - center, axis=1)))

    def _cut_vertex(self, a: int, b: int, plane: Plane, eps: float, cache: Dict) -> int:
        key = (min(a, b), max(a, b))
        if key not in cache:
            self.vertices.append(
                intersect_edge_with_plane(self.vertices[a], self.vertices[b], plane, eps)
            )
            cache[key] = len(self.vertices) - 1
        return cache[key]

    def clip(self, plane: Plane, neighbor: Optional[int], eps: float) -> bool:
        """
        Keep the part of the polyhedron inside ``plane``.

        Returns True if the polyhedron changed.
        """
        sides = classify_points(plane, np.array(self.vertices), eps)
        used = self.used_vertices()
        if not np.any(sides[used] == Side.OUTSIDE):
            return False
        if not np.any(sides[used] == Side.INSIDE):
            self.faces = []
            return True

        cache: Dict[Tuple[int, int], int] = {}
        section = set()
        faces = []
        for face in self.faces:
            loop = face.loop
            clipped = []
            for k, a in enumerate(loop):
                b = loop[(k + 1) % len(loop)]
                if sides[a] != Side.OUTSIDE:
                    clipped.append(a)
                    if sides[a] == Side.ON_PLANE:
                        section.add(a)
                # strictly opposite sides
                if int(sides[a]) * int(sides[b]) == -1:
                    cut = self._cut_vertex(a, b, plane, eps, cache)
                    clipped.append(cut)
                    section.add(cut)
            clipped = [v for k, v in enumerate(clipped) if v != clipped[k - 1]]
            if len(clipped) >= 3:
                faces.append(_ArenaFace(clipped, face.plane, face.neighbor))

        cap = self._order_section(sorted(section), plane)
        if len(cap) >= 3:
            area = polygon_normal_and_area([self.vertices[v] for v in cap])[1]
            if area > eps * eps:
                faces.append(_ArenaFace(cap, plane, neighbor))
        self.faces = faces
        return True

    def _order_section(self, section: List[int], plane: Plane) -> List[int]:
        """Order the cross-section vertices counter-clockwise about the plane normal."""
        if len(section) < 3:
            return section
        points = np.array([self.vertices[v] for v in section])
        u, v = plane_basis(plane.normal)
        relative = points - points.mean(axis=0)
        angles = np.arctan2(relative @ v, relative @ u)
        return [section[i] for i in np.argsort(angles, kind="stable")]

    def to_faces(self, eps: float) -> Tuple[Face, ...]:
        faces = []
        for face in self.faces:
            points = np.array([self.vertices[v] for v in face.loop])
            if polygon_normal_and_area(points)[1] <= eps * eps:
                continue
            faces.append(Face(points, face.plane, face.neighbor))
        return tuple(faces)


def build_seed_tree(seeds: Sequence[Seed]) -> cKDTree:
    return cKDTree(np.array([seed.position for seed in seeds], dtype=np.float64).reshape(-1, 3))


def validate_seeds(domain: DomainBounds, seeds: Sequence[Seed], eps: float) -> cKDTree:
    """
    Check the seed preconditions and return a k-d tree over the positions.

    Raises:
        InvalidSeed: repeated ids or seeds not strictly inside the domain
        DuplicateSeed: two seeds within ``eps`` of each other
    """
    if not seeds:
        raise InvalidSeed("At least one seed is required")
    ids = [seed.id for seed in seeds]
    if len(set(ids)) != len(ids):
        raise InvalidSeed("Seed ids must be unique")
    for seed in seeds:
        if not domain.contains(seed.position, margin=eps):
            raise InvalidSeed(f"Seed {seed.id} at {seed.position} lies outside the domain")

    tree = build_seed_tree(seeds)
    pairs = tree.query_pairs(eps, output_type="ndarray")
    if len(pairs):
        first, second = sorted((ids[i], ids[j]) for i, j in pairs)[0]
        a = seeds[ids.index(first)].point
        b = seeds[ids.index(second)].point
        raise DuplicateSeed((first, second), float(np.linalg.norm(a - b)))
    return tree


def _neighbors_by_distance(tree: cKDTree, position: np.ndarray, count: int) -> Iterator[Tuple[float, int]]:
    """Yield (distance, index) of all seeds, nearest first."""
    k = min(16, count)
    start = 0
    while start < count:
        distances, indices = tree.query(position, k=k)
        distances = np.atleast_1d(distances)
        indices = np.atleast_1d(indices)
        for distance, index in zip(distances[start:], indices[start:]):
            yield float(distance), int(index)
        start = k
        k = min(2 * k, count)


def compute_cell(
    seed: Seed,
    domain: DomainBounds,
    seeds: Sequence[Seed],
    tree: Optional[cKDTree] = None,
    tolerance: Optional[float] = None,
) -> Cell:
    """
    Compute the Voronoi cell of one seed.

    Args:
        seed: Seed owning the cell
        domain: Bounding box of the tessellation
        seeds: All seeds of the tessellation (``seed`` included)
        tree: k-d tree over ``seeds`` positions, built if omitted
        tolerance: Absolute tolerance, relative to the domain if omitted

    Raises:
        DegenerateCell: if fewer than four faces survive
    """
    eps = domain.tolerance(tolerance)
    if tree is None:
        tree = build_seed_tree(seeds)
    center = seed.point
    polyhedron = _ConvexPolyhedron.from_domain(domain)
    radius = polyhedron.max_radius(center)
    cuts = 0

    for distance, index in _neighbors_by_distance(tree, center, len(seeds)):
        other = seeds[index]
        if other.id == seed.id:
            continue
        if 0.5 * distance > radius + eps:
            break
        if polyhedron.clip(Plane.from_bisector(center, other.point), other.id, eps):
            cuts += 1
            radius = polyhedron.max_radius(center)

    faces = polyhedron.to_faces(eps)
    if len(faces) < 4:
        raise DegenerateCell(seed.id, len(faces))

    logger.debug("Cell computed", seed_id=seed.id, faces=len(faces), cuts=cuts)
    return Cell(seed_id=seed.id, position=center, faces=faces)


def generate_cells(
    domain: DomainBounds,
    seeds: Sequence[Seed],
    tolerance: Optional[float] = None,
) -> Dict[int, Cell]:
    """
    Compute the Voronoi tessellation of ``domain`` for ``seeds``.

    Returns:
        Mapping from seed id to its cell, ordered by seed id

    Raises:
        InvalidSeed, DuplicateSeed: on violated seed preconditions
        DegenerateCell: if any cell degenerates
    """
    eps = domain.tolerance(tolerance)
    seeds = list(seeds)
    logger.info("Generating Voronoi cells", seeds=len(seeds), extent=domain.extent, tolerance=eps)

    tree = validate_seeds(domain, seeds, eps)
    cells = {}
    for seed in sorted(seeds, key=lambda s: s.id):
        cells[seed.id] = compute_cell(seed, domain, seeds, tree=tree, tolerance=eps)

    logger.info("Voronoi cells generated", cells=len(cells))
    return cells
