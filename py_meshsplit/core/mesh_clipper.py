"""
Clipping of closed triangle meshes against convex cells.

The mesh is cut by one half-space at a time. Each pass:
1. Classifies vertices as inside, outside or on the plane
2. Keeps inside triangles, drops outside ones and re-triangulates the
   inside part of straddling triangles (cut vertices are shared between
   neighbouring triangles so the surface stays connected)
3. Chains the open boundary edges left on the plane into closed loops,
   sorts them into outer boundaries and holes, and fills them with cap
   triangles facing along the plane normal

Malformed input never raises here; skipped elements are reported through
``SplitWarning`` records and the caller decides how to validate the result.
"""

from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

import numpy as np
import structlog

from .errors import DegenerateGeometry, SplitWarning, record_warning
from .geometry import Mesh, Plane, Side, classify_points, intersect_edge_with_plane, plane_basis
from .triangulation import point_in_polygon, signed_area, triangulate_polygon
from .voronoi_cells import Cell

logger = structlog.get_logger()

Edge = Tuple[int, int]


class _PlaneCut:
    """State of one clipping pass: new vertices, welded corners and output triangles."""

    def __init__(self, mesh: Mesh, plane: Plane, eps: float):
        self.mesh = mesh
        self.plane = plane
        self.eps = eps
        self.sides = classify_points(plane, mesh.vertices, eps)
        self.new_points: List[np.ndarray] = []
        self.edge_cuts: Dict[Edge, int] = {}
        self.alias: Dict[int, int] = {}
        self.on_plane: Set[int] = set(np.flatnonzero(self.sides == Side.ON_PLANE).tolist())
        self.polygons: List[List[int]] = []

    def position(self, index: int) -> np.ndarray:
        n = self.mesh.n_vertices
        return self.mesh.vertices[index] if index < n else self.new_points[index - n]

    def find(self, index: int) -> int:
        while index in self.alias:
            index = self.alias[index]
        return index

    def cut_edge(self, a: int, b: int) -> int:
        key = (min(a, b), max(a, b))
        if key not in self.edge_cuts:
            point = intersect_edge_with_plane(
                self.mesh.vertices[key[0]], self.mesh.vertices[key[1]], self.plane, self.eps
            )
            self.new_points.append(point)
            index = self.mesh.n_vertices + len(self.new_points) - 1
            self.edge_cuts[key] = index
            self.on_plane.add(index)
        return self.edge_cuts[key]

    def weld(self, a: int, b: int):
        """Collapse the newer of two coincident vertices onto the older one."""
        a, b = self.find(a), self.find(b)
        if a == b:
            return
        keep, drop = min(a, b), max(a, b)
        if drop < self.mesh.n_vertices:
            # Both are input vertices; the input is left as it is
            return
        self.alias[drop] = keep

    def clip_triangle(self, triangle: Sequence[int]):
        """Append the inside part of a straddling triangle as a polygon."""
        polygon = []
        for k in range(3):
            a = triangle[k]
            b = triangle[(k + 1) % 3]
            if self.sides[a] != Side.OUTSIDE:
                polygon.append(a)
            # strictly opposite sides
            if int(self.sides[a]) * int(self.sides[b]) == -1:
                polygon.append(self.cut_edge(a, b))

        for k in range(len(polygon)):
            a = polygon[k - 1]
            b = polygon[k]
            if a >= self.mesh.n_vertices or b >= self.mesh.n_vertices:
                if np.linalg.norm(self.position(a) - self.position(b)) <= self.eps:
                    self.weld(a, b)
        self.polygons.append(polygon)

    def vertices(self) -> np.ndarray:
        if not self.new_points:
            return np.asarray(self.mesh.vertices)
        return np.vstack([self.mesh.vertices, np.array(self.new_points)])


def _chain_loops(edges: Sequence[Edge]) -> Tuple[List[List[int]], int]:
    """
    Chain directed edges head to tail into closed loops.

    Vertices visited twice split the walk into separate loops. Returns the
    loops and the number of chains that could not be closed.
    """
    outgoing: Dict[int, List[int]] = defaultdict(list)
    for a, b in sorted(edges):
        outgoing[a].append(b)

    loops = []
    open_chains = 0
    while outgoing:
        start = min(outgoing)
        path = [start]
        current = start
        while True:
            targets = outgoing.get(current)
            if not targets:
                if len(path) > 1:
                    open_chains += 1
                break
            following = targets.pop(0)
            if not targets:
                del outgoing[current]
            if following in path:
                i = path.index(following)
                loops.append(path[i:])
                path = path[:i + 1]
            else:
                path.append(following)
            current = following
    return loops, open_chains


def _boundary_edges_on_plane(triangles: np.ndarray, on_plane: Set[int]) -> List[Edge]:
    """Directed edges without an opposite twin whose endpoints lie on the plane."""
    directed = set()
    for a, b, c in triangles.tolist():
        directed.update(((a, b), (b, c), (c, a)))
    return [
        (a, b) for a, b in directed
        if (b, a) not in directed and a in on_plane and b in on_plane
    ]


def _cap_triangles(
    vertices: np.ndarray,
    loops: List[List[int]],
    plane: Plane,
    eps: float,
    warnings: Optional[List[SplitWarning]],
    seed_id: Optional[int],
) -> List[Tuple[int, int, int]]:
    """Triangulate the cap loops of one plane, bridging holes into their outer loop."""
    u, v = plane_basis(plane.normal)
    points = vertices @ np.column_stack([u, v])

    outers = []
    holes = []
    for loop in loops:
        if len(loop) < 3:
            record_warning(warnings, "degenerate_cap", f"Cap loop with {len(loop)} vertices", seed_id)
            continue
        area = signed_area(loop, points)
        if area > eps * eps:
            outers.append((area, loop))
        elif area < -eps * eps:
            holes.append(loop)
        else:
            record_warning(warnings, "degenerate_cap", "Cap loop has zero area", seed_id)

    assigned: Dict[int, List[List[int]]] = defaultdict(list)
    for hole in holes:
        corner = points[hole[0]]
        containing = [
            (area, i) for i, (area, outer) in enumerate(outers)
            if point_in_polygon(corner, outer, points)
        ]
        if not containing:
            record_warning(warnings, "orphan_hole", "Cap hole outside every outer loop", seed_id)
            continue
        assigned[min(containing)[1]].append(hole)

    triangles = []
    for i, (_, outer) in enumerate(outers):
        triangles.extend(triangulate_polygon(outer, assigned.get(i, []), points))
    return triangles


def clip_mesh_by_plane(
    mesh: Mesh,
    plane: Plane,
    eps: float,
    warnings: Optional[List[SplitWarning]] = None,
    seed_id: Optional[int] = None,
) -> Mesh:
    """
    Keep the part of a closed mesh inside one half-space and cap the cut.

    Args:
        mesh: Closed input mesh
        plane: Half-space to keep (normal . x <= offset)
        eps: Absolute tolerance for on-plane classification and collapsing
        warnings: List collecting skipped degenerate elements
        seed_id: Owner of the cell being clipped, for warning records

    Returns:
        Clipped, compacted mesh (empty if nothing is inside)
    """
    if mesh.is_empty:
        return mesh

    cut = _PlaneCut(mesh, plane, eps)
    tri_sides = cut.sides[mesh.triangles]
    has_outside = np.any(tri_sides == Side.OUTSIDE, axis=1)
    has_inside = np.any(tri_sides == Side.INSIDE, axis=1)

    if not np.any(has_outside):
        return mesh
    if not np.any(has_inside):
        return Mesh.empty()

    kept = [mesh.triangles[has_inside & ~has_outside]]

    coplanar = np.all(tri_sides == Side.ON_PLANE, axis=1)
    if np.any(coplanar):
        tris = mesh.triangles[coplanar]
        a = mesh.vertices[tris[:, 0]]
        normals = np.cross(mesh.vertices[tris[:, 1]] - a, mesh.vertices[tris[:, 2]] - a)
        # Coplanar faces survive only when the solid lies behind them
        kept.append(tris[normals @ plane.normal > 0])

    for triangle in mesh.triangles[has_inside & has_outside].tolist():
        # Straddling endpoints differ by more than 2 * eps along the normal, so
        # finite input never reaches the parallel-edge error below
        try:
            cut.clip_triangle(triangle)
        except DegenerateGeometry as exc:
            record_warning(warnings, "degenerate_triangle", str(exc), seed_id)

    triangles = [tuple(t) for t in np.vstack(kept).tolist()]
    for polygon in cut.polygons:
        triangles.extend((polygon[0], polygon[i], polygon[i + 1]) for i in range(1, len(polygon) - 1))

    welded = []
    for triangle in triangles:
        a, b, c = (cut.find(v) for v in triangle)
        if a != b and b != c and c != a:
            welded.append((a, b, c))
    if not welded:
        return Mesh.empty()
    welded = np.array(welded, dtype=np.int64)

    on_plane = {cut.find(v) for v in cut.on_plane}
    loops, open_chains = _chain_loops([(b, a) for a, b in _boundary_edges_on_plane(welded, on_plane)])
    if open_chains:
        record_warning(
            warnings, "open_cap", f"{open_chains} cut boundary chain(s) could not be closed", seed_id
        )

    vertices = cut.vertices()
    caps = _cap_triangles(vertices, loops, plane, eps, warnings, seed_id)
    if caps:
        welded = np.vstack([welded, np.array(caps, dtype=np.int64)])

    return Mesh(vertices, welded).compact()


def _default_tolerance(mesh: Mesh) -> float:
    extent = float(np.max(mesh.bounds[1] - mesh.bounds[0])) if not mesh.is_empty else 0.0
    return 1e-6 * (extent if extent > 0 else 1.0)


def clip_mesh(
    mesh: Mesh,
    cell: Union[Cell, Sequence[Plane]],
    tolerance: Optional[float] = None,
    warnings: Optional[List[SplitWarning]] = None,
    seed_id: Optional[int] = None,
) -> Mesh:
    """
    Intersect the solid enclosed by ``mesh`` with a convex cell.

    Args:
        mesh: Closed input mesh; it is only read
        cell: Voronoi cell, or the half-space planes of any convex region
        tolerance: Absolute tolerance, relative to the mesh size if omitted
        warnings: List collecting skipped degenerate elements
        seed_id: Owner of the cell, defaults to the cell's seed

    Returns:
        The fragment, empty when the cell misses the solid

    Raises:
        ValueError: if ``tolerance`` is not a positive number
    """
    if tolerance is not None and not tolerance > 0:
        raise ValueError(f"Tolerance must be positive, got {tolerance}")
    if isinstance(cell, Cell):
        planes = cell.planes
        if seed_id is None:
            seed_id = cell.seed_id
    else:
        planes = list(cell)
    eps = tolerance if tolerance is not None else _default_tolerance(mesh)

    working = mesh
    for plane in planes:
        working = clip_mesh_by_plane(working, plane, eps, warnings=warnings, seed_id=seed_id)
        if working.is_empty:
            logger.debug("Cell misses the mesh", seed_id=seed_id)
            return Mesh.empty()
    return working
