"""Stock closed meshes and input normalization."""

import numpy as np
import structlog

from .geometry import Mesh

logger = structlog.get_logger()


def cube(size: float = 1.0) -> Mesh:
    """Axis-aligned cube centred on the origin."""
    h = 0.5 * size
    vertices = np.array([
        (h if i & 1 else -h, h if i & 2 else -h, h if i & 4 else -h) for i in range(8)
    ])
    quads = [(0, 4, 6, 2), (1, 3, 7, 5), (0, 1, 5, 4), (2, 6, 7, 3), (0, 2, 3, 1), (4, 5, 7, 6)]
    triangles = []
    for a, b, c, d in quads:
        triangles.append((a, b, c))
        triangles.append((a, c, d))
    return Mesh(vertices, triangles)


def _ring(radius: float, y: float, segments: int) -> np.ndarray:
    angles = 2.0 * np.pi * np.arange(segments) / segments
    return np.column_stack([radius * np.cos(angles), np.full(segments, y), radius * np.sin(angles)])


def _band(upper: int, lower: int, segments: int):
    """Triangles joining two consecutive rings that start at the given offsets."""
    triangles = []
    for i in range(segments):
        j = (i + 1) % segments
        triangles.append((lower + i, upper + j, lower + j))
        triangles.append((lower + i, upper + i, upper + j))
    return triangles


def cylinder(radius: float = 0.5, height: float = 1.0, segments: int = 24) -> Mesh:
    """Closed cylinder along the y axis, centred on the origin."""
    if segments < 3:
        raise ValueError("A cylinder needs at least 3 segments")
    h = 0.5 * height
    vertices = np.vstack([
        _ring(radius, -h, segments),
        _ring(radius, h, segments),
        [(0.0, -h, 0.0), (0.0, h, 0.0)],
    ])
    bottom, top = 0, segments
    bottom_center, top_center = 2 * segments, 2 * segments + 1

    triangles = _band(top, bottom, segments)
    for i in range(segments):
        j = (i + 1) % segments
        triangles.append((top_center, top + j, top + i))
        triangles.append((bottom_center, bottom + i, bottom + j))
    return Mesh(vertices, triangles)


def sphere(radius: float = 0.5, segments: int = 24, rings: int = 12) -> Mesh:
    """UV sphere centred on the origin with poles on the y axis."""
    if segments < 3 or rings < 2:
        raise ValueError("A sphere needs at least 3 segments and 2 rings")
    polar = np.pi * np.arange(1, rings) / rings
    vertices = [np.array([[0.0, radius, 0.0]])]
    for phi in polar:
        vertices.append(_ring(radius * np.sin(phi), radius * np.cos(phi), segments))
    vertices.append(np.array([[0.0, -radius, 0.0]]))
    vertices = np.vstack(vertices)

    north = 0
    south = len(vertices) - 1
    triangles = []
    for i in range(segments):
        j = (i + 1) % segments
        triangles.append((north, 1 + j, 1 + i))
    for k in range(rings - 2):
        triangles.extend(_band(1 + k * segments, 1 + (k + 1) * segments, segments))
    last = 1 + (rings - 2) * segments
    for i in range(segments):
        j = (i + 1) % segments
        triangles.append((south, last + i, last + j))
    return Mesh(vertices, triangles)


SHAPES = {
    "cube": cube,
    "cylinder": cylinder,
    "sphere": sphere,
}


def normalize_mesh(mesh: Mesh, target: float = 1.0) -> Mesh:
    """
    Uniformly scale a mesh so its largest absolute coordinate equals ``target``.

    The mesh is not re-centred; a mesh around the origin ends up inside
    the cube [-target, target]^3.
    """
    if mesh.is_empty:
        return mesh
    largest = float(np.max(np.abs(mesh.vertices)))
    if largest == 0.0:
        logger.warning("Mesh collapses to the origin, leaving it unscaled")
        return mesh
    scale = target / largest
    logger.debug("Normalizing mesh", scale=scale)
    return Mesh(mesh.vertices * scale, mesh.triangles)
