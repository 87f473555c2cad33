"""
Planar polygon triangulation by ear clipping.

Follows Eberly's "Triangulation by Ear Clipping": holes are merged into the
outer boundary through a bridge to a mutually visible vertex, and the
resulting pseudo-simple polygon is clipped ear by ear.

Polygons are given as lists of indices into a shared (n, 2) point array so
the triangles come back in terms of the caller's vertex ids, including the
duplicated bridge vertices.
"""

from typing import List, Sequence, Tuple

import numpy as np

Triangle = Tuple[int, int, int]


def signed_area(ring: Sequence[int], points: np.ndarray) -> float:
    """Shoelace area; positive for counter-clockwise rings."""
    if len(ring) < 3:
        return 0.0
    xy = points[list(ring)]
    x = xy[:, 0]
    y = xy[:, 1]
    return 0.5 * float(np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


def _cross(o, a, b) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def point_in_triangle(p, a, b, c) -> bool:
    """True when p is inside or on the boundary of triangle abc."""
    d1 = _cross(a, b, p)
    d2 = _cross(b, c, p)
    d3 = _cross(c, a, p)
    has_neg = d1 < 0 or d2 < 0 or d3 < 0
    has_pos = d1 > 0 or d2 > 0 or d3 > 0
    return not (has_neg and has_pos)


def point_in_polygon(point, ring: Sequence[int], points: np.ndarray) -> bool:
    """Ray casting test against a closed ring."""
    x, y = point
    inside = False
    n = len(ring)
    j = n - 1
    for i in range(n):
        xi, yi = points[ring[i]]
        xj, yj = points[ring[j]]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def _find_visible_vertex(m_point, ring: List[int], points: np.ndarray) -> int:
    """Position in ``ring`` of a vertex mutually visible from the hole vertex."""
    mx, my = m_point
    n = len(ring)
    best_t = float("inf")
    hit = -1
    hit_point = None

    for i in range(n):
        vi = points[ring[i]]
        vj = points[ring[(i + 1) % n]]
        if not ((vi[1] <= my < vj[1]) or (vj[1] <= my < vi[1])):
            continue
        x = vi[0] + (my - vi[1]) / (vj[1] - vi[1]) * (vj[0] - vi[0])
        if x < mx:
            continue
        if x - mx < best_t:
            best_t = x - mx
            hit = i
            hit_point = (x, my)

    if hit == -1:
        # No edge crosses the ray; bridge to the closest vertex
        distances = [float(np.sum((points[v] - m_point) ** 2)) for v in ring]
        return int(np.argmin(distances))

    vi = points[ring[hit]]
    vj = points[ring[(hit + 1) % n]]
    if np.allclose(hit_point, vi):
        return hit
    if np.allclose(hit_point, vj):
        return (hit + 1) % n

    candidate = hit if vi[0] > vj[0] else (hit + 1) % n
    p_point = points[ring[candidate]]

    # A reflex vertex inside <M, I, P> would block the bridge
    best = candidate
    best_angle = float("inf")
    for i in range(n):
        if i == candidate:
            continue
        prev_v = points[ring[(i - 1) % n]]
        curr_v = points[ring[i]]
        next_v = points[ring[(i + 1) % n]]
        if _cross(prev_v, curr_v, next_v) >= 0:
            continue
        if not point_in_triangle(curr_v, m_point, hit_point, p_point):
            continue
        dx = curr_v[0] - mx
        if dx <= 0:
            continue
        angle = abs(curr_v[1] - my) / dx
        if angle < best_angle:
            best_angle = angle
            best = i
    return best


def merge_hole(ring: List[int], hole: List[int], points: np.ndarray) -> List[int]:
    """
    Splice a clockwise hole into a counter-clockwise ring through a bridge.

    Returns {ring[..V], hole[M..], M, V, ring[V+1..]}.
    """
    m_pos = max(range(len(hole)), key=lambda i: (points[hole[i]][0], -points[hole[i]][1]))
    v_pos = _find_visible_vertex(points[hole[m_pos]], ring, points)
    hole_from_m = hole[m_pos:] + hole[:m_pos]
    return ring[:v_pos + 1] + hole_from_m + [hole[m_pos], ring[v_pos]] + ring[v_pos + 1:]


def ear_clip(ring: List[int], points: np.ndarray) -> List[Triangle]:
    """
    Triangulate a counter-clockwise (pseudo-)simple ring.

    Collinear vertices stay in the ring so that the triangles share every
    boundary edge of the input loop.
    """
    remaining = list(ring)
    triangles: List[Triangle] = []

    while len(remaining) > 3:
        n = len(remaining)
        clipped = False
        for i in range(n):
            prev_id = remaining[i - 1]
            tip_id = remaining[i]
            next_id = remaining[(i + 1) % n]
            a, b, c = points[prev_id], points[tip_id], points[next_id]
            if _cross(a, b, c) <= 0:
                continue

            blocked = False
            for j in range(n):
                other = remaining[j]
                if other in (prev_id, tip_id, next_id):
                    continue
                p = points[other]
                before = points[remaining[j - 1]]
                after = points[remaining[(j + 1) % n]]
                if _cross(before, p, after) > 0:
                    continue
                if point_in_triangle(p, a, b, c):
                    blocked = True
                    break
            if blocked:
                continue

            triangles.append((prev_id, tip_id, next_id))
            del remaining[i]
            clipped = True
            break

        if not clipped:
            # No valid ear (numerically degenerate ring); clip the most convex corner
            turns = [
                _cross(points[remaining[i - 1]], points[remaining[i]], points[remaining[(i + 1) % n]])
                for i in range(n)
            ]
            i = int(np.argmax(turns))
            triangles.append((remaining[i - 1], remaining[i], remaining[(i + 1) % n]))
            del remaining[i]

    if len(remaining) == 3:
        triangles.append((remaining[0], remaining[1], remaining[2]))
    return triangles


def triangulate_polygon(
    outer: Sequence[int],
    holes: Sequence[Sequence[int]],
    points: np.ndarray,
) -> List[Triangle]:
    """
    Triangulate a polygon with optional holes.

    Args:
        outer: Indices of the outer boundary (any winding)
        holes: Index rings of holes lying inside ``outer`` (any winding)
        points: (n, 2) coordinates indexed by the rings

    Returns:
        Counter-clockwise triangles as index triples
    """
    points = np.asarray(points, dtype=np.float64)
    ring = list(outer)
    if signed_area(ring, points) < 0:
        ring.reverse()

    hole_rings = []
    for hole in holes:
        hole = list(hole)
        if signed_area(hole, points) > 0:
            hole.reverse()
        hole_rings.append(hole)

    # Rightmost holes first so earlier bridges never cross later ones
    hole_rings.sort(key=lambda h: max(points[v][0] for v in h), reverse=True)
    for hole in hole_rings:
        ring = merge_hole(ring, hole, points)

    return ear_clip(ring, points)
