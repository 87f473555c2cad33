"""Tests for clipping closed meshes against planes and cells."""

import pytest
import numpy as np
from py_meshsplit.core import mesh_clipper
from py_meshsplit.core.errors import DegenerateGeometry
from py_meshsplit.core.geometry import Mesh, Plane, triangle_areas
from py_meshsplit.core.mesh_clipper import _cap_triangles, clip_mesh, clip_mesh_by_plane
from py_meshsplit.core.primitives import cube, cylinder, sphere
from py_meshsplit.core.voronoi_cells import DomainBounds, Seed, compute_cell

EPS = 1e-9


@pytest.fixture
def hollow_cube():
    """Unit cube with a cube-shaped cavity of side 0.5."""
    inner = cube(size=0.5)
    cavity = Mesh(inner.vertices, inner.triangles[:, ::-1])
    return Mesh.concatenate([cube(), cavity])


def plane(normal, offset=0.0):
    return Plane.from_point_normal(np.asarray(normal, dtype=float) * offset, normal)


class TestClipMeshByPlane:
    """Test a single clipping pass."""

    def test_half_cube(self):
        """Test cutting the unit cube through its centre."""
        result = clip_mesh_by_plane(cube(), plane([1, 0, 0]), EPS)

        assert result.is_watertight()
        assert result.volume() == pytest.approx(0.5)
        assert result.surface_area() == pytest.approx(4.0)
        assert result.bounds[1][0] == pytest.approx(0.0)

    def test_plane_missing_mesh_keeps_it(self):
        """Test that a plane outside the mesh leaves it unchanged."""
        mesh = cube()
        result = clip_mesh_by_plane(mesh, plane([1, 0, 0], 2.0), EPS)

        assert result is mesh

    def test_plane_excluding_mesh_empties_it(self):
        """Test that a plane with the mesh on its outside removes everything."""
        result = clip_mesh_by_plane(cube(), plane([-1, 0, 0], 2.0).flipped(), EPS)

        assert result.is_empty

    def test_plane_on_face(self):
        """Test a plane coinciding with a face of the cube."""
        mesh = cube()

        assert clip_mesh_by_plane(mesh, plane([1, 0, 0], 0.5), EPS) is mesh
        assert clip_mesh_by_plane(mesh, plane([1, 0, 0], -0.5), EPS).is_empty

    def test_plane_through_vertices(self):
        """Test a diagonal cut through four cube corners."""
        result = clip_mesh_by_plane(cube(), plane(np.array([1, 1, 0]) / np.sqrt(2)), EPS)

        assert result.is_watertight()
        assert result.volume() == pytest.approx(0.5)
        assert result.n_vertices == 8

    def test_cap_with_hole(self, hollow_cube):
        """Test that a cavity leaves a hole in the cap."""
        result = clip_mesh_by_plane(hollow_cube, plane([0, 0, 1]), EPS)

        assert result.is_watertight()
        assert result.volume() == pytest.approx(0.5 * (1.0 - 0.125))

    def test_disconnected_cap_loops(self):
        """Test a cut through two separate solids."""
        mesh = Mesh.concatenate([cube(), cube().translated([2, 0, 0])])
        result = clip_mesh_by_plane(mesh, plane([0, 1, 0], 0.1), EPS)

        assert result.is_watertight()
        assert result.volume() == pytest.approx(2 * 0.6)

    @pytest.mark.parametrize("factory", [cylinder, sphere])
    def test_curved_meshes(self, factory):
        """Test oblique cuts through curved stock meshes."""
        mesh = factory()
        cut_plane = Plane.from_point_normal([0.05, 0.1, -0.02], [0.3, 1.0, 0.2])
        inside = clip_mesh_by_plane(mesh, cut_plane, EPS)
        outside = clip_mesh_by_plane(mesh, cut_plane.flipped(), EPS)

        assert inside.is_watertight()
        assert outside.is_watertight()
        assert inside.volume() + outside.volume() == pytest.approx(mesh.volume(), rel=1e-9)

    def test_input_not_modified(self):
        """Test that clipping never writes to the input mesh."""
        mesh = cube()
        vertices = mesh.vertices.copy()
        triangles = mesh.triangles.copy()
        clip_mesh_by_plane(mesh, plane([1, 1, 1]), EPS)

        np.testing.assert_array_equal(mesh.vertices, vertices)
        np.testing.assert_array_equal(mesh.triangles, triangles)

    def test_open_input_does_not_raise(self):
        """Test that a mesh with a missing triangle is still processed."""
        mesh = cube()
        open_mesh = Mesh(mesh.vertices, mesh.triangles[1:])
        warnings = []
        result = clip_mesh_by_plane(open_mesh, plane([0, 0, 1]), EPS, warnings=warnings)

        assert not result.is_empty
        assert any(warning.kind == "open_cap" for warning in warnings)


class TestDegenerateElements:
    """Test collapsed cuts and skipped elements."""

    @pytest.fixture
    def narrow_tetrahedron(self):
        """Tetrahedron with a small base under a tall apex."""
        vertices = [(0, 0, 0), (0.3, 0, 0), (0, 0.3, 0), (0.1, 0.1, 1)]
        triangles = [(0, 2, 1), (0, 1, 3), (1, 2, 3), (2, 0, 3)]
        return Mesh(vertices, triangles)

    def test_collapsed_apex_cut(self, narrow_tetrahedron):
        """Test that cut points closer than eps are welded into one vertex."""
        eps = 1e-3
        # Apex is 2 * eps outside; its three cut points lie within eps of each other
        cut_plane = Plane.from_point_normal([0, 0, 1 - 2 * eps], [0, 0, 1])
        result = clip_mesh_by_plane(narrow_tetrahedron, cut_plane, eps)

        assert result.is_watertight()
        assert result.n_vertices == 4
        assert result.n_triangles == 4
        assert triangle_areas(result.vertices, result.triangles).min() > 1e-6
        assert result.bounds[1][2] == pytest.approx(1 - 2 * eps)
        assert result.volume() == pytest.approx(0.045 / 3, rel=1e-2)

    def test_separated_apex_cut(self, narrow_tetrahedron):
        """Test that cut points farther apart than eps get a cap."""
        eps = 1e-6
        cut_plane = Plane.from_point_normal([0, 0, 0.5], [0, 0, 1])
        result = clip_mesh_by_plane(narrow_tetrahedron, cut_plane, eps)

        assert result.is_watertight()
        assert result.n_vertices == 6
        assert triangle_areas(result.vertices, result.triangles).min() > 1e-6

    def test_failed_intersection_is_skipped(self, monkeypatch):
        """Test that a triangle whose cut fails is reported and skipped."""
        def fail(*args, **kwargs):
            raise DegenerateGeometry("parallel edge")

        monkeypatch.setattr(mesh_clipper, "intersect_edge_with_plane", fail)
        warnings = []
        result = clip_mesh_by_plane(cube(), plane([1, 0, 0]), EPS, warnings=warnings, seed_id=3)

        # Only the two triangles of the -x face lie fully inside
        assert result.n_triangles == 2
        assert len(warnings) == 8
        assert {warning.kind for warning in warnings} == {"degenerate_triangle"}
        assert {warning.seed_id for warning in warnings} == {3}

    def test_zero_area_cap_loop(self):
        """Test that a collinear cap loop is reported instead of triangulated."""
        vertices = np.array([[0, 0, 0], [1, 0, 0], [2, 0, 0]], dtype=float)
        warnings = []
        triangles = _cap_triangles(vertices, [[0, 1, 2], [0, 1]], plane([0, 0, 1]), EPS, warnings, 5)

        assert triangles == []
        assert [warning.kind for warning in warnings] == ["degenerate_cap", "degenerate_cap"]
        assert all(warning.seed_id == 5 for warning in warnings)

    def test_hole_without_outer_loop(self):
        """Test that a clockwise loop with no surrounding outer loop is reported."""
        vertices = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], dtype=float)
        warnings = []
        triangles = _cap_triangles(vertices, [[3, 2, 1, 0]], plane([0, 0, 1]), EPS, warnings, None)

        assert triangles == []
        assert [warning.kind for warning in warnings] == ["orphan_hole"]


class TestClipMesh:
    """Test clipping against whole cells."""

    @pytest.mark.parametrize("tolerance", [0.0, -1.0])
    def test_non_positive_tolerance(self, tolerance):
        """Test that the tolerance band cannot be inverted."""
        with pytest.raises(ValueError):
            clip_mesh(cube(), [plane([1, 0, 0])], tolerance=tolerance)

    def test_box_planes(self):
        """Test clipping to an axis-aligned box inside the cube."""
        box = DomainBounds((-0.25, -0.25, -0.25), (1.0, 1.0, 1.0))
        result = clip_mesh(cube(), box.planes(), tolerance=EPS)

        assert result.is_watertight()
        assert result.volume() == pytest.approx(0.75 ** 3)

    def test_plane_order_does_not_matter(self):
        """Test that the same planes in another order give the same solid."""
        mesh = sphere()
        planes = [
            Plane.from_point_normal([0.1, 0, 0], [1, 0.2, 0]),
            Plane.from_point_normal([0, -0.05, 0], [0.1, -1, 0.3]),
            Plane.from_point_normal([0, 0, 0.2], [-0.2, 0.1, 1]),
        ]
        forward = clip_mesh(mesh, planes, tolerance=EPS)
        backward = clip_mesh(mesh, planes[::-1], tolerance=EPS)

        assert forward.is_watertight()
        assert backward.is_watertight()
        assert forward.volume() == pytest.approx(backward.volume(), rel=1e-9)
        assert forward.surface_area() == pytest.approx(backward.surface_area(), rel=1e-9)
        np.testing.assert_allclose(forward.bounds, backward.bounds, atol=1e-12)

    def test_cell_clip(self):
        """Test clipping the cube against the cell of a seed."""
        domain = DomainBounds.cube(2.0)
        seeds = [Seed(0, (-1, 0, 0)), Seed(1, (1, 0, 0))]
        cell = compute_cell(seeds[0], domain, seeds)
        result = clip_mesh(cube(), cell)

        assert result.is_watertight()
        assert result.volume() == pytest.approx(0.5)

    def test_cell_missing_mesh(self):
        """Test that a cell away from the mesh gives an empty fragment."""
        domain = DomainBounds.cube(2.0)
        seeds = [Seed(0, (0, 0, 0)), Seed(1, (1.9, 1.9, 1.9))]
        cell = compute_cell(seeds[1], domain, seeds)

        assert clip_mesh(cube(), cell).is_empty
