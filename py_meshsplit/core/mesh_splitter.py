"""
Split orchestration: Voronoi cells in, mesh fragments out.

Cells are computed once for all seeds, then the same read-only input mesh is
clipped against every cell. Clipping one cell never looks at another cell's
result, so the per-cell work can run on a thread pool; results are keyed and
ordered by seed id so execution order never shows in the output.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog

from .errors import DegenerateCell, SplitWarning, record_warning
from .geometry import Mesh
from .mesh_clipper import clip_mesh
from .voronoi_cells import Cell, DomainBounds, Seed, compute_cell, validate_seeds

logger = structlog.get_logger()


@dataclass
class SplitResult:
    """Fragments of one split request together with their seeds."""

    fragments: Dict[int, Mesh]
    seeds: Dict[int, Seed]
    cells: Dict[int, Cell] = field(default_factory=dict)
    warnings: List[SplitWarning] = field(default_factory=list)
    empty_seed_ids: List[int] = field(default_factory=list)
    dropped_seed_ids: List[int] = field(default_factory=list)
    cancelled: bool = False

    def non_empty(self) -> Dict[int, Mesh]:
        return {seed_id: mesh for seed_id, mesh in self.fragments.items() if not mesh.is_empty}

    def total_volume(self) -> float:
        return sum(mesh.volume() for mesh in self.fragments.values())

    def check_watertight(self) -> Dict[int, List[Tuple[int, int]]]:
        """Open or non-manifold edges of every fragment that is not closed."""
        report = {}
        for seed_id, mesh in self.non_empty().items():
            edges = mesh.open_edges()
            if edges:
                report[seed_id] = edges
        return report

    def exploded(self, scale: float) -> Dict[int, Mesh]:
        """Fragments pushed away from the origin along their seed positions."""
        return {
            seed_id: mesh.translated(self.seeds[seed_id].point * scale)
            for seed_id, mesh in self.non_empty().items()
        }


def _split_cell(
    mesh: Mesh,
    seed: Seed,
    domain: DomainBounds,
    seeds: Sequence[Seed],
    tree,
    eps: float,
) -> Tuple[Optional[Cell], Optional[Mesh], List[SplitWarning]]:
    """Compute one seed's cell and fragment; warnings stay local to this task."""
    warnings: List[SplitWarning] = []
    try:
        cell = compute_cell(seed, domain, seeds, tree=tree, tolerance=eps)
    except DegenerateCell as exc:
        record_warning(warnings, "degenerate_cell", str(exc), seed.id)
        return None, None, warnings
    fragment = clip_mesh(mesh, cell, tolerance=eps, warnings=warnings, seed_id=seed.id)
    return cell, fragment, warnings


def split_mesh(
    mesh: Mesh,
    domain: DomainBounds,
    seeds: Sequence[Seed],
    tolerance: Optional[float] = None,
    keep_empty: bool = False,
    max_workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> SplitResult:
    """
    Partition a closed mesh along the Voronoi tessellation of ``seeds``.

    Args:
        mesh: Closed input mesh, already normalized into ``domain``
        domain: Bounding box of the tessellation
        seeds: Seeds strictly inside the domain, with unique ids
        tolerance: Absolute tolerance, 1e-6 of the domain extent if omitted
        keep_empty: Keep empty fragments in the mapping instead of omitting them
        max_workers: Clip cells on a thread pool of this size (serial if None or 1)
        cancel_event: Checked between cells; once set, remaining cells are skipped

    Returns:
        SplitResult with fragments keyed by seed id

    Raises:
        InvalidSeed, DuplicateSeed: on violated seed preconditions
    """
    eps = domain.tolerance(tolerance)
    seeds = sorted(seeds, key=lambda s: s.id)
    logger.info(
        "Splitting mesh",
        vertices=mesh.n_vertices, triangles=mesh.n_triangles,
        seeds=len(seeds), tolerance=eps, workers=max_workers or 1,
    )

    tree = validate_seeds(domain, seeds, eps)
    if not mesh.is_empty and not (
        np.all(mesh.bounds[0] >= domain.minimum) and np.all(mesh.bounds[1] <= domain.maximum)
    ):
        logger.warning("Mesh extends beyond the domain; outside parts are dropped")

    def task(seed: Seed):
        if cancel_event is not None and cancel_event.is_set():
            return None
        return _split_cell(mesh, seed, domain, seeds, tree, eps)

    if max_workers and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            outcomes = list(executor.map(task, seeds))
    else:
        outcomes = [task(seed) for seed in seeds]

    result = SplitResult(fragments={}, seeds={seed.id: seed for seed in seeds})
    for seed, outcome in zip(seeds, outcomes):
        if outcome is None:
            result.cancelled = True
            continue
        cell, fragment, warnings = outcome
        result.warnings.extend(warnings)
        if cell is None:
            result.dropped_seed_ids.append(seed.id)
            continue
        result.cells[seed.id] = cell
        if fragment.is_empty:
            result.empty_seed_ids.append(seed.id)
            if not keep_empty:
                continue
        result.fragments[seed.id] = fragment

    if result.cancelled:
        logger.warning("Split cancelled", completed=len(result.cells), seeds=len(seeds))
    logger.info(
        "Mesh split",
        fragments=len(result.non_empty()),
        empty=len(result.empty_seed_ids),
        dropped=len(result.dropped_seed_ids),
        warnings=len(result.warnings),
    )
    return result
