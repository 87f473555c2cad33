"""Error taxonomy and recorded warnings for mesh splitting."""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import structlog

logger = structlog.get_logger()


class MeshSplitError(Exception):
    """Base class for all mesh splitting errors."""


class InvalidDomain(MeshSplitError):
    """Domain bounds are malformed or have non-positive extent."""


class InvalidSeed(MeshSplitError):
    """A seed lies outside the domain or reuses another seed's id."""


class DuplicateSeed(MeshSplitError):
    """Two seeds coincide within the numeric tolerance."""

    def __init__(self, seed_ids: Sequence[int], distance: float):
        self.seed_ids = tuple(seed_ids)
        self.distance = distance
        super().__init__(
            f"Seeds {self.seed_ids[0]} and {self.seed_ids[1]} coincide "
            f"(distance {distance:.3g})"
        )


class DegenerateGeometry(MeshSplitError):
    """Near-parallel edge/plane intersection or zero-area element."""


class DegenerateCell(MeshSplitError):
    """A Voronoi cell ended up with fewer than four faces."""

    def __init__(self, seed_id: int, face_count: int):
        self.seed_id = seed_id
        self.face_count = face_count
        super().__init__(
            f"Cell of seed {seed_id} has {face_count} faces, at least 4 required"
        )


@dataclass(frozen=True)
class SplitWarning:
    """A degenerate element that was skipped instead of aborting the split."""

    kind: str
    message: str
    seed_id: Optional[int] = None


def record_warning(
    warnings: Optional[List[SplitWarning]],
    kind: str,
    message: str,
    seed_id: Optional[int] = None,
) -> SplitWarning:
    """Log a skipped element and append it to ``warnings`` when given."""
    warning = SplitWarning(kind=kind, message=message, seed_id=seed_id)
    logger.warning("Skipped degenerate element", kind=kind, seed_id=seed_id, detail=message)
    if warnings is not None:
        warnings.append(warning)
    return warning
