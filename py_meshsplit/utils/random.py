"""
Reproducible seed generation.

Every call builds its own NumPy generator from the caller's random seed, so
two requests with the same value always produce the same seeds and no state
is shared between requests.
"""

from typing import List, Optional

import numpy as np
import structlog

from ..core.voronoi_cells import DomainBounds, Seed

logger = structlog.get_logger()

# Redraws allowed per seed before giving up on a crowded domain
MAX_REDRAWS = 100


def generate_seeds(
    domain: DomainBounds,
    count: int,
    random_seed: int = 0,
    tolerance: Optional[float] = None,
) -> List[Seed]:
    """
    Draw ``count`` seeds uniformly inside ``domain``.

    Positions within the tolerance of the domain walls or of an earlier seed
    are redrawn, so the result always satisfies the cell generator's
    preconditions.

    Args:
        domain: Box to sample
        count: Number of seeds (>= 1)
        random_seed: Value the generator is seeded with
        tolerance: Absolute tolerance, relative to the domain if omitted

    Returns:
        Seeds with ids 0..count-1
    """
    if count < 1:
        raise ValueError(f"Seed count must be at least 1, got {count}")

    eps = domain.tolerance(tolerance)
    rng = np.random.default_rng(random_seed)
    low = np.asarray(domain.minimum)
    high = np.asarray(domain.maximum)

    positions = []
    for seed_id in range(count):
        for _ in range(MAX_REDRAWS):
            candidate = rng.uniform(low, high)
            if not domain.contains(candidate, margin=eps):
                continue
            if positions and np.min(np.linalg.norm(np.array(positions) - candidate, axis=1)) <= eps:
                continue
            positions.append(candidate)
            break
        else:
            raise RuntimeError(f"Could not place seed {seed_id} after {MAX_REDRAWS} draws")

    logger.info("Seeds generated", count=count, random_seed=random_seed)
    return [Seed(seed_id, position) for seed_id, position in enumerate(positions)]
