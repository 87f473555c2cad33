"""
Fragment export to Wavefront OBJ.

Each non-empty fragment is written as its own closed mesh, one file per
fragment, numbered consecutively in seed id order. Empty fragments are
skipped.
"""

from pathlib import Path
from typing import List, Optional, Union

import structlog

from ..core.geometry import Mesh
from ..core.mesh_splitter import SplitResult

logger = structlog.get_logger()

PathLike = Union[str, Path]


def write_obj(mesh: Mesh, path: PathLike, name: Optional[str] = None) -> Path:
    """Write one mesh as an OBJ file with 1-based face indices."""
    path = Path(path)
    lines = ["# py-meshsplit fragment"]
    if name:
        lines.append(f"o {name}")
    lines.extend(f"v {x:.9g} {y:.9g} {z:.9g}" for x, y, z in mesh.vertices.tolist())
    lines.extend(f"f {a + 1} {b + 1} {c + 1}" for a, b, c in mesh.triangles.tolist())
    path.write_text("\n".join(lines) + "\n")
    return path


class ObjExporter:
    """Write the fragments of a split result into a directory."""

    def __init__(self, directory: PathLike):
        self.directory = Path(directory)

    def export(self, result: SplitResult) -> List[Path]:
        """
        Export every non-empty fragment as ``<n>.obj``.

        Returns:
            Paths of the written files, in seed id order
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        written = []
        for seed_id, mesh in sorted(result.non_empty().items()):
            path = self.directory / f"{len(written)}.obj"
            write_obj(mesh, path, name=f"fragment_{seed_id}")
            written.append(path)
        logger.info("Fragments exported", directory=str(self.directory), files=len(written))
        return written


def save_fragments(result: SplitResult, directory: PathLike) -> List[Path]:
    return ObjExporter(directory).export(result)
