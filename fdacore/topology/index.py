"""Index groups (GROMACS ``.ndx`` style) naming sets of atoms."""

from __future__ import annotations

from pathlib import Path

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..exceptions import FileFormatError


def read_ndx(filename: str | Path) -> dict[str, NDArray[np.integer]]:
    """
    Read index groups from an ``.ndx`` file.

    The file holds ``[ name ]`` headers followed by 1-based atom numbers.
    Atom numbers are returned 0-based, in file order.

    Args:
        filename: Path to the index file.

    Returns:
        Mapping from group name to atom indices.

    Raises:
        FileFormatError: On malformed headers or atom numbers.
    """
    groups: dict[str, list[int]] = {}
    current: list[int] | None = None

    with Path(filename).open() as f:
        for lineno, line in enumerate(f, start=1):
            line = line.split(";")[0].strip()
            if not line:
                continue
            if line.startswith("["):
                if not line.endswith("]"):
                    raise FileFormatError(f"{filename}:{lineno}: malformed group header")
                name = line[1:-1].strip()
                current = groups.setdefault(name, [])
                continue
            if current is None:
                raise FileFormatError(f"{filename}:{lineno}: atom numbers before first group")
            try:
                current.extend(int(token) - 1 for token in line.split())
            except ValueError as e:
                raise FileFormatError(f"{filename}:{lineno}: {e}") from e

    return {name: np.array(atoms, dtype=np.int32) for name, atoms in groups.items()}


def write_ndx(
    filename: str | Path,
    groups: dict[str, ArrayLike],
    per_line: int = 15,
) -> None:
    """Write 0-based index groups as a 1-based ``.ndx`` file."""
    with Path(filename).open("w") as f:
        for name, atoms in groups.items():
            f.write(f"[ {name} ]\n")
            numbers = [int(a) + 1 for a in np.asarray(atoms).ravel()]
            for start in range(0, len(numbers), per_line):
                chunk = numbers[start : start + per_line]
                f.write(" ".join(f"{n:4d}" for n in chunk) + "\n")
