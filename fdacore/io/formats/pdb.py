"""PDB structures: reference ordering in, per-atom value annotation out."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
from numpy.typing import ArrayLike

from ..base import ResultWriter

if TYPE_CHECKING:
    from ...topology import Topology


class PDBWriter(ResultWriter):
    """
    PDB writer annotating atoms with per-atom values in the B-factor column.

    Each ``write`` call emits one MODEL. Values are clipped to the range the
    fixed-width B-factor field can hold.
    """

    def __init__(self, filename: str | Path, topology: Topology) -> None:
        """
        Initialize PDB writer.

        Args:
            filename: Output file path.
            topology: Structure to annotate; must carry positions.
        """
        super().__init__(filename)
        if topology.positions is None:
            raise ValueError("PDB output needs a topology with positions")
        self.topology = topology

    def write(self, values: ArrayLike, title: str = "", **kwargs: Any) -> None:
        """
        Write the structure with one value per atom as B-factor.

        Args:
            values: Value per atom, shape (N,).
            title: Optional TITLE record.
        """
        self._check_open()
        topo = self.topology
        values = np.asarray(values, dtype=np.float64).ravel()
        if len(values) != topo.n_atoms:
            raise ValueError(f"Expected {topo.n_atoms} values, got {len(values)}")
        values = np.clip(values, -999.99, 9999.99)

        if title:
            self._file.write(f"TITLE     {title}\n")
        self._file.write(f"MODEL     {self._n_frames + 1:4d}\n")
        for i in range(topo.n_atoms):
            x, y, z = topo.positions[i]
            atom_name = topo.atom_names[i][:4]
            res_name = topo.residue_names[i][:3]
            res_id = int(topo.residue_numbers[i])
            element = atom_name.lstrip("0123456789")[:1] or "X"
            self._file.write(
                f"ATOM  {(i + 1) % 100000:5d} {atom_name:<4s} {res_name:3s}  "
                f"{res_id % 10000:4d}    {x:8.3f}{y:8.3f}{z:8.3f}"
                f"  1.00{values[i]:6.2f}          {element:>2s}\n"
            )
        self._file.write("ENDMDL\n")
        self._n_frames += 1

    def write_footer(self, **kwargs: Any) -> None:
        """Write END record."""
        self._file.write("END\n")


class PDBReader:
    """
    PDB reader for ATOM/HETATM records, one MODEL at a time.

    Files without MODEL records are read as a single frame.
    """

    def __init__(self, filename: str | Path) -> None:
        """
        Initialize PDB reader.

        Args:
            filename: Input file path.
        """
        self.filename = Path(filename)
        self._file = None
        self._frame_offsets: list[int] = []

    def open(self) -> None:
        """Open file and index frame positions."""
        self._file = self.filename.open()
        self._index_frames()

    def close(self) -> None:
        """Close file."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> PDBReader:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _index_frames(self) -> None:
        """Build index of MODEL positions in file."""
        self._frame_offsets = []
        self._file.seek(0)
        offset = 0
        while True:
            line = self._file.readline()
            if not line:
                break
            if line.startswith("MODEL"):
                self._frame_offsets.append(offset)
            offset = self._file.tell()

        if not self._frame_offsets:
            self._frame_offsets = [0]

    def read_frame(self, index: int) -> dict:
        """
        Read a specific frame.

        Args:
            index: Frame index (0-based).

        Returns:
            Dictionary with positions, atom_ids (0-based serial numbers),
            atom_names, residue_names, residue_ids, b_factors and n_atoms.
        """
        if self._file is None:
            raise RuntimeError("File not open.")
        if index < 0 or index >= len(self._frame_offsets):
            raise IndexError(f"Frame index {index} out of range")

        self._file.seek(self._frame_offsets[index])

        positions = []
        atom_ids = []
        atom_names = []
        residue_names = []
        residue_ids = []
        b_factors = []
        started = False

        for line in self._file:
            if line.startswith(("ENDMDL", "END")):
                break
            if line.startswith("MODEL"):
                if started:
                    break
                started = True
                continue
            if line.startswith(("ATOM", "HETATM")):
                atom_ids.append(int(line[6:11]) - 1)
                atom_names.append(line[12:16].strip())
                residue_names.append(line[17:20].strip())
                residue_ids.append(int(line[22:26]))
                positions.append([float(line[30:38]), float(line[38:46]), float(line[46:54])])
                b_text = line[60:66].strip()
                b_factors.append(float(b_text) if b_text else 0.0)

        return {
            "positions": np.array(positions).reshape(-1, 3),
            "atom_ids": atom_ids,
            "atom_names": atom_names,
            "residue_names": residue_names,
            "residue_ids": residue_ids,
            "b_factors": np.array(b_factors),
            "n_atoms": len(positions),
        }

    def __iter__(self) -> Iterator[dict]:
        """Iterate over all frames."""
        for i in range(len(self)):
            yield self.read_frame(i)

    def __len__(self) -> int:
        """Return number of frames."""
        return len(self._frame_offsets)
