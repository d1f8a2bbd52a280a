"""Topology representation: the atom/residue tables FDA needs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from ..settings.types import ResiduesRenumber

logger = logging.getLogger(__name__)


@dataclass
class Topology:
    """
    Topology representation for molecular systems.

    Index-based design (no objects per atom) for efficiency. Only the
    atom to residue relation is needed by force distribution analysis;
    everything else about the system stays with the MD engine.

    Attributes:
        n_atoms: Number of atoms in the system.
        atom_names: Atom names, length N.
        residue_numbers: Residue number for each atom as read, shape (N,).
        residue_names: Residue name for each atom, length N.
        positions: Optional reference coordinates, shape (N, 3).
    """

    n_atoms: int
    atom_names: list[str] = field(default_factory=list)
    residue_numbers: NDArray[np.integer] = field(
        default_factory=lambda: np.array([], dtype=np.int32)
    )
    residue_names: list[str] = field(default_factory=list)
    positions: NDArray[np.floating] | None = None

    def __post_init__(self) -> None:
        """Validate and convert arrays."""
        self.residue_numbers = np.asarray(self.residue_numbers, dtype=np.int32)

        # Initialize arrays to correct size if empty
        if len(self.atom_names) == 0:
            self.atom_names = [f"A{i}" for i in range(self.n_atoms)]
        if len(self.residue_numbers) == 0:
            self.residue_numbers = np.zeros(self.n_atoms, dtype=np.int32)
        if len(self.residue_names) == 0:
            self.residue_names = ["UNK"] * self.n_atoms

        # Validate sizes
        if len(self.atom_names) != self.n_atoms:
            raise ValueError(
                f"atom_names length {len(self.atom_names)} != n_atoms {self.n_atoms}"
            )
        if len(self.residue_numbers) != self.n_atoms:
            raise ValueError(
                f"residue_numbers length {len(self.residue_numbers)} != n_atoms {self.n_atoms}"
            )
        if len(self.residue_names) != self.n_atoms:
            raise ValueError(
                f"residue_names length {len(self.residue_names)} != n_atoms {self.n_atoms}"
            )
        if self.positions is not None:
            self.positions = np.asarray(self.positions, dtype=np.float64).reshape(-1, 3)
            if len(self.positions) != self.n_atoms:
                raise ValueError(
                    f"positions length {len(self.positions)} != n_atoms {self.n_atoms}"
                )

    @classmethod
    def from_pdb(cls, filename: str | Path) -> Topology:
        """Build a topology from the first model of a PDB file."""
        from ..io.formats.pdb import PDBReader

        with PDBReader(filename) as reader:
            frame = reader.read_frame(0)
        return cls(
            n_atoms=frame["n_atoms"],
            atom_names=frame["atom_names"],
            residue_numbers=np.array(frame["residue_ids"], dtype=np.int32),
            residue_names=frame["residue_names"],
            positions=frame["positions"],
        )

    def needs_renumbering(self) -> bool:
        """
        Return True if residue numbers repeat non-contiguously.

        This is the usual signature of several chains or molecules that each
        start counting at 1.
        """
        seen: set[int] = set()
        previous = None
        for number in self.residue_numbers.tolist():
            if number != previous:
                if number in seen:
                    return True
                seen.add(number)
                previous = number
        return False

    def atom_to_residue(
        self, policy: ResiduesRenumber = ResiduesRenumber.AUTO
    ) -> NDArray[np.integer]:
        """
        Return the residue index of every atom.

        Args:
            policy: ``DO`` renumbers residues 0..n-1 in order of appearance,
                ``DONT`` keeps the residue numbers as read, ``AUTO`` renumbers
                only if the residue numbers are ambiguous.

        Returns:
            Residue index per atom, shape (N,).
        """
        renumber = policy is ResiduesRenumber.DO
        if policy is ResiduesRenumber.AUTO:
            renumber = self.needs_renumbering()
            if renumber:
                logger.info("Residue numbers are not unique, renumbering residues")

        if not renumber:
            if self.n_atoms and int(self.residue_numbers.min()) < 0:
                raise ValueError("Negative residue numbers cannot be used as indices")
            return self.residue_numbers.copy()

        result = np.empty(self.n_atoms, dtype=np.int32)
        current = -1
        previous = None
        for i, number in enumerate(self.residue_numbers.tolist()):
            if number != previous:
                current += 1
                previous = number
            result[i] = current
        return result

    def residue_size(
        self, policy: ResiduesRenumber = ResiduesRenumber.AUTO
    ) -> NDArray[np.integer]:
        """Return the number of atoms in each residue index."""
        atom_to_residue = self.atom_to_residue(policy)
        if len(atom_to_residue) == 0:
            return np.zeros(0, dtype=np.int32)
        return np.bincount(atom_to_residue).astype(np.int32)

    def n_residues(self, policy: ResiduesRenumber = ResiduesRenumber.AUTO) -> int:
        """Return the residue table length (max residue index + 1)."""
        if self.n_atoms == 0:
            return 0
        return int(np.max(self.atom_to_residue(policy))) + 1

    def __repr__(self) -> str:
        return f"Topology(n_atoms={self.n_atoms}, n_residues={self.n_residues()})"
