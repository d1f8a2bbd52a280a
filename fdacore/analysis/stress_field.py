"""Stress fields over time: rows of per-entity stress for visualisation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..exceptions import ConfigurationError
from ..forces.stress import normalize_by_size, von_mises
from ..io.formats.pdb import PDBWriter
from ..io.formats.stress import StressData
from ..io.formats.xpm import write_xpm
from ..settings.types import ForceType, ResiduesRenumber, ResultType
from ..topology import Topology
from .base import Analyzer
from .frames import FrameSelection

logger = logging.getLogger(__name__)


@dataclass
class StressField:
    """
    Rendered stress field.

    Attributes:
        labels: One label per row (frame or averaged group).
        entity_ids: System number of every column.
        values: Stress, shape (n_rows, n_columns).
        force_type: Whether columns are atoms or residues.
    """

    labels: list[str]
    entity_ids: NDArray[np.integer]
    values: NDArray[np.floating]
    force_type: ForceType = ForceType.ATOMS

    @property
    def n_rows(self) -> int:
        return len(self.values)

    def to_xpm(self, filename: str | Path, title: str = "Stress") -> Path:
        """Write the field as matrix, entities along x and rows along y."""
        return write_xpm(
            filename,
            self.values,
            title=title,
            legend="stress",
            x_label=self.force_type.value,
            y_label="frame",
            x_axis=self.entity_ids.tolist(),
            y_axis=list(range(self.n_rows)),
        )

    def atom_values(
        self,
        topology: Topology,
        row: int = 0,
        renumber: ResiduesRenumber = ResiduesRenumber.AUTO,
    ) -> NDArray[np.floating]:
        """
        Spread one row over the atoms of a structure.

        Residue stress is assigned to every atom of the residue; atoms of
        entities missing from the field get zero.
        """
        lookup = dict(zip(self.entity_ids.tolist(), self.values[row].tolist()))
        if self.force_type is ForceType.RESIDUES:
            keys = topology.atom_to_residue(renumber).tolist()
        else:
            keys = list(range(topology.n_atoms))
        return np.array([lookup.get(k, 0.0) for k in keys])

    def to_pdb(
        self,
        filename: str | Path,
        topology: Topology,
        renumber: ResiduesRenumber = ResiduesRenumber.AUTO,
    ) -> Path:
        """
        Write every row as one PDB model with stress in the B-factor column.

        Raises:
            ValueError: If the topology has no positions.
        """
        with PDBWriter(filename, topology) as writer:
            for row, label in enumerate(self.labels):
                writer.write(self.atom_values(topology, row, renumber), title=label)
        return Path(filename)


class StressFieldRenderer(Analyzer):
    """
    Turn a stress file into a stress field.

    Virial stress is reduced to von Mises stress first. With a structure,
    the columns are restricted to and ordered by the structure's atoms (or
    residues in order of appearance); otherwise all system numbers are
    kept in natural order.

    Example:
        renderer = StressFieldRenderer()
        field = renderer.run(read_stress("fda.psr"), FrameSelection.parse("all"))
        field.to_xpm("stress.xpm")
    """

    def __init__(
        self,
        force_type: ForceType = ForceType.ATOMS,
        residue_size: ArrayLike | None = None,
    ) -> None:
        """
        Initialize renderer.

        Args:
            force_type: Whether the stress file holds atom or residue stress.
            residue_size: Atoms per residue; residue stress is divided by it.
        """
        self.force_type = force_type
        self.residue_size = None if residue_size is None else np.asarray(residue_size)

    @property
    def name(self) -> str:
        return "stress_field"

    def run(
        self,
        data: StressData,
        selection: FrameSelection,
        structure: Topology | None = None,
        renumber: ResiduesRenumber = ResiduesRenumber.AUTO,
        **kwargs: Any,
    ) -> StressField:
        """
        Render the selected frames.

        Args:
            data: Stress file content.
            selection: Frames to render; averaged groups become one row.
            structure: Optional structure defining column order.
            renumber: Residue renumbering used to derive residue ids from
                the structure.

        Returns:
            Stress field.

        Raises:
            ConfigurationError: If the structure refers to entities the
                stress file does not have.
        """
        values = self._scalar_values(data)
        if self.residue_size is not None:
            if self.force_type is not ForceType.RESIDUES:
                raise ConfigurationError("Residue size normalisation needs residue stress")
            values = np.array([normalize_by_size(row, self.residue_size) for row in values])

        n_entities = values.shape[1] if values.ndim == 2 else 0
        if structure is None:
            entity_ids = np.arange(n_entities)
        else:
            entity_ids = self._structure_ids(structure, renumber)
            if len(entity_ids) and int(entity_ids.max()) >= n_entities:
                raise ConfigurationError(
                    f"Structure refers to {self.force_type.value} {int(entity_ids.max())}, "
                    f"stress file has {n_entities}"
                )

        labels = []
        rows = []
        for group in selection.select(len(values)):
            labels.append(group.label)
            rows.append(values[list(group.indices)].mean(axis=0)[entity_ids])
        matrix = np.array(rows).reshape(len(rows), len(entity_ids))
        logger.debug("Rendered %d row(s) over %d %s", len(rows), len(entity_ids), self.force_type.value)
        return StressField(labels, entity_ids, matrix, self.force_type)

    @staticmethod
    def _scalar_values(data: StressData) -> NDArray[np.floating]:
        if data.result_type is ResultType.VIRIAL_STRESS:
            return np.array([von_mises(row.reshape(-1, 6)) for row in data.values]).reshape(
                data.n_frames, -1
            )
        if data.result_type not in (ResultType.PUNCTUAL_STRESS, ResultType.VIRIAL_STRESS_VON_MISES):
            raise ConfigurationError(f"{data.result_type} cannot be rendered as stress field")
        return data.values

    def _structure_ids(
        self, structure: Topology, renumber: ResiduesRenumber
    ) -> NDArray[np.integer]:
        if self.force_type is ForceType.ATOMS:
            return np.arange(structure.n_atoms)
        residues = structure.atom_to_residue(renumber)
        _, first = np.unique(residues, return_index=True)
        return residues[np.sort(first)]
