"""Immutable run-time settings for force distribution analysis."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..exceptions import ConfigurationError
from .pfi import DEFAULT_OPTIONS, check_key, parse_bool, read_pfi
from .types import (
    ForceType,
    InteractionType,
    OnePair,
    ResiduesRenumber,
    ResultType,
    Vector2Scalar,
)

if TYPE_CHECKING:
    from ..topology import Topology

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class FDASettings:
    """
    Settings shared by the stores, writers and analyses.

    Built once from topology, index groups and options; never mutated
    afterwards. Group membership is kept as two boolean masks over all atoms.

    Attributes:
        atom_based_result_type: Result written for atoms.
        residue_based_result_type: Result written for residues.
        one_pair: Storage of several interactions between the same pair.
        v2s: Vector to scalar conversion.
        residues_renumber: Residue renumbering policy.
        no_end_zeros: Trim zero trailing columns in per-entity output.
        syslen_atoms: Total number of atoms.
        syslen_residues: Maximum residue index + 1.
        time_averaging_period: Frames per average; 1 disables, 0 averages all.
        sys_in_group1: Atom membership of group 1, shape (N,).
        sys_in_group2: Atom membership of group 2, shape (N,).
        groupname: Group label written in compatibility files.
        type: Interaction types to distribute.
        atom_to_residue: Residue index of every atom, shape (N,).
        residue_size: Atom count of every residue index.
        energy_group_exclusions: Pairs of atom masks whose mutual
            interactions are excluded.
        nonbonded_exclusion_on: Apply exclusions to nonbonded interactions.
        bonded_exclusion_on: Apply exclusions to bonded interactions.
        threshold: Contributions with smaller magnitude are dropped.
        normalize_psr: Divide residue punctual stress by residue size.
        ignore_missing_potentials: Skip unsupported interactions instead of
            aborting.
        binary_result_file: Write pairwise forces in binary format.
    """

    atom_based_result_type: ResultType = ResultType.NO
    residue_based_result_type: ResultType = ResultType.NO
    one_pair: OnePair = OnePair.DETAILED
    v2s: Vector2Scalar = Vector2Scalar.NORM
    residues_renumber: ResiduesRenumber = ResiduesRenumber.AUTO
    no_end_zeros: bool = False
    syslen_atoms: int = 0
    syslen_residues: int = 0
    time_averaging_period: int = 1
    sys_in_group1: NDArray[np.bool_] = field(
        default_factory=lambda: np.zeros(0, dtype=bool)
    )
    sys_in_group2: NDArray[np.bool_] = field(
        default_factory=lambda: np.zeros(0, dtype=bool)
    )
    groupname: str = ""
    type: InteractionType = InteractionType.ALL
    atom_to_residue: NDArray[np.integer] = field(
        default_factory=lambda: np.zeros(0, dtype=np.int32)
    )
    residue_size: NDArray[np.integer] = field(
        default_factory=lambda: np.zeros(0, dtype=np.int32)
    )
    energy_group_exclusions: tuple[tuple[NDArray[np.bool_], NDArray[np.bool_]], ...] = ()
    nonbonded_exclusion_on: bool = True
    bonded_exclusion_on: bool = True
    threshold: float = 1e-10
    normalize_psr: bool = False
    ignore_missing_potentials: bool = False
    binary_result_file: bool = False
    sys2pf_atoms: Mapping[int, int] = field(default_factory=dict)
    sys2pf_residues: Mapping[int, int] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        topology: Topology,
        groups: Mapping[str, ArrayLike],
        options: Mapping[str, Any] | None = None,
        **overrides: Any,
    ) -> FDASettings:
        """
        Resolve options into settings.

        Args:
            topology: System topology.
            groups: Index groups by name (0-based atom indices).
            options: Option values keyed as in a ``.pfi`` file. Values may be
                strings or already typed Python values.
            **overrides: Further options, taking precedence over ``options``.

        Returns:
            Validated settings.

        Raises:
            ConfigurationError: On missing groups or conflicting options.
        """
        raw: dict[str, Any] = dict(DEFAULT_OPTIONS)
        for source in (options or {}), overrides:
            for key, value in source.items():
                raw[check_key(key)] = value

        atom_result = _parse_enum(ResultType, raw["atombased"])
        residue_result = _parse_enum(ResultType, raw["residuebased"])
        if atom_result is ResultType.NO and residue_result is ResultType.NO:
            raise ConfigurationError(
                "No result requested: atombased and residuebased are both 'no'"
            )

        one_pair = _parse_enum(OnePair, raw["onepair"])
        v2s = _parse_enum(Vector2Scalar, raw["vector2scalar"])
        renumber = _parse_enum(ResiduesRenumber, raw["residuesrenumber"])

        if residue_result.is_virial:
            raise ConfigurationError("Virial stress is only supported for atoms")
        for result in (atom_result, residue_result):
            if result.is_compat and one_pair is not OnePair.SUMMED:
                raise ConfigurationError(
                    f"{result} requires onepair = summed, "
                    "compatibility files hold a single value per pair"
                )

        try:
            itype = InteractionType.parse(raw["type"])
        except (KeyError, ValueError) as e:
            raise ConfigurationError(f"Unknown interaction type in '{raw['type']}'") from e
        if itype is InteractionType.NONE:
            raise ConfigurationError("No interaction type selected")

        try:
            threshold = float(raw["threshold"])
            period = int(raw["time_averages_period"])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid numeric option: {e}") from e
        if threshold < 0:
            raise ConfigurationError(f"threshold must be >= 0, got {threshold}")
        if period < 0:
            raise ConfigurationError(
                f"time_averages_period must be >= 0, got {period}"
            )

        n_atoms = topology.n_atoms
        name1 = str(raw["group1"]).strip()
        name2 = str(raw["group2"]).strip()
        group1 = _resolve_group(groups, name1, n_atoms, "group1")
        group2 = _resolve_group(groups, name2, n_atoms, "group2")
        in_group1 = np.zeros(n_atoms, dtype=bool)
        in_group1[group1] = True
        in_group2 = np.zeros(n_atoms, dtype=bool)
        in_group2[group2] = True

        exclusions = []
        excl_names = str(raw["energy_grp_exclusion"]).split()
        if len(excl_names) % 2:
            raise ConfigurationError(
                "energy_grp_exclusion expects pairs of group names"
            )
        for a, b in zip(excl_names[0::2], excl_names[1::2]):
            mask_a = np.zeros(n_atoms, dtype=bool)
            mask_a[_resolve_group(groups, a, n_atoms, "energy_grp_exclusion")] = True
            mask_b = np.zeros(n_atoms, dtype=bool)
            mask_b[_resolve_group(groups, b, n_atoms, "energy_grp_exclusion")] = True
            exclusions.append((mask_a, mask_b))

        atom_to_residue = topology.atom_to_residue(renumber)
        residue_size = (
            np.bincount(atom_to_residue).astype(np.int32)
            if n_atoms
            else np.zeros(0, dtype=np.int32)
        )

        in_scope = np.flatnonzero(in_group1 | in_group2)
        sys2pf_atoms = {int(a): pf for pf, a in enumerate(in_scope)}
        sys2pf_residues: dict[int, int] = {}
        for atom in np.concatenate([group1, group2]).tolist():
            residue = int(atom_to_residue[atom])
            if residue not in sys2pf_residues:
                sys2pf_residues[residue] = len(sys2pf_residues)

        settings = cls(
            atom_based_result_type=atom_result,
            residue_based_result_type=residue_result,
            one_pair=one_pair,
            v2s=v2s,
            residues_renumber=renumber,
            no_end_zeros=parse_bool("no_end_zeros", raw["no_end_zeros"]),
            syslen_atoms=n_atoms,
            syslen_residues=len(residue_size),
            time_averaging_period=period,
            sys_in_group1=in_group1,
            sys_in_group2=in_group2,
            groupname=name1 if name1 == name2 else f"{name1}-{name2}",
            type=itype,
            atom_to_residue=atom_to_residue,
            residue_size=residue_size,
            energy_group_exclusions=tuple(exclusions),
            nonbonded_exclusion_on=parse_bool(
                "nonbonded_exclusion_on", raw["nonbonded_exclusion_on"]
            ),
            bonded_exclusion_on=parse_bool(
                "bonded_exclusion_on", raw["bonded_exclusion_on"]
            ),
            threshold=threshold,
            normalize_psr=parse_bool("normalize_psr", raw["normalize_psr"]),
            ignore_missing_potentials=parse_bool(
                "ignore_missing_potentials", raw["ignore_missing_potentials"]
            ),
            binary_result_file=parse_bool(
                "binary_result_file", raw["binary_result_file"]
            ),
            sys2pf_atoms=sys2pf_atoms,
            sys2pf_residues=sys2pf_residues,
        )
        logger.debug(
            "FDA settings: atoms=%s residues=%s onepair=%s type=%s, "
            "%d atoms and %d residues in scope",
            atom_result,
            residue_result,
            one_pair,
            itype.label,
            len(sys2pf_atoms),
            len(sys2pf_residues),
        )
        return settings

    @classmethod
    def from_pfi(
        cls,
        filename: str | Path,
        topology: Topology,
        groups: Mapping[str, ArrayLike],
        **overrides: Any,
    ) -> FDASettings:
        """Build settings from a ``.pfi`` option file."""
        return cls.build(topology, groups, read_pfi(filename), **overrides)

    def atom_in_groups(self, i: int) -> bool:
        """Return True if atom i belongs to either group."""
        return bool(self.sys_in_group1[i] or self.sys_in_group2[i])

    def atoms_in_groups(self, i: int, j: int) -> bool:
        """Return True if one atom is in group 1 and the other in group 2."""
        return bool(
            (self.sys_in_group1[i] and self.sys_in_group2[j])
            or (self.sys_in_group1[j] and self.sys_in_group2[i])
        )

    def is_excluded(self, i: int, j: int, itype: InteractionType) -> bool:
        """Return True if an energy group exclusion removes this contribution."""
        if not self.energy_group_exclusions:
            return False
        applies = (self.nonbonded_exclusion_on and itype.is_nonbonded) or (
            self.bonded_exclusion_on and itype.is_bonded
        )
        if not applies:
            return False
        for mask_a, mask_b in self.energy_group_exclusions:
            if (mask_a[i] and mask_b[j]) or (mask_a[j] and mask_b[i]):
                return True
        return False

    def result_type(self, force_type: ForceType) -> ResultType:
        """Return the result type configured for atoms or residues."""
        if force_type is ForceType.ATOMS:
            return self.atom_based_result_type
        return self.residue_based_result_type

    def sys2pf(self, force_type: ForceType) -> Mapping[int, int]:
        """Return the system number to pf index table."""
        if force_type is ForceType.ATOMS:
            return self.sys2pf_atoms
        return self.sys2pf_residues

    def pf2sys(self, force_type: ForceType) -> list[int]:
        """Return the system numbers of the in-scope entities in pf order."""
        table = self.sys2pf(force_type)
        return sorted(table, key=table.__getitem__)

    def syslen(self, force_type: ForceType) -> int:
        """Return the system length for atoms or residues."""
        if force_type is ForceType.ATOMS:
            return self.syslen_atoms
        return self.syslen_residues

    @property
    def enabled_force_types(self) -> list[ForceType]:
        """Force types with a result to write."""
        return [ft for ft in ForceType if self.result_type(ft) is not ResultType.NO]


def _parse_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    return enum_cls.parse(value)


def _resolve_group(
    groups: Mapping[str, ArrayLike], name: str, n_atoms: int, option: str
) -> NDArray[np.integer]:
    if not name:
        raise ConfigurationError(f"Option '{option}' is required")
    if name not in groups:
        available = ", ".join(groups) or "none"
        raise ConfigurationError(
            f"Group '{name}' ({option}) not found in index groups ({available})"
        )
    atoms = np.asarray(groups[name], dtype=np.int64).ravel()
    if atoms.size and (atoms.min() < 0 or atoms.max() >= n_atoms):
        raise ConfigurationError(
            f"Group '{name}' contains atoms outside [0, {n_atoms})"
        )
    return atoms
