"""Per-step orchestration of force distribution analysis."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .exceptions import ConfigurationError
from .forces.frame import Force, Frame
from .forces.store import DistributedForces
from .forces.stress import normalize_by_size, punctual_stress, virial_stress, von_mises
from .io.base import ResultWriter
from .io.formats.compat import CompatAsciiCodec, CompatBinaryCodec
from .io.formats.pairwise import AsciiCodec, BinaryCodec, PairwiseForceCodec, PairwiseForceWriter
from .io.formats.stress import StressWriter
from .parallel import ParallelBackend, get_backend
from .settings import FDASettings
from .settings.types import ForceType, InteractionType, ResultType

logger = logging.getLogger(__name__)

# Default output names per force type and result kind
DEFAULT_FILENAMES = {
    (ForceType.ATOMS, "pairwise"): "fda.pfa",
    (ForceType.RESIDUES, "pairwise"): "fda.pfr",
    (ForceType.ATOMS, "punctual"): "fda.psa",
    (ForceType.RESIDUES, "punctual"): "fda.psr",
    (ForceType.ATOMS, "virial"): "fda.vsa",
    (ForceType.ATOMS, "von_mises"): "fda.vma",
}


def default_filename(force_type: ForceType, result_type: ResultType) -> str:
    """Return the conventional output file name of a result."""
    if result_type.is_pairwise:
        kind = "pairwise"
    elif result_type is ResultType.PUNCTUAL_STRESS:
        kind = "punctual"
    elif result_type is ResultType.VIRIAL_STRESS:
        kind = "virial"
    else:
        kind = "von_mises"
    return DEFAULT_FILENAMES[(force_type, kind)]


@dataclass
class _Output:
    """Collector, time averaging state and writer of one force type."""

    force_type: ForceType
    result_type: ResultType
    path: Path
    store: DistributedForces
    averager: DistributedForces
    writer: ResultWriter | None = None
    stress_sum: NDArray[np.floating] | None = None
    n_collected: int = 0


class ForceDistribution:
    """
    Force distribution analysis of a running simulation.

    The force field reports every pairwise interaction through
    ``add_interaction``; ``finalize_step`` closes the step, combines the
    partial stores of all workers, derives stress and writes one frame per
    averaging period.

    Example:
        with ForceDistribution(settings, atom_path="fda.pfa") as fda:
            for step in range(n_steps):
                for i, j, itype, f in interactions(step):
                    fda.add_interaction(i, j, itype, f)
                fda.finalize_step(positions)
    """

    def __init__(
        self,
        settings: FDASettings,
        atom_path: str | Path | None = None,
        residue_path: str | Path | None = None,
        backend: str | ParallelBackend | None = None,
    ) -> None:
        """
        Initialize force distribution.

        Args:
            settings: Validated FDA settings.
            atom_path: Output file of atom based results.
            residue_path: Output file of residue based results.
            backend: Parallel backend combining the partial stores; only
                the root rank writes.
        """
        self.settings = settings
        self.backend = get_backend(backend)
        self._step = 0
        self._open = False

        paths = {ForceType.ATOMS: atom_path, ForceType.RESIDUES: residue_path}
        self._outputs: list[_Output] = []
        for force_type in settings.enabled_force_types:
            result_type = settings.result_type(force_type)
            path = paths[force_type]
            if path is None:
                path = default_filename(force_type, result_type)
            self._outputs.append(
                _Output(
                    force_type=force_type,
                    result_type=result_type,
                    path=Path(path),
                    store=DistributedForces(force_type, settings),
                    averager=DistributedForces(force_type, settings),
                )
            )

    @property
    def period(self) -> int:
        """Number of steps averaged into one frame, 0 for the whole run."""
        return self.settings.time_averaging_period

    @property
    def n_steps(self) -> int:
        """Number of finalized steps."""
        return self._step

    def store(self, force_type: ForceType) -> DistributedForces:
        """Return the collector of a force type."""
        for output in self._outputs:
            if output.force_type is force_type:
                return output.store
        raise ConfigurationError(f"No {force_type.value} based result is configured")

    def open(self) -> None:
        """Create the result writers on the root rank."""
        if self._open:
            return
        if self.backend.is_root:
            for output in self._outputs:
                output.writer = self._create_writer(output)
                output.writer.open()
                logger.info(
                    "Writing %s based %s to %s",
                    output.force_type.value,
                    output.result_type,
                    output.path,
                )
        self._open = True

    def _create_writer(self, output: _Output) -> ResultWriter:
        settings = self.settings
        if output.result_type.is_stress:
            return StressWriter(
                output.path,
                output.result_type,
                settings.no_end_zeros,
                n_entities=settings.syslen(output.force_type),
            )

        codec: PairwiseForceCodec
        if output.result_type.is_compat:
            entities = settings.pf2sys(output.force_type)
            codec_cls = (
                CompatBinaryCodec
                if output.result_type is ResultType.COMPAT_BIN
                else CompatAsciiCodec
            )
            codec = codec_cls(entities, settings.groupname, settings.no_end_zeros)
        elif settings.binary_result_file:
            codec = BinaryCodec(output.result_type, output.result_type.is_vector)
        else:
            codec = AsciiCodec(output.result_type, output.result_type.is_vector)
        return PairwiseForceWriter(output.path, codec)

    def add_interaction(
        self,
        i: int,
        j: int,
        itype: InteractionType | str | int,
        force: Force | ArrayLike,
    ) -> bool:
        """
        Distribute one pairwise interaction of the current step.

        Args:
            i: First atom index.
            j: Second atom index.
            itype: Interaction type.
            force: Scalar force or force vector on i due to j.

        Returns:
            True if any store kept the contribution.
        """
        kept = False
        for output in self._outputs:
            kept = output.store.add_interaction(i, j, itype, force) or kept
        return kept

    def add_unsupported(self, name: str) -> None:
        """Report a contribution of a potential that cannot be distributed."""
        for output in self._outputs:
            output.store.add_unsupported(name)

    def finalize_step(self, positions: ArrayLike | None = None) -> None:
        """
        Close the current step.

        Args:
            positions: Atom positions, shape (N, 3). Required to convert
                vectors to scalars and for virial stress.

        Raises:
            ValueError: If positions are needed but missing.
        """
        self.open()
        if positions is not None:
            positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)

        for output in self._outputs:
            store = output.store
            store.reduce(self.backend)
            if not output.result_type.is_vector and store.is_vector:
                if positions is None:
                    raise ValueError("Positions are required to convert force vectors to scalars")
                store.merge_vectors_to_scalar(positions)
            frame = store.finalize_frame()

            if output.result_type.is_pairwise:
                output.averager.add_frame(frame)
            else:
                stress = self._stress(output, frame, positions)
                if output.stress_sum is None:
                    output.stress_sum = np.zeros_like(stress)
                output.stress_sum += stress
            output.n_collected += 1

            if self.period and output.n_collected == self.period:
                self._flush(output)

        self._step += 1

    def _stress(
        self,
        output: _Output,
        frame: Frame,
        positions: NDArray[np.floating] | None,
    ) -> NDArray[np.floating]:
        settings = self.settings
        syslen = settings.syslen(output.force_type)
        if output.result_type is ResultType.PUNCTUAL_STRESS:
            stress = punctual_stress(frame, syslen, settings.sys2pf(output.force_type))
            if output.force_type is ForceType.RESIDUES and settings.normalize_psr:
                stress = normalize_by_size(stress, settings.residue_size)
            return stress

        if positions is None:
            raise ValueError("Positions are required for virial stress")
        virial = virial_stress(frame, positions)
        if output.result_type is ResultType.VIRIAL_STRESS:
            return virial
        return von_mises(virial)

    def _flush(self, output: _Output) -> None:
        """Average the collected steps and write one frame."""
        n = output.n_collected
        if n == 0:
            return
        if output.result_type.is_pairwise:
            if n > 1:
                output.averager.divide_by(n)
            data: Any = output.averager.finalize_frame()
        else:
            data = output.stress_sum / n
            output.stress_sum = None
        output.n_collected = 0

        if output.writer is not None:
            output.writer.write(data)
            logger.debug(
                "Wrote %s based frame %d (%d step(s) averaged)",
                output.force_type.value,
                output.writer.n_frames - 1,
                n,
            )

    def close(self) -> None:
        """Write pending averages, close the files and report skipped potentials."""
        if not self._open:
            return
        for output in self._outputs:
            if output.n_collected:
                if self.period:
                    logger.info(
                        "Averaging the last %d step(s) of an incomplete period of %d",
                        output.n_collected,
                        self.period,
                    )
                self._flush(output)
            if output.writer is not None:
                output.writer.close()
        if self._outputs:
            store = self._outputs[0].store
            store.gather_missing_potentials(self.backend)
            if self.backend.is_root:
                store.report_missing_potentials()
        self._open = False

    def __enter__(self) -> ForceDistribution:
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
