"""Per-entity stress files (punctual stress, virial stress, von Mises)."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ...exceptions import FileFormatError
from ...settings.types import ResultType
from ..base import ResultWriter


@dataclass
class StressData:
    """
    Content of a stress file.

    Attributes:
        result_type: Stress kind.
        values: Stress per frame and column, shape (n_frames, n_columns).
            Virial stress has 6 columns per atom.
    """

    result_type: ResultType
    values: NDArray[np.floating]

    @property
    def n_frames(self) -> int:
        return len(self.values)

    @property
    def components(self) -> int:
        """Columns per entity."""
        return 6 if self.result_type is ResultType.VIRIAL_STRESS else 1

    @property
    def n_entities(self) -> int:
        return self.values.shape[1] // self.components if self.values.ndim == 2 else 0


class StressWriter(ResultWriter):
    """
    Text writer for per-entity stress.

    The first line names the result type, followed by the number of
    entities when it is known; every following line holds one frame with
    one value per system number (6 per atom for virial stress). With
    ``no_end_zeros`` the zero trailing columns of each line are omitted.
    The entity count in the header restores them on reading.
    """

    def __init__(
        self,
        filename: str | Path,
        result_type: ResultType,
        no_end_zeros: bool = False,
        precision: int = 8,
        n_entities: int | None = None,
    ) -> None:
        """
        Initialize stress writer.

        Args:
            filename: Output file path.
            result_type: Stress result type.
            no_end_zeros: Trim zero trailing columns.
            precision: Digits after the decimal point.
            n_entities: System length, written to the header. Every frame
                must then hold exactly this many entities.
        """
        if not result_type.is_stress:
            raise ValueError(f"{result_type} is not a stress result type")
        super().__init__(filename)
        self.result_type = result_type
        self.no_end_zeros = no_end_zeros
        self.precision = precision
        self.n_entities = n_entities

    @property
    def n_columns(self) -> int | None:
        if self.n_entities is None:
            return None
        return self.n_entities * (6 if self.result_type is ResultType.VIRIAL_STRESS else 1)

    def write_header(self, **kwargs: Any) -> None:
        if self.n_entities is None:
            self._file.write(f"{self.result_type.value}\n")
        else:
            self._file.write(f"{self.result_type.value} {self.n_entities}\n")

    def write(self, stress: ArrayLike, **kwargs: Any) -> None:
        """
        Write the stress of one frame.

        Args:
            stress: Stress per entity, shape (N,) or (N, 6).

        Raises:
            ValueError: If the frame does not match the entity count.
        """
        self._check_open()
        row = np.asarray(stress, dtype=np.float64).ravel()
        if self.n_columns is not None and row.size != self.n_columns:
            raise ValueError(f"Expected {self.n_columns} stress values, got {row.size}")
        if self.no_end_zeros:
            nonzero = np.flatnonzero(row)
            row = row[: nonzero[-1] + 1] if nonzero.size else row[:0]
        fmt = f"{{:.{self.precision}e}}"
        self._file.write(" ".join(fmt.format(v) for v in row) + "\n")
        self._n_frames += 1


def read_stress(filename: str | Path) -> StressData:
    """
    Read a stress file.

    Lines trimmed by ``no_end_zeros`` are padded with zeros to the entity
    count of the header. Files without a count are padded to the longest
    line.

    Raises:
        FileFormatError: On unknown header, non-numeric values or lines
            longer than the entity count.
    """
    path = Path(filename)
    with path.open() as f:
        header = f.readline().split()
        name = header[0] if header else ""
        try:
            result_type = ResultType(name)
        except ValueError as e:
            raise FileFormatError(f"Unknown stress file header '{name}'") from e
        if not result_type.is_stress:
            raise FileFormatError(f"{path} holds {result_type}, not stress")
        components = 6 if result_type is ResultType.VIRIAL_STRESS else 1
        width = None
        if len(header) > 1:
            try:
                width = int(header[1]) * components
            except ValueError as e:
                raise FileFormatError(f"{path}:1: bad entity count '{header[1]}'") from e
            if width < 0 or len(header) > 2:
                raise FileFormatError(f"{path}:1: bad stress file header")
        rows = []
        for lineno, line in enumerate(f, start=2):
            try:
                row = [float(t) for t in line.split()]
            except ValueError as e:
                raise FileFormatError(f"{path}:{lineno}: {e}") from e
            if width is not None and len(row) > width:
                raise FileFormatError(
                    f"{path}:{lineno}: {len(row)} values, header allows {width}"
                )
            rows.append(row)

    if width is None:
        width = max((len(r) for r in rows), default=0)
        width = -(-width // components) * components
    values = np.zeros((len(rows), width))
    for n, row in enumerate(rows):
        values[n, : len(row)] = row
    return StressData(result_type, values)
