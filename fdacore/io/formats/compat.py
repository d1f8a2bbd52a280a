"""Legacy force matrix files (compatibility mode)."""

from __future__ import annotations

import struct
from collections.abc import Sequence
from typing import IO

import numpy as np

from ...exceptions import FileFormatError
from ...forces.frame import Frame, PairForce, PairwiseForces
from ...settings.types import InteractionType, ResultType
from .pairwise import PairwiseForceCodec, _unpack

# Version of the force matrix implementation
COMPAT_VERSION = "1.5"

# Marks the start of an entry (frame) in compatibility files
COMPAT_NEW_ENTRY = -280480

_COMPAT_RECORD = np.dtype([("i", "<i4"), ("j", "<i4"), ("force", "<f4")])


class _CompatCodec(PairwiseForceCodec):
    """
    Shared part of the legacy codecs.

    Legacy files index pairs by pf index and carry the table of system
    numbers in the header. They hold one summed scalar per pair; interaction
    types are not stored and read back as ``InteractionType.ALL``.
    """

    default_result_type = ResultType.COMPAT_ASCII

    def __init__(
        self,
        entities: Sequence[int],
        groupname: str = "",
        no_end_zeros: bool = False,
    ) -> None:
        """
        Initialize codec.

        Args:
            entities: System numbers of the in-scope entities in pf order.
            groupname: Group label written to the header.
            no_end_zeros: Omit zero trailing columns of matrix rows.
        """
        super().__init__(self.default_result_type, is_vector=False)
        self.entities = tuple(int(e) for e in entities)
        self.groupname = groupname
        self.no_end_zeros = no_end_zeros
        self._sys2pf = {s: p for p, s in enumerate(self.entities)}

    def _pf_forces(self, frame: Frame) -> dict[tuple[int, int], float]:
        if frame.is_vector:
            raise ValueError("Compatibility files hold scalar forces only")
        result = {}
        for (i, j), force in frame.forces().items():
            try:
                pi, pj = self._sys2pf[i], self._sys2pf[j]
            except KeyError as e:
                raise ValueError(f"Entity {e.args[0]} is not in the pf table") from e
            result[(min(pi, pj), max(pi, pj))] = float(force)
        return result

    @staticmethod
    def _records(
        entities: Sequence[int], pf_forces: dict[tuple[int, int], float]
    ) -> tuple[PairForce, ...]:
        records = []
        for (pi, pj), force in pf_forces.items():
            if not (0 <= pi < len(entities) and 0 <= pj < len(entities)):
                raise FileFormatError(
                    f"Pair ({pi}, {pj}) is outside the entity table of {len(entities)}"
                )
            i, j = entities[pi], entities[pj]
            records.append(PairForce(min(i, j), max(i, j), force, InteractionType.ALL))
        return tuple(sorted(records, key=lambda r: (r.i, r.j)))


class CompatAsciiCodec(_CompatCodec):
    """
    Legacy text force matrix.

    Layout::

        1.5
        <group name>
        <number of entities>
        <system numbers in pf order>
        frame <n>
        <row 0: columns 1 .. n-1>
        ...
        <row n-1: empty>
        -280480
    """

    def write_header(self, stream: IO[str]) -> None:
        stream.write(f"{COMPAT_VERSION}\n")
        stream.write(f"{self.groupname}\n")
        stream.write(f"{len(self.entities)}\n")
        stream.write(" ".join(str(e) for e in self.entities) + "\n")

    def write_frame(self, stream: IO[str], frame: Frame) -> None:
        n = len(self.entities)
        matrix = np.zeros((n, n))
        for (pi, pj), force in self._pf_forces(frame).items():
            matrix[pi, pj] = force

        stream.write(f"frame {frame.index}\n")
        for p in range(n):
            row = matrix[p, p + 1 :]
            if self.no_end_zeros:
                nonzero = np.flatnonzero(row)
                row = row[: nonzero[-1] + 1] if nonzero.size else row[:0]
            stream.write(" ".join(f"{v:.8e}" for v in row) + "\n")
        stream.write(f"{COMPAT_NEW_ENTRY}\n")

    @classmethod
    def detect(cls, head: bytes) -> bool:
        return head.split(b"\n", 1)[0].strip() == COMPAT_VERSION.encode()

    @classmethod
    def read(cls, stream: IO[str]) -> PairwiseForces:
        version = stream.readline().strip()
        if version != COMPAT_VERSION:
            raise FileFormatError(
                f"Force matrix version '{version}' not supported (expected {COMPAT_VERSION})"
            )
        groupname = stream.readline().rstrip("\n")
        try:
            n = int(stream.readline())
            entities = [int(t) for t in stream.readline().split()]
        except ValueError as e:
            raise FileFormatError(f"Malformed force matrix header: {e}") from e
        if len(entities) != n:
            raise FileFormatError(f"Header lists {len(entities)} entities, expected {n}")

        frames = []
        while True:
            line = stream.readline()
            if not line:
                break
            if not line.strip():
                continue
            tokens = line.split()
            if tokens[0] != "frame" or len(tokens) != 2:
                raise FileFormatError(f"Expected frame header, got '{line.strip()}'")
            try:
                index = int(tokens[1])
            except ValueError as e:
                raise FileFormatError(f"Malformed frame header '{line.strip()}'") from e
            pf_forces = {}
            for p in range(n):
                row = stream.readline()
                if not row:
                    raise FileFormatError(f"Frame {index} is truncated")
                try:
                    values = [float(t) for t in row.split()]
                except ValueError as e:
                    raise FileFormatError(f"Frame {index}, row {p}: {e}") from e
                if len(values) > n - p - 1:
                    raise FileFormatError(f"Frame {index}, row {p} has too many columns")
                for offset, value in enumerate(values):
                    if value != 0.0:
                        pf_forces[(p, p + 1 + offset)] = value
            sentinel = stream.readline().strip()
            if sentinel != str(COMPAT_NEW_ENTRY):
                raise FileFormatError(f"Frame {index} is not terminated, file truncated")
            frames.append(Frame(index, cls._records(entities, pf_forces)))

        return PairwiseForces(
            ResultType.COMPAT_ASCII, frames, False, tuple(entities), groupname
        )


class CompatBinaryCodec(_CompatCodec):
    """
    Legacy binary force matrix (little endian).

    Header: length-prefixed version string and group name, int32 entity
    count, int32 system numbers. Each frame: int32 ``COMPAT_NEW_ENTRY``,
    int32 frame index, int32 record count, then records of
    (int32 pf_i, int32 pf_j, float32 force).
    """

    binary = True
    default_result_type = ResultType.COMPAT_BIN

    def write_header(self, stream: IO[bytes]) -> None:
        for text in (COMPAT_VERSION, self.groupname):
            data = text.encode("utf-8")
            stream.write(struct.pack("<I", len(data)))
            stream.write(data)
        stream.write(struct.pack("<i", len(self.entities)))
        stream.write(np.asarray(self.entities, dtype="<i4").tobytes())

    def write_frame(self, stream: IO[bytes], frame: Frame) -> None:
        pf_forces = self._pf_forces(frame)
        records = np.zeros(len(pf_forces), dtype=_COMPAT_RECORD)
        for n, ((pi, pj), force) in enumerate(sorted(pf_forces.items())):
            records[n] = (pi, pj, force)
        stream.write(struct.pack("<iii", COMPAT_NEW_ENTRY, frame.index, len(records)))
        stream.write(records.tobytes())

    @classmethod
    def detect(cls, head: bytes) -> bool:
        version = COMPAT_VERSION.encode()
        return head[:4] == struct.pack("<I", len(version)) and head[4 : 4 + len(version)] == version

    @classmethod
    def read(cls, stream: IO[bytes]) -> PairwiseForces:
        content = stream.read()
        offset = 0
        strings = []
        for _ in range(2):
            (length,) = _unpack("<I", content, offset)
            offset += 4
            if offset + length > len(content):
                raise FileFormatError("Unexpected end of file in header")
            strings.append(content[offset : offset + length].decode("utf-8", errors="replace"))
            offset += length
        version, groupname = strings
        if version != COMPAT_VERSION:
            raise FileFormatError(
                f"Force matrix version '{version}' not supported (expected {COMPAT_VERSION})"
            )
        (n,) = _unpack("<i", content, offset)
        offset += 4
        if n < 0 or offset + 4 * n > len(content):
            raise FileFormatError("Unexpected end of file in entity table")
        entities = np.frombuffer(content, dtype="<i4", count=n, offset=offset).tolist()
        offset += 4 * n

        frames = []
        while offset < len(content):
            sentinel, index, count = _unpack("<iii", content, offset)
            if sentinel != COMPAT_NEW_ENTRY:
                raise FileFormatError(f"Missing entry marker at byte {offset}")
            offset += 12
            size = count * _COMPAT_RECORD.itemsize
            if count < 0 or offset + size > len(content):
                raise FileFormatError(f"Frame {index} is truncated")
            records = np.frombuffer(content, dtype=_COMPAT_RECORD, count=count, offset=offset)
            offset += size
            pf_forces = {(int(r["i"]), int(r["j"])): float(r["force"]) for r in records}
            frames.append(Frame(index, cls._records(entities, pf_forces)))

        return PairwiseForces(ResultType.COMPAT_BIN, frames, False, tuple(entities), groupname)
