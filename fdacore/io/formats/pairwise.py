"""Pairwise force files: ASCII and binary codecs behind one interface."""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, Any

import numpy as np

from ...exceptions import FileFormatError
from ...forces.frame import Frame, PairForce, PairwiseForces
from ...settings.types import InteractionType, ResultType
from ..base import ResultWriter

BINARY_MAGIC = b"FDAPF"
BINARY_VERSION = 1


def _record_dtype(is_vector: bool) -> np.dtype:
    return np.dtype(
        [
            ("i", "<i4"),
            ("j", "<i4"),
            ("type", "<i4"),
            ("force", "<f8", (3,)) if is_vector else ("force", "<f8"),
        ]
    )


class PairwiseForceCodec(ABC):
    """
    Serialization strategy for pairwise force files.

    A codec knows how to write a header, frames and a footer to an open
    stream, and how to read a complete stream back.
    """

    binary = False

    def __init__(self, result_type: ResultType, is_vector: bool = False) -> None:
        """
        Initialize codec.

        Args:
            result_type: Result type recorded in the file.
            is_vector: True if the records hold force vectors.
        """
        self.result_type = result_type
        self.is_vector = is_vector

    @abstractmethod
    def write_header(self, stream: IO[Any]) -> None:
        """Write the file header."""
        ...

    @abstractmethod
    def write_frame(self, stream: IO[Any], frame: Frame) -> None:
        """Write one frame."""
        ...

    def write_footer(self, stream: IO[Any]) -> None:
        """Write the file footer (optional, format-dependent)."""
        pass

    @classmethod
    @abstractmethod
    def read(cls, stream: IO[Any]) -> PairwiseForces:
        """Read a complete file."""
        ...

    @classmethod
    @abstractmethod
    def detect(cls, head: bytes) -> bool:
        """Return True if a file starting with ``head`` has this format."""
        ...


class AsciiCodec(PairwiseForceCodec):
    """
    Plain text pairwise forces.

    Layout::

        pairwise_forces_scalar
        frame 0 2
        0 1 5.00000000e+00 1
        1 2 -3.00000000e+00 48

    Vector files hold ``i j fx fy fz type``. The type column is the
    interaction type bit mask.
    """

    def write_header(self, stream: IO[str]) -> None:
        stream.write(f"{self.result_type.value}\n")

    def write_frame(self, stream: IO[str], frame: Frame) -> None:
        stream.write(f"frame {frame.index} {len(frame)}\n")
        for record in frame:
            if self.is_vector:
                fx, fy, fz = record.force
                stream.write(
                    f"{record.i} {record.j} {fx:.8e} {fy:.8e} {fz:.8e} {record.type.value}\n"
                )
            else:
                stream.write(f"{record.i} {record.j} {record.force:.8e} {record.type.value}\n")

    @classmethod
    def detect(cls, head: bytes) -> bool:
        first = head.split(b"\n", 1)[0].strip().decode("ascii", errors="replace")
        return first in {rt.value for rt in ResultType if rt.is_pairwise and not rt.is_compat}

    @classmethod
    def read(cls, stream: IO[str]) -> PairwiseForces:
        header = stream.readline().strip()
        try:
            result_type = ResultType(header)
        except ValueError as e:
            raise FileFormatError(f"Unknown pairwise force file header '{header}'") from e
        is_vector = result_type is ResultType.PAIRWISE_FORCES_VECTOR
        n_columns = 6 if is_vector else 4

        frames: list[Frame] = []
        index: int | None = None
        expected: int | None = None
        records: list[PairForce] = []

        def close_frame() -> None:
            if index is None:
                return
            if expected is not None and expected != len(records):
                raise FileFormatError(
                    f"Frame {index}: expected {expected} pairs, found {len(records)}"
                )
            frames.append(Frame(index, tuple(records)))

        for lineno, line in enumerate(stream, start=2):
            tokens = line.split()
            if not tokens:
                continue
            if tokens[0] == "frame":
                close_frame()
                try:
                    index = int(tokens[1])
                    expected = int(tokens[2]) if len(tokens) > 2 else None
                except (IndexError, ValueError) as e:
                    raise FileFormatError(f"line {lineno}: malformed frame header") from e
                records = []
                continue
            if index is None or len(tokens) != n_columns:
                raise FileFormatError(f"line {lineno}: unexpected record '{line.strip()}'")
            try:
                i, j, itype = int(tokens[0]), int(tokens[1]), InteractionType(int(tokens[-1]))
                if is_vector:
                    force = np.array([float(t) for t in tokens[2:5]])
                else:
                    force = float(tokens[2])
            except ValueError as e:
                raise FileFormatError(f"line {lineno}: {e}") from e
            records.append(PairForce(i, j, force, itype))
        close_frame()

        return PairwiseForces(result_type, frames, is_vector)


class BinaryCodec(PairwiseForceCodec):
    """
    Binary pairwise forces (little endian).

    Header: magic ``FDAPF``, uint32 version, uint32 name length, result type
    name, uint8 vector flag. Each frame: int32 frame index, int32 record
    count, then records of (int32 i, int32 j, int32 type, float64 force[1|3]).
    """

    binary = True

    def write_header(self, stream: IO[bytes]) -> None:
        name = self.result_type.value.encode("ascii")
        stream.write(BINARY_MAGIC)
        stream.write(struct.pack("<II", BINARY_VERSION, len(name)))
        stream.write(name)
        stream.write(struct.pack("<B", int(self.is_vector)))

    def write_frame(self, stream: IO[bytes], frame: Frame) -> None:
        records = np.zeros(len(frame), dtype=_record_dtype(self.is_vector))
        for n, record in enumerate(frame):
            records[n] = (record.i, record.j, record.type.value, record.force)
        stream.write(struct.pack("<ii", frame.index, len(frame)))
        stream.write(records.tobytes())

    @classmethod
    def detect(cls, head: bytes) -> bool:
        return head.startswith(BINARY_MAGIC)

    @classmethod
    def read(cls, stream: IO[bytes]) -> PairwiseForces:
        content = stream.read()
        if not content.startswith(BINARY_MAGIC):
            raise FileFormatError("Not a binary pairwise force file (bad magic)")
        offset = len(BINARY_MAGIC)
        version, name_length = _unpack("<II", content, offset)
        if version > BINARY_VERSION:
            raise FileFormatError(
                f"Pairwise force file version {version} not supported "
                f"(max supported: {BINARY_VERSION})"
            )
        offset += 8
        name = content[offset : offset + name_length].decode("ascii", errors="replace")
        offset += name_length
        try:
            result_type = ResultType(name)
        except ValueError as e:
            raise FileFormatError(f"Unknown result type '{name}'") from e
        (is_vector,) = _unpack("<B", content, offset)
        offset += 1
        dtype = _record_dtype(bool(is_vector))

        frames = []
        while offset < len(content):
            index, count = _unpack("<ii", content, offset)
            offset += 8
            size = count * dtype.itemsize
            if count < 0 or offset + size > len(content):
                raise FileFormatError(f"Frame {index} is truncated")
            records = np.frombuffer(content, dtype=dtype, count=count, offset=offset)
            offset += size
            frames.append(
                Frame(
                    index,
                    tuple(
                        PairForce(
                            int(r["i"]),
                            int(r["j"]),
                            np.array(r["force"], dtype=np.float64) if is_vector else float(r["force"]),
                            _interaction_type(int(r["type"]), index),
                        )
                        for r in records
                    ),
                )
            )
        return PairwiseForces(result_type, frames, bool(is_vector))


def _interaction_type(value: int, frame_index: int) -> InteractionType:
    try:
        return InteractionType(value)
    except ValueError as e:
        raise FileFormatError(f"Frame {frame_index}: invalid interaction type {value}") from e


def _unpack(fmt: str, content: bytes, offset: int) -> tuple:
    size = struct.calcsize(fmt)
    if offset + size > len(content):
        raise FileFormatError("Unexpected end of file")
    return struct.unpack_from(fmt, content, offset)


class PairwiseForceWriter(ResultWriter):
    """
    Streaming writer of pairwise force frames through a codec.

    Example:
        with PairwiseForceWriter("fda.pfa", AsciiCodec(result_type)) as writer:
            writer.write(frame)
    """

    def __init__(self, filename: str | Path, codec: PairwiseForceCodec) -> None:
        """
        Initialize writer.

        Args:
            filename: Output file path.
            codec: Serialization strategy.
        """
        super().__init__(filename)
        self.codec = codec
        self.binary = codec.binary

    def write_header(self, **kwargs: Any) -> None:
        self.codec.write_header(self._file)

    def write(self, frame: Frame, **kwargs: Any) -> None:
        """
        Write a single frame.

        Args:
            frame: Finalized frame.
        """
        self._check_open()
        self.codec.write_frame(self._file, frame)
        self._n_frames += 1

    def write_footer(self, **kwargs: Any) -> None:
        self.codec.write_footer(self._file)


def codecs() -> list[type[PairwiseForceCodec]]:
    """Codecs in detection order."""
    from .compat import CompatAsciiCodec, CompatBinaryCodec

    return [BinaryCodec, CompatBinaryCodec, CompatAsciiCodec, AsciiCodec]


def read_pairwise_forces(filename: str | Path) -> PairwiseForces:
    """
    Read a pairwise force file in any supported format.

    Args:
        filename: Input file path.

    Returns:
        File content.

    Raises:
        FileFormatError: If the format is unknown or the file is corrupt.
        FileNotFoundError: If the file does not exist.
    """
    path = Path(filename)
    with path.open("rb") as f:
        head = f.read(64)

    for codec in codecs():
        if codec.detect(head):
            if codec.binary:
                with path.open("rb") as f:
                    return codec.read(f)
            with path.open() as f:
                return codec.read(f)

    raise FileFormatError(f"Unknown pairwise force file format: {path}")


def write_pairwise_forces(
    filename: str | Path,
    forces: PairwiseForces,
    codec: PairwiseForceCodec | None = None,
) -> Path:
    """Write complete file content, as text unless a codec is given."""
    if codec is None:
        codec = AsciiCodec(forces.result_type, forces.is_vector)
    with PairwiseForceWriter(filename, codec) as writer:
        for frame in forces:
            writer.write(frame)
    return Path(filename)
