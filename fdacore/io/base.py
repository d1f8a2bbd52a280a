"""Base classes for result file output."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any


class ResultWriter(ABC):
    """
    Abstract base class for result writers.

    Result writers stream frames to a file as they are finalized. The file
    is opened on ``open()`` (or context manager entry), which also writes
    the header.

    Example:
        with PairwiseForceWriter("fda.pfa", AsciiCodec(result_type)) as writer:
            for frame in frames:
                writer.write(frame)
    """

    binary = False

    def __init__(self, filename: str | Path) -> None:
        """
        Initialize result writer.

        Args:
            filename: Output file path.
        """
        self.filename = Path(filename)
        self._file = None
        self._n_frames = 0

    @abstractmethod
    def write(self, data: Any, **kwargs: Any) -> None:
        """
        Write a single frame.

        Args:
            data: Frame data to write.
            **kwargs: Format-specific options.
        """
        ...

    def write_header(self, **kwargs: Any) -> None:
        """Write file header (optional, format-dependent)."""
        pass

    def write_footer(self, **kwargs: Any) -> None:
        """Write file footer (optional, format-dependent)."""
        pass

    def open(self) -> None:
        """Open file for writing and write the header."""
        self._file = self.filename.open("wb" if self.binary else "w")
        self.write_header()

    def close(self) -> None:
        """Write the footer and close file."""
        if self._file is not None:
            self.write_footer()
            self._file.close()
            self._file = None

    def _check_open(self) -> None:
        if self._file is None:
            raise RuntimeError("File not open. Use context manager or call open().")

    def __enter__(self) -> ResultWriter:
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

    @property
    def n_frames(self) -> int:
        """Number of frames written."""
        return self._n_frames
