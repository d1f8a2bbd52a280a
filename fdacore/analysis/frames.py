"""Frame selection expressions shared by the analysis tools."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..exceptions import ConfigurationError


class SelectionMode(Enum):
    """How frames are picked from a result file."""

    SINGLE = "single"
    AVERAGE = "average"
    SKIP = "skip"
    ALL = "all"


@dataclass(frozen=True)
class FrameGroup:
    """
    Frames processed together.

    Attributes:
        label: Row label, e.g. ``"frame 4"`` or ``"average 10"``.
        indices: File positions of the frames; more than one means the
            frames are averaged.
    """

    label: str
    indices: tuple[int, ...]

    @property
    def averaged(self) -> bool:
        return len(self.indices) > 1


@dataclass(frozen=True)
class FrameSelection:
    """
    Parsed frame selection.

    Vocabulary:
        ``"N"``: the single frame at position N.
        ``"average N"``: one group averaging the first N frames.
        ``"skip N"``: every Nth frame, starting with the first.
        ``"all"``: every frame on its own.

    Example:
        >>> [g.indices for g in FrameSelection.parse("skip 2").select(6)]
        [(0,), (2,), (4,)]
    """

    mode: SelectionMode
    value: int = 0

    @classmethod
    def parse(cls, text: str | int) -> FrameSelection:
        """
        Parse a frame selection expression.

        Raises:
            ConfigurationError: If the expression is malformed.
        """
        if isinstance(text, int):
            text = str(text)
        tokens = text.split()
        if len(tokens) == 1 and tokens[0].lower() == "all":
            return cls(SelectionMode.ALL)
        try:
            if len(tokens) == 1:
                mode, value = SelectionMode.SINGLE, int(tokens[0])
            elif len(tokens) == 2 and tokens[0].lower() in ("average", "skip"):
                mode, value = SelectionMode(tokens[0].lower()), int(tokens[1])
            else:
                raise ValueError(text)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid frame selection '{text}', expected 'N', 'average N', 'skip N' or 'all'"
            ) from e

        if mode is SelectionMode.SINGLE and value < 0:
            raise ConfigurationError(f"Frame number must not be negative, got {value}")
        if mode in (SelectionMode.AVERAGE, SelectionMode.SKIP) and value < 1:
            raise ConfigurationError(f"'{mode.value}' needs a positive number, got {value}")
        return cls(mode, value)

    def select(self, n_frames: int) -> list[FrameGroup]:
        """
        Resolve the selection against a file with ``n_frames`` frames.

        Raises:
            ConfigurationError: If the selection refers to missing frames.
        """
        if self.mode is SelectionMode.ALL:
            return [FrameGroup(f"frame {k}", (k,)) for k in range(n_frames)]
        if self.mode is SelectionMode.SKIP:
            return [FrameGroup(f"frame {k}", (k,)) for k in range(0, n_frames, self.value)]
        if self.value > n_frames or (self.mode is SelectionMode.SINGLE and self.value == n_frames):
            raise ConfigurationError(
                f"Frame selection '{self}' out of range, file has {n_frames} frames"
            )
        if self.mode is SelectionMode.AVERAGE:
            return [FrameGroup(f"average {self.value}", tuple(range(self.value)))]
        return [FrameGroup(f"frame {self.value}", (self.value,))]

    def __str__(self) -> str:
        if self.mode is SelectionMode.ALL:
            return "all"
        if self.mode is SelectionMode.SINGLE:
            return str(self.value)
        return f"{self.mode.value} {self.value}"
