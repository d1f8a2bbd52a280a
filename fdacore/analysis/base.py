"""Base classes for offline analyses of result files."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .frames import FrameSelection


class Analyzer(ABC):
    """
    Abstract base class for post-hoc analyzers.

    Analyzers read persisted results, select frames with a
    ``FrameSelection`` and produce one result per selected (or averaged)
    frame group. Frames are independent once read, so analyzers keep no
    state between ``run`` calls.

    Example:
        analyzer = ShortestPathAnalyzer(k=2)
        results = analyzer.run(forces, FrameSelection.parse("all"), source=0, dest=2)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Analyzer name for identification."""
        ...

    @abstractmethod
    def run(self, data: Any, selection: FrameSelection, **kwargs: Any) -> Any:
        """
        Analyze the selected frames of ``data``.

        Args:
            data: File content to analyze.
            selection: Frames to process.
            **kwargs: Analyzer-specific options.

        Returns:
            Analysis results.
        """
        ...
