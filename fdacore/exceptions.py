"""Error taxonomy for force distribution analysis."""

from __future__ import annotations


class FDAError(Exception):
    """Base class for all fdacore errors."""


class ConfigurationError(FDAError, ValueError):
    """Invalid or conflicting run-time options; raised before accumulation."""


class UnsupportedInteractionError(FDAError, ValueError):
    """An interaction type that cannot be distributed onto pairs."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Interaction type '{name}' is not supported by force distribution "
            "analysis. Set 'ignore_missing_potentials = yes' to skip it; the "
            "distributed forces will then not sum up to the total forces."
        )
        self.name = name


class FileFormatError(FDAError, ValueError):
    """Corrupt, truncated or version-mismatched result file."""


class GraphQueryError(FDAError, LookupError):
    """Source or destination cannot be reached in the force network."""
