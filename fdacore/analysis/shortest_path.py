"""
k shortest paths through the force network.

Entities (atoms or residues) are nodes, pairs with a force are undirected
edges. Strong forces make short edges, so the shortest paths follow the
main routes along which force is transmitted.
"""

from __future__ import annotations

import heapq
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path as FilePath
from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..exceptions import ConfigurationError, GraphQueryError
from ..forces.frame import Frame, PairwiseForces, average_frames, force_magnitude
from ..io.formats.pdb import PDBWriter
from ..settings.types import ForceType, ResiduesRenumber
from ..topology import Topology
from .base import Analyzer
from .frames import FrameSelection

logger = logging.getLogger(__name__)


class EdgeWeight(ABC):
    """
    Transform from force magnitude to edge length.

    Implementations must be monotonically decreasing in the magnitude.
    ``prepare`` is called once per frame with all magnitudes of the graph.
    """

    def prepare(self, magnitudes: Sequence[float]) -> None:
        pass

    @abstractmethod
    def __call__(self, magnitude: float) -> float:
        ...


class InverseForce(EdgeWeight):
    """Edge length ``min(1 / |f|, cap)``; vanishing forces get ``cap``."""

    def __init__(self, cap: float = 1.0e6) -> None:
        if cap <= 0:
            raise ValueError(f"cap must be positive, got {cap}")
        self.cap = cap

    def __call__(self, magnitude: float) -> float:
        if magnitude <= 1.0 / self.cap:
            return self.cap
        return 1.0 / magnitude

    def __repr__(self) -> str:
        return f"InverseForce(cap={self.cap})"


class LinearForce(EdgeWeight):
    """Edge length ``max|f| - |f| + offset`` over the magnitudes of the frame."""

    def __init__(self, offset: float = 1.0) -> None:
        if offset <= 0:
            raise ValueError(f"offset must be positive, got {offset}")
        self.offset = offset
        self._max = 0.0

    def prepare(self, magnitudes: Sequence[float]) -> None:
        self._max = max(magnitudes, default=0.0)

    def __call__(self, magnitude: float) -> float:
        return self._max - magnitude + self.offset

    def __repr__(self) -> str:
        return f"LinearForce(offset={self.offset})"


@dataclass(frozen=True)
class Path:
    """
    A simple path through the force network.

    Attributes:
        nodes: Entity numbers from source to destination.
        weight: Sum of the edge lengths.
    """

    nodes: tuple[int, ...]
    weight: float

    def __len__(self) -> int:
        return len(self.nodes)


@dataclass
class FramePaths:
    """
    Paths found in one selected (or averaged) frame group.

    Attributes:
        label: Frame group label.
        frames: File positions of the frames in the group.
        paths: Up to k paths, shortest first.
        error: Reason why no path was found, if any.
    """

    label: str
    frames: tuple[int, ...]
    paths: list[Path] = field(default_factory=list)
    error: GraphQueryError | None = None

    @property
    def found(self) -> bool:
        return bool(self.paths)


class ForceNetwork:
    """
    Undirected weighted graph built from one frame.

    Neighbours are visited in ascending node order, which makes the path
    search deterministic.
    """

    def __init__(
        self,
        frame: Frame,
        weight: EdgeWeight,
        nodes: Iterable[int] = (),
    ) -> None:
        """
        Build the network.

        Args:
            frame: Pairwise forces; records of the same pair are summed.
            weight: Edge length policy.
            nodes: Additional in-scope entities without any force.
        """
        forces = frame.forces()
        magnitudes = {pair: force_magnitude(f) for pair, f in forces.items()}
        weight.prepare(list(magnitudes.values()))

        self.adjacency: dict[int, dict[int, float]] = {n: {} for n in nodes}
        for (i, j), magnitude in magnitudes.items():
            if i == j:
                continue
            length = weight(magnitude)
            self.adjacency.setdefault(i, {})[j] = length
            self.adjacency.setdefault(j, {})[i] = length
        self._neighbors = {n: sorted(adj) for n, adj in self.adjacency.items()}

    def __contains__(self, node: int) -> bool:
        return node in self.adjacency

    @property
    def nodes(self) -> list[int]:
        return sorted(self.adjacency)

    def path_weight(self, nodes: Sequence[int]) -> float:
        return sum(self.adjacency[a][b] for a, b in zip(nodes, nodes[1:]))

    def shortest_path(
        self,
        source: int,
        dest: int,
        removed_nodes: frozenset[int] | set[int] = frozenset(),
        removed_edges: frozenset[tuple[int, int]] | set[tuple[int, int]] = frozenset(),
    ) -> Path | None:
        """
        Dijkstra search; equal distances are resolved by discovery order.

        Args:
            source: Start node.
            dest: End node.
            removed_nodes: Nodes that must not be visited.
            removed_edges: Edges ``(min, max)`` that must not be used.

        Returns:
            The shortest path or None if ``dest`` is unreachable.
        """
        dist = {source: 0.0}
        previous: dict[int, int] = {}
        done: set[int] = set()
        counter = 0
        heap = [(0.0, counter, source)]

        while heap:
            d, _, node = heapq.heappop(heap)
            if node in done:
                continue
            if node == dest:
                break
            done.add(node)
            for neighbor in self._neighbors[node]:
                if neighbor in removed_nodes or neighbor in done:
                    continue
                if (min(node, neighbor), max(node, neighbor)) in removed_edges:
                    continue
                nd = d + self.adjacency[node][neighbor]
                if nd < dist.get(neighbor, float("inf")):
                    dist[neighbor] = nd
                    previous[neighbor] = node
                    counter += 1
                    heapq.heappush(heap, (nd, counter, neighbor))

        if dest not in dist:
            return None
        nodes = [dest]
        while nodes[-1] != source:
            nodes.append(previous[nodes[-1]])
        nodes.reverse()
        return Path(tuple(nodes), dist[dest])

    def k_shortest_paths(self, source: int, dest: int, k: int) -> list[Path]:
        """
        Yen's algorithm: up to k loopless paths in order of total weight.

        Raises:
            GraphQueryError: If source or destination is absent or no path
                connects them.
        """
        for node, role in ((source, "Source"), (dest, "Destination")):
            if node not in self:
                raise GraphQueryError(f"{role} {node} is not part of the force network")

        first = self.shortest_path(source, dest)
        if first is None:
            raise GraphQueryError(f"No path between {source} and {dest}")

        accepted = [first]
        seen = {first.nodes}
        candidates: list[tuple[float, int, tuple[int, ...]]] = []
        counter = 0

        while len(accepted) < k:
            last = accepted[-1].nodes
            for n in range(len(last) - 1):
                spur, root = last[n], last[: n + 1]
                removed_edges = {
                    (min(p.nodes[n], p.nodes[n + 1]), max(p.nodes[n], p.nodes[n + 1]))
                    for p in accepted
                    if len(p.nodes) > n + 1 and p.nodes[: n + 1] == root
                }
                spur_path = self.shortest_path(spur, dest, set(root[:-1]), removed_edges)
                if spur_path is None:
                    continue
                nodes = root[:-1] + spur_path.nodes
                if nodes in seen:
                    continue
                seen.add(nodes)
                counter += 1
                heapq.heappush(candidates, (self.path_weight(nodes), counter, nodes))

            if not candidates:
                break
            weight, _, nodes = heapq.heappop(candidates)
            accepted.append(Path(nodes, weight))

        return accepted


class ShortestPathAnalyzer(Analyzer):
    """
    k shortest paths per selected frame group.

    Unreachable or absent nodes do not stop the analysis: the frame group is
    reported with an empty path list and the error, and a summary warning is
    logged at the end.

    Example:
        analyzer = ShortestPathAnalyzer(k=2, weight=InverseForce(cap=1e3))
        for result in analyzer.run(forces, FrameSelection.parse("all"), 0, 2):
            print(result.label, [p.nodes for p in result.paths])
    """

    def __init__(self, k: int = 1, weight: EdgeWeight | None = None) -> None:
        """
        Initialize analyzer.

        Args:
            k: Maximum number of paths per frame group.
            weight: Edge length policy, ``InverseForce()`` by default.
        """
        if k < 1:
            raise ValueError(f"k must be at least 1, got {k}")
        self.k = k
        self.weight = weight if weight is not None else InverseForce()

    @property
    def name(self) -> str:
        return "shortest_path"

    def run(
        self,
        data: PairwiseForces,
        selection: FrameSelection,
        source: int = 0,
        dest: int = 0,
        **kwargs: Any,
    ) -> list[FramePaths]:
        """
        Search paths from ``source`` to ``dest``.

        Args:
            data: Pairwise force file content.
            selection: Frames to process.
            source: Start entity number.
            dest: End entity number.

        Returns:
            One result per frame group.
        """
        results = []
        for group in selection.select(len(data)):
            frames = [data[n] for n in group.indices]
            frame = average_frames(frames, frames[0].index) if group.averaged else frames[0]
            network = ForceNetwork(frame, self.weight, data.entities)
            result = FramePaths(group.label, group.indices)
            try:
                result.paths = network.k_shortest_paths(source, dest, self.k)
            except GraphQueryError as e:
                result.error = e
            logger.debug("%s: %d path(s)", group.label, len(result.paths))
            results.append(result)

        missing = [r.label for r in results if r.error is not None]
        if missing:
            logger.warning(
                "No path from %d to %d in %d of %d frame group(s): %s",
                source,
                dest,
                len(missing),
                len(results),
                ", ".join(missing),
            )
        return results


def write_paths(filename: str | FilePath, results: Sequence[FramePaths]) -> FilePath:
    """
    Write path results as text.

    Each frame group starts with ``# <label>``; every path is one line of
    ``<rank> <weight> <node> <node> ...``, and a frame group without path
    holds ``no path`` followed by the reason.
    """
    path = FilePath(filename)
    with path.open("w") as f:
        for result in results:
            f.write(f"# {result.label}\n")
            if result.error is not None:
                f.write(f"no path: {result.error}\n")
                continue
            for rank, p in enumerate(result.paths):
                nodes = " ".join(str(n) for n in p.nodes)
                f.write(f"{rank} {p.weight:.8e} {nodes}\n")
    return path


def write_paths_pdb(
    filename: str | FilePath,
    results: Sequence[FramePaths],
    structure: Topology,
    force_type: ForceType = ForceType.ATOMS,
    renumber: ResiduesRenumber = ResiduesRenumber.AUTO,
    representatives: Iterable[int] | None = None,
) -> FilePath:
    """
    Write every path as one PDB model over a structure.

    The B-factor of an atom is the 1-based position of its node along the
    path, so colouring by B-factor runs from source to destination; atoms
    off the path get 0. Residue nodes mark all their atoms, or only the
    ``representatives`` (e.g. the C-alpha index group) when given. Frame
    groups without path write no model.

    Raises:
        ConfigurationError: If a path node or representative is not in the
            structure.
        ValueError: If the structure has no positions.
    """
    n_atoms = structure.n_atoms
    if force_type is ForceType.RESIDUES:
        node_of_atom = structure.atom_to_residue(renumber)
    else:
        node_of_atom = np.arange(n_atoms)
    marked = np.ones(n_atoms, dtype=bool)
    if representatives is not None:
        chosen = np.asarray(list(representatives), dtype=np.int64)
        if chosen.size and (chosen.min() < 0 or chosen.max() >= n_atoms):
            raise ConfigurationError(f"Representative atoms out of range for {n_atoms} atoms")
        marked[:] = False
        marked[chosen] = True
    atoms_of_node: dict[int, NDArray[np.integer]] = {
        node: np.flatnonzero((node_of_atom == node) & marked)
        for node in np.unique(node_of_atom).tolist()
    }

    models = []
    for result in results:
        for rank, p in enumerate(result.paths):
            values = np.zeros(n_atoms)
            for order, node in enumerate(p.nodes, start=1):
                if node not in atoms_of_node:
                    raise ConfigurationError(
                        f"Path node {node} is not among the {force_type.value} of the structure"
                    )
                values[atoms_of_node[node]] = order
            models.append((values, f"{result.label} path {rank} weight {p.weight:.6e}"))

    with PDBWriter(filename, structure) as writer:
        for values, title in models:
            writer.write(values, title=title)
    logger.debug("Wrote %d path model(s) to %s", len(models), filename)
    return FilePath(filename)
