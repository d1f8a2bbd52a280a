"""Tests for the k shortest paths analysis."""

import logging
import tempfile
from pathlib import Path

import numpy as np
import pytest

from fdacore.analysis import (
    ForceNetwork,
    FrameSelection,
    InverseForce,
    LinearForce,
    ShortestPathAnalyzer,
    write_paths,
    write_paths_pdb,
)
from fdacore.exceptions import ConfigurationError, GraphQueryError
from fdacore.forces import Frame, PairForce, PairwiseForces
from fdacore.io import PDBReader
from fdacore.settings import ForceType, InteractionType, ResiduesRenumber, ResultType
from fdacore.topology import Topology


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def triangle():
    """Strong 0-1, medium 1-2 and weak 0-2 forces."""
    return Frame(0, (PairForce(0, 1, 5.0), PairForce(1, 2, 3.0), PairForce(0, 2, 1.0)))


@pytest.fixture
def square():
    """Two routes of equal weight from 0 to 3."""
    return Frame(
        0,
        (PairForce(0, 1, 1.0), PairForce(0, 2, 1.0), PairForce(1, 3, 1.0), PairForce(2, 3, 1.0)),
    )


def make_data(*frames):
    return PairwiseForces(ResultType.PAIRWISE_FORCES_SCALAR, list(frames))


class TestEdgeWeights:
    """Tests for the force to edge length transforms."""

    def test_inverse(self):
        """Test 1/|f| with a cap for vanishing forces."""
        weight = InverseForce(cap=10.0)

        assert weight(2.0) == pytest.approx(0.5)
        assert weight(0.05) == 10.0
        assert weight(0.0) == 10.0

    def test_linear(self):
        """Test max|f| - |f| + offset over the frame."""
        weight = LinearForce(offset=1.0)
        weight.prepare([5.0, 3.0, 1.0])

        assert weight(5.0) == pytest.approx(1.0)
        assert weight(1.0) == pytest.approx(5.0)

    @pytest.mark.parametrize("factory", [lambda: InverseForce(0.0), lambda: LinearForce(-1.0)])
    def test_invalid_parameters(self, factory):
        """Test that non-positive parameters are rejected."""
        with pytest.raises(ValueError):
            factory()


class TestForceNetwork:
    """Tests for graph construction and path search."""

    def test_adjacency(self, triangle):
        """Test undirected edges with inverse lengths."""
        network = ForceNetwork(triangle, InverseForce())

        assert network.nodes == [0, 1, 2]
        assert network.adjacency[0][1] == pytest.approx(0.2)
        assert network.adjacency[1][0] == pytest.approx(0.2)

    def test_detailed_records_summed(self):
        """Test that records of one pair form a single edge."""
        frame = Frame(
            0,
            (
                PairForce(0, 1, 3.0, InteractionType.BOND),
                PairForce(0, 1, 1.0, InteractionType.LJ),
            ),
        )
        network = ForceNetwork(frame, InverseForce())

        assert network.adjacency[0] == {1: pytest.approx(0.25)}

    def test_sign_ignored(self):
        """Test that edge lengths depend on the magnitude only."""
        frame = Frame(0, (PairForce(0, 1, -4.0), PairForce(1, 2, np.array([0.0, 3.0, 4.0]))))
        network = ForceNetwork(frame, InverseForce())

        assert network.adjacency[0][1] == pytest.approx(0.25)
        assert network.adjacency[1][2] == pytest.approx(0.2)

    def test_k_shortest(self, triangle):
        """Test that the strong route comes before the direct weak edge."""
        paths = ForceNetwork(triangle, InverseForce()).k_shortest_paths(0, 2, 2)

        assert [p.nodes for p in paths] == [(0, 1, 2), (0, 2)]
        assert paths[0].weight == pytest.approx(0.2 + 1.0 / 3.0)
        assert paths[1].weight == pytest.approx(1.0)

    def test_k_larger_than_paths(self, triangle):
        """Test that all simple paths are returned when k is large."""
        paths = ForceNetwork(triangle, InverseForce()).k_shortest_paths(0, 2, 5)

        assert len(paths) == 2

    def test_linear_weights(self, triangle):
        """Test the same order under the linear transform."""
        paths = ForceNetwork(triangle, LinearForce(1.0)).k_shortest_paths(0, 2, 2)

        assert [p.nodes for p in paths] == [(0, 1, 2), (0, 2)]
        assert [p.weight for p in paths] == pytest.approx([4.0, 5.0])

    def test_ties_in_node_order(self, square):
        """Test that equal routes are ordered by node numbers."""
        network = ForceNetwork(square, InverseForce())

        paths = network.k_shortest_paths(0, 3, 2)
        again = network.k_shortest_paths(0, 3, 2)

        assert [p.nodes for p in paths] == [(0, 1, 3), (0, 2, 3)]
        assert paths == again

    def test_loopless(self, square):
        """Test that no path visits a node twice."""
        for path in ForceNetwork(square, InverseForce()).k_shortest_paths(0, 3, 10):
            assert len(set(path.nodes)) == len(path.nodes)

    def test_absent_node(self, triangle):
        """Test that unknown nodes raise."""
        network = ForceNetwork(triangle, InverseForce())

        with pytest.raises(GraphQueryError, match="Source 7"):
            network.k_shortest_paths(7, 2, 1)
        with pytest.raises(GraphQueryError, match="Destination 9"):
            network.k_shortest_paths(0, 9, 1)

    def test_disconnected(self):
        """Test that unreachable destinations raise."""
        frame = Frame(0, (PairForce(0, 1, 1.0), PairForce(2, 3, 1.0)))

        with pytest.raises(GraphQueryError, match="No path"):
            ForceNetwork(frame, InverseForce()).k_shortest_paths(0, 3, 1)

    def test_isolated_extra_node(self, triangle):
        """Test that in-scope nodes without force are unreachable, not absent."""
        network = ForceNetwork(triangle, InverseForce(), nodes=[0, 1, 2, 5])

        assert 5 in network
        with pytest.raises(GraphQueryError, match="No path"):
            network.k_shortest_paths(0, 5, 1)


class TestShortestPathAnalyzer:
    """Tests for per frame group path search."""

    def test_each_frame(self, triangle):
        """Test one result per selected frame."""
        results = ShortestPathAnalyzer(k=1).run(make_data(triangle, triangle), FrameSelection.parse("all"), 0, 2)

        assert [r.label for r in results] == ["frame 0", "frame 1"]
        assert all(r.found for r in results)
        assert results[0].paths[0].nodes == (0, 1, 2)

    def test_average(self, triangle):
        """Test that averaged forces can change the shortest path."""
        strong_direct = Frame(1, (PairForce(0, 2, 9.0),))
        results = ShortestPathAnalyzer(k=1).run(
            make_data(triangle, strong_direct), FrameSelection.parse("average 2"), 0, 2
        )

        assert len(results) == 1
        assert results[0].frames == (0, 1)
        assert results[0].paths[0].nodes == (0, 2)
        assert results[0].paths[0].weight == pytest.approx(0.2)

    def test_missing_path_recorded(self, triangle, caplog):
        """Test that frames without path are reported, not raised."""
        broken = Frame(1, (PairForce(0, 1, 5.0),))
        with caplog.at_level(logging.WARNING, logger="fdacore"):
            results = ShortestPathAnalyzer().run(make_data(triangle, broken), FrameSelection.parse("all"), 0, 2)

        assert results[0].found
        assert not results[1].found
        assert isinstance(results[1].error, GraphQueryError)
        assert "1 of 2" in caplog.text

    def test_invalid_k(self):
        """Test that k must be positive."""
        with pytest.raises(ValueError):
            ShortestPathAnalyzer(k=0)

    def test_write_paths(self, triangle, temp_dir):
        """Test the text report."""
        data = make_data(triangle, Frame(1, (PairForce(0, 1, 5.0),)))
        results = ShortestPathAnalyzer(k=2).run(data, FrameSelection.parse("all"), 0, 2)

        path = write_paths(temp_dir / "paths.txt", results)
        lines = path.read_text().splitlines()

        assert lines[0] == "# frame 0"
        assert lines[1] == "0 5.33333333e-01 0 1 2"
        assert lines[2] == "1 1.00000000e+00 0 2"
        assert lines[3] == "# frame 1"
        assert lines[4] == "no path: Destination 2 is not part of the force network"


@pytest.fixture
def chain_structure():
    """Three residues of two atoms each, on the x axis."""
    return Topology(
        n_atoms=6,
        atom_names=["N", "CA"] * 3,
        residue_numbers=np.array([1, 1, 2, 2, 3, 3]),
        residue_names=["GLY"] * 6,
        positions=np.column_stack([np.arange(6.0), np.zeros(6), np.zeros(6)]),
    )


class TestPathModels:
    """Tests for writing paths as PDB models."""

    def test_atom_paths(self, triangle, chain_structure, temp_dir):
        """Test one model per path with the order along the path as B-factor."""
        results = ShortestPathAnalyzer(k=2).run(make_data(triangle), FrameSelection.parse("all"), 0, 2)

        path = write_paths_pdb(temp_dir / "paths.pdb", results, chain_structure)

        text = path.read_text()
        assert "TITLE     frame 0 path 0 weight 5.333333e-01" in text
        with PDBReader(path) as reader:
            assert len(reader) == 2
            np.testing.assert_allclose(reader.read_frame(0)["b_factors"], [1, 2, 3, 0, 0, 0])
            np.testing.assert_allclose(reader.read_frame(1)["b_factors"], [1, 0, 2, 0, 0, 0])

    def test_residue_paths(self, triangle, chain_structure, temp_dir):
        """Test that residue nodes mark all of their atoms."""
        results = ShortestPathAnalyzer(k=1).run(make_data(triangle), FrameSelection.parse("all"), 0, 2)

        path = write_paths_pdb(
            temp_dir / "paths.pdb", results, chain_structure, ForceType.RESIDUES, ResiduesRenumber.DO
        )

        with PDBReader(path) as reader:
            np.testing.assert_allclose(reader.read_frame(0)["b_factors"], [1, 1, 2, 2, 3, 3])

    def test_representative_atoms(self, triangle, chain_structure, temp_dir):
        """Test that only the representative atoms of residues are marked."""
        results = ShortestPathAnalyzer(k=1).run(make_data(triangle), FrameSelection.parse("all"), 0, 2)

        path = write_paths_pdb(
            temp_dir / "paths.pdb",
            results,
            chain_structure,
            ForceType.RESIDUES,
            ResiduesRenumber.DO,
            representatives=[1, 3, 5],
        )

        with PDBReader(path) as reader:
            np.testing.assert_allclose(reader.read_frame(0)["b_factors"], [0, 1, 0, 2, 0, 3])

    def test_frame_without_path_skipped(self, triangle, chain_structure, temp_dir):
        """Test that frame groups without path add no model."""
        data = make_data(triangle, Frame(1, (PairForce(0, 1, 5.0),)))
        results = ShortestPathAnalyzer(k=1).run(data, FrameSelection.parse("all"), 0, 2)

        path = write_paths_pdb(temp_dir / "paths.pdb", results, chain_structure)

        assert path.read_text().count("MODEL") == 1

    def test_node_outside_structure(self, triangle, temp_dir):
        """Test that every path node must exist in the structure."""
        small = Topology(n_atoms=2, positions=np.zeros((2, 3)))
        results = ShortestPathAnalyzer(k=1).run(make_data(triangle), FrameSelection.parse("all"), 0, 2)

        with pytest.raises(ConfigurationError, match="node 2"):
            write_paths_pdb(temp_dir / "paths.pdb", results, small)
        assert not (temp_dir / "paths.pdb").exists()

    def test_representatives_out_of_range(self, triangle, chain_structure, temp_dir):
        """Test that representative atoms must be in the structure."""
        results = ShortestPathAnalyzer(k=1).run(make_data(triangle), FrameSelection.parse("all"), 0, 2)

        with pytest.raises(ConfigurationError):
            write_paths_pdb(temp_dir / "paths.pdb", results, chain_structure, representatives=[9])
