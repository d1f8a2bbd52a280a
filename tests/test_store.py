"""Tests for per-pair accumulators and the distributed force store."""

import logging
from collections import Counter

import numpy as np
import pytest

from fdacore.exceptions import UnsupportedInteractionError
from fdacore.forces import DetailedForce, DistributedForces, SummedForce, vector_to_scalar
from fdacore.parallel import ParallelBackend
from fdacore.settings import FDASettings, ForceType, InteractionType, Vector2Scalar
from fdacore.topology import Topology


@pytest.fixture
def topology():
    """Four atoms in two residues."""
    return Topology(n_atoms=4, residue_numbers=np.array([0, 0, 1, 1]))


@pytest.fixture
def groups():
    """Index groups over the four atoms."""
    return {"all": np.arange(4), "A": np.array([0, 1]), "B": np.array([2, 3])}


@pytest.fixture
def make_store(topology, groups):
    """Factory for stores with custom options."""

    def make(force_type=ForceType.ATOMS, **options):
        options.setdefault("group1", "all")
        options.setdefault("group2", "all")
        if force_type is ForceType.ATOMS:
            options.setdefault("atombased", "pairwise_forces_scalar")
        else:
            options.setdefault("residuebased", "pairwise_forces_scalar")
        settings = FDASettings.build(topology, groups, **options)
        return DistributedForces(force_type, settings)

    return make


class TwoWorkerBackend(ParallelBackend):
    """Backend whose second worker holds a fixed partial store."""

    def __init__(self, other):
        self._other = other.to_arrays()
        self._other_counts = other.missing_potentials

    @property
    def name(self):
        return "two-worker"

    @property
    def n_workers(self):
        return 2

    @property
    def rank(self):
        return 0

    def gather_records(self, *columns):
        return tuple(np.concatenate([mine, theirs]) for mine, theirs in zip(columns, self._other))

    def gather_counts(self, counts):
        return Counter(counts) + Counter(self._other_counts)


class TestAccumulators:
    """Tests for the summed and detailed accumulator variants."""

    def test_summed_adds_and_unites_types(self):
        """Test that contributions of several types add into one value."""
        acc = SummedForce()
        acc.add(InteractionType.BOND, 1.5)
        acc.add(InteractionType.COULOMB, 2.0)

        assert list(acc.records()) == [(InteractionType.BOND | InteractionType.COULOMB, 3.5)]
        assert acc.total() == 3.5

    def test_detailed_keeps_slots(self):
        """Test that each interaction type keeps its own slot."""
        acc = DetailedForce()
        acc.add(InteractionType.LJ, 1.0)
        acc.add(InteractionType.BOND, 2.0)
        acc.add(InteractionType.LJ, 0.5)

        assert list(acc.records()) == [(InteractionType.BOND, 2.0), (InteractionType.LJ, 1.5)]
        assert acc.total() == 3.5

    def test_scale_vectors(self):
        """Test scaling vector values."""
        acc = DetailedForce()
        acc.add(InteractionType.BOND, np.array([2.0, 0.0, -4.0]))
        acc.scale(0.5)

        assert acc.is_vector
        np.testing.assert_allclose(acc.total(), [1.0, 0.0, -2.0])

    def test_added_vector_is_copied(self):
        """Test that accumulation never aliases the caller's array."""
        force = np.array([1.0, 0.0, 0.0])
        acc = SummedForce()
        acc.add(InteractionType.BOND, force)
        acc.add(InteractionType.BOND, force)

        np.testing.assert_allclose(force, [1.0, 0.0, 0.0])
        np.testing.assert_allclose(acc.total(), [2.0, 0.0, 0.0])


class TestAddInteraction:
    """Tests for filtering and accumulation of contributions."""

    def test_add_and_finalize(self, make_store):
        """Test a simple frame."""
        store = make_store()
        assert store.add_interaction(0, 1, "bond", 5.0)
        assert len(store) == 1

        frame = store.finalize_frame()

        assert frame.index == 0
        assert len(frame) == 1
        record = frame.pairs[0]
        assert (record.i, record.j, record.force, record.type) == (0, 1, 5.0, InteractionType.BOND)
        assert len(store) == 0
        assert store.frame_index == 1

    def test_pairs_are_normalized(self, make_store):
        """Test that (j, i) is stored as (i, j); scalars keep their value."""
        store = make_store()
        store.add_interaction(2, 0, InteractionType.COULOMB, -3.0)
        frame = store.finalize_frame()

        assert (frame.pairs[0].i, frame.pairs[0].j, frame.pairs[0].force) == (0, 2, -3.0)

    def test_swapped_vector_is_negated(self, make_store):
        """Test that the force on j due to i is minus the force on i due to j."""
        store = make_store(atombased="pairwise_forces_vector")
        store.add_interaction(1, 0, "coulomb", [1.0, 2.0, 0.0])
        frame = store.finalize_frame()

        np.testing.assert_allclose(frame.pairs[0].force, [-1.0, -2.0, 0.0])

    def test_detailed_sum_equals_summed(self, make_store):
        """Test that summing detailed slots gives the summed-mode value."""
        contributions = [
            (0, 1, "bond", 1.25),
            (1, 0, "lj", -0.5),
            (0, 1, "coulomb", 2.0),
            (2, 3, "angle", 0.75),
            (0, 1, "bond", 0.25),
        ]
        detailed = make_store(onepair="detailed")
        summed = make_store(onepair="summed")
        for i, j, itype, value in contributions:
            detailed.add_interaction(i, j, itype, value)
            summed.add_interaction(i, j, itype, value)

        detailed_frame = detailed.finalize_frame()
        summed_frame = summed.finalize_frame()

        assert len(detailed_frame) == 4
        assert len(summed_frame) == 2
        expected = summed_frame.forces()
        for pair, value in detailed_frame.forces().items():
            assert value == pytest.approx(expected[pair])
        assert detailed_frame.summed().pairs == summed_frame.pairs

    def test_threshold(self, make_store):
        """Test that forces below the threshold never reach an accumulator."""
        store = make_store(threshold=1e-3)
        assert not store.add_interaction(0, 1, "bond", 1e-4)
        assert not store.add_interaction(0, 2, "bond", [1e-4, 0.0, 0.0])

        assert len(store.finalize_frame()) == 0

    def test_group_scope(self, make_store):
        """Test that pairs within one group are dropped regardless of magnitude."""
        store = make_store(group1="A", group2="B")
        assert not store.add_interaction(0, 1, "bond", 100.0)
        assert not store.add_interaction(2, 3, "bond", 100.0)
        assert store.add_interaction(1, 2, "bond", 1.0)

        frame = store.finalize_frame()
        assert [(r.i, r.j) for r in frame] == [(1, 2)]

    def test_type_filter(self, make_store):
        """Test that only selected interaction types are kept."""
        store = make_store(type="bonded")
        assert store.add_interaction(0, 1, "angle", 1.0)
        assert not store.add_interaction(0, 1, "coulomb", 1.0)

    def test_exclusion(self, make_store):
        """Test energy group exclusions."""
        store = make_store(energy_grp_exclusion="A B")
        assert not store.add_interaction(0, 2, "lj", 1.0)
        assert not store.add_interaction(0, 2, "bond", 1.0)
        assert store.add_interaction(0, 1, "lj", 1.0)

    def test_unsupported_interaction_is_fatal(self, make_store):
        """Test that unknown types abort by default."""
        store = make_store()
        with pytest.raises(UnsupportedInteractionError, match="cmap"):
            store.add_interaction(0, 1, "cmap", 1.0)

    def test_unsupported_interaction_is_counted(self, make_store, caplog):
        """Test that unknown types are tallied when ignored."""
        store = make_store(ignore_missing_potentials="yes")
        assert not store.add_interaction(0, 1, "cmap", 1.0)
        assert not store.add_interaction(0, 1, "cmap", 1.0)
        store.add_unsupported("settle")

        assert store.missing_potentials == {"cmap": 2, "settle": 1}
        with caplog.at_level(logging.WARNING, logger="fdacore"):
            store.report_missing_potentials()
        assert "cmap (2x)" in caplog.text
        assert "settle (1x)" in caplog.text

    def test_residue_mapping(self, make_store):
        """Test that atom pairs are mapped onto residue pairs."""
        store = make_store(ForceType.RESIDUES)
        assert store.add_interaction(0, 2, "coulomb", 1.0)
        assert store.add_interaction(3, 1, "coulomb", 2.0)
        assert not store.add_interaction(0, 1, "bond", 5.0)

        frame = store.finalize_frame()
        assert frame.forces() == {(0, 1): 3.0}

    def test_mixing_scalar_and_vector(self, make_store):
        """Test that one frame holds either scalars or vectors."""
        store = make_store()
        store.add_interaction(0, 1, "bond", 1.0)
        with pytest.raises(ValueError, match="mix"):
            store.add_interaction(0, 2, "bond", [1.0, 0.0, 0.0])

    def test_bad_force_shape(self, make_store):
        """Test that forces are scalars or 3-vectors."""
        store = make_store()
        with pytest.raises(ValueError):
            store.add_interaction(0, 1, "bond", [1.0, 2.0])


class TestStoreOperations:
    """Tests for conversion, scaling and combination of stores."""

    def test_vector_to_scalar_sign(self):
        """Test the sign convention: positive is repulsive."""
        xi, xj = np.zeros(3), np.array([1.0, 0.0, 0.0])
        repulsive = np.array([-2.0, 0.0, 0.0])
        attractive = np.array([0.0, 2.0, 0.0]) + np.array([2.0, 0.0, 0.0])

        assert vector_to_scalar(repulsive, xi, xj, Vector2Scalar.NORM) == pytest.approx(2.0)
        assert vector_to_scalar(repulsive, xi, xj, Vector2Scalar.PROJECTION) == pytest.approx(2.0)
        assert vector_to_scalar(attractive, xi, xj, Vector2Scalar.NORM) == pytest.approx(-np.sqrt(8.0))
        assert vector_to_scalar(attractive, xi, xj, Vector2Scalar.PROJECTION) == pytest.approx(-2.0)

    def test_merge_vectors_to_scalar_is_idempotent(self, make_store):
        """Test that a second conversion changes nothing."""
        positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 1.0, 0.0]])
        store = make_store(vector2scalar="projection")
        store.add_interaction(0, 1, "bond", [-2.0, 0.5, 0.0])
        store.add_interaction(2, 0, "lj", [0.0, 3.0, 0.0])

        store.merge_vectors_to_scalar(positions)
        once = store.finalize_frame().forces()

        store.add_interaction(0, 1, "bond", [-2.0, 0.5, 0.0])
        store.add_interaction(2, 0, "lj", [0.0, 3.0, 0.0])
        store.merge_vectors_to_scalar(positions)
        store.merge_vectors_to_scalar(positions)
        twice = store.finalize_frame().forces()

        assert once == pytest.approx(twice)
        assert once[(0, 1)] == pytest.approx(2.0)
        # (2, 0) stored as (0, 2) with negated vector: force on 0 due to 2 is -y, repulsive
        assert once[(0, 2)] == pytest.approx(3.0)

    def test_merge_residue_vectors_uses_centres(self, make_store):
        """Test that residue forces are projected between residue centres."""
        positions = np.array([[0.0, 0.0, 0.0], [0.0, 2.0, 0.0], [4.0, 0.0, 0.0], [4.0, 2.0, 0.0]])
        store = make_store(ForceType.RESIDUES, vector2scalar="projection")
        store.add_interaction(0, 2, "coulomb", [1.0, 0.0, 0.0])

        store.merge_vectors_to_scalar(positions)
        frame = store.finalize_frame()

        assert frame.forces()[(0, 1)] == pytest.approx(-1.0)

    def test_divide_by(self, make_store):
        """Test scaling all accumulators."""
        store = make_store()
        store.add_interaction(0, 1, "bond", 5.0)
        store.divide_by(2)

        assert store.finalize_frame().forces() == {(0, 1): 2.5}
        with pytest.raises(ValueError):
            store.divide_by(0)

    def test_clear_keeps_frame_index(self, make_store):
        """Test that clearing does not advance the frame counter."""
        store = make_store()
        store.add_interaction(0, 1, "bond", 5.0)
        store.clear()

        assert len(store) == 0
        assert store.frame_index == 0

    def test_merge_is_order_independent(self, make_store):
        """Test that partial stores combine to the full result."""
        full, part_a, part_b = make_store(), make_store(), make_store()
        contributions = [(0, 1, "bond", 1.0), (1, 2, "lj", 2.0), (0, 1, "bond", 3.0), (2, 3, "lj", 4.0)]
        for n, (i, j, itype, value) in enumerate(contributions):
            full.add_interaction(i, j, itype, value)
            (part_a if n % 2 else part_b).add_interaction(i, j, itype, value)

        ab = make_store()
        ab.merge(part_a)
        ab.merge(part_b)
        ba = make_store()
        ba.merge(part_b)
        ba.merge(part_a)

        expected = full.finalize_frame().forces()
        assert ab.finalize_frame().forces() == expected
        assert ba.finalize_frame().forces() == expected

    def test_reduce_across_workers(self, make_store):
        """Test combining the partial stores of two workers."""
        local = make_store(atombased="pairwise_forces_vector")
        other = make_store(atombased="pairwise_forces_vector")
        local.add_interaction(0, 1, "bond", [1.0, 0.0, 0.0])
        other.add_interaction(0, 1, "bond", [0.0, 1.0, 0.0])
        other.add_interaction(1, 2, "lj", [0.0, 0.0, 2.0])

        local.reduce(TwoWorkerBackend(other))
        forces = local.finalize_frame().forces()

        np.testing.assert_allclose(forces[(0, 1)], [1.0, 1.0, 0.0])
        np.testing.assert_allclose(forces[(1, 2)], [0.0, 0.0, 2.0])

    def test_missing_potentials_gathered(self, make_store):
        """Test that skipped potentials of every worker are tallied."""
        local = make_store(ignore_missing_potentials="yes")
        other = make_store(ignore_missing_potentials="yes")
        local.add_unsupported("cmap")
        other.add_unsupported("cmap")
        other.add_unsupported("urey_bradley")

        local.gather_missing_potentials(TwoWorkerBackend(other))

        assert local.missing_potentials == Counter({"cmap": 2, "urey_bradley": 1})

    def test_to_arrays(self, make_store):
        """Test flattening for exchange between workers."""
        store = make_store()
        store.add_interaction(0, 1, "bond", 5.0)
        store.add_interaction(0, 1, "lj", 1.0)
        pairs, types, values, vectors = store.to_arrays()

        np.testing.assert_array_equal(pairs, [[0, 1], [0, 1]])
        np.testing.assert_array_equal(types, [1, 32])
        np.testing.assert_allclose(values[:, 0], [5.0, 1.0])
        assert not vectors.any()
