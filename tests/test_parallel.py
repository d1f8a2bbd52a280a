"""Tests for parallel backends."""

from collections import Counter

import numpy as np
import pytest

from fdacore.parallel import ParallelBackend, SerialBackend, get_backend


class TestSerialBackend:
    """Tests for serial backend."""

    def test_serial_backend_properties(self):
        """Test serial backend basic properties."""
        backend = SerialBackend()

        assert backend.name == "serial"
        assert backend.n_workers == 1
        assert backend.rank == 0
        assert backend.is_root

    def test_gather_returns_local_columns(self):
        """Test that a single worker already holds all records."""
        pairs = np.array([[0, 1], [1, 2]])
        values = np.array([[1.0, 0.0, 0.0], [2.0, 0.0, 0.0]])

        gathered = SerialBackend().gather_records(pairs, values)

        assert len(gathered) == 2
        np.testing.assert_array_equal(gathered[0], pairs)
        np.testing.assert_array_equal(gathered[1], values)

    def test_gather_counts_copies(self):
        """Test that the serial tally is the local one, as new counter."""
        counts = Counter({"cmap": 2})

        total = SerialBackend().gather_counts(counts)

        assert total == counts
        assert total is not counts


class TestDispatcher:
    """Tests for backend selection."""

    def test_get_backend_default(self):
        """Test getting default backend."""
        assert isinstance(get_backend(), SerialBackend)

    def test_get_backend_by_name(self):
        """Test creating backend by name."""
        assert isinstance(get_backend("serial"), SerialBackend)

    def test_get_backend_instance(self):
        """Test passing backend instance directly."""
        my_backend = SerialBackend()

        assert get_backend(my_backend) is my_backend

    def test_unknown_backend_raises(self):
        """Test that unknown backend name raises."""
        with pytest.raises(ValueError, match="Unknown backend"):
            get_backend("openmp")

    def test_is_root_follows_rank(self):
        """Test that only rank 0 is root."""

        class Rank(SerialBackend):
            def __init__(self, rank):
                self._rank = rank

            @property
            def rank(self):
                return self._rank

        assert Rank(0).is_root
        assert not Rank(3).is_root
        assert isinstance(Rank(1), ParallelBackend)


class FakeComm:
    """Communicator of two ranks where rank 1 sends fixed data."""

    def __init__(self, other):
        self.other = other

    def Get_rank(self):
        return 0

    def Get_size(self):
        return 2

    def allgather(self, data):
        return [data, self.other]


class TestMPI4PyBackend:
    """Tests for the MPI backend against a fake communicator."""

    @pytest.fixture(autouse=True)
    def _require_mpi4py(self):
        pytest.importorskip("mpi4py.MPI")

    def test_properties(self):
        """Test rank and size from the communicator."""
        from fdacore.parallel.backends.mpi4py_backend import MPI4PyBackend

        backend = MPI4PyBackend(FakeComm(()))

        assert backend.name == "mpi4py"
        assert backend.n_workers == 2
        assert backend.is_root

    def test_gather_joins_columns_in_rank_order(self):
        """Test that ranks with different row counts are joined per column."""
        from fdacore.parallel.backends.mpi4py_backend import MPI4PyBackend

        other_pairs = np.array([[2, 3], [4, 5]])
        other_types = np.array([1, 2])
        backend = MPI4PyBackend(FakeComm((other_pairs, other_types)))

        pairs, types = backend.gather_records(np.array([[0, 1]]), np.array([4]))

        np.testing.assert_array_equal(pairs, [[0, 1], [2, 3], [4, 5]])
        np.testing.assert_array_equal(types, [4, 1, 2])

    def test_gather_with_empty_local_store(self):
        """Test that a rank without interactions contributes no rows."""
        from fdacore.parallel.backends.mpi4py_backend import MPI4PyBackend

        backend = MPI4PyBackend(FakeComm((np.array([[2, 3]]),)))

        (pairs,) = backend.gather_records(np.zeros((0, 2), dtype=np.int64))

        np.testing.assert_array_equal(pairs, [[2, 3]])

    def test_gather_counts_sums_ranks(self):
        """Test that tallies of all ranks are added up."""
        from fdacore.parallel.backends.mpi4py_backend import MPI4PyBackend

        backend = MPI4PyBackend(FakeComm({"cmap": 2}))

        total = backend.gather_counts(Counter({"cmap": 1, "settle": 1}))

        assert total == Counter({"cmap": 3, "settle": 1})
