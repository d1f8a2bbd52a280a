"""Tests for stress derived from pairwise forces."""

import numpy as np
import pytest

from fdacore.forces import Frame, PairForce, normalize_by_size, punctual_stress, virial_stress, von_mises
from fdacore.forces.stress import VIRIAL_COMPONENTS


@pytest.fixture
def scalar_frame():
    """Pairs (0,1) with 5 and (1,2) with -3."""
    return Frame(0, (PairForce(0, 1, 5.0), PairForce(1, 2, -3.0)))


class TestPunctualStress:
    """Tests for punctual stress."""

    def test_sum_of_magnitudes(self, scalar_frame):
        """Test that every entity sums |F| over its pairs."""
        stress = punctual_stress(scalar_frame, 3)

        np.testing.assert_allclose(stress, [5.0, 8.0, 3.0])

    def test_vector_forces(self):
        """Test that vectors contribute their norm."""
        frame = Frame(0, (PairForce(0, 2, np.array([3.0, 4.0, 0.0])),))

        np.testing.assert_allclose(punctual_stress(frame, 3), [5.0, 0.0, 5.0])

    def test_detailed_records_summed_first(self):
        """Test that detailed records of a pair are summed before |.|."""
        frame = Frame(0, (PairForce(0, 1, 2.0), PairForce(0, 1, -3.0)))

        np.testing.assert_allclose(punctual_stress(frame, 2), [1.0, 1.0])

    def test_out_of_scope_entities_zero(self, scalar_frame):
        """Test that entities outside the pf table get zero."""
        stress = punctual_stress(scalar_frame, 3, sys2pf={0: 0, 1: 1})

        np.testing.assert_allclose(stress, [5.0, 8.0, 0.0])

    def test_normalize_by_size(self):
        """Test division by atoms per residue, empty residues stay zero."""
        stress = np.array([4.0, 6.0, 1.0])

        np.testing.assert_allclose(normalize_by_size(stress, [2, 3, 0]), [2.0, 2.0, 0.0])


class TestVirialStress:
    """Tests for per-atom virial stress."""

    def test_single_pair(self):
        """Test that both atoms receive the same symmetric tensor."""
        positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
        frame = Frame(0, (PairForce(0, 1, np.array([-1.0, 0.0, 0.0])),))

        stress = virial_stress(frame, positions)

        assert stress.shape == (2, len(VIRIAL_COMPONENTS))
        np.testing.assert_allclose(stress[0], [0.5, 0, 0, 0, 0, 0])
        np.testing.assert_allclose(stress[1], stress[0])

    def test_off_diagonal_symmetrised(self):
        """Test that xy collects both r_x f_y and r_y f_x."""
        positions = np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0]])
        frame = Frame(0, (PairForce(0, 1, np.array([0.0, 1.0, 0.0])),))

        stress = virial_stress(frame, positions)

        np.testing.assert_allclose(stress[0], [0, 0, 0, -0.5, 0, 0])

    def test_scalar_forces_rejected(self, scalar_frame):
        """Test that virial stress needs vectors."""
        with pytest.raises(ValueError, match="vectors"):
            virial_stress(scalar_frame, np.zeros((3, 3)))

    def test_von_mises(self):
        """Test the equivalent stress of simple tensors."""
        virial = np.array(
            [
                [0.5, 0.0, 0.0, 0.0, 0.0, 0.0],
                [1.0, 1.0, 1.0, 0.0, 0.0, 0.0],
                [0.0, 0.0, 0.0, 1.0, 0.0, 0.0],
            ]
        )

        np.testing.assert_allclose(von_mises(virial), [0.5, 0.0, np.sqrt(3.0)])
