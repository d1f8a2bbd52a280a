#!/usr/bin/env python
"""
Quick start example - force distribution analysis of a toy chain.

A chain of atoms held together by harmonic bonds and a Lennard-Jones
interaction between second neighbours is perturbed over a few steps. Every
pairwise force is reported to ForceDistribution, which writes pairwise
forces and punctual stress. The k shortest paths from the first to the
last atom are printed afterwards.

Usage:
    python examples/quickstart.py
"""

import numpy as np

from fdacore import FDASettings, ForceDistribution, FrameSelection, ShortestPathAnalyzer, Topology
from fdacore import init_logging, read_pairwise_forces, read_stress

N_ATOMS = 6
K_BOND = 100.0
R0 = 1.0
EPSILON = 0.5
SIGMA = 1.5


def bond_force(xi, xj):
    """Harmonic bond force on i due to j."""
    rij = xj - xi
    r = np.linalg.norm(rij)
    return K_BOND * (r - R0) * rij / r


def lj_force(xi, xj):
    """Lennard-Jones force on i due to j."""
    rji = xi - xj
    r = np.linalg.norm(rji)
    dudr = 4.0 * EPSILON * (-12.0 * SIGMA**12 / r**13 + 6.0 * SIGMA**6 / r**7)
    return -dudr * rji / r


def main():
    init_logging("info")
    print("=" * 60)
    print("Force Distribution Quick Start")
    print("=" * 60)

    rng = np.random.default_rng(42)
    reference = np.column_stack([np.arange(N_ATOMS, dtype=float), np.zeros(N_ATOMS), np.zeros(N_ATOMS)])
    topology = Topology(n_atoms=N_ATOMS, residue_numbers=np.arange(N_ATOMS) // 2)
    groups = {"chain": np.arange(N_ATOMS)}

    # 1. Pairwise forces, projected onto the pair direction
    settings = FDASettings.build(
        topology,
        groups,
        group1="chain",
        group2="chain",
        atombased="pairwise_forces_scalar",
        residuebased="punctual_stress",
        vector2scalar="projection",
        time_averages_period=5,
    )

    with ForceDistribution(settings, atom_path="chain.pfa", residue_path="chain.psr") as fda:
        for _step in range(20):
            x = reference + rng.normal(scale=0.05, size=reference.shape)
            for i in range(N_ATOMS - 1):
                fda.add_interaction(i, i + 1, "bond", bond_force(x[i], x[i + 1]))
            for i in range(N_ATOMS - 2):
                fda.add_interaction(i, i + 2, "lj", lj_force(x[i], x[i + 2]))
            fda.finalize_step(x)

    # 2. Paths along which force is transmitted
    forces = read_pairwise_forces("chain.pfa")
    print(f"\nRead {len(forces)} averaged frames")
    results = ShortestPathAnalyzer(k=3).run(forces, FrameSelection.parse("all"), 0, N_ATOMS - 1)
    for result in results:
        print(f"\n{result.label}:")
        for rank, path in enumerate(result.paths):
            print(f"   {rank}: {' -> '.join(map(str, path.nodes))}  (weight {path.weight:.4f})")

    # 3. Residue stress
    stress = read_stress("chain.psr")
    print("\nMean residue punctual stress:")
    for residue, value in enumerate(stress.values.mean(axis=0)):
        print(f"   residue {residue}: {value:.3f}")


if __name__ == "__main__":
    main()
