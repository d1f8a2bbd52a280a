#!/usr/bin/env python
"""
Stress field analysis of an existing punctual stress file.

This example demonstrates:
- Rendering all frames of a stress file as stress field
- Writing the field as XPM matrix and as PDB with stress as B-factor
- Plotting the field with the built-in plotting helpers

Usage:
    python examples/run_analysis.py fda.psa conf.pdb
"""

import sys

import matplotlib

matplotlib.use("Agg")  # Non-interactive backend

from fdacore import FrameSelection, StressFieldRenderer, Topology, read_stress
from fdacore import plotting


def main(stress_file, structure_file=None):
    stress = read_stress(stress_file)
    print(f"{stress_file}: {stress.n_frames} frames of {stress.result_type} over {stress.n_entities} entities")

    structure = Topology.from_pdb(structure_file) if structure_file else None
    field = StressFieldRenderer().run(stress, FrameSelection.parse("all"), structure)

    field.to_xpm("stress.xpm", title="Punctual stress")
    print("Matrix saved to stress.xpm")
    if structure is not None:
        average = StressFieldRenderer().run(stress, FrameSelection.parse(f"average {stress.n_frames}"), structure)
        average.to_pdb("stress.pdb", structure)
        print("Averaged stress saved to stress.pdb")

    plotting.stress_field(field, show=False)
    plotting.save("stress.png")
    print("Plot saved to stress.png")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    main(*sys.argv[1:3])
