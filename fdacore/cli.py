"""Command line front-end: ``fda shortest-path`` and ``fda view-stress``."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .analysis import (
    FrameSelection,
    InverseForce,
    LinearForce,
    ShortestPathAnalyzer,
    StressFieldRenderer,
    write_paths,
    write_paths_pdb,
)
from .exceptions import ConfigurationError, FDAError
from .io import read_pairwise_forces, read_stress
from .log import init_logging
from .settings.types import ForceType, ResiduesRenumber
from .topology import Topology, read_ndx

logger = logging.getLogger(__name__)


def cmd_shortest_path(args: argparse.Namespace) -> int:
    selection = FrameSelection.parse(args.frame)
    if args.weight == "linear":
        weight = LinearForce(args.offset)
    else:
        weight = InverseForce(args.cap)
    force_type = ForceType.RESIDUES if args.residues else ForceType.ATOMS
    renumber = ResiduesRenumber.parse(args.renumber)
    structure = Topology.from_pdb(args.structure) if args.structure else None
    representatives = None
    if args.index:
        if not args.group:
            raise ConfigurationError("-n needs --group naming the representative atoms")
        groups = read_ndx(args.index)
        if args.group not in groups:
            raise ConfigurationError(f"Group '{args.group}' not in {args.index}")
        representatives = groups[args.group]
    pdb_output = args.output is not None and Path(args.output).suffix.lower() == ".pdb"
    if pdb_output and structure is None:
        raise ConfigurationError("PDB output needs a structure (-s)")

    forces = read_pairwise_forces(args.input)
    logger.info("Read %d frame(s) of %s from %s", len(forces), forces.result_type, args.input)
    results = ShortestPathAnalyzer(args.k, weight).run(forces, selection, args.source, args.dest)

    if pdb_output:
        write_paths_pdb(args.output, results, structure, force_type, renumber, representatives)
        logger.info("Wrote path models to %s", args.output)
    elif args.output:
        write_paths(args.output, results)
        logger.info("Wrote paths to %s", args.output)
    else:
        for result in results:
            print(f"# {result.label}")
            if result.error is not None:
                print(f"no path: {result.error}")
            for rank, path in enumerate(result.paths):
                print(rank, f"{path.weight:.8e}", *path.nodes)
    return 0


def cmd_view_stress(args: argparse.Namespace) -> int:
    selection = FrameSelection.parse(args.frame)
    force_type = ForceType.RESIDUES if args.residues else ForceType.ATOMS
    renumber = ResiduesRenumber.parse(args.renumber)
    structure = Topology.from_pdb(args.structure) if args.structure else None

    residue_size = None
    if args.normalize:
        if structure is None or force_type is not ForceType.RESIDUES:
            raise ConfigurationError("--normalize needs --residues and a structure (-s)")
        residue_size = structure.residue_size(renumber)

    stress = read_stress(args.input)
    renderer = StressFieldRenderer(force_type, residue_size)
    field = renderer.run(stress, selection, structure, renumber)

    output = Path(args.output)
    if output.suffix.lower() == ".pdb":
        if structure is None:
            raise ConfigurationError("PDB output needs a structure (-s)")
        field.to_pdb(output, structure, renumber)
    else:
        field.to_xpm(output, title=f"{stress.result_type} ({selection})")
    logger.info("Wrote %d row(s) of stress to %s", field.n_rows, output)
    return 0


def make_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="fda", description="Force distribution analysis tools")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    ps = sub.add_parser("shortest-path", help="k shortest paths through the force network")
    ps.add_argument("-i", "--input", required=True, help="pairwise force file")
    ps.add_argument("-frame", "--frame", default="all", help="'N', 'average N', 'skip N' or 'all'")
    ps.add_argument("--source", type=int, required=True, help="start atom or residue")
    ps.add_argument("--dest", type=int, required=True, help="end atom or residue")
    ps.add_argument("-k", "-nk", dest="k", type=int, default=1, help="number of paths")
    ps.add_argument("-o", "--output", default=None, help="text report or .pdb models (stdout if omitted)")
    ps.add_argument(
        "--weight", choices=("inverse", "linear"), default="inverse", help="edge length policy"
    )
    ps.add_argument("--cap", type=float, default=1.0e6, help="max edge length (inverse)")
    ps.add_argument("--offset", type=float, default=1.0, help="min edge length (linear)")
    ps.add_argument("-s", "--structure", default=None, help="PDB for .pdb output")
    ps.add_argument("-n", "--index", default=None, help="index file with representative atoms")
    ps.add_argument("--group", default=None, help="index group of representative atoms, e.g. C-alpha")
    ps.add_argument("--residues", action="store_true", help="input holds residue forces")
    ps.add_argument("--renumber", default="auto", help="residue renumbering: auto, do, dont")
    ps.set_defaults(func=cmd_shortest_path)

    pv = sub.add_parser("view-stress", help="render a stress file as XPM matrix or PDB")
    pv.add_argument("-i", "--input", required=True, help="stress file")
    pv.add_argument("-frame", "--frame", default="all", help="'N', 'average N', 'skip N' or 'all'")
    pv.add_argument("-s", "--structure", default=None, help="PDB defining entity order")
    pv.add_argument("-o", "--output", default="stress.xpm", help=".xpm or .pdb output")
    pv.add_argument("--residues", action="store_true", help="input holds residue stress")
    pv.add_argument("--normalize", action="store_true", help="divide by residue size")
    pv.add_argument("--renumber", default="auto", help="residue renumbering: auto, do, dont")
    pv.set_defaults(func=cmd_view_stress)

    return p


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    parser = make_parser()
    ns = parser.parse_args(argv)
    init_logging("debug" if ns.verbose else "info")
    try:
        return ns.func(ns)
    except FDAError as e:
        logger.error("%s", e)
        return 2
    except OSError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
