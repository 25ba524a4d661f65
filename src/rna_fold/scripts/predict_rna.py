#!/usr/bin/env python3
"""
Predict RNA secondary structure and ensemble properties from the command line.

The script folds one sequence into its minimum free energy structure and, on
request, computes the partition function, base-pair probabilities, centroid
and MEA structures and stochastic samples.

Examples:
  - python predict_rna.py "GGGAAACCCAAAGGGUUUCCC"
  - python predict_rna.py -p --MEA --json "GGGGAAAACCCCAUCGGGGAAAACCCC"
  - python predict_rna.py -d0 --noLP -T 25 -C "((((....))))" "GGGGAAAACCCC"
  - python predict_rna.py -vv -p --samples 10 --seed 7 "ACGU..."

"""

# --- Standard Library Imports ---
from __future__ import annotations
import argparse
import json
import logging
import math
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

# --- Third-Party Imports ---
import numpy as np

# --- Local Application Imports ---
from rna_fold import api
from rna_fold.energies.energy_types import ModelDetails
from rna_fold.errors import FoldingError, InvalidModel, InvalidSequence
from rna_fold.folding.context import FoldContext, build_context
from rna_fold.rules.constraint_mask import ConstraintMask
from rna_fold.rules.motifs import LigandMotif
from rna_fold.utils.logging_utils import PACKAGE_LOGGER, setup_logger, timestamped_log_path

# Set up module logger
logger = logging.getLogger(__name__)


# --------------------------
# Logging Configuration
# --------------------------
def setup_cli_logging(verbose_level: int, log_file: Optional[str] = None) -> None:
    """
    Configures logging for the application based on command-line arguments.

    Parameters
    ----------
    verbose_level : int
        The verbosity level: 0 for WARNING, 1 for INFO, 2 for DEBUG.
    log_file : Optional[str]
        The path to a specific log file. If not provided, a default timestamped
        log file is created in the `var/log/` directory when verbosity is > 1.
    """
    level_map = {
        0: logging.WARNING,
        1: logging.INFO,
        2: logging.DEBUG,
    }
    log_level = level_map.get(verbose_level, logging.DEBUG)

    log_path = Path(log_file) if log_file is not None else None
    if log_path is None and verbose_level > 1:
        log_path = timestamped_log_path()

    setup_logger(log_level, log_file=log_path)
    # Run as a plain script this module logs under __main__, outside the package logger.
    if not __name__.startswith(f"{PACKAGE_LOGGER}."):
        setup_logger(log_level, log_file=log_path, name=__name__)

    if log_path is not None:
        logger.info(f"Logs will be saved to: {log_path.resolve()}")


# --------------------------
# Helpers
# --------------------------
def read_shape_file(path: str, seq_len: int) -> List[Optional[float]]:
    """
    Reads SHAPE reactivities from a whitespace-separated file.

    Each non-empty line holds a 1-based position, optionally a nucleotide,
    and the reactivity as its last column. Positions missing from the file
    carry no data.

    Parameters
    ----------
    path : str
        Path to the reactivity file.
    seq_len : int
        Length of the folded sequence.

    Returns
    -------
    List[Optional[float]]
        One reactivity per 0-based position, ``None`` where there is no data.

    Raises
    ------
    InvalidModel
        If a line cannot be parsed or names a position outside the sequence.
    """
    reactivities: List[Optional[float]] = [None] * seq_len
    with open(path, "r", encoding="utf-8") as handle:
        for line_no, line in enumerate(handle, start=1):
            fields = line.split()
            if not fields or fields[0].startswith("#"):
                continue
            try:
                position = int(fields[0])
                value = float(fields[-1]) if len(fields) > 1 else None
            except ValueError as exc:
                raise InvalidModel(f"{path}:{line_no}: cannot parse SHAPE line {line.strip()!r}") from exc
            if not 1 <= position <= seq_len:
                raise InvalidModel(f"{path}:{line_no}: position {position} is outside the sequence.")
            reactivities[position - 1] = value
    logger.debug(f"Read {sum(v is not None for v in reactivities)} SHAPE reactivities from {path}")
    return reactivities


def build_cli_context(cli_args: argparse.Namespace) -> FoldContext:
    """
    Translates the parsed arguments into a folding context.

    Raises
    ------
    InvalidSequence, InvalidModel
        If the sequence, model options or constraints are invalid.
    """
    details = ModelDetails(
        temperature=cli_args.temperature,
        dangles=cli_args.dangles,
        no_lonely_pairs=cli_args.noLP,
        gquad=cli_args.gquad,
        circular=cli_args.circ,
        no_gu_pairs=cli_args.noGU,
        special_hairpins=not cli_args.noTetra,
        max_loop=cli_args.maxBPspan_loop,
        pf_scale=cli_args.pf_scale,
    )

    constraints = ConstraintMask.empty()
    if cli_args.constraint:
        if len(cli_args.constraint) != len(cli_args.sequence.strip()):
            raise InvalidModel("The constraint string must have the same length as the sequence.")
        constraints = ConstraintMask.from_dotbracket(cli_args.constraint)
    if cli_args.shape:
        constraints = constraints.with_shape(
            read_shape_file(cli_args.shape, len(cli_args.sequence.strip())),
            slope=cli_args.shape_slope,
            intercept=cli_args.shape_intercept,
        )
    for motif_text in cli_args.motif or []:
        constraints = constraints.with_motif(LigandMotif.from_string(motif_text))

    logger.info(f"Model: {details}")
    return build_context(cli_args.sequence, details, constraints, parameter_file=cli_args.yaml,
                         canonical_only=cli_args.canonical_bp_only)


def kcal(energy: float) -> float:
    """Converts an energy in 10 cal/mol into kcal/mol."""
    return energy / 100.0


def run_prediction(ctx: FoldContext, cli_args: argparse.Namespace) -> Dict[str, Any]:
    """
    Runs the requested computations and collects their results.

    Returns
    -------
    Dict[str, Any]
        Results keyed by name, energies in kcal/mol.
    """
    start_time = time.perf_counter()
    result: Dict[str, Any] = {"sequence": ctx.sequence}

    mfe = api.fold(ctx)
    result["mfe"] = {"structure": mfe.structure.to_dotbracket(), "energy": kcal(mfe.energy)}

    if cli_args.partfunc or cli_args.MEA is not None or cli_args.samples:
        ensemble = api.partition(ctx)
        result["ensemble"] = {
            "structure": api.ensemble_structure(ctx),
            "energy": kcal(ensemble.ensemble_energy),
            "mfe_frequency": api.mfe_frequency(ctx),
            "diversity": api.ensemble_diversity(ctx),
        }

        centroid = api.centroid(ctx)
        result["centroid"] = {
            "structure": centroid.structure.to_dotbracket(),
            "energy": kcal(api.evaluate(ctx, centroid.structure)),
            "distance": centroid.distance,
        }

        if cli_args.MEA is not None:
            mea = api.mea(ctx, gamma=cli_args.MEA)
            result["mea"] = {
                "structure": mea.structure.to_dotbracket(),
                "energy": kcal(api.evaluate(ctx, mea.structure)),
                "score": mea.score,
                "gamma": cli_args.MEA,
            }

        if cli_args.samples:
            rng = np.random.default_rng(cli_args.seed)
            result["samples"] = [s.to_dotbracket() for s in api.samples(ctx, cli_args.samples, rng)]

        if cli_args.bpp:
            result["pairs"] = [[i + 1, j + 1, p] for i, j, p in api.pair_probability_list(ctx, cli_args.bpp_cutoff)]

    elapsed = time.perf_counter() - start_time
    logger.info(f"Prediction completed in {elapsed:.2f}s")
    return result


def format_text(result: Dict[str, Any]) -> str:
    """Renders results in RNAfold's text layout."""
    lines = [result["sequence"], f"{result['mfe']['structure']} ({result['mfe']['energy']:6.2f})"]
    ensemble = result.get("ensemble")
    if ensemble is not None:
        lines.append(f"{ensemble['structure']} [{ensemble['energy']:6.2f}]")
        centroid = result["centroid"]
        lines.append(f"{centroid['structure']} {{{_energy_text(centroid['energy'])} d={centroid['distance']:.2f}}}")
        if "mea" in result:
            mea = result["mea"]
            lines.append(f"{mea['structure']} {{{_energy_text(mea['energy'])} MEA={mea['score']:.2f}}}")
        lines.append(f" frequency of mfe structure in ensemble {ensemble['mfe_frequency']:g}; "
                     f"ensemble diversity {ensemble['diversity']:-6.2f}")
    for structure in result.get("samples", []):
        lines.append(structure)
    for i, j, p in result.get("pairs", []):
        lines.append(f"{i} {j} {p:.6f}")
    return "\n".join(lines)


def _energy_text(energy: float) -> str:
    return f"{energy:6.2f}" if math.isfinite(energy) else "   inf"


# --------------------------
# Command-Line Interface
# --------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Predict RNA secondary structure, ΔG and ensemble properties.")
    parser.add_argument("sequence", help="RNA sequence (A,C,G,U,N; T will be converted to U)")
    parser.add_argument("--yaml", default=None,
                        help="Path to parameter YAML (defaults to package data).")
    parser.add_argument("-T", "--temp", dest="temperature", type=float, default=37.0,
                        help="Temperature in °C (default: 37.0).")
    parser.add_argument("--json", action="store_true",
                        help="Emit JSON instead of human-readable text.")

    # Model arguments
    parser.add_argument("-d", "--dangles", type=int, choices=[0, 1, 2, 3], default=2,
                        help="Dangling end model (default: 2).")
    parser.add_argument("--noLP", action="store_true",
                        help="Disallow lonely (helix of length 1) pairs.")
    parser.add_argument("--noGU", action="store_true",
                        help="Disallow GU wobble pairs.")
    parser.add_argument("--noTetra", action="store_true",
                        help="Ignore the special hairpin loop table.")
    parser.add_argument("-g", "--gquad", action="store_true",
                        help="Allow G-quadruplexes.")
    parser.add_argument("-c", "--circ", action="store_true",
                        help="Fold a circular molecule.")
    parser.add_argument("--maxloop", dest="maxBPspan_loop", type=int, default=30,
                        help="Maximum interior loop size (default: 30).")

    # Constraint arguments
    parser.add_argument("-C", "--constraint", default=None,
                        help="Hard constraint string using . x | < > ( ).")
    parser.add_argument("--canonicalBPonly", dest="canonical_bp_only", action="store_true",
                        help="Drop non-canonical pairs from the constraint instead of failing.")
    parser.add_argument("--shape", default=None,
                        help="SHAPE reactivity file (position [nucleotide] reactivity).")
    parser.add_argument("--shapeSlope", dest="shape_slope", type=float, default=1.8,
                        help="Deigan slope in kcal/mol (default: 1.8).")
    parser.add_argument("--shapeIntercept", dest="shape_intercept", type=float, default=-0.6,
                        help="Deigan intercept in kcal/mol (default: -0.6).")
    parser.add_argument("--motif", action="append", default=None,
                        help="Ligand motif 'SEQUENCE,STRUCTURE,ENERGY'; may be repeated.")

    # Ensemble arguments
    parser.add_argument("-p", "--partfunc", action="store_true",
                        help="Compute the partition function, centroid and ensemble summary.")
    parser.add_argument("--MEA", nargs="?", type=float, const=1.0, default=None,
                        help="Compute the MEA structure with the given gamma (default: 1.0).")
    parser.add_argument("--pfScale", dest="pf_scale", type=float, default=None,
                        help="Fixed per-nucleotide Boltzmann weight scale.")
    parser.add_argument("--samples", type=int, default=0,
                        help="Number of stochastic samples to draw.")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed for stochastic sampling.")
    parser.add_argument("--bpp", action="store_true",
                        help="List base-pair probabilities (1-based).")
    parser.add_argument("--bpp-cutoff", dest="bpp_cutoff", type=float, default=1e-5,
                        help="Smallest probability listed by --bpp (default: 1e-5).")

    # Logging arguments
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase verbosity (-v=INFO, -vv=DEBUG)")
    parser.add_argument("--log-file", default=None,
                        help="Path to log file (default: var/log/<module>_TIMESTAMP.log with -vv)")
    parser.add_argument("--quiet", action="store_true",
                        help="Suppress all output except final result")
    return parser


def main(argv=None) -> int:
    """
    Parses command-line arguments and orchestrates the folding run.
    """
    cli_args = build_parser().parse_args(argv)

    verbose_level = 0 if cli_args.quiet else cli_args.verbose
    setup_cli_logging(verbose_level, cli_args.log_file)

    logger.info("=" * 60)
    logger.info("RNA Structure Prediction CLI")
    logger.info("=" * 60)

    if cli_args.samples < 0:
        print("Error: --samples must be non-negative.", file=sys.stderr)
        return 2

    try:
        ctx = build_cli_context(cli_args)
    except (InvalidSequence, InvalidModel) as e:
        logger.error(f"Input validation failed: {e}")
        if not cli_args.json:
            print(f"Error: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        logger.error(f"Failed to read input file: {e}", exc_info=True)
        if not cli_args.json:
            print(f"Failed to read input file: {e}", file=sys.stderr)
        return 2

    try:
        result = run_prediction(ctx, cli_args)
    except FoldingError as e:
        logger.error(f"Prediction failed: {e}", exc_info=True)
        if not cli_args.json:
            print(f"Prediction failed: {e}", file=sys.stderr)
        return 1

    logger.info("=" * 60)
    logger.info("Prediction successful")
    logger.info("=" * 60)

    if cli_args.json:
        print(json.dumps(result, indent=2))
    else:
        print(format_text(result))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
