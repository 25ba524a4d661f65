"""
Public entry points of the folding engine.

Every call takes a `FoldContext` built by `build_context`. `fold` computes
the minimum free energy structure, `partition` the Boltzmann ensemble;
`sample`, `centroid` and `mea` decode structures from a prior `partition`
on the same context. All positions are 0-based and all energies are in
10 cal/mol (0.01 kcal/mol).
"""
from __future__ import annotations
import logging
import math
from typing import Dict, List, NamedTuple, Optional, Tuple, Union

import numpy as np

from rna_fold.decoding.centroid import centroid_structure
from rna_fold.decoding.ensemble import (
    ensemble_diversity as _diversity,
    ensemble_symbol_string,
    pair_list,
    structure_frequency,
    unpaired_probabilities as _unpaired_probabilities,
)
from rna_fold.decoding.mea import mea_structure
from rna_fold.energies.energy_types import Energy
from rna_fold.energies.structure_eval import detect_motifs as _detect_motifs, evaluate_structure
from rna_fold.errors import DecodeWithoutEnsemble, InfeasibleConstraints
from rna_fold.folding.context import EnsembleData, FoldContext
from rna_fold.folding.mccaskill import McCaskillConfig, McCaskillEngine, sample_structures
from rna_fold.folding.zucker import ZuckerFoldingConfig, ZuckerFoldingEngine, make_fold_state, traceback_mfe
from rna_fold.rules.motifs import MotifHit
from rna_fold.structures.pairing import Structure, as_structure

logger = logging.getLogger(__name__)

PairKey = Tuple[int, int]


class MfeResult(NamedTuple):
    structure: Structure
    energy: int


class EnsembleResult(NamedTuple):
    ensemble_energy: float
    probabilities: Dict[PairKey, float]


class CentroidResult(NamedTuple):
    structure: Structure
    distance: float


class MeaResult(NamedTuple):
    structure: Structure
    score: float


# ---------- MFE ----------

def fold(ctx: FoldContext) -> MfeResult:
    """
    Minimum free energy structure of the context's sequence.

    Repeated calls on one context return the stored result.

    Returns
    -------
    MfeResult
        The structure and its free energy as an integer in 10 cal/mol
        (0.01 kcal/mol); -120 is -1.20 kcal/mol.

    Raises
    ------
    InfeasibleConstraints
        If no structure satisfies the hard constraints.
    FoldAborted
        If the context's abort check fires; nothing is stored.
    """
    if ctx.mfe_structure is not None and ctx.mfe_energy is not None:
        return MfeResult(ctx.mfe_structure, ctx.mfe_energy)

    model = ctx.energy_model
    state = make_fold_state(ctx.length, no_lonely_pairs=ctx.details.no_lonely_pairs)
    engine = ZuckerFoldingEngine(
        energy_model=model,
        config=ZuckerFoldingConfig(verbose=False, abort_check=ctx.abort_check),
    )
    energy = engine.fill_all_matrices(state)
    if math.isinf(energy):
        raise InfeasibleConstraints("The constraints admit no secondary structure for this sequence.")

    structure = traceback_mfe(state, circular=model.circular)
    ctx.mfe_state = state
    ctx.mfe_energy = int(energy)
    ctx.mfe_structure = structure
    logger.info(f"MFE {structure.to_dotbracket()} ({ctx.mfe_energy / 100:.2f} kcal/mol)")
    return MfeResult(structure, ctx.mfe_energy)


def evaluate(ctx: FoldContext, structure: Union[Structure, str]) -> Energy:
    """
    Free energy of any structure under the context's model and constraints.

    Does not touch the DP matrices, so it keeps working after
    `release_matrices`. Returns ``math.inf`` for structures the model or the
    hard constraints forbid.

    Returns
    -------
    Energy
        Integer free energy in 10 cal/mol (0.01 kcal/mol), or ``math.inf``.

    Raises
    ------
    InvalidStructure
        If the structure is malformed or does not match the sequence length.
    """
    energy = evaluate_structure(ctx.energy_model, as_structure(structure, ctx.length))
    return energy if math.isinf(energy) else int(energy)


def detect_motifs(ctx: FoldContext, structure: Union[Structure, str]) -> List[MotifHit]:
    """Ligand motifs of the context's constraints that `structure` forms."""
    return _detect_motifs(ctx.energy_model, as_structure(structure, ctx.length), ctx.constraints.motifs)


# ---------- partition function ----------

def partition(ctx: FoldContext, reference_energy: Optional[float] = None) -> EnsembleResult:
    """
    Ensemble free energy and base-pair probabilities.

    Parameters
    ----------
    ctx : FoldContext
        Folding context.
    reference_energy : float, optional
        Energy (10 cal/mol) used to pick the Boltzmann-weight scale when the
        model has no explicit `pf_scale`. Defaults to the MFE, computed on
        demand.

    Returns
    -------
    EnsembleResult
        ``-kT ln Z`` in 10 cal/mol and the sparse pair probabilities.

    Raises
    ------
    NumericInstability
        If the weights over- or underflow even after rescaling.
    InfeasibleConstraints
        If no structure satisfies the hard constraints.
    """
    details = ctx.details
    kt = ctx.kt
    n = ctx.length

    # Without hard constraints the open chain is always admissible; with them,
    # an empty ensemble is reported the way `fold` reports it.
    if ctx.mfe_energy is None and ctx.constraints.has_hard_constraints:
        fold(ctx)

    if details.pf_scale is not None:
        pf_scale = details.pf_scale
    else:
        reference = reference_energy
        if reference is None:
            reference = ctx.mfe_energy if ctx.mfe_energy is not None else fold(ctx).energy
        pf_scale = math.exp(-(details.sfact * reference) / kt / n)
    logger.debug(f"Partition function scale {pf_scale:.6g} per nucleotide")

    engine = McCaskillEngine(
        energy_model=ctx.pf_energy_model,
        config=McCaskillConfig(verbose=False, abort_check=ctx.abort_check),
        kt=kt,
    )
    state = engine.run_inside(pf_scale)
    quad_probabilities = engine.fill_outside(state)
    probabilities = engine.pair_probabilities(state)

    log_z = state.log_z
    ensemble_energy = -kt * log_z
    ctx.ensemble = EnsembleData(
        ensemble_energy=ensemble_energy,
        log_z=log_z,
        pf_scale=state.pf_scale,
        probabilities=probabilities,
        stack_probabilities=engine.stack_probabilities(state),
        quad_probabilities=quad_probabilities,
        state=state,
    )
    logger.info(f"Ensemble free energy {ensemble_energy / 100:.2f} kcal/mol")
    return EnsembleResult(ensemble_energy, probabilities)


def _require_ensemble(ctx: FoldContext, what: str) -> EnsembleData:
    if not ctx.has_ensemble:
        raise DecodeWithoutEnsemble(f"{what} needs a successful partition() on this context first.")
    return ctx.ensemble


# ---------- decoders ----------

def sample(ctx: FoldContext, rng: Optional[np.random.Generator] = None) -> Structure:
    """
    Draw one structure from the Boltzmann ensemble.

    Parameters
    ----------
    ctx : FoldContext
        Context with a completed `partition`.
    rng : np.random.Generator, optional
        Source of randomness; a freshly seeded generator when omitted.

    Raises
    ------
    DecodeWithoutEnsemble
        Without a prior `partition`, or after `release_matrices`.
    """
    return samples(ctx, 1, rng)[0]


def samples(ctx: FoldContext, count: int, rng: Optional[np.random.Generator] = None) -> List[Structure]:
    """Draw `count` independent structures from the Boltzmann ensemble."""
    ensemble = _require_ensemble(ctx, "Sampling")
    if ensemble.state is None:
        raise DecodeWithoutEnsemble("Sampling needs the partition function tables, which were released.")
    generator = rng if rng is not None else np.random.default_rng()
    return sample_structures(ctx.pf_energy_model, ensemble.state, count, generator)


def centroid(ctx: FoldContext) -> CentroidResult:
    """Centroid structure and its expected base-pair distance to the ensemble."""
    ensemble = _require_ensemble(ctx, "Centroid decoding")
    structure, distance = centroid_structure(ensemble.probabilities, ctx.length)
    return CentroidResult(structure, distance)


def mea(ctx: FoldContext, gamma: float = 1.0) -> MeaResult:
    """Maximum expected accuracy structure for the trade-off `gamma`."""
    ensemble = _require_ensemble(ctx, "MEA decoding")
    structure, score = mea_structure(ensemble.probabilities, unpaired_probabilities(ctx), gamma)
    return MeaResult(structure, score)


# ---------- ensemble summaries ----------

def unpaired_probabilities(ctx: FoldContext) -> np.ndarray:
    """Per-position probability of being unpaired."""
    ensemble = _require_ensemble(ctx, "Unpaired probabilities")
    return _unpaired_probabilities(ensemble.probabilities, ctx.length, ensemble.quad_probabilities)


def pair_probability_list(ctx: FoldContext, cutoff: float = 1e-5) -> List[Tuple[int, int, float]]:
    """Pairs with probability at or above `cutoff` as ``(i, j, p)``."""
    return pair_list(_require_ensemble(ctx, "Pair lists").probabilities, cutoff)


def stack_probability_list(ctx: FoldContext, cutoff: float = 1e-5) -> List[Tuple[int, int, float]]:
    """Stacked pairs ``(i, j)`` on ``(i+1, j-1)`` with probability at or above `cutoff`."""
    return pair_list(_require_ensemble(ctx, "Stack probabilities").stack_probabilities, cutoff)


def ensemble_structure(ctx: FoldContext) -> str:
    """Ensemble summarized as a string of the symbols ``. , | { } ( )``."""
    ensemble = _require_ensemble(ctx, "Ensemble structure")
    return ensemble_symbol_string(ensemble.probabilities, ctx.length, ensemble.quad_probabilities)


def ensemble_diversity(ctx: FoldContext) -> float:
    """Mean base-pair distance between structures of the ensemble."""
    return _diversity(_require_ensemble(ctx, "Ensemble diversity").probabilities)


def mfe_frequency(ctx: FoldContext) -> float:
    """
    Probability of the MFE structure in the ensemble.

    The structure is re-scored with the partition function's dangle model so
    the weight matches the ensemble it is compared against.
    """
    ensemble = _require_ensemble(ctx, "MFE frequency")
    structure = fold(ctx).structure
    energy = evaluate_structure(ctx.pf_energy_model, structure)
    return structure_frequency(energy, ensemble.log_z, ctx.kt)
