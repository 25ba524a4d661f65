"""
Thermodynamic RNA secondary structure prediction.

Build a context once per sequence, then fold it::

    from rna_fold import build_context, fold, partition, centroid

    ctx = build_context("GGGGAAAACCCC")
    mfe = fold(ctx)
    partition(ctx)
    print(mfe.structure, mfe.energy / 100, centroid(ctx).structure)
"""
from rna_fold.api import (
    CentroidResult,
    EnsembleResult,
    MeaResult,
    MfeResult,
    centroid,
    detect_motifs,
    ensemble_diversity,
    ensemble_structure,
    evaluate,
    fold,
    mea,
    mfe_frequency,
    pair_probability_list,
    partition,
    sample,
    samples,
    stack_probability_list,
    unpaired_probabilities,
)
from rna_fold.energies.energy_types import ModelDetails
from rna_fold.errors import (
    DecodeWithoutEnsemble,
    FoldAborted,
    FoldingError,
    InfeasibleConstraints,
    InvalidModel,
    InvalidSequence,
    InvalidStructure,
    NumericInstability,
)
from rna_fold.folding.context import FoldContext, build_context, release_matrices
from rna_fold.rules.constraint_mask import ConstraintMask
from rna_fold.rules.motifs import LigandMotif
from rna_fold.structures.pairing import Structure

__all__ = [
    "build_context",
    "release_matrices",
    "fold",
    "evaluate",
    "partition",
    "sample",
    "samples",
    "centroid",
    "mea",
    "detect_motifs",
    "ensemble_diversity",
    "ensemble_structure",
    "mfe_frequency",
    "pair_probability_list",
    "stack_probability_list",
    "unpaired_probabilities",
    "CentroidResult",
    "EnsembleResult",
    "MeaResult",
    "MfeResult",
    "ConstraintMask",
    "FoldContext",
    "LigandMotif",
    "ModelDetails",
    "Structure",
    "FoldingError",
    "InvalidSequence",
    "InvalidModel",
    "InvalidStructure",
    "InfeasibleConstraints",
    "NumericInstability",
    "DecodeWithoutEnsemble",
    "FoldAborted",
]
