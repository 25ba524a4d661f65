from rna_fold.decoding.centroid import centroid_structure
from rna_fold.decoding.mea import mea_structure
from rna_fold.decoding.ensemble import (
    ensemble_diversity,
    ensemble_symbol_string,
    pair_list,
    structure_frequency,
    unpaired_probabilities,
)

__all__ = [
    "centroid_structure",
    "mea_structure",
    "ensemble_diversity",
    "ensemble_symbol_string",
    "pair_list",
    "structure_frequency",
    "unpaired_probabilities",
]
