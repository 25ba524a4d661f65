from rna_fold.rules.constraints import MIN_HAIRPIN_UNPAIRED, pair_type
from rna_fold.rules.constraint_mask import ConstraintMask
from rna_fold.rules.motifs import LigandMotif, MotifHit

__all__ = [
    "MIN_HAIRPIN_UNPAIRED",
    "pair_type",
    "ConstraintMask",
    "LigandMotif",
    "MotifHit",
]
