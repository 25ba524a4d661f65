from rna_fold.structures.pairing import Pair, Quadruplex, Structure, as_structure
from rna_fold.structures.tri_matrix import TriMatrix

__all__ = [
    "Pair",
    "Quadruplex",
    "Structure",
    "TriMatrix",
    "as_structure",
]
