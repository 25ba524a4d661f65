from rna_fold.utils.energy_utils import boltzmann_weight, kt_dcal
from rna_fold.utils.nucleotide_utils import encode_sequence, normalize_sequence

__all__ = [
    "boltzmann_weight",
    "kt_dcal",
    "encode_sequence",
    "normalize_sequence",
]
