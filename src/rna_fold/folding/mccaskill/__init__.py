from rna_fold.folding.mccaskill.mccaskill_state import McCaskillState, make_mccaskill_state
from rna_fold.folding.mccaskill.mccaskill_recurrences import McCaskillConfig, McCaskillEngine
from rna_fold.folding.mccaskill.mccaskill_sampling import sample_structures

__all__ = [
    "McCaskillState",
    "make_mccaskill_state",
    "McCaskillConfig",
    "McCaskillEngine",
    "sample_structures",
]
