from rna_fold.folding.zucker.zucker_back_pointer import ZuckerBacktrackOp, ZuckerBackPointer
from rna_fold.folding.zucker.zucker_fold_state import ZuckerFoldState, make_fold_state
from rna_fold.folding.zucker.zucker_recurrences import ZuckerFoldingConfig, ZuckerFoldingEngine
from rna_fold.folding.zucker.zucker_traceback import traceback_mfe

__all__ = [
    "ZuckerBacktrackOp",
    "ZuckerBackPointer",
    "ZuckerFoldState",
    "make_fold_state",
    "ZuckerFoldingConfig",
    "ZuckerFoldingEngine",
    "traceback_mfe",
]
