from rna_fold.folding.context import EnsembleData, FoldContext, build_context, release_matrices

__all__ = [
    "EnsembleData",
    "FoldContext",
    "build_context",
    "release_matrices",
]
