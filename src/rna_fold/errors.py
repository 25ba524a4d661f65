from __future__ import annotations

__all__ = [
    "FoldingError",
    "InvalidSequence",
    "InvalidModel",
    "InvalidStructure",
    "InfeasibleConstraints",
    "NumericInstability",
    "DecodeWithoutEnsemble",
    "FoldAborted",
]


class FoldingError(Exception):
    """Base class for every error raised by the folding engine."""


class InvalidSequence(FoldingError, ValueError):
    """The input sequence is empty or contains symbols outside the alphabet."""


class InvalidModel(FoldingError, ValueError):
    """
    The model configuration, parameter tables or constraint mask are inconsistent.

    Examples are G-quadruplex support requested together with circular folding,
    a dangle model outside 0-3, or forced pairs that cross each other.
    """


class InvalidStructure(FoldingError, ValueError):
    """A structure handed to `evaluate` is malformed for the context's sequence."""


class InfeasibleConstraints(FoldingError):
    """The top-level MFE cell has no valid decomposition under the constraints."""


class NumericInstability(FoldingError):
    """
    Boltzmann weights over- or underflowed even after rescaling.

    Attributes
    ----------
    pf_scale : float | None
        The last per-nucleotide scale factor that was tried.
    """
    def __init__(self, message: str, pf_scale: float | None = None):
        super().__init__(message)
        self.pf_scale = pf_scale


class DecodeWithoutEnsemble(FoldingError):
    """Sampling, centroid or MEA decoding was requested before a successful `partition`."""


class FoldAborted(FoldingError):
    """The caller's abort check fired between two length classes; partial results are discarded."""
