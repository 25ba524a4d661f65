from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Tuple

from rna_fold.structures.pairing import Quadruplex

__all__ = ["ZuckerBacktrackOp", "ZuckerBackPointer"]

Interval = Tuple[int, int]


class ZuckerBacktrackOp(Enum):
    """
    Recursion rules of the MFE engine, one per way a cell can be decomposed.

    Storing the winning rule in a back-pointer lets the traceback replay the
    exact decomposition chosen during the fill.

    NONE            : Not set / infeasible cell.
    HAIRPIN         : V[i,j] closes a hairpin.
    STACK           : V[i,j] stacks on the pair (i+1, j-1).
    INTERIOR        : V[i,j] closes a bulge or interior loop around `inner`.
    MULTI_CLOSE     : V[i,j] closes a multiloop; branches split at `split_k`.
    BRANCH          : WM1[i,j] starts with the helix `inner` (dangles inside the block).
    GQUAD           : WM1 or the exterior loop holds the quadruplex `quad`.
    UNPAIRED_RIGHT  : The last base of the interval is unpaired.
    MULTI_FIRST     : WM[i,j] = unpaired i..k-1 + WM1[k,j].
    MULTI_SPLIT     : WM[i,j] = WM[i,k-1] + WM1[k,j].
    EXT_STEM        : f5 prefix ends in the exterior helix `inner`.
    CIRC_OPEN       : Circular molecule left unstructured.
    CIRC_HAIRPIN    : Circular exterior loop is a hairpin around `inner`.
    CIRC_INTERIOR   : Circular exterior loop is an interior loop between `inner` and `inner_2`.
    CIRC_MULTI      : Circular exterior loop is a multiloop, WM[0,k] + WM2[k+1].
    """
    NONE = auto()
    HAIRPIN = auto()
    STACK = auto()
    INTERIOR = auto()
    MULTI_CLOSE = auto()
    BRANCH = auto()
    GQUAD = auto()
    UNPAIRED_RIGHT = auto()
    MULTI_FIRST = auto()
    MULTI_SPLIT = auto()
    EXT_STEM = auto()
    CIRC_OPEN = auto()
    CIRC_HAIRPIN = auto()
    CIRC_INTERIOR = auto()
    CIRC_MULTI = auto()


@dataclass(frozen=True, slots=True)
class ZuckerBackPointer:
    """
    One traceback step of the MFE matrices.

    Attributes
    ----------
    operation : ZuckerBacktrackOp
        The recursion rule that produced the cell's optimum.
    split_k : Optional[int]
        Split index for multiloop and exterior decompositions.
    inner : Optional[Tuple[int, int]]
        The enclosed or attached pair.
    inner_2 : Optional[Tuple[int, int]]
        A second pair (circular interior loops), or the interval left for the
        branches of a multiloop after dangles were consumed.
    quad : Optional[Quadruplex]
        The quadruplex for `GQUAD` steps.
    note : Optional[str]
        Free-form tag used in debug logging.
    """
    operation: ZuckerBacktrackOp = ZuckerBacktrackOp.NONE
    split_k: Optional[int] = None
    inner: Optional[Interval] = None
    inner_2: Optional[Interval] = None
    quad: Optional[Quadruplex] = None
    note: Optional[str] = None
