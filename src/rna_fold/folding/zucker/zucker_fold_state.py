from __future__ import annotations
from dataclasses import dataclass, field
from typing import List

from rna_fold.folding.zucker.zucker_back_pointer import ZuckerBackPointer
from rna_fold.structures import TriMatrix


@dataclass(slots=True)
class ZuckerFoldState:
    """
    DP matrices of the MFE engine for one sequence.

    Attributes
    ----------
    v_matrix : TriMatrix[float]
        V[i, j]: best energy of the interval closed by the pair (i, j). With
        lonely pairs suppressed, (i, j) must also stack on (i+1, j-1).
    v_any_matrix : TriMatrix[float]
        Energy of (i, j) closing any loop; only differs from `v_matrix` when
        lonely pairs are suppressed, otherwise it is the same object.
    wm_matrix : TriMatrix[float]
        WM[i, j]: multiloop segment with at least one branch.
    wm1_matrix : TriMatrix[float]
        WM1[i, j]: multiloop segment with exactly one branch starting at i
        (or at a dangle on i) followed by unpaired bases.
    f5 : List[float]
        f5[j]: best energy of the prefix of length j (linear molecules).
    wm2 : List[float]
        wm2[i]: two branches covering ``i..n-1`` (circular molecules).
    circ_energy : float
        Best energy of a circular molecule.
    """
    v_matrix: TriMatrix[float]
    v_any_matrix: TriMatrix[float]
    wm_matrix: TriMatrix[float]
    wm1_matrix: TriMatrix[float]
    v_back_ptr: TriMatrix[ZuckerBackPointer]
    v_any_back_ptr: TriMatrix[ZuckerBackPointer]
    wm_back_ptr: TriMatrix[ZuckerBackPointer]
    wm1_back_ptr: TriMatrix[ZuckerBackPointer]
    f5: List[float] = field(default_factory=list)
    f5_back_ptr: List[ZuckerBackPointer] = field(default_factory=list)
    wm2: List[float] = field(default_factory=list)
    wm2_back_ptr: List[ZuckerBackPointer] = field(default_factory=list)
    circ_energy: float = float("inf")
    circ_back_ptr: ZuckerBackPointer = field(default_factory=ZuckerBackPointer)

    @property
    def seq_len(self) -> int:
        return self.v_matrix.size


def make_fold_state(seq_len: int, no_lonely_pairs: bool = False,
                    init_energy: float = float("inf")) -> ZuckerFoldState:
    """
    Allocate the MFE matrices for a sequence of `seq_len` nucleotides.

    Every energy cell starts at `init_energy` (infinite by default) so that any
    finite candidate replaces it. The separate "any loop" pair matrix is only
    allocated when lonely pairs are suppressed.
    """
    v_matrix = TriMatrix[float](seq_len, init_energy)
    v_back_ptr = TriMatrix[ZuckerBackPointer](seq_len, ZuckerBackPointer())
    if no_lonely_pairs:
        v_any_matrix = TriMatrix[float](seq_len, init_energy)
        v_any_back_ptr = TriMatrix[ZuckerBackPointer](seq_len, ZuckerBackPointer())
    else:
        v_any_matrix = v_matrix
        v_any_back_ptr = v_back_ptr

    return ZuckerFoldState(
        v_matrix=v_matrix,
        v_any_matrix=v_any_matrix,
        wm_matrix=TriMatrix[float](seq_len, init_energy),
        wm1_matrix=TriMatrix[float](seq_len, init_energy),
        v_back_ptr=v_back_ptr,
        v_any_back_ptr=v_any_back_ptr,
        wm_back_ptr=TriMatrix[ZuckerBackPointer](seq_len, ZuckerBackPointer()),
        wm1_back_ptr=TriMatrix[ZuckerBackPointer](seq_len, ZuckerBackPointer()),
        f5=[init_energy] * (seq_len + 1),
        f5_back_ptr=[ZuckerBackPointer()] * (seq_len + 1),
        wm2=[init_energy] * (seq_len + 1),
        wm2_back_ptr=[ZuckerBackPointer()] * (seq_len + 1),
    )
