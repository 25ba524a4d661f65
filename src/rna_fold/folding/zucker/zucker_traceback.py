from __future__ import annotations
import logging
from typing import List, Set, Tuple

from rna_fold.folding.zucker.zucker_back_pointer import ZuckerBackPointer, ZuckerBacktrackOp
from rna_fold.folding.zucker.zucker_fold_state import ZuckerFoldState
from rna_fold.structures.pairing import Pair, Quadruplex, Structure

logger = logging.getLogger(__name__)

Frame = Tuple[str, int, int]


def traceback_mfe(state: ZuckerFoldState, circular: bool = False) -> Structure:
    """
    Reconstruct the optimal structure from filled MFE matrices.

    Parameters
    ----------
    state : ZuckerFoldState
        Matrices and back-pointers after `ZuckerFoldingEngine.fill_all_matrices`.
    circular : bool
        Start from the circular exterior loop instead of the f5 prefix array.

    Returns
    -------
    Structure
        The optimal structure, quadruplexes included.
    """
    seq_len = state.seq_len
    if seq_len == 0:
        return Structure.unpaired(0)

    seed: Frame = ('C', 0, seq_len - 1) if circular else ('F', 0, seq_len)
    return _traceback_core(state, [seed])


def _traceback_core(state: ZuckerFoldState, seed_frames: List[Frame]) -> Structure:
    """
    Stack-based traceback over the MFE back-pointers.

    Frames name the table to follow:
    'F' the exterior prefix ending at j, 'C' the circular exterior loop,
    'V' a pair with lonely pairs suppressed, 'VA' a pair closing any loop,
    'WM' / 'WM1' multiloop segments and 'WM2' the last two circular branches.
    Pairs are recorded when a 'V' or 'VA' frame is entered.
    """
    seq_len = state.seq_len
    pairs: Set[Pair] = set()
    quads: List[Quadruplex] = []
    stack: List[Frame] = list(seed_frames)
    # Without lonely-pair suppression both pair tables are one object.
    split_pair_tables = state.v_matrix is not state.v_any_matrix

    while stack:
        which, i, j = stack.pop()

        if which == 'F':
            if j <= 0:
                continue
            bp: ZuckerBackPointer = state.f5_back_ptr[j]
            op = bp.operation
            if op is ZuckerBacktrackOp.UNPAIRED_RIGHT:
                stack.append(('F', 0, j - 1))
            elif op is ZuckerBacktrackOp.EXT_STEM:
                p, q = bp.inner
                stack.append(('F', 0, bp.split_k))
                stack.append(('V', p, q))
            elif op is ZuckerBacktrackOp.GQUAD:
                quads.append(bp.quad)
                stack.append(('F', 0, bp.split_k))

        elif which == 'C':
            bp = state.circ_back_ptr
            op = bp.operation
            if op is ZuckerBacktrackOp.CIRC_HAIRPIN:
                stack.append(('V', *bp.inner))
            elif op is ZuckerBacktrackOp.CIRC_INTERIOR:
                stack.append(('V', *bp.inner))
                stack.append(('V', *bp.inner_2))
            elif op is ZuckerBacktrackOp.CIRC_MULTI:
                stack.append(('WM', 0, bp.split_k))
                stack.append(('WM2', bp.split_k + 1, seq_len - 1))

        elif which == 'V' and split_pair_tables:
            # (i, j) has no outer stacking partner, so it must stack inward.
            pairs.add(Pair(i, j))
            stack.append(('VA', i + 1, j - 1))

        elif which in ('V', 'VA'):
            pairs.add(Pair(i, j))
            bp = state.v_any_back_ptr.get(i, j)
            op = bp.operation
            if op is ZuckerBacktrackOp.STACK:
                stack.append(('VA', *bp.inner))
            elif op is ZuckerBacktrackOp.INTERIOR:
                stack.append(('V', *bp.inner))
            elif op is ZuckerBacktrackOp.MULTI_CLOSE:
                first, last = bp.inner_2
                stack.append(('WM', first, bp.split_k - 1))
                stack.append(('WM1', bp.split_k, last))
            elif op is not ZuckerBacktrackOp.HAIRPIN:
                logger.warning(f"Traceback reached pair ({i}, {j}) without a decomposition")

        elif which == 'WM':
            bp = state.wm_back_ptr.get(i, j)
            op = bp.operation
            if op is ZuckerBacktrackOp.MULTI_SPLIT:
                stack.append(('WM', i, bp.split_k - 1))
                stack.append(('WM1', bp.split_k, j))
            elif op is ZuckerBacktrackOp.MULTI_FIRST:
                stack.append(('WM1', bp.split_k, j))

        elif which == 'WM1':
            bp = state.wm1_back_ptr.get(i, j)
            op = bp.operation
            if op is ZuckerBacktrackOp.BRANCH:
                stack.append(('V', *bp.inner))
            elif op is ZuckerBacktrackOp.GQUAD:
                quads.append(bp.quad)
            elif op is ZuckerBacktrackOp.UNPAIRED_RIGHT:
                stack.append(('WM1', i, j - 1))

        elif which == 'WM2':
            bp = state.wm2_back_ptr[i]
            stack.append(('WM1', i, bp.split_k - 1))
            stack.append(('WM1', bp.split_k, j))

    return Structure.from_pairs(seq_len, pairs, quads)
