from __future__ import annotations
from dataclasses import dataclass
import math
import time
import logging
from typing import Callable, Optional, Tuple

from tqdm import tqdm

from rna_fold.energies.energy_model import LoopEnergyModel
from rna_fold.errors import FoldAborted
from rna_fold.folding.zucker.zucker_back_pointer import ZuckerBackPointer, ZuckerBacktrackOp
from rna_fold.folding.zucker.zucker_fold_state import ZuckerFoldState
from rna_fold.rules.constraints import MIN_HAIRPIN_UNPAIRED
from rna_fold.structures.pairing import Quadruplex

logger = logging.getLogger(__name__)

Candidate = Tuple[float, float, ZuckerBackPointer]


@dataclass(slots=True)
class ZuckerFoldingConfig:
    """
    Configuration settings for the MFE engine.

    Attributes
    ----------
    verbose : bool
        If True, shows a progress bar over the length classes.
    abort_check : Callable[[], bool], optional
        Polled between length classes; returning True aborts the fill.
    """
    verbose: bool = False
    abort_check: Optional[Callable[[], bool]] = None


@dataclass(slots=True)
class ZuckerFoldingEngine:
    """
    Zuker-style minimum free energy recursion over nested secondary structures.

    Fills the pair matrix V, the multiloop matrices WM and WM1, the exterior
    prefix array f5 and, for circular molecules, the wrap-around exterior
    loop. Cells are filled by increasing interval length so every cell only
    reads finalized sub-intervals.

    Attributes
    ----------
    energy_model : LoopEnergyModel
        Sequence-bound loop energies with constraints applied.
    config : ZuckerFoldingConfig
        Engine settings.
    """
    energy_model: LoopEnergyModel
    config: ZuckerFoldingConfig

    def fill_all_matrices(self, state: ZuckerFoldState) -> float:
        """
        Run the full MFE recursion.

        Parameters
        ----------
        state : ZuckerFoldState
            Freshly allocated matrices for the bound sequence.

        Returns
        -------
        float
            Energy of the optimal structure, ``math.inf`` if the constraints
            admit no structure.

        Raises
        ------
        FoldAborted
            If the abort check fires between two length classes.
        """
        start_time = time.perf_counter()
        model = self.energy_model
        n = model.n

        logger.info("=" * 60)
        logger.info(f"Zuker MFE DP for sequence length N={n} (dangles={model.dangles}, "
                    f"circular={model.circular})")
        logger.info(f"Expected complexity: O(N³) ≈ {n ** 3:,} operations")
        logger.info("=" * 60)

        show_progress = self.config.verbose or logger.isEnabledFor(logging.INFO)
        span_iter = tqdm(range(0, n), desc="Zuker DP", leave=True, disable=not show_progress)

        for d in span_iter:
            self._check_abort(d)
            for i in range(0, n - d):
                j = i + d
                if d > MIN_HAIRPIN_UNPAIRED:
                    self._fill_v_cell(i, j, state)
                self._fill_wm1_cell(i, j, state)
                self._fill_wm_cell(i, j, state)

        if model.circular:
            self._fill_circular(state)
            final_energy = state.circ_energy
        else:
            self._fill_exterior(state)
            final_energy = state.f5[n]

        elapsed = time.perf_counter() - start_time
        logger.info(f"Zuker DP completed in {elapsed:.2f}s ({elapsed * 1000:.0f}ms)")
        logger.info(f"Final energy = {final_energy} (10 cal/mol)")
        return final_energy

    def _check_abort(self, d: int) -> None:
        if self.config.abort_check is not None and self.config.abort_check():
            logger.info(f"Zuker DP aborted before length class {d}")
            raise FoldAborted(f"MFE fill aborted before interval length {d + 1}.")

    # ---------- pair-closed cells ----------

    def _fill_v_cell(self, i: int, j: int, state: ZuckerFoldState) -> None:
        """
        Fill V[i, j] (and the "any loop" variant when lonely pairs are suppressed).

        Notes
        -----
        The candidates, in tie-break order, are:
        0. stack on (i+1, j-1),
        1. bulge or interior loop around an inner pair (k, l),
        2. multiloop closed by (i, j),
        3. hairpin.
        With lonely pairs suppressed, V[i, j] keeps only the stacking case on
        an inner pair that closes any loop, so no helix has a single pair.
        """
        model = self.energy_model
        if not model.can_pair(i, j):
            return

        no_lp = model.details.no_lonely_pairs
        v_matrix = state.v_matrix
        v_any = state.v_any_matrix

        best: Candidate = (math.inf, math.inf, ZuckerBackPointer())

        # Case 0: stack. The inner pair closes any loop when lonely pairs are suppressed.
        stack_energy = math.inf
        if model.can_pair(i + 1, j - 1):
            stack_energy = model.stack(i, j)
            if math.isfinite(stack_energy):
                inner = v_any.get(i + 1, j - 1) if no_lp else v_matrix.get(i + 1, j - 1)
                best = self._compare_candidates(
                    stack_energy + inner, 0,
                    ZuckerBackPointer(operation=ZuckerBacktrackOp.STACK, inner=(i + 1, j - 1)), best,
                )

        # Case 1: bulge / interior loop with inner pair (k, l).
        max_loop = model.details.max_loop
        pair_types = model.pair_types
        for k in range(i + 1, min(i + max_loop + 2, j - MIN_HAIRPIN_UNPAIRED - 1)):
            size_5 = k - i - 1
            min_l = max(k + MIN_HAIRPIN_UNPAIRED + 1, j - 1 - (max_loop - size_5))
            row = pair_types[k]
            for l in range(j - 1, min_l - 1, -1):
                if not row[l] or (k == i + 1 and l == j - 1):
                    continue
                inner = v_matrix.get(k, l)
                if math.isinf(inner):
                    continue
                loop_energy = model.interior(i, j, k, l)
                if math.isinf(loop_energy):
                    continue
                best = self._compare_candidates(
                    loop_energy + inner, 1,
                    ZuckerBackPointer(operation=ZuckerBacktrackOp.INTERIOR, inner=(k, l)), best,
                )

        # Case 2: multiloop; at least two branches in the interval left after dangles.
        for close_energy, first, last in model.ml_closing_options(i, j):
            if math.isinf(close_energy):
                continue
            for k in range(first + 1, last + 1):
                left = state.wm_matrix.get_or(first, k - 1, math.inf)
                right = state.wm1_matrix.get_or(k, last, math.inf)
                cand = close_energy + left + right
                best = self._compare_candidates(
                    cand, 2,
                    ZuckerBackPointer(operation=ZuckerBacktrackOp.MULTI_CLOSE, split_k=k, inner_2=(first, last)),
                    best,
                )

        # Case 3: hairpin.
        best = self._compare_candidates(
            model.hairpin(i, j), 3, ZuckerBackPointer(operation=ZuckerBacktrackOp.HAIRPIN), best,
        )

        best_energy, _, best_back_ptr = best
        v_any.set(i, j, best_energy)
        state.v_any_back_ptr.set(i, j, best_back_ptr)

        if no_lp:
            inner = v_any.get_or(i + 1, j - 1, math.inf)
            if math.isfinite(stack_energy) and math.isfinite(inner):
                v_matrix.set(i, j, stack_energy + inner)
                state.v_back_ptr.set(i, j, ZuckerBackPointer(operation=ZuckerBacktrackOp.STACK,
                                                             inner=(i + 1, j - 1), note="stacked"))

    # ---------- multiloop cells ----------

    def _fill_wm1_cell(self, i: int, j: int, state: ZuckerFoldState) -> None:
        """
        Fill WM1[i, j]: one branch starting at i, unpaired bases up to j.

        Notes
        -----
        Candidates in tie-break order: a helix block on ``i..j`` (dangling
        bases included), a quadruplex on ``i..j``, or WM1[i, j-1] with j unpaired.
        """
        model = self.energy_model
        best: Candidate = (math.inf, math.inf, ZuckerBackPointer())

        for extra, p, q in model.ml_stem_options(i, j):
            if math.isinf(extra):
                continue
            v_pq = state.v_matrix.get_or(p, q, math.inf)
            best = self._compare_candidates(
                extra + v_pq, 0, ZuckerBackPointer(operation=ZuckerBacktrackOp.BRANCH, inner=(p, q)), best,
            )

        quad_energy, quad = self._best_gquad(i, j)
        if quad is not None:
            best = self._compare_candidates(
                quad_energy + model.gquad_ml_stem(), 1,
                ZuckerBackPointer(operation=ZuckerBacktrackOp.GQUAD, quad=quad), best,
            )

        if j > i:
            cand = state.wm1_matrix.get(i, j - 1) + model.ml_unpaired(j, j)
            best = self._compare_candidates(
                cand, 2, ZuckerBackPointer(operation=ZuckerBacktrackOp.UNPAIRED_RIGHT), best,
            )

        state.wm1_matrix.set(i, j, best[0])
        state.wm1_back_ptr.set(i, j, best[2])

    def _fill_wm_cell(self, i: int, j: int, state: ZuckerFoldState) -> None:
        """
        Fill WM[i, j]: one or more branches.

        ``WM[i, j] = min_k min(unpaired(i..k-1), WM[i, k-1]) + WM1[k, j]``; the
        last branch starts at k.
        """
        model = self.energy_model
        wm_matrix = state.wm_matrix
        wm1_matrix = state.wm1_matrix
        best: Candidate = (math.inf, math.inf, ZuckerBackPointer())

        for k in range(i, j + 1):
            tail = wm1_matrix.get(k, j)
            if math.isinf(tail):
                continue
            if k > i:
                best = self._compare_candidates(
                    wm_matrix.get(i, k - 1) + tail, 0,
                    ZuckerBackPointer(operation=ZuckerBacktrackOp.MULTI_SPLIT, split_k=k), best,
                )
            best = self._compare_candidates(
                model.ml_unpaired(i, k - 1) + tail, 1,
                ZuckerBackPointer(operation=ZuckerBacktrackOp.MULTI_FIRST, split_k=k), best,
            )

        wm_matrix.set(i, j, best[0])
        state.wm_back_ptr.set(i, j, best[2])

    # ---------- exterior loop ----------

    def _fill_exterior(self, state: ZuckerFoldState) -> None:
        """
        Fill the exterior prefix array of a linear molecule.

        ``f5[j]`` covers positions ``0..j-1``; the last element is either an
        unpaired base, a helix block ending at j-1 or a quadruplex ending at j-1.
        """
        model = self.energy_model
        n = model.n
        f5 = state.f5
        f5_bp = state.f5_back_ptr
        f5[0] = 0
        f5_bp[0] = ZuckerBackPointer()

        for j in range(1, n + 1):
            best: Candidate = (math.inf, math.inf, ZuckerBackPointer())
            last = j - 1
            for k in range(0, last - MIN_HAIRPIN_UNPAIRED):
                if math.isinf(f5[k]):
                    continue
                for extra, p, q in model.ext_stem_options(k, last):
                    if math.isinf(extra):
                        continue
                    v_pq = state.v_matrix.get_or(p, q, math.inf)
                    best = self._compare_candidates(
                        f5[k] + extra + v_pq, 0,
                        ZuckerBackPointer(operation=ZuckerBacktrackOp.EXT_STEM, split_k=k, inner=(p, q)), best,
                    )
            for k in range(0, last):
                quad_energy, quad = self._best_gquad(k, last)
                if quad is not None:
                    best = self._compare_candidates(
                        f5[k] + quad_energy, 1,
                        ZuckerBackPointer(operation=ZuckerBacktrackOp.GQUAD, split_k=k, quad=quad), best,
                    )
            best = self._compare_candidates(
                f5[j - 1] + model.unpaired(last, last), 2,
                ZuckerBackPointer(operation=ZuckerBacktrackOp.UNPAIRED_RIGHT), best,
            )
            f5[j] = best[0]
            f5_bp[j] = best[2]

    def _fill_circular(self, state: ZuckerFoldState) -> None:
        """
        Close the circle: the exterior loop is scored as a hairpin, an interior
        loop or a multiloop depending on how many helices leave it.

        Notes
        -----
        Candidates in tie-break order: hairpin (0), interior loop (1),
        multiloop (2) and the open circle (3).
        """
        model = self.energy_model
        n = model.n
        v_matrix = state.v_matrix
        max_loop = model.details.max_loop
        best: Candidate = (math.inf, math.inf, ZuckerBackPointer())

        for i in range(n):
            for j in range(i + MIN_HAIRPIN_UNPAIRED + 1, n):
                v_ij = v_matrix.get(i, j)
                if math.isinf(v_ij):
                    continue
                best = self._compare_candidates(
                    v_ij + model.hairpin_wrapped(i, j), 0,
                    ZuckerBackPointer(operation=ZuckerBacktrackOp.CIRC_HAIRPIN, inner=(i, j)), best,
                )
                for k in range(j + 1, min(j + max_loop + 2, n)):
                    size_5 = k - j - 1
                    min_l = max(k + MIN_HAIRPIN_UNPAIRED + 1, n - 1 + i - (max_loop - size_5))
                    row = model.pair_types[k]
                    for l in range(min_l, n):
                        if not row[l]:
                            continue
                        v_kl = v_matrix.get(k, l)
                        if math.isinf(v_kl):
                            continue
                        best = self._compare_candidates(
                            v_ij + v_kl + model.interior_wrapped(i, j, k, l), 1,
                            ZuckerBackPointer(operation=ZuckerBacktrackOp.CIRC_INTERIOR, inner=(i, j),
                                              inner_2=(k, l)),
                            best,
                        )

        # Two last branches covering start..n-1.
        wm1_matrix = state.wm1_matrix
        for start in range(n - 1, -1, -1):
            wm2_best: Candidate = (math.inf, math.inf, ZuckerBackPointer())
            for u in range(start, n - 1):
                wm2_best = self._compare_candidates(
                    wm1_matrix.get(start, u) + wm1_matrix.get(u + 1, n - 1), 0,
                    ZuckerBackPointer(operation=ZuckerBacktrackOp.MULTI_SPLIT, split_k=u + 1), wm2_best,
                )
            state.wm2[start] = wm2_best[0]
            state.wm2_back_ptr[start] = wm2_best[2]

        for k in range(0, n - 1):
            cand = model.params.ml_closing + state.wm_matrix.get(0, k) + state.wm2[k + 1]
            best = self._compare_candidates(
                cand, 2, ZuckerBackPointer(operation=ZuckerBacktrackOp.CIRC_MULTI, split_k=k), best,
            )

        best = self._compare_candidates(
            model.unpaired(0, n - 1), 3, ZuckerBackPointer(operation=ZuckerBacktrackOp.CIRC_OPEN), best,
        )
        state.circ_energy = best[0]
        state.circ_back_ptr = best[2]

    # ---------- helpers ----------

    def _best_gquad(self, i: int, j: int) -> Tuple[float, Optional[Quadruplex]]:
        best_energy, best_quad = math.inf, None
        for quad, energy in self.energy_model.gquads(i, j):
            if energy < best_energy:
                best_energy, best_quad = energy, quad
        return best_energy, best_quad

    @staticmethod
    def _compare_candidates(
        cand_energy: float,
        cand_rank: float,
        cand_back_ptr: ZuckerBackPointer,
        best: Candidate,
    ) -> Candidate:
        """
        Keep the better of a candidate and the current best.

        Lower energy wins; equal energies go to the lower rank, and equal ranks
        to the candidate seen first in scan order, which makes the fill and
        therefore the traceback deterministic.
        """
        best_energy, best_rank, _ = best
        if math.isinf(cand_energy):
            return best
        if (cand_energy < best_energy) or (cand_energy == best_energy and cand_rank < best_rank):
            return cand_energy, cand_rank, cand_back_ptr
        return best
