from __future__ import annotations
from dataclasses import dataclass
import math
import time
import logging
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from rna_fold.energies.energy_model import LoopEnergyModel
from rna_fold.errors import FoldAborted, NumericInstability
from rna_fold.folding.mccaskill.mccaskill_state import (
    QB, QB_ANY, QM, QM1, Q5, QM2, TOP, Cell, McCaskillState, make_mccaskill_state,
)
from rna_fold.folding.mccaskill.mccaskill_terms import BoltzmannDecomposition, Term, term_weight
from rna_fold.utils.energy_utils import boltzmann_weight

logger = logging.getLogger(__name__)

# Weight shift per rescale attempt when the partition function is not finite.
_RESCALE_LOG_STEP = 300.0


@dataclass(slots=True)
class McCaskillConfig:
    """
    Configuration settings for the partition function engine.

    Attributes
    ----------
    verbose : bool
        If True, shows progress bars over the length classes.
    abort_check : Callable[[], bool], optional
        Polled between length classes; returning True aborts the pass.
    max_rescale : int
        Number of retries with an adjusted scale after over- or underflow.
    """
    verbose: bool = False
    abort_check: Optional[Callable[[], bool]] = None
    max_rescale: int = 3


@dataclass(slots=True)
class McCaskillEngine:
    """
    McCaskill partition function over nested structures.

    The inside pass mirrors the MFE decomposition with sums of Boltzmann
    weights; the outside pass pushes weight from every cell back to the
    cells it was built from, which gives pair probabilities as
    ``inside * outside / Z``.

    Attributes
    ----------
    energy_model : LoopEnergyModel
        Sequence-bound energy model with the partition-function dangle model.
    config : McCaskillConfig
        Engine settings.
    kt : float
        Thermal energy RT in 10 cal/mol.

    References
    ----------
    1. McCaskill, J. S. (1990). The equilibrium partition function and base
       pair binding probabilities for RNA secondary structure. Biopolymers,
       29(6-7), 1105-1119.
    """
    energy_model: LoopEnergyModel
    config: McCaskillConfig
    kt: float

    # ---------- inside ----------

    def run_inside(self, pf_scale: float) -> McCaskillState:
        """
        Fill the inside tables, rescaling until the weights are representable.

        Parameters
        ----------
        pf_scale : float
            Initial per-nucleotide scale factor.

        Returns
        -------
        McCaskillState
            Tables with a finite, positive partition function.

        Raises
        ------
        NumericInstability
            If the weights still over- or underflow after `max_rescale` retries.
        FoldAborted
            If the abort check fires.
        """
        n = self.energy_model.n
        attempt = 0
        while True:
            state = make_mccaskill_state(n, pf_scale, self.kt, self.energy_model.details.no_lonely_pairs)
            try:
                self.fill_inside(state)
            except OverflowError:
                state.z_scaled = math.inf

            if self._representable(state):
                return state
            if attempt == self.config.max_rescale:
                break

            attempt += 1
            new_scale = self._adjusted_scale(state)
            logger.warning(f"Partition function out of range with pf_scale={pf_scale:.6g} "
                           f"(Z={state.z_scaled:.3g}); retrying with pf_scale={new_scale:.6g} "
                           f"[{attempt}/{self.config.max_rescale}]")
            pf_scale = new_scale

        raise NumericInstability(
            f"Boltzmann weights over- or underflow after {self.config.max_rescale} rescaling attempts.",
            pf_scale=pf_scale,
        )

    def fill_inside(self, state: McCaskillState) -> None:
        """Inside pass: every cell is the sum of its decomposition terms."""
        start_time = time.perf_counter()
        model = self.energy_model
        n = model.n
        decomp = BoltzmannDecomposition(model, state)
        kinds = (QB_ANY, QB, QM1, QM) if state.no_lonely_pairs else (QB_ANY, QM1, QM)

        logger.info("=" * 60)
        logger.info(f"McCaskill inside pass for N={n} (pf_scale={state.pf_scale:.6g}, "
                    f"dangles={model.dangles}, circular={model.circular})")
        logger.info("=" * 60)

        show_progress = self.config.verbose or logger.isEnabledFor(logging.INFO)
        for d in tqdm(range(0, n), desc="McCaskill inside", leave=True, disable=not show_progress):
            self._check_abort(d)
            for i in range(0, n - d):
                j = i + d
                for kind in kinds:
                    state.tables[kind][i, j] = self._sum_terms(state, decomp.terms((kind, i, j)))

        if model.circular:
            for start in range(n - 1, -1, -1):
                state.qm2[start] = self._sum_terms(state, decomp.terms((QM2, start, n - 1)))
        else:
            state.q5[0] = 1.0
            for j in range(1, n + 1):
                state.q5[j] = self._sum_terms(state, decomp.terms((Q5, 0, j)))
        state.z_scaled = self._sum_terms(state, decomp.terms((TOP, 0, 0)))

        elapsed = time.perf_counter() - start_time
        logger.info(f"McCaskill inside pass completed in {elapsed:.2f}s; Z (scaled) = {state.z_scaled:.6g}")

    @staticmethod
    def _sum_terms(state: McCaskillState, terms: List[Term]) -> float:
        total = 0.0
        for term in terms:
            total += term_weight(state, term)
        return total

    @staticmethod
    def _representable(state: McCaskillState) -> bool:
        z = state.z_scaled
        if not math.isfinite(z) or z < np.finfo(float).tiny:
            return False
        return all(bool(np.isfinite(table).all()) for table in state.tables.values())

    def _adjusted_scale(self, state: McCaskillState) -> float:
        n = max(state.seq_len, 1)
        z = state.z_scaled
        if math.isfinite(z) and z > 0.0:
            return state.pf_scale * math.exp(math.log(z) / n)
        if z == 0.0:
            return state.pf_scale * math.exp(-_RESCALE_LOG_STEP / n)
        return state.pf_scale * math.exp(_RESCALE_LOG_STEP / n)

    def _check_abort(self, d: int) -> None:
        if self.config.abort_check is not None and self.config.abort_check():
            logger.info(f"McCaskill pass aborted at length class {d}")
            raise FoldAborted(f"Partition function aborted at interval length {d + 1}.")

    # ---------- outside ----------

    def fill_outside(self, state: McCaskillState) -> np.ndarray:
        """
        Outside pass.

        Cells are visited from the longest interval down; inside a cell the
        multiloop tables come before the pair tables because QM[i, j] feeds
        QM1[i, j], which feeds QB[i, j], which (lonely pairs suppressed) feeds
        nothing of its own length.

        Returns
        -------
        np.ndarray
            Per-position probability of being a quadruplex guanine.

        Raises
        ------
        NumericInstability
            If an outside weight over- or underflows to a non-finite value.
        """
        start_time = time.perf_counter()
        model = self.energy_model
        n = model.n
        decomp = BoltzmannDecomposition(model, state)
        state.init_outside()
        quad_prob = np.zeros(n)
        z = state.z_scaled

        self._push(state, (TOP, 0, 0), 1.0, decomp, quad_prob, z)
        if model.circular:
            for start in range(n):
                self._push(state, (QM2, start, n - 1), state.outside((QM2, start, n - 1)), decomp, quad_prob, z)
        else:
            for j in range(n, 0, -1):
                self._push(state, (Q5, 0, j), state.outside((Q5, 0, j)), decomp, quad_prob, z)

        kinds = (QM, QM1, QB, QB_ANY) if state.no_lonely_pairs else (QM, QM1, QB_ANY)
        show_progress = self.config.verbose or logger.isEnabledFor(logging.INFO)
        for d in tqdm(range(n - 1, -1, -1), desc="McCaskill outside", leave=True, disable=not show_progress):
            self._check_abort(d)
            for i in range(0, n - d):
                j = i + d
                for kind in kinds:
                    out_value = state.out[kind][i, j]
                    if out_value == 0.0 or state.tables[kind][i, j] == 0.0:
                        continue
                    self._push(state, (kind, i, j), out_value, decomp, quad_prob, z)

        finite = all(bool(np.isfinite(table).all()) for table in state.out.values())
        if not (finite and np.isfinite(quad_prob).all()):
            raise NumericInstability(
                f"Outside weights are not finite with pf_scale={state.pf_scale:.6g}.",
                pf_scale=state.pf_scale,
            )

        elapsed = time.perf_counter() - start_time
        logger.info(f"McCaskill outside pass completed in {elapsed:.2f}s")
        return quad_prob

    @staticmethod
    def _push(state: McCaskillState, cell: Cell, out_value: float, decomp: BoltzmannDecomposition,
              quad_prob: np.ndarray, z: float) -> None:
        for term in decomp.terms(cell):
            children = term.children
            if term.quad is not None:
                prob = out_value * term_weight(state, term) / z
                for pos in term.quad.g_positions():
                    quad_prob[pos] += prob
            for idx, child in enumerate(children):
                weight = out_value * term.factor
                for other_idx, other in enumerate(children):
                    if other_idx != idx:
                        weight *= state.value(other)
                state.add_outside(child, weight)

    # ---------- probabilities ----------

    def pair_probabilities(self, state: McCaskillState) -> Dict[Tuple[int, int], float]:
        """
        Sparse base-pair probabilities ``{(i, j): P(i, j)}`` with ``i < j``.
        """
        z = state.z_scaled
        joint = state.qb * state.out[QB]
        if state.no_lonely_pairs:
            joint = joint + state.qb_any * state.out[QB_ANY]
        probs = joint / z
        rows, cols = np.nonzero(probs > 0.0)
        return {(int(i), int(j)): min(float(probs[i, j]), 1.0) for i, j in zip(rows, cols) if i < j}

    def stack_probabilities(self, state: McCaskillState) -> Dict[Tuple[int, int], float]:
        """
        Probabilities that (i, j) and (i+1, j-1) are both paired, keyed by the outer pair.
        """
        model = self.energy_model
        n = model.n
        z = state.z_scaled
        result: Dict[Tuple[int, int], float] = {}
        if n < 2:
            return result
        scale_2 = float(state.scale[2])
        for i in range(n):
            for j in range(i + 5, n):
                if not model.can_pair(i, j) or not model.can_pair(i + 1, j - 1):
                    continue
                inner = state.qb_any[i + 1, j - 1]
                if inner == 0.0:
                    continue
                outer_out = state.out[QB_ANY][i, j]
                if state.no_lonely_pairs:
                    outer_out += state.out[QB][i, j]
                weight = boltzmann_weight(model.stack(i, j), self.kt) * scale_2
                prob = outer_out * weight * inner / z
                if prob > 0.0:
                    result[(i, j)] = min(float(prob), 1.0)
        return result
