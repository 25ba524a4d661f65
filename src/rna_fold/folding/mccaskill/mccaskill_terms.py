from __future__ import annotations
from typing import List, NamedTuple, Optional, Tuple

from rna_fold.energies.energy_model import LoopEnergyModel
from rna_fold.energies.energy_types import Energy
from rna_fold.folding.mccaskill.mccaskill_state import (
    QB, QB_ANY, QM, QM1, Q5, QM2, TOP, Cell, McCaskillState,
)
from rna_fold.rules.constraints import MIN_HAIRPIN_UNPAIRED
from rna_fold.structures.pairing import Quadruplex
from rna_fold.utils.energy_utils import boltzmann_weight


class Term(NamedTuple):
    """
    One way to decompose a table cell.

    The contribution of the term is ``factor * prod(inside(child))``.
    """
    factor: float
    children: Tuple[Cell, ...] = ()
    quad: Optional[Quadruplex] = None


class BoltzmannDecomposition:
    """
    Enumerates the decompositions of every partition-function cell.

    The inside pass sums the terms, the outside pass pushes weight back along
    them and stochastic traceback draws among them, so all three passes see
    exactly the same grammar. Terms with a zero-weight child are dropped.

    Parameters
    ----------
    model : LoopEnergyModel
        Sequence-bound energy model (partition-function dangles).
    state : McCaskillState
        Tables whose inside values the terms read.
    """
    __slots__ = ("model", "state", "_scale")

    def __init__(self, model: LoopEnergyModel, state: McCaskillState):
        self.model = model
        self.state = state
        self._scale = state.scale.tolist()

    def weight(self, energy: Energy) -> float:
        return boltzmann_weight(energy, self.state.kt)

    def terms(self, cell: Cell) -> List[Term]:
        kind, i, j = cell
        if kind == QB_ANY:
            return self.pair_terms(i, j)
        if kind == QB:
            if not self.state.no_lonely_pairs:
                return self.pair_terms(i, j)
            return self.stacked_pair_terms(i, j)
        if kind == QM1:
            return self.qm1_terms(i, j)
        if kind == QM:
            return self.qm_terms(i, j)
        if kind == Q5:
            return self.q5_terms(j)
        if kind == QM2:
            return self.qm2_terms(i)
        if kind == TOP:
            return self.circular_terms() if self.model.circular else [Term(1.0, ((Q5, 0, self.state.seq_len),))]
        raise ValueError(f"Unknown table kind {kind}")

    def _keep(self, factor: float, children: Tuple[Cell, ...]) -> bool:
        if factor == 0.0:
            return False
        return all(self.state.value(child) != 0.0 for child in children)

    # ---------- pair-closed cells ----------

    def pair_terms(self, i: int, j: int) -> List[Term]:
        """(i, j) closing a hairpin, a stack, a bulge/interior loop or a multiloop."""
        model = self.model
        scale = self._scale
        out: List[Term] = []
        if not model.can_pair(i, j):
            return out

        factor = self.weight(model.hairpin(i, j)) * scale[j - i + 1]
        if factor:
            out.append(Term(factor))

        if model.can_pair(i + 1, j - 1):
            children = ((QB_ANY, i + 1, j - 1),)
            factor = self.weight(model.stack(i, j)) * scale[2]
            if self._keep(factor, children):
                out.append(Term(factor, children))

        max_loop = model.details.max_loop
        pair_types = model.pair_types
        qb = self.state.qb
        for k in range(i + 1, min(i + max_loop + 2, j - MIN_HAIRPIN_UNPAIRED - 1)):
            size_5 = k - i - 1
            min_l = max(k + MIN_HAIRPIN_UNPAIRED + 1, j - 1 - (max_loop - size_5))
            row = pair_types[k]
            for l in range(j - 1, min_l - 1, -1):
                if not row[l] or (k == i + 1 and l == j - 1) or qb[k, l] == 0.0:
                    continue
                factor = self.weight(model.interior(i, j, k, l)) * scale[(k - i) + (j - l)]
                if factor:
                    out.append(Term(factor, ((QB, k, l),)))

        for close_energy, first, last in model.ml_closing_options(i, j):
            closing = self.weight(close_energy) * scale[2 + (first - i - 1) + (j - 1 - last)]
            if not closing:
                continue
            for k in range(first + 1, last + 1):
                children = ((QM, first, k - 1), (QM1, k, last))
                if self._keep(closing, children):
                    out.append(Term(closing, children))
        return out

    def stacked_pair_terms(self, i: int, j: int) -> List[Term]:
        """(i, j) stacked on an inner pair; the only option when lonely pairs are suppressed."""
        model = self.model
        if not model.can_pair(i, j) or not model.can_pair(i + 1, j - 1):
            return []
        children = ((QB_ANY, i + 1, j - 1),)
        factor = self.weight(model.stack(i, j)) * self._scale[2]
        return [Term(factor, children)] if self._keep(factor, children) else []

    # ---------- multiloop cells ----------

    def qm1_terms(self, i: int, j: int) -> List[Term]:
        model = self.model
        scale = self._scale
        out: List[Term] = []
        for extra, p, q in model.ml_stem_options(i, j):
            children = ((QB, p, q),)
            factor = self.weight(extra) * scale[(p - i) + (j - q)]
            if self._keep(factor, children):
                out.append(Term(factor, children))
        for quad, energy in model.gquads(i, j):
            factor = self.weight(energy + model.gquad_ml_stem()) * scale[j - i + 1]
            if factor:
                out.append(Term(factor, quad=quad))
        if j > i:
            children = ((QM1, i, j - 1),)
            factor = self.weight(model.ml_unpaired(j, j)) * scale[1]
            if self._keep(factor, children):
                out.append(Term(factor, children))
        return out

    def qm_terms(self, i: int, j: int) -> List[Term]:
        model = self.model
        scale = self._scale
        out: List[Term] = []
        for k in range(i, j + 1):
            if self.state.qm1[k, j] == 0.0:
                continue
            factor = self.weight(model.ml_unpaired(i, k - 1)) * scale[k - i]
            if factor:
                out.append(Term(factor, ((QM1, k, j),)))
            if k > i:
                children = ((QM, i, k - 1), (QM1, k, j))
                if self._keep(1.0, children):
                    out.append(Term(1.0, children))
        return out

    # ---------- exterior loop ----------

    def q5_terms(self, j: int) -> List[Term]:
        """Prefix of length j: last base unpaired, or a helix / quadruplex ending at j-1."""
        model = self.model
        scale = self._scale
        out: List[Term] = []
        if j == 0:
            return out
        last = j - 1
        children = ((Q5, 0, j - 1),)
        factor = self.weight(model.unpaired(last, last)) * scale[1]
        if self._keep(factor, children):
            out.append(Term(factor, children))
        for k in range(0, last - MIN_HAIRPIN_UNPAIRED):
            if self.state.q5[k] == 0.0:
                continue
            for extra, p, q in model.ext_stem_options(k, last):
                children = ((Q5, 0, k), (QB, p, q))
                factor = self.weight(extra) * scale[(p - k) + (last - q)]
                if self._keep(factor, children):
                    out.append(Term(factor, children))
        for k in range(0, last):
            for quad, energy in model.gquads(k, last):
                children = ((Q5, 0, k),)
                factor = self.weight(energy) * scale[j - k]
                if self._keep(factor, children):
                    out.append(Term(factor, children, quad))
        return out

    def qm2_terms(self, start: int) -> List[Term]:
        n = self.state.seq_len
        out: List[Term] = []
        for u in range(start, n - 1):
            children = ((QM1, start, u), (QM1, u + 1, n - 1))
            if self._keep(1.0, children):
                out.append(Term(1.0, children))
        return out

    def circular_terms(self) -> List[Term]:
        """
        Closing the circle: open chain, or an exterior hairpin, interior loop or multiloop.
        """
        model = self.model
        scale = self._scale
        n = self.state.seq_len
        qb = self.state.qb
        max_loop = model.details.max_loop
        out: List[Term] = []

        factor = self.weight(model.unpaired(0, n - 1)) * scale[n]
        if factor:
            out.append(Term(factor))

        for i in range(n):
            for j in range(i + MIN_HAIRPIN_UNPAIRED + 1, n):
                if qb[i, j] == 0.0:
                    continue
                factor = self.weight(model.hairpin_wrapped(i, j)) * scale[n - (j - i + 1)]
                if factor:
                    out.append(Term(factor, ((QB, i, j),)))
                for k in range(j + 1, min(j + max_loop + 2, n)):
                    size_5 = k - j - 1
                    min_l = max(k + MIN_HAIRPIN_UNPAIRED + 1, n - 1 + i - (max_loop - size_5))
                    for l in range(min_l, n):
                        if qb[k, l] == 0.0:
                            continue
                        size_3 = (n - 1 - l) + i
                        factor = self.weight(model.interior_wrapped(i, j, k, l)) * scale[size_5 + size_3]
                        if factor:
                            out.append(Term(factor, ((QB, i, j), (QB, k, l))))

        closing = self.weight(model.params.ml_closing)
        for k in range(0, n - 1):
            children = ((QM, 0, k), (QM2, k + 1, n - 1))
            if self._keep(closing, children):
                out.append(Term(closing, children))
        return out


def term_weight(state: McCaskillState, term: Term) -> float:
    """Contribution of one term under the current inside tables."""
    value = term.factor
    for child in term.children:
        value *= state.value(child)
    return value
