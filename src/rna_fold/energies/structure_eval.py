from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Tuple

from rna_fold.energies.energy_model import LoopEnergyModel
from rna_fold.energies.energy_types import Energy
from rna_fold.errors import InvalidStructure
from rna_fold.rules.motifs import MotifHit
from rna_fold.structures.pairing import Quadruplex, Structure

logger = logging.getLogger(__name__)

# Energy of a loop element as a function of (uses 5' dangle, uses 3' dangle).
DangleEnergy = Callable[[bool, bool], Energy]


@dataclass(frozen=True, slots=True)
class LoopElement:
    """
    A helix end or quadruplex lining a loop.

    Attributes
    ----------
    energy : DangleEnergy
        Contribution given the dangle choice.
    gap_before : int
        Unpaired bases between the previous element (or loop boundary) and this one.
    can_dangle : bool
        False for quadruplexes, which never take dangles.
    """
    energy: DangleEnergy
    gap_before: int
    can_dangle: bool = True


def evaluate_structure(model: LoopEnergyModel, structure: Structure) -> Energy:
    """
    Free energy of a structure under a bound energy model.

    The structure is decomposed into loops and each loop is scored with the
    same loop functions the folding engines use, so the energy of an MFE
    structure equals the MFE exactly.

    Parameters
    ----------
    model : LoopEnergyModel
        Sequence-bound energy model.
    structure : Structure
        Structure over the same sequence.

    Returns
    -------
    Energy
        Energy in 10 cal/mol; ``math.inf`` if the structure holds a loop the
        model forbids (non-canonical or constrained pair, too large interior
        loop, violated hard constraint).

    Raises
    ------
    InvalidStructure
        If the structure length does not match or it contains quadruplexes
        while they are disabled.
    """
    n = model.n
    if structure.length != n:
        raise InvalidStructure(f"Structure length {structure.length} does not match sequence length {n}.")
    if structure.quadruplexes and not model.details.gquad:
        raise InvalidStructure("Structure contains G-quadruplexes but the model has them disabled.")

    partner = structure.partner_table()
    quad_at: Dict[int, Quadruplex] = {quad.start: quad for quad in structure.quadruplexes}

    total: Energy = 0
    for pair in structure.pairs:
        loop_energy = _closed_loop_energy(model, pair.base_i, pair.base_j, partner, quad_at)
        logger.debug(f"Loop closed by ({pair.base_i}, {pair.base_j}): {loop_energy}")
        total += loop_energy
        if math.isinf(total):
            return math.inf

    if model.circular:
        total += _circular_exterior_energy(model, partner)
    else:
        total += _exterior_energy(model, partner, quad_at)
    return total


# ---------- loop scanning ----------

def _scan_loop(start: int, stop: int, partner: Sequence[int], quad_at: Dict[int, Quadruplex]):
    """
    Walk the positions ``start..stop`` of one loop.

    Returns the enclosed helices, quadruplexes and unpaired positions, each in
    5' to 3' order, plus the elements with the gap before each and the
    trailing gap.
    """
    helices: List[Tuple[int, int]] = []
    quads: List[Quadruplex] = []
    unpaired: List[int] = []
    elements: List[Tuple[str, object, int]] = []
    gap = 0
    pos = start
    while pos <= stop:
        if pos in quad_at:
            quad = quad_at[pos]
            quads.append(quad)
            elements.append(("quad", quad, gap))
            gap = 0
            pos = quad.end + 1
        elif partner[pos] > pos:
            helices.append((pos, partner[pos]))
            elements.append(("pair", (pos, partner[pos]), gap))
            gap = 0
            pos = partner[pos] + 1
        else:
            unpaired.append(pos)
            gap += 1
            pos += 1
    return helices, quads, unpaired, elements, gap


def _quad_energy(model: LoopEnergyModel, quad: Quadruplex) -> Energy:
    for candidate, energy in model.gquads(quad.start, quad.end):
        if candidate == quad:
            return energy
    return math.inf


def _unpaired_cost(model: LoopEnergyModel, positions: Sequence[int], in_multiloop: bool) -> Energy:
    cost: Energy = 0
    for pos in positions:
        cost += model.ml_unpaired(pos, pos) if in_multiloop else model.unpaired(pos, pos)
    return cost


# ---------- closed loops ----------

def _closed_loop_energy(model: LoopEnergyModel, i: int, j: int, partner: Sequence[int],
                        quad_at: Dict[int, Quadruplex]) -> Energy:
    helices, quads, unpaired, elements, tail_gap = _scan_loop(i + 1, j - 1, partner, quad_at)

    if not quads:
        if not helices:
            return model.hairpin(i, j)
        if len(helices) == 1:
            k, l = helices[0]
            return model.interior(i, j, k, l)
    elif not helices and len(quads) == 1:
        # A quadruplex alone inside a pair is not a loop type of the model.
        return math.inf

    branch_elements = []
    for kind, payload, gap in elements:
        if kind == "pair":
            p, q = payload
            branch_elements.append(LoopElement(
                energy=lambda d5, d3, p=p, q=q: model.ml_stem(p, q, d5, d3), gap_before=gap))
        else:
            quad_energy = _quad_energy(model, payload) + model.gquad_ml_stem()
            branch_elements.append(LoopElement(energy=lambda d5, d3, e=quad_energy: e,
                                               gap_before=gap, can_dangle=False))

    # The closing helix seen from inside: its 3' neighbour is i+1, its 5' neighbour j-1.
    closing = LoopElement(energy=lambda d5, d3: model.ml_closing(i, j, d5, d3), gap_before=tail_gap)
    stems = _best_cyclic_dangles(model.dangles, closing, branch_elements)
    return stems + _unpaired_cost(model, unpaired, in_multiloop=True)


# ---------- exterior loops ----------

def _exterior_energy(model: LoopEnergyModel, partner: Sequence[int], quad_at: Dict[int, Quadruplex]) -> Energy:
    _, _, unpaired, elements, tail_gap = _scan_loop(0, model.n - 1, partner, quad_at)
    chain = []
    for kind, payload, gap in elements:
        if kind == "pair":
            p, q = payload
            chain.append(LoopElement(energy=lambda d5, d3, p=p, q=q: model.ext_stem(p, q, d5, d3), gap_before=gap))
        else:
            quad_energy = _quad_energy(model, payload)
            chain.append(LoopElement(energy=lambda d5, d3, e=quad_energy: e, gap_before=gap, can_dangle=False))
    stems = _best_chain_dangles(model.dangles, chain, tail_gap)
    return stems + _unpaired_cost(model, unpaired, in_multiloop=False)


def _circular_exterior_energy(model: LoopEnergyModel, partner: Sequence[int]) -> Energy:
    n = model.n
    helices, _, unpaired, elements, tail_gap = _scan_loop(0, n - 1, partner, {})
    if not helices:
        return model.unpaired(0, n - 1)
    if len(helices) == 1:
        return model.hairpin_wrapped(*helices[0])
    if len(helices) == 2:
        (i, j), (k, l) = helices
        return model.interior_wrapped(i, j, k, l)

    chain = [
        LoopElement(energy=lambda d5, d3, p=payload[0], q=payload[1]: model.ml_stem(p, q, d5, d3), gap_before=gap)
        for _, payload, gap in elements
    ]
    # Dangles do not reach across the origin of the circle with dangles=1.
    stems = _best_chain_dangles(model.dangles, chain, tail_gap)
    return model.params.ml_closing + stems + _unpaired_cost(model, unpaired, in_multiloop=True)


# ---------- dangle assignment ----------

def _fixed_dangles(dangles: int, element: LoopElement) -> Energy:
    use = dangles == 2 and element.can_dangle
    return element.energy(use, use)


def _options(element: LoopElement, gap_before: int, gap_after: int):
    """Dangle choices open to an element given the unpaired gaps around it."""
    fives = (False, True) if element.can_dangle and gap_before > 0 else (False,)
    threes = (False, True) if element.can_dangle and gap_after > 0 else (False,)
    return [(d5, d3) for d5 in fives for d3 in threes]


def _best_chain_dangles(dangles: int, chain: List[LoopElement], tail_gap: int) -> Energy:
    """
    Minimum total element energy over a linear chain of loop elements.

    With dangles=1 each unpaired base can serve as a dangle of at most one
    neighbouring element; a single base between two elements goes to one
    side at most.
    """
    if dangles != 1:
        return sum((_fixed_dangles(dangles, element) for element in chain), 0)
    return _chain_dp(chain, tail_gap, first_blocked=False, last_blocked=False)


def _chain_dp(chain: List[LoopElement], tail_gap: int, first_blocked: bool,
              last_blocked: bool) -> Energy:
    """
    Linear DP over `chain` with the previous element's 3' choice as state.

    `first_blocked` / `last_blocked` forbid the leading and trailing gaps
    when they are a single base already claimed outside the chain.
    """
    if not chain:
        return 0
    # state: previous element used its 3' dangle -> best energy so far
    states: Dict[bool, Energy] = {False: 0}
    for idx, element in enumerate(chain):
        gap_after = chain[idx + 1].gap_before if idx + 1 < len(chain) else tail_gap
        new_states: Dict[bool, Energy] = {}
        for prev_d3, acc in states.items():
            for d5, d3 in _options(element, element.gap_before, gap_after):
                if d5 and idx == 0 and first_blocked:
                    continue
                if d5 and prev_d3 and element.gap_before == 1:
                    continue
                if d3 and idx == len(chain) - 1 and last_blocked:
                    continue
                cand = acc + element.energy(d5, d3)
                if cand < new_states.get(d3, math.inf):
                    new_states[d3] = cand
        states = new_states
    return min(states.values(), default=math.inf)


def _best_cyclic_dangles(dangles: int, closing: LoopElement, branches: List[LoopElement]) -> Energy:
    """
    Minimum element energy around a multiloop.

    The loop is cyclic: the closing helix (3' side at i+1, 5' side at j-1) is
    followed by the branches and back. `closing.gap_before` is the gap
    between the last branch and j-1.
    """
    if dangles != 1:
        return (_fixed_dangles(dangles, closing)
                + sum((_fixed_dangles(dangles, branch) for branch in branches), 0))

    gap_5 = closing.gap_before
    gap_3 = branches[0].gap_before if branches else 0
    best = math.inf
    for d5, d3 in _options(closing, gap_5, gap_3):
        head = closing.energy(d5, d3)
        if math.isinf(head):
            continue
        rest = _chain_dp(branches, gap_5,
                            first_blocked=d3 and gap_3 == 1,
                            last_blocked=d5 and gap_5 == 1)
        best = min(best, head + rest)
    return best


# ---------- motif detection ----------

def detect_motifs(model: LoopEnergyModel, structure: Structure, motifs) -> List[MotifHit]:
    """
    List the ligand motifs formed as loops of `structure`.

    Parameters
    ----------
    model : LoopEnergyModel
        Sequence-bound energy model.
    structure : Structure
        Structure to inspect.
    motifs : Iterable[LigandMotif]
        Motifs to look for.

    Returns
    -------
    List[MotifHit]
        One hit per loop matching a motif, in 5' order.
    """
    seq = model.seq
    partner = structure.partner_table()
    quad_at = {quad.start: quad for quad in structure.quadruplexes}
    hits: List[MotifHit] = []
    for pair in structure.pairs:
        i, j = pair.as_tuple()
        helices, quads, _, _, _ = _scan_loop(i + 1, j - 1, partner, quad_at)
        if quads or len(helices) > 1:
            continue
        for motif in motifs:
            if motif.is_hairpin and not helices:
                if seq[i:j + 1] == motif.seq_5:
                    hits.append(MotifHit(motif=motif, outer=(i, j)))
            elif not motif.is_hairpin and helices:
                k, l = helices[0]
                if seq[i:k + 1] == motif.seq_5 and seq[l:j + 1] == motif.seq_3:
                    hits.append(MotifHit(motif=motif, outer=(i, j), inner=(k, l)))
    return hits
