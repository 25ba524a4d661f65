from __future__ import annotations
import logging
from typing import List, Set, Tuple

import numpy as np

from rna_fold.energies.energy_model import LoopEnergyModel
from rna_fold.folding.mccaskill.mccaskill_state import QB, QB_ANY, TOP, Cell, McCaskillState
from rna_fold.folding.mccaskill.mccaskill_terms import BoltzmannDecomposition, term_weight
from rna_fold.structures.pairing import Quadruplex, Structure

logger = logging.getLogger(__name__)


def sample_structures(model: LoopEnergyModel, state: McCaskillState, count: int,
                      rng: np.random.Generator) -> List[Structure]:
    """
    Draw structures from the Boltzmann ensemble by stochastic traceback.

    At every cell one decomposition term is chosen with probability
    proportional to its weight, so each structure is drawn with probability
    equal to its Boltzmann weight over Z.

    Parameters
    ----------
    model : LoopEnergyModel
        The energy model the inside tables were filled with.
    state : McCaskillState
        Filled inside tables.
    count : int
        Number of independent draws.
    rng : np.random.Generator
        Source of randomness; the caller owns its seed.

    Returns
    -------
    List[Structure]
        `count` sampled structures.
    """
    decomp = BoltzmannDecomposition(model, state)
    samples = [_sample_one(decomp, state, rng) for _ in range(count)]
    logger.debug(f"Drew {count} stochastic samples")
    return samples


def _sample_one(decomp: BoltzmannDecomposition, state: McCaskillState, rng: np.random.Generator) -> Structure:
    pairs: Set[Tuple[int, int]] = set()
    quads: List[Quadruplex] = []
    stack: List[Cell] = [(TOP, 0, 0)]

    while stack:
        cell = stack.pop()
        kind, i, j = cell
        if kind in (QB, QB_ANY):
            pairs.add((i, j))

        terms = decomp.terms(cell)
        if not terms:
            continue
        cumulative = np.cumsum([term_weight(state, term) for term in terms])
        threshold = rng.random() * cumulative[-1]
        choice = min(int(np.searchsorted(cumulative, threshold, side="right")), len(terms) - 1)
        term = terms[choice]
        if term.quad is not None:
            quads.append(term.quad)
        stack.extend(term.children)

    return Structure.from_pairs(state.seq_len, pairs, quads)
