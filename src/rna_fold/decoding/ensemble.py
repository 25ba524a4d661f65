from __future__ import annotations
import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

PairKey = Tuple[int, int]

# Probability above which a state dominates a position in the ensemble string.
DOMINANT_PROBABILITY = 0.667


def unpaired_probabilities(probabilities: Dict[PairKey, float], seq_len: int,
                           quad_probabilities: Optional[Sequence[float]] = None) -> np.ndarray:
    """
    Per-position probability of being unpaired.

    ``1 - sum_j P(i, j) - P(i in a quadruplex)``, clipped to ``[0, 1]``.
    """
    paired = np.zeros(seq_len)
    for (i, j), prob in probabilities.items():
        paired[i] += prob
        paired[j] += prob
    if quad_probabilities is not None:
        paired += np.asarray(quad_probabilities, dtype=float)
    return np.clip(1.0 - paired, 0.0, 1.0)


def pair_list(probabilities: Dict[PairKey, float], cutoff: float = 1e-5) -> List[Tuple[int, int, float]]:
    """Pairs with probability at or above `cutoff` as ``(i, j, p)``, sorted by position."""
    return sorted((i, j, prob) for (i, j), prob in probabilities.items() if prob >= cutoff)


def ensemble_symbol_string(probabilities: Dict[PairKey, float], seq_len: int,
                           quad_probabilities: Optional[Sequence[float]] = None) -> str:
    """
    Condensed view of the ensemble, one symbol per position.

    ``.`` mostly unpaired, ``(``/``)`` mostly paired downstream/upstream,
    ``{``/``}`` paired with a weaker preference for one direction, ``|``
    paired without a preferred direction and ``,`` weakly paired.
    """
    downstream = np.zeros(seq_len)
    upstream = np.zeros(seq_len)
    for (i, j), prob in probabilities.items():
        downstream[i] += prob
        upstream[j] += prob
    unpaired = unpaired_probabilities(probabilities, seq_len, quad_probabilities)

    symbols = []
    for pos in range(seq_len):
        p_unpaired, p_down, p_up = unpaired[pos], downstream[pos], upstream[pos]
        if p_unpaired > DOMINANT_PROBABILITY:
            symbols.append(".")
        elif p_down > DOMINANT_PROBABILITY:
            symbols.append("(")
        elif p_up > DOMINANT_PROBABILITY:
            symbols.append(")")
        elif p_down + p_up > p_unpaired:
            if p_down / (p_down + p_up) > DOMINANT_PROBABILITY:
                symbols.append("{")
            elif p_up / (p_down + p_up) > DOMINANT_PROBABILITY:
                symbols.append("}")
            else:
                symbols.append("|")
        else:
            symbols.append(",")
    return "".join(symbols)


def ensemble_diversity(probabilities: Dict[PairKey, float]) -> float:
    """Mean base-pair distance between two structures drawn from the ensemble."""
    return 2.0 * sum(prob * (1.0 - prob) for prob in probabilities.values())


def structure_frequency(energy: float, log_z: float, kt: float) -> float:
    """Boltzmann probability of a structure with `energy` (10 cal/mol) given ``ln Z``."""
    if math.isinf(energy):
        return 0.0
    return math.exp(-energy / kt - log_z)
