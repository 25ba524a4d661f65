from __future__ import annotations
import logging
from typing import Dict, List, Sequence, Tuple

import numpy as np

from rna_fold.structures.pairing import Structure

logger = logging.getLogger(__name__)


def mea_cutoff(gamma: float) -> float:
    """Pairs below this probability cannot improve the MEA score and are skipped."""
    return 1e-4 / (1.0 + gamma)


def mea_structure(
    probabilities: Dict[Tuple[int, int], float],
    unpaired_probabilities: Sequence[float],
    gamma: float = 1.0,
) -> Tuple[Structure, float]:
    """
    Maximum expected accuracy structure.

    Maximizes ``gamma * sum of p_ij over pairs + sum of p_unpaired(i) over
    unpaired positions`` with a Nussinov-style interval DP over the pair
    probabilities. On ties a base is left unpaired.

    Parameters
    ----------
    probabilities : Dict[Tuple[int, int], float]
        Sparse base-pair probabilities.
    unpaired_probabilities : Sequence[float]
        Per-position probability of being unpaired.
    gamma : float
        Weight of paired against unpaired positions; larger values give more pairs.

    Returns
    -------
    Tuple[Structure, float]
        The MEA structure and its score.
    """
    n = len(unpaired_probabilities)
    cutoff = mea_cutoff(gamma)
    partners: List[List[Tuple[int, float]]] = [[] for _ in range(n)]
    for (i, j), prob in probabilities.items():
        if prob >= cutoff:
            partners[i].append((j, prob))
    for row in partners:
        row.sort()

    # score[i, j] for interval i..j; index j+1 = i denotes the empty interval.
    score = np.zeros((n + 1, n + 1))
    choice = np.full((n + 1, n + 1), -1, dtype=int)
    for i in range(n - 1, -1, -1):
        for j in range(i, n):
            best = float(unpaired_probabilities[i]) + score[i + 1, j]
            best_k = -1
            for k, prob in partners[i]:
                if k > j:
                    break
                inner = score[i + 1, k - 1] if k - 1 >= i + 1 else 0.0
                rest = score[k + 1, j] if k + 1 <= j else 0.0
                cand = gamma * prob + inner + rest
                if cand > best:
                    best, best_k = cand, k
            score[i, j] = best
            choice[i, j] = best_k

    pairs = []
    stack = [(0, n - 1)]
    while stack:
        i, j = stack.pop()
        if i > j:
            continue
        k = int(choice[i, j])
        if k < 0:
            stack.append((i + 1, j))
        else:
            pairs.append((i, k))
            stack.append((i + 1, k - 1))
            stack.append((k + 1, j))

    total = float(score[0, n - 1]) if n else 0.0
    logger.debug(f"MEA (gamma={gamma}) score {total:.4f} with {len(pairs)} pairs")
    return Structure.from_pairs(n, pairs), total
