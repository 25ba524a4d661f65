from __future__ import annotations
from typing import Dict, Tuple

from rna_fold.structures.pairing import Structure

# Pairs above this probability form the centroid; at most one partner per base can exceed it.
CENTROID_THRESHOLD = 0.5


def centroid_structure(probabilities: Dict[Tuple[int, int], float], seq_len: int) -> Tuple[Structure, float]:
    """
    Structure with the least expected base-pair distance to the ensemble.

    The expected distance of a structure S is
    ``sum_{(i,j) in S} (1 - p_ij) + sum_{(i,j) not in S} p_ij``, which is
    minimized by taking every pair with ``p_ij > 0.5``. Such pairs never
    share a base and never cross, because two crossing or overlapping pairs
    cannot both be present in more than half of the ensemble.

    Parameters
    ----------
    probabilities : Dict[Tuple[int, int], float]
        Sparse base-pair probabilities.
    seq_len : int
        Sequence length.

    Returns
    -------
    Tuple[Structure, float]
        The centroid and its expected distance to the ensemble.
    """
    pairs = []
    distance = 0.0
    for (i, j), prob in probabilities.items():
        if prob > CENTROID_THRESHOLD:
            pairs.append((i, j))
            distance += 1.0 - prob
        else:
            distance += prob
    return Structure.from_pairs(seq_len, pairs), distance
