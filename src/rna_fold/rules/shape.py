from __future__ import annotations
import math
from typing import Dict, Optional, Sequence

from rna_fold.energies.data.thermo_math import to_dcal

# Deigan et al. (2009) default slope and intercept in kcal/mol.
DEIGAN_SLOPE: float = 1.8
DEIGAN_INTERCEPT: float = -0.6


def deigan_pseudo_energies(
    reactivities: Sequence[Optional[float]],
    slope: float = DEIGAN_SLOPE,
    intercept: float = DEIGAN_INTERCEPT,
) -> Dict[int, int]:
    """
    Convert SHAPE reactivities into per-nucleotide stacking pseudo-energies.

    ``ΔG_SHAPE(i) = m * ln(reactivity(i) + 1) + b`` (kcal/mol), applied to each
    nucleotide of every stacked pair. Missing data (``None``, NaN or a
    negative reactivity) contributes nothing.

    Parameters
    ----------
    reactivities : Sequence[Optional[float]]
        One normalized reactivity per position (0-based).
    slope, intercept : float
        Deigan parameters m and b in kcal/mol.

    Returns
    -------
    Dict[int, int]
        Pseudo-energies in 10 cal/mol units keyed by position.

    References
    ----------
    Deigan, K. E. et al. (2009). Accurate SHAPE-directed RNA structure
    determination. PNAS, 106(1), 97-102.
    """
    energies: Dict[int, int] = {}
    for pos, value in enumerate(reactivities):
        if value is None:
            continue
        value = float(value)
        if math.isnan(value) or value < 0:
            continue
        energy = to_dcal(slope * math.log(value + 1.0) + intercept)
        if energy:
            energies[pos] = int(energy)
    return energies
