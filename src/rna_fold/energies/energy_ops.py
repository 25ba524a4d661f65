from __future__ import annotations
import math
from typing import Optional, Sequence

from rna_fold.energies.energy_types import Energy, EnergyParameters
from rna_fold.rules.constraints import BASES, MIN_HAIRPIN_UNPAIRED, RTYPE, is_au_like


def loop_extrapolation(table: Sequence[Energy], size: int, lxc: float) -> Energy:
    """
    Loop initiation energy for `size` unpaired bases.

    Sizes beyond the table are extrapolated from the last tabulated entry with
    the Jacobson-Stockmayer term ``lxc * ln(size / max_size)``.

    Parameters
    ----------
    table : Sequence[Energy]
        Initiation energies indexed by loop size (10 cal/mol).
    size : int
        Number of unpaired bases in the loop.
    lxc : float
        Jacobson-Stockmayer coefficient in 10 cal/mol at the model temperature.

    Returns
    -------
    Energy
        Initiation energy, ``math.inf`` for sizes with no defined value.
    """
    if size < 0:
        return math.inf
    max_size = len(table) - 1
    if size <= max_size:
        return table[size]
    return table[max_size] + int(round(lxc * math.log(size / max_size)))


def terminal_penalty(params: EnergyParameters, ptype: int) -> Energy:
    """Terminal AU/GU penalty for a helix end of pair type `ptype`."""
    return params.terminal_au if is_au_like(ptype) else 0


def stem_energy(
    params: EnergyParameters,
    ptype: int,
    base_5: Optional[int] = None,
    base_3: Optional[int] = None,
) -> Energy:
    """
    Energy of a helix end facing an exterior or multi-loop.

    The helix end is the pair ``(p, q)`` of type `ptype`, oriented from the
    loop: `base_5` is the base 5' of `p` and `base_3` the base 3' of `q`.
    Either neighbour may be ``None`` (no dangle).

    Returns
    -------
    Energy
        Terminal AU/GU penalty plus the dangling-end contributions.
    """
    energy = terminal_penalty(params, ptype)
    if base_5 is not None:
        energy += params.dangle5[ptype][base_5]
    if base_3 is not None:
        energy += params.dangle3[ptype][base_3]
    return energy


def terminal_mismatch(params: EnergyParameters, ptype: int, base_5: int, base_3: int) -> Energy:
    """
    Additive terminal mismatch of the closing pair of a loop.

    `ptype` is the type of the closing pair (i, j); `base_5` is i+1 and
    `base_3` is j-1. Seen from inside the loop the pair reads (j, i), so the
    mismatch is the 5' dangle of j-1 plus the 3' dangle of i+1 on that pair.
    """
    inner_type = RTYPE[ptype]
    return params.dangle5[inner_type][base_3] + params.dangle3[inner_type][base_5]


def hairpin_loop_energy(
    params: EnergyParameters,
    ptype: int,
    size: int,
    base_5: int,
    base_3: int,
    loop_seq: Optional[str] = None,
    special_hairpins: bool = True,
) -> Energy:
    """
    Free energy of a hairpin loop.

    Parameters
    ----------
    params : EnergyParameters
        Integer parameter tables.
    ptype : int
        Type of the closing pair (i, j).
    size : int
        Number of unpaired bases, ``j - i - 1``.
    base_5, base_3 : int
        Codes of the first (i+1) and last (j-1) loop bases.
    loop_seq : str, optional
        Sequence from i to j inclusive, used for special tri-, tetra- and hexaloops.
    special_hairpins : bool
        Whether tabulated special loops replace the computed energy.

    Returns
    -------
    Energy
        Loop energy in 10 cal/mol, ``math.inf`` for loops below the minimum size.
    """
    if size < MIN_HAIRPIN_UNPAIRED or not ptype:
        return math.inf

    if special_hairpins and loop_seq is not None and size in (3, 4, 6):
        special = params.special_hairpins.get(loop_seq)
        if special is not None:
            return special

    energy = loop_extrapolation(params.hairpin, size, params.lxc)
    if size == MIN_HAIRPIN_UNPAIRED:
        # Triloops get no mismatch, only the terminal penalty.
        return energy + terminal_penalty(params, ptype)

    energy += terminal_mismatch(params, ptype, base_5, base_3)
    energy += params.hairpin_mismatch_bonus.get(BASES[base_5] + BASES[base_3], 0)
    return energy


def interior_loop_energy(
    params: EnergyParameters,
    ptype_outer: int,
    ptype_inner: int,
    size_5: int,
    size_3: int,
    outer_5: int,
    outer_3: int,
    inner_5: int,
    inner_3: int,
) -> Energy:
    """
    Free energy of a stack, bulge or interior loop.

    The loop is closed by the outer pair (i, j) and the inner pair (k, l);
    `ptype_inner` is the type of the inner pair read from inside the loop,
    i.e. type(l, k).

    Parameters
    ----------
    params : EnergyParameters
        Integer parameter tables.
    ptype_outer, ptype_inner : int
        Pair types of (i, j) and (l, k).
    size_5, size_3 : int
        Unpaired bases on the 5' side (``k - i - 1``) and 3' side (``j - l - 1``).
    outer_5, outer_3 : int
        Codes of i+1 and j-1.
    inner_5, inner_3 : int
        Codes of l+1 and k-1.

    Returns
    -------
    Energy
        Loop energy in 10 cal/mol.

    Notes
    -----
    - Stacks (0x0) use the stacking table.
    - Bulges of size 1 keep the stacking term of the adjacent pairs; longer
      bulges take terminal AU/GU penalties instead.
    - Interior loops combine initiation, a capped Ninio asymmetry term, AU/GU
      closure penalties and first-mismatch bonuses (not for 1xn loops).
    """
    if not ptype_outer or not ptype_inner:
        return math.inf

    if size_5 == 0 and size_3 == 0:
        return params.stack[ptype_outer][ptype_inner]

    if size_5 == 0 or size_3 == 0:
        size = size_5 + size_3
        energy = loop_extrapolation(params.bulge, size, params.lxc)
        if size == 1:
            return energy + params.stack[ptype_outer][ptype_inner]
        return energy + terminal_penalty(params, ptype_outer) + terminal_penalty(params, ptype_inner)

    size = size_5 + size_3
    energy = loop_extrapolation(params.interior, size, params.lxc)
    energy += min(params.ninio_max, params.ninio * abs(size_5 - size_3))
    if is_au_like(ptype_outer):
        energy += params.interior_au_closure
    if is_au_like(ptype_inner):
        energy += params.interior_au_closure
    if min(size_5, size_3) > 1:
        energy += params.interior_mismatch_bonus.get(BASES[outer_5] + BASES[outer_3], 0)
        energy += params.interior_mismatch_bonus.get(BASES[inner_5] + BASES[inner_3], 0)
    return energy


def gquad_energy(params: EnergyParameters, layers: int, linker_total: int) -> Energy:
    """
    Free energy of a G-quadruplex with `layers` quartets and `linker_total` linker bases.

    ``alpha * (layers - 1) + beta * ln(linker_total - 2)``
    """
    return params.gquad_alpha * (layers - 1) + int(round(params.gquad_beta * math.log(linker_total - 2)))
