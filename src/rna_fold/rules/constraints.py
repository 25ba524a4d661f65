from __future__ import annotations
from typing import Final, Tuple


# Minimum number of unpaired nucleotides required in a hairpin loop.
MIN_HAIRPIN_UNPAIRED: Final[int] = 3

# ---- Alphabet and pair types -------------------------------------------------

BASES: Final[str] = "NACGU"

# Pair types in the usual nearest-neighbour order; index 0 means "no pair".
PAIR_NAMES: Final[Tuple[str, ...]] = ("", "CG", "GC", "GU", "UG", "AU", "UA")
PAIR_INDEX: Final[dict[str, int]] = {name: idx for idx, name in enumerate(PAIR_NAMES) if name}

# Reverse orientation of each pair type: rtype[type(i,j)] == type(j,i).
RTYPE: Final[Tuple[int, ...]] = (0, 2, 1, 4, 3, 6, 5)

_WOBBLE: Final[frozenset[int]] = frozenset({PAIR_INDEX["GU"], PAIR_INDEX["UG"]})
_AU_LIKE: Final[frozenset[int]] = frozenset({
    PAIR_INDEX["GU"], PAIR_INDEX["UG"], PAIR_INDEX["AU"], PAIR_INDEX["UA"]
})


def _build_pair_matrix() -> Tuple[Tuple[int, ...], ...]:
    rows = []
    for b1 in BASES:
        rows.append(tuple(PAIR_INDEX.get(b1 + b2, 0) for b2 in BASES))
    return tuple(rows)


# PAIR_MATRIX[code_i][code_j] -> pair type or 0
PAIR_MATRIX: Final[Tuple[Tuple[int, ...], ...]] = _build_pair_matrix()


def pair_type(code_i: int, code_j: int, no_gu: bool = False) -> int:
    """
    Return the pair type of two encoded bases, or 0 when they cannot pair.

    Parameters
    ----------
    code_i, code_j : int
        Base codes from `BASE_CODES`.
    no_gu : bool
        If True, GU wobble pairs are rejected.
    """
    ptype = PAIR_MATRIX[code_i][code_j]
    if no_gu and ptype in _WOBBLE:
        return 0
    return ptype


def is_au_like(ptype: int) -> bool:
    """True for AU, UA, GU and UG pairs, which carry terminal AU penalties."""
    return ptype in _AU_LIKE
