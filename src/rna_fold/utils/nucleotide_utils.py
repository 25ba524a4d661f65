from __future__ import annotations
from typing import Final, Tuple

from rna_fold.errors import InvalidSequence

_ALPHABET = frozenset("ACGUN")

# Integer codes for encoded sequences; N never pairs.
BASE_CODES: Final[dict[str, int]] = {"N": 0, "A": 1, "C": 2, "G": 3, "U": 4}


def normalize_sequence(seq_raw: str) -> str:
    """
    Normalize a DNA/RNA sequence to the RNA alphabet and validate it.

    Whitespace is stripped, case is folded and T becomes U.

    Raises
    ------
    InvalidSequence
        If the sequence is empty or contains a symbol outside A, C, G, U, T, N.
    """
    if not isinstance(seq_raw, str):
        raise InvalidSequence(f"Sequence must be a string, got {type(seq_raw).__name__}.")

    seq = "".join(seq_raw.split()).upper().replace("T", "U")
    if not seq:
        raise InvalidSequence("Sequence is empty.")

    bad = sorted(set(seq) - _ALPHABET)
    if bad:
        raise InvalidSequence(f"Sequence contains unsupported symbols: {''.join(bad)}")

    return seq


def encode_sequence(seq: str) -> Tuple[int, ...]:
    """Encode a normalized sequence as base codes (N=0, A=1, C=2, G=3, U=4)."""
    return tuple(BASE_CODES[base] for base in seq)
