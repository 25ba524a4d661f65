"""
Unit tests for the nucleotide normalization helpers.

This module validates how raw input is turned into the RNA alphabet:
whole-sequence validation and the integer encoding used by the energy tables.
"""
import pytest

from rna_fold.errors import InvalidSequence
from rna_fold.utils.nucleotide_utils import encode_sequence, normalize_sequence


def test_normalize_sequence_strips_whitespace_and_converts_dna():
    """
    Whitespace anywhere in the input is dropped and DNA letters become RNA.
    """
    assert normalize_sequence(" acgt\nNN u ") == "ACGUNNU"


@pytest.mark.parametrize("raw", ["", "   ", "ACGX", "AC-GU"])
def test_normalize_sequence_rejects_bad_input(raw):
    """
    Empty sequences and unknown symbols raise `InvalidSequence`.
    """
    with pytest.raises(InvalidSequence):
        normalize_sequence(raw)


def test_normalize_sequence_rejects_non_strings():
    """
    Only strings are accepted as sequences.
    """
    with pytest.raises(InvalidSequence):
        normalize_sequence(["A", "C"])


def test_invalid_sequence_is_a_value_error():
    """
    Callers catching `ValueError` also see sequence errors.
    """
    with pytest.raises(ValueError):
        normalize_sequence("XYZ")


def test_encode_sequence_uses_fixed_codes():
    """
    N is 0, then A, C, G, U in alphabetical order.
    """
    assert encode_sequence("NACGU") == (0, 1, 2, 3, 4)
