"""
Unit tests for the upper-triangular DP matrix.

`TriMatrix` stores only cells with ``i <= j``, which is all the interval
recurrences of the MFE engine need.
"""
import math

import pytest

from rna_fold.structures.tri_matrix import TriMatrix


def test_trimatrix_init_size_and_defaults():
    """
    Tests the constructor, size and default fill behavior.
    """
    seq_len = 5
    fill = 123.45
    tri_matrix = TriMatrix[float](seq_len, fill)

    assert tri_matrix.size == seq_len
    for i in range(seq_len):
        for j in range(i, seq_len):
            assert tri_matrix.get(i, j) == fill


def test_trimatrix_set_get_roundtrip():
    """
    Values written to a cell are read back unchanged and leave neighbours alone.
    """
    tri_matrix = TriMatrix[float](4, math.inf)
    tri_matrix.set(1, 3, -42.0)
    assert tri_matrix.get(1, 3) == -42.0
    assert tri_matrix.get(1, 2) == math.inf


@pytest.mark.parametrize("i, j", [(2, 1), (-1, 2), (0, 4), (4, 4)])
def test_trimatrix_rejects_invalid_indices(i, j):
    """
    Lower-triangle and out-of-range cells raise `IndexError`.
    """
    tri_matrix = TriMatrix[int](4, 0)
    with pytest.raises(IndexError):
        tri_matrix.get(i, j)
    with pytest.raises(IndexError):
        tri_matrix.set(i, j, 1)


def test_trimatrix_get_or_returns_default_outside():
    """
    `get_or` maps empty and out-of-range intervals to the default.
    """
    tri_matrix = TriMatrix[int](3, 7)
    assert tri_matrix.get_or(0, 2, -1) == 7
    assert tri_matrix.get_or(2, 1, -1) == -1
    assert tri_matrix.get_or(0, 3, -1) == -1
    assert tri_matrix.get_or(-1, 0, -1) == -1
