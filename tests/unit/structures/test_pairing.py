"""
Unit tests for the structure representation.

This module validates `Pair`, `Quadruplex` and `Structure`: dot-bracket
parsing and rendering (including ``+`` runs for G-quadruplexes), the
validation of nested pairings and the small helpers built on top of them.
"""
from dataclasses import FrozenInstanceError

import pytest

from rna_fold.errors import InvalidStructure
from rna_fold.structures.pairing import (
    Pair,
    Quadruplex,
    Structure,
    as_structure,
)


def test_pair_as_tuple():
    assert Pair(base_i=2, base_j=6).as_tuple() == (2, 6)


def test_pair_is_frozen_and_ordered():
    """
    Pairs are immutable and sort by their 5' index first.
    """
    base_pair = Pair(1, 5)
    with pytest.raises(FrozenInstanceError):
        base_pair.base_i = 3  # type: ignore[misc]
    assert sorted([Pair(3, 4), Pair(1, 9), Pair(1, 5)]) == [Pair(1, 5), Pair(1, 9), Pair(3, 4)]


def test_quadruplex_geometry():
    """
    Run starts, guanine positions and the end follow from layers and linkers.
    """
    quad = Quadruplex(start=2, layers=2, linkers=(1, 3, 1))
    assert quad.run_starts() == (2, 5, 10, 13)
    assert quad.g_positions() == [2, 3, 5, 6, 10, 11, 13, 14]
    assert quad.end == 14


def test_dotbracket_roundtrip_with_nested_pairs():
    """
    Parsing and rendering a nested structure is lossless.
    """
    dot_bracket = "((..((...))..))."
    structure = Structure.from_dotbracket(dot_bracket)
    assert structure.length == 16
    assert structure.pair_set() == {(0, 14), (1, 13), (4, 10), (5, 9)}
    assert structure.to_dotbracket() == dot_bracket
    assert str(structure) == dot_bracket


def test_dotbracket_parses_quadruplex():
    """
    Four equally long ``+`` runs form one quadruplex.
    """
    structure = Structure.from_dotbracket("++.++.++.++")
    assert structure.pairs == ()
    assert structure.quadruplexes == (Quadruplex(start=0, layers=2, linkers=(1, 1, 1)),)
    assert structure.quadruplex_positions() == {0, 1, 3, 4, 6, 7, 9, 10}
    assert structure.to_dotbracket() == "++.++.++.++"


@pytest.mark.parametrize("dot_bracket", ["(()", "())", "(.[.)", "++.++.++", "++.+.++.++"])
def test_dotbracket_rejects_malformed_input(dot_bracket):
    """
    Unbalanced brackets, foreign symbols and malformed ``+`` groups are errors.
    """
    with pytest.raises(InvalidStructure):
        Structure.from_dotbracket(dot_bracket)


def test_from_pairs_normalizes_and_sorts():
    """
    Reversed tuples are flipped and pairs come out sorted.
    """
    structure = Structure.from_pairs(10, [(8, 1), Pair(3, 6)])
    assert structure.pairs == (Pair(1, 8), Pair(3, 6))


@pytest.mark.parametrize("pairs", [
    [(0, 10)],            # out of range
    [(0, 5), (5, 8)],     # position paired twice
    [(0, 5), (3, 8)],     # crossing
])
def test_from_pairs_rejects_invalid_pairings(pairs):
    """
    Validation catches range errors, double pairing and pseudoknots.
    """
    with pytest.raises(InvalidStructure):
        Structure.from_pairs(10, pairs)


def test_quadruplex_may_not_overlap_pairs():
    """
    Linkers and G-runs of a quadruplex must stay unpaired.
    """
    quad = Quadruplex(start=0, layers=2, linkers=(1, 1, 1))
    with pytest.raises(InvalidStructure):
        Structure.from_pairs(15, [(2, 14)], [quad])


def test_partner_table_is_symmetric():
    """
    The partner table lists partners symmetrically and -1 for unpaired bases.
    """
    structure = Structure.from_dotbracket("((.)).")
    table = structure.partner_table()
    assert table == [4, 3, -1, 1, 0, -1]


def test_unpaired_structure():
    """
    The open chain has neither pairs nor quadruplexes.
    """
    structure = Structure.unpaired(4)
    assert structure.to_dotbracket() == "...."


def test_as_structure_accepts_strings_and_checks_length():
    """
    Strings are parsed; a length mismatch is reported as `InvalidStructure`.
    """
    structure = as_structure("(...)", 5)
    assert structure.pair_set() == {(0, 4)}
    assert as_structure(structure) is structure
    with pytest.raises(InvalidStructure):
        as_structure("(...)", 6)
