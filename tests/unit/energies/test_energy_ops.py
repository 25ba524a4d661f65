"""
Unit tests for the loop energy functions operating on raw parameter tables.
"""
import math

import pytest

from rna_fold.energies.energy_loader import load_energy_parameters
from rna_fold.energies.energy_ops import (
    gquad_energy,
    hairpin_loop_energy,
    interior_loop_energy,
    loop_extrapolation,
    stem_energy,
    terminal_penalty,
)
from rna_fold.rules.constraints import PAIR_INDEX
from rna_fold.utils.nucleotide_utils import BASE_CODES

A, C, G, U = (BASE_CODES[b] for b in "ACGU")
CG, GC, AU, UA, GU = (PAIR_INDEX[p] for p in ("CG", "GC", "AU", "UA", "GU"))


@pytest.fixture(scope="module")
def params():
    return load_energy_parameters()


# ------------------------------
# loop_extrapolation
# ------------------------------

def test_loop_extrapolation_within_table(params):
    assert loop_extrapolation(params.hairpin, 5, params.lxc) == params.hairpin[5]


def test_loop_extrapolation_beyond_table(params):
    """
    Loops longer than the table grow logarithmically from the last entry.
    """
    expected = params.hairpin[30] + round(params.lxc * math.log(40 / 30))
    assert loop_extrapolation(params.hairpin, 40, params.lxc) == expected


def test_loop_extrapolation_negative_size_is_forbidden(params):
    assert math.isinf(loop_extrapolation(params.hairpin, -1, params.lxc))


# ------------------------------
# helix ends
# ------------------------------

def test_terminal_penalty_only_for_au_like(params):
    assert terminal_penalty(params, AU) == params.terminal_au
    assert terminal_penalty(params, GU) == params.terminal_au
    assert terminal_penalty(params, GC) == 0


def test_stem_energy_adds_dangles(params):
    """
    Each present neighbour adds its dangle term on top of the terminal penalty.
    """
    assert stem_energy(params, AU) == params.terminal_au
    expected = params.terminal_au + params.dangle5[AU][G] + params.dangle3[AU][A]
    assert stem_energy(params, AU, G, A) == expected
    assert stem_energy(params, GC, None, A) == params.dangle3[GC][A]


# ------------------------------
# hairpins
# ------------------------------

def test_hairpin_triloop_gets_terminal_penalty_only(params):
    assert hairpin_loop_energy(params, GC, 3, A, A) == params.hairpin[3]
    assert hairpin_loop_energy(params, AU, 3, A, A) == params.hairpin[3] + params.terminal_au


def test_hairpin_below_minimum_is_forbidden(params):
    assert math.isinf(hairpin_loop_energy(params, GC, 2, A, A))
    assert math.isinf(hairpin_loop_energy(params, 0, 5, A, A))


def test_special_tetraloop_replaces_computed_energy(params):
    """
    Tabulated loops are used only when special hairpins are enabled.
    """
    special = hairpin_loop_energy(params, CG, 4, U, U, "CUUCGG", special_hairpins=True)
    assert special == params.special_hairpins["CUUCGG"]
    generic = hairpin_loop_energy(params, CG, 4, U, U, "CUUCGG", special_hairpins=False)
    assert generic != special


def test_hairpin_mismatch_bonus_applies(params):
    """
    Larger hairpins add the terminal mismatch and the first-mismatch bonus.
    """
    base = hairpin_loop_energy(params, GC, 4, A, A)
    bonus = hairpin_loop_energy(params, GC, 4, U, U)
    mismatch_diff = (params.dangle5[CG][U] + params.dangle3[CG][U]) - (params.dangle5[CG][A] + params.dangle3[CG][A])
    assert bonus - base == mismatch_diff + params.hairpin_mismatch_bonus["UU"]


# ------------------------------
# interior loops
# ------------------------------

def test_stack_uses_stacking_table(params):
    assert interior_loop_energy(params, GC, CG, 0, 0, A, A, A, A) == params.stack[GC][CG]


def test_single_bulge_keeps_stacking_term(params):
    energy = interior_loop_energy(params, GC, CG, 1, 0, A, A, A, A)
    assert energy == params.bulge[1] + params.stack[GC][CG]


def test_long_bulge_uses_terminal_penalties(params):
    energy = interior_loop_energy(params, AU, CG, 0, 3, A, A, A, A)
    assert energy == params.bulge[3] + params.terminal_au


def test_interior_loop_asymmetry_and_closure(params):
    """
    A 1x3 loop pays initiation, capped asymmetry and AU closures but no mismatch bonus.
    """
    energy = interior_loop_energy(params, AU, UA, 1, 3, G, A, G, A)
    expected = params.interior[4] + min(params.ninio_max, 2 * params.ninio) + 2 * params.interior_au_closure
    assert energy == expected


def test_interior_loop_mismatch_bonus_for_2x2(params):
    plain = interior_loop_energy(params, GC, GC, 2, 2, C, C, C, C)
    bonus = interior_loop_energy(params, GC, GC, 2, 2, G, A, C, C)
    assert bonus - plain == params.interior_mismatch_bonus["GA"]


def test_interior_loop_without_pair_type_is_forbidden(params):
    assert math.isinf(interior_loop_energy(params, 0, GC, 1, 1, A, A, A, A))


# ------------------------------
# G-quadruplexes
# ------------------------------

def test_gquad_energy_formula(params):
    """
    ``alpha * (L - 1) + beta * ln(linkers - 2)``
    """
    assert gquad_energy(params, 2, 3) == params.gquad_alpha
    assert gquad_energy(params, 3, 6) == 2 * params.gquad_alpha + round(params.gquad_beta * math.log(4))
