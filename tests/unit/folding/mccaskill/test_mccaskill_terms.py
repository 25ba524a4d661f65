"""
Unit tests for the shared decomposition grammar of the partition function.
"""
import math

import pytest

from rna_fold.energies.energy_types import ModelDetails
from rna_fold.folding.context import build_context
from rna_fold.folding.mccaskill.mccaskill_state import QB, QB_ANY, Q5, TOP, make_mccaskill_state
from rna_fold.folding.mccaskill.mccaskill_terms import BoltzmannDecomposition, Term, term_weight


def decomposition(seq, model=None, pf_scale=1.0):
    ctx = build_context(seq, model)
    state = make_mccaskill_state(ctx.length, pf_scale, ctx.kt, ctx.details.no_lonely_pairs)
    return BoltzmannDecomposition(ctx.pf_energy_model, state), state, ctx


def test_hairpin_cell_has_single_term():
    """
    A pair that can only close a hairpin has one leaf term with the scaled hairpin weight.
    """
    decomp, state, ctx = decomposition("GAAAC", pf_scale=2.0)
    terms = decomp.terms((QB, 0, 4))
    assert len(terms) == 1
    assert terms[0].children == ()
    assert terms[0].factor == pytest.approx(math.exp(-540 / ctx.kt) * 2.0 ** -5)


def test_unpairable_cell_has_no_terms():
    decomp, _, _ = decomposition("GAAAA")
    assert decomp.terms((QB_ANY, 0, 4)) == []


def test_linear_top_cell_is_full_prefix():
    decomp, state, _ = decomposition("GAAAC")
    assert decomp.terms((TOP, 0, 0)) == [Term(1.0, ((Q5, 0, 5),))]


def test_zero_weight_children_are_dropped():
    """
    A stack on an inner pair with no weight yet is not offered as a term.
    """
    decomp, state, _ = decomposition("GGGAAACCC")
    kinds = [term.children for term in decomp.terms((QB, 0, 8))]
    assert ((QB_ANY, 1, 7),) not in kinds
    state.qb[1, 7] = 1.0
    kinds = [term.children for term in decomp.terms((QB, 0, 8))]
    assert ((QB_ANY, 1, 7),) in kinds


def test_stacked_pair_terms_with_lonely_pairs_suppressed():
    decomp, state, _ = decomposition("GGGAAACCC", ModelDetails(no_lonely_pairs=True))
    state.qb_any[2, 6] = 1.0
    terms = decomp.terms((QB, 1, 7))
    assert [term.children for term in terms] == [((QB_ANY, 2, 6),)]
    assert decomp.terms((QB, 2, 6)) == []


def test_unknown_kind_raises():
    decomp, _, _ = decomposition("GAAAC")
    with pytest.raises(ValueError):
        decomp.terms((42, 0, 0))


def test_term_weight_multiplies_children():
    state = make_mccaskill_state(5, 1.0, 61.6)
    state.qb[0, 4] = 3.0
    state.q5[5] = 2.0
    assert term_weight(state, Term(0.5, ((QB, 0, 4), (Q5, 0, 5)))) == 3.0
