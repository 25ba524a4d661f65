"""
Unit tests for `LoopEnergyModel`, the sequence-bound view of the energy
tables with hard and soft constraints applied at lookup time.
"""
import math

import pytest

from rna_fold.energies.energy_loader import load_energy_parameters
from rna_fold.energies.energy_model import build_energy_model
from rna_fold.energies.energy_types import ModelDetails
from rna_fold.rules.constraint_mask import ConstraintMask
from rna_fold.rules.motifs import LigandMotif

SEQ = "GGGAAACCC"


@pytest.fixture(scope="module")
def params():
    return load_energy_parameters()


def make_model(params, seq=SEQ, mask=None, **knobs):
    return build_energy_model(seq, params, ModelDetails(**knobs), mask or ConstraintMask.empty())


def test_pair_types_respect_minimum_hairpin(params):
    """
    Pairs must enclose at least three bases and be canonical.
    """
    model = make_model(params)
    assert model.can_pair(0, 8)
    assert model.can_pair(2, 6)
    assert not model.can_pair(3, 6)
    assert not make_model(params, "GAACAAC").can_pair(0, 3)


def test_no_gu_pairs(params):
    assert make_model(params, "GAAAU").can_pair(0, 4)
    assert not make_model(params, "GAAAU", no_gu_pairs=True).can_pair(0, 4)


def test_hard_constraints_shape_pair_table(params):
    """
    Forbidden pairs, unpaired positions and forced partners remove pair options.
    """
    mask = ConstraintMask.empty().forbid_pair(0, 8).force_unpaired(2).force_pair(1, 7)
    model = make_model(params, mask=mask)
    assert not model.can_pair(0, 8)
    assert not model.can_pair(2, 6)
    assert model.can_pair(1, 7)
    # Position 7 is reserved for 1.
    assert not model.can_pair(0, 7)


def test_directional_constraints(params):
    """
    ``<`` only pairs downstream and ``>`` only upstream.
    """
    model = make_model(params, mask=ConstraintMask.from_dotbracket("<.......>"))
    assert model.can_pair(0, 8)
    reversed_model = make_model(params, mask=ConstraintMask.from_dotbracket(">.......<"))
    assert not reversed_model.can_pair(0, 8)


def test_unpaired_energy_sums_soft_terms(params):
    model = make_model(params, mask=ConstraintMask.empty().with_unpaired_energies({3: -0.4, 5: 1.0}))
    assert model.unpaired(0, 8) == 60
    assert model.unpaired(4, 4) == 0
    assert model.unpaired(5, 4) == 0


def test_unpaired_range_with_must_pair_is_forbidden(params):
    model = make_model(params, mask=ConstraintMask.from_dotbracket("...|....."))
    assert math.isinf(model.unpaired(0, 8))
    assert model.unpaired(4, 8) == 0


def test_ml_unpaired_adds_per_base_cost(params):
    model = make_model(params)
    assert model.ml_unpaired(3, 5) == 3 * params.ml_base


def test_hairpin_and_stack_lookups(params):
    """
    The reference hairpin is a GC-closed triloop under two GC stacks.
    """
    model = make_model(params)
    assert model.hairpin(2, 6) == 540
    assert model.stack(0, 8) == -330
    assert model.stack(1, 7) == -330
    assert math.isinf(model.hairpin(3, 6))


def test_interior_loop_respects_max_loop(params):
    seq = "GAAAAGAAACAAAAC"
    model = make_model(params, seq)
    assert not math.isinf(model.interior(0, 14, 5, 9))
    assert math.isinf(make_model(params, seq, max_loop=5).interior(0, 14, 5, 9))


def test_soft_pair_and_stack_energies(params):
    """
    Pair pseudo-energies apply to the loop the pair closes; SHAPE terms to stacked bases.
    """
    plain = make_model(params)
    bonus = make_model(params, mask=ConstraintMask.empty().with_pair_energies({(2, 6): -0.5}))
    assert bonus.hairpin(2, 6) == plain.hairpin(2, 6) - 50

    shaped = make_model(params, mask=ConstraintMask.empty().with_shape([0.0] * 9))
    assert shaped.stack(0, 8) == plain.stack(0, 8) + 4 * -60


def test_hairpin_motif_bonus(params):
    motif = LigandMotif.from_string("GAAAC,(...),-2.0")
    model = make_model(params, mask=ConstraintMask.empty().with_motif(motif))
    assert model.hairpin(2, 6) == 340


def test_stem_terms_follow_dangle_flags(params):
    """
    Exterior stems add dangles only where neighbours exist; multiloop stems add the branch penalty.
    """
    model = make_model(params, "AGGGAAACCCA")
    assert model.ext_stem(1, 9) == 0
    with_dangles = model.ext_stem(1, 9, True, True)
    assert with_dangles == params.dangle5[2][1] + params.dangle3[2][1]
    assert model.ml_stem(1, 9) == params.ml_intern
    assert model.ml_closing(1, 9) == params.ml_closing + params.ml_intern


def test_dangle_override_and_default_flags(params):
    model = make_model(params, dangles=1)
    assert model.dangles == 1
    assert model.default_dangles() == (False, False)
    assert build_energy_model(SEQ, params, ModelDetails(dangles=1), ConstraintMask.empty(),
                              dangles=2).default_dangles() == (True, True)


def test_quadruplexes_only_when_enabled(params):
    seq = "GGAGGAGGAGG"
    assert make_model(params, seq).gquads(0, 10) == []
    enabled = make_model(params, seq, gquad=True)
    assert len(enabled.gquads(0, 10)) == 1
    assert enabled.gquad_ml_stem() == params.ml_intern


def test_wrapped_loops_of_circular_model(params):
    """
    The exterior loop of a circle with one pair is a hairpin across the origin.
    """
    model = make_model(params, "GGGAAACCCAAAAAA", circular=True)
    assert model.circular
    assert not math.isinf(model.hairpin_wrapped(0, 8))
    assert math.isinf(make_model(params, "GAAAACAA", circular=True).hairpin_wrapped(0, 5))
