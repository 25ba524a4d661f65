"""
Unit tests for building and releasing fold contexts.
"""
import logging

import pytest

from rna_fold.energies.energy_loader import load_energy_parameters
from rna_fold.energies.energy_types import ModelDetails
from rna_fold.errors import InvalidModel, InvalidSequence
from rna_fold.folding.context import build_context, release_matrices
from rna_fold.rules.constraint_mask import ConstraintMask


def test_build_context_normalizes_sequence():
    ctx = build_context("ggg aaa ccc\n")
    assert ctx.sequence == "GGGAAACCC"
    assert ctx.length == 9
    assert ctx.details == ModelDetails()
    assert ctx.kt == pytest.approx(61.632, abs=1e-3)
    assert not ctx.has_ensemble
    assert ctx.mfe_structure is None


def test_build_context_rejects_bad_sequences():
    with pytest.raises(InvalidSequence):
        build_context("GGGXAAACCC")
    with pytest.raises(InvalidSequence):
        build_context("")


@pytest.mark.parametrize("details", [
    ModelDetails(gquad=True, circular=True),
    ModelDetails(dangles=4),
    ModelDetails(dangles=-1),
    ModelDetails(max_loop=-1),
    ModelDetails(temperature=-300.0),
    ModelDetails(pf_scale=0.0),
    ModelDetails(sfact=0.0),
], ids=["gquad_circular", "dangles_4", "dangles_negative", "max_loop", "temperature", "pf_scale", "sfact"])
def test_build_context_rejects_contradictory_models(details):
    with pytest.raises(InvalidModel):
        build_context("GGGAAACCC", details)


def test_build_context_validates_constraints():
    """
    Constraints must fit the sequence and forced pairs must be canonical.
    """
    with pytest.raises(InvalidModel):
        build_context("GGGAAACCC", constraints=ConstraintMask.empty().force_unpaired(9))
    with pytest.raises(InvalidModel):
        build_context("GGGAAAAAA", constraints=ConstraintMask.empty().force_pair(0, 8))
    with pytest.raises(InvalidModel):
        build_context("GGGAAACCU", ModelDetails(no_gu_pairs=True),
                      ConstraintMask.empty().force_pair(0, 8))
    ctx = build_context("GGGAAACCU", constraints=ConstraintMask.empty().force_pair(0, 8))
    assert ctx.constraints.forced_pairs == {(0, 8)}


def test_canonical_only_drops_non_canonical_forced_pairs(caplog):
    mask = ConstraintMask.empty().force_pair(0, 8).force_pair(1, 7)
    with caplog.at_level(logging.WARNING, logger="rna_fold.folding.context"):
        ctx = build_context("GGGAAAACA", constraints=mask, canonical_only=True)
    assert ctx.constraints.forced_pairs == {(1, 7)}
    assert "Removing non-canonical forced pair (0, 8) G-A" in caplog.text


def test_dangles_three_warns(caplog):
    with caplog.at_level(logging.WARNING, logger="rna_fold.folding.context"):
        ctx = build_context("GGGAAACCC", ModelDetails(dangles=3))
    assert "dangles=3" in caplog.text
    assert ctx.energy_model.dangles == 1
    assert ctx.pf_energy_model.dangles == 2


def test_pf_energy_model_is_shared_when_dangles_agree():
    ctx = build_context("GGGAAACCC")
    assert ctx.pf_energy_model is ctx.energy_model
    odd = build_context("GGGAAACCC", ModelDetails(dangles=1))
    assert odd.pf_energy_model is not odd.energy_model
    assert odd.pf_energy_model is odd.pf_energy_model


def test_preloaded_parameters_are_used_as_given():
    params = load_energy_parameters(None, 37.0)
    ctx = build_context("GGGAAACCC", ModelDetails(temperature=50.0), parameters=params)
    assert ctx.params is params


def test_release_matrices_without_results_is_harmless():
    ctx = build_context("GGGAAACCC")
    release_matrices(ctx)
    assert ctx.mfe_state is None
    assert ctx.ensemble is None
