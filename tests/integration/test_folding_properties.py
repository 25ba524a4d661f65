"""
End-to-end properties of the public folding API.

Covers the concrete folding scenarios (a simple hairpin, a sequence that
cannot pair, a forced-unpaired position), determinism of the MFE, rescaling
invariance of the partition function, convergence of stochastic sampling,
constraint enforcement across every decoder, the decode-before-partition
guard, cooperative abort and early release of the DP matrices.
"""
from __future__ import annotations

# --- Standard Library Imports ---
import math
from collections import Counter

# --- Third-Party Imports ---
import numpy as np
import pytest

# --- Local Application Imports ---
from rna_fold import api
from rna_fold.energies.energy_types import ModelDetails
from rna_fold.errors import (
    DecodeWithoutEnsemble,
    FoldAborted,
    InfeasibleConstraints,
    InvalidStructure,
    NumericInstability,
)
from rna_fold.folding.context import build_context, release_matrices
from rna_fold.rules.constraint_mask import ConstraintMask
from rna_fold.structures.pairing import Structure

pytestmark = pytest.mark.integration

HAIRPIN_SEQ = "GGGAAACCC"
LONGER_SEQ = "GGGGAAAACCCCAUCGGGGAAAACCCCAGUC"


# ---------------------- Fixtures ----------------------

@pytest.fixture
def hairpin_ctx():
    """A context for the nine-nucleotide hairpin with default parameters."""
    return build_context(HAIRPIN_SEQ)


# ----------------------------- Scenarios ---------------------------------

def test_simple_hairpin_mfe(hairpin_ctx):
    """
    GGGAAACCC folds into a three-pair hairpin: a triloop (5.4) closed by a GC
    pair and two GC/GC stacks (-3.3 each).
    """
    result = api.fold(hairpin_ctx)
    assert result.structure.to_dotbracket() == "(((...)))"
    assert result.energy == -120
    assert result.energy < 0


def test_simple_hairpin_pair_probabilities(hairpin_ctx):
    """
    The outer pairs of the hairpin dominate the ensemble.
    """
    ensemble = api.partition(hairpin_ctx)
    assert ensemble.probabilities[(0, 8)] > 0.75
    assert ensemble.probabilities[(1, 7)] > 0.75
    assert ensemble.ensemble_energy <= -120
    assert api.centroid(hairpin_ctx).structure.pair_set() >= {(0, 8), (1, 7)}


def test_poly_a_stays_unpaired():
    """
    Ten adenines cannot pair: the open chain at zero energy, no pair
    probabilities and certainty of being unpaired everywhere.
    """
    ctx = build_context("A" * 10)
    result = api.fold(ctx)
    assert result.structure.to_dotbracket() == "." * 10
    assert result.energy == 0

    ensemble = api.partition(ctx)
    assert all(prob < 1e-6 for prob in ensemble.probabilities.values())
    assert ensemble.ensemble_energy == pytest.approx(0.0, abs=1e-9)
    assert np.allclose(api.unpaired_probabilities(ctx), 1.0)


def test_forced_unpaired_position_changes_structure(hairpin_ctx):
    """
    Keeping position 2 unpaired breaks the innermost pair of the hairpin and
    can only raise the energy.
    """
    unconstrained = api.fold(hairpin_ctx)
    assert unconstrained.structure.partner_table()[2] != -1

    ctx = build_context(HAIRPIN_SEQ, constraints=ConstraintMask.empty().force_unpaired(2))
    constrained = api.fold(ctx)
    assert constrained.structure.partner_table()[2] == -1
    assert constrained.energy >= unconstrained.energy


# ----------------------------- Properties ---------------------------------

@pytest.mark.parametrize("knobs", [
    {},
    {"dangles": 0},
    {"dangles": 1},
    {"no_lonely_pairs": True},
    {"circular": True},
    {"gquad": True},
])
def test_fold_energy_equals_evaluation(knobs):
    """
    Re-scoring the MFE structure reproduces the MFE exactly, and the MFE is
    never above the open chain.
    """
    ctx = build_context(LONGER_SEQ, ModelDetails(**knobs))
    result = api.fold(ctx)
    assert api.evaluate(ctx, result.structure) == result.energy
    assert api.evaluate(ctx, result.structure.to_dotbracket()) == result.energy
    assert result.energy <= api.evaluate(ctx, Structure.unpaired(ctx.length))


def test_fold_is_deterministic():
    """
    Two folds of identical inputs give byte-identical results.
    """
    first = api.fold(build_context(LONGER_SEQ))
    second = api.fold(build_context(LONGER_SEQ))
    assert first.structure.to_dotbracket() == second.structure.to_dotbracket()
    assert first.energy == second.energy


def test_rescaling_does_not_change_probabilities():
    """
    Two valid scale factors give the same ensemble energy and pair probabilities.
    """
    automatic = build_context(LONGER_SEQ)
    fixed = build_context(LONGER_SEQ, ModelDetails(pf_scale=1.0))
    first = api.partition(automatic)
    second = api.partition(fixed)

    assert first.ensemble_energy == pytest.approx(second.ensemble_energy, rel=1e-9)
    for pair in set(first.probabilities) | set(second.probabilities):
        assert first.probabilities.get(pair, 0.0) == pytest.approx(second.probabilities.get(pair, 0.0), abs=1e-9)


def test_reference_energy_selects_scale():
    """
    An explicit reference energy replaces the MFE when picking the scale,
    without folding first.
    """
    ctx = build_context(LONGER_SEQ)
    result = api.partition(ctx, reference_energy=-500)
    assert ctx.mfe_structure is None
    assert math.isfinite(result.ensemble_energy)


def test_hopeless_scale_raises_numeric_instability():
    """
    A scale factor that overflows every weight cannot be rescued by retries.
    """
    ctx = build_context(LONGER_SEQ, ModelDetails(pf_scale=1e-300))
    with pytest.raises(NumericInstability) as excinfo:
        api.partition(ctx)
    assert excinfo.value.pf_scale is not None
    assert ctx.ensemble is None


def test_sampling_frequencies_converge():
    """
    The empirical frequency of a pair over many samples approaches its
    probability, and a fixed seed reproduces the same draws.
    """
    ctx = build_context("GGGAAACCCAGGUCC")
    ensemble = api.partition(ctx)
    draws = api.samples(ctx, 3000, np.random.default_rng(42))

    counts = Counter(pair for structure in draws for pair in structure.pair_set())
    for pair, prob in ensemble.probabilities.items():
        if prob > 0.05:
            assert counts[pair] / len(draws) == pytest.approx(prob, abs=0.05), pair

    again = api.samples(ctx, 3000, np.random.default_rng(42))
    assert [s.to_dotbracket() for s in again] == [s.to_dotbracket() for s in draws]


def test_samples_are_valid_structures():
    """
    Every sample is a finite-energy structure of the ensemble.
    """
    ctx = build_context(LONGER_SEQ, ModelDetails(dangles=0))
    api.partition(ctx)
    for structure in api.samples(ctx, 50, np.random.default_rng(0)):
        assert math.isfinite(api.evaluate(ctx, structure))
    assert isinstance(api.sample(ctx, np.random.default_rng(1)), Structure)


def test_forbidden_pair_absent_from_every_decoding():
    """
    A forbidden pair never appears in the MFE, centroid, MEA or any sample.
    """
    forbidden = (0, 8)
    ctx = build_context(HAIRPIN_SEQ, constraints=ConstraintMask.empty().forbid_pair(*forbidden))
    assert forbidden not in api.fold(ctx).structure.pair_set()

    ensemble = api.partition(ctx)
    assert ensemble.probabilities.get(forbidden, 0.0) == 0.0
    assert forbidden not in api.centroid(ctx).structure.pair_set()
    assert forbidden not in api.mea(ctx, gamma=5.0).structure.pair_set()
    for structure in api.samples(ctx, 200, np.random.default_rng(3)):
        assert forbidden not in structure.pair_set()


def test_forced_pair_present_in_mfe():
    """
    A forced pair is part of the MFE structure and of every sample.
    """
    ctx = build_context(LONGER_SEQ, constraints=ConstraintMask.empty().force_pair(1, 26))
    assert (1, 26) in api.fold(ctx).structure.pair_set()
    api.partition(ctx)
    assert ctx.ensemble.probabilities[(1, 26)] == pytest.approx(1.0)
    for structure in api.samples(ctx, 20, np.random.default_rng(5)):
        assert (1, 26) in structure.pair_set()


def test_infeasible_constraints_are_reported():
    """
    A position that must pair but has no possible partner leaves no structure.
    """
    ctx = build_context("AAAAAAAAAA", constraints=ConstraintMask.from_dotbracket("|........."))
    with pytest.raises(InfeasibleConstraints):
        api.fold(ctx)
    assert ctx.mfe_structure is None


def test_decoders_require_partition(hairpin_ctx):
    """
    Sampling, centroid and MEA decoding fail before `partition`.
    """
    api.fold(hairpin_ctx)
    with pytest.raises(DecodeWithoutEnsemble):
        api.sample(hairpin_ctx)
    with pytest.raises(DecodeWithoutEnsemble):
        api.centroid(hairpin_ctx)
    with pytest.raises(DecodeWithoutEnsemble):
        api.mea(hairpin_ctx)


def test_release_matrices_keeps_light_queries(hairpin_ctx):
    """
    After releasing the matrices, evaluation and probability-based decoders
    still work while sampling, which needs the inside tables, does not.
    """
    mfe = api.fold(hairpin_ctx)
    api.partition(hairpin_ctx)
    centroid_before = api.centroid(hairpin_ctx)
    mea_before = api.mea(hairpin_ctx)
    release_matrices(hairpin_ctx)

    assert hairpin_ctx.mfe_state is None
    assert api.evaluate(hairpin_ctx, mfe.structure) == mfe.energy
    assert api.centroid(hairpin_ctx) == centroid_before
    assert api.mea(hairpin_ctx) == mea_before
    with pytest.raises(DecodeWithoutEnsemble):
        api.sample(hairpin_ctx, np.random.default_rng(0))


def test_abort_check_discards_results():
    """
    An abort check that fires stops both engines without storing results.
    """
    ctx = build_context(LONGER_SEQ, abort_check=lambda: True)
    with pytest.raises(FoldAborted):
        api.fold(ctx)
    assert ctx.mfe_structure is None and ctx.mfe_energy is None

    with pytest.raises(FoldAborted):
        api.partition(ctx, reference_energy=0)
    assert ctx.ensemble is None


def test_evaluate_rejects_wrong_length(hairpin_ctx):
    """
    Structures of another length are malformed input for `evaluate`.
    """
    with pytest.raises(InvalidStructure):
        api.evaluate(hairpin_ctx, "((...))")


def test_evaluate_scores_impossible_pairs_as_infinite(hairpin_ctx):
    """
    A G-A pair is not a base pair of the model.
    """
    assert math.isinf(api.evaluate(hairpin_ctx, "(....)..."))
    assert math.isfinite(api.evaluate(hairpin_ctx, "(.....).."))


def test_ensemble_summaries(hairpin_ctx):
    """
    The MFE frequency, diversity and ensemble string agree with the pair
    probabilities.
    """
    ensemble = api.partition(hairpin_ctx)
    frequency = api.mfe_frequency(hairpin_ctx)
    assert 0.0 < frequency <= 1.0
    assert frequency <= min(ensemble.probabilities[(0, 8)], ensemble.probabilities[(1, 7)]) + 1e-12

    diversity = api.ensemble_diversity(hairpin_ctx)
    assert diversity == pytest.approx(2.0 * sum(p * (1 - p) for p in ensemble.probabilities.values()))

    symbols = api.ensemble_structure(hairpin_ctx)
    assert len(symbols) == 9
    assert symbols[0] == "(" and symbols[8] == ")"

    listed = api.pair_probability_list(hairpin_ctx, cutoff=0.5)
    assert [(i, j) for i, j, _ in listed][:2] == [(0, 8), (1, 7)]


def test_motif_detection():
    """
    A hairpin motif is reported for the structure that forms it.
    """
    from rna_fold.rules.motifs import LigandMotif

    motif = LigandMotif.from_string("GAAAC,(...),-2.0")
    ctx = build_context(HAIRPIN_SEQ, constraints=ConstraintMask.empty().with_motif(motif))
    plain = build_context(HAIRPIN_SEQ)

    hits = api.detect_motifs(ctx, "(((...)))")
    assert len(hits) == 1 and hits[0].outer == (2, 6)
    assert api.evaluate(ctx, "(((...)))") == api.evaluate(plain, "(((...)))") - 200
    assert api.detect_motifs(ctx, ".........") == []


def test_gquad_sequence_forms_quadruplex():
    """
    Four GG runs separated by single linkers fold into a two-layer quadruplex.
    """
    ctx = build_context("GGAGGAGGAGG", ModelDetails(gquad=True))
    result = api.fold(ctx)
    assert result.structure.to_dotbracket() == "++.++.++.++"
    assert result.energy == api.evaluate(ctx, result.structure)
    assert result.energy < 0

    api.partition(ctx)
    quad_probs = ctx.ensemble.quad_probabilities
    assert quad_probs[0] > 0.9 and quad_probs[2] < 1e-9
