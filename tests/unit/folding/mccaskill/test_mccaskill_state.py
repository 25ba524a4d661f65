"""
Unit tests for the partition function tables.
"""
import math

import numpy as np
import pytest

from rna_fold.folding.mccaskill.mccaskill_state import (
    QB, QB_ANY, QM, QM1, Q5, QM2, TOP, make_mccaskill_state,
)


def test_make_state_allocates_tables_and_scale():
    state = make_mccaskill_state(4, pf_scale=2.0, kt=61.6)
    assert state.qb.shape == (4, 4)
    assert state.q5.shape == (5,)
    assert np.allclose(state.scale, [1.0, 0.5, 0.25, 0.125, 0.0625])
    assert state.z_scaled == 0.0
    assert state.out is None


def test_pair_tables_alias_without_lonely_pair_suppression():
    shared = make_mccaskill_state(3, 1.0, 61.6)
    assert shared.qb is shared.qb_any
    assert not shared.no_lonely_pairs
    split = make_mccaskill_state(3, 1.0, 61.6, no_lonely_pairs=True)
    assert split.qb is not split.qb_any
    assert split.no_lonely_pairs


def test_log_z_undoes_scaling():
    """
    ``ln Z = ln z_scaled + N ln pf_scale``
    """
    state = make_mccaskill_state(10, pf_scale=1.5, kt=61.6)
    state.z_scaled = 3.0
    assert state.log_z == pytest.approx(math.log(3.0) + 10 * math.log(1.5))


def test_value_reads_every_cell_kind():
    state = make_mccaskill_state(3, 1.0, 61.6)
    state.qb[0, 2] = 2.0
    state.qm[0, 1] = 3.0
    state.qm1[1, 2] = 4.0
    state.q5[3] = 5.0
    state.qm2[1] = 6.0
    state.z_scaled = 7.0
    assert state.value((QB, 0, 2)) == 2.0
    assert state.value((QB_ANY, 0, 2)) == 2.0
    assert state.value((QM, 0, 1)) == 3.0
    assert state.value((QM1, 1, 2)) == 4.0
    assert state.value((Q5, 0, 3)) == 5.0
    assert state.value((QM2, 1, 2)) == 6.0
    assert state.value((TOP, 0, 0)) == 7.0
    # Empty intervals carry no weight.
    assert state.value((QM, 2, 1)) == 0.0


def test_outside_tables_follow_inside_aliasing():
    state = make_mccaskill_state(3, 1.0, 61.6)
    state.init_outside()
    assert state.out[QB] is state.out[QB_ANY]
    state.add_outside((QB, 0, 2), 0.25)
    state.add_outside((QB_ANY, 0, 2), 0.25)
    state.add_outside((Q5, 0, 3), 1.0)
    state.add_outside((QM2, 1, 2), 2.0)
    state.add_outside((QM, 2, 1), 9.0)
    assert state.outside((QB, 0, 2)) == 0.5
    assert state.outside((Q5, 0, 3)) == 1.0
    assert state.outside((QM2, 1, 2)) == 2.0
    assert state.outside((TOP, 0, 0)) == 1.0
    assert state.out[QM].sum() == 0.0

    split = make_mccaskill_state(3, 1.0, 61.6, no_lonely_pairs=True)
    split.init_outside()
    assert split.out[QB] is not split.out[QB_ANY]
