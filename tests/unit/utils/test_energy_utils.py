"""
Unit tests for the thermal energy helpers.

This module validates the conversion from absolute temperature to kT in the
integer energy unit (10 cal/mol) and the Boltzmann factor built on it.
"""
import math

import pytest

from rna_fold.utils.energy_utils import GAS_CONSTANT_CAL, boltzmann_weight, kt_dcal


def test_kt_at_body_temperature():
    """
    kT at 37 °C is about 0.616 kcal/mol, i.e. 61.63 in 10 cal/mol.
    """
    assert kt_dcal(310.15) == pytest.approx(61.632, abs=1e-3)


def test_kt_is_linear_in_temperature():
    """
    Doubling the temperature doubles kT.
    """
    assert kt_dcal(600.0) == pytest.approx(2 * kt_dcal(300.0))
    assert kt_dcal(1.0) == pytest.approx(GAS_CONSTANT_CAL / 10.0)


def test_boltzmann_weight_matches_formula():
    """
    The weight is ``exp(-E / kT)``; zero energy has weight 1.
    """
    kt = kt_dcal(310.15)
    assert boltzmann_weight(0, kt) == 1.0
    assert boltzmann_weight(-120, kt) == pytest.approx(math.exp(120 / kt))
    assert boltzmann_weight(250, kt) < 1.0


def test_boltzmann_weight_of_forbidden_energy_is_zero():
    """
    Infinite energies stand for forbidden states and carry no weight.
    """
    assert boltzmann_weight(math.inf, 61.6) == 0.0
