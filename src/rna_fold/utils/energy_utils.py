from __future__ import annotations
import math

# Ideal gas constant in cal mol⁻¹ K⁻¹
GAS_CONSTANT_CAL = 1.98717


def kt_dcal(temp_k: float) -> float:
    """
    Thermal energy RT in 10 cal/mol at absolute temperature `temp_k`.

    About 61.63 at 310.15 K (37 °C).
    """
    return GAS_CONSTANT_CAL * temp_k / 10.0


def boltzmann_weight(energy: float, kt: float) -> float:
    """
    Boltzmann factor ``exp(-E / kT)`` of an energy in 10 cal/mol.

    Forbidden (infinite) energies have weight 0.
    """
    if math.isinf(energy):
        return 0.0 if energy > 0 else math.inf
    return math.exp(-energy / kt)
