from __future__ import annotations
import math

# Energies are kept as integers in units of 10 cal/mol (0.01 kcal/mol).
DCAL_PER_KCAL: int = 100

# 37 C in Kelvin, the reference temperature of tabulated free energies.
T37_KELVIN: float = 310.15
KELVIN_OFFSET: float = 273.15


def delta_g(dh: float, ds: float, temp_k: float) -> float:
    """
    Compute Gibbs free energy change ΔG(T).

    Uses the thermodynamic relation:
    ``ΔG(T) = ΔH − T * (ΔS / 1000)``

    Parameters
    ----------
    dh : float
        Enthalpy change ΔH in kcal/mol.
    ds : float
        Entropy change ΔS in cal/(K·mol).
    temp_k : float
        Absolute temperature T in Kelvin.

    Returns
    -------
    float
        ΔG(T) in kcal/mol.
    """
    return float(dh) - float(temp_k) * (float(ds) / 1000.0)


def resolve_dh_ds(*, dh: float | None, dg: float, temp_k: float = T37_KELVIN) -> tuple[float, float]:
    """
    Resolve (ΔH, ΔS) from a tabulated ΔG(T) and an optional ΔH.

    Without an enthalpy the term is taken as purely entropic (ΔH = 0), so
    its free energy scales linearly with absolute temperature.

    Parameters
    ----------
    dh : float or None
        Enthalpy change ΔH in kcal/mol, or ``None`` if not tabulated.
    dg : float
        Free energy change ΔG in kcal/mol at ``temp_k``.
    temp_k : float
        Temperature of the tabulated ``dg`` in Kelvin.

    Returns
    -------
    tuple[float, float]
        ``(ΔH [kcal/mol], ΔS [cal/(K·mol)])``.
    """
    dh_value = 0.0 if dh is None else float(dh)
    # ds = 1000 * (dh − dg) / T
    ds_value = 1000.0 * (dh_value - float(dg)) / float(temp_k)
    return dh_value, ds_value


def to_dcal(energy_kcal: float) -> int | float:
    """
    Convert kcal/mol to the integer unit of 10 cal/mol.

    Infinite energies stay infinite so "forbidden" table entries survive the
    conversion.
    """
    if math.isinf(energy_kcal):
        return energy_kcal
    return int(round(energy_kcal * DCAL_PER_KCAL))


def dcal_at(thermo: tuple[float, float], temp_k: float) -> int:
    """Free energy of a ``(ΔH, ΔS)`` term at ``temp_k`` in 10 cal/mol units."""
    dh, ds = thermo
    return to_dcal(delta_g(dh, ds, temp_k))


def celsius_to_kelvin(temp_c: float) -> float:
    """Convert degrees Celsius to Kelvin."""
    return float(temp_c) + KELVIN_OFFSET


def to_kcal(energy_dcal: float) -> float:
    """Convert 10 cal/mol units back to kcal/mol."""
    return energy_dcal / DCAL_PER_KCAL
