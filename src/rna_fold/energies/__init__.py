from rna_fold.energies.energy_types import Energy, EnergyParameters, ModelDetails
from rna_fold.energies.energy_loader import EnergyParameterLoader, load_energy_parameters

__all__ = [
    "Energy",
    "EnergyParameters",
    "ModelDetails",
    "EnergyParameterLoader",
    "load_energy_parameters",
]
