from __future__ import annotations
import logging
import math
from functools import lru_cache
from importlib.resources import files as ir_files
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

from rna_fold.energies.data.yaml_io import read_yaml
from rna_fold.energies.data.parsers import (
    Thermo, get_temperature_kelvin, parse_complements, validate_rna_complements,
    parse_matrix, parse_loop_table, parse_keyed_table, parse_multiloop, parse_misc, parse_gquad,
)
from rna_fold.energies.data.thermo_math import DCAL_PER_KCAL, T37_KELVIN, celsius_to_kelvin, dcal_at
from rna_fold.energies.energy_types import Energy, EnergyParameters
from rna_fold.errors import InvalidModel
from rna_fold.rules.constraints import BASES, PAIR_NAMES

logger = logging.getLogger(__name__)

DEFAULT_PARAMETER_FILE = "rna_turner2004.yaml"


def default_parameter_path() -> Path:
    """Location of the parameter bundle shipped with the package."""
    return Path(str(ir_files("rna_fold") / "data" / DEFAULT_PARAMETER_FILE))


class EnergyParameterLoader:
    """
    Loads thermodynamic parameters from a YAML file and rescales them to a temperature.

    The YAML stores free energies at 37 C with optional enthalpies. Each entry
    is resolved to `(ΔH, ΔS)` and evaluated at the requested temperature with
    `ΔG = ΔH - T * (ΔS / 1000)` before conversion to 10 cal/mol integers.
    """
    def load(self, yaml_path: str | Path | None = None, temperature: float = 37.0) -> EnergyParameters:
        """
        Load a parameter bundle.

        Parameters
        ----------
        yaml_path : str | Path | None
            Parameter file; the packaged Turner 2004 set when omitted.
        temperature : float
            Target temperature in degrees Celsius.

        Returns
        -------
        EnergyParameters
            Integer tables ready for the energy model.

        Raises
        ------
        InvalidModel
            If the file is unreadable, malformed or its stacking table is not symmetric.
        """
        path = Path(yaml_path) if yaml_path is not None else default_parameter_path()
        temp_k = celsius_to_kelvin(temperature)
        if temp_k <= 0:
            raise InvalidModel(f"Temperature {temperature} C is below absolute zero.")

        try:
            data = read_yaml(path)
            params = self._build_rna(data, temp_k, temperature, str(path))
        except (OSError, ValueError, TypeError, KeyError) as exc:
            raise InvalidModel(f"Cannot load energy parameters from {path}: {exc}") from exc

        logger.debug(f"Loaded energy parameters from {path} at {temperature:.2f} C")
        return params

    def _build_rna(self, data: Mapping[str, Any], temp_k: float, temperature: float,
                   source: str) -> EnergyParameters:
        """
        Construct integer tables from the parsed YAML tree.

        References
        ----------
        1. Mathews, D. H. et al. (2004). Incorporating chemical modification
           constraints into a dynamic programming algorithm for prediction of
           RNA secondary structure. PNAS, 101(19), 7287-7292.
        2. Turner, D. H. & Mathews, D. H. (2010). NNDB: the nearest neighbor
           parameter database for predicting stability of nucleic acid secondary
           structure. Nucleic Acids Res., 38, D280-D282.
        """
        ref_k = get_temperature_kelvin(data)
        complements = parse_complements(data)
        validate_rna_complements(complements)

        stack = self._pair_by_pair(parse_matrix(data, "stacks_matrix", ref_k), temp_k)
        self._validate_stack_symmetry(stack)
        dangle5 = self._pair_by_base(parse_matrix(data, "dangle5_matrix", ref_k), temp_k)
        dangle3 = self._pair_by_base(parse_matrix(data, "dangle3_matrix", ref_k), temp_k)

        hairpin = self._loop_tuple(parse_loop_table(data, "hairpin_loops", ref_k), temp_k)
        bulge = self._loop_tuple(parse_loop_table(data, "bulge_loops", ref_k), temp_k)
        interior = self._loop_tuple(parse_loop_table(data, "internal_loops", ref_k), temp_k)

        a, b, c = parse_multiloop(data, ref_k)
        misc = parse_misc(data, ref_k)
        gquad = parse_gquad(data, ref_k)

        return EnergyParameters(
            temperature=temperature,
            stack=stack,
            dangle5=dangle5,
            dangle3=dangle3,
            hairpin=hairpin,
            bulge=bulge,
            interior=interior,
            special_hairpins=self._keyed(parse_keyed_table(data, "special_hairpins", ref_k), temp_k),
            hairpin_mismatch_bonus=self._keyed(parse_keyed_table(data, "hairpin_mismatch_bonus", ref_k), temp_k),
            interior_mismatch_bonus=self._keyed(parse_keyed_table(data, "internal_mismatch_bonus", ref_k), temp_k),
            ml_closing=dcal_at(a, temp_k),
            ml_intern=dcal_at(b, temp_k),
            ml_base=dcal_at(c, temp_k),
            terminal_au=dcal_at(misc["terminal_au"], temp_k),
            interior_au_closure=dcal_at(misc["interior_au_closure"], temp_k),
            ninio=dcal_at(misc["ninio"], temp_k),
            ninio_max=int(round(misc["ninio_max"] * DCAL_PER_KCAL)),
            # Jacobson-Stockmayer term is entropic and scales with T.
            lxc=misc["lxc"] * DCAL_PER_KCAL * temp_k / T37_KELVIN,
            gquad_alpha=dcal_at(gquad["alpha"], temp_k),
            gquad_beta=dcal_at(gquad["beta"], temp_k),
            gquad_layers=(gquad["min_layers"], gquad["max_layers"]),
            gquad_linker=(gquad["min_linker"], gquad["max_linker"]),
            source=source,
        )

    # ---------- table shaping ----------

    @staticmethod
    def _pair_by_pair(table: Dict[Tuple[str, str], Thermo], temp_k: float) -> Tuple[Tuple[Energy, ...], ...]:
        rows = []
        for p1 in PAIR_NAMES:
            row = []
            for p2 in PAIR_NAMES:
                thermo = table.get((p1, p2)) if p1 and p2 else None
                row.append(math.inf if thermo is None else dcal_at(thermo, temp_k))
            rows.append(tuple(row))
        return tuple(rows)

    @staticmethod
    def _pair_by_base(table: Dict[Tuple[str, str], Thermo], temp_k: float) -> Tuple[Tuple[Energy, ...], ...]:
        rows = []
        for p in PAIR_NAMES:
            row = []
            for base in BASES:
                thermo = table.get((p, base)) if p else None
                # Unknown neighbours (N) and missing cells contribute nothing.
                row.append(0 if thermo is None else dcal_at(thermo, temp_k))
            rows.append(tuple(row))
        return tuple(rows)

    @staticmethod
    def _loop_tuple(table: Dict[int, Thermo], temp_k: float) -> Tuple[Energy, ...]:
        max_size = max(table)
        return tuple(
            dcal_at(table[size], temp_k) if size in table else math.inf
            for size in range(max_size + 1)
        )

    @staticmethod
    def _keyed(table: Dict[str, Thermo], temp_k: float) -> Dict[str, Energy]:
        return {key: dcal_at(thermo, temp_k) for key, thermo in table.items()}

    @staticmethod
    def _validate_stack_symmetry(stack: Tuple[Tuple[Energy, ...], ...]) -> None:
        for p1 in range(1, len(PAIR_NAMES)):
            for p2 in range(1, len(PAIR_NAMES)):
                if stack[p1][p2] != stack[p2][p1]:
                    raise ValueError(
                        f"stacking table is not symmetric: {PAIR_NAMES[p1]}/{PAIR_NAMES[p2]} = {stack[p1][p2]} "
                        f"but {PAIR_NAMES[p2]}/{PAIR_NAMES[p1]} = {stack[p2][p1]}"
                    )


@lru_cache(maxsize=32)
def load_energy_parameters(yaml_path: str | None = None, temperature: float = 37.0) -> EnergyParameters:
    """Cached `EnergyParameterLoader.load` keyed by (path, temperature)."""
    return EnergyParameterLoader().load(yaml_path, temperature)
