from __future__ import annotations
import math
from typing import Any, Dict, Mapping, Sequence, Tuple

from rna_fold.energies.data.thermo_math import T37_KELVIN, resolve_dh_ds

Thermo = Tuple[float, float]


# ---------- Top-level config helpers ----------

def get_temperature_kelvin(data: Mapping[str, Any]) -> float:
    """
    Return the temperature (Kelvin) at which the ``dg_37`` entries were measured.

    Prefer metadata.temperature_kelvin, else top-level temperature_kelvin,
    else 310.15 K.
    """
    metadata = data.get("metadata") or {}
    temp_k = metadata.get("temperature_kelvin") or data.get("temperature_kelvin") or T37_KELVIN

    return float(temp_k)


def parse_complements(data: Mapping[str, Any]) -> Dict[str, str]:
    """
    Parse and normalize the base complement map.

    Raises
    ------
    ValueError
        If the complements mapping is missing or empty.
    """
    complements_data = data.get("complements")
    if not isinstance(complements_data, dict) or not complements_data:
        raise ValueError("YAML must contain a non-empty 'complements' mapping.")

    return {str(k).upper(): str(v).upper() for k, v in complements_data.items()}


def validate_rna_complements(complements: Mapping[str, str]) -> None:
    """
    Validate that an RNA complement map contains U and does not contain T.
    """
    if "U" not in complements.keys() and "U" not in complements.values():
        raise ValueError("RNA complements must include uracil ('U').")
    if "T" in complements.keys() or "T" in complements.values():
        raise ValueError("RNA complements must not contain thymine ('T') (DNA-specific).")


# ---------- Cell helpers ----------

def _as_float(value: Any, where: str) -> float:
    if value is None:
        return math.inf
    if isinstance(value, str) and value.strip().upper() in {"INF", "INFINITY"}:
        return math.inf
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Non-numeric energy {value!r} at {where}.") from exc


def parse_thermo_entry(entry: Any, temp_k: float, where: str) -> Thermo:
    """
    Turn a ``{dg_37: x, dh: y}`` mapping (or a bare number) into ``(ΔH, ΔS)``.

    Parameters
    ----------
    entry : Any
        Either a mapping with ``dg_37`` and optional ``dh`` or a plain number
        interpreted as ``dg_37``.
    temp_k : float
        Temperature of the tabulated free energy.
    where : str
        Location used in error messages.
    """
    if isinstance(entry, Mapping):
        if "dg_37" not in entry:
            raise ValueError(f"Missing 'dg_37' at {where}.")
        dg = _as_float(entry["dg_37"], where)
        dh = entry.get("dh")
        dh = None if dh is None else _as_float(dh, where)
    else:
        dg, dh = _as_float(entry, where), None

    if math.isinf(dg):
        return math.inf, 0.0

    return resolve_dh_ds(dh=dh, dg=dg, temp_k=temp_k)


# ---------- Tables ----------

def parse_matrix(
    data: Mapping[str, Any],
    key: str,
    temp_k: float,
) -> Dict[Tuple[str, str], Thermo]:
    """
    Parse a ``rows`` x ``cols`` matrix block into ``{(row, col): (ΔH, ΔS)}``.

    Used for the stacking matrix (pair x pair) and the dangle matrices
    (pair x nucleotide). ``dh`` is optional and has the same shape as ``dg_37``.
    """
    block = data.get(key)
    if not isinstance(block, Mapping):
        raise ValueError(f"YAML must contain a '{key}' matrix block.")

    rows: Sequence[str] = [str(r).upper() for r in block.get("rows") or []]
    cols: Sequence[str] = [str(c).upper() for c in block.get("cols") or []]
    dg_rows = block.get("dg_37")
    dh_rows = block.get("dh")
    if not rows or not cols or not isinstance(dg_rows, list) or len(dg_rows) != len(rows):
        raise ValueError(f"Malformed matrix block '{key}'.")

    table: Dict[Tuple[str, str], Thermo] = {}
    for r_idx, row_name in enumerate(rows):
        if len(dg_rows[r_idx]) != len(cols):
            raise ValueError(f"Row {row_name} of '{key}' has {len(dg_rows[r_idx])} cells, expected {len(cols)}.")
        for c_idx, col_name in enumerate(cols):
            where = f"{key}[{row_name}][{col_name}]"
            dg = _as_float(dg_rows[r_idx][c_idx], where)
            dh = None if dh_rows is None else _as_float(dh_rows[r_idx][c_idx], where)
            table[(row_name, col_name)] = (math.inf, 0.0) if math.isinf(dg) else resolve_dh_ds(
                dh=dh, dg=dg, temp_k=temp_k
            )

    return table


def parse_loop_table(data: Mapping[str, Any], key: str, temp_k: float) -> Dict[int, Thermo]:
    """
    Parse a loop initiation table keyed by loop size.
    """
    block = data.get(key)
    if not isinstance(block, Mapping) or not block:
        raise ValueError(f"YAML must contain a non-empty '{key}' table.")

    return {int(size): parse_thermo_entry(entry, temp_k, f"{key}[{size}]") for size, entry in block.items()}


def parse_keyed_table(data: Mapping[str, Any], key: str, temp_k: float) -> Dict[str, Thermo]:
    """
    Parse a table keyed by sequence (special hairpins, mismatch bonuses).

    A missing block yields an empty table.
    """
    block = data.get(key) or {}
    if not isinstance(block, Mapping):
        raise ValueError(f"'{key}' must be a mapping.")

    return {str(seq).upper(): parse_thermo_entry(entry, temp_k, f"{key}[{seq}]") for seq, entry in block.items()}


def parse_multiloop(data: Mapping[str, Any], temp_k: float) -> Tuple[Thermo, Thermo, Thermo]:
    """
    Parse the linear multiloop coefficients ``(a, b, c)``.

    ``a`` is the closing penalty, ``b`` the per-stem penalty and ``c`` the
    per-unpaired-base penalty.
    """
    block = data.get("multiloop")
    if not isinstance(block, Mapping):
        raise ValueError("YAML must contain a 'multiloop' block with a, b, c.")
    try:
        return tuple(parse_thermo_entry(block[k], temp_k, f"multiloop.{k}") for k in ("a", "b", "c"))  # type: ignore[return-value]
    except KeyError as exc:
        raise ValueError(f"multiloop block is missing coefficient {exc}.") from exc


def parse_misc(data: Mapping[str, Any], temp_k: float) -> Dict[str, Any]:
    """
    Parse scalar terms: terminal AU penalty, interior AU closure, Ninio, lxc.
    """
    block = data.get("misc")
    if not isinstance(block, Mapping):
        raise ValueError("YAML must contain a 'misc' block.")

    return {
        "terminal_au": parse_thermo_entry(block.get("terminal_au", 0.0), temp_k, "misc.terminal_au"),
        "interior_au_closure": parse_thermo_entry(block.get("interior_au_closure", 0.0), temp_k,
                                                  "misc.interior_au_closure"),
        "ninio": parse_thermo_entry(block.get("ninio", 0.0), temp_k, "misc.ninio"),
        "ninio_max": _as_float(block.get("ninio_max", 3.0), "misc.ninio_max"),
        "lxc": _as_float(block.get("lxc", 1.07856), "misc.lxc"),
    }


def parse_gquad(data: Mapping[str, Any], temp_k: float) -> Dict[str, Any]:
    """
    Parse the G-quadruplex block; a missing block disables nothing but uses defaults.
    """
    block = data.get("gquad") or {}
    return {
        "alpha": parse_thermo_entry(block.get("alpha", -18.0), temp_k, "gquad.alpha"),
        "beta": parse_thermo_entry(block.get("beta", 12.0), temp_k, "gquad.beta"),
        "min_layers": int(block.get("min_layers", 2)),
        "max_layers": int(block.get("max_layers", 7)),
        "min_linker": int(block.get("min_linker", 1)),
        "max_linker": int(block.get("max_linker", 15)),
    }
