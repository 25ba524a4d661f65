from __future__ import annotations
from typing import Dict, Iterator, List, Tuple

from rna_fold.energies.energy_ops import gquad_energy
from rna_fold.energies.energy_types import Energy, EnergyParameters
from rna_fold.structures.pairing import Quadruplex


def g_run_lengths(seq: str) -> List[int]:
    """Length of the run of consecutive G's starting at each position."""
    runs = [0] * (len(seq) + 1)
    for pos in range(len(seq) - 1, -1, -1):
        runs[pos] = runs[pos + 1] + 1 if seq[pos] == "G" else 0
    return runs[:-1]


def iter_quadruplexes(seq: str, params: EnergyParameters) -> Iterator[Tuple[Quadruplex, Energy]]:
    """
    Enumerate every G-quadruplex the sequence can form.

    Each quadruplex consists of four G-runs of equal length `L` (the layer
    count) separated by three linkers. Layer and linker bounds come from the
    parameter set.

    Yields
    ------
    tuple
        ``(Quadruplex, energy)`` in order of start position, layer count and linkers.
    """
    runs = g_run_lengths(seq)
    n = len(seq)
    min_layers, max_layers = params.gquad_layers
    min_linker, max_linker = params.gquad_linker

    for start in range(n):
        if runs[start] < min_layers:
            continue
        for layers in range(min_layers, min(max_layers, runs[start]) + 1):
            for l1 in range(min_linker, max_linker + 1):
                s2 = start + layers + l1
                if s2 + 3 * layers + 2 * min_linker > n:
                    break
                if runs[s2] < layers:
                    continue
                for l2 in range(min_linker, max_linker + 1):
                    s3 = s2 + layers + l2
                    if s3 + 2 * layers + min_linker > n:
                        break
                    if runs[s3] < layers:
                        continue
                    for l3 in range(min_linker, max_linker + 1):
                        s4 = s3 + layers + l3
                        if s4 + layers > n:
                            break
                        if runs[s4] < layers:
                            continue
                        quad = Quadruplex(start=start, layers=layers, linkers=(l1, l2, l3))
                        yield quad, gquad_energy(params, layers, l1 + l2 + l3)


def index_quadruplexes(seq: str, params: EnergyParameters) -> Dict[Tuple[int, int], List[Tuple[Quadruplex, Energy]]]:
    """Group all quadruplexes by the interval ``(start, end)`` they span."""
    spans: Dict[Tuple[int, int], List[Tuple[Quadruplex, Energy]]] = {}
    for quad, energy in iter_quadruplexes(seq, params):
        spans.setdefault((quad.start, quad.end), []).append((quad, energy))
    return spans
