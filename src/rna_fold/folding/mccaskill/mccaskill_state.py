from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np

__all__ = [
    "QB", "QB_ANY", "QM", "QM1", "Q5", "QM2", "TOP",
    "Cell", "McCaskillState", "make_mccaskill_state",
]

# Table kinds. With lonely pairs allowed, QB and QB_ANY share one array.
QB = 0
QB_ANY = 1
QM = 2
QM1 = 3
Q5 = 4
QM2 = 5
TOP = 6

# (kind, i, j); Q5 cells use j as the prefix length, QM2 cells start at i.
Cell = Tuple[int, int, int]


@dataclass(slots=True)
class McCaskillState:
    """
    Scaled Boltzmann-weight tables of the partition function for one sequence.

    Every nucleotide covered by a table entry carries one factor
    ``1 / pf_scale``, so the true partition function is
    ``z_scaled * pf_scale ** n``.

    Attributes
    ----------
    seq_len : int
        Sequence length N.
    pf_scale : float
        Per-nucleotide scale factor.
    kt : float
        Thermal energy RT in 10 cal/mol.
    scale : np.ndarray
        ``scale[k] = pf_scale ** -k``.
    qb, qb_any : np.ndarray
        Weight of ``i..j`` closed by the pair (i, j); `qb_any` is the "closes
        any loop" variant when lonely pairs are suppressed.
    qm, qm1 : np.ndarray
        Multiloop segments with at least one branch / exactly one branch
        starting at i.
    q5 : np.ndarray
        ``q5[j]``: weight of the exterior prefix of length j (linear molecules).
    qm2 : np.ndarray
        ``qm2[i]``: two branches covering ``i..N-1`` (circular molecules).
    z_scaled : float
        Scaled partition function.
    out : Dict[int, np.ndarray] | None
        Outside weights per table kind once the outside pass ran.
    """
    seq_len: int
    pf_scale: float
    kt: float
    scale: np.ndarray
    qb: np.ndarray
    qb_any: np.ndarray
    qm: np.ndarray
    qm1: np.ndarray
    q5: np.ndarray
    qm2: np.ndarray
    z_scaled: float = 0.0
    out: Optional[Dict[int, np.ndarray]] = None
    tables: Dict[int, np.ndarray] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.tables = {QB: self.qb, QB_ANY: self.qb_any, QM: self.qm, QM1: self.qm1}

    @property
    def no_lonely_pairs(self) -> bool:
        return self.qb is not self.qb_any

    @property
    def log_z(self) -> float:
        """Natural log of the unscaled partition function."""
        return float(np.log(self.z_scaled) + self.seq_len * np.log(self.pf_scale))

    def value(self, cell: Cell) -> float:
        """Inside weight of a cell."""
        kind, i, j = cell
        if kind == Q5:
            return float(self.q5[j])
        if kind == QM2:
            return float(self.qm2[i])
        if kind == TOP:
            return self.z_scaled
        if i > j:
            return 0.0
        return float(self.tables[kind][i, j])

    def init_outside(self) -> None:
        """Allocate zeroed outside tables sharing the aliasing of the inside ones."""
        n = self.seq_len
        out_qb = np.zeros((n, n))
        out_qb_any = np.zeros((n, n)) if self.no_lonely_pairs else out_qb
        self.out = {
            QB: out_qb,
            QB_ANY: out_qb_any,
            QM: np.zeros((n, n)),
            QM1: np.zeros((n, n)),
            Q5: np.zeros(n + 1),
            QM2: np.zeros(n + 1),
        }

    def add_outside(self, cell: Cell, weight: float) -> None:
        kind, i, j = cell
        if kind == Q5:
            self.out[Q5][j] += weight
        elif kind == QM2:
            self.out[QM2][i] += weight
        elif i <= j:
            self.out[kind][i, j] += weight

    def outside(self, cell: Cell) -> float:
        kind, i, j = cell
        if kind == TOP:
            return 1.0
        if kind == Q5:
            return float(self.out[Q5][j])
        if kind == QM2:
            return float(self.out[QM2][i])
        return float(self.out[kind][i, j])


def make_mccaskill_state(seq_len: int, pf_scale: float, kt: float,
                         no_lonely_pairs: bool = False) -> McCaskillState:
    """
    Allocate zeroed inside tables and the per-nucleotide scale powers.

    Scale powers that overflow become inf; the engine's range check on the
    filled tables reports them.
    """
    qb = np.zeros((seq_len, seq_len))
    qb_any = np.zeros((seq_len, seq_len)) if no_lonely_pairs else qb
    with np.errstate(over="ignore"):
        scale = np.power(1.0 / pf_scale, np.arange(seq_len + 1, dtype=float))
    return McCaskillState(
        seq_len=seq_len,
        pf_scale=pf_scale,
        kt=kt,
        scale=scale,
        qb=qb,
        qb_any=qb_any,
        qm=np.zeros((seq_len, seq_len)),
        qm1=np.zeros((seq_len, seq_len)),
        q5=np.zeros(seq_len + 1),
        qm2=np.zeros(seq_len + 1),
    )
