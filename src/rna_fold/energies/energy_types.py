from __future__ import annotations
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

# An energy in 10 cal/mol units, or math.inf for "forbidden".
Energy = float

__all__ = ["Energy", "EnergyParameters", "ModelDetails"]


@dataclass(frozen=True, slots=True)
class ModelDetails:
    """
    Scalar knobs of the thermodynamic model.

    Immutable for the lifetime of a fold; every engine receives it explicitly.

    Attributes
    ----------
    temperature : float
        Folding temperature in degrees Celsius.
    dangles : int
        Dangling-end model: 0 none, 1 each unpaired neighbour used at most
        once, 2 both neighbours always, 3 accepted and treated as 1.
    no_lonely_pairs : bool
        Reject helices of a single base pair.
    gquad : bool
        Allow G-quadruplexes in exterior and multi-loops.
    circular : bool
        Treat the sequence as a circular molecule.
    no_gu_pairs : bool
        Forbid GU/UG wobble pairs.
    special_hairpins : bool
        Use tabulated tri-, tetra- and hexaloop energies.
    max_loop : int
        Maximum number of unpaired bases in an interior loop.
    pf_scale : float, optional
        Per-nucleotide scale for Boltzmann weights; ``None`` picks one from the MFE.
    sfact : float
        Fudge factor applied to the MFE when the scale is picked automatically.
    """
    temperature: float = 37.0
    dangles: int = 2
    no_lonely_pairs: bool = False
    gquad: bool = False
    circular: bool = False
    no_gu_pairs: bool = False
    special_hairpins: bool = True
    max_loop: int = 30
    pf_scale: Optional[float] = None
    sfact: float = 1.07

    @property
    def mfe_dangles(self) -> int:
        """Dangle model used by the MFE engine and `evaluate` (3 behaves as 1)."""
        return 1 if self.dangles == 3 else self.dangles

    @property
    def pf_dangles(self) -> int:
        """Dangle model used by the partition function (odd values behave as 2)."""
        return 2 if self.dangles % 2 else self.dangles


@dataclass(frozen=True, slots=True)
class EnergyParameters:
    """
    Integer nearest-neighbour tables at one temperature, in 10 cal/mol units.

    Tables indexed by pair type use the order of `rules.constraints.PAIR_NAMES`
    (index 0 = no pair); tables indexed by base use `BASE_CODES` (index 0 = N,
    which contributes nothing). Loop tables are indexed by loop size and hold
    ``math.inf`` where a size is impossible.

    Attributes
    ----------
    temperature : float
        Temperature in degrees Celsius the tables were rescaled to.
    stack : Tuple[Tuple[Energy, ...], ...]
        ``stack[type(i,j)][type(l,k)]`` for pair (i,j) stacked on (k,l).
    dangle5 : Tuple[Tuple[Energy, ...], ...]
        ``dangle5[type(i,j)][base i-1]``.
    dangle3 : Tuple[Tuple[Energy, ...], ...]
        ``dangle3[type(i,j)][base j+1]``.
    hairpin, bulge, interior : Tuple[Energy, ...]
        Loop initiation by size (0..30).
    special_hairpins : Mapping[str, Energy]
        Total energies of special tri/tetra/hexaloops including the closing pair.
    hairpin_mismatch_bonus, interior_mismatch_bonus : Mapping[str, Energy]
        First-mismatch bonuses keyed by the two mismatched bases.
    ml_closing, ml_intern, ml_base : Energy
        Linear multiloop coefficients a, b (per stem) and c (per unpaired base).
    terminal_au : Energy
        Penalty for AU/GU helix ends in exterior, multi, bulge and small hairpin loops.
    interior_au_closure : Energy
        Penalty per AU/GU closing pair of an interior loop.
    ninio, ninio_max : Energy
        Per-nucleotide interior loop asymmetry penalty and its cap.
    lxc : float
        Jacobson-Stockmayer coefficient for loops longer than the tables.
    gquad_alpha, gquad_beta : Energy
        G-quadruplex stacking and linker coefficients.
    gquad_layers, gquad_linker : Tuple[int, int]
        Inclusive ranges of layer count and linker length.
    """
    temperature: float
    stack: Tuple[Tuple[Energy, ...], ...]
    dangle5: Tuple[Tuple[Energy, ...], ...]
    dangle3: Tuple[Tuple[Energy, ...], ...]
    hairpin: Tuple[Energy, ...]
    bulge: Tuple[Energy, ...]
    interior: Tuple[Energy, ...]
    special_hairpins: Mapping[str, Energy] = field(default_factory=dict)
    hairpin_mismatch_bonus: Mapping[str, Energy] = field(default_factory=dict)
    interior_mismatch_bonus: Mapping[str, Energy] = field(default_factory=dict)
    ml_closing: Energy = 0
    ml_intern: Energy = 0
    ml_base: Energy = 0
    terminal_au: Energy = 0
    interior_au_closure: Energy = 0
    ninio: Energy = 0
    ninio_max: Energy = 0
    lxc: float = 0.0
    gquad_alpha: Energy = 0
    gquad_beta: Energy = 0
    gquad_layers: Tuple[int, int] = (2, 7)
    gquad_linker: Tuple[int, int] = (1, 15)
    source: Optional[str] = None
