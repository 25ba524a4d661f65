from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from rna_fold.energies.data.thermo_math import to_dcal
from rna_fold.errors import InvalidModel
from rna_fold.utils.nucleotide_utils import normalize_sequence


@dataclass(frozen=True, slots=True)
class LigandMotif:
    """
    A ligand-binding hairpin or interior loop that earns a bonus energy when formed.

    The motif sequence includes the closing pair(s). A hairpin motif has the
    structure ``(...)``; an interior motif has a 5' part ``(..(`` and a 3'
    part ``)..)``, written ``5'&3'`` in the textual form.

    Attributes
    ----------
    seq_5 : str
        Motif sequence of the hairpin, or the 5' strand of the interior loop.
    seq_3 : str | None
        3' strand of an interior motif; ``None`` for hairpins.
    energy : int
        Bonus in 10 cal/mol (negative stabilizes).
    """
    seq_5: str
    seq_3: Optional[str]
    energy: int

    @property
    def is_hairpin(self) -> bool:
        return self.seq_3 is None

    @classmethod
    def parse(cls, sequence: str, structure: str, energy_kcal: float) -> "LigandMotif":
        """
        Build a motif from RNAfold-style ``--motif`` pieces.

        Parameters
        ----------
        sequence : str
            e.g. ``"GAAAC"`` or ``"GAUA&UAGC"``.
        structure : str
            e.g. ``"(...)"`` or ``"(..(&)..)"``.
        energy_kcal : float
            Bonus in kcal/mol.

        Raises
        ------
        InvalidModel
            If the structure is not a single hairpin or interior loop, or does
            not match the sequence.
        """
        seq_parts = sequence.split("&")
        struct_parts = structure.split("&")
        if len(seq_parts) != len(struct_parts) or len(seq_parts) > 2:
            raise InvalidModel(f"Motif {sequence!r}/{structure!r}: sequence and structure parts do not match.")
        for seq_part, struct_part in zip(seq_parts, struct_parts):
            if len(seq_part) != len(struct_part):
                raise InvalidModel(f"Motif part {seq_part!r} and {struct_part!r} differ in length.")

        energy = int(to_dcal(float(energy_kcal)))
        if len(seq_parts) == 1:
            inner = structure[1:-1]
            if len(structure) < 5 or structure[0] != "(" or structure[-1] != ")" or set(inner) - {"."}:
                raise InvalidModel(f"Hairpin motif structure must look like '(...)', got {structure!r}.")
            return cls(seq_5=normalize_sequence(seq_parts[0]), seq_3=None, energy=energy)

        five, three = struct_parts
        if (len(five) < 2 or len(three) < 2 or five[0] != "(" or five[-1] != "(" or three[0] != ")"
                or three[-1] != ")" or set(five[1:-1]) - {"."} or set(three[1:-1]) - {"."}):
            raise InvalidModel(f"Interior motif structure must look like '(..(&)..)', got {structure!r}.")
        return cls(seq_5=normalize_sequence(seq_parts[0]), seq_3=normalize_sequence(seq_parts[1]), energy=energy)

    @classmethod
    def from_string(cls, text: str) -> "LigandMotif":
        """Parse ``"SEQUENCE,STRUCTURE,ENERGY"`` as accepted by RNAfold ``--motif``."""
        parts = [part.strip() for part in text.split(",")]
        if len(parts) != 3:
            raise InvalidModel(f"Cannot parse motif {text!r}: expected 'SEQUENCE,STRUCTURE,ENERGY'.")
        try:
            energy = float(parts[2])
        except ValueError as exc:
            raise InvalidModel(f"Motif energy {parts[2]!r} is not a number.") from exc
        return cls.parse(parts[0], parts[1], energy)


@dataclass(frozen=True, slots=True)
class MotifHit:
    """An occurrence of a motif as a loop of a structure."""
    motif: LigandMotif
    outer: Tuple[int, int]
    inner: Optional[Tuple[int, int]] = None


def _occurrences(seq: str, pattern: str) -> List[int]:
    hits = []
    start = seq.find(pattern)
    while start != -1:
        hits.append(start)
        start = seq.find(pattern, start + 1)
    return hits


def index_motifs(seq: str, motifs: Tuple[LigandMotif, ...]) -> Tuple[
    Dict[Tuple[int, int], int], Dict[Tuple[int, int, int, int], int]
]:
    """
    Locate every place where a motif can form as a loop.

    Returns
    -------
    tuple
        ``(hairpin_bonus, interior_bonus)``: bonuses keyed by ``(i, j)`` for
        hairpins closed by (i, j) and by ``(i, j, k, l)`` for interior loops
        with outer pair (i, j) and inner pair (k, l).
    """
    hairpin: Dict[Tuple[int, int], int] = {}
    interior: Dict[Tuple[int, int, int, int], int] = {}
    for motif in motifs:
        if motif.is_hairpin:
            for i in _occurrences(seq, motif.seq_5):
                key = (i, i + len(motif.seq_5) - 1)
                hairpin[key] = hairpin.get(key, 0) + motif.energy
            continue

        starts_5 = _occurrences(seq, motif.seq_5)
        starts_3 = _occurrences(seq, motif.seq_3)
        for i in starts_5:
            k = i + len(motif.seq_5) - 1
            for l in starts_3:
                j = l + len(motif.seq_3) - 1
                if k < l:
                    key = (i, j, k, l)
                    interior[key] = interior.get(key, 0) + motif.energy
    return hairpin, interior
