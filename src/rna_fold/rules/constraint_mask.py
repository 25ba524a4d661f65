from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Mapping, Optional, Sequence, Tuple

from rna_fold.energies.data.thermo_math import to_dcal
from rna_fold.errors import InvalidModel
from rna_fold.rules.constraints import MIN_HAIRPIN_UNPAIRED
from rna_fold.rules.motifs import LigandMotif
from rna_fold.rules.shape import DEIGAN_INTERCEPT, DEIGAN_SLOPE, deigan_pseudo_energies

PairKey = Tuple[int, int]

# Symbols accepted in a pseudo dot-bracket constraint string.
CONSTRAINT_SYMBOLS = frozenset(".x|<>()")


@dataclass(frozen=True, slots=True)
class ConstraintMask:
    """
    Hard and soft restrictions on the folding space of one sequence.

    Positions are 0-based. The mask is built before folding and only read
    by the engines; the builder methods return new masks.

    Attributes
    ----------
    forced_pairs : FrozenSet[PairKey]
        Pairs that must be present in every structure.
    forced_unpaired : FrozenSet[int]
        Positions that may not pair.
    forbidden_pairs : FrozenSet[PairKey]
        Pairs that may never form.
    must_pair : FrozenSet[int]
        Positions that must pair with some partner.
    pairs_downstream : FrozenSet[int]
        Positions that may only pair with a partner further 3'.
    pairs_upstream : FrozenSet[int]
        Positions that may only pair with a partner further 5'.
    unpaired_energy : Mapping[int, int]
        Pseudo-energy (10 cal/mol) added whenever the position is unpaired in a loop.
    pair_energy : Mapping[PairKey, int]
        Pseudo-energy added whenever the pair forms.
    stack_energy : Mapping[int, int]
        Pseudo-energy added for the position each time it is part of a stacked pair.
    motifs : Tuple[LigandMotif, ...]
        Ligand-binding loop motifs with their bonus energies.
    """
    forced_pairs: FrozenSet[PairKey] = frozenset()
    forced_unpaired: FrozenSet[int] = frozenset()
    forbidden_pairs: FrozenSet[PairKey] = frozenset()
    must_pair: FrozenSet[int] = frozenset()
    pairs_downstream: FrozenSet[int] = frozenset()
    pairs_upstream: FrozenSet[int] = frozenset()
    unpaired_energy: Mapping[int, int] = field(default_factory=dict)
    pair_energy: Mapping[PairKey, int] = field(default_factory=dict)
    stack_energy: Mapping[int, int] = field(default_factory=dict)
    motifs: Tuple[LigandMotif, ...] = ()

    # ---------- constructors ----------

    @classmethod
    def empty(cls) -> "ConstraintMask":
        """A mask without any restriction."""
        return cls()

    @classmethod
    def from_dotbracket(cls, constraint: str) -> "ConstraintMask":
        """
        Parse a pseudo dot-bracket hard-constraint string.

        ``.`` no constraint, ``x`` unpaired, ``|`` paired with anyone, ``<``
        paired downstream, ``>`` paired upstream, matching ``()`` a forced pair.

        Raises
        ------
        InvalidModel
            On unknown symbols or unbalanced brackets.
        """
        forced_pairs = set()
        forced_unpaired, must_pair, downstream, upstream = set(), set(), set(), set()
        stack = []
        for pos, symbol in enumerate(constraint):
            if symbol not in CONSTRAINT_SYMBOLS:
                raise InvalidModel(f"Unknown constraint symbol {symbol!r} at position {pos}.")
            if symbol == "x":
                forced_unpaired.add(pos)
            elif symbol == "|":
                must_pair.add(pos)
            elif symbol == "<":
                downstream.add(pos)
            elif symbol == ">":
                upstream.add(pos)
            elif symbol == "(":
                stack.append(pos)
            elif symbol == ")":
                if not stack:
                    raise InvalidModel(f"Unbalanced ')' in constraint at position {pos}.")
                forced_pairs.add((stack.pop(), pos))
        if stack:
            raise InvalidModel(f"Unbalanced '(' in constraint at position {stack[-1]}.")

        return cls(
            forced_pairs=frozenset(forced_pairs),
            forced_unpaired=frozenset(forced_unpaired),
            must_pair=frozenset(must_pair),
            pairs_downstream=frozenset(downstream),
            pairs_upstream=frozenset(upstream),
        )

    # ---------- builders ----------

    def force_pair(self, i: int, j: int) -> "ConstraintMask":
        """Return a mask that additionally forces the pair (i, j)."""
        return replace(self, forced_pairs=self.forced_pairs | {_ordered(i, j)})

    def force_unpaired(self, *positions: int) -> "ConstraintMask":
        """Return a mask that additionally keeps `positions` unpaired."""
        return replace(self, forced_unpaired=self.forced_unpaired | frozenset(positions))

    def without_forced_pairs(self, pairs: Sequence[PairKey]) -> "ConstraintMask":
        """Return a mask with the forced pairs in `pairs` released."""
        return replace(self, forced_pairs=self.forced_pairs - {_ordered(i, j) for i, j in pairs})

    def forbid_pair(self, i: int, j: int) -> "ConstraintMask":
        """Return a mask that additionally forbids the pair (i, j)."""
        return replace(self, forbidden_pairs=self.forbidden_pairs | {_ordered(i, j)})

    def with_unpaired_energies(self, energies_kcal: Mapping[int, float]) -> "ConstraintMask":
        """Add per-position pseudo-energies (kcal/mol) for the unpaired state."""
        merged: Dict[int, int] = dict(self.unpaired_energy)
        for pos, value in energies_kcal.items():
            merged[pos] = merged.get(pos, 0) + int(to_dcal(value))
        return replace(self, unpaired_energy=merged)

    def with_pair_energies(self, energies_kcal: Mapping[PairKey, float]) -> "ConstraintMask":
        """Add per-pair pseudo-energies (kcal/mol)."""
        merged: Dict[PairKey, int] = dict(self.pair_energy)
        for (i, j), value in energies_kcal.items():
            key = _ordered(i, j)
            merged[key] = merged.get(key, 0) + int(to_dcal(value))
        return replace(self, pair_energy=merged)

    def with_shape(
        self,
        reactivities: Sequence[Optional[float]],
        slope: float = DEIGAN_SLOPE,
        intercept: float = DEIGAN_INTERCEPT,
    ) -> "ConstraintMask":
        """Add SHAPE reactivities as Deigan stacking pseudo-energies."""
        merged: Dict[int, int] = dict(self.stack_energy)
        for pos, value in deigan_pseudo_energies(reactivities, slope, intercept).items():
            merged[pos] = merged.get(pos, 0) + value
        return replace(self, stack_energy=merged)

    def with_motif(self, motif: LigandMotif) -> "ConstraintMask":
        """Add a ligand-binding loop motif."""
        return replace(self, motifs=self.motifs + (motif,))

    # ---------- queries ----------

    @property
    def has_hard_constraints(self) -> bool:
        return bool(self.forced_pairs or self.forced_unpaired or self.forbidden_pairs or self.must_pair
                    or self.pairs_downstream or self.pairs_upstream)

    def validate(self, seq_len: int) -> None:
        """
        Check that the mask is consistent with a sequence of length `seq_len`.

        Raises
        ------
        InvalidModel
            For out-of-range indices, positions with contradictory flags,
            forced pairs that overlap, cross or enclose fewer than three bases.
        """
        def check_pos(pos: int, what: str) -> None:
            if not 0 <= pos < seq_len:
                raise InvalidModel(f"{what} index {pos} is outside the sequence (length {seq_len}).")

        for pos in (self.forced_unpaired | self.must_pair | self.pairs_downstream | self.pairs_upstream):
            check_pos(pos, "Constraint")
        for pos in list(self.unpaired_energy) + list(self.stack_energy):
            check_pos(pos, "Soft constraint")
        for i, j in list(self.forbidden_pairs) + list(self.pair_energy):
            check_pos(i, "Pair constraint")
            check_pos(j, "Pair constraint")

        partners: Dict[int, int] = {}
        for i, j in sorted(self.forced_pairs):
            check_pos(i, "Forced pair")
            check_pos(j, "Forced pair")
            if j - i - 1 < MIN_HAIRPIN_UNPAIRED:
                raise InvalidModel(f"Forced pair ({i}, {j}) encloses fewer than {MIN_HAIRPIN_UNPAIRED} bases.")
            if i in partners or j in partners:
                raise InvalidModel(f"Forced pair ({i}, {j}) reuses an already forced position.")
            if (i, j) in self.forbidden_pairs:
                raise InvalidModel(f"Pair ({i}, {j}) is both forced and forbidden.")
            partners[i], partners[j] = j, i

        forced = sorted(self.forced_pairs)
        for a, (i, j) in enumerate(forced):
            for k, l in forced[a + 1:]:
                if i < k < j < l:
                    raise InvalidModel(f"Forced pairs ({i}, {j}) and ({k}, {l}) cross.")

        conflicts = self.forced_unpaired & (self.must_pair | self.pairs_downstream | self.pairs_upstream
                                            | frozenset(partners))
        if conflicts:
            raise InvalidModel(f"Positions {sorted(conflicts)} are both forced unpaired and forced paired.")
        both_ways = self.pairs_downstream & self.pairs_upstream
        if both_ways:
            raise InvalidModel(f"Positions {sorted(both_ways)} may pair neither upstream nor downstream.")
        for pos in self.pairs_downstream:
            if pos in partners and partners[pos] < pos:
                raise InvalidModel(f"Position {pos} is forced upstream but constrained downstream.")
        for pos in self.pairs_upstream:
            if pos in partners and partners[pos] > pos:
                raise InvalidModel(f"Position {pos} is forced downstream but constrained upstream.")


def _ordered(i: int, j: int) -> PairKey:
    return (i, j) if i < j else (j, i)
