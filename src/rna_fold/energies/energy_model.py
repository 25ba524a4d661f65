from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, List, Mapping, Optional, Tuple

from rna_fold.energies.energy_ops import (
    hairpin_loop_energy, interior_loop_energy, stem_energy,
)
from rna_fold.energies.energy_types import Energy, EnergyParameters, ModelDetails
from rna_fold.energies.gquad import index_quadruplexes
from rna_fold.rules.constraint_mask import ConstraintMask
from rna_fold.rules.constraints import MIN_HAIRPIN_UNPAIRED, RTYPE, pair_type
from rna_fold.rules.motifs import index_motifs
from rna_fold.structures.pairing import Quadruplex
from rna_fold.utils.nucleotide_utils import encode_sequence

# (extra energy, 5' pair index, 3' pair index) for a stem block.
StemOption = Tuple[Energy, int, int]


@dataclass(frozen=True, slots=True)
class LoopEnergyModel:
    """
    Loop energies of one sequence under one model and constraint mask.

    Both folding engines and structure evaluation query this object, so hard
    constraints (disallowed pairs and positions that must pair) and soft
    pseudo-energies are applied at lookup time and every consumer sees the same
    energy landscape. All energies are integers in 10 cal/mol, ``math.inf``
    meaning "not allowed".

    Attributes
    ----------
    seq : str
        Normalized sequence.
    codes : Tuple[int, ...]
        Encoded bases.
    params : EnergyParameters
        Parameter tables at the model temperature.
    details : ModelDetails
        Scalar model knobs.
    dangles : int
        Effective dangle model for this consumer (0, 1 or 2).
    pair_types : Tuple[Tuple[int, ...], ...]
        ``pair_types[i][j]`` is the pair type of (i, j) if the pair is allowed, else 0.
    """
    seq: str
    codes: Tuple[int, ...]
    params: EnergyParameters
    details: ModelDetails
    dangles: int
    pair_types: Tuple[Tuple[int, ...], ...]
    must_pair: FrozenSet[int]
    unpaired_prefix: Tuple[int, ...]
    must_pair_prefix: Tuple[int, ...]
    stack_bonus: Tuple[int, ...]
    pair_bonus: Mapping[Tuple[int, int], int]
    hairpin_motifs: Mapping[Tuple[int, int], int]
    interior_motifs: Mapping[Tuple[int, int, int, int], int]
    quadruplexes: Mapping[Tuple[int, int], List[Tuple[Quadruplex, Energy]]]

    # ---------- basic queries ----------

    @property
    def n(self) -> int:
        return len(self.seq)

    @property
    def circular(self) -> bool:
        return self.details.circular

    def pair_type(self, i: int, j: int) -> int:
        """Allowed pair type of (i, j) with ``i < j``, or 0."""
        return self.pair_types[i][j]

    def can_pair(self, i: int, j: int) -> bool:
        return self.pair_types[i][j] != 0

    def unpaired(self, a: int, b: int) -> Energy:
        """
        Soft-constraint energy of leaving positions ``a..b`` unpaired.

        Infinite if the range holds a position that must pair; 0 for an empty range.
        """
        if a > b:
            return 0
        if self.must_pair_prefix[b + 1] - self.must_pair_prefix[a]:
            return math.inf
        return self.unpaired_prefix[b + 1] - self.unpaired_prefix[a]

    def ml_unpaired(self, a: int, b: int) -> Energy:
        """Multiloop cost of the unpaired positions ``a..b``."""
        if a > b:
            return 0
        return self.params.ml_base * (b - a + 1) + self.unpaired(a, b)

    def _pair_extra(self, i: int, j: int) -> int:
        return self.pair_bonus.get((i, j), 0)

    # ---------- hairpin ----------

    def hairpin(self, i: int, j: int) -> Energy:
        """Energy of the hairpin loop closed by (i, j)."""
        ptype = self.pair_types[i][j]
        if not ptype:
            return math.inf
        size = j - i - 1
        if size < MIN_HAIRPIN_UNPAIRED:
            return math.inf
        energy = hairpin_loop_energy(
            self.params, ptype, size, self.codes[i + 1], self.codes[j - 1],
            self.seq[i:j + 1], self.details.special_hairpins,
        )
        if math.isinf(energy):
            return energy
        return (energy + self.unpaired(i + 1, j - 1) + self._pair_extra(i, j)
                + self.hairpin_motifs.get((i, j), 0))

    def hairpin_wrapped(self, i: int, j: int) -> Energy:
        """
        Energy of the exterior loop of a circular molecule holding the single pair (i, j).

        The loop runs from j over the 3'/5' junction back to i and behaves as a
        hairpin closed by (j, i).
        """
        ptype = self.pair_types[i][j]
        if not ptype:
            return math.inf
        n = self.n
        size = n - (j - i + 1)
        if size < MIN_HAIRPIN_UNPAIRED:
            return math.inf
        energy = hairpin_loop_energy(
            self.params, RTYPE[ptype], size, self.codes[(j + 1) % n], self.codes[i - 1],
            self.seq[j:] + self.seq[:i + 1], self.details.special_hairpins,
        )
        if math.isinf(energy):
            return energy
        return energy + self.unpaired(j + 1, n - 1) + self.unpaired(0, i - 1)

    # ---------- stacks, bulges and interior loops ----------

    def interior(self, i: int, j: int, k: int, l: int) -> Energy:
        """Energy of the loop closed by (i, j) around the inner pair (k, l); stacks included."""
        ptype_outer = self.pair_types[i][j]
        ptype_inner = self.pair_types[k][l]
        if not ptype_outer or not ptype_inner:
            return math.inf
        size_5 = k - i - 1
        size_3 = j - l - 1
        if size_5 + size_3 > self.details.max_loop:
            return math.inf
        codes = self.codes
        energy = interior_loop_energy(
            self.params, ptype_outer, RTYPE[ptype_inner], size_5, size_3,
            codes[i + 1], codes[j - 1], codes[l + 1], codes[k - 1],
        )
        if math.isinf(energy):
            return energy
        energy += self.unpaired(i + 1, k - 1) + self.unpaired(l + 1, j - 1) + self._pair_extra(i, j)
        if size_5 == 0 and size_3 == 0:
            energy += self.stack_bonus[i] + self.stack_bonus[j] + self.stack_bonus[k] + self.stack_bonus[l]
        return energy + self.interior_motifs.get((i, j, k, l), 0)

    def stack(self, i: int, j: int) -> Energy:
        """Energy of (i, j) stacked on (i+1, j-1)."""
        return self.interior(i, j, i + 1, j - 1)

    def interior_wrapped(self, i: int, j: int, k: int, l: int) -> Energy:
        """
        Exterior loop of a circular molecule holding exactly the pairs (i, j) and (k, l).

        Requires ``i < j < k < l``. The loop is an interior loop closed by
        (j, i) with inner pair (k, l); its 3' side wraps over the junction.
        """
        ptype_first = self.pair_types[i][j]
        ptype_second = self.pair_types[k][l]
        if not ptype_first or not ptype_second:
            return math.inf
        n = self.n
        size_5 = k - j - 1
        size_3 = (n - 1 - l) + i
        if size_5 + size_3 > self.details.max_loop:
            return math.inf
        codes = self.codes
        energy = interior_loop_energy(
            self.params, RTYPE[ptype_first], RTYPE[ptype_second], size_5, size_3,
            codes[j + 1], codes[i - 1], codes[(l + 1) % n], codes[k - 1],
        )
        if math.isinf(energy):
            return energy
        energy += self.unpaired(j + 1, k - 1) + self.unpaired(l + 1, n - 1) + self.unpaired(0, i - 1)
        if size_5 == 0 and size_3 == 0:
            energy += self.stack_bonus[i] + self.stack_bonus[j] + self.stack_bonus[k] + self.stack_bonus[l]
        return energy

    # ---------- exterior and multiloop stems ----------

    def _neighbour_5(self, p: int, use: bool, wrap: bool) -> Optional[int]:
        if not use:
            return None
        if p > 0:
            return self.codes[p - 1]
        return self.codes[-1] if wrap else None

    def _neighbour_3(self, q: int, use: bool, wrap: bool) -> Optional[int]:
        if not use:
            return None
        if q < self.n - 1:
            return self.codes[q + 1]
        return self.codes[0] if wrap else None

    def ext_stem(self, p: int, q: int, dangle_5: bool = False, dangle_3: bool = False) -> Energy:
        """Exterior-loop contribution of the helix ending in (p, q)."""
        ptype = self.pair_types[p][q]
        if not ptype:
            return math.inf
        return stem_energy(self.params, ptype,
                           self._neighbour_5(p, dangle_5, False), self._neighbour_3(q, dangle_3, False))

    def ml_stem(self, p: int, q: int, dangle_5: bool = False, dangle_3: bool = False) -> Energy:
        """Multiloop contribution of the branch ending in (p, q), including the per-branch penalty."""
        ptype = self.pair_types[p][q]
        if not ptype:
            return math.inf
        wrap = self.circular
        return self.params.ml_intern + stem_energy(
            self.params, ptype, self._neighbour_5(p, dangle_5, wrap), self._neighbour_3(q, dangle_3, wrap)
        )

    def ml_closing(self, i: int, j: int, dangle_5: bool = False, dangle_3: bool = False) -> Energy:
        """
        Closing contribution of the multiloop closed by (i, j).

        The closing helix is seen from inside as (j, i): its 5' neighbour is
        j-1 and its 3' neighbour is i+1.
        """
        ptype = self.pair_types[i][j]
        if not ptype:
            return math.inf
        params = self.params
        base_5 = self.codes[j - 1] if dangle_5 else None
        base_3 = self.codes[i + 1] if dangle_3 else None
        return (params.ml_closing + params.ml_intern + stem_energy(params, RTYPE[ptype], base_5, base_3)
                + self._pair_extra(i, j))

    def default_dangles(self) -> Tuple[bool, bool]:
        """Dangle flags used when the model does not optimize dangles (d0, d2)."""
        use = self.dangles == 2
        return use, use

    def ext_stem_options(self, a: int, b: int) -> Iterator[StemOption]:
        """
        Ways to place an exterior helix end inside the block ``a..b``.

        With dangles 0 and 2 the pair is (a, b). With dangles 1 a single
        unpaired neighbour on either side may be used as a dangle; the
        dangling base then belongs to the block.
        """
        if self.dangles != 1:
            use = self.dangles == 2
            yield self.ext_stem(a, b, use, use), a, b
            return
        yield self.ext_stem(a, b), a, b
        if b - a > MIN_HAIRPIN_UNPAIRED + 1:
            yield self.ext_stem(a + 1, b, True, False) + self.unpaired(a, a), a + 1, b
            yield self.ext_stem(a, b - 1, False, True) + self.unpaired(b, b), a, b - 1
        if b - a > MIN_HAIRPIN_UNPAIRED + 2:
            yield (self.ext_stem(a + 1, b - 1, True, True) + self.unpaired(a, a) + self.unpaired(b, b),
                   a + 1, b - 1)

    def ml_stem_options(self, a: int, b: int) -> Iterator[StemOption]:
        """Multiloop counterpart of `ext_stem_options`; dangling bases pay the unpaired cost."""
        if self.dangles != 1:
            use = self.dangles == 2
            yield self.ml_stem(a, b, use, use), a, b
            return
        yield self.ml_stem(a, b), a, b
        if b - a > MIN_HAIRPIN_UNPAIRED + 1:
            yield self.ml_stem(a + 1, b, True, False) + self.ml_unpaired(a, a), a + 1, b
            yield self.ml_stem(a, b - 1, False, True) + self.ml_unpaired(b, b), a, b - 1
        if b - a > MIN_HAIRPIN_UNPAIRED + 2:
            yield (self.ml_stem(a + 1, b - 1, True, True) + self.ml_unpaired(a, a) + self.ml_unpaired(b, b),
                   a + 1, b - 1)

    def ml_closing_options(self, i: int, j: int) -> Iterator[Tuple[Energy, int, int]]:
        """
        Ways to close a multiloop with (i, j).

        Yields ``(energy, first, last)`` where ``first..last`` is the interval
        left for the branches once dangling bases have been consumed.
        """
        if self.dangles != 1:
            use = self.dangles == 2
            yield self.ml_closing(i, j, use, use), i + 1, j - 1
            return
        yield self.ml_closing(i, j), i + 1, j - 1
        yield self.ml_closing(i, j, False, True) + self.ml_unpaired(i + 1, i + 1), i + 2, j - 1
        yield self.ml_closing(i, j, True, False) + self.ml_unpaired(j - 1, j - 1), i + 1, j - 2
        yield (self.ml_closing(i, j, True, True) + self.ml_unpaired(i + 1, i + 1) + self.ml_unpaired(j - 1, j - 1),
               i + 2, j - 2)

    # ---------- G-quadruplexes ----------

    def gquads(self, i: int, j: int) -> List[Tuple[Quadruplex, Energy]]:
        """Quadruplexes spanning exactly ``i..j`` with their energies."""
        return self.quadruplexes.get((i, j), [])

    def gquad_ml_stem(self) -> Energy:
        """Multiloop branch penalty of a quadruplex."""
        return self.params.ml_intern


def build_energy_model(
    seq: str,
    params: EnergyParameters,
    details: ModelDetails,
    constraints: ConstraintMask,
    dangles: Optional[int] = None,
) -> LoopEnergyModel:
    """
    Bind parameters, model knobs and constraints to a normalized sequence.

    Parameters
    ----------
    seq : str
        Normalized sequence.
    params : EnergyParameters
        Tables at the model temperature.
    details : ModelDetails
        Model knobs.
    constraints : ConstraintMask
        Validated constraint mask.
    dangles : int, optional
        Effective dangle model; the MFE variant of `details` when omitted.

    Returns
    -------
    LoopEnergyModel
        The bound model.
    """
    n = len(seq)
    codes = encode_sequence(seq)

    partner: Dict[int, int] = {}
    for i, j in constraints.forced_pairs:
        partner[i], partner[j] = j, i
    must_pair = frozenset(constraints.must_pair | constraints.pairs_downstream
                          | constraints.pairs_upstream | frozenset(partner))
    no_pair = constraints.forced_unpaired
    forbidden = constraints.forbidden_pairs

    rows = []
    for i in range(n):
        row = [0] * n
        if i not in no_pair:
            for j in range(i + MIN_HAIRPIN_UNPAIRED + 1, n):
                ptype = pair_type(codes[i], codes[j], details.no_gu_pairs)
                if not ptype or j in no_pair or (i, j) in forbidden:
                    continue
                if partner.get(i, j) != j or partner.get(j, i) != i:
                    continue
                # i is the 5' partner here, j the 3' partner.
                if i in constraints.pairs_upstream or j in constraints.pairs_downstream:
                    continue
                row[j] = ptype
        rows.append(tuple(row))

    unpaired_prefix = [0] * (n + 1)
    must_prefix = [0] * (n + 1)
    for pos in range(n):
        unpaired_prefix[pos + 1] = unpaired_prefix[pos] + constraints.unpaired_energy.get(pos, 0)
        must_prefix[pos + 1] = must_prefix[pos] + (1 if pos in must_pair else 0)

    hairpin_motifs, interior_motifs = index_motifs(seq, constraints.motifs)

    quads: Dict[Tuple[int, int], List[Tuple[Quadruplex, Energy]]] = {}
    if details.gquad:
        for span, entries in index_quadruplexes(seq, params).items():
            if must_prefix[span[1] + 1] - must_prefix[span[0]]:
                continue
            quads[span] = entries

    return LoopEnergyModel(
        seq=seq,
        codes=codes,
        params=params,
        details=details,
        dangles=details.mfe_dangles if dangles is None else dangles,
        pair_types=tuple(rows),
        must_pair=must_pair,
        unpaired_prefix=tuple(unpaired_prefix),
        must_pair_prefix=tuple(must_prefix),
        stack_bonus=tuple(constraints.stack_energy.get(pos, 0) for pos in range(n)),
        pair_bonus=dict(constraints.pair_energy),
        hairpin_motifs=hairpin_motifs,
        interior_motifs=interior_motifs,
        quadruplexes=quads,
    )
