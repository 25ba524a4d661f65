from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from rna_fold.errors import InvalidStructure


@dataclass(frozen=True, slots=True, order=True)
class Pair:
    """
    Immutable (i, j) index pair used to represent a base pair.

    Parameters
    ----------
    base_i : int
        Left index (0-based).
    base_j : int
        Right index (0-based), j > i.
    """
    base_i: int
    base_j: int

    def as_tuple(self) -> tuple[int, int]:
        """Pair indices as a tuple ``(i, j)``."""
        return self.base_i, self.base_j


@dataclass(frozen=True, slots=True, order=True)
class Quadruplex:
    """
    A G-quadruplex of `layers` stacked G-quartets.

    The four G-runs start at `start`, separated by the three linkers.

    Attributes
    ----------
    start : int
        Index of the first G of the first run.
    layers : int
        Number of G-quartets (length of each G-run).
    linkers : Tuple[int, int, int]
        Lengths of the three linkers between consecutive G-runs.
    """
    start: int
    layers: int
    linkers: Tuple[int, int, int]

    @property
    def end(self) -> int:
        """Index of the last G of the fourth run."""
        return self.start + 4 * self.layers + sum(self.linkers) - 1

    def run_starts(self) -> Tuple[int, int, int, int]:
        """Start index of each of the four G-runs."""
        l1, l2, l3 = self.linkers
        s1 = self.start
        s2 = s1 + self.layers + l1
        s3 = s2 + self.layers + l2
        s4 = s3 + self.layers + l3
        return s1, s2, s3, s4

    def g_positions(self) -> List[int]:
        """All guanine positions taking part in the quartets."""
        return [s + k for s in self.run_starts() for k in range(self.layers)]


@dataclass(frozen=True, slots=True)
class Structure:
    """
    A nested secondary structure over a sequence of `length` nucleotides.

    Attributes
    ----------
    length : int
        Sequence length.
    pairs : Tuple[Pair, ...]
        Base pairs sorted by their 5' index.
    quadruplexes : Tuple[Quadruplex, ...]
        G-quadruplexes, sorted by start.
    """
    length: int
    pairs: Tuple[Pair, ...] = ()
    quadruplexes: Tuple[Quadruplex, ...] = ()

    @classmethod
    def from_pairs(cls, length: int, pairs: Iterable[Pair | Tuple[int, int]],
                   quadruplexes: Iterable[Quadruplex] = ()) -> "Structure":
        """
        Build a validated structure from pairs given as `Pair` or ``(i, j)`` tuples.

        Raises
        ------
        InvalidStructure
            If indices are out of range, a position pairs twice, pairs cross or
            a quadruplex overlaps a pair.
        """
        normalized = []
        for pair in pairs:
            i, j = pair.as_tuple() if isinstance(pair, Pair) else pair
            if i > j:
                i, j = j, i
            normalized.append(Pair(int(i), int(j)))
        structure = cls(length=length, pairs=tuple(sorted(normalized)),
                        quadruplexes=tuple(sorted(quadruplexes)))
        structure.validate()
        return structure

    @classmethod
    def unpaired(cls, length: int) -> "Structure":
        """The open chain."""
        return cls(length=length)

    @classmethod
    def from_dotbracket(cls, dot_bracket: str) -> "Structure":
        """
        Parse a dot-bracket string; runs of ``+`` mark G-quadruplex layers.

        Raises
        ------
        InvalidStructure
            On unbalanced brackets, unknown symbols or malformed quadruplexes.
        """
        stack: List[int] = []
        pairs: List[Pair] = []
        for idx, ch in enumerate(dot_bracket):
            if ch == "(":
                stack.append(idx)
            elif ch == ")":
                if not stack:
                    raise InvalidStructure(f"Unbalanced ')' at position {idx}.")
                pairs.append(Pair(stack.pop(), idx))
            elif ch not in ".+":
                raise InvalidStructure(f"Unknown structure symbol {ch!r} at position {idx}.")
        if stack:
            raise InvalidStructure(f"Unbalanced '(' at position {stack[-1]}.")

        return cls.from_pairs(len(dot_bracket), pairs, _parse_quadruplexes(dot_bracket))

    def validate(self) -> None:
        """
        Check ranges, mutual pairing and the absence of crossing pairs.
        """
        table = [-1] * self.length
        for pair in self.pairs:
            i, j = pair.as_tuple()
            if not (0 <= i < j < self.length):
                raise InvalidStructure(f"Pair {pair.as_tuple()} is out of range for length {self.length}.")
            if table[i] != -1 or table[j] != -1:
                raise InvalidStructure(f"Position of pair {pair.as_tuple()} is paired twice.")
            table[i], table[j] = j, i

        # Non-crossing check via a bracket stack over the partner table.
        stack: List[int] = []
        for pos, partner in enumerate(table):
            if partner == -1:
                continue
            if partner > pos:
                stack.append(pos)
            elif not stack or stack.pop() != partner:
                raise InvalidStructure(f"Pair ({partner}, {pos}) crosses another pair.")

        last_end = -1
        for quad in self.quadruplexes:
            if quad.start < 0 or quad.end >= self.length:
                raise InvalidStructure(f"Quadruplex at {quad.start} is out of range.")
            if quad.start <= last_end:
                raise InvalidStructure(f"Quadruplex at {quad.start} overlaps another quadruplex.")
            last_end = quad.end
            # Linkers are unpaired, so no pair may start or end inside the span.
            for pos in range(quad.start, quad.end + 1):
                if table[pos] != -1:
                    raise InvalidStructure(f"Quadruplex at {quad.start} overlaps paired position {pos}.")

    def partner_table(self) -> List[int]:
        """Per-position partner index, -1 for unpaired."""
        table = [-1] * self.length
        for pair in self.pairs:
            table[pair.base_i] = pair.base_j
            table[pair.base_j] = pair.base_i
        return table

    def pair_set(self) -> set[Tuple[int, int]]:
        """Pairs as a set of ``(i, j)`` tuples."""
        return {pair.as_tuple() for pair in self.pairs}

    def quadruplex_positions(self) -> set[int]:
        """All positions covered by quadruplex G-runs."""
        return {pos for quad in self.quadruplexes for pos in quad.g_positions()}

    def to_dotbracket(self) -> str:
        """Render as dot-bracket; quadruplex guanines become ``+``."""
        chars = ["."] * self.length
        for pair in self.pairs:
            chars[pair.base_i] = "("
            chars[pair.base_j] = ")"
        for pos in self.quadruplex_positions():
            chars[pos] = "+"
        return "".join(chars)

    def __str__(self) -> str:
        return self.to_dotbracket()


def _parse_quadruplexes(dot_bracket: str) -> List[Quadruplex]:
    """
    Group ``+`` runs into quadruplexes of four equally long runs.
    """
    runs: List[Tuple[int, int]] = []
    idx = 0
    while idx < len(dot_bracket):
        if dot_bracket[idx] == "+":
            start = idx
            while idx < len(dot_bracket) and dot_bracket[idx] == "+":
                idx += 1
            runs.append((start, idx - start))
        else:
            idx += 1

    if len(runs) % 4:
        raise InvalidStructure("G-quadruplex notation needs groups of four '+' runs.")

    quads: List[Quadruplex] = []
    for k in range(0, len(runs), 4):
        group: Sequence[Tuple[int, int]] = runs[k:k + 4]
        layers = group[0][1]
        if any(length != layers for _, length in group):
            raise InvalidStructure("All four G-runs of a quadruplex must have the same length.")
        linkers = tuple(group[g + 1][0] - (group[g][0] + layers) for g in range(3))
        quads.append(Quadruplex(start=group[0][0], layers=layers, linkers=linkers))  # type: ignore[arg-type]
    return quads


def as_structure(value: "Structure | str", length: Optional[int] = None) -> Structure:
    """Accept either a `Structure` or a dot-bracket string."""
    structure = Structure.from_dotbracket(value) if isinstance(value, str) else value
    if length is not None and structure.length != length:
        raise InvalidStructure(f"Structure length {structure.length} does not match sequence length {length}.")
    return structure
