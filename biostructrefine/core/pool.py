"""
Free-residue pool

Per-structure sets of residue indices that are not placed in any alignment
column. The pool and the aligned residues of a structure are always disjoint.
"""

from biostructrefine.core.model import MultipleAlignment
from biostructrefine.exceptions import InvariantViolationError


class FreePool:
    """One set of unaligned residue indices per structure."""

    def __init__(self, residues: list[set[int]]) -> None:
        self._residues = [set(r) for r in residues]

    @classmethod
    def from_alignment(cls, alignment: MultipleAlignment) -> "FreePool":
        """Collect every residue of every structure that no column uses."""
        pools = []
        for s, length in enumerate(alignment.ensemble.lengths):
            aligned = alignment.aligned_residues(s)
            pools.append({r for r in range(length) if r not in aligned})
        return cls(pools)

    def add(self, structure: int, residue: int) -> None:
        self._residues[structure].add(int(residue))

    def remove(self, structure: int, residue: int) -> None:
        self._residues[structure].remove(int(residue))

    def contains(self, structure: int, residue: int) -> bool:
        return residue in self._residues[structure]

    def residues(self, structure: int) -> list[int]:
        return sorted(self._residues[structure])

    def check_disjoint(self, alignment: MultipleAlignment) -> None:
        """Raise if any pooled residue is also placed in a column."""
        for s in range(alignment.size):
            overlap = self._residues[s] & alignment.aligned_residues(s)
            if overlap:
                raise InvariantViolationError(
                    f"Residues {sorted(overlap)} of structure {s} are both aligned and free"
                )

    def copy(self) -> "FreePool":
        return FreePool(self._residues)

    def __len__(self) -> int:
        return len(self._residues)

    def __eq__(self, other) -> bool:
        if not isinstance(other, FreePool):
            return NotImplemented
        return self._residues == other._residues
