"""
Columnar multiple structural alignment model

An alignment is made of BlockSets (rigid frames), each holding Blocks. A Block
is a table of residue indices indexed [structure][column]; GAP marks an empty
cell. Every structure row of a Block has the same length because the table is
a single two-dimensional numpy array.
"""

from dataclasses import dataclass, field

import numpy as np

GAP = -1

# Score keys stored on a MultipleAlignment
MC_SCORE = "MC_SCORE"
RMSD = "RMSD"
AVG_TM_SCORE = "AVG_TM_SCORE"


@dataclass
class Structure:
    """One chain: a name and one representative coordinate per residue."""

    name: str
    coords: np.ndarray

    def __post_init__(self) -> None:
        self.coords = np.asarray(self.coords, dtype=float)
        if self.coords.ndim != 2 or self.coords.shape[1] != 3:
            raise ValueError(
                f"Coordinates of {self.name} must have shape (n, 3), got {self.coords.shape}"
            )

    def __len__(self) -> int:
        return len(self.coords)


class Ensemble:
    """Fixed, read-only set of structures being aligned."""

    def __init__(self, structures: list[Structure]) -> None:
        if not structures:
            raise ValueError("An ensemble needs at least one structure")
        self.structures = list(structures)

    @property
    def size(self) -> int:
        return len(self.structures)

    @property
    def lengths(self) -> list[int]:
        return [len(s) for s in self.structures]

    @property
    def names(self) -> list[str]:
        return [s.name for s in self.structures]

    def coords(self, index: int) -> np.ndarray:
        return self.structures[index].coords

    def __len__(self) -> int:
        return self.size


class Block:
    """
    Ordered alignment columns sharing one topology.

    Args:
        columns: (size, length) table of residue indices, GAP for gaps
    """

    def __init__(self, columns) -> None:
        table = np.array(columns, dtype=np.int64)
        if table.ndim != 2:
            raise ValueError(f"Block table must be two-dimensional, got shape {table.shape}")
        self.columns = table

    @classmethod
    def from_rows(cls, rows: list[list[int | None]]) -> "Block":
        """Build a Block from per-structure rows where None marks a gap."""
        lengths = {len(row) for row in rows}
        if len(lengths) > 1:
            raise ValueError(f"All structure rows of a Block must have equal length, got {sorted(lengths)}")
        return cls([[GAP if r is None else int(r) for r in row] for row in rows])

    def to_rows(self) -> list[list[int | None]]:
        return [[None if r == GAP else int(r) for r in row] for row in self.columns]

    @property
    def size(self) -> int:
        return self.columns.shape[0]

    @property
    def length(self) -> int:
        return self.columns.shape[1]

    def get(self, structure: int, column: int) -> int:
        return int(self.columns[structure, column])

    def is_gap(self, structure: int, column: int) -> bool:
        return self.columns[structure, column] == GAP

    def set_cell(self, structure: int, column: int, value: int) -> int:
        """Set one cell and return the previous value."""
        old = int(self.columns[structure, column])
        self.columns[structure, column] = value
        return old

    def set_row_segment(self, structure: int, start: int, values) -> np.ndarray:
        """Overwrite a run of cells in one structure row, returning the old run."""
        values = np.asarray(values, dtype=np.int64)
        stop = start + len(values)
        old = self.columns[structure, start:stop].copy()
        self.columns[structure, start:stop] = values
        return old

    def insert_column(self, index: int, values) -> None:
        """Insert a column before ``index`` (``index == length`` appends)."""
        values = np.asarray(values, dtype=np.int64)
        if values.shape != (self.size,):
            raise ValueError(f"Column must hold {self.size} entries, got {values.shape}")
        self.columns = np.insert(self.columns, index, values, axis=1)

    def remove_column(self, index: int) -> np.ndarray:
        """Remove the column at ``index`` and return its entries."""
        values = self.columns[:, index].copy()
        self.columns = np.delete(self.columns, index, axis=1)
        return values

    def non_gap_counts(self) -> np.ndarray:
        return np.count_nonzero(self.columns != GAP, axis=0)

    def residues(self, structure: int) -> set[int]:
        row = self.columns[structure]
        return {int(r) for r in row[row != GAP]}

    def copy(self) -> "Block":
        return Block(self.columns.copy())

    def __eq__(self, other) -> bool:
        if not isinstance(other, Block):
            return NotImplemented
        return np.array_equal(self.columns, other.columns)

    def __repr__(self) -> str:
        return f"Block(size={self.size}, length={self.length})"


@dataclass
class BlockSet:
    """Blocks superimposed with one rigid transform per structure."""

    blocks: list[Block]
    transforms: list[tuple[np.ndarray, np.ndarray]] | None = None

    @property
    def length(self) -> int:
        return sum(b.length for b in self.blocks)

    def concatenated(self) -> np.ndarray:
        return np.hstack([b.columns for b in self.blocks])

    def clear(self) -> None:
        self.transforms = None

    def copy(self) -> "BlockSet":
        transforms = None
        if self.transforms is not None:
            transforms = [(rot.copy(), tran.copy()) for rot, tran in self.transforms]
        return BlockSet([b.copy() for b in self.blocks], transforms)


@dataclass
class MultipleAlignment:
    """
    Residue correspondence between the structures of an Ensemble.

    Attributes:
        ensemble: Structures being aligned (shared, never mutated)
        block_sets: Rigid frames, each holding one or more Blocks
        scores: Named scores attached by the scorer and the optimizer
    """

    ensemble: Ensemble
    block_sets: list[BlockSet]
    scores: dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.block_sets or not all(bs.blocks for bs in self.block_sets):
            raise ValueError("An alignment needs at least one BlockSet and every BlockSet a Block")
        lengths = self.ensemble.lengths
        for block in self.blocks:
            if block.size != self.size:
                raise ValueError(
                    f"Block has {block.size} structure rows but the ensemble has {self.size}"
                )
            for s, row in enumerate(block.columns):
                aligned = row[row != GAP]
                if np.any(aligned < 0) or np.any(aligned >= lengths[s]):
                    raise ValueError(f"Residue index out of range for structure {s}")
        for s in range(self.size):
            used = [r for block in self.blocks for r in block.columns[s] if r != GAP]
            if len(used) != len(set(used)):
                raise ValueError(f"Structure {s} has a residue aligned more than once")

    @property
    def size(self) -> int:
        return self.ensemble.size

    @property
    def blocks(self) -> list[Block]:
        return [b for bs in self.block_sets for b in bs.blocks]

    @property
    def length(self) -> int:
        return sum(bs.length for bs in self.block_sets)

    def block_set_of(self, block_index: int) -> BlockSet:
        """Return the BlockSet owning the flattened block at ``block_index``."""
        offset = 0
        for bs in self.block_sets:
            if block_index < offset + len(bs.blocks):
                return bs
            offset += len(bs.blocks)
        raise IndexError(f"Block index {block_index} out of range")

    def concatenated(self) -> np.ndarray:
        """All blocks side by side: a (size, length) table."""
        return np.hstack([b.columns for b in self.blocks])

    def aligned_residues(self, structure: int) -> set[int]:
        residues: set[int] = set()
        for block in self.blocks:
            residues |= block.residues(structure)
        return residues

    def put_score(self, name: str, value: float) -> None:
        self.scores[name] = float(value)

    def get_score(self, name: str) -> float | None:
        return self.scores.get(name)

    def clear(self) -> None:
        """Forget transforms and scores computed for a previous state."""
        for bs in self.block_sets:
            bs.clear()
        self.scores.clear()

    def clone(self) -> "MultipleAlignment":
        """Deep copy of the alignment; the ensemble is shared."""
        return MultipleAlignment(
            ensemble=self.ensemble,
            block_sets=[bs.copy() for bs in self.block_sets],
            scores=dict(self.scores),
        )

    def same_columns(self, other: "MultipleAlignment") -> bool:
        if len(self.blocks) != len(other.blocks):
            return False
        return all(a == b for a, b in zip(self.blocks, other.blocks))
