"""
Reversible edit records for alignment rollback

Each mutation applied through the journal stores a closure that undoes it.
Rolling back replays the closures in reverse, so restoring a rejected Monte
Carlo step costs as much as the step itself rather than a whole copy.
"""

from collections.abc import Callable

import numpy as np

from biostructrefine.core.model import Block, BlockSet
from biostructrefine.core.pool import FreePool


class EditJournal:
    """Undo log for Block, FreePool and transform edits."""

    def __init__(self) -> None:
        self._undo: list[Callable[[], None]] = []

    def record(self, undo: Callable[[], None]) -> None:
        self._undo.append(undo)

    def set_cell(self, block: Block, structure: int, column: int, value: int) -> int:
        old = block.set_cell(structure, column, value)
        self.record(lambda: block.set_cell(structure, column, old))
        return old

    def set_row_segment(self, block: Block, structure: int, start: int, values) -> np.ndarray:
        old = block.set_row_segment(structure, start, values)
        self.record(lambda: block.set_row_segment(structure, start, old))
        return old

    def insert_column(self, block: Block, index: int, values) -> None:
        block.insert_column(index, values)
        self.record(lambda: block.remove_column(index))

    def remove_column(self, block: Block, index: int) -> np.ndarray:
        values = block.remove_column(index)
        self.record(lambda: block.insert_column(index, values))
        return values

    def pool_add(self, pool: FreePool, structure: int, residue: int) -> None:
        pool.add(structure, residue)
        self.record(lambda: pool.remove(structure, residue))

    def pool_remove(self, pool: FreePool, structure: int, residue: int) -> None:
        pool.remove(structure, residue)
        self.record(lambda: pool.add(structure, residue))

    def keep_transforms(self, block_sets: list[BlockSet]) -> None:
        """Remember the current transforms so a rollback can restore them."""
        saved = [(bs, bs.transforms) for bs in block_sets]

        def restore() -> None:
            for bs, transforms in saved:
                bs.transforms = transforms

        self.record(restore)

    def rollback(self) -> None:
        while self._undo:
            self._undo.pop()()

    def commit(self) -> None:
        self._undo.clear()

    def __len__(self) -> int:
        return len(self._undo)
