"""
Monte Carlo refinement of multiple structural alignments

Starting from a seed alignment, random local edits are proposed and accepted
or rejected on the change of the MC score:
- Shift row: slide a consecutive run of one structure by one column
- Expand block: add a column at a Block edge from free residues
- Shrink block: remove a (probably badly superimposed) column
- Insert gap: replace a (probably badly superimposed) residue by a gap

Improvements are always kept. Worse alignments are kept with a probability
that decays with the iteration number, so the search settles as it reaches
the iteration bound. The number of BlockSets and Blocks never changes.
"""

import logging
from enum import Enum
from typing import Protocol

import numpy as np

from biostructrefine.core.journal import EditJournal
from biostructrefine.core.model import GAP, MC_SCORE, Block, MultipleAlignment
from biostructrefine.core.pool import FreePool
from biostructrefine.core.scoring import (
    NO_DISTANCE,
    calculate_scores,
    distance_matrix,
    mc_score,
    rmsd,
)
from biostructrefine.core.superposition import ReferenceSuperimposer
from biostructrefine.exceptions import InvariantViolationError, SuperpositionError
from biostructrefine.optimization.history import HistorySample, HistorySink
from biostructrefine.optimization.parameters import MCParameters

logger = logging.getLogger(__name__)

# Failed move proposals tolerated within one iteration
MAX_MOVE_ATTEMPTS = 10_000

HISTORY_INTERVAL = 100

MIN_STEPS_TO_CONVERGE = 1000

RIGHT = 0
LEFT = 1


class StopSignal(Protocol):
    """Cancellation flag polled between iterations, such as threading.Event."""

    def is_set(self) -> bool: ...


class MoveType(Enum):
    """Alignment edits proposed by the optimizer."""

    SHIFT_ROW = "shift_row"
    EXPAND_BLOCK = "expand_block"
    SHRINK_BLOCK = "shrink_block"
    INSERT_GAP = "insert_gap"


# Proposal probability of each move, in dispatch order
MOVE_WEIGHTS = {
    MoveType.SHIFT_ROW: 0.5,
    MoveType.EXPAND_BLOCK: 0.3,
    MoveType.SHRINK_BLOCK: 0.1,
    MoveType.INSERT_GAP: 0.1,
}


def choose_move(draw: float) -> MoveType:
    """Map a uniform draw in [0, 1) onto a move by cumulative weight."""
    cumulative = 0.0
    for move, weight in MOVE_WEIGHTS.items():
        cumulative += weight
        if draw < cumulative:
            return move
    return MoveType.INSERT_GAP


def acceptance_probability(delta: float, iteration: int, max_iter: int, c: float) -> float:
    """
    Probability of keeping a move that lowered the score.

    p = (C + delta) / (iteration * C) * (1 - iteration / max_iter), clamped to [0, 1].
    The second factor drives p to 0 as the iteration bound is reached.
    """
    prob = (c + delta) / (iteration * c)
    norm = 1 - iteration / max_iter
    return min(max(prob * norm, 0.0), 1.0)


class MonteCarloOptimizer:
    """
    Refine a seed MultipleAlignment by Monte Carlo moves.

    The seed is cloned; the optimizer owns the clone, its free-residue pool and
    a private random stream, so independent optimizers can run in parallel.

    Args:
        seed: Alignment to refine (not modified)
        params: Optimization parameters
        history: Optional sink receiving a sample every 100 iterations

    Raises:
        ValueError: If the seed has fewer than two structures, the reference
            index is out of range or no column has enough aligned residues
    """

    def __init__(
        self,
        seed: MultipleAlignment,
        params: MCParameters | None = None,
        history: HistorySink | None = None,
    ) -> None:
        self.params = params or MCParameters()
        self.history = history
        self.rng = np.random.default_rng(self.params.random_seed)
        self.superimposer = ReferenceSuperimposer(self.params.reference)

        self.alignment = seed.clone()
        self.size = self.alignment.size
        if self.size < 2:
            raise ValueError("At least two structures are needed for a multiple alignment")
        if not 0 <= self.params.reference < self.size:
            raise ValueError(
                f"Reference index {self.params.reference} out of range for {self.size} structures"
            )

        if self.params.min_aligned_structures == 0:
            self.r_min = max(self.size // 3, 2)
        else:
            self.r_min = min(max(self.params.min_aligned_structures, 2), self.size)
        self.l_min = self.params.min_block_length
        self.convergence_steps = self.params.convergence_steps or (
            min(self.alignment.ensemble.lengths) * self.size
        )
        self.c = 10 * self.size

        self.pool = FreePool.from_alignment(self.alignment)
        self._journal = EditJournal()
        self.enforce_coverage()
        self._journal.commit()
        if self.alignment.length == 0:
            raise ValueError(f"No column of the seed alignment has {self.r_min} aligned residues")

        self._moves = {
            MoveType.SHIFT_ROW: self.shift_row,
            MoveType.EXPAND_BLOCK: self.expand_block,
            MoveType.SHRINK_BLOCK: self.shrink_block,
            MoveType.INSERT_GAP: self.insert_gap,
        }

        self.alignment.clear()
        self.superimposer.superimpose(self.alignment)
        self.mc_score = self._score()

    @property
    def max_iterations(self) -> int:
        return self.convergence_steps * 100

    def _score(self) -> float:
        return mc_score(self.alignment, self.params.gap_open, self.params.gap_extension)

    def optimize(
        self, max_iter: int | None = None, stop_event: StopSignal | None = None
    ) -> MultipleAlignment:
        """
        Run the Monte Carlo search and return the refined alignment.

        Args:
            max_iter: Iteration bound (default: convergence_steps x 100)
            stop_event: Flag checked before every iteration;
                when set, the current alignment is finalized and returned

        Returns:
            Refined alignment carrying MC_SCORE and the standard scores
        """
        if max_iter is None:
            max_iter = self.max_iterations
        steps_to_converge = max(max_iter // 50, MIN_STEPS_TO_CONVERGE)
        logger.info(
            "Monte Carlo optimization of %d structures: Rmin=%d, Lmin=%d, "
            "max %d iterations, initial score %.2f",
            self.size,
            self.r_min,
            self.l_min,
            max_iter,
            self.mc_score,
        )

        no_improvement = 0
        iteration = 1
        while iteration < max_iter and no_improvement < steps_to_converge:
            if stop_event is not None and stop_event.is_set():
                logger.info("Optimization cancelled at iteration %d", iteration)
                break

            last_score = self.mc_score
            move = self._apply_random_move()
            try:
                self._journal.keep_transforms(self.alignment.block_sets)
                self.superimposer.superimpose(self.alignment)
                self.mc_score = self._score()
            except SuperpositionError:
                self._journal.rollback()
                raise

            delta = self.mc_score - last_score
            if self.accept(delta, iteration, max_iter):
                self._journal.commit()
                no_improvement = 0
            else:
                self._journal.rollback()
                self.mc_score = last_score
                no_improvement += 1

            logger.debug(
                "Step %d: %s, delta %.3f, score %.3f, no improvement %d",
                iteration,
                move.value,
                delta,
                self.mc_score,
                no_improvement,
            )
            if iteration % HISTORY_INTERVAL == 1:
                self._record_history(iteration)
            iteration += 1

        self.superimposer.superimpose(self.alignment)
        calculate_scores(self.alignment)
        self.alignment.put_score(MC_SCORE, self.mc_score)
        logger.info(
            "Optimization finished after %d iterations: score %.2f, length %d",
            iteration - 1,
            self.mc_score,
            self.alignment.length,
        )
        return self.alignment

    def accept(self, delta: float, iteration: int, max_iter: int) -> bool:
        """Metropolis-like decision; non-negative score changes are always kept."""
        if delta >= 0:
            return True
        prob = acceptance_probability(delta, iteration, max_iter, self.c)
        return self.rng.random() <= prob

    def _apply_random_move(self) -> MoveType:
        for _ in range(MAX_MOVE_ATTEMPTS):
            move = choose_move(self.rng.random())
            if self._moves[move]():
                return move
        raise InvariantViolationError(
            f"No applicable move found in {MAX_MOVE_ATTEMPTS} attempts"
        )

    def _record_history(self, iteration: int) -> None:
        if self.history is None:
            return
        sample = HistorySample(
            step=iteration,
            length=self.alignment.length,
            rmsd=rmsd(self.alignment),
            score=self.mc_score,
        )
        try:
            self.history.append(sample)
        except Exception:
            logger.warning("History sink failed at iteration %d", iteration, exc_info=True)

    def enforce_coverage(self) -> bool:
        """
        Remove every column with fewer than Rmin residues.

        Freed residues return to the pool of their structure.

        Returns:
            True if any column was removed
        """
        removed_any = False
        for block in self.alignment.blocks:
            short = np.nonzero(block.non_gap_counts() < self.r_min)[0]
            for column in short[::-1]:
                self._release_column(block, int(column))
                removed_any = True
        return removed_any

    def _release_column(self, block: Block, column: int) -> None:
        values = self._journal.remove_column(block, column)
        for s, residue in enumerate(values):
            if residue != GAP:
                self._journal.pool_add(self.pool, s, int(residue))

    def insert_gap(self) -> bool:
        """Replace a residue far from the rest of its column by a gap."""
        distances = distance_matrix(self.alignment)
        blocks = self.alignment.blocks
        best = 0.0
        structure = block_index = position = 0
        column = 0
        for b, block in enumerate(blocks):
            for col in range(block.length):
                for s in range(self.size):
                    d = distances[s, column]
                    if d != NO_DISTANCE and d > best and self.rng.random() > 0.5:
                        best = d
                        structure, block_index, position = s, b, col
                column += 1

        block = blocks[block_index]
        if block.length <= self.l_min:
            return False
        residue = block.get(structure, position)
        if residue == GAP:
            return False

        self._journal.set_cell(block, structure, position, GAP)
        self._journal.pool_add(self.pool, structure, residue)
        self.enforce_coverage()
        return True

    def shrink_block(self) -> bool:
        """Remove a column with a large average distance."""
        distances = distance_matrix(self.alignment)
        blocks = self.alignment.blocks
        best = 0.0
        block_index = position = 0
        column = 0
        for b, block in enumerate(blocks):
            for col in range(block.length):
                values = distances[:, column]
                values = values[values != NO_DISTANCE]
                if values.size:
                    average = float(values.mean())
                    if average > best and self.rng.random() > 0.5:
                        best = average
                        block_index, position = b, col
                column += 1

        block = blocks[block_index]
        if block.length <= self.l_min:
            return False
        self._release_column(block, position)
        return True

    def shift_row(self) -> bool:
        """Fill a gap from the pool, or slide a consecutive run one column."""
        structure = int(self.rng.integers(self.size))
        direction = int(self.rng.integers(2))
        blocks = self.alignment.blocks
        block = blocks[int(self.rng.integers(len(blocks)))]
        if block.length == 0:
            return False
        pivot = int(self.rng.integers(block.length))

        if block.is_gap(structure, pivot):
            return self._fill_gap(block, structure, pivot)

        left, right = self._consecutive_run(block.columns[structure], pivot)
        if direction == RIGHT:
            self._shift_right(block, structure, left, right)
        else:
            self._shift_left(block, structure, left, right)
        self.enforce_coverage()
        return True

    def _fill_gap(self, block: Block, structure: int, pivot: int) -> bool:
        row = block.columns[structure]
        right = pivot
        while row[right] == GAP and right < block.length - 1:
            right += 1
        left = pivot
        while row[left] == GAP and left > 0:
            left -= 1
        left_residue = int(row[left])
        right_residue = int(row[right])

        if left_residue == GAP and right_residue == GAP:
            return False
        if left_residue == GAP:
            residue = right_residue - 1
            if not self.pool.contains(structure, residue):
                return False
        elif right_residue == GAP:
            residue = left_residue + 1
            if not self.pool.contains(structure, residue):
                return False
        else:
            if right_residue <= left_residue + 1:
                return False
            residue = int(self.rng.integers(left_residue + 1, right_residue))
            if not self.pool.contains(structure, residue):
                raise InvariantViolationError(
                    f"Residue {residue} of structure {structure} lies between aligned residues "
                    f"{left_residue} and {right_residue} but is not in the free pool"
                )

        self._journal.set_cell(block, structure, pivot, residue)
        self._journal.pool_remove(self.pool, structure, residue)
        return True

    @staticmethod
    def _consecutive_run(row: np.ndarray, pivot: int) -> tuple[int, int]:
        """Bounds of the gap-free, sequence-consecutive run containing the pivot."""
        left = pivot
        while left > 0 and row[left - 1] != GAP and row[left - 1] == row[left] - 1:
            left -= 1
        right = pivot
        while right < len(row) - 1 and row[right + 1] != GAP and row[right + 1] == row[right] + 1:
            right += 1
        return left, right

    def _shift_right(self, block: Block, structure: int, left: int, right: int) -> None:
        row = block.columns[structure]
        trailing = int(row[right])
        leading = int(row[left]) - 1
        fill = leading if self.pool.contains(structure, leading) else GAP
        segment = np.concatenate(([fill], row[left:right]))
        self._journal.set_row_segment(block, structure, left, segment)
        self._journal.pool_add(self.pool, structure, trailing)
        if fill != GAP:
            self._journal.pool_remove(self.pool, structure, fill)

    def _shift_left(self, block: Block, structure: int, left: int, right: int) -> None:
        row = block.columns[structure]
        trailing = int(row[left])
        leading = int(row[right]) + 1
        fill = leading if self.pool.contains(structure, leading) else GAP
        segment = np.concatenate((row[left + 1 : right + 1], [fill]))
        self._journal.set_row_segment(block, structure, left, segment)
        self._journal.pool_add(self.pool, structure, trailing)
        if fill != GAP:
            self._journal.pool_remove(self.pool, structure, fill)

    def _discontinuities(self, before: np.ndarray, after: np.ndarray) -> int:
        """Structures whose residues in two adjacent columns are not sequence neighbours."""
        return int(np.count_nonzero((before != GAP) & (after != GAP) & (after != before + 1)))

    def expand_block(self) -> bool:
        """Add a column at the edge of a consecutive region, taking residues from the pool."""
        direction = int(self.rng.integers(2))
        blocks = self.alignment.blocks
        block = blocks[int(self.rng.integers(len(blocks)))]
        if block.length == 0:
            return False
        pivot = int(self.rng.integers(block.length))
        table = block.columns

        frontier = pivot
        if direction == RIGHT:
            while (
                frontier < block.length - 1
                and self._discontinuities(table[:, frontier], table[:, frontier + 1]) < self.r_min
            ):
                frontier += 1
            insert_at, step = frontier + 1, 1
        else:
            while (
                frontier > 0
                and self._discontinuities(table[:, frontier - 1], table[:, frontier]) < self.r_min
            ):
                frontier -= 1
            insert_at, step = frontier, -1

        values = []
        for s in range(self.size):
            residue = int(table[s, frontier])
            if residue != GAP and self.pool.contains(s, residue + step):
                values.append(residue + step)
            else:
                values.append(GAP)

        self._journal.insert_column(block, insert_at, values)
        for s, residue in enumerate(values):
            if residue != GAP:
                self._journal.pool_remove(self.pool, s, residue)

        if sum(r != GAP for r in values) >= self.r_min:
            return True
        self.enforce_coverage()
        return False


def optimize_alignment(
    seed: MultipleAlignment,
    params: MCParameters | None = None,
    history: HistorySink | None = None,
    stop_event: StopSignal | None = None,
    max_iter: int | None = None,
) -> MultipleAlignment:
    """Refine ``seed`` with a single Monte Carlo run."""
    optimizer = MonteCarloOptimizer(seed, params, history)
    return optimizer.optimize(max_iter=max_iter, stop_event=stop_event)
