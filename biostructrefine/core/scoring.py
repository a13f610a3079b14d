"""
Scores for multiple structural alignments

The MC score rewards columns whose residues superimpose closely and
penalises gaps:
- Pair term: 20 / (1 + (d/d0)^2) - A for every pair of residues sharing a
  column, where A is the same term evaluated at the 7 Å distance cutoff
- Gap term: gap_open for the first gap of a run, gap_extension for every
  further consecutive gap, per structure row of each Block. Runs never
  continue across a Block boundary; a gap at the start of a Block opens a
  new run.

All distances are measured after superposition, so the alignment must have
been superimposed first.
"""

import numpy as np

from biostructrefine.core.model import AVG_TM_SCORE, GAP, RMSD, MultipleAlignment
from biostructrefine.core.superposition import transformed_column_coordinates

# Value of distance_matrix cells that have no distance
NO_DISTANCE = -1.0

# Distance (Angstroms) at which a pair of residues stops contributing
DISTANCE_CUTOFF = 7.0

MAX_PAIR_SCORE = 20.0


def tm_d0(length: int) -> float:
    """TM-score distance scale for a chain of the given length (floored at 0.5 Å)."""
    d0 = 1.24 * np.cbrt(length - 15.0) - 1.8
    return float(max(d0, 0.5))


def _pairwise_column_distances(coords: np.ndarray) -> np.ndarray:
    """(size, size, length) distances between structures in every column, NaN at gaps."""
    diff = coords[:, None, :, :] - coords[None, :, :, :]
    return np.sqrt(np.sum(diff**2, axis=-1))


def count_gaps(table: np.ndarray) -> tuple[int, int]:
    """
    Count gap openings and extensions of an alignment table.

    Args:
        table: (size, length) residue indices with GAP for gaps

    Returns:
        tuple: (gap_openings, gap_extensions)
    """
    gaps = table == GAP
    if gaps.shape[1] == 0:
        return 0, 0
    # A gap opens where the previous cell of the row is not a gap
    previous = np.zeros_like(gaps)
    previous[:, 1:] = gaps[:, :-1]
    openings = int(np.count_nonzero(gaps & ~previous))
    extensions = int(np.count_nonzero(gaps & previous))
    return openings, extensions


def mc_score(alignment: MultipleAlignment, gap_open: float, gap_extension: float) -> float:
    """
    Monte Carlo objective of a superimposed alignment (higher is better).

    Args:
        alignment: Superimposed MultipleAlignment
        gap_open: Penalty for the first gap of a run
        gap_extension: Penalty for every further gap of a run

    Returns:
        Fit term minus gap penalties
    """
    d0 = tm_d0(min(alignment.ensemble.lengths))
    cutoff_term = MAX_PAIR_SCORE / (1 + (DISTANCE_CUTOFF / d0) ** 2)

    distances = _pairwise_column_distances(transformed_column_coordinates(alignment))
    upper = np.triu_indices(alignment.size, k=1)
    pair_distances = distances[upper[0], upper[1]]
    shared = pair_distances[np.isfinite(pair_distances)]
    fit = float(np.sum(MAX_PAIR_SCORE / (1 + (shared / d0) ** 2) - cutoff_term))

    penalty = 0.0
    for block in alignment.blocks:
        openings, extensions = count_gaps(block.columns)
        penalty += openings * gap_open + extensions * gap_extension
    return fit - penalty


def distance_matrix(alignment: MultipleAlignment) -> np.ndarray:
    """
    Average post-superposition distance of each residue to the rest of its column.

    Returns:
        (size, length) matrix; NO_DISTANCE where the cell is a gap or fewer
        than two structures have a residue in the column
    """
    distances = _pairwise_column_distances(transformed_column_coordinates(alignment))
    size = alignment.size
    present = np.isfinite(distances)
    present[np.arange(size), np.arange(size), :] = False

    counts = np.count_nonzero(present, axis=1)
    totals = np.where(present, distances, 0.0).sum(axis=1)
    result = np.full(counts.shape, NO_DISTANCE)
    np.divide(totals, counts, out=result, where=counts > 0)
    return result


def rmsd(alignment: MultipleAlignment) -> float:
    """Root mean square of all pairwise column distances of a superimposed alignment."""
    distances = _pairwise_column_distances(transformed_column_coordinates(alignment))
    upper = np.triu_indices(alignment.size, k=1)
    pair_distances = distances[upper[0], upper[1]]
    shared = pair_distances[np.isfinite(pair_distances)]
    if shared.size == 0:
        return float("inf")
    return float(np.sqrt(np.mean(shared**2)))


def average_tm_score(alignment: MultipleAlignment) -> float:
    """Mean pairwise TM-score, each pair normalised by its shorter structure."""
    distances = _pairwise_column_distances(transformed_column_coordinates(alignment))
    lengths = alignment.ensemble.lengths
    scores = []
    for s1 in range(alignment.size):
        for s2 in range(s1 + 1, alignment.size):
            pair = distances[s1, s2]
            shared = pair[np.isfinite(pair)]
            length = min(lengths[s1], lengths[s2])
            d0 = tm_d0(length)
            scores.append(float(np.sum(1 / (1 + (shared / d0) ** 2))) / length)
    if not scores:
        return 0.0
    return float(np.mean(scores))


def calculate_scores(alignment: MultipleAlignment) -> None:
    """Attach the standard scores (RMSD, average TM-score) to a superimposed alignment."""
    alignment.put_score(RMSD, rmsd(alignment))
    alignment.put_score(AVG_TM_SCORE, average_tm_score(alignment))
