"""
Tests for MC score, distance matrix and RMSD calculations
"""

import numpy as np
import pytest

from biostructrefine.core.model import AVG_TM_SCORE, GAP, RMSD
from biostructrefine.core.scoring import (
    DISTANCE_CUTOFF,
    MAX_PAIR_SCORE,
    NO_DISTANCE,
    average_tm_score,
    calculate_scores,
    count_gaps,
    distance_matrix,
    mc_score,
    rmsd,
    tm_d0,
)
from biostructrefine.core.superposition import ReferenceSuperimposer
from conftest import consecutive_rows, make_alignment, make_ensemble


def superimposed(alignment):
    ReferenceSuperimposer(0).superimpose(alignment)
    return alignment


class TestGapCounting:
    """Test gap opening and extension counts."""

    def test_runs(self):
        table = np.array([[0, GAP, GAP, 3, GAP]])
        assert count_gaps(table) == (2, 1)

    def test_no_gaps(self):
        assert count_gaps(np.arange(6).reshape(2, 3)) == (0, 0)

    def test_leading_gap_run(self):
        table = np.array([[GAP, GAP, GAP, 4], [1, 2, 3, 4]])
        assert count_gaps(table) == (1, 2)


class TestTmD0:
    """Test the TM-score distance scale."""

    def test_short_chain_floor(self):
        assert tm_d0(10) == 0.5

    def test_long_chain(self):
        assert tm_d0(100) == pytest.approx(1.24 * np.cbrt(85) - 1.8)


class TestMcScore:
    """Test the Monte Carlo objective."""

    def test_perfect_alignment(self, full_alignment):
        d0 = tm_d0(10)
        per_pair = MAX_PAIR_SCORE - MAX_PAIR_SCORE / (1 + (DISTANCE_CUTOFF / d0) ** 2)

        score = mc_score(superimposed(full_alignment), gap_open=10.0, gap_extension=5.0)

        assert score == pytest.approx(30 * per_pair, rel=1e-6)

    def test_gap_costs_pairs_and_penalty(self, full_alignment):
        d0 = tm_d0(10)
        per_pair = MAX_PAIR_SCORE - MAX_PAIR_SCORE / (1 + (DISTANCE_CUTOFF / d0) ** 2)
        full_alignment.blocks[0].set_cell(0, 5, GAP)

        score = mc_score(superimposed(full_alignment), gap_open=10.0, gap_extension=5.0)

        assert score == pytest.approx(28 * per_pair - 10.0, rel=1e-6)

    def test_gap_runs_restart_at_block_boundary(self, identical_ensemble):
        d0 = tm_d0(10)
        per_pair = MAX_PAIR_SCORE - MAX_PAIR_SCORE / (1 + (DISTANCE_CUTOFF / d0) ** 2)
        alignment = make_alignment(
            identical_ensemble,
            [[0, 1, 2, None], [0, 1, 2, 3], [0, 1, 2, 3]],
            [[None, 5, 6, 7], [4, 5, 6, 7], [4, 5, 6, 7]],
        )

        score = mc_score(superimposed(alignment), gap_open=10.0, gap_extension=5.0)

        # Two openings, no extension
        assert score == pytest.approx(20 * per_pair - 20.0, rel=1e-6)

    def test_misaligned_scores_lower(self, identical_ensemble):
        good = superimposed(make_alignment(identical_ensemble, consecutive_rows(3, 0, 8)))
        bad = superimposed(
            make_alignment(identical_ensemble, [list(range(0, 8)), list(range(2, 10)), list(range(0, 8))])
        )

        assert mc_score(good, 10.0, 5.0) > mc_score(bad, 10.0, 5.0)


class TestDistanceMatrix:
    """Test per-cell average distances."""

    def test_identical_structures(self, full_alignment):
        distances = distance_matrix(superimposed(full_alignment))

        assert distances.shape == (3, 10)
        assert np.allclose(distances, 0.0, atol=1e-6)

    def test_sentinels(self, identical_ensemble):
        alignment = make_alignment(
            identical_ensemble,
            [[0, 1, 2, 3, 4], [0, None, 2, 3, 4], [0, None, None, 3, 4]],
        )

        distances = distance_matrix(superimposed(alignment))

        # Column 1 holds a single residue, gap cells have no distance
        assert np.all(distances[:, 1] == NO_DISTANCE)
        assert distances[2, 2] == NO_DISTANCE
        assert distances[0, 2] != NO_DISTANCE
        assert np.all(distances[:, 0] >= 0)

    def test_shifted_row_is_far(self, identical_ensemble):
        alignment = make_alignment(
            identical_ensemble,
            [list(range(0, 8)), list(range(0, 8)), list(range(1, 9))],
        )

        distances = distance_matrix(superimposed(alignment))

        assert distances[2].mean() > distances[0].mean() - 1e-9
        assert np.all(distances >= 0)


class TestRmsdAndTmScore:
    """Test the diagnostic scores."""

    def test_rmsd_identical(self, full_alignment):
        assert rmsd(superimposed(full_alignment)) == pytest.approx(0.0, abs=1e-6)

    def test_rmsd_noisy_positive(self):
        ensemble = make_ensemble(size=3, length=20, noise=0.8, seed=4)
        alignment = superimposed(make_alignment(ensemble, consecutive_rows(3, 0, 20)))
        assert rmsd(alignment) > 0.1

    def test_tm_score_identical(self, full_alignment):
        assert average_tm_score(superimposed(full_alignment)) == pytest.approx(1.0, rel=1e-6)

    def test_calculate_scores(self, full_alignment):
        calculate_scores(superimposed(full_alignment))

        assert full_alignment.scores[RMSD] == pytest.approx(0.0, abs=1e-6)
        assert full_alignment.scores[AVG_TM_SCORE] == pytest.approx(1.0, rel=1e-6)
