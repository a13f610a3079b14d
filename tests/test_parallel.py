"""Tests for independent optimization restarts."""

from dataclasses import replace

import pytest

from biostructrefine.core.model import MC_SCORE
from biostructrefine.optimization.optimizer import optimize_alignment
from biostructrefine.optimization.parallel import (
    RestartJob,
    best_alignment,
    optimize_restarts,
    run_restart,
)
from biostructrefine.optimization.parameters import MCParameters
from conftest import consecutive_rows, make_alignment, make_ensemble

PARAMS = MCParameters(min_aligned_structures=2, min_block_length=3, random_seed=7)


@pytest.fixture
def seed():
    ensemble = make_ensemble(size=3, length=16, noise=0.4, seed=3)
    return make_alignment(ensemble, consecutive_rows(3, 2, 12))


class TestRestarts:
    """Test restart scheduling and result ordering."""

    def test_serial_runs_use_offset_seeds(self, seed):
        results = optimize_restarts(seed, PARAMS, n_runs=3, max_workers=1, max_iter=40)

        assert len(results) == 3
        for k, result in enumerate(results):
            expected = optimize_alignment(seed, replace(PARAMS, random_seed=7 + k), max_iter=40)
            assert result.same_columns(expected)
            assert result.scores[MC_SCORE] == expected.scores[MC_SCORE]

    def test_n_runs_defaults_to_parameters(self, seed):
        results = optimize_restarts(seed, replace(PARAMS, n_runs=2), max_workers=1, max_iter=10)
        assert len(results) == 2

    def test_process_pool_matches_serial(self, seed):
        serial = optimize_restarts(seed, PARAMS, n_runs=2, max_workers=1, max_iter=20)
        parallel = optimize_restarts(seed, PARAMS, n_runs=2, max_workers=2, max_iter=20)

        for a, b in zip(serial, parallel):
            assert a.same_columns(b)
            assert a.scores == b.scores

    def test_seed_untouched(self, seed):
        original = seed.clone()
        optimize_restarts(seed, PARAMS, n_runs=2, max_workers=1, max_iter=30)
        assert seed.same_columns(original)

    def test_run_restart(self, seed):
        job = RestartJob(run=0, seed=seed, params=PARAMS, max_iter=0)
        result = run_restart(job)
        assert result.same_columns(seed)


class TestBestAlignment:
    """Test selection of the best restart."""

    def test_highest_score_wins(self, seed):
        results = [seed.clone() for _ in range(3)]
        for result, score in zip(results, (5.0, 9.0, 1.0)):
            result.put_score(MC_SCORE, score)

        assert best_alignment(results) is results[1]

    def test_empty_results(self):
        with pytest.raises(ValueError):
            best_alignment([])
