"""
Independent Monte Carlo restarts

Runs share nothing but the read-only seed: each run clones the seed and owns
its random stream (seeded ``random_seed + run``) and free pool, so they can
execute in separate processes.
"""

import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, replace

from biostructrefine.core.model import MC_SCORE, MultipleAlignment
from biostructrefine.optimization.optimizer import optimize_alignment
from biostructrefine.optimization.parameters import MCParameters

logger = logging.getLogger(__name__)


@dataclass
class RestartJob:
    """One independent optimization run."""

    run: int
    seed: MultipleAlignment
    params: MCParameters
    max_iter: int | None = None


def run_restart(job: RestartJob) -> MultipleAlignment:
    """Execute a single restart; runs in a worker process."""
    logger.info("Starting restart %d (random seed %d)", job.run, job.params.random_seed)
    return optimize_alignment(job.seed, job.params, max_iter=job.max_iter)


def optimize_restarts(
    seed: MultipleAlignment,
    params: MCParameters | None = None,
    n_runs: int | None = None,
    max_workers: int | None = None,
    max_iter: int | None = None,
) -> list[MultipleAlignment]:
    """
    Refine ``seed`` with independent runs, in parallel when possible.

    Args:
        seed: Alignment to refine (not modified)
        params: Base parameters; run k uses random_seed + k
        n_runs: Number of runs (default: params.n_runs)
        max_workers: Worker processes; 1 runs everything in this process
        max_iter: Optional iteration bound passed to every run

    Returns:
        Refined alignments in run order
    """
    params = params or MCParameters()
    n_runs = n_runs or params.n_runs
    jobs = [
        RestartJob(
            run=k,
            seed=seed,
            params=replace(params, random_seed=params.random_seed + k),
            max_iter=max_iter,
        )
        for k in range(n_runs)
    ]

    if max_workers == 1 or n_runs == 1:
        return [run_restart(job) for job in jobs]

    results: dict[int, MultipleAlignment] = {}
    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(run_restart, job): job.run for job in jobs}
        for future in as_completed(futures):
            run = futures[future]
            results[run] = future.result()
            logger.info("Restart %d finished with score %.2f", run, results[run].scores[MC_SCORE])
    return [results[k] for k in range(n_runs)]


def best_alignment(results: list[MultipleAlignment]) -> MultipleAlignment:
    """Return the refined alignment with the highest MC score."""
    if not results:
        raise ValueError("No optimization results to choose from")
    return max(results, key=lambda aln: aln.scores[MC_SCORE])
