#!/usr/bin/env python3

"""Entry point for biostructrefine"""

import logging
import sys

from biostructrefine.cli import arg_parser, parameters_from_args, setup_logging
from biostructrefine.core.io import read_alignment, write_alignment
from biostructrefine.core.model import AVG_TM_SCORE, MC_SCORE, RMSD
from biostructrefine.exceptions import InvariantViolationError, SuperpositionError
from biostructrefine.optimization.history import OptimizationHistory, save_history
from biostructrefine.optimization.optimizer import MonteCarloOptimizer
from biostructrefine.optimization.parallel import best_alignment, optimize_restarts

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for alignment refinement."""
    args = arg_parser(argv)
    setup_logging(args.verbose)

    try:
        params = parameters_from_args(args)
        print("Loading seed alignment...")
        seed = read_alignment(args.seed_alignment)

        print(f"Refining alignment of {seed.size} structures ({seed.length} columns)...")
        if params.n_runs == 1:
            history = OptimizationHistory()
            refined = MonteCarloOptimizer(seed, params, history).optimize()
            if args.history:
                save_history(history, args.history)
        else:
            if args.history:
                logger.warning("History is only recorded for single runs")
            results = optimize_restarts(seed, params, max_workers=args.workers)
            refined = best_alignment(results)
    except (ValueError, SuperpositionError, InvariantViolationError) as e:
        print(f"Refinement failed: {e}", file=sys.stderr)
        return 1

    print("\n=== REFINED ALIGNMENT ===")
    print(f"MC Score:          {refined.scores[MC_SCORE]:.2f}")
    print(f"RMSD:              {refined.scores[RMSD]:.3f} Å")
    print(f"Average TM-score:  {refined.scores[AVG_TM_SCORE]:.3f}")
    print(f"Alignment length:  {refined.length} (seed {seed.length})")

    if args.output:
        try:
            write_alignment(refined, args.output)
        except OSError as e:
            print(f"Refinement failed: {e}", file=sys.stderr)
            return 1
        print(f"\nRefined alignment saved to: {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
