"""CLI scripts called from __main__.py"""

import argparse
import logging
import os
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from biostructrefine.optimization.parameters import MCParameters


def setup_logging(verbose: int = 0) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: Verbosity level (0=WARNING, 1=INFO, 2=DEBUG)
    """
    if verbose == 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:  # verbose >= 2
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("biostructrefine").setLevel(level)


def validate_file_path(input_path: str) -> Path:
    """Validate file_path and readability"""
    file_path = Path(input_path)
    checks = [
        (lambda: file_path.exists(), "Path does not exist"),
        (lambda: file_path.is_file(), "Not a valid file"),
        (lambda: os.access(file_path, os.R_OK), "No read permission"),
        (lambda: file_path.stat().st_size > 0, "File is empty"),
    ]
    for condition, error_message in checks:
        if not condition():
            raise argparse.ArgumentTypeError(f"File Validation Error: {error_message}")
    return file_path


def get_version() -> str:
    """Get version from package metadata"""
    try:
        return version("BioStructRefine")
    except PackageNotFoundError:
        return "0.1.0"  # Fallback for development


def arg_parser(argv: list[str] | None = None) -> argparse.Namespace:
    """Assemble command-line argument processing"""
    defaults = MCParameters()
    parser = argparse.ArgumentParser(
        description="Refine a multiple structural alignment by Monte Carlo optimization"
    )

    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=get_version(),
        help="View BioStructRefine version number",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (-v for INFO, -vv for DEBUG/trace)",
    )

    # Input and output
    parser.add_argument(
        "seed_alignment",
        type=validate_file_path,
        help="Path to the seed alignment JSON file",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Path for the refined alignment JSON (default: print scores only)",
    )
    parser.add_argument(
        "--history",
        type=Path,
        help="Write the optimization history (Step,Length,RMSD,Score) to this CSV file",
    )

    # Optimizer parameters
    parser.add_argument("--gap-open", type=float, default=defaults.gap_open,
                        help="Penalty for opening a gap")
    parser.add_argument("--gap-extension", type=float, default=defaults.gap_extension,
                        help="Penalty for extending a gap")
    parser.add_argument("--seed", type=int, default=defaults.random_seed,
                        help="Random seed")
    parser.add_argument("--convergence-steps", type=int, default=defaults.convergence_steps,
                        help="Iteration bound scale (0 = automatic)")
    parser.add_argument("--min-aligned", type=int, default=defaults.min_aligned_structures,
                        help="Minimum aligned structures per column (0 = automatic)")
    parser.add_argument("--min-block-length", type=int, default=defaults.min_block_length,
                        help="Minimum Block length")
    parser.add_argument("--reference", type=int, default=defaults.reference,
                        help="Index of the reference structure")
    parser.add_argument("--runs", type=int, default=defaults.n_runs,
                        help="Number of independent restarts")
    parser.add_argument("--workers", type=int, default=None,
                        help="Worker processes for restarts (default: one per CPU)")

    return parser.parse_args(argv)


def parameters_from_args(args: argparse.Namespace) -> MCParameters:
    """Map parsed arguments onto optimizer parameters."""
    return MCParameters(
        gap_open=args.gap_open,
        gap_extension=args.gap_extension,
        random_seed=args.seed,
        convergence_steps=args.convergence_steps,
        min_aligned_structures=args.min_aligned,
        min_block_length=args.min_block_length,
        reference=args.reference,
        n_runs=args.runs,
    )
