"""Monte Carlo refinement of multiple structural alignments."""

from biostructrefine.core.model import (
    GAP,
    MC_SCORE,
    Block,
    BlockSet,
    Ensemble,
    MultipleAlignment,
    Structure,
)
from biostructrefine.optimization.optimizer import MonteCarloOptimizer, optimize_alignment
from biostructrefine.optimization.parameters import MCParameters

__all__ = [
    "GAP",
    "MC_SCORE",
    "Block",
    "BlockSet",
    "Ensemble",
    "MCParameters",
    "MonteCarloOptimizer",
    "MultipleAlignment",
    "Structure",
    "optimize_alignment",
]
