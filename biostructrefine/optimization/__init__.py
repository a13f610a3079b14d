"""
Monte Carlo optimization modules
"""

from biostructrefine.optimization.history import OptimizationHistory, save_history
from biostructrefine.optimization.optimizer import (
    MonteCarloOptimizer,
    MoveType,
    StopSignal,
    optimize_alignment,
)
from biostructrefine.optimization.parallel import best_alignment, optimize_restarts
from biostructrefine.optimization.parameters import MCParameters

__all__ = [
    "MCParameters",
    "MonteCarloOptimizer",
    "MoveType",
    "OptimizationHistory",
    "StopSignal",
    "best_alignment",
    "optimize_alignment",
    "optimize_restarts",
    "save_history",
]
