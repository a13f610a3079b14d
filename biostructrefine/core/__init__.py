"""Core modules for the alignment model, superposition and scoring."""

from biostructrefine.core.io import read_alignment, write_alignment
from biostructrefine.core.model import Block, BlockSet, Ensemble, MultipleAlignment, Structure
from biostructrefine.core.pool import FreePool
from biostructrefine.core.scoring import calculate_scores, distance_matrix, mc_score, rmsd
from biostructrefine.core.superposition import ReferenceSuperimposer, superimpose_structures

__all__ = [
    "Block",
    "BlockSet",
    "Ensemble",
    "FreePool",
    "MultipleAlignment",
    "ReferenceSuperimposer",
    "Structure",
    "calculate_scores",
    "distance_matrix",
    "mc_score",
    "read_alignment",
    "rmsd",
    "superimpose_structures",
    "write_alignment",
]
