"""
Rigid-body superposition of aligned structures

Every non-reference structure is superimposed onto the reference structure,
one transform per BlockSet, using only the columns where both structures have
a residue. Transforms follow the Biopython convention:
transformed = coords @ rotation + translation.
"""

import logging

import numpy as np
from Bio.SVDSuperimposer import SVDSuperimposer

from biostructrefine.core.model import GAP, MultipleAlignment
from biostructrefine.exceptions import SuperpositionError

logger = logging.getLogger(__name__)

# Shared columns needed before a structure contributes a transform
MIN_SHARED_COLUMNS = 2

# Singular values (Å) of centred points at or below this count as flat; points
# of rank below 2 lie on a line and leave the rotation about it undefined
COLLINEAR_TOLERANCE = 1e-3


def identity_transform() -> tuple[np.ndarray, np.ndarray]:
    return np.eye(3), np.zeros(3)


def is_collinear(coords: np.ndarray) -> bool:
    """True if the points span less than a plane (a line or a single point)."""
    centered = coords - coords.mean(axis=0)
    return np.linalg.matrix_rank(centered, tol=COLLINEAR_TOLERANCE) < 2


def superimpose_structures(reference_coords: np.ndarray, coords: np.ndarray) -> tuple:
    """
    Perform structural superimposition using SVD.

    Args:
        reference_coords: Fixed coordinates (N x 3)
        coords: Coordinates to move onto the reference (N x 3)

    Returns:
        tuple: (rmsd, rotation_matrix, translation_vector)

    Raises:
        SuperpositionError: If the coordinates are non-finite or collinear, or SVD fails
    """
    if reference_coords.shape != coords.shape:
        raise SuperpositionError(
            f"Coordinate arrays must have same shape. "
            f"Got {reference_coords.shape} and {coords.shape}"
        )
    if not (np.all(np.isfinite(reference_coords)) and np.all(np.isfinite(coords))):
        raise SuperpositionError("Cannot superimpose non-finite coordinates")
    if is_collinear(reference_coords) or is_collinear(coords):
        raise SuperpositionError(
            f"Cannot superimpose {len(coords)} collinear points; the rotation is undefined"
        )

    superimposer = SVDSuperimposer()
    superimposer.set(reference_coords, coords)
    try:
        superimposer.run()
    except np.linalg.LinAlgError as e:
        raise SuperpositionError(f"SVD superposition failed: {e}") from e

    rotation_matrix, translation_vector = superimposer.get_rotran()
    if not (np.all(np.isfinite(rotation_matrix)) and np.all(np.isfinite(translation_vector))):
        raise SuperpositionError("Superposition produced a degenerate transform")

    return superimposer.get_rms(), rotation_matrix, translation_vector


class ReferenceSuperimposer:
    """
    Superimpose all structures of an alignment onto one reference structure.

    Args:
        reference: Index of the structure kept fixed
    """

    def __init__(self, reference: int = 0) -> None:
        self.reference = reference

    def superimpose(self, alignment: MultipleAlignment) -> None:
        """
        Compute and store the transforms of every BlockSet in place.

        Raises:
            ValueError: If the reference index is out of range
            SuperpositionError: If a structure shares two or more columns with
                the reference but the shared points are collinear
        """
        if not 0 <= self.reference < alignment.size:
            raise ValueError(
                f"Reference index {self.reference} out of range for {alignment.size} structures"
            )
        ensemble = alignment.ensemble
        for bs_index, block_set in enumerate(alignment.block_sets):
            table = block_set.concatenated()
            ref_row = table[self.reference]
            transforms = []
            for s in range(alignment.size):
                if s == self.reference:
                    transforms.append(identity_transform())
                    continue
                shared = (ref_row != GAP) & (table[s] != GAP)
                if np.count_nonzero(shared) < MIN_SHARED_COLUMNS:
                    logger.debug(
                        "Structure %d shares %d columns with the reference in BlockSet %d; "
                        "keeping identity transform",
                        s,
                        np.count_nonzero(shared),
                        bs_index,
                    )
                    transforms.append(identity_transform())
                    continue
                reference_coords = ensemble.coords(self.reference)[ref_row[shared]]
                coords = ensemble.coords(s)[table[s][shared]]
                try:
                    _, rotation, translation = superimpose_structures(reference_coords, coords)
                except SuperpositionError as e:
                    raise SuperpositionError(f"Structure {s} in BlockSet {bs_index}: {e}") from e
                transforms.append((rotation, translation))
            block_set.transforms = transforms


def transformed_column_coordinates(alignment: MultipleAlignment) -> np.ndarray:
    """
    Post-superposition coordinates of every alignment cell.

    Returns:
        (size, length, 3) array, NaN where the cell is a gap
    """
    coords = np.full((alignment.size, alignment.length, 3), np.nan)
    ensemble = alignment.ensemble
    offset = 0
    for block_set in alignment.block_sets:
        transforms = block_set.transforms
        for block in block_set.blocks:
            for s in range(alignment.size):
                row = block.columns[s]
                filled = row != GAP
                positions = np.nonzero(filled)[0] + offset
                points = ensemble.coords(s)[row[filled]]
                if transforms is not None:
                    rotation, translation = transforms[s]
                    points = np.dot(points, rotation) + translation
                coords[s, positions] = points
            offset += block.length
    return coords
