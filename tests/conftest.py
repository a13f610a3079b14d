"""
Shared test fixtures and helpers for alignment and GEMMI-compatible testing
"""

from unittest.mock import Mock

import numpy as np
import pytest

from biostructrefine.core.model import GAP, Block, BlockSet, Ensemble, MultipleAlignment, Structure


def random_rotation(rng: np.random.Generator) -> np.ndarray:
    """Uniformly random proper rotation matrix."""
    q, r = np.linalg.qr(rng.normal(size=(3, 3)))
    q = q * np.sign(np.diag(r))
    if np.linalg.det(q) < 0:
        q[:, 0] = -q[:, 0]
    return q


def make_chain_coords(length: int, seed: int = 0) -> np.ndarray:
    """Random walk with 3.8 Å steps, like consecutive Cα atoms."""
    rng = np.random.default_rng(seed)
    steps = rng.normal(size=(length, 3))
    steps = 3.8 * steps / np.linalg.norm(steps, axis=1, keepdims=True)
    return np.cumsum(steps, axis=0)


def make_ensemble(size: int = 3, length: int = 10, noise: float = 0.0, seed: int = 0) -> Ensemble:
    """Rigidly moved copies of one chain, optionally perturbed by Gaussian noise."""
    rng = np.random.default_rng(seed + 1)
    base = make_chain_coords(length, seed)
    structures = []
    for s in range(size):
        coords = base + rng.normal(scale=noise, size=base.shape) if noise else base.copy()
        if s > 0:
            coords = coords @ random_rotation(rng) + rng.normal(scale=10.0, size=3)
        structures.append(Structure(f"s{s}", coords))
    return Ensemble(structures)


def make_alignment(ensemble: Ensemble, *blocks: list[list[int | None]]) -> MultipleAlignment:
    """Single-BlockSet alignment from per-structure rows (None for gaps)."""
    return make_multi_alignment(ensemble, list(blocks))


def make_multi_alignment(ensemble: Ensemble, *block_sets: list[list[list[int | None]]]) -> MultipleAlignment:
    """Alignment with one BlockSet per argument, each a list of Blocks given as rows."""
    return MultipleAlignment(
        ensemble,
        [BlockSet([Block.from_rows(rows) for rows in blocks]) for blocks in block_sets],
    )


def make_hinged_ensemble(length: int = 20, seed: int = 6) -> Ensemble:
    """Two structures whose halves are moved by different rigid transforms."""
    rng = np.random.default_rng(seed)
    base = make_chain_coords(length, seed)
    half = length // 2
    first = base[:half] @ random_rotation(rng) + rng.normal(scale=10.0, size=3)
    second = base[half:] @ random_rotation(rng) + rng.normal(scale=10.0, size=3)
    return Ensemble([Structure("s0", base), Structure("s1", np.vstack([first, second]))])


def consecutive_rows(size: int, start: int, stop: int) -> list[list[int]]:
    """Gap-free rows aligning residues start..stop-1 of every structure."""
    return [list(range(start, stop)) for _ in range(size)]


def assert_alignment_consistent(alignment: MultipleAlignment, pool, r_min: int) -> None:
    """Columns meet Rmin and every residue is either aligned once or free."""
    for block in alignment.blocks:
        assert block.columns.shape == (alignment.size, block.length)
        if block.length:
            assert np.all(block.non_gap_counts() >= r_min)
    for s, length in enumerate(alignment.ensemble.lengths):
        aligned = [int(r) for b in alignment.blocks for r in b.columns[s] if r != GAP]
        assert len(aligned) == len(set(aligned))
        assert set(aligned).isdisjoint(pool.residues(s))
        assert set(aligned) | set(pool.residues(s)) == set(range(length))


@pytest.fixture
def identical_ensemble():
    return make_ensemble(size=3, length=10)


@pytest.fixture
def full_alignment(identical_ensemble):
    """3 structures of length 10 aligned in one gap-free Block of length 10."""
    return make_alignment(identical_ensemble, consecutive_rows(3, 0, 10))


def create_mock_gemmi_atom(name, x=0.0, y=0.0, z=0.0):
    """Create a GEMMI-compatible mock atom"""
    atom = Mock()
    atom.name = name
    pos = Mock()
    pos.x = x
    pos.y = y
    pos.z = z
    atom.pos = pos
    return atom


def create_mock_gemmi_residue(resname, atoms):
    """Create a GEMMI-compatible mock residue"""
    residue = Mock()
    residue.name = resname
    residue.__iter__ = lambda self: iter(atoms)
    return residue


def create_mock_gemmi_chain(chain_name, residues):
    """Create a GEMMI-compatible mock chain"""
    chain = Mock()
    chain.name = chain_name
    chain.__iter__ = lambda self: iter(residues)
    return chain


def create_mock_gemmi_structure(chains):
    """Create a GEMMI-compatible mock structure"""
    structure = Mock()
    model = Mock()
    model.__iter__ = lambda self: iter(chains)
    structure.__iter__ = lambda self: iter([model])
    structure.__len__ = lambda self: 1
    return structure
