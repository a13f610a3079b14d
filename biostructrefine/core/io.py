"""Structure and alignment file handling."""

import json
import logging
from pathlib import Path

import gemmi
import numpy as np

from biostructrefine.core.atoms import representative_atom
from biostructrefine.core.model import Block, BlockSet, Ensemble, MultipleAlignment, Structure

logger = logging.getLogger(__name__)

# GEMMI supports .pdb, .cif, .ent (PDB), .mmcif
SUPPORTED_FORMATS = {".pdb", ".cif", ".ent", ".mmcif"}


def file_type(file_path: Path) -> str:
    """Get the file extension in lowercase."""
    return str(file_path.suffix).lower()


def validate_file(file_path: Path) -> bool:
    """Check that a file is a structure GEMMI can read with at least one model."""
    ftype = file_type(file_path)
    if ftype not in SUPPORTED_FORMATS:
        return False

    try:
        structure = gemmi.read_structure(str(file_path))
        if len(structure) == 0:
            logger.warning("No valid model can be extracted from %s", file_path)
            return False
        return True
    except (RuntimeError, ValueError) as e:
        logger.warning("File %s could not be parsed as %s file: %s", file_path, ftype, e)
        return False


def get_structure(file_path: Path) -> gemmi.Structure | None:
    """Load and return structure from file, or None if invalid."""
    if not validate_file(file_path):
        return None
    return gemmi.read_structure(str(file_path))


def extract_coordinates(structure, chain_id: str | None = None, name: str = "structure") -> Structure:
    """
    Collect one representative coordinate per residue from the first model.

    Args:
        structure: GEMMI Structure
        chain_id: Only read this chain (default: every chain in order)
        name: Name given to the resulting Structure

    Raises:
        ValueError: If no residue has a representative atom
    """
    model = next(iter(structure))
    coords = []
    for chain in model:
        if chain_id is not None and chain.name != chain_id:
            continue
        for residue in chain:
            atom = representative_atom(residue)
            if atom is not None:
                coords.append([atom.pos.x, atom.pos.y, atom.pos.z])

    if not coords:
        selection = f"chain {chain_id}" if chain_id is not None else "any chain"
        raise ValueError(f"No representative atoms found in {selection} of {name}")
    logger.debug("Extracted %d residues from %s", len(coords), name)
    return Structure(name, np.array(coords))


def load_structure(file_path: Path, chain_id: str | None = None, name: str | None = None) -> Structure:
    """Read a structure file into a Structure of representative coordinates."""
    file_path = Path(file_path)
    structure = get_structure(file_path)
    if structure is None:
        raise ValueError(f"Could not load structure from {file_path}")
    return extract_coordinates(structure, chain_id, name or file_path.stem)


def _structure_from_entry(entry: dict, base_dir: Path) -> Structure:
    if "coords" in entry:
        return Structure(entry.get("name", "structure"), np.array(entry["coords"], dtype=float))
    if "path" in entry:
        path = Path(entry["path"])
        if not path.is_absolute():
            path = base_dir / path
        return load_structure(path, entry.get("chain"), entry.get("name"))
    raise ValueError(f"Structure entry needs 'coords' or 'path': {entry}")


def alignment_from_dict(document: dict, base_dir: Path = Path(".")) -> MultipleAlignment:
    """
    Build a MultipleAlignment from its JSON representation.

    The document holds ``structures`` (inline ``coords`` or a ``path`` to a
    structure file with an optional ``chain``) and ``block_sets``: a list of
    BlockSets, each a list of Blocks, each a list of per-structure rows with
    null for gaps.
    """
    try:
        structures = [_structure_from_entry(entry, base_dir) for entry in document["structures"]]
        block_sets = [
            BlockSet([Block.from_rows(rows) for rows in blocks])
            for blocks in document["block_sets"]
        ]
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed alignment document: {e}") from e
    return MultipleAlignment(Ensemble(structures), block_sets, dict(document.get("scores", {})))


def alignment_to_dict(alignment: MultipleAlignment) -> dict:
    """JSON representation of an alignment; coordinates are written inline."""
    return {
        "structures": [
            {"name": s.name, "coords": s.coords.tolist()} for s in alignment.ensemble.structures
        ],
        "block_sets": [[block.to_rows() for block in bs.blocks] for bs in alignment.block_sets],
        "scores": dict(alignment.scores),
    }


def read_alignment(file_path: Path) -> MultipleAlignment:
    """Read a seed alignment JSON file; relative structure paths resolve against its directory."""
    file_path = Path(file_path)
    try:
        document = json.loads(file_path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Could not read alignment from {file_path}: {e}") from e
    return alignment_from_dict(document, base_dir=file_path.parent)


def write_alignment(alignment: MultipleAlignment, output_path: Path) -> None:
    """
    Write an alignment as JSON, creating parent directories.

    Raises:
        OSError: If the file cannot be written
    """
    output_path = Path(output_path)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(alignment_to_dict(alignment), indent=2))
    except Exception as e:
        raise OSError(f"Failed to save alignment to {output_path}: {e}") from e
