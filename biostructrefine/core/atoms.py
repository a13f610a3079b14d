"""
Representative atom selection

One atom stands for each residue in the alignment:
- Proteins: Cα
- DNA/RNA: P (phosphate), C3' when the phosphate is missing (5' terminus)
"""

# Standard amino acid codes
STANDARD_AA_CODES = {
    "ALA", "CYS", "ASP", "GLU", "PHE", "GLY", "HIS", "ILE", "LYS", "LEU",
    "MET", "ASN", "PRO", "GLN", "ARG", "SER", "THR", "VAL", "TRP", "TYR",
}

# DNA and RNA nucleotide codes
NUCLEOTIDE_CODES = {
    "DA", "DT", "DG", "DC", "DU",
    "A", "T", "G", "C", "U",
    "ADE", "THY", "GUA", "CYT", "URA",
}

PROTEIN_ATOMS = ("CA",)
NUCLEIC_ACID_ATOMS = ("P", "C3'")


def is_protein_residue(residue) -> bool:
    return residue.name in STANDARD_AA_CODES


def is_nucleic_acid_residue(residue) -> bool:
    return residue.name in NUCLEOTIDE_CODES


def representative_atom(residue):
    """
    Select the atom representing a GEMMI residue.

    Args:
        residue: GEMMI Residue

    Returns:
        The representative Atom, or None for ligands, waters and residues
        missing the atom
    """
    if is_protein_residue(residue):
        names = PROTEIN_ATOMS
    elif is_nucleic_acid_residue(residue):
        names = NUCLEIC_ACID_ATOMS
    else:
        return None

    # First occurrence wins for alternate conformations
    atoms = {}
    for atom in residue:
        atoms.setdefault(atom.name, atom)
    for name in names:
        if name in atoms:
            return atoms[name]
    return None
