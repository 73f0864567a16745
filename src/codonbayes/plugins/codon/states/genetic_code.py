"""Genetic codes backed by biopython's NCBI translation tables."""

from typing import Dict, List, Optional

from Bio.Data import CodonTable

# Short names accepted besides biopython's own table names
ALIASES = {
    "Universal": 1,
    "Vertebrate-mtDNA": 2,
    "Yeast-mtDNA": 3,
    "Mold-mtDNA": 4,
    "Invertebrate-mtDNA": 5,
}


def available_codes() -> List[str]:
    return list(ALIASES) + sorted(CodonTable.unambiguous_dna_by_name)


def resolve_code_id(name: str) -> int:
    """NCBI table id for an alias or a biopython table name (case-insensitive)."""
    if name in ALIASES:
        return ALIASES[name]
    wanted = name.strip().lower()
    for table_name, table in CodonTable.unambiguous_dna_by_name.items():
        if table_name.lower() == wanted:
            return table.id
    raise ValueError(f"Unknown genetic code: {name}. Available: {available_codes()}")


class GeneticCode:
    """
    Translation table of one NCBI genetic code.

    Codon usage is modelled within synonymous families, so next to
    translation the code exposes its sense codons grouped by amino acid.

    Attributes:
        ncbi_id: NCBI translation table id
        name: Name the code was requested by
    """

    def __init__(self, ncbi_id: int = 1, name: Optional[str] = None):
        try:
            self._table = CodonTable.unambiguous_dna_by_id[ncbi_id]
        except KeyError:
            raise ValueError(
                f"NCBI genetic code ID {ncbi_id} not found. "
                f"Available IDs: {sorted(CodonTable.unambiguous_dna_by_id)}"
            ) from None
        self.ncbi_id = ncbi_id
        self.name = name or self._table.names[0]
        self._families: Optional[Dict[str, List[str]]] = None

    @classmethod
    def universal(cls) -> "GeneticCode":
        return cls(1, name="Universal")

    @classmethod
    def from_name(cls, name: str) -> "GeneticCode":
        return cls(resolve_code_id(name), name=name)

    @classmethod
    def from_ncbi_id(cls, ncbi_id: int) -> "GeneticCode":
        return cls(ncbi_id)

    @property
    def sense_codons(self) -> List[str]:
        return sorted(self._table.forward_table)

    @property
    def stop_codons(self) -> List[str]:
        return sorted(self._table.stop_codons)

    def translate(self, codon: str) -> str:
        """Single-letter amino acid, '*' for a stop codon, 'X' otherwise."""
        codon = codon.upper()
        if codon in self._table.stop_codons:
            return "*"
        return self._table.forward_table.get(codon, "X")

    def is_stop(self, codon: str) -> bool:
        return codon.upper() in self._table.stop_codons

    def synonymous_families(self) -> Dict[str, List[str]]:
        """
        Sense codons grouped by the amino acid they encode.

        Returns:
            {amino_acid: sorted codons}, amino acids in alphabetical order
        """
        if self._families is None:
            families: Dict[str, List[str]] = {}
            for codon in self.sense_codons:
                families.setdefault(self._table.forward_table[codon], []).append(codon)
            self._families = {aa: families[aa] for aa in sorted(families)}
        return self._families

    def __len__(self) -> int:
        return len(self._table.forward_table)

    def __repr__(self) -> str:
        return f"GeneticCode(name={self.name!r}, ncbi_id={self.ncbi_id})"
