"""Codon table: sense codons indexed for counting and modelling."""

from typing import Dict, List, Optional

import numpy as np

from codonbayes.plugins.codon.states.genetic_code import GeneticCode


class CodonTable:
    """
    Indexed sense codons of a genetic code.

    Codons are ordered by amino acid, then alphabetically within each
    synonymous family. Gene count vectors use this order.

    Attributes:
        genetic_code: GeneticCode defining codon -> amino acid
        codons: Codons in count-vector order
        amino_acids: Amino acid of each codon in count-vector order
    """

    def __init__(self, genetic_code: Optional[GeneticCode] = None):
        self.genetic_code = genetic_code or GeneticCode.universal()
        families = self.genetic_code.synonymous_families()

        self.codons: List[str] = []
        self.amino_acids: List[str] = []
        for aa, codons in families.items():
            self.codons.extend(codons)
            self.amino_acids.extend([aa] * len(codons))

        self.codon_to_index: Dict[str, int] = {c: i for i, c in enumerate(self.codons)}

    @classmethod
    def universal(cls) -> "CodonTable":
        return cls(GeneticCode.universal())

    @classmethod
    def from_genetic_code(cls, code_name: str) -> "CodonTable":
        return cls(GeneticCode.from_name(code_name))

    @property
    def dimension(self) -> int:
        return len(self.codons)

    def index(self, codon: str) -> int:
        return self.codon_to_index[codon.upper()]

    def family(self, amino_acid: str) -> np.ndarray:
        """Count-vector indices of the codons encoding amino_acid."""
        return np.array(
            [i for i, aa in enumerate(self.amino_acids) if aa == amino_acid], dtype=int
        )

    def families(self, min_size: int = 1) -> Dict[str, np.ndarray]:
        """Index arrays of every synonymous family with at least min_size codons."""
        out = {}
        for aa in dict.fromkeys(self.amino_acids):
            indices = self.family(aa)
            if len(indices) >= min_size:
                out[aa] = indices
        return out

    def count(self, sequence: str) -> np.ndarray:
        """
        Count codons of an in-frame coding sequence.

        Codons outside the table (stop codons, ambiguous bases) are
        ignored. The caller checks the length is a multiple of three.
        """
        counts = np.zeros(self.dimension, dtype=np.int64)
        sequence = sequence.upper()
        for start in range(0, len(sequence) - 2, 3):
            index = self.codon_to_index.get(sequence[start:start + 3])
            if index is not None:
                counts[index] += 1
        return counts

    def __repr__(self) -> str:
        return f"CodonTable(code={self.genetic_code.name}, n={self.dimension})"
