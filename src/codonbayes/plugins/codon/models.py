"""Reference codon-usage likelihood model."""

from dataclasses import dataclass
from typing import List, Optional, Sequence, TYPE_CHECKING

import numpy as np
from scipy.special import logsumexp

from codonbayes.core.likelihood import LikelihoodModel
from codonbayes.plugins.codon.states.codons import CodonTable

if TYPE_CHECKING:
    from codonbayes.core.data import Gene
    from codonbayes.core.parameters import ParameterView


@dataclass(frozen=True)
class _Family:
    amino_acid: str
    codons: np.ndarray      # count-vector indices, reference codon last
    parameters: np.ndarray  # parameter-vector indices of the non-reference codons


class LogLinearCodonModel(LikelihoodModel):
    """
    Multinomial codon usage within each synonymous family.

    For a gene with expression phi in a gene-set reading mutation array
    dM and selection array dEta:

        p(c | aa) ∝ exp(-dM_c - dEta_c * phi)

    The last codon of each family is the reference (dM = dEta = 0).
    Families with a single codon carry no information and are skipped.
    Mutation and selection arrays share one layout: one entry per
    non-reference codon, grouped by amino acid, and each amino acid is a
    separate block update.
    """

    name = "loglinear"

    def __init__(self, codon_table: Optional[CodonTable] = None):
        self.codon_table = codon_table or CodonTable.universal()
        self._families: List[_Family] = []
        self._labels: List[str] = []

        offset = 0
        for aa, indices in self.codon_table.families(min_size=2).items():
            n_free = len(indices) - 1
            self._families.append(
                _Family(aa, indices, np.arange(offset, offset + n_free))
            )
            self._labels.extend(
                f"{aa}.{self.codon_table.codons[i]}" for i in indices[:-1]
            )
            offset += n_free
        self._n_parameters = offset

    @property
    def n_mutation_parameters(self) -> int:
        return self._n_parameters

    @property
    def n_selection_parameters(self) -> int:
        return self._n_parameters

    @property
    def amino_acids(self) -> List[str]:
        return [family.amino_acid for family in self._families]

    def mutation_groups(self) -> List[np.ndarray]:
        return [family.parameters for family in self._families]

    def selection_groups(self) -> List[np.ndarray]:
        return [family.parameters for family in self._families]

    def mutation_labels(self) -> List[str]:
        return list(self._labels)

    def selection_labels(self) -> List[str]:
        return list(self._labels)

    def _family_logits(self, family: _Family, phi: float, mutation, selection) -> np.ndarray:
        logits = np.zeros(len(family.codons))
        logits[:-1] = -mutation[family.parameters] - selection[family.parameters] * phi
        return logits - logsumexp(logits)

    def log_likelihood(self, gene: "Gene", gene_set: int, params: "ParameterView") -> float:
        phi = params.expression(gene.index)
        mutation = params.mutation(gene_set)
        selection = params.selection(gene_set)

        total = 0.0
        for family in self._families:
            counts = gene.counts[family.codons]
            if not counts.any():
                continue
            total += float(counts @ self._family_logits(family, phi, mutation, selection))
        return total

    def codon_probabilities(self, phi: float, mutation, selection) -> np.ndarray:
        """Codon probabilities within each family, laid out like the count vector."""
        mutation = np.asarray(mutation, dtype=float)
        selection = np.asarray(selection, dtype=float)
        out = np.zeros(self.codon_table.dimension)
        for family in self._families:
            out[family.codons] = np.exp(self._family_logits(family, phi, mutation, selection))
        return out

    def simulate_counts(
        self,
        phi: float,
        mutation,
        selection,
        family_sizes: Sequence[int],
        rng: np.random.Generator,
    ) -> np.ndarray:
        """
        Draw a codon count vector.

        Args:
            phi: Expression of the simulated gene
            mutation, selection: Parameter arrays of its gene-set
            family_sizes: Number of codons to draw per modelled amino acid
                (in amino_acids order)
            rng: Random generator

        Returns:
            Count vector over the codon table
        """
        if len(family_sizes) != len(self._families):
            raise ValueError(
                f"family_sizes has {len(family_sizes)} entries, expected {len(self._families)}"
            )
        probabilities = self.codon_probabilities(phi, mutation, selection)
        counts = np.zeros(self.codon_table.dimension, dtype=np.int64)
        for family, size in zip(self._families, family_sizes):
            p = probabilities[family.codons]
            counts[family.codons] = rng.multinomial(int(size), p / p.sum())
        return counts
