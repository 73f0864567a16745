"""Data structures for per-gene codon observations."""

from typing import Dict, List, Optional, Sequence, Tuple, Any
from dataclasses import dataclass, field

import numpy as np

from codonbayes.core.errors import DataError, OutOfRangeIndex


def _frozen(values: Any, dtype) -> np.ndarray:
    array = np.array(values, dtype=dtype, copy=True)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class Gene:
    """
    One gene and its observations.

    Attributes:
        id: Opaque gene identifier (e.g., FASTA label)
        index: Position of the gene in its GeneDataStore
        counts: Codon (or footprint) counts, one entry per codon of the
            codon table the store was built with
        expression: Empirical expression measurements, one entry per
            observation set; NaN marks a missing measurement
    """

    id: str
    index: int
    counts: np.ndarray
    expression: np.ndarray = field(default_factory=lambda: _frozen([], float))

    def __post_init__(self):
        object.__setattr__(self, "counts", _frozen(self.counts, np.int64))
        object.__setattr__(self, "expression", _frozen(self.expression, float))
        if np.any(self.counts < 0):
            raise DataError(f"Negative codon count for gene '{self.id}'")

    @property
    def total_codons(self) -> int:
        return int(self.counts.sum())

    def observed(self, observation_set: int) -> Optional[float]:
        """Measured expression in one observation set, or None if missing."""
        if observation_set < 0 or observation_set >= len(self.expression):
            raise OutOfRangeIndex(
                f"Observation set {observation_set} out of range for gene '{self.id}'"
            )
        value = self.expression[observation_set]
        return None if np.isnan(value) else float(value)

    def __repr__(self) -> str:
        return f"Gene(id={self.id!r}, index={self.index}, codons={self.total_codons})"


class GeneDataStore:
    """
    Immutable collection of genes consumed read-only by the engine.

    The number of expression columns fixes the number of independent
    observation-noise hyperparameters (s_epsilon) for the run.

    Attributes:
        genes: Genes in load order
        codons: Labels of the count columns
        observation_names: Labels of the expression observation sets
    """

    def __init__(
        self,
        genes: Sequence[Gene],
        codons: Sequence[str],
        observation_names: Optional[Sequence[str]] = None,
    ):
        self.genes: Tuple[Gene, ...] = tuple(genes)
        self.codons: Tuple[str, ...] = tuple(codons)
        self.observation_names: Tuple[str, ...] = tuple(observation_names or ())

        if not self.genes:
            raise DataError("GeneDataStore requires at least one gene")

        self._by_id: Dict[str, Gene] = {}
        for position, gene in enumerate(self.genes):
            if gene.index != position:
                raise DataError(
                    f"Gene '{gene.id}' has index {gene.index}, expected {position}"
                )
            if gene.id in self._by_id:
                raise DataError(f"Duplicate gene id '{gene.id}'")
            if len(gene.counts) != len(self.codons):
                raise DataError(
                    f"Gene '{gene.id}' has {len(gene.counts)} counts, "
                    f"expected {len(self.codons)}"
                )
            if len(gene.expression) != len(self.observation_names):
                raise DataError(
                    f"Gene '{gene.id}' has {len(gene.expression)} expression values, "
                    f"expected {len(self.observation_names)}"
                )
            self._by_id[gene.id] = gene

    @classmethod
    def from_arrays(
        cls,
        ids: Sequence[str],
        counts: np.ndarray,
        codons: Sequence[str],
        expression: Optional[np.ndarray] = None,
        observation_names: Optional[Sequence[str]] = None,
    ) -> "GeneDataStore":
        """
        Build a store from a (n_genes, n_codons) count matrix.

        Args:
            ids: Gene identifiers
            counts: Count matrix, one row per gene
            codons: Column labels for the count matrix
            expression: Optional (n_genes, n_sets) matrix, NaN for missing
            observation_names: Optional labels for the expression columns

        Returns:
            GeneDataStore instance
        """
        counts = np.asarray(counts)
        if counts.ndim != 2 or counts.shape[0] != len(ids):
            raise DataError(
                f"counts must be (n_genes, n_codons); got shape {counts.shape} "
                f"for {len(ids)} genes"
            )
        if expression is None:
            expression = np.empty((len(ids), 0))
        expression = np.asarray(expression, dtype=float)
        if expression.ndim == 1:
            expression = expression[:, None]
        if expression.shape[0] != len(ids):
            raise DataError(
                f"expression has {expression.shape[0]} rows for {len(ids)} genes"
            )
        if observation_names is None:
            observation_names = [f"set{j + 1}" for j in range(expression.shape[1])]

        genes = [
            Gene(id=str(gene_id), index=i, counts=counts[i], expression=expression[i])
            for i, gene_id in enumerate(ids)
        ]
        return cls(genes, codons, observation_names)

    @property
    def n_genes(self) -> int:
        return len(self.genes)

    @property
    def n_observation_sets(self) -> int:
        return len(self.observation_names)

    @property
    def ids(self) -> List[str]:
        return [gene.id for gene in self.genes]

    def gene(self, index: int) -> Gene:
        if index < 0 or index >= len(self.genes):
            raise OutOfRangeIndex(f"Gene index {index} out of range (n={len(self.genes)})")
        return self.genes[index]

    def index_of(self, gene_id: str) -> int:
        try:
            return self._by_id[gene_id].index
        except KeyError as exc:
            raise DataError(f"Gene '{gene_id}' not present in data store") from exc

    def expression_matrix(self) -> np.ndarray:
        """(n_genes, n_observation_sets) matrix of measurements, NaN for missing."""
        if not self.observation_names:
            return np.empty((self.n_genes, 0))
        return np.vstack([gene.expression for gene in self.genes])

    def __len__(self) -> int:
        return len(self.genes)

    def __iter__(self):
        return iter(self.genes)

    def __repr__(self) -> str:
        return (
            f"GeneDataStore(genes={self.n_genes}, codons={len(self.codons)}, "
            f"observation_sets={self.n_observation_sets})"
        )
