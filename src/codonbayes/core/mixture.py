"""Mixture definitions: which codon-specific categories each gene-set uses."""

from enum import Enum
from typing import List, Sequence, Union

import numpy as np

from codonbayes.core.errors import MalformedMixtureMatrix, OutOfRangeIndex


class MixtureKeyword(str, Enum):
    """Named sharing structures."""

    ALL_UNIQUE = "allUnique"
    MUTATION_SHARED = "mutationShared"
    SELECTION_SHARED = "selectionShared"


class MixtureDefinition:
    """
    Structural map from gene-set to (mutation category, selection category).

    Gene-sets are indexed 0..K-1. Category ids in the matrix form are
    positive integers numbered densely from 1; internally they are stored
    as 0-based category indices. The number of allocated mutation and
    selection parameter arrays is derived from the distinct ids.

    Gene-sets that alias a category share its parameter array, so a
    single category update is seen by every aliasing gene-set.

    Attributes:
        matrix: (K, 2) array of 1-based (mutation id, selection id) per gene-set
        source: Keyword used, or "matrix" for an explicit definition
    """

    def __init__(self, matrix: Union[np.ndarray, Sequence[Sequence[int]]], num_mixtures: int, source: str = "matrix"):
        self.num_mixtures = int(num_mixtures)
        if self.num_mixtures < 1:
            raise MalformedMixtureMatrix(
                f"Number of mixtures must be >= 1, got {num_mixtures}"
            )

        try:
            array = np.asarray(matrix, dtype=float)
        except (TypeError, ValueError) as exc:
            raise MalformedMixtureMatrix(f"Cannot interpret mixture matrix: {exc}") from exc

        if array.ndim != 2 or array.shape[1] != 2:
            raise MalformedMixtureMatrix(
                f"Mixture matrix must have 2 columns (mutation, selection); got shape {array.shape}"
            )
        if array.shape[0] != self.num_mixtures:
            raise MalformedMixtureMatrix(
                f"Mixture matrix has {array.shape[0]} rows, expected {self.num_mixtures}"
            )
        if array.size and not np.all(np.equal(np.mod(array, 1), 0)):
            raise MalformedMixtureMatrix("Mixture category ids must be integers")

        array = array.astype(int)
        if np.any(array <= 0):
            raise MalformedMixtureMatrix("Mixture category ids must be positive integers")

        for column, axis in ((0, "mutation"), (1, "selection")):
            used = np.unique(array[:, column])
            expected = np.arange(1, len(used) + 1)
            if not np.array_equal(used, expected):
                raise MalformedMixtureMatrix(
                    f"{axis.capitalize()} category ids must be numbered densely from 1; "
                    f"got {used.tolist()}"
                )

        array.setflags(write=False)
        self.matrix = array
        self.source = source

    @classmethod
    def from_keyword(cls, keyword: Union[str, MixtureKeyword], num_mixtures: int) -> "MixtureDefinition":
        """
        Build a definition from a sharing keyword.

        Args:
            keyword: allUnique, mutationShared or selectionShared
            num_mixtures: Number of gene-sets K

        Returns:
            MixtureDefinition instance
        """
        try:
            keyword = MixtureKeyword(keyword)
        except ValueError as exc:
            raise MalformedMixtureMatrix(
                f"Unknown mixture definition '{keyword}'. "
                f"Available: {[k.value for k in MixtureKeyword]}"
            ) from exc

        k = int(num_mixtures)
        unique = np.arange(1, k + 1)
        shared = np.ones(k, dtype=int)

        if keyword is MixtureKeyword.ALL_UNIQUE:
            matrix = np.column_stack([unique, unique])
        elif keyword is MixtureKeyword.MUTATION_SHARED:
            matrix = np.column_stack([shared, unique])
        else:
            matrix = np.column_stack([unique, shared])

        return cls(matrix, num_mixtures=k, source=keyword.value)

    @classmethod
    def from_matrix(cls, matrix, num_mixtures: int) -> "MixtureDefinition":
        """Build a definition from an explicit K x 2 matrix of 1-based ids."""
        return cls(matrix, num_mixtures=num_mixtures, source="matrix")

    @property
    def n_mutation_categories(self) -> int:
        return int(self.matrix[:, 0].max())

    @property
    def n_selection_categories(self) -> int:
        return int(self.matrix[:, 1].max())

    def _check_gene_set(self, gene_set: int) -> None:
        if gene_set < 0 or gene_set >= self.num_mixtures:
            raise OutOfRangeIndex(
                f"Gene-set {gene_set} out of range (K={self.num_mixtures})"
            )

    def mutation_category(self, gene_set: int) -> int:
        """0-based mutation category used by a gene-set."""
        self._check_gene_set(gene_set)
        return int(self.matrix[gene_set, 0]) - 1

    def selection_category(self, gene_set: int) -> int:
        """0-based selection category used by a gene-set."""
        self._check_gene_set(gene_set)
        return int(self.matrix[gene_set, 1]) - 1

    def gene_sets_for_mutation(self, category: int) -> List[int]:
        """Gene-sets that read a given mutation category."""
        if category < 0 or category >= self.n_mutation_categories:
            raise OutOfRangeIndex(
                f"Mutation category {category} out of range "
                f"(n={self.n_mutation_categories})"
            )
        return [int(k) for k in np.flatnonzero(self.matrix[:, 0] == category + 1)]

    def gene_sets_for_selection(self, category: int) -> List[int]:
        """Gene-sets that read a given selection category."""
        if category < 0 or category >= self.n_selection_categories:
            raise OutOfRangeIndex(
                f"Selection category {category} out of range "
                f"(n={self.n_selection_categories})"
            )
        return [int(k) for k in np.flatnonzero(self.matrix[:, 1] == category + 1)]

    def __eq__(self, other) -> bool:
        if not isinstance(other, MixtureDefinition):
            return NotImplemented
        return np.array_equal(self.matrix, other.matrix)

    def __repr__(self) -> str:
        return (
            f"MixtureDefinition(K={self.num_mixtures}, source={self.source}, "
            f"mutation_categories={self.n_mutation_categories}, "
            f"selection_categories={self.n_selection_categories})"
        )
