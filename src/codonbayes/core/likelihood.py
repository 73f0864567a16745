"""Pluggable likelihood models.

The engine treats a model as a capability: score one gene under one
gene-set given a view of the current (or proposed) parameter values.
It never inspects the model beyond the parameter layout it declares.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, TYPE_CHECKING

import numpy as np

from codonbayes.core.errors import NumericalError

if TYPE_CHECKING:
    from codonbayes.core.data import Gene
    from codonbayes.core.parameters import ParameterView

logger = logging.getLogger(__name__)


class LikelihoodModel(ABC):
    """
    Abstract base class for gene likelihood models.

    Subclasses declare how many mutation and selection parameters one
    category carries and how they are grouped into joint MH updates, and
    implement log_likelihood. log_likelihood must be deterministic given
    its inputs and safe to call from several threads at once.
    """

    name: str = "model"

    @property
    @abstractmethod
    def n_mutation_parameters(self) -> int:
        """Length of one mutation category's parameter array."""
        pass

    @property
    @abstractmethod
    def n_selection_parameters(self) -> int:
        """Length of one selection category's parameter array."""
        pass

    @abstractmethod
    def log_likelihood(self, gene: "Gene", gene_set: int, params: "ParameterView") -> float:
        """
        Log-likelihood of one gene's observations.

        Args:
            gene: Gene whose counts are scored
            gene_set: Gene-set the gene is evaluated under
            params: Read-only parameter view (may carry proposed values)

        Returns:
            Log-likelihood value
        """
        pass

    def mutation_groups(self) -> List[np.ndarray]:
        """Index groups of the mutation array updated jointly. Default: one block."""
        return _single_group(self.n_mutation_parameters)

    def selection_groups(self) -> List[np.ndarray]:
        """Index groups of the selection array updated jointly. Default: one block."""
        return _single_group(self.n_selection_parameters)

    def mutation_labels(self) -> List[str]:
        return [f"mutation_{i}" for i in range(self.n_mutation_parameters)]

    def selection_labels(self) -> List[str]:
        return [f"selection_{i}" for i in range(self.n_selection_parameters)]

    def initial_mutation(self) -> np.ndarray:
        return np.zeros(self.n_mutation_parameters)

    def initial_selection(self) -> np.ndarray:
        return np.zeros(self.n_selection_parameters)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(mutation={self.n_mutation_parameters}, "
            f"selection={self.n_selection_parameters})"
        )


def _single_group(n: int) -> List[np.ndarray]:
    if n == 0:
        return []
    return [np.arange(n)]


def evaluate(model: LikelihoodModel, gene: "Gene", gene_set: int, params: "ParameterView") -> float:
    """
    Call model.log_likelihood, mapping numerical failures to -inf.

    A non-finite return value, a NumericalError or a FloatingPointError
    all yield -inf so the surrounding proposal is rejected instead of
    aborting the run.
    """
    try:
        with np.errstate(divide="raise", over="raise", invalid="raise"):
            value = float(model.log_likelihood(gene, gene_set, params))
    except (NumericalError, FloatingPointError) as exc:
        logger.debug(f"Numerical failure scoring gene {gene.id} under set {gene_set}: {exc}")
        return -np.inf
    if not np.isfinite(value):
        logger.debug(f"Non-finite log-likelihood {value} for gene {gene.id} under set {gene_set}")
        return -np.inf
    return value
