"""Latent gene -> gene-set assignment sampling.

For each gene the posterior membership probability of gene-set k is

    p(k | gene) ∝ w_k * L(gene | k) * p(phi_gene | s_phi_k)

where w are the mixture proportions. Probabilities are always stored.
In "sample" mode a categorical draw is committed as the gene's hard
assignment (used by the next codon-specific update) and the mixture
proportions are redrawn from Dirichlet(1 + counts). In "probabilities"
mode the hard assignment and proportions stay unchanged.
"""

import logging
from enum import Enum
from typing import Callable, Iterable, List, Optional, TYPE_CHECKING

import numpy as np
from scipy.special import logsumexp

from codonbayes.core.likelihood import evaluate
from codonbayes.core.parameters import BlockKind
from codonbayes.core.priors import ExpressionPrior

if TYPE_CHECKING:
    from codonbayes.core.likelihood import LikelihoodModel
    from codonbayes.core.parameters import ParameterStore, ParameterView

logger = logging.getLogger(__name__)


class AssignmentMode(str, Enum):
    SAMPLE = "sample"
    PROBABILITIES = "probabilities"


def gene_set_log_weights(
    store: "ParameterStore",
    model: "LikelihoodModel",
    gene_index: int,
    view: "ParameterView",
) -> np.ndarray:
    """Unnormalised log posterior of one gene over every gene-set (NaN maps to -inf)."""
    gene = store.data.gene(gene_index)
    phi = view.expression(gene_index)
    with np.errstate(divide="ignore"):
        log_w = np.log(store.mixture_weights)
    out = np.empty(store.num_mixtures)
    for k in range(store.num_mixtures):
        prior = float(ExpressionPrior(view.sphi(k)).log_density(phi))
        out[k] = log_w[k] + evaluate(model, gene, k, view) + prior
    out[np.isnan(out)] = -np.inf
    return out


def membership_probabilities(log_weights: np.ndarray) -> Optional[np.ndarray]:
    """Normalise log weights with Bayes' rule; None if every weight is -inf."""
    if not np.any(np.isfinite(log_weights)):
        return None
    probabilities = np.exp(log_weights - logsumexp(log_weights))
    return probabilities / probabilities.sum()


def update_assignments(
    store: "ParameterStore",
    model: "LikelihoodModel",
    rng: np.random.Generator,
    mode: AssignmentMode = AssignmentMode.SAMPLE,
    mapper: Callable[[Callable, Iterable], Iterable] = map,
) -> int:
    """
    Recompute membership probabilities of every gene.

    Args:
        store: Parameter state (written in gene-index order)
        model: Likelihood model
        rng: Random generator, only drawn from in the calling thread
        mode: Whether to commit a categorical draw
        mapper: map-like callable used to evaluate genes (e.g. executor.map);
            must preserve input order

    Returns:
        Number of genes whose hard assignment changed
    """
    mode = AssignmentMode(mode)
    view = store.view()
    genes = range(store.n_genes)
    log_weights: List[np.ndarray] = list(
        mapper(lambda g: gene_set_log_weights(store, model, g, view), genes)
    )

    changed = 0
    for g, weights in zip(genes, log_weights):
        probabilities = membership_probabilities(weights)
        if probabilities is None:
            logger.debug(f"No finite gene-set weight for gene {g}; keeping previous assignment")
            continue
        store.commit(BlockKind.ASSIGNMENT_PROBABILITIES, g, probabilities)
        if mode is AssignmentMode.SAMPLE:
            drawn = int(rng.choice(store.num_mixtures, p=probabilities))
            if drawn != store.gene_set_of(g):
                changed += 1
                store.commit(BlockKind.ASSIGNMENT, g, drawn)

    if mode is AssignmentMode.SAMPLE:
        counts = np.bincount(store.assignment, minlength=store.num_mixtures)
        store.commit(BlockKind.MIXTURE_WEIGHTS, None, rng.dirichlet(1.0 + counts))

    return changed
