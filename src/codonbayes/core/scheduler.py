"""Metropolis-Hastings-within-Gibbs sweep.

One sweep cycles the parameter blocks in a fixed order:

    expression -> codon-specific (mutation, then selection)
               -> hyperparameters (s_phi, then s_epsilon) -> mixture assignment

Each block can be switched off through EstimationFlags; a disabled block
keeps its current values for the whole run.

Random numbers are drawn only in the calling thread, in a fixed order,
before any parallel evaluation. Likelihood evaluations that are
independent across genes may run on a thread pool; decisions are then
committed in gene (or category) order, so a given seed reproduces the
same chain for any number of workers.
"""

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, TYPE_CHECKING

import numpy as np

from codonbayes.core.assignment import AssignmentMode, update_assignments
from codonbayes.core.likelihood import evaluate
from codonbayes.core.parameters import BlockKind
from codonbayes.core.priors import ExpressionPrior, is_scale, observation_log_density

if TYPE_CHECKING:
    from codonbayes.core.likelihood import LikelihoodModel
    from codonbayes.core.parameters import ParameterStore, ParameterView
    from codonbayes.core.proposals import ProposalController

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EstimationFlags:
    """
    Which Gibbs blocks are estimated.

    Attributes:
        expression: Update gene expression phi
        csp: Update codon-specific mutation and selection arrays
        hyper: Update s_phi and (unless fix_observation_noise) s_epsilon
        mix: Update mixture assignment
        fix_observation_noise: Keep s_epsilon at its initial value
        assignment_mode: "sample" commits a categorical draw per gene,
            "probabilities" only stores membership probabilities
    """

    expression: bool = True
    csp: bool = True
    hyper: bool = True
    mix: bool = True
    fix_observation_noise: bool = False
    assignment_mode: AssignmentMode = AssignmentMode.SAMPLE

    def __post_init__(self):
        object.__setattr__(self, "assignment_mode", AssignmentMode(self.assignment_mode))


def _scale_score(candidate: float, score: Callable[[float], float]) -> float:
    """score(candidate), or -inf when the candidate is not a usable scale."""
    if not is_scale(candidate):
        return -np.inf
    with np.errstate(over="ignore", invalid="ignore"):
        value = float(score(candidate))
    return value if not np.isnan(value) else -np.inf


def accept(log_ratio: float, log_u: float) -> bool:
    """
    Metropolis-Hastings decision.

    Accepts with probability min(1, exp(log_ratio)) given log_u = log(U),
    U ~ Uniform(0, 1). A NaN ratio (e.g. -inf - -inf) is rejected.
    """
    if np.isnan(log_ratio):
        return False
    return bool(log_u < log_ratio)


class GibbsScheduler:
    """
    Runs one MH-within-Gibbs sweep over a ParameterStore.

    Attributes:
        store: Parameter state
        model: Likelihood model scoring one gene at a time
        proposals: Adaptive proposal kernels
        flags: Enabled blocks
        rng: Random generator driving every proposal and decision
        numerical_rejections: Proposals rejected because the candidate
            scored non-finite, per block kind
    """

    def __init__(
        self,
        store: "ParameterStore",
        model: "LikelihoodModel",
        proposals: "ProposalController",
        flags: Optional[EstimationFlags] = None,
        rng: Optional[np.random.Generator] = None,
        n_workers: int = 1,
    ):
        self.store = store
        self.model = model
        self.proposals = proposals
        self.flags = flags or EstimationFlags()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.n_workers = max(1, int(n_workers))
        self.numerical_rejections: Counter = Counter()
        self._executor: Optional[ThreadPoolExecutor] = None

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "GibbsScheduler":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _map(self, func: Callable, items: Iterable) -> List:
        if self.n_workers == 1:
            return [func(item) for item in items]
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.n_workers)
        return list(self._executor.map(func, items))

    def _uniform_log(self) -> float:
        return float(np.log(self.rng.random()))

    def _decide(self, kind: BlockKind, key, log_ratio: float, log_u: float, candidate_score: float) -> bool:
        accepted = accept(log_ratio, log_u)
        if not np.isfinite(candidate_score):
            self.numerical_rejections[kind] += 1
            accepted = False
        self.proposals.record_outcome(key, accepted)
        return accepted

    # ------------------------------------------------------------------

    def sweep(self) -> None:
        """One full pass over every enabled block."""
        if self.flags.expression:
            self.update_expression()
        if self.flags.csp:
            self.update_codon_specific(BlockKind.MUTATION)
            self.update_codon_specific(BlockKind.SELECTION)
        if self.flags.hyper:
            self.update_sphi()
            if not self.flags.fix_observation_noise:
                self.update_sepsilon()
        if self.flags.mix:
            self.update_mixture()

    # ------------------------------------------------------------------
    # gene-specific

    def _expression_score(self, gene_index: int, view: "ParameterView") -> float:
        store = self.store
        gene = store.data.gene(gene_index)
        gene_set = store.gene_set_of(gene_index)
        phi = view.expression(gene_index)
        score = evaluate(self.model, gene, gene_set, view)
        score += float(ExpressionPrior(view.sphi(gene_set)).log_density(phi))
        for j in range(store.n_observation_sets):
            score += observation_log_density(
                gene.expression[j], phi, store.value(BlockKind.SEPSILON, j)
            )
        return score

    def update_expression(self) -> None:
        """Independent MH step on phi for every gene."""
        store = self.store
        view = store.view()
        draws = []
        for g in range(store.n_genes):
            candidate, log_hastings = store.propose_block(
                BlockKind.EXPRESSION, g, self.proposals, self.rng
            )
            draws.append((g, candidate, log_hastings, self._uniform_log()))

        def score(draw):
            g, candidate, _, _ = draw
            current = self._expression_score(g, view)
            proposed = self._expression_score(
                g, view.with_value(BlockKind.EXPRESSION, g, candidate)
            )
            return current, proposed

        scores = self._map(score, draws)
        for (g, candidate, log_hastings, log_u), (current, proposed) in zip(draws, scores):
            key = (BlockKind.EXPRESSION, g)
            log_ratio = proposed - current + log_hastings
            if self._decide(BlockKind.EXPRESSION, key, log_ratio, log_u, proposed):
                store.commit(BlockKind.EXPRESSION, g, candidate)

    # ------------------------------------------------------------------
    # gene-set-specific

    def _category_score(self, genes: Sequence[int], view: "ParameterView") -> float:
        store = self.store
        data = store.data

        def one(g: int) -> float:
            return evaluate(self.model, data.gene(g), store.gene_set_of(g), view)

        return float(sum(self._map(one, genes)))

    def update_codon_specific(self, kind: BlockKind) -> None:
        """
        MH step per (category, parameter group).

        Every gene assigned to a gene-set reading the category is scored
        before the category's decision. Priors on codon-specific values
        are flat, so the ratio is the likelihood ratio alone. A category no
        gene currently reads keeps its values.
        """
        kind = BlockKind(kind)
        store = self.store
        n_categories = (
            store.mixture.n_mutation_categories
            if kind is BlockKind.MUTATION
            else store.mixture.n_selection_categories
        )
        for category in range(n_categories):
            genes = store.genes_using(kind, category)
            if genes.size == 0:
                continue
            for group in range(len(store.groups(kind))):
                target = (category, group)
                candidate, _ = store.propose_block(kind, target, self.proposals, self.rng)
                log_u = self._uniform_log()

                view = store.view()
                current = self._category_score(genes, view)
                proposed = self._category_score(genes, view.with_value(kind, category, candidate))

                if self._decide(kind, (kind, target), proposed - current, log_u, proposed):
                    store.commit(kind, target, candidate)

    # ------------------------------------------------------------------
    # hyperparameters

    def update_sphi(self) -> None:
        """
        MH step on every s_phi (flat prior on the positive reals).

        An s_phi whose gene-sets currently hold no genes has nothing to
        inform it and keeps its value. With a shared s_phi a single step
        scores every gene.
        """
        store = self.store
        phi = store.expression
        for i in range(store.n_sphi):
            members = phi[store.genes_for_sphi(i)]
            if members.size == 0:
                continue
            candidate, log_hastings = store.propose_block(BlockKind.SPHI, i, self.proposals, self.rng)
            log_u = self._uniform_log()
            current = float(np.sum(ExpressionPrior(store.value(BlockKind.SPHI, i)).log_density(members)))
            proposed = _scale_score(candidate, lambda s: np.sum(ExpressionPrior(s).log_density(members)))
            if self._decide(BlockKind.SPHI, (BlockKind.SPHI, i), proposed - current + log_hastings, log_u, proposed):
                store.commit(BlockKind.SPHI, i, candidate)

    def update_sepsilon(self) -> None:
        """
        MH step on s_epsilon of every observation set (flat prior on the positive reals).

        An observation set with no measured gene keeps its value.
        """
        store = self.store
        phi = store.expression
        observed = store.data.expression_matrix()
        for j in range(store.n_observation_sets):
            column = observed[:, j]
            if np.all(np.isnan(column)):
                continue
            candidate, log_hastings = store.propose_block(BlockKind.SEPSILON, j, self.proposals, self.rng)
            log_u = self._uniform_log()
            current = observation_log_density(column, phi, store.value(BlockKind.SEPSILON, j))
            proposed = _scale_score(candidate, lambda s: observation_log_density(column, phi, s))
            key = (BlockKind.SEPSILON, j)
            if self._decide(BlockKind.SEPSILON, key, proposed - current + log_hastings, log_u, proposed):
                store.commit(BlockKind.SEPSILON, j, candidate)

    # ------------------------------------------------------------------
    # mixture assignment

    def update_mixture(self) -> None:
        changed = update_assignments(
            self.store, self.model, self.rng, self.flags.assignment_mode, mapper=self._map
        )
        logger.debug(f"Mixture update reassigned {changed} genes")
