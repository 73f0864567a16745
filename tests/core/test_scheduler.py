"""Tests for the Gibbs sweep and Metropolis-Hastings decisions."""

import numpy as np
import pytest

from codonbayes.core.data import GeneDataStore
from codonbayes.core.errors import NumericalError
from codonbayes.core.likelihood import LikelihoodModel, evaluate
from codonbayes.core.mixture import MixtureDefinition
from codonbayes.core.parameters import BlockKind, ParameterStore
from codonbayes.core.proposals import ProposalController
from codonbayes.core.scheduler import EstimationFlags, GibbsScheduler, accept


class AlternatingModel(LikelihoodModel):
    """Scores 0 for the current state and delta for every candidate."""

    def __init__(self, delta):
        self.delta = delta
        self.calls = 0

    @property
    def n_mutation_parameters(self):
        return 1

    @property
    def n_selection_parameters(self):
        return 0

    def log_likelihood(self, gene, gene_set, params):
        value = 0.0 if self.calls % 2 == 0 else self.delta
        self.calls += 1
        return value


class FragileModel(LikelihoodModel):
    """Fails numerically whenever the mutation parameter turns positive."""

    def __init__(self, failure):
        self.failure = failure

    @property
    def n_mutation_parameters(self):
        return 1

    @property
    def n_selection_parameters(self):
        return 0

    def log_likelihood(self, gene, gene_set, params):
        if params.mutation(gene_set)[0] > 0:
            if self.failure == "raise":
                raise NumericalError("overflow in rate computation")
            if self.failure == "nan":
                return float("nan")
            return float(np.log(np.float64(0.0)))
        return 0.0


def _single_gene_store(n_mutation=1, n_selection=0):
    data = GeneDataStore.from_arrays(["g1"], np.ones((1, 1), dtype=int), ["AAA"])
    return ParameterStore(
        data=data,
        mixture=MixtureDefinition.from_keyword("allUnique", 1),
        sphi=[1.0],
        n_mutation_parameters=n_mutation,
        n_selection_parameters=n_selection,
    )


CSP_ONLY = EstimationFlags(expression=False, csp=True, hyper=False, mix=False)


class TestAccept:
    def test_positive_ratio_always_accepts(self):
        rng = np.random.default_rng(0)
        assert all(accept(0.0, np.log(rng.random())) for _ in range(1000))

    def test_nan_ratio_rejects(self):
        assert accept(float("nan"), -10.0) is False
        assert accept(-np.inf - -np.inf, -10.0) is False

    def test_minus_infinity_rejects(self):
        assert accept(-np.inf, np.log(1e-300)) is False

    @pytest.mark.parametrize("delta", [-2.0, -0.5, 0.3])
    def test_frequency_matches_metropolis_rule(self, delta):
        rng = np.random.default_rng(11)
        n = 40_000
        accepted = sum(accept(delta, np.log(rng.random())) for _ in range(n))
        assert accepted / n == pytest.approx(min(1.0, np.exp(delta)), abs=0.015)


class TestAcceptanceFrequency:
    @pytest.mark.parametrize("delta", [-1.5, -0.5, 0.5])
    def test_stub_likelihood_delta(self, delta):
        store = _single_gene_store()
        proposals = ProposalController()
        scheduler = GibbsScheduler(
            store, AlternatingModel(delta), proposals, CSP_ONLY, np.random.default_rng(5)
        )
        for _ in range(20_000):
            scheduler.sweep()

        rate = proposals.acceptance_summary()[(BlockKind.MUTATION, (0, 0))]
        assert rate == pytest.approx(min(1.0, np.exp(delta)), abs=0.02)
        assert len(proposals) == 1


class TestNumericalFailures:
    @pytest.mark.parametrize("failure", ["raise", "nan", "divide"])
    def test_failure_rejected_without_abort(self, failure):
        store = _single_gene_store()
        scheduler = GibbsScheduler(
            store, FragileModel(failure), ProposalController(), CSP_ONLY, np.random.default_rng(3)
        )
        for sweep in range(1, 201):
            scheduler.sweep()
            store.snapshot(sweep)

        assert scheduler.numerical_rejections[BlockKind.MUTATION] > 0
        assert np.all(store.trace.values(BlockKind.MUTATION) <= 0)
        assert len(store.trace) == 200

    def test_evaluate_maps_failures_to_minus_infinity(self):
        store = _single_gene_store()
        store.commit(BlockKind.MUTATION, 0, [1.0])
        gene = store.data.gene(0)
        for failure in ("raise", "nan", "divide"):
            assert evaluate(FragileModel(failure), gene, 0, store.view()) == -np.inf

    def test_evaluate_passes_finite_values(self):
        store = _single_gene_store()
        assert evaluate(FragileModel("raise"), store.data.gene(0), 0, store.view()) == 0.0


class TestBlockFlags:
    def test_disabled_blocks_untouched(self):
        store = _single_gene_store(n_mutation=1, n_selection=1)
        scheduler = GibbsScheduler(
            store,
            AlternatingModel(0.0),
            ProposalController(),
            EstimationFlags(expression=True, csp=False, hyper=False, mix=False),
            np.random.default_rng(0),
        )
        for _ in range(50):
            scheduler.sweep()
        assert store.value(BlockKind.MUTATION, 0)[0] == 0.0
        assert store.value(BlockKind.SPHI, 0) == 1.0
        assert store.value(BlockKind.EXPRESSION, 0) != 1.0

    def test_fixed_observation_noise(self):
        data = GeneDataStore.from_arrays(
            ["g1", "g2"], np.ones((2, 1), dtype=int), ["AAA"], expression=[1.5, 0.7]
        )
        store = ParameterStore(
            data=data, mixture=MixtureDefinition.from_keyword("allUnique", 1), sphi=[1.0], sepsilon=[0.3]
        )
        flags = EstimationFlags(expression=True, csp=False, hyper=True, mix=False, fix_observation_noise=True)
        scheduler = GibbsScheduler(store, AlternatingModel(0.0), ProposalController(), flags, np.random.default_rng(0))
        for _ in range(50):
            scheduler.sweep()
        assert store.value(BlockKind.SEPSILON, 0) == 0.3
        assert store.value(BlockKind.SPHI, 0) != 1.0

    def test_assignment_mode_coerced(self):
        flags = EstimationFlags(assignment_mode="probabilities")
        assert flags.assignment_mode.value == "probabilities"
        with pytest.raises(ValueError):
            EstimationFlags(assignment_mode="hard")


class TestUninformedHyperparameters:
    def _scheduler(self, store, flags=None, seed=0):
        flags = flags or EstimationFlags(expression=False, csp=False, hyper=True, mix=False)
        return GibbsScheduler(store, AlternatingModel(0.0), ProposalController(), flags, np.random.default_rng(seed))

    def _store(self, expression=None, **kwargs):
        data = GeneDataStore.from_arrays(
            ["g1", "g2", "g3"], np.ones((3, 1), dtype=int), ["AAA"], expression=expression
        )
        kwargs.setdefault("sphi", [1.0, 0.6])
        return ParameterStore(
            data=data,
            mixture=MixtureDefinition.from_keyword("allUnique", 2),
            gene_assignment=[0, 0, 0],
            n_mutation_parameters=1,
            initial_expression=[0.5, 1.0, 2.0],
            **kwargs,
        )

    def test_empty_gene_set_keeps_sphi(self):
        store = self._store()
        scheduler = self._scheduler(store)
        for sweep in range(1, 501):
            scheduler.sweep()
            scheduler.proposals.adapt(sweep)

        assert store.value(BlockKind.SPHI, 1) == 0.6
        assert store.value(BlockKind.SPHI, 0) != 1.0
        assert (BlockKind.SPHI, 1) not in scheduler.proposals.widths()

    def test_empty_category_keeps_values(self):
        store = self._store()
        flags = EstimationFlags(expression=False, csp=True, hyper=False, mix=False)
        scheduler = self._scheduler(store, flags)
        for _ in range(50):
            scheduler.sweep()
        assert store.value(BlockKind.MUTATION, 1)[0] == 0.0
        assert (BlockKind.MUTATION, (1, 0)) not in scheduler.proposals.widths()

    def test_unusable_scale_candidate_is_rejected(self):
        store = self._store()
        scheduler = self._scheduler(store)
        # steps this wide overflow exp() to inf or underflow it to 0
        scheduler.proposals.register((BlockKind.SPHI, 0), width=1e4)
        for _ in range(50):
            scheduler.sweep()

        assert scheduler.numerical_rejections[BlockKind.SPHI] > 0
        value = store.value(BlockKind.SPHI, 0)
        assert np.isfinite(value) and value > 0

    def test_all_missing_observation_column_keeps_sepsilon(self):
        expression = np.array([[1.5, np.nan], [0.7, np.nan], [1.1, np.nan]])
        store = self._store(expression=expression, sepsilon=[0.3, 0.4])
        scheduler = self._scheduler(store)
        for sweep in range(1, 301):
            scheduler.sweep()
            scheduler.proposals.adapt(sweep)

        assert store.value(BlockKind.SEPSILON, 1) == 0.4
        assert store.value(BlockKind.SEPSILON, 0) != 0.3

    def test_shared_sphi_scores_every_gene(self):
        store = self._store(sphi=[1.0], share_sphi=True)
        assert store.n_sphi == 1
        view = store.view()
        assert view.sphi(0) == view.sphi(1) == 1.0

        scheduler = self._scheduler(store)
        for _ in range(50):
            scheduler.sweep()
        shared = store.value(BlockKind.SPHI, 0)
        assert shared != 1.0
        assert store.view().sphi(1) == shared
        assert set(scheduler.proposals.widths()) == {(BlockKind.SPHI, 0)}
