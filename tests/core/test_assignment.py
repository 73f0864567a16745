"""Tests for mixture-assignment sampling."""

import numpy as np
import pytest

from codonbayes.core.assignment import (
    AssignmentMode,
    gene_set_log_weights,
    membership_probabilities,
    update_assignments,
)
from codonbayes.core.data import GeneDataStore
from codonbayes.core.likelihood import LikelihoodModel
from codonbayes.core.mixture import MixtureDefinition
from codonbayes.core.parameters import BlockKind, ParameterStore
from codonbayes.core.proposals import ProposalController
from codonbayes.core.scheduler import EstimationFlags, GibbsScheduler


class PreferenceModel(LikelihoodModel):
    """Log-likelihood 0 under the preferred gene-set and -penalty elsewhere."""

    def __init__(self, preferred, penalty=50.0):
        self.preferred = preferred
        self.penalty = penalty

    @property
    def n_mutation_parameters(self):
        return 0

    @property
    def n_selection_parameters(self):
        return 0

    def log_likelihood(self, gene, gene_set, params):
        return 0.0 if gene_set == self.preferred[gene.index] else -self.penalty


@pytest.fixture
def store():
    data = GeneDataStore.from_arrays(
        [f"g{i}" for i in range(6)], np.ones((6, 1), dtype=int), ["AAA"]
    )
    return ParameterStore(
        data=data,
        mixture=MixtureDefinition.from_keyword("allUnique", 2),
        sphi=[1.0, 1.0],
        gene_assignment=[0, 0, 0, 1, 1, 1],
    )


class TestMembershipProbabilities:
    def test_normalised(self):
        probabilities = membership_probabilities(np.log([0.2, 0.6, 0.2]) - 1000.0)
        np.testing.assert_allclose(probabilities, [0.2, 0.6, 0.2])

    def test_all_impossible(self):
        assert membership_probabilities(np.full(3, -np.inf)) is None

    def test_log_weights_include_mixture_proportions(self, store):
        store.commit(BlockKind.MIXTURE_WEIGHTS, None, [0.25, 0.75])
        weights = gene_set_log_weights(store, PreferenceModel([0] * 6, penalty=0.0), 0, store.view())
        assert weights[1] - weights[0] == pytest.approx(np.log(3.0))


class TestModes:
    def test_sample_mode_commits_draw(self, store):
        rng = np.random.default_rng(0)
        preferred = [1, 1, 1, 0, 0, 0]
        changed = update_assignments(store, PreferenceModel(preferred), rng, AssignmentMode.SAMPLE)
        assert changed == 6
        np.testing.assert_array_equal(store.assignment, preferred)
        assert store.mixture_weights.sum() == pytest.approx(1.0)

    def test_probabilities_mode_keeps_hard_assignment(self, store):
        rng = np.random.default_rng(0)
        before = store.assignment
        update_assignments(store, PreferenceModel([1, 1, 1, 0, 0, 0]), rng, "probabilities")

        np.testing.assert_array_equal(store.assignment, before)
        np.testing.assert_allclose(store.mixture_weights, [0.5, 0.5])
        for g in range(6):
            probabilities = store.current_assignment_probabilities(g)
            assert probabilities.sum() == pytest.approx(1.0)
            assert probabilities[1 if g < 3 else 0] > 0.999

    def test_sampled_assignment_drives_next_grouping(self, store):
        update_assignments(
            store, PreferenceModel([1, 1, 1, 1, 1, 0]), np.random.default_rng(4), AssignmentMode.SAMPLE
        )
        np.testing.assert_array_equal(store.genes_in_set(1), [0, 1, 2, 3, 4])
        np.testing.assert_array_equal(store.genes_in_set(0), [5])

    def test_weights_follow_counts(self, store):
        rng = np.random.default_rng(1)
        model = PreferenceModel([1] * 6)
        draws = []
        for _ in range(500):
            update_assignments(store, model, rng, AssignmentMode.SAMPLE)
            draws.append(store.mixture_weights[1])
        # Dirichlet(1, 7) has mean 7/8
        assert np.mean(draws) == pytest.approx(7 / 8, abs=0.02)

    def test_scheduler_trace_in_probabilities_mode(self, store):
        flags = EstimationFlags(expression=False, csp=False, hyper=False, mix=True, assignment_mode="probabilities")
        scheduler = GibbsScheduler(
            store, PreferenceModel([1, 1, 1, 0, 0, 0], penalty=1.0), ProposalController(), flags,
            np.random.default_rng(2),
        )
        for sweep in range(1, 11):
            scheduler.sweep()
            store.snapshot(sweep)

        trace = store.trace
        assert np.all(trace.values(BlockKind.ASSIGNMENT) == [0, 0, 0, 1, 1, 1])
        posterior = trace.assignment_posterior()
        np.testing.assert_allclose(posterior.sum(axis=1), 1.0)
        expected = 1.0 / (1.0 + np.exp(-1.0))
        assert posterior[0, 1] == pytest.approx(expected)


class TestExtremeScales:
    def test_large_sphi_gives_finite_weights(self):
        data = GeneDataStore.from_arrays(["g0", "g1"], np.ones((2, 1), dtype=int), ["AAA"])
        store = ParameterStore(
            data=data,
            mixture=MixtureDefinition.from_keyword("allUnique", 2),
            sphi=[1.0, 60.0],
            initial_expression=[0.8, 1.3],
        )
        weights = gene_set_log_weights(store, PreferenceModel([0, 0]), 0, store.view())
        assert np.all(np.isfinite(weights))

        update_assignments(store, PreferenceModel([0, 0]), np.random.default_rng(0), AssignmentMode.PROBABILITIES)
        probabilities = store.current_assignment_probabilities(1)
        assert np.all(np.isfinite(probabilities))
        assert probabilities.sum() == pytest.approx(1.0)
