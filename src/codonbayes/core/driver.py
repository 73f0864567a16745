"""MCMC run orchestration."""

import logging
from typing import Optional, TYPE_CHECKING

import numpy as np

from codonbayes.core.errors import ConfigurationError
from codonbayes.core.parameters import BlockKind, ParameterStore
from codonbayes.core.proposals import ProposalController
from codonbayes.core.scheduler import GibbsScheduler

if TYPE_CHECKING:
    from codonbayes.core.config import RunConfig
    from codonbayes.core.data import GeneDataStore
    from codonbayes.core.likelihood import LikelihoodModel

logger = logging.getLogger(__name__)


def _positive_int(value, name: str) -> int:
    if isinstance(value, bool) or int(value) != value or value < 1:
        raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
    return int(value)


class MCMCDriver:
    """
    Runs a fixed number of Gibbs sweeps and records the trace.

    The driver does no likelihood work. Per sweep it:
    1. runs one scheduler sweep,
    2. during the adaptive phase, calls ProposalController.adapt() every
       ``adaptive_width`` sweeps,
    3. freezes the proposal widths once ``adaptive_sweeps`` sweeps are done,
    4. snapshots the ParameterStore every ``thinning`` sweeps.

    Adaptation and freezing happen between sweeps, never while proposals
    are in flight.
    """

    def __init__(self, scheduler: GibbsScheduler):
        self.scheduler = scheduler
        self.sweeps_done = 0

    @property
    def store(self):
        return self.scheduler.store

    @property
    def proposals(self):
        return self.scheduler.proposals

    @classmethod
    def from_config(
        cls,
        config: "RunConfig",
        data: "GeneDataStore",
        model: "LikelihoodModel",
    ) -> "MCMCDriver":
        """Validate config against data and wire store, proposals and scheduler."""
        config.validate(n_genes=data.n_genes, n_observation_sets=data.n_observation_sets)
        store = ParameterStore(
            data=data,
            mixture=config.mixture(),
            sphi=config.sphi_vector(),
            share_sphi=config.share_sphi,
            sepsilon=config.sepsilon_vector(data.n_observation_sets),
            gene_assignment=config.assignment_vector(data),
            n_mutation_parameters=model.n_mutation_parameters,
            n_selection_parameters=model.n_selection_parameters,
            initial_mutation=model.initial_mutation(),
            initial_selection=model.initial_selection(),
            mutation_groups=model.mutation_groups(),
            selection_groups=model.selection_groups(),
            labels={
                BlockKind.MUTATION: model.mutation_labels(),
                BlockKind.SELECTION: model.selection_labels(),
            },
        )
        scheduler = GibbsScheduler(
            store=store,
            model=model,
            proposals=ProposalController(config.adaptation),
            flags=config.flags(),
            rng=np.random.default_rng(config.seed),
            n_workers=config.n_workers,
        )
        return cls(scheduler)

    def run(
        self,
        samples: int,
        thinning: int = 1,
        adaptive_width: int = 100,
        adaptive_sweeps: Optional[int] = None,
    ) -> None:
        """
        Run ``samples * thinning`` sweeps.

        Args:
            samples: Number of trace snapshots to record
            thinning: Sweeps between snapshots
            adaptive_width: Sweeps between proposal-width adaptations
            adaptive_sweeps: Length of the adaptive phase in sweeps; defaults
                to half of the run. 0 freezes widths before the first sweep.

        Results are left in ``self.store.trace``; nothing is returned.
        """
        samples = _positive_int(samples, "samples")
        thinning = _positive_int(thinning, "thinning")
        adaptive_width = _positive_int(adaptive_width, "adaptive_width")
        total = samples * thinning
        if adaptive_sweeps is None:
            adaptive_sweeps = total // 2
        if isinstance(adaptive_sweeps, bool) or int(adaptive_sweeps) != adaptive_sweeps or adaptive_sweeps < 0:
            raise ConfigurationError(
                f"adaptive_sweeps must be a non-negative integer, got {adaptive_sweeps!r}"
            )
        adaptive_sweeps = int(adaptive_sweeps)

        proposals = self.proposals
        store = self.store
        if adaptive_sweeps == 0:
            proposals.freeze()

        logger.info(
            f"Starting MCMC: {total} sweeps, thinning={thinning}, "
            f"adaptive_width={adaptive_width}, adaptive_sweeps={adaptive_sweeps}"
        )
        progress_every = max(1, total // 10)

        try:
            for sweep in range(1, total + 1):
                self.scheduler.sweep()
                self.sweeps_done += 1

                if not proposals.is_frozen:
                    if sweep % adaptive_width == 0:
                        proposals.adapt(sweep)
                    if sweep >= adaptive_sweeps:
                        proposals.freeze()
                        logger.info(f"Adaptive phase ended after sweep {sweep}")

                if sweep % thinning == 0:
                    store.snapshot(sweep)

                if sweep % progress_every == 0:
                    logger.debug(f"Sweep {sweep}/{total}")
        finally:
            self.scheduler.close()

        rejected = sum(self.scheduler.numerical_rejections.values())
        logger.info(
            f"MCMC finished: {len(store.trace)} samples recorded, "
            f"{rejected} proposals rejected for non-finite likelihood"
        )


def run_mcmc(
    config: "RunConfig",
    data: "GeneDataStore",
    model: "LikelihoodModel",
) -> MCMCDriver:
    """Build a driver from config and run it; the trace is on driver.store.trace."""
    driver = MCMCDriver.from_config(config, data, model)
    driver.run(**config.run_arguments())
    return driver
