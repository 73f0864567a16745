"""Core engine: data, mixture structure, parameter state and the MCMC loop."""

from codonbayes.core.errors import (
    CodonBayesError,
    ConfigurationError,
    MalformedMixtureMatrix,
    InvalidPrior,
    OutOfRangeIndex,
    DataError,
    NumericalError,
)
from codonbayes.core.data import Gene, GeneDataStore
from codonbayes.core.mixture import MixtureDefinition, MixtureKeyword
from codonbayes.core.priors import ExpressionPrior, expression_prior_mean, observation_log_density
from codonbayes.core.likelihood import LikelihoodModel, evaluate
from codonbayes.core.parameters import (
    BlockKind,
    ParameterView,
    ParameterStore,
    Trace,
    TraceEntry,
)
from codonbayes.core.proposals import AdaptationSettings, ProposalController, ProposalPhase
from codonbayes.core.assignment import AssignmentMode, update_assignments
from codonbayes.core.scheduler import EstimationFlags, GibbsScheduler, accept
from codonbayes.core.driver import MCMCDriver, run_mcmc
from codonbayes.core.config import RunConfig

__all__ = [
    "CodonBayesError",
    "ConfigurationError",
    "MalformedMixtureMatrix",
    "InvalidPrior",
    "OutOfRangeIndex",
    "DataError",
    "NumericalError",
    "Gene",
    "GeneDataStore",
    "MixtureDefinition",
    "MixtureKeyword",
    "ExpressionPrior",
    "expression_prior_mean",
    "observation_log_density",
    "LikelihoodModel",
    "evaluate",
    "BlockKind",
    "ParameterView",
    "ParameterStore",
    "Trace",
    "TraceEntry",
    "AdaptationSettings",
    "ProposalController",
    "ProposalPhase",
    "AssignmentMode",
    "update_assignments",
    "EstimationFlags",
    "GibbsScheduler",
    "accept",
    "MCMCDriver",
    "run_mcmc",
    "RunConfig",
]
