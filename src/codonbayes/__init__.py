"""
codonbayes: Bayesian estimation of codon-usage parameters

Adaptive Metropolis-Hastings-within-Gibbs sampling of gene expression,
mutation bias and translational selection across a mixture of gene-sets.
"""

__version__ = "0.1.0"

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
from codonbayes.core.likelihood import LikelihoodModel
from codonbayes.core.parameters import BlockKind, ParameterStore, Trace
from codonbayes.core.proposals import AdaptationSettings, ProposalController
from codonbayes.core.scheduler import EstimationFlags, GibbsScheduler
from codonbayes.core.driver import MCMCDriver, run_mcmc
from codonbayes.core.config import RunConfig
from codonbayes.plugins.registry import plugins

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
    "LikelihoodModel",
    "BlockKind",
    "ParameterStore",
    "Trace",
    "AdaptationSettings",
    "ProposalController",
    "EstimationFlags",
    "GibbsScheduler",
    "MCMCDriver",
    "run_mcmc",
    "RunConfig",
    "plugins",
    "__version__",
]
