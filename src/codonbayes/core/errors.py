"""Exception taxonomy for the estimation engine.

Configuration and data problems are fatal and surface before the first
sweep. Numerical problems inside a likelihood evaluation are not fatal:
the scheduler treats them as a rejected proposal.
"""


class CodonBayesError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(CodonBayesError, ValueError):
    """Malformed run configuration (lengths, conflicts, bad values)."""


class MalformedMixtureMatrix(ConfigurationError):
    """Mixture definition matrix has the wrong shape or invalid category ids."""


class InvalidPrior(ConfigurationError):
    """A prior scale hyperparameter (s_phi, s_epsilon) is not strictly positive."""


class OutOfRangeIndex(CodonBayesError, IndexError):
    """Gene, gene-set, category or observation-set index outside configured bounds."""


class DataError(CodonBayesError, ValueError):
    """Input sequence or measurement data cannot be loaded."""


class NumericalError(CodonBayesError, ArithmeticError):
    """Likelihood evaluation produced a non-finite value."""
