"""Priors for gene-specific expression and observation noise."""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import stats

from codonbayes.core.errors import InvalidPrior


def is_scale(value: float) -> bool:
    """True for a usable scale: finite and strictly positive."""
    value = float(value)
    return bool(np.isfinite(value) and value > 0)


def check_scale(value: float, name: str) -> float:
    """Return value as float, raising InvalidPrior unless strictly positive and finite."""
    if not is_scale(value):
        raise InvalidPrior(f"{name} must be strictly positive, got {value}")
    return float(value)


def expression_prior_mean(sphi: float) -> float:
    """
    Log-scale mean m_phi of the expression prior.

    Fixed at -s_phi^2 / 2 so that E[phi] = 1 for every s_phi.
    """
    sphi = check_scale(sphi, "s_phi")
    return -0.5 * sphi * sphi


@dataclass(frozen=True)
class ExpressionPrior:
    """
    Lognormal prior on expression: log(phi) ~ N(-s_phi^2/2, s_phi).

    The mean is derived from s_phi, never set independently.
    """

    sphi: float

    def __post_init__(self):
        check_scale(self.sphi, "s_phi")

    @property
    def mphi(self) -> float:
        return expression_prior_mean(self.sphi)

    def log_density(self, phi) -> np.ndarray:
        """
        Log density of phi (on the phi scale, including the 1/phi Jacobian).

        Evaluated in log space so that large s_phi cannot underflow
        exp(m_phi). Non-positive or non-finite phi, and any NaN, give -inf.
        """
        phi = np.asarray(phi, dtype=float)
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            log_phi = np.log(phi)
            density = stats.norm.logpdf(log_phi, loc=self.mphi, scale=self.sphi) - log_phi
        return np.where(np.isfinite(log_phi) & ~np.isnan(density), density, -np.inf)

    def sample(self, size=None, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        rng = rng if rng is not None else np.random.default_rng()
        return rng.lognormal(mean=self.mphi, sigma=self.sphi, size=size)


def observation_log_density(observed, phi, sepsilon: float) -> float:
    """
    Log density of empirical expression measurements given true phi.

    log(observed) ~ N(log(phi), s_epsilon). NaN measurements contribute 0.

    Args:
        observed: Measured expression values
        phi: Expression values matching observed (scalar broadcasts)
        sepsilon: Observation noise scale

    Returns:
        Summed log density over non-missing measurements
    """
    observed = np.asarray(observed, dtype=float)
    phi = np.broadcast_to(np.asarray(phi, dtype=float), observed.shape)
    mask = ~np.isnan(observed)
    if not np.any(mask):
        return 0.0
    return float(
        np.sum(
            stats.lognorm.logpdf(observed[mask], s=sepsilon, scale=phi[mask])
        )
    )
