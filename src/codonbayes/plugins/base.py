"""Base plugin class."""

from typing import Dict, Any, Callable
from abc import ABC, abstractmethod


class PluginBase(ABC):
    """
    Base class for codonbayes plugins.

    Plugins provide domain-specific:
    - Likelihood models run inside the MCMC engine
    - Data loaders producing a GeneDataStore
    - Default priors and proposal settings
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Plugin name (e.g., 'codon')."""
        pass

    @property
    @abstractmethod
    def version(self) -> str:
        """Plugin version."""
        pass

    @property
    def models(self) -> Dict[str, type]:
        """Dictionary of LikelihoodModel classes."""
        return {}

    @property
    def loaders(self) -> Dict[str, Callable]:
        """Dictionary of data loaders."""
        return {}

    @property
    def priors(self) -> Dict[str, Any]:
        """Dictionary of domain-specific priors."""
        return {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, version={self.version})"
