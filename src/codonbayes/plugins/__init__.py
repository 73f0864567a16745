"""Plugin system for domain-specific models and loaders."""

from codonbayes.plugins.base import PluginBase
from codonbayes.plugins.registry import PluginRegistry, plugins

__all__ = ["PluginBase", "PluginRegistry", "plugins"]
