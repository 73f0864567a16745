"""Plugin discovery via the ``codonbayes.plugins`` entry-point group."""

import importlib.metadata
import logging
from typing import Dict, List

from codonbayes.plugins.base import PluginBase

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "codonbayes.plugins"


class PluginRegistry:
    """
    Name -> plugin lookup, filled lazily from installed entry points.

    Plugins can also be registered directly, which takes precedence over
    an installed plugin of the same name.
    """

    def __init__(self):
        self._plugins: Dict[str, PluginBase] = {}
        self._discovered = False

    def register(self, plugin: PluginBase) -> None:
        self._plugins[plugin.name] = plugin

    def discover(self) -> None:
        if self._discovered:
            return

        for ep in importlib.metadata.entry_points(group=ENTRY_POINT_GROUP):
            try:
                plugin = ep.load()()
            except (ImportError, AttributeError, TypeError) as e:
                logger.warning(f"Failed to load plugin {ep.name}: {e}")
                continue
            self._plugins.setdefault(plugin.name, plugin)
            logger.debug(f"Discovered plugin {plugin!r}")

        self._discovered = True

    def list(self) -> List[str]:
        self.discover()
        return list(self._plugins)

    def load(self, name: str) -> PluginBase:
        """
        Plugin registered under name.

        Raises:
            KeyError: no such plugin
        """
        self.discover()
        try:
            return self._plugins[name]
        except KeyError:
            raise KeyError(
                f"Plugin '{name}' not found. Available plugins: {', '.join(self._plugins)}"
            ) from None

    def model(self, name: str) -> type:
        """
        LikelihoodModel class exposed under name by any plugin.

        Raises:
            KeyError: no plugin provides the model
        """
        self.discover()
        for plugin in self._plugins.values():
            if name in plugin.models:
                return plugin.models[name]
        raise KeyError(f"No plugin provides model '{name}'")

    def __repr__(self) -> str:
        self.discover()
        return f"PluginRegistry(plugins={list(self._plugins)})"


plugins = PluginRegistry()
