"""
Plugin Registry

Handles plugin discovery, loading, and handler management.
Plugins are discovered via Python entry_points for pip-installable community plugins.
"""

import importlib.metadata
from collections import defaultdict
from typing import Any

import structlog

from surveyor.models.assets import AssetType
from surveyor.plugins.base import Handler, PluginCategory, SurveyorPlugin

logger = structlog.get_logger(__name__)

# Entry point group for Surveyor plugins
PLUGIN_ENTRY_POINT = "surveyor.plugins"


class PluginLoadError(Exception):
    """Raised when a plugin fails to load or register."""

    pass


class PluginNotFoundError(Exception):
    """Raised when a requested plugin is not found."""

    pass


class PluginRegistry:
    """
    Registry for discovering, loading, and starting Surveyor plugins.

    Plugins register handlers when started; the dispatcher asks the
    registry which handlers react to a given asset type.

    Usage:
        registry = PluginRegistry()
        registry.discover_plugins()
        registry.start_plugins()

        for handler in registry.get_handlers(AssetType.FQDN):
            result = await handler.callback(event)
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._plugins: dict[str, SurveyorPlugin] = {}
        self._plugin_classes: dict[str, type[SurveyorPlugin]] = {}
        self._handlers: dict[AssetType, list[Handler]] = defaultdict(list)
        self._handler_names: set[str] = set()
        self._started: set[str] = set()
        self._discovered = False

    def discover_plugins(self) -> int:
        """
        Discover plugin classes from entry_points.

        Returns:
            Number of plugins discovered
        """
        if self._discovered:
            return len(self)

        discovered_count = 0

        try:
            entry_points = importlib.metadata.entry_points(group=PLUGIN_ENTRY_POINT)
            for ep in entry_points:
                try:
                    plugin_class = ep.load()
                    self._register_plugin_class(ep.name, plugin_class)
                    discovered_count += 1
                    logger.debug("Discovered plugin via entry_point", plugin=ep.name)
                except Exception as e:
                    logger.warning(
                        "Failed to load plugin from entry_point",
                        plugin=ep.name,
                        error=str(e),
                    )
        except Exception as e:
            logger.warning("Failed to load entry_points", error=str(e))

        self._discovered = True
        logger.info("Plugin discovery complete", count=discovered_count)
        return discovered_count

    def register_plugin(self, plugin: SurveyorPlugin) -> None:
        """
        Manually register a plugin instance.

        Args:
            plugin: The plugin instance to register
        """
        if plugin.name in self._plugins:
            logger.warning("Overwriting existing plugin", plugin=plugin.name)
        self._plugins[plugin.name] = plugin
        logger.debug("Registered plugin", plugin=plugin.name)

    def _register_plugin_class(
        self, name: str, plugin_class: type[SurveyorPlugin]
    ) -> None:
        """Register a plugin class (lazy instantiation)."""
        if not isinstance(plugin_class, type) or not issubclass(plugin_class, SurveyorPlugin):
            raise PluginLoadError(
                f"Plugin class {plugin_class} must inherit from SurveyorPlugin"
            )
        self._plugin_classes[name] = plugin_class

    def register_handler(self, handler: Handler) -> None:
        """
        Register a handler for an asset type.

        Raises:
            PluginLoadError: If a handler with the same name already exists
        """
        if handler.name in self._handler_names:
            raise PluginLoadError(f"Handler '{handler.name}' is already registered")

        self._handler_names.add(handler.name)
        handlers = self._handlers[handler.event_type]
        handlers.append(handler)
        handlers.sort(key=lambda h: h.priority)
        logger.debug(
            "Registered handler",
            handler=handler.name,
            plugin=handler.plugin.name,
            event_type=handler.event_type.value,
            priority=handler.priority,
        )

    def get_handlers(self, asset_type: AssetType) -> list[Handler]:
        """Handlers for an asset type, lowest priority value first."""
        return list(self._handlers.get(asset_type, []))

    def start_plugins(self) -> int:
        """
        Instantiate and start every known plugin.

        Plugins that fail to start are logged and skipped.

        Returns:
            Number of plugins started
        """
        for plugin in self.list_plugins():
            if plugin.name in self._started:
                continue
            try:
                plugin.start(self)
                self._started.add(plugin.name)
            except Exception as e:
                logger.error("Failed to start plugin", plugin=plugin.name, error=str(e))
        return len(self._started)

    def stop_plugins(self) -> None:
        """Stop every started plugin and drop its handlers."""
        for name in sorted(self._started):
            try:
                self.get_plugin(name).stop()
            except Exception as e:
                logger.warning("Failed to stop plugin", plugin=name, error=str(e))
        self._started.clear()
        self._handlers.clear()
        self._handler_names.clear()

    async def aclose(self) -> None:
        """Close network clients held by instantiated plugins."""
        for plugin in self._plugins.values():
            await plugin.aclose()

    def get_plugin(self, name: str) -> SurveyorPlugin:
        """
        Get a plugin by name.

        Args:
            name: The plugin name

        Returns:
            The plugin instance

        Raises:
            PluginNotFoundError: If the plugin is not found
        """
        if name in self._plugins:
            return self._plugins[name]

        if name in self._plugin_classes:
            try:
                plugin = self._plugin_classes[name]()
            except Exception as e:
                raise PluginLoadError(f"Failed to instantiate plugin {name}: {e}") from e
            self._plugins[name] = plugin
            return plugin

        # Entry point names may differ from the plugin's own name
        for plugin in self._plugins.values():
            if plugin.name == name:
                return plugin

        raise PluginNotFoundError(f"Plugin '{name}' not found")

    def has_plugin(self, name: str) -> bool:
        """Check if a plugin exists."""
        return name in self._plugins or name in self._plugin_classes

    def list_plugins(self) -> list[SurveyorPlugin]:
        """
        List all available plugins.

        Returns:
            List of plugin instances
        """
        all_names = set(self._plugins.keys()) | set(self._plugin_classes.keys())
        plugins: list[SurveyorPlugin] = []
        for name in sorted(all_names):
            try:
                plugin = self.get_plugin(name)
            except PluginLoadError as e:
                logger.warning("Failed to load plugin for listing", plugin=name, error=str(e))
                continue
            if plugin not in plugins:
                plugins.append(plugin)
        return plugins

    def list_plugin_names(self) -> list[str]:
        """List all available plugin names."""
        return sorted(set(self._plugins.keys()) | set(self._plugin_classes.keys()))

    def get_plugins_by_category(self, category: PluginCategory) -> list[SurveyorPlugin]:
        """Get all plugins in a specific category."""
        return [p for p in self.list_plugins() if p.category == category]

    def get_plugin_info(self, name: str) -> dict[str, Any]:
        """Get information about a specific plugin."""
        return self.get_plugin(name).get_info()

    def __len__(self) -> int:
        return len(set(self._plugins.keys()) | set(self._plugin_classes.keys()))

    def __contains__(self, name: str) -> bool:
        return self.has_plugin(name)


# Global registry instance
_global_registry: PluginRegistry | None = None


def get_registry() -> PluginRegistry:
    """
    Get the global plugin registry.

    Creates and initializes the registry on first call.

    Returns:
        The global PluginRegistry instance
    """
    global _global_registry
    if _global_registry is None:
        _global_registry = PluginRegistry()
        _global_registry.discover_plugins()
    return _global_registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _global_registry
    _global_registry = None
