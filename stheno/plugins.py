"""Plugin registry for Stheno.

Converters, generators and hooks are registered into an explicit, ordered
PluginRegistry that the Site receives at construction. The registry starts
with the built-in plugins and can be extended by project plugin modules:
every ``*.py`` file in the configured plugins directory is imported and its
``register(registry)`` function called.

Key classes:
- Priority: Ordering values shared by converters and generators.
- Plugin: Base class carrying the configuration and a priority.
- PluginRegistry: Ordered registry of plugin classes and hooks.
"""

from __future__ import annotations

import importlib.util
import logging
import sys
from abc import ABC
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .errors import ConfigurationError
from .hooks import HookRegistry

if TYPE_CHECKING:
    from .converters import Converter
    from .generators import Generator

logger = logging.getLogger(__name__)


class Priority(IntEnum):
    LOWEST = -100
    LOW = -10
    NORMAL = 0
    HIGH = 10
    HIGHEST = 100


class Plugin(ABC):
    """Common base for converters and generators.

    Attributes:
        config: Site configuration the plugin was instantiated with.
    """

    priority: int = Priority.NORMAL

    def __init__(self, config: dict[str, Any]):
        self.config = config


class PluginRegistry:
    """Explicit registry of plugin classes and lifecycle hooks.

    Classes are kept in registration order; instantiation sorts them by
    priority (highest first) with registration order breaking ties.
    """

    def __init__(self) -> None:
        self.converters: list[type[Converter]] = []
        self.generators: list[type[Generator]] = []
        self.hooks = HookRegistry()
        self.loaded_paths: list[Path] = []

    def register_converter(self, cls: type[Converter]) -> type[Converter]:
        if cls not in self.converters:
            self.converters.append(cls)
        return cls

    def register_generator(self, cls: type[Generator]) -> type[Generator]:
        if cls not in self.generators:
            self.generators.append(cls)
        return cls

    def instantiate_converters(self, config: dict[str, Any]) -> list[Converter]:
        return [cls(config) for cls in _by_priority(self.converters)]

    def instantiate_generators(self, config: dict[str, Any]) -> list[Generator]:
        return [cls(config) for cls in _by_priority(self.generators)]

    def load_directory(self, plugins_dir: Path) -> list[Path]:
        """Import every plugin module in ``plugins_dir``.

        Modules are loaded in sorted filename order. A module must define
        ``register(registry)``; it is called with this registry. Each file
        is loaded at most once per registry.

        Returns:
            Paths of the modules loaded by this call.

        Raises:
            ConfigurationError: If a module has no ``register`` function.
        """
        if not plugins_dir.is_dir():
            return []
        loaded: list[Path] = []
        for path in sorted(plugins_dir.glob("*.py")):
            if path.name.startswith("_") or path in self.loaded_paths:
                continue
            module_name = f"stheno_plugins.{path.stem}"
            spec = importlib.util.spec_from_file_location(module_name, path)
            if spec is None or spec.loader is None:
                continue
            module = importlib.util.module_from_spec(spec)
            sys.modules[module_name] = module
            spec.loader.exec_module(module)
            register = getattr(module, "register", None)
            if register is None:
                raise ConfigurationError(f"Plugin {path} does not define register(registry)")
            register(self)
            logger.debug("Loaded plugin %s", path)
            self.loaded_paths.append(path)
            loaded.append(path)
        return loaded


def _by_priority(classes: list[type]) -> list[type]:
    return sorted(classes, key=lambda cls: -int(cls.priority))


def default_registry() -> PluginRegistry:
    """Create a registry holding the built-in converters and generators."""
    from .converters import IdentityConverter, MarkdownConverter
    from .generators import FeedGenerator, PaginationGenerator, SitemapGenerator

    registry = PluginRegistry()
    registry.register_converter(MarkdownConverter)
    registry.register_converter(IdentityConverter)
    registry.register_generator(PaginationGenerator)
    registry.register_generator(SitemapGenerator)
    registry.register_generator(FeedGenerator)
    return registry
