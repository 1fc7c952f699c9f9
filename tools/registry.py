"""
Tool registry with automatic discovery.

Scans a package for concrete MusicalTool subclasses, instantiates each
once and serves them by name.
"""

import importlib
import inspect
import logging
import pkgutil

from tools.base import MusicalTool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Name → tool lookup.

    Usage:
        registry = ToolRegistry()
        registry.discover()

        tool = registry.get("render_comping")
        result = tool(chords=[{"root": "D", "quality": "-7", "duration": 4.0}])
    """

    def __init__(self) -> None:
        self._tools: dict[str, MusicalTool] = {}

    def register(self, tool: MusicalTool) -> None:
        """
        Register a tool instance.

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> MusicalTool | None:
        """Tool by name, or None if not registered."""
        return self._tools.get(name)

    def list_tools(self) -> list[dict]:
        return [tool.to_dict() for tool in self._tools.values()]

    def discover(self, package_name: str = "tools.music") -> int:
        """
        Import every module under ``package_name`` and register its tools.

        Modules that fail to import are logged and skipped. Classes
        re-exported from another module are registered only once.

        Returns:
            Number of tools newly registered
        """
        try:
            package = importlib.import_module(package_name)
        except ImportError:
            logger.warning("Tool package %s not importable", package_name)
            return 0
        if not hasattr(package, "__path__"):
            return 0

        count = 0
        for _finder, module_name, _is_pkg in pkgutil.walk_packages(package.__path__, prefix=f"{package_name}."):
            try:
                module = importlib.import_module(module_name)
            except ImportError as e:
                logger.warning("Skipping tool module %s: %s", module_name, e)
                continue

            for _name, obj in inspect.getmembers(module, inspect.isclass):
                if obj is MusicalTool or not issubclass(obj, MusicalTool) or inspect.isabstract(obj):
                    continue
                if obj.__module__ != module.__name__:
                    continue
                tool = obj()
                if tool.name in self._tools:
                    continue
                self.register(tool)
                count += 1

        logger.debug("Discovered %d tools in %s", count, package_name)
        return count

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools


_registry: ToolRegistry | None = None


def get_registry() -> ToolRegistry:
    """Process-wide registry, discovered on first call."""
    global _registry
    if _registry is None:
        _registry = ToolRegistry()
        _registry.discover()
    return _registry
