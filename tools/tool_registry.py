"""Tool discovery and dispatch registry."""

import importlib
import inspect
import logging
import os
from pathlib import Path

from tools.base_tool import Tool

logger = logging.getLogger(__name__)

_SKIP_MODULES = ("base_tool.py", "tool_registry.py", "executor.py", "__init__.py")


class ToolRegistry:
    """Discovers and manages tools from the filesystem."""

    def __init__(self):
        self._tool_classes: dict[str, type[Tool]] = {}

    def discover_tools(self, tools_dir: str = None):
        """Scan the tools/ directory and register all Tool subclasses."""
        if tools_dir is None:
            tools_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)))

        for filename in sorted(os.listdir(tools_dir)):
            if not filename.endswith(".py") or filename.startswith("_") or filename in _SKIP_MODULES:
                continue

            module_name = f"tools.{filename[:-3]}"
            try:
                module = importlib.import_module(module_name)
            except ImportError as e:
                logger.warning("Failed to load %s: %s", module_name, e)
                continue
            for _, obj in inspect.getmembers(module, inspect.isclass):
                if issubclass(obj, Tool) and obj is not Tool and obj.name:
                    self.register(obj)

    def register(self, cls: type[Tool]) -> None:
        self._tool_classes[cls.name] = cls

    def get_tool(self, name: str, working_root: Path) -> Tool | None:
        """Instantiate and return a tool by name."""
        cls = self._tool_classes.get(name)
        if cls:
            return cls(working_root)
        return None

    def get_tool_descriptions(self) -> str:
        """Render the tool vocabulary for the system prompt."""
        descriptions = []
        for name in sorted(self._tool_classes):
            tool = self._tool_classes[name](Path("."))
            descriptions.append(tool.get_prompt_description())
        return "\n".join(descriptions)

    @property
    def tool_names(self) -> list[str]:
        """List all registered tool names."""
        return sorted(self._tool_classes.keys())

    def supports(self, name: str) -> bool:
        return name in self._tool_classes


_default_registry: ToolRegistry | None = None


def default_registry() -> ToolRegistry:
    """Registry of the built-in filesystem tools, discovered once."""
    global _default_registry
    if _default_registry is None:
        registry = ToolRegistry()
        registry.discover_tools()
        _default_registry = registry
    return _default_registry
