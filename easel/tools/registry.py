from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import Iterator, Type

from .basetool import BaseTool


logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "easel.tools"

# Modules in this package that hold tool infrastructure rather than tools.
_HELPER_MODULES = {"basetool"}


@dataclass(frozen=True, slots=True)
class ToolEntry:
    """What a toolbar needs to know about a tool without instantiating it."""

    tool_class: Type[BaseTool]
    name: str
    icon: str | None = None
    shortcut: str | None = None
    category: str | None = None

    @classmethod
    def for_class(cls, tool_class: Type[BaseTool]) -> "ToolEntry":
        return cls(
            tool_class=tool_class,
            name=tool_class.name,
            icon=tool_class.icon,
            shortcut=tool_class.shortcut,
            category=tool_class.category,
        )


class ToolRegistry:
    """Tools known to the editor, in registration order.

    Classes without a ``name`` are treated as abstract helpers and skipped.
    Registering a second class under a taken name keeps the first one.
    """

    def __init__(self) -> None:
        self._entries: dict[str, ToolEntry] = {}

    def register_tool(self, tool_cls: Type[BaseTool]) -> None:
        if not inspect.isclass(tool_cls) or not issubclass(tool_cls, BaseTool):
            raise TypeError(f"{tool_cls!r} is not a BaseTool subclass")
        if not tool_cls.name:
            return
        existing = self._entries.get(tool_cls.name)
        if existing is not None:
            if existing.tool_class is not tool_cls:
                logger.warning(
                    "Tool name %r is taken by %s, ignoring %s",
                    tool_cls.name,
                    existing.tool_class.__qualname__,
                    tool_cls.__qualname__,
                )
            return
        self._entries[tool_cls.name] = ToolEntry.for_class(tool_cls)

    def get_tools(self) -> list[ToolEntry]:
        return list(self._entries.values())

    def get_tool(self, name: str) -> Type[BaseTool]:
        return self._entries[name].tool_class

    # Discovery ------------------------------------------------------------
    def load_builtin_tools(self) -> None:
        """Register the tools defined in the ``*tool`` modules of this package."""

        for module in _builtin_tool_modules():
            for _, member in inspect.getmembers(module, inspect.isclass):
                if issubclass(member, BaseTool) and member.__module__ == module.__name__:
                    self.register_tool(member)

    def load_external_tools(self) -> None:
        """Register tools advertised by other distributions under ``easel.tools``."""

        for ep in entry_points(group=ENTRY_POINT_GROUP):
            try:
                self.register_tool(ep.load())
            except Exception:
                logger.exception("Ignoring tool entry point %s", ep.name)


def _builtin_tool_modules() -> Iterator:
    package = importlib.import_module(__package__)
    for info in sorted(pkgutil.iter_modules(package.__path__), key=lambda info: info.name):
        if info.name.endswith("tool") and info.name not in _HELPER_MODULES:
            yield importlib.import_module(f"{__package__}.{info.name}")


__all__ = ["ToolEntry", "ToolRegistry"]
