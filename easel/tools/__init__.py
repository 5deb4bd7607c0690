"""Canvas tools and the registry the editor builds its toolbox from."""

from .registry import ToolEntry, ToolRegistry

registry = ToolRegistry()
registry.load_builtin_tools()
registry.load_external_tools()


def register_tool(tool_cls):
    registry.register_tool(tool_cls)


def get_tools():
    return registry.get_tools()


__all__ = ["ToolEntry", "ToolRegistry", "registry", "register_tool", "get_tools"]
