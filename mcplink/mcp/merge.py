"""Tool filtering, priority ordering and first-write-wins merging."""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Sequence, TypeVar

from mcplink.mcp.types import ToolSet, config_field

T = TypeVar("T")


def filter_tools(
    tools: Mapping[str, Any],
    allowed_tools: Optional[Sequence[str]] = None,
    blocked_tools: Optional[Sequence[str]] = None,
) -> ToolSet:
    """
    Apply a server's allow-list, then its deny-list.

    A non-empty allow-list drops every name not in it before the
    deny-list is looked at. Empty or missing lists let everything through.
    """
    filtered = dict(tools)

    if allowed_tools:
        allowed = set(allowed_tools)
        filtered = {name: tool for name, tool in filtered.items() if name in allowed}

    if blocked_tools:
        blocked = set(blocked_tools)
        filtered = {name: tool for name, tool in filtered.items() if name not in blocked}

    return filtered


def sort_by_priority(configs: Iterable[T]) -> List[T]:
    """Order configs by priority, highest first; ties keep input order."""
    return sorted(configs, key=lambda config: -int(config_field(config, "priority", 0)))


def merge_tool_sets(tool_sets: Iterable[Mapping[str, Any]]) -> ToolSet:
    """
    Merge tool sets in the given order.

    The first set offering a name keeps it; later sets never overwrite.
    """
    merged: ToolSet = {}
    for tools in tool_sets:
        for name, tool in tools.items():
            if name not in merged:
                merged[name] = tool
    return merged
