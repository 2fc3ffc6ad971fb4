"""Tool registry — composes the mode's operation set and serves it to callers."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from flygate.commands.policy import Mode
from flygate.tools.definitions import (
    COMMON,
    SAFE_ONLY,
    UNSAFE_ONLY,
    ToolMap,
    app_create_tool,
    app_destroy_tool,
    app_list_tool,
    deploy_tool,
    ip_allocate_tools,
)
from flygate.tools.schema import ToolDef


def templated_tools(mode: Mode) -> ToolMap:
    """Operations present in both modes whose description or contract differs."""
    tools: ToolMap = {}
    for build in (app_list_tool, app_create_tool, app_destroy_tool, deploy_tool):
        tools.update(build(mode))
    return tools


def build_tools(mode: Mode) -> Mapping[str, ToolDef]:
    """
    Build the immutable name → definition map for ``mode``.

    Safe mode gets router management and Flycast-only allocation; unsafe
    mode gets public IPs and certificates. Everything else is shared.

    Example:
        >>> "router_deploy" in build_tools(Mode.SAFE)
        True
        >>> "fly_certs_add" in build_tools(Mode.SAFE)
        False
    """
    tools: Dict[str, ToolDef] = {}
    tools.update(COMMON)
    tools.update(templated_tools(mode))
    tools.update(SAFE_ONLY if mode is Mode.SAFE else UNSAFE_ONLY)
    tools.update(ip_allocate_tools(mode))
    return MappingProxyType(tools)


class ToolRegistry:
    """
    Lookup and prompt rendering over one mode's operation set.

    The set is built once at construction and never changes for the life of
    the process.
    """

    def __init__(self, mode: Mode):
        self.mode = mode
        self._tools = build_tools(mode)

    @property
    def tools(self) -> Mapping[str, ToolDef]:
        return self._tools

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    # ── Tool Lookup ───────────────────────────────────────────────────────

    def get_tool(self, name: str) -> Optional[ToolDef]:
        return self._tools.get(name)

    def list_tools(self) -> List[ToolDef]:
        """All tools, sorted by name."""
        return [self._tools[name] for name in sorted(self._tools)]

    # ── Prompt Building ───────────────────────────────────────────────────

    def build_prompt_fragment(self) -> str:
        """
        Build a lean tool list for an LLM prompt.

        Returns something like::

            Available tools (safe mode):
            - fly_app_list [read_only]: List all Fly.io apps in the organization ...
            - fly_deploy [mutating]: Deploy an app from a Docker image or Dockerfile.
            Use tool: <tool_name> with {"param": "value"} to invoke.
        """
        lines = [f"Available tools ({self.mode.value} mode):"]
        for tool in self.list_tools():
            lines.append(tool.prompt_line())
        lines.append('Use tool: <tool_name> with {"param": "value"} to invoke.')
        return "\n".join(lines)

    def build_full_schema(self, name: str) -> str:
        """Return full parameter schema for ONE tool (on-demand only)."""
        tool = self.get_tool(name)
        if not tool:
            return f"Tool not found: {name}"
        return tool.full_schema_text()

    def mcp_tools(self) -> List[Dict]:
        return [tool.mcp_definition() for tool in self.list_tools()]
