"""
flygate tools — the operation surface exposed to agents.

The registry builds the mode's operation set once; the dispatcher validates
each call against its contract, runs the matching handler and returns a
``ToolResult``:

    agent --> ToolDispatcher --> OperationHandlers --> CommandExecutor --> fly
"""

from flygate.tools.dispatcher import ToolDispatcher
from flygate.tools.handlers import OperationHandlers
from flygate.tools.registry import ToolRegistry, build_tools
from flygate.tools.schema import SideEffect, ToolCall, ToolDef, ToolParam, ToolResult

__all__ = [
    "OperationHandlers",
    "SideEffect",
    "ToolCall",
    "ToolDef",
    "ToolDispatcher",
    "ToolParam",
    "ToolRegistry",
    "ToolResult",
    "build_tools",
]
