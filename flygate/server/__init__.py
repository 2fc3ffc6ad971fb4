"""MCP stdio server."""

from flygate.server.stdio import StdioServer, tool_call_payload

__all__ = ["StdioServer", "tool_call_payload"]
