"""MCP server over stdio: newline-delimited JSON-RPC 2.0 on stdin/stdout."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Optional, TextIO

from flygate import __version__
from flygate.tools.dispatcher import ToolDispatcher
from flygate.tools.schema import ToolResult

logger = logging.getLogger(__name__)

PROTOCOL_VERSIONS = ("2025-06-18", "2025-03-26", "2024-11-05")

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class JsonRpcError(Exception):
    """A request-level failure reported back as a JSON-RPC error object."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def tool_call_payload(result: ToolResult) -> Dict[str, Any]:
    """Render a ``ToolResult`` as an MCP ``tools/call`` result."""
    if result.success:
        return {
            "content": [{"type": "text", "text": result.summary}],
            "structuredContent": result.data,
        }
    error = result.error
    text = f"{error.kind}: {error.message}" if error else result.summary
    if error and error.details:
        text += "\n" + json.dumps(error.details, indent=2, default=str)
    return {"content": [{"type": "text", "text": text}], "isError": True}


class StdioServer:
    """
    Serve one dispatcher to one client over stdin/stdout.

    Requests are handled strictly in order, one at a time. Anything that is
    not protocol output goes to logging (stderr), never to stdout.
    """

    def __init__(
        self,
        dispatcher: ToolDispatcher,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ):
        self._dispatcher = dispatcher
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout

    # ── Loop ──────────────────────────────────────────────────────────────

    def serve(self) -> None:
        """Read requests until stdin closes."""
        logger.info("serving %d tools in %s mode", len(self._dispatcher.registry), self._dispatcher.mode.value)
        for line in self._stdin:
            if not line.strip():
                continue
            response = self.handle_line(line)
            if response is not None:
                self._stdout.write(json.dumps(response) + "\n")
                self._stdout.flush()

    def handle_line(self, line: str) -> Optional[Dict[str, Any]]:
        try:
            message = json.loads(line)
        except json.JSONDecodeError as exc:
            return _error(None, PARSE_ERROR, f"Parse error: {exc}")
        if not isinstance(message, dict):
            return _error(None, INVALID_REQUEST, "Invalid request: expected a JSON object")
        return self.handle(message)

    def handle(self, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Handle one decoded message; notifications (no ``id``) get no response."""
        method = message.get("method")
        request_id = message.get("id")
        if "id" not in message:
            logger.debug("notification: %s", method)
            return None
        if not isinstance(method, str):
            return _error(request_id, INVALID_REQUEST, "Invalid request: missing method")

        params = message.get("params") or {}
        if not isinstance(params, dict):
            return _error(request_id, INVALID_PARAMS, "Invalid params: expected an object")
        try:
            result = self._dispatch(method, params)
        except JsonRpcError as exc:
            return _error(request_id, exc.code, exc.message)
        except Exception as exc:
            logger.exception("%s failed", method)
            return _error(request_id, INTERNAL_ERROR, f"Internal error: {exc!r}")
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    # ── Methods ───────────────────────────────────────────────────────────

    def _dispatch(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if method == "initialize":
            return self._initialize(params)
        if method == "ping":
            return {}
        if method == "tools/list":
            return {"tools": self._dispatcher.registry.mcp_tools()}
        if method == "tools/call":
            return self._call_tool(params)
        raise JsonRpcError(METHOD_NOT_FOUND, f"Method not found: {method}")

    def _initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        requested = params.get("protocolVersion")
        version = requested if requested in PROTOCOL_VERSIONS else PROTOCOL_VERSIONS[0]
        return {
            "protocolVersion": version,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": "flygate", "version": __version__},
            "instructions": self._dispatcher.registry.build_prompt_fragment(),
        }

    def _call_tool(self, params: Dict[str, Any]) -> Dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise JsonRpcError(INVALID_PARAMS, "Invalid params: 'name' is required")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise JsonRpcError(INVALID_PARAMS, "Invalid params: 'arguments' must be an object")
        return tool_call_payload(self._dispatcher.execute(name, arguments))


def _error(request_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}
