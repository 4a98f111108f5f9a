"""Serve loaded tools to an MCP client over stdin/stdout (JSON-RPC)."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import IO, Any, Dict, Optional

from langdag import __version__
from langdag.errors import DispatchError, UnknownToolError
from langdag.tools.tool import Tools

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


class MCPServer:
    """
    Minimal MCP server: ``initialize``, ``ping``, ``tools/list`` and
    ``tools/call``. Messages are newline-delimited JSON-RPC 2.0.
    """

    def __init__(self, tools: Tools, name: str = "langdag", version: str = __version__):
        self.tools = tools
        self.name = name
        self.version = version

    # ── JSON-RPC ──────────────────────────────────────────────────────────

    async def handle_line(self, line: str) -> Optional[Dict[str, Any]]:
        """Handle one raw message; returns the response, or None for notifications."""
        try:
            request = json.loads(line)
        except ValueError as exc:
            return _error(None, PARSE_ERROR, f"parse error: {exc}")
        if not isinstance(request, dict) or request.get("jsonrpc") != "2.0" or "method" not in request:
            return _error(request.get("id") if isinstance(request, dict) else None, INVALID_REQUEST, "invalid request")
        return await self.handle(request)

    async def handle(self, request: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        method = request["method"]
        params = request.get("params") or {}
        is_notification = "id" not in request
        request_id = request.get("id")

        if not isinstance(params, dict):
            if is_notification:
                return None
            return _error(request_id, INVALID_PARAMS, "params must be an object")

        if method == "initialize":
            result: Dict[str, Any] = {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": self.name, "version": self.version},
            }
        elif method == "ping":
            result = {}
        elif method == "tools/list":
            result = {"tools": self.tools.mcp_tools()}
        elif method == "tools/call":
            if is_notification:
                return None
            return await self._call_tool(request_id, params)
        elif is_notification:
            # notifications/initialized and friends need no reply
            return None
        else:
            return _error(request_id, METHOD_NOT_FOUND, f"method not found: {method}")

        if is_notification:
            return None
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    async def _call_tool(self, request_id: Any, params: Dict[str, Any]) -> Dict[str, Any]:
        name = params.get("name", "")
        tool = self.tools.get(name)
        if tool is None:
            return _error(request_id, INVALID_PARAMS, str(UnknownToolError(name)))

        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            return _error(request_id, INVALID_PARAMS, "arguments must be an object")

        logger.info("invoking tool: %s(%s)", name, json.dumps(arguments))
        try:
            result = await tool.mcp_handler(arguments)
        except DispatchError as exc:
            logger.warning("tool %s failed: %s", name, exc)
            result = {"content": [{"type": "text", "text": str(exc)}], "isError": True}
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    # ── Transport ─────────────────────────────────────────────────────────

    async def serve(self, stdin: IO[str], stdout: IO[str]) -> None:
        """Answer requests until ``stdin`` is closed."""
        while True:
            line = await asyncio.to_thread(stdin.readline)
            if not line:
                return
            if not line.strip():
                continue
            response = await self.handle_line(line)
            if response is not None:
                stdout.write(json.dumps(response) + "\n")
                stdout.flush()


async def serve_stdio(tools: Tools) -> None:
    await MCPServer(tools).serve(sys.stdin, sys.stdout)


def _error(request_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}
