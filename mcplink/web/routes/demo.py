"""
Demo MCP Server.

A small JSON-RPC MCP server for trying the integration end to end. Add it
as an HTTP server with URL ``http://<host>:<port>/api/mcp/demo-server``.

Tools:
- get_current_time: current date and time in a timezone
- calculate: basic arithmetic
- get_weather: mock weather data
- generate_id: unique identifier
"""

from __future__ import annotations

import json
import logging
import random
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from mcplink import __version__

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mcp/demo-server", tags=["demo"])

SERVER_NAME = "mcplink Demo MCP Server"
PROTOCOL_VERSION = "2024-11-05"

METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

TOOLS = [
    {
        "name": "get_current_time",
        "description": "Get the current date and time",
        "inputSchema": {
            "type": "object",
            "properties": {
                "timezone": {
                    "type": "string",
                    "description": 'Timezone (e.g., "America/New_York", "Europe/London"). Default is UTC.',
                },
            },
            "required": [],
        },
    },
    {
        "name": "calculate",
        "description": "Perform basic math calculations",
        "inputSchema": {
            "type": "object",
            "properties": {
                "operation": {
                    "type": "string",
                    "enum": ["add", "subtract", "multiply", "divide"],
                    "description": "The math operation to perform",
                },
                "a": {"type": "number", "description": "First number"},
                "b": {"type": "number", "description": "Second number"},
            },
            "required": ["operation", "a", "b"],
        },
    },
    {
        "name": "get_weather",
        "description": "Get current weather for a location (mock data)",
        "inputSchema": {
            "type": "object",
            "properties": {
                "location": {"type": "string", "description": 'City name (e.g., "Paris", "New York")'},
            },
            "required": ["location"],
        },
    },
    {
        "name": "generate_id",
        "description": "Generate a unique ID",
        "inputSchema": {
            "type": "object",
            "properties": {
                "prefix": {"type": "string", "description": "Optional prefix for the ID"},
            },
            "required": [],
        },
    },
]


def get_current_time(args: Dict[str, Any]) -> Dict[str, Any]:
    tz_name = args.get("timezone") or "UTC"
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return {"success": False, "error": f"Invalid timezone: {tz_name}"}

    now = datetime.now(timezone.utc)
    return {
        "success": True,
        "timezone": tz_name,
        "datetime": now.astimezone(tz).strftime("%A, %B %d, %Y at %H:%M:%S %Z"),
        "iso": now.isoformat(),
        "timestamp": int(now.timestamp() * 1000),
    }


def calculate(args: Dict[str, Any]) -> Dict[str, Any]:
    operation = args.get("operation")
    a = args.get("a")
    b = args.get("b")

    if not isinstance(a, (int, float)) or not isinstance(b, (int, float)):
        return {"success": False, "error": "Both a and b must be numbers"}

    if operation == "add":
        result = a + b
    elif operation == "subtract":
        result = a - b
    elif operation == "multiply":
        result = a * b
    elif operation == "divide":
        if b == 0:
            return {"success": False, "error": "Cannot divide by zero"}
        result = a / b
    else:
        return {"success": False, "error": f"Unknown operation: {operation}"}

    return {
        "success": True,
        "operation": operation,
        "a": a,
        "b": b,
        "result": result,
        "expression": f"{a} {operation} {b} = {result}",
    }


def get_weather(args: Dict[str, Any]) -> Dict[str, Any]:
    temp = random.randint(5, 34)
    return {
        "success": True,
        "location": args.get("location"),
        "temperature": {"celsius": temp, "fahrenheit": round(temp * 9 / 5 + 32)},
        "condition": random.choice(["Sunny", "Cloudy", "Rainy", "Partly Cloudy", "Overcast"]),
        "humidity": f"{random.randint(30, 79)}%",
        "wind": f"{random.randint(5, 34)} km/h",
        "note": "This is mock data for testing purposes",
    }


def generate_id(args: Dict[str, Any]) -> Dict[str, Any]:
    prefix = args.get("prefix") or "id"
    timestamp = int(time.time() * 1000)
    return {
        "success": True,
        "id": f"{prefix}_{timestamp:x}_{secrets.token_hex(6)}",
        "timestamp": timestamp,
    }


TOOL_HANDLERS: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    "get_current_time": get_current_time,
    "calculate": calculate,
    "get_weather": get_weather,
    "generate_id": generate_id,
}


def _result(request_id: Any, result: Dict[str, Any]) -> JSONResponse:
    return JSONResponse({"jsonrpc": "2.0", "id": request_id, "result": result})


def _error(request_id: Any, code: int, message: str, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}},
        status_code=status_code,
    )


@router.get("")
async def demo_server_info() -> Dict[str, Any]:
    """Health/info document."""
    return {
        "status": "ok",
        "name": SERVER_NAME,
        "version": __version__,
        "tools": [tool["name"] for tool in TOOLS],
    }


@router.post("")
async def demo_server_rpc(request: Request) -> Response:
    """Handle one JSON-RPC message."""
    request_id: Optional[Any] = None
    try:
        body = await request.json()
        if not isinstance(body, dict):
            return _error(None, INVALID_PARAMS, "Invalid JSON-RPC message", status_code=400)

        request_id = body.get("id")
        method = body.get("method")
        params = body.get("params") or {}
        logger.debug(f"Demo MCP server received {method}")

        if method and method.startswith("notifications/"):
            return Response(status_code=202)

        if method == "initialize":
            return _result(request_id, {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": SERVER_NAME, "version": __version__},
            })

        if method == "tools/list":
            return _result(request_id, {"tools": TOOLS})

        if method == "tools/call":
            name = params.get("name")
            handler = TOOL_HANDLERS.get(name)
            if handler is None:
                return _error(request_id, METHOD_NOT_FOUND, f"Unknown tool: {name}")
            output = handler(params.get("arguments") or {})
            return _result(request_id, {
                "content": [{"type": "text", "text": json.dumps(output, indent=2)}],
                "isError": not output.get("success", False),
            })

        return _error(request_id, METHOD_NOT_FOUND, f"Unknown method: {method}")

    except Exception as exc:
        logger.error(f"Demo MCP server error: {exc}")
        return _error(request_id, INTERNAL_ERROR, "Internal error", status_code=500)
