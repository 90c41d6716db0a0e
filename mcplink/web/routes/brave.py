"""
Brave Search MCP Proxy.

Exposes the Brave Search API as a JSON-RPC MCP server. Add it as an HTTP
server with URL ``http://<host>:<port>/api/mcp/brave-search``, auth type
bearer and your Brave API key as the token. BRAVE_API_KEY is used when no
bearer token is sent.

Tools:
- brave_web_search: web pages and snippets
- brave_news_search: news articles
- brave_image_search: images
- brave_video_search: videos
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse, Response

from mcplink import __version__
from mcplink.config import get_settings
from mcplink.errors import SearchAPIError
from mcplink.web.deps import get_brave_transport

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mcp/brave-search", tags=["brave-search"])

SERVER_NAME = "Brave Search MCP Proxy"
PROTOCOL_VERSION = "2024-11-05"
BRAVE_API_BASE = "https://api.search.brave.com/res/v1"
BRAVE_TIMEOUT_SECONDS = 15.0

DEFAULT_COUNT = 10
MAX_COUNT = 20

INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603


def _search_tool(name: str, description: str, query_description: str, freshness: Optional[List[str]] = None) -> Dict[str, Any]:
    properties: Dict[str, Any] = {
        "query": {"type": "string", "description": query_description},
        "count": {"type": "number", "description": f"Number of results to return (default: {DEFAULT_COUNT}, max: {MAX_COUNT})"},
    }
    if freshness:
        properties["freshness"] = {
            "type": "string",
            "enum": freshness,
            "description": "Filter by freshness: pd=past day, pw=past week, pm=past month, py=past year",
        }
    return {
        "name": name,
        "description": description,
        "inputSchema": {"type": "object", "properties": properties, "required": ["query"]},
    }


TOOLS = [
    _search_tool(
        "brave_web_search",
        "Search the web using Brave Search. Returns web pages, snippets, and information from across the internet.",
        "The search query",
        freshness=["pd", "pw", "pm", "py"],
    ),
    _search_tool(
        "brave_news_search",
        "Search for news articles using Brave Search.",
        "The news search query",
        freshness=["pd", "pw", "pm"],
    ),
    _search_tool("brave_image_search", "Search for images using Brave Search.", "The image search query"),
    _search_tool("brave_video_search", "Search for videos using Brave Search.", "The video search query"),
]


def _count(args: Dict[str, Any]) -> int:
    try:
        count = int(args.get("count") or DEFAULT_COUNT)
    except (TypeError, ValueError):
        count = DEFAULT_COUNT
    return max(1, min(count, MAX_COUNT))


class BraveSearchClient:
    """Thin async client for the Brave Search REST API."""

    def __init__(self, api_key: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self._transport = transport

    async def _search(self, endpoint: str, args: Dict[str, Any], with_freshness: bool = False) -> Dict[str, Any]:
        params = {"q": str(args.get("query") or ""), "count": str(_count(args))}
        if with_freshness and args.get("freshness"):
            params["freshness"] = str(args["freshness"])

        async with httpx.AsyncClient(
            base_url=BRAVE_API_BASE,
            timeout=httpx.Timeout(BRAVE_TIMEOUT_SECONDS),
            transport=self._transport,
        ) as client:
            response = await client.get(
                f"/{endpoint}/search",
                params=params,
                headers={"Accept": "application/json", "X-Subscription-Token": self.api_key},
            )

        if response.is_error:
            raise SearchAPIError(response.status_code, response.text)
        return response.json()

    async def web_search(self, args: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._search("web", args, with_freshness=True)
        web = data.get("web") or {}
        results = [
            {"title": r.get("title"), "url": r.get("url"), "description": r.get("description")}
            for r in web.get("results") or []
        ]
        return {"query": args.get("query"), "total_results": web.get("total") or 0, "results": results[:_count(args)]}

    async def news_search(self, args: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._search("news", args, with_freshness=True)
        results = [
            {
                "title": r.get("title"),
                "url": r.get("url"),
                "description": r.get("description"),
                "source": (r.get("meta_url") or {}).get("hostname"),
                "age": r.get("age"),
            }
            for r in data.get("results") or []
        ]
        return {"query": args.get("query"), "results": results[:_count(args)]}

    async def image_search(self, args: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._search("images", args)
        results = [
            {
                "title": r.get("title"),
                "url": r.get("url"),
                "thumbnail": (r.get("thumbnail") or {}).get("src"),
                "source": r.get("source"),
            }
            for r in data.get("results") or []
        ]
        return {"query": args.get("query"), "results": results[:_count(args)]}

    async def video_search(self, args: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._search("videos", args)
        results = [
            {
                "title": r.get("title"),
                "url": r.get("url"),
                "description": r.get("description"),
                "thumbnail": (r.get("thumbnail") or {}).get("src"),
                "duration": (r.get("video") or {}).get("duration"),
            }
            for r in data.get("results") or []
        ]
        return {"query": args.get("query"), "results": results[:_count(args)]}

    def handler(self, tool_name: str) -> Optional[Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]]:
        return {
            "brave_web_search": self.web_search,
            "brave_news_search": self.news_search,
            "brave_image_search": self.image_search,
            "brave_video_search": self.video_search,
        }.get(tool_name)


def _api_key(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip() or None
    return get_settings().brave_api_key


def _result(request_id: Any, result: Dict[str, Any]) -> JSONResponse:
    return JSONResponse({"jsonrpc": "2.0", "id": request_id, "result": result})


def _error(request_id: Any, code: int, message: str, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}},
        status_code=status_code,
    )


def _text_content(payload: Dict[str, Any], is_error: bool) -> Dict[str, Any]:
    return {
        "content": [{"type": "text", "text": json.dumps(payload, indent=2)}],
        "isError": is_error,
    }


@router.get("")
async def brave_server_info() -> Dict[str, Any]:
    """Health/info document."""
    return {
        "status": "ok",
        "name": SERVER_NAME,
        "version": __version__,
        "tools": [tool["name"] for tool in TOOLS],
        "usage": "POST with Authorization: Bearer YOUR_BRAVE_API_KEY",
        "getApiKey": "https://brave.com/search/api/",
    }


@router.post("")
async def brave_server_rpc(
    request: Request,
    authorization: Optional[str] = Header(None),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_brave_transport),
) -> Response:
    """Handle one JSON-RPC message."""
    request_id: Optional[Any] = None
    try:
        body = await request.json()
        if not isinstance(body, dict):
            return _error(None, INVALID_REQUEST, "Invalid JSON-RPC message", status_code=400)

        request_id = body.get("id")
        method = body.get("method")
        params = body.get("params") or {}

        api_key = _api_key(authorization)
        if not api_key:
            return _error(
                request_id if request_id is not None else 0,
                INVALID_REQUEST,
                "Missing Brave API key. Set BRAVE_API_KEY or pass a Bearer token.",
            )

        # Notifications carry no id and get no body
        if (method and method.startswith("notifications/")) or request_id is None:
            return Response(status_code=202)

        logger.debug(f"Brave Search MCP received {method}")

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
            handler = BraveSearchClient(api_key, transport=transport).handler(name)
            if handler is None:
                return _error(request_id, METHOD_NOT_FOUND, f"Unknown tool: {name}")
            try:
                output = await handler(params.get("arguments") or {})
            except (SearchAPIError, httpx.HTTPError) as exc:
                logger.warning(f"Brave search {name} failed: {exc}")
                return _result(request_id, _text_content({"error": True, "message": str(exc)}, is_error=True))
            return _result(request_id, _text_content(output, is_error=False))

        return _error(request_id, METHOD_NOT_FOUND, f"Unknown method: {method}")

    except Exception as exc:
        logger.error(f"Brave Search MCP error: {exc}")
        return _error(request_id, INTERNAL_ERROR, "Internal error", status_code=500)
