from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class MCPLinkError(Exception):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details or {}}


class ServerConfigError(MCPLinkError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="invalid_config", message=message, details=details)


class UnsupportedTransportError(MCPLinkError):
    def __init__(self, transport_type: str, message: Optional[str] = None):
        super().__init__(
            code="unsupported_transport",
            message=message or f"Transport '{transport_type}' is not supported in this environment",
            details={"transport_type": transport_type},
        )


class MCPConnectionError(MCPLinkError):
    def __init__(self, server_id: str, message: str):
        super().__init__(code="connection_failed", message=message, details={"server_id": server_id})


class MCPProtocolError(MCPLinkError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="protocol_error", message=message, details=details)


class MCPToolNotFoundError(MCPLinkError):
    def __init__(self, tool_name: str):
        super().__init__(code="tool_not_found", message=f"Unknown tool: {tool_name}", details={"tool": tool_name})


class SecretsError(MCPLinkError):
    def __init__(self, message: str):
        super().__init__(code="secrets_error", message=message, details={})


class SearchAPIError(MCPLinkError):
    def __init__(self, status_code: int, body: str):
        super().__init__(
            code="search_api_error",
            message=f"Brave API error: {status_code} - {body}",
            details={"status_code": status_code},
        )
