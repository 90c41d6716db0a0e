"""mcplink - multi-server MCP client aggregation for brand workspaces."""

__version__ = "1.0.0"
