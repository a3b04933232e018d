"""Protocol layer — MCP over HTTP request/response and HTTP+SSE."""
