"""Stdio transport server for local MCP clients.

Usage:
    python -m woo_catalog_server.stdio_server

Environment Variables (required):
    WOO_BASE_URL - WooCommerce REST base, e.g. https://shop.example.com/wp-json/wc/v3/
    WOO_CONSUMER_KEY - REST API consumer key
    WOO_CONSUMER_SECRET - REST API consumer secret

Environment Variables (optional):
    MCP_LOG_LEVEL - Logging level (default: INFO)
    MCP_LOG_FILE - Log file path with rotation
    CATALOG_DEFAULT_RESPONSE - Profile used when a tool call names none
"""

from .server import server


def main():
    """Run the MCP server using stdio transport.

    Reuses the FastMCP instance from server.py, so tools behave the same
    over HTTP and stdio.
    """
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
