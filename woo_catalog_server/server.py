"""MCP server for the WooCommerce catalog: tool registration."""

from __future__ import annotations

from fastmcp import FastMCP

from .resources import categories, products, status
from .utils.logging import setup_logging

setup_logging()


def create_mcp_server():
    """Create and configure the FastMCP server with all catalog tools."""
    mcp = FastMCP("woo-catalog-server")

    # -- Tools: status ------------------------------------------------------
    mcp.tool()(status.catalog_status)

    # -- Tools: products ----------------------------------------------------
    mcp.tool()(products.catalog_products)
    mcp.tool()(products.catalog_get_product)
    mcp.tool()(products.catalog_product_variations)
    mcp.tool()(products.catalog_get_variation)

    # -- Tools: categories --------------------------------------------------
    mcp.tool()(categories.catalog_categories)
    mcp.tool()(categories.catalog_get_category)

    return mcp


# Default server instance for stdio transport
server = create_mcp_server()
