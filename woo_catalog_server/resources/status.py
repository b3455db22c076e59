"""Connectivity tools."""

from __future__ import annotations

import logging
from typing import Any, Dict

from ..config import CATALOG_VERSION, CatalogSettings
from ..utils.logging import truncate
from ..woo_client import WooClient

logger = logging.getLogger("woo_catalog_server.resources.status")


async def catalog_status() -> Dict[str, Any]:
    """Verify WooCommerce credentials by fetching a minimal page of products."""
    logger.debug("Tool call: catalog_status()")
    settings = CatalogSettings.from_env()
    client = WooClient.from_env()
    result = await client.health_check()
    result["catalog_version"] = CATALOG_VERSION
    result["default_response"] = settings.default_response
    logger.debug("Tool result: catalog_status() -> %s", truncate(str(result)))
    return result
