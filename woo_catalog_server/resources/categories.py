from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..config import CatalogSettings
from ..schema import CATEGORY_PROFILES, CATEGORY_SCHEMA
from ..utils.field_paths import FieldPath
from ..utils.logging import truncate
from ..utils.projection import Decision, Thunk, project, project_many
from ..woo_client import WooClient
from .common import FieldsArg, build_decision, build_selection, check_paging

logger = logging.getLogger("woo_catalog_server.resources.categories")


def _category_image(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    image = raw.get("image")
    if not image:
        return None
    return {
        "id": image.get("id", 0),
        "src": image.get("src", ""),
        "name": image.get("name", ""),
        "alt": image.get("alt", ""),
    }


def build_category_computers(raw: Dict[str, Any]) -> Dict[FieldPath, Thunk]:
    return {
        ("id",): lambda: int(raw.get("id") or 0),
        ("name",): lambda: raw.get("name", ""),
        ("slug",): lambda: raw.get("slug", ""),
        ("parent",): lambda: int(raw.get("parent") or 0),
        ("description",): lambda: raw.get("description", ""),
        ("display",): lambda: raw.get("display") or "default",
        ("image",): lambda: _category_image(raw),
        ("menu_order",): lambda: int(raw.get("menu_order") or 0),
        ("count",): lambda: int(raw.get("count") or 0),
    }


def project_category(raw: Dict[str, Any], decision: Decision) -> Dict[str, Any]:
    return project(CATEGORY_SCHEMA, decision, build_category_computers(raw))


def _decision(
    fields: FieldsArg, exclude_fields: FieldsArg, response: Optional[str]
) -> Decision:
    settings = CatalogSettings.from_env()
    selection = build_selection(settings, fields, exclude_fields, response)
    return build_decision(selection, CATEGORY_PROFILES, settings)


async def catalog_categories(
    page: int = 1,
    per_page: int = 10,
    search: Optional[str] = None,
    parent: Optional[int] = None,
    hide_empty: bool = False,
    fields: FieldsArg = None,
    exclude_fields: FieldsArg = None,
    response: Optional[str] = None,
) -> Dict[str, Any]:
    """List product categories.

    Parameters:
    - page / per_page: Pagination (per_page max 100)
    - search: Match against category name
    - parent: Only children of this category ID (0 for top level)
    - hide_empty: Leave out categories with no products
    - fields / exclude_fields / response: Field selection, as for products
    """
    logger.debug(
        "Tool call: catalog_categories(page=%s, per_page=%s, search=%s, parent=%s)",
        page, per_page, search, parent,
    )
    check_paging(page, per_page)
    decision = _decision(fields, exclude_fields, response)

    client = WooClient.from_env()
    raw = await client.list_categories(
        page=page, per_page=per_page, search=search, parent=parent, hide_empty=hide_empty
    )
    categories, _ = project_many(raw["items"], lambda item: project_category(item, decision))

    result = {
        "categories": categories,
        "page": page,
        "total_pages": int(raw["total_pages"]),
        "total_categories": int(raw["total"]),
    }
    logger.debug("Tool result: catalog_categories -> %s", truncate(str(result)))
    return result


async def catalog_get_category(
    category_id: int,
    fields: FieldsArg = None,
    exclude_fields: FieldsArg = None,
    response: Optional[str] = None,
) -> Dict[str, Any]:
    """Get a single product category by ID."""
    logger.debug("Tool call: catalog_get_category(category_id=%s)", category_id)
    decision = _decision(fields, exclude_fields, response)

    client = WooClient.from_env()
    raw = await client.get_category(int(category_id))
    result = project_category(raw, decision)

    logger.debug("Tool result: catalog_get_category -> %s", truncate(str(result)))
    return result
