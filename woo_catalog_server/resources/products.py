"""Product tools."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..config import CatalogSettings
from ..schema import product_profiles
from ..utils.cache import TTLCache
from ..utils.field_selection import FieldDecision
from ..utils.logging import truncate
from ..utils.projection import FieldComputationError, project_many
from ..woo_client import WooClient
from .common import (
    CatalogRequestError,
    FieldsArg,
    build_decision,
    build_selection,
    check_paging,
    check_prices,
)
from .product_fields import (
    ProductContext,
    ProductSource,
    normalize_variation,
    prefetch,
    project_product,
    taxonomy_term,
)

logger = logging.getLogger("woo_catalog_server.resources.products")

TAXONOMY_CACHE_PREFIX = "products_taxonomies_"

_taxonomy_cache = TTLCache()

# Request orderby -> (WooCommerce orderby, forced order or None)
ORDERBY_MAP: Dict[str, Tuple[str, Optional[str]]] = {
    "id": ("id", None),
    "menu_order": ("menu_order", None),
    "include": ("include", None),
    "name": ("slug", None),
    "slug": ("slug", None),
    "title": ("title", None),
    "alphabetical": ("title", "asc"),
    "reverse_alpha": ("title", "desc"),
    "relevance": ("relevance", "desc"),
    "date": ("date", None),
    "modified": ("modified", None),
    "popularity": ("popularity", None),
    "sales": ("popularity", None),
    "rating": ("rating", "desc"),
    "price": ("price", None),
    "price_asc": ("price", "asc"),
    "price_desc": ("price", "desc"),
}

STOCK_STATUSES = ("instock", "outofstock", "onbackorder")


def build_query(
    *,
    order: str = "DESC",
    orderby: Optional[str] = None,
    search: Optional[str] = None,
    sku: Optional[str] = None,
    slug: Optional[str] = None,
    product_type: Optional[str] = None,
    category: Optional[str] = None,
    tag: Optional[str] = None,
    featured: Optional[bool] = None,
    on_sale: Optional[bool] = None,
    min_price: Optional[str] = None,
    max_price: Optional[str] = None,
    stock_status: Optional[str] = None,
    include: Optional[List[int]] = None,
    exclude: Optional[List[int]] = None,
    parent: Optional[List[int]] = None,
) -> Dict[str, Any]:
    """Translate catalog query parameters into WooCommerce list filters."""
    order = (order or "DESC").upper()
    if order not in ("DESC", "ASC"):
        raise CatalogRequestError("order must be DESC or ASC")

    query: Dict[str, Any] = {"order": order.lower()}

    if orderby:
        key = orderby.lower()
        if key not in ORDERBY_MAP:
            raise CatalogRequestError(f"Unsupported orderby: {orderby}")
        woo_orderby, forced_order = ORDERBY_MAP[key]
        query["orderby"] = woo_orderby
        if forced_order:
            query["order"] = forced_order

    if stock_status and stock_status not in STOCK_STATUSES:
        raise CatalogRequestError(f"stock_status must be one of {', '.join(STOCK_STATUSES)}")

    query.update({
        "search": search,
        "sku": sku,
        "slug": slug,
        "type": product_type,
        "category": category,
        "tag": tag,
        "featured": featured,
        "on_sale": on_sale,
        "min_price": min_price,
        "max_price": max_price,
        "stock_status": stock_status,
        "include": include,
        "exclude": exclude,
        "parent": parent,
    })
    return {k: v for k, v in query.items() if v is not None}


def _context(
    settings: CatalogSettings,
    fields: FieldsArg,
    exclude_fields: FieldsArg,
    response: Optional[str],
    prices: Optional[str],
    include_meta: FieldsArg,
    exclude_meta: FieldsArg,
    show_reviews: bool,
    include_variations: bool = False,
) -> Tuple[ProductContext, FieldDecision]:
    selection = build_selection(
        settings, fields, exclude_fields, response, include_meta, exclude_meta
    )
    context = ProductContext(
        settings=settings,
        selection=selection,
        prices=check_prices(prices, settings),
        show_reviews=show_reviews,
        include_variations=include_variations,
    )
    decision = build_decision(selection, product_profiles(settings.profile_overrides), settings)
    return context, decision


async def get_all_product_taxonomies(client: WooClient, settings: CatalogSettings, taxonomy: str = "cat") -> List[Dict[str, Any]]:
    """Every category ("cat") or tag ("tag"), cached for the taxonomy TTL."""

    async def load() -> List[Dict[str, Any]]:
        terms = await client.list_all_terms(taxonomy)
        return [taxonomy_term(term, taxonomy, settings) for term in terms]

    return await _taxonomy_cache.get_or_compute(
        TAXONOMY_CACHE_PREFIX + taxonomy, load, ttl=settings.taxonomy_ttl
    )


async def project_products(
    client: WooClient,
    sources: List[ProductSource],
    decision: FieldDecision,
    context: ProductContext,
) -> List[Dict[str, Any]]:
    """Prefetch and project a page of products, skipping broken entries."""
    results = await asyncio.gather(
        *(prefetch(client, source, decision, context) for source in sources),
        return_exceptions=True,
    )

    ready: List[ProductSource] = []
    for source, result in zip(sources, results):
        if isinstance(result, FieldComputationError):
            logger.warning("Skipping product id=%s: %s", source.id, result)
            continue
        if isinstance(result, BaseException):
            raise result
        ready.append(source)

    projected, skipped = project_many(
        ready, lambda source: project_product(source, decision, context)
    )
    if skipped or len(ready) < len(sources):
        logger.warning(
            "Projected %d of %d products", len(projected), len(sources)
        )
    return projected


async def catalog_products(
    page: int = 1,
    per_page: int = 10,
    fields: FieldsArg = None,
    exclude_fields: FieldsArg = None,
    response: Optional[str] = None,
    prices: Optional[str] = None,
    include_meta: FieldsArg = None,
    exclude_meta: FieldsArg = None,
    search: Optional[str] = None,
    sku: Optional[str] = None,
    slug: Optional[str] = None,
    product_type: Optional[str] = None,
    category: Optional[str] = None,
    tag: Optional[str] = None,
    featured: Optional[bool] = None,
    on_sale: Optional[bool] = None,
    min_price: Optional[str] = None,
    max_price: Optional[str] = None,
    stock_status: Optional[str] = None,
    include: Optional[List[int]] = None,
    exclude: Optional[List[int]] = None,
    parent: Optional[List[int]] = None,
    order: str = "DESC",
    orderby: Optional[str] = None,
    show_reviews: bool = False,
) -> Dict[str, Any]:
    """List products with pagination, filters and field selection.

    Parameters:
    - page / per_page: Pagination (per_page max 100)
    - fields: Dotted fields to return, e.g. ["name", "prices.price"]
    - exclude_fields: Dotted fields to leave out (ignored when fields is set)
    - response: Profile used when neither is given: default, quick_browse, quick_view
    - prices: "raw" (minor units) or "formatted"
    - include_meta / exclude_meta: Limit meta_data entries by key
    - search, sku, slug, product_type, category, tag, featured, on_sale,
      min_price, max_price, stock_status, include, exclude, parent: Filters
    - order: DESC or ASC; orderby: e.g. date, price_asc, alphabetical, rating
    - show_reviews: Populate the reviews field

    Returns products plus every category and tag, and paging totals.
    """
    logger.debug(
        "Tool call: catalog_products(page=%s, per_page=%s, fields=%s, exclude_fields=%s, response=%s)",
        page, per_page, fields, exclude_fields, response,
    )
    check_paging(page, per_page)
    settings = CatalogSettings.from_env()
    context, decision = _context(
        settings, fields, exclude_fields, response, prices,
        include_meta, exclude_meta, show_reviews,
    )
    query = build_query(
        order=order, orderby=orderby, search=search, sku=sku, slug=slug,
        product_type=product_type, category=category, tag=tag, featured=featured,
        on_sale=on_sale, min_price=min_price, max_price=max_price,
        stock_status=stock_status, include=include, exclude=exclude, parent=parent,
    )

    client = WooClient.from_env()
    raw = await client.list_products(page=page, per_page=per_page, **query)

    sources = [ProductSource(item) for item in raw["items"]]
    products = await project_products(client, sources, decision, context)

    result = {
        "products": products,
        "categories": await get_all_product_taxonomies(client, settings, "cat"),
        "tags": await get_all_product_taxonomies(client, settings, "tag"),
        "page": page,
        "total_pages": int(raw["total_pages"]),
        "total_products": int(raw["total"]),
    }
    logger.debug("Tool result: catalog_products -> %s", truncate(str(result)))
    return result


async def catalog_get_product(
    product_id: str,
    fields: FieldsArg = None,
    exclude_fields: FieldsArg = None,
    response: Optional[str] = None,
    prices: Optional[str] = None,
    include_meta: FieldsArg = None,
    exclude_meta: FieldsArg = None,
    include_variations: bool = False,
    show_reviews: bool = False,
) -> Dict[str, Any]:
    """Get a single product by numeric ID or by SKU.

    Parameters:
    - product_id: Numeric product ID, or a SKU for anything non-numeric
    - fields / exclude_fields / response / prices / include_meta / exclude_meta:
      Same as catalog_products
    - include_variations: Return a variation with the full product shape
    - show_reviews: Populate the reviews field
    """
    logger.debug(
        "Tool call: catalog_get_product(product_id=%s, fields=%s, exclude_fields=%s, response=%s)",
        product_id, fields, exclude_fields, response,
    )
    settings = CatalogSettings.from_env()
    context, decision = _context(
        settings, fields, exclude_fields, response, prices,
        include_meta, exclude_meta, show_reviews, include_variations,
    )

    client = WooClient.from_env()
    identifier = str(product_id).strip()
    if identifier.isdigit():
        raw = await client.get_product(int(identifier))
    else:
        raw = await client.get_product_by_sku(identifier)

    source = await prefetch(client, ProductSource(raw), decision, context)
    result = project_product(source, decision, context)

    logger.debug("Tool result: catalog_get_product -> %s", truncate(str(result)))
    return result


async def catalog_product_variations(
    product_id: int,
    page: int = 1,
    per_page: int = 10,
    fields: FieldsArg = None,
    exclude_fields: FieldsArg = None,
    response: Optional[str] = None,
    prices: Optional[str] = None,
    include_meta: FieldsArg = None,
    exclude_meta: FieldsArg = None,
) -> Dict[str, Any]:
    """List the variations of a variable product.

    Parameters:
    - product_id: Parent product ID
    - page / per_page: Pagination (per_page max 100)
    - fields / exclude_fields / response / prices / include_meta / exclude_meta:
      Same as catalog_products
    """
    logger.debug(
        "Tool call: catalog_product_variations(product_id=%s, page=%s, per_page=%s)",
        product_id, page, per_page,
    )
    check_paging(page, per_page)
    settings = CatalogSettings.from_env()
    context, decision = _context(
        settings, fields, exclude_fields, response, prices,
        include_meta, exclude_meta, False,
    )

    client = WooClient.from_env()
    parent = await client.get_product(int(product_id))
    raw = await client.list_variations(int(product_id), page=page, per_page=per_page)

    sources = [
        ProductSource(normalize_variation(item, parent), parent=parent)
        for item in raw["items"]
    ]
    variations = await project_products(client, sources, decision, context)

    result = {
        "variations": variations,
        "page": page,
        "total_pages": int(raw["total_pages"]),
        "total_variations": int(raw["total"]),
    }
    logger.debug("Tool result: catalog_product_variations -> %s", truncate(str(result)))
    return result


async def catalog_get_variation(
    product_id: int,
    variation_id: int,
    fields: FieldsArg = None,
    exclude_fields: FieldsArg = None,
    response: Optional[str] = None,
    prices: Optional[str] = None,
    include_meta: FieldsArg = None,
    exclude_meta: FieldsArg = None,
) -> Dict[str, Any]:
    """Get one variation of a variable product.

    Parameters:
    - product_id: Parent product ID
    - variation_id: Variation ID
    - fields / exclude_fields / response / prices / include_meta / exclude_meta:
      Same as catalog_products
    """
    logger.debug(
        "Tool call: catalog_get_variation(product_id=%s, variation_id=%s)",
        product_id, variation_id,
    )
    settings = CatalogSettings.from_env()
    context, decision = _context(
        settings, fields, exclude_fields, response, prices,
        include_meta, exclude_meta, False,
    )

    client = WooClient.from_env()
    parent = await client.get_product(int(product_id))
    raw = await client.get_variation(int(product_id), int(variation_id))

    source = ProductSource(normalize_variation(raw, parent), parent=parent)
    source = await prefetch(client, source, decision, context)
    result = project_product(source, decision, context)

    logger.debug("Tool result: catalog_get_variation -> %s", truncate(str(result)))
    return result
