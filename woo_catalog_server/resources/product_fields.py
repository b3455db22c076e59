"""Per-field computers for WooCommerce products.

Each response field is produced by a small closure over a ``ProductSource``.
The projector calls a closure only when its field is included, so building
the mapping is cheap and nothing is computed for excluded fields.

Remote lookups (variations, connected products, reviews) cannot run inside
a synchronous closure. They are declared as prefetches keyed by the field
paths that need them and run concurrently before projection, again only
when one of those paths is included.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..config import CatalogSettings
from ..schema import PRODUCT_SCHEMA, VARIATION_SPEC
from ..utils.field_paths import FieldPath
from ..utils.field_selection import FieldSelection, filter_meta
from ..utils.money import format_money, to_decimal
from ..utils.projection import Decision, FieldComputationError, Thunk, project
from ..utils.variants import specialize
from ..woo_client import WooClient

logger = logging.getLogger("woo_catalog_server.resources.product_fields")

RELATED_PRODUCTS_LIMIT = 5
VARIABLE_TYPES = ("variable", "variable-subscription")
VARIATION_TYPES = ("variation", "subscription_variation")
NO_CART_URL_TYPES = VARIABLE_TYPES + ("external", "grouped")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class ProductContext:
    """Request-wide inputs shared by every product of one response."""

    settings: CatalogSettings
    selection: FieldSelection
    prices: str = "raw"
    show_reviews: bool = False
    include_variations: bool = False


@dataclass
class ProductSource:
    """A WooCommerce product plus whatever was prefetched for it."""

    raw: Dict[str, Any]
    parent: Optional[Dict[str, Any]] = None
    variations: List[Dict[str, Any]] = field(default_factory=list)
    connected: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    reviews: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def id(self) -> int:
        return int(self.raw.get("id") or 0)

    @property
    def product_type(self) -> str:
        return self.raw.get("type") or "simple"

    def get(self, key: str, default: Any = None) -> Any:
        value = self.raw.get(key)
        return default if value is None else value


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", str(name).strip().lower())


def normalize_variation(raw: Dict[str, Any], parent: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Give a /variations payload the product shape the computers expect."""
    data = dict(raw)
    data["type"] = "variation"
    if parent:
        data.setdefault("parent_id", parent.get("id"))
        if not data.get("name"):
            options = [a.get("option") for a in raw.get("attributes") or [] if a.get("option")]
            data["name"] = " - ".join([parent.get("name", "")] + options) if options else parent.get("name", "")
        data.setdefault("categories", parent.get("categories", []))
        data.setdefault("tags", parent.get("tags", []))
    if "images" not in data:
        image = raw.get("image")
        data["images"] = [image] if image else []
    if "shipping_required" not in data:
        data["shipping_required"] = not data.get("virtual", False)
    return data


# ----------------------------- Formatting helpers -----------------------------


def _money(value: Any, context: ProductContext) -> str:
    s = context.settings
    return format_money(value, context.prices, s.currency_symbol, s.currency_decimals)


def _currency(settings: CatalogSettings) -> Dict[str, Any]:
    return {
        "currency_code": settings.currency,
        "currency_symbol": settings.currency_symbol,
        "currency_minor_unit": settings.currency_decimals,
    }


def _date_on_sale(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "from": raw.get("date_on_sale_from"),
        "from_gmt": raw.get("date_on_sale_from_gmt"),
        "to": raw.get("date_on_sale_to"),
        "to_gmt": raw.get("date_on_sale_to_gmt"),
    }


def _image(image: Dict[str, Any], position: int = 0) -> Dict[str, Any]:
    return {
        "id": image.get("id", 0),
        "src": {"full": image.get("src", "")},
        "name": image.get("name", ""),
        "alt": image.get("alt", ""),
        "position": position,
        "featured": position == 0,
    }


def is_in_stock(raw: Dict[str, Any]) -> bool:
    return raw.get("stock_status", "instock") != "outofstock"


def is_visible_variation(raw: Dict[str, Any], settings: CatalogSettings) -> bool:
    if raw.get("status", "publish") != "publish":
        return False
    if raw.get("price") in (None, ""):
        return False
    if settings.hide_out_of_stock and not is_in_stock(raw):
        return False
    return True


def add_to_cart_text(raw: Dict[str, Any]) -> str:
    product_type = raw.get("type") or "simple"
    purchasable = bool(raw.get("purchasable", True))
    if product_type == "external":
        return raw.get("button_text") or "Buy product"
    if product_type == "grouped":
        return "View products"
    if product_type in VARIABLE_TYPES:
        return "Select options" if purchasable else "Read more"
    return "Add to cart" if purchasable and is_in_stock(raw) else "Read more"


def add_to_cart_description(raw: Dict[str, Any]) -> str:
    product_type = raw.get("type") or "simple"
    name = raw.get("name", "")
    purchasable = bool(raw.get("purchasable", True))
    if product_type == "external":
        return raw.get("button_text") or f"Buy “{name}”"
    if product_type == "grouped":
        return f"View products in the “{name}” group"
    if product_type in VARIABLE_TYPES:
        if purchasable:
            return f"Select options for “{name}”"
        return f"Read more about “{name}”"
    if purchasable and is_in_stock(raw):
        return f"Add to cart: “{name}”"
    return f"Read more about “{name}”"


def purchase_quantity(raw: Dict[str, Any]) -> Dict[str, int]:
    """Min/max purchasable quantity; -1 means unlimited."""
    product_type = raw.get("type") or "simple"
    if product_type in VARIABLE_TYPES or product_type == "external":
        return {}
    if raw.get("sold_individually"):
        maximum = 1
    elif raw.get("manage_stock") is True and not raw.get("backorders_allowed") and raw.get("stock_quantity") is not None:
        maximum = max(int(raw["stock_quantity"]), 0)
    else:
        maximum = -1
    return {"min_purchase": 1, "max_purchase": maximum}


def add_to_cart_rest_url(raw: Dict[str, Any], settings: CatalogSettings) -> str:
    product_type = raw.get("type") or "simple"
    if product_type in NO_CART_URL_TYPES:
        return ""
    url = settings.rest_url(f"cart/add-item?id={raw.get('id')}&quantity=1")
    if product_type in VARIATION_TYPES:
        for attribute in raw.get("attributes") or []:
            option = attribute.get("option")
            if not option:
                continue
            name = attribute.get("slug") or slugify(attribute.get("name", ""))
            url += f"&variation[attribute_{name}]={option}"
    return url


def product_rest_url(product_id: Any, settings: CatalogSettings, taxonomy: str = "") -> str:
    if taxonomy == "cat":
        return settings.rest_url(f"products/categories/{product_id}")
    if taxonomy == "tag":
        return settings.rest_url(f"products/tags/{product_id}")
    return settings.rest_url(f"products/{product_id}")


def taxonomy_term(term: Dict[str, Any], taxonomy: str, settings: CatalogSettings) -> Dict[str, Any]:
    return {
        "id": term.get("id"),
        "name": term.get("name"),
        "slug": term.get("slug"),
        "rest_url": product_rest_url(term.get("id"), settings, taxonomy),
    }


# ----------------------------- Field computers -----------------------------


def _attributes(source: ProductSource) -> Dict[str, Any]:
    attributes: Dict[str, Any] = {}
    if source.product_type in VARIATION_TYPES:
        for attribute in source.get("attributes", []):
            option = attribute.get("option")
            if not option:
                continue
            name = attribute.get("slug") or slugify(attribute.get("name", ""))
            attributes[f"attribute_{name}"] = {
                "id": attribute.get("id", 0),
                "name": attribute.get("name", ""),
                "option": {slugify(option): option},
            }
        return attributes

    for attribute in source.get("attributes", []):
        name = attribute.get("slug") or slugify(attribute.get("name", ""))
        attributes[f"attribute_{name}"] = {
            "id": attribute.get("id", 0),
            "name": attribute.get("name", ""),
            "position": int(attribute.get("position", 0)),
            "is_attribute_visible": bool(attribute.get("visible", False)),
            "used_for_variation": bool(attribute.get("variation", False)),
            "options": {slugify(o): o for o in attribute.get("options", [])},
        }
    return attributes


def _default_attributes(source: ProductSource) -> Dict[str, str]:
    defaults: Dict[str, str] = {}
    for attribute in source.get("default_attributes", []):
        name = attribute.get("slug") or slugify(attribute.get("name", ""))
        defaults[f"attribute_{name}"] = attribute.get("option", "")
    return defaults


def _variation_prices(variation: Dict[str, Any], context: ProductContext) -> Dict[str, Any]:
    return {
        "price": _money(variation.get("price"), context),
        "regular_price": _money(variation.get("regular_price"), context),
        "sale_price": _money(variation.get("sale_price"), context) if variation.get("sale_price") else "",
        "on_sale": bool(variation.get("on_sale", False)),
        "date_on_sale": _date_on_sale(variation),
        "currency": _currency(context.settings),
    }


def _variations(source: ProductSource, context: ProductContext) -> List[Dict[str, Any]]:
    if source.product_type not in VARIABLE_TYPES or not source.get("variations"):
        return []
    summaries = []
    for raw in source.variations:
        if not is_visible_variation(raw, context.settings):
            continue
        variation = normalize_variation(raw, source.raw)
        images = variation.get("images") or []
        summaries.append({
            "id": variation.get("id"),
            "sku": variation.get("sku", ""),
            "description": variation.get("description", ""),
            "attributes": {
                f"attribute_{a.get('slug') or slugify(a.get('name', ''))}": a.get("option", "")
                for a in variation.get("attributes") or []
            },
            "featured_image": {"full": images[0].get("src", "")} if images else {},
            "prices": _variation_prices(variation, context),
            "add_to_cart": {
                "is_purchasable": bool(variation.get("purchasable", True)),
                "purchase_quantity": purchase_quantity(variation),
                "rest_url": add_to_cart_rest_url(variation, context.settings),
            },
        })
    return summaries


def _visible_variation_prices(source: ProductSource, context: ProductContext, key: str) -> List[Any]:
    values = []
    for raw in source.variations:
        if not is_visible_variation(raw, context.settings):
            continue
        amount = to_decimal(raw.get(key))
        if amount is not None:
            values.append(amount)
    return values


def _price_range(source: ProductSource, context: ProductContext) -> Any:
    if source.product_type not in VARIABLE_TYPES:
        return []
    prices = _visible_variation_prices(source, context, "price")
    if not prices:
        return []
    return {"from": _money(min(prices), context), "to": _money(max(prices), context)}


def _regular_price(source: ProductSource, context: ProductContext) -> str:
    if source.product_type in VARIABLE_TYPES and source.variations:
        prices = _visible_variation_prices(source, context, "regular_price")
        if prices:
            return _money(min(prices), context)
    return _money(source.get("regular_price") or source.get("price"), context)


def _sale_price(source: ProductSource, context: ProductContext) -> str:
    if source.product_type in VARIABLE_TYPES and source.variations:
        prices = _visible_variation_prices(source, context, "sale_price")
        return _money(min(prices), context) if prices else ""
    if not source.get("sale_price"):
        return ""
    return _money(source.get("sale_price"), context)


def _rated_out_of(source: ProductSource) -> str:
    average = to_decimal(source.get("average_rating", 0)) or 0
    if not source.get("rating_count", 0) or average <= 0:
        return ""
    return f"Rated {float(average):.2f} out of 5"


def _connected(source: ProductSource, kind: str, context: ProductContext) -> List[Dict[str, Any]]:
    connected = []
    for product_id in connected_ids(source.raw, kind):
        product = source.connected.get(product_id)
        if not product:
            continue
        connected.append({
            "id": product_id,
            "name": product.get("name", ""),
            "permalink": product.get("permalink", ""),
            "price": _money(product.get("price"), context),
            "add_to_cart": {
                "text": add_to_cart_text(product),
                "description": add_to_cart_description(product),
                "rest_url": add_to_cart_rest_url(product, context.settings),
            },
            "rest_url": product_rest_url(product_id, context.settings),
        })
    return connected


def connected_ids(raw: Dict[str, Any], kind: str) -> List[int]:
    if kind == "upsells":
        ids = raw.get("upsell_ids") or []
    elif kind == "cross_sells":
        ids = raw.get("cross_sell_ids") or []
    else:
        ids = (raw.get("related_ids") or [])[:RELATED_PRODUCTS_LIMIT]
    return [int(i) for i in ids]


def _reviews(source: ProductSource, context: ProductContext) -> List[Dict[str, Any]]:
    if not context.show_reviews:
        return []
    return [
        {
            "review_id": review.get("id"),
            "author_name": review.get("reviewer", ""),
            "author_avatar_urls": review.get("reviewer_avatar_urls", {}),
            "date": review.get("date_created"),
            "date_gmt": review.get("date_created_gmt"),
            "rating": review.get("rating", 0),
            "review": review.get("review", ""),
            "verified": bool(review.get("verified", False)),
        }
        for review in source.reviews
    ]


def _meta_data(source: ProductSource, context: ProductContext) -> List[Dict[str, Any]]:
    entries = filter_meta(source.get("meta_data", []), context.selection)
    safe = []
    for meta in entries:
        key = str(meta.get("key", ""))
        if any(key.startswith(prefix) for prefix in context.settings.ignore_meta_prefixes):
            continue
        value = meta.get("value")
        if isinstance(value, str) and _EMAIL_RE.match(value.strip()):
            continue
        safe.append({"id": meta.get("id"), "key": key, "value": value})
    return safe


def build_product_computers(source: ProductSource, context: ProductContext) -> Dict[FieldPath, Thunk]:
    """Map every product field path to a closure computing its value."""
    raw = source.raw
    settings = context.settings
    product_type = source.product_type

    def external(key: str) -> Thunk:
        return lambda: source.get(key, "") if product_type == "external" else ""

    dimensions = source.get("dimensions", {})

    return {
        ("id",): lambda: source.id,
        ("parent_id",): lambda: source.get("parent_id", 0),
        ("name",): lambda: source.get("name", ""),
        ("type",): lambda: product_type,
        ("slug",): lambda: source.get("slug", ""),
        ("permalink",): lambda: source.get("permalink", ""),
        ("sku",): lambda: source.get("sku", ""),
        ("description",): lambda: source.get("description", ""),
        ("short_description",): lambda: source.get("short_description", ""),
        ("dates", "created"): lambda: raw.get("date_created"),
        ("dates", "created_gmt"): lambda: raw.get("date_created_gmt"),
        ("dates", "modified"): lambda: raw.get("date_modified"),
        ("dates", "modified_gmt"): lambda: raw.get("date_modified_gmt"),
        ("featured",): lambda: bool(source.get("featured", False)),
        ("prices", "price"): lambda: _money(raw.get("price"), context),
        ("prices", "regular_price"): lambda: _regular_price(source, context),
        ("prices", "sale_price"): lambda: _sale_price(source, context),
        ("prices", "price_range"): lambda: _price_range(source, context),
        ("prices", "on_sale"): lambda: bool(source.get("on_sale", False)),
        ("prices", "date_on_sale"): lambda: _date_on_sale(raw),
        ("prices", "currency"): lambda: _currency(settings),
        ("hidden_conditions", "virtual"): lambda: bool(source.get("virtual", False)),
        ("hidden_conditions", "downloadable"): lambda: bool(source.get("downloadable", False)),
        ("hidden_conditions", "manage_stock"): lambda: source.get("manage_stock") is True,
        ("hidden_conditions", "sold_individually"): lambda: bool(source.get("sold_individually", False)),
        ("hidden_conditions", "reviews_allowed"): lambda: bool(source.get("reviews_allowed", False)),
        ("hidden_conditions", "shipping_required"): lambda: bool(source.get("shipping_required", True)),
        ("average_rating",): lambda: str(source.get("average_rating", "0")),
        ("review_count",): lambda: int(source.get("review_count", source.get("rating_count", 0))),
        ("rating_count",): lambda: int(source.get("rating_count", 0)),
        ("rated_out_of",): lambda: _rated_out_of(source),
        ("images",): lambda: [_image(img, i) for i, img in enumerate(source.get("images", []))],
        ("categories",): lambda: [taxonomy_term(t, "cat", settings) for t in source.get("categories", [])],
        ("tags",): lambda: [taxonomy_term(t, "tag", settings) for t in source.get("tags", [])],
        ("attributes",): lambda: _attributes(source),
        ("default_attributes",): lambda: _default_attributes(source),
        ("variations",): lambda: _variations(source, context),
        ("grouped_products",): lambda: list(source.get("grouped_products", [])) if product_type == "grouped" else [],
        ("stock", "is_in_stock"): lambda: is_in_stock(raw),
        ("stock", "stock_quantity"): lambda: raw.get("stock_quantity"),
        ("stock", "status"): lambda: source.get("stock_status", "instock"),
        ("stock", "backorders"): lambda: source.get("backorders", "no"),
        ("stock", "backorders_allowed"): lambda: bool(source.get("backorders_allowed", False)),
        ("stock", "backordered"): lambda: bool(source.get("backordered", False)),
        ("stock", "low_stock_amount"): lambda: raw.get("low_stock_amount"),
        ("weight", "value"): lambda: source.get("weight", ""),
        ("weight", "unit"): lambda: settings.weight_unit,
        ("dimensions", "length"): lambda: dimensions.get("length", ""),
        ("dimensions", "width"): lambda: dimensions.get("width", ""),
        ("dimensions", "height"): lambda: dimensions.get("height", ""),
        ("dimensions", "unit"): lambda: settings.dimension_unit,
        ("reviews",): lambda: _reviews(source, context),
        ("related",): lambda: _connected(source, "related", context),
        ("upsells",): lambda: _connected(source, "upsells", context),
        ("cross_sells",): lambda: _connected(source, "cross_sells", context),
        ("total_sales",): lambda: int(source.get("total_sales", 0)),
        ("external_url",): external("external_url"),
        ("button_text",): external("button_text"),
        ("add_to_cart", "text"): lambda: add_to_cart_text(raw),
        ("add_to_cart", "description"): lambda: add_to_cart_description(raw),
        ("add_to_cart", "has_options"): lambda: product_type in VARIABLE_TYPES,
        ("add_to_cart", "is_purchasable"): lambda: bool(source.get("purchasable", True)),
        ("add_to_cart", "purchase_quantity"): lambda: purchase_quantity(raw),
        ("add_to_cart", "rest_url"): lambda: add_to_cart_rest_url(raw, settings),
        ("meta_data",): lambda: _meta_data(source, context),
    }


def project_product(source: ProductSource, decision: Decision, context: ProductContext) -> Dict[str, Any]:
    """Project one product; variations are reduced to the variation shape."""
    data = project(PRODUCT_SCHEMA, decision, build_product_computers(source, context))
    if source.product_type in VARIATION_TYPES and not context.include_variations:
        data = specialize(data, VARIATION_SPEC)
    return data


# ----------------------------- Prefetch plan -----------------------------


Loader = Callable[[WooClient, ProductSource, Decision, ProductContext], Awaitable[None]]


@dataclass(frozen=True)
class Prefetch:
    name: str
    triggers: Tuple[FieldPath, ...]
    load: Loader


async def _load_variations(client: WooClient, source: ProductSource, decision: Decision, context: ProductContext) -> None:
    if source.product_type not in VARIABLE_TYPES or not source.get("variations"):
        return
    page = await client.list_variations(source.id)
    source.variations = page["items"]


async def _load_connected(client: WooClient, source: ProductSource, decision: Decision, context: ProductContext) -> None:
    ids: List[int] = []
    for kind in ("related", "upsells", "cross_sells"):
        if decision((kind,)):
            ids.extend(i for i in connected_ids(source.raw, kind) if i not in ids)
    if not ids:
        return
    products = await client.get_products_by_ids(ids)
    source.connected = {int(p["id"]): p for p in products if p.get("id")}


async def _load_reviews(client: WooClient, source: ProductSource, decision: Decision, context: ProductContext) -> None:
    if not context.show_reviews:
        return
    source.reviews = await client.list_reviews(source.id)


PREFETCHES: Tuple[Prefetch, ...] = (
    Prefetch("variations", (("variations",), ("prices", "price_range"), ("prices", "regular_price"), ("prices", "sale_price")), _load_variations),
    Prefetch("connected", (("related",), ("upsells",), ("cross_sells",)), _load_connected),
    Prefetch("reviews", (("reviews",),), _load_reviews),
)


async def prefetch(client: WooClient, source: ProductSource, decision: Decision, context: ProductContext) -> ProductSource:
    """Run the remote lookups the decision actually needs for one product.

    A failing lookup surfaces as FieldComputationError tagged with the
    first included field path that required it.
    """
    async def run(item: Prefetch) -> None:
        try:
            await item.load(client, source, decision, context)
        except Exception as exc:
            trigger = next(path for path in item.triggers if decision(path))
            raise FieldComputationError(trigger, exc) from exc

    needed = [item for item in PREFETCHES if any(decision(path) for path in item.triggers)]
    if needed:
        logger.debug("Prefetching %s for product %s", [p.name for p in needed], source.id)
        await asyncio.gather(*(run(item) for item in needed))
    return source
