"""Declared field surfaces, response profiles and variant specs."""

from __future__ import annotations

from typing import Dict, FrozenSet, Mapping, Optional

from .utils.field_paths import FieldPath, parse_path_list
from .utils.projection import EntitySchema, FieldSpec, child
from .utils.variants import VariantFieldSpec

# Order here is the response key order.
PRODUCT_SCHEMA = EntitySchema(
    kind="product",
    fields=(
        FieldSpec("id"),
        FieldSpec("parent_id"),
        FieldSpec("name"),
        FieldSpec("type"),
        FieldSpec("slug"),
        FieldSpec("permalink"),
        FieldSpec("sku"),
        FieldSpec("description"),
        FieldSpec("short_description"),
        FieldSpec("dates", (
            child("created"),
            child("created_gmt"),
            child("modified"),
            child("modified_gmt"),
        )),
        FieldSpec("featured"),
        FieldSpec("prices", (
            child("price"),
            child("regular_price"),
            child("sale_price"),
            child("price_range"),
            child("on_sale"),
            child("date_on_sale"),
            child("currency"),
        )),
        FieldSpec("hidden_conditions", (
            child("virtual"),
            child("downloadable"),
            child("manage_stock"),
            child("sold_individually"),
            child("reviews_allowed"),
            child("shipping_required"),
        )),
        FieldSpec("average_rating"),
        FieldSpec("review_count"),
        FieldSpec("rating_count"),
        FieldSpec("rated_out_of"),
        FieldSpec("images"),
        FieldSpec("categories"),
        FieldSpec("tags"),
        FieldSpec("attributes"),
        FieldSpec("default_attributes"),
        FieldSpec("variations"),
        FieldSpec("grouped_products"),
        FieldSpec("stock", (
            child("is_in_stock"),
            child("stock_quantity"),
            child("status", key="stock_status"),
            child("backorders"),
            child("backorders_allowed"),
            child("backordered"),
            child("low_stock_amount"),
        )),
        FieldSpec("weight", (
            child("value"),
            child("unit"),
        )),
        FieldSpec("dimensions", (
            child("length"),
            child("width"),
            child("height"),
            child("unit"),
        )),
        FieldSpec("reviews"),
        FieldSpec("related"),
        FieldSpec("upsells"),
        FieldSpec("cross_sells"),
        FieldSpec("total_sales"),
        FieldSpec("external_url"),
        FieldSpec("button_text"),
        FieldSpec("add_to_cart", (
            child("text"),
            child("description"),
            child("has_options"),
            child("is_purchasable"),
            child("purchase_quantity"),
            child("rest_url"),
        )),
        FieldSpec("meta_data"),
    ),
)

CATEGORY_SCHEMA = EntitySchema(
    kind="product_cat",
    fields=(
        FieldSpec("id"),
        FieldSpec("name"),
        FieldSpec("slug"),
        FieldSpec("parent"),
        FieldSpec("description"),
        FieldSpec("display"),
        FieldSpec("image"),
        FieldSpec("menu_order"),
        FieldSpec("count"),
    ),
)

VARIATION_SPEC = VariantFieldSpec(
    base_kind="product",
    variant_kind="variation",
    drop_fields=(
        "type",
        "short_description",
        "average_rating",
        "review_count",
        "rating_count",
        "rated_out_of",
        "reviews",
        "default_attributes",
        "variations",
        "grouped_products",
        "related",
        "upsells",
        "cross_sells",
        "external_url",
        "button_text",
    ),
    drop_nested=(
        ("hidden_conditions", "reviews_allowed"),
        ("add_to_cart", "has_options"),
    ),
)

_QUICK_BROWSE = (
    "id",
    "name",
    "slug",
    "permalink",
    "prices",
    "images",
    "stock.is_in_stock",
    "add_to_cart",
)

_QUICK_VIEW = _QUICK_BROWSE + (
    "sku",
    "short_description",
    "average_rating",
    "rating_count",
    "categories",
    "attributes",
    "stock",
)


def _profile(*fields: str) -> FrozenSet[FieldPath]:
    return parse_path_list(list(fields))


PRODUCT_PROFILES: Dict[str, FrozenSet[FieldPath]] = {
    "default": _profile(*PRODUCT_SCHEMA.field_names()),
    "quick_browse": _profile(*_QUICK_BROWSE),
    "quick_view": _profile(*_QUICK_VIEW),
}

CATEGORY_PROFILES: Dict[str, FrozenSet[FieldPath]] = {
    "default": _profile(*CATEGORY_SCHEMA.field_names()),
    "quick_browse": _profile("id", "name", "slug", "image"),
    "quick_view": _profile("id", "name", "slug", "parent", "description", "image", "count"),
}


def product_profiles(
    overrides: Optional[Mapping[str, FrozenSet[FieldPath]]] = None,
) -> Dict[str, FrozenSet[FieldPath]]:
    """Built-in product profiles with operator overrides applied on top."""
    profiles = dict(PRODUCT_PROFILES)
    if overrides:
        profiles.update(overrides)
    return profiles
