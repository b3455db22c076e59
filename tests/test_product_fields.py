"""Tests for product field computers and the prefetch plan."""

from __future__ import annotations

import copy

import pytest
from unittest.mock import AsyncMock, MagicMock

from woo_catalog_server.config import CatalogSettings
from woo_catalog_server.resources.product_fields import (
    ProductContext,
    ProductSource,
    normalize_variation,
    prefetch,
    project_product,
)
from woo_catalog_server.schema import PRODUCT_PROFILES, PRODUCT_SCHEMA
from woo_catalog_server.utils.field_selection import resolve, selection_from_params
from woo_catalog_server.utils.projection import FieldComputationError

from tests.fixtures.products import (
    OUT_OF_STOCK_VARIATION,
    RELATED_PRODUCTS,
    REVIEWS,
    SIMPLE_PRODUCT,
    VARIABLE_PRODUCT,
    VARIATION_LIST,
    VARIATION_PAGE,
)

SETTINGS = CatalogSettings(
    public_url="https://shop.example.com/wp-json/catalog",
    ignore_meta_prefixes=("_",),
)


def _context_and_decision(settings=SETTINGS, prices="raw", show_reviews=False, include_variations=False, **params):
    selection = selection_from_params(**params)
    context = ProductContext(
        settings=settings,
        selection=selection,
        prices=prices,
        show_reviews=show_reviews,
        include_variations=include_variations,
    )
    return context, resolve(selection, PRODUCT_PROFILES)


def _project(raw, source_kwargs=None, **kwargs):
    context, decision = _context_and_decision(**kwargs)
    source = ProductSource(copy.deepcopy(raw), **(source_kwargs or {}))
    return project_product(source, decision, context)


class TestSimpleProduct:

    def test_default_profile_has_every_field_in_schema_order(self):
        result = _project(SIMPLE_PRODUCT)
        assert list(result) == PRODUCT_SCHEMA.field_names()

    def test_raw_prices(self):
        prices = _project(SIMPLE_PRODUCT, fields="prices")["prices"]
        assert prices["price"] == "1999"
        assert prices["regular_price"] == "2499"
        assert prices["sale_price"] == "1999"
        assert prices["price_range"] == []
        assert prices["on_sale"] is True
        assert prices["currency"] == {
            "currency_code": "USD",
            "currency_symbol": "$",
            "currency_minor_unit": 2,
        }

    def test_formatted_prices(self):
        prices = _project(SIMPLE_PRODUCT, prices="formatted", fields="prices.price")["prices"]
        assert prices == {"price": "$19.99"}

    def test_stock_status_uses_renamed_key(self):
        result = _project(SIMPLE_PRODUCT, fields="stock.status")
        assert result == {"stock": {"stock_status": "instock"}}

    def test_images_mark_first_as_featured(self):
        images = _project(SIMPLE_PRODUCT, fields="images")["images"]
        assert [(i["position"], i["featured"]) for i in images] == [(0, True), (1, False)]
        assert images[0]["src"] == {"full": "https://shop.example.com/img/widget.jpg"}

    def test_categories_carry_rest_url(self):
        categories = _project(SIMPLE_PRODUCT, fields="categories")["categories"]
        assert categories == [{
            "id": 9,
            "name": "Widgets",
            "slug": "widgets",
            "rest_url": "https://shop.example.com/wp-json/catalog/v2/products/categories/9",
        }]

    def test_attributes_keyed_by_slug(self):
        attributes = _project(SIMPLE_PRODUCT, fields="attributes")["attributes"]
        assert attributes == {
            "attribute_pa_color": {
                "id": 1,
                "name": "Color",
                "position": 0,
                "is_attribute_visible": True,
                "used_for_variation": False,
                "options": {"blue": "Blue"},
            }
        }

    def test_rated_out_of(self):
        assert _project(SIMPLE_PRODUCT, fields="rated_out_of") == {"rated_out_of": "Rated 4.50 out of 5"}

    def test_unrated_product_has_empty_rating_text(self):
        assert _project(VARIABLE_PRODUCT, fields="rated_out_of") == {"rated_out_of": ""}

    def test_add_to_cart(self):
        add_to_cart = _project(SIMPLE_PRODUCT, fields="add_to_cart")["add_to_cart"]
        assert add_to_cart["text"] == "Add to cart"
        assert add_to_cart["description"] == "Add to cart: “Blue Widget”"
        assert add_to_cart["has_options"] is False
        assert add_to_cart["purchase_quantity"] == {"min_purchase": 1, "max_purchase": -1}
        assert add_to_cart["rest_url"] == (
            "https://shop.example.com/wp-json/catalog/v2/cart/add-item?id=101&quantity=1"
        )

    def test_managed_stock_caps_max_purchase(self):
        raw = dict(SIMPLE_PRODUCT, manage_stock=True, stock_quantity=3)
        add_to_cart = _project(raw, fields="add_to_cart.purchase_quantity")["add_to_cart"]
        assert add_to_cart == {"purchase_quantity": {"min_purchase": 1, "max_purchase": 3}}

    def test_weight_and_dimensions_use_configured_units(self):
        result = _project(SIMPLE_PRODUCT, fields="weight,dimensions")
        assert result["weight"] == {"value": "0.5", "unit": "kg"}
        assert result["dimensions"] == {"length": "10", "width": "5", "height": "2", "unit": "cm"}

    def test_reviews_empty_unless_requested(self):
        source_kwargs = {"reviews": REVIEWS}
        assert _project(SIMPLE_PRODUCT, source_kwargs, fields="reviews") == {"reviews": []}
        reviews = _project(SIMPLE_PRODUCT, source_kwargs, show_reviews=True, fields="reviews")["reviews"]
        assert reviews[0]["review_id"] == 501
        assert reviews[0]["author_name"] == "Sam"


class TestMetaData:

    def test_private_and_email_entries_are_dropped(self):
        meta = _project(SIMPLE_PRODUCT, fields="meta_data")["meta_data"]
        assert [m["key"] for m in meta] == ["color_code", "material"]

    def test_include_meta(self):
        meta = _project(SIMPLE_PRODUCT, fields="meta_data", include_meta="material")["meta_data"]
        assert meta == [{"id": 4, "key": "material", "value": "steel"}]

    def test_exclude_meta(self):
        meta = _project(SIMPLE_PRODUCT, fields="meta_data", exclude_meta="material")["meta_data"]
        assert [m["key"] for m in meta] == ["color_code"]


class TestVariableProduct:

    def test_price_range_over_variations(self):
        prices = _project(VARIABLE_PRODUCT, {"variations": VARIATION_LIST}, fields="prices")["prices"]
        assert prices["price_range"] == {"from": "1000", "to": "1500"}
        assert prices["regular_price"] == "1200"
        assert prices["sale_price"] == "1000"

    def test_variations_summary(self):
        variations = _project(VARIABLE_PRODUCT, {"variations": VARIATION_LIST}, fields="variations")["variations"]
        assert [v["id"] for v in variations] == [201, 202]
        assert variations[0]["attributes"] == {"attribute_pa_size": "Small"}
        assert variations[0]["featured_image"] == {"full": "https://shop.example.com/img/tee-s.jpg"}
        assert variations[1]["featured_image"] == {}
        assert variations[0]["prices"]["price"] == "1000"
        assert variations[0]["add_to_cart"]["rest_url"].endswith("&variation[attribute_pa_size]=Small")

    def test_hide_out_of_stock_variations(self):
        variations = VARIATION_LIST + [OUT_OF_STOCK_VARIATION]
        shown = _project(VARIABLE_PRODUCT, {"variations": variations}, fields="variations")["variations"]
        assert len(shown) == 3

        hiding = CatalogSettings(public_url=SETTINGS.public_url, hide_out_of_stock=True)
        shown = _project(VARIABLE_PRODUCT, {"variations": variations}, settings=hiding, fields="variations")["variations"]
        assert [v["id"] for v in shown] == [201, 202]

    def test_variable_add_to_cart(self):
        add_to_cart = _project(VARIABLE_PRODUCT, fields="add_to_cart")["add_to_cart"]
        assert add_to_cart["text"] == "Select options"
        assert add_to_cart["has_options"] is True
        assert add_to_cart["purchase_quantity"] == {}
        assert add_to_cart["rest_url"] == ""

    def test_default_attributes(self):
        result = _project(VARIABLE_PRODUCT, fields="default_attributes")
        assert result == {"default_attributes": {"attribute_pa_size": "Small"}}


class TestVariation:

    def _variation(self):
        return normalize_variation(VARIATION_LIST[0], VARIABLE_PRODUCT)

    def test_normalize_variation(self):
        variation = self._variation()
        assert variation["type"] == "variation"
        assert variation["parent_id"] == 200
        assert variation["name"] == "Tee - Small"
        assert variation["categories"] == VARIABLE_PRODUCT["categories"]
        assert variation["images"][0]["id"] == 7

    def test_variation_drops_product_only_fields(self):
        result = _project(self._variation(), {"parent": VARIABLE_PRODUCT})
        for key in ("type", "short_description", "reviews", "variations", "related", "button_text"):
            assert key not in result
        assert "reviews_allowed" not in result["hidden_conditions"]
        assert "has_options" not in result["add_to_cart"]
        assert result["parent_id"] == 200

    def test_variation_attributes_carry_single_option(self):
        result = _project(self._variation(), fields="attributes")
        assert result["attributes"] == {
            "attribute_pa_size": {"id": 2, "name": "Size", "option": {"small": "Small"}},
        }

    def test_include_variations_keeps_full_shape(self):
        result = _project(self._variation(), include_variations=True, fields="type,reviews")
        assert result == {"type": "variation", "reviews": []}


class TestPrefetch:

    def _client(self):
        client = MagicMock()
        client.list_variations = AsyncMock(return_value=VARIATION_PAGE)
        client.get_products_by_ids = AsyncMock(return_value=RELATED_PRODUCTS)
        client.list_reviews = AsyncMock(return_value=REVIEWS)
        return client

    async def test_nothing_fetched_for_plain_fields(self):
        client = self._client()
        context, decision = _context_and_decision(fields="name,sku")
        await prefetch(client, ProductSource(copy.deepcopy(VARIABLE_PRODUCT)), decision, context)
        client.list_variations.assert_not_awaited()
        client.get_products_by_ids.assert_not_awaited()
        client.list_reviews.assert_not_awaited()

    async def test_price_fields_fetch_variations(self):
        client = self._client()
        context, decision = _context_and_decision(fields="prices.price_range")
        source = await prefetch(client, ProductSource(copy.deepcopy(VARIABLE_PRODUCT)), decision, context)
        client.list_variations.assert_awaited_once_with(200)
        assert project_product(source, decision, context) == {
            "prices": {"price_range": {"from": "1000", "to": "1500"}},
        }

    async def test_simple_product_never_fetches_variations(self):
        client = self._client()
        context, decision = _context_and_decision(fields="variations")
        await prefetch(client, ProductSource(copy.deepcopy(SIMPLE_PRODUCT)), decision, context)
        client.list_variations.assert_not_awaited()

    async def test_related_products(self):
        client = self._client()
        context, decision = _context_and_decision(fields="related")
        source = await prefetch(client, ProductSource(copy.deepcopy(SIMPLE_PRODUCT)), decision, context)
        client.get_products_by_ids.assert_awaited_once_with([102, 103])

        related = project_product(source, decision, context)["related"]
        assert [r["id"] for r in related] == [102, 103]
        assert related[0]["price"] == "2100"
        assert related[0]["add_to_cart"]["text"] == "Add to cart"
        assert related[1]["add_to_cart"]["rest_url"] == ""
        assert related[0]["rest_url"] == "https://shop.example.com/wp-json/catalog/v2/products/102"

    async def test_reviews_only_with_show_reviews(self):
        client = self._client()
        context, decision = _context_and_decision(fields="reviews")
        await prefetch(client, ProductSource(copy.deepcopy(SIMPLE_PRODUCT)), decision, context)
        client.list_reviews.assert_not_awaited()

        context, decision = _context_and_decision(show_reviews=True, fields="reviews")
        await prefetch(client, ProductSource(copy.deepcopy(SIMPLE_PRODUCT)), decision, context)
        client.list_reviews.assert_awaited_once_with(101)

    async def test_failure_is_tagged_with_field_path(self):
        client = self._client()
        client.list_variations = AsyncMock(side_effect=RuntimeError("upstream down"))
        context, decision = _context_and_decision(fields="variations")
        with pytest.raises(FieldComputationError) as excinfo:
            await prefetch(client, ProductSource(copy.deepcopy(VARIABLE_PRODUCT)), decision, context)
        assert excinfo.value.path == ("variations",)

    async def test_failure_is_tagged_with_the_included_trigger(self):
        client = self._client()
        client.list_variations = AsyncMock(side_effect=RuntimeError("upstream down"))
        context, decision = _context_and_decision(fields="prices.price_range")
        with pytest.raises(FieldComputationError) as excinfo:
            await prefetch(client, ProductSource(copy.deepcopy(VARIABLE_PRODUCT)), decision, context)
        assert excinfo.value.path == ("prices", "price_range")
