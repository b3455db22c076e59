"""Shared test fixtures for the WooCommerce catalog server tests."""

import os

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from woo_catalog_server.resources import products as products_module
from woo_catalog_server.woo_client import WooClient


@pytest.fixture
def mock_response():
    """Factory for creating mock HTTP responses.

    Usage:
        resp = mock_response(200, [{"id": 1}], headers={"X-WP-Total": "1"})
        resp = mock_response(401, text="Unauthorized")
    """
    def _make(status_code=200, json_data=None, text=None, headers=None):
        response = MagicMock()
        response.status_code = status_code
        if json_data is not None:
            response.json.return_value = json_data
            response.text = text or str(json_data)
        else:
            response.json.side_effect = ValueError("No JSON")
            response.text = text or ""
        response.headers = headers or {}
        return response
    return _make


@pytest.fixture
def mock_client():
    """Create a WooClient with mocked _request method."""
    with patch.dict("os.environ", {
        "WOO_BASE_URL": "https://shop.example.com/wp-json/wc/v3",
        "WOO_CONSUMER_KEY": "ck_test",
        "WOO_CONSUMER_SECRET": "cs_test",
    }):
        client = WooClient.from_env()
        client._request = AsyncMock()
        return client


# All resource modules that import WooClient
_RESOURCE_MODULES = [
    "woo_catalog_server.resources.status",
    "woo_catalog_server.resources.products",
    "woo_catalog_server.resources.categories",
]


@pytest.fixture(autouse=True)
def catalog_env():
    """Pin catalog settings so a developer's .env cannot leak into tests."""
    with patch.dict("os.environ", {
        "CATALOG_PUBLIC_URL": "https://shop.example.com/wp-json/catalog",
        "CATALOG_DEFAULT_RESPONSE": "default",
        "CATALOG_DEFAULT_PRICES": "raw",
        "CATALOG_CURRENCY": "USD",
        "CATALOG_CURRENCY_SYMBOL": "$",
        "CATALOG_CURRENCY_DECIMALS": "2",
        "CATALOG_HIDE_OUT_OF_STOCK": "false",
        "CATALOG_IGNORE_META_PREFIXES": "_",
        "CATALOG_ALWAYS_INCLUDED": "",
    }):
        os.environ.pop("CATALOG_PROFILES_FILE", None)
        yield


@pytest.fixture(autouse=True)
def clear_taxonomy_cache():
    products_module._taxonomy_cache.clear()
    yield
    products_module._taxonomy_cache.clear()


@pytest.fixture
def mock_woo_class():
    """Patch WooClient in all resource modules, yield (mock_class, mock_instance).

    Usage:
        def test_something(mock_woo_class):
            mock_class, mock_instance = mock_woo_class
            mock_instance.some_method = AsyncMock(return_value={...})
            # call the tool function...
    """
    mock_instance = MagicMock()
    mock_class = MagicMock()
    mock_class.from_env.return_value = mock_instance

    patchers = [patch(f"{mod}.WooClient", mock_class) for mod in _RESOURCE_MODULES]
    for p in patchers:
        p.start()
    yield mock_class, mock_instance
    for p in patchers:
        p.stop()


@pytest.fixture
def wired_woo(mock_woo_class):
    """mock_woo_class with every read method answering from the fixtures."""
    from tests.fixtures.categories import CATEGORY_LIST, CATEGORY_PAGE, CATEGORY_SHIRTS, TAG_LIST
    from tests.fixtures.products import (
        PRODUCT_PAGE,
        RELATED_PRODUCTS,
        SIMPLE_PRODUCT,
        VARIATION_LIST,
        VARIATION_PAGE,
    )

    _, mock_instance = mock_woo_class
    mock_instance.list_products = AsyncMock(return_value=PRODUCT_PAGE)
    mock_instance.get_product = AsyncMock(return_value=SIMPLE_PRODUCT)
    mock_instance.get_product_by_sku = AsyncMock(return_value=SIMPLE_PRODUCT)
    mock_instance.get_products_by_ids = AsyncMock(return_value=RELATED_PRODUCTS)
    mock_instance.list_variations = AsyncMock(return_value=VARIATION_PAGE)
    mock_instance.get_variation = AsyncMock(return_value=VARIATION_LIST[0])
    mock_instance.list_reviews = AsyncMock(return_value=[])
    mock_instance.list_all_terms = AsyncMock(
        side_effect=lambda taxonomy: CATEGORY_LIST if taxonomy == "cat" else TAG_LIST
    )
    mock_instance.list_categories = AsyncMock(return_value=CATEGORY_PAGE)
    mock_instance.get_category = AsyncMock(return_value=CATEGORY_SHIRTS)
    return mock_instance
