"""Tests for catalog settings loaded from the environment."""

from __future__ import annotations

import json

import pytest
from unittest.mock import patch

from woo_catalog_server.config import CatalogConfigError, CatalogSettings
from woo_catalog_server.schema import product_profiles


class TestFromEnv:

    def test_values_from_env(self):
        with patch.dict("os.environ", {
            "CATALOG_PUBLIC_URL": "https://api.example.com/",
            "CATALOG_DEFAULT_PRICES": "formatted",
            "CATALOG_CURRENCY": "EUR",
            "CATALOG_CURRENCY_SYMBOL": "€",
            "CATALOG_HIDE_OUT_OF_STOCK": "yes",
            "CATALOG_TAXONOMY_TTL": "60",
            "CATALOG_IGNORE_META_PREFIXES": "_, wpml_",
            "CATALOG_ALWAYS_INCLUDED": "id,stock.status",
        }):
            settings = CatalogSettings.from_env()

        assert settings.public_url == "https://api.example.com"
        assert settings.default_prices == "formatted"
        assert settings.currency == "EUR"
        assert settings.currency_symbol == "€"
        assert settings.hide_out_of_stock is True
        assert settings.taxonomy_ttl == 60.0
        assert settings.ignore_meta_prefixes == ("_", "wpml_")
        assert settings.always_included == {("id",), ("stock", "status")}

    def test_unknown_default_profile_falls_back(self):
        with patch.dict("os.environ", {"CATALOG_DEFAULT_RESPONSE": "huge"}):
            assert CatalogSettings.from_env().default_response == "default"

    def test_invalid_prices_raise(self):
        with patch.dict("os.environ", {"CATALOG_DEFAULT_PRICES": "cents"}):
            with pytest.raises(CatalogConfigError, match="CATALOG_DEFAULT_PRICES"):
                CatalogSettings.from_env()

    def test_invalid_number_raises(self):
        with patch.dict("os.environ", {"CATALOG_CURRENCY_DECIMALS": "two"}):
            with pytest.raises(CatalogConfigError, match="Invalid numeric"):
                CatalogSettings.from_env()

    def test_rest_url(self):
        settings = CatalogSettings(public_url="https://api.example.com")
        assert settings.rest_url("/products/5") == "https://api.example.com/v2/products/5"


class TestProfilesFile:

    def test_overrides_replace_named_profiles(self, tmp_path):
        path = tmp_path / "profiles.json"
        path.write_text(json.dumps({"quick_browse": ["id", "name"], "quick_view": "id"}))

        with patch.dict("os.environ", {"CATALOG_PROFILES_FILE": str(path)}):
            settings = CatalogSettings.from_env()

        profiles = product_profiles(settings.profile_overrides)
        assert profiles["quick_browse"] == {("id",), ("name",)}
        assert profiles["quick_view"] == {("id",)}
        assert ("description",) in profiles["default"]

    def test_unknown_profile_names_raise(self, tmp_path):
        path = tmp_path / "profiles.json"
        path.write_text(json.dumps({"quick_browse": ["id"], "tiny": ["id"]}))

        with patch.dict("os.environ", {"CATALOG_PROFILES_FILE": str(path)}):
            with pytest.raises(CatalogConfigError, match=r"unknown profiles \['tiny'\]"):
                CatalogSettings.from_env()

    def test_unreadable_file_raises(self, tmp_path):
        with patch.dict("os.environ", {"CATALOG_PROFILES_FILE": str(tmp_path / "missing.json")}):
            with pytest.raises(CatalogConfigError, match="Could not read response profiles"):
                CatalogSettings.from_env()

    def test_non_object_raises(self, tmp_path):
        path = tmp_path / "profiles.json"
        path.write_text("[1, 2]")
        with patch.dict("os.environ", {"CATALOG_PROFILES_FILE": str(path)}):
            with pytest.raises(CatalogConfigError, match="must hold a JSON object"):
                CatalogSettings.from_env()
