"""Catalog settings read from the environment."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Tuple

from .utils.field_paths import FieldPath, parse_path_list
from .utils.field_selection import DEFAULT_PROFILE, RESPONSE_PROFILES
from .utils.money import PRICE_FORMATS

logger = logging.getLogger("woo_catalog_server.config")

CATALOG_VERSION = "1.0.0"
API_NAMESPACE = "v2"


class CatalogConfigError(Exception):
    """Raised when catalog settings are invalid."""


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_csv(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def load_profiles_file(path: str) -> Dict[str, FrozenSet[FieldPath]]:
    """Load {"profile": ["field", "nested.field", ...]} from a JSON file."""
    try:
        data = json.loads(Path(path).read_text())
    except (OSError, ValueError) as exc:
        raise CatalogConfigError(f"Could not read response profiles from {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise CatalogConfigError(f"Response profiles file {path} must hold a JSON object")
    unknown = sorted(str(name) for name in data if name not in RESPONSE_PROFILES)
    if unknown:
        raise CatalogConfigError(
            f"Response profiles file {path} names unknown profiles {unknown}; "
            f"expected a subset of {RESPONSE_PROFILES}"
        )
    return {str(name): parse_path_list(fields) for name, fields in data.items()}


@dataclass
class CatalogSettings:
    """Operator settings for response shaping and formatting."""

    public_url: str = "http://localhost:8000"
    default_response: str = DEFAULT_PROFILE
    default_prices: str = "raw"
    currency: str = "USD"
    currency_symbol: str = "$"
    currency_decimals: int = 2
    weight_unit: str = "kg"
    dimension_unit: str = "cm"
    hide_out_of_stock: bool = False
    taxonomy_ttl: float = 24 * 60 * 60
    profile_overrides: Dict[str, FrozenSet[FieldPath]] = field(default_factory=dict)
    ignore_meta_prefixes: Tuple[str, ...] = ()
    always_included: FrozenSet[FieldPath] = frozenset()

    @classmethod
    def from_env(cls) -> "CatalogSettings":
        """Create settings from environment variables loaded via dotenv.

        All variables are optional and prefixed CATALOG_.
        """
        default_response = os.getenv("CATALOG_DEFAULT_RESPONSE", DEFAULT_PROFILE).strip()
        if default_response not in RESPONSE_PROFILES:
            logger.warning(
                "CATALOG_DEFAULT_RESPONSE=%r is not a known profile; using %r",
                default_response, DEFAULT_PROFILE,
            )
            default_response = DEFAULT_PROFILE

        default_prices = os.getenv("CATALOG_DEFAULT_PRICES", "raw").strip()
        if default_prices not in PRICE_FORMATS:
            raise CatalogConfigError(
                f"CATALOG_DEFAULT_PRICES must be one of {PRICE_FORMATS}, got {default_prices!r}"
            )

        try:
            decimals = int(os.getenv("CATALOG_CURRENCY_DECIMALS", "2"))
            taxonomy_ttl = float(os.getenv("CATALOG_TAXONOMY_TTL", str(24 * 60 * 60)))
        except ValueError as exc:
            raise CatalogConfigError(f"Invalid numeric catalog setting: {exc}") from exc

        profiles_file: Optional[str] = os.getenv("CATALOG_PROFILES_FILE")
        overrides = load_profiles_file(profiles_file) if profiles_file else {}

        return cls(
            public_url=os.getenv("CATALOG_PUBLIC_URL", "http://localhost:8000").rstrip("/"),
            default_response=default_response,
            default_prices=default_prices,
            currency=os.getenv("CATALOG_CURRENCY", "USD"),
            currency_symbol=os.getenv("CATALOG_CURRENCY_SYMBOL", "$"),
            currency_decimals=decimals,
            weight_unit=os.getenv("CATALOG_WEIGHT_UNIT", "kg"),
            dimension_unit=os.getenv("CATALOG_DIMENSION_UNIT", "cm"),
            hide_out_of_stock=_env_bool("CATALOG_HIDE_OUT_OF_STOCK"),
            taxonomy_ttl=taxonomy_ttl,
            profile_overrides=overrides,
            ignore_meta_prefixes=_env_csv("CATALOG_IGNORE_META_PREFIXES"),
            always_included=parse_path_list(os.getenv("CATALOG_ALWAYS_INCLUDED")),
        )

    def rest_url(self, route: str) -> str:
        return f"{self.public_url}/{API_NAMESPACE}/{route.lstrip('/')}"
