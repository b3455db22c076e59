"""Request helpers shared by the product and category tools."""

from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional, Union

from ..config import CatalogSettings
from ..utils.field_paths import FieldPath
from ..utils.field_selection import (
    FieldDecision,
    FieldSelection,
    resolve_with_fallback,
    selection_from_params,
)
from ..utils.money import PRICE_FORMATS

logger = logging.getLogger("woo_catalog_server.resources.common")

MAX_PER_PAGE = 100

FieldsArg = Union[str, List[str], None]


class CatalogRequestError(ValueError):
    """Invalid request parameters (paging, enums)."""


def check_paging(page: int, per_page: int) -> None:
    if page < 1:
        raise CatalogRequestError("page must be 1 or greater")
    if per_page < 1 or per_page > MAX_PER_PAGE:
        raise CatalogRequestError(f"per_page must be between 1 and {MAX_PER_PAGE}")


def check_prices(prices: Optional[str], settings: CatalogSettings) -> str:
    mode = prices or settings.default_prices
    if mode not in PRICE_FORMATS:
        raise CatalogRequestError(f"prices must be one of {', '.join(PRICE_FORMATS)}")
    return mode


def build_selection(
    settings: CatalogSettings,
    fields: FieldsArg = None,
    exclude_fields: FieldsArg = None,
    response: Optional[str] = None,
    include_meta: FieldsArg = None,
    exclude_meta: FieldsArg = None,
) -> FieldSelection:
    return selection_from_params(
        fields=fields,
        exclude_fields=exclude_fields,
        response=response,
        include_meta=include_meta,
        exclude_meta=exclude_meta,
        default_profile=settings.default_response,
    )


def build_decision(
    selection: FieldSelection,
    profiles: Mapping[str, Iterable[FieldPath]],
    settings: CatalogSettings,
) -> FieldDecision:
    decision = resolve_with_fallback(selection, profiles, settings.always_included)
    logger.debug("Field decision: %s", decision.describe())
    return decision
