from __future__ import annotations

import asyncio
import os
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .utils.logging import truncate

logger = logging.getLogger("woo_catalog_server.http")

MAX_RETRIES = 3
RETRY_DELAYS = [1.0, 2.0, 4.0]

# WooCommerce caps per_page at 100
MAX_PER_PAGE = 100


def _int_header(response: httpx.Response, name: str, default: int) -> int:
    try:
        return int(response.headers.get(name, default))
    except (TypeError, ValueError):
        return default


class WooClientError(Exception):
    """Represents an error when communicating with the WooCommerce REST API."""


class ProductNotFound(WooClientError):
    """The requested product, variation or term does not exist."""


@dataclass
class WooClient:
    """Minimal async client for the WooCommerce REST API (wc/v3).

    Uses per-request httpx.AsyncClient with automatic retry on transient errors.
    """

    base_url: str
    consumer_key: str
    consumer_secret: str

    @classmethod
    def from_env(cls) -> "WooClient":
        """Create a client using environment variables loaded via dotenv.

        Required env vars:
        - WOO_BASE_URL (e.g. https://shop.example.com/wp-json/wc/v3/)
        - WOO_CONSUMER_KEY
        - WOO_CONSUMER_SECRET
        """
        base_url = os.getenv("WOO_BASE_URL")
        consumer_key = os.getenv("WOO_CONSUMER_KEY")
        consumer_secret = os.getenv("WOO_CONSUMER_SECRET")

        if not base_url:
            raise WooClientError("Missing WOO_BASE_URL in environment.")
        if not consumer_key or not consumer_secret:
            raise WooClientError(
                "Missing WOO_CONSUMER_KEY or WOO_CONSUMER_SECRET in environment."
            )

        if not base_url.endswith("/"):
            base_url = base_url + "/"

        return cls(
            base_url=base_url,
            consumer_key=consumer_key,
            consumer_secret=consumer_secret,
        )

    def _headers(self) -> dict:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute HTTP request with per-request client and retry logic."""
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            auth=httpx.BasicAuth(self.consumer_key, self.consumer_secret),
            timeout=httpx.Timeout(30.0, connect=10.0),
        ) as client:
            return await self._execute_with_retry(client, method, path, **kwargs)

    async def _execute_with_retry(
        self, client: httpx.AsyncClient, method: str, path: str, **kwargs
    ) -> httpx.Response:
        last_error: Exception | None = None
        for attempt in range(MAX_RETRIES):
            try:
                start = time.perf_counter()
                response = await getattr(client, method)(path, **kwargs)
                elapsed_ms = (time.perf_counter() - start) * 1000.0

                logger.debug(
                    "HTTP %s %s status=%s elapsed_ms=%.2f",
                    method.upper(),
                    path,
                    response.status_code,
                    elapsed_ms,
                )

                # Don't retry client errors (4xx except 429)
                if 400 <= response.status_code < 500 and response.status_code != 429:
                    return response

                # Retry on rate limit (429) and server errors (5xx)
                if response.status_code == 429 or response.status_code >= 500:
                    if attempt < MAX_RETRIES - 1:
                        logger.warning(
                            "Retrying %s %s (status %s, attempt %d/%d)",
                            method.upper(), path, response.status_code,
                            attempt + 1, MAX_RETRIES,
                        )
                        await asyncio.sleep(RETRY_DELAYS[attempt])
                        continue

                return response

            except (httpx.TimeoutException, httpx.NetworkError) as e:
                last_error = e
                if attempt < MAX_RETRIES - 1:
                    logger.warning(
                        "Retrying %s %s (%s, attempt %d/%d)",
                        method.upper(), path, type(e).__name__,
                        attempt + 1, MAX_RETRIES,
                    )
                    await asyncio.sleep(RETRY_DELAYS[attempt])
                    continue

        raise WooClientError(f"Request failed after {MAX_RETRIES} retries: {last_error}")

    def _parse(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except Exception:
            return {"raw": truncate(response.text or "", 1000)}

    async def _get_page(self, path: str, params: Dict[str, Any], label: str) -> Dict[str, Any]:
        response = await self._request("get", path, params=params)
        data = self._parse(response)
        if response.status_code == 200:
            items = data if isinstance(data, list) else []
            return {
                "items": items,
                "total": _int_header(response, "X-WP-Total", len(items)),
                "total_pages": _int_header(response, "X-WP-TotalPages", 1 if items else 0),
            }
        raise WooClientError(
            f"{label} error: {response.status_code} {response.text[:200]}"
        )

    async def _get_one(self, path: str, label: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = await self._request("get", path, params=params or {})
        data = self._parse(response)
        if response.status_code == 200 and isinstance(data, dict):
            return data
        if response.status_code in (400, 404):
            raise ProductNotFound(f"{label} not found")
        raise WooClientError(
            f"{label} get error: {response.status_code} {response.text[:200]}"
        )

    # ----------------------------- API methods -----------------------------

    async def health_check(self) -> Dict[str, Any]:
        """Perform a lightweight authenticated request to verify connectivity."""
        response = await self._request("get", "products", params={"page": 1, "per_page": 1})
        data = self._parse(response)

        if response.status_code == 200:
            sample_count = len(data) if isinstance(data, list) else 0
            return {
                "ok": True,
                "status": response.status_code,
                "sample_count": sample_count,
                "total_products": _int_header(response, "X-WP-Total", sample_count),
                "base_url": self.base_url,
            }

        raise WooClientError(
            f"WooCommerce auth failed or API error: {response.status_code} "
            f"{response.text[:200]}"
        )

    async def list_products(
        self,
        *,
        page: int = 1,
        per_page: int = 10,
        **filters: Any,
    ) -> Dict[str, Any]:
        """List published products with pagination and WooCommerce filters.

        Returns {"items": [...], "total": int, "total_pages": int}.
        """
        params: Dict[str, Any] = {
            "page": page,
            "per_page": min(per_page, MAX_PER_PAGE),
            "status": "publish",
        }
        for key, value in filters.items():
            if value is None or value == "" or value == []:
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            elif isinstance(value, (list, tuple)):
                value = ",".join(str(v) for v in value)
            params[key] = value
        return await self._get_page("products", params, "Product list")

    async def get_product(self, product_id: int) -> Dict[str, Any]:
        """Fetch a single product (or variation) by numeric ID."""
        return await self._get_one(f"products/{int(product_id)}", "Product")

    async def get_product_by_sku(self, sku: str) -> Dict[str, Any]:
        """Fetch a single product by SKU; variations are matched too."""
        if not sku:
            raise WooClientError("get_product_by_sku requires sku")
        page = await self._get_page("products", {"sku": sku, "per_page": 1}, "Product list")
        if page["items"]:
            return page["items"][0]
        raise ProductNotFound("Product not found")

    async def get_products_by_ids(self, ids: Sequence[int]) -> List[Dict[str, Any]]:
        """Fetch published products by ID, preserving the requested order."""
        ids = [int(i) for i in ids if i]
        if not ids:
            return []
        page = await self.list_products(
            page=1, per_page=len(ids), include=ids, orderby="include"
        )
        return page["items"]

    async def list_variations(
        self,
        product_id: int,
        *,
        page: int = 1,
        per_page: int = MAX_PER_PAGE,
    ) -> Dict[str, Any]:
        """List variations of a variable product."""
        params = {"page": page, "per_page": min(per_page, MAX_PER_PAGE)}
        return await self._get_page(
            f"products/{int(product_id)}/variations", params, "Variation list"
        )

    async def get_variation(self, product_id: int, variation_id: int) -> Dict[str, Any]:
        return await self._get_one(
            f"products/{int(product_id)}/variations/{int(variation_id)}", "Variation"
        )

    async def list_reviews(self, product_id: int, *, per_page: int = MAX_PER_PAGE) -> List[Dict[str, Any]]:
        """List approved reviews for one product."""
        params = {"product": int(product_id), "per_page": per_page, "status": "approved"}
        page = await self._get_page("products/reviews", params, "Review list")
        return page["items"]

    async def list_categories(
        self,
        *,
        page: int = 1,
        per_page: int = 10,
        search: Optional[str] = None,
        parent: Optional[int] = None,
        hide_empty: bool = False,
        orderby: str = "name",
        order: str = "asc",
    ) -> Dict[str, Any]:
        """List product categories with pagination."""
        params: Dict[str, Any] = {
            "page": page,
            "per_page": min(per_page, MAX_PER_PAGE),
            "hide_empty": "true" if hide_empty else "false",
            "orderby": orderby,
            "order": order,
        }
        if search:
            params["search"] = search
        if parent is not None:
            params["parent"] = parent
        return await self._get_page("products/categories", params, "Category list")

    async def get_category(self, category_id: int) -> Dict[str, Any]:
        return await self._get_one(f"products/categories/{int(category_id)}", "Category")

    async def list_tags(self, *, page: int = 1, per_page: int = MAX_PER_PAGE) -> Dict[str, Any]:
        params = {
            "page": page,
            "per_page": min(per_page, MAX_PER_PAGE),
            "hide_empty": "false",
            "orderby": "name",
            "order": "asc",
        }
        return await self._get_page("products/tags", params, "Tag list")

    async def list_all_terms(self, taxonomy: str) -> List[Dict[str, Any]]:
        """Walk every page of product categories ("cat") or tags ("tag")."""
        terms: List[Dict[str, Any]] = []
        page = 1
        while True:
            if taxonomy == "cat":
                result = await self.list_categories(page=page, per_page=MAX_PER_PAGE)
            elif taxonomy == "tag":
                result = await self.list_tags(page=page, per_page=MAX_PER_PAGE)
            else:
                raise WooClientError(f"Unknown taxonomy: {taxonomy}")
            terms.extend(result["items"])
            if page >= result["total_pages"] or not result["items"]:
                break
            page += 1
        return terms
