"""HTTP transport entry point: REST catalog routes plus the MCP app."""

from __future__ import annotations

import functools
import logging
import os
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route

from .config import API_NAMESPACE, CATALOG_VERSION, CatalogConfigError
from .resources import categories, products
from .resources.common import CatalogRequestError
from .server import create_mcp_server
from .utils.projection import FieldComputationError
from .woo_client import ProductNotFound, WooClientError

logger = logging.getLogger("woo_catalog_server.server_http")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}

Handler = Callable[[Request], Awaitable[JSONResponse]]


def error_response(code: str, message: str, status: int) -> JSONResponse:
    return JSONResponse(
        {"code": code, "message": message, "data": {"status": status}},
        status_code=status,
    )


def catalog_endpoint(not_found_code: str = "catalog_unknown_product_id") -> Callable[[Handler], Handler]:
    """Map catalog exceptions raised by a route handler to JSON error bodies."""

    def decorator(handler: Handler) -> Handler:
        @functools.wraps(handler)
        async def wrapper(request: Request) -> JSONResponse:
            try:
                return await handler(request)
            except ProductNotFound as exc:
                return error_response(not_found_code, str(exc), 404)
            except FieldComputationError as exc:
                logger.error("Field computation failed on %s: %s", request.url.path, exc)
                return error_response("catalog_field_computation_error", str(exc), 500)
            except CatalogConfigError as exc:
                logger.error("Catalog configuration error: %s", exc)
                return error_response("catalog_configuration_error", str(exc), 500)
            except WooClientError as exc:
                logger.error("Upstream error on %s: %s", request.url.path, exc)
                return error_response("catalog_upstream_error", str(exc), 502)
            except ValueError as exc:
                return error_response("catalog_invalid_parameter", str(exc), 400)

        return wrapper

    return decorator


# ----------------------------- Query parsing -----------------------------


def _str_param(request: Request, name: str) -> Optional[str]:
    value = request.query_params.get(name)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def _int_param(request: Request, name: str, default: Optional[int] = None) -> Optional[int]:
    value = _str_param(request, name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise CatalogRequestError(f"{name} must be an integer") from None


def _bool_param(request: Request, name: str, default: Optional[bool] = None) -> Optional[bool]:
    value = _str_param(request, name)
    if value is None:
        return default
    lowered = value.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise CatalogRequestError(f"{name} must be a boolean")


def _list_param(request: Request, name: str) -> Optional[List[str]]:
    """Accept ``?x=a,b`` as well as repeated ``?x=a&x=b``."""
    values: List[str] = []
    for raw in request.query_params.getlist(name):
        values.extend(part.strip() for part in raw.split(",") if part.strip())
    return values or None


def _int_list_param(request: Request, name: str) -> Optional[List[int]]:
    values = _list_param(request, name)
    if values is None:
        return None
    try:
        return [int(v) for v in values]
    except ValueError:
        raise CatalogRequestError(f"{name} must be a list of integers") from None


def _selection_params(request: Request) -> Dict[str, Any]:
    return {
        "fields": _list_param(request, "fields"),
        "exclude_fields": _list_param(request, "exclude_fields"),
        "response": _str_param(request, "response"),
        "prices": _str_param(request, "prices"),
        "include_meta": _list_param(request, "include_meta"),
        "exclude_meta": _list_param(request, "exclude_meta"),
    }


def _positive_id(request: Request, name: str) -> int:
    value = request.path_params[name]
    if value <= 0:
        raise ProductNotFound("Invalid ID.")
    return value


# ----------------------------- Response headers -----------------------------


def _link_header(request: Request, page: int, total_pages: int) -> Optional[str]:
    links = []
    if page > 1:
        prev_page = min(page - 1, total_pages) if total_pages else 1
        links.append(f'<{request.url.include_query_params(page=prev_page)}>; rel="prev"')
    if total_pages > page:
        links.append(f'<{request.url.include_query_params(page=page + 1)}>; rel="next"')
    return ", ".join(links) or None


def catalog_headers(
    request: Request,
    total: Optional[int] = None,
    total_pages: Optional[int] = None,
    page: int = 1,
) -> Dict[str, str]:
    headers = {
        "Catalog-Timestamp": str(int(time.time())),
        "Catalog-Version": CATALOG_VERSION,
    }
    if total is not None and total_pages is not None:
        headers["X-WP-Total"] = str(total)
        headers["X-WP-TotalPages"] = str(total_pages)
        link = _link_header(request, page, total_pages)
        if link:
            headers["Link"] = link
    return headers


# ----------------------------- Route handlers -----------------------------


@catalog_endpoint()
async def list_products(request: Request) -> JSONResponse:
    page = _int_param(request, "page", 1)
    result = await products.catalog_products(
        page=page,
        per_page=_int_param(request, "per_page", 10),
        **_selection_params(request),
        search=_str_param(request, "search"),
        sku=_str_param(request, "sku"),
        slug=_str_param(request, "slug"),
        product_type=_str_param(request, "type"),
        category=_str_param(request, "category"),
        tag=_str_param(request, "tag"),
        featured=_bool_param(request, "featured"),
        on_sale=_bool_param(request, "on_sale"),
        min_price=_str_param(request, "min_price"),
        max_price=_str_param(request, "max_price"),
        stock_status=_str_param(request, "stock_status"),
        include=_int_list_param(request, "include"),
        exclude=_int_list_param(request, "exclude"),
        parent=_int_list_param(request, "parent"),
        order=_str_param(request, "order") or "DESC",
        orderby=_str_param(request, "orderby"),
        show_reviews=_bool_param(request, "show_reviews", False),
    )
    headers = catalog_headers(request, result["total_products"], result["total_pages"], page)
    return JSONResponse(result, headers=headers)


@catalog_endpoint()
async def get_product(request: Request) -> JSONResponse:
    identifier = request.path_params["product_id"].strip()
    if identifier.isdigit() and int(identifier) <= 0:
        return error_response("catalog_product_invalid_id", "Invalid ID.", 404)
    result = await products.catalog_get_product(
        identifier,
        **_selection_params(request),
        include_variations=_bool_param(request, "include_variations", False),
        show_reviews=_bool_param(request, "show_reviews", False),
    )
    return JSONResponse(result, headers=catalog_headers(request))


@catalog_endpoint("catalog_product_invalid_id")
async def list_variations(request: Request) -> JSONResponse:
    page = _int_param(request, "page", 1)
    result = await products.catalog_product_variations(
        _positive_id(request, "product_id"),
        page=page,
        per_page=_int_param(request, "per_page", 10),
        **_selection_params(request),
    )
    headers = catalog_headers(request, result["total_variations"], result["total_pages"], page)
    return JSONResponse(result, headers=headers)


@catalog_endpoint("catalog_product_invalid_id")
async def get_variation(request: Request) -> JSONResponse:
    result = await products.catalog_get_variation(
        _positive_id(request, "product_id"),
        _positive_id(request, "variation_id"),
        **_selection_params(request),
    )
    return JSONResponse(result, headers=catalog_headers(request))


def _category_selection(request: Request) -> Dict[str, Any]:
    return {
        "fields": _list_param(request, "fields"),
        "exclude_fields": _list_param(request, "exclude_fields"),
        "response": _str_param(request, "response"),
    }


@catalog_endpoint("catalog_term_invalid")
async def list_categories(request: Request) -> JSONResponse:
    page = _int_param(request, "page", 1)
    result = await categories.catalog_categories(
        page=page,
        per_page=_int_param(request, "per_page", 10),
        search=_str_param(request, "search"),
        parent=_int_param(request, "parent"),
        hide_empty=_bool_param(request, "hide_empty", False),
        **_category_selection(request),
    )
    headers = catalog_headers(request, result["total_categories"], result["total_pages"], page)
    return JSONResponse(result, headers=headers)


@catalog_endpoint("catalog_term_invalid")
async def get_category(request: Request) -> JSONResponse:
    result = await categories.catalog_get_category(
        _positive_id(request, "category_id"),
        **_category_selection(request),
    )
    return JSONResponse(result, headers=catalog_headers(request))


async def health(request: Request) -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse({
        "status": "ok",
        "transport": "streamable-http",
        "version": CATALOG_VERSION,
    })


def catalog_routes() -> List[Route]:
    prefix = f"/{API_NAMESPACE}"
    # Literal category paths must precede the product id pattern.
    return [
        Route(f"{prefix}/products", list_products, methods=["GET"]),
        Route(f"{prefix}/products/categories", list_categories, methods=["GET"]),
        Route(f"{prefix}/products/categories/{{category_id:int}}", get_category, methods=["GET"]),
        Route(f"{prefix}/products/{{product_id:int}}/variations", list_variations, methods=["GET"]),
        Route(
            f"{prefix}/products/{{product_id:int}}/variations/{{variation_id:int}}",
            get_variation,
            methods=["GET"],
        ),
        Route(f"{prefix}/products/{{product_id}}", get_product, methods=["GET"]),
    ]


mcp_server = create_mcp_server()


def create_app():
    """Create ASGI app with CORS middleware, REST routes and the MCP app."""
    mcp_app = mcp_server.http_app()

    # mcp_app.lifespan initializes FastMCP's session manager
    app = Starlette(
        routes=[
            Route("/health", health, methods=["GET"]),
            *catalog_routes(),
            Mount("/", app=mcp_app),
        ],
        lifespan=mcp_app.lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    return app


# Create the ASGI app for uvicorn
app = create_app()


def main() -> None:
    """Run the catalog with HTTP transport."""
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info("Starting WooCommerce catalog server on %s:%s", host, port)
    logger.info("Store API: %s", os.getenv("WOO_BASE_URL", "(unset)"))

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
