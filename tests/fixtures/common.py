"""Common mock API responses: health check, errors."""

HEALTH_CHECK_RESPONSE = {
    "ok": True,
    "status": 200,
    "sample_count": 1,
    "total_products": 12,
    "base_url": "https://shop.example.com/wp-json/wc/v3/",
}

ERROR_AUTH_401 = '{"code":"woocommerce_rest_cannot_view","message":"Sorry, you cannot list resources.","data":{"status":401}}'

ERROR_NOT_FOUND_404 = '{"code":"woocommerce_rest_product_invalid_id","message":"Invalid ID.","data":{"status":404}}'
