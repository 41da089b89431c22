"""
cart/views.py
"""

import logging

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from tokobangunan.utils.responses import APIResponse
from users.decorators.auth import json_request_required, jwt_required
from .services.cart_service import CartService

logger = logging.getLogger(__name__)

SERVICE_ERRORS = (ObjectDoesNotExist, PermissionDenied, ValidationError)


@csrf_exempt
@require_http_methods(["GET", "DELETE"])
@jwt_required
def cart_detail(request):
    """Current cart (GET) or clear it (DELETE)"""
    try:
        if request.method == "DELETE":
            cart = CartService.clear(request.user)
            return APIResponse.success({"cart": CartService.summary(cart)}, "Cart cleared")

        cart = CartService.get_cart(request.user)
        return APIResponse.success({"cart": CartService.summary(cart)})

    except Exception as e:
        logger.error(f"Cart detail error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST", "PATCH", "DELETE"])
@jwt_required
@json_request_required
def cart_items(request):
    """
    POST adds an item, PATCH sets a quantity (0 removes), DELETE removes
    the product+unit line.
    """
    try:
        data = request.json_data
        if not data.get("product_id"):
            return APIResponse.bad_request("product_id is required")

        if request.method == "POST":
            if data.get("quantity") in (None, ""):
                return APIResponse.bad_request("quantity is required")
            cart = CartService.add_item(
                request.user, data["product_id"], data["quantity"], data.get("unit")
            )
            return APIResponse.success({"cart": CartService.summary(cart)}, "Item added to cart")

        if not data.get("unit"):
            return APIResponse.bad_request("unit is required")

        if request.method == "PATCH":
            if data.get("quantity") in (None, ""):
                return APIResponse.bad_request("quantity is required")
            cart = CartService.update_quantity(
                request.user, data["product_id"], data["unit"], data["quantity"]
            )
        else:
            cart = CartService.remove_item(request.user, data["product_id"], data["unit"])

        return APIResponse.success({"cart": CartService.summary(cart)})

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Cart items error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@jwt_required
@json_request_required
def merge_cart(request):
    """Merge the guest cart kept by the browser into the account cart"""
    try:
        cart, skipped = CartService.merge(request.user, request.json_data.get("items", []))
        return APIResponse.success(
            {"cart": CartService.summary(cart), "skipped": skipped}, "Cart merged"
        )

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Cart merge error: {str(e)}")
        return APIResponse.server_error()
