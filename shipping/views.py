"""
shipping/views.py

Destination lookup, courier list, shipping quotes and store configuration
"""

import logging

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from cart.services.cart_service import CartService
from tokobangunan.utils.responses import APIResponse, parse_int
from users.decorators.auth import json_request_required, jwt_required, role_required
from .rajaongkir import RajaOngkirError
from .services.shipping_service import ShippingService, StoreConfigService

logger = logging.getLogger(__name__)

SERVICE_ERRORS = (ObjectDoesNotExist, PermissionDenied, ValidationError)


def _upstream_error(e: RajaOngkirError):
    if e.status_code == 429:
        return APIResponse.service_unavailable(e.message)
    return APIResponse.bad_gateway(e.message)


@csrf_exempt
@require_http_methods(["GET"])
def provinces(request):
    try:
        return APIResponse.success({"provinces": ShippingService.client().get_provinces()})
    except RajaOngkirError as e:
        return _upstream_error(e)
    except Exception as e:
        logger.error(f"Provinces error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
def destinations(request):
    """Domestic destination search (city/district/subdistrict)"""
    try:
        search = request.GET.get("search", "").strip()
        province_id = request.GET.get("province")
        if len(search) < 3 and not province_id:
            return APIResponse.bad_request("search must be at least 3 characters")

        results = ShippingService.client().search_destinations(
            search=search,
            limit=parse_int(request.GET.get("limit"), 50, minimum=1, maximum=100),
            offset=parse_int(request.GET.get("offset"), 0, minimum=0),
            province_id=province_id,
        )
        return APIResponse.success({"destinations": results})

    except ValueError:
        return APIResponse.bad_request("Invalid query parameter")
    except RajaOngkirError as e:
        return _upstream_error(e)
    except Exception as e:
        logger.error(f"Destination search error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
def check_international(request):
    try:
        name = request.GET.get("destination", "").strip()
        if not name:
            return APIResponse.bad_request("destination is required")
        is_international = ShippingService.client().is_international(name)
        return APIResponse.success({"is_international": is_international})

    except RajaOngkirError as e:
        return _upstream_error(e)
    except Exception as e:
        logger.error(f"International check error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
def couriers(request):
    try:
        is_international = request.GET.get("international", "").lower() == "true"
        plan = request.GET.get("plan") or None
        return APIResponse.success(
            {
                "couriers": ShippingService.couriers(is_international, plan),
                "is_international": is_international,
            }
        )
    except Exception as e:
        logger.error(f"Couriers error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@jwt_required
@json_request_required
def cart_quote(request):
    """Shipping options for the current cart to a destination"""
    try:
        data = request.json_data
        cart = CartService.get_cart(request.user)
        lines = ShippingService.cart_lines(cart)
        if not lines:
            return APIResponse.bad_request("Cart is empty")

        quote = ShippingService.quote(lines, data.get("destination_id"), data.get("courier"))
        return APIResponse.success(quote)

    except RajaOngkirError as e:
        return _upstream_error(e)
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Cart quote error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET", "PUT"])
@json_request_required
def store_config(request):
    """Public store profile; PUT is admin only"""
    try:
        if request.method == "GET":
            return APIResponse.success({"config": StoreConfigService.get_active().to_dict()})
        return _update_store_config(request)

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Store config error: {str(e)}")
        return APIResponse.server_error()


@role_required("admin")
def _update_store_config(request):
    config = StoreConfigService.update(request.json_data, request.user)
    return APIResponse.success({"config": config.to_dict()}, "Store configuration updated")
