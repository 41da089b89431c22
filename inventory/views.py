"""
inventory/views.py

Back-office stock movement endpoints
"""

import logging

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from tokobangunan.utils.responses import APIResponse
from users.decorators.auth import json_request_required, role_required
from .models import StockMovement
from .services.stock_service import StockService

logger = logging.getLogger(__name__)

SERVICE_ERRORS = (ObjectDoesNotExist, PermissionDenied, ValidationError)


@csrf_exempt
@require_http_methods(["GET", "POST"])
@role_required("admin", "staff")
@json_request_required
def movements(request):
    """List movements (GET) or record a manual adjustment (POST)"""
    try:
        if request.method == "GET":
            filters = {
                key: request.GET.get(key)
                for key in [
                    "product_id",
                    "product_code",
                    "movement_type",
                    "reference_type",
                    "date_from",
                    "date_to",
                    "limit",
                    "offset",
                ]
            }
            return APIResponse.success(StockService.get_movements(filters))

        data = request.json_data
        for field in ["product_id", "movement_type", "quantity", "reason"]:
            if data.get(field) in (None, ""):
                return APIResponse.bad_request(f"{field} is required")

        movement = StockService.record_movement(
            product_id=data["product_id"],
            movement_type=data["movement_type"],
            quantity=data["quantity"],
            reason=data["reason"],
            reference_type=StockMovement.REFERENCE_ADJUSTMENT,
            reference_id=data.get("reference_id", ""),
            performed_by=request.user,
            notes=data.get("notes", ""),
        )
        return APIResponse.created({"movement": movement.to_dict()}, "Stock movement recorded")

    except ValueError:
        return APIResponse.bad_request("Invalid query parameter")
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Stock movements error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def product_movements(request, product_id):
    try:
        return APIResponse.success(
            {"movements": StockService.get_product_movements(product_id)}
        )
    except Exception as e:
        logger.error(f"Product movements error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def movement_summary(request):
    try:
        summary = StockService.get_summary(
            request.GET.get("date_from"), request.GET.get("date_to")
        )
        return APIResponse.success(summary)
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Movement summary error: {str(e)}")
        return APIResponse.server_error()
