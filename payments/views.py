"""
payments/views.py

Midtrans notification endpoint and customer payment actions
"""

import json
import logging

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from tokobangunan.utils.responses import APIResponse
from users.decorators.auth import jwt_required
from .midtrans import MidtransError
from .services.payment_service import PaymentService

logger = logging.getLogger(__name__)

SERVICE_ERRORS = (ObjectDoesNotExist, PermissionDenied, ValidationError)


@csrf_exempt
@require_http_methods(["POST"])
def midtrans_notification(request):
    """Midtrans HTTP notification; authenticated by its signature only"""
    try:
        payload = json.loads(request.body or b"{}")
    except json.JSONDecodeError:
        return APIResponse.bad_request("Invalid JSON data")
    if not isinstance(payload, dict):
        return APIResponse.bad_request("JSON body must be an object")

    try:
        order = PaymentService.handle_notification(payload)
        return APIResponse.success(
            {
                "order_number": order.order_number,
                "payment_status": order.payment_status,
                "order_status": order.status,
            },
            "Notification processed successfully",
        )
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Midtrans notification error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET", "POST"])
@jwt_required
def snap_token(request, order_number):
    try:
        return APIResponse.success(PaymentService.get_snap_token(request.user, order_number))
    except MidtransError as e:
        return APIResponse.bad_gateway(e.message)
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Snap token error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@jwt_required
def sync_payment_status(request, order_number):
    try:
        order = PaymentService.sync_status(request.user, order_number)
        return APIResponse.success({"order": order.to_dict()}, "Payment status updated")
    except MidtransError as e:
        return APIResponse.bad_gateway(e.message)
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Payment sync error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@jwt_required
def simulate_payment(request, order_number):
    try:
        order = PaymentService.simulate_success(request.user, order_number)
        return APIResponse.success({"order": order.to_dict()}, "Payment simulated")
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Payment simulation error: {str(e)}")
        return APIResponse.server_error()
