"""
orders/views.py

Customer orders and back-office order processing
"""

import logging

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from shipping.rajaongkir import RajaOngkirError
from tokobangunan.utils.responses import APIResponse, paginate_meta, parse_int
from users.decorators.auth import json_request_required, jwt_required, role_required
from .services.order_service import AdminOrderService, OrderService

logger = logging.getLogger(__name__)

SERVICE_ERRORS = (ObjectDoesNotExist, PermissionDenied, ValidationError)


# ==================== CUSTOMER ====================


@csrf_exempt
@require_http_methods(["GET", "POST"])
@jwt_required
@json_request_required
def orders(request):
    """GET: own orders, newest first. POST: checkout."""
    try:
        if request.method == "POST":
            order = OrderService.create_order(request.user, request.json_data)
            return APIResponse.created({"order": order.to_dict()}, "Order created")

        page = parse_int(request.GET.get("page"), 1, minimum=1)
        limit = parse_int(request.GET.get("limit"), 10, minimum=1, maximum=50)
        order_list, total = OrderService.get_user_orders(
            request.user, status=request.GET.get("status"), page=page, limit=limit
        )
        return APIResponse.success(
            {
                "orders": [order.to_dict() for order in order_list],
                "pagination": paginate_meta(page, limit, total),
            }
        )

    except ValueError:
        return APIResponse.bad_request("Invalid query parameter")
    except RajaOngkirError as e:
        return APIResponse.bad_gateway(e.message)
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Orders error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
@jwt_required
def order_detail(request, order_number):
    try:
        order = OrderService.get_user_order(request.user, order_number)
        return APIResponse.success({"order": order.to_dict()})
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Order detail error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@jwt_required
@json_request_required
def cancel_order(request, order_number):
    try:
        order = OrderService.cancel_order(
            request.user, order_number, request.json_data.get("reason", "")
        )
        return APIResponse.success({"order": order.to_dict()}, "Order cancelled")
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Cancel order error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@jwt_required
def confirm_received(request, order_number):
    try:
        order = OrderService.confirm_received(request.user, order_number)
        return APIResponse.success({"order": order.to_dict()}, "Order completed")
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Confirm received error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
@jwt_required
def order_expiry(request, order_number):
    try:
        return APIResponse.success(OrderService.check_expiry(request.user, order_number))
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Order expiry error: {str(e)}")
        return APIResponse.server_error()


# ==================== BACK-OFFICE ====================


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def admin_orders(request):
    try:
        page = parse_int(request.GET.get("page"), 1, minimum=1)
        limit = parse_int(request.GET.get("limit"), 20, minimum=1, maximum=100)
        order_list, total = AdminOrderService.get_orders(
            status=request.GET.get("status"),
            payment_status=request.GET.get("payment_status"),
            search=request.GET.get("search", "").strip(),
            page=page,
            limit=limit,
        )
        return APIResponse.success(
            {
                "orders": [order.to_dict() for order in order_list],
                "pagination": paginate_meta(page, limit, total),
            }
        )

    except ValueError:
        return APIResponse.bad_request("Invalid query parameter")
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Admin orders error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def admin_order_stats(request):
    try:
        return APIResponse.success({"stats": AdminOrderService.get_statistics()})
    except Exception as e:
        logger.error(f"Order statistics error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def admin_order_detail(request, order_number):
    try:
        return APIResponse.success({"order": AdminOrderService.get_order(order_number).to_dict()})
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Admin order detail error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@role_required("admin", "staff")
@json_request_required
def admin_order_action(request, order_number, action):
    """process | ship | deliver | cancel"""
    try:
        data = request.json_data
        if action == "process":
            order = AdminOrderService.process_order(order_number, request.user)
            message = "Order is being processed"
        elif action == "ship":
            order = AdminOrderService.ship_order(order_number, data, request.user)
            message = "Order shipped"
        elif action == "deliver":
            order = AdminOrderService.confirm_delivered(order_number, request.user)
            message = "Order delivered"
        elif action == "cancel":
            order = AdminOrderService.cancel_order(
                order_number, data.get("reason", ""), request.user
            )
            message = "Order cancelled"
        else:
            return APIResponse.not_found(f"Unknown action: {action}")

        return APIResponse.success({"order": order.to_dict()}, message)

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Order {action} error: {str(e)}")
        return APIResponse.server_error()
