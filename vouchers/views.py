"""
vouchers/views.py
"""

import logging
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from tokobangunan.utils.responses import APIResponse, paginate_meta, parse_int
from users.decorators.auth import json_request_required, jwt_required, role_required
from .services.voucher_service import VoucherService

logger = logging.getLogger(__name__)

SERVICE_ERRORS = (ObjectDoesNotExist, PermissionDenied, ValidationError)


@csrf_exempt
@require_http_methods(["POST"])
@jwt_required
@json_request_required
def validate_voucher(request):
    """Preview the discount a code grants for a subtotal"""
    try:
        data = request.json_data
        if not data.get("code"):
            return APIResponse.bad_request("code is required")
        try:
            subtotal = Decimal(str(data.get("subtotal", 0)))
        except InvalidOperation:
            return APIResponse.bad_request("subtotal must be a number")
        if not subtotal.is_finite() or subtotal < 0:
            return APIResponse.bad_request("subtotal must not be negative")

        voucher, discount = VoucherService.validate(data["code"], subtotal)
        return APIResponse.success(
            {
                "voucher": {
                    "code": voucher.code,
                    "name": voucher.name,
                    "type": voucher.type,
                    "value": float(voucher.value),
                    "discount": float(discount),
                }
            },
            "Voucher is valid",
        )

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Validate voucher error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET", "POST"])
@role_required("admin", "staff")
@json_request_required
def voucher_list(request):
    """Back-office list (GET) or admin create (POST)"""
    try:
        if request.method == "POST":
            if not request.user.is_admin():
                return APIResponse.forbidden("Only admin can create vouchers")
            voucher = VoucherService.create_voucher(request.json_data, request.user)
            return APIResponse.created({"voucher": voucher.to_dict()}, "Voucher created")

        page = parse_int(request.GET.get("page"), 1, minimum=1)
        limit = parse_int(request.GET.get("limit"), 10, minimum=1, maximum=100)
        vouchers, total = VoucherService.get_vouchers(
            search=request.GET.get("search", "").strip(),
            status=request.GET.get("status", "all"),
            voucher_type=request.GET.get("type", "all"),
            page=page,
            limit=limit,
        )
        return APIResponse.success(
            {"vouchers": vouchers, "pagination": paginate_meta(page, limit, total)}
        )

    except ValueError:
        return APIResponse.bad_request("Invalid query parameter")
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Voucher list error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def voucher_stats(request):
    try:
        return APIResponse.success({"stats": VoucherService.get_stats()})
    except Exception as e:
        logger.error(f"Voucher stats error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["PUT", "PATCH", "DELETE"])
@role_required("admin")
@json_request_required
def voucher_detail(request, voucher_id):
    """Update, or soft-delete (deactivate) a voucher"""
    try:
        if request.method == "DELETE":
            VoucherService.delete_voucher(voucher_id)
            return APIResponse.success(message="Voucher deactivated")

        voucher = VoucherService.update_voucher(voucher_id, request.json_data, request.user)
        return APIResponse.success({"voucher": voucher.to_dict()}, "Voucher updated")

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Voucher detail error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@role_required("admin")
def toggle_voucher(request, voucher_id):
    try:
        voucher = VoucherService.toggle_status(voucher_id)
        return APIResponse.success({"voucher": voucher.to_dict()}, "Voucher status updated")

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Toggle voucher error: {str(e)}")
        return APIResponse.server_error()
