"""
returns/views.py

Customer return requests and back-office review
"""

import logging

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from tokobangunan.utils.responses import APIResponse, paginate_meta, parse_int
from users.decorators.auth import json_request_required, jwt_required, role_required
from .services.return_service import AdminReturnService, ReturnService

logger = logging.getLogger(__name__)

SERVICE_ERRORS = (ObjectDoesNotExist, PermissionDenied, ValidationError)


# ==================== CUSTOMER ====================


@csrf_exempt
@require_http_methods(["GET", "POST"])
@jwt_required
@json_request_required
def returns(request):
    """GET: own return requests. POST: request a return for a delivered order."""
    try:
        if request.method == "POST":
            return_request = ReturnService.create_return(request.user, request.json_data)
            return APIResponse.created(
                {"return": return_request.to_dict()}, "Return request submitted"
            )

        return APIResponse.success(
            {"returns": [r.to_dict() for r in ReturnService.get_user_returns(request.user)]}
        )

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Returns error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
@jwt_required
def check_return(request, order_number):
    try:
        return APIResponse.success(ReturnService.check_return(request.user, order_number))
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Check return error: {str(e)}")
        return APIResponse.server_error()


# ==================== BACK-OFFICE ====================


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def admin_returns(request):
    try:
        page = parse_int(request.GET.get("page"), 1, minimum=1)
        limit = parse_int(request.GET.get("limit"), 10, minimum=1, maximum=100)
        return_list, total = AdminReturnService.get_returns(
            status=request.GET.get("status"),
            search=request.GET.get("search", "").strip(),
            page=page,
            limit=limit,
        )
        return APIResponse.success(
            {
                "returns": [r.to_dict() for r in return_list],
                "stats": AdminReturnService.get_stats(),
                "pagination": paginate_meta(page, limit, total),
            }
        )

    except ValueError:
        return APIResponse.bad_request("Invalid query parameter")
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Admin returns error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@role_required("admin")
@json_request_required
def admin_return_action(request, return_number, action):
    """approve | reject | complete"""
    try:
        data = request.json_data
        if action == "approve":
            return_request = AdminReturnService.approve(
                return_number, request.user, data.get("notes", "")
            )
            message = "Return request approved"
        elif action == "reject":
            return_request = AdminReturnService.reject(
                return_number, data.get("rejection_reason") or data.get("reason"), request.user
            )
            message = "Return request rejected"
        elif action == "complete":
            return_request = AdminReturnService.complete(return_number, request.user)
            message = "Return completed"
        else:
            return APIResponse.not_found(f"Unknown action: {action}")

        return APIResponse.success({"return": return_request.to_dict()}, message)

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Return {action} error: {str(e)}")
        return APIResponse.server_error()
