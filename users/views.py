"""
users/views.py

Thin views that delegate business logic to services
"""

import logging

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from tokobangunan.utils.responses import APIResponse, paginate_meta, parse_int
from .decorators.auth import jwt_required, role_required, json_request_required
from .services.address_service import AddressService
from .services.auth_service import AuthService
from .services.customer_service import CustomerService, TeamService
from .utils.validators import UserValidators

logger = logging.getLogger(__name__)

SERVICE_ERRORS = (ObjectDoesNotExist, PermissionDenied, ValidationError)


# ==================== AUTHENTICATION VIEWS ====================


@csrf_exempt
@require_http_methods(["POST"])
@json_request_required
def register_customer(request):
    """Customer self-registration endpoint"""
    try:
        user_data, errors = AuthService.register_customer(request.json_data)
        if errors:
            return APIResponse.validation_error(errors)

        return APIResponse.created(user_data, "Registration successful")

    except Exception as e:
        logger.error(f"Customer registration view error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@role_required("admin")
@json_request_required
def register_team_member(request):
    """Admin creates a staff/admin account"""
    try:
        user_data, errors = AuthService.register_team_member(
            request.json_data, request.user
        )
        if errors:
            return APIResponse.validation_error(errors)

        return APIResponse.created(user_data, "User created successfully")

    except Exception as e:
        logger.error(f"Team registration error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@json_request_required
def login(request):
    """User login"""
    try:
        data = request.json_data

        for field in ["email", "password"]:
            if not data.get(field):
                return APIResponse.bad_request(f"{field} is required")

        auth_data, error = AuthService.authenticate_user(
            data["email"], data["password"], request
        )
        if error == "Account is suspended":
            return APIResponse.forbidden(error)
        if error:
            return APIResponse.unauthorized(error)

        return APIResponse.success(auth_data, "Login successful")

    except Exception as e:
        logger.error(f"Login view error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@jwt_required
def logout(request):
    """Stateless logout; clients discard their tokens"""
    return APIResponse.success(message="Logged out successfully")


@csrf_exempt
@require_http_methods(["POST"])
@json_request_required
def refresh_token(request):
    """Refresh access token using refresh token"""
    try:
        token = request.json_data.get("refresh_token")
        if not token:
            return APIResponse.bad_request("refresh_token is required")

        tokens, error = AuthService.refresh_tokens(token)
        if error:
            return APIResponse.unauthorized(error)

        return APIResponse.success(tokens, "Tokens refreshed successfully")

    except Exception as e:
        logger.error(f"Token refresh error: {str(e)}")
        return APIResponse.server_error()


# ==================== USER PROFILE VIEWS ====================


@csrf_exempt
@require_http_methods(["GET", "PUT", "PATCH"])
@jwt_required
@json_request_required
def profile(request):
    """Get or update the current user's profile"""
    try:
        user = request.user

        if request.method == "GET":
            data = user.to_dict()
            default_address = user.addresses.filter(is_default=True).first()
            data["default_address"] = default_address.to_dict() if default_address else None
            return APIResponse.success(data)

        data = request.json_data
        errors = {}

        if "phone" in data and data["phone"]:
            is_valid, error = UserValidators.validate_phone_number(data["phone"].strip())
            if not is_valid:
                errors["phone"] = error
        if errors:
            return APIResponse.validation_error(errors)

        updated = []
        for field in ["first_name", "last_name", "username", "phone"]:
            if field in data:
                setattr(user, field, UserValidators.sanitize_string(data[field] or "", 150))
                updated.append(field)

        if updated:
            user.save(update_fields=updated + ["updated_at"])

        return APIResponse.success(user.to_dict(), "Profile updated successfully")

    except Exception as e:
        logger.error(f"Profile error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@jwt_required
@json_request_required
def change_password(request):
    try:
        data = request.json_data
        for field in ["current_password", "new_password"]:
            if not data.get(field):
                return APIResponse.bad_request(f"{field} is required")

        errors = AuthService.change_password(
            request.user, data["current_password"], data["new_password"]
        )
        if errors:
            return APIResponse.validation_error(errors)

        return APIResponse.success(message="Password changed successfully")

    except Exception as e:
        logger.error(f"Change password error: {str(e)}")
        return APIResponse.server_error()


# ==================== ADDRESS BOOK ====================


@csrf_exempt
@require_http_methods(["GET", "POST"])
@jwt_required
@json_request_required
def addresses(request):
    """List or add saved addresses"""
    try:
        if request.method == "GET":
            items = AddressService.get_user_addresses(request.user)
            return APIResponse.success({"addresses": [a.to_dict() for a in items]})

        address = AddressService.add_address(request.user, request.json_data)
        return APIResponse.created({"address": address.to_dict()}, "Address added")

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Address list/create error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["PUT", "PATCH", "DELETE"])
@jwt_required
@json_request_required
def address_detail(request, address_id):
    """Update or delete a saved address"""
    try:
        if request.method == "DELETE":
            AddressService.delete_address(request.user, address_id)
            return APIResponse.success(message="Address deleted")

        address = AddressService.update_address(
            request.user, address_id, request.json_data
        )
        return APIResponse.success({"address": address.to_dict()}, "Address updated")

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Address update/delete error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@jwt_required
def set_default_address(request, address_id):
    try:
        address = AddressService.set_default_address(request.user, address_id)
        return APIResponse.success({"address": address.to_dict()}, "Default address set")

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Set default address error: {str(e)}")
        return APIResponse.server_error()


# ==================== ADMIN: CUSTOMERS ====================


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def customer_list(request):
    """Back-office: paginated customers with order totals"""
    try:
        page = parse_int(request.GET.get("page"), 1, minimum=1)
        limit = parse_int(request.GET.get("limit"), 20, minimum=1, maximum=100)

        customers, total = CustomerService.get_customers(
            search=request.GET.get("search", "").strip(),
            status=request.GET.get("status", "all"),
            page=page,
            limit=limit,
        )

        return APIResponse.success(
            {"customers": customers, "pagination": paginate_meta(page, limit, total)}
        )

    except ValueError:
        return APIResponse.bad_request("Invalid query parameter")
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Customer list error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def customer_detail(request, customer_id):
    try:
        customer = CustomerService.get_customer(customer_id)
        return APIResponse.success({"customer": CustomerService.format_customer(customer)})

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Customer detail error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@role_required("admin")
@json_request_required
def suspend_customer(request, customer_id):
    try:
        customer = CustomerService.suspend_customer(
            customer_id, request.json_data.get("reason", ""), request.user
        )
        return APIResponse.success({"customer": customer.to_dict()}, "Customer suspended")

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Suspend customer error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@role_required("admin")
def reactivate_customer(request, customer_id):
    try:
        customer = CustomerService.reactivate_customer(customer_id, request.user)
        return APIResponse.success({"customer": customer.to_dict()}, "Customer reactivated")

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Reactivate customer error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def customer_stats(request):
    try:
        return APIResponse.success(CustomerService.get_customer_stats())
    except Exception as e:
        logger.error(f"Customer stats error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def customer_order_stats(request, customer_id):
    try:
        return APIResponse.success(CustomerService.get_customer_order_stats(customer_id))
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Customer order stats error: {str(e)}")
        return APIResponse.server_error()


# ==================== ADMIN: TEAM ====================


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin")
def team_list(request):
    try:
        members = TeamService.get_team(
            search=request.GET.get("search", "").strip(),
            role=request.GET.get("role") or None,
        )
        return APIResponse.success({"members": members})
    except Exception as e:
        logger.error(f"Team list error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@role_required("admin")
@json_request_required
def team_member_status(request, member_id):
    """Activate or deactivate a staff/admin account"""
    try:
        is_active = request.json_data.get("is_active")
        if not isinstance(is_active, bool):
            return APIResponse.bad_request("is_active must be a boolean")

        member = TeamService.set_active(member_id, is_active, request.user)
        return APIResponse.success({"member": member.to_dict()}, "Team member updated")

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Team member status error: {str(e)}")
        return APIResponse.server_error()
