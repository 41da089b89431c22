"""
users/decorators/auth.py

Authentication and authorization decorators for views
"""

import json
from functools import wraps
from django.views.decorators.csrf import csrf_exempt

from users.utils.token_utils import extract_token_from_header, validate_jwt_token
from tokobangunan.utils.responses import APIResponse
from ..models.user import User


def jwt_required(view_func):
    """
    Decorator to require valid JWT token for view access
    Usage: @jwt_required
    """

    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        token = extract_token_from_header(request.headers.get("Authorization", ""))
        if not token:
            return APIResponse.unauthorized("Bearer token required")

        is_validated, payload = validate_jwt_token(token)
        if not is_validated:
            return APIResponse.unauthorized(payload)

        if payload.get("type") != "access":
            return APIResponse.unauthorized("Invalid token type")

        try:
            user = User.objects.get(id=payload["user_id"])
        except (User.DoesNotExist, ValueError):
            return APIResponse.unauthorized("User not found")

        if not user.is_active:
            return APIResponse.forbidden("Account is suspended")

        # Attach user to request for easy access in views
        request.user = user
        request.token_payload = payload

        return view_func(request, *args, **kwargs)

    return wrapper


def role_required(*allowed_roles):
    """
    Decorator to require specific user role(s); implies jwt_required
    Usage: @role_required('admin', 'staff')
    """

    def decorator(view_func):
        @wraps(view_func)
        @jwt_required
        def wrapper(request, *args, **kwargs):
            user = request.user

            if user.role not in allowed_roles:
                return APIResponse.forbidden(
                    f"Required role: {', '.join(allowed_roles)}. Your role: {user.role}"
                )

            return view_func(request, *args, **kwargs)

        return wrapper

    return decorator


def json_request_required(view_func):
    """
    Decorator for views that require JSON request body
    """

    @wraps(view_func)
    @csrf_exempt
    def wrapper(request, *args, **kwargs):
        request.json_data = {}
        if request.method in ["POST", "PUT", "PATCH"]:
            if request.body and request.content_type != "application/json":
                return APIResponse.bad_request("Content-Type must be application/json")

            try:
                if request.body:
                    request.json_data = json.loads(request.body)
            except json.JSONDecodeError:
                return APIResponse.bad_request("Invalid JSON data")

            if not isinstance(request.json_data, dict):
                return APIResponse.bad_request("JSON body must be an object")

        return view_func(request, *args, **kwargs)

    return wrapper
