"""
tokobangunan/utils/responses.py

Standardized HTTP responses for consistent API behavior
"""

import logging
from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.http import JsonResponse

logger = logging.getLogger(__name__)


class APIResponse:
    """Factory for standardized API responses"""

    @staticmethod
    def _build_response(
        success: bool,
        message: str,
        data=None,
        errors: dict = None,
        status_code: int = 200,
    ) -> JsonResponse:
        """Build standardized response object"""
        response = {"success": success, "message": message}

        # Empty payloads are left out of the envelope
        if data:
            response["data"] = data
        if errors:
            response["errors"] = errors

        return JsonResponse(response, status=status_code, safe=False)

    @staticmethod
    def success(data=None, message: str = "Success") -> JsonResponse:
        return APIResponse._build_response(True, message, data=data, status_code=200)

    @staticmethod
    def created(data=None, message: str = "Resource created") -> JsonResponse:
        return APIResponse._build_response(True, message, data=data, status_code=201)

    @staticmethod
    def bad_request(message: str = "Bad request", errors: dict = None) -> JsonResponse:
        return APIResponse._build_response(
            False, message, errors=errors, status_code=400
        )

    @staticmethod
    def unauthorized(message: str = "Authentication required") -> JsonResponse:
        return APIResponse._build_response(False, message, status_code=401)

    @staticmethod
    def forbidden(message: str = "Insufficient permissions") -> JsonResponse:
        return APIResponse._build_response(False, message, status_code=403)

    @staticmethod
    def not_found(message: str = "Resource not found") -> JsonResponse:
        return APIResponse._build_response(False, message, status_code=404)

    @staticmethod
    def conflict(
        message: str = "Resource conflict", errors: dict = None
    ) -> JsonResponse:
        return APIResponse._build_response(
            False, message, errors=errors, status_code=409
        )

    @staticmethod
    def validation_error(errors: dict) -> JsonResponse:
        return APIResponse._build_response(
            False, "Validation failed", errors=errors, status_code=422
        )

    @staticmethod
    def server_error(message: str = "Internal server error") -> JsonResponse:
        return APIResponse._build_response(False, message, status_code=500)

    @staticmethod
    def bad_gateway(message: str = "Upstream service error") -> JsonResponse:
        return APIResponse._build_response(False, message, status_code=502)

    @staticmethod
    def service_unavailable(
        message: str = "Service temporarily unavailable",
    ) -> JsonResponse:
        return APIResponse._build_response(False, message, status_code=503)

    @staticmethod
    def from_exception(exc: Exception) -> JsonResponse:
        """Translate a service-layer exception into a response"""
        if isinstance(exc, ObjectDoesNotExist):
            return APIResponse.not_found(str(exc) or "Resource not found")

        if isinstance(exc, PermissionDenied):
            return APIResponse.forbidden(str(exc) or "Insufficient permissions")

        if isinstance(exc, ValidationError):
            if hasattr(exc, "error_dict"):
                return APIResponse.validation_error(
                    {field: errors[0] for field, errors in exc.message_dict.items()}
                )
            message = exc.messages[0] if exc.messages else "Bad request"
            if getattr(exc, "code", None) == "conflict":
                return APIResponse.conflict(message)
            return APIResponse.bad_request(message)

        logger.error(f"Unhandled service error: {str(exc)}")
        return APIResponse.server_error()


def paginate_meta(page: int, limit: int, total: int) -> dict:
    """Pagination block shared by list endpoints"""
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit if limit else 0,
    }


def parse_int(value, default: int, minimum: int = None, maximum: int = None) -> int:
    """Parse an integer query parameter, clamped to the given bounds"""
    if value in (None, ""):
        result = default
    else:
        result = int(value)

    if minimum is not None:
        result = max(result, minimum)
    if maximum is not None:
        result = min(result, maximum)
    return result
