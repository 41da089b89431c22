"""
notifications/views.py
"""

import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from tokobangunan.utils.responses import APIResponse
from users.decorators.auth import json_request_required, jwt_required, role_required
from .services.notification_service import NotificationService

logger = logging.getLogger(__name__)

SERVICE_ERRORS = (ObjectDoesNotExist, PermissionDenied, ValidationError)


def _list_params(request):
    return {
        "limit": request.GET.get("limit"),
        "offset": request.GET.get("offset"),
        "unread_only": request.GET.get("unread_only", "").lower() == "true",
    }


@csrf_exempt
@require_http_methods(["GET"])
@jwt_required
def notification_list(request):
    """Current user's notifications"""
    try:
        data = NotificationService.get_notifications(request.user, **_list_params(request))
        return APIResponse.success(data)
    except ValueError:
        return APIResponse.bad_request("Invalid query parameter")
    except Exception as e:
        logger.error(f"Notification list error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def admin_notification_list(request):
    """Back-office notifications of the requesting admin/staff member"""
    try:
        data = NotificationService.get_notifications(request.user, **_list_params(request))
        return APIResponse.success(data)
    except ValueError:
        return APIResponse.bad_request("Invalid query parameter")
    except Exception as e:
        logger.error(f"Admin notification list error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
@jwt_required
def unread_count(request):
    try:
        return APIResponse.success(
            {"count": NotificationService.get_unread_count(request.user)}
        )
    except Exception as e:
        logger.error(f"Unread count error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@jwt_required
def mark_as_read(request, notification_id):
    try:
        notification = NotificationService.mark_as_read(request.user, notification_id)
        return APIResponse.success({"notification": notification.to_dict()})
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Mark as read error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@jwt_required
def mark_all_as_read(request):
    try:
        updated = NotificationService.mark_all_as_read(request.user)
        return APIResponse.success({"updated": updated}, "All notifications marked as read")
    except Exception as e:
        logger.error(f"Mark all as read error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["DELETE"])
@jwt_required
def delete_notification(request, notification_id):
    try:
        NotificationService.delete(request.user, notification_id)
        return APIResponse.success(message="Notification deleted")
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Delete notification error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@role_required("admin")
@json_request_required
def create_notification(request):
    """Admin sends a notification to one user"""
    try:
        data = request.json_data
        for field in ["user_id", "type", "title", "message"]:
            if not data.get(field):
                return APIResponse.bad_request(f"{field} is required")

        User = get_user_model()
        try:
            recipient = User.objects.get(id=data["user_id"])
        except (User.DoesNotExist, ValueError, ValidationError):
            return APIResponse.not_found("User not found")

        notification = NotificationService.create(
            recipient,
            data["type"],
            data["title"],
            data["message"],
            data=data.get("data") or {},
            link=data.get("link", ""),
        )
        return APIResponse.created({"notification": notification.to_dict()})

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Create notification error: {str(e)}")
        return APIResponse.server_error()
