"""
notifications/services/notification_service.py
"""

import logging
from datetime import timedelta
from typing import Dict

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..models import Notification

logger = logging.getLogger(__name__)

User = get_user_model()


class NotificationService:
    """Create, list and maintain in-app notifications"""

    MAX_LIMIT = 50
    DEFAULT_LIMIT = 20

    @staticmethod
    def create(user, notification_type: str, title: str, message: str,
               data: Dict = None, link: str = "") -> Notification:
        if notification_type not in dict(Notification.TYPE_CHOICES):
            raise ValidationError({"type": f"Unknown notification type: {notification_type}"})

        return Notification.objects.create(
            user=user,
            type=notification_type,
            title=title,
            message=message,
            data=data or {},
            link=link,
        )

    @staticmethod
    @transaction.atomic
    def notify_back_office(notification_type: str, title: str, message: str,
                           data: Dict = None, link: str = "") -> int:
        """Send the same notification to every active admin and staff member"""
        recipients = list(User.objects.back_office())
        for recipient in recipients:
            NotificationService.create(
                recipient, notification_type, title, message, data=data, link=link
            )

        logger.info(f"{notification_type} sent to {len(recipients)} back-office users")
        return len(recipients)

    @staticmethod
    def get_notifications(user, limit=None, offset=0, unread_only=False) -> Dict:
        limit = min(max(int(limit or NotificationService.DEFAULT_LIMIT), 1),
                    NotificationService.MAX_LIMIT)
        offset = max(int(offset or 0), 0)

        queryset = Notification.objects.filter(user=user)
        if unread_only:
            queryset = queryset.filter(is_read=False)

        total = queryset.count()
        items = queryset.order_by("-created_at")[offset : offset + limit]

        return {
            "notifications": [n.to_dict() for n in items],
            "total": total,
            "unread_count": NotificationService.get_unread_count(user),
            "has_more": offset + limit < total,
        }

    @staticmethod
    def get_unread_count(user) -> int:
        return Notification.objects.filter(user=user, is_read=False).count()

    @staticmethod
    def _get_own(user, notification_id) -> Notification:
        try:
            notification = Notification.objects.get(id=notification_id)
        except (Notification.DoesNotExist, ValueError, ValidationError):
            raise Notification.DoesNotExist("Notification not found")

        if notification.user_id != user.id:
            raise Notification.DoesNotExist("Notification not found")
        return notification

    @staticmethod
    def mark_as_read(user, notification_id) -> Notification:
        notification = NotificationService._get_own(user, notification_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = timezone.now()
            notification.save(update_fields=["is_read", "read_at"])
        return notification

    @staticmethod
    def mark_all_as_read(user) -> int:
        return Notification.objects.filter(user=user, is_read=False).update(
            is_read=True, read_at=timezone.now()
        )

    @staticmethod
    def delete(user, notification_id) -> None:
        NotificationService._get_own(user, notification_id).delete()

    @staticmethod
    def cleanup(days: int = None) -> int:
        """Delete notifications older than the retention window"""
        days = days if days is not None else settings.NOTIFICATION_RETENTION_DAYS
        cutoff = timezone.now() - timedelta(days=days)
        deleted, _ = Notification.objects.filter(created_at__lt=cutoff).delete()
        logger.info(f"Deleted {deleted} notifications older than {days} days")
        return deleted
