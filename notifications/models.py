"""
notifications/models.py

In-app notifications for customers and back-office users
"""

import uuid
from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _


class Notification(models.Model):
    """A single in-app notification addressed to one user"""

    TYPE_NEW_PAID_ORDER = "new_paid_order"
    TYPE_NEW_RETURN_REQUEST = "new_return_request"
    TYPE_LOW_STOCK_ALERT = "low_stock_alert"
    TYPE_ORDER_CONFIRMED = "order_confirmed"
    TYPE_ORDER_SHIPPED = "order_shipped"
    TYPE_ORDER_DELIVERED = "order_delivered"
    TYPE_ORDER_CANCELLED = "order_cancelled"
    TYPE_ORDER_COMPLETED = "order_completed"
    TYPE_RETURN_APPROVED = "return_approved"
    TYPE_RETURN_REJECTED = "return_rejected"
    TYPE_RETURN_COMPLETED = "return_completed"

    TYPE_CHOICES = [
        (TYPE_NEW_PAID_ORDER, "New Paid Order"),
        (TYPE_NEW_RETURN_REQUEST, "New Return Request"),
        (TYPE_LOW_STOCK_ALERT, "Low Stock Alert"),
        (TYPE_ORDER_CONFIRMED, "Order Confirmed"),
        (TYPE_ORDER_SHIPPED, "Order Shipped"),
        (TYPE_ORDER_DELIVERED, "Order Delivered"),
        (TYPE_ORDER_CANCELLED, "Order Cancelled"),
        (TYPE_ORDER_COMPLETED, "Order Completed"),
        (TYPE_RETURN_APPROVED, "Return Approved"),
        (TYPE_RETURN_REJECTED, "Return Rejected"),
        (TYPE_RETURN_COMPLETED, "Return Completed"),
    ]

    # (icon, color) shown by the frontend for each type
    PRESENTATION = {
        TYPE_NEW_PAID_ORDER: ("shopping-cart", "blue"),
        TYPE_NEW_RETURN_REQUEST: ("rotate-ccw", "orange"),
        TYPE_LOW_STOCK_ALERT: ("alert-triangle", "red"),
        TYPE_ORDER_CONFIRMED: ("package", "blue"),
        TYPE_ORDER_SHIPPED: ("truck", "purple"),
        TYPE_ORDER_DELIVERED: ("check-circle", "green"),
        TYPE_ORDER_CANCELLED: ("x-circle", "red"),
        TYPE_ORDER_COMPLETED: ("check-circle", "green"),
        TYPE_RETURN_APPROVED: ("check-circle", "green"),
        TYPE_RETURN_REJECTED: ("x-circle", "red"),
        TYPE_RETURN_COMPLETED: ("rotate-ccw", "green"),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    type = models.CharField(_("type"), max_length=30, choices=TYPE_CHOICES)
    title = models.CharField(_("title"), max_length=200)
    message = models.TextField(_("message"))
    icon = models.CharField(_("icon"), max_length=30)
    color = models.CharField(_("color"), max_length=20)
    link = models.CharField(_("link"), max_length=255, blank=True)
    data = models.JSONField(_("data"), default=dict, blank=True)

    is_read = models.BooleanField(_("read"), default=False, db_index=True)
    read_at = models.DateTimeField(_("read at"), null=True, blank=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "notifications"
        verbose_name = _("notification")
        verbose_name_plural = _("notifications")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "is_read", "created_at"]),
        ]

    def __str__(self):
        return f"{self.type} -> {self.user_id}"

    def save(self, *args, **kwargs):
        if not self.icon or not self.color:
            icon, color = self.PRESENTATION.get(self.type, ("bell", "gray"))
            self.icon = self.icon or icon
            self.color = self.color or color
        super().save(*args, **kwargs)

    def to_dict(self):
        return {
            "id": str(self.id),
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "icon": self.icon,
            "color": self.color,
            "link": self.link,
            "data": self.data,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
