"""
returns/models.py

Return requests for delivered orders
"""

import random
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from orders.models import Order, OrderItem
from products.models import Product


class ReturnRequest(models.Model):
    """
    A customer's request to send back items of a delivered order.
    Customer contact details are copied at request time.
    """

    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"
    STATUS_COMPLETED = "completed"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
        (STATUS_COMPLETED, "Completed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    return_number = models.CharField(
        _("return number"), max_length=20, unique=True, db_index=True, editable=False
    )
    order = models.OneToOneField(Order, on_delete=models.CASCADE, related_name="return_request")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="return_requests",
    )

    customer_name = models.CharField(_("customer name"), max_length=200)
    customer_email = models.EmailField(_("customer email"))
    customer_phone = models.CharField(_("customer phone"), max_length=20, blank=True)

    total_amount = models.DecimalField(_("total amount"), max_digits=14, decimal_places=2)
    reason = models.TextField(_("reason"))
    status = models.CharField(
        _("status"), max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True
    )

    requested_at = models.DateTimeField(_("requested at"), default=timezone.now)
    approved_at = models.DateTimeField(_("approved at"), null=True, blank=True)
    rejected_at = models.DateTimeField(_("rejected at"), null=True, blank=True)
    completed_at = models.DateTimeField(_("completed at"), null=True, blank=True)
    rejection_reason = models.TextField(_("rejection reason"), blank=True)
    notes = models.TextField(_("admin notes"), blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "return_requests"
        verbose_name = _("return request")
        verbose_name_plural = _("return requests")
        ordering = ["-requested_at"]

    def __str__(self):
        return self.return_number

    @staticmethod
    def generate_return_number() -> str:
        date_str = timezone.localtime().strftime("%Y%m%d")
        while True:
            number = f"RET-{date_str}-{random.randint(0, 9999):04d}"
            if not ReturnRequest.objects.filter(return_number=number).exists():
                return number

    def save(self, *args, **kwargs):
        if not self.return_number:
            self.return_number = self.generate_return_number()
        super().save(*args, **kwargs)

    def to_dict(self, include_items: bool = True):
        data = {
            "id": str(self.id),
            "return_number": self.return_number,
            "order_id": str(self.order_id),
            "order_number": self.order.order_number,
            "customer": {
                "id": str(self.user_id) if self.user_id else None,
                "name": self.customer_name,
                "email": self.customer_email,
                "phone": self.customer_phone,
            },
            "total_amount": float(self.total_amount),
            "reason": self.reason,
            "status": self.status,
            "request_date": self.requested_at.isoformat(),
            "approved_date": self.approved_at.isoformat() if self.approved_at else None,
            "rejected_date": self.rejected_at.isoformat() if self.rejected_at else None,
            "completed_date": self.completed_at.isoformat() if self.completed_at else None,
            "rejection_reason": self.rejection_reason,
            "notes": self.notes,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items.all()]
        return data


class ReturnItem(models.Model):
    """A returned quantity of one order line, in that line's unit"""

    CONDITION_DAMAGED = "damaged"
    CONDITION_DEFECTIVE = "defective"
    CONDITION_WRONG_ITEM = "wrong_item"
    CONDITION_NOT_AS_DESCRIBED = "not_as_described"
    CONDITION_OTHER = "other"

    CONDITION_CHOICES = [
        (CONDITION_DAMAGED, "Damaged"),
        (CONDITION_DEFECTIVE, "Defective"),
        (CONDITION_WRONG_ITEM, "Wrong item"),
        (CONDITION_NOT_AS_DESCRIBED, "Not as described"),
        (CONDITION_OTHER, "Other"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    return_request = models.ForeignKey(
        ReturnRequest, on_delete=models.CASCADE, related_name="items"
    )
    order_item = models.ForeignKey(
        OrderItem, on_delete=models.SET_NULL, null=True, related_name="return_items"
    )
    product = models.ForeignKey(
        Product, on_delete=models.SET_NULL, null=True, related_name="return_items"
    )
    product_name = models.CharField(_("product name"), max_length=200)
    quantity = models.DecimalField(
        _("quantity"),
        max_digits=14,
        decimal_places=3,
        validators=[MinValueValidator(Decimal("1"))],
    )
    unit = models.CharField(_("unit"), max_length=30)
    price = models.DecimalField(_("unit price"), max_digits=14, decimal_places=2)
    reason = models.TextField(_("reason"))
    condition = models.CharField(_("condition"), max_length=20, choices=CONDITION_CHOICES)

    class Meta:
        db_table = "return_items"
        ordering = ["id"]

    def __str__(self):
        return f"{self.product_name} x {self.quantity} {self.unit}"

    @property
    def subtotal(self) -> Decimal:
        return (self.price * self.quantity).quantize(Decimal("0.01"))

    def to_dict(self):
        return {
            "id": str(self.id),
            "order_item_id": str(self.order_item_id) if self.order_item_id else None,
            "product_id": str(self.product_id) if self.product_id else None,
            "product_name": self.product_name,
            "quantity": float(self.quantity),
            "unit": self.unit,
            "price": float(self.price),
            "subtotal": float(self.subtotal),
            "reason": self.reason,
            "condition": self.condition,
        }
