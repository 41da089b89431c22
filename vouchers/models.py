"""
vouchers/models.py
"""

import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class Voucher(models.Model):
    """Checkout discount code, either a percentage or a fixed amount"""

    TYPE_PERCENTAGE = "percentage"
    TYPE_FIXED = "fixed"

    TYPE_CHOICES = [
        (TYPE_PERCENTAGE, "Percentage"),
        (TYPE_FIXED, "Fixed amount"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(_("code"), max_length=20, unique=True)
    name = models.CharField(_("name"), max_length=100)
    description = models.TextField(_("description"), blank=True)
    type = models.CharField(_("type"), max_length=20, choices=TYPE_CHOICES)
    value = models.DecimalField(
        _("value"), max_digits=14, decimal_places=2, validators=[MinValueValidator(0)]
    )
    min_purchase = models.DecimalField(
        _("minimum purchase"), max_digits=14, decimal_places=2, default=0
    )
    max_discount = models.DecimalField(
        _("maximum discount"), max_digits=14, decimal_places=2, null=True, blank=True
    )
    usage_limit = models.PositiveIntegerField(
        _("usage limit"), validators=[MinValueValidator(1)]
    )
    used_count = models.PositiveIntegerField(_("used count"), default=0)
    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    start_date = models.DateTimeField(_("start date"))
    end_date = models.DateTimeField(_("end date"))

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "vouchers"
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["start_date", "end_date"])]

    def __str__(self):
        return self.code

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    @property
    def is_expired(self) -> bool:
        return self.end_date < timezone.now()

    def calculate_discount(self, subtotal: Decimal) -> Decimal:
        """Discount for ``subtotal``, never more than the subtotal itself"""
        if self.type == self.TYPE_PERCENTAGE:
            discount = subtotal * self.value / Decimal("100")
            if self.max_discount and discount > self.max_discount:
                discount = self.max_discount
        else:
            discount = self.value
        return min(discount, subtotal).quantize(Decimal("0.01"))

    def to_dict(self):
        return {
            "id": str(self.id),
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "value": float(self.value),
            "min_purchase": float(self.min_purchase),
            "max_discount": float(self.max_discount) if self.max_discount is not None else None,
            "usage_limit": self.usage_limit,
            "used_count": self.used_count,
            "is_active": self.is_active,
            "is_expired": self.is_expired,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
