"""
inventory/models.py

Stock movement audit log
"""

import uuid
from decimal import Decimal
from django.conf import settings
from django.db import models
from django.core.validators import MinValueValidator
from django.utils.translation import gettext_lazy as _

from products.models import Product


class StockMovement(models.Model):
    """
    One inventory delta against a product. Rows are written together with the
    product stock update and never edited afterwards.
    """

    TYPE_IN = "in"
    TYPE_OUT = "out"

    TYPE_CHOICES = [
        (TYPE_IN, "Stock In"),
        (TYPE_OUT, "Stock Out"),
    ]

    REFERENCE_ORDER = "order"
    REFERENCE_ADJUSTMENT = "adjustment"
    REFERENCE_INITIAL = "initial"
    REFERENCE_RETURN = "return"

    REFERENCE_CHOICES = [
        (REFERENCE_ORDER, "Order"),
        (REFERENCE_ADJUSTMENT, "Adjustment"),
        (REFERENCE_INITIAL, "Initial Stock"),
        (REFERENCE_RETURN, "Return"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    product = models.ForeignKey(
        Product, on_delete=models.CASCADE, related_name="stock_movements"
    )
    product_name = models.CharField(_("product name"), max_length=200)
    product_code = models.CharField(_("product code"), max_length=200, db_index=True)

    movement_type = models.CharField(
        _("movement type"), max_length=3, choices=TYPE_CHOICES, db_index=True
    )
    quantity = models.DecimalField(
        _("quantity"),
        max_digits=14,
        decimal_places=3,
        validators=[MinValueValidator(Decimal("0.001"))],
    )
    unit = models.CharField(_("unit"), max_length=30)
    reason = models.CharField(_("reason"), max_length=255)

    reference_type = models.CharField(
        _("reference type"), max_length=20, choices=REFERENCE_CHOICES, db_index=True
    )
    reference_id = models.CharField(_("reference id"), max_length=100, blank=True)

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="stock_movements",
    )
    performed_by_name = models.CharField(_("performed by"), max_length=150, blank=True)

    previous_stock = models.DecimalField(
        _("previous stock"), max_digits=14, decimal_places=3
    )
    new_stock = models.DecimalField(_("new stock"), max_digits=14, decimal_places=3)
    notes = models.TextField(_("notes"), blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "stock_movements"
        verbose_name = _("stock movement")
        verbose_name_plural = _("stock movements")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["product", "created_at"]),
            models.Index(fields=["reference_type", "reference_id"]),
        ]

    def __str__(self):
        sign = "+" if self.movement_type == self.TYPE_IN else "-"
        return f"{self.product_name} {sign}{self.quantity} {self.unit}"

    def to_dict(self):
        return {
            "id": str(self.id),
            "product_id": str(self.product_id),
            "product_name": self.product_name,
            "product_code": self.product_code,
            "movement_type": self.movement_type,
            "quantity": float(self.quantity),
            "unit": self.unit,
            "reason": self.reason,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "performed_by": str(self.performed_by_id) if self.performed_by_id else None,
            "performed_by_name": self.performed_by_name,
            "previous_stock": float(self.previous_stock),
            "new_stock": float(self.new_stock),
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
