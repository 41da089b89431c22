"""
cart/models.py

One persistent cart per customer
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from products.models import Product


class Cart(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="cart"
    )
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "carts"

    def __str__(self):
        return f"Cart of {self.user.email}"


class CartItem(models.Model):
    """
    A product in a given unit. The same product may appear once per unit.
    ``price`` is the unit price in ``unit``, refreshed from the product
    whenever the item changes.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="+")
    quantity = models.DecimalField(
        _("quantity"),
        max_digits=14,
        decimal_places=3,
        validators=[MinValueValidator(Decimal("0.001"))],
    )
    unit = models.CharField(_("unit"), max_length=30)
    price = models.DecimalField(_("unit price"), max_digits=14, decimal_places=2)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "cart_items"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["cart", "product", "unit"], name="unique_cart_product_unit"
            )
        ]

    @property
    def subtotal(self) -> Decimal:
        return (self.price * self.quantity).quantize(Decimal("0.01"))

    def to_dict(self):
        product = self.product
        return {
            "id": str(self.id),
            "product_id": str(product.id),
            "name": product.name,
            "slug": product.slug,
            "price": float(self.price),
            "quantity": float(self.quantity),
            "unit": self.unit,
            "image": product.main_image,
            "stock": float(product.stock),
            "product_unit": product.unit,
            "category": product.category.name,
            "subtotal": float(self.subtotal),
            "is_available": product.is_active,
        }
