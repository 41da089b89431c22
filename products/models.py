"""
products/models.py

Building-materials catalog: categories with sellable units, and products
"""

import uuid
from decimal import Decimal
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from django.core.validators import MinValueValidator, MaxValueValidator


class Category(models.Model):
    """
    Product category. ``available_units`` lists the units a category can be
    sold in, each as ``{"value", "label", "conversion_rate"}`` where the rate
    converts one unit into the category's base unit (e.g. 1 sak = 50 kg).
    """

    DEFAULT_ICON = "folder-tree"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(_("name"), max_length=100, unique=True)
    slug = models.SlugField(_("slug"), max_length=100, unique=True)
    description = models.TextField(_("description"), blank=True)
    icon = models.CharField(_("icon"), max_length=50, default=DEFAULT_ICON)
    image = models.CharField(_("image url"), max_length=500, blank=True)
    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    order = models.PositiveIntegerField(_("display order"), default=0, db_index=True)
    available_units = models.JSONField(_("available units"), default=list, blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "categories"
        verbose_name = _("category")
        verbose_name_plural = _("categories")
        ordering = ["order", "name"]

    def __str__(self):
        return self.name

    def unit(self, value: str):
        """Return the unit definition for ``value`` or None"""
        value = (value or "").lower()
        for unit in self.available_units or []:
            if unit.get("value", "").lower() == value:
                return unit
        return None

    def to_dict(self, product_count: int = None):
        data = {
            "id": str(self.id),
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "icon": self.icon,
            "image": self.image,
            "is_active": self.is_active,
            "order": self.order,
            "available_units": self.available_units,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if product_count is not None:
            data["product_count"] = product_count
        return data


class Product(models.Model):
    """
    A sellable material. Prices and stock are expressed in ``unit``.
    ``attributes`` holds free-form specs such as ``weight_kg`` or
    ``length_meter`` that drive unit conversion and shipping weight.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(_("name"), max_length=200)
    slug = models.SlugField(_("slug"), max_length=200, unique=True)
    description = models.TextField(_("description"), blank=True)
    category = models.ForeignKey(
        Category, on_delete=models.PROTECT, related_name="products"
    )
    brand = models.CharField(_("brand"), max_length=100, blank=True)

    # Pricing
    unit = models.CharField(_("unit"), max_length=30)
    price = models.DecimalField(
        _("price"),
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(0)],
    )
    discount_percentage = models.DecimalField(
        _("discount percentage"),
        max_digits=5,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    discount_valid_until = models.DateTimeField(
        _("discount valid until"), null=True, blank=True
    )

    # Inventory
    stock = models.DecimalField(
        _("stock"), max_digits=14, decimal_places=3, default=0,
        validators=[MinValueValidator(0)],
    )
    min_stock = models.DecimalField(
        _("minimum stock"), max_digits=14, decimal_places=3, default=0
    )
    available_units = models.JSONField(_("available units"), default=list, blank=True)

    images = models.JSONField(_("images"), default=list, blank=True)
    attributes = models.JSONField(_("attributes"), default=dict, blank=True)

    # Engagement
    rating_average = models.DecimalField(
        _("average rating"), max_digits=3, decimal_places=2, default=0
    )
    rating_count = models.PositiveIntegerField(_("rating count"), default=0)
    sold = models.DecimalField(_("sold"), max_digits=14, decimal_places=3, default=0)
    views = models.PositiveIntegerField(_("views"), default=0)

    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    is_featured = models.BooleanField(_("featured"), default=False, db_index=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "products"
        verbose_name = _("product")
        verbose_name_plural = _("products")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["category", "is_active"]),
            models.Index(fields=["is_active", "sold"]),
        ]

    def __str__(self):
        return self.name

    @property
    def has_active_discount(self) -> bool:
        if not self.discount_percentage or self.discount_percentage <= 0:
            return False
        return self.discount_valid_until is None or self.discount_valid_until > timezone.now()

    @property
    def final_price(self) -> Decimal:
        """Unit price after any active discount"""
        if not self.has_active_discount:
            return self.price
        discount = self.price * self.discount_percentage / Decimal("100")
        return (self.price - discount).quantize(Decimal("0.01"))

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock

    @property
    def main_image(self) -> str:
        return self.images[0] if self.images else ""

    def to_dict(self):
        return {
            "id": str(self.id),
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "category": {
                "id": str(self.category_id),
                "name": self.category.name,
                "slug": self.category.slug,
            },
            "brand": self.brand,
            "unit": self.unit,
            "price": float(self.price),
            "final_price": float(self.final_price),
            "discount": {
                "percentage": float(self.discount_percentage),
                "valid_until": (
                    self.discount_valid_until.isoformat()
                    if self.discount_valid_until
                    else None
                ),
                "is_active": self.has_active_discount,
            },
            "stock": float(self.stock),
            "min_stock": float(self.min_stock),
            "available_units": self.available_units,
            "images": self.images,
            "attributes": self.attributes,
            "rating": {
                "average": float(self.rating_average),
                "count": self.rating_count,
            },
            "sold": float(self.sold),
            "views": self.views,
            "is_active": self.is_active,
            "is_featured": self.is_featured,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
