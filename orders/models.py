"""
orders/models.py

Orders with snapshotted items, shipping address and payment state
"""

import random
import uuid
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from products.models import Product


class Order(models.Model):
    """
    Main order model. Address and item details are copied at checkout so
    later edits to products or address book never change a placed order.
    """

    # Order statuses
    STATUS_PENDING_PAYMENT = "pending_payment"
    STATUS_PAID = "paid"
    STATUS_PROCESSING = "processing"
    STATUS_SHIPPED = "shipped"
    STATUS_DELIVERED = "delivered"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"
    STATUS_RETURNED = "returned"

    STATUS_CHOICES = [
        (STATUS_PENDING_PAYMENT, "Awaiting payment"),
        (STATUS_PAID, "Paid"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_SHIPPED, "Shipped"),
        (STATUS_DELIVERED, "Delivered"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
        (STATUS_RETURNED, "Returned"),
    ]

    # Payment statuses
    PAYMENT_PENDING = "pending"
    PAYMENT_PAID = "paid"
    PAYMENT_FAILED = "failed"
    PAYMENT_EXPIRED = "expired"

    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_PENDING, "Pending"),
        (PAYMENT_PAID, "Paid"),
        (PAYMENT_FAILED, "Failed"),
        (PAYMENT_EXPIRED, "Expired"),
    ]

    # Return statuses
    RETURN_NONE = "none"
    RETURN_REQUESTED = "requested"
    RETURN_APPROVED = "approved"
    RETURN_REJECTED = "rejected"
    RETURN_COMPLETED = "completed"

    RETURN_STATUS_CHOICES = [
        (RETURN_NONE, "None"),
        (RETURN_REQUESTED, "Requested"),
        (RETURN_APPROVED, "Approved"),
        (RETURN_REJECTED, "Rejected"),
        (RETURN_COMPLETED, "Completed"),
    ]

    PAYMENT_METHOD_MIDTRANS = "midtrans"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(
        _("order number"), max_length=20, unique=True, db_index=True, editable=False
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )

    # Shipping address snapshot
    recipient_name = models.CharField(_("recipient name"), max_length=100)
    phone_number = models.CharField(_("phone number"), max_length=20)
    full_address = models.TextField(_("full address"))
    district = models.CharField(_("district"), max_length=100)
    city = models.CharField(_("city"), max_length=100)
    province = models.CharField(_("province"), max_length=100)
    postal_code = models.CharField(_("postal code"), max_length=10)
    address_notes = models.TextField(_("address notes"), blank=True)
    destination_id = models.CharField(_("shipping destination id"), max_length=20, blank=True)

    # Pricing
    subtotal = models.DecimalField(
        _("subtotal"), max_digits=14, decimal_places=2, validators=[MinValueValidator(0)]
    )
    voucher_code = models.CharField(_("voucher code"), max_length=20, blank=True)
    discount_amount = models.DecimalField(
        _("discount amount"), max_digits=14, decimal_places=2, default=0
    )
    shipping_cost = models.DecimalField(
        _("shipping cost"), max_digits=14, decimal_places=2, default=0
    )
    total = models.DecimalField(
        _("total"), max_digits=14, decimal_places=2, validators=[MinValueValidator(0)]
    )
    total_weight = models.PositiveIntegerField(_("total weight (gram)"), default=0)

    # Payment
    payment_method = models.CharField(
        _("payment method"), max_length=30, default=PAYMENT_METHOD_MIDTRANS
    )
    payment_type = models.CharField(_("payment type"), max_length=50, blank=True)
    payment_status = models.CharField(
        _("payment status"),
        max_length=20,
        choices=PAYMENT_STATUS_CHOICES,
        default=PAYMENT_PENDING,
        db_index=True,
    )
    paid_at = models.DateTimeField(_("paid at"), null=True, blank=True)
    snap_token = models.CharField(_("snap token"), max_length=100, blank=True)
    snap_redirect_url = models.URLField(_("snap redirect url"), max_length=500, blank=True)
    transaction_id = models.CharField(_("transaction id"), max_length=100, blank=True)

    status = models.CharField(
        _("order status"),
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING_PAYMENT,
        db_index=True,
    )

    # Shipping
    courier = models.CharField(_("courier"), max_length=20, blank=True)
    courier_name = models.CharField(_("courier name"), max_length=100, blank=True)
    courier_service = models.CharField(_("courier service"), max_length=50, blank=True)
    tracking_number = models.CharField(_("tracking number"), max_length=100, blank=True)
    shipped_at = models.DateTimeField(_("shipped at"), null=True, blank=True)
    delivered_at = models.DateTimeField(_("delivered at"), null=True, blank=True)
    completed_at = models.DateTimeField(_("completed at"), null=True, blank=True)

    cancel_reason = models.TextField(_("cancel reason"), blank=True)
    cancelled_at = models.DateTimeField(_("cancelled at"), null=True, blank=True)

    return_status = models.CharField(
        _("return status"),
        max_length=20,
        choices=RETURN_STATUS_CHOICES,
        default=RETURN_NONE,
    )

    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "orders"
        verbose_name = _("order")
        verbose_name_plural = _("orders")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"]),
            models.Index(fields=["payment_status"]),
            models.Index(fields=["user", "created_at"]),
        ]

    def __str__(self):
        return f"Order #{self.order_number}"

    @staticmethod
    def generate_order_number() -> str:
        date_str = timezone.localtime().strftime("%Y%m%d")
        while True:
            number = f"ORD-{date_str}-{random.randint(0, 9999):04d}"
            if not Order.objects.filter(order_number=number).exists():
                return number

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = self.generate_order_number()
        super().save(*args, **kwargs)

    @property
    def payment_expires_at(self):
        hours = getattr(settings, "ORDER_PAYMENT_EXPIRY_HOURS", 24)
        return self.created_at + timedelta(hours=hours)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == self.PAYMENT_PAID

    @property
    def can_cancel(self) -> bool:
        """Customers may cancel only while the order is unpaid"""
        return not self.is_paid and self.status == self.STATUS_PENDING_PAYMENT

    @property
    def shipping_address(self):
        return {
            "recipient_name": self.recipient_name,
            "phone_number": self.phone_number,
            "full_address": self.full_address,
            "district": self.district,
            "city": self.city,
            "province": self.province,
            "postal_code": self.postal_code,
            "notes": self.address_notes,
        }

    @property
    def shipping_info(self):
        return {
            "courier": self.courier,
            "courier_name": self.courier_name,
            "service": self.courier_service,
            "tracking_number": self.tracking_number,
            "shipped_date": self.shipped_at.isoformat() if self.shipped_at else None,
        }

    def to_dict(self, include_items: bool = True):
        data = {
            "id": str(self.id),
            "order_number": self.order_number,
            "user_id": str(self.user_id) if self.user_id else None,
            "customer": (
                {
                    "name": self.user.full_name,
                    "email": self.user.email,
                    "phone": self.user.phone,
                }
                if self.user
                else None
            ),
            "shipping_address": self.shipping_address,
            "shipping_info": self.shipping_info,
            "subtotal": float(self.subtotal),
            "voucher_code": self.voucher_code,
            "discount_amount": float(self.discount_amount),
            "shipping_cost": float(self.shipping_cost),
            "total": float(self.total),
            "total_weight": self.total_weight,
            "payment_method": self.payment_method,
            "payment_type": self.payment_type,
            "payment_status": self.payment_status,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "snap_token": self.snap_token,
            "snap_redirect_url": self.snap_redirect_url,
            "transaction_id": self.transaction_id,
            "order_status": self.status,
            "order_status_display": self.get_status_display(),
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "cancel_reason": self.cancel_reason,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "return_status": self.return_status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items.all()]
        return data


class OrderItem(models.Model):
    """
    A purchased line. ``price`` is the unit price in ``unit`` at checkout.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(
        Product, on_delete=models.SET_NULL, null=True, related_name="order_items"
    )

    product_name = models.CharField(_("product name"), max_length=200)
    product_slug = models.SlugField(_("product slug"), max_length=200)
    image = models.CharField(_("image"), max_length=500, blank=True)
    category = models.CharField(_("category"), max_length=100)

    price = models.DecimalField(
        _("unit price"), max_digits=14, decimal_places=2, validators=[MinValueValidator(0)]
    )
    quantity = models.DecimalField(
        _("quantity"),
        max_digits=14,
        decimal_places=3,
        validators=[MinValueValidator(Decimal("0.001"))],
    )
    unit = models.CharField(_("unit"), max_length=30)

    class Meta:
        db_table = "order_items"
        verbose_name = _("order item")
        verbose_name_plural = _("order items")
        ordering = ["id"]

    def __str__(self):
        return f"{self.product_name} x {self.quantity} {self.unit}"

    @property
    def subtotal(self) -> Decimal:
        return (self.price * self.quantity).quantize(Decimal("0.01"))

    def to_dict(self):
        return {
            "id": str(self.id),
            "product_id": str(self.product_id) if self.product_id else None,
            "name": self.product_name,
            "slug": self.product_slug,
            "image": self.image,
            "category": self.category,
            "price": float(self.price),
            "quantity": float(self.quantity),
            "unit": self.unit,
            "subtotal": float(self.subtotal),
        }
