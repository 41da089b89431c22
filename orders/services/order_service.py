"""
orders/services/order_service.py

Checkout, customer order actions and back-office order processing
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, DecimalField, F, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from cart.models import CartItem
from cart.services.cart_service import CartService
from inventory.models import StockMovement
from inventory.services.stock_service import StockService
from notifications.models import Notification
from notifications.services.notification_service import NotificationService
from products.models import Product
from products.units import price_in_unit
from shipping.services.shipping_service import ShippingService
from users.models import Address
from vouchers.services.voucher_service import VoucherService
from ..models import Order, OrderItem

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = [
    "recipient_name",
    "phone_number",
    "full_address",
    "district",
    "city",
    "province",
    "postal_code",
]

MONEY_STEP = Decimal("0.01")

# Fields a concurrent payment or expiry may have changed
REFRESH_FIELDS = [
    "status",
    "payment_status",
    "cancel_reason",
    "cancelled_at",
    "paid_at",
    "payment_type",
    "transaction_id",
    "updated_at",
]


def _notify(user, notification_type: str, title: str, message: str, order: Order) -> None:
    """Customer notification that never breaks the calling transition"""
    if user is None:
        return
    try:
        NotificationService.create(
            user,
            notification_type,
            title,
            message,
            data={"order_id": str(order.id), "order_number": order.order_number},
            link=f"/orders/{order.order_number}",
        )
    except Exception as e:
        logger.error(f"Notification {notification_type} failed for {order.order_number}: {str(e)}")


class OrderService:
    """
    Customer-side order logic. Prices, discounts and shipping cost are all
    computed here; amounts sent by the client are ignored.
    """

    # ==================== CHECKOUT ====================

    @staticmethod
    def _address_snapshot(user, data: Dict[str, Any]) -> Dict[str, str]:
        address_id = data.get("address_id")
        if address_id:
            try:
                address = Address.objects.get(id=address_id, user=user)
            except (Address.DoesNotExist, ValueError, ValidationError):
                raise Address.DoesNotExist("Address not found")
            return {
                "recipient_name": address.recipient_name,
                "phone_number": address.phone,
                "full_address": address.full_address,
                "district": address.district,
                "city": address.city,
                "province": address.province,
                "postal_code": address.postal_code,
                "address_notes": address.notes,
            }

        raw = data.get("shipping_address")
        if not isinstance(raw, dict):
            raise ValidationError({"shipping_address": "Shipping address is required"})

        snapshot = {field: str(raw.get(field) or "").strip() for field in ADDRESS_FIELDS}
        errors = {
            f"shipping_address.{field}": "This field is required"
            for field, value in snapshot.items()
            if not value
        }
        if errors:
            raise ValidationError(errors)
        snapshot["address_notes"] = str(raw.get("notes") or "").strip()
        return snapshot

    @staticmethod
    def _checkout_lines(user, data: Dict[str, Any]) -> Tuple[List[Dict], bool]:
        """
        Lines as ``{product, quantity, unit}``, taken from explicit ``items``
        or from the user's cart. The flag tells whether the cart was used.
        """
        raw_items = data.get("items")
        if raw_items:
            if not isinstance(raw_items, list):
                raise ValidationError({"items": "Items must be a list"})
            lines = []
            for raw in raw_items:
                if not isinstance(raw, dict):
                    raise ValidationError({"items": "Each item must be an object"})
                product = CartService._product(raw.get("product_id"))
                lines.append(
                    {
                        "product": product,
                        "quantity": CartService._quantity(raw.get("quantity")),
                        "unit": (raw.get("unit") or product.unit).lower(),
                    }
                )
            return lines, False

        items = CartItem.objects.filter(cart__user=user).select_related(
            "product", "product__category"
        )
        lines = [
            {"product": item.product, "quantity": item.quantity, "unit": item.unit}
            for item in items
        ]
        if not lines:
            raise ValidationError("Cart is empty")
        for line in lines:
            if not line["product"].is_active:
                raise ValidationError(f"{line['product'].name} is no longer available")
        return lines, True

    @staticmethod
    def create_order(user, data: Dict[str, Any]) -> Order:
        """
        Place an order awaiting payment. The shipping option is quoted again
        from the store origin; the voucher, if any, is redeemed with the order.
        """
        address = OrderService._address_snapshot(user, data)
        lines, from_cart = OrderService._checkout_lines(user, data)

        CartService.check_lines_stock(
            [(line["product"], line["quantity"], line["unit"]) for line in lines]
        )

        subtotal = Decimal("0")
        for line in lines:
            line["price"] = price_in_unit(line["product"], line["unit"])
            line["subtotal"] = (line["price"] * line["quantity"]).quantize(MONEY_STEP)
            subtotal += line["subtotal"]

        destination_id = str(data.get("destination_id") or "").strip()
        shipping = ShippingService.select_option(
            [(line["product"], line["quantity"], line["unit"]) for line in lines],
            destination_id,
            data.get("courier"),
            data.get("service"),
        )
        shipping_cost = Decimal(str(shipping["cost"])).quantize(MONEY_STEP)

        with transaction.atomic():
            voucher_code = ""
            discount = Decimal("0")
            if data.get("voucher_code"):
                voucher, discount = VoucherService.redeem(data["voucher_code"], subtotal)
                voucher_code = voucher.code

            order = Order.objects.create(
                user=user,
                destination_id=destination_id,
                subtotal=subtotal,
                voucher_code=voucher_code,
                discount_amount=discount,
                shipping_cost=shipping_cost,
                total=subtotal - discount + shipping_cost,
                total_weight=shipping["weight"],
                courier=shipping["courier"],
                courier_name=shipping["courier_name"],
                courier_service=shipping["service"],
                **address,
            )

            OrderItem.objects.bulk_create(
                [
                    OrderItem(
                        order=order,
                        product=line["product"],
                        product_name=line["product"].name,
                        product_slug=line["product"].slug,
                        image=line["product"].main_image,
                        category=line["product"].category.name,
                        price=line["price"],
                        quantity=line["quantity"],
                        unit=line["unit"],
                    )
                    for line in lines
                ]
            )

            if from_cart:
                CartItem.objects.filter(cart__user=user).delete()

        logger.info(f"Order {order.order_number} created by {user.email}: total {order.total}")
        return order

    # ==================== CUSTOMER ACTIONS ====================

    @staticmethod
    def get_user_orders(user, status: str = None, page: int = 1, limit: int = 10):
        queryset = Order.objects.filter(user=user)
        if status and status != "all":
            if status not in dict(Order.STATUS_CHOICES):
                raise ValidationError(f"Invalid status: {status}")
            queryset = queryset.filter(status=status)

        total = queryset.count()
        offset = (page - 1) * limit
        orders = queryset.prefetch_related("items").order_by("-created_at")[offset : offset + limit]
        return list(orders), total

    @staticmethod
    def get_user_order(user, order_number: str) -> Order:
        """Own order by number; other users' orders are reported as missing"""
        try:
            return Order.objects.prefetch_related("items").get(
                order_number=order_number, user=user
            )
        except Order.DoesNotExist:
            raise Order.DoesNotExist("Order not found")

    @staticmethod
    def _close_unpaid(order: Order, reason: str, payment_status: str = None) -> None:
        order.status = Order.STATUS_CANCELLED
        order.cancel_reason = reason
        order.cancelled_at = timezone.now()
        fields = ["status", "cancel_reason", "cancelled_at", "updated_at"]
        if payment_status:
            order.payment_status = payment_status
            fields.append("payment_status")
        order.save(update_fields=fields)
        VoucherService.release(order.voucher_code)

    @staticmethod
    def _lock_user_order(user, order_number: str) -> Order:
        try:
            return Order.objects.select_for_update().get(order_number=order_number, user=user)
        except Order.DoesNotExist:
            raise Order.DoesNotExist("Order not found")

    @staticmethod
    @transaction.atomic
    def cancel_order(user, order_number: str, reason: str) -> Order:
        order = OrderService._lock_user_order(user, order_number)
        if order.is_paid:
            raise ValidationError("Paid orders cannot be cancelled")
        if order.status != Order.STATUS_PENDING_PAYMENT:
            raise ValidationError("Order can no longer be cancelled")

        OrderService._close_unpaid(order, (reason or "").strip() or "Cancelled by customer")
        logger.info(f"Order {order.order_number} cancelled by customer")
        return order

    @staticmethod
    @transaction.atomic
    def confirm_received(user, order_number: str) -> Order:
        order = OrderService._lock_user_order(user, order_number)
        if order.status != Order.STATUS_DELIVERED:
            raise ValidationError("Only delivered orders can be confirmed")

        order.status = Order.STATUS_COMPLETED
        order.completed_at = timezone.now()
        order.save(update_fields=["status", "completed_at", "updated_at"])

        logger.info(f"Order {order.order_number} completed by customer")
        _notify(
            user,
            Notification.TYPE_ORDER_COMPLETED,
            "Pesanan Selesai",
            f"Terima kasih! Pesanan {order.order_number} telah selesai.",
            order,
        )
        return order

    @staticmethod
    def _awaiting_payment(order: Order) -> bool:
        return (
            order.payment_status == Order.PAYMENT_PENDING
            and order.status == Order.STATUS_PENDING_PAYMENT
        )

    @staticmethod
    def _expire_if_due(order: Order, now=None) -> bool:
        """
        Expire ``order`` once its payment window has passed. The row is locked
        and re-read first so a payment committed meanwhile is kept; ``order``
        is refreshed with the stored state either way.
        """
        now = now or timezone.now()
        if not (OrderService._awaiting_payment(order) and now >= order.payment_expires_at):
            return False

        with transaction.atomic():
            locked = Order.objects.select_for_update().get(pk=order.pk)
            expired = OrderService._awaiting_payment(locked) and now >= locked.payment_expires_at
            if expired:
                OrderService._close_unpaid(
                    locked, "Payment window expired", payment_status=Order.PAYMENT_EXPIRED
                )
        order.refresh_from_db(fields=REFRESH_FIELDS)

        if expired:
            logger.info(f"Order {order.order_number} expired unpaid")
        return expired

    @staticmethod
    def check_expiry(user, order_number: str) -> Dict[str, Any]:
        """Seconds left to pay; an overdue unpaid order is expired on the spot"""
        order = OrderService.get_user_order(user, order_number)
        now = timezone.now()
        OrderService._expire_if_due(order, now)

        awaiting = OrderService._awaiting_payment(order)
        remaining = int((order.payment_expires_at - now).total_seconds()) if awaiting else 0
        return {
            "order_number": order.order_number,
            "is_expired": order.payment_status == Order.PAYMENT_EXPIRED,
            "remaining_seconds": max(remaining, 0),
            "expires_at": order.payment_expires_at.isoformat(),
            "payment_status": order.payment_status,
            "order_status": order.status,
        }

    @staticmethod
    def expire_stale_orders() -> int:
        """Expire every unpaid order past its payment window"""
        expired = 0
        now = timezone.now()
        candidates = Order.objects.filter(
            payment_status=Order.PAYMENT_PENDING,
            status=Order.STATUS_PENDING_PAYMENT,
            created_at__lte=now - timedelta(hours=settings.ORDER_PAYMENT_EXPIRY_HOURS),
        )
        for order in candidates.iterator():
            if OrderService._expire_if_due(order, now):
                expired += 1
        return expired


class AdminOrderService:
    """Back-office order processing; every transition notifies the customer"""

    @staticmethod
    def _get(order_number: str, lock: bool = False) -> Order:
        queryset = Order.objects.select_for_update() if lock else Order.objects.select_related("user")
        try:
            return queryset.get(order_number=order_number)
        except Order.DoesNotExist:
            raise Order.DoesNotExist("Order not found")

    @staticmethod
    def get_orders(
        status: str = None,
        payment_status: str = None,
        search: str = "",
        page: int = 1,
        limit: int = 20,
    ):
        queryset = Order.objects.select_related("user")

        if status and status != "all":
            if status not in dict(Order.STATUS_CHOICES):
                raise ValidationError(f"Invalid status: {status}")
            queryset = queryset.filter(status=status)
        if payment_status and payment_status != "all":
            queryset = queryset.filter(payment_status=payment_status)
        if search:
            queryset = queryset.filter(
                Q(order_number__icontains=search)
                | Q(recipient_name__icontains=search)
                | Q(user__email__icontains=search)
            )

        total = queryset.count()
        offset = (page - 1) * limit
        orders = queryset.prefetch_related("items").order_by("-created_at")[offset : offset + limit]
        return list(orders), total

    @staticmethod
    def get_order(order_number: str) -> Order:
        return AdminOrderService._get(order_number)

    @staticmethod
    def get_statistics() -> Dict[str, Any]:
        counts = dict(
            Order.objects.values_list("status").annotate(count=Count("id")).order_by()
        )
        revenue = Order.objects.filter(payment_status=Order.PAYMENT_PAID).exclude(
            status=Order.STATUS_CANCELLED
        ).aggregate(
            total=Coalesce(
                Sum("total"),
                Value(Decimal("0")),
                output_field=DecimalField(max_digits=14, decimal_places=2),
            )
        )["total"]

        return {
            "total": sum(counts.values()),
            "by_status": {status: counts.get(status, 0) for status, _ in Order.STATUS_CHOICES},
            "total_revenue": float(revenue),
        }

    @staticmethod
    def _transition(order_number: str, expected: str, target: str) -> Order:
        order = AdminOrderService._get(order_number, lock=True)
        if order.status != expected:
            raise ValidationError(
                f"Order is {order.get_status_display().lower()}; "
                f"expected {dict(Order.STATUS_CHOICES)[expected].lower()}"
            )
        order.status = target
        return order

    @staticmethod
    @transaction.atomic
    def process_order(order_number: str, performed_by) -> Order:
        order = AdminOrderService._transition(
            order_number, Order.STATUS_PAID, Order.STATUS_PROCESSING
        )
        order.save(update_fields=["status", "updated_at"])

        logger.info(f"Order {order.order_number} processing ({performed_by.email})")
        _notify(
            order.user,
            Notification.TYPE_ORDER_CONFIRMED,
            "Pesanan Diproses",
            f"Pesanan {order.order_number} sedang disiapkan.",
            order,
        )
        return order

    @staticmethod
    @transaction.atomic
    def ship_order(order_number: str, data: Dict[str, Any], performed_by) -> Order:
        tracking_number = str(data.get("tracking_number") or "").strip()
        courier = str(data.get("courier") or "").strip()
        errors = {}
        if not tracking_number:
            errors["tracking_number"] = "Tracking number is required"
        if not courier:
            errors["courier"] = "Courier is required"
        if errors:
            raise ValidationError(errors)

        order = AdminOrderService._transition(
            order_number, Order.STATUS_PROCESSING, Order.STATUS_SHIPPED
        )
        order.courier = courier.lower()
        order.courier_name = str(data.get("courier_name") or "").strip() or order.courier_name
        order.courier_service = str(data.get("service") or "").strip() or order.courier_service
        order.tracking_number = tracking_number
        order.shipped_at = timezone.now()
        order.save()

        logger.info(f"Order {order.order_number} shipped: {courier} {tracking_number}")
        _notify(
            order.user,
            Notification.TYPE_ORDER_SHIPPED,
            "Pesanan Dikirim",
            f"Pesanan {order.order_number} dikirim dengan {order.courier_name or courier.upper()}, "
            f"nomor resi {tracking_number}.",
            order,
        )
        return order

    @staticmethod
    @transaction.atomic
    def confirm_delivered(order_number: str, performed_by) -> Order:
        order = AdminOrderService._transition(
            order_number, Order.STATUS_SHIPPED, Order.STATUS_DELIVERED
        )
        order.delivered_at = timezone.now()
        order.save(update_fields=["status", "delivered_at", "updated_at"])

        logger.info(f"Order {order.order_number} delivered ({performed_by.email})")
        _notify(
            order.user,
            Notification.TYPE_ORDER_DELIVERED,
            "Pesanan Diterima",
            f"Pesanan {order.order_number} telah sampai di tujuan.",
            order,
        )
        return order

    @staticmethod
    def _restock(order: Order, performed_by) -> None:
        """
        Put back what the order's payment took out of stock. Only the sale
        movements actually recorded for the order are reversed.
        """
        movements = StockMovement.objects.filter(
            reference_type=StockMovement.REFERENCE_ORDER,
            reference_id=order.order_number,
            product__isnull=False,
        )
        taken = dict(
            movements.filter(movement_type=StockMovement.TYPE_OUT)
            .values_list("product_id")
            .annotate(total=Sum("quantity"))
            .order_by()
        )
        restored = dict(
            movements.filter(movement_type=StockMovement.TYPE_IN)
            .values_list("product_id")
            .annotate(total=Sum("quantity"))
            .order_by()
        )

        for product_id, quantity in taken.items():
            quantity -= restored.get(product_id, Decimal("0"))
            if quantity <= 0:
                continue
            StockService.record_movement(
                product_id,
                StockMovement.TYPE_IN,
                quantity,
                reason=f"Pembatalan {order.order_number}",
                reference_type=StockMovement.REFERENCE_ORDER,
                reference_id=order.order_number,
                performed_by=performed_by,
            )
            Product.objects.filter(id=product_id).update(sold=F("sold") - quantity)

    @staticmethod
    @transaction.atomic
    def cancel_order(order_number: str, reason: str, performed_by) -> Order:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError({"reason": "Cancellation reason is required"})

        order = AdminOrderService._get(order_number, lock=True)
        if order.status in (
            Order.STATUS_SHIPPED,
            Order.STATUS_DELIVERED,
            Order.STATUS_COMPLETED,
            Order.STATUS_RETURNED,
        ):
            raise ValidationError("Orders cannot be cancelled after shipping")
        if order.status == Order.STATUS_CANCELLED:
            raise ValidationError("Order is already cancelled")

        order.status = Order.STATUS_CANCELLED
        order.cancel_reason = reason
        order.cancelled_at = timezone.now()
        order.save(update_fields=["status", "cancel_reason", "cancelled_at", "updated_at"])
        if order.is_paid:
            AdminOrderService._restock(order, performed_by)
        else:
            VoucherService.release(order.voucher_code)

        logger.info(f"Order {order.order_number} cancelled by {performed_by.email}: {reason}")
        _notify(
            order.user,
            Notification.TYPE_ORDER_CANCELLED,
            "Pesanan Dibatalkan",
            f"Pesanan {order.order_number} dibatalkan. Alasan: {reason}",
            order,
        )
        return order
