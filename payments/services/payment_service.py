"""
payments/services/payment_service.py

Snap checkout, payment notifications and the side effects of a first
successful payment (stock deduction, sold counters, notifications).
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List

from django.conf import settings
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from inventory.models import StockMovement
from inventory.services.stock_service import StockService
from notifications.models import Notification
from notifications.services.notification_service import NotificationService
from orders.models import Order
from orders.services.order_service import OrderService
from products.models import Product
from products.units import UnitConversionError, to_product_unit
from vouchers.services.voucher_service import VoucherService
from ..midtrans import MidtransClient, map_transaction_status, verify_signature

logger = logging.getLogger(__name__)

REFUND_STATUSES = ("refund", "partial_refund")
REFUND_REASON = "Pembayaran di-refund oleh Midtrans"
FAILED_REASONS = {
    Order.PAYMENT_FAILED: "Pembayaran gagal atau dibatalkan",
    Order.PAYMENT_EXPIRED: "Batas waktu pembayaran habis",
}
ITEM_NAME_LIMIT = 50
QUANTITY_STEP = Decimal("0.001")


def _rupiah(value) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentService:
    """Midtrans payment flow for orders"""

    @staticmethod
    def client() -> MidtransClient:
        return MidtransClient()

    # ==================== SNAP ====================

    @staticmethod
    def item_details(order: Order) -> List[Dict[str, Any]]:
        """
        Snap line items. Fractional quantities are sent as one line priced
        at the line subtotal; shipping and discount get their own lines and
        any rounding remainder is booked so the sum equals the gross amount.
        """
        lines = []
        for item in order.items.all():
            quantity = item.quantity
            if quantity == quantity.to_integral_value():
                price, count = _rupiah(item.price), int(quantity)
                name = item.product_name
            else:
                price, count = _rupiah(item.subtotal), 1
                name = f"{item.product_name} ({format(quantity.normalize(), 'f')} {item.unit})"
            lines.append(
                {
                    "id": str(item.product_id or item.product_slug)[:50],
                    "price": price,
                    "quantity": count,
                    "name": name[:ITEM_NAME_LIMIT],
                    "category": item.category[:50],
                }
            )

        if order.shipping_cost:
            lines.append(
                {
                    "id": "SHIPPING",
                    "price": _rupiah(order.shipping_cost),
                    "quantity": 1,
                    "name": f"Ongkir {order.courier_name} {order.courier_service}".strip()[
                        :ITEM_NAME_LIMIT
                    ],
                }
            )
        if order.discount_amount:
            lines.append(
                {
                    "id": "DISCOUNT",
                    "price": -_rupiah(order.discount_amount),
                    "quantity": 1,
                    "name": f"Voucher {order.voucher_code}"[:ITEM_NAME_LIMIT],
                }
            )

        remainder = _rupiah(order.total) - sum(line["price"] * line["quantity"] for line in lines)
        if remainder:
            lines.append({"id": "ROUNDING", "price": remainder, "quantity": 1, "name": "Pembulatan"})
        return lines

    @staticmethod
    def _customer_details(order: Order) -> Dict[str, Any]:
        user = order.user
        return {
            "first_name": (user.first_name if user else "") or order.recipient_name,
            "last_name": user.last_name if user else "",
            "email": user.email if user else "",
            "phone": (user.phone if user else "") or order.phone_number,
        }

    @staticmethod
    def get_snap_token(user, order_number: str) -> Dict[str, str]:
        """Snap token for an own order awaiting payment, created on first request"""
        order = OrderService.get_user_order(user, order_number)
        if order.is_paid:
            raise ValidationError("Order is already paid")

        OrderService._expire_if_due(order)
        if order.status != Order.STATUS_PENDING_PAYMENT:
            raise ValidationError("Order is no longer awaiting payment")

        if not order.snap_token:
            snap = PaymentService.client().create_transaction(
                order_id=order.order_number,
                gross_amount=_rupiah(order.total),
                customer_details=PaymentService._customer_details(order),
                item_details=PaymentService.item_details(order),
                shipping_address={
                    "first_name": order.recipient_name,
                    "phone": order.phone_number,
                    "address": order.full_address,
                    "city": order.city,
                    "postal_code": order.postal_code,
                    "country_code": "IDN",
                },
                finish_url=f"{settings.FRONTEND_BASE_URL.rstrip('/')}/orders/{order.order_number}",
            )
            order.snap_token = snap["token"]
            order.snap_redirect_url = snap["redirect_url"]
            order.save(update_fields=["snap_token", "snap_redirect_url", "updated_at"])
            logger.info(f"Snap token created for {order.order_number}")

        return {
            "order_number": order.order_number,
            "token": order.snap_token,
            "redirect_url": order.snap_redirect_url,
            "client_key": settings.MIDTRANS_CLIENT_KEY,
            "is_production": settings.MIDTRANS_IS_PRODUCTION,
        }

    # ==================== STATUS UPDATES ====================

    @staticmethod
    def handle_notification(payload: Dict[str, Any]) -> Order:
        """Verify and apply a Midtrans HTTP notification"""
        order_number = str(payload.get("order_id") or "")
        if not verify_signature(
            order_number,
            payload.get("status_code", ""),
            payload.get("gross_amount", ""),
            payload.get("signature_key", ""),
        ):
            logger.warning(f"Rejected notification with invalid signature for {order_number}")
            raise PermissionDenied("Invalid signature")

        if not Order.objects.filter(order_number=order_number).exists():
            logger.error(f"Notification for unknown order {order_number}")
            raise Order.DoesNotExist("Order not found")

        return PaymentService.apply_status(
            order_number,
            payload.get("transaction_status", ""),
            payload.get("fraud_status"),
            payment_type=payload.get("payment_type", ""),
            transaction_id=payload.get("transaction_id", ""),
        )

    @staticmethod
    @transaction.atomic
    def apply_status(
        order_number: str,
        transaction_status: str,
        fraud_status: str = None,
        payment_type: str = "",
        transaction_id: str = "",
    ) -> Order:
        """
        Move an order according to a Midtrans transaction status. Repeated
        notifications are harmless: side effects run on the first payment only
        and a paid order is never moved back to an unpaid state.
        """
        order = Order.objects.select_for_update().get(order_number=order_number)
        logger.info(
            f"Payment status for {order_number}: {transaction_status} (fraud: {fraud_status})"
        )

        if transaction_status in REFUND_STATUSES:
            if order.status != Order.STATUS_CANCELLED:
                order.status = Order.STATUS_CANCELLED
                order.cancel_reason = REFUND_REASON
                order.cancelled_at = timezone.now()
                order.save(update_fields=["status", "cancel_reason", "cancelled_at", "updated_at"])
                PaymentService._notify_customer(
                    order,
                    Notification.TYPE_ORDER_CANCELLED,
                    "Pembayaran Di-refund",
                    f"Pembayaran pesanan {order.order_number} telah di-refund.",
                )
            return order

        payment_status, order_status = map_transaction_status(transaction_status, fraud_status)

        if order.is_paid:
            if payment_status != Order.PAYMENT_PAID:
                logger.warning(
                    f"Ignoring {transaction_status} for already paid order {order_number}"
                )
            return order

        if payment_type:
            order.payment_type = payment_type
        if transaction_id:
            order.transaction_id = transaction_id

        if payment_status == Order.PAYMENT_PAID:
            order.payment_status = Order.PAYMENT_PAID
            order.paid_at = timezone.now()
            order.status = Order.STATUS_PROCESSING
            order.save()
            PaymentService._apply_first_payment(order)
            return order

        if order.status == Order.STATUS_CANCELLED:
            # Cancelled locally before Midtrans reported back
            order.save(update_fields=["payment_type", "transaction_id", "updated_at"])
            return order

        order.payment_status = payment_status
        order.status = order_status
        if order_status == Order.STATUS_CANCELLED:
            order.cancel_reason = FAILED_REASONS.get(payment_status, "Pembayaran gagal")
            order.cancelled_at = timezone.now()
            VoucherService.release(order.voucher_code)
            PaymentService._notify_customer(
                order,
                Notification.TYPE_ORDER_CANCELLED,
                "Pesanan Dibatalkan",
                f"Pesanan {order.order_number} dibatalkan: {order.cancel_reason}.",
            )
        order.save()
        return order

    @staticmethod
    def _apply_first_payment(order: Order) -> None:
        """Deduct stock, count sales and notify; failures are logged only"""
        for item in order.items.select_related("product", "product__category"):
            if item.product is None:
                continue
            try:
                quantity = to_product_unit(item.product, item.quantity, item.unit).quantize(
                    QUANTITY_STEP, rounding=ROUND_HALF_UP
                )
                StockService.record_movement(
                    item.product_id,
                    StockMovement.TYPE_OUT,
                    quantity,
                    reason=f"Penjualan {order.order_number}",
                    reference_type=StockMovement.REFERENCE_ORDER,
                    reference_id=order.order_number,
                )
                Product.objects.filter(id=item.product_id).update(sold=F("sold") + quantity)
            except (UnitConversionError, ValidationError, Product.DoesNotExist) as e:
                logger.error(
                    f"Stock deduction skipped for {item.product_slug} in {order.order_number}: {str(e)}"
                )

        logger.info(f"Order {order.order_number} paid: {order.total}")

        PaymentService._notify_customer(
            order,
            Notification.TYPE_ORDER_CONFIRMED,
            "Pembayaran Berhasil",
            f"Pembayaran pesanan {order.order_number} diterima. Pesanan sedang diproses.",
        )
        transaction.on_commit(lambda: PaymentService._notify_back_office(order))

    @staticmethod
    def _notify_customer(order: Order, notification_type: str, title: str, message: str) -> None:
        if order.user is None:
            return

        def send():
            try:
                NotificationService.create(
                    order.user,
                    notification_type,
                    title,
                    message,
                    data={"order_id": str(order.id), "order_number": order.order_number},
                    link=f"/orders/{order.order_number}",
                )
            except Exception as e:
                logger.error(f"Notification {notification_type} failed for {order.order_number}: {str(e)}")

        transaction.on_commit(send)

    @staticmethod
    def _notify_back_office(order: Order) -> None:
        try:
            NotificationService.notify_back_office(
                Notification.TYPE_NEW_PAID_ORDER,
                "Pesanan Baru Dibayar",
                f"Pesanan {order.order_number} dari {order.recipient_name} telah dibayar "
                f"(Rp {order.total:,.0f})".replace(",", "."),
                data={"order_id": str(order.id), "order_number": order.order_number},
                link="/admin/orders",
            )
        except Exception as e:
            logger.error(f"Back-office notification failed for {order.order_number}: {str(e)}")

    # ==================== CUSTOMER ACTIONS ====================

    @staticmethod
    def sync_status(user, order_number: str) -> Order:
        """Pull the transaction status from the Core API and apply it"""
        order = OrderService.get_user_order(user, order_number)
        status = PaymentService.client().get_status(order.order_number)
        return PaymentService.apply_status(
            order.order_number,
            status.get("transaction_status", ""),
            status.get("fraud_status"),
            payment_type=status.get("payment_type", ""),
            transaction_id=status.get("transaction_id", ""),
        )

    @staticmethod
    def simulate_success(user, order_number: str) -> Order:
        """Sandbox only: treat the order as settled without a real payment"""
        if settings.MIDTRANS_IS_PRODUCTION:
            raise PermissionDenied("Payment simulation is only available in sandbox mode")

        order = OrderService.get_user_order(user, order_number)
        if order.status != Order.STATUS_PENDING_PAYMENT or order.is_paid:
            raise ValidationError("Order is not awaiting payment")

        logger.warning(f"Simulated payment for {order.order_number}")
        return PaymentService.apply_status(
            order.order_number, "settlement", "accept", payment_type="simulation"
        )
