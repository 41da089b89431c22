"""
returns/services/return_service.py

Return requests: customer submission and back-office review
"""

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from inventory.models import StockMovement
from inventory.services.stock_service import StockService
from notifications.models import Notification
from notifications.services.notification_service import NotificationService
from orders.models import Order
from products.units import UnitConversionError, to_product_unit
from ..models import ReturnItem, ReturnRequest

logger = logging.getLogger(__name__)

MIN_REASON_LENGTH = 10
QUANTITY_STEP = Decimal("0.001")


def _reason(value, field: str = "reason") -> str:
    value = str(value or "").strip()
    if len(value) < MIN_REASON_LENGTH:
        raise ValidationError({field: f"Reason must be at least {MIN_REASON_LENGTH} characters"})
    return value


class ReturnService:
    """Customer-side return requests"""

    @staticmethod
    def _items(order: Order, raw_items) -> List[Dict[str, Any]]:
        if not isinstance(raw_items, list) or not raw_items:
            raise ValidationError({"items": "Select at least one item to return"})

        order_items = {str(item.id): item for item in order.items.all()}
        requested = {}
        items = []
        for index, raw in enumerate(raw_items):
            if not isinstance(raw, dict):
                raise ValidationError({"items": "Each item must be an object"})

            order_item = order_items.get(str(raw.get("order_item_id") or ""))
            if order_item is None:
                raise ValidationError(f"Item {index + 1} does not belong to this order")

            try:
                quantity = Decimal(str(raw.get("quantity"))).quantize(
                    QUANTITY_STEP, rounding=ROUND_HALF_UP
                )
            except (InvalidOperation, TypeError, ValueError):
                raise ValidationError({f"items.{index}.quantity": "Quantity must be a number"})
            if quantity < 1:
                raise ValidationError({f"items.{index}.quantity": "Quantity must be at least 1"})

            requested[order_item.id] = requested.get(order_item.id, Decimal("0")) + quantity
            if requested[order_item.id] > order_item.quantity:
                raise ValidationError(
                    f"Cannot return more {order_item.product_name} than was ordered "
                    f"({format(order_item.quantity.normalize(), 'f')} {order_item.unit})"
                )

            condition = raw.get("condition")
            if condition not in dict(ReturnItem.CONDITION_CHOICES):
                raise ValidationError({f"items.{index}.condition": "Invalid item condition"})

            items.append(
                {
                    "order_item": order_item,
                    "product_id": order_item.product_id,
                    "product_name": order_item.product_name,
                    "quantity": quantity,
                    "unit": order_item.unit,
                    "price": order_item.price,
                    "reason": _reason(raw.get("reason"), f"items.{index}.reason"),
                    "condition": condition,
                }
            )
        return items

    @staticmethod
    @transaction.atomic
    def create_return(user, data: Dict[str, Any]) -> ReturnRequest:
        try:
            order = Order.objects.select_for_update().get(
                order_number=data.get("order_number"), user=user
            )
        except Order.DoesNotExist:
            raise Order.DoesNotExist("Order not found")

        if order.status != Order.STATUS_DELIVERED:
            raise ValidationError("Only delivered orders can be returned")
        if ReturnRequest.objects.filter(order=order).exists():
            raise ValidationError("A return has already been requested for this order")

        reason = _reason(data.get("reason"))
        items = ReturnService._items(order, data.get("items"))
        total = sum(
            ((item["price"] * item["quantity"]).quantize(Decimal("0.01")) for item in items),
            Decimal("0"),
        )

        return_request = ReturnRequest.objects.create(
            order=order,
            user=user,
            customer_name=user.full_name,
            customer_email=user.email,
            customer_phone=user.phone,
            total_amount=total,
            reason=reason,
        )
        ReturnItem.objects.bulk_create(
            [ReturnItem(return_request=return_request, **item) for item in items]
        )

        order.return_status = Order.RETURN_REQUESTED
        order.save(update_fields=["return_status", "updated_at"])

        logger.info(f"Return {return_request.return_number} requested for {order.order_number}")
        transaction.on_commit(lambda: ReturnService._notify_back_office(return_request))
        return return_request

    @staticmethod
    def _notify_back_office(return_request: ReturnRequest) -> None:
        try:
            NotificationService.notify_back_office(
                Notification.TYPE_NEW_RETURN_REQUEST,
                "Permintaan Retur Baru",
                f"{return_request.customer_name} mengajukan retur "
                f"{return_request.return_number} untuk pesanan {return_request.order.order_number}",
                data={
                    "return_id": str(return_request.id),
                    "return_number": return_request.return_number,
                },
                link="/admin/returns",
            )
        except Exception as e:
            logger.error(f"Return notification failed for {return_request.return_number}: {str(e)}")

    @staticmethod
    def check_return(user, order_number: str) -> Dict[str, Any]:
        try:
            order = Order.objects.get(order_number=order_number, user=user)
        except Order.DoesNotExist:
            raise Order.DoesNotExist("Order not found")

        return_request = ReturnRequest.objects.filter(order=order).first()
        if return_request is None:
            return {"has_return": False, "return": None}
        return {
            "has_return": True,
            "return": {
                "return_number": return_request.return_number,
                "status": return_request.status,
                "total_amount": float(return_request.total_amount),
                "request_date": return_request.requested_at.isoformat(),
                "rejection_reason": return_request.rejection_reason,
            },
        }

    @staticmethod
    def get_user_returns(user) -> List[ReturnRequest]:
        return list(
            ReturnRequest.objects.filter(user=user)
            .select_related("order")
            .prefetch_related("items")
        )


class AdminReturnService:
    """Back-office return review. Each decision notifies the customer."""

    @staticmethod
    def _get(return_number: str, lock: bool = False) -> ReturnRequest:
        queryset = (
            ReturnRequest.objects.select_for_update()
            if lock
            else ReturnRequest.objects.select_related("order", "user")
        )
        try:
            return queryset.get(return_number=return_number)
        except ReturnRequest.DoesNotExist:
            raise ReturnRequest.DoesNotExist("Return request not found")

    @staticmethod
    def get_returns(status: str = None, search: str = "", page: int = 1, limit: int = 10):
        queryset = ReturnRequest.objects.select_related("order")
        if status and status != "all":
            if status not in dict(ReturnRequest.STATUS_CHOICES):
                raise ValidationError(f"Invalid status: {status}")
            queryset = queryset.filter(status=status)
        if search:
            queryset = queryset.filter(
                Q(return_number__icontains=search)
                | Q(order__order_number__icontains=search)
                | Q(customer_name__icontains=search)
            )

        total = queryset.count()
        offset = (page - 1) * limit
        returns = queryset.prefetch_related("items").order_by("-requested_at")[offset : offset + limit]
        return list(returns), total

    @staticmethod
    def get_stats() -> Dict[str, int]:
        counts = dict(
            ReturnRequest.objects.values_list("status").annotate(count=Count("id")).order_by()
        )
        stats = {status: counts.get(status, 0) for status, _ in ReturnRequest.STATUS_CHOICES}
        stats["total"] = sum(counts.values())
        return stats

    @staticmethod
    def _notify(return_request: ReturnRequest, notification_type: str, title: str, message: str):
        if return_request.user is None:
            return
        try:
            NotificationService.create(
                return_request.user,
                notification_type,
                title,
                message,
                data={
                    "return_number": return_request.return_number,
                    "order_number": return_request.order.order_number,
                },
                link="/returns",
            )
        except Exception as e:
            logger.error(f"Notification {notification_type} failed for {return_request.return_number}: {str(e)}")

    @staticmethod
    def _pending(return_number: str) -> ReturnRequest:
        return_request = AdminReturnService._get(return_number, lock=True)
        if return_request.status != ReturnRequest.STATUS_PENDING:
            raise ValidationError("Return request has already been processed")
        return return_request

    @staticmethod
    @transaction.atomic
    def approve(return_number: str, performed_by, notes: str = "") -> ReturnRequest:
        return_request = AdminReturnService._pending(return_number)
        return_request.status = ReturnRequest.STATUS_APPROVED
        return_request.approved_at = timezone.now()
        if notes:
            return_request.notes = notes.strip()
        return_request.save()

        order = return_request.order
        order.return_status = Order.RETURN_APPROVED
        order.save(update_fields=["return_status", "updated_at"])

        logger.info(f"Return {return_number} approved by {performed_by.email}")
        AdminReturnService._notify(
            return_request,
            Notification.TYPE_RETURN_APPROVED,
            "Retur Disetujui",
            f"Permintaan retur {return_number} disetujui. Silakan kirim barang kembali.",
        )
        return return_request

    @staticmethod
    @transaction.atomic
    def reject(return_number: str, reason: str, performed_by) -> ReturnRequest:
        reason = _reason(reason, "rejection_reason")
        return_request = AdminReturnService._pending(return_number)
        return_request.status = ReturnRequest.STATUS_REJECTED
        return_request.rejected_at = timezone.now()
        return_request.rejection_reason = reason
        return_request.save()

        order = return_request.order
        order.return_status = Order.RETURN_REJECTED
        order.save(update_fields=["return_status", "updated_at"])

        logger.info(f"Return {return_number} rejected by {performed_by.email}")
        AdminReturnService._notify(
            return_request,
            Notification.TYPE_RETURN_REJECTED,
            "Retur Ditolak",
            f"Permintaan retur {return_number} ditolak. Alasan: {reason}",
        )
        return return_request

    @staticmethod
    @transaction.atomic
    def complete(return_number: str, performed_by) -> ReturnRequest:
        """Close an approved return and put the items back into stock"""
        return_request = AdminReturnService._get(return_number, lock=True)
        if return_request.status != ReturnRequest.STATUS_APPROVED:
            raise ValidationError("Return must be approved first")

        for item in return_request.items.select_related("product", "product__category"):
            if item.product is None:
                logger.warning(f"Return {return_number}: product of {item.product_name} is gone")
                continue
            try:
                quantity = to_product_unit(item.product, item.quantity, item.unit)
            except UnitConversionError as e:
                raise ValidationError(f"{item.product_name}: {str(e)}")
            StockService.record_movement(
                item.product_id,
                StockMovement.TYPE_IN,
                quantity.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP),
                reason=f"Retur {return_number}",
                reference_type=StockMovement.REFERENCE_RETURN,
                reference_id=return_number,
                performed_by=performed_by,
            )

        return_request.status = ReturnRequest.STATUS_COMPLETED
        return_request.completed_at = timezone.now()
        return_request.save()

        order = return_request.order
        order.return_status = Order.RETURN_COMPLETED
        order.status = Order.STATUS_RETURNED
        order.save(update_fields=["return_status", "status", "updated_at"])

        logger.info(f"Return {return_number} completed by {performed_by.email}")
        AdminReturnService._notify(
            return_request,
            Notification.TYPE_RETURN_COMPLETED,
            "Retur Selesai",
            f"Retur {return_number} telah selesai diproses.",
        )
        return return_request
