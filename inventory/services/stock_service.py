"""
inventory/services/stock_service.py

Recording stock movements and querying the movement log
"""

import logging
from datetime import datetime, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone
from django.utils.dateparse import parse_date

from notifications.models import Notification
from notifications.services.notification_service import NotificationService
from products.models import Product
from ..models import StockMovement

logger = logging.getLogger(__name__)

QUANTITY_STEP = Decimal("0.001")


def _parse_day(value: str, end_of_day: bool = False) -> Optional[datetime]:
    """Parse YYYY-MM-DD into an aware datetime at the start (or end) of that day"""
    if not value:
        return None
    day = parse_date(value[:10])
    if day is None:
        raise ValidationError(f"Invalid date: {value}")
    moment = datetime.combine(day, time.max if end_of_day else time.min)
    return timezone.make_aware(moment)


class StockService:
    """Stock movement business logic"""

    MAX_LIMIT = 100
    DEFAULT_LIMIT = 50
    PRODUCT_HISTORY_LIMIT = 20

    @staticmethod
    def _to_quantity(value) -> Decimal:
        try:
            quantity = Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError({"quantity": "Quantity must be a number"})
        if not quantity.is_finite():
            raise ValidationError({"quantity": "Quantity must be a number"})
        quantity = quantity.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)
        if quantity <= 0:
            raise ValidationError({"quantity": "Quantity must be greater than 0"})
        return quantity

    @staticmethod
    @transaction.atomic
    def record_movement(
        product_id,
        movement_type: str,
        quantity,
        reason: str,
        reference_type: str,
        reference_id: str = "",
        performed_by=None,
        notes: str = "",
    ) -> StockMovement:
        """
        Apply a stock delta (in the product's own unit) and log it.
        Raises ValidationError("Insufficient stock") when an outgoing movement
        would take stock below zero.
        """
        if movement_type not in dict(StockMovement.TYPE_CHOICES):
            raise ValidationError({"movement_type": "Movement type must be 'in' or 'out'"})
        if reference_type not in dict(StockMovement.REFERENCE_CHOICES):
            raise ValidationError({"reference_type": "Invalid reference type"})
        if not (reason or "").strip():
            raise ValidationError({"reason": "Reason is required"})

        quantity = StockService._to_quantity(quantity)

        try:
            product = Product.objects.select_for_update().get(id=product_id)
        except (Product.DoesNotExist, ValueError, ValidationError):
            raise Product.DoesNotExist("Product not found")

        previous_stock = product.stock
        if movement_type == StockMovement.TYPE_OUT:
            if quantity > previous_stock:
                raise ValidationError(
                    f"Insufficient stock for {product.name}. "
                    f"Available: {previous_stock.normalize()}, requested: {quantity.normalize()}"
                )
            new_stock = previous_stock - quantity
        else:
            new_stock = previous_stock + quantity

        product.stock = new_stock
        product.save(update_fields=["stock", "updated_at"])

        movement = StockMovement.objects.create(
            product=product,
            product_name=product.name,
            product_code=product.slug,
            movement_type=movement_type,
            quantity=quantity,
            unit=product.unit,
            reason=reason.strip(),
            reference_type=reference_type,
            reference_id=str(reference_id or ""),
            performed_by=performed_by,
            performed_by_name=performed_by.full_name if performed_by else "System",
            previous_stock=previous_stock,
            new_stock=new_stock,
            notes=notes or "",
        )

        logger.info(
            f"Stock {movement_type} {quantity} {product.unit} for {product.slug}: "
            f"{previous_stock} -> {new_stock} ({reference_type} {reference_id})"
        )

        if previous_stock > product.min_stock >= new_stock:
            transaction.on_commit(lambda: StockService._alert_low_stock(product))

        return movement

    @staticmethod
    def _alert_low_stock(product: Product) -> None:
        try:
            NotificationService.notify_back_office(
                Notification.TYPE_LOW_STOCK_ALERT,
                "Stok Menipis",
                f"Stok {product.name} tersisa {product.stock.normalize()} {product.unit} "
                f"(minimum {product.min_stock.normalize()})",
                data={"product_id": str(product.id), "product_slug": product.slug},
                link="/admin/inventory",
            )
        except Exception as e:
            logger.error(f"Low stock alert failed for {product.slug}: {str(e)}")

    @staticmethod
    def get_movements(filters: Dict) -> Dict:
        """Filtered, offset-paginated movement log"""
        queryset = StockMovement.objects.all()

        if filters.get("product_id"):
            queryset = queryset.filter(product_id=filters["product_id"])
        if filters.get("product_code"):
            queryset = queryset.filter(product_code__icontains=filters["product_code"])
        if filters.get("movement_type"):
            queryset = queryset.filter(movement_type=filters["movement_type"])
        if filters.get("reference_type"):
            queryset = queryset.filter(reference_type=filters["reference_type"])

        date_from = _parse_day(filters.get("date_from"))
        date_to = _parse_day(filters.get("date_to"), end_of_day=True)
        if date_from:
            queryset = queryset.filter(created_at__gte=date_from)
        if date_to:
            queryset = queryset.filter(created_at__lte=date_to)

        limit = min(int(filters.get("limit") or StockService.DEFAULT_LIMIT), StockService.MAX_LIMIT)
        limit = max(limit, 1)
        offset = max(int(filters.get("offset") or 0), 0)

        total = queryset.count()
        movements = queryset.order_by("-created_at")[offset : offset + limit]

        return {
            "movements": [m.to_dict() for m in movements],
            "total": total,
            "has_more": offset + limit < total,
        }

    @staticmethod
    def get_product_movements(product_id, limit: int = PRODUCT_HISTORY_LIMIT):
        movements = StockMovement.objects.filter(product_id=product_id).order_by(
            "-created_at"
        )[:limit]
        return [m.to_dict() for m in movements]

    @staticmethod
    def get_summary(date_from: str = None, date_to: str = None) -> Dict:
        queryset = StockMovement.objects.all()
        start = _parse_day(date_from)
        end = _parse_day(date_to, end_of_day=True)
        if start:
            queryset = queryset.filter(created_at__gte=start)
        if end:
            queryset = queryset.filter(created_at__lte=end)

        totals = queryset.aggregate(
            total_in=Sum("quantity", filter=Q(movement_type=StockMovement.TYPE_IN)),
            total_out=Sum("quantity", filter=Q(movement_type=StockMovement.TYPE_OUT)),
            in_count=Count("id", filter=Q(movement_type=StockMovement.TYPE_IN)),
            out_count=Count("id", filter=Q(movement_type=StockMovement.TYPE_OUT)),
        )
        total_in = totals["total_in"] or Decimal("0")
        total_out = totals["total_out"] or Decimal("0")

        return {
            "total_in": float(total_in),
            "total_out": float(total_out),
            "net": float(total_in - total_out),
            "in_count": totals["in_count"],
            "out_count": totals["out_count"],
        }
