"""
vouchers/services/voucher_service.py

Voucher management, validation and redemption
"""

import logging
import re
from datetime import datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Tuple

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F, Q, Sum
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from ..models import Voucher

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^[A-Z0-9_-]{3,20}$")


def _parse_moment(value):
    if not value:
        return None
    moment = parse_datetime(str(value))
    if moment is None:
        day = parse_date(str(value)[:10])
        if day is None:
            return None
        moment = datetime.combine(day, time.min)
    if timezone.is_naive(moment):
        moment = timezone.make_aware(moment)
    return moment


class VoucherService:
    """Voucher business logic"""

    @staticmethod
    def _get(voucher_id) -> Voucher:
        try:
            return Voucher.objects.get(id=voucher_id)
        except (Voucher.DoesNotExist, ValueError, ValidationError):
            raise Voucher.DoesNotExist("Voucher not found")

    @staticmethod
    def _status_filter(queryset, status: str):
        now = timezone.now()
        if status == "active":
            return queryset.filter(is_active=True, start_date__lte=now, end_date__gte=now)
        if status == "inactive":
            return queryset.filter(is_active=False)
        if status == "expired":
            return queryset.filter(end_date__lt=now)
        return queryset

    @staticmethod
    def get_vouchers(
        search: str = "", status: str = "all", voucher_type: str = "all", page: int = 1, limit: int = 10
    ) -> Tuple[List[Dict], int]:
        queryset = Voucher.objects.all()
        if search:
            queryset = queryset.filter(Q(code__icontains=search) | Q(name__icontains=search))
        queryset = VoucherService._status_filter(queryset, status)
        if voucher_type and voucher_type != "all":
            queryset = queryset.filter(type=voucher_type)

        total = queryset.count()
        offset = (page - 1) * limit
        return [v.to_dict() for v in queryset[offset : offset + limit]], total

    @staticmethod
    def get_stats() -> Dict[str, int]:
        return {
            "total": Voucher.objects.count(),
            "active": VoucherService._status_filter(Voucher.objects.all(), "active").count(),
            "inactive": Voucher.objects.filter(is_active=False).count(),
            "expired": VoucherService._status_filter(Voucher.objects.all(), "expired").count(),
            "total_usage": Voucher.objects.aggregate(total=Sum("used_count"))["total"] or 0,
        }

    @staticmethod
    def _clean(data: Dict[str, Any], voucher: Voucher = None) -> Dict[str, Any]:
        """Validate incoming fields; on update only the fields present are checked"""
        creating = voucher is None
        errors = {}
        cleaned = {}

        if creating or "code" in data:
            code = (data.get("code") or "").strip().upper()
            if not CODE_PATTERN.match(code):
                errors["code"] = "Code must be 3-20 letters, digits, '-' or '_'"
            cleaned["code"] = code

        for field in ["name", "description"]:
            if creating or field in data:
                cleaned[field] = (data.get(field) or "").strip()
        if "name" in cleaned and not cleaned["name"]:
            errors["name"] = "Name is required"

        if creating or "type" in data:
            if data.get("type") not in dict(Voucher.TYPE_CHOICES):
                errors["type"] = "Type must be 'percentage' or 'fixed'"
            cleaned["type"] = data.get("type")

        for field, required in [("value", True), ("min_purchase", False), ("max_discount", False)]:
            if field not in data and not (creating and required):
                continue
            raw = data.get(field)
            if raw in (None, ""):
                if required:
                    errors[field] = "This field is required"
                else:
                    cleaned[field] = None if field == "max_discount" else Decimal("0")
                continue
            try:
                amount = Decimal(str(raw))
            except (InvalidOperation, ValueError):
                errors[field] = "Must be a number"
                continue
            if not amount.is_finite() or amount < 0:
                errors[field] = "Must not be negative"
                continue
            cleaned[field] = amount

        if creating or "usage_limit" in data:
            try:
                usage_limit = int(data.get("usage_limit"))
                if usage_limit < 1:
                    raise ValueError
                cleaned["usage_limit"] = usage_limit
            except (TypeError, ValueError):
                errors["usage_limit"] = "Usage limit must be at least 1"

        for field in ["start_date", "end_date"]:
            if creating or field in data:
                moment = _parse_moment(data.get(field))
                if moment is None:
                    errors[field] = "Invalid date"
                cleaned[field] = moment

        if "is_active" in data:
            cleaned["is_active"] = bool(data["is_active"])

        if errors:
            raise ValidationError(errors)

        voucher_type = cleaned.get("type", voucher.type if voucher else None)
        value = cleaned.get("value", voucher.value if voucher else None)
        if voucher_type == Voucher.TYPE_PERCENTAGE and value is not None and value > 100:
            raise ValidationError({"value": "Percentage cannot exceed 100"})

        start = cleaned.get("start_date", voucher.start_date if voucher else None)
        end = cleaned.get("end_date", voucher.end_date if voucher else None)
        if start and end and end <= start:
            raise ValidationError("End date must be after start date")

        return cleaned

    @staticmethod
    def create_voucher(data: Dict[str, Any], created_by) -> Voucher:
        cleaned = VoucherService._clean(data)
        if Voucher.objects.filter(code=cleaned["code"]).exists():
            raise ValidationError("Voucher code already exists", code="conflict")

        voucher = Voucher.objects.create(**cleaned)
        logger.info(f"Voucher {voucher.code} created by {created_by.email}")
        return voucher

    @staticmethod
    def update_voucher(voucher_id, data: Dict[str, Any], updated_by) -> Voucher:
        voucher = VoucherService._get(voucher_id)
        cleaned = VoucherService._clean(data, voucher)

        if "code" in cleaned and cleaned["code"] != voucher.code:
            if Voucher.objects.filter(code=cleaned["code"]).exclude(id=voucher.id).exists():
                raise ValidationError("Voucher code already exists", code="conflict")

        for field, value in cleaned.items():
            setattr(voucher, field, value)
        voucher.save()
        logger.info(f"Voucher {voucher.code} updated by {updated_by.email}")
        return voucher

    @staticmethod
    def toggle_status(voucher_id) -> Voucher:
        voucher = VoucherService._get(voucher_id)
        voucher.is_active = not voucher.is_active
        voucher.save(update_fields=["is_active", "updated_at"])
        return voucher

    @staticmethod
    def delete_voucher(voucher_id) -> Voucher:
        """Soft delete: the voucher is only deactivated, orders keep referencing it"""
        voucher = VoucherService._get(voucher_id)
        voucher.is_active = False
        voucher.save(update_fields=["is_active", "updated_at"])
        logger.info(f"Voucher {voucher.code} deactivated")
        return voucher

    @staticmethod
    def validate(code: str, subtotal) -> Tuple[Voucher, Decimal]:
        """
        Check a code against a subtotal and return the voucher with the
        discount it grants. Raises Voucher.DoesNotExist or ValidationError.
        """
        try:
            voucher = Voucher.objects.get(code=(code or "").strip().upper())
        except Voucher.DoesNotExist:
            raise Voucher.DoesNotExist("Voucher not found")

        subtotal = Decimal(str(subtotal))
        now = timezone.now()

        if not voucher.is_active:
            raise ValidationError("Voucher is not active")
        if now < voucher.start_date:
            raise ValidationError("Voucher is not valid yet")
        if now > voucher.end_date:
            raise ValidationError("Voucher has expired")
        if voucher.used_count >= voucher.usage_limit:
            raise ValidationError("Voucher usage limit reached")
        if subtotal < voucher.min_purchase:
            raise ValidationError(
                f"Minimum purchase is Rp {voucher.min_purchase:,.0f}".replace(",", ".")
            )

        return voucher, voucher.calculate_discount(subtotal)

    @staticmethod
    @transaction.atomic
    def redeem(code: str, subtotal) -> Tuple[Voucher, Decimal]:
        """Validate and consume one use of the voucher"""
        voucher, discount = VoucherService.validate(code, subtotal)
        updated = Voucher.objects.filter(
            id=voucher.id, used_count__lt=F("usage_limit")
        ).update(used_count=F("used_count") + 1)
        if not updated:
            raise ValidationError("Voucher usage limit reached")
        voucher.refresh_from_db()
        logger.info(f"Voucher {voucher.code} redeemed ({voucher.used_count}/{voucher.usage_limit})")
        return voucher, discount

    @staticmethod
    def release(code: str) -> None:
        """Give back one use, e.g. when an unpaid order is cancelled"""
        if not code:
            return
        released = Voucher.objects.filter(code=code.upper(), used_count__gt=0).update(
            used_count=F("used_count") - 1
        )
        if released:
            logger.info(f"Voucher {code.upper()} usage released")
