"""
users/services/customer_service.py

Back-office customer and team administration
"""

import logging
from decimal import Decimal
from typing import Dict, List, Tuple
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, DecimalField, Max, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from orders.models import Order
from ..models.user import User

logger = logging.getLogger(__name__)

PAID_ORDERS = Q(orders__payment_status=Order.PAYMENT_PAID)


class CustomerService:
    """Customer administration (list, suspend, reactivate, stats)"""

    STATUS_FILTERS = ("all", "active", "inactive")
    MIN_SUSPENSION_REASON = 10

    @staticmethod
    def _with_order_totals(queryset):
        return queryset.annotate(
            total_orders=Count("orders", filter=PAID_ORDERS, distinct=True),
            total_spent=Coalesce(
                Sum("orders__total", filter=PAID_ORDERS),
                Value(Decimal("0")),
                output_field=DecimalField(max_digits=14, decimal_places=2),
            ),
        )

    @staticmethod
    def format_customer(customer: User) -> Dict:
        data = customer.to_dict()
        data["total_orders"] = getattr(customer, "total_orders", 0)
        data["total_spent"] = float(getattr(customer, "total_spent", 0) or 0)
        return data

    @staticmethod
    def get_customers(
        search: str = "", status: str = "all", page: int = 1, limit: int = 20
    ) -> Tuple[List[Dict], int]:
        if status not in CustomerService.STATUS_FILTERS:
            raise ValidationError(
                f"Invalid status. Must be one of: {', '.join(CustomerService.STATUS_FILTERS)}"
            )

        queryset = User.objects.customers()

        if search:
            queryset = queryset.filter(
                Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
                | Q(username__icontains=search)
                | Q(email__icontains=search)
                | Q(phone__icontains=search)
            )

        if status == "active":
            queryset = queryset.filter(is_active=True)
        elif status == "inactive":
            queryset = queryset.filter(is_active=False)

        total = queryset.count()
        offset = (page - 1) * limit
        customers = CustomerService._with_order_totals(queryset).order_by(
            "-created_at"
        )[offset : offset + limit]

        return [CustomerService.format_customer(c) for c in customers], total

    @staticmethod
    def get_customer(customer_id) -> User:
        try:
            return CustomerService._with_order_totals(User.objects.customers()).get(
                id=customer_id
            )
        except (User.DoesNotExist, ValueError, ValidationError):
            raise User.DoesNotExist("Customer not found")

    @staticmethod
    @transaction.atomic
    def suspend_customer(customer_id, reason: str, performed_by: User) -> User:
        reason = (reason or "").strip()
        if len(reason) < CustomerService.MIN_SUSPENSION_REASON:
            raise ValidationError(
                {"reason": "Suspension reason must be at least 10 characters"}
            )

        try:
            user = User.objects.select_for_update().get(id=customer_id)
        except (User.DoesNotExist, ValueError, ValidationError):
            raise User.DoesNotExist("Customer not found")

        if not user.is_customer():
            raise ValidationError("Only customer accounts can be suspended")
        if not user.is_active:
            raise ValidationError("Customer is already suspended")

        user.is_active = False
        user.suspended_at = timezone.now()
        user.suspension_reason = reason
        user.save(update_fields=["is_active", "suspended_at", "suspension_reason", "updated_at"])

        logger.info(f"Customer {user.email} suspended by {performed_by.email}")
        return user

    @staticmethod
    @transaction.atomic
    def reactivate_customer(customer_id, performed_by: User) -> User:
        try:
            user = User.objects.select_for_update().get(
                id=customer_id, role=User.ROLE_CUSTOMER
            )
        except (User.DoesNotExist, ValueError, ValidationError):
            raise User.DoesNotExist("Customer not found")

        if user.is_active:
            raise ValidationError("Customer is already active")

        user.is_active = True
        user.suspended_at = None
        user.suspension_reason = ""
        user.save(update_fields=["is_active", "suspended_at", "suspension_reason", "updated_at"])

        logger.info(f"Customer {user.email} reactivated by {performed_by.email}")
        return user

    @staticmethod
    def get_customer_stats() -> Dict:
        customers = User.objects.customers()
        month_start = timezone.now().replace(
            day=1, hour=0, minute=0, second=0, microsecond=0
        )
        revenue = Order.objects.filter(payment_status=Order.PAYMENT_PAID).aggregate(
            total=Sum("total")
        )["total"]

        return {
            "total_customers": customers.count(),
            "active_customers": customers.filter(is_active=True).count(),
            "inactive_customers": customers.filter(is_active=False).count(),
            "new_this_month": customers.filter(created_at__gte=month_start).count(),
            "total_revenue": float(revenue or 0),
        }

    @staticmethod
    def get_customer_order_stats(customer_id) -> Dict:
        customer = CustomerService.get_customer(customer_id)
        stats = Order.objects.filter(
            user=customer, payment_status=Order.PAYMENT_PAID
        ).aggregate(
            total_orders=Count("id"),
            total_spent=Sum("total"),
            last_order_date=Max("created_at"),
        )
        return {
            "total_orders": stats["total_orders"],
            "total_spent": float(stats["total_spent"] or 0),
            "last_order_date": (
                stats["last_order_date"].isoformat() if stats["last_order_date"] else None
            ),
        }


class TeamService:
    """Admin and staff account management"""

    @staticmethod
    def get_team(search: str = "", role: str = None) -> List[Dict]:
        queryset = User.objects.back_office(active_only=False)
        if role:
            queryset = queryset.filter(role=role)
        if search:
            queryset = queryset.filter(
                Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
                | Q(email__icontains=search)
            )
        return [member.to_dict() for member in queryset.order_by("role", "email")]

    @staticmethod
    @transaction.atomic
    def set_active(member_id, is_active: bool, performed_by: User) -> User:
        try:
            member = User.objects.back_office(active_only=False).get(id=member_id)
        except (User.DoesNotExist, ValueError, ValidationError):
            raise User.DoesNotExist("Team member not found")

        if member.id == performed_by.id:
            raise ValidationError("You cannot change your own account status")

        member.is_active = is_active
        member.save(update_fields=["is_active", "updated_at"])
        logger.info(
            f"Team member {member.email} {'activated' if is_active else 'deactivated'} "
            f"by {performed_by.email}"
        )
        return member
