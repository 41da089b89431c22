"""
reports/services/report_service.py

Back-office reports. Sales figures only count paid orders; buckets are
built in local time (settings.TIME_ZONE).
"""

import logging
from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from orders.models import Order, OrderItem
from products.models import Product
from products.units import UnitConversionError, to_product_unit
from returns.models import ReturnRequest

logger = logging.getLogger(__name__)

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "Mei", "Jun", "Jul", "Agt", "Sep", "Okt", "Nov", "Des"]

SLOW_MOVING_PERIODS = {"30days": 30, "60days": 60, "90days": 90, "6months": 182}
SLOW_MOVING_STATUSES = ("dead", "very_slow", "slow")

LOW_STOCK_SORTS = ("stock-asc", "stock-desc", "name")


def _invalid(message: str) -> ValidationError:
    logger.warning(f"Report request rejected: {message}")
    return ValidationError(message)


def _money(value) -> float:
    return float(Decimal(value or 0).quantize(Decimal("0.01")))


def _share(part, whole) -> float:
    return round(float(part) / float(whole) * 100, 2) if whole else 0.0


def _parse_moment(value: str, end_of_day: bool = False) -> datetime:
    """Accept YYYY-MM-DD (whole day) or an ISO timestamp"""
    moment = parse_datetime(value) if "T" in value else None
    if moment is None:
        day = parse_date(value[:10])
        if day is None:
            raise _invalid(f"Invalid date: {value}")
        moment = datetime.combine(day, time.max if end_of_day else time.min)
    if timezone.is_naive(moment):
        moment = timezone.make_aware(moment)
    return moment


def _date_range(start: Optional[str], end: Optional[str], required: bool = True):
    if not start or not end:
        if required:
            raise _invalid("start_date and end_date are required")
        return None, None
    start_at = _parse_moment(start)
    end_at = _parse_moment(end, end_of_day=True)
    if end_at < start_at:
        raise _invalid("end_date must be after start_date")
    return start_at, end_at


def _in_range(queryset, field: str, start_at, end_at):
    if start_at is not None:
        queryset = queryset.filter(**{f"{field}__gte": start_at, f"{field}__lte": end_at})
    return queryset


def _range_dict(start_at, end_at):
    if start_at is None:
        return None
    return {"start": start_at.isoformat(), "end": end_at.isoformat()}


def _month_start(day: date, months_back: int = 0) -> date:
    month_index = day.year * 12 + day.month - 1 - months_back
    return date(month_index // 12, month_index % 12 + 1, 1)


def _next_month(day: date) -> date:
    return date(day.year + (day.month // 12), day.month % 12 + 1, 1)


def _day_label(day: date) -> str:
    return f"{day.day:02d} {MONTH_NAMES[day.month - 1]}"


def _month_label(day: date) -> str:
    return f"{MONTH_NAMES[day.month - 1]} {day.year}"


def _base_quantity(item: OrderItem) -> Decimal:
    """Sold quantity in the product's own unit, or as recorded when that fails"""
    if item.product is None:
        return item.quantity
    try:
        return to_product_unit(item.product, item.quantity, item.unit)
    except UnitConversionError:
        return item.quantity


def _paid_items(start_at=None, end_at=None):
    queryset = OrderItem.objects.filter(order__payment_status=Order.PAYMENT_PAID).select_related(
        "order", "product", "product__category"
    )
    return _in_range(queryset, "order__created_at", start_at, end_at)


class ReportService:
    """Sales, stock, return and customer reports"""

    # ==================== SALES ====================

    @staticmethod
    def _sales_buckets(period: str, start: str = None, end: str = None):
        """``(start_at, end_at, label, buckets)``; each bucket is ``(label, first_day, next_day)``"""
        today = timezone.localdate()

        if period == "daily":
            days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
            buckets = [(_day_label(d), d, d + timedelta(days=1)) for d in days]
            label = "7 Hari Terakhir"
        elif period == "weekly":
            first = today - timedelta(days=7 * 8 - 1)
            buckets = [
                (f"Minggu {index + 1}", first + timedelta(days=7 * index),
                 first + timedelta(days=7 * (index + 1)))
                for index in range(8)
            ]
            label = "8 Minggu Terakhir"
        elif period == "monthly":
            months = [_month_start(today, back) for back in range(11, -1, -1)]
            buckets = [(_month_label(m), m, _next_month(m)) for m in months]
            label = "12 Bulan Terakhir"
        elif period == "custom":
            start_at, end_at = _date_range(start, end)
            first, last = timezone.localtime(start_at).date(), timezone.localtime(end_at).date()
            if (last - first).days <= 31:
                buckets = [
                    (_day_label(first + timedelta(days=i)), first + timedelta(days=i),
                     first + timedelta(days=i + 1))
                    for i in range((last - first).days + 1)
                ]
            else:
                buckets, month = [], _month_start(first)
                while month <= last:
                    buckets.append((_month_label(month), month, _next_month(month)))
                    month = _next_month(month)
            label = f"{first.strftime('%d/%m/%Y')} - {last.strftime('%d/%m/%Y')}"
            return start_at, end_at, label, buckets
        else:
            raise _invalid("Period must be one of: daily, weekly, monthly, custom")

        start_at = timezone.make_aware(datetime.combine(buckets[0][1], time.min))
        end_at = timezone.make_aware(datetime.combine(today, time.max))
        return start_at, end_at, label, buckets

    @staticmethod
    def periodic_sales(period: str, start: str = None, end: str = None) -> Dict[str, Any]:
        start_at, end_at, label, buckets = ReportService._sales_buckets(period, start, end)
        orders = list(
            _in_range(
                Order.objects.filter(payment_status=Order.PAYMENT_PAID), "created_at", start_at, end_at
            ).prefetch_related("items")
        )

        chart = OrderedDict(
            (first, {"period": name, "date": first.isoformat(), "revenue": Decimal("0"), "orders": 0})
            for name, first, _ in buckets
        )
        firsts = [first for _, first, _ in buckets]

        total_revenue = Decimal("0")
        total_items = Decimal("0")
        for order in orders:
            total_revenue += order.total
            total_items += sum((item.quantity for item in order.items.all()), Decimal("0"))
            day = timezone.localtime(order.created_at).date()
            bucket = next(
                (first for (_, first, following) in buckets if first <= day < following), None
            )
            if bucket is None and firsts and day >= firsts[-1]:
                bucket = firsts[-1]
            if bucket is not None:
                chart[bucket]["revenue"] += order.total
                chart[bucket]["orders"] += 1

        return {
            "period": period,
            "period_label": label,
            "total_revenue": _money(total_revenue),
            "total_orders": len(orders),
            "total_items": float(total_items),
            "average_order_value": _money(total_revenue / len(orders)) if orders else 0.0,
            "chart_data": [
                {**point, "revenue": _money(point["revenue"])} for point in chart.values()
            ],
            "date_range": _range_dict(start_at, end_at),
        }

    @staticmethod
    def category_sales(start: str = None, end: str = None) -> Dict[str, Any]:
        start_at, end_at = _date_range(start, end, required=False)
        categories: Dict[str, Dict[str, Any]] = {}
        for item in _paid_items(start_at, end_at):
            row = categories.setdefault(
                item.category,
                {"category": item.category, "revenue": Decimal("0"), "quantity": Decimal("0"),
                 "orders": set()},
            )
            row["revenue"] += item.subtotal
            row["quantity"] += _base_quantity(item)
            row["orders"].add(item.order_id)

        total = sum((row["revenue"] for row in categories.values()), Decimal("0"))
        rows = sorted(categories.values(), key=lambda row: row["revenue"], reverse=True)
        return {
            "total_categories": len(rows),
            "total_revenue": _money(total),
            "categories": [
                {
                    "category": row["category"],
                    "revenue": _money(row["revenue"]),
                    "percentage": _share(row["revenue"], total),
                    "order_count": len(row["orders"]),
                    "products_sold": float(row["quantity"]),
                }
                for row in rows
            ],
            "date_range": _range_dict(start_at, end_at),
        }

    @staticmethod
    def payment_methods(start: str = None, end: str = None) -> Dict[str, Any]:
        start_at, end_at = _date_range(start, end, required=False)
        orders = _in_range(
            Order.objects.filter(payment_status=Order.PAYMENT_PAID), "created_at", start_at, end_at
        )

        methods: Dict[str, Dict[str, Any]] = {}
        for payment_type, payment_method, total in orders.values_list(
            "payment_type", "payment_method", "total"
        ):
            key = payment_type or payment_method or "unknown"
            row = methods.setdefault(key, {"count": 0, "amount": Decimal("0")})
            row["count"] += 1
            row["amount"] += total

        count = sum(row["count"] for row in methods.values())
        amount = sum((row["amount"] for row in methods.values()), Decimal("0"))
        rows = sorted(methods.items(), key=lambda pair: pair[1]["count"], reverse=True)
        return {
            "total_transactions": count,
            "total_amount": _money(amount),
            "methods": [
                {
                    "method": method,
                    "count": row["count"],
                    "percentage": _share(row["count"], count),
                    "total_amount": _money(row["amount"]),
                    "average_amount": _money(row["amount"] / row["count"]),
                }
                for method, row in rows
            ],
            "date_range": _range_dict(start_at, end_at),
        }

    @staticmethod
    def best_sellers(start: str, end: str, sort_by: str = "quantity", limit: int = 10) -> Dict:
        if sort_by not in ("quantity", "value"):
            raise _invalid("sort_by must be 'quantity' or 'value'")
        start_at, end_at = _date_range(start, end)

        products: Dict[str, Dict[str, Any]] = {}
        for item in _paid_items(start_at, end_at):
            key = str(item.product_id or item.product_slug)
            row = products.setdefault(
                key,
                {
                    "product_id": str(item.product_id) if item.product_id else None,
                    "product_name": item.product_name,
                    "category": item.category,
                    "image": item.image,
                    "unit": item.product.unit if item.product else item.unit,
                    "quantity": Decimal("0"),
                    "value": Decimal("0"),
                    "sales_count": 0,
                },
            )
            row["quantity"] += _base_quantity(item)
            row["value"] += item.subtotal
            row["sales_count"] += 1

        rows = sorted(products.values(), key=lambda row: row[sort_by], reverse=True)
        grand_total = sum((row[sort_by] for row in rows), Decimal("0"))
        return {
            "products": [
                {
                    **{k: v for k, v in row.items() if k not in ("quantity", "value")},
                    "total_quantity": float(row["quantity"]),
                    "total_value": _money(row["value"]),
                    "average_price": _money(row["value"] / row["quantity"]) if row["quantity"] else 0.0,
                    "percentage": _share(row[sort_by], grand_total),
                }
                for row in rows[:limit]
            ],
            "total_products": len(rows),
            "grand_total": float(grand_total) if sort_by == "quantity" else _money(grand_total),
            "sort_by": sort_by,
            "date_range": _range_dict(start_at, end_at),
        }

    # ==================== STOCK ====================

    @staticmethod
    def low_stock(threshold: int = 10, category: str = None, sort_by: str = "stock-asc") -> Dict:
        if sort_by not in LOW_STOCK_SORTS:
            raise _invalid(f"sort_by must be one of: {', '.join(LOW_STOCK_SORTS)}")

        queryset = Product.objects.filter(is_active=True, stock__lte=threshold).select_related(
            "category"
        )
        if category and category != "all":
            queryset = queryset.filter(category__slug=category)
        ordering = {"stock-asc": ["stock", "name"], "stock-desc": ["-stock", "name"],
                    "name": ["name"]}[sort_by]

        rows = []
        for product in queryset.order_by(*ordering):
            if product.stock < 5:
                priority = "critical"
            elif product.stock < 10:
                priority = "warning"
            else:
                priority = "low"
            rows.append(
                {
                    "id": str(product.id),
                    "product_name": product.name,
                    "slug": product.slug,
                    "category": product.category.name,
                    "current_stock": float(product.stock),
                    "min_stock": float(product.min_stock),
                    "unit": product.unit,
                    "price": float(product.price),
                    "image": product.main_image,
                    "priority": priority,
                    "last_updated": product.updated_at.isoformat(),
                }
            )

        return {
            "products": rows,
            "stats": {
                "total": len(rows),
                "critical": sum(1 for row in rows if row["priority"] == "critical"),
                "warning": sum(1 for row in rows if row["priority"] == "warning"),
                "low": sum(1 for row in rows if row["priority"] == "low"),
            },
            "threshold": threshold,
        }

    @staticmethod
    def slow_moving(period: str = "90days", category: str = None, status: str = "all") -> Dict:
        if period not in SLOW_MOVING_PERIODS:
            raise _invalid(f"period must be one of: {', '.join(SLOW_MOVING_PERIODS)}")
        if status != "all" and status not in SLOW_MOVING_STATUSES:
            raise _invalid(f"status must be one of: all, {', '.join(SLOW_MOVING_STATUSES)}")

        end_at = timezone.now()
        start_at = end_at - timedelta(days=SLOW_MOVING_PERIODS[period])

        sales: Dict[Any, Dict[str, Any]] = {}
        for item in _paid_items(start_at, end_at).filter(product__isnull=False):
            row = sales.setdefault(item.product_id, {"sold": Decimal("0"), "last_sold": None})
            row["sold"] += _base_quantity(item)
            if row["last_sold"] is None or item.order.created_at > row["last_sold"]:
                row["last_sold"] = item.order.created_at

        products = Product.objects.filter(is_active=True).select_related("category")
        if category and category != "all":
            products = products.filter(category__slug=category)

        window_days = (end_at - start_at).days
        rows = []
        for product in products:
            row = sales.get(product.id, {"sold": Decimal("0"), "last_sold": None})
            days = (end_at - row["last_sold"]).days if row["last_sold"] else window_days

            if row["sold"] == 0 or days >= 90:
                product_status = "dead"
            elif days >= 60:
                product_status = "very_slow"
            elif days >= 30:
                product_status = "slow"
            else:
                continue
            if status != "all" and product_status != status:
                continue

            rows.append(
                {
                    "id": str(product.id),
                    "product_name": product.name,
                    "category": product.category.name,
                    "current_stock": float(product.stock),
                    "unit": product.unit,
                    "total_sold": float(row["sold"]),
                    "last_sold_date": row["last_sold"].isoformat() if row["last_sold"] else None,
                    "days_not_sold": days,
                    "stock_value": _money(product.stock * product.price),
                    "price": float(product.price),
                    "status": product_status,
                }
            )

        rows.sort(key=lambda row: row["days_not_sold"], reverse=True)
        return {
            "products": rows,
            "stats": {
                "total_products": len(rows),
                "dead_stock": sum(1 for row in rows if row["status"] == "dead"),
                "very_slow": sum(1 for row in rows if row["status"] == "very_slow"),
                "slow": sum(1 for row in rows if row["status"] == "slow"),
                "total_stock_value": round(sum(row["stock_value"] for row in rows), 2),
            },
            "period": period,
        }

    # ==================== RETURNS ====================

    @staticmethod
    def returns(start: str, end: str, status: str = None, product_id: str = None) -> Dict:
        start_at, end_at = _date_range(start, end)
        queryset = _in_range(
            ReturnRequest.objects.select_related("order").prefetch_related("items"),
            "requested_at",
            start_at,
            end_at,
        )
        if status and status != "all":
            if status not in dict(ReturnRequest.STATUS_CHOICES):
                raise _invalid(f"Invalid status: {status}")
            queryset = queryset.filter(status=status)
        if product_id:
            queryset = queryset.filter(items__product_id=product_id).distinct()

        return_list = list(queryset.order_by("-requested_at"))
        products: Dict[str, Dict[str, Any]] = {}
        for return_request in return_list:
            for item in return_request.items.all():
                key = str(item.product_id or item.product_name)
                row = products.setdefault(
                    key,
                    {
                        "product_id": str(item.product_id) if item.product_id else None,
                        "product_name": item.product_name,
                        "total_quantity": Decimal("0"),
                        "total_returns": 0,
                        "total_amount": Decimal("0"),
                        "reasons": OrderedDict(),
                    },
                )
                row["total_quantity"] += item.quantity
                row["total_returns"] += 1
                row["total_amount"] += item.subtotal
                reason_key = (item.reason, item.condition)
                row["reasons"][reason_key] = row["reasons"].get(reason_key, 0) + 1

        stats = {status: 0 for status, _ in ReturnRequest.STATUS_CHOICES}
        for return_request in return_list:
            stats[return_request.status] += 1
        stats["total_returns"] = len(return_list)
        stats["total_amount"] = _money(sum((r.total_amount for r in return_list), Decimal("0")))

        return {
            "returns": [r.to_dict() for r in return_list],
            "stats": stats,
            "product_returns": sorted(
                (
                    {
                        **row,
                        "total_quantity": float(row["total_quantity"]),
                        "total_amount": _money(row["total_amount"]),
                        "reasons": [
                            {"reason": reason, "condition": condition, "count": count}
                            for (reason, condition), count in row["reasons"].items()
                        ],
                    }
                    for row in products.values()
                ),
                key=lambda row: row["total_returns"],
                reverse=True,
            ),
            "date_range": _range_dict(start_at, end_at),
        }

    # ==================== CUSTOMERS ====================

    @staticmethod
    def top_customers(start: str, end: str, sort_by: str = "total_spent", limit: int = 20) -> Dict:
        if sort_by not in ("total_spent", "order_count"):
            raise _invalid("sort_by must be 'total_spent' or 'order_count'")
        start_at, end_at = _date_range(start, end)

        orders = _in_range(
            Order.objects.filter(payment_status=Order.PAYMENT_PAID, user__isnull=False)
            .exclude(status=Order.STATUS_CANCELLED)
            .select_related("user"),
            "created_at",
            start_at,
            end_at,
        )

        customers: Dict[Any, Dict[str, Any]] = {}
        for order in orders:
            row = customers.setdefault(
                order.user_id,
                {
                    "customer_id": str(order.user_id),
                    "customer_name": order.user.full_name or order.recipient_name,
                    "customer_email": order.user.email,
                    "customer_phone": order.user.phone or order.phone_number,
                    "total_spent": Decimal("0"),
                    "order_count": 0,
                    "first_order_date": order.created_at,
                    "last_order_date": order.created_at,
                },
            )
            row["total_spent"] += order.total
            row["order_count"] += 1
            row["first_order_date"] = min(row["first_order_date"], order.created_at)
            row["last_order_date"] = max(row["last_order_date"], order.created_at)

        rows = sorted(customers.values(), key=lambda row: row[sort_by], reverse=True)
        revenue = sum((row["total_spent"] for row in rows), Decimal("0"))
        order_count = sum(row["order_count"] for row in rows)
        return {
            "customers": [
                {
                    **row,
                    "total_spent": _money(row["total_spent"]),
                    "average_order_value": _money(row["total_spent"] / row["order_count"]),
                    "first_order_date": row["first_order_date"].isoformat(),
                    "last_order_date": row["last_order_date"].isoformat(),
                }
                for row in rows[:limit]
            ],
            "stats": {
                "total_customers": len(rows),
                "total_revenue": _money(revenue),
                "total_orders": order_count,
                "average_spent_per_customer": _money(revenue / len(rows)) if rows else 0.0,
            },
            "date_range": _range_dict(start_at, end_at),
        }

    @staticmethod
    def _group_key(day: date, group_by: str) -> Tuple[str, str]:
        if group_by == "day":
            return day.isoformat(), _day_label(day)
        if group_by == "week":
            week_start = day - timedelta(days=day.weekday())
            return week_start.isoformat(), f"Minggu {_day_label(week_start)}"
        return f"{day.year}-{day.month:02d}", _month_label(day)

    @staticmethod
    def new_customers(start: str, end: str, group_by: str = "day") -> Dict:
        if group_by not in ("day", "week", "month"):
            raise _invalid("group_by must be one of: day, week, month")
        start_at, end_at = _date_range(start, end)

        User = get_user_model()
        customers = list(
            User.objects.customers()
            .filter(is_active=True, created_at__gte=start_at, created_at__lte=end_at)
            .order_by("-created_at")
        )

        span = end_at - start_at
        previous_total = User.objects.customers().filter(
            is_active=True, created_at__gte=start_at - span, created_at__lt=start_at
        ).count()

        total = len(customers)
        if previous_total:
            growth = round((total - previous_total) / previous_total * 100, 2)
        else:
            growth = 100.0 if total else 0.0
        days = max(span.days + (1 if span.seconds else 0), 1)

        groups: Dict[str, Dict[str, Any]] = {}
        for customer in customers:
            key, label = ReportService._group_key(
                timezone.localtime(customer.created_at).date(), group_by
            )
            groups.setdefault(key, {"date": key, "label": label, "count": 0})["count"] += 1

        return {
            "stats": {
                "total_new_customers": total,
                "growth_rate": growth,
                "previous_period_total": previous_total,
                "average_per_day": round(total / days, 2),
            },
            "chart_data": [groups[key] for key in sorted(groups)],
            "customers": [
                {
                    "id": str(customer.id),
                    "full_name": customer.full_name,
                    "email": customer.email,
                    "phone": customer.phone,
                    "created_at": customer.created_at.isoformat(),
                }
                for customer in customers
            ],
            "date_range": _range_dict(start_at, end_at),
        }

    # ==================== ORDERS ====================

    @staticmethod
    def order_status_summary(start: str, end: str) -> Dict:
        start_at, end_at = _date_range(start, end)
        orders = list(
            _in_range(Order.objects.select_related("user"), "created_at", start_at, end_at).order_by(
                "-created_at"
            )
        )

        summary = OrderedDict(
            (status, {"status": status, "label": label, "count": 0, "value": Decimal("0")})
            for status, label in Order.STATUS_CHOICES
        )
        for order in orders:
            summary[order.status]["count"] += 1
            summary[order.status]["value"] += order.total

        total = len(orders)
        revenue = sum(
            (o.total for o in orders if o.is_paid and o.status != Order.STATUS_CANCELLED),
            Decimal("0"),
        )
        return {
            "status_summary": [
                {**row, "value": _money(row["value"]), "percentage": _share(row["count"], total)}
                for row in summary.values()
            ],
            "total_orders": total,
            "total_revenue": _money(revenue),
            "recent_orders": [
                {
                    "order_number": order.order_number,
                    "customer_name": order.recipient_name,
                    "customer_phone": order.phone_number,
                    "customer_email": order.user.email if order.user else "",
                    "order_status": order.status,
                    "payment_status": order.payment_status,
                    "total": _money(order.total),
                    "created_at": order.created_at.isoformat(),
                }
                for order in orders[:50]
            ],
            "date_range": _range_dict(start_at, end_at),
        }
