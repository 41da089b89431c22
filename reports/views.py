"""
reports/views.py

Read-only back-office reports
"""

import logging

from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from tokobangunan.utils.responses import APIResponse, parse_int
from users.decorators.auth import role_required
from .services.report_service import ReportService

logger = logging.getLogger(__name__)

SERVICE_ERRORS = (ObjectDoesNotExist, PermissionDenied, ValidationError)


def _report(name, build):
    try:
        return APIResponse.success(build())
    except ValueError:
        return APIResponse.bad_request("Invalid query parameter")
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"{name} report error: {str(e)}")
        return APIResponse.server_error()


def _dates(request):
    return request.GET.get("start_date"), request.GET.get("end_date")


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def periodic_sales(request):
    """?period=daily|weekly|monthly|custom&start_date=&end_date="""
    return _report(
        "Periodic sales",
        lambda: ReportService.periodic_sales(request.GET.get("period", "daily"), *_dates(request)),
    )


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def category_sales(request):
    return _report("Category sales", lambda: ReportService.category_sales(*_dates(request)))


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def payment_methods(request):
    return _report("Payment methods", lambda: ReportService.payment_methods(*_dates(request)))


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def best_sellers(request):
    return _report(
        "Best sellers",
        lambda: ReportService.best_sellers(
            *_dates(request),
            sort_by=request.GET.get("sort_by", "quantity"),
            limit=parse_int(request.GET.get("limit"), 10, 1, 100),
        ),
    )


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def low_stock(request):
    return _report(
        "Low stock",
        lambda: ReportService.low_stock(
            threshold=parse_int(request.GET.get("threshold"), settings.LOW_STOCK_THRESHOLD, 0),
            category=request.GET.get("category"),
            sort_by=request.GET.get("sort_by", "stock-asc"),
        ),
    )


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def slow_moving(request):
    return _report(
        "Slow moving",
        lambda: ReportService.slow_moving(
            period=request.GET.get("period", "90days"),
            category=request.GET.get("category"),
            status=request.GET.get("status", "all"),
        ),
    )


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def returns(request):
    return _report(
        "Returns",
        lambda: ReportService.returns(
            *_dates(request),
            status=request.GET.get("status"),
            product_id=request.GET.get("product_id"),
        ),
    )


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def top_customers(request):
    return _report(
        "Top customers",
        lambda: ReportService.top_customers(
            *_dates(request),
            sort_by=request.GET.get("sort_by", "total_spent"),
            limit=parse_int(request.GET.get("limit"), 20, 1, 100),
        ),
    )


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def new_customers(request):
    return _report(
        "New customers",
        lambda: ReportService.new_customers(
            *_dates(request), group_by=request.GET.get("group_by", "day")
        ),
    )


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def order_status(request):
    return _report("Order status", lambda: ReportService.order_status_summary(*_dates(request)))
