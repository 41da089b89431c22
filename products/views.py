"""
products/views.py

Catalog views: public product/category endpoints and back-office management
"""

import logging
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from tokobangunan.utils.responses import APIResponse, parse_int
from users.decorators.auth import json_request_required, role_required
from .services.category_service import CategoryService
from .services.product_service import AdminProductService, ProductService
from .units import UnitConversionError, convert_quantity, product_units

logger = logging.getLogger(__name__)

SERVICE_ERRORS = (ObjectDoesNotExist, PermissionDenied, ValidationError)


def _decimal_param(value):
    if value in (None, ""):
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        raise ValueError(f"Invalid number: {value}")


# ==================== PUBLIC PRODUCT VIEWS ====================


@csrf_exempt
@require_http_methods(["GET"])
def product_list(request):
    """Active products with filtering, sorting and limit/skip paging"""
    try:
        limit = parse_int(request.GET.get("limit"), 20, minimum=1, maximum=100)
        skip = parse_int(request.GET.get("skip"), 0, minimum=0)

        products, total = ProductService.get_products(
            category=request.GET.get("category"),
            search=request.GET.get("search", "").strip(),
            min_price=_decimal_param(request.GET.get("min_price")),
            max_price=_decimal_param(request.GET.get("max_price")),
            has_discount=request.GET.get("has_discount", "").lower() == "true",
            sort=request.GET.get("sort", "newest"),
            limit=limit,
            skip=skip,
        )

        return APIResponse.success(
            {
                "products": products,
                "total": total,
                "limit": limit,
                "skip": skip,
                "has_more": skip + limit < total,
            }
        )

    except ValueError:
        return APIResponse.bad_request("Invalid query parameter")
    except Exception as e:
        logger.error(f"Product list error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
def featured_products(request):
    try:
        return APIResponse.success({"products": ProductService.get_featured()})
    except Exception as e:
        logger.error(f"Featured products error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
def product_detail(request, slug):
    try:
        product = ProductService.get_by_slug(slug)
        data = product.to_dict()
        data["units"] = product_units(product)
        return APIResponse.success({"product": data})

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Product detail error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
def product_by_id(request, product_id):
    try:
        product = ProductService.get_by_id(product_id)
        if not product.is_active:
            return APIResponse.not_found("Product not found")
        return APIResponse.success({"product": product.to_dict()})

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Product by id error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@json_request_required
def products_by_ids(request):
    """Batch lookup used to refresh a locally stored cart"""
    try:
        products = ProductService.get_by_ids(request.json_data.get("ids", []))
        return APIResponse.success({"products": products})

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Products by ids error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
def convert_units(request, product_id):
    """Convert a quantity between two of a product's units"""
    try:
        product = ProductService.get_by_id(product_id)
        from_unit = request.GET.get("from") or product.unit
        to_unit = request.GET.get("to") or product.unit
        quantity = request.GET.get("quantity", "1")

        result = convert_quantity(product, quantity, from_unit, to_unit)
        return APIResponse.success(
            {
                "quantity": float(Decimal(quantity)),
                "from_unit": from_unit,
                "to_unit": to_unit,
                "result": float(result),
                "units": product_units(product),
            }
        )

    except UnitConversionError as e:
        return APIResponse.bad_request(str(e))
    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Unit conversion error: {str(e)}")
        return APIResponse.server_error()


# ==================== PUBLIC CATEGORY VIEWS ====================


@csrf_exempt
@require_http_methods(["GET"])
def category_list(request):
    try:
        return APIResponse.success(
            {"categories": CategoryService.get_active_categories()}
        )
    except Exception as e:
        logger.error(f"Category list error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET"])
def category_detail(request, slug):
    try:
        category = CategoryService.get_by_slug(slug)
        return APIResponse.success({"category": category.to_dict()})

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Category detail error: {str(e)}")
        return APIResponse.server_error()


# ==================== ADMIN PRODUCT VIEWS ====================


@csrf_exempt
@require_http_methods(["GET"])
@role_required("admin", "staff")
def dashboard_stats(request):
    try:
        return APIResponse.success(ProductService.get_dashboard_stats())
    except Exception as e:
        logger.error(f"Dashboard stats error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@role_required("admin", "staff")
@json_request_required
def admin_product_create(request):
    try:
        product = AdminProductService.create_product(request.json_data, request.user)
        return APIResponse.created({"product": product.to_dict()}, "Product created")

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Admin product create error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["GET", "PUT", "PATCH"])
@role_required("admin", "staff")
@json_request_required
def admin_product_detail(request, product_id):
    """Get (any status) or update a product"""
    try:
        if request.method == "GET":
            product = ProductService.get_by_id(product_id)
        else:
            product = AdminProductService.update_product(
                product_id, request.json_data, request.user
            )
        return APIResponse.success({"product": product.to_dict()})

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Admin product detail error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@role_required("admin", "staff")
def admin_product_toggle(request, product_id):
    try:
        product = AdminProductService.toggle_status(product_id, request.user)
        return APIResponse.success({"product": product.to_dict()}, "Product status updated")

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Admin product toggle error: {str(e)}")
        return APIResponse.server_error()


# ==================== ADMIN CATEGORY VIEWS ====================


@csrf_exempt
@require_http_methods(["GET", "POST"])
@role_required("admin", "staff")
@json_request_required
def admin_categories(request):
    """List with stats (admin/staff) or create (admin only)"""
    try:
        if request.method == "GET":
            return APIResponse.success(CategoryService.get_admin_categories())

        if not request.user.is_admin():
            return APIResponse.forbidden()

        category = CategoryService.create_category(request.json_data)
        return APIResponse.created({"category": category.to_dict()}, "Category created")

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Admin categories error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["PUT", "PATCH", "DELETE"])
@role_required("admin")
@json_request_required
def admin_category_detail(request, category_id):
    try:
        if request.method == "DELETE":
            CategoryService.delete_category(category_id)
            return APIResponse.success(message="Category deleted")

        category = CategoryService.update_category(category_id, request.json_data)
        return APIResponse.success({"category": category.to_dict()}, "Category updated")

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Admin category detail error: {str(e)}")
        return APIResponse.server_error()


@csrf_exempt
@require_http_methods(["POST"])
@role_required("admin")
def admin_category_toggle(request, category_id):
    try:
        category = CategoryService.toggle_status(category_id)
        return APIResponse.success({"category": category.to_dict()}, "Category status updated")

    except SERVICE_ERRORS as e:
        return APIResponse.from_exception(e)
    except Exception as e:
        logger.error(f"Admin category toggle error: {str(e)}")
        return APIResponse.server_error()
