"""
products/services/product_service.py

Product catalog and back-office product management
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Tuple

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django.utils.text import slugify

from inventory.models import StockMovement
from inventory.services.stock_service import StockService
from ..models import Category, Product

logger = logging.getLogger(__name__)


class ProductService:
    """Storefront product queries"""

    FEATURED_LIMIT = 8
    MAX_LIMIT = 100

    SORT_MAPPING = {
        "popular": ["-sold", "-created_at"],
        "newest": ["-created_at"],
        "price-low": ["price"],
        "price-high": ["-price"],
        "name": ["name"],
        "name-desc": ["-name"],
    }

    @staticmethod
    def get_products(
        category: str = None,
        search: str = None,
        min_price=None,
        max_price=None,
        has_discount: bool = False,
        sort: str = "newest",
        limit: int = 20,
        skip: int = 0,
    ) -> Tuple[List[Dict], int]:
        """Active products matching the filters, with the unpaginated total"""
        queryset = Product.objects.filter(is_active=True).select_related("category")

        if category:
            queryset = queryset.filter(category__slug=category)

        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) | Q(description__icontains=search)
            )

        if min_price is not None:
            queryset = queryset.filter(price__gte=min_price)
        if max_price is not None:
            queryset = queryset.filter(price__lte=max_price)

        if has_discount:
            queryset = queryset.filter(discount_percentage__gt=0).filter(
                Q(discount_valid_until__isnull=True)
                | Q(discount_valid_until__gt=timezone.now())
            )

        queryset = queryset.order_by(
            *ProductService.SORT_MAPPING.get(sort, ProductService.SORT_MAPPING["newest"])
        )

        limit = max(1, min(limit, ProductService.MAX_LIMIT))
        skip = max(0, skip)
        total = queryset.count()
        products = queryset[skip : skip + limit]

        return [p.to_dict() for p in products], total

    @staticmethod
    def get_featured() -> List[Dict]:
        """Featured products first, then best sellers"""
        products = (
            Product.objects.filter(is_active=True)
            .select_related("category")
            .order_by("-is_featured", "-sold", "-created_at")[: ProductService.FEATURED_LIMIT]
        )
        return [p.to_dict() for p in products]

    @staticmethod
    def get_by_slug(slug: str) -> Product:
        """Active product by slug; counts as a product view"""
        try:
            product = Product.objects.select_related("category").get(
                slug=slug, is_active=True
            )
        except Product.DoesNotExist:
            raise Product.DoesNotExist("Product not found")

        Product.objects.filter(id=product.id).update(views=F("views") + 1)
        product.views += 1
        return product

    @staticmethod
    def get_by_id(product_id) -> Product:
        try:
            return Product.objects.select_related("category").get(id=product_id)
        except (Product.DoesNotExist, ValueError, ValidationError):
            raise Product.DoesNotExist("Product not found")

    @staticmethod
    def get_by_ids(product_ids: List[str]) -> List[Dict]:
        if not isinstance(product_ids, list):
            raise ValidationError({"ids": "ids must be a list"})
        try:
            products = list(
                Product.objects.select_related("category").filter(id__in=product_ids)
            )
        except (ValueError, ValidationError):
            raise ValidationError({"ids": "Invalid product id"})
        return [p.to_dict() for p in products]

    @staticmethod
    def get_dashboard_stats() -> Dict[str, Any]:
        User = get_user_model()
        month_start = timezone.now().replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        recent = Product.objects.select_related("category").order_by("-created_at")[:5]
        return {
            "total_products": Product.objects.count(),
            "low_stock_products": Product.objects.filter(stock__lte=F("min_stock")).count(),
            "recent_products": [p.to_dict() for p in recent],
            "new_customers_this_month": User.objects.filter(
                role=User.ROLE_CUSTOMER, created_at__gte=month_start
            ).count(),
        }


class AdminProductService:
    """Back-office product management"""

    REQUIRED_FIELDS = ["name", "category_id", "unit", "price"]

    @staticmethod
    def _decimal(data: Dict, field: str, errors: Dict, minimum=Decimal("0"), maximum=None):
        try:
            value = Decimal(str(data[field]))
        except (InvalidOperation, TypeError, ValueError):
            errors[field] = "Must be a number"
            return None
        if not value.is_finite() or value < minimum:
            errors[field] = f"Must be at least {minimum}"
            return None
        if maximum is not None and value > maximum:
            errors[field] = f"Must be at most {maximum}"
            return None
        return value

    @staticmethod
    def _category(category_id) -> Category:
        try:
            return Category.objects.get(id=category_id)
        except (Category.DoesNotExist, ValueError, ValidationError):
            raise ValidationError({"category_id": "Category not found"})

    @staticmethod
    def _unique_slug(name: str, exclude_id=None) -> str:
        base = slugify(name) or "produk"
        slug = base
        counter = 1
        queryset = Product.objects.all()
        if exclude_id:
            queryset = queryset.exclude(id=exclude_id)
        while queryset.filter(slug=slug).exists():
            slug = f"{base}-{counter}"
            counter += 1
        return slug

    @staticmethod
    def _apply(product: Product, data: Dict[str, Any], errors: Dict) -> None:
        """Copy validated fields from ``data`` onto ``product``"""
        for field in ["name", "description", "brand"]:
            if field in data:
                setattr(product, field, (data[field] or "").strip())

        if "unit" in data:
            product.unit = (data["unit"] or "").strip().lower()

        if "price" in data:
            value = AdminProductService._decimal(data, "price", errors)
            if value is not None:
                product.price = value

        if "min_stock" in data:
            value = AdminProductService._decimal(data, "min_stock", errors)
            if value is not None:
                product.min_stock = value

        discount = data.get("discount")
        if isinstance(discount, dict):
            if "percentage" in discount:
                value = AdminProductService._decimal(
                    discount, "percentage", errors, maximum=Decimal("100")
                )
                if value is not None:
                    product.discount_percentage = value
            if "valid_until" in discount:
                raw = discount["valid_until"]
                if not raw:
                    product.discount_valid_until = None
                else:
                    moment = parse_datetime(str(raw))
                    if moment is None:
                        errors["discount.valid_until"] = "Invalid datetime"
                    else:
                        if timezone.is_naive(moment):
                            moment = timezone.make_aware(moment)
                        product.discount_valid_until = moment

        for field, kind in [("images", list), ("attributes", dict), ("available_units", list)]:
            if field in data:
                if not isinstance(data[field], kind):
                    errors[field] = f"{field} must be a {kind.__name__}"
                else:
                    setattr(product, field, data[field])

        for field in ["is_active", "is_featured"]:
            if field in data:
                setattr(product, field, bool(data[field]))

    @staticmethod
    def _check_units(product: Product, errors: Dict) -> None:
        if not product.unit:
            errors["unit"] = "Unit is required"
            return
        category_units = {u.get("value") for u in product.category.available_units or []}
        if not product.available_units:
            product.available_units = [product.unit]
        if category_units:
            unknown = [u for u in product.available_units if u not in category_units]
            if product.unit not in category_units:
                errors["unit"] = f"Unit '{product.unit}' is not available for {product.category.name}"
            elif unknown:
                errors["available_units"] = f"Units not available for category: {', '.join(unknown)}"

    @staticmethod
    @transaction.atomic
    def create_product(data: Dict[str, Any], user) -> Product:
        """Create a product; any initial stock is booked as an ``initial`` movement"""
        errors = {
            field: "This field is required"
            for field in AdminProductService.REQUIRED_FIELDS
            if data.get(field) in (None, "")
        }
        if errors:
            raise ValidationError(errors)

        if len((data.get("name") or "").strip()) < 3:
            raise ValidationError({"name": "Product name must be at least 3 characters"})

        initial_stock = Decimal("0")
        if data.get("stock") not in (None, ""):
            value = AdminProductService._decimal(data, "stock", errors)
            if value is not None:
                initial_stock = value

        product = Product(category=AdminProductService._category(data["category_id"]))
        AdminProductService._apply(product, data, errors)
        AdminProductService._check_units(product, errors)
        if errors:
            raise ValidationError(errors)

        product.slug = AdminProductService._unique_slug(data.get("slug") or product.name)
        product.stock = Decimal("0")
        product.save()

        if initial_stock > 0:
            StockService.record_movement(
                product_id=product.id,
                movement_type=StockMovement.TYPE_IN,
                quantity=initial_stock,
                reason="Stok awal",
                reference_type=StockMovement.REFERENCE_INITIAL,
                reference_id=str(product.id),
                performed_by=user,
            )
            product.refresh_from_db()

        logger.info(f"Product created by {user.email}: {product.name} ({product.slug})")
        return product

    @staticmethod
    @transaction.atomic
    def update_product(product_id, data: Dict[str, Any], user) -> Product:
        """Stock is not editable here; it changes through stock movements only"""
        product = ProductService.get_by_id(product_id)
        errors = {}

        if "category_id" in data:
            product.category = AdminProductService._category(data["category_id"])

        AdminProductService._apply(product, data, errors)
        AdminProductService._check_units(product, errors)
        if "name" in data and len(product.name) < 3:
            errors["name"] = "Product name must be at least 3 characters"
        if errors:
            raise ValidationError(errors)

        if data.get("slug"):
            product.slug = AdminProductService._unique_slug(data["slug"], exclude_id=product.id)

        product.save()
        logger.info(f"Product updated by {user.email}: {product.name}")
        return product

    @staticmethod
    def toggle_status(product_id, user) -> Product:
        product = ProductService.get_by_id(product_id)
        product.is_active = not product.is_active
        product.save(update_fields=["is_active", "updated_at"])
        logger.info(
            f"Product {product.slug} {'activated' if product.is_active else 'deactivated'} "
            f"by {user.email}"
        )
        return product
