"""
products/services/category_service.py

Category business logic
"""

import logging
from typing import Any, Dict, List

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Max, Q
from django.utils.text import slugify

from ..models import Category
from ..units import UnitConversionError, validate_units

logger = logging.getLogger(__name__)


class CategoryService:
    """Category business logic"""

    EDITABLE_FIELDS = ["description", "icon", "image", "is_active"]

    @staticmethod
    def _get(category_id) -> Category:
        try:
            return Category.objects.get(id=category_id)
        except (Category.DoesNotExist, ValueError, ValidationError):
            raise Category.DoesNotExist("Category not found")

    @staticmethod
    def get_active_categories() -> List[Dict]:
        """Active categories in display order, each with its active product count"""
        categories = Category.objects.filter(is_active=True).annotate(
            active_products=Count("products", filter=Q(products__is_active=True))
        )
        return [c.to_dict(product_count=c.active_products) for c in categories]

    @staticmethod
    def get_by_slug(slug: str) -> Category:
        try:
            return Category.objects.get(slug=slug, is_active=True)
        except Category.DoesNotExist:
            raise Category.DoesNotExist("Category not found")

    @staticmethod
    def get_admin_categories() -> Dict[str, Any]:
        categories = Category.objects.annotate(total_products=Count("products"))
        items = [c.to_dict(product_count=c.total_products) for c in categories]
        active = sum(1 for c in items if c["is_active"])
        return {
            "categories": items,
            "stats": {
                "total": len(items),
                "active": active,
                "inactive": len(items) - active,
            },
        }

    @staticmethod
    def _clean_units(units) -> List[Dict]:
        try:
            return validate_units(units)
        except UnitConversionError as e:
            raise ValidationError({"available_units": str(e)})

    @staticmethod
    @transaction.atomic
    def create_category(data: Dict[str, Any]) -> Category:
        name = (data.get("name") or "").strip()
        if len(name) < 2:
            raise ValidationError({"name": "Category name must be at least 2 characters"})

        slug = slugify(data.get("slug") or name)
        if not slug:
            raise ValidationError({"slug": "Invalid slug"})

        if Category.objects.filter(name__iexact=name).exists():
            raise ValidationError("Category name already exists", code="conflict")
        if Category.objects.filter(slug=slug).exists():
            raise ValidationError("Category slug already exists", code="conflict")

        last_order = Category.objects.aggregate(last=Max("order"))["last"]

        category = Category.objects.create(
            name=name,
            slug=slug,
            description=data.get("description", ""),
            icon=data.get("icon") or Category.DEFAULT_ICON,
            image=data.get("image", ""),
            is_active=bool(data.get("is_active", True)),
            order=0 if last_order is None else last_order + 1,
            available_units=CategoryService._clean_units(data.get("available_units", [])),
        )
        logger.info(f"Category created: {category.name} (order {category.order})")
        return category

    @staticmethod
    @transaction.atomic
    def update_category(category_id, data: Dict[str, Any]) -> Category:
        """
        Update a category. Setting ``order`` to a position held by another
        category swaps the two.
        """
        category = CategoryService._get(category_id)

        if "name" in data:
            name = (data.get("name") or "").strip()
            if len(name) < 2:
                raise ValidationError({"name": "Category name must be at least 2 characters"})
            if Category.objects.filter(name__iexact=name).exclude(id=category.id).exists():
                raise ValidationError("Category name already exists", code="conflict")
            category.name = name

        if "slug" in data:
            slug = slugify(data.get("slug") or "")
            if not slug:
                raise ValidationError({"slug": "Invalid slug"})
            if Category.objects.filter(slug=slug).exclude(id=category.id).exists():
                raise ValidationError("Category slug already exists", code="conflict")
            category.slug = slug

        for field in CategoryService.EDITABLE_FIELDS:
            if field in data:
                setattr(category, field, data[field])

        if "available_units" in data:
            category.available_units = CategoryService._clean_units(data["available_units"])

        if "order" in data:
            try:
                new_order = int(data["order"])
            except (TypeError, ValueError):
                raise ValidationError({"order": "Order must be a number"})
            if new_order < 0:
                raise ValidationError({"order": "Order must not be negative"})

            if new_order != category.order:
                holder = (
                    Category.objects.filter(order=new_order).exclude(id=category.id).first()
                )
                if holder:
                    holder.order = category.order
                    holder.save(update_fields=["order", "updated_at"])
                category.order = new_order

        category.save()
        logger.info(f"Category updated: {category.name}")
        return category

    @staticmethod
    def toggle_status(category_id) -> Category:
        category = CategoryService._get(category_id)
        category.is_active = not category.is_active
        category.save(update_fields=["is_active", "updated_at"])
        logger.info(
            f"Category {category.name} {'activated' if category.is_active else 'deactivated'}"
        )
        return category

    @staticmethod
    def delete_category(category_id) -> None:
        category = CategoryService._get(category_id)
        product_count = category.products.count()
        if product_count:
            raise ValidationError(
                f"Category still has {product_count} products. Move or delete them first."
            )
        category.delete()
        logger.info(f"Category deleted: {category.name}")
