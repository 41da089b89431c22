"""
cart/services/cart_service.py

Cart business logic. Quantities are checked against stock after converting
them into the product's own unit.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Tuple

from django.core.exceptions import ValidationError
from django.db import transaction

from products.models import Product
from products.units import UnitConversionError, price_in_unit, to_product_unit
from ..models import Cart, CartItem

logger = logging.getLogger(__name__)

QUANTITY_STEP = Decimal("0.001")


class CartService:
    """Cart business logic"""

    @staticmethod
    def get_cart(user) -> Cart:
        cart, _ = Cart.objects.get_or_create(user=user)
        return cart

    @staticmethod
    def summary(cart: Cart) -> Dict[str, Any]:
        items = list(cart.items.select_related("product", "product__category"))
        subtotal = sum((item.subtotal for item in items), Decimal("0"))
        return {
            "items": [item.to_dict() for item in items],
            "item_count": len(items),
            "subtotal": float(subtotal),
        }

    @staticmethod
    def _quantity(value, allow_zero: bool = False) -> Decimal:
        try:
            quantity = Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError({"quantity": "Quantity must be a number"})
        if not quantity.is_finite():
            raise ValidationError({"quantity": "Quantity must be a number"})
        quantity = quantity.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)
        if quantity < 0 or (quantity == 0 and not allow_zero):
            raise ValidationError({"quantity": "Quantity must be at least 0.001"})
        return quantity

    @staticmethod
    def _product(product_id) -> Product:
        try:
            return Product.objects.select_related("category").get(
                id=product_id, is_active=True
            )
        except (Product.DoesNotExist, ValueError, ValidationError):
            raise Product.DoesNotExist("Product not found")

    @staticmethod
    def check_lines_stock(lines: List[Tuple[Product, Decimal, str]]) -> None:
        """
        Check ``(product, quantity, unit)`` lines against stock. Lines for the
        same product are summed in the product's unit before comparing.
        """
        needed = {}
        products = {}
        for product, quantity, unit in lines:
            try:
                base = to_product_unit(product, quantity, unit)
            except UnitConversionError as e:
                raise ValidationError({"unit": str(e)})
            needed[product.pk] = needed.get(product.pk, Decimal("0")) + base
            products[product.pk] = product

        for pk, total in needed.items():
            product = products[pk]
            if total > product.stock:
                raise ValidationError(
                    f"Insufficient stock for {product.name}. "
                    f"Available: {format(product.stock.normalize(), 'f')} {product.unit}"
                )

    @staticmethod
    def _other_units(cart: Cart, product: Product, unit: str) -> List[Tuple[Product, Decimal, str]]:
        """Lines of the same product held in the cart under other units"""
        return [
            (product, quantity, other_unit)
            for quantity, other_unit in CartItem.objects.filter(cart=cart, product=product)
            .exclude(unit=unit)
            .values_list("quantity", "unit")
        ]

    @staticmethod
    @transaction.atomic
    def add_item(user, product_id, quantity, unit: str = None) -> Cart:
        """Add to cart, merging with an existing line for the same product and unit"""
        product = CartService._product(product_id)
        quantity = CartService._quantity(quantity)
        unit = (unit or product.unit).lower()

        cart = CartService.get_cart(user)
        item = CartItem.objects.filter(cart=cart, product=product, unit=unit).first()
        new_quantity = quantity + (item.quantity if item else Decimal("0"))

        CartService.check_lines_stock(
            [(product, new_quantity, unit)] + CartService._other_units(cart, product, unit)
        )
        price = price_in_unit(product, unit)

        if item:
            item.quantity = new_quantity
            item.price = price
            item.save(update_fields=["quantity", "price", "updated_at"])
        else:
            CartItem.objects.create(
                cart=cart, product=product, quantity=new_quantity, unit=unit, price=price
            )

        logger.info(f"Cart {user.email}: +{quantity} {unit} {product.slug}")
        return cart

    @staticmethod
    @transaction.atomic
    def update_quantity(user, product_id, unit: str, quantity) -> Cart:
        """Set a line's quantity; zero removes the line"""
        quantity = CartService._quantity(quantity, allow_zero=True)
        cart = CartService.get_cart(user)

        try:
            item = CartItem.objects.select_related("product", "product__category").get(
                cart=cart, product_id=product_id, unit=(unit or "").lower()
            )
        except (CartItem.DoesNotExist, ValueError, ValidationError):
            raise CartItem.DoesNotExist("Item not found in cart")

        if quantity == 0:
            item.delete()
            return cart

        CartService.check_lines_stock(
            [(item.product, quantity, item.unit)]
            + CartService._other_units(cart, item.product, item.unit)
        )
        item.quantity = quantity
        item.price = price_in_unit(item.product, item.unit)
        item.save(update_fields=["quantity", "price", "updated_at"])
        return cart

    @staticmethod
    def remove_item(user, product_id, unit: str) -> Cart:
        cart = CartService.get_cart(user)
        try:
            deleted, _ = CartItem.objects.filter(
                cart=cart, product_id=product_id, unit=(unit or "").lower()
            ).delete()
        except (ValueError, ValidationError):
            deleted = 0
        if not deleted:
            raise CartItem.DoesNotExist("Item not found in cart")
        return cart

    @staticmethod
    def clear(user) -> Cart:
        cart = CartService.get_cart(user)
        cart.items.all().delete()
        return cart

    @staticmethod
    def merge(user, guest_items: List[Dict]) -> Tuple[Cart, List[Dict]]:
        """
        Merge a guest (browser-stored) cart after login. Each item is added
        like ``add_item``; items that fail are skipped and reported.
        """
        if not isinstance(guest_items, list):
            raise ValidationError({"items": "items must be a list"})

        skipped = []
        for guest_item in guest_items:
            if not isinstance(guest_item, dict):
                continue
            product_id = guest_item.get("product_id")
            try:
                CartService.add_item(
                    user, product_id, guest_item.get("quantity"), guest_item.get("unit")
                )
            except (Product.DoesNotExist, ValidationError) as e:
                message = e.messages[0] if isinstance(e, ValidationError) else str(e)
                skipped.append({"product_id": product_id, "reason": message})

        if skipped:
            logger.info(f"Cart merge for {user.email} skipped {len(skipped)} items")
        return CartService.get_cart(user), skipped
