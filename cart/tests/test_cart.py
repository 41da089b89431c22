import json
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase

from cart.models import CartItem
from cart.services.cart_service import CartService
from products.models import Category, Product
from users.utils.token_utils import generate_jwt_token

User = get_user_model()


class CartServiceTest(TestCase):

    def setUp(self):
        self.user = User.objects.create_customer(email="budi@toko.test", password="Rahasia123")
        category = Category.objects.create(
            name="Semen",
            slug="semen",
            available_units=[
                {"value": "sak", "label": "Sak", "conversion_rate": 50},
                {"value": "kg", "label": "Kg", "conversion_rate": 1},
            ],
        )
        self.product = Product.objects.create(
            name="Semen Gresik", slug="semen-gresik", category=category,
            unit="sak", price=Decimal("65000"), stock=Decimal("10"),
        )

    def test_add_merges_same_unit(self):
        CartService.add_item(self.user, self.product.id, 2)
        CartService.add_item(self.user, self.product.id, 3, "sak")
        item = CartItem.objects.get(cart__user=self.user)
        self.assertEqual(item.quantity, Decimal("5"))

    def test_different_unit_is_separate_line(self):
        CartService.add_item(self.user, self.product.id, 1, "sak")
        CartService.add_item(self.user, self.product.id, 25, "kg")
        summary = CartService.summary(CartService.get_cart(self.user))
        self.assertEqual(summary["item_count"], 2)
        # 25 kg = half a sak
        self.assertEqual(summary["subtotal"], 65000.0 + 32500.0)

    def test_stock_checked_in_product_unit(self):
        CartService.add_item(self.user, self.product.id, 500, "kg")
        with self.assertRaises(ValidationError):
            CartService.add_item(self.user, self.product.id, 1, "kg")

    def test_stock_summed_across_units(self):
        CartService.add_item(self.user, self.product.id, 8, "sak")
        with self.assertRaises(ValidationError):
            CartService.add_item(self.user, self.product.id, 150, "kg")
        CartService.add_item(self.user, self.product.id, 100, "kg")

        with self.assertRaises(ValidationError):
            CartService.update_quantity(self.user, self.product.id, "sak", 9)
        self.assertEqual(
            CartItem.objects.get(cart__user=self.user, unit="sak").quantity, Decimal("8")
        )

    def test_update_to_zero_removes(self):
        CartService.add_item(self.user, self.product.id, 2)
        CartService.update_quantity(self.user, self.product.id, "sak", 0)
        self.assertFalse(CartItem.objects.exists())

    def test_remove_missing_item(self):
        with self.assertRaises(CartItem.DoesNotExist):
            CartService.remove_item(self.user, self.product.id, "sak")

    def test_merge_reports_skipped(self):
        cart, skipped = CartService.merge(
            self.user,
            [
                {"product_id": str(self.product.id), "quantity": 4, "unit": "sak"},
                {"product_id": str(self.product.id), "quantity": 20, "unit": "sak"},
            ],
        )
        self.assertEqual(len(skipped), 1)
        self.assertEqual(cart.items.get().quantity, Decimal("4"))


class CartViewsTest(TestCase):

    def setUp(self):
        self.user = User.objects.create_customer(email="budi@toko.test", password="Rahasia123")
        self.headers = {"HTTP_AUTHORIZATION": f"Bearer {generate_jwt_token(self.user)}"}
        category = Category.objects.create(
            name="Pipa",
            slug="pipa",
            available_units=[{"value": "batang", "label": "Batang", "conversion_rate": 1}],
        )
        self.product = Product.objects.create(
            name="Pipa PVC 3/4", slug="pipa-pvc", category=category,
            unit="batang", price=Decimal("25000"), stock=Decimal("3"),
        )

    def test_requires_login(self):
        self.assertEqual(self.client.get("/api/cart/").status_code, 401)

    def test_add_and_get(self):
        response = self.client.post(
            "/api/cart/items/",
            data=json.dumps({"product_id": str(self.product.id), "quantity": 2}),
            content_type="application/json",
            **self.headers,
        )
        self.assertEqual(response.status_code, 200)

        cart = self.client.get("/api/cart/", **self.headers).json()["data"]["cart"]
        self.assertEqual(cart["subtotal"], 50000.0)

    def test_insufficient_stock_is_400(self):
        response = self.client.post(
            "/api/cart/items/",
            data=json.dumps({"product_id": str(self.product.id), "quantity": 5}),
            content_type="application/json",
            **self.headers,
        )
        self.assertEqual(response.status_code, 400)
