import json
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase

from inventory.models import StockMovement
from products.models import Category, Product
from products.services.category_service import CategoryService
from products.services.product_service import AdminProductService, ProductService
from users.utils.token_utils import generate_jwt_token

User = get_user_model()


def bearer(user):
    return {"HTTP_AUTHORIZATION": f"Bearer {generate_jwt_token(user)}"}


class CategoryServiceTest(TestCase):

    def setUp(self):
        self.semen = CategoryService.create_category(
            {
                "name": "Semen",
                "available_units": [{"value": "sak", "label": "Sak", "conversion_rate": 50}],
            }
        )
        self.pipa = CategoryService.create_category({"name": "Pipa"})

    def test_order_is_appended(self):
        self.assertEqual(self.semen.order, 0)
        self.assertEqual(self.pipa.order, 1)
        self.assertEqual(self.semen.slug, "semen")

    def test_duplicate_name_conflicts(self):
        with self.assertRaises(ValidationError) as ctx:
            CategoryService.create_category({"name": "semen"})
        self.assertEqual(ctx.exception.code, "conflict")

    def test_order_change_swaps(self):
        CategoryService.update_category(self.pipa.id, {"order": 0})
        self.semen.refresh_from_db()
        self.pipa.refresh_from_db()
        self.assertEqual(self.pipa.order, 0)
        self.assertEqual(self.semen.order, 1)

    def test_delete_refused_with_products(self):
        Product.objects.create(
            name="Semen Gresik", slug="semen-gresik", category=self.semen,
            unit="sak", price=Decimal("65000"),
        )
        with self.assertRaises(ValidationError):
            CategoryService.delete_category(self.semen.id)
        CategoryService.delete_category(self.pipa.id)
        self.assertFalse(Category.objects.filter(id=self.pipa.id).exists())

    def test_admin_stats(self):
        CategoryService.toggle_status(self.pipa.id)
        stats = CategoryService.get_admin_categories()["stats"]
        self.assertEqual(stats, {"total": 2, "active": 1, "inactive": 1})


class ProductServiceTest(TestCase):

    def setUp(self):
        self.admin = User.objects.create_admin(email="admin@toko.test", password="Rahasia123")
        self.category = Category.objects.create(
            name="Semen",
            slug="semen",
            available_units=[
                {"value": "sak", "label": "Sak", "conversion_rate": 50},
                {"value": "kg", "label": "Kg", "conversion_rate": 1},
            ],
        )

    def _product(self, name, price, **extra):
        return Product.objects.create(
            name=name, slug=name.lower().replace(" ", "-"), category=self.category,
            unit="sak", price=Decimal(price), **extra
        )

    def test_create_records_initial_stock(self):
        product = AdminProductService.create_product(
            {
                "name": "Semen Gresik",
                "category_id": str(self.category.id),
                "unit": "sak",
                "price": 65000,
                "stock": 40,
                "min_stock": 5,
            },
            self.admin,
        )
        self.assertEqual(product.stock, Decimal("40"))
        self.assertEqual(product.available_units, ["sak"])

        movement = StockMovement.objects.get(product=product)
        self.assertEqual(movement.reference_type, StockMovement.REFERENCE_INITIAL)
        self.assertEqual(movement.new_stock, Decimal("40"))

    def test_create_rejects_unit_outside_category(self):
        with self.assertRaises(ValidationError):
            AdminProductService.create_product(
                {
                    "name": "Semen Curah",
                    "category_id": str(self.category.id),
                    "unit": "liter",
                    "price": 1000,
                },
                self.admin,
            )

    def test_list_filters_and_sorts(self):
        self._product("Semen A", "50000")
        self._product("Semen B", "70000", discount_percentage=Decimal("10"))
        self._product("Semen C", "60000", is_active=False)

        products, total = ProductService.get_products(sort="price-high")
        self.assertEqual(total, 2)
        self.assertEqual(products[0]["name"], "Semen B")
        self.assertEqual(products[0]["final_price"], 63000.0)

        products, total = ProductService.get_products(has_discount=True)
        self.assertEqual([p["name"] for p in products], ["Semen B"])

        products, total = ProductService.get_products(min_price=Decimal("60000"))
        self.assertEqual(total, 1)

    def test_get_by_slug_counts_views(self):
        product = self._product("Semen A", "50000")
        ProductService.get_by_slug(product.slug)
        ProductService.get_by_slug(product.slug)
        product.refresh_from_db()
        self.assertEqual(product.views, 2)

    def test_featured_prefers_flagged_then_sold(self):
        self._product("Semen A", "50000", sold=Decimal("100"))
        self._product("Semen B", "50000", is_featured=True)
        names = [p["name"] for p in ProductService.get_featured()]
        self.assertEqual(names[:2], ["Semen B", "Semen A"])

    def test_dashboard_low_stock(self):
        self._product("Semen A", "50000", stock=Decimal("2"), min_stock=Decimal("5"))
        self._product("Semen B", "50000", stock=Decimal("20"), min_stock=Decimal("5"))
        stats = ProductService.get_dashboard_stats()
        self.assertEqual(stats["total_products"], 2)
        self.assertEqual(stats["low_stock_products"], 1)


class ProductViewsTest(TestCase):

    def setUp(self):
        self.admin = User.objects.create_admin(email="admin@toko.test", password="Rahasia123")
        self.customer = User.objects.create_customer(
            email="budi@toko.test", password="Rahasia123"
        )
        self.category = Category.objects.create(
            name="Semen",
            slug="semen",
            available_units=[{"value": "sak", "label": "Sak", "conversion_rate": 50}],
        )

    def test_public_list(self):
        Product.objects.create(
            name="Semen Gresik", slug="semen-gresik", category=self.category,
            unit="sak", price=Decimal("65000"),
        )
        response = self.client.get("/api/products/?sort=popular&limit=5")
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["total"], 1)
        self.assertFalse(data["has_more"])

    def test_customer_cannot_create_product(self):
        response = self.client.post(
            "/api/products/admin/products/",
            data=json.dumps({"name": "Semen Gresik"}),
            content_type="application/json",
            **bearer(self.customer),
        )
        self.assertEqual(response.status_code, 403)

    def test_admin_creates_category(self):
        response = self.client.post(
            "/api/products/admin/categories/",
            data=json.dumps({"name": "Pipa"}),
            content_type="application/json",
            **bearer(self.admin),
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["data"]["category"]["slug"], "pipa")

    def test_unknown_slug_is_404(self):
        response = self.client.get("/api/products/tidak-ada/")
        self.assertEqual(response.status_code, 404)
