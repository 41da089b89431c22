import json
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase

from inventory.models import StockMovement
from inventory.services.stock_service import StockService
from notifications.models import Notification
from products.models import Category, Product
from users.utils.token_utils import generate_jwt_token

User = get_user_model()


def bearer(user):
    return {"HTTP_AUTHORIZATION": f"Bearer {generate_jwt_token(user)}"}


class StockServiceTest(TestCase):

    def setUp(self):
        self.staff = User.objects.create_staff(
            email="gudang@toko.test", password="Rahasia123", first_name="Andi"
        )
        category = Category.objects.create(name="Semen", slug="semen")
        self.product = Product.objects.create(
            name="Semen Gresik", slug="semen-gresik", category=category,
            unit="sak", price=Decimal("65000"), stock=Decimal("10"), min_stock=Decimal("5"),
        )

    def record(self, movement_type, quantity, **extra):
        return StockService.record_movement(
            self.product.id,
            movement_type,
            quantity,
            reason=extra.pop("reason", "Stock opname"),
            reference_type=extra.pop("reference_type", StockMovement.REFERENCE_ADJUSTMENT),
            performed_by=self.staff,
            **extra,
        )

    def test_stock_in(self):
        movement = self.record(StockMovement.TYPE_IN, "2.5")
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, Decimal("12.500"))
        self.assertEqual(movement.previous_stock, Decimal("10"))
        self.assertEqual(movement.new_stock, Decimal("12.500"))
        self.assertEqual(movement.performed_by_name, "Andi")
        self.assertEqual(movement.unit, "sak")

    def test_stock_out_cannot_go_negative(self):
        with self.assertRaises(ValidationError):
            self.record(StockMovement.TYPE_OUT, 11)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, Decimal("10"))
        self.assertFalse(StockMovement.objects.exists())

    def test_invalid_input(self):
        with self.assertRaises(ValidationError):
            self.record("sideways", 1)
        with self.assertRaises(ValidationError):
            self.record(StockMovement.TYPE_IN, 0)
        with self.assertRaises(ValidationError):
            self.record(StockMovement.TYPE_IN, 1, reason=" ")
        with self.assertRaises(ValidationError):
            self.record(StockMovement.TYPE_IN, 1, reference_type="gift")

    def test_unknown_product(self):
        with self.assertRaises(Product.DoesNotExist):
            StockService.record_movement(
                "not-a-uuid", StockMovement.TYPE_IN, 1, "Restock",
                StockMovement.REFERENCE_ADJUSTMENT,
            )

    def test_low_stock_alert_when_crossing_minimum(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.record(StockMovement.TYPE_OUT, 6)
        alerts = Notification.objects.filter(type=Notification.TYPE_LOW_STOCK_ALERT)
        self.assertEqual(alerts.count(), 1)
        self.assertEqual(alerts.first().user, self.staff)

        # already below minimum, no second alert
        with self.captureOnCommitCallbacks(execute=True):
            self.record(StockMovement.TYPE_OUT, 1)
        self.assertEqual(alerts.count(), 1)

    def test_movement_log_and_summary(self):
        self.record(StockMovement.TYPE_IN, 5)
        self.record(StockMovement.TYPE_OUT, 2)
        self.record(StockMovement.TYPE_OUT, 1)

        log = StockService.get_movements({"movement_type": "out", "limit": "1"})
        self.assertEqual(log["total"], 2)
        self.assertEqual(len(log["movements"]), 1)
        self.assertTrue(log["has_more"])

        summary = StockService.get_summary()
        self.assertEqual(summary["total_in"], 5.0)
        self.assertEqual(summary["total_out"], 3.0)
        self.assertEqual(summary["net"], 2.0)
        self.assertEqual(summary["out_count"], 2)

    def test_invalid_date_filter(self):
        with self.assertRaises(ValidationError):
            StockService.get_movements({"date_from": "kemarin"})


class InventoryViewsTest(TestCase):

    def setUp(self):
        self.staff = User.objects.create_staff(email="gudang@toko.test", password="Rahasia123")
        self.customer = User.objects.create_customer(email="budi@toko.test", password="Rahasia123")
        category = Category.objects.create(name="Cat", slug="cat")
        self.product = Product.objects.create(
            name="Cat Tembok", slug="cat-tembok", category=category,
            unit="kaleng", price=Decimal("120000"), stock=Decimal("4"),
        )

    def post_movement(self, user, payload):
        return self.client.post(
            "/api/inventory/movements/",
            data=json.dumps(payload),
            content_type="application/json",
            **bearer(user),
        )

    def test_staff_records_adjustment(self):
        response = self.post_movement(
            self.staff,
            {"product_id": str(self.product.id), "movement_type": "in",
             "quantity": 6, "reason": "Barang datang"},
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["data"]["movement"]["new_stock"], 10.0)
        self.assertEqual(
            response.json()["data"]["movement"]["reference_type"], StockMovement.REFERENCE_ADJUSTMENT
        )

        response = self.client.get(
            f"/api/inventory/products/{self.product.id}/movements/", **bearer(self.staff)
        )
        self.assertEqual(len(response.json()["data"]["movements"]), 1)

    def test_insufficient_stock_is_400(self):
        response = self.post_movement(
            self.staff,
            {"product_id": str(self.product.id), "movement_type": "out",
             "quantity": 5, "reason": "Rusak"},
        )
        self.assertEqual(response.status_code, 400)

    def test_missing_reason(self):
        response = self.post_movement(
            self.staff, {"product_id": str(self.product.id), "movement_type": "in", "quantity": 1}
        )
        self.assertEqual(response.status_code, 400)

    def test_customer_forbidden(self):
        response = self.client.get("/api/inventory/movements/", **bearer(self.customer))
        self.assertEqual(response.status_code, 403)

    def test_summary(self):
        response = self.client.get("/api/inventory/movements/summary/", **bearer(self.staff))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["net"], 0.0)
