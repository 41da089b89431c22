import json
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase

from inventory.models import StockMovement
from notifications.models import Notification
from orders.models import Order, OrderItem
from products.models import Category, Product
from returns.models import ReturnRequest
from returns.services.return_service import AdminReturnService, ReturnService
from users.utils.token_utils import generate_jwt_token

User = get_user_model()

REASON = "Semen menggumpal saat diterima"


def bearer(user):
    return {"HTTP_AUTHORIZATION": f"Bearer {generate_jwt_token(user)}"}


class ReturnFixtureMixin:

    def setUp(self):
        self.customer = User.objects.create_customer(
            email="budi@toko.test", password="Rahasia123", first_name="Budi", last_name="Santoso"
        )
        self.admin = User.objects.create_admin(email="admin@toko.test", password="Rahasia123")
        self.staff = User.objects.create_staff(email="staff@toko.test", password="Rahasia123")
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
        self.order = Order.objects.create(
            user=self.customer,
            recipient_name="Budi Santoso",
            phone_number="081234567890",
            full_address="Jl. Merdeka No. 10",
            district="Coblong",
            city="Bandung",
            province="Jawa Barat",
            postal_code="40132",
            subtotal=Decimal("195000"),
            total=Decimal("195000"),
            payment_status=Order.PAYMENT_PAID,
            status=Order.STATUS_DELIVERED,
        )
        self.item = OrderItem.objects.create(
            order=self.order, product=self.product, product_name=self.product.name,
            product_slug=self.product.slug, category="Semen",
            price=Decimal("65000"), quantity=Decimal("3"), unit="sak",
        )

    def request_return(self, quantity=2, **extra):
        data = {
            "order_number": self.order.order_number,
            "reason": REASON,
            "items": [
                {
                    "order_item_id": str(self.item.id),
                    "quantity": quantity,
                    "reason": REASON,
                    "condition": "damaged",
                }
            ],
        }
        data.update(extra)
        return ReturnService.create_return(self.customer, data)


class ReturnServiceTest(ReturnFixtureMixin, TestCase):

    def test_create_return(self):
        with self.captureOnCommitCallbacks(execute=True):
            return_request = self.request_return()

        self.assertTrue(return_request.return_number.startswith("RET-"))
        self.assertEqual(return_request.total_amount, Decimal("130000"))
        self.assertEqual(return_request.customer_name, "Budi Santoso")
        self.order.refresh_from_db()
        self.assertEqual(self.order.return_status, Order.RETURN_REQUESTED)
        self.assertEqual(
            Notification.objects.filter(type=Notification.TYPE_NEW_RETURN_REQUEST).count(), 2
        )

    def test_only_delivered_orders(self):
        Order.objects.filter(id=self.order.id).update(status=Order.STATUS_SHIPPED)
        with self.assertRaises(ValidationError):
            self.request_return()

    def test_one_return_per_order(self):
        self.request_return(quantity=1)
        with self.assertRaises(ValidationError):
            self.request_return(quantity=1)

    def test_cannot_exceed_ordered_quantity(self):
        with self.assertRaises(ValidationError):
            self.request_return(quantity=4)

    def test_short_reason_rejected(self):
        with self.assertRaises(ValidationError):
            self.request_return(reason="rusak")

    def test_foreign_item_rejected(self):
        with self.assertRaises(ValidationError):
            self.request_return(
                items=[{"order_item_id": "00000000-0000-0000-0000-000000000000",
                        "quantity": 1, "reason": REASON, "condition": "damaged"}]
            )

    def test_check_return(self):
        self.assertFalse(
            ReturnService.check_return(self.customer, self.order.order_number)["has_return"]
        )
        self.request_return()
        result = ReturnService.check_return(self.customer, self.order.order_number)
        self.assertTrue(result["has_return"])
        self.assertEqual(result["return"]["status"], ReturnRequest.STATUS_PENDING)


class AdminReturnServiceTest(ReturnFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.return_request = self.request_return()

    def test_approve_then_complete_restocks(self):
        number = self.return_request.return_number
        AdminReturnService.approve(number, self.admin)
        self.order.refresh_from_db()
        self.assertEqual(self.order.return_status, Order.RETURN_APPROVED)

        AdminReturnService.complete(number, self.admin)
        self.order.refresh_from_db()
        self.product.refresh_from_db()
        self.assertEqual(self.order.return_status, Order.RETURN_COMPLETED)
        self.assertEqual(self.order.status, Order.STATUS_RETURNED)
        self.assertEqual(self.product.stock, Decimal("12"))
        self.assertTrue(
            StockMovement.objects.filter(
                reference_type=StockMovement.REFERENCE_RETURN, reference_id=number
            ).exists()
        )
        types = set(Notification.objects.filter(user=self.customer).values_list("type", flat=True))
        self.assertIn(Notification.TYPE_RETURN_APPROVED, types)
        self.assertIn(Notification.TYPE_RETURN_COMPLETED, types)

    def test_complete_twice_restocks_once(self):
        number = self.return_request.return_number
        AdminReturnService.approve(number, self.admin)
        AdminReturnService.complete(number, self.admin)

        with self.assertRaises(ValidationError):
            AdminReturnService.complete(number, self.admin)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, Decimal("12"))
        self.assertEqual(
            StockMovement.objects.filter(
                reference_type=StockMovement.REFERENCE_RETURN, reference_id=number
            ).count(),
            1,
        )

    def test_complete_requires_approval(self):
        with self.assertRaises(ValidationError):
            AdminReturnService.complete(self.return_request.return_number, self.admin)

    def test_reject_needs_reason(self):
        with self.assertRaises(ValidationError):
            AdminReturnService.reject(self.return_request.return_number, "", self.admin)

        AdminReturnService.reject(
            self.return_request.return_number, "Kerusakan akibat penyimpanan", self.admin
        )
        self.order.refresh_from_db()
        self.assertEqual(self.order.return_status, Order.RETURN_REJECTED)

    def test_already_processed(self):
        AdminReturnService.approve(self.return_request.return_number, self.admin)
        with self.assertRaises(ValidationError):
            AdminReturnService.approve(self.return_request.return_number, self.admin)


class ReturnViewsTest(ReturnFixtureMixin, TestCase):

    def test_customer_submits_and_admin_lists(self):
        response = self.client.post(
            "/api/returns/",
            data=json.dumps(
                {
                    "order_number": self.order.order_number,
                    "reason": REASON,
                    "items": [{"order_item_id": str(self.item.id), "quantity": 1,
                               "reason": REASON, "condition": "defective"}],
                }
            ),
            content_type="application/json",
            **bearer(self.customer),
        )
        self.assertEqual(response.status_code, 201)

        response = self.client.get("/api/returns/admin/?search=Budi", **bearer(self.staff))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["pagination"]["total"], 1)

    def test_staff_cannot_approve(self):
        return_request = self.request_return()
        response = self.client.post(
            f"/api/returns/admin/{return_request.return_number}/approve/",
            **bearer(self.staff),
        )
        self.assertEqual(response.status_code, 403)
