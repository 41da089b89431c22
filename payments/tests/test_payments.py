import json
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings

from inventory.models import StockMovement
from notifications.models import Notification
from orders.models import Order, OrderItem
from payments.midtrans import map_transaction_status, signature_for, verify_signature
from payments.services.payment_service import PaymentService
from products.models import Category, Product
from users.utils.token_utils import generate_jwt_token

User = get_user_model()

SERVER_KEY = "SB-Mid-server-test"


def bearer(user):
    return {"HTTP_AUTHORIZATION": f"Bearer {generate_jwt_token(user)}"}


class MidtransHelpersTest(TestCase):

    def test_status_mapping(self):
        self.assertEqual(map_transaction_status("capture", "accept"), ("paid", "paid"))
        self.assertEqual(
            map_transaction_status("capture", "challenge"), ("pending", "pending_payment")
        )
        self.assertEqual(map_transaction_status("capture", "deny"), ("failed", "cancelled"))
        self.assertEqual(map_transaction_status("settlement"), ("paid", "paid"))
        self.assertEqual(map_transaction_status("expire"), ("expired", "cancelled"))
        self.assertEqual(map_transaction_status("cancel"), ("failed", "cancelled"))
        self.assertEqual(map_transaction_status("authorize"), ("pending", "pending_payment"))

    def test_signature(self):
        signature = signature_for("ORD-20250101-0001", "200", "150000.00", SERVER_KEY)
        self.assertEqual(len(signature), 128)
        self.assertTrue(
            verify_signature("ORD-20250101-0001", "200", "150000.00", signature, SERVER_KEY)
        )
        self.assertFalse(
            verify_signature("ORD-20250101-0001", "200", "150001.00", signature, SERVER_KEY)
        )
        self.assertFalse(verify_signature("ORD-20250101-0001", "200", "150000.00", "", SERVER_KEY))


class PaymentFixtureMixin:

    def setUp(self):
        self.customer = User.objects.create_customer(
            email="budi@toko.test", password="Rahasia123", first_name="Budi"
        )
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
            unit="sak", price=Decimal("65000"), stock=Decimal("20"), min_stock=Decimal("5"),
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
            subtotal=Decimal("143000"),
            shipping_cost=Decimal("45000"),
            total=Decimal("188000"),
            courier="jne",
            courier_name="JNE",
            courier_service="REG",
        )
        OrderItem.objects.create(
            order=self.order, product=self.product, product_name=self.product.name,
            product_slug=self.product.slug, category="Semen",
            price=Decimal("65000"), quantity=Decimal("2"), unit="sak",
        )
        OrderItem.objects.create(
            order=self.order, product=self.product, product_name=self.product.name,
            product_slug=self.product.slug, category="Semen",
            price=Decimal("1300"), quantity=Decimal("10"), unit="kg",
        )

    def notification(self, transaction_status, fraud_status="accept", **extra):
        payload = {
            "order_id": self.order.order_number,
            "status_code": "200",
            "gross_amount": "188000.00",
            "transaction_status": transaction_status,
            "fraud_status": fraud_status,
            "payment_type": "bank_transfer",
            "transaction_id": "trx-123",
        }
        payload.update(extra)
        payload.setdefault(
            "signature_key",
            signature_for(payload["order_id"], payload["status_code"],
                          payload["gross_amount"], SERVER_KEY),
        )
        return payload

    def post_notification(self, payload):
        return self.client.post(
            "/api/payments/midtrans/notification/",
            data=json.dumps(payload),
            content_type="application/json",
        )


class PaymentNotificationTest(PaymentFixtureMixin, TestCase):

    def test_settlement_applies_first_payment(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.post_notification(self.notification("settlement"))
        self.assertEqual(response.status_code, 200)

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_PAID)
        self.assertEqual(self.order.status, Order.STATUS_PROCESSING)
        self.assertEqual(self.order.payment_type, "bank_transfer")
        self.assertIsNotNone(self.order.paid_at)

        # 2 sak + 10 kg (0.2 sak)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, Decimal("17.800"))
        self.assertEqual(self.product.sold, Decimal("2.200"))
        movements = StockMovement.objects.filter(
            reference_type=StockMovement.REFERENCE_ORDER, reference_id=self.order.order_number
        )
        self.assertEqual(movements.count(), 2)

        self.assertTrue(
            Notification.objects.filter(
                user=self.customer, type=Notification.TYPE_ORDER_CONFIRMED
            ).exists()
        )
        self.assertTrue(
            Notification.objects.filter(
                user=self.staff, type=Notification.TYPE_NEW_PAID_ORDER
            ).exists()
        )

    def test_repeated_notification_is_idempotent(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.post_notification(self.notification("settlement"))
        self.order.refresh_from_db()
        paid_at = self.order.paid_at

        with self.captureOnCommitCallbacks(execute=True):
            response = self.post_notification(self.notification("settlement"))
        self.assertEqual(response.status_code, 200)

        self.order.refresh_from_db()
        self.product.refresh_from_db()
        self.assertEqual(self.order.paid_at, paid_at)
        self.assertEqual(self.product.stock, Decimal("17.800"))
        self.assertEqual(
            Notification.objects.filter(type=Notification.TYPE_NEW_PAID_ORDER).count(), 1
        )

    def test_late_pending_does_not_unpay(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.post_notification(self.notification("settlement"))
        self.post_notification(self.notification("pending"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_PAID)

    def test_invalid_signature_is_403(self):
        response = self.post_notification(self.notification("settlement", signature_key="bad"))
        self.assertEqual(response.status_code, 403)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_PENDING)

    def test_unknown_order_is_404(self):
        response = self.post_notification(
            self.notification("settlement", order_id="ORD-20990101-0000")
        )
        self.assertEqual(response.status_code, 404)

    def test_webhook_is_post_only(self):
        response = self.client.get("/api/payments/midtrans/notification/")
        self.assertEqual(response.status_code, 405)

    def test_expire_cancels_order(self):
        self.post_notification(self.notification("expire", fraud_status=None))
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_EXPIRED)
        self.assertEqual(self.order.status, Order.STATUS_CANCELLED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, Decimal("20"))

    def test_refund_keeps_payment(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.post_notification(self.notification("settlement"))
        self.post_notification(self.notification("refund"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_PAID)
        self.assertEqual(self.order.status, Order.STATUS_CANCELLED)
        self.assertTrue(self.order.cancel_reason)


class SnapTokenTest(PaymentFixtureMixin, TestCase):

    def test_item_details_sum_to_gross_amount(self):
        lines = PaymentService.item_details(self.order)
        total = sum(line["price"] * line["quantity"] for line in lines)
        self.assertEqual(total, 188000)
        self.assertIn("SHIPPING", [line["id"] for line in lines])

    @patch("payments.services.payment_service.MidtransClient.create_transaction")
    def test_token_created_once(self, create_transaction):
        create_transaction.return_value = {
            "token": "snap-token-1",
            "redirect_url": "https://app.sandbox.midtrans.com/snap/v2/vtweb/snap-token-1",
        }
        response = self.client.post(
            f"/api/payments/{self.order.order_number}/snap-token/", **bearer(self.customer)
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["token"], "snap-token-1")

        self.client.post(
            f"/api/payments/{self.order.order_number}/snap-token/", **bearer(self.customer)
        )
        self.assertEqual(create_transaction.call_count, 1)
        kwargs = create_transaction.call_args.kwargs
        self.assertEqual(kwargs["gross_amount"], 188000)

    def test_paid_order_has_no_token(self):
        Order.objects.filter(id=self.order.id).update(payment_status=Order.PAYMENT_PAID)
        response = self.client.post(
            f"/api/payments/{self.order.order_number}/snap-token/", **bearer(self.customer)
        )
        self.assertEqual(response.status_code, 400)

    def test_simulate_in_sandbox(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(
                f"/api/payments/{self.order.order_number}/simulate/", **bearer(self.customer)
            )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["order"]["payment_status"], "paid")

    @override_settings(MIDTRANS_IS_PRODUCTION=True)
    def test_simulate_refused_in_production(self):
        response = self.client.post(
            f"/api/payments/{self.order.order_number}/simulate/", **bearer(self.customer)
        )
        self.assertEqual(response.status_code, 403)

    @patch("payments.services.payment_service.MidtransClient.get_status")
    def test_sync_status(self, get_status):
        get_status.return_value = {
            "transaction_status": "settlement",
            "payment_type": "gopay",
            "transaction_id": "trx-9",
        }
        with self.captureOnCommitCallbacks(execute=True):
            order = PaymentService.sync_status(self.customer, self.order.order_number)
        self.assertEqual(order.payment_status, Order.PAYMENT_PAID)
        self.assertEqual(order.payment_type, "gopay")
