import json
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from cart.models import CartItem
from cart.services.cart_service import CartService
from inventory.models import StockMovement
from notifications.models import Notification
from orders.models import Order
from orders.services.order_service import AdminOrderService, OrderService
from payments.services.payment_service import PaymentService
from products.models import Category, Product
from users.models import Address
from users.utils.token_utils import generate_jwt_token
from vouchers.models import Voucher

User = get_user_model()

SELECTED_OPTION = {
    "courier": "jne",
    "courier_name": "JNE",
    "service": "REG",
    "description": "Layanan Reguler",
    "cost": 45000,
    "etd": "2-3",
    "weight": 100000,
}

ADDRESS = {
    "recipient_name": "Budi Santoso",
    "phone_number": "081234567890",
    "full_address": "Jl. Merdeka No. 10, RT 02 RW 03",
    "district": "Coblong",
    "city": "Bandung",
    "province": "Jawa Barat",
    "postal_code": "40132",
}


def bearer(user):
    return {"HTTP_AUTHORIZATION": f"Bearer {generate_jwt_token(user)}"}


class OrderFixtureMixin:

    def setUp(self):
        self.customer = User.objects.create_customer(email="budi@toko.test", password="Rahasia123")
        self.other = User.objects.create_customer(email="sari@toko.test", password="Rahasia123")
        self.admin = User.objects.create_admin(email="admin@toko.test", password="Rahasia123")
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
            unit="sak", price=Decimal("65000"), stock=Decimal("20"),
        )
        select_patcher = patch(
            "orders.services.order_service.ShippingService.select_option",
            return_value=dict(SELECTED_OPTION),
        )
        self.select_option = select_patcher.start()
        self.addCleanup(select_patcher.stop)

    def checkout(self, user=None, **extra):
        user = user or self.customer
        data = {
            "shipping_address": dict(ADDRESS),
            "destination_id": "1391",
            "courier": "jne",
            "service": "REG",
        }
        data.update(extra)
        return OrderService.create_order(user, data)


class OrderServiceTest(OrderFixtureMixin, TestCase):

    def test_checkout_from_cart(self):
        CartService.add_item(self.customer, self.product.id, 2, "sak")
        order = self.checkout()

        self.assertTrue(order.order_number.startswith("ORD-"))
        self.assertEqual(order.subtotal, Decimal("130000"))
        self.assertEqual(order.shipping_cost, Decimal("45000"))
        self.assertEqual(order.total, Decimal("175000"))
        self.assertEqual(order.status, Order.STATUS_PENDING_PAYMENT)
        self.assertEqual(order.payment_status, Order.PAYMENT_PENDING)
        self.assertEqual(order.courier_service, "REG")
        self.assertEqual(order.items.count(), 1)
        self.assertFalse(CartItem.objects.filter(cart__user=self.customer).exists())

    def test_client_amounts_are_ignored(self):
        order = self.checkout(
            items=[{"product_id": str(self.product.id), "quantity": 1, "unit": "sak",
                    "price": 1}],
            total=1,
            shipping_cost=0,
        )
        self.assertEqual(order.subtotal, Decimal("65000"))
        self.assertEqual(order.total, Decimal("110000"))

    def test_price_in_other_unit(self):
        order = self.checkout(
            items=[{"product_id": str(self.product.id), "quantity": 10, "unit": "kg"}]
        )
        item = order.items.get()
        self.assertEqual(item.price, Decimal("1300.00"))
        self.assertEqual(order.subtotal, Decimal("13000.00"))

    def test_voucher_redeemed(self):
        now = timezone.now()
        voucher = Voucher.objects.create(
            code="HEMAT10", name="Hemat", type=Voucher.TYPE_PERCENTAGE,
            value=Decimal("10"), min_purchase=Decimal("0"), usage_limit=5,
            start_date=now - timedelta(days=1), end_date=now + timedelta(days=1),
        )
        CartService.add_item(self.customer, self.product.id, 2, "sak")
        order = self.checkout(voucher_code="hemat10")

        self.assertEqual(order.voucher_code, "HEMAT10")
        self.assertEqual(order.discount_amount, Decimal("13000"))
        self.assertEqual(order.total, Decimal("162000"))
        voucher.refresh_from_db()
        self.assertEqual(voucher.used_count, 1)

    def test_empty_cart_rejected(self):
        with self.assertRaises(ValidationError):
            self.checkout()

    def test_insufficient_stock_rejected(self):
        with self.assertRaises(ValidationError):
            self.checkout(items=[{"product_id": str(self.product.id), "quantity": 21}])

    def test_stock_checked_across_lines_of_same_product(self):
        with self.assertRaises(ValidationError):
            self.checkout(
                items=[
                    {"product_id": str(self.product.id), "quantity": 15, "unit": "sak"},
                    {"product_id": str(self.product.id), "quantity": 15, "unit": "sak"},
                ]
            )
        with self.assertRaises(ValidationError):
            self.checkout(
                items=[
                    {"product_id": str(self.product.id), "quantity": 15, "unit": "sak"},
                    {"product_id": str(self.product.id), "quantity": 300, "unit": "kg"},
                ]
            )
        self.assertFalse(Order.objects.exists())

    def test_saved_address_snapshot(self):
        address = Address.objects.create(
            user=self.customer, label="Rumah", recipient_name="Budi",
            phone="081234567890", full_address="Jl. Asia Afrika No. 1",
            district="Sumur Bandung", city="Bandung", province="Jawa Barat",
            postal_code="40111", is_default=True,
        )
        order = self.checkout(
            shipping_address=None,
            address_id=str(address.id),
            items=[{"product_id": str(self.product.id), "quantity": 1}],
        )
        self.assertEqual(order.recipient_name, "Budi")
        self.assertEqual(order.postal_code, "40111")

    def test_other_users_order_not_found(self):
        order = self.checkout(items=[{"product_id": str(self.product.id), "quantity": 1}])
        with self.assertRaises(Order.DoesNotExist):
            OrderService.get_user_order(self.other, order.order_number)

    def test_cancel_unpaid(self):
        order = self.checkout(items=[{"product_id": str(self.product.id), "quantity": 1}])
        order = OrderService.cancel_order(self.customer, order.order_number, "Salah alamat")
        self.assertEqual(order.status, Order.STATUS_CANCELLED)
        self.assertEqual(order.cancel_reason, "Salah alamat")
        self.assertIsNotNone(order.cancelled_at)

    def test_cannot_cancel_paid(self):
        order = self.checkout(items=[{"product_id": str(self.product.id), "quantity": 1}])
        Order.objects.filter(id=order.id).update(payment_status=Order.PAYMENT_PAID)
        with self.assertRaises(ValidationError):
            OrderService.cancel_order(self.customer, order.order_number, "Berubah pikiran")

    def test_expiry_window(self):
        order = self.checkout(items=[{"product_id": str(self.product.id), "quantity": 1}])
        result = OrderService.check_expiry(self.customer, order.order_number)
        self.assertFalse(result["is_expired"])
        self.assertGreater(result["remaining_seconds"], 23 * 3600)

        Order.objects.filter(id=order.id).update(
            created_at=timezone.now() - timedelta(hours=25)
        )
        result = OrderService.check_expiry(self.customer, order.order_number)
        self.assertTrue(result["is_expired"])
        self.assertEqual(result["remaining_seconds"], 0)
        self.assertEqual(result["order_status"], Order.STATUS_CANCELLED)

    def test_expiry_keeps_payment_settled_meanwhile(self):
        order = self.checkout(items=[{"product_id": str(self.product.id), "quantity": 1}])
        stale = Order.objects.get(pk=order.pk)
        PaymentService.apply_status(order.order_number, "settlement", "accept")

        expired = OrderService._expire_if_due(stale, timezone.now() + timedelta(hours=25))

        self.assertFalse(expired)
        self.assertEqual(stale.payment_status, Order.PAYMENT_PAID)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, Order.PAYMENT_PAID)
        self.assertNotEqual(order.status, Order.STATUS_CANCELLED)
        self.assertEqual(order.cancel_reason, "")

    def test_customer_cannot_cancel_after_settlement(self):
        order = self.checkout(items=[{"product_id": str(self.product.id), "quantity": 1}])
        PaymentService.apply_status(order.order_number, "settlement", "accept")
        with self.assertRaises(ValidationError):
            OrderService.cancel_order(self.customer, order.order_number, "Berubah pikiran")
        order.refresh_from_db()
        self.assertEqual(order.payment_status, Order.PAYMENT_PAID)

    def test_expire_orders_command(self):
        stale = self.checkout(items=[{"product_id": str(self.product.id), "quantity": 1}])
        fresh = self.checkout(items=[{"product_id": str(self.product.id), "quantity": 1}])
        Order.objects.filter(id=stale.id).update(
            created_at=timezone.now() - timedelta(hours=30)
        )

        call_command("expire_orders")

        stale.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(stale.payment_status, Order.PAYMENT_EXPIRED)
        self.assertEqual(fresh.payment_status, Order.PAYMENT_PENDING)

    def test_confirm_received(self):
        order = self.checkout(items=[{"product_id": str(self.product.id), "quantity": 1}])
        with self.assertRaises(ValidationError):
            OrderService.confirm_received(self.customer, order.order_number)

        Order.objects.filter(id=order.id).update(status=Order.STATUS_DELIVERED)
        order = OrderService.confirm_received(self.customer, order.order_number)
        self.assertEqual(order.status, Order.STATUS_COMPLETED)
        self.assertIsNotNone(order.completed_at)


class AdminOrderServiceTest(OrderFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.order = self.checkout(items=[{"product_id": str(self.product.id), "quantity": 1}])
        Order.objects.filter(id=self.order.id).update(
            payment_status=Order.PAYMENT_PAID, status=Order.STATUS_PAID
        )

    def test_full_fulfilment_flow(self):
        number = self.order.order_number
        AdminOrderService.process_order(number, self.admin)
        order = AdminOrderService.ship_order(
            number, {"courier": "jne", "tracking_number": "JNE123"}, self.admin
        )
        self.assertEqual(order.status, Order.STATUS_SHIPPED)
        self.assertEqual(order.tracking_number, "JNE123")
        self.assertIsNotNone(order.shipped_at)

        order = AdminOrderService.confirm_delivered(number, self.admin)
        self.assertEqual(order.status, Order.STATUS_DELIVERED)

        types = set(Notification.objects.filter(user=self.customer).values_list("type", flat=True))
        self.assertEqual(
            types,
            {
                Notification.TYPE_ORDER_CONFIRMED,
                Notification.TYPE_ORDER_SHIPPED,
                Notification.TYPE_ORDER_DELIVERED,
            },
        )

    def test_ship_requires_tracking_number(self):
        AdminOrderService.process_order(self.order.order_number, self.admin)
        with self.assertRaises(ValidationError):
            AdminOrderService.ship_order(self.order.order_number, {"courier": "jne"}, self.admin)

    def test_out_of_order_transition_rejected(self):
        with self.assertRaises(ValidationError):
            AdminOrderService.confirm_delivered(self.order.order_number, self.admin)

    def test_cancel_not_after_shipping(self):
        Order.objects.filter(id=self.order.id).update(status=Order.STATUS_SHIPPED)
        with self.assertRaises(ValidationError):
            AdminOrderService.cancel_order(self.order.order_number, "Stok habis", self.admin)

    def test_cancel_notifies_customer(self):
        order = AdminOrderService.cancel_order(self.order.order_number, "Stok habis", self.admin)
        self.assertEqual(order.status, Order.STATUS_CANCELLED)
        self.assertTrue(
            Notification.objects.filter(
                user=self.customer, type=Notification.TYPE_ORDER_CANCELLED
            ).exists()
        )

    def test_cancel_paid_order_restocks(self):
        order = self.checkout(items=[{"product_id": str(self.product.id), "quantity": 5}])
        PaymentService.apply_status(order.order_number, "settlement", "accept")
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, Decimal("15"))
        self.assertEqual(self.product.sold, Decimal("5"))

        AdminOrderService.cancel_order(order.order_number, "Stok rusak di gudang", self.admin)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, Decimal("20"))
        self.assertEqual(self.product.sold, Decimal("0"))
        movement = StockMovement.objects.get(
            reference_id=order.order_number, movement_type=StockMovement.TYPE_IN
        )
        self.assertEqual(movement.reference_type, StockMovement.REFERENCE_ORDER)
        self.assertEqual(movement.quantity, Decimal("5"))

    def test_cancel_paid_order_without_sale_movement_leaves_stock(self):
        # setUp marks the order paid without going through a payment
        AdminOrderService.cancel_order(self.order.order_number, "Stok habis", self.admin)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, Decimal("20"))
        self.assertFalse(StockMovement.objects.exists())

    def test_statistics(self):
        stats = AdminOrderService.get_statistics()
        self.assertEqual(stats["total"], 1)
        self.assertEqual(stats["by_status"][Order.STATUS_PAID], 1)
        self.assertEqual(stats["total_revenue"], 110000.0)


class OrderViewsTest(OrderFixtureMixin, TestCase):

    def test_checkout_and_list(self):
        CartService.add_item(self.customer, self.product.id, 1, "sak")
        response = self.client.post(
            "/api/orders/",
            data=json.dumps(
                {"shipping_address": ADDRESS, "destination_id": "1391",
                 "courier": "jne", "service": "REG"}
            ),
            content_type="application/json",
            **bearer(self.customer),
        )
        self.assertEqual(response.status_code, 201)
        number = response.json()["data"]["order"]["order_number"]

        response = self.client.get("/api/orders/", **bearer(self.customer))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["orders"][0]["order_number"], number)

        response = self.client.get(f"/api/orders/{number}/", **bearer(self.other))
        self.assertEqual(response.status_code, 404)

    def test_missing_address_fields_are_422(self):
        CartService.add_item(self.customer, self.product.id, 1, "sak")
        response = self.client.post(
            "/api/orders/",
            data=json.dumps({"shipping_address": {"recipient_name": "Budi"}}),
            content_type="application/json",
            **bearer(self.customer),
        )
        self.assertEqual(response.status_code, 422)

    def test_back_office_only(self):
        response = self.client.get("/api/orders/admin/", **bearer(self.customer))
        self.assertEqual(response.status_code, 403)
        response = self.client.get("/api/orders/admin/", **bearer(self.admin))
        self.assertEqual(response.status_code, 200)
