from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase
from django.utils import timezone

from orders.models import Order, OrderItem
from products.models import Category, Product
from reports.services.report_service import ReportService
from users.utils.token_utils import generate_jwt_token

User = get_user_model()


def bearer(user):
    return {"HTTP_AUTHORIZATION": f"Bearer {generate_jwt_token(user)}"}


class ReportFixtureMixin:

    def setUp(self):
        self.today = timezone.localdate().isoformat()
        self.customer = User.objects.create_customer(
            email="budi@toko.test", password="Rahasia123", first_name="Budi", last_name="Santoso"
        )
        self.other = User.objects.create_customer(
            email="sari@toko.test", password="Rahasia123", first_name="Sari"
        )
        self.staff = User.objects.create_staff(email="staff@toko.test", password="Rahasia123")

        units = [
            {"value": "sak", "label": "Sak", "conversion_rate": 50},
            {"value": "kg", "label": "Kg", "conversion_rate": 1},
        ]
        self.semen = Category.objects.create(name="Semen", slug="semen", available_units=units)
        self.cat = Category.objects.create(name="Cat", slug="cat")
        self.gresik = Product.objects.create(
            name="Semen Gresik", slug="semen-gresik", category=self.semen,
            unit="sak", price=Decimal("65000"), stock=Decimal("40"),
        )
        self.tembok = Product.objects.create(
            name="Cat Tembok", slug="cat-tembok", category=self.cat,
            unit="kaleng", price=Decimal("120000"), stock=Decimal("3"),
        )

        self.paid = self.make_order(
            self.customer, Decimal("143000"), payment_status=Order.PAYMENT_PAID,
            status=Order.STATUS_PROCESSING, payment_type="bank_transfer",
        )
        self.add_item(self.paid, self.gresik, Decimal("65000"), Decimal("2"), "sak")
        self.add_item(self.paid, self.gresik, Decimal("1300"), Decimal("10"), "kg")

        self.paid_other = self.make_order(
            self.other, Decimal("120000"), payment_status=Order.PAYMENT_PAID,
            status=Order.STATUS_SHIPPED, payment_type="gopay",
        )
        self.add_item(self.paid_other, self.tembok, Decimal("120000"), Decimal("1"), "kaleng")

        self.unpaid = self.make_order(self.other, Decimal("65000"))
        self.add_item(self.unpaid, self.gresik, Decimal("65000"), Decimal("1"), "sak")

    def make_order(self, user, total, **extra):
        return Order.objects.create(
            user=user,
            recipient_name=user.full_name,
            phone_number="081234567890",
            full_address="Jl. Merdeka No. 10",
            district="Coblong",
            city="Bandung",
            province="Jawa Barat",
            postal_code="40132",
            subtotal=total,
            total=total,
            **extra,
        )

    def add_item(self, order, product, price, quantity, unit):
        return OrderItem.objects.create(
            order=order, product=product, product_name=product.name,
            product_slug=product.slug, category=product.category.name,
            price=price, quantity=quantity, unit=unit,
        )


class SalesReportTest(ReportFixtureMixin, TestCase):

    def test_daily_sales_counts_paid_orders_only(self):
        report = ReportService.periodic_sales("daily")
        self.assertEqual(report["total_orders"], 2)
        self.assertEqual(report["total_revenue"], 263000.0)
        self.assertEqual(report["average_order_value"], 131500.0)
        self.assertEqual(len(report["chart_data"]), 7)
        self.assertEqual(report["chart_data"][-1]["revenue"], 263000.0)
        self.assertEqual(report["chart_data"][0]["orders"], 0)

    def test_rejected_period_is_logged(self):
        with self.assertLogs("reports.services.report_service", level="WARNING") as logs:
            with self.assertRaises(ValidationError):
                ReportService.periodic_sales("yearly")
        self.assertIn("Period must be one of", logs.output[0])

    def test_monthly_and_weekly_bucket_counts(self):
        self.assertEqual(len(ReportService.periodic_sales("monthly")["chart_data"]), 12)
        self.assertEqual(len(ReportService.periodic_sales("weekly")["chart_data"]), 8)

    def test_custom_period_needs_dates(self):
        with self.assertRaises(ValidationError):
            ReportService.periodic_sales("custom")
        with self.assertRaises(ValidationError):
            ReportService.periodic_sales("yearly")

        report = ReportService.periodic_sales("custom", self.today, self.today)
        self.assertEqual(len(report["chart_data"]), 1)
        self.assertEqual(report["total_orders"], 2)

    def test_old_orders_fall_outside_daily_window(self):
        Order.objects.filter(id=self.paid_other.id).update(
            created_at=timezone.now() - timedelta(days=30)
        )
        self.assertEqual(ReportService.periodic_sales("daily")["total_orders"], 1)

    def test_category_sales(self):
        report = ReportService.category_sales()
        categories = {row["category"]: row for row in report["categories"]}
        self.assertEqual(report["total_revenue"], 263000.0)
        self.assertEqual(categories["Semen"]["revenue"], 143000.0)
        self.assertEqual(categories["Semen"]["order_count"], 1)
        self.assertEqual(categories["Semen"]["products_sold"], 2.2)
        self.assertEqual(report["categories"][0]["category"], "Semen")

    def test_payment_methods(self):
        report = ReportService.payment_methods()
        methods = {row["method"]: row for row in report["methods"]}
        self.assertEqual(report["total_transactions"], 2)
        self.assertEqual(methods["gopay"]["percentage"], 50.0)
        self.assertEqual(methods["bank_transfer"]["total_amount"], 143000.0)

    def test_best_sellers_in_product_unit(self):
        report = ReportService.best_sellers(self.today, self.today)
        first = report["products"][0]
        self.assertEqual(first["product_name"], "Semen Gresik")
        self.assertEqual(first["total_quantity"], 2.2)
        self.assertEqual(first["unit"], "sak")

        by_value = ReportService.best_sellers(self.today, self.today, sort_by="value", limit=1)
        self.assertEqual(len(by_value["products"]), 1)
        self.assertEqual(by_value["products"][0]["total_value"], 143000.0)

    def test_best_sellers_requires_range(self):
        with self.assertRaises(ValidationError):
            ReportService.best_sellers(None, None)


class StockReportTest(ReportFixtureMixin, TestCase):

    def test_low_stock_priorities(self):
        Product.objects.create(
            name="Cat Kayu", slug="cat-kayu", category=self.cat,
            unit="kaleng", price=Decimal("90000"), stock=Decimal("8"),
        )
        report = ReportService.low_stock(threshold=10)
        self.assertEqual(report["stats"], {"total": 2, "critical": 1, "warning": 1, "low": 0})
        self.assertEqual(report["products"][0]["product_name"], "Cat Tembok")

    def test_low_stock_category_filter(self):
        report = ReportService.low_stock(threshold=100, category="semen")
        self.assertEqual([row["slug"] for row in report["products"]], ["semen-gresik"])

    def test_slow_moving_flags_unsold_products(self):
        Product.objects.create(
            name="Pasir Beton", slug="pasir-beton", category=self.semen,
            unit="sak", price=Decimal("25000"), stock=Decimal("10"),
        )
        report = ReportService.slow_moving("30days")
        names = [row["product_name"] for row in report["products"]]
        self.assertEqual(names, ["Pasir Beton"])
        self.assertEqual(report["products"][0]["status"], "dead")
        self.assertEqual(report["stats"]["total_stock_value"], 250000.0)

    def test_slow_moving_rejects_unknown_period(self):
        with self.assertRaises(ValidationError):
            ReportService.slow_moving("1year")


class CustomerReportTest(ReportFixtureMixin, TestCase):

    def test_top_customers(self):
        report = ReportService.top_customers(self.today, self.today)
        self.assertEqual(report["stats"]["total_customers"], 2)
        self.assertEqual(report["customers"][0]["customer_email"], "budi@toko.test")
        self.assertEqual(report["customers"][0]["total_spent"], 143000.0)

    def test_cancelled_orders_do_not_count(self):
        Order.objects.filter(id=self.paid.id).update(status=Order.STATUS_CANCELLED)
        report = ReportService.top_customers(self.today, self.today)
        self.assertEqual(report["stats"]["total_customers"], 1)

    def test_new_customers(self):
        report = ReportService.new_customers(self.today, self.today)
        self.assertEqual(report["stats"]["total_new_customers"], 2)
        self.assertEqual(report["stats"]["previous_period_total"], 0)
        self.assertEqual(report["stats"]["growth_rate"], 100.0)
        self.assertEqual(report["chart_data"][0]["count"], 2)

    def test_order_status_summary(self):
        report = ReportService.order_status_summary(self.today, self.today)
        summary = {row["status"]: row for row in report["status_summary"]}
        self.assertEqual(report["total_orders"], 3)
        self.assertEqual(report["total_revenue"], 263000.0)
        self.assertEqual(summary[Order.STATUS_PENDING_PAYMENT]["count"], 1)
        self.assertEqual(summary[Order.STATUS_DELIVERED]["count"], 0)
        self.assertEqual(len(report["recent_orders"]), 3)


class ReportViewsTest(ReportFixtureMixin, TestCase):

    def test_customer_forbidden(self):
        response = self.client.get("/api/reports/sales/", **bearer(self.customer))
        self.assertEqual(response.status_code, 403)

    def test_staff_reads_reports(self):
        response = self.client.get("/api/reports/sales/?period=monthly", **bearer(self.staff))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["total_orders"], 2)

        response = self.client.get("/api/reports/low-stock/?threshold=5", **bearer(self.staff))
        self.assertEqual(response.json()["data"]["stats"]["total"], 1)

    def test_missing_dates(self):
        response = self.client.get("/api/reports/top-customers/", **bearer(self.staff))
        self.assertEqual(response.status_code, 400)

    def test_invalid_limit(self):
        response = self.client.get(
            f"/api/reports/best-sellers/?start_date={self.today}&end_date={self.today}&limit=abc",
            **bearer(self.staff),
        )
        self.assertEqual(response.status_code, 400)
