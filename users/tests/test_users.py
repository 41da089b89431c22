import json

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase

from orders.models import Order
from users.models import Address
from users.services.address_service import AddressService
from users.services.auth_service import AuthService
from users.services.customer_service import CustomerService, TeamService
from users.utils.token_utils import create_token_pair, generate_jwt_token

User = get_user_model()


def bearer(user):
    return {"HTTP_AUTHORIZATION": f"Bearer {generate_jwt_token(user)}"}


ADDRESS = {
    "label": "Rumah",
    "recipient_name": "Budi Santoso",
    "phone": "081234567890",
    "full_address": "Jl. Merdeka No. 10, RT 02/RW 05",
    "district": "Coblong",
    "city": "Bandung",
    "province": "Jawa Barat",
    "postal_code": "40132",
}


class UserCreationTest(TestCase):

    def test_create_customer(self):
        customer = User.objects.create_customer(
            email="Customer@Example.com",
            password="testpass123",
            first_name="John",
            last_name="Doe"
        )

        self.assertEqual(customer.role, User.ROLE_CUSTOMER)
        self.assertEqual(customer.email, "customer@example.com")
        self.assertEqual(customer.full_name, "John Doe")
        self.assertTrue(customer.is_customer())
        self.assertFalse(customer.is_admin())
        self.assertFalse(customer.can_access_admin())

    def test_create_staff(self):
        staff = User.objects.create_staff(
            email="staff@example.com",
            password="testpass123",
        )

        self.assertEqual(staff.role, User.ROLE_STAFF)
        self.assertTrue(staff.is_staff_member())
        self.assertTrue(staff.is_staff)
        self.assertTrue(staff.can_access_admin())

    def test_create_admin(self):
        admin = User.objects.create_admin(
            email="admin@example.com",
            password="testpass123"
        )

        self.assertTrue(admin.is_admin())
        self.assertTrue(admin.is_superuser)

    def test_back_office_excludes_customers_and_inactive(self):
        User.objects.create_customer(email="c@example.com", password="testpass123")
        User.objects.create_staff(email="s@example.com", password="testpass123")
        User.objects.create_staff(email="old@example.com", password="testpass123", is_active=False)

        self.assertEqual(
            list(User.objects.back_office().values_list("email", flat=True)), ["s@example.com"]
        )
        self.assertEqual(User.objects.back_office(active_only=False).count(), 2)


class AuthServiceTest(TestCase):

    def registration(self, **extra):
        data = {
            "email": "budi@toko.test",
            "password": "Rahasia123",
            "first_name": "Budi",
            "last_name": "Santoso",
            "phone": "081234567890",
        }
        data.update(extra)
        return AuthService.register_customer(data)

    def test_register_customer(self):
        auth_data, errors = self.registration()
        self.assertIsNone(errors)
        self.assertEqual(auth_data["user"]["role"], User.ROLE_CUSTOMER)
        self.assertIn("access_token", auth_data["tokens"])

    def test_register_validation(self):
        _, errors = self.registration(phone="12345", password="short")
        self.assertIn("phone", errors)
        self.assertIn("password", errors)

        self.registration()
        _, errors = self.registration()
        self.assertIn("email", errors)

    def test_login_and_suspended_account(self):
        self.registration()
        auth_data, error = AuthService.authenticate_user("BUDI@toko.test", "Rahasia123")
        self.assertIsNone(error)
        self.assertEqual(auth_data["user"]["email"], "budi@toko.test")

        _, error = AuthService.authenticate_user("budi@toko.test", "Salah12345")
        self.assertEqual(error, "Invalid email or password")

        User.objects.filter(email="budi@toko.test").update(is_active=False)
        _, error = AuthService.authenticate_user("budi@toko.test", "Rahasia123")
        self.assertEqual(error, "Account is suspended")

    def test_refresh_needs_refresh_token(self):
        user = User.objects.create_customer(email="budi@toko.test", password="Rahasia123")
        pair = create_token_pair(user)

        tokens, error = AuthService.refresh_tokens(pair["refresh_token"])
        self.assertIsNone(error)
        self.assertIn("access_token", tokens)

        _, error = AuthService.refresh_tokens(pair["access_token"])
        self.assertEqual(error, "Invalid token type")

    def test_team_member_role(self):
        admin = User.objects.create_admin(email="admin@toko.test", password="Rahasia123")
        data = {
            "email": "kasir@toko.test",
            "password": "Rahasia123",
            "first_name": "Kasir",
            "last_name": "Satu",
            "role": "customer",
        }
        _, errors = AuthService.register_team_member(data, admin)
        self.assertIn("role", errors)

        data["role"] = User.ROLE_STAFF
        user_data, errors = AuthService.register_team_member(data, admin)
        self.assertIsNone(errors)
        self.assertEqual(user_data["user"]["role"], User.ROLE_STAFF)


class AddressServiceTest(TestCase):

    def setUp(self):
        self.user = User.objects.create_customer(email="budi@toko.test", password="Rahasia123")

    def test_first_address_becomes_default(self):
        first = AddressService.add_address(self.user, ADDRESS)
        second = AddressService.add_address(self.user, {**ADDRESS, "label": "Kantor"})
        self.assertTrue(first.is_default)
        self.assertFalse(second.is_default)

        AddressService.set_default_address(self.user, second.id)
        first.refresh_from_db()
        self.assertFalse(first.is_default)
        self.assertEqual(Address.objects.filter(user=self.user, is_default=True).count(), 1)

    def test_deleting_default_promotes_another(self):
        first = AddressService.add_address(self.user, ADDRESS)
        second = AddressService.add_address(self.user, {**ADDRESS, "label": "Kantor"})
        AddressService.delete_address(self.user, first.id)
        second.refresh_from_db()
        self.assertTrue(second.is_default)

    def test_validation(self):
        with self.assertRaises(ValidationError) as ctx:
            AddressService.add_address(self.user, {**ADDRESS, "postal_code": "4013", "city": "B"})
        self.assertIn("postal_code", ctx.exception.message_dict)
        self.assertIn("city", ctx.exception.message_dict)

    def test_other_users_address(self):
        address = AddressService.add_address(self.user, ADDRESS)
        other = User.objects.create_customer(email="sari@toko.test", password="Rahasia123")
        with self.assertRaises(Address.DoesNotExist):
            AddressService.update_address(other, address.id, {"label": "Gudang"})


class CustomerServiceTest(TestCase):

    def setUp(self):
        self.admin = User.objects.create_admin(email="admin@toko.test", password="Rahasia123")
        self.customer = User.objects.create_customer(
            email="budi@toko.test", password="Rahasia123", first_name="Budi"
        )
        for total, payment_status in [(100000, Order.PAYMENT_PAID), (50000, Order.PAYMENT_PENDING)]:
            Order.objects.create(
                user=self.customer, recipient_name="Budi", phone_number="081234567890",
                full_address="Jl. Merdeka No. 10", district="Coblong", city="Bandung",
                province="Jawa Barat", postal_code="40132",
                subtotal=total, total=total, payment_status=payment_status,
            )

    def test_list_counts_paid_orders_only(self):
        customers, total = CustomerService.get_customers(search="budi")
        self.assertEqual(total, 1)
        self.assertEqual(customers[0]["total_orders"], 1)
        self.assertEqual(customers[0]["total_spent"], 100000.0)

    def test_suspend_and_reactivate(self):
        with self.assertRaises(ValidationError):
            CustomerService.suspend_customer(self.customer.id, "spam", self.admin)

        user = CustomerService.suspend_customer(
            self.customer.id, "Melakukan penipuan pembayaran", self.admin
        )
        self.assertFalse(user.is_active)
        self.assertIsNotNone(user.suspended_at)
        with self.assertRaises(ValidationError):
            CustomerService.suspend_customer(
                self.customer.id, "Melakukan penipuan pembayaran", self.admin
            )

        user = CustomerService.reactivate_customer(self.customer.id, self.admin)
        self.assertTrue(user.is_active)
        self.assertEqual(user.suspension_reason, "")

    def test_admin_cannot_be_suspended(self):
        with self.assertRaises(ValidationError):
            CustomerService.suspend_customer(self.admin.id, "Melakukan penipuan", self.admin)

    def test_team_cannot_change_own_status(self):
        with self.assertRaises(ValidationError):
            TeamService.set_active(self.admin.id, False, self.admin)


class UserViewsTest(TestCase):

    def setUp(self):
        self.customer = User.objects.create_customer(
            email="budi@toko.test", password="Rahasia123", first_name="Budi"
        )
        self.staff = User.objects.create_staff(email="staff@toko.test", password="Rahasia123")

    def post(self, url, payload, **headers):
        return self.client.post(
            url, data=json.dumps(payload), content_type="application/json", **headers
        )

    def test_register_and_login(self):
        response = self.post(
            "/api/auth/register/",
            {"email": "sari@toko.test", "password": "Rahasia123", "first_name": "Sari",
             "last_name": "Dewi", "phone": "081298765432"},
        )
        self.assertEqual(response.status_code, 201)

        response = self.post("/api/auth/login/", {"email": "sari@toko.test", "password": "Rahasia123"})
        self.assertEqual(response.status_code, 200)
        self.assertIn("tokens", response.json()["data"])

    def test_register_errors_are_422(self):
        response = self.post("/api/auth/register/", {"email": "x@toko.test"})
        self.assertEqual(response.status_code, 422)

    def test_login_suspended_is_403(self):
        User.objects.filter(id=self.customer.id).update(is_active=False)
        response = self.post("/api/auth/login/", {"email": "budi@toko.test", "password": "Rahasia123"})
        self.assertEqual(response.status_code, 403)

    def test_profile(self):
        response = self.client.get("/api/auth/profile/")
        self.assertEqual(response.status_code, 401)

        response = self.client.put(
            "/api/auth/profile/", data=json.dumps({"last_name": "Santoso"}),
            content_type="application/json", **bearer(self.customer),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["full_name"], "Budi Santoso")

    def test_address_book(self):
        response = self.post("/api/auth/addresses/", ADDRESS, **bearer(self.customer))
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.json()["data"]["address"]["is_default"])

    def test_customer_admin_permissions(self):
        response = self.client.get("/api/auth/admin/customers/", **bearer(self.customer))
        self.assertEqual(response.status_code, 403)

        response = self.client.get("/api/auth/admin/customers/", **bearer(self.staff))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["pagination"]["total"], 1)

        response = self.post(
            f"/api/auth/admin/customers/{self.customer.id}/suspend/",
            {"reason": "Melakukan penipuan pembayaran"},
            **bearer(self.staff),
        )
        self.assertEqual(response.status_code, 403)
