from django.contrib.auth.models import BaseUserManager


class UserManager(BaseUserManager):
    """Custom manager for User model with roles."""

    def _create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("Email must be set")

        email = self.normalize_email(email).lower()
        extra_fields.setdefault("username", email.split("@")[0])

        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        """Required by Django's auth system; creates a customer by default"""
        return self.create_customer(email, password, **extra_fields)

    def create_customer(self, email, password=None, **extra_fields):
        extra_fields.setdefault("role", self.model.ROLE_CUSTOMER)
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_staff(self, email, password=None, **extra_fields):
        extra_fields.setdefault("role", self.model.ROLE_STAFF)
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_admin(self, email, password=None, **extra_fields):
        extra_fields.setdefault("role", self.model.ROLE_ADMIN)
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)

        if not extra_fields["is_staff"]:
            raise ValueError("Admin must have is_staff=True")
        if not extra_fields["is_superuser"]:
            raise ValueError("Admin must have is_superuser=True")

        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        return self.create_admin(email, password, **extra_fields)

    def customers(self):
        return self.filter(role=self.model.ROLE_CUSTOMER)

    def back_office(self, active_only=True):
        """Admin and staff accounts, used for back-office broadcasts"""
        queryset = self.filter(role__in=self.model.BACK_OFFICE_ROLES)
        if active_only:
            queryset = queryset.filter(is_active=True)
        return queryset
