"""
users/models/user.py

Lean User model - authentication, identity and account status
"""

import uuid
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils.translation import gettext_lazy as _
from ..managers import UserManager


class User(AbstractUser):
    """
    Core User model
    Following "Lean Models, Fat Services" pattern
    """

    ROLE_ADMIN = "admin"
    ROLE_STAFF = "staff"
    ROLE_CUSTOMER = "customer"

    ROLE_CHOICES = [
        (ROLE_ADMIN, "Administrator"),
        (ROLE_STAFF, "Staff"),
        (ROLE_CUSTOMER, "Customer"),
    ]

    BACK_OFFICE_ROLES = (ROLE_ADMIN, ROLE_STAFF)

    # Core identity
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(_("email"), unique=True, db_index=True)

    # Username optional
    username = models.CharField(
        _("username"),
        max_length=150,
        unique=False,
        blank=True,
        null=True,
    )

    first_name = models.CharField(_("first name"), max_length=150, blank=True)
    last_name = models.CharField(_("last name"), max_length=150, blank=True)
    phone = models.CharField(_("phone"), max_length=20, blank=True)

    # Role & status
    role = models.CharField(
        max_length=20, choices=ROLE_CHOICES, default=ROLE_CUSTOMER, db_index=True
    )
    is_active = models.BooleanField(_("active"), default=True, db_index=True)

    # Suspension (customers only)
    suspended_at = models.DateTimeField(_("suspended at"), null=True, blank=True)
    suspension_reason = models.TextField(_("suspension reason"), blank=True)

    # Timestamps
    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    class Meta:
        db_table = "users"
        verbose_name = _("user")
        verbose_name_plural = _("users")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["role", "is_active"]),
        ]

    def __str__(self):
        return self.email

    @property
    def full_name(self):
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email.split("@")[0]

    # Role checkers
    def is_admin(self):
        return self.role == self.ROLE_ADMIN

    def is_staff_member(self):
        return self.role == self.ROLE_STAFF

    def is_customer(self):
        return self.role == self.ROLE_CUSTOMER

    def can_access_admin(self):
        return self.role in self.BACK_OFFICE_ROLES

    def to_dict(self):
        return {
            "id": str(self.id),
            "email": self.email,
            "username": self.username or "",
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "phone": self.phone,
            "role": self.role,
            "is_active": self.is_active,
            "suspended_at": self.suspended_at.isoformat() if self.suspended_at else None,
            "suspension_reason": self.suspension_reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_login": self.last_login.isoformat() if self.last_login else None,
        }
