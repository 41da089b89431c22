"""
users/models/address.py

Saved delivery addresses (Indonesian administrative levels)
"""

import uuid
from django.db import models
from django.utils.translation import gettext_lazy as _
from users.models.user import User


class Address(models.Model):
    """
    A customer's saved shipping address. Exactly one per user is the default.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="addresses")

    label = models.CharField(_("label"), max_length=50)
    recipient_name = models.CharField(_("recipient name"), max_length=100)
    phone = models.CharField(_("phone number"), max_length=20)

    full_address = models.TextField(_("full address"))
    district = models.CharField(_("district"), max_length=100)
    city = models.CharField(_("city"), max_length=100)
    province = models.CharField(_("province"), max_length=100)
    postal_code = models.CharField(_("postal code"), max_length=5)
    notes = models.TextField(_("notes"), blank=True)

    latitude = models.FloatField(_("latitude"), null=True, blank=True)
    longitude = models.FloatField(_("longitude"), null=True, blank=True)

    is_default = models.BooleanField(_("default address"), default=False)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "addresses"
        verbose_name = _("address")
        verbose_name_plural = _("addresses")
        ordering = ["-is_default", "-created_at"]
        indexes = [
            models.Index(fields=["user", "is_default"]),
        ]

    def __str__(self):
        return f"{self.label} - {self.recipient_name}, {self.city}"

    def to_dict(self):
        return {
            "id": str(self.id),
            "label": self.label,
            "recipient_name": self.recipient_name,
            "phone": self.phone,
            "full_address": self.full_address,
            "district": self.district,
            "city": self.city,
            "province": self.province,
            "postal_code": self.postal_code,
            "notes": self.notes,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "is_default": self.is_default,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
