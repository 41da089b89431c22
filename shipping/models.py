"""
shipping/models.py
"""

import uuid

from django.db import models
from django.utils.translation import gettext_lazy as _


class StoreConfig(models.Model):
    """
    Store profile and shipping settings. ``city_id`` is the RajaOngkir
    origin used for every shipping quote.
    """

    PLAN_FREE = "free"
    PLAN_ALL = "all"

    PLAN_CHOICES = [
        (PLAN_FREE, "Free (JNE, POS, TIKI)"),
        (PLAN_ALL, "All couriers"),
    ]

    DEFAULT_MAX_WEIGHT = 30000

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    store_name = models.CharField(_("store name"), max_length=150)
    city = models.CharField(_("city"), max_length=100)
    city_id = models.CharField(_("origin id"), max_length=20)
    province = models.CharField(_("province"), max_length=100)
    province_id = models.CharField(_("province id"), max_length=20)

    street = models.CharField(_("street"), max_length=255, blank=True)
    district = models.CharField(_("district"), max_length=100, blank=True)
    postal_code = models.CharField(_("postal code"), max_length=10, blank=True)

    phone = models.CharField(_("phone"), max_length=20, blank=True)
    email = models.EmailField(_("email"), blank=True)
    whatsapp = models.CharField(_("whatsapp"), max_length=20, blank=True)

    hours_weekdays = models.CharField(_("weekday hours"), max_length=50, blank=True)
    hours_saturday = models.CharField(_("saturday hours"), max_length=50, blank=True)
    hours_sunday = models.CharField(_("sunday hours"), max_length=50, blank=True)

    rajaongkir_plan = models.CharField(
        _("courier plan"), max_length=10, choices=PLAN_CHOICES, default=PLAN_FREE
    )
    max_weight = models.PositiveIntegerField(
        _("max weight per order (gram)"), default=DEFAULT_MAX_WEIGHT
    )
    processing_time = models.CharField(
        _("processing time"), max_length=50, default="1-2 hari kerja"
    )

    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "store_configs"
        ordering = ["-updated_at"]

    def __str__(self):
        return self.store_name

    def to_dict(self):
        return {
            "id": str(self.id),
            "store_name": self.store_name,
            "store_city": self.city,
            "store_city_id": self.city_id,
            "store_province": self.province,
            "store_province_id": self.province_id,
            "store_address": {
                "street": self.street,
                "district": self.district,
                "city": self.city,
                "province": self.province,
                "postal_code": self.postal_code,
            },
            "contact": {
                "phone": self.phone,
                "email": self.email,
                "whatsapp": self.whatsapp,
            },
            "business_hours": {
                "weekdays": self.hours_weekdays,
                "saturday": self.hours_saturday,
                "sunday": self.hours_sunday,
            },
            "shipping_settings": {
                "rajaongkir_plan": self.rajaongkir_plan,
                "max_weight": self.max_weight,
                "processing_time": self.processing_time,
            },
            "is_active": self.is_active,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
