"""
shipping/services/shipping_service.py

Shipping quotes from the store origin, and store configuration
"""

import logging
from typing import Any, Dict, Iterable, List

from django.core.exceptions import ValidationError

from ..models import StoreConfig
from ..rajaongkir import RajaOngkirClient, available_couriers, courier_name
from ..weights import format_weight, total_weight_grams

logger = logging.getLogger(__name__)


class StoreConfigService:
    """Store configuration business logic"""

    FIELD_MAP = {
        "store_name": "store_name",
        "store_city": "city",
        "store_city_id": "city_id",
        "store_province": "province",
        "store_province_id": "province_id",
    }
    NESTED_MAP = {
        "store_address": {"street": "street", "district": "district", "postal_code": "postal_code"},
        "contact": {"phone": "phone", "email": "email", "whatsapp": "whatsapp"},
        "business_hours": {
            "weekdays": "hours_weekdays",
            "saturday": "hours_saturday",
            "sunday": "hours_sunday",
        },
        "shipping_settings": {
            "rajaongkir_plan": "rajaongkir_plan",
            "max_weight": "max_weight",
            "processing_time": "processing_time",
        },
    }

    @staticmethod
    def get_active() -> StoreConfig:
        config = StoreConfig.objects.filter(is_active=True).first()
        if config is None:
            raise StoreConfig.DoesNotExist("Store configuration not found")
        return config

    @staticmethod
    def update(data: Dict[str, Any], updated_by) -> StoreConfig:
        """Update the active configuration, creating it on first use"""
        config = StoreConfig.objects.filter(is_active=True).first() or StoreConfig()

        for key, field in StoreConfigService.FIELD_MAP.items():
            if key in data:
                setattr(config, field, str(data[key] or "").strip())

        for group, mapping in StoreConfigService.NESTED_MAP.items():
            values = data.get(group)
            if not isinstance(values, dict):
                continue
            for key, field in mapping.items():
                if key in values:
                    setattr(config, field, values[key])

        errors = {}
        for key, field in StoreConfigService.FIELD_MAP.items():
            if not getattr(config, field):
                errors[key] = "This field is required"
        if config.rajaongkir_plan not in dict(StoreConfig.PLAN_CHOICES):
            errors["shipping_settings.rajaongkir_plan"] = "Plan must be 'free' or 'all'"
        try:
            config.max_weight = int(config.max_weight)
            if config.max_weight <= 0:
                raise ValueError
        except (TypeError, ValueError):
            errors["shipping_settings.max_weight"] = "Max weight must be a positive number"
        if errors:
            raise ValidationError(errors)

        config.is_active = True
        config.save()
        logger.info(f"Store configuration updated by {updated_by.email}")
        return config


class ShippingService:
    """Shipping quotes; RajaOngkirError propagates to the caller"""

    @staticmethod
    def client() -> RajaOngkirClient:
        return RajaOngkirClient()

    @staticmethod
    def couriers(is_international: bool = False, plan: str = None) -> List[Dict]:
        if plan is None:
            config = StoreConfig.objects.filter(is_active=True).first()
            plan = config.rajaongkir_plan if config else StoreConfig.PLAN_FREE
        return [
            {"code": code, "name": courier_name(code)}
            for code in available_couriers(is_international, plan)
        ]

    @staticmethod
    def _weight(lines: Iterable, config: StoreConfig) -> int:
        weight = total_weight_grams(lines)
        if weight <= 0:
            raise ValidationError("Nothing to ship")
        if weight > config.max_weight:
            raise ValidationError(
                f"Total weight {format_weight(weight)} exceeds the maximum of "
                f"{format_weight(config.max_weight)} per order"
            )
        return weight

    @staticmethod
    def quote(lines: Iterable, destination_id: str, courier: str = None) -> Dict[str, Any]:
        """
        Shipping options for ``(product, quantity, unit)`` lines to a
        destination. Every courier of the store plan is queried unless one
        is given.
        """
        if not destination_id:
            raise ValidationError({"destination_id": "Destination is required"})

        config = StoreConfigService.get_active()
        weight = ShippingService._weight(list(lines), config)
        client = ShippingService.client()

        if courier:
            options = sorted(
                client.domestic_cost(config.city_id, destination_id, weight, courier),
                key=lambda option: option["cost"],
            )
        else:
            options = client.all_shipping_options(
                config.city_id,
                destination_id,
                weight,
                available_couriers(False, config.rajaongkir_plan),
            )

        return {
            "origin": config.city_id,
            "destination": str(destination_id),
            "weight": weight,
            "weight_display": format_weight(weight),
            "options": options,
        }

    @staticmethod
    def select_option(lines: Iterable, destination_id: str, courier: str, service: str) -> Dict:
        """Re-quote a chosen courier service so the order uses the live price"""
        if not courier or not service:
            raise ValidationError({"courier": "Courier and service are required"})

        quote = ShippingService.quote(lines, destination_id, courier=courier.lower())
        for option in quote["options"]:
            if option["service"].lower() == service.lower():
                return {**option, "weight": quote["weight"]}
        raise ValidationError(f"Service {service} is not available for {courier_name(courier)}")

    @staticmethod
    def cart_lines(cart) -> List:
        return [
            (item.product, item.quantity, item.unit)
            for item in cart.items.select_related("product", "product__category")
        ]
