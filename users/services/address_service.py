"""
users/services/address_service.py

Saved address book for customers
"""

import logging
from typing import Dict, List
from django.core.exceptions import ValidationError
from django.db import transaction

from ..models.address import Address
from ..utils.validators import AddressValidators

logger = logging.getLogger(__name__)


class AddressService:
    """Address book operations; all scoped to the owning user"""

    FIELDS = [
        "label",
        "recipient_name",
        "phone",
        "full_address",
        "district",
        "city",
        "province",
        "postal_code",
        "notes",
        "latitude",
        "longitude",
    ]

    @staticmethod
    def get_user_addresses(user) -> List[Address]:
        return list(Address.objects.filter(user=user).order_by("-is_default", "-created_at"))

    @staticmethod
    def _get_own(user, address_id) -> Address:
        try:
            return Address.objects.get(id=address_id, user=user)
        except (Address.DoesNotExist, ValueError, ValidationError):
            raise Address.DoesNotExist("Address not found")

    @staticmethod
    def _clean(data: Dict) -> Dict:
        cleaned = {}
        for field in AddressService.FIELDS:
            if field not in data:
                continue
            value = data[field]
            if field in ("latitude", "longitude"):
                cleaned[field] = float(value) if value not in (None, "") else None
            else:
                cleaned[field] = str(value or "").strip()
        return cleaned

    @staticmethod
    @transaction.atomic
    def add_address(user, data: Dict) -> Address:
        """Create an address; the user's first address becomes the default"""
        errors = AddressValidators.validate(data)
        if errors:
            raise ValidationError(errors)

        has_addresses = Address.objects.filter(user=user).exists()
        make_default = not has_addresses or bool(data.get("is_default"))

        if make_default:
            Address.objects.filter(user=user, is_default=True).update(is_default=False)

        address = Address.objects.create(
            user=user, is_default=make_default, **AddressService._clean(data)
        )
        logger.info(f"Address {address.id} added for {user.email}")
        return address

    @staticmethod
    @transaction.atomic
    def update_address(user, address_id, data: Dict) -> Address:
        address = AddressService._get_own(user, address_id)

        errors = AddressValidators.validate(data, partial=True)
        if errors:
            raise ValidationError(errors)

        for field, value in AddressService._clean(data).items():
            setattr(address, field, value)

        if data.get("is_default") and not address.is_default:
            Address.objects.filter(user=user, is_default=True).update(is_default=False)
            address.is_default = True

        address.save()
        return address

    @staticmethod
    @transaction.atomic
    def delete_address(user, address_id) -> None:
        """Delete an address; a deleted default is replaced by the newest one"""
        address = AddressService._get_own(user, address_id)
        was_default = address.is_default
        address.delete()

        if was_default:
            replacement = (
                Address.objects.filter(user=user).order_by("-created_at").first()
            )
            if replacement:
                replacement.is_default = True
                replacement.save(update_fields=["is_default", "updated_at"])

    @staticmethod
    @transaction.atomic
    def set_default_address(user, address_id) -> Address:
        address = AddressService._get_own(user, address_id)
        Address.objects.filter(user=user, is_default=True).exclude(id=address.id).update(
            is_default=False
        )
        address.is_default = True
        address.save(update_fields=["is_default", "updated_at"])
        return address
