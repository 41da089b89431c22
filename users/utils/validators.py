"""
users/utils/validators.py

Input validation and sanitization utilities
"""
import re
from typing import Dict, Optional, Tuple
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.contrib.auth.password_validation import validate_password as django_validate_password


MOBILE_PHONE_PATTERN = re.compile(r"^08\d{8,11}$")
ADDRESS_PHONE_PATTERN = re.compile(r"^\d{10,15}$")
POSTAL_CODE_PATTERN = re.compile(r"^\d{5}$")


class UserValidators:
    """Input validation for user operations"""

    @staticmethod
    def validate_email_format(email: str) -> Tuple[bool, Optional[str]]:
        try:
            validate_email(email)
            return True, None
        except ValidationError:
            return False, "Invalid email format"

    @staticmethod
    def validate_password_strength(password: str) -> Tuple[bool, Optional[str]]:
        """Django validators plus a letter/digit mix"""
        try:
            django_validate_password(password)
        except ValidationError as e:
            return False, " ".join(e.messages)

        if not re.search(r"[A-Za-z]", password) or not re.search(r"\d", password):
            return False, "Password must contain letters and digits"

        return True, None

    @staticmethod
    def validate_phone_number(phone: str) -> Tuple[bool, Optional[str]]:
        """Indonesian mobile number: starts with 08, 10-13 digits"""
        if not MOBILE_PHONE_PATTERN.match(phone or ""):
            return False, "Phone number must start with 08 and have 10-13 digits"
        return True, None

    @staticmethod
    def sanitize_string(value: str, max_length: int = None) -> str:
        if not value:
            return value

        value = " ".join(value.split())
        if max_length and len(value) > max_length:
            value = value[:max_length]

        return value.strip()


class AddressValidators:
    """Validation rules for saved addresses"""

    MIN_LENGTHS = {
        "recipient_name": 3,
        "full_address": 10,
        "district": 3,
        "city": 3,
        "province": 3,
    }

    @classmethod
    def validate(cls, data: Dict, partial: bool = False) -> Dict[str, str]:
        """Return a field -> message dict; empty when valid"""
        errors = {}
        required = ["label", "phone", "postal_code", *cls.MIN_LENGTHS.keys()]

        for field in required:
            if field not in data:
                if not partial:
                    errors[field] = "This field is required"
                continue
            value = str(data.get(field) or "").strip()
            if not value:
                errors[field] = "This field is required"
            elif field in cls.MIN_LENGTHS and len(value) < cls.MIN_LENGTHS[field]:
                errors[field] = (
                    f"Must be at least {cls.MIN_LENGTHS[field]} characters long"
                )

        phone = data.get("phone")
        if phone and "phone" not in errors and not ADDRESS_PHONE_PATTERN.match(str(phone)):
            errors["phone"] = "Phone number must be 10-15 digits"

        postal_code = data.get("postal_code")
        if (
            postal_code
            and "postal_code" not in errors
            and not POSTAL_CODE_PATTERN.match(str(postal_code))
        ):
            errors["postal_code"] = "Postal code must be 5 digits"

        for coordinate in ("latitude", "longitude"):
            value = data.get(coordinate)
            if value in (None, ""):
                continue
            try:
                float(value)
            except (TypeError, ValueError):
                errors[coordinate] = "Must be a number"

        return errors
