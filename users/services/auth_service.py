"""
users/services/auth_service.py

Registration, login and token refresh
"""

import logging
from typing import Dict, Any, Optional, Tuple
from django.db import transaction
from django.contrib.auth import authenticate
from django.utils import timezone

from users.utils.token_utils import create_token_pair, validate_jwt_token
from ..models.user import User
from ..utils.validators import UserValidators


logger = logging.getLogger(__name__)


class AuthService:
    """Authentication business logic service"""

    @staticmethod
    def _validate_account_data(
        data: Dict[str, Any], required_fields
    ) -> Dict[str, str]:
        errors = {}
        for field in required_fields:
            if not data.get(field):
                errors[field] = "This field is required"
        if errors:
            return errors

        is_valid_email, email_error = UserValidators.validate_email_format(
            data["email"]
        )
        if not is_valid_email:
            errors["email"] = email_error

        is_valid_password, pwd_error = UserValidators.validate_password_strength(
            data["password"]
        )
        if not is_valid_password:
            errors["password"] = pwd_error

        if data.get("phone"):
            is_valid_phone, phone_error = UserValidators.validate_phone_number(
                data["phone"].strip()
            )
            if not is_valid_phone:
                errors["phone"] = phone_error

        email = data["email"].lower().strip()
        if "email" not in errors and User.objects.filter(email=email).exists():
            errors["email"] = "A user with this email already exists"

        return errors

    @staticmethod
    def _auth_payload(user: User) -> Dict:
        return {"user": user.to_dict(), "tokens": create_token_pair(user)}

    @staticmethod
    @transaction.atomic
    def register_customer(
        data: Dict[str, Any]
    ) -> Tuple[Optional[Dict], Optional[Dict]]:
        """
        Self-registration for customers only
        Returns: (auth_data, errors)
        """
        errors = AuthService._validate_account_data(
            data, ["email", "password", "first_name", "last_name", "phone"]
        )
        if errors:
            return None, errors

        user = User.objects.create_customer(
            email=data["email"].strip(),
            password=data["password"],
            first_name=UserValidators.sanitize_string(data["first_name"], 150),
            last_name=UserValidators.sanitize_string(data["last_name"], 150),
            phone=data["phone"].strip(),
            username=(data.get("username") or "").strip() or None,
        )

        logger.info(f"Customer registered: {user.email} (ID: {user.id})")
        return AuthService._auth_payload(user), None

    @staticmethod
    @transaction.atomic
    def register_team_member(
        data: Dict[str, Any], created_by: User
    ) -> Tuple[Optional[Dict], Optional[Dict]]:
        """
        Admin creates a staff or admin account
        Returns: (user_data, errors)
        """
        errors = AuthService._validate_account_data(
            data, ["email", "password", "first_name", "last_name", "role"]
        )
        if errors:
            return None, errors

        role = data["role"]
        if role not in User.BACK_OFFICE_ROLES:
            return None, {
                "role": f"Invalid role. Must be one of: {', '.join(User.BACK_OFFICE_ROLES)}"
            }

        create = (
            User.objects.create_admin
            if role == User.ROLE_ADMIN
            else User.objects.create_staff
        )
        user = create(
            email=data["email"].strip(),
            password=data["password"],
            first_name=UserValidators.sanitize_string(data["first_name"], 150),
            last_name=UserValidators.sanitize_string(data["last_name"], 150),
            phone=(data.get("phone") or "").strip(),
        )

        logger.info(
            f"Team member created by {created_by.email}: {user.email} (Role: {user.role})"
        )
        return {"user": user.to_dict()}, None

    @staticmethod
    def authenticate_user(
        email: str, password: str, request=None
    ) -> Tuple[Optional[Dict], Optional[str]]:
        """
        Authenticate user and generate tokens
        Returns: (auth_data, error_message)
        """
        email = email.lower().strip()
        user = User.objects.filter(email=email).first()

        if user and not user.is_active and user.check_password(password):
            return None, "Account is suspended"

        user = authenticate(request, username=email, password=password)
        if not user:
            return None, "Invalid email or password"

        user.last_login = timezone.now()
        user.save(update_fields=["last_login"])

        ip_address = None
        if request:
            x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
            ip_address = (
                x_forwarded_for.split(",")[0]
                if x_forwarded_for
                else request.META.get("REMOTE_ADDR")
            )

        logger.info(f"User logged in: {user.email} from IP: {ip_address}")
        return AuthService._auth_payload(user), None

    @staticmethod
    def refresh_tokens(refresh_token: str) -> Tuple[Optional[Dict], Optional[str]]:
        """Exchange a refresh token for a new token pair"""
        verified, payload = validate_jwt_token(refresh_token)
        if not verified:
            return None, "Invalid or expired refresh token"

        if payload.get("type") != "refresh":
            return None, "Invalid token type"

        user = User.objects.filter(id=payload.get("user_id"), is_active=True).first()
        if not user:
            return None, "User not found or inactive"

        return create_token_pair(user), None

    @staticmethod
    def change_password(
        user: User, current_password: str, new_password: str
    ) -> Optional[Dict]:
        """Returns field errors, or None on success"""
        if not user.check_password(current_password):
            return {"current_password": "Current password is incorrect"}

        is_valid, error = UserValidators.validate_password_strength(new_password)
        if not is_valid:
            return {"new_password": error}

        user.set_password(new_password)
        user.save(update_fields=["password", "updated_at"])
        logger.info(f"Password changed for {user.email}")
        return None
