"""
users/utils/token_utils.py

JWT generation and validation utilities
"""

import uuid
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Dict, Optional, Tuple, Union

import jwt
from django.conf import settings


def _jwt_settings() -> Dict:
    return getattr(settings, "JWT_SETTINGS", {})


def generate_jwt_token(user, token_type: str = "access", expires_in: int = None) -> str:
    """
    Generate JWT token

    Args:
        user: User object
        token_type: 'access' or 'refresh'
        expires_in: Expiry time in seconds

    Returns:
        str: JWT token
    """
    config = _jwt_settings()

    if expires_in is None:
        if token_type == "refresh":
            expires_in = config.get("REFRESH_TOKEN_LIFETIME", 7 * 24 * 60 * 60)
        else:
            expires_in = config.get("ACCESS_TOKEN_LIFETIME", 60 * 60)

    now = datetime.now(dt_timezone.utc)
    payload = {
        "user_id": str(user.id),
        "email": user.email,
        "role": user.role,
        "type": token_type,
        "exp": now + timedelta(seconds=expires_in),
        "iat": now,
        "jti": str(uuid.uuid4()),
    }

    return jwt.encode(
        payload,
        config.get("SECRET_KEY", settings.SECRET_KEY),
        algorithm=config.get("ALGORITHM", "HS256"),
    )


def validate_jwt_token(token: str) -> Tuple[bool, Union[Dict, str]]:
    """
    Validate JWT token

    Returns:
        (True, payload) on success, (False, error_message) otherwise
    """
    config = _jwt_settings()
    try:
        payload = jwt.decode(
            token,
            config.get("SECRET_KEY", settings.SECRET_KEY),
            algorithms=[config.get("ALGORITHM", "HS256")],
        )
        return True, payload

    except jwt.ExpiredSignatureError:
        return False, "Token has expired"
    except jwt.InvalidTokenError as e:
        return False, f"Invalid token: {str(e)}"


def create_token_pair(user) -> Dict[str, str]:
    """Create access and refresh token pair"""
    return {
        "access_token": generate_jwt_token(user, "access"),
        "refresh_token": generate_jwt_token(user, "refresh"),
        "token_type": "Bearer",
        "expires_in": _jwt_settings().get("ACCESS_TOKEN_LIFETIME", 60 * 60),
    }


def extract_token_from_header(auth_header: str) -> Optional[str]:
    """Return the bearer token from an Authorization header, or None"""
    if not auth_header:
        return None

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]
