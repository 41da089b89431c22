from .user import User
from .address import Address

__all__ = [
    "User",
    "Address",
]
