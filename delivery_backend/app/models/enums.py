"""
User roles enumeration.

Defines the role types carried in access tokens.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Operations staff, sees and manages every order
        CLIENT: Books deliveries and tracks own orders (default role)
        DRIVER: Accepts pending orders and moves them along the delivery chain
    """
    ADMIN = "ADMIN"
    CLIENT = "CLIENT"
    DRIVER = "DRIVER"
