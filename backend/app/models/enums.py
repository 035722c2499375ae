"""
User roles enumeration.

Defines the role types for the freight marketplace. Wire values are the
tokens issued by the external identity provider and must not change.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        PRODUCER: Shipper who publishes freights and pays for them
        DRIVER: Independent driver bidding for freights
        AFFILIATED_DRIVER: Driver working on behalf of a transport company
        COMPANY: Transport company dispatching its affiliated drivers
        ADMIN: Platform operator with override access
    """
    PRODUCER = "PRODUTOR"
    DRIVER = "MOTORISTA"
    AFFILIATED_DRIVER = "MOTORISTA_AFILIADO"
    COMPANY = "TRANSPORTADORA"
    ADMIN = "ADMIN"


class ApprovalStatus(str, enum.Enum):
    """Profile approval status set by onboarding review."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


DRIVER_ROLES = (UserRole.DRIVER, UserRole.AFFILIATED_DRIVER)
CARRIER_ROLES = (UserRole.DRIVER, UserRole.AFFILIATED_DRIVER, UserRole.COMPANY)
