"""
Enumerations shared by the models, schemas and route handlers.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Full access, manages user accounts and reads the audit log
        OPERATIONS: Reviews drivers and documents
        SALES_AGENT: Registers drivers and uploads their documents (default role)
    """
    ADMIN = "admin"
    OPERATIONS = "operations"
    SALES_AGENT = "sales_agent"


class DriverStatus(str, enum.Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class RegistrationStatus(str, enum.Enum):
    REGISTRATION = "registration"
    REACTIVATION = "reactivation"


class DocumentType(str, enum.Enum):
    LICENSE = "license"
    INSURANCE = "insurance"
    VEHICLE_REGISTRATION = "vehicle_registration"
    PHOTO = "photo"
    NATIONAL_ID = "national_id"
    BUSINESS_LICENSE = "business_license"


# A driver's paperwork is complete once all of these have been uploaded
REQUIRED_DOCUMENT_TYPES = (
    DocumentType.LICENSE,
    DocumentType.INSURANCE,
    DocumentType.VEHICLE_REGISTRATION,
    DocumentType.PHOTO,
)


class DocumentStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AuditAction(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"
    LOGIN = "login"
    LOGOUT = "logout"
    PASSWORD_CHANGE = "password_change"
    ROLE_CHANGE = "role_change"
    STATUS_CHANGE = "status_change"


class AuditEntity(str, enum.Enum):
    USER = "user"
    DRIVER = "driver"
    DOCUMENT = "document"
    SYSTEM = "system"
