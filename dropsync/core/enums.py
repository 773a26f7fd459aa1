"""
Shared enums and constants used across the application.
"""

from enum import Enum


class TokenService(str, Enum):
    """External services we hold bearer tokens for"""
    SUPPLIER = "SUPPLIER"
    CHANNEL = "CHANNEL"


class EndReason(str, Enum):
    """Why a listing was ended. Ended listings are never reactivated."""
    OUT_OF_STOCK = "out_of_stock"
    NOT_FOUND = "not_found"
    SCHEDULED_REMOVAL = "scheduled_removal"
    PRODUCT_ERRORS = "product_errors"


class JobType(str, Enum):
    LISTING = "listing"
    REMOVAL = "removal"
    SCHEDULED_REMOVAL = "scheduled_removal"
    MESSAGES = "messages"


class JobStatus(str, Enum):
    SUCCESS = "SUCCESS"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


class SupplierFilter(str, Enum):
    AMAZON = "amazon"
    PRIVATE_SUPPLIERS = "private_suppliers"
