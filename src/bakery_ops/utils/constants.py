"""
Constants for the Bakery Operations application.

This module defines all system-wide constants including:
- Application metadata
- Branches that may place orders
- Units used by products and ingredients
- Validation limits and error messages
"""

from typing import Dict, List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Bakery Operations"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"

# ============================================================================
# Branches
# ============================================================================

# Branch id -> display name. The first two letters of the name form the
# branch code used in order numbers.
BRANCHES: Dict[str, str] = {
    "seseduh": "Seseduh",
    "2go": "2GO",
    "external": "External",
}

UNKNOWN_BRANCH_NAME = "Unknown Branch"
UNKNOWN_BRANCH_CODE = "XX"

# ============================================================================
# Units
# ============================================================================

DEFAULT_PRODUCT_UNIT = "pcs"

INGREDIENT_UNITS: List[str] = [
    "g",
    "kg",
    "ml",
    "l",
    "pcs",
]

# ============================================================================
# Order Status Labels
# ============================================================================

ORDER_STATUS_LABELS: Dict[str, str] = {
    "pending": "Pending",
    "processing": "In Production",
    "completed": "Completed",
}

STOCK_CHANGE_TYPE_LABELS: Dict[str, str] = {
    "reduction": "Stock Reduction",
    "reversion": "Stock Reversion",
    "manual": "Manual Update",
}

# ============================================================================
# Validation Constants
# ============================================================================

MAX_NAME_LENGTH = 200
MAX_NOTES_LENGTH = 2000
MAX_ORDERED_BY_LENGTH = 100
MAX_PO_NUMBER_LENGTH = 100

# ============================================================================
# Database Constants
# ============================================================================

DATABASE_FILENAME = "bakery_ops.db"

# ============================================================================
# Date Formats
# ============================================================================

DATE_FORMAT = "%Y-%m-%d"
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
ORDER_NUMBER_DATE_FORMAT = "%y%m%d"

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_NUMBER = "Please enter a valid number"
ERROR_INVALID_POSITIVE = "Value must be greater than zero"
ERROR_INVALID_NON_NEGATIVE = "Value must be zero or greater"
ERROR_INVALID_INTEGER = "Value must be a whole number"
ERROR_INVALID_BRANCH = "Invalid branch selected"
ERROR_NO_PRODUCTS = "At least one product is required"
ERROR_INVALID_PRODUCT_QUANTITY = "All products must have valid quantities"
ERROR_DUPLICATE_PRODUCT = "Each product can only appear once per order"
