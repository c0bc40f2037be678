"""
Input validation functions for the Bakery Operations application.

This module provides validation functions for caller-side input checks:
- Numeric validation (positive, non-negative, whole numbers)
- String validation (required fields, length)
- Branch validation
- Order data and per-product quantity maps
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from .constants import (
    BRANCHES,
    ERROR_DUPLICATE_PRODUCT,
    ERROR_INVALID_BRANCH,
    ERROR_INVALID_INTEGER,
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_NUMBER,
    ERROR_INVALID_POSITIVE,
    ERROR_INVALID_PRODUCT_QUANTITY,
    ERROR_NO_PRODUCTS,
    ERROR_REQUIRED_FIELD,
    MAX_NOTES_LENGTH,
    MAX_ORDERED_BY_LENGTH,
    MAX_PO_NUMBER_LENGTH,
)


def validate_required_string(value: Optional[str], field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a string field is not empty.

    Args:
        value: The string value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    return True, ""


def validate_string_length(
    value: Optional[str], max_length: int, field_name: str = "Field"
) -> Tuple[bool, str]:
    """
    Validate that a string doesn't exceed maximum length.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value and len(value) > max_length:
        return False, f"{field_name}: Must be {max_length} characters or less"
    return True, ""


def validate_positive_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a positive number (> 0).

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        num_value = float(value)
        if num_value <= 0:
            return False, f"{field_name}: {ERROR_INVALID_POSITIVE}"
        return True, ""
    except (ValueError, TypeError):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"


def validate_non_negative_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a non-negative number (>= 0).

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        num_value = float(value)
        if num_value < 0:
            return False, f"{field_name}: {ERROR_INVALID_NON_NEGATIVE}"
        return True, ""
    except (ValueError, TypeError):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"


def validate_non_negative_integer(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a whole number >= 0.

    Booleans are rejected even though they are ints in Python.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{field_name}: {ERROR_INVALID_INTEGER}"
    if value < 0:
        return False, f"{field_name}: {ERROR_INVALID_NON_NEGATIVE}"
    return True, ""


def validate_branch(branch_id: Optional[str], field_name: str = "Branch") -> Tuple[bool, str]:
    """
    Validate that a branch id is one of the known branches.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not branch_id:
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    if branch_id not in BRANCHES:
        return False, f"{field_name}: {ERROR_INVALID_BRANCH}"
    return True, ""


def validate_quantity_map(
    quantities: Optional[Mapping[Any, Any]], field_name: str = "Quantity"
) -> List[str]:
    """
    Validate a per-product quantity map (product id -> quantity).

    Every value must be a non-negative whole number.

    Args:
        quantities: Mapping of product id to quantity, or None
        field_name: Name used in error messages

    Returns:
        List of error messages (empty if valid)
    """
    errors = []
    for product_id, value in (quantities or {}).items():
        is_valid, message = validate_non_negative_integer(
            value, f"{field_name} for product {product_id}"
        )
        if not is_valid:
            errors.append(message)
    return errors


def validate_order_data(data: Dict[str, Any]) -> List[str]:
    """
    Validate order data before creation.

    Args:
        data: Dictionary with branch_id, ordered_by, products and optional
              po_number / notes. Each product is a dict with product_id and
              quantity.

    Returns:
        List of error messages (empty if valid)
    """
    errors = []

    is_valid, error = validate_branch(data.get("branch_id"))
    if not is_valid:
        errors.append(error)

    ordered_by = data.get("ordered_by")
    is_valid, error = validate_required_string(ordered_by, "Ordered by")
    if not is_valid:
        errors.append(error)
    else:
        is_valid, error = validate_string_length(ordered_by, MAX_ORDERED_BY_LENGTH, "Ordered by")
        if not is_valid:
            errors.append(error)

    is_valid, error = validate_string_length(
        data.get("po_number"), MAX_PO_NUMBER_LENGTH, "PO number"
    )
    if not is_valid:
        errors.append(error)

    is_valid, error = validate_string_length(data.get("notes"), MAX_NOTES_LENGTH, "Notes")
    if not is_valid:
        errors.append(error)

    products = data.get("products") or []
    if not products:
        errors.append(ERROR_NO_PRODUCTS)
    else:
        for item in products:
            quantity = item.get("quantity")
            if (
                item.get("product_id") is None
                or isinstance(quantity, bool)
                or not isinstance(quantity, int)
                or quantity <= 0
            ):
                errors.append(ERROR_INVALID_PRODUCT_QUANTITY)
                break

        product_ids = [item.get("product_id") for item in products]
        if len(set(product_ids)) != len(product_ids):
            errors.append(ERROR_DUPLICATE_PRODUCT)

    return errors
