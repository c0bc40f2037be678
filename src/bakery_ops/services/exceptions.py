"""Service layer exception classes for Bakery Operations.

This module defines all custom exceptions used by the service layer to provide
consistent, human-readable error reporting. Every error is recoverable by
the caller: fix the data (add a recipe, restock the catalog) and retry.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    ├── InvalidOrder
    │   └── OrderNotFound
    ├── InvalidStatusTransition
    ├── ProductNotFound
    ├── IngredientNotFound
    ├── DuplicateRecipe
    ├── MissingRecipe
    ├── MissingProducedQuantity
    ├── InvalidRecipeYield
    ├── MissingIngredient
    ├── StockStateConflict
    ├── ConcurrentModification
    └── PersistenceFailure
"""

from typing import Iterable, List, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions inherit from this class.
    """

    pass


def _join(values: Iterable) -> str:
    return ", ".join(str(value) for value in values)


class ValidationError(ServiceError):
    """Raised when caller-supplied data fails validation.

    Args:
        errors: List of error messages

    Example:
        >>> raise ValidationError(["Branch: This field is required"])
        ValidationError: Validation failed: Branch: This field is required
    """

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__(f"Validation failed: {'; '.join(errors)}")


class InvalidOrder(ServiceError):
    """Raised when an order cannot be processed (e.g., it has no line items).

    Args:
        order_id: The offending order's ID
        reason: Human-readable reason
    """

    def __init__(self, order_id, reason: str = "order has no products"):
        self.order_id = order_id
        self.reason = reason
        super().__init__(f"Invalid order {order_id}: {reason}")


class OrderNotFound(InvalidOrder):
    """Raised when an order cannot be found by ID.

    Example:
        >>> raise OrderNotFound(42)
        OrderNotFound: Order with ID 42 not found
    """

    def __init__(self, order_id):
        self.order_id = order_id
        self.reason = "not found"
        ServiceError.__init__(self, f"Order with ID {order_id} not found")


class InvalidStatusTransition(ServiceError):
    """Raised when an order status change is not allowed.

    Args:
        order_id: Order being transitioned
        current_status: Current status value
        requested_status: Requested status value
    """

    def __init__(self, order_id, current_status: str, requested_status: str):
        self.order_id = order_id
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Cannot change order {order_id} from '{current_status}' to '{requested_status}'"
        )


class ProductNotFound(ServiceError):
    """Raised when a product cannot be found by ID."""

    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found")


class IngredientNotFound(ServiceError):
    """Raised when an ingredient cannot be found by ID."""

    def __init__(self, ingredient_id):
        self.ingredient_id = ingredient_id
        super().__init__(f"Ingredient with ID {ingredient_id} not found")


class DuplicateRecipe(ServiceError):
    """Raised when a second recipe is created for a product.

    Example:
        >>> raise DuplicateRecipe(7, "Croissant")
        DuplicateRecipe: Product 'Croissant' already has a recipe
    """

    def __init__(self, product_id, product_name: Optional[str] = None):
        self.product_id = product_id
        self.product_name = product_name
        label = product_name or product_id
        super().__init__(f"Product '{label}' already has a recipe")


class MissingRecipe(ServiceError):
    """Raised when one or more products in an order have no recipe.

    Stock cannot be reduced or reverted for the order until the recipes
    exist.

    Args:
        product_ids: IDs of the products without a recipe
        product_names: Optional display names, same order as product_ids

    Example:
        >>> raise MissingRecipe([3, 9], ["Eclair", "Macaron"])
        MissingRecipe: Missing recipes for: Eclair, Macaron
    """

    def __init__(self, product_ids: List, product_names: Optional[List[str]] = None):
        self.product_ids = list(product_ids)
        self.product_names = list(product_names) if product_names else []
        labels = self.product_names or self.product_ids
        super().__init__(f"Missing recipes for: {_join(labels)}")


class MissingProducedQuantity(ServiceError):
    """Raised when a line item has no produced quantity but stock must move.

    A zero produced quantity is never treated as "nothing consumed".
    """

    def __init__(self, product_id, product_name: Optional[str] = None):
        self.product_id = product_id
        self.product_name = product_name
        label = product_name or product_id
        super().__init__(f"Produced quantity is missing for {label}")


class InvalidRecipeYield(ServiceError):
    """Raised when a recipe's yield makes the scale impossible to compute."""

    def __init__(self, product_id, product_name: Optional[str] = None):
        self.product_id = product_id
        self.product_name = product_name
        label = product_name or product_id
        super().__init__(f"Recipe yield for {label} must be a positive number")


class MissingIngredient(ServiceError):
    """Raised when consumption references ingredients absent from the catalog."""

    def __init__(self, ingredient_ids: List):
        self.ingredient_ids = list(ingredient_ids)
        super().__init__(f"Ingredients not found in catalog: {_join(self.ingredient_ids)}")


class StockStateConflict(ServiceError):
    """Raised when a stock operation does not match the order's derived state.

    Reducing an order whose stock is already reduced, or reverting one that
    is not reduced, would move stock twice.

    Args:
        order_id: Order being processed
        state: Current derived reduction state value
        operation: "reduce" or "revert"
    """

    def __init__(self, order_id, state: str, operation: str):
        self.order_id = order_id
        self.state = state
        self.operation = operation
        super().__init__(
            f"Cannot {operation} stock for order {order_id}: current stock state is '{state}'"
        )


class ConcurrentModification(ServiceError):
    """Raised when a record changed underneath the current operation."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} {entity_id} was modified by another operation; reload and retry"
        )


class PersistenceFailure(ServiceError):
    """Raised when a database write fails.

    Args:
        operation: Which step failed, e.g. "failed to update stock for Butter"
        cause: The original exception
    """

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        self.operation = operation
        self.cause = cause
        message = operation if cause is None else f"{operation}: {cause}"
        super().__init__(message)
