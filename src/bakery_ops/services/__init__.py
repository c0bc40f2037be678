"""Services package - Business logic layer for Bakery Operations.

Architecture:
- Services: Stateless functions organized by domain
- Transactions: Managed via session_scope(); every function also accepts a
  caller's session so operations compose into one transaction
- Exceptions: Consistent error handling via the ServiceError hierarchy
- Validation: Input validation before database operations

Service Modules:
- order_service: Order creation and status transitions
- stock_reduction_service: Reduce/revert ingredient stock for an order
- stock_ledger: Stock levels, history and derived reduction state
- consumption_calculator: Ingredient consumption from recipes
- recipe_resolver: Product -> recipe lookup
- order_repository: Order persistence
- catalog_repository: Product, ingredient, recipe and raw stock persistence
- catalog_import_service: JSON catalog seeding
- costing_service: Recipe costs, order totals, usage reports
- order_events: Post-commit order change notifications

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- logging_utils: Structured service logging
"""

from . import (
    database,
    order_events,
    catalog_repository,
    order_repository,
    recipe_resolver,
    consumption_calculator,
    stock_ledger,
    order_service,
    stock_reduction_service,
    costing_service,
    catalog_import_service,
)

from .exceptions import (
    ServiceError,
    ValidationError,
    InvalidOrder,
    OrderNotFound,
    InvalidStatusTransition,
    ProductNotFound,
    IngredientNotFound,
    DuplicateRecipe,
    MissingRecipe,
    MissingProducedQuantity,
    InvalidRecipeYield,
    MissingIngredient,
    StockStateConflict,
    ConcurrentModification,
    PersistenceFailure,
)

from .order_service import (
    complete_order,
    create_order,
    delete_order,
    reopen_order,
    schedule_production,
)
from .stock_reduction_service import (
    reduce_stock_for_order,
    revert_stock_for_order,
    toggle_stock_for_order,
)
from .stock_ledger import get_reduction_state

__all__ = [
    # Modules
    "database",
    "order_events",
    "catalog_repository",
    "order_repository",
    "recipe_resolver",
    "consumption_calculator",
    "stock_ledger",
    "order_service",
    "stock_reduction_service",
    "costing_service",
    "catalog_import_service",
    # Exceptions
    "ServiceError",
    "ValidationError",
    "InvalidOrder",
    "OrderNotFound",
    "InvalidStatusTransition",
    "ProductNotFound",
    "IngredientNotFound",
    "DuplicateRecipe",
    "MissingRecipe",
    "MissingProducedQuantity",
    "InvalidRecipeYield",
    "MissingIngredient",
    "StockStateConflict",
    "ConcurrentModification",
    "PersistenceFailure",
    # Operations
    "create_order",
    "complete_order",
    "reopen_order",
    "schedule_production",
    "delete_order",
    "reduce_stock_for_order",
    "revert_stock_for_order",
    "toggle_stock_for_order",
    "get_reduction_state",
]
