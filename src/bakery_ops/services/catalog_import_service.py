"""
Catalog Import Service - seed ingredients, products and recipes from JSON.

Records are matched by name: existing names are skipped, so re-importing a
catalog file only adds what is new. Recipes reference their product and
ingredients by name. An ingredient's optional "stock" is written through the
stock ledger as a manual change, so it shows up in the stock history.

Catalog file format:
    {
        "catalog_version": "1.0",
        "ingredients": [
            {"name": "Dark Chocolate", "unit": "g", "package_size": 1000,
             "price": 250000, "stock": 5000, "min_stock": 1000}
        ],
        "products": [{"name": "Praline Box", "unit": "pcs", "price": 95000}],
        "recipes": [
            {"product": "Praline Box", "yield_quantity": 10,
             "ingredients": [{"ingredient": "Dark Chocolate", "amount": 300}],
             "shell_ingredients": [{"ingredient": "Cocoa Butter", "amount": 20}]}
        ]
    }

Usage:
    from bakery_ops.services.catalog_import_service import import_catalog

    result = import_catalog("catalog.json", dry_run=True)
    print(result.get_summary())
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from bakery_ops.models import Ingredient, Product
from . import catalog_repository, stock_ledger
from .database import session_scope
from .exceptions import ServiceError
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

CATALOG_VERSION = "1.0"

ENTITY_TYPES = ("ingredients", "products", "recipes")


class CatalogImportError(ServiceError):
    """Raised when a catalog file cannot be read or has the wrong format."""


@dataclass
class ImportIssue:
    """Structured error for a record that could not be imported."""

    entity_type: str
    identifier: str
    message: str


@dataclass
class EntityImportCounts:
    """Per-entity import statistics."""

    added: int = 0
    skipped: int = 0
    failed: int = 0


class CatalogImportResult:
    """Result of a catalog import with per-entity counts."""

    def __init__(self, dry_run: bool = False):
        self.entity_counts: Dict[str, EntityImportCounts] = {
            entity_type: EntityImportCounts() for entity_type in ENTITY_TYPES
        }
        self.errors: List[ImportIssue] = []
        self.warnings: List[str] = []
        self.dry_run = dry_run

    @property
    def total_added(self) -> int:
        return sum(counts.added for counts in self.entity_counts.values())

    @property
    def total_skipped(self) -> int:
        return sum(counts.skipped for counts in self.entity_counts.values())

    @property
    def total_failed(self) -> int:
        return sum(counts.failed for counts in self.entity_counts.values())

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def add_success(self, entity_type: str) -> None:
        self.entity_counts[entity_type].added += 1

    def add_skip(self, entity_type: str, identifier: str, reason: str) -> None:
        self.entity_counts[entity_type].skipped += 1
        self.warnings.append(f"{entity_type.capitalize()} '{identifier}' skipped: {reason}")

    def add_error(self, entity_type: str, identifier: str, message: str) -> None:
        self.entity_counts[entity_type].failed += 1
        self.errors.append(ImportIssue(entity_type, identifier, message))

    def get_summary(self) -> str:
        """Generate a user-friendly summary for CLI display."""
        lines = ["=" * 60, "Catalog Import Summary"]
        if self.dry_run:
            lines.append("*** DRY RUN - No changes committed ***")
        lines.append("=" * 60)

        for entity_type, counts in self.entity_counts.items():
            parts = []
            if counts.added:
                parts.append(f"{counts.added} added")
            if counts.skipped:
                parts.append(f"{counts.skipped} skipped")
            if counts.failed:
                parts.append(f"{counts.failed} failed")
            if parts:
                lines.append(f"  {entity_type.capitalize()}: {', '.join(parts)}")

        lines.append("")
        lines.append(f"  Added:   {self.total_added}")
        lines.append(f"  Skipped: {self.total_skipped}")
        lines.append(f"  Failed:  {self.total_failed}")

        if self.errors:
            lines.append("\nErrors:")
            for error in self.errors:
                lines.append(f"  - {error.entity_type}: {error.identifier}")
                lines.append(f"    {error.message}")

        lines.append("=" * 60)
        return "\n".join(lines)


# ============================================================================
# Entity imports
# ============================================================================


def _import_ingredients(items: List[Dict[str, Any]], result: CatalogImportResult, session):
    existing = {ingredient.name for ingredient in session.query(Ingredient.name)}
    for item in items:
        name = (item.get("name") or "").strip()
        if name in existing:
            result.add_skip("ingredients", name, "already exists")
            continue
        try:
            ingredient = catalog_repository.create_ingredient(item, session=session)
            if item.get("stock") is not None or item.get("min_stock") is not None:
                stock_ledger.set_stock_quantity(
                    ingredient.id,
                    item.get("stock") or 0,
                    min_stock=item.get("min_stock"),
                    session=session,
                )
        except ServiceError as e:
            result.add_error("ingredients", name or "<unnamed>", str(e))
            continue
        existing.add(name)
        result.add_success("ingredients")


def _import_products(items: List[Dict[str, Any]], result: CatalogImportResult, session):
    existing = {product.name for product in session.query(Product.name)}
    for item in items:
        name = (item.get("name") or "").strip()
        if name in existing:
            result.add_skip("products", name, "already exists")
            continue
        try:
            catalog_repository.create_product(item, session=session)
        except ServiceError as e:
            result.add_error("products", name or "<unnamed>", str(e))
            continue
        existing.add(name)
        result.add_success("products")


def _resolve_recipe_ingredients(
    item: Dict[str, Any], ingredient_ids: Dict[str, int]
) -> List[Dict[str, Any]]:
    resolved = []
    for key, is_shell in (("ingredients", False), ("shell_ingredients", True)):
        for entry in item.get(key) or []:
            ingredient_name = entry.get("ingredient")
            if ingredient_name not in ingredient_ids:
                raise CatalogImportError(f"Unknown ingredient '{ingredient_name}'")
            resolved.append(
                {
                    "ingredient_id": ingredient_ids[ingredient_name],
                    "amount": entry.get("amount"),
                    "is_shell": is_shell,
                }
            )
    return resolved


def _import_recipes(items: List[Dict[str, Any]], result: CatalogImportResult, session):
    products = {
        product.name: product for product in catalog_repository.list_products(session=session)
    }
    ingredient_ids = {
        ingredient.name: ingredient.id
        for ingredient in catalog_repository.list_ingredients(session=session)
    }
    for item in items:
        product_name = item.get("product")
        product = products.get(product_name)
        if product is None:
            result.add_error("recipes", str(product_name), f"Unknown product '{product_name}'")
            continue
        if catalog_repository.get_recipe_for_product(product.id, session=session) is not None:
            result.add_skip("recipes", product_name, "product already has a recipe")
            continue
        try:
            catalog_repository.create_recipe(
                {
                    "product_id": product.id,
                    "name": item.get("name"),
                    "yield_quantity": item.get("yield_quantity"),
                    "yield_unit": item.get("yield_unit"),
                    "notes": item.get("notes"),
                    "ingredients": _resolve_recipe_ingredients(item, ingredient_ids),
                },
                session=session,
            )
        except ServiceError as e:
            result.add_error("recipes", product_name, str(e))
            continue
        result.add_success("recipes")


# ============================================================================
# Entry points
# ============================================================================


def validate_catalog_file(file_path: str) -> Dict[str, Any]:
    """
    Load a catalog file and check its version.

    Raises:
        FileNotFoundError: If the file doesn't exist
        CatalogImportError: If the JSON is invalid or the version unsupported
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise CatalogImportError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict) or "catalog_version" not in data:
        raise CatalogImportError("Unrecognized file format. Expected 'catalog_version' field.")
    if data["catalog_version"] != CATALOG_VERSION:
        raise CatalogImportError(
            f"Unsupported catalog version: {data['catalog_version']}. "
            f"Expected {CATALOG_VERSION}"
        )
    return data


def _load_catalog_impl(data: Dict[str, Any], result: CatalogImportResult, session) -> None:
    _import_ingredients(data.get("ingredients") or [], result, session)
    _import_products(data.get("products") or [], result, session)
    _import_recipes(data.get("recipes") or [], result, session)


def load_catalog(
    data: Dict[str, Any], dry_run: bool = False, *, session=None
) -> CatalogImportResult:
    """
    Import catalog data in dependency order (ingredients, products, recipes).

    Args:
        data: Parsed catalog dictionary (see module docstring)
        dry_run: If True, report what would happen without committing
            (only honoured when the function owns the session)
        session: Optional database session for transactional composition

    Returns:
        CatalogImportResult
    """
    result = CatalogImportResult(dry_run=dry_run)
    if session is not None:
        _load_catalog_impl(data, result, session)
    else:
        with session_scope() as session:
            _load_catalog_impl(data, result, session)
            if dry_run:
                session.rollback()

    log_operation(
        logger,
        operation="load_catalog",
        outcome="dry_run" if dry_run else "success",
        added=result.total_added,
        skipped=result.total_skipped,
        failed=result.total_failed,
    )
    return result


def import_catalog(
    file_path: str, dry_run: bool = False, *, session=None
) -> CatalogImportResult:
    """Validate a catalog file and import it (see load_catalog)."""
    data = validate_catalog_file(file_path)
    return load_catalog(data, dry_run=dry_run, session=session)
