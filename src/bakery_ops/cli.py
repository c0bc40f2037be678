"""
Command-line interface for Bakery Operations.

Usage Examples:
    # Create the database
    bakery-ops init-db

    # Seed ingredients, products and recipes
    bakery-ops load-catalog catalog.json

    # Place an order from a JSON file
    bakery-ops create-order order.json

    # Complete order 12, recording 8 produced units of product 3
    bakery-ops complete 12 --produced 3=8

    # Record 1 reject of product 3 and why
    bakery-ops complete 12 --reject 3=1 --reject-note "3=cracked shell"

    # Deduct / return the ingredients for order 12
    bakery-ops reduce-stock 12
    bakery-ops revert-stock 12

    # Ingredient usage across orders
    bakery-ops usage 12 13 14
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from bakery_ops.models import StockChangeType
from bakery_ops.services import (
    catalog_import_service,
    costing_service,
    order_service,
    stock_ledger,
    stock_reduction_service,
)
from bakery_ops.services.database import initialize_app_database
from bakery_ops.services.exceptions import ServiceError
from bakery_ops.services.logging_utils import configure_logging
from bakery_ops.utils.constants import APP_NAME, APP_VERSION


def quantity_pair(value: str) -> Tuple[int, int]:
    """Parse a PRODUCT_ID=QUANTITY argument."""
    try:
        product_id, quantity = value.split("=", 1)
        return int(product_id), int(quantity)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Expected PRODUCT_ID=QUANTITY with whole numbers, got '{value}'"
        )


def note_pair(value: str) -> Tuple[int, str]:
    """Parse a PRODUCT_ID=TEXT argument."""
    product_id, separator, note = value.partition("=")
    if not separator or not product_id.strip().isdigit():
        raise argparse.ArgumentTypeError(f"Expected PRODUCT_ID=TEXT, got '{value}'")
    return int(product_id), note


def _pairs_to_map(pairs: Optional[List[Tuple[int, Any]]]) -> Optional[Dict[int, Any]]:
    if not pairs:
        return None
    return dict(pairs)


def _print_adjustments(result: Dict) -> None:
    print(f"Order {result['order_id']}: {result['change_type']} recorded")
    for adjustment in result["adjustments"]:
        line = (
            f"  {adjustment['ingredient_name']}: {adjustment['previous_quantity']:g} -> "
            f"{adjustment['new_quantity']:g} {adjustment['unit']}"
        )
        if adjustment["change_amount"] != adjustment["requested_amount"]:
            line += f" (requested {adjustment['requested_amount']:g}, clamped at zero)"
        print(line)


# ============================================================================
# Commands
# ============================================================================


def init_db_cmd(args) -> int:
    initialize_app_database()
    print("Database initialized")
    return 0


def load_catalog_cmd(args) -> int:
    result = catalog_import_service.import_catalog(args.file, dry_run=args.dry_run)
    print(result.get_summary())
    return 1 if result.has_errors else 0


def create_order_cmd(args) -> int:
    data = json.loads(Path(args.file).read_text(encoding="utf-8"))
    order = order_service.create_order(data)
    print(f"Created order {order.order_number} (id {order.id})")
    return 0


def complete_cmd(args) -> int:
    order = order_service.complete_order(
        args.order_id,
        produced_quantities=_pairs_to_map(args.produced),
        stock_quantities=_pairs_to_map(args.stock),
        reject_quantities=_pairs_to_map(args.reject),
        reject_notes=_pairs_to_map(args.reject_note),
        completed_at=args.completed_at,
    )
    print(f"Order {order.id} completed at {order.completed_at.isoformat()}")
    for item in order.products:
        print(f"  product {item.product_id}: produced {item.produced_quantity}/{item.quantity}")
    return 0


def reopen_cmd(args) -> int:
    order = order_service.reopen_order(args.order_id)
    print(f"Order {order.id} reopened ({order.status.value})")
    return 0


def schedule_cmd(args) -> int:
    order = order_service.schedule_production(args.order_id, args.start, args.end)
    print(f"Order {order.id} scheduled ({order.status.value})")
    return 0


def reduce_stock_cmd(args) -> int:
    _print_adjustments(stock_reduction_service.reduce_stock_for_order(args.order_id))
    return 0


def revert_stock_cmd(args) -> int:
    _print_adjustments(stock_reduction_service.revert_stock_for_order(args.order_id))
    return 0


def stock_state_cmd(args) -> int:
    state = stock_ledger.get_reduction_state(args.order_id)
    print(f"Order {args.order_id}: {state.value}")
    return 0


def stock_history_cmd(args) -> int:
    entries = stock_ledger.get_stock_history(
        ingredient_id=args.ingredient,
        change_type=args.type,
        order_id=args.order,
    )
    if not entries:
        print("No stock history")
        return 0
    for entry in entries:
        order = f" order {entry.order_id}" if entry.order_id is not None else ""
        print(
            f"{entry.timestamp.isoformat()} ingredient {entry.ingredient_id} "
            f"{entry.change_type.value}{order}: {entry.previous_quantity:g} -> "
            f"{entry.new_quantity:g} ({entry.change_amount:+g})"
        )
    return 0


def usage_cmd(args) -> int:
    report = costing_service.calculate_ingredient_usage(args.order_ids)
    for row in report["ingredients"]:
        print(f"{row['name']}: {row['amount']} {row['unit']} (cost {row['cost']})")
    for unit, total in report["totals_by_unit"].items():
        print(f"Total {unit}: {total}")
    print(f"Total cost: {report['total_cost']}")
    if report["products_without_recipes"]:
        print(f"Missing recipes for: {', '.join(report['products_without_recipes'])}")
    return 0


COMMANDS = {
    "init-db": init_db_cmd,
    "load-catalog": load_catalog_cmd,
    "create-order": create_order_cmd,
    "complete": complete_cmd,
    "reopen": reopen_cmd,
    "schedule": schedule_cmd,
    "reduce-stock": reduce_stock_cmd,
    "revert-stock": revert_stock_cmd,
    "stock-state": stock_state_cmd,
    "stock-history": stock_history_cmd,
    "usage": usage_cmd,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bakery-ops",
        description=f"{APP_NAME} {APP_VERSION} - orders and ingredient stock",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: BAKERY_OPS_LOG_LEVEL)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("init-db", help="Create database tables")

    catalog_parser = subparsers.add_parser("load-catalog", help="Import a JSON catalog")
    catalog_parser.add_argument("file", help="Catalog JSON file")
    catalog_parser.add_argument("--dry-run", action="store_true", help="Preview only")

    create_parser = subparsers.add_parser("create-order", help="Create an order from JSON")
    create_parser.add_argument("file", help="Order JSON file")

    complete_parser = subparsers.add_parser("complete", help="Complete (or edit) an order")
    complete_parser.add_argument("order_id", type=int)
    for option, label in (
        ("--produced", "produced"),
        ("--stock", "stock"),
        ("--reject", "rejected"),
    ):
        complete_parser.add_argument(
            option,
            type=quantity_pair,
            action="append",
            metavar="PRODUCT_ID=QTY",
            help=f"Quantity {label} for a product (repeatable)",
        )
    complete_parser.add_argument(
        "--reject-note",
        type=note_pair,
        action="append",
        metavar="PRODUCT_ID=TEXT",
        help="Reason for a product's rejects (repeatable)",
    )
    complete_parser.add_argument("--completed-at", help="Completion date (YYYY-MM-DD)")

    reopen_parser = subparsers.add_parser("reopen", help="Move a completed order back to pending")
    reopen_parser.add_argument("order_id", type=int)

    schedule_parser = subparsers.add_parser("schedule", help="Schedule production")
    schedule_parser.add_argument("order_id", type=int)
    schedule_parser.add_argument("start", help="Start date (YYYY-MM-DD)")
    schedule_parser.add_argument("end", help="End date (YYYY-MM-DD)")

    for name, help_text in (
        ("reduce-stock", "Deduct the order's ingredients from stock"),
        ("revert-stock", "Return the order's ingredients to stock"),
        ("stock-state", "Show the order's stock reduction state"),
    ):
        command_parser = subparsers.add_parser(name, help=help_text)
        command_parser.add_argument("order_id", type=int)

    history_parser = subparsers.add_parser("stock-history", help="Show stock history")
    history_parser.add_argument("--ingredient", type=int, help="Ingredient ID")
    history_parser.add_argument(
        "--type", choices=[change_type.value for change_type in StockChangeType]
    )
    history_parser.add_argument("--order", type=int, help="Order ID")

    usage_parser = subparsers.add_parser("usage", help="Ingredient usage across orders")
    usage_parser.add_argument("order_ids", type=int, nargs="+")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    configure_logging(logging.getLevelName(args.log_level) if args.log_level else None)
    initialize_app_database()

    try:
        return COMMANDS[args.command](args)
    except (ServiceError, FileNotFoundError, json.JSONDecodeError) as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
