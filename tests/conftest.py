"""Pytest configuration and fixtures for Bakery Operations tests."""

from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker

from bakery_ops.models.base import Base
from bakery_ops.services import catalog_repository, order_events, order_service, stock_ledger
from bakery_ops.services.database import create_database_engine


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Swaps the global session factory for one bound to it
    4. Drops all tables after the test completes
    """
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    import bakery_ops.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield Session

    Session.remove()
    Base.metadata.drop_all(engine)
    db_module.get_session_factory = original_get_session


@pytest.fixture(scope="function")
def file_db(tmp_path):
    """File-backed database for tests that need independent sessions.

    Yields a sessionmaker; each call opens its own connection, so two
    sessions behave like two concurrent users.
    """
    engine = create_database_engine(f"sqlite:///{tmp_path / 'bakery_ops_test.db'}")
    Base.metadata.create_all(engine)
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    import bakery_ops.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: session_factory

    yield session_factory

    db_module.get_session_factory = original_get_session
    engine.dispose()


@pytest.fixture(autouse=True)
def no_order_subscribers():
    """Make sure order event subscribers never leak between tests."""
    order_events.clear_subscribers()
    yield
    order_events.clear_subscribers()


def _build_catalog():
    chocolate = catalog_repository.create_ingredient(
        {"name": "Dark Chocolate", "unit": "g", "package_size": 1000, "price": 250000}
    )
    sugar = catalog_repository.create_ingredient(
        {"name": "Sugar", "unit": "g", "package_size": 1000, "price": 18000}
    )
    cocoa_butter = catalog_repository.create_ingredient(
        {"name": "Cocoa Butter", "unit": "g", "package_size": 500, "price": 175000}
    )
    butter = catalog_repository.create_ingredient(
        {"name": "Butter", "unit": "g", "package_size": 250, "price": 42000}
    )

    praline = catalog_repository.create_product(
        {"name": "Praline Box", "unit": "pcs", "price": 95000}
    )
    cookie = catalog_repository.create_product(
        {"name": "Butter Cookie", "unit": "pcs", "price": 6000}
    )
    tart = catalog_repository.create_product({"name": "Chocolate Tart", "unit": "pcs"})

    # Praline Box: 10 per batch
    catalog_repository.create_recipe(
        {
            "product_id": praline.id,
            "yield_quantity": 10,
            "ingredients": [
                {"ingredient_id": chocolate.id, "amount": 300},
                {"ingredient_id": sugar.id, "amount": 40},
                {"ingredient_id": cocoa_butter.id, "amount": 25, "is_shell": True},
            ],
        }
    )
    # Butter Cookie: 24 per batch
    catalog_repository.create_recipe(
        {
            "product_id": cookie.id,
            "yield_quantity": 24,
            "ingredients": [
                {"ingredient_id": butter.id, "amount": 200},
                {"ingredient_id": sugar.id, "amount": 150},
            ],
        }
    )

    for ingredient in (chocolate, sugar, cocoa_butter, butter):
        stock_ledger.set_stock_quantity(ingredient.id, 10000)

    # Chocolate Tart intentionally has no recipe
    return SimpleNamespace(
        chocolate=chocolate,
        sugar=sugar,
        cocoa_butter=cocoa_butter,
        butter=butter,
        praline=praline,
        cookie=cookie,
        tart=tart,
    )


@pytest.fixture(scope="function")
def catalog(test_db):
    """Ingredients, products and recipes with 10000 units of every ingredient.

    - Praline Box: yield 10 -> 300 chocolate, 40 sugar, 25 cocoa butter (shell)
    - Butter Cookie: yield 24 -> 200 butter, 150 sugar
    - Chocolate Tart: no recipe
    """
    return _build_catalog()


@pytest.fixture(scope="function")
def file_catalog(file_db):
    """Same catalog as `catalog`, in the file-backed database."""
    return _build_catalog()


@pytest.fixture(scope="function")
def make_order():
    """Factory creating a pending order from {product_id: quantity}."""

    def _make_order(quantities, branch_id="seseduh", order_date="2025-01-13"):
        order = order_service.create_order(
            {
                "branch_id": branch_id,
                "ordered_by": "Front counter",
                "order_date": order_date,
                "products": [
                    {"product_id": product_id, "quantity": quantity}
                    for product_id, quantity in quantities.items()
                ],
            }
        )
        return order.id

    return _make_order


@pytest.fixture(scope="function")
def stock_of():
    """Return the current stock quantity of an ingredient."""

    def _stock_of(ingredient):
        return stock_ledger.get_stock_level(ingredient.id)["quantity"]

    return _stock_of
