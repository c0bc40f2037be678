"""Tests for reducing and reverting ingredient stock for orders.

Catalog (see conftest): every ingredient starts at 10000.
    Praline Box, yield 10: 300 chocolate, 40 sugar, 25 cocoa butter (shell)
    Butter Cookie, yield 24: 200 butter, 150 sugar
    Chocolate Tart: no recipe
"""

import logging

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from bakery_ops.models import ReductionState, RecipeIngredient, StockChangeType, StockLevel
from bakery_ops.services import (
    catalog_repository,
    order_repository,
    order_service,
    stock_ledger,
    stock_reduction_service,
)
from bakery_ops.services.database import session_scope
from bakery_ops.services.exceptions import (
    ConcurrentModification,
    MissingIngredient,
    MissingProducedQuantity,
    MissingRecipe,
    PersistenceFailure,
    StockStateConflict,
)


def history_for(order_id):
    return stock_ledger.get_stock_history(order_id=order_id)


@pytest.fixture
def completed_praline_order(catalog, make_order):
    """Order of 10 Praline Boxes, completed with 18 produced."""
    order_id = make_order({catalog.praline.id: 10})
    order_service.complete_order(order_id, {catalog.praline.id: 18})
    return order_id


class TestReduceStock:
    """Tests for reduce_stock_for_order()."""

    def test_reduces_every_ingredient(self, catalog, completed_praline_order, stock_of):
        result = stock_reduction_service.reduce_stock_for_order(completed_praline_order)

        assert result["change_type"] == "reduction"
        assert result["reduction_state"] == "reduced"
        amounts = {row["ingredient_name"]: row["change_amount"] for row in result["adjustments"]}
        assert amounts == {"Dark Chocolate": -540, "Sugar": -72, "Cocoa Butter": -45}

        assert stock_of(catalog.chocolate) == 9460
        assert stock_of(catalog.sugar) == 9928
        assert stock_of(catalog.cocoa_butter) == 9955
        assert stock_of(catalog.butter) == 10000

    def test_history_and_mirror_flag(self, catalog, completed_praline_order):
        stock_reduction_service.reduce_stock_for_order(completed_praline_order)

        entries = history_for(completed_praline_order)
        assert len(entries) == 3
        assert {entry.change_type for entry in entries} == {StockChangeType.REDUCTION}
        assert order_service.get_order(completed_praline_order).stock_reduced is True

    def test_shared_ingredient_summed_across_products(self, catalog, make_order, stock_of):
        order_id = make_order({catalog.praline.id: 10, catalog.cookie.id: 48})
        order_service.complete_order(order_id)

        stock_reduction_service.reduce_stock_for_order(order_id)

        # 40 from the pralines + 2 * 150 from the cookies
        assert stock_of(catalog.sugar) == 10000 - 340
        sugar_entries = [
            entry for entry in history_for(order_id) if entry.ingredient_id == catalog.sugar.id
        ]
        assert len(sugar_entries) == 1

    def test_stock_floor(self, catalog, completed_praline_order, stock_of):
        stock_ledger.set_stock_quantity(catalog.chocolate.id, 100)

        result = stock_reduction_service.reduce_stock_for_order(completed_praline_order)

        chocolate = next(
            row for row in result["adjustments"] if row["ingredient_id"] == catalog.chocolate.id
        )
        assert chocolate["new_quantity"] == 0
        assert chocolate["change_amount"] == -100
        assert chocolate["requested_amount"] == -540
        assert stock_of(catalog.chocolate) == 0

    def test_double_reduction_rejected(self, catalog, completed_praline_order, stock_of):
        stock_reduction_service.reduce_stock_for_order(completed_praline_order)

        with pytest.raises(StockStateConflict) as exc_info:
            stock_reduction_service.reduce_stock_for_order(completed_praline_order)

        assert exc_info.value.state == "reduced"
        assert stock_of(catalog.chocolate) == 9460
        assert len(history_for(completed_praline_order)) == 3

    def test_missing_recipe_blocks_whole_order(self, catalog, make_order, stock_of):
        order_id = make_order({catalog.praline.id: 10, catalog.tart.id: 5})
        order_service.complete_order(order_id)

        with pytest.raises(MissingRecipe) as exc_info:
            stock_reduction_service.reduce_stock_for_order(order_id)

        assert exc_info.value.product_ids == [catalog.tart.id]
        assert "Chocolate Tart" in str(exc_info.value)
        assert history_for(order_id) == []
        assert stock_of(catalog.chocolate) == 10000
        assert stock_ledger.get_reduction_state(order_id) == ReductionState.NONE

    def test_zero_produced_quantity(self, catalog, make_order, stock_of):
        order_id = make_order({catalog.praline.id: 10})

        with pytest.raises(MissingProducedQuantity) as exc_info:
            stock_reduction_service.reduce_stock_for_order(order_id)

        assert "Praline Box" in str(exc_info.value)
        assert history_for(order_id) == []
        assert stock_of(catalog.chocolate) == 10000

    def test_missing_ingredient(self, catalog, completed_praline_order, stock_of):
        recipe = catalog_repository.get_recipe_for_product(catalog.praline.id)
        with session_scope() as session:
            session.add(RecipeIngredient(recipe_id=recipe.id, ingredient_id=9999, amount=5))

        with pytest.raises(MissingIngredient) as exc_info:
            stock_reduction_service.reduce_stock_for_order(completed_praline_order)

        assert exc_info.value.ingredient_ids == [9999]
        assert history_for(completed_praline_order) == []
        assert stock_of(catalog.chocolate) == 10000

    def test_failure_mid_reduction_rolls_back_everything(
        self, catalog, completed_praline_order, stock_of, monkeypatch
    ):
        original_append = catalog_repository.append_stock_history
        calls = []

        def append_then_fail(*args, **kwargs):
            calls.append(args)
            if len(calls) == 3:
                raise OperationalError("INSERT INTO stock_history", {}, Exception("disk full"))
            return original_append(*args, **kwargs)

        monkeypatch.setattr(catalog_repository, "append_stock_history", append_then_fail)

        with pytest.raises(PersistenceFailure) as exc_info:
            stock_reduction_service.reduce_stock_for_order(completed_praline_order)

        assert "failed to update stock for" in str(exc_info.value)
        assert stock_of(catalog.chocolate) == 10000
        assert stock_of(catalog.sugar) == 10000
        assert stock_of(catalog.cocoa_butter) == 10000
        assert history_for(completed_praline_order) == []
        assert order_service.get_order(completed_praline_order).stock_reduced is False
        assert (
            stock_ledger.get_reduction_state(completed_praline_order) == ReductionState.NONE
        )

    def test_failed_flush_rolls_back_whole_order(
        self, catalog, completed_praline_order, stock_of, monkeypatch
    ):
        original_set_level = catalog_repository.set_stock_level

        def duplicate_sugar_level(ingredient_id, quantity, min_stock=None, *, session=None):
            if ingredient_id != catalog.sugar.id:
                return original_set_level(ingredient_id, quantity, min_stock, session=session)
            session.add(StockLevel(ingredient_id=ingredient_id, quantity=quantity))
            session.flush()

        monkeypatch.setattr(catalog_repository, "set_stock_level", duplicate_sugar_level)

        with pytest.raises(PersistenceFailure) as exc_info:
            stock_reduction_service.reduce_stock_for_order(completed_praline_order)

        assert exc_info.value.operation == "failed to update stock for Sugar"
        assert isinstance(exc_info.value.cause, IntegrityError)
        assert stock_of(catalog.chocolate) == 10000
        assert stock_of(catalog.sugar) == 10000
        assert history_for(completed_praline_order) == []
        assert (
            stock_ledger.get_reduction_state(completed_praline_order) == ReductionState.NONE
        )

    def test_logs_failures(self, catalog, completed_praline_order, caplog):
        stock_reduction_service.reduce_stock_for_order(completed_praline_order)
        caplog.set_level(logging.WARNING, logger="bakery_ops.services")

        with pytest.raises(StockStateConflict):
            stock_reduction_service.reduce_stock_for_order(completed_praline_order)

        records = [r for r in caplog.records if r.name.endswith("stock_reduction_service")]
        assert records[-1].outcome == "state_conflict"
        assert records[-1].order_id == completed_praline_order
        assert records[-1].levelno == logging.WARNING

    def test_logs_success(self, catalog, completed_praline_order, caplog):
        caplog.set_level(logging.INFO, logger="bakery_ops.services")

        stock_reduction_service.reduce_stock_for_order(completed_praline_order)

        assert "reduce_stock_for_order: success" in caplog.text


class TestRevertStock:
    """Tests for revert_stock_for_order()."""

    def test_revert_restores_stock(self, catalog, completed_praline_order, stock_of):
        stock_reduction_service.reduce_stock_for_order(completed_praline_order)

        result = stock_reduction_service.revert_stock_for_order(completed_praline_order)

        assert result["change_type"] == "reversion"
        assert result["reduction_state"] == "reverted"
        assert stock_of(catalog.chocolate) == 10000
        assert stock_of(catalog.sugar) == 10000
        assert order_service.get_order(completed_praline_order).stock_reduced is False

    def test_state_cycle(self, catalog, completed_praline_order):
        order_id = completed_praline_order
        assert stock_ledger.get_reduction_state(order_id) == ReductionState.NONE

        stock_reduction_service.reduce_stock_for_order(order_id)
        assert stock_ledger.get_reduction_state(order_id) == ReductionState.REDUCED

        stock_reduction_service.revert_stock_for_order(order_id)
        assert stock_ledger.get_reduction_state(order_id) == ReductionState.REVERTED

        stock_reduction_service.reduce_stock_for_order(order_id)
        assert stock_ledger.get_reduction_state(order_id) == ReductionState.REDUCED

    @pytest.mark.parametrize("reduce_first", [False, True])
    def test_revert_requires_reduced(self, catalog, completed_praline_order, reduce_first):
        if reduce_first:
            stock_reduction_service.reduce_stock_for_order(completed_praline_order)
            stock_reduction_service.revert_stock_for_order(completed_praline_order)

        with pytest.raises(StockStateConflict) as exc_info:
            stock_reduction_service.revert_stock_for_order(completed_praline_order)

        assert exc_info.value.operation == "revert"

    def test_revert_uses_current_quantities(self, catalog, make_order, stock_of):
        order_id = make_order({catalog.praline.id: 10})
        order_service.complete_order(order_id, {catalog.praline.id: 10})
        stock_reduction_service.reduce_stock_for_order(order_id)
        assert stock_of(catalog.chocolate) == 10000 - 300

        order_service.complete_order(order_id, {catalog.praline.id: 20})
        result = stock_reduction_service.revert_stock_for_order(order_id)

        chocolate = next(
            row for row in result["adjustments"] if row["ingredient_id"] == catalog.chocolate.id
        )
        assert chocolate["change_amount"] == 600
        assert stock_of(catalog.chocolate) == 10000 - 300 + 600

    def test_reverted_entries_reference_order(self, catalog, completed_praline_order):
        stock_reduction_service.reduce_stock_for_order(completed_praline_order)
        stock_reduction_service.revert_stock_for_order(completed_praline_order)

        entries = history_for(completed_praline_order)
        assert len(entries) == 6
        reversions = [e for e in entries if e.change_type == StockChangeType.REVERSION]
        assert len(reversions) == 3
        assert all(e.order_id == completed_praline_order for e in reversions)


class TestToggleStock:
    def test_toggle_alternates(self, catalog, completed_praline_order):
        first = stock_reduction_service.toggle_stock_for_order(completed_praline_order)
        second = stock_reduction_service.toggle_stock_for_order(completed_praline_order)

        assert first["change_type"] == "reduction"
        assert second["change_type"] == "reversion"


class TestConcurrentActors:
    """Two users working on the same order or stock at the same time."""

    def test_second_reduction_of_same_order_rejected(self, file_db, file_catalog, make_order):
        order_id = make_order({file_catalog.praline.id: 10})
        order_service.complete_order(order_id)

        slow_session = file_db()
        try:
            held_order = order_repository.get_order(order_id, session=slow_session)
            assert held_order.stock_reduced is False
            assert (
                stock_ledger.get_reduction_state(order_id, session=slow_session)
                == ReductionState.NONE
            )

            stock_reduction_service.reduce_stock_for_order(order_id)

            with pytest.raises(StockStateConflict):
                stock_reduction_service.reduce_stock_for_order(order_id, session=slow_session)
        finally:
            slow_session.rollback()
            slow_session.close()

        assert len(history_for(order_id)) == 3

    def test_stale_stock_level_detected(self, file_db, file_catalog, make_order):
        order_id = make_order({file_catalog.praline.id: 10})
        chocolate_id = file_catalog.chocolate.id

        slow_session = file_db()
        try:
            held_level = catalog_repository.get_stock_level(chocolate_id, session=slow_session)
            assert held_level.quantity == 10000

            stock_ledger.set_stock_quantity(chocolate_id, 5000)

            with pytest.raises(ConcurrentModification):
                stock_ledger.apply_delta(
                    chocolate_id, -10, order_id, StockChangeType.REDUCTION, session=slow_session
                )
        finally:
            slow_session.rollback()
            slow_session.close()

        assert stock_ledger.get_stock_level(chocolate_id)["quantity"] == 5000
        assert history_for(order_id) == []

    def test_losing_reduction_in_race_rolls_back(
        self, file_db, file_catalog, make_order, stock_of, monkeypatch
    ):
        order_id = make_order({file_catalog.praline.id: 10})
        order_service.complete_order(order_id)
        compute_consumption = stock_reduction_service._compute_consumption
        calls = []

        def other_user_reduces_first(order, session):
            # Runs after this actor has loaded the order and checked its state
            calls.append(order_id)
            if len(calls) == 1:
                stock_reduction_service.reduce_stock_for_order(order_id)
            return compute_consumption(order, session)

        monkeypatch.setattr(
            stock_reduction_service, "_compute_consumption", other_user_reduces_first
        )

        with pytest.raises(ConcurrentModification):
            stock_reduction_service.reduce_stock_for_order(order_id)

        assert stock_of(file_catalog.chocolate) == 10000 - 300
        assert len(history_for(order_id)) == 3
        assert stock_ledger.get_reduction_state(order_id) == ReductionState.REDUCED
        assert order_service.get_order(order_id).stock_reduced is True
