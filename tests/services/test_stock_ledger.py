"""Tests for the stock ledger: deltas, history and derived order state."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from bakery_ops.models import ReductionState, StockChangeType, StockHistory, StockLevel
from bakery_ops.models.stock import ImmutableHistoryError
from bakery_ops.services import catalog_repository, stock_ledger
from bakery_ops.services.database import session_scope
from bakery_ops.services.exceptions import (
    IngredientNotFound,
    PersistenceFailure,
    ValidationError,
)


@pytest.fixture
def flour(test_db):
    return catalog_repository.create_ingredient({"name": "Flour", "unit": "g"})


class TestApplyDelta:
    """Tests for apply_delta()."""

    def test_reduction_clamps_at_zero(self, flour):
        stock_ledger.set_stock_quantity(flour.id, 5)

        entry = stock_ledger.apply_delta(flour.id, -12, 1, StockChangeType.REDUCTION)

        assert entry.previous_quantity == 5
        assert entry.new_quantity == 0
        assert entry.change_amount == -5
        assert entry.requested_amount == -12
        assert stock_ledger.get_stock_level(flour.id)["quantity"] == 0

    def test_reversion_has_no_ceiling(self, flour):
        stock_ledger.set_stock_quantity(flour.id, 5)

        entry = stock_ledger.apply_delta(flour.id, 12, 1, StockChangeType.REVERSION)

        assert entry.new_quantity == 17
        assert entry.change_amount == 12
        assert entry.requested_amount == 12

    def test_creates_level_lazily(self, flour):
        assert catalog_repository.get_stock_level(flour.id) is None

        stock_ledger.apply_delta(flour.id, 7, 3, StockChangeType.REVERSION)

        level = catalog_repository.get_stock_level(flour.id)
        assert level is not None
        assert level.quantity == 7

    def test_history_entry_recorded(self, flour):
        stock_ledger.apply_delta(flour.id, -3, 42, StockChangeType.REDUCTION)

        history = stock_ledger.get_stock_history(order_id=42)
        assert len(history) == 1
        assert history[0].ingredient_id == flour.id
        assert history[0].change_type == StockChangeType.REDUCTION
        assert history[0].timestamp is not None

    def test_order_required_for_reduction(self, flour):
        with pytest.raises(ValidationError):
            stock_ledger.apply_delta(flour.id, -3, None, StockChangeType.REDUCTION)

    def test_unknown_ingredient(self, test_db):
        with pytest.raises(IngredientNotFound):
            stock_ledger.apply_delta(999, -3, 1, StockChangeType.REDUCTION)

    def test_database_failure_names_ingredient(self, flour, monkeypatch):
        def failing_append(*args, **kwargs):
            raise OperationalError("INSERT INTO stock_history", {}, Exception("disk I/O error"))

        monkeypatch.setattr(catalog_repository, "append_stock_history", failing_append)

        with pytest.raises(PersistenceFailure) as exc_info:
            stock_ledger.apply_delta(flour.id, -3, 1, StockChangeType.REDUCTION)

        assert exc_info.value.operation == "failed to update stock for Flour"
        assert isinstance(exc_info.value.cause, OperationalError)
        # The level write was rolled back with the failed history append
        assert catalog_repository.get_stock_level(flour.id) is None

    def test_failed_flush_reported_as_persistence_failure(self, flour, monkeypatch):
        stock_ledger.set_stock_quantity(flour.id, 50)

        def insert_duplicate_level(ingredient_id, quantity, min_stock=None, *, session=None):
            session.add(StockLevel(ingredient_id=ingredient_id, quantity=quantity))
            session.flush()

        monkeypatch.setattr(catalog_repository, "set_stock_level", insert_duplicate_level)

        with pytest.raises(PersistenceFailure) as exc_info:
            stock_ledger.apply_delta(flour.id, -3, 1, StockChangeType.REDUCTION)

        assert exc_info.value.operation == "failed to update stock for Flour"
        assert isinstance(exc_info.value.cause, IntegrityError)
        assert stock_ledger.get_stock_level(flour.id)["quantity"] == 50
        assert stock_ledger.get_stock_history(order_id=1) == []


class TestReductionState:
    """Tests for the history projection."""

    def entry(self, entry_id, change_type, minutes):
        return SimpleNamespace(
            id=entry_id,
            change_type=change_type,
            timestamp=datetime(2025, 1, 13, 9, 0) + timedelta(minutes=minutes),
        )

    def test_no_history_is_none(self):
        assert stock_ledger.project_reduction_state([]) == ReductionState.NONE

    def test_latest_entry_wins(self):
        entries = [
            self.entry(1, StockChangeType.REDUCTION, 0),
            self.entry(2, StockChangeType.REVERSION, 5),
        ]
        assert stock_ledger.project_reduction_state(entries) == ReductionState.REVERTED

        entries.append(self.entry(3, StockChangeType.REDUCTION, 10))
        assert stock_ledger.project_reduction_state(entries) == ReductionState.REDUCED

    def test_unsorted_input(self):
        entries = [
            self.entry(3, StockChangeType.REVERSION, 10),
            self.entry(1, StockChangeType.REDUCTION, 0),
        ]
        assert stock_ledger.project_reduction_state(entries) == ReductionState.REVERTED

    def test_same_timestamp_ordered_by_id(self):
        entries = [
            self.entry(2, StockChangeType.REDUCTION, 0),
            self.entry(1, StockChangeType.REVERSION, 0),
        ]
        assert stock_ledger.project_reduction_state(entries) == ReductionState.REDUCED

    def test_mixed_naive_and_aware_timestamps(self):
        naive = SimpleNamespace(
            id=1, change_type=StockChangeType.REDUCTION, timestamp=datetime(2025, 1, 13, 9)
        )
        aware = SimpleNamespace(
            id=2,
            change_type=StockChangeType.REVERSION,
            timestamp=datetime(2025, 1, 13, 10, tzinfo=timezone.utc),
        )
        assert stock_ledger.project_reduction_state([aware, naive]) == ReductionState.REVERTED

    def test_manual_entries_ignored(self):
        entries = [
            self.entry(1, StockChangeType.REDUCTION, 0),
            self.entry(2, StockChangeType.MANUAL, 5),
        ]
        assert stock_ledger.project_reduction_state(entries) == ReductionState.REDUCED

    def test_get_reduction_state_from_database(self, flour):
        assert stock_ledger.get_reduction_state(7) == ReductionState.NONE

        stock_ledger.apply_delta(flour.id, -1, 7, StockChangeType.REDUCTION)
        assert stock_ledger.get_reduction_state(7) == ReductionState.REDUCED

        stock_ledger.apply_delta(flour.id, 1, 7, StockChangeType.REVERSION)
        assert stock_ledger.get_reduction_state(7) == ReductionState.REVERTED

        # Other orders are unaffected
        assert stock_ledger.get_reduction_state(8) == ReductionState.NONE


class TestManualStock:
    """Tests for manual stock updates and thresholds."""

    def test_set_stock_quantity_records_manual_entry(self, flour):
        result = stock_ledger.set_stock_quantity(flour.id, 250)

        assert result["quantity"] == 250
        history = stock_ledger.get_stock_history(ingredient_id=flour.id)
        assert len(history) == 1
        assert history[0].change_type == StockChangeType.MANUAL
        assert history[0].order_id is None
        assert history[0].change_amount == 250

    def test_unchanged_quantity_adds_no_entry(self, flour):
        stock_ledger.set_stock_quantity(flour.id, 250)
        stock_ledger.set_stock_quantity(flour.id, 250, min_stock=50)

        assert len(stock_ledger.get_stock_history(ingredient_id=flour.id)) == 1
        assert stock_ledger.get_stock_level(flour.id)["min_stock"] == 50

    def test_negative_quantity_rejected(self, flour):
        with pytest.raises(ValidationError):
            stock_ledger.set_stock_quantity(flour.id, -1)

    def test_unknown_ingredient(self, test_db):
        with pytest.raises(IngredientNotFound):
            stock_ledger.set_stock_quantity(404, 10)

    def test_low_stock_report(self, test_db):
        low = catalog_repository.create_ingredient({"name": "Vanilla", "unit": "ml"})
        ok = catalog_repository.create_ingredient({"name": "Salt", "unit": "g"})
        untracked = catalog_repository.create_ingredient({"name": "Yeast", "unit": "g"})
        stock_ledger.set_stock_quantity(low.id, 20, min_stock=50)
        stock_ledger.set_stock_quantity(ok.id, 500, min_stock=50)

        report = stock_ledger.get_low_stock_ingredients()

        assert [row["ingredient_name"] for row in report] == ["Vanilla"]
        levels = {row["ingredient_id"]: row for row in stock_ledger.get_stock_levels()}
        assert levels[untracked.id]["quantity"] == 0
        assert levels[untracked.id]["is_low"] is False

    def test_set_min_stock_keeps_quantity(self, flour):
        stock_ledger.set_stock_quantity(flour.id, 80)

        result = stock_ledger.set_min_stock(flour.id, 100)

        assert result["quantity"] == 80
        assert result["is_low"] is True


class TestStockHistory:
    """Tests for history queries and immutability."""

    def test_filters(self, flour):
        sugar = catalog_repository.create_ingredient({"name": "Sugar", "unit": "g"})
        stock_ledger.set_stock_quantity(flour.id, 100)
        stock_ledger.set_stock_quantity(sugar.id, 100)
        stock_ledger.apply_delta(flour.id, -10, 1, StockChangeType.REDUCTION)
        stock_ledger.apply_delta(sugar.id, -5, 2, StockChangeType.REDUCTION)

        assert len(stock_ledger.get_stock_history()) == 4
        assert len(stock_ledger.get_stock_history(ingredient_id=flour.id)) == 2
        assert len(stock_ledger.get_stock_history(change_type="reduction")) == 2
        assert len(stock_ledger.get_stock_history(order_id=2)) == 1
        assert stock_ledger.get_stock_history(start="2999-01-01") == []
        assert len(stock_ledger.get_stock_history(end="2999-01-01")) == 4

    def test_newest_first(self, flour):
        stock_ledger.set_stock_quantity(flour.id, 100)
        stock_ledger.apply_delta(flour.id, -10, 1, StockChangeType.REDUCTION)

        history = stock_ledger.get_stock_history(ingredient_id=flour.id)

        assert history[0].change_type == StockChangeType.REDUCTION
        assert history[1].change_type == StockChangeType.MANUAL

    def test_history_cannot_be_updated(self, flour):
        stock_ledger.apply_delta(flour.id, 5, 1, StockChangeType.REVERSION)

        with pytest.raises(ImmutableHistoryError):
            with session_scope() as session:
                entry = session.query(StockHistory).first()
                entry.change_amount = 99
                session.flush()

    def test_history_cannot_be_deleted(self, flour):
        stock_ledger.apply_delta(flour.id, 5, 1, StockChangeType.REVERSION)

        with pytest.raises(ImmutableHistoryError):
            with session_scope() as session:
                session.delete(session.query(StockHistory).first())
                session.flush()
