"""Tests for recipe costing and ingredient usage reports."""

import pytest

from bakery_ops.services import costing_service, order_service
from bakery_ops.services.exceptions import MissingRecipe, ProductNotFound, ValidationError


class TestRecipeCost:
    def test_praline_cost(self, catalog):
        # 300 * 250 + 40 * 18 + 25 * 350
        result = costing_service.calculate_recipe_cost(catalog.praline.id)

        assert result["total_cost"] == 84470
        assert result["yield_quantity"] == 10
        assert result["cost_per_unit"] == pytest.approx(8447)

    def test_unit_price_rounds_up(self, catalog):
        catalog.sugar.price = 18500

        assert costing_service.ingredient_unit_price(catalog.sugar) == 19

    def test_missing_recipe(self, catalog):
        with pytest.raises(MissingRecipe) as exc_info:
            costing_service.calculate_recipe_cost(catalog.tart.id)

        assert exc_info.value.product_names == ["Chocolate Tart"]

    def test_unknown_product(self, test_db):
        with pytest.raises(ProductNotFound):
            costing_service.calculate_recipe_cost(999)


class TestSellPrice:
    def test_margin(self):
        assert costing_service.calculate_sell_price(70, 30) == pytest.approx(100)

    def test_margin_with_tax(self):
        price = costing_service.calculate_sell_price(70, 30, include_tax=True, tax_percentage=10)

        assert price == pytest.approx(110)

    def test_margin_must_be_below_100(self):
        with pytest.raises(ValidationError):
            costing_service.calculate_sell_price(70, 100)


class TestOrderTotal:
    def test_unpriced_products_skipped(self, catalog, make_order):
        order_id = make_order(
            {catalog.praline.id: 10, catalog.cookie.id: 24, catalog.tart.id: 3}
        )

        assert costing_service.calculate_order_total(order_id) == pytest.approx(1094000)


class TestIngredientUsage:
    def test_usage_across_orders(self, catalog, make_order):
        pralines = make_order({catalog.praline.id: 10})
        cookies = make_order({catalog.cookie.id: 48, catalog.tart.id: 2})

        result = costing_service.calculate_ingredient_usage([pralines, cookies])

        amounts = {row["name"]: row["amount"] for row in result["ingredients"]}
        assert amounts == {
            "Dark Chocolate": 300,
            "Sugar": 340,
            "Cocoa Butter": 25,
            "Butter": 400,
        }
        assert result["totals_by_unit"] == {"g": 1065}
        assert result["total_cost"] == 75000 + 6120 + 8750 + 67200
        assert result["products_without_recipes"] == ["Chocolate Tart"]
        assert len(result["orders"]) == 2

    def test_prefers_produced_quantity(self, catalog, make_order):
        order_id = make_order({catalog.praline.id: 10})
        order_service.complete_order(order_id, {catalog.praline.id: 20})

        result = costing_service.calculate_ingredient_usage([order_id])

        chocolate = next(r for r in result["ingredients"] if r["name"] == "Dark Chocolate")
        assert chocolate["amount"] == 600
        assert result["products"][0]["produced_quantity"] == 20
        assert result["products"][0]["quantity"] == 10
