"""Tests for catalog persistence."""

import pytest

from bakery_ops.services import catalog_repository
from bakery_ops.services.exceptions import (
    DuplicateRecipe,
    IngredientNotFound,
    ProductNotFound,
    ValidationError,
)


class TestCreateIngredient:
    def test_defaults(self, test_db):
        ingredient = catalog_repository.create_ingredient({"name": "  Salt ", "unit": "g"})

        assert ingredient.name == "Salt"
        assert ingredient.package_size == 1.0
        assert ingredient.price == 0.0

    def test_validation_collects_errors(self, test_db):
        with pytest.raises(ValidationError) as exc_info:
            catalog_repository.create_ingredient({"name": "", "package_size": 0, "price": -1})

        assert len(exc_info.value.errors) == 4

    def test_get_missing(self, test_db):
        with pytest.raises(IngredientNotFound):
            catalog_repository.get_ingredient(42)


class TestCreateRecipe:
    def test_duplicate_recipe(self, catalog):
        with pytest.raises(DuplicateRecipe) as exc_info:
            catalog_repository.create_recipe(
                {
                    "product_id": catalog.praline.id,
                    "yield_quantity": 5,
                    "ingredients": [{"ingredient_id": catalog.sugar.id, "amount": 10}],
                }
            )

        assert "Praline Box" in str(exc_info.value)

    def test_unknown_product(self, test_db):
        with pytest.raises(ProductNotFound):
            catalog_repository.create_recipe({"product_id": 77, "yield_quantity": 1})

    def test_unknown_ingredient(self, catalog):
        with pytest.raises(IngredientNotFound):
            catalog_repository.create_recipe(
                {
                    "product_id": catalog.tart.id,
                    "yield_quantity": 8,
                    "ingredients": [{"ingredient_id": 555, "amount": 10}],
                }
            )

        assert catalog_repository.get_recipe_for_product(catalog.tart.id) is None

    @pytest.mark.parametrize("yield_quantity", [0, -4, None])
    def test_yield_must_be_positive(self, catalog, yield_quantity):
        with pytest.raises(ValidationError):
            catalog_repository.create_recipe(
                {"product_id": catalog.tart.id, "yield_quantity": yield_quantity}
            )

    def test_recipe_name_defaults_to_product(self, catalog):
        recipe = catalog_repository.create_recipe(
            {
                "product_id": catalog.tart.id,
                "yield_quantity": 8,
                "ingredients": [{"ingredient_id": catalog.chocolate.id, "amount": 400}],
            }
        )

        assert recipe.name == "Chocolate Tart"
        assert recipe.yield_unit == "pcs"


class TestLookups:
    def test_product_names(self, catalog):
        names = catalog_repository.get_product_names([catalog.cookie.id, 999])

        assert names == {catalog.cookie.id: "Butter Cookie"}

    def test_ingredients_by_id(self, catalog):
        found = catalog_repository.get_ingredients_by_id([catalog.sugar.id, 999])

        assert list(found) == [catalog.sugar.id]

    def test_products_sorted_by_name(self, catalog):
        names = [product.name for product in catalog_repository.list_products()]

        assert names == ["Butter Cookie", "Chocolate Tart", "Praline Box"]
