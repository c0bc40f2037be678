"""
Recipe resolver: product -> recipe lookup.

Pure functions over an already-loaded list of recipes. At most one recipe
per product is expected (the catalog enforces it on write); if duplicates
are handed in anyway, the first one wins.
"""

from typing import Callable, Dict, Iterable, Optional

from bakery_ops.models import Recipe

RecipeLookup = Callable[[int], Optional[Recipe]]


def find_recipe(product_id: int, recipes: Iterable[Recipe]) -> Optional[Recipe]:
    """
    Find the recipe for a product.

    Args:
        product_id: Product to look up
        recipes: Recipes to search

    Returns:
        The first matching Recipe, or None if the product has no recipe
    """
    for recipe in recipes:
        if recipe.product_id == product_id:
            return recipe
    return None


def build_recipe_index(recipes: Iterable[Recipe]) -> Dict[int, Recipe]:
    """Index recipes by product ID, keeping the first recipe per product."""
    index: Dict[int, Recipe] = {}
    for recipe in recipes:
        index.setdefault(recipe.product_id, recipe)
    return index


class RecipeResolver:
    """
    Callable product -> recipe lookup built once per operation.

    Example:
        resolver = RecipeResolver(catalog_repository.list_recipes(session=session))
        recipe = resolver(product_id)
    """

    def __init__(self, recipes: Iterable[Recipe]):
        self._index = build_recipe_index(recipes)

    def __call__(self, product_id: int) -> Optional[Recipe]:
        return self._index.get(product_id)

    def __contains__(self, product_id: int) -> bool:
        return product_id in self._index

    def __len__(self) -> int:
        return len(self._index)
