"""Tests for the product store."""

import pytest

import inventory
from errors import ProductNotFoundError, ValidationError
from schemas import Product, ProductUpdate


class TestSizeStock:
    def test_stock_level_is_sum_of_sizes(self, sized_tee):
        assert sized_tee.stock_level == 37

    def test_duplicate_sizes_rejected(self):
        with pytest.raises(ValueError):
            Product(
                name="Dup",
                cost_price=1,
                selling_price=2,
                sizes=[{"size": "M", "stock_level": 1}, {"size": "M", "stock_level": 2}],
            )

    def test_update_size_stock_retotals(self, store, sized_tee):
        product = inventory.update_size_stock(store, sized_tee.id, "M", 10)
        assert product.size_stock("M").stock_level == 10
        assert product.stock_level == 17

    def test_unknown_size(self, store, sized_tee):
        with pytest.raises(ValidationError):
            inventory.update_size_stock(store, sized_tee.id, "XXL", 1)

    def test_flat_update_refused_for_sized_product(self, store, sized_tee):
        with pytest.raises(ValidationError):
            inventory.update_stock(store, sized_tee.id, 3)


class TestUpdateStock:
    def test_sets_level(self, store, tee):
        assert inventory.update_stock(store, tee.id, 4).stock_level == 4

    def test_negative_level(self, store, tee):
        with pytest.raises(ValidationError):
            inventory.update_stock(store, tee.id, -1)

    def test_missing_product(self, store):
        with pytest.raises(ProductNotFoundError):
            inventory.update_stock(store, "missing", 1)


class TestCatalogue:
    def test_update_product_partial(self, store, tee):
        product = inventory.update_product(store, tee.id, ProductUpdate(selling_price=21.5))
        assert product.selling_price == 21.5
        assert product.name == tee.name

    def test_delete_product(self, store, tee):
        inventory.delete_product(store, tee.id)
        assert inventory.get_product(store, tee.id) is None
        with pytest.raises(ProductNotFoundError):
            inventory.delete_product(store, tee.id)

    def test_filters(self, store, tee, sized_tee):
        assert [p.id for p in inventory.list_products(store, category="Music")] == [sized_tee.id]
        assert [p.id for p in inventory.list_products(store, search="vintage")] == [tee.id]
        assert [p.id for p in inventory.list_products(store, stock_status="in_stock")] == [
            p.id for p in inventory.list_products(store)
        ]
        inventory.update_stock(store, tee.id, 0)
        assert [p.id for p in inventory.list_products(store, stock_status="out_of_stock")] == [tee.id]

    def test_low_stock_sorted_lowest_first(self, store, tee):
        other = inventory.create_product(store, Product(
            name="Other", cost_price=1, selling_price=2, stock_level=2, min_stock_level=5
        ))
        inventory.update_stock(store, tee.id, 4)
        assert [p.id for p in inventory.get_low_stock_products(store)] == [other.id, tee.id]

    def test_bulk_update_min_stock(self, store, tee, sized_tee):
        assert inventory.bulk_update_min_stock(store, 3) == 2
        assert all(p.min_stock_level == 3 for p in inventory.list_products(store))

    def test_seed_only_when_empty(self, store):
        assert inventory.seed_products(store) == len(inventory.DEMO_PRODUCTS)
        assert inventory.seed_products(store) == 0
