from decimal import Decimal

import pytest

from conftest import make_item, make_user
from tujifund.models import ItemStatus
from tujifund.services.authorization_service import AuthorizationError
from tujifund.services.chama_service import create_chama
from tujifund.services.inventory_service import (
    parse_quantity, get_item, lock_items_in_order, reserve_and_decrement,
    create_item, update_item, list_active_items,
    InventoryError, ItemNotFoundError, InsufficientStockError
)


class TestParseQuantity:
    def test_whole_numbers(self):
        assert parse_quantity(3) == 3
        assert parse_quantity('4') == 4
        assert parse_quantity(2.0) == 2

    @pytest.mark.parametrize('value', [2.5, 'abc', None, True, -1])
    def test_rejects(self, value):
        with pytest.raises(InventoryError):
            parse_quantity(value)

    def test_zero(self):
        assert parse_quantity(0) == 0
        with pytest.raises(InventoryError):
            parse_quantity(0, allow_zero=False)


class TestReserveAndDecrement:
    def test_decrements_stock(self, ctx):
        seller = make_user('seller')
        item = make_item(seller, 100, quantity=5)

        reserve_and_decrement(item, 2)

        assert item.quantity == 3
        assert item.status == ItemStatus.ACTIVE.value

    def test_flips_to_sold_out_at_zero(self, ctx):
        seller = make_user('seller')
        item = make_item(seller, 100, quantity=2)

        reserve_and_decrement(item, 2)

        assert item.quantity == 0
        assert item.is_sold_out()

    def test_never_below_zero(self, ctx):
        seller = make_user('seller')
        item = make_item(seller, 100, quantity=1)

        with pytest.raises(InsufficientStockError):
            reserve_and_decrement(item, 2)
        assert item.quantity == 1

    def test_lock_items_reports_missing(self, ctx):
        seller = make_user('seller')
        item = make_item(seller, 100)

        with pytest.raises(ItemNotFoundError):
            lock_items_in_order([item.id, item.id + 100])

    def test_get_item_missing(self, ctx):
        with pytest.raises(ItemNotFoundError):
            get_item(42)


class TestSellerPath:
    def test_create_item(self, ctx):
        seller = make_user('seller')

        item = create_item(seller.id, '  Maize flour ', '120.50', quantity=10, category='food')

        assert item.title == 'Maize flour'
        assert item.unit_price == Decimal('120.50')
        assert item.status == ItemStatus.ACTIVE.value
        assert item in list_active_items()

    @pytest.mark.parametrize('price', [0, -5, 'abc', None])
    def test_create_rejects_bad_price(self, ctx, price):
        seller = make_user('seller')
        with pytest.raises(InventoryError):
            create_item(seller.id, 'Thing', price)

    def test_create_requires_title(self, ctx):
        seller = make_user('seller')
        with pytest.raises(InventoryError):
            create_item(seller.id, '   ', 10)

    def test_chama_listing_requires_membership(self, ctx):
        owner = make_user('owner')
        outsider = make_user('outsider')
        chama = create_chama('Traders', created_by=owner.id)

        with pytest.raises(AuthorizationError):
            create_item(outsider.id, 'Thing', 10, chama_id=chama.id)

        item = create_item(owner.id, 'Thing', 10, chama_id=chama.id)
        assert item.chama_id == chama.id

    def test_only_seller_updates(self, ctx):
        seller = make_user('seller')
        other = make_user('other')
        item = make_item(seller, 50, quantity=3)

        with pytest.raises(AuthorizationError):
            update_item(item.id, other.id, quantity=10)
        assert get_item(item.id).quantity == 3

    def test_restock_relists_sold_out_item(self, ctx):
        seller = make_user('seller')
        item = make_item(seller, 50, quantity=0)
        assert item.is_sold_out()
        assert item not in list_active_items()

        updated = update_item(item.id, seller.id, quantity=4, unit_price='55')

        assert updated.quantity == 4
        assert updated.unit_price == Decimal('55.00')
        assert updated.status == ItemStatus.ACTIVE.value

    def test_unknown_field_rejected(self, ctx):
        seller = make_user('seller')
        item = make_item(seller, 50)

        with pytest.raises(InventoryError, match='status'):
            update_item(item.id, seller.id, status='sold_out')
        assert get_item(item.id).status == ItemStatus.ACTIVE.value

    def test_update_missing_item(self, ctx):
        seller = make_user('seller')
        with pytest.raises(ItemNotFoundError):
            update_item(404, seller.id, title='Nope')
