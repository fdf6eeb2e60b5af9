"""
INVENTORY SERVICE
=================

Marketplace listings and their stock.

Only two paths may change stock:
- checkout, through reserve_and_decrement()
- the seller, through create_item() / update_item()
"""

import logging

from tujifund.extensions import db, begin_write_transaction
from tujifund.models import ItemStatus, MarketplaceItem
from tujifund.services.authorization_service import (
    can_list_for_chama, can_manage_item, require_authorization, AuthorizationError
)
from tujifund.services.wallet_service import parse_amount, InvalidAmountError

logger = logging.getLogger(__name__)


class InventoryError(Exception):
    """Base exception for inventory operations"""
    pass


class ItemNotFoundError(InventoryError):
    """Raised when a listing does not exist"""
    pass


class InsufficientStockError(InventoryError):
    """Raised when fewer units are left than requested"""
    pass


def parse_quantity(value, allow_zero=True):
    """Whole unit counts only: 3, 3.0 and '3' pass, 2.5 and 'abc' do not."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise InventoryError("Quantity must be a whole number")
    try:
        quantity = int(value)
    except ValueError:
        raise InventoryError("Quantity must be a whole number")

    if quantity < 0 or (quantity == 0 and not allow_zero):
        raise InventoryError("Quantity must be a positive whole number")
    return quantity


# ============================================================
# LOOKUPS
# ============================================================

def get_item(item_id, lock=False):
    """Fetch a listing; lock=True takes a row lock for the transaction."""
    query = MarketplaceItem.query.filter_by(id=item_id)
    if lock:
        query = query.with_for_update()

    item = query.first()
    if not item:
        raise ItemNotFoundError(f"Item {item_id} not found")
    return item


def lock_items_in_order(item_ids):
    """
    Lock several listings in ascending id order.

    Returns {item_id: MarketplaceItem}; raises ItemNotFoundError for the
    first id that does not exist.
    """
    item_ids = sorted(set(item_ids))
    items = MarketplaceItem.query.filter(MarketplaceItem.id.in_(item_ids)) \
        .order_by(MarketplaceItem.id).with_for_update().all()
    by_id = {item.id: item for item in items}

    for item_id in item_ids:
        if item_id not in by_id:
            raise ItemNotFoundError(f"Item {item_id} not found")
    return by_id


def list_active_items():
    return MarketplaceItem.query.filter_by(status=ItemStatus.ACTIVE.value) \
        .order_by(MarketplaceItem.id).all()


def list_seller_items(seller_id):
    return MarketplaceItem.query.filter_by(seller_id=seller_id) \
        .order_by(MarketplaceItem.id).all()


# ============================================================
# CHECKOUT PATH
# ============================================================

def reserve_and_decrement(item, quantity):
    """
    Take quantity units out of stock, flipping to SOLD_OUT at zero.

    Flushes but never commits: runs inside the checkout transaction.
    """
    if quantity <= 0:
        raise InventoryError("Quantity must be a positive whole number")

    if item.quantity < quantity:
        raise InsufficientStockError(
            f"Not enough items in stock for {item.title}. "
            f"Requested: {quantity}, Available: {item.quantity}"
        )

    item.quantity -= quantity
    item.sync_status()
    db.session.flush()
    return item


# ============================================================
# SELLER PATH
# ============================================================

def create_item(seller_id, title, unit_price, quantity=1, description=None,
                category=None, chama_id=None, currency='KES'):
    """Create a listing owned by seller_id."""
    try:
        title = (title or '').strip()
        if not title:
            raise InventoryError("Title is required")

        require_authorization(can_list_for_chama, seller_id, chama_id)

        item = MarketplaceItem(
            seller_id=seller_id,
            chama_id=chama_id,
            title=title,
            description=description,
            category=category,
            unit_price=parse_amount(unit_price),
            currency=currency,
            quantity=parse_quantity(quantity),
        )
        item.sync_status()
        db.session.add(item)
        db.session.commit()

        logger.info("Listing %s created by seller %s", item.id, seller_id)
        return item

    except InvalidAmountError as e:
        db.session.rollback()
        raise InventoryError(f"Invalid price: {str(e)}")
    except (InventoryError, AuthorizationError):
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise InventoryError(f"Failed to create listing: {str(e)}")


UPDATABLE_FIELDS = ('title', 'description', 'category', 'unit_price', 'quantity')


def update_item(item_id, seller_id, **changes):
    """
    Seller edits a listing. Setting quantity re-derives status,
    so restocking a sold-out listing relists it.
    """
    try:
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise InventoryError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        begin_write_transaction()
        item = get_item(item_id, lock=True)
        require_authorization(can_manage_item, seller_id, item)

        if 'title' in changes:
            title = (changes['title'] or '').strip()
            if not title:
                raise InventoryError("Title is required")
            item.title = title
        if 'description' in changes:
            item.description = changes['description']
        if 'category' in changes:
            item.category = changes['category']
        if 'unit_price' in changes:
            item.unit_price = parse_amount(changes['unit_price'])
        if 'quantity' in changes:
            item.quantity = parse_quantity(changes['quantity'])
            item.sync_status()

        db.session.commit()
        return item

    except InvalidAmountError as e:
        db.session.rollback()
        raise InventoryError(f"Invalid price: {str(e)}")
    except (InventoryError, AuthorizationError):
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise InventoryError(f"Failed to update listing: {str(e)}")
