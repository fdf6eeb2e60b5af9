"""
CART SERVICE
============

Pending (item, quantity) lines per buyer.

Stock is NOT checked here; checkout re-validates every line
against the inventory when the buyer pays.
"""

from decimal import Decimal

from tujifund.extensions import db
from tujifund.models import CartItem
from tujifund.services.inventory_service import (
    get_item, parse_quantity, InventoryError, ItemNotFoundError
)


class CartError(Exception):
    """Base exception for cart operations"""
    pass


class CartEntryNotFoundError(CartError):
    """Raised when a cart line does not exist for this buyer"""
    pass


def _quantity(value, allow_zero=False):
    try:
        return parse_quantity(value, allow_zero=allow_zero)
    except InventoryError as e:
        raise CartError(str(e))


def _signed_quantity(value):
    """set_quantity accepts zero and negatives (both mean remove)."""
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value <= 0:
        return 0
    if isinstance(value, str) and value.strip().startswith('-'):
        _quantity(value.strip()[1:], allow_zero=True)
        return 0
    return _quantity(value, allow_zero=True)


# ============================================================
# READS
# ============================================================

def get_entry(buyer_id, item_id):
    return CartItem.query.filter_by(buyer_id=buyer_id, item_id=item_id).first()


def list_for_buyer(buyer_id, lock=False):
    """Cart lines of a buyer in the order they were added."""
    query = CartItem.query.filter_by(buyer_id=buyer_id).order_by(CartItem.id)
    if lock:
        query = query.with_for_update()
    return query.all()


def get_cart_summary(buyer_id):
    """Cart lines enriched with listing and seller data, plus the total."""
    lines = []
    total = Decimal('0.00')
    currency = None

    for entry in list_for_buyer(buyer_id):
        item = entry.item
        line_total = item.unit_price * entry.quantity
        total += line_total
        currency = currency or item.currency

        lines.append({
            'id': entry.id,
            'itemId': entry.item_id,
            'quantity': entry.quantity,
            'title': item.title,
            'price': float(item.unit_price),
            'currency': item.currency,
            'available': item.quantity,
            'status': item.status,
            'lineTotal': float(line_total),
            'seller': item.seller.to_public_dict() if item.seller else None,
        })

    return {
        'items': lines,
        'total': float(total),
        'currency': currency,
    }


# ============================================================
# MUTATIONS
# ============================================================

def add_or_increment(buyer_id, item_id, quantity=1):
    """
    Upsert a cart line: an existing line has quantity added to it.

    Returns: CartItem
    """
    try:
        quantity = _quantity(quantity)
        get_item(item_id)

        entry = get_entry(buyer_id, item_id)
        if entry:
            entry.quantity += quantity
        else:
            entry = CartItem(buyer_id=buyer_id, item_id=item_id, quantity=quantity)
            db.session.add(entry)

        db.session.commit()
        return entry

    except (CartError, ItemNotFoundError):
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise CartError(f"Failed to add item to cart: {str(e)}")


def set_quantity(buyer_id, item_id, quantity):
    """
    Set the absolute quantity of a line. quantity <= 0 removes it.

    Returns: CartItem, or None when the line was removed
    """
    try:
        quantity = _signed_quantity(quantity)
        if quantity == 0:
            remove(buyer_id, item_id)
            return None

        get_item(item_id)
        entry = get_entry(buyer_id, item_id)
        if entry:
            entry.quantity = quantity
        else:
            entry = CartItem(buyer_id=buyer_id, item_id=item_id, quantity=quantity)
            db.session.add(entry)

        db.session.commit()
        return entry

    except (CartError, ItemNotFoundError):
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise CartError(f"Failed to update cart: {str(e)}")


def remove(buyer_id, item_id):
    """Remove the line for item_id, if any."""
    CartItem.query.filter_by(buyer_id=buyer_id, item_id=item_id).delete()
    db.session.commit()


def remove_entry(buyer_id, entry_id):
    """Remove one line by id; it must belong to buyer_id."""
    entry = CartItem.query.filter_by(id=entry_id, buyer_id=buyer_id).first()
    if not entry:
        raise CartEntryNotFoundError("Item not found in cart")

    db.session.delete(entry)
    db.session.commit()


def clear(buyer_id, entry_ids=None):
    """
    Empty the buyer's cart. Flushes only: checkout commits.

    entry_ids limits the delete to the lines checkout actually settled,
    so a line added by a concurrent request is kept.
    """
    query = CartItem.query.filter_by(buyer_id=buyer_id)
    if entry_ids is not None:
        query = query.filter(CartItem.id.in_(list(entry_ids)))
    query.delete(synchronize_session='fetch')
    db.session.flush()
