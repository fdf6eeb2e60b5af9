"""
CART ROUTES
===========

Uses cart_service for cart lines and checkout_service for payment.
The buyer is always the logged-in user.
"""

from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from tujifund.services.cart_service import (
    add_or_increment, set_quantity, remove_entry, get_cart_summary,
    CartError, CartEntryNotFoundError
)
from tujifund.services.checkout_service import (
    checkout, CheckoutError, CheckoutTimeoutError, CheckoutInternalError
)
from tujifund.services.inventory_service import InventoryError, ItemNotFoundError
from tujifund.services.wallet_service import WalletError
from tujifund.routes.helpers import json_body

cart_bp = Blueprint('cart', __name__, url_prefix='/cart')


def _item_id(data):
    try:
        return int(data.get('itemId'))
    except (TypeError, ValueError):
        return None


# ============== VIEW CART ==============
@cart_bp.route('', methods=['GET'])
@login_required
def view_cart():
    return jsonify(get_cart_summary(current_user.id))


# ============== ADD TO CART ==============
@cart_bp.route('', methods=['POST'])
@login_required
def add_to_cart():
    data = json_body()
    item_id = _item_id(data)
    if item_id is None:
        return jsonify(success=False, message='Invalid input'), 400

    try:
        entry = add_or_increment(current_user.id, item_id, data.get('quantity', 1))
    except ItemNotFoundError:
        return jsonify(success=False, message='Item not found'), 404
    except CartError as e:
        return jsonify(success=False, message=str(e)), 400

    return jsonify(success=True, message='Item added to cart', item=entry.to_dict()), 201


# ============== UPDATE QUANTITY ==============
@cart_bp.route('', methods=['PUT'])
@login_required
def update_cart_item():
    data = json_body()
    item_id = _item_id(data)
    if item_id is None or 'quantity' not in data:
        return jsonify(success=False, message='Invalid input'), 400

    try:
        entry = set_quantity(current_user.id, item_id, data['quantity'])
    except ItemNotFoundError:
        return jsonify(success=False, message='Item not found'), 404
    except CartError as e:
        return jsonify(success=False, message=str(e)), 400

    if entry is None:
        return jsonify(success=True, message='Item removed from cart', item=None)
    return jsonify(success=True, message='Cart updated', item=entry.to_dict())


# ============== REMOVE LINE ==============
@cart_bp.route('/<int:entry_id>', methods=['DELETE'])
@login_required
def remove_from_cart(entry_id):
    try:
        remove_entry(current_user.id, entry_id)
    except CartEntryNotFoundError as e:
        return jsonify(success=False, message=str(e)), 404

    return jsonify(success=True, message='Item removed from cart')


# ============== CHECKOUT ==============
@cart_bp.route('/checkout', methods=['POST'])
@login_required
def checkout_cart():
    data = json_body()

    try:
        order, transactions, order_items = checkout(
            buyer_id=current_user.id,
            claimed_items=data.get('cartItems'),
            claimed_total=data.get('totalAmount')
        )

    except CheckoutTimeoutError as e:
        return jsonify(success=False, message=str(e)), 503
    except CheckoutInternalError as e:
        return jsonify(success=False, message=str(e)), 500
    except (CheckoutError, WalletError, InventoryError, CartError) as e:
        return jsonify(success=False, message=str(e)), 400

    return jsonify(
        success=True,
        message='Order placed successfully',
        order=order.to_dict(),
        transactions=[t.to_dict() for t in transactions],
        orderItems=[i.to_dict() for i in order_items]
    )
