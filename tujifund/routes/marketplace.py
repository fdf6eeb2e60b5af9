"""
MARKETPLACE ROUTES
==================

Browse listings, list an item for sale, edit your own listings.
Stock only changes here (seller) and in checkout.
"""

from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from tujifund.services.inventory_service import (
    get_item, create_item, update_item, list_active_items, list_seller_items,
    InventoryError, ItemNotFoundError
)
from tujifund.services.authorization_service import AuthorizationError
from tujifund.routes.helpers import json_body

marketplace_bp = Blueprint('marketplace', __name__, url_prefix='/marketplace')

# JSON key -> update_item() field
EDITABLE_KEYS = {
    'title': 'title',
    'description': 'description',
    'category': 'category',
    'price': 'unit_price',
    'quantity': 'quantity',
}


# ============== BROWSE ==============
@marketplace_bp.route('', methods=['GET'])
@login_required
def list_items():
    items = list_active_items()
    return jsonify(items=[item.to_dict(include_seller=True) for item in items])


@marketplace_bp.route('/user')
@login_required
def my_items():
    items = list_seller_items(current_user.id)
    return jsonify(items=[item.to_dict() for item in items])


@marketplace_bp.route('/<int:item_id>')
@login_required
def view_item(item_id):
    try:
        item = get_item(item_id)
    except ItemNotFoundError as e:
        return jsonify(success=False, message=str(e)), 404

    return jsonify(item=item.to_dict(include_seller=True))


# ============== CREATE LISTING ==============
@marketplace_bp.route('', methods=['POST'])
@login_required
def create_listing():
    data = json_body()

    chama_id = data.get('chamaId')
    if chama_id is not None:
        try:
            chama_id = int(chama_id)
        except (TypeError, ValueError):
            return jsonify(success=False, message='Invalid chama'), 400

    try:
        item = create_item(
            seller_id=current_user.id,
            title=data.get('title'),
            unit_price=data.get('price'),
            quantity=data.get('quantity', 1),
            description=data.get('description'),
            category=data.get('category'),
            chama_id=chama_id
        )
    except AuthorizationError as e:
        return jsonify(success=False, message=str(e)), 403
    except InventoryError as e:
        return jsonify(success=False, message=str(e)), 400

    return jsonify(success=True, message='Item listed successfully', item=item.to_dict()), 201


# ============== UPDATE LISTING ==============
@marketplace_bp.route('/<int:item_id>', methods=['PUT'])
@login_required
def update_listing(item_id):
    data = json_body()
    changes = {field: data[key] for key, field in EDITABLE_KEYS.items() if key in data}
    if not changes:
        return jsonify(success=False, message='Nothing to update'), 400

    try:
        item = update_item(item_id, current_user.id, **changes)
    except ItemNotFoundError as e:
        return jsonify(success=False, message=str(e)), 404
    except AuthorizationError as e:
        return jsonify(success=False, message=str(e)), 403
    except InventoryError as e:
        return jsonify(success=False, message=str(e)), 400

    return jsonify(success=True, message='Listing updated', item=item.to_dict())
