"""
WALLET ROUTES
=============

Uses wallet_service for all financial operations.
All operations are atomic.
"""

from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from tujifund.services.wallet_service import (
    get_wallet, deposit, withdraw, transfer, contribute, list_transactions,
    WalletError, WalletNotFoundError, InsufficientFundsError, InvalidAmountError
)
from tujifund.services.authorization_service import (
    can_view_chama_wallet, AuthorizationError
)
from tujifund.routes.helpers import json_body

wallet_bp = Blueprint('wallet', __name__)


def _optional_int(data, key):
    value = data.get(key)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidAmountError(f"{key} must be a number")


# ============== VIEW WALLETS ==============
@wallet_bp.route('/wallets/user')
@login_required
def user_wallet():
    try:
        wallet = get_wallet(user_id=current_user.id)
    except WalletNotFoundError as e:
        return jsonify(success=False, message=str(e)), 404

    return jsonify(wallet=wallet.to_dict())


@wallet_bp.route('/wallets/chama/<int:chama_id>')
@login_required
def chama_wallet(chama_id):
    allowed, reason = can_view_chama_wallet(current_user.id, chama_id)
    if not allowed:
        status = 404 if reason == 'Chama not found' else 403
        return jsonify(success=False, message=reason), status

    try:
        wallet = get_wallet(chama_id=chama_id)
    except WalletNotFoundError as e:
        return jsonify(success=False, message=str(e)), 404

    return jsonify(wallet=wallet.to_dict())


# ============== CREATE TRANSACTION ==============
@wallet_bp.route('/transactions', methods=['POST'])
@login_required
def create_transaction():
    data = json_body()
    kind = data.get('type')
    amount = data.get('amount')
    description = data.get('description')

    try:
        if kind == 'deposit':
            transaction, wallet = deposit(current_user.id, amount, description)

        elif kind == 'withdraw':
            transaction, wallet = withdraw(current_user.id, amount, description)

        elif kind == 'transfer':
            transaction, wallet = transfer(
                current_user.id, amount,
                destination_user_id=_optional_int(data, 'destinationUserId'),
                destination_chama_id=_optional_int(data, 'destinationChamaId'),
                description=description
            )

        elif kind == 'contribution':
            chama_id = _optional_int(data, 'chamaId')
            if chama_id is None:
                return jsonify(success=False, message='Chama ID is required for contributions'), 400
            transaction, wallet = contribute(current_user.id, chama_id, amount, description)

        else:
            return jsonify(success=False, message='Invalid transaction type'), 400

    except AuthorizationError as e:
        return jsonify(success=False, message=str(e)), 403
    except WalletNotFoundError as e:
        return jsonify(success=False, message=str(e)), 404
    except (InsufficientFundsError, InvalidAmountError) as e:
        return jsonify(success=False, message=str(e)), 400
    except WalletError as e:
        return jsonify(success=False, message=str(e)), 400

    return jsonify(
        success=True,
        message='Transaction completed successfully',
        transaction=transaction.to_dict(),
        wallet=wallet.to_dict()
    ), 201


# ============== TRANSACTION HISTORY ==============
@wallet_bp.route('/transactions/user')
@login_required
def user_transactions():
    try:
        transactions = list_transactions(user_id=current_user.id)
    except WalletNotFoundError as e:
        return jsonify(success=False, message=str(e)), 404

    return jsonify(transactions=[t.to_dict() for t in transactions])


@wallet_bp.route('/transactions/chama/<int:chama_id>')
@login_required
def chama_transactions(chama_id):
    allowed, reason = can_view_chama_wallet(current_user.id, chama_id)
    if not allowed:
        status = 404 if reason == 'Chama not found' else 403
        return jsonify(success=False, message=reason), status

    transactions = list_transactions(chama_id=chama_id)
    return jsonify(transactions=[t.to_dict() for t in transactions])
