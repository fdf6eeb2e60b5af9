"""
CHECKOUT SERVICE - ATOMIC MARKETPLACE SETTLEMENT
================================================

CRITICAL BUSINESS RULES:
1. All or nothing: wallets, inventory, cart and ledger change together or not at all
2. Prices and sellers come from the inventory, NEVER from the client
3. Balance and stock are checked under the same locks that guard the writes
4. Nothing is retried: a failed checkout is reported and the buyer decides

Lock order: cart lines, then listings by id, then wallets by id.
"""

import logging
import time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import current_app
from sqlalchemy.exc import OperationalError

from tujifund.extensions import db, begin_write_transaction, apply_statement_timeout
from tujifund.models import Order, OrderItem, TransactionType
from tujifund.services.cart_service import list_for_buyer, clear, CartError
from tujifund.services.inventory_service import (
    lock_items_in_order, reserve_and_decrement, InventoryError
)
from tujifund.services.wallet_service import (
    lock_wallets_in_order, debit, credit, record_transaction,
    WalletError, InsufficientFundsError, CENT
)

logger = logging.getLogger(__name__)


# ============================================================
# CUSTOM EXCEPTIONS
# ============================================================

class CheckoutError(Exception):
    """Base exception for checkout"""
    pass


class EmptyCartError(CheckoutError):
    """Raised when the buyer has nothing in the cart"""
    pass


class CartChangedError(CheckoutError):
    """Raised when the client's view of the cart no longer matches the server's"""
    pass


class CheckoutTimeoutError(CheckoutError):
    """Raised when checkout could not finish within CHECKOUT_TIMEOUT_SECONDS"""
    pass


class CheckoutInternalError(CheckoutError):
    """Unexpected failure; details are logged, never shown to the buyer"""
    pass


BUSINESS_ERRORS = (CheckoutError, WalletError, InventoryError, CartError)


# ============================================================
# CLIENT CLAIM VERIFICATION
# ============================================================

def _verify_claimed_items(entries, items, claimed_items):
    """
    Compare the client's cart lines with the stored cart.

    Quantities per item must match exactly. A wrong sellerId is ignored:
    the seller is always taken from the listing.
    """
    if not isinstance(claimed_items, list):
        raise CheckoutError("cartItems must be a list")

    claimed = {}
    for line in claimed_items:
        if not isinstance(line, dict):
            raise CheckoutError("Each cart item must be an object")
        try:
            item_id = int(line.get('itemId'))
            quantity = int(line.get('quantity'))
        except (TypeError, ValueError):
            raise CheckoutError("Each cart item needs a numeric itemId and quantity")
        claimed[item_id] = claimed.get(item_id, 0) + quantity

        seller_id = line.get('sellerId')
        item = items.get(item_id)
        if seller_id is not None and item is not None and str(seller_id) != str(item.seller_id):
            logger.warning("Ignoring client sellerId %s for item %s (seller is %s)",
                           seller_id, item_id, item.seller_id)

    stored = {}
    for entry in entries:
        stored[entry.item_id] = stored.get(entry.item_id, 0) + entry.quantity

    if claimed != stored:
        raise CartChangedError("Your cart has changed. Please review it and try again.")


def _verify_claimed_total(total, claimed_total):
    """Clients sum float line totals, so the claim is rounded to cents first."""
    if claimed_total is None or isinstance(claimed_total, bool):
        raise CheckoutError("totalAmount must be a valid amount")
    try:
        claimed = Decimal(str(claimed_total))
    except (InvalidOperation, ValueError):
        raise CheckoutError("totalAmount must be a valid amount")
    if not claimed.is_finite() or claimed < 0:
        raise CheckoutError("totalAmount must be a valid amount")

    claimed = claimed.quantize(CENT, rounding=ROUND_HALF_UP)

    if claimed != total:
        raise CartChangedError(
            f"Prices have changed. Expected total {claimed}, current total is {total}. "
            f"Please review your cart."
        )


def _check_deadline(deadline):
    if time.monotonic() > deadline:
        raise CheckoutTimeoutError("Checkout timed out. No funds were moved; please try again.")


# ============================================================
# CHECKOUT (ATOMIC)
# ============================================================

def checkout(buyer_id, claimed_items=None, claimed_total=None):
    """
    Pay for every line in the buyer's cart.

    ATOMIC OPERATION:
    1. Lock the cart; an empty cart is rejected
    2. Lock the listings and price every line from them
    3. Lock buyer + seller wallets; verify the buyer can pay the total
    4. Per line: decrement stock, debit buyer, credit seller,
       append a marketplace Transaction and an OrderItem
    5. Clear the settled cart lines and commit

    claimed_items / claimed_total are what the client believes the cart
    holds; they are only compared with the server's figures.

    Returns: (Order, list of Transaction, list of OrderItem)
    """
    timeout = current_app.config['CHECKOUT_TIMEOUT_SECONDS']
    deadline = time.monotonic() + timeout
    cart_snapshot = None
    total = None

    logger.info("Checkout started for buyer %s", buyer_id)

    try:
        begin_write_transaction()
        apply_statement_timeout(timeout)

        entries = list_for_buyer(buyer_id, lock=True)
        if not entries:
            raise EmptyCartError("Cart is empty")
        cart_snapshot = [(entry.item_id, entry.quantity) for entry in entries]

        items = lock_items_in_order(entry.item_id for entry in entries)
        total = sum(
            (items[entry.item_id].unit_price * entry.quantity for entry in entries),
            Decimal('0.00')
        )

        if claimed_items is not None:
            _verify_claimed_items(entries, items, claimed_items)
        if claimed_total is not None:
            _verify_claimed_total(total, claimed_total)

        seller_ids = [item.seller_id for item in items.values()]
        wallets = lock_wallets_in_order([buyer_id] + seller_ids)
        buyer_wallet = wallets[buyer_id]

        if buyer_wallet.balance < total:
            raise InsufficientFundsError(
                f"Insufficient balance. Required: {buyer_wallet.currency} {total}, "
                f"Available: {buyer_wallet.currency} {buyer_wallet.balance}"
            )

        order = Order(buyer_id=buyer_id, total_amount=total, currency=buyer_wallet.currency)
        db.session.add(order)
        db.session.flush()

        transactions = []
        order_items = []

        for entry in entries:
            item = items[entry.item_id]
            if item.currency != buyer_wallet.currency:
                raise CheckoutError(
                    f"{item.title} is priced in {item.currency}, "
                    f"your wallet holds {buyer_wallet.currency}"
                )

            seller_wallet = wallets[item.seller_id]
            if seller_wallet.currency != item.currency:
                raise CheckoutError(
                    f"{item.title} is priced in {item.currency}, "
                    f"the seller's wallet holds {seller_wallet.currency}"
                )

            reserve_and_decrement(item, entry.quantity)

            line_total = item.unit_price * entry.quantity
            debit(buyer_wallet, line_total)
            credit(seller_wallet, line_total)

            transaction = record_transaction(
                buyer_id, TransactionType.MARKETPLACE, line_total,
                source_wallet=buyer_wallet,
                destination_wallet=seller_wallet,
                description=f"Payment for order #{order.id}: {entry.quantity} x {item.title}"
            )

            order_item = OrderItem(
                order_id=order.id,
                item_id=item.id,
                buyer_id=buyer_id,
                seller_id=item.seller_id,
                quantity=entry.quantity,
                unit_price_at_sale=item.unit_price,
                currency=item.currency,
                transaction_id=transaction.id
            )
            db.session.add(order_item)

            transactions.append(transaction)
            order_items.append(order_item)
            _check_deadline(deadline)

        clear(buyer_id, entry_ids=[entry.id for entry in entries])
        db.session.flush()
        _check_deadline(deadline)

        db.session.commit()

        logger.info("Checkout completed for buyer %s: order %s, %d line(s), total %s",
                    buyer_id, order.id, len(order_items), total)
        return order, transactions, order_items

    except BUSINESS_ERRORS as e:
        db.session.rollback()
        logger.info("Checkout rejected for buyer %s: %s", buyer_id, e)
        raise
    except OperationalError as e:
        db.session.rollback()
        logger.warning("Checkout for buyer %s hit a lock/statement timeout (cart=%s, total=%s): %s",
                       buyer_id, cart_snapshot, total, e)
        raise CheckoutTimeoutError(
            "Checkout timed out. No funds were moved; please try again."
        ) from e
    except Exception as e:
        db.session.rollback()
        logger.exception("Checkout failed for buyer %s (cart=%s, total=%s)",
                         buyer_id, cart_snapshot, total)
        raise CheckoutInternalError(
            "Internal server error during checkout. Please try again."
        ) from e
