"""
WALLET SERVICE - LEDGER OPERATIONS
==================================

CRITICAL BUSINESS RULES:
1. Wallet balance ONLY changes via debit() / credit()
2. A balance never goes below zero
3. debit() / credit() flush but never commit: callers own the unit of work
4. Every top-level movement appends exactly one Transaction and is ATOMIC
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation

from tujifund.extensions import db, begin_write_transaction
from tujifund.models import Chama, Transaction, TransactionType, User, Wallet

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


# ============================================================
# CUSTOM EXCEPTIONS
# ============================================================

class WalletError(Exception):
    """Base exception for wallet operations"""
    pass


class WalletNotFoundError(WalletError):
    """Raised when an owner has no wallet"""
    pass


class InsufficientFundsError(WalletError):
    """Raised when a debit would overdraw the wallet"""
    pass


class InvalidAmountError(WalletError):
    """Raised when amount is missing, malformed or not positive"""
    pass


# ============================================================
# AMOUNT PARSING
# ============================================================

def parse_amount(value, allow_zero=False):
    """Convert user input to a 2-dp Decimal, rejecting junk and non-positive values."""
    if value is None or isinstance(value, bool):
        raise InvalidAmountError("Amount is required")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(f"Invalid amount: {value!r}")

    if not amount.is_finite():
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    if amount != amount.quantize(CENT):
        raise InvalidAmountError("Amount cannot have more than 2 decimal places")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidAmountError("Amount must be greater than 0")

    return amount.quantize(CENT)


# ============================================================
# WALLET CREATION
# ============================================================

def create_wallet_for_user(user_id, currency='KES'):
    """Create the personal wallet of a user (called on registration). Flushes only."""
    if Wallet.query.filter_by(user_id=user_id).first():
        raise WalletError(f"User {user_id} already has a wallet")

    wallet = Wallet(user_id=user_id, balance=Decimal('0.00'), currency=currency,
                    last_updated=datetime.utcnow())
    db.session.add(wallet)
    db.session.flush()
    return wallet


def create_wallet_for_chama(chama_id, currency='KES'):
    """Create the wallet of a chama (called on chama creation). Flushes only."""
    if Wallet.query.filter_by(chama_id=chama_id).first():
        raise WalletError(f"Chama {chama_id} already has a wallet")

    wallet = Wallet(chama_id=chama_id, balance=Decimal('0.00'), currency=currency,
                    last_updated=datetime.utcnow())
    db.session.add(wallet)
    db.session.flush()
    return wallet


# ============================================================
# LOOKUPS
# ============================================================

def get_wallet(user_id=None, chama_id=None, lock=False):
    """
    Fetch the wallet of a user or a chama.

    lock=True takes a row lock for the rest of the transaction.
    """
    if (user_id is None) == (chama_id is None):
        raise ValueError("Exactly one of user_id / chama_id is required")

    query = Wallet.query.filter_by(user_id=user_id) if user_id is not None \
        else Wallet.query.filter_by(chama_id=chama_id)
    if lock:
        query = query.with_for_update()

    wallet = query.first()
    if not wallet:
        owner = f"user {user_id}" if user_id is not None else f"chama {chama_id}"
        raise WalletNotFoundError(f"Wallet not found for {owner}")
    return wallet


def get_balance(user_id=None, chama_id=None):
    return get_wallet(user_id=user_id, chama_id=chama_id).balance


def lock_wallets_in_order(user_ids):
    """
    Lock the personal wallets of several users in ascending wallet id.

    A fixed lock order keeps two transactions touching the same wallets
    from deadlocking. Returns {user_id: Wallet}.
    """
    user_ids = sorted(set(user_ids))
    wallets = Wallet.query.filter(Wallet.user_id.in_(user_ids)) \
        .order_by(Wallet.id).with_for_update().all()
    locked = {w.user_id: w for w in wallets}

    missing = [uid for uid in user_ids if uid not in locked]
    if missing:
        raise WalletNotFoundError(f"Wallet not found for user {missing[0]}")
    return locked


# ============================================================
# DEBIT / CREDIT (compose inside a larger transaction)
# ============================================================

def debit(wallet, amount):
    """Take amount out of wallet. Returns the new balance."""
    amount = parse_amount(amount)
    if wallet.balance < amount:
        raise InsufficientFundsError(
            f"Insufficient funds. Required: {wallet.currency} {amount}, "
            f"Available: {wallet.currency} {wallet.balance}"
        )

    wallet.balance = wallet.balance - amount
    wallet.last_updated = datetime.utcnow()
    db.session.flush()
    return wallet.balance


def credit(wallet, amount):
    """Add amount to wallet. Returns the new balance."""
    amount = parse_amount(amount)

    wallet.balance = wallet.balance + amount
    wallet.last_updated = datetime.utcnow()
    db.session.flush()
    return wallet.balance


def record_transaction(user_id, type_, amount, source_wallet=None,
                       destination_wallet=None, chama_id=None, description=None):
    """Append a completed ledger entry. Flushes only."""
    transaction = Transaction(
        user_id=user_id,
        chama_id=chama_id,
        type=type_.value,
        amount=amount,
        description=description,
        source_wallet_id=source_wallet.id if source_wallet else None,
        destination_wallet_id=destination_wallet.id if destination_wallet else None,
    )
    db.session.add(transaction)
    db.session.flush()
    return transaction


# ============================================================
# DEPOSIT (ATOMIC)
# ============================================================

def deposit(user_id, amount, description=None):
    """
    Add money to a user's wallet from outside (mobile money top-up).

    Returns: (Transaction, Wallet)
    """
    try:
        amount = parse_amount(amount)
        begin_write_transaction()

        wallet = get_wallet(user_id=user_id, lock=True)
        credit(wallet, amount)
        transaction = record_transaction(
            user_id, TransactionType.DEPOSIT, amount,
            destination_wallet=wallet,
            description=description or "Deposit"
        )

        db.session.commit()
        logger.info("Deposit of %s into wallet %s", amount, wallet.id)
        return transaction, wallet

    except WalletError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception("Deposit failed for user %s amount %s", user_id, amount)
        raise WalletError(f"Deposit failed: {str(e)}")


# ============================================================
# WITHDRAWAL (ATOMIC)
# ============================================================

def withdraw(user_id, amount, description=None):
    """
    Take money out of a user's wallet.

    Returns: (Transaction, Wallet)
    """
    try:
        amount = parse_amount(amount)
        begin_write_transaction()

        wallet = get_wallet(user_id=user_id, lock=True)
        debit(wallet, amount)
        transaction = record_transaction(
            user_id, TransactionType.WITHDRAWAL, amount,
            source_wallet=wallet,
            description=description or "Withdrawal"
        )

        db.session.commit()
        logger.info("Withdrawal of %s from wallet %s", amount, wallet.id)
        return transaction, wallet

    except WalletError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception("Withdrawal failed for user %s amount %s", user_id, amount)
        raise WalletError(f"Withdrawal failed: {str(e)}")


# ============================================================
# TRANSFER (ATOMIC)
# ============================================================

def transfer(user_id, amount, destination_user_id=None, destination_chama_id=None,
             description=None):
    """
    Move money from a user's wallet to another user or to a chama.

    Transfers to a chama require active membership.

    Returns: (Transaction, source Wallet)
    """
    from tujifund.services.authorization_service import is_chama_member, AuthorizationError

    try:
        amount = parse_amount(amount)

        if destination_user_id is None and destination_chama_id is None:
            raise WalletError("Destination not specified")
        if destination_user_id is not None and destination_chama_id is not None:
            raise WalletError("Specify either a user or a chama as destination, not both")
        if destination_user_id == user_id:
            raise WalletError("Cannot transfer to your own wallet")

        begin_write_transaction()

        if destination_user_id is not None:
            if not db.session.get(User, destination_user_id):
                raise WalletNotFoundError(f"User {destination_user_id} not found")
            wallets = lock_wallets_in_order([user_id, destination_user_id])
            source, destination = wallets[user_id], wallets[destination_user_id]
        else:
            if not db.session.get(Chama, destination_chama_id):
                raise WalletNotFoundError(f"Chama {destination_chama_id} not found")
            if not is_chama_member(user_id, destination_chama_id):
                raise AuthorizationError("You are not a member of this chama")
            source = get_wallet(user_id=user_id, lock=True)
            destination = get_wallet(chama_id=destination_chama_id, lock=True)

        debit(source, amount)
        credit(destination, amount)
        transaction = record_transaction(
            user_id, TransactionType.TRANSFER, amount,
            source_wallet=source,
            destination_wallet=destination,
            chama_id=destination_chama_id,
            description=description or "Transfer"
        )

        db.session.commit()
        logger.info("Transfer of %s from wallet %s to wallet %s",
                    amount, source.id, destination.id)
        return transaction, source

    except (WalletError, AuthorizationError):
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception("Transfer failed for user %s amount %s", user_id, amount)
        raise WalletError(f"Transfer failed: {str(e)}")


# ============================================================
# CHAMA CONTRIBUTION (ATOMIC)
# ============================================================

def contribute(user_id, chama_id, amount, description=None):
    """
    Contribute from a member's personal wallet to the chama wallet.

    Returns: (Transaction, personal Wallet)
    """
    from tujifund.services.authorization_service import can_contribute, AuthorizationError

    try:
        amount = parse_amount(amount)

        allowed, reason = can_contribute(user_id, chama_id)
        if not allowed:
            raise AuthorizationError(reason)

        begin_write_transaction()

        source = get_wallet(user_id=user_id, lock=True)
        destination = get_wallet(chama_id=chama_id, lock=True)

        debit(source, amount)
        credit(destination, amount)
        transaction = record_transaction(
            user_id, TransactionType.CONTRIBUTION, amount,
            source_wallet=source,
            destination_wallet=destination,
            chama_id=chama_id,
            description=description or "Chama Contribution"
        )

        db.session.commit()
        logger.info("Contribution of %s from user %s to chama %s", amount, user_id, chama_id)
        return transaction, source

    except (WalletError, AuthorizationError):
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception("Contribution failed for user %s chama %s", user_id, chama_id)
        raise WalletError(f"Contribution failed: {str(e)}")


# ============================================================
# HISTORY
# ============================================================

def list_transactions(user_id=None, chama_id=None):
    """All transactions touching the owner's wallet, newest first."""
    wallet = get_wallet(user_id=user_id, chama_id=chama_id)
    return Transaction.query.filter(
        db.or_(
            Transaction.source_wallet_id == wallet.id,
            Transaction.destination_wallet_id == wallet.id
        )
    ).order_by(Transaction.created_at.desc(), Transaction.id.desc()).all()
