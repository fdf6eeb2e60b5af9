from decimal import Decimal

import pytest

from conftest import balance_of, make_user
from tujifund.models import Transaction, TransactionType
from tujifund.services.authorization_service import AuthorizationError
from tujifund.services.chama_service import create_chama
from tujifund.services.wallet_service import (
    parse_amount, get_wallet, debit, credit, deposit, withdraw, transfer,
    contribute, list_transactions, lock_wallets_in_order,
    WalletError, WalletNotFoundError, InsufficientFundsError, InvalidAmountError
)


class TestParseAmount:
    def test_accepts_numbers_and_strings(self):
        assert parse_amount(10) == Decimal('10.00')
        assert parse_amount('12.5') == Decimal('12.50')
        assert parse_amount(0.1) == Decimal('0.10')

    @pytest.mark.parametrize('value', [None, True, 'abc', 'NaN', 'Infinity', -5, 0, '1.234'])
    def test_rejects_bad_input(self, value):
        with pytest.raises(InvalidAmountError):
            parse_amount(value)

    def test_zero_allowed_when_asked(self):
        assert parse_amount(0, allow_zero=True) == Decimal('0.00')


class TestDebitCredit:
    def test_debit_cannot_overdraw(self, ctx):
        user = make_user('alice', balance=50)
        wallet = get_wallet(user_id=user.id)

        with pytest.raises(InsufficientFundsError):
            debit(wallet, 50.01)
        assert wallet.balance == Decimal('50.00')

    def test_debit_and_credit_move_balance(self, ctx):
        user = make_user('alice', balance=50)
        wallet = get_wallet(user_id=user.id)

        assert debit(wallet, 20) == Decimal('30.00')
        assert credit(wallet, '5.25') == Decimal('35.25')

    def test_get_wallet_needs_exactly_one_owner(self, ctx):
        with pytest.raises(ValueError):
            get_wallet()
        with pytest.raises(ValueError):
            get_wallet(user_id=1, chama_id=1)

    def test_missing_wallet(self, ctx):
        user = make_user('nowallet', with_wallet=False)
        with pytest.raises(WalletNotFoundError):
            get_wallet(user_id=user.id)

    def test_lock_wallets_reports_missing_owner(self, ctx):
        alice = make_user('alice')
        bob = make_user('bob', with_wallet=False)

        with pytest.raises(WalletNotFoundError):
            lock_wallets_in_order([alice.id, bob.id])


class TestDepositWithdraw:
    def test_deposit_records_transaction(self, ctx):
        user = make_user('alice')

        transaction, wallet = deposit(user.id, 250)

        assert wallet.balance == Decimal('250.00')
        assert transaction.type == TransactionType.DEPOSIT.value
        assert transaction.destination_wallet_id == wallet.id
        assert transaction.source_wallet_id is None

    def test_withdraw_insufficient_leaves_no_trace(self, ctx):
        user = make_user('alice', balance=10)

        with pytest.raises(InsufficientFundsError):
            withdraw(user.id, 11)

        assert balance_of(user.id) == Decimal('10.00')
        assert Transaction.query.count() == 0

    def test_withdraw(self, ctx):
        user = make_user('alice', balance=100)

        transaction, wallet = withdraw(user.id, '40.50')

        assert wallet.balance == Decimal('59.50')
        assert transaction.source_wallet_id == wallet.id

    def test_invalid_amount(self, ctx):
        user = make_user('alice', balance=100)
        with pytest.raises(InvalidAmountError):
            deposit(user.id, -1)


class TestTransfer:
    def test_user_to_user(self, ctx):
        alice = make_user('alice', balance=100)
        bob = make_user('bob', balance=5)

        transaction, source = transfer(alice.id, 30, destination_user_id=bob.id)

        assert source.balance == Decimal('70.00')
        assert balance_of(bob.id) == Decimal('35.00')
        assert transaction.type == TransactionType.TRANSFER.value

    def test_self_transfer_rejected(self, ctx):
        alice = make_user('alice', balance=100)
        with pytest.raises(WalletError):
            transfer(alice.id, 10, destination_user_id=alice.id)

    def test_destination_required(self, ctx):
        alice = make_user('alice', balance=100)
        with pytest.raises(WalletError):
            transfer(alice.id, 10)

    def test_unknown_destination_user(self, ctx):
        alice = make_user('alice', balance=100)
        with pytest.raises(WalletNotFoundError):
            transfer(alice.id, 10, destination_user_id=999)
        assert balance_of(alice.id) == Decimal('100.00')

    def test_chama_transfer_requires_membership(self, ctx):
        alice = make_user('alice', balance=100)
        bob = make_user('bob', balance=100)
        chama = create_chama('Savers', created_by=alice.id)

        with pytest.raises(AuthorizationError):
            transfer(bob.id, 10, destination_chama_id=chama.id)

        transfer(alice.id, 10, destination_chama_id=chama.id)
        assert get_wallet(chama_id=chama.id).balance == Decimal('10.00')


class TestContribute:
    def test_member_contributes(self, ctx):
        alice = make_user('alice', balance=100)
        chama = create_chama('Savers', created_by=alice.id)

        transaction, source = contribute(alice.id, chama.id, 25)

        assert source.balance == Decimal('75.00')
        assert get_wallet(chama_id=chama.id).balance == Decimal('25.00')
        assert transaction.chama_id == chama.id
        assert transaction.type == TransactionType.CONTRIBUTION.value

    def test_non_member_rejected(self, ctx):
        alice = make_user('alice', balance=100)
        bob = make_user('bob', balance=100)
        chama = create_chama('Savers', created_by=alice.id)

        with pytest.raises(AuthorizationError):
            contribute(bob.id, chama.id, 25)
        assert balance_of(bob.id) == Decimal('100.00')

    def test_history_newest_first(self, ctx):
        alice = make_user('alice')
        deposit(alice.id, 10)
        deposit(alice.id, 20)
        withdraw(alice.id, 5)

        amounts = [t.amount for t in list_transactions(user_id=alice.id)]
        assert amounts == [Decimal('5.00'), Decimal('20.00'), Decimal('10.00')]
