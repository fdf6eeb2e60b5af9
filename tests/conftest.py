from decimal import Decimal

import pytest

from config import TestConfig
from tujifund import create_app
from tujifund.extensions import db
from tujifund.models import MarketplaceItem, User, Wallet

PASSWORD = 'secret123'


@pytest.fixture()
def app():
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture()
def ctx(app):
    """Service tests run inside one app context (one session)."""
    with app.app_context():
        yield app


@pytest.fixture()
def client(app):
    return app.test_client()


def make_user(username, balance=0, with_wallet=True, currency='KES'):
    """Create a user (and wallet) directly in the database. Needs an app context."""
    user = User(username=username, email=f'{username}@example.com',
                full_name=username.title())
    user.set_password(PASSWORD)
    db.session.add(user)
    db.session.flush()

    if with_wallet:
        db.session.add(Wallet(user_id=user.id, balance=Decimal(str(balance)),
                              currency=currency))
    db.session.commit()
    return user


def make_item(seller, price, quantity=1, title=None, currency='KES'):
    item = MarketplaceItem(
        seller_id=seller.id,
        title=title or f'Item by {seller.username}',
        unit_price=Decimal(str(price)),
        quantity=quantity,
        currency=currency,
    )
    item.sync_status()
    db.session.add(item)
    db.session.commit()
    return item


def balance_of(user_id):
    return Wallet.query.filter_by(user_id=user_id).one().balance


def login(client, username):
    response = client.post('/auth/login', json={
        'email': f'{username}@example.com',
        'password': PASSWORD,
    })
    assert response.status_code == 200
    return response


@pytest.fixture()
def factory(app):
    """
    Build rows for HTTP tests in a short-lived app context and hand back ids,
    so no session stays open while the test client runs requests.
    """
    class Factory:
        def user(self, username, balance=0, with_wallet=True):
            with app.app_context():
                return make_user(username, balance, with_wallet).id

        def item(self, seller_id, price, quantity=1, title=None):
            with app.app_context():
                seller = db.session.get(User, seller_id)
                return make_item(seller, price, quantity, title).id

        def balance(self, user_id):
            with app.app_context():
                return balance_of(user_id)

        def stock(self, item_id):
            with app.app_context():
                return db.session.get(MarketplaceItem, item_id).quantity

    return Factory()
