from datetime import datetime
from enum import Enum

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from tujifund.extensions import db

MONEY = db.Numeric(12, 2)


# ============================================================
# ENUMS
# ============================================================
class MemberRole(Enum):
    ADMIN = 'admin'
    MEMBER = 'member'


class ItemStatus(Enum):
    ACTIVE = 'active'
    SOLD_OUT = 'sold_out'


class TransactionType(Enum):
    DEPOSIT = 'deposit'
    WITHDRAWAL = 'withdrawal'
    TRANSFER = 'transfer'
    CONTRIBUTION = 'contribution'
    MARKETPLACE = 'marketplace'


class TransactionStatus(Enum):
    PENDING = 'pending'
    COMPLETED = 'completed'


class OrderStatus(Enum):
    COMPLETED = 'completed'


def _money(value):
    return float(value) if value is not None else None


# ============================================================
# USER MODEL
# ============================================================
class User(UserMixin, db.Model):
    """
    A registered Tujifund user.
    Users join chamas, hold a personal wallet, sell and buy in the marketplace.
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    full_name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    wallet = db.relationship('Wallet', backref='user', uselist=False,
                             foreign_keys='Wallet.user_id')
    memberships = db.relationship('ChamaMember', backref='user', lazy='dynamic')
    listings = db.relationship('MarketplaceItem', backref='seller', lazy='dynamic')
    cart_items = db.relationship('CartItem', backref='buyer', lazy='dynamic')

    def set_password(self, password):
        """Hash and set the user's password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password against stored hash."""
        return check_password_hash(self.password_hash, password)

    def to_public_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'fullName': self.full_name,
        }

    def to_dict(self):
        data = self.to_public_dict()
        data['email'] = self.email
        return data

    def __repr__(self):
        return f'<User {self.username}>'


# ============================================================
# CHAMA MODEL
# ============================================================
class Chama(db.Model):
    """
    A rotating-savings group.
    Each chama has members and exactly one wallet.
    """
    __tablename__ = 'chamas'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500))
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    members = db.relationship('ChamaMember', backref='chama', lazy='dynamic',
                              cascade='all, delete-orphan')
    wallet = db.relationship('Wallet', backref='chama', uselist=False,
                             foreign_keys='Wallet.chama_id')

    def get_member_count(self):
        return self.members.filter_by(is_active=True).count()

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'createdBy': self.created_by,
            'memberCount': self.get_member_count(),
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Chama {self.name}>'


# ============================================================
# CHAMA MEMBER MODEL
# ============================================================
class ChamaMember(db.Model):
    """Membership of a user in a chama, with role (admin/member)."""
    __tablename__ = 'chama_members'

    id = db.Column(db.Integer, primary_key=True)
    chama_id = db.Column(db.Integer, db.ForeignKey('chamas.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    role = db.Column(db.String(20), default=MemberRole.MEMBER.value, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Prevent duplicate memberships
    __table_args__ = (
        db.UniqueConstraint('chama_id', 'user_id', name='unique_chama_member'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'chamaId': self.chama_id,
            'userId': self.user_id,
            'role': self.role,
            'isActive': self.is_active,
        }

    def __repr__(self):
        return f'<ChamaMember user={self.user_id} chama={self.chama_id}>'


# ============================================================
# WALLET MODEL
# ============================================================
class Wallet(db.Model):
    """
    Balance held by a single owner: a user OR a chama, never both.

    CRITICAL: 'balance' is only changed through wallet_service.debit/credit,
    which enforce the no-overdraft rule. The CHECK constraints repeat it at
    the database level.
    """
    __tablename__ = 'wallets'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=True)
    chama_id = db.Column(db.Integer, db.ForeignKey('chamas.id'), unique=True, nullable=True)
    balance = db.Column(MONEY, default=0, nullable=False)
    currency = db.Column(db.String(3), default='KES', nullable=False)
    last_updated = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint('balance >= 0', name='wallet_no_overdraft'),
        db.CheckConstraint('(user_id IS NULL) <> (chama_id IS NULL)', name='wallet_single_owner'),
    )

    @property
    def owner_label(self):
        return f'user:{self.user_id}' if self.user_id is not None else f'chama:{self.chama_id}'

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'chamaId': self.chama_id,
            'balance': _money(self.balance),
            'currency': self.currency,
            'lastUpdated': self.last_updated.isoformat() if self.last_updated else None,
        }

    def __repr__(self):
        return f'<Wallet {self.owner_label} balance={self.balance}>'


# ============================================================
# TRANSACTION MODEL (LEDGER)
# ============================================================
class Transaction(db.Model):
    """
    Append-only record of a wallet movement.

    - 'deposit': into destination_wallet from outside
    - 'withdrawal': out of source_wallet to outside
    - 'transfer' / 'contribution': source_wallet -> destination_wallet
    - 'marketplace': buyer wallet -> seller wallet, one per settled cart line
    """
    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    chama_id = db.Column(db.Integer, db.ForeignKey('chamas.id'), nullable=True)
    type = db.Column(db.String(30), nullable=False)
    amount = db.Column(MONEY, nullable=False)
    description = db.Column(db.String(255))
    source_wallet_id = db.Column(db.Integer, db.ForeignKey('wallets.id'), nullable=True)
    destination_wallet_id = db.Column(db.Integer, db.ForeignKey('wallets.id'), nullable=True)
    status = db.Column(db.String(20), default=TransactionStatus.COMPLETED.value, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint('amount > 0', name='transaction_positive_amount'),
    )

    source_wallet = db.relationship('Wallet', foreign_keys=[source_wallet_id])
    destination_wallet = db.relationship('Wallet', foreign_keys=[destination_wallet_id])

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'chamaId': self.chama_id,
            'type': self.type,
            'amount': _money(self.amount),
            'description': self.description,
            'sourceWallet': self.source_wallet_id,
            'destinationWallet': self.destination_wallet_id,
            'status': self.status,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Transaction {self.type} amount={self.amount}>'


# ============================================================
# MARKETPLACE ITEM MODEL (INVENTORY)
# ============================================================
class MarketplaceItem(db.Model):
    """
    A listing offered by a seller.

    Invariant: status == 'sold_out' exactly when quantity == 0.
    Only checkout (decrement) and the seller (create/update) change it.
    """
    __tablename__ = 'marketplace_items'

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    chama_id = db.Column(db.Integer, db.ForeignKey('chamas.id'), nullable=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(50))
    unit_price = db.Column(MONEY, nullable=False)
    currency = db.Column(db.String(3), default='KES', nullable=False)
    quantity = db.Column(db.Integer, default=1, nullable=False)
    status = db.Column(db.String(20), default=ItemStatus.ACTIVE.value, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint('quantity >= 0', name='item_stock_floor'),
        db.CheckConstraint('unit_price > 0', name='item_positive_price'),
    )

    def sync_status(self):
        """Re-derive status from quantity."""
        self.status = (ItemStatus.SOLD_OUT.value if self.quantity == 0
                       else ItemStatus.ACTIVE.value)

    def is_sold_out(self):
        return self.status == ItemStatus.SOLD_OUT.value

    def to_dict(self, include_seller=False):
        data = {
            'id': self.id,
            'sellerId': self.seller_id,
            'chamaId': self.chama_id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'price': _money(self.unit_price),
            'currency': self.currency,
            'quantity': self.quantity,
            'status': self.status,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
        if include_seller:
            data['seller'] = self.seller.to_public_dict() if self.seller else None
        return data

    def __repr__(self):
        return f'<MarketplaceItem {self.title} qty={self.quantity}>'


# ============================================================
# CART ITEM MODEL
# ============================================================
class CartItem(db.Model):
    """A pending (item, quantity) line in a buyer's cart, unique per item."""
    __tablename__ = 'cart_items'

    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey('marketplace_items.id'), nullable=False)
    quantity = db.Column(db.Integer, default=1, nullable=False)
    added_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('buyer_id', 'item_id', name='unique_cart_line'),
        db.CheckConstraint('quantity > 0', name='cart_positive_quantity'),
    )

    item = db.relationship('MarketplaceItem')

    def to_dict(self):
        return {
            'id': self.id,
            'itemId': self.item_id,
            'quantity': self.quantity,
            'addedAt': self.added_at.isoformat() if self.added_at else None,
        }

    def __repr__(self):
        return f'<CartItem buyer={self.buyer_id} item={self.item_id} qty={self.quantity}>'


# ============================================================
# ORDER MODELS
# ============================================================
class Order(db.Model):
    """One successful checkout. Groups the order items it produced."""
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    total_amount = db.Column(MONEY, nullable=False)
    currency = db.Column(db.String(3), default='KES', nullable=False)
    status = db.Column(db.String(20), default=OrderStatus.COMPLETED.value, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    items = db.relationship('OrderItem', backref='order', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'buyerId': self.buyer_id,
            'totalAmount': _money(self.total_amount),
            'currency': self.currency,
            'status': self.status,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Order {self.id} total={self.total_amount}>'


class OrderItem(db.Model):
    """
    Append-only record of one settled cart line.
    Price is frozen at sale time; transaction_id points at the settlement.
    """
    __tablename__ = 'order_items'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey('marketplace_items.id'), nullable=False)
    buyer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    seller_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_at_sale = db.Column(MONEY, nullable=False)
    currency = db.Column(db.String(3), default='KES', nullable=False)
    transaction_id = db.Column(db.Integer, db.ForeignKey('transactions.id'), nullable=False)
    status = db.Column(db.String(20), default=OrderStatus.COMPLETED.value, nullable=False)

    transaction = db.relationship('Transaction')

    def to_dict(self):
        return {
            'id': self.id,
            'orderId': self.order_id,
            'itemId': self.item_id,
            'buyerId': self.buyer_id,
            'sellerId': self.seller_id,
            'quantity': self.quantity,
            'price': _money(self.unit_price_at_sale),
            'currency': self.currency,
            'transactionId': self.transaction_id,
            'status': self.status,
        }

    def __repr__(self):
        return f'<OrderItem item={self.item_id} qty={self.quantity}>'
