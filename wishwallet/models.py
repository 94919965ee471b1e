import enum
from datetime import datetime

from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin
from wishwallet.extensions import db


# ============================================================
# STATUS ENUMS
# ============================================================
class ClaimStatus(enum.Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    EXPIRED = 'expired'
    CANCELLED = 'cancelled'
    FULFILLED = 'fulfilled'

    @classmethod
    def values(cls):
        return [s.value for s in cls]


class TransactionType(enum.Enum):
    CREDIT = 'credit'
    DEBIT = 'debit'


class TransactionSource(enum.Enum):
    CASH_PAYMENT = 'cash_payment'
    CONTRIBUTIONS = 'contributions'
    PAYOUT = 'payout'


class ContributionStatus(enum.Enum):
    PENDING = 'pending'
    SUCCESS = 'success'
    FAILED = 'failed'


class PayoutStatus(enum.Enum):
    REQUESTED = 'requested'
    PROCESSING = 'processing'
    PAID = 'paid'
    FAILED = 'failed'


class ReminderStatus(enum.Enum):
    SCHEDULED = 'scheduled'
    CANCELLED = 'cancelled'


# ============================================================
# USER MODEL
# ============================================================
class User(UserMixin, db.Model):
    """
    A registered user.
    Users own wishlists and wallets, and act as spenders on other
    users' wishlists.
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    full_name = db.Column(db.String(120))
    password_hash = db.Column(db.String(256), nullable=False)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)

    # Payout destination
    bank_account_number = db.Column(db.String(20))
    bank_code = db.Column(db.String(20))
    bank_name = db.Column(db.String(100))
    account_name = db.Column(db.String(120))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    wishlists = db.relationship('Wishlist', backref='owner', lazy='dynamic',
                                cascade='all, delete-orphan')
    claims = db.relationship('Claim', backref='supporter', lazy='dynamic',
                             foreign_keys='Claim.supporter_user_id')
    wallet = db.relationship('Wallet', backref='user', uselist=False,
                             cascade='all, delete-orphan')
    notifications = db.relationship('Notification', backref='user', lazy='dynamic',
                                    cascade='all, delete-orphan')

    def set_password(self, password):
        """Hash and set the user's password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password against stored hash."""
        return check_password_hash(self.password_hash, password)

    def has_bank_details(self):
        return bool(self.bank_account_number and self.bank_code)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'full_name': self.full_name,
            'is_admin': self.is_admin,
            'has_bank_details': self.has_bank_details(),
        }

    def __repr__(self):
        return f'<User {self.username}>'


# ============================================================
# WISHLIST MODEL
# ============================================================
class Wishlist(db.Model):
    """
    A collection of desired items and cash goals tied to an occasion.
    The public address is /<username>/<slug>.
    """
    __tablename__ = 'wishlists'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    title = db.Column(db.String(150), nullable=False)
    slug = db.Column(db.String(160), nullable=False)
    occasion = db.Column(db.String(50))
    wishlist_date = db.Column(db.Date)
    story = db.Column(db.Text)
    visibility = db.Column(db.String(20), default='public', nullable=False)
    shares_count = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    items = db.relationship('WishlistItem', backref='wishlist', lazy='dynamic',
                            cascade='all, delete-orphan')
    goals = db.relationship('Goal', backref='wishlist', lazy='dynamic',
                            cascade='all, delete-orphan')

    # One slug per owner
    __table_args__ = (
        db.UniqueConstraint('user_id', 'slug', name='unique_wishlist_slug'),
    )

    def __repr__(self):
        return f'<Wishlist {self.slug}>'


# ============================================================
# WISHLIST ITEM MODEL
# ============================================================
class WishlistItem(db.Model):
    """
    A single desired item.

    qty_claimed counts units promised by spenders; it is maintained by the
    claims service and never exceeds qty_total on the claim path.
    """
    __tablename__ = 'wishlist_items'

    id = db.Column(db.Integer, primary_key=True)
    wishlist_id = db.Column(db.Integer, db.ForeignKey('wishlists.id'), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    unit_price_estimate = db.Column(db.Float, default=0.0)
    qty_total = db.Column(db.Integer, default=1, nullable=False)
    qty_claimed = db.Column(db.Integer, default=0, nullable=False)
    product_url = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    claims = db.relationship('Claim', backref='item', lazy='dynamic',
                             cascade='all, delete-orphan')

    def available_quantity(self):
        return max(0, (self.qty_total or 0) - (self.qty_claimed or 0))

    def __repr__(self):
        return f'<WishlistItem {self.name} {self.qty_claimed}/{self.qty_total}>'


# ============================================================
# CASH GOAL MODEL
# ============================================================
class Goal(db.Model):
    """A target amount attached to a wishlist, filled via contributions."""
    __tablename__ = 'goals'

    id = db.Column(db.Integer, primary_key=True)
    wishlist_id = db.Column(db.Integer, db.ForeignKey('wishlists.id'), nullable=False)
    title = db.Column(db.String(150), nullable=False)
    target_amount = db.Column(db.Float, nullable=False)
    amount_raised = db.Column(db.Float, default=0.0, nullable=False)
    deadline = db.Column(db.Date)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    contributions = db.relationship('Contribution', backref='goal', lazy='dynamic',
                                    cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Goal {self.title} {self.amount_raised}/{self.target_amount}>'


class Contribution(db.Model):
    __tablename__ = 'contributions'

    id = db.Column(db.Integer, primary_key=True)
    goal_id = db.Column(db.Integer, db.ForeignKey('goals.id'), nullable=False)
    supporter_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    display_name = db.Column(db.String(120))
    is_anonymous = db.Column(db.Boolean, default=False, nullable=False)
    amount = db.Column(db.Float, nullable=False)
    status = db.Column(db.String(20), default=ContributionStatus.PENDING.value, nullable=False)
    payment_reference = db.Column(db.String(100), unique=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    supporter = db.relationship('User', foreign_keys=[supporter_user_id])

    def public_name(self):
        if self.is_anonymous:
            return 'Anonymous Spender'
        return self.display_name or (self.supporter.username if self.supporter else 'Spender')

    def __repr__(self):
        return f'<Contribution goal={self.goal_id} amount={self.amount}>'


# ============================================================
# CLAIM MODEL
# ============================================================
class Claim(db.Model):
    """
    A spender's promise to buy, or pay cash toward, a wishlist item.

    The purchased quantity is not a column: it is encoded as a leading
    "Quantity: N" line in `note`, or derived from amount_paid / unit price.
    See services/quantity.py.

    supporter_user_id is NULL for guest payments.
    """
    __tablename__ = 'claims'

    id = db.Column(db.Integer, primary_key=True)
    wishlist_item_id = db.Column(db.Integer, db.ForeignKey('wishlist_items.id'), nullable=False)
    supporter_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    supporter_contact = db.Column(db.String(120))
    status = db.Column(db.String(20), default=ClaimStatus.PENDING.value, nullable=False)
    note = db.Column(db.Text)
    amount_paid = db.Column(db.Float, default=0.0, nullable=False)
    payment_reference = db.Column(db.String(100), unique=True)
    expire_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    transactions = db.relationship('WalletTransaction', backref='claim', lazy='dynamic')
    reminders = db.relationship('Reminder', backref='claim', lazy='dynamic',
                                cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Claim item={self.wishlist_item_id} status={self.status}>'


# ============================================================
# WALLET MODEL
# ============================================================
class Wallet(db.Model):
    """
    Per-user stored balance.

    Credited by cash payments and goal contributions, debited when a
    payout is marked paid. Every balance change has a WalletTransaction.
    """
    __tablename__ = 'wallets'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=False)
    balance = db.Column(db.Float, default=0.0, nullable=False)
    currency_default = db.Column(db.String(3), default='NGN', nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    transactions = db.relationship('WalletTransaction', backref='wallet', lazy='dynamic',
                                   cascade='all, delete-orphan')
    payouts = db.relationship('Payout', backref='wallet', lazy='dynamic',
                              cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Wallet user={self.user_id} balance={self.balance}>'


class WalletTransaction(db.Model):
    """
    Ledger row.

    amount is signed: positive for credits, negative for debits.
    Sender-side 'cash_payment' debits are history only; they do not move
    the sender's balance because the money came from their card.
    """
    __tablename__ = 'wallet_transactions'

    id = db.Column(db.Integer, primary_key=True)
    wallet_id = db.Column(db.Integer, db.ForeignKey('wallets.id'), nullable=False)
    claim_id = db.Column(db.Integer, db.ForeignKey('claims.id', ondelete='SET NULL'), nullable=True)
    type = db.Column(db.String(10), nullable=False)
    source = db.Column(db.String(30), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    affects_balance = db.Column(db.Boolean, default=True, nullable=False)
    title = db.Column(db.String(200))
    description = db.Column(db.String(255))
    counterparty_username = db.Column(db.String(50))
    reference = db.Column(db.String(100))
    # Provider transaction id, used to drop repeated webhook deliveries
    transaction_id = db.Column(db.String(64), unique=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'source': self.source,
            'amount': self.amount,
            'title': self.title,
            'description': self.description,
            'counterparty_username': self.counterparty_username,
            'reference': self.reference,
            'claim_id': self.claim_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<WalletTransaction {self.type} {self.source} amount={self.amount}>'


# ============================================================
# PAYOUT MODEL
# ============================================================
class Payout(db.Model):
    """
    Withdrawal request.

    Lifecycle:
    1. requested (user)
    2. processing (admin approved, transfer initiated)
    3. paid / failed
    """
    __tablename__ = 'payouts'

    id = db.Column(db.Integer, primary_key=True)
    wallet_id = db.Column(db.Integer, db.ForeignKey('wallets.id'), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    destination_bank_code = db.Column(db.String(20), nullable=False)
    destination_account = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), default=PayoutStatus.REQUESTED.value, nullable=False)
    provider = db.Column(db.String(30), default='paystack')
    provider_ref = db.Column(db.String(100))
    transfer_reference = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'wallet_id': self.wallet_id,
            'amount': self.amount,
            'status': self.status,
            'destination_bank_code': self.destination_bank_code,
            'destination_account': self.destination_account,
            'provider': self.provider,
            'provider_ref': self.provider_ref,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Payout {self.amount} status={self.status}>'


# ============================================================
# REMINDER & NOTIFICATION MODELS
# ============================================================
class Reminder(db.Model):
    __tablename__ = 'reminders'

    id = db.Column(db.Integer, primary_key=True)
    claim_id = db.Column(db.Integer, db.ForeignKey('claims.id'), nullable=False)
    contact = db.Column(db.String(120))
    channel = db.Column(db.String(20), default='email', nullable=False)
    schedule_at = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), default=ReminderStatus.SCHEDULED.value, nullable=False)
    last_sent_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'claim_id': self.claim_id,
            'contact': self.contact,
            'channel': self.channel,
            'schedule_at': self.schedule_at.isoformat(),
            'status': self.status,
        }

    def __repr__(self):
        return f'<Reminder claim={self.claim_id} at={self.schedule_at}>'


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    type = db.Column(db.String(50), nullable=False)
    title = db.Column(db.String(150), nullable=False)
    message = db.Column(db.String(500), nullable=False)
    data = db.Column(db.JSON)
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'data': self.data or {},
            'is_read': self.is_read,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Notification {self.type} user={self.user_id}>'
