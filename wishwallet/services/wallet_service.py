"""
WALLET SERVICE - FINANCIAL OPERATIONS
=====================================

CRITICAL BUSINESS RULES:
1. Wallet balance ONLY changes together with a WalletTransaction
2. Each payment runs in ONE db transaction (claim, ledgers, notification)
3. A cash payment credits the RECIPIENT wallet; the sender gets a
   history-only debit row (the money came from their card, not the wallet)
4. A provider reference or transaction id is recorded at most once
5. Available balance = credits - payouts that have not failed
"""

import logging
from datetime import datetime

from flask import current_app

from wishwallet.extensions import db
from wishwallet.models import (
    User, Wallet, WalletTransaction, Claim, ClaimStatus, Goal, Contribution,
    ContributionStatus, Payout, PayoutStatus, TransactionType, TransactionSource
)
from wishwallet.utils import format_naira

logger = logging.getLogger(__name__)


# ============================================================
# CUSTOM EXCEPTIONS
# ============================================================

class WalletError(Exception):
    """Base exception for wallet operations"""
    pass


class InsufficientBalanceError(WalletError):
    """Raised when wallet has insufficient balance"""
    pass


class InvalidAmountError(WalletError):
    """Raised when amount is invalid"""
    pass


class DuplicateTransactionError(WalletError):
    """Raised when a payment reference was already recorded"""
    pass


# ============================================================
# IDEMPOTENCY HELPERS
# ============================================================

def is_duplicate_payment(reference=None, transaction_id=None):
    """True when a credit for this reference or provider transaction exists."""
    if transaction_id is not None:
        existing = WalletTransaction.query.filter_by(transaction_id=str(transaction_id)).first()
        if existing:
            return True

    if reference:
        existing = WalletTransaction.query.filter_by(
            reference=reference,
            type=TransactionType.CREDIT.value
        ).first()
        if existing:
            return True

    return False


# ============================================================
# WALLET CREATION
# ============================================================

def get_or_create_wallet(user_id):
    """Get the user's wallet, creating an empty one on first use. Does not commit."""
    wallet = Wallet.query.filter_by(user_id=user_id).first()
    if not wallet:
        user = db.session.get(User, user_id)
        if not user:
            raise WalletError(f"User {user_id} not found")

        wallet = Wallet(
            user_id=user_id,
            balance=0.0,
            currency_default=current_app.config.get('CURRENCY', 'NGN')
        )
        db.session.add(wallet)
        db.session.flush()
        logger.info("Created wallet for user %s", user_id)

    return wallet


# ============================================================
# LEDGER PRIMITIVES (no commit)
# ============================================================

def credit_wallet(user_id, amount, claim=None, reference=None, transaction_id=None,
                  source=TransactionSource.CASH_PAYMENT.value, title=None,
                  description=None, counterparty_username=None):
    """Credit a wallet and write its ledger row."""
    if not amount or amount <= 0:
        raise InvalidAmountError("Credit amount must be greater than 0")

    wallet = get_or_create_wallet(user_id)

    transaction = WalletTransaction(
        wallet_id=wallet.id,
        claim_id=claim.id if claim is not None else None,
        type=TransactionType.CREDIT.value,
        source=source,
        amount=amount,
        affects_balance=True,
        title=title,
        description=description,
        counterparty_username=counterparty_username,
        reference=reference,
        transaction_id=str(transaction_id) if transaction_id is not None else None
    )
    db.session.add(transaction)

    wallet.balance = (wallet.balance or 0) + amount
    wallet.updated_at = datetime.utcnow()

    return transaction


def record_sender_debit(user_id, amount, claim=None, reference=None, title=None,
                        description=None, counterparty_username=None):
    """History-only debit in the sender's wallet. The balance is not touched."""
    wallet = get_or_create_wallet(user_id)

    transaction = WalletTransaction(
        wallet_id=wallet.id,
        claim_id=claim.id if claim is not None else None,
        type=TransactionType.DEBIT.value,
        source=TransactionSource.CASH_PAYMENT.value,
        amount=-amount,
        affects_balance=False,
        title=title,
        description=description,
        counterparty_username=counterparty_username,
        reference=reference
    )
    db.session.add(transaction)
    return transaction


# ============================================================
# CLAIM PAYMENT (ATOMIC)
# ============================================================

def record_claim_payment(claim_id, amount, reference, sender_id=None, transaction_id=None):
    """
    Record cash sent toward a claimed item.

    ATOMIC: All or nothing.
    Updates: recipient Wallet + credit row, sender debit row,
             Claim.amount_paid, owner Notification, reminder/status when
             the claim becomes fully paid.

    sender_id defaults to the claim's spender (webhook path).
    Fully paid is judged against the price of the units the claim held
    before this payment.

    Returns: (Claim, WalletTransaction credit, payment summary dict)
    """
    from wishwallet.services.claims_service import (
        payment_summary, claim_quantity, pin_units, ClaimNotFoundError
    )
    from wishwallet.services.authorization_service import can_pay_claim, AuthorizationError
    from wishwallet.services.notification_service import notify_payment_received
    from wishwallet.services import reminder_service

    try:
        if not amount or amount <= 0:
            raise InvalidAmountError("Payment amount must be greater than 0")

        claim = db.session.get(Claim, claim_id)
        if not claim:
            raise ClaimNotFoundError(f"Claim {claim_id} not found")

        if sender_id is None:
            sender_id = claim.supporter_user_id
        else:
            allowed, reason = can_pay_claim(sender_id, claim_id)
            if not allowed:
                raise AuthorizationError(reason)

        if claim.status in (ClaimStatus.CANCELLED.value, ClaimStatus.EXPIRED.value):
            raise WalletError(f"Cannot pay for a {claim.status} claim")

        if is_duplicate_payment(reference, transaction_id):
            raise DuplicateTransactionError(f"Payment {reference} already recorded")

        item = claim.item
        owner = item.wishlist.owner
        sender = db.session.get(User, sender_id) if sender_id else None
        sender_username = sender.username if sender else None

        credit = credit_wallet(
            owner.id,
            amount,
            claim=claim,
            reference=reference,
            transaction_id=transaction_id,
            title=item.name,
            description=f'Cash payment for "{item.name}" - Ref: {reference}',
            counterparty_username=sender_username
        )

        if sender is not None:
            record_sender_debit(
                sender.id,
                amount,
                claim=claim,
                reference=reference,
                title=item.name,
                description=f'Payment sent for "{item.name}" to @{owner.username} - Ref: {reference}',
                counterparty_username=owner.username
            )

        units = claim_quantity(claim)
        estimated_price = (item.unit_price_estimate or 0) * units

        claim.amount_paid = (claim.amount_paid or 0) + amount
        pin_units(claim, units)
        claim.updated_at = datetime.utcnow()

        notify_payment_received(
            owner, item.name, amount, reference,
            claim_id=claim.id, sender_username=sender_username
        )

        db.session.flush()
        summary = payment_summary(claim)
        if estimated_price > 0 and summary['amount_paid'] >= estimated_price:
            summary['is_fully_paid'] = True
            claim.status = ClaimStatus.FULFILLED.value
            reminder_service.cancel_reminder(claim.id, reason='item_fulfilled', commit=False)
            summary['is_fulfilled'] = True

        db.session.commit()

    except (WalletError, ClaimNotFoundError, AuthorizationError):
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise WalletError(f"Payment failed: {str(e)}")

    logger.info(
        "Claim %s paid %s (ref %s), remaining %s",
        claim_id, format_naira(amount), reference, format_naira(summary['remaining_amount'])
    )
    return claim, credit, summary


# ============================================================
# CASH GOAL CONTRIBUTION (ATOMIC)
# ============================================================

def contribute_to_goal(goal_id, amount, reference, supporter_id=None, display_name=None,
                       is_anonymous=False, transaction_id=None):
    """
    Record a successful contribution toward a cash goal.

    Updates: Contribution, Goal.amount_raised, owner Wallet + credit row,
             owner Notification.

    Returns: (Contribution, WalletTransaction)
    """
    from wishwallet.services.notification_service import notify_contribution_received

    try:
        minimum = current_app.config.get('MIN_CONTRIBUTION', 100)
        if not amount or amount < minimum:
            raise InvalidAmountError(f"Contribution must be at least {format_naira(minimum)}.")

        goal = db.session.get(Goal, goal_id)
        if not goal:
            raise WalletError(f"Goal {goal_id} not found")

        if is_duplicate_payment(reference, transaction_id) or \
                Contribution.query.filter_by(payment_reference=reference).first():
            raise DuplicateTransactionError(f"Payment {reference} already recorded")

        supporter = db.session.get(User, supporter_id) if supporter_id else None
        if not display_name and supporter is not None:
            display_name = supporter.username

        contribution = Contribution(
            goal_id=goal.id,
            supporter_user_id=supporter.id if supporter else None,
            display_name=display_name,
            is_anonymous=is_anonymous,
            amount=amount,
            status=ContributionStatus.SUCCESS.value,
            payment_reference=reference
        )
        db.session.add(contribution)

        goal.amount_raised = (goal.amount_raised or 0) + amount

        owner = goal.wishlist.owner
        name = contribution.public_name()
        transaction = credit_wallet(
            owner.id,
            amount,
            reference=reference,
            transaction_id=transaction_id,
            source=TransactionSource.CONTRIBUTIONS.value,
            title=goal.title,
            description=f'Contributions for "{goal.title}"',
            counterparty_username=name
        )

        if supporter is not None:
            record_sender_debit(
                supporter.id,
                amount,
                reference=reference,
                title=goal.title,
                description=f'Contribution sent to @{owner.username}',
                counterparty_username=owner.username
            )

        notify_contribution_received(owner, goal, amount, name)

        db.session.commit()

    except WalletError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise WalletError(f"Contribution failed: {str(e)}")

    logger.info("Goal %s received %s (ref %s)", goal_id, format_naira(amount), reference)
    return contribution, transaction


# ============================================================
# BALANCES
# ============================================================

def total_credits(wallet_id):
    total = db.session.query(db.func.sum(WalletTransaction.amount)).filter(
        WalletTransaction.wallet_id == wallet_id,
        WalletTransaction.type == TransactionType.CREDIT.value
    ).scalar()
    return total or 0.0


def total_withdrawn(wallet_id, include_pending=True):
    statuses = [PayoutStatus.PAID.value]
    if include_pending:
        statuses += [PayoutStatus.REQUESTED.value, PayoutStatus.PROCESSING.value]

    total = db.session.query(db.func.sum(Payout.amount)).filter(
        Payout.wallet_id == wallet_id,
        Payout.status.in_(statuses)
    ).scalar()
    return total or 0.0


def available_balance(wallet_id):
    """Credits received minus every payout that has not failed."""
    return total_credits(wallet_id) - total_withdrawn(wallet_id)


# ============================================================
# BALANCE RECALCULATION (AUDIT)
# ============================================================

def recalculate_wallet_balance(wallet_id):
    """Recalculate wallet balance from transaction ledger"""
    wallet = db.session.get(Wallet, wallet_id)
    if not wallet:
        raise WalletError(f"Wallet {wallet_id} not found")

    transactions = WalletTransaction.query.filter_by(
        wallet_id=wallet_id,
        affects_balance=True
    ).all()

    calculated_balance = sum(t.amount for t in transactions)

    credits = sum(
        t.amount for t in transactions
        if t.type == TransactionType.CREDIT.value
    )

    payouts = sum(
        abs(t.amount) for t in transactions
        if t.source == TransactionSource.PAYOUT.value
    )

    previous_balance = wallet.balance
    difference = calculated_balance - previous_balance

    was_corrected = False
    if abs(difference) > 0.01:
        logger.warning(
            "Wallet %s drifted by %.2f (stored %.2f, ledger %.2f), correcting",
            wallet_id, difference, previous_balance, calculated_balance
        )
        wallet.balance = calculated_balance
        was_corrected = True

    db.session.commit()

    return {
        'wallet_id': wallet_id,
        'previous_balance': previous_balance,
        'calculated_balance': calculated_balance,
        'difference': difference,
        'was_corrected': was_corrected,
        'total_credits': credits,
        'total_paid_out': payouts
    }


# ============================================================
# WALLET SUMMARY
# ============================================================

def get_wallet_summary(user_id):
    """Balance, totals and the merged history, newest first."""
    wallet = get_or_create_wallet(user_id)
    db.session.commit()

    transactions = WalletTransaction.query.filter_by(wallet_id=wallet.id) \
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc()).all()

    received = [t for t in transactions if t.type == TransactionType.CREDIT.value]
    sent = [
        t for t in transactions
        if t.type == TransactionType.DEBIT.value and t.source != TransactionSource.PAYOUT.value
    ]

    payouts = Payout.query.filter_by(wallet_id=wallet.id) \
        .order_by(Payout.created_at.desc(), Payout.id.desc()).all()

    return {
        'wallet_id': wallet.id,
        'currency': wallet.currency_default,
        'balance': wallet.balance,
        'available_balance': available_balance(wallet.id),
        'total_received': sum(t.amount for t in received),
        'total_sent': sum(abs(t.amount) for t in sent),
        'total_withdrawn': total_withdrawn(wallet.id, include_pending=False),
        'pending_withdrawals': total_withdrawn(wallet.id) - total_withdrawn(wallet.id, include_pending=False),
        'transactions': [t.to_dict() for t in transactions],
        'payouts': [p.to_dict() for p in payouts],
    }
