"""
PAYOUT SERVICE
==============

Withdrawals from a wallet to the owner's bank account.

Lifecycle:
    requested  -> processing | failed
    processing -> paid | failed

The wallet balance is debited only when a payout is marked paid. Until
then a requested or processing payout still counts against the
available balance.

A transfer that Paystack holds for an OTP stays processing until an admin
finalizes it; sync_payout reads the final transfer status back.
"""

import logging
import uuid
from datetime import datetime

from wishwallet.extensions import db
from wishwallet.models import (
    User, Payout, PayoutStatus, WalletTransaction, TransactionType, TransactionSource
)
from wishwallet.services.authorization_service import (
    can_request_payout, can_manage_payout, AuthorizationError
)
from wishwallet.services.wallet_service import (
    get_or_create_wallet, available_balance, WalletError,
    InsufficientBalanceError, InvalidAmountError
)
from wishwallet.services.notification_service import (
    notify_admins_of_withdrawal, notify_withdrawal_status_change
)
from wishwallet.services.paystack import PaystackClient, PaystackError
from wishwallet.utils import format_naira

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    PayoutStatus.REQUESTED.value: (PayoutStatus.PROCESSING.value, PayoutStatus.FAILED.value),
    PayoutStatus.PROCESSING.value: (PayoutStatus.PAID.value, PayoutStatus.FAILED.value),
}


class PayoutError(Exception):
    """Base exception for payout operations"""
    pass


class PayoutNotFoundError(PayoutError):
    pass


class InvalidTransitionError(PayoutError):
    pass


def _get_payout(payout_id):
    payout = db.session.get(Payout, payout_id)
    if not payout:
        raise PayoutNotFoundError(f"Payout {payout_id} not found")
    return payout


# ============================================================
# REQUEST
# ============================================================

def request_payout(user_id, amount):
    """
    Ask for a withdrawal of `amount` to the user's saved bank account.

    Returns: Payout (status requested)
    """
    try:
        if not amount or amount <= 0:
            raise InvalidAmountError("Please enter a valid amount")

        allowed, reason = can_request_payout(user_id)
        if not allowed:
            raise AuthorizationError(reason)

        user = db.session.get(User, user_id)
        wallet = get_or_create_wallet(user_id)

        available = available_balance(wallet.id)
        if amount > available:
            raise InsufficientBalanceError(
                f"Insufficient balance. Available: {format_naira(available)}"
            )

        payout = Payout(
            wallet_id=wallet.id,
            amount=amount,
            destination_bank_code=user.bank_code,
            destination_account=user.bank_account_number,
            status=PayoutStatus.REQUESTED.value
        )
        db.session.add(payout)
        db.session.flush()

        notify_admins_of_withdrawal(payout, user)

        db.session.commit()

    except (WalletError, AuthorizationError):
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise PayoutError(f"Failed to request payout: {str(e)}")

    logger.info("User %s requested payout %s of %s", user_id, payout.id, format_naira(amount))
    return payout


# ============================================================
# STATUS UPDATES (ADMIN)
# ============================================================

def _debit_for_payout(payout):
    wallet = payout.wallet
    transaction = WalletTransaction(
        wallet_id=wallet.id,
        type=TransactionType.DEBIT.value,
        source=TransactionSource.PAYOUT.value,
        amount=-payout.amount,
        affects_balance=True,
        title='Withdrawal',
        description=f'Payout to {payout.destination_account}',
        reference=payout.transfer_reference or f'payout_{payout.id}'
    )
    db.session.add(transaction)

    wallet.balance = (wallet.balance or 0) - payout.amount
    wallet.updated_at = datetime.utcnow()
    return transaction


def update_payout_status(payout_id, new_status, admin_id):
    """
    Move a payout to a new status.

    Marking a payout paid writes the wallet debit. The owner is notified
    of every change.
    """
    try:
        allowed, reason = can_manage_payout(admin_id, payout_id)
        if not allowed:
            raise AuthorizationError(reason)

        payout = _get_payout(payout_id)
        old_status = payout.status

        if new_status not in ALLOWED_TRANSITIONS.get(old_status, ()):
            raise InvalidTransitionError(
                f"Cannot move payout from {old_status} to {new_status}"
            )

        payout.status = new_status
        payout.updated_at = datetime.utcnow()

        if new_status == PayoutStatus.PAID.value:
            _debit_for_payout(payout)

        notify_withdrawal_status_change(payout, old_status, new_status)

        db.session.commit()

    except (PayoutError, AuthorizationError):
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise PayoutError(f"Failed to update payout: {str(e)}")

    logger.info("Payout %s moved %s -> %s by admin %s", payout_id, old_status, new_status, admin_id)
    return payout


def process_payout(payout_id, admin_id, client=None):
    """
    Send a requested payout through Paystack transfers.

    Steps: resolve account -> create recipient -> initiate transfer.
    On success the payout moves to processing and keeps the transfer code.

    Returns: {'success': bool, 'step': str, ...}
    """
    allowed, reason = can_manage_payout(admin_id, payout_id)
    if not allowed:
        raise AuthorizationError(reason)

    payout = _get_payout(payout_id)
    if payout.status != PayoutStatus.REQUESTED.value:
        raise InvalidTransitionError(f"Payout is already {payout.status}")

    user = payout.wallet.user
    client = client or PaystackClient.from_config()

    step = 'resolve_account'
    try:
        account = client.resolve_account(payout.destination_account, payout.destination_bank_code)

        step = 'create_recipient'
        recipient = client.create_transfer_recipient(
            account.get('account_name') or user.account_name or user.username,
            payout.destination_account,
            payout.destination_bank_code,
            currency=payout.wallet.currency_default
        )

        step = 'initiate_transfer'
        reference = payout.transfer_reference or f'payout_{payout.id}_{uuid.uuid4().hex[:12]}'
        transfer = client.initiate_transfer(
            payout.amount,
            recipient.get('recipient_code'),
            reference,
            reason=f'Wallet withdrawal for @{user.username}'
        )
    except PaystackError as e:
        logger.error("Payout %s failed at %s: %s", payout_id, step, e)
        return {'success': False, 'step': step, 'error': str(e)}

    payout.transfer_reference = reference
    payout.provider_ref = transfer.get('transfer_code')
    db.session.commit()

    update_payout_status(payout_id, PayoutStatus.PROCESSING.value, admin_id)

    return {
        'success': True,
        'step': 'done',
        'transfer_code': transfer.get('transfer_code'),
        'requires_otp': transfer.get('status') == 'otp',
        'payout': payout.to_dict(),
    }


TRANSFER_OUTCOMES = {
    'success': PayoutStatus.PAID.value,
    'failed': PayoutStatus.FAILED.value,
    'reversed': PayoutStatus.FAILED.value,
}


def _processing_payout(payout_id, admin_id):
    allowed, reason = can_manage_payout(admin_id, payout_id)
    if not allowed:
        raise AuthorizationError(reason)

    payout = _get_payout(payout_id)
    if payout.status != PayoutStatus.PROCESSING.value:
        raise InvalidTransitionError(f"Payout is {payout.status}, not processing")
    return payout


def _settle_transfer(payout, admin_id, transfer_status):
    """Move a processing payout to paid or failed from Paystack's transfer status."""
    new_status = TRANSFER_OUTCOMES.get(transfer_status)
    if new_status:
        update_payout_status(payout.id, new_status, admin_id)
    return {
        'success': True,
        'transfer_status': transfer_status,
        'payout': payout.to_dict(),
    }


def finalize_payout(payout_id, admin_id, otp, client=None):
    """
    Complete a transfer Paystack held back for an OTP.

    Returns: {'success': bool, 'transfer_status': str, 'payout': dict}
             or {'success': False, 'step': 'finalize_transfer', 'error': str}
    """
    if not otp:
        raise PayoutError("OTP is required")

    payout = _processing_payout(payout_id, admin_id)
    if not payout.provider_ref:
        raise PayoutError(f"Payout {payout_id} has no transfer to finalize")

    client = client or PaystackClient.from_config()
    try:
        transfer = client.finalize_transfer(payout.provider_ref, otp)
    except PaystackError as e:
        logger.error("Payout %s OTP finalize failed: %s", payout_id, e)
        return {'success': False, 'step': 'finalize_transfer', 'error': str(e)}

    return _settle_transfer(payout, admin_id, transfer.get('status'))


def sync_payout(payout_id, admin_id, client=None):
    """Ask Paystack how a processing payout's transfer ended and record it."""
    payout = _processing_payout(payout_id, admin_id)
    if not payout.transfer_reference:
        raise PayoutError(f"Payout {payout_id} has no transfer to verify")

    client = client or PaystackClient.from_config()
    try:
        transfer = client.verify_transfer(payout.transfer_reference)
    except PaystackError as e:
        logger.error("Payout %s transfer check failed: %s", payout_id, e)
        return {'success': False, 'step': 'verify_transfer', 'error': str(e)}

    return _settle_transfer(payout, admin_id, transfer.get('status'))


def list_payouts(status=None):
    query = Payout.query
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Payout.created_at.desc(), Payout.id.desc()).all()
