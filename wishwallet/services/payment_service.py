"""
PAYMENT SERVICE
===============

Handles:
- Preparing checkout data for a claim payment or a goal contribution
- Verifying a charge with Paystack after the inline checkout closes
- Applying verified charges and webhook events to claims, goals and wallets

A charge is routed by what it pays for:
1. A claim whose payment_reference matches (or metadata.claim_id)
2. metadata.goal_id  -> cash goal contribution
3. metadata.item_id  -> guest payment for units of an item
"""

import json
import logging
import time
import uuid

from flask import current_app

from wishwallet.extensions import db
from wishwallet.models import Claim, Goal, User, WishlistItem
from wishwallet.services.paystack import (
    PaystackClient, PaystackError, verify_webhook_signature, to_kobo, from_kobo
)
from wishwallet.services.authorization_service import can_pay_claim, AuthorizationError
from wishwallet.services.claims_service import (
    ClaimNotFoundError, InvalidQuantityError, record_guest_payment
)
from wishwallet.services import wallet_service

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    """Base exception for payment operations"""
    pass


class PaymentNotSuccessfulError(PaymentError):
    pass


class InvalidSignatureError(PaymentError):
    pass


def _client(client=None):
    return client or PaystackClient.from_config()


def _as_int(value):
    return int(value) if value not in (None, '') else None


def metadata_value(metadata, key):
    """Read a metadata key, also looking inside Paystack custom_fields."""
    if not isinstance(metadata, dict):
        return None
    if metadata.get(key) is not None:
        return metadata[key]
    for field in metadata.get('custom_fields') or []:
        if field.get('variable_name') == key:
            return field.get('value')
    return None


# ============================================================
# CHECKOUT PREPARATION
# ============================================================

def start_claim_payment(claim_id, user_id, amount):
    """
    Reserve a payment reference for cash sent toward a claim.

    Returns the data the inline checkout needs (amount in kobo).
    """
    if not amount or amount <= 0:
        raise wallet_service.InvalidAmountError("Please enter a valid amount")

    allowed, reason = can_pay_claim(user_id, claim_id)
    if not allowed:
        raise AuthorizationError(reason)

    claim = db.session.get(Claim, claim_id)
    user = db.session.get(User, user_id)
    owner = claim.item.wishlist.owner

    reference = f'payment_{int(time.time() * 1000)}_{claim.id}'
    claim.payment_reference = reference
    db.session.commit()

    return {
        'email': user.email,
        'amount': to_kobo(amount),
        'currency': current_app.config.get('CURRENCY', 'NGN'),
        'reference': reference,
        'metadata': {
            'claim_id': claim.id,
            'item_name': claim.item.name,
            'supporter_id': user.id,
            'recipient_id': owner.id,
        },
    }


def start_goal_contribution(goal_id, amount, email, display_name=None,
                            is_anonymous=False, supporter_id=None):
    goal = db.session.get(Goal, goal_id)
    if not goal:
        raise PaymentError(f"Goal {goal_id} not found")

    minimum = current_app.config.get('MIN_CONTRIBUTION', 100)
    if not amount or amount < minimum:
        raise wallet_service.InvalidAmountError(f"Contribution must be at least {minimum:g}")

    return {
        'email': email,
        'amount': to_kobo(amount),
        'currency': current_app.config.get('CURRENCY', 'NGN'),
        'reference': f'contrib_{uuid.uuid4().hex}',
        'metadata': {
            'goal_id': goal.id,
            'display_name': display_name,
            'is_anonymous': bool(is_anonymous),
            'supporter_id': supporter_id,
        },
    }


def start_guest_payment(item_id, quantity, email):
    """Checkout data for a visitor without an account paying for units of an item."""
    item = db.session.get(WishlistItem, item_id)
    if not item:
        raise ClaimNotFoundError(f"Item {item_id} not found")

    if not isinstance(quantity, int) or quantity < 1 or quantity > item.available_quantity():
        raise InvalidQuantityError(
            f"Please choose between 1 and {item.available_quantity()} of \"{item.name}\""
        )

    amount = (item.unit_price_estimate or 0) * quantity
    if amount <= 0:
        raise wallet_service.InvalidAmountError("This item has no price to pay")

    return {
        'email': email,
        'amount': to_kobo(amount),
        'currency': current_app.config.get('CURRENCY', 'NGN'),
        'reference': f'guest_{uuid.uuid4().hex}',
        'metadata': {
            'item_id': item.id,
            'quantity': quantity,
            'email': email,
        },
    }


# ============================================================
# VERIFICATION
# ============================================================

def verify_payment(reference, client=None):
    """
    Ask Paystack whether a charge succeeded.

    Returns: dict with reference, amount (naira), currency, status,
             paid_at, metadata, customer, transaction_id
    """
    if not reference:
        raise PaymentError("Payment reference is required")

    transaction = _client(client).verify_transaction(reference)

    if not transaction or transaction.get('status') != 'success':
        raise PaymentNotSuccessfulError("Payment was not successful")

    return {
        'reference': transaction.get('reference'),
        'amount': from_kobo(transaction.get('amount')),
        'currency': transaction.get('currency'),
        'status': transaction.get('status'),
        'gateway_response': transaction.get('gateway_response'),
        'paid_at': transaction.get('paid_at'),
        'metadata': transaction.get('metadata') or {},
        'customer': transaction.get('customer'),
        'transaction_id': transaction.get('id'),
    }


# ============================================================
# APPLYING CHARGES
# ============================================================

def apply_charge(reference, amount, metadata=None, transaction_id=None, sender_id=None):
    """
    Route a successful charge to the claim, goal or item it pays for.

    Returns: {'kind': 'claim'|'goal'|'guest', 'id': int, ...}
    """
    metadata = metadata or {}

    claim = Claim.query.filter_by(payment_reference=reference).first()
    if claim is None and metadata_value(metadata, 'claim_id'):
        claim = db.session.get(Claim, int(metadata_value(metadata, 'claim_id')))

    if claim is not None:
        claim, _, summary = wallet_service.record_claim_payment(
            claim.id, amount, reference,
            sender_id=sender_id,
            transaction_id=transaction_id
        )
        return {'kind': 'claim', 'id': claim.id, 'payment': summary}

    goal_id = metadata_value(metadata, 'goal_id')
    if goal_id:
        contribution, _ = wallet_service.contribute_to_goal(
            int(goal_id), amount, reference,
            supporter_id=_as_int(metadata_value(metadata, 'supporter_id')),
            display_name=metadata_value(metadata, 'display_name'),
            is_anonymous=bool(metadata_value(metadata, 'is_anonymous')),
            transaction_id=transaction_id
        )
        return {'kind': 'goal', 'id': contribution.id}

    item_id = metadata_value(metadata, 'item_id')
    if item_id:
        quantity = int(metadata_value(metadata, 'quantity') or 1)
        claim = record_guest_payment(
            int(item_id), quantity, reference,
            contact=metadata_value(metadata, 'email'),
            transaction_id=transaction_id,
            amount=amount
        )
        return {'kind': 'guest', 'id': claim.id}

    raise ClaimNotFoundError(f"Claim not found for reference: {reference}")


def confirm_payment(reference, user_id=None, client=None):
    """Verify a charge with Paystack, then apply it."""
    verified = verify_payment(reference, client=client)
    result = apply_charge(
        verified['reference'] or reference,
        verified['amount'],
        metadata=verified['metadata'],
        transaction_id=verified['transaction_id'],
        sender_id=user_id
    )
    result['verification'] = verified
    return result


def process_charge_success(charge):
    """
    Handle a `charge.success` webhook event.

    Returns 'processed' or 'duplicate'.
    """
    reference = charge.get('reference')
    amount = from_kobo(charge.get('amount'))
    transaction_id = charge.get('id')

    logger.info("Processing successful payment %s, amount %.2f", reference, amount)

    if wallet_service.is_duplicate_payment(reference, transaction_id):
        logger.info("Payment %s already processed, skipping", reference)
        return 'duplicate'

    try:
        apply_charge(reference, amount, metadata=charge.get('metadata'),
                     transaction_id=transaction_id)
    except wallet_service.DuplicateTransactionError:
        return 'duplicate'

    return 'processed'


def process_webhook(payload, signature, secret=None):
    """
    Verify and dispatch one Paystack webhook delivery.

    payload is the raw request body. Events other than charge.success are
    acknowledged and ignored.
    """
    secret = secret or current_app.config.get('PAYSTACK_WEBHOOK_SECRET')
    if not verify_webhook_signature(payload, signature, secret):
        raise InvalidSignatureError("Invalid signature")

    try:
        event = json.loads(payload)
    except ValueError:
        raise PaymentError("Malformed webhook payload")

    name = event.get('event')
    logger.info("Received Paystack webhook: %s", name)

    if name == 'charge.success':
        return process_charge_success(event.get('data') or {})

    return 'ignored'
