"""
CLAIMS SERVICE
==============

Handles:
- Claiming items (send-cash claims and guest payments)
- Spender list reads and statistics
- Status changes, notes, full and partial removal
- Payment progress of a claim

QUANTITY RULES:
1. A claim holds units of its item while it is pending, confirmed or fulfilled
2. item.qty_claimed is the sum of units held by such claims
3. Cancelling or expiring a claim releases its units; deleting releases
   the removed units
4. The unit count lives in the note (see quantity.py)
5. A payment never changes how many units a claim holds; the count is
   pinned in the note when amount_paid would otherwise move it
"""

import logging
from datetime import datetime, timedelta

from flask import current_app

from wishwallet.extensions import db
from wishwallet.models import (
    Claim, ClaimStatus, WishlistItem, WalletTransaction, User
)
from wishwallet.services.authorization_service import (
    can_claim_item, AuthorizationError
)
from wishwallet.services import quantity as qty
from wishwallet.services import reminder_service

logger = logging.getLogger(__name__)

HOLDING_STATUSES = (
    ClaimStatus.PENDING.value,
    ClaimStatus.CONFIRMED.value,
    ClaimStatus.FULFILLED.value,
)

UPDATABLE_FIELDS = ('status', 'note', 'amount_paid', 'supporter_contact', 'expire_at')


# ============================================================
# CUSTOM EXCEPTIONS
# ============================================================

class ClaimError(Exception):
    """Base exception for claim operations"""
    pass


class ClaimNotFoundError(ClaimError):
    pass


class InvalidStatusError(ClaimError):
    pass


class InvalidQuantityError(ClaimError):
    pass


class ItemUnavailableError(ClaimError):
    """Raised when an item has fewer free units than requested"""
    pass


def _get_claim(claim_id):
    claim = db.session.get(Claim, claim_id)
    if not claim:
        raise ClaimNotFoundError(f"Claim {claim_id} not found")
    return claim


def _reserve(item, quantity):
    available = item.available_quantity()
    if quantity > available:
        raise ItemUnavailableError(
            f"Only {available} of \"{item.name}\" left to claim"
        )
    item.qty_claimed = (item.qty_claimed or 0) + quantity


def _release(item, quantity):
    item.qty_claimed = max(0, (item.qty_claimed or 0) - quantity)


def claim_quantity(claim):
    return qty.parse_quantity(
        claim.note, claim.amount_paid, claim.item.unit_price_estimate
    )


def pin_units(claim, units):
    """Keep the claim counting `units` after amount_paid changed. Does not commit."""
    if claim_quantity(claim) != units:
        claim.note = qty.pin_quantity(claim.note, units)


# ============================================================
# CREATE CLAIMS
# ============================================================

def create_claim(item_id, supporter_id, quantity=1, note=None):
    """
    Claim units of an item for a logged-in spender.

    The claim starts confirmed, expires after CLAIM_EXPIRY_DAYS and gets an
    automatic payment reminder.

    Returns: Claim
    """
    try:
        if not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantityError("Quantity must be at least 1")

        allowed, reason = can_claim_item(supporter_id, item_id)
        if not allowed:
            raise AuthorizationError(reason)

        item = db.session.get(WishlistItem, item_id)
        supporter = db.session.get(User, supporter_id)
        if not supporter:
            raise ClaimError(f"User {supporter_id} not found")

        _reserve(item, quantity)

        expiry_days = current_app.config.get('CLAIM_EXPIRY_DAYS', 7)
        claim = Claim(
            wishlist_item_id=item.id,
            supporter_user_id=supporter.id,
            supporter_contact=supporter.email,
            status=ClaimStatus.CONFIRMED.value,
            note=qty.build_quantity_note(quantity, note),
            amount_paid=0.0,
            expire_at=datetime.utcnow() + timedelta(days=expiry_days)
        )
        db.session.add(claim)
        db.session.commit()

    except (ClaimError, AuthorizationError):
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise ClaimError(f"Failed to create claim: {str(e)}")

    logger.info("User %s claimed %d x item %s (claim %s)", supporter_id, quantity, item_id, claim.id)

    try:
        reminder_service.create_automatic_reminder(
            claim,
            spender_username=supporter.username,
            item_name=item.name,
            item_price=item.unit_price_estimate,
            quantity=quantity
        )
    except reminder_service.ReminderError as e:
        logger.error("Claim %s created without reminder: %s", claim.id, e)

    return claim


def record_guest_payment(item_id, quantity, reference, contact=None, transaction_id=None,
                         amount=None):
    """
    A spender without an account paid for units of an item.

    Creates a claim with no supporter, already paid in full, and credits the
    wishlist owner's wallet with `amount`, the sum actually charged
    (unit price x quantity when not given). The money is already taken, so
    the claim is recorded even when the item has no free units left.

    Returns: Claim
    """
    from wishwallet.services import wallet_service

    try:
        if not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantityError("Quantity must be at least 1")

        if not reference:
            raise ClaimError("Payment reference is required")

        if wallet_service.is_duplicate_payment(reference, transaction_id):
            raise wallet_service.DuplicateTransactionError(
                f"Payment {reference} already recorded"
            )

        item = db.session.get(WishlistItem, item_id)
        if not item:
            raise ClaimNotFoundError(f"Item {item_id} not found")

        available = item.available_quantity()
        if quantity > available:
            logger.warning(
                "Guest payment %s over-claims item %s: %d paid, %d free",
                reference, item.id, quantity, available
            )
        item.qty_claimed = (item.qty_claimed or 0) + quantity

        if amount is None:
            amount = (item.unit_price_estimate or 0) * quantity
        total_amount = amount
        expiry_days = current_app.config.get('GUEST_CLAIM_EXPIRY_DAYS', 365)
        claim = Claim(
            wishlist_item_id=item.id,
            supporter_user_id=None,
            supporter_contact=contact,
            status=ClaimStatus.FULFILLED.value,
            amount_paid=total_amount,
            note=f'Guest payment - Quantity: {quantity}',
            payment_reference=reference,
            expire_at=datetime.utcnow() + timedelta(days=expiry_days)
        )
        db.session.add(claim)
        db.session.flush()
        pin_units(claim, quantity)

        owner = item.wishlist.owner
        wallet_service.credit_wallet(
            owner.id,
            total_amount,
            claim=claim,
            reference=reference,
            transaction_id=transaction_id,
            title=item.name,
            description=f'Guest payment for "{item.name}" - Ref: {reference}'
        )

        from wishwallet.services.notification_service import notify_payment_received
        notify_payment_received(owner, item.name, total_amount, reference, claim_id=claim.id)

        db.session.commit()

    except (ClaimError, wallet_service.WalletError):
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise ClaimError(f"Failed to record guest payment: {str(e)}")

    logger.info("Guest paid %.2f for %d x item %s (ref %s)", total_amount, quantity, item_id, reference)
    return claim


# ============================================================
# READ SIDE
# ============================================================

def fetch_user_claims(user_id):
    """Spender list: the user's claims, newest first."""
    claims = Claim.query.filter_by(supporter_user_id=user_id) \
        .order_by(Claim.created_at.desc(), Claim.id.desc()).all()
    for claim in claims:
        if claim.amount_paid is None:
            claim.amount_paid = 0.0
    return claims


def get_user_claim_stats(user_id):
    claims = Claim.query.filter_by(supporter_user_id=user_id).all()

    stats = {'total': len(claims)}
    for status in ClaimStatus:
        stats[status.value] = sum(1 for c in claims if c.status == status.value)
    stats['total_value'] = sum((c.item.unit_price_estimate or 0) for c in claims)

    return stats


def payment_summary(claim):
    """
    Payment progress of one claim.

    The amount paid comes from the positive ledger rows linked to the claim
    when there are any, otherwise from claim.amount_paid.
    """
    unit_price = float(claim.item.unit_price_estimate or 0)
    amount_paid = claim.amount_paid or 0
    quantity = claim_quantity(claim)
    estimated_price = unit_price * quantity

    paid_from_transactions = sum(
        tx.amount for tx in claim.transactions.filter(WalletTransaction.amount > 0)
    )
    effective_paid = paid_from_transactions if paid_from_transactions > 0 else amount_paid

    is_fully_paid = estimated_price > 0 and effective_paid >= estimated_price

    return {
        'claim_id': claim.id,
        'quantity': quantity,
        'unit_price': unit_price,
        'estimated_price': estimated_price,
        'amount_paid': effective_paid,
        'remaining_amount': max(0.0, estimated_price - effective_paid),
        'is_fully_paid': is_fully_paid,
        'is_fulfilled': claim.status == ClaimStatus.FULFILLED.value or is_fully_paid,
    }


def serialize_claim(claim):
    item = claim.item
    wishlist = item.wishlist
    return {
        'id': claim.id,
        'status': claim.status,
        'note': qty.user_note(claim.note),
        'amount_paid': claim.amount_paid or 0,
        'supporter_contact': claim.supporter_contact,
        'expire_at': claim.expire_at.isoformat() if claim.expire_at else None,
        'created_at': claim.created_at.isoformat() if claim.created_at else None,
        'item': {
            'id': item.id,
            'name': item.name,
            'unit_price_estimate': item.unit_price_estimate,
            'qty_total': item.qty_total,
            'qty_claimed': item.qty_claimed,
        },
        'wishlist': {
            'id': wishlist.id,
            'title': wishlist.title,
            'slug': wishlist.slug,
            'occasion': wishlist.occasion,
            'owner_username': wishlist.owner.username,
        },
        'payment': payment_summary(claim),
    }


# ============================================================
# UPDATES
# ============================================================

def _apply_status(claim, status):
    """Move a claim to `status`, keeping qty_claimed in step. Does not commit."""
    was_holding = claim.status in HOLDING_STATUSES
    will_hold = status in HOLDING_STATUSES
    units = claim_quantity(claim)

    if was_holding and not will_hold:
        _release(claim.item, units)
    elif will_hold and not was_holding:
        _reserve(claim.item, units)

    claim.status = status
    claim.updated_at = datetime.utcnow()

    if status in (ClaimStatus.CANCELLED.value, ClaimStatus.EXPIRED.value,
                  ClaimStatus.FULFILLED.value):
        reminder_service.cancel_reminder(claim.id, reason=status, commit=False)


def update_claim_status(claim_id, status):
    """Change a claim's status. Unknown statuses are rejected."""
    if status not in ClaimStatus.values():
        raise InvalidStatusError(
            f"Invalid status: {status}. Valid statuses are: {', '.join(ClaimStatus.values())}"
        )

    try:
        claim = _get_claim(claim_id)
        old_status = claim.status
        _apply_status(claim, status)
        db.session.commit()

    except ClaimError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise ClaimError(f"Failed to update claim status: {str(e)}")

    logger.info("Claim %s status %s -> %s", claim_id, old_status, status)
    return claim


def update_claim(claim_id, updates):
    """
    Apply a partial update.

    An invalid status is dropped from the update instead of failing it.
    Fields outside UPDATABLE_FIELDS are ignored.
    """
    updates = {k: v for k, v in (updates or {}).items() if k in UPDATABLE_FIELDS}

    if 'status' in updates and updates['status'] not in ClaimStatus.values():
        logger.warning("Dropping invalid status %r from claim %s update", updates['status'], claim_id)
        del updates['status']

    try:
        claim = _get_claim(claim_id)

        status = updates.pop('status', None)
        if status and status != claim.status:
            _apply_status(claim, status)
        units = claim_quantity(claim)
        for field, value in updates.items():
            setattr(claim, field, value)
        if 'amount_paid' in updates and 'note' not in updates:
            pin_units(claim, units)
        claim.updated_at = datetime.utcnow()

        db.session.commit()

    except ClaimError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise ClaimError(f"Failed to update claim: {str(e)}")

    return claim


def save_claim_note(claim_id, user_note):
    """Replace the spender's note, keeping the internal quantity line."""
    claim = _get_claim(claim_id)
    return update_claim(claim_id, {'note': qty.merge_user_note(claim.note, user_note)})


# ============================================================
# DELETE (FULL OR PARTIAL)
# ============================================================

def delete_claim(claim_id, quantity_to_remove=None):
    """
    Remove some or all units of a claim and give them back to the item.

    Removing at least the purchased quantity deletes the claim. Otherwise
    amount_paid drops by unit price x removed units (never below zero) and
    the quantity line is rewritten.

    Returns: {'quantity_removed': int, 'was_partial_removal': bool}
    """
    try:
        claim = _get_claim(claim_id)
        item = claim.item

        total_quantity = claim_quantity(claim)
        if quantity_to_remove is None:
            quantity_to_remove = total_quantity
        if quantity_to_remove < 1:
            raise InvalidQuantityError(
                f"Please enter a quantity between 1 and {total_quantity}"
            )

        holding = claim.status in HOLDING_STATUSES
        was_partial = quantity_to_remove < total_quantity

        if not was_partial:
            quantity_to_remove = total_quantity
            # Ledger rows outlive the claim
            WalletTransaction.query.filter_by(claim_id=claim.id) \
                .update({'claim_id': None})
            db.session.delete(claim)
        else:
            unit_price = item.unit_price_estimate or 0
            amount_paid = claim.amount_paid or 0
            remaining = total_quantity - quantity_to_remove

            claim.amount_paid = max(0.0, amount_paid - unit_price * quantity_to_remove)
            claim.note = qty.rewrite_quantity(claim.note, remaining)
            pin_units(claim, remaining)
            claim.updated_at = datetime.utcnow()

        if holding:
            _release(item, quantity_to_remove)

        db.session.commit()

    except ClaimError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise ClaimError(f"Failed to delete claim: {str(e)}")

    logger.info("Removed %d unit(s) from claim %s (partial=%s)", quantity_to_remove, claim_id, was_partial)
    return {
        'quantity_removed': quantity_to_remove,
        'was_partial_removal': was_partial,
    }


# ============================================================
# EXPIRY
# ============================================================

def expire_stale_claims(now=None):
    """
    Expire open claims past their expire_at that have nothing paid.
    Returns the number of claims expired.
    """
    now = now or datetime.utcnow()
    stale = Claim.query.filter(
        Claim.status.in_([ClaimStatus.PENDING.value, ClaimStatus.CONFIRMED.value]),
        Claim.expire_at.isnot(None),
        Claim.expire_at < now
    ).all()

    expired = 0
    try:
        for claim in stale:
            if payment_summary(claim)['amount_paid'] > 0:
                continue
            _apply_status(claim, ClaimStatus.EXPIRED.value)
            expired += 1
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        raise ClaimError(f"Failed to expire claims: {str(e)}")

    if expired:
        logger.info("Expired %d stale claim(s)", expired)
    return expired

