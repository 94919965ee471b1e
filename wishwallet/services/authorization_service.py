"""
CENTRALIZED AUTHORIZATION SERVICE
==================================

All permission checks live here.
Routes and other services call these functions.

Each check returns (allowed, reason).
"""

from wishwallet.extensions import db
from wishwallet.models import (
    User, Wishlist, WishlistItem, Claim, Payout, ClaimStatus, PayoutStatus
)


class AuthorizationError(Exception):
    """Raised when authorization fails"""
    pass


# ============================================================
# OWNERSHIP CHECKS
# ============================================================

def is_admin(user_id):
    user = db.session.get(User, user_id)
    return bool(user and user.is_admin)


def get_item_owner_id(item):
    return item.wishlist.user_id


# ============================================================
# WISHLIST AUTHORIZATION
# ============================================================

def can_edit_wishlist(user_id, wishlist_id):
    """Only the owner can add items and goals."""
    wishlist = db.session.get(Wishlist, wishlist_id)
    if not wishlist:
        return False, "Wishlist not found"

    if wishlist.user_id != user_id:
        return False, "You do not own this wishlist"

    return True, None


# ============================================================
# CLAIM AUTHORIZATION
# ============================================================

def can_claim_item(user_id, item_id):
    """
    Check if user can claim an item.

    Requirements:
    - Item must exist
    - User cannot claim items on their own wishlist
    """
    item = db.session.get(WishlistItem, item_id)
    if not item:
        return False, "Item not found"

    if user_id is not None and get_item_owner_id(item) == user_id:
        return False, "You cannot claim items on your own wishlist"

    return True, None


def can_manage_claim(user_id, claim_id):
    """
    Check if user can change or delete a claim.

    Requirements:
    - The user is the spender who made the claim, or an admin
    """
    claim = db.session.get(Claim, claim_id)
    if not claim:
        return False, "Claim not found"

    if claim.supporter_user_id != user_id and not is_admin(user_id):
        return False, "This claim belongs to another spender"

    return True, None


def can_pay_claim(user_id, claim_id):
    """
    Check if user can send cash toward a claim.

    Requirements:
    - Claim must be owned by the user
    - Claim must still be open (not cancelled or expired)
    """
    allowed, reason = can_manage_claim(user_id, claim_id)
    if not allowed:
        return allowed, reason

    claim = db.session.get(Claim, claim_id)
    if claim.status in (ClaimStatus.CANCELLED.value, ClaimStatus.EXPIRED.value):
        return False, f"Cannot pay for a {claim.status} claim"

    return True, None


# ============================================================
# PAYOUT AUTHORIZATION
# ============================================================

def can_request_payout(user_id):
    user = db.session.get(User, user_id)
    if not user:
        return False, "User not found"

    if not user.has_bank_details():
        return False, "Please add your bank account details before requesting a payout"

    return True, None


def can_manage_payout(user_id, payout_id):
    """
    Check if user can move a payout through its lifecycle.

    Requirements:
    - User must be a platform admin
    - Payout must not be settled already
    """
    if not is_admin(user_id):
        return False, "Admin access required"

    payout = db.session.get(Payout, payout_id)
    if not payout:
        return False, "Payout not found"

    if payout.status in (PayoutStatus.PAID.value, PayoutStatus.FAILED.value):
        return False, f"Payout is already {payout.status}"

    return True, None


# ============================================================
# HELPER FUNCTION: REQUIRE AUTHORIZATION
# ============================================================

def require_authorization(check_func, *args, error_class=AuthorizationError):
    """
    Wrapper to raise exception if authorization fails.

    Usage:
        require_authorization(can_manage_claim, user_id, claim_id)
    """
    allowed, reason = check_func(*args)
    if not allowed:
        raise error_class(reason)
    return True
