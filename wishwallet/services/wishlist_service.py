"""
WISHLIST SERVICE
================

Creating wishlists, their items and cash goals, and the read-side
progress figures shown on a public wishlist page.
"""

import logging

from wishwallet.extensions import db
from wishwallet.models import Wishlist, WishlistItem, Goal, User, Claim
from wishwallet.services.authorization_service import can_edit_wishlist, AuthorizationError
from wishwallet.utils import slugify, round_half_up

logger = logging.getLogger(__name__)

VISIBILITIES = ('public', 'unlisted', 'private')


class WishlistError(Exception):
    """Base exception for wishlist operations"""
    pass


class WishlistNotFoundError(WishlistError):
    pass


class ValidationError(WishlistError):
    pass


def unique_slug(user_id, title):
    """Slug for `title`, suffixed -2, -3, ... until unused by this owner."""
    base = slugify(title)
    slug = base
    n = 2
    while Wishlist.query.filter_by(user_id=user_id, slug=slug).first():
        slug = f'{base}-{n}'
        n += 1
    return slug


# ============================================================
# CREATION
# ============================================================

def create_wishlist(user_id, title, occasion=None, wishlist_date=None, story=None,
                    visibility='public'):
    if not title or not title.strip():
        raise ValidationError("Title is required")
    if visibility not in VISIBILITIES:
        raise ValidationError(f"Visibility must be one of: {', '.join(VISIBILITIES)}")

    try:
        wishlist = Wishlist(
            user_id=user_id,
            title=title.strip(),
            slug=unique_slug(user_id, title),
            occasion=occasion,
            wishlist_date=wishlist_date,
            story=story,
            visibility=visibility
        )
        db.session.add(wishlist)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        raise WishlistError(f"Failed to create wishlist: {str(e)}")

    logger.info("User %s created wishlist %s", user_id, wishlist.slug)
    return wishlist


def add_item(wishlist_id, user_id, name, unit_price_estimate=0, qty_total=1, product_url=None):
    allowed, reason = can_edit_wishlist(user_id, wishlist_id)
    if not allowed:
        raise AuthorizationError(reason)

    if not name or not name.strip():
        raise ValidationError("Item name is required")
    if qty_total is None or int(qty_total) < 1:
        raise ValidationError("Quantity must be at least 1")
    if unit_price_estimate is None or float(unit_price_estimate) < 0:
        raise ValidationError("Price cannot be negative")

    item = WishlistItem(
        wishlist_id=wishlist_id,
        name=name.strip(),
        unit_price_estimate=float(unit_price_estimate),
        qty_total=int(qty_total),
        qty_claimed=0,
        product_url=product_url
    )
    db.session.add(item)
    db.session.commit()
    return item


def add_goal(wishlist_id, user_id, title, target_amount, deadline=None):
    allowed, reason = can_edit_wishlist(user_id, wishlist_id)
    if not allowed:
        raise AuthorizationError(reason)

    if not title or not title.strip():
        raise ValidationError("Goal title is required")
    if target_amount is None or float(target_amount) <= 0:
        raise ValidationError("Target amount must be greater than 0")

    goal = Goal(
        wishlist_id=wishlist_id,
        title=title.strip(),
        target_amount=float(target_amount),
        amount_raised=0.0,
        deadline=deadline
    )
    db.session.add(goal)
    db.session.commit()
    return goal


def record_share(wishlist_id):
    wishlist = db.session.get(Wishlist, wishlist_id)
    if not wishlist:
        raise WishlistNotFoundError(f"Wishlist {wishlist_id} not found")
    wishlist.shares_count = (wishlist.shares_count or 0) + 1
    db.session.commit()
    return wishlist.shares_count


# ============================================================
# READS
# ============================================================

def list_user_wishlists(user_id):
    return Wishlist.query.filter_by(user_id=user_id) \
        .order_by(Wishlist.created_at.desc(), Wishlist.id.desc()).all()


def get_public_wishlist(username, slug):
    """Look up /<username>/<slug>. Private wishlists are not found."""
    owner = User.query.filter_by(username=username).first()
    if not owner:
        raise WishlistNotFoundError("Wishlist not found")

    wishlist = Wishlist.query.filter_by(user_id=owner.id, slug=slug).first()
    if not wishlist or wishlist.visibility == 'private':
        raise WishlistNotFoundError("Wishlist not found")
    return wishlist


def item_progress(item):
    """
    Funding state of an item.

    total_paid sums the payment progress of every claim that still holds
    units; paid_by lists the usernames of spenders who sent money.
    """
    from wishwallet.services.claims_service import payment_summary, HOLDING_STATUSES

    total_needed = float(item.unit_price_estimate or 0) * (item.qty_total or 0)
    total_paid = 0.0
    paid_by = []

    for claim in item.claims.order_by(Claim.id).all():
        if claim.status not in HOLDING_STATUSES:
            continue
        paid = payment_summary(claim)['amount_paid']
        total_paid += paid
        if paid > 0 and claim.supporter is not None \
                and claim.supporter.username not in paid_by:
            paid_by.append(claim.supporter.username)

    return {
        'item_id': item.id,
        'total_needed': total_needed,
        'total_paid': total_paid,
        'remaining': max(0.0, total_needed - total_paid),
        'is_paid_for': total_needed > 0 and total_paid >= total_needed,
        'is_fully_claimed': (item.qty_claimed or 0) >= (item.qty_total or 0),
        'available_quantity': item.available_quantity(),
        'paid_by': paid_by,
    }


def goal_progress(goal):
    target = goal.target_amount or 0
    raised = goal.amount_raised or 0
    percentage = round_half_up(raised / target * 100) if target > 0 else 0
    return {
        'goal_id': goal.id,
        'target_amount': target,
        'amount_raised': raised,
        'percentage': min(percentage, 100),
        'is_reached': target > 0 and raised >= target,
    }


def serialize_wishlist(wishlist, include_progress=True):
    items = wishlist.items.order_by(WishlistItem.id).all()
    goals = wishlist.goals.order_by(Goal.id).all()

    data = {
        'id': wishlist.id,
        'title': wishlist.title,
        'slug': wishlist.slug,
        'occasion': wishlist.occasion,
        'wishlist_date': wishlist.wishlist_date.isoformat() if wishlist.wishlist_date else None,
        'story': wishlist.story,
        'visibility': wishlist.visibility,
        'shares_count': wishlist.shares_count,
        'owner_username': wishlist.owner.username,
        'items': [],
        'goals': [],
    }

    for item in items:
        entry = {
            'id': item.id,
            'name': item.name,
            'unit_price_estimate': item.unit_price_estimate,
            'qty_total': item.qty_total,
            'qty_claimed': item.qty_claimed,
            'product_url': item.product_url,
        }
        if include_progress:
            entry['progress'] = item_progress(item)
        data['items'].append(entry)

    for goal in goals:
        entry = {
            'id': goal.id,
            'title': goal.title,
            'target_amount': goal.target_amount,
            'amount_raised': goal.amount_raised,
            'deadline': goal.deadline.isoformat() if goal.deadline else None,
        }
        if include_progress:
            entry['progress'] = goal_progress(goal)
        data['goals'].append(entry)

    return data
