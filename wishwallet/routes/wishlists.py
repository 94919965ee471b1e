"""
WISHLIST ROUTES
===============

Owner-side management plus the public /<username>/<slug> view and the
checkout entry points for goal contributions and guest item payments.
"""

from datetime import date

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from wishwallet.extensions import db
from wishwallet.models import Wishlist
from wishwallet.services.wishlist_service import (
    create_wishlist, add_item, add_goal, record_share, list_user_wishlists,
    get_public_wishlist, serialize_wishlist, WishlistError, WishlistNotFoundError
)
from wishwallet.services.payment_service import (
    start_goal_contribution, start_guest_payment, PaymentError
)
from wishwallet.services.claims_service import ClaimError, ClaimNotFoundError
from wishwallet.services.wallet_service import WalletError
from wishwallet.services.authorization_service import AuthorizationError

wishlists_bp = Blueprint('wishlists', __name__, url_prefix='/api')


def _parse_date(value):
    if not value:
        return None
    return date.fromisoformat(value)


# ============== OWNER: CREATE / LIST ==============
@wishlists_bp.route('/wishlists', methods=['GET'])
@login_required
def my_wishlists():
    wishlists = list_user_wishlists(current_user.id)
    return jsonify({'wishlists': [serialize_wishlist(w, include_progress=False) for w in wishlists]})


@wishlists_bp.route('/wishlists', methods=['POST'])
@login_required
def create():
    data = request.get_json(silent=True) or {}
    try:
        wishlist = create_wishlist(
            current_user.id,
            data.get('title'),
            occasion=data.get('occasion'),
            wishlist_date=_parse_date(data.get('wishlist_date')),
            story=data.get('story'),
            visibility=data.get('visibility', 'public')
        )
    except ValueError:
        return jsonify({'error': 'Dates must look like YYYY-MM-DD'}), 400
    except WishlistError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'wishlist': serialize_wishlist(wishlist)}), 201


@wishlists_bp.route('/wishlists/<int:wishlist_id>', methods=['GET'])
@login_required
def view(wishlist_id):
    wishlist = db.get_or_404(Wishlist, wishlist_id)
    if wishlist.user_id != current_user.id:
        return jsonify({'error': 'You do not own this wishlist'}), 403
    return jsonify({'wishlist': serialize_wishlist(wishlist)})


# ============== OWNER: ITEMS AND GOALS ==============
@wishlists_bp.route('/wishlists/<int:wishlist_id>/items', methods=['POST'])
@login_required
def create_item(wishlist_id):
    data = request.get_json(silent=True) or {}
    try:
        item = add_item(
            wishlist_id,
            current_user.id,
            data.get('name'),
            unit_price_estimate=data.get('unit_price_estimate', 0),
            qty_total=data.get('qty_total', 1),
            product_url=data.get('product_url')
        )
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 403
    except (WishlistError, ValueError, TypeError) as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'item': {
        'id': item.id,
        'name': item.name,
        'unit_price_estimate': item.unit_price_estimate,
        'qty_total': item.qty_total,
        'qty_claimed': item.qty_claimed,
    }}), 201


@wishlists_bp.route('/wishlists/<int:wishlist_id>/goals', methods=['POST'])
@login_required
def create_goal(wishlist_id):
    data = request.get_json(silent=True) or {}
    try:
        goal = add_goal(
            wishlist_id,
            current_user.id,
            data.get('title'),
            data.get('target_amount'),
            deadline=_parse_date(data.get('deadline'))
        )
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 403
    except (WishlistError, ValueError, TypeError) as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'goal': {
        'id': goal.id,
        'title': goal.title,
        'target_amount': goal.target_amount,
        'amount_raised': goal.amount_raised,
    }}), 201


# ============== PUBLIC ==============
@wishlists_bp.route('/w/<username>/<slug>', methods=['GET'])
def public_view(username, slug):
    try:
        wishlist = get_public_wishlist(username, slug)
    except WishlistNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    return jsonify({'wishlist': serialize_wishlist(wishlist)})


@wishlists_bp.route('/wishlists/<int:wishlist_id>/share', methods=['POST'])
def share(wishlist_id):
    try:
        count = record_share(wishlist_id)
    except WishlistNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    return jsonify({'shares_count': count})


@wishlists_bp.route('/goals/<int:goal_id>/contribute', methods=['POST'])
def contribute(goal_id):
    """Checkout data for a cash goal contribution; the charge is applied on verify/webhook."""
    data = request.get_json(silent=True) or {}
    email = data.get('email') or (current_user.email if current_user.is_authenticated else None)
    if not email:
        return jsonify({'error': 'Email is required'}), 400

    try:
        checkout = start_goal_contribution(
            goal_id,
            float(data.get('amount') or 0),
            email,
            display_name=data.get('display_name'),
            is_anonymous=bool(data.get('is_anonymous')),
            supporter_id=current_user.id if current_user.is_authenticated else None
        )
    except WalletError as e:
        return jsonify({'error': str(e)}), 400
    except PaymentError as e:
        return jsonify({'error': str(e)}), 404
    except ValueError:
        return jsonify({'error': 'Please enter a valid amount'}), 400

    return jsonify({'checkout': checkout})


@wishlists_bp.route('/items/<int:item_id>/guest-checkout', methods=['POST'])
def guest_checkout(item_id):
    data = request.get_json(silent=True) or {}
    email = data.get('email')
    if not email:
        return jsonify({'error': 'Email is required'}), 400

    try:
        checkout = start_guest_payment(item_id, int(data.get('quantity', 1)), email)
    except ClaimNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except (ClaimError, WalletError) as e:
        return jsonify({'error': str(e)}), 400
    except ValueError:
        return jsonify({'error': 'Please enter a valid quantity'}), 400

    return jsonify({'checkout': checkout})
