"""
CLAIM ROUTES
============

Spender side: claim items, list and summarise claims, change status,
edit notes, remove units, manage the payment reminder and start a cash
payment toward a claim.
"""

from datetime import datetime, timezone

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from wishwallet.extensions import db
from wishwallet.models import Claim
from wishwallet.services.claims_service import (
    create_claim, fetch_user_claims, get_user_claim_stats, payment_summary,
    serialize_claim, update_claim_status, save_claim_note, delete_claim,
    ClaimError, InvalidQuantityError, InvalidStatusError, ItemUnavailableError
)
from wishwallet.services.reminder_service import (
    update_reminder_schedule, get_reminder_for_claim, ReminderError
)
from wishwallet.services.payment_service import start_claim_payment
from wishwallet.services.wallet_service import WalletError
from wishwallet.services.authorization_service import (
    can_manage_claim, require_authorization, AuthorizationError
)

claims_bp = Blueprint('claims', __name__, url_prefix='/api/claims')


def _owned_claim(claim_id):
    """Load a claim the current user may manage, or raise."""
    claim = db.get_or_404(Claim, claim_id)
    require_authorization(can_manage_claim, current_user.id, claim_id)
    return claim


# ============== CREATE ==============
@claims_bp.route('', methods=['POST'])
@login_required
def create():
    data = request.get_json(silent=True) or {}
    try:
        claim = create_claim(
            int(data.get('item_id') or 0),
            current_user.id,
            quantity=int(data.get('quantity', 1)),
            note=data.get('note')
        )
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 403
    except ItemUnavailableError as e:
        return jsonify({'error': str(e)}), 409
    except ClaimError as e:
        return jsonify({'error': str(e)}), 400
    except ValueError:
        return jsonify({'error': 'Please enter a valid quantity'}), 400

    return jsonify({'claim': serialize_claim(claim)}), 201


# ============== SPENDER LIST ==============
@claims_bp.route('', methods=['GET'])
@login_required
def my_claims():
    claims = fetch_user_claims(current_user.id)
    return jsonify({'claims': [serialize_claim(c) for c in claims]})


@claims_bp.route('/stats', methods=['GET'])
@login_required
def stats():
    return jsonify({'stats': get_user_claim_stats(current_user.id)})


@claims_bp.route('/<int:claim_id>/payment', methods=['GET'])
@login_required
def payment(claim_id):
    try:
        claim = _owned_claim(claim_id)
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 403
    return jsonify({'payment': payment_summary(claim)})


# ============== UPDATES ==============
@claims_bp.route('/<int:claim_id>/status', methods=['PATCH'])
@login_required
def change_status(claim_id):
    data = request.get_json(silent=True) or {}
    try:
        _owned_claim(claim_id)
        claim = update_claim_status(claim_id, data.get('status'))
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 403
    except InvalidStatusError as e:
        return jsonify({'error': str(e)}), 400
    except ItemUnavailableError as e:
        return jsonify({'error': str(e)}), 409
    except ClaimError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'claim': serialize_claim(claim)})


@claims_bp.route('/<int:claim_id>/note', methods=['PUT'])
@login_required
def note(claim_id):
    data = request.get_json(silent=True) or {}
    try:
        _owned_claim(claim_id)
        claim = save_claim_note(claim_id, data.get('note') or '')
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 403
    except ClaimError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'claim': serialize_claim(claim)})


@claims_bp.route('/<int:claim_id>', methods=['DELETE'])
@login_required
def remove(claim_id):
    quantity = request.args.get('quantity')
    if quantity is not None:
        if not quantity.strip().isdigit():
            return jsonify({'error': 'Quantity must be a whole number'}), 400
        quantity = int(quantity)
    try:
        _owned_claim(claim_id)
        result = delete_claim(claim_id, quantity_to_remove=quantity)
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 403
    except InvalidQuantityError as e:
        return jsonify({'error': str(e)}), 400
    except ClaimError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify(result)


# ============== REMINDER ==============
@claims_bp.route('/<int:claim_id>/reminder', methods=['GET'])
@login_required
def reminder(claim_id):
    try:
        _owned_claim(claim_id)
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 403

    active = get_reminder_for_claim(claim_id)
    return jsonify({'reminder': active.to_dict() if active else None})


@claims_bp.route('/<int:claim_id>/reminder', methods=['PUT'])
@login_required
def set_reminder(claim_id):
    data = request.get_json(silent=True) or {}
    try:
        _owned_claim(claim_id)
        when = datetime.fromisoformat(data.get('schedule_at') or '')
        if when.tzinfo is not None:
            when = when.astimezone(timezone.utc).replace(tzinfo=None)
        active = update_reminder_schedule(claim_id, when, spender_username=current_user.username)
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 403
    except ValueError:
        return jsonify({'error': 'schedule_at must be an ISO date and time'}), 400
    except ReminderError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'reminder': active.to_dict()})


# ============== SEND CASH ==============
@claims_bp.route('/<int:claim_id>/pay', methods=['POST'])
@login_required
def pay(claim_id):
    """Checkout data for cash toward a claim; applied on verify/webhook."""
    data = request.get_json(silent=True) or {}
    db.get_or_404(Claim, claim_id)
    try:
        checkout = start_claim_payment(claim_id, current_user.id, float(data.get('amount') or 0))
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 403
    except WalletError as e:
        return jsonify({'error': str(e)}), 400
    except ValueError:
        return jsonify({'error': 'Please enter a valid amount'}), 400

    return jsonify({'checkout': checkout})
