"""
ADMIN ROUTES
============

Admin-specific actions:
- Payout queue and status changes
- Sending payouts through Paystack transfers, OTP finalize and transfer checks
- Wallet audit
- Periodic jobs (claim expiry, payment reminders)
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from wishwallet.extensions import db
from wishwallet.models import Payout, PayoutStatus, Wallet
from wishwallet.services.authorization_service import is_admin, AuthorizationError
from wishwallet.services.payout_service import (
    list_payouts, update_payout_status, process_payout, finalize_payout, sync_payout,
    PayoutError, PayoutNotFoundError, InvalidTransitionError
)
from wishwallet.services.wallet_service import recalculate_wallet_balance, WalletError
from wishwallet.services.claims_service import expire_stale_claims, ClaimError
from wishwallet.services.reminder_service import send_due_reminders
from wishwallet.services.paystack import PaystackError

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def _forbidden():
    return jsonify({'error': 'Admin access required'}), 403


# ============== ADMIN DASHBOARD ==============
@admin_bp.route('/dashboard')
@login_required
def dashboard():
    if not is_admin(current_user.id):
        return _forbidden()

    counts = {
        status.value: Payout.query.filter_by(status=status.value).count()
        for status in PayoutStatus
    }
    total_balance = db.session.query(db.func.sum(Wallet.balance)).scalar() or 0.0

    return jsonify({
        'payouts': counts,
        'wallets': Wallet.query.count(),
        'total_wallet_balance': total_balance,
    })


# ============== PAYOUTS ==============
@admin_bp.route('/payouts')
@login_required
def payouts():
    if not is_admin(current_user.id):
        return _forbidden()

    status = request.args.get('status')
    result = []
    for payout in list_payouts(status):
        entry = payout.to_dict()
        entry['user'] = payout.wallet.user.to_dict()
        result.append(entry)
    return jsonify({'payouts': result})


@admin_bp.route('/payouts/<int:payout_id>/status', methods=['POST'])
@login_required
def change_payout_status(payout_id):
    if not is_admin(current_user.id):
        return _forbidden()

    data = request.get_json(silent=True) or {}
    try:
        payout = update_payout_status(payout_id, data.get('status'), current_user.id)
    except PayoutNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 409
    except InvalidTransitionError as e:
        return jsonify({'error': str(e)}), 400
    except PayoutError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'payout': payout.to_dict()})


@admin_bp.route('/payouts/<int:payout_id>/process', methods=['POST'])
@login_required
def send_payout(payout_id):
    if not is_admin(current_user.id):
        return _forbidden()

    try:
        result = process_payout(payout_id, current_user.id)
    except PayoutNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 409
    except (PayoutError, PaystackError) as e:
        return jsonify({'error': str(e)}), 400

    if not result['success']:
        return jsonify(result), 502
    return jsonify(result)


@admin_bp.route('/payouts/<int:payout_id>/finalize', methods=['POST'])
@login_required
def finalize_transfer(payout_id):
    if not is_admin(current_user.id):
        return _forbidden()

    data = request.get_json(silent=True) or {}
    try:
        result = finalize_payout(payout_id, current_user.id, str(data.get('otp') or '').strip())
    except PayoutNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 409
    except (PayoutError, PaystackError) as e:
        return jsonify({'error': str(e)}), 400

    if not result['success']:
        return jsonify(result), 502
    return jsonify(result)


@admin_bp.route('/payouts/<int:payout_id>/verify', methods=['POST'])
@login_required
def verify_transfer(payout_id):
    if not is_admin(current_user.id):
        return _forbidden()

    try:
        result = sync_payout(payout_id, current_user.id)
    except PayoutNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 409
    except (PayoutError, PaystackError) as e:
        return jsonify({'error': str(e)}), 400

    if not result['success']:
        return jsonify(result), 502
    return jsonify(result)


# ============== WALLET AUDIT ==============
@admin_bp.route('/wallets/<int:wallet_id>/recalculate', methods=['POST'])
@login_required
def recalculate(wallet_id):
    if not is_admin(current_user.id):
        return _forbidden()

    try:
        result = recalculate_wallet_balance(wallet_id)
    except WalletError as e:
        return jsonify({'error': str(e)}), 404

    return jsonify(result)


# ============== PERIODIC JOBS ==============
@admin_bp.route('/jobs/expire-claims', methods=['POST'])
@login_required
def run_expiry():
    if not is_admin(current_user.id):
        return _forbidden()

    try:
        expired = expire_stale_claims()
    except ClaimError as e:
        return jsonify({'error': str(e)}), 500
    return jsonify({'expired': expired})


@admin_bp.route('/jobs/send-reminders', methods=['POST'])
@login_required
def run_reminders():
    if not is_admin(current_user.id):
        return _forbidden()

    return jsonify(send_due_reminders())
