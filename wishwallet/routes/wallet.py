"""
WALLET ROUTES
=============

Uses wallet_service and payout_service for all financial operations.
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from wishwallet.services.wallet_service import (
    get_wallet_summary, WalletError, InsufficientBalanceError, InvalidAmountError
)
from wishwallet.services.payout_service import request_payout, PayoutError
from wishwallet.services.notification_service import (
    list_notifications, mark_read, mark_all_read, NotificationError
)
from wishwallet.services.authorization_service import AuthorizationError

wallet_bp = Blueprint('wallet', __name__, url_prefix='/api')


# ============== VIEW WALLET ==============
@wallet_bp.route('/wallet', methods=['GET'])
@login_required
def view_wallet():
    try:
        summary = get_wallet_summary(current_user.id)
    except WalletError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify({'wallet': summary})


# ============== REQUEST PAYOUT ==============
@wallet_bp.route('/wallet/payouts', methods=['POST'])
@login_required
def withdraw():
    data = request.get_json(silent=True) or {}
    try:
        payout = request_payout(current_user.id, float(data.get('amount') or 0))
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 403
    except (InsufficientBalanceError, InvalidAmountError) as e:
        return jsonify({'error': str(e)}), 400
    except (WalletError, PayoutError) as e:
        return jsonify({'error': str(e)}), 400
    except ValueError:
        return jsonify({'error': 'Please enter a valid amount'}), 400

    return jsonify({'payout': payout.to_dict()}), 201


# ============== NOTIFICATIONS ==============
@wallet_bp.route('/notifications', methods=['GET'])
@login_required
def notifications():
    unread_only = request.args.get('unread') == '1'
    items = list_notifications(current_user.id, unread_only=unread_only)
    return jsonify({'notifications': [n.to_dict() for n in items]})


@wallet_bp.route('/notifications/<int:notification_id>/read', methods=['POST'])
@login_required
def read_notification(notification_id):
    try:
        notification = mark_read(notification_id, current_user.id)
    except NotificationError as e:
        return jsonify({'error': str(e)}), 404
    return jsonify({'notification': notification.to_dict()})


@wallet_bp.route('/notifications/read-all', methods=['POST'])
@login_required
def read_all_notifications():
    return jsonify({'updated': mark_all_read(current_user.id)})
