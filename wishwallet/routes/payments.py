"""
PAYMENT ROUTES
==============

POST /api/verify-payment     - called after the inline checkout closes
POST /api/paystack/webhook   - Paystack server-to-server events
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user
from wishwallet.services.payment_service import (
    confirm_payment, process_webhook, PaymentError, PaymentNotSuccessfulError,
    InvalidSignatureError, PaystackError
)
from wishwallet.services.claims_service import ClaimError, ClaimNotFoundError
from wishwallet.services.wallet_service import WalletError, DuplicateTransactionError
from wishwallet.services.authorization_service import AuthorizationError

logger = logging.getLogger(__name__)

payments_bp = Blueprint('payments', __name__, url_prefix='/api')


@payments_bp.route('/verify-payment', methods=['POST'])
def verify():
    data = request.get_json(silent=True) or {}
    reference = data.get('reference')
    if not reference:
        return jsonify({'error': 'Payment reference is required'}), 400

    user_id = current_user.id if current_user.is_authenticated else None

    try:
        result = confirm_payment(reference, user_id=user_id)
    except PaymentNotSuccessfulError as e:
        return jsonify({'error': str(e)}), 400
    except PaystackError as e:
        logger.error("Paystack verification failed for %s: %s", reference, e)
        return jsonify({'error': 'Failed to verify payment'}), 502
    except DuplicateTransactionError:
        return jsonify({'success': True, 'duplicate': True})
    except AuthorizationError as e:
        return jsonify({'error': str(e)}), 403
    except ClaimNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except (PaymentError, ClaimError, WalletError) as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'success': True, 'result': result})


@payments_bp.route('/paystack/webhook', methods=['POST'])
def webhook():
    signature = request.headers.get('x-paystack-signature')
    if not signature:
        logger.warning("Paystack webhook without signature")
        return jsonify({'error': 'Missing signature'}), 401

    try:
        outcome = process_webhook(request.get_data(), signature)
    except InvalidSignatureError as e:
        logger.warning("Rejected Paystack webhook: %s", e)
        return jsonify({'error': str(e)}), 401
    except ClaimNotFoundError as e:
        logger.error("Webhook payment has no claim: %s", e)
        return jsonify({'error': str(e)}), 404
    except (PaymentError, ClaimError, WalletError) as e:
        logger.error("Webhook processing failed: %s", e)
        return jsonify({'error': str(e)}), 500

    return jsonify({'received': True, 'status': outcome})
