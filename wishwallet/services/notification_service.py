"""
NOTIFICATION SERVICE
====================

In-app notifications. These helpers only add rows to the session; the
calling service owns the commit so a notification is stored together
with the money movement it describes.
"""

import logging

from wishwallet.extensions import db
from wishwallet.models import Notification, User, PayoutStatus
from wishwallet.services.email_service import send_email
from wishwallet.utils import format_naira

logger = logging.getLogger(__name__)


PAYOUT_STATUS_MESSAGES = {
    PayoutStatus.REQUESTED.value: 'Your withdrawal request has been submitted and is under review.',
    PayoutStatus.PROCESSING.value: 'Your withdrawal has been approved and is now being processed.',
    PayoutStatus.PAID.value: 'Your withdrawal has been completed and funds have been transferred.',
    PayoutStatus.FAILED.value: ('Your withdrawal request was not approved. '
                                'Please contact support for more information.'),
}


class NotificationError(Exception):
    pass


def add_notification(user_id, type, title, message, data=None):
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data=data or {}
    )
    db.session.add(notification)
    return notification


def notify_payment_received(recipient, item_name, amount, reference, claim_id=None, sender_username=None):
    message = f'You received {format_naira(amount)} for "{item_name}"'
    if sender_username:
        message += f' from {sender_username}'
    return add_notification(
        recipient.id,
        'payment_received',
        'Payment Received',
        message,
        {
            'claim_id': claim_id,
            'item_name': item_name,
            'amount': amount,
            'payment_ref': reference,
            'sender_username': sender_username,
        }
    )


def notify_contribution_received(recipient, goal, amount, contributor_name):
    return add_notification(
        recipient.id,
        'contribution_received',
        'Contribution Received',
        f'{contributor_name} contributed {format_naira(amount)} to "{goal.title}"',
        {'goal_id': goal.id, 'amount': amount}
    )


def notify_admins_of_withdrawal(payout, user):
    """Notify every admin about a new payout request. Returns admin count."""
    admins = User.query.filter_by(is_admin=True).all()
    for admin in admins:
        add_notification(
            admin.id,
            'new_withdrawal_request',
            'New Withdrawal Request',
            f'{format_naira(payout.amount)} withdrawal requested by {user.email}',
            {
                'payout_id': payout.id,
                'amount': payout.amount,
                'user_email': user.email,
                'bank_code': payout.destination_bank_code,
                'account_number': payout.destination_account,
            }
        )

    if not admins:
        logger.warning("No admin accounts to notify about payout %s", payout.id)
    return len(admins)


def notify_withdrawal_status_change(payout, old_status, new_status):
    user = payout.wallet.user
    message = PAYOUT_STATUS_MESSAGES.get(new_status, 'Your withdrawal status has been updated.')
    notification = add_notification(
        user.id,
        'withdrawal_status_change',
        'Withdrawal Status Update',
        message,
        {
            'payout_id': payout.id,
            'old_status': old_status,
            'new_status': new_status,
            'amount': payout.amount,
        }
    )

    send_email(
        user.email,
        'Withdrawal Status Update',
        f'{message}\n\nAmount: {format_naira(payout.amount)}',
        'withdrawal_status_update',
        {'payout_id': payout.id, 'old_status': old_status, 'new_status': new_status}
    )
    return notification


# ============================================================
# READ SIDE
# ============================================================

def list_notifications(user_id, unread_only=False):
    query = Notification.query.filter_by(user_id=user_id)
    if unread_only:
        query = query.filter_by(is_read=False)
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def mark_read(notification_id, user_id):
    notification = db.session.get(Notification, notification_id)
    if not notification or notification.user_id != user_id:
        raise NotificationError("Notification not found")

    notification.is_read = True
    db.session.commit()
    return notification


def mark_all_read(user_id):
    count = Notification.query.filter_by(user_id=user_id, is_read=False) \
        .update({'is_read': True})
    db.session.commit()
    return count
