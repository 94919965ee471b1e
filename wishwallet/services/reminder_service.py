"""
REMINDER SERVICE
================

Handles:
- Scheduling the automatic payment reminder for a new claim
- Spender-chosen reminder dates
- Cancelling reminders once a claim is paid, cancelled or removed
- Sending due reminders and rescheduling them

A claim has at most one active (scheduled) reminder.
"""

import logging
from datetime import datetime, timedelta

from flask import current_app

from wishwallet.extensions import db
from wishwallet.models import Claim, Reminder, ReminderStatus
from wishwallet.services.email_service import send_email
from wishwallet.utils import format_naira

logger = logging.getLogger(__name__)


class ReminderError(Exception):
    """Base exception for reminder operations"""
    pass


def _interval():
    return timedelta(days=current_app.config.get('REMINDER_INTERVAL_DAYS', 2))


def get_active_reminder(claim_id):
    return Reminder.query.filter_by(
        claim_id=claim_id,
        status=ReminderStatus.SCHEDULED.value
    ).first()


# ============================================================
# SCHEDULING
# ============================================================

def schedule_reminder(claim, contact, when=None):
    """
    Add (or move) the claim's active reminder. Does not commit.
    """
    when = when or datetime.utcnow() + _interval()
    reminder = get_active_reminder(claim.id)
    if reminder:
        reminder.schedule_at = when
        reminder.contact = contact or reminder.contact
    else:
        reminder = Reminder(
            claim_id=claim.id,
            contact=contact,
            channel='email',
            schedule_at=when,
            status=ReminderStatus.SCHEDULED.value
        )
        db.session.add(reminder)
    return reminder


def create_automatic_reminder(claim, spender_username, item_name, item_price, quantity=1):
    """
    First reminder goes out one interval after the claim is made.
    Sends a confirmation email; email failure does not undo the reminder.
    """
    try:
        reminder = schedule_reminder(claim, claim.supporter_contact)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        raise ReminderError(f"Failed to create reminder: {str(e)}")

    logger.info("Reminder for claim %s scheduled at %s", claim.id, reminder.schedule_at)

    if reminder.contact:
        total = (item_price or 0) * quantity
        send_email(
            reminder.contact,
            'Reminder Set',
            (f'Hi {spender_username},\n\n'
             f'You claimed {quantity} x "{item_name}" ({format_naira(total)}).\n'
             f'Your first reminder is on {reminder.schedule_at:%A, %B %d, %Y}. '
             f'We will remind you every {_interval().days} days until the item is fully paid.'),
            'reminder_confirmation',
            {'claim_id': claim.id, 'item_name': item_name, 'quantity': quantity}
        )

    return reminder


def update_reminder_schedule(claim_id, new_schedule_date, spender_username=None, now=None):
    """
    Move the claim's reminder to a date the spender picked.
    Creates a reminder when none is active.
    """
    now = now or datetime.utcnow()
    claim = db.session.get(Claim, claim_id)
    if not claim:
        raise ReminderError(f"Claim {claim_id} not found")

    if new_schedule_date <= now:
        raise ReminderError("Reminder date must be in the future")

    try:
        reminder = schedule_reminder(claim, claim.supporter_contact, when=new_schedule_date)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        raise ReminderError(f"Failed to update reminder: {str(e)}")

    if reminder.contact:
        send_email(
            reminder.contact,
            'Reminder Updated',
            (f'Hi {spender_username or "there"},\n\n'
             f'Your reminder for "{claim.item.name}" is now set for '
             f'{new_schedule_date:%A, %B %d, %Y at %H:%M}.'),
            'reminder_update',
            {'claim_id': claim.id}
        )

    return reminder


def cancel_reminder(claim_id, reason='item_fulfilled', commit=True):
    """Cancel active reminders for a claim. Returns number cancelled."""
    count = Reminder.query.filter_by(
        claim_id=claim_id,
        status=ReminderStatus.SCHEDULED.value
    ).update({'status': ReminderStatus.CANCELLED.value})

    if commit:
        db.session.commit()

    if count:
        logger.info("Cancelled %d reminder(s) for claim %s (%s)", count, claim_id, reason)
    return count


def get_reminder_for_claim(claim_id):
    return get_active_reminder(claim_id)


# ============================================================
# DELIVERY
# ============================================================

def send_payment_reminder(reminder, summary, now=None):
    """
    Email one payment reminder and push the schedule one interval out.
    The reminder keeps its slot when the email fails, so the next run retries.
    """
    now = now or datetime.utcnow()
    claim = reminder.claim
    username = claim.supporter.username if claim.supporter else 'there'

    result = send_email(
        reminder.contact,
        'Payment Reminder',
        (f'Hi {username},\n\n'
         f'This is a friendly reminder about "{claim.item.name}" '
         f'(quantity {summary["quantity"]}).\n'
         f'Remaining amount: {format_naira(summary["remaining_amount"])}.\n\n'
         f'We will continue sending you reminders every {_interval().days} days '
         f'until the item is fully paid.'),
        'payment_reminder',
        {
            'claim_id': claim.id,
            'item_name': claim.item.name,
            'quantity': summary['quantity'],
            'remaining_amount': summary['remaining_amount'],
        }
    )

    if result['success']:
        reminder.last_sent_at = now
        reminder.schedule_at = now + _interval()
    return result


def send_due_reminders(now=None):
    """
    Send every reminder that is due.

    Claims that are already fully paid get their reminder cancelled
    instead of emailed.

    Returns: {'sent': int, 'cancelled': int, 'failed': int}
    """
    from wishwallet.services.claims_service import payment_summary

    now = now or datetime.utcnow()
    due = Reminder.query.filter(
        Reminder.status == ReminderStatus.SCHEDULED.value,
        Reminder.schedule_at <= now
    ).all()

    stats = {'sent': 0, 'cancelled': 0, 'failed': 0}
    for reminder in due:
        summary = payment_summary(reminder.claim)
        if summary['is_fulfilled']:
            reminder.status = ReminderStatus.CANCELLED.value
            stats['cancelled'] += 1
            continue

        if not reminder.contact:
            logger.warning("Reminder %s has no contact, cancelling", reminder.id)
            reminder.status = ReminderStatus.CANCELLED.value
            stats['cancelled'] += 1
            continue

        result = send_payment_reminder(reminder, summary, now=now)
        if result['success']:
            stats['sent'] += 1
        else:
            stats['failed'] += 1

    db.session.commit()
    logger.info("Reminder run: %s", stats)
    return stats
