"""
CLAIM QUANTITY ACCOUNTING
=========================

A claim does not store how many units it covers. The count is recovered
from two signals, in this order:

1. A leading "Quantity: N" line in the claim note (written by send-cash
   claims when N > 1).
2. amount_paid / unit price, rounded, never below 1 (bought-already claims).

Anything else counts as one unit. Everything after the first line of a
quantity note is the spender's own note and must survive every rewrite.
"""

import re

from wishwallet.utils import round_half_up

QUANTITY_PREFIX = 'Quantity:'
QUANTITY_PATTERN = re.compile(r'Quantity:\s*(\d+)')


def has_quantity_line(note):
    return bool(note) and note.startswith(QUANTITY_PREFIX)


def parse_quantity(note, amount_paid=0, unit_price=0):
    """Return the number of units a claim covers."""
    if has_quantity_line(note):
        match = QUANTITY_PATTERN.match(note)
        if match:
            return int(match.group(1))
        return 1

    amount_paid = amount_paid or 0
    unit_price = unit_price or 0
    if amount_paid > 0 and unit_price > 0:
        return max(1, round_half_up(amount_paid / unit_price))

    return 1


def split_note(note):
    """Split a note into (quantity_line, user_note)."""
    if not note:
        return None, ''
    if has_quantity_line(note):
        lines = note.split('\n')
        return lines[0], '\n'.join(lines[1:])
    return None, note


def user_note(note):
    return split_note(note)[1]


def build_quantity_note(quantity, note=None):
    """Note for a new claim: quantity line only when more than one unit."""
    note = note or ''
    if quantity > 1:
        return f'{QUANTITY_PREFIX} {quantity}' + (f'\n{note}' if note else '')
    return note or None


def merge_user_note(existing_note, new_user_note):
    """Replace the spender's note while keeping the internal quantity line."""
    quantity_line, _ = split_note(existing_note)
    new_user_note = (new_user_note or '').strip()
    if quantity_line:
        return f'{quantity_line}\n{new_user_note}' if new_user_note else quantity_line
    return new_user_note or None


def rewrite_quantity(note, remaining):
    """
    Rewrite the quantity line after units were removed from a claim.
    Notes without a quantity line are returned untouched; with one unit
    left the line is dropped.
    """
    if not has_quantity_line(note):
        return note
    _, rest = split_note(note)
    if remaining > 1:
        return f'{QUANTITY_PREFIX} {remaining}' + (f'\n{rest}' if rest else '')
    return rest


def pin_quantity(note, quantity):
    """
    Write an explicit quantity line, even for a single unit, so the count no
    longer follows amount_paid.
    """
    quantity_line, rest = split_note(note)
    if quantity_line is None:
        rest = note or ''
    return f'{QUANTITY_PREFIX} {quantity}' + (f'\n{rest}' if rest else '')
