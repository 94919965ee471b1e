import re
import math


def format_naira(amount):
    """Format an amount as whole naira, e.g. 5000 -> '₦5,000'."""
    value = round_half_up(amount or 0)
    sign = '-' if value < 0 else ''
    return f'{sign}₦{abs(value):,}'


def round_half_up(value):
    """Round to the nearest integer, halves go up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(float(value) + 0.5))


def slugify(title):
    slug = re.sub(r'[^a-z0-9]+', '-', (title or '').lower()).strip('-')
    return slug or 'wishlist'
