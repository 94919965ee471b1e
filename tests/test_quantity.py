from wishwallet.services import quantity as qty
from wishwallet.utils import format_naira, round_half_up, slugify


def test_quantity_line_wins_over_amount():
    assert qty.parse_quantity('Quantity: 3\nfor the twins', 10000, 5000) == 3
    assert qty.parse_quantity('Quantity:7', 0, 0) == 7


def test_quantity_prefix_without_number_counts_one():
    assert qty.parse_quantity('Quantity: lots', 20000, 5000) == 1


def test_quantity_from_amount_paid_rounds_half_up():
    assert qty.parse_quantity(None, 12500, 5000) == 3
    assert qty.parse_quantity('', 12400, 5000) == 2
    assert qty.parse_quantity('thanks!', 1000, 5000) == 1


def test_guest_note_falls_through_to_division():
    assert qty.parse_quantity('Guest payment - Quantity: 3', 15000, 5000) == 3
    assert qty.parse_quantity('Guest payment - Quantity: 3', 0, 5000) == 1


def test_quantity_defaults_to_one():
    assert qty.parse_quantity(None) == 1
    assert qty.parse_quantity('hello', 500, 0) == 1


def test_build_quantity_note():
    assert qty.build_quantity_note(1) is None
    assert qty.build_quantity_note(1, 'hi') == 'hi'
    assert qty.build_quantity_note(2) == 'Quantity: 2'
    assert qty.build_quantity_note(4, 'hi') == 'Quantity: 4\nhi'


def test_split_note_hides_quantity_line():
    assert qty.split_note('Quantity: 2\nline one\nline two') == ('Quantity: 2', 'line one\nline two')
    assert qty.split_note('just a note') == (None, 'just a note')
    assert qty.user_note('Quantity: 2') == ''


def test_merge_user_note_keeps_quantity_line():
    assert qty.merge_user_note('Quantity: 2\nold', 'new') == 'Quantity: 2\nnew'
    assert qty.merge_user_note('Quantity: 2\nold', '') == 'Quantity: 2'
    assert qty.merge_user_note('old', 'new') == 'new'
    assert qty.merge_user_note(None, '  ') is None


def test_rewrite_quantity():
    assert qty.rewrite_quantity('Quantity: 5\nnote', 3) == 'Quantity: 3\nnote'
    assert qty.rewrite_quantity('Quantity: 5\nnote', 1) == 'note'
    assert qty.rewrite_quantity('Quantity: 2', 1) == ''
    assert qty.rewrite_quantity('plain', 1) == 'plain'


def test_pin_quantity():
    assert qty.pin_quantity(None, 1) == 'Quantity: 1'
    assert qty.pin_quantity('thanks', 1) == 'Quantity: 1\nthanks'
    assert qty.pin_quantity('Quantity: 3\nthanks', 2) == 'Quantity: 2\nthanks'
    assert qty.pin_quantity('Guest payment - Quantity: 2', 2) == 'Quantity: 2\nGuest payment - Quantity: 2'
    assert qty.parse_quantity(qty.pin_quantity('hi', 1), amount_paid=5000, unit_price=1000) == 1


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(-2.5) == -2
    assert round_half_up(2.4999) == 2


def test_format_naira():
    assert format_naira(5000) == '₦5,000'
    assert format_naira(1234567.5) == '₦1,234,568'
    assert format_naira(None) == '₦0'
    assert format_naira(-250) == '-₦250'


def test_slugify():
    assert slugify('My 30th Birthday!!') == 'my-30th-birthday'
    assert slugify('   ') == 'wishlist'
