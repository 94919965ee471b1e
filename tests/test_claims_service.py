from datetime import datetime, timedelta

import pytest

from wishwallet.extensions import db
from wishwallet.models import ClaimStatus, Reminder, ReminderStatus, WalletTransaction, Claim
from wishwallet.services import claims_service, wallet_service
from wishwallet.services.authorization_service import AuthorizationError


def test_create_claim_reserves_units_and_schedules_reminder(spender, make_item):
    item = make_item(price=5000, qty_total=3)

    claim = claims_service.create_claim(item.id, spender.id, quantity=2, note='for mum')

    assert claim.status == ClaimStatus.CONFIRMED.value
    assert claim.note == 'Quantity: 2\nfor mum'
    assert claim.supporter_contact == spender.email
    assert item.qty_claimed == 2
    assert claim.expire_at > datetime.utcnow() + timedelta(days=6)

    reminder = Reminder.query.filter_by(claim_id=claim.id).one()
    assert reminder.status == ReminderStatus.SCHEDULED.value
    assert reminder.contact == spender.email


def test_create_claim_rejects_too_many_units(spender, make_item):
    item = make_item(qty_total=2)
    claims_service.create_claim(item.id, spender.id, quantity=1)

    with pytest.raises(claims_service.ItemUnavailableError, match='Only 1 of "Headphones" left'):
        claims_service.create_claim(item.id, spender.id, quantity=2)
    assert item.qty_claimed == 1


def test_create_claim_rejects_bad_quantity(spender, item):
    with pytest.raises(claims_service.InvalidQuantityError):
        claims_service.create_claim(item.id, spender.id, quantity=0)


def test_owner_cannot_claim_own_item(owner, item):
    with pytest.raises(AuthorizationError, match='own wishlist'):
        claims_service.create_claim(item.id, owner.id)


def test_guest_payment_creates_paid_claim_and_credits_owner(owner, make_item):
    item = make_item(price=2000, qty_total=5)

    claim = claims_service.record_guest_payment(item.id, 3, 'guest_ref_1', contact='g@example.com')

    assert claim.supporter_user_id is None
    assert claim.status == ClaimStatus.FULFILLED.value
    assert claim.amount_paid == 6000
    assert claim.note == 'Guest payment - Quantity: 3'
    assert claims_service.claim_quantity(claim) == 3
    assert item.qty_claimed == 3
    assert owner.wallet.balance == 6000


def test_guest_payment_credits_amount_charged(owner, make_item):
    item = make_item(price=2500, qty_total=3)
    item.unit_price_estimate = 8000

    claim = claims_service.record_guest_payment(item.id, 2, 'guest_ref_3', amount=5000)

    assert claim.amount_paid == 5000
    assert owner.wallet.balance == 5000
    assert claims_service.claim_quantity(claim) == 2
    assert item.qty_claimed == 2

    claims_service.delete_claim(claim.id)
    assert item.qty_claimed == 0


def test_guest_payment_recorded_when_item_sold_out(owner, spender, make_item):
    item = make_item(price=2000, qty_total=1)
    claims_service.create_claim(item.id, spender.id)

    claim = claims_service.record_guest_payment(item.id, 1, 'guest_ref_4', amount=2000)

    assert claim.status == ClaimStatus.FULFILLED.value
    assert item.qty_claimed == 2
    assert item.available_quantity() == 0
    assert owner.wallet.balance == 2000


def test_guest_payment_is_recorded_once(item):
    claims_service.record_guest_payment(item.id, 1, 'guest_ref_2')
    with pytest.raises(wallet_service.DuplicateTransactionError):
        claims_service.record_guest_payment(item.id, 1, 'guest_ref_2')


def test_fetch_user_claims_newest_first(spender, make_item):
    first = claims_service.create_claim(make_item('A').id, spender.id)
    second = claims_service.create_claim(make_item('B').id, spender.id)

    claims = claims_service.fetch_user_claims(spender.id)
    assert [c.id for c in claims] == [second.id, first.id]
    assert all(c.amount_paid == 0 for c in claims)


def test_claim_stats(spender, make_item):
    a = claims_service.create_claim(make_item('A', price=1000).id, spender.id)
    claims_service.create_claim(make_item('B', price=2500).id, spender.id)
    claims_service.update_claim_status(a.id, ClaimStatus.CANCELLED.value)

    stats = claims_service.get_user_claim_stats(spender.id)
    assert stats['total'] == 2
    assert stats['cancelled'] == 1
    assert stats['confirmed'] == 1
    assert stats['total_value'] == 3500


def test_update_status_rejects_unknown_value(spender, item):
    claim = claims_service.create_claim(item.id, spender.id)
    with pytest.raises(claims_service.InvalidStatusError):
        claims_service.update_claim_status(claim.id, 'shipped')


def test_cancelling_releases_units_and_reminder(spender, make_item):
    item = make_item(qty_total=3)
    claim = claims_service.create_claim(item.id, spender.id, quantity=2)

    claims_service.update_claim_status(claim.id, ClaimStatus.CANCELLED.value)

    assert item.qty_claimed == 0
    assert Reminder.query.filter_by(claim_id=claim.id, status=ReminderStatus.SCHEDULED.value).count() == 0


def test_update_claim_releases_units_from_old_note(spender, make_item):
    item = make_item(qty_total=5)
    claim = claims_service.create_claim(item.id, spender.id, quantity=3)

    claims_service.update_claim(claim.id, {'status': 'cancelled', 'note': 'Quantity: 1'})

    assert item.qty_claimed == 0


def test_update_claim_amount_keeps_unit_count(spender, make_item):
    item = make_item(price=1000, qty_total=3)
    claim = claims_service.create_claim(item.id, spender.id)

    claims_service.update_claim(claim.id, {'amount_paid': 2600})

    assert claims_service.claim_quantity(claim) == 1
    claims_service.delete_claim(claim.id)
    assert item.qty_claimed == 0


def test_update_claim_drops_invalid_status(spender, item):
    claim = claims_service.create_claim(item.id, spender.id)

    claims_service.update_claim(claim.id, {'status': 'bogus', 'supporter_contact': 'new@example.com',
                                           'wishlist_item_id': 999})

    assert claim.status == ClaimStatus.CONFIRMED.value
    assert claim.supporter_contact == 'new@example.com'
    assert claim.wishlist_item_id == item.id


def test_save_note_keeps_quantity_line(spender, make_item):
    item = make_item(qty_total=4)
    claim = claims_service.create_claim(item.id, spender.id, quantity=3, note='old')

    claims_service.save_claim_note(claim.id, 'new note')

    assert claim.note == 'Quantity: 3\nnew note'
    assert claims_service.serialize_claim(claim)['note'] == 'new note'


def test_partial_delete_rewrites_note_and_amount(spender, make_item):
    item = make_item(price=1000, qty_total=5)
    claim = claims_service.create_claim(item.id, spender.id, quantity=4, note='gift')
    claim.amount_paid = 2500
    db.session.commit()

    result = claims_service.delete_claim(claim.id, quantity_to_remove=3)

    assert result == {'quantity_removed': 3, 'was_partial_removal': True}
    assert claim.note == 'gift'
    assert claim.amount_paid == 0
    assert item.qty_claimed == 1


def test_partial_delete_keeps_quantity_line_above_one(spender, make_item):
    item = make_item(price=1000, qty_total=5)
    claim = claims_service.create_claim(item.id, spender.id, quantity=5)
    claim.amount_paid = 5000
    db.session.commit()

    claims_service.delete_claim(claim.id, quantity_to_remove=2)

    assert claim.note == 'Quantity: 3'
    assert claim.amount_paid == 3000
    assert item.qty_claimed == 3


def test_full_delete_removes_claim_and_keeps_ledger(owner, spender, make_item):
    item = make_item(price=1000, qty_total=2)
    claim = claims_service.create_claim(item.id, spender.id, quantity=2)
    wallet_service.record_claim_payment(claim.id, 500, 'ref_full_delete')
    claim_id = claim.id

    result = claims_service.delete_claim(claim_id, quantity_to_remove=10)

    assert result == {'quantity_removed': 2, 'was_partial_removal': False}
    assert db.session.get(Claim, claim_id) is None
    assert item.qty_claimed == 0
    rows = WalletTransaction.query.filter_by(reference='ref_full_delete').all()
    assert rows and all(r.claim_id is None for r in rows)


def test_delete_cancelled_claim_does_not_release_twice(spender, make_item):
    item = make_item(qty_total=3)
    keep = claims_service.create_claim(item.id, spender.id, quantity=1)
    gone = claims_service.create_claim(item.id, spender.id, quantity=2)
    claims_service.update_claim_status(gone.id, ClaimStatus.CANCELLED.value)

    claims_service.delete_claim(gone.id)

    assert item.qty_claimed == 1
    assert keep.status == ClaimStatus.CONFIRMED.value


def test_payment_summary_prefers_ledger(spender, make_item):
    item = make_item(price=3000, qty_total=2)
    claim = claims_service.create_claim(item.id, spender.id, quantity=2)

    summary = claims_service.payment_summary(claim)
    assert summary['estimated_price'] == 6000
    assert summary['amount_paid'] == 0
    assert summary['remaining_amount'] == 6000
    assert not summary['is_fully_paid']

    wallet_service.record_claim_payment(claim.id, 2000, 'ref_summary')
    summary = claims_service.payment_summary(claim)
    assert summary['amount_paid'] == 2000
    assert summary['remaining_amount'] == 4000


def test_free_item_is_never_fully_paid(spender, make_item):
    item = make_item(price=0)
    claim = claims_service.create_claim(item.id, spender.id)
    assert claims_service.payment_summary(claim)['is_fully_paid'] is False


def test_expire_stale_claims(spender, make_item):
    item = make_item(qty_total=2)
    stale = claims_service.create_claim(item.id, spender.id)
    paid = claims_service.create_claim(item.id, spender.id)
    wallet_service.record_claim_payment(paid.id, 100, 'ref_stale')

    later = datetime.utcnow() + timedelta(days=30)
    assert claims_service.expire_stale_claims(now=later) == 1

    assert stale.status == ClaimStatus.EXPIRED.value
    assert paid.status == ClaimStatus.CONFIRMED.value
    assert item.qty_claimed == 1
