import pytest

from wishwallet.extensions import db
from wishwallet.models import (
    ClaimStatus, Notification, Reminder, ReminderStatus, TransactionType, WalletTransaction
)
from wishwallet.services import claims_service, wallet_service
from wishwallet.services.authorization_service import AuthorizationError


@pytest.fixture
def claim(spender, make_item):
    item = make_item(price=4000, qty_total=2)
    return claims_service.create_claim(item.id, spender.id, quantity=2)


def test_payment_credits_recipient_and_logs_sender_debit(owner, spender, claim):
    claim, credit, summary = wallet_service.record_claim_payment(
        claim.id, 3000, 'ref_a', sender_id=spender.id, transaction_id=111
    )

    assert credit.type == TransactionType.CREDIT.value
    assert credit.counterparty_username == 'bola'
    assert owner.wallet.balance == 3000

    debit = WalletTransaction.query.filter_by(
        wallet_id=spender.wallet.id, type=TransactionType.DEBIT.value
    ).one()
    assert debit.amount == -3000
    assert debit.affects_balance is False
    assert spender.wallet.balance == 0

    assert claim.amount_paid == 3000
    assert summary['remaining_amount'] == 5000
    assert claim.status == ClaimStatus.CONFIRMED.value

    note = Notification.query.filter_by(user_id=owner.id, type='payment_received').one()
    assert 'from bola' in note.message


def test_full_payment_fulfils_claim_and_cancels_reminder(owner, spender, claim):
    wallet_service.record_claim_payment(claim.id, 5000, 'ref_b1')
    claim, _, summary = wallet_service.record_claim_payment(claim.id, 3000, 'ref_b2')

    assert summary['is_fully_paid']
    assert claim.status == ClaimStatus.FULFILLED.value
    assert Reminder.query.filter_by(claim_id=claim.id, status=ReminderStatus.SCHEDULED.value).count() == 0
    assert owner.wallet.balance == 8000


def test_overpaying_single_unit_fulfils_claim(owner, spender, make_item):
    item = make_item(price=1000, qty_total=1)
    claim = claims_service.create_claim(item.id, spender.id)

    claim, _, summary = wallet_service.record_claim_payment(claim.id, 1500, 'ref_over')

    assert summary['quantity'] == 1
    assert summary['estimated_price'] == 1000
    assert summary['remaining_amount'] == 0
    assert summary['is_fully_paid'] is True
    assert claim.status == ClaimStatus.FULFILLED.value
    assert owner.wallet.balance == 1500


def test_overpaid_claim_releases_only_its_own_units(spender, make_user, make_item):
    item = make_item(price=1000, qty_total=3)
    first = claims_service.create_claim(item.id, spender.id)
    claims_service.create_claim(item.id, make_user('chi').id, quantity=2)

    wallet_service.record_claim_payment(first.id, 1500, 'ref_over_2')
    claims_service.update_claim_status(first.id, ClaimStatus.CANCELLED.value)

    assert item.qty_claimed == 2


def test_duplicate_reference_is_rejected(owner, claim):
    wallet_service.record_claim_payment(claim.id, 1000, 'ref_dup')
    with pytest.raises(wallet_service.DuplicateTransactionError):
        wallet_service.record_claim_payment(claim.id, 1000, 'ref_dup')
    assert owner.wallet.balance == 1000


def test_duplicate_transaction_id_is_rejected(claim):
    wallet_service.record_claim_payment(claim.id, 1000, 'ref_tx1', transaction_id=9)
    with pytest.raises(wallet_service.DuplicateTransactionError):
        wallet_service.record_claim_payment(claim.id, 1000, 'ref_tx2', transaction_id=9)


def test_other_user_cannot_pay_claim(make_user, claim):
    stranger = make_user('chi')
    with pytest.raises(AuthorizationError):
        wallet_service.record_claim_payment(claim.id, 1000, 'ref_c', sender_id=stranger.id)


def test_cannot_pay_cancelled_claim(claim):
    claims_service.update_claim_status(claim.id, ClaimStatus.CANCELLED.value)
    with pytest.raises(wallet_service.WalletError, match='cancelled'):
        wallet_service.record_claim_payment(claim.id, 1000, 'ref_d')


def test_invalid_amount(claim):
    with pytest.raises(wallet_service.InvalidAmountError):
        wallet_service.record_claim_payment(claim.id, 0, 'ref_e')


def test_goal_contribution(owner, spender, goal):
    contribution, tx = wallet_service.contribute_to_goal(
        goal.id, 2500, 'contrib_1', supporter_id=spender.id, is_anonymous=True
    )

    assert contribution.public_name() == 'Anonymous Spender'
    assert goal.amount_raised == 2500
    assert tx.source == 'contributions'
    assert tx.counterparty_username == 'Anonymous Spender'
    assert owner.wallet.balance == 2500
    assert spender.wallet.transactions.count() == 1


def test_goal_contribution_minimum(goal):
    with pytest.raises(wallet_service.InvalidAmountError, match='at least'):
        wallet_service.contribute_to_goal(goal.id, 50, 'contrib_small')


def test_guest_goal_contribution_uses_display_name(owner, goal):
    contribution, _ = wallet_service.contribute_to_goal(
        goal.id, 1000, 'contrib_guest', display_name='Aunty Ngozi'
    )
    assert contribution.supporter_user_id is None
    assert contribution.public_name() == 'Aunty Ngozi'


def test_wallet_summary(owner, spender, claim):
    wallet_service.record_claim_payment(claim.id, 1500, 'ref_s')

    owner_summary = wallet_service.get_wallet_summary(owner.id)
    assert owner_summary['balance'] == 1500
    assert owner_summary['available_balance'] == 1500
    assert owner_summary['total_received'] == 1500
    assert owner_summary['currency'] == 'NGN'

    spender_summary = wallet_service.get_wallet_summary(spender.id)
    assert spender_summary['balance'] == 0
    assert spender_summary['total_sent'] == 1500
    assert len(spender_summary['transactions']) == 1


def test_recalculate_corrects_drift(owner, claim):
    wallet_service.record_claim_payment(claim.id, 2000, 'ref_r')
    wallet = owner.wallet
    wallet.balance = 999
    db.session.commit()

    result = wallet_service.recalculate_wallet_balance(wallet.id)

    assert result['was_corrected'] is True
    assert result['calculated_balance'] == 2000
    assert wallet.balance == 2000


def test_recalculate_ignores_history_only_rows(spender, claim):
    wallet_service.record_claim_payment(claim.id, 2000, 'ref_h')

    result = wallet_service.recalculate_wallet_balance(spender.wallet.id)

    assert result['was_corrected'] is False
    assert result['calculated_balance'] == 0
