import hashlib
import hmac
import json
from unittest import mock

import pytest
import requests

from wishwallet.models import Claim, ClaimStatus, Contribution
from wishwallet.services import claims_service, payment_service
from wishwallet.services.paystack import (
    PaystackClient, PaystackError, PaystackTimeout, verify_webhook_signature, to_kobo, from_kobo
)

SECRET = 'sk_test_secret'


def _sign(body, secret=SECRET):
    return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()


def _charge_event(reference, amount_kobo, transaction_id=1, metadata=None):
    return json.dumps({
        'event': 'charge.success',
        'data': {
            'id': transaction_id,
            'reference': reference,
            'amount': amount_kobo,
            'status': 'success',
            'metadata': metadata or {},
        },
    }).encode()


def _response(status_code=200, body=None):
    response = mock.Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = 'Bad Request' if status_code >= 400 else 'OK'
    response.json.return_value = body if body is not None else {}
    return response


# ============== PAYSTACK CLIENT ==============

def test_kobo_conversion():
    assert to_kobo(150.5) == 15050
    assert to_kobo('20') == 2000
    assert from_kobo(15050) == 150.5
    assert from_kobo(None) == 0


def test_webhook_signature():
    body = b'{"event":"charge.success"}'
    assert verify_webhook_signature(body, _sign(body), SECRET)
    assert not verify_webhook_signature(body, _sign(body, 'other'), SECRET)
    assert not verify_webhook_signature(body, None, SECRET)
    assert not verify_webhook_signature(body, _sign(body), None)


def test_client_requires_secret_key():
    with pytest.raises(PaystackError):
        PaystackClient(None)


def test_client_returns_data_and_sends_bearer_token():
    session = mock.Mock()
    session.request.return_value = _response(body={'status': True, 'data': {'status': 'success'}})
    client = PaystackClient('sk_live', session=session)

    assert client.verify_transaction('ref_1') == {'status': 'success'}

    args, kwargs = session.request.call_args
    assert args == ('GET', 'https://api.paystack.co/transaction/verify/ref_1')
    assert kwargs['headers']['Authorization'] == 'Bearer sk_live'
    assert kwargs['timeout'] == 10


def test_client_raises_on_http_error():
    session = mock.Mock()
    session.request.return_value = _response(400, {'status': False, 'message': 'Invalid key'})
    client = PaystackClient('sk_live', session=session)

    with pytest.raises(PaystackError, match='400 - Invalid key') as excinfo:
        client.verify_transaction('ref_1')
    assert excinfo.value.status_code == 400


def test_client_maps_timeouts():
    session = mock.Mock()
    session.request.side_effect = requests.Timeout()
    client = PaystackClient('sk_live', session=session)

    with pytest.raises(PaystackTimeout):
        client.list_banks()


def test_initiate_transfer_sends_kobo():
    session = mock.Mock()
    session.request.return_value = _response(body={'status': True, 'data': {'transfer_code': 'TRF_1'}})
    client = PaystackClient('sk_live', session=session)

    client.initiate_transfer(2500, 'RCP_1', 'payout_1')

    assert session.request.call_args.kwargs['json']['amount'] == 250000


# ============== VERIFY ==============

def test_verify_payment_requires_reference():
    with pytest.raises(payment_service.PaymentError):
        payment_service.verify_payment('', client=mock.Mock())


def test_verify_payment_rejects_unsuccessful_charge():
    client = mock.Mock()
    client.verify_transaction.return_value = {'status': 'abandoned'}
    with pytest.raises(payment_service.PaymentNotSuccessfulError):
        payment_service.verify_payment('ref_x', client=client)


def test_confirm_claim_payment(owner, spender, make_item):
    item = make_item(price=2000, qty_total=1)
    claim = claims_service.create_claim(item.id, spender.id)
    checkout = payment_service.start_claim_payment(claim.id, spender.id, 2000)

    assert checkout['amount'] == 200000
    assert checkout['email'] == spender.email
    assert claim.payment_reference == checkout['reference']

    client = mock.Mock()
    client.verify_transaction.return_value = {
        'id': 555,
        'status': 'success',
        'reference': checkout['reference'],
        'amount': 200000,
        'currency': 'NGN',
        'metadata': checkout['metadata'],
    }

    result = payment_service.confirm_payment(checkout['reference'], user_id=spender.id, client=client)

    assert result['kind'] == 'claim'
    assert result['payment']['is_fully_paid']
    assert claim.status == ClaimStatus.FULFILLED.value
    assert owner.wallet.balance == 2000


# ============== WEBHOOK ==============

def test_webhook_rejects_bad_signature(app):
    body = _charge_event('ref_bad', 1000)
    with pytest.raises(payment_service.InvalidSignatureError):
        payment_service.process_webhook(body, 'nope')


def test_webhook_pays_claim_by_reference(owner, spender, make_item):
    item = make_item(price=1000, qty_total=3)
    claim = claims_service.create_claim(item.id, spender.id, quantity=3)
    checkout = payment_service.start_claim_payment(claim.id, spender.id, 1000)

    body = _charge_event(checkout['reference'], 100000, transaction_id=77)
    assert payment_service.process_webhook(body, _sign(body)) == 'processed'
    assert claim.amount_paid == 1000
    assert owner.wallet.balance == 1000

    assert payment_service.process_webhook(body, _sign(body)) == 'duplicate'
    assert owner.wallet.balance == 1000


def test_webhook_goal_contribution(owner, goal):
    body = _charge_event('contrib_abc', 500000, transaction_id=88,
                         metadata={'goal_id': goal.id, 'display_name': 'Tolu'})

    assert payment_service.process_webhook(body, _sign(body)) == 'processed'

    contribution = Contribution.query.filter_by(payment_reference='contrib_abc').one()
    assert contribution.amount == 5000
    assert goal.amount_raised == 5000


def test_webhook_guest_payment_from_custom_fields(owner, make_item):
    item = make_item(price=1500, qty_total=4)
    metadata = {'custom_fields': [
        {'variable_name': 'item_id', 'value': item.id},
        {'variable_name': 'quantity', 'value': '2'},
        {'variable_name': 'email', 'value': 'guest@example.com'},
    ]}
    body = _charge_event('guest_abc', 300000, transaction_id=99, metadata=metadata)

    assert payment_service.process_webhook(body, _sign(body)) == 'processed'

    claim = Claim.query.filter_by(payment_reference='guest_abc').one()
    assert claim.supporter_contact == 'guest@example.com'
    assert item.qty_claimed == 2
    assert owner.wallet.balance == 3000


def test_guest_charge_after_sell_out_is_still_recorded(owner, spender, make_item):
    item = make_item(price=5000, qty_total=1)
    checkout = payment_service.start_guest_payment(item.id, 1, 'guest@example.com')
    claims_service.create_claim(item.id, spender.id)
    item.unit_price_estimate = 8000

    result = payment_service.apply_charge(
        checkout['reference'], from_kobo(checkout['amount']), checkout['metadata'], transaction_id=501
    )

    assert result['kind'] == 'guest'
    assert owner.wallet.balance == 5000
    assert Claim.query.filter_by(supporter_user_id=None).count() == 1


def test_webhook_unknown_reference(app):
    body = _charge_event('ref_unknown', 1000, transaction_id=5)
    with pytest.raises(claims_service.ClaimNotFoundError):
        payment_service.process_webhook(body, _sign(body))


def test_webhook_ignores_other_events(app):
    body = json.dumps({'event': 'transfer.success', 'data': {}}).encode()
    assert payment_service.process_webhook(body, _sign(body)) == 'ignored'
