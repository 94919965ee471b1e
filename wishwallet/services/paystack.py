"""
PAYSTACK REST CLIENT
====================

Server-side calls only: transaction verification, webhook signatures and
transfers for payouts. Amounts cross this boundary in kobo.
"""

import hmac
import hashlib
import logging

import requests
from flask import current_app

from wishwallet.utils import round_half_up

logger = logging.getLogger(__name__)

PAYSTACK_BASE_URL = 'https://api.paystack.co'


class PaystackError(Exception):
    """Raised when Paystack rejects a request or is unreachable"""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class PaystackTimeout(PaystackError):
    pass


def to_kobo(amount):
    return round_half_up(float(amount) * 100)


def from_kobo(amount):
    return (amount or 0) / 100


def verify_webhook_signature(payload, signature, secret):
    """Check the x-paystack-signature header: hex HMAC-SHA512 of the raw body."""
    if not signature or not secret:
        return False
    if isinstance(payload, str):
        payload = payload.encode('utf-8')
    expected = hmac.new(secret.encode('utf-8'), payload, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature)


class PaystackClient:

    def __init__(self, secret_key, base_url=PAYSTACK_BASE_URL, timeout=10, session=None):
        if not secret_key:
            raise PaystackError('Paystack secret key not configured')
        self.secret_key = secret_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config=None):
        config = config or current_app.config
        return cls(
            config.get('PAYSTACK_SECRET_KEY'),
            base_url=config.get('PAYSTACK_BASE_URL', PAYSTACK_BASE_URL),
            timeout=config.get('PAYSTACK_TIMEOUT', 10)
        )

    def _request(self, method, endpoint, **kwargs):
        """Authenticated call. Returns the `data` member of a successful response."""
        url = f'{self.base_url}{endpoint}'
        headers = {
            'Authorization': f'Bearer {self.secret_key}',
            'Content-Type': 'application/json',
        }

        try:
            response = self.session.request(method, url, headers=headers,
                                            timeout=self.timeout, **kwargs)
        except requests.Timeout:
            raise PaystackTimeout('Paystack request timed out')
        except requests.RequestException as e:
            raise PaystackError(f'Paystack unreachable: {e}')

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not response.ok:
            message = body.get('message') or response.reason
            raise PaystackError(f'Paystack API Error: {response.status_code} - {message}',
                                status_code=response.status_code)

        if not body.get('status'):
            raise PaystackError(body.get('message') or 'Paystack request failed',
                                status_code=response.status_code)

        return body.get('data')

    # ---------- collections ----------

    def verify_transaction(self, reference):
        return self._request('GET', f'/transaction/verify/{reference}')

    # ---------- transfers ----------

    def list_banks(self, country='nigeria'):
        return self._request('GET', '/bank', params={'country': country})

    def resolve_account(self, account_number, bank_code):
        return self._request('GET', '/bank/resolve', params={
            'account_number': account_number,
            'bank_code': bank_code,
        })

    def create_transfer_recipient(self, name, account_number, bank_code, currency='NGN'):
        return self._request('POST', '/transferrecipient', json={
            'type': 'nuban',
            'name': name,
            'account_number': account_number,
            'bank_code': bank_code,
            'currency': currency,
        })

    def initiate_transfer(self, amount, recipient_code, reference, reason=None):
        """amount is in naira; Paystack receives kobo."""
        return self._request('POST', '/transfer', json={
            'source': 'balance',
            'amount': to_kobo(amount),
            'recipient': recipient_code,
            'reference': reference,
            'reason': reason or 'Wallet withdrawal',
        })

    def finalize_transfer(self, transfer_code, otp):
        return self._request('POST', '/transfer/finalize_transfer', json={
            'transfer_code': transfer_code,
            'otp': otp,
        })

    def verify_transfer(self, reference):
        return self._request('GET', f'/transfer/verify/{reference}')
