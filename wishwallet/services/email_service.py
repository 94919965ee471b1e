"""
EMAIL SERVICE
=============

Outgoing mail is handed to an HTTP email function configured by
EMAIL_FUNCTION_URL. Delivery failures are reported in the result and
logged; they never abort the caller's database work.
"""

import logging

import requests
from flask import current_app

logger = logging.getLogger(__name__)


def send_email(to, subject, text, template_key, metadata=None):
    """
    Send a plain-text email.

    Returns: {'success': bool, 'data' or 'error': ...}
    """
    url = current_app.config.get('EMAIL_FUNCTION_URL')
    if not url:
        logger.info("Email function not configured, skipping %s email to %s", template_key, to)
        return {'success': False, 'error': 'Email function not configured'}

    headers = {'Content-Type': 'application/json'}
    token = current_app.config.get('EMAIL_FUNCTION_TOKEN')
    if token:
        headers['Authorization'] = f'Bearer {token}'

    payload = {
        'to': to,
        'subject': subject,
        'text': text,
        'templateKey': template_key,
        'metadata': metadata or {},
    }

    try:
        response = requests.post(
            url, json=payload, headers=headers,
            timeout=current_app.config.get('EMAIL_TIMEOUT', 10)
        )
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error("Error sending %s email to %s: %s", template_key, to, e)
        return {'success': False, 'error': str(e)}

    logger.info("Sent %s email to %s", template_key, to)
    try:
        data = response.json()
    except ValueError:
        data = None
    return {'success': True, 'data': data}
