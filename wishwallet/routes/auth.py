"""
AUTHENTICATION ROUTES
=====================
"""

import re

from flask import Blueprint, jsonify, request
from flask_login import login_user, logout_user, login_required, current_user
from wishwallet.extensions import db
from wishwallet.models import User
from wishwallet.services.paystack import PaystackClient, PaystackError

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

USERNAME_PATTERN = re.compile(r'^[a-zA-Z0-9_]{3,30}$')


@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    full_name = data.get('full_name')

    # Validation
    if not username or not email or not password:
        return jsonify({'error': 'Username, email and password are required'}), 400

    if not USERNAME_PATTERN.match(username):
        return jsonify({'error': 'Username may only contain letters, numbers and underscores'}), 400

    if len(password) < 6:
        return jsonify({'error': 'Password must be at least 6 characters'}), 400

    if User.query.filter_by(email=email).first():
        return jsonify({'error': 'Email already registered'}), 409

    if User.query.filter_by(username=username).first():
        return jsonify({'error': 'Username already taken'}), 409

    user = User(username=username, email=email, full_name=full_name)
    user.set_password(password)

    db.session.add(user)
    db.session.commit()

    return jsonify({'user': user.to_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(password):
        return jsonify({'error': 'Invalid email or password'}), 401

    login_user(user, remember=bool(data.get('remember')))
    return jsonify({'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify({'user': current_user.to_dict()})


@auth_bp.route('/bank-details', methods=['PUT'])
@login_required
def update_bank_details():
    data = request.get_json(silent=True) or {}
    account_number = (data.get('account_number') or '').strip()
    bank_code = (data.get('bank_code') or '').strip()

    if not account_number.isdigit() or len(account_number) != 10:
        return jsonify({'error': 'Account number must be 10 digits'}), 400

    if not bank_code:
        return jsonify({'error': 'Bank is required'}), 400

    current_user.bank_account_number = account_number
    current_user.bank_code = bank_code
    current_user.bank_name = data.get('bank_name')
    current_user.account_name = data.get('account_name')
    db.session.commit()

    return jsonify({'user': current_user.to_dict()})


@auth_bp.route('/banks')
@login_required
def banks():
    """Banks a payout account can be held at, for the bank details form."""
    try:
        result = PaystackClient.from_config().list_banks()
    except PaystackError as e:
        return jsonify({'error': str(e)}), 502

    return jsonify({'banks': [
        {'name': bank.get('name'), 'code': bank.get('code')} for bank in result or []
    ]})
