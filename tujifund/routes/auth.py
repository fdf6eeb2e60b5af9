"""
AUTHENTICATION ROUTES
=====================
"""

from flask import Blueprint, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from tujifund.extensions import db
from tujifund.models import User
from tujifund.services.wallet_service import create_wallet_for_user, get_wallet
from tujifund.routes.helpers import json_body

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


@auth_bp.route('/register', methods=['POST'])
def register():
    data = json_body()
    username = (data.get('username') or '').strip()
    email = (data.get('email') or '').strip().lower()
    full_name = (data.get('fullName') or '').strip()
    password = data.get('password') or ''

    # Validation
    if not username or not email or not full_name or not password:
        return jsonify(success=False, message='All fields are required'), 400

    if len(password) < 6:
        return jsonify(success=False, message='Password must be at least 6 characters'), 400

    if User.query.filter((User.email == email) | (User.username == username)).first():
        return jsonify(success=False, message='Username or email already registered'), 400

    try:
        user = User(username=username, email=email, full_name=full_name)
        user.set_password(password)
        db.session.add(user)
        db.session.flush()

        # Every user gets a personal wallet
        create_wallet_for_user(user.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    login_user(user)
    return jsonify(success=True, user=user.to_dict()), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = json_body()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        return jsonify(success=False, message='Invalid email or password'), 401

    login_user(user, remember=bool(data.get('remember', False)))
    return jsonify(success=True, user=user.to_dict())


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify(success=True, message='You have been logged out')


@auth_bp.route('/me')
@login_required
def me():
    wallet = get_wallet(user_id=current_user.id)
    return jsonify(user=current_user.to_dict(), wallet=wallet.to_dict())
