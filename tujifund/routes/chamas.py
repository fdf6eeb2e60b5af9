"""
CHAMA ROUTES
============
List your chamas, create one, view it, add members by user id or email.
"""

from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from tujifund.extensions import db
from tujifund.models import Chama, ChamaMember, User
from tujifund.services.authorization_service import is_chama_member, AuthorizationError
from tujifund.services.chama_service import (
    create_chama, add_member, list_user_chamas, ChamaError
)
from tujifund.routes.helpers import json_body

chamas_bp = Blueprint('chamas', __name__, url_prefix='/chamas')


# ============== MY CHAMAS ==============
@chamas_bp.route('', methods=['GET'])
@login_required
def my_chamas():
    chamas = list_user_chamas(current_user.id)
    return jsonify(chamas=[chama.to_dict() for chama in chamas])


# ============== CREATE NEW CHAMA ==============
@chamas_bp.route('', methods=['POST'])
@login_required
def create_chama_route():
    data = json_body()

    try:
        chama = create_chama(
            name=data.get('name'),
            description=data.get('description'),
            created_by=current_user.id
        )
    except ChamaError as e:
        return jsonify(success=False, message=str(e)), 400

    return jsonify(success=True, chama=chama.to_dict(), wallet=chama.wallet.to_dict()), 201


# ============== VIEW SINGLE CHAMA ==============
@chamas_bp.route('/<int:chama_id>')
@login_required
def view_chama(chama_id):
    chama = db.get_or_404(Chama, chama_id)

    if not is_chama_member(current_user.id, chama_id):
        return jsonify(success=False, message='You are not a member of this chama'), 403

    members = ChamaMember.query.filter_by(chama_id=chama_id, is_active=True).all()
    return jsonify(chama=chama.to_dict(), members=[m.to_dict() for m in members])


# ============== ADD MEMBER ==============
@chamas_bp.route('/<int:chama_id>/members', methods=['POST'])
@login_required
def add_member_route(chama_id):
    db.get_or_404(Chama, chama_id)
    data = json_body()

    if data.get('userId') is not None:
        try:
            user = db.session.get(User, int(data['userId']))
        except (TypeError, ValueError):
            return jsonify(success=False, message='Invalid user'), 400
    else:
        email = (data.get('email') or '').strip().lower()
        user = User.query.filter_by(email=email).first()
    if not user:
        return jsonify(success=False, message='User not found'), 404

    try:
        membership = add_member(chama_id, user.id, current_user.id,
                                role=data.get('role', 'member'))
    except AuthorizationError as e:
        return jsonify(success=False, message=str(e)), 403
    except ChamaError as e:
        return jsonify(success=False, message=str(e)), 400

    return jsonify(success=True, member=membership.to_dict()), 201
