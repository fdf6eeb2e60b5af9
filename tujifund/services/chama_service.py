"""
CHAMA SERVICE
=============

Handles:
- Creating a chama (creator becomes admin, wallet created with it)
- Adding members
"""

import logging

from tujifund.extensions import db
from tujifund.models import Chama, ChamaMember, MemberRole, User
from tujifund.services.authorization_service import (
    can_add_member, require_authorization, AuthorizationError
)
from tujifund.services.wallet_service import create_wallet_for_chama, WalletError

logger = logging.getLogger(__name__)


class ChamaError(Exception):
    """Base exception for chama operations"""
    pass


# ============================================================
# CREATE CHAMA
# ============================================================

def create_chama(name, created_by, description=None, currency='KES'):
    """
    Create a chama, its admin membership and its wallet in one commit.

    Returns: Chama
    """
    try:
        name = (name or '').strip()
        if not name:
            raise ChamaError("Chama name is required")

        chama = Chama(
            name=name,
            description=(description or '').strip() or None,
            created_by=created_by
        )
        db.session.add(chama)
        db.session.flush()

        db.session.add(ChamaMember(
            chama_id=chama.id,
            user_id=created_by,
            role=MemberRole.ADMIN.value
        ))
        create_wallet_for_chama(chama.id, currency=currency)

        db.session.commit()
        logger.info("Chama %s created by user %s", chama.id, created_by)
        return chama

    except (ChamaError, WalletError):
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise ChamaError(f"Failed to create chama: {str(e)}")


# ============================================================
# ADD MEMBER
# ============================================================

def add_member(chama_id, user_id, added_by_user_id, role=MemberRole.MEMBER.value):
    """Add a user to a chama. Reactivates a previous membership."""
    try:
        require_authorization(can_add_member, added_by_user_id, chama_id)

        if role not in (MemberRole.ADMIN.value, MemberRole.MEMBER.value):
            raise ChamaError(f"Invalid role: {role}")

        if not db.session.get(User, user_id):
            raise ChamaError(f"User {user_id} not found")

        membership = ChamaMember.query.filter_by(chama_id=chama_id, user_id=user_id).first()
        if membership and membership.is_active:
            raise ChamaError("User is already a member")

        if membership:
            membership.is_active = True
            membership.role = role
        else:
            membership = ChamaMember(chama_id=chama_id, user_id=user_id, role=role)
            db.session.add(membership)

        db.session.commit()
        return membership

    except (AuthorizationError, ChamaError):
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise ChamaError(f"Failed to add member: {str(e)}")


# ============================================================
# QUERIES
# ============================================================

def list_user_chamas(user_id):
    """Chamas the user is an active member of, oldest first."""
    return Chama.query.join(ChamaMember, ChamaMember.chama_id == Chama.id).filter(
        ChamaMember.user_id == user_id,
        ChamaMember.is_active.is_(True)
    ).order_by(Chama.id).all()
