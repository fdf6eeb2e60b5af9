"""
CENTRALIZED AUTHORIZATION SERVICE
==================================

All permission checks live here.
Routes and other services call these functions.

Checks return (allowed, reason) tuples; require_authorization()
turns a failed check into an AuthorizationError.
"""

from tujifund.extensions import db
from tujifund.models import Chama, ChamaMember, MarketplaceItem, MemberRole


class AuthorizationError(Exception):
    """Raised when authorization fails"""
    pass


# ============================================================
# CHAMA MEMBERSHIP CHECKS
# ============================================================

def get_membership(user_id, chama_id):
    """Get active membership record"""
    return ChamaMember.query.filter_by(
        user_id=user_id,
        chama_id=chama_id,
        is_active=True
    ).first()


def is_chama_member(user_id, chama_id):
    """Check if user is an active member of chama"""
    return get_membership(user_id, chama_id) is not None


def is_chama_admin(user_id, chama_id):
    """Check if user is an active admin of chama"""
    membership = get_membership(user_id, chama_id)
    return membership is not None and membership.role == MemberRole.ADMIN.value


# ============================================================
# WALLET AUTHORIZATION
# ============================================================

def can_view_chama_wallet(user_id, chama_id):
    if not db.session.get(Chama, chama_id):
        return False, "Chama not found"

    if not is_chama_member(user_id, chama_id):
        return False, "You are not a member of this chama"

    return True, None


def can_contribute(user_id, chama_id):
    """
    Check if user can contribute to a chama wallet.

    Requirements:
    - Chama must exist
    - User must be active member of the chama
    """
    return can_view_chama_wallet(user_id, chama_id)


# ============================================================
# MEMBERSHIP MANAGEMENT AUTHORIZATION
# ============================================================

def can_add_member(user_id, chama_id):
    """Only an active admin may add members."""
    if not db.session.get(Chama, chama_id):
        return False, "Chama not found"

    if not is_chama_admin(user_id, chama_id):
        return False, "Only chama admins can add members"

    return True, None


# ============================================================
# MARKETPLACE AUTHORIZATION
# ============================================================

def can_list_for_chama(user_id, chama_id):
    """A listing linked to a chama requires membership of that chama."""
    if chama_id is None:
        return True, None
    if not is_chama_member(user_id, chama_id):
        return False, "You are not a member of this chama"
    return True, None


def can_manage_item(user_id, item):
    """Only the seller may change a listing."""
    if not isinstance(item, MarketplaceItem):
        return False, "Item not found"
    if item.seller_id != user_id:
        return False, "Only the seller can update this listing"
    return True, None


# ============================================================
# HELPER FUNCTION: REQUIRE AUTHORIZATION
# ============================================================

def require_authorization(check_func, *args, error_class=AuthorizationError):
    """
    Wrapper to raise exception if authorization fails.

    Usage:
        require_authorization(can_add_member, user_id, chama_id)
    """
    allowed, reason = check_func(*args)
    if not allowed:
        raise error_class(reason)
