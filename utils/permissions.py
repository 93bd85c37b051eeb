"""
Household membership lookups and role checks.

These helpers read ``household_members`` directly through the session and
are never themselves filtered by scope.  They are the single place that
answers "is user U a member (or admin) of household H", so authorising a
scope can never recurse into the restriction it is enforcing.

Roles
-----
    admin    manage members, invitations and the household itself
    member   read/write the household's shared accounting data
"""
from flask import abort
from flask_login import current_user

from extensions import db
from models.households import HouseholdMember


def get_user_household_ids(user_id):
    """Return the ids of every household *user_id* belongs to."""
    rows = (
        db.session.query(HouseholdMember.household_id)
        .filter(HouseholdMember.user_id == user_id)
        .order_by(HouseholdMember.household_id)
        .all()
    )
    return [household_id for (household_id,) in rows]


def get_member_role(user_id, household_id):
    """Return ``'admin'``/``'member'`` for the user in the household, or ``None``."""
    return (
        db.session.query(HouseholdMember.role)
        .filter(HouseholdMember.user_id == user_id,
                HouseholdMember.household_id == household_id)
        .scalar()
    )


def is_household_member(user_id, household_id):
    return get_member_role(user_id, household_id) is not None


def is_household_admin(user_id, household_id):
    return get_member_role(user_id, household_id) == 'admin'


def require_household_member(household_id):
    """Abort with 403 unless the current user belongs to *household_id*."""
    if not current_user.is_authenticated or not is_household_member(current_user.id, household_id):
        abort(403)


def require_household_admin(household_id):
    """Abort with 403 unless the current user is an admin of *household_id*."""
    if not current_user.is_authenticated or not is_household_admin(current_user.id, household_id):
        abort(403)
