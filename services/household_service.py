"""
Household Service
Households, their members and invitation links.

Role checks go through utils.permissions, which reads the membership table
directly.
"""
import logging

from email_validator import EmailNotValidError, validate_email

from extensions import db
from models.households import Household, HouseholdInvitation, HouseholdMember
from services.errors import BudgetError, MissingFieldError, PermissionDeniedError, RecordNotFoundError
from utils.constants import HOUSEHOLD_ROLES
from utils.dates import utcnow
from utils.permissions import get_member_role, is_household_admin

logger = logging.getLogger(__name__)


class HouseholdService:

    @staticmethod
    def _require_admin(user_id, household_id):
        if not is_household_admin(user_id, household_id):
            raise PermissionDeniedError('Only household admins can do this')

    @staticmethod
    def _get_household(household_id):
        household = db.session.get(Household, household_id)
        if household is None:
            raise RecordNotFoundError(f'Household {household_id} not found')
        return household

    @staticmethod
    def create_household(user, name):
        """Create a household; *user* becomes its first admin."""
        name = (name or '').strip()
        if not name:
            raise MissingFieldError('name')
        household = Household(name=name, created_by_id=user.id)
        db.session.add(household)
        db.session.commit()
        logger.info('household %s created by user %s', household.id, user.id)
        return household

    @staticmethod
    def get_user_households(user_id):
        """Households *user_id* belongs to, with the user's role in each."""
        rows = (
            db.session.query(Household, HouseholdMember.role)
            .join(HouseholdMember, HouseholdMember.household_id == Household.id)
            .filter(HouseholdMember.user_id == user_id)
            .order_by(Household.name)
            .all()
        )
        return [dict(household.to_dict(), role=role) for household, role in rows]

    @staticmethod
    def get_members(household_id):
        HouseholdService._get_household(household_id)
        return (
            HouseholdMember.query
            .filter_by(household_id=household_id)
            .order_by(HouseholdMember.joined_at, HouseholdMember.id)
            .all()
        )

    @staticmethod
    def _get_member(household_id, member_id):
        member = HouseholdMember.query.filter_by(id=member_id, household_id=household_id).first()
        if member is None:
            raise RecordNotFoundError(f'Member {member_id} not found')
        return member

    @staticmethod
    def update_member_role(acting_user_id, household_id, member_id, role):
        HouseholdService._require_admin(acting_user_id, household_id)
        if role not in HOUSEHOLD_ROLES:
            raise BudgetError(f'Role must be one of {", ".join(HOUSEHOLD_ROLES)}', code='invalid_role')
        member = HouseholdService._get_member(household_id, member_id)
        member.role = role
        db.session.commit()
        logger.info('member %s of household %s is now %s', member.user_id, household_id, role)
        return member

    @staticmethod
    def remove_member(acting_user_id, household_id, member_id):
        """Remove another member.  Admins leave with ``leave_household``."""
        HouseholdService._require_admin(acting_user_id, household_id)
        member = HouseholdService._get_member(household_id, member_id)
        if member.user_id == acting_user_id:
            raise BudgetError('You cannot remove yourself; leave the household instead',
                              code='cannot_remove_self')
        db.session.delete(member)
        db.session.commit()
        logger.info('user %s removed from household %s by %s', member.user_id, household_id, acting_user_id)

    @staticmethod
    def leave_household(user_id, household_id):
        member = HouseholdMember.query.filter_by(household_id=household_id, user_id=user_id).first()
        if member is None:
            raise RecordNotFoundError('You are not a member of this household')
        db.session.delete(member)
        db.session.commit()
        logger.info('user %s left household %s', user_id, household_id)

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    @staticmethod
    def create_invitation(acting_user_id, household_id, email, role='member'):
        HouseholdService._require_admin(acting_user_id, household_id)
        HouseholdService._get_household(household_id)
        if not email:
            raise MissingFieldError('email')
        try:
            email = validate_email(email, check_deliverability=False).normalized
        except EmailNotValidError as exc:
            raise BudgetError(str(exc), code='invalid_email')
        role = role or 'member'
        if role not in HOUSEHOLD_ROLES:
            raise BudgetError(f'Role must be one of {", ".join(HOUSEHOLD_ROLES)}', code='invalid_role')

        invitation = HouseholdInvitation(
            household_id=household_id,
            email=email,
            role=role,
            created_by_id=acting_user_id,
        )
        db.session.add(invitation)
        db.session.commit()
        logger.info('invitation %s created for household %s', invitation.id, household_id)
        return invitation

    @staticmethod
    def get_pending_invitations(household_id):
        return (
            HouseholdInvitation.query
            .filter_by(household_id=household_id, status='pending')
            .order_by(HouseholdInvitation.created_at.desc(), HouseholdInvitation.id.desc())
            .all()
        )

    @staticmethod
    def revoke_invitation(acting_user_id, invitation_id):
        invitation = db.session.get(HouseholdInvitation, invitation_id)
        if invitation is None:
            raise RecordNotFoundError(f'Invitation {invitation_id} not found')
        HouseholdService._require_admin(acting_user_id, invitation.household_id)
        db.session.delete(invitation)
        db.session.commit()

    @staticmethod
    def get_invitation_by_token(token):
        """The pending, unexpired invitation for *token*, or None."""
        invitation = HouseholdInvitation.query.filter_by(token=token, status='pending').first()
        if invitation is None or not invitation.is_valid:
            return None
        return invitation

    @staticmethod
    def accept_invitation(user, token):
        """Join the invitation's household with its role.

        Returns: ``{'success': bool, 'message': str}`` (plus ``household_id``
        on success).
        """
        invitation = HouseholdInvitation.query.filter_by(token=token, status='pending').first()
        if invitation is not None and utcnow() > invitation.expires_at:
            invitation.status = 'expired'
            db.session.commit()
            invitation = None
        if invitation is None:
            return {'success': False, 'message': 'Invalid or expired invitation'}

        if get_member_role(user.id, invitation.household_id) is not None:
            return {'success': False, 'message': 'You are already a member of this household'}

        db.session.add(HouseholdMember(
            household_id=invitation.household_id,
            user_id=user.id,
            role=invitation.role,
        ))
        invitation.status = 'accepted'
        db.session.commit()
        logger.info('user %s joined household %s via invitation %s',
                    user.id, invitation.household_id, invitation.id)
        return {
            'success': True,
            'message': 'Successfully joined household',
            'household_id': invitation.household_id,
        }
