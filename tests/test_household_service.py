"""
Tests for HouseholdService: creation, membership management and invitations.
"""
from datetime import timedelta

import pytest

from extensions import db
from models.households import HouseholdInvitation, HouseholdMember
from services.errors import BudgetError, PermissionDeniedError, RecordNotFoundError
from services.household_service import HouseholdService
from utils.dates import utcnow
from utils.permissions import get_member_role, is_household_member


@pytest.fixture
def invitation(app, user, household):
    return HouseholdService.create_invitation(user.id, household.id, 'bob@example.com')


@pytest.fixture
def bob_member(app, other_user, household):
    member = HouseholdMember(household_id=household.id, user_id=other_user.id, role='member')
    db.session.add(member)
    db.session.commit()
    return member


class TestCreateHousehold:
    def test_creator_becomes_admin(self, app, user):
        household = HouseholdService.create_household(user, '  Smiths  ')

        assert household.name == 'Smiths'
        members = HouseholdService.get_members(household.id)
        assert [(m.user_id, m.role) for m in members] == [(user.id, 'admin')]

    def test_name_required(self, app, user):
        with pytest.raises(BudgetError):
            HouseholdService.create_household(user, '')

    def test_listed_with_role(self, app, user, other_user, household):
        assert HouseholdService.get_user_households(user.id) == [
            dict(household.to_dict(), role='admin')
        ]
        assert HouseholdService.get_user_households(other_user.id) == []


class TestMembers:
    def test_admin_promotes_member(self, app, user, household, bob_member):
        HouseholdService.update_member_role(user.id, household.id, bob_member.id, 'admin')

        assert get_member_role(bob_member.user_id, household.id) == 'admin'

    def test_member_cannot_change_roles(self, app, user, other_user, household, bob_member):
        admin_row = HouseholdMember.query.filter_by(household_id=household.id, user_id=user.id).one()

        with pytest.raises(PermissionDeniedError):
            HouseholdService.update_member_role(other_user.id, household.id, admin_row.id, 'member')

    def test_invalid_role_rejected(self, app, user, household, bob_member):
        with pytest.raises(BudgetError) as exc_info:
            HouseholdService.update_member_role(user.id, household.id, bob_member.id, 'owner')

        assert exc_info.value.code == 'invalid_role'

    def test_admin_removes_member(self, app, user, other_user, household, bob_member):
        HouseholdService.remove_member(user.id, household.id, bob_member.id)

        assert not is_household_member(other_user.id, household.id)

    def test_admin_cannot_remove_self(self, app, user, household):
        admin_row = HouseholdMember.query.filter_by(household_id=household.id, user_id=user.id).one()

        with pytest.raises(BudgetError) as exc_info:
            HouseholdService.remove_member(user.id, household.id, admin_row.id)

        assert exc_info.value.code == 'cannot_remove_self'

    def test_member_leaves(self, app, other_user, household, bob_member):
        HouseholdService.leave_household(other_user.id, household.id)

        assert not is_household_member(other_user.id, household.id)

    def test_leave_when_not_member(self, app, other_user, household):
        with pytest.raises(RecordNotFoundError):
            HouseholdService.leave_household(other_user.id, household.id)


class TestInvitations:
    def test_admin_creates_pending_invitation(self, app, household, invitation):
        assert invitation.status == 'pending'
        assert invitation.role == 'member'
        assert len(invitation.token) >= 32
        assert invitation.expires_at > utcnow() + timedelta(days=6)
        assert HouseholdService.get_pending_invitations(household.id) == [invitation]

    def test_non_admin_cannot_invite(self, app, other_user, household, bob_member):
        with pytest.raises(PermissionDeniedError):
            HouseholdService.create_invitation(other_user.id, household.id, 'carol@example.com')

    def test_invalid_email_rejected(self, app, user, household):
        with pytest.raises(BudgetError) as exc_info:
            HouseholdService.create_invitation(user.id, household.id, 'not-an-email')

        assert exc_info.value.code == 'invalid_email'

    def test_lookup_by_token(self, app, invitation):
        assert HouseholdService.get_invitation_by_token(invitation.token) == invitation
        assert HouseholdService.get_invitation_by_token('nope') is None

    def test_accept_adds_membership_once(self, app, other_user, household, invitation):
        result = HouseholdService.accept_invitation(other_user, invitation.token)

        assert result['success'] is True
        assert result['household_id'] == household.id
        assert get_member_role(other_user.id, household.id) == 'member'
        assert invitation.status == 'accepted'

        again = HouseholdService.accept_invitation(other_user, invitation.token)
        assert again == {'success': False, 'message': 'Invalid or expired invitation'}
        assert HouseholdMember.query.filter_by(user_id=other_user.id).count() == 1

    def test_accept_with_admin_role(self, app, user, other_user, household):
        invitation = HouseholdService.create_invitation(user.id, household.id, 'bob@example.com', 'admin')

        HouseholdService.accept_invitation(other_user, invitation.token)

        assert get_member_role(other_user.id, household.id) == 'admin'

    def test_existing_member_rejected(self, app, user, invitation):
        result = HouseholdService.accept_invitation(user, invitation.token)

        assert result == {'success': False, 'message': 'You are already a member of this household'}
        assert invitation.status == 'pending'

    def test_expired_invitation_rejected(self, app, other_user, household, invitation):
        invitation.expires_at = utcnow() - timedelta(minutes=1)
        db.session.commit()

        result = HouseholdService.accept_invitation(other_user, invitation.token)

        assert result['success'] is False
        assert invitation.status == 'expired'
        assert not is_household_member(other_user.id, household.id)
        assert HouseholdService.get_invitation_by_token(invitation.token) is None

    def test_revoke_deletes_invitation(self, app, user, invitation):
        HouseholdService.revoke_invitation(user.id, invitation.id)

        assert HouseholdInvitation.query.count() == 0

    def test_non_admin_cannot_revoke(self, app, other_user, bob_member, invitation):
        with pytest.raises(PermissionDeniedError):
            HouseholdService.revoke_invitation(other_user.id, invitation.id)
