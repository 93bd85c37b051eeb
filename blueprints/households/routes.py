"""
Household routes.

Member routes (require login + membership):
  GET  /households                                   – households of the current user
  POST /households/add                               – create a household (creator becomes admin)
  GET  /households/<id>/members                      – member list
  POST /households/<id>/leave                        – leave the household

Admin routes (require login + admin role):
  POST /households/<id>/members/<member_id>/role     – change a member's role
  POST /households/<id>/members/<member_id>/remove   – remove a member
  GET  /households/<id>/invitations                  – pending invitations
  POST /households/<id>/invite                       – create an invitation link
  POST /households/invitations/<id>/revoke           – cancel an invitation

Invitation routes:
  GET  /households/join/<token>  – invitation details (public)
  POST /households/join/<token>  – accept as the signed-in user
"""
from flask import jsonify
from flask_login import login_required, current_user

from blueprints.households import households_bp
from blueprints.households.forms import HouseholdForm, InvitationForm
from services.errors import MissingFieldError
from services.household_service import HouseholdService
from utils.api import error_response, form_error_response, request_data
from utils.permissions import require_household_admin, require_household_member


# ── Member routes ─────────────────────────────────────────────────────────────

@households_bp.route('', methods=['GET'])
@login_required
def index():
    return jsonify({'households': HouseholdService.get_user_households(current_user.id)})


@households_bp.route('/add', methods=['POST'])
@login_required
def add():
    form = HouseholdForm()
    if not form.validate():
        return form_error_response(form)
    household = HouseholdService.create_household(current_user, form.name.data)
    return jsonify({'success': True, 'household': dict(household.to_dict(), role='admin')}), 201


@households_bp.route('/<int:household_id>/members', methods=['GET'])
@login_required
def members(household_id):
    require_household_member(household_id)
    return jsonify({'members': [m.to_dict() for m in HouseholdService.get_members(household_id)]})


@households_bp.route('/<int:household_id>/leave', methods=['POST'])
@login_required
def leave(household_id):
    HouseholdService.leave_household(current_user.id, household_id)
    return jsonify({'success': True})


# ── Admin routes ──────────────────────────────────────────────────────────────

@households_bp.route('/<int:household_id>/members/<int:member_id>/role', methods=['POST'])
@login_required
def update_role(household_id, member_id):
    role = request_data().get('role')
    if not role:
        raise MissingFieldError('role')
    member = HouseholdService.update_member_role(current_user.id, household_id, member_id, role)
    return jsonify({'success': True, 'member': member.to_dict()})


@households_bp.route('/<int:household_id>/members/<int:member_id>/remove', methods=['POST'])
@login_required
def remove_member(household_id, member_id):
    HouseholdService.remove_member(current_user.id, household_id, member_id)
    return jsonify({'success': True})


@households_bp.route('/<int:household_id>/invitations', methods=['GET'])
@login_required
def invitations(household_id):
    require_household_admin(household_id)
    pending = HouseholdService.get_pending_invitations(household_id)
    return jsonify({'invitations': [i.to_dict(include_token=True) for i in pending]})


@households_bp.route('/<int:household_id>/invite', methods=['POST'])
@login_required
def invite(household_id):
    require_household_admin(household_id)
    form = InvitationForm()
    if not form.validate():
        return form_error_response(form)
    invitation = HouseholdService.create_invitation(
        current_user.id, household_id, form.email.data, form.role.data
    )
    return jsonify({'success': True, 'invitation': invitation.to_dict(include_token=True)}), 201


@households_bp.route('/invitations/<int:invitation_id>/revoke', methods=['POST'])
@login_required
def revoke_invitation(invitation_id):
    HouseholdService.revoke_invitation(current_user.id, invitation_id)
    return jsonify({'success': True})


# ── Invitation routes ─────────────────────────────────────────────────────────

@households_bp.route('/join/<token>', methods=['GET'])
def join_details(token):
    invitation = HouseholdService.get_invitation_by_token(token)
    if invitation is None:
        return error_response('Invalid or expired invitation', 404, 'invalid_invitation')
    return jsonify({'invitation': invitation.to_dict()})


@households_bp.route('/join/<token>', methods=['POST'])
@login_required
def join(token):
    result = HouseholdService.accept_invitation(current_user, token)
    return jsonify(result), (200 if result['success'] else 400)
