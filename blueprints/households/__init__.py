"""Households blueprint: shared data pools, their members and invitations."""
from flask import Blueprint

households_bp = Blueprint('households', __name__, url_prefix='/households')

# Note: no global @before_request login_required here because
# GET /households/join/<token> is public (invitees may not be signed in yet).
# Per-route @login_required is applied in routes.py instead.

from . import routes  # noqa: E402,F401
