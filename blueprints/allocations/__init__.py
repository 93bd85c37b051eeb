from flask import Blueprint
from flask_login import login_required

allocations_bp = Blueprint('allocations', __name__)

# Require authentication for all routes in this blueprint
@allocations_bp.before_request
@login_required
def require_login():
    pass

from . import routes
