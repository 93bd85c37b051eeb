from flask import Blueprint

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

# No blueprint-wide login_required: register/login/csrf-token are public.

from . import routes  # noqa: E402,F401
