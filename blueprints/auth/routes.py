"""
Authentication Routes
Registration, login, logout and the current-user endpoint
"""
from flask import current_app, jsonify
from flask_login import login_user, logout_user, current_user, login_required
from flask_wtf.csrf import generate_csrf
from . import auth_bp
from .forms import LoginForm, RegisterForm
from models.users import User
from extensions import db, limiter
from services.household_service import HouseholdService
from utils.api import error_response, form_error_response


@auth_bp.route('/register', methods=['POST'])
@limiter.limit("10 per minute")
def register():
    """Create an account (and optionally a first household) and sign in"""
    form = RegisterForm()
    if not form.validate():
        return form_error_response(form)

    email = form.email.data.strip().lower()
    if User.query.filter_by(email=email).first():
        return error_response('An account with this email already exists.', 400, 'email_taken')

    user = User(email=email, name=form.name.data.strip())
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info(f'New user registered: {email}')

    household = None
    if form.household_name.data:
        household = HouseholdService.create_household(user, form.household_name.data)

    login_user(user)
    user.update_last_login()

    return jsonify({
        'success': True,
        'user': user.to_dict(),
        'household': household.to_dict() if household else None,
    }), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")  # Rate limit login attempts
def login():
    """Sign in with email and password"""
    if current_user.is_authenticated:
        return jsonify({'success': True, 'user': current_user.to_dict()})

    form = LoginForm()
    if not form.validate():
        return form_error_response(form)

    email = form.email.data.strip().lower()
    user = User.query.filter_by(email=email).first()

    # Same message for unknown email and bad password to prevent user enumeration
    if user is None or not user.check_password(form.password.data):
        current_app.logger.warning(f'Failed login attempt for {email}')
        return error_response('Invalid email or password.', 401, 'invalid_credentials')

    if not user.is_active:
        return error_response('This account has been deactivated. Please contact support.', 403, 'inactive')

    login_user(user, remember=form.remember.data)
    user.update_last_login()
    return jsonify({'success': True, 'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True, 'message': 'You have been logged out.'})


@auth_bp.route('/me')
@login_required
def me():
    """The signed-in user and the households they belong to"""
    return jsonify({
        'user': current_user.to_dict(),
        'households': HouseholdService.get_user_households(current_user.id),
    })


@auth_bp.route('/csrf-token')
def csrf_token():
    """Token for the X-CSRFToken header of state-changing requests"""
    return jsonify({'csrf_token': generate_csrf()})
