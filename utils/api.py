"""
Request/response helpers shared by the JSON blueprints.
"""
from flask import abort, jsonify, request
from flask_wtf import FlaskForm

from utils.dates import parse_month
from utils.db_helpers import resolve_scope


class ApiForm(FlaskForm):
    """FlaskForm fed from a JSON body or form fields.

    CSRF is checked globally by ``CSRFProtect`` (``X-CSRFToken`` header), so
    the per-form token field is switched off.
    """
    class Meta:
        csrf = False


def request_data():
    """JSON body or form fields of the current request as a dict."""
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def get_scope():
    """Scope named by ``household_id`` in the query string or body."""
    household_id = request.args.get('household_id')
    if household_id is None:
        household_id = request_data().get('household_id')
    return resolve_scope(household_id)


def get_month(name='month'):
    value = request.args.get(name)
    if value is None:
        value = request_data().get(name)
    try:
        return parse_month(value)
    except ValueError as exc:
        abort(400, description=str(exc))


def form_error_response(form):
    return jsonify({
        'success': False,
        'error': 'Validation failed',
        'code': 'invalid_form',
        'errors': form.errors,
    }), 400


def error_response(message, status=400, code=None):
    return jsonify({'success': False, 'error': message, 'code': code}), status
