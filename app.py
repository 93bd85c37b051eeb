import os
import logging
import click
from logging.handlers import RotatingFileHandler
from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError
from werkzeug.exceptions import HTTPException
from config import config
from extensions import db, migrate, login_manager, csrf, limiter


def configure_logging(app):
    """Configure application logging"""
    if not app.debug and not app.testing:
        log_dir = app.config.get('LOG_DIR', 'logs')
        # Create logs directory if it doesn't exist
        if not os.path.exists(log_dir):
            os.makedirs(log_dir)

        # File handler for errors
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, 'household_budget.log'),
            maxBytes=10240000,  # 10MB
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s '
            '[in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        # Service modules log through logging.getLogger(__name__)
        logging.getLogger('services').addHandler(file_handler)
        logging.getLogger('services').setLevel(logging.INFO)

        app.logger.setLevel(logging.INFO)
        app.logger.info('Household Budget startup')
    else:
        # Development logging to console
        app.logger.setLevel(logging.DEBUG)
        app.logger.info('Household Budget startup (DEBUG mode)')


def create_app(config_name=None):
    """Application factory pattern"""

    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])
    config[config_name].init_app(app)
    os.makedirs(app.instance_path, exist_ok=True)  # default SQLite file lives here

    # Configure logging
    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # Add security headers
    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses"""
        headers = app.config.get('SECURITY_HEADERS', {})
        for header, value in headers.items():
            response.headers[header] = value
        return response

    # User loader callback for Flask-Login
    @login_manager.user_loader
    def load_user(user_id):
        from models.users import User
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'error': 'Authentication required', 'code': 'unauthorized'}), 401

    # Import models to ensure they're registered with SQLAlchemy
    with app.app_context():
        import models  # noqa: F401

    # Register blueprints
    from blueprints.auth import auth_bp
    from blueprints.dashboard import dashboard_bp
    from blueprints.transactions import transactions_bp
    from blueprints.budgets import budgets_bp
    from blueprints.allocations import allocations_bp
    from blueprints.households import households_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(budgets_bp)
    app.register_blueprint(allocations_bp)
    app.register_blueprint(households_bp)

    # Create database tables
    with app.app_context():
        db.create_all()

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_commands(app)

    return app


def register_error_handlers(app):
    """Register global error handlers (all responses are JSON)"""
    from services.errors import BudgetError, PermissionDeniedError, RecordNotFoundError

    @app.errorhandler(BudgetError)
    def budget_error(error):
        if isinstance(error, RecordNotFoundError):
            status = 404
        elif isinstance(error, PermissionDeniedError):
            status = 403
        else:
            status = 400
        return jsonify({'success': False, 'error': error.message, 'code': error.code}), status

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        return jsonify({'success': False, 'error': error.description, 'code': 'csrf_failed'}), 400

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({
            'success': False,
            'error': error.description,
            'code': error.name.lower().replace(' ', '_'),
        }), error.code

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        app.logger.error(f'Internal Server Error: {error}')
        return jsonify({'success': False, 'error': 'Internal server error', 'code': 'server_error'}), 500


def _scope_for(email, household_id):
    """Resolve a CLI user/household pair into a Scope, or exit with an error."""
    from models.users import User
    from utils.db_helpers import Scope
    from utils.permissions import is_household_member

    user = User.query.filter_by(email=email.strip().lower()).first()
    if not user:
        raise click.ClickException(f'No user found with email "{email}"')
    if household_id is None:
        return Scope.individual(user.id)
    if not is_household_member(user.id, household_id):
        raise click.ClickException(f'"{email}" is not a member of household {household_id}')
    return Scope.for_household(user.id, household_id)


def _parse_month_arg(value):
    from utils.dates import parse_month
    try:
        return parse_month(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def register_commands(app):
    """Register Flask CLI commands."""

    @app.cli.group()
    def budget():
        """Inspect budget figures for a user or household."""
        pass

    @budget.command('carry-forward')
    @click.argument('email')
    @click.argument('month')
    @click.option('--household-id', type=int, default=None, help='Household scope instead of individual.')
    @click.option('--category', default=None, help='Restrict to one income category.')
    def carry_forward(email, month, household_id, category):
        """Show the carry-forward into MONTH (YYYY-MM) for EMAIL."""
        from services.carry_forward_service import CarryForwardService
        scope = _scope_for(email, household_id)
        month = _parse_month_arg(month)
        result = CarryForwardService.calculate(scope, month, category)
        if not result.ok:
            click.echo(f'ERROR: carry-forward unavailable: {result.error}', err=True)
            raise SystemExit(1)
        label = category or 'all categories'
        click.echo(f'Carry-forward into {month:%Y-%m} ({scope.label}, {label}): {result.amount}')

    @budget.command('breakdown')
    @click.argument('email')
    @click.argument('month')
    @click.option('--kind', type=click.Choice(['income', 'expense']), default='expense')
    @click.option('--household-id', type=int, default=None, help='Household scope instead of individual.')
    def breakdown(email, month, kind, household_id):
        """Planned vs actual per category for MONTH (YYYY-MM)."""
        from services.budget_service import BudgetService
        scope = _scope_for(email, household_id)
        month = _parse_month_arg(month)
        rows = BudgetService.get_budget_breakdown(scope, month, kind)
        if not rows:
            click.echo('No budget goals or transactions for this month.')
            return
        click.echo(f'{"Category":<25} {"Planned":>14} {"Actual":>14} {"Difference":>14} {"Status":<14}')
        click.echo('-' * 85)
        for r in rows:
            click.echo(f'{r["category"]:<25} {r["planned_amount"]:>14} {r["actual_amount"]:>14} '
                       f'{r["difference"]:>14} {r["status"]:<14}')

    @app.cli.group()
    def household():
        """Inspect households."""
        pass

    @household.command('list')
    @click.argument('email')
    def list_households(email):
        """List the households EMAIL belongs to."""
        from models.users import User
        from services.household_service import HouseholdService
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo(f'ERROR: No user found with email "{email}"', err=True)
            return
        households = HouseholdService.get_user_households(user.id)
        if not households:
            click.echo(f'"{user.name}" ({email}) is not in any household.')
            return
        click.echo(f'{"ID":<5} {"Name":<30} {"Role":<8}')
        click.echo('-' * 45)
        for h in households:
            click.echo(f'{h["id"]:<5} {h["name"]:<30} {h["role"]:<8}')


if __name__ == '__main__':
    app = create_app()
    # SECURITY: Only bind to localhost in development
    # Never use 0.0.0.0 with debug mode - it exposes the debugger to the network
    app.run(host='127.0.0.1', port=5000, debug=True)
