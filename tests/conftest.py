"""
Shared pytest fixtures for the Household Budget test suite.

All tests run against an in-memory SQLite database (TestingConfig).
A single app context is pushed for the whole session so that SQLAlchemy
objects remain attached throughout.  After each test, clean_db wipes all
rows so tests are fully independent.
"""
from datetime import date
from decimal import Decimal

import pytest
from flask import g

from app import create_app
from extensions import db as _db
from utils.db_helpers import Scope


# ---------------------------------------------------------------------------
# Application / database lifecycle
# ---------------------------------------------------------------------------

@pytest.fixture(scope='session')
def app():
    """Create a test Flask application with an in-memory SQLite database."""
    application = create_app('testing')
    ctx = application.app_context()
    ctx.push()
    _db.create_all()
    yield application
    _db.session.remove()
    _db.drop_all()
    ctx.pop()


@pytest.fixture(autouse=True)
def clean_db(app):
    """Wipe every table after each test so tests never share state."""
    yield
    _db.session.rollback()
    for table in reversed(_db.metadata.sorted_tables):
        _db.session.execute(table.delete())
    _db.session.commit()
    _db.session.expunge_all()


@pytest.fixture
def client(app):
    """Test client.

    Requests reuse the session-wide app context, so Flask-Login's cached
    user on ``g`` is cleared around each test.
    """
    g.pop('_login_user', None)
    yield app.test_client()
    g.pop('_login_user', None)


# ---------------------------------------------------------------------------
# Common model helpers
# ---------------------------------------------------------------------------

PASSWORD = 'TestPass1!'


def make_user(email, name):
    from models.users import User
    u = User(email=email, name=name)
    u.set_password(PASSWORD)
    _db.session.add(u)
    _db.session.commit()
    return u


def login(client, email, password=PASSWORD):
    """Sign in as *email*, dropping any user already signed in on this client."""
    with client.session_transaction() as sess:
        sess.clear()
    g.pop('_login_user', None)
    return client.post('/auth/login', json={'email': email, 'password': password})


def add_transaction(scope, kind, category, amount, on):
    from models.transactions import Transaction
    txn = Transaction(kind=kind, category=category, amount=Decimal(str(amount)),
                      transaction_date=on, **scope.owner_fields())
    _db.session.add(txn)
    _db.session.commit()
    return txn


def add_goal(scope, kind, category, planned, start, end=None, status='pending'):
    from models.budgets import BudgetGoal
    goal = BudgetGoal(kind=kind, category=category, planned_amount=Decimal(str(planned)),
                      month_year=date(start.year, start.month, 1), start_date=start, end_date=end,
                      status=status, **scope.owner_fields())
    _db.session.add(goal)
    _db.session.commit()
    return goal


def add_allocation(scope, income_goal, expense_goal, amount, month):
    from models.allocations import BudgetAllocation
    allocation = BudgetAllocation(income_goal_id=income_goal.id, expense_goal_id=expense_goal.id,
                                  amount=Decimal(str(amount)), month_year=month,
                                  **scope.owner_fields())
    _db.session.add(allocation)
    _db.session.commit()
    return allocation


@pytest.fixture
def user(app):
    return make_user('alice@example.com', 'Alice')


@pytest.fixture
def other_user(app):
    return make_user('bob@example.com', 'Bob')


@pytest.fixture
def household(app, user):
    """A household created by ``user`` (who is therefore its admin)."""
    from services.household_service import HouseholdService
    return HouseholdService.create_household(user, 'The Household')


@pytest.fixture
def scope(user):
    return Scope.individual(user.id)


@pytest.fixture
def household_scope(user, household):
    return Scope.for_household(user.id, household.id)


@pytest.fixture
def auth_client(client, user):
    """Client signed in as ``user``."""
    response = login(client, user.email)
    assert response.status_code == 200
    return client
