"""
Database query helpers for scope-partitioned data.

Every transaction, budget goal and allocation belongs either to one user's
individual scope (``household_id IS NULL``) or to a household
(``household_id = H``).  All accounting queries go through ``scope_query``
so the two never mix.

The scope is always passed in explicitly; nothing here reads a "currently
selected household" from the session.

Usage
-----
In a blueprint route::

    from utils.db_helpers import resolve_scope, scope_query

    scope = resolve_scope(request.args.get('household_id'))
    goals = scope_query(BudgetGoal, scope).filter_by(kind='income').all()

In a service or test::

    scope = Scope.individual(user.id)
    scope = Scope.for_household(user.id, household.id)
"""
from dataclasses import dataclass
from typing import Optional

from flask import abort
from flask_login import current_user

from extensions import db
from utils.dates import to_amount


@dataclass(frozen=True)
class Scope:
    """Partition key for accounting queries.

    ``user_id`` is the acting user (and owner of new rows);
    ``household_id`` is ``None`` for the individual scope.
    """
    user_id: int
    household_id: Optional[int] = None

    @classmethod
    def individual(cls, user_id):
        return cls(user_id=user_id, household_id=None)

    @classmethod
    def for_household(cls, user_id, household_id):
        return cls(user_id=user_id, household_id=household_id)

    @property
    def is_household(self):
        return self.household_id is not None

    @property
    def label(self):
        return 'family' if self.is_household else 'individual'

    def owner_fields(self):
        """Column values that place a new row in this scope."""
        return {'user_id': self.user_id, 'household_id': self.household_id}

    def to_dict(self):
        return {'scope': self.label, 'user_id': self.user_id, 'household_id': self.household_id}


# ---------------------------------------------------------------------------
# Core helpers
# ---------------------------------------------------------------------------

def scope_query(model, scope):
    """Return a query on *model* restricted to *scope*.

    Household scope matches on ``household_id`` alone, so every member sees
    the household's rows.  Individual scope requires the owner and an absent
    household reference: a user's individual rows never show up under a
    household they belong to, and vice versa.
    """
    if not hasattr(model, 'household_id') or not hasattr(model, 'user_id'):
        raise AttributeError(
            f"scope_query() called on {model.__name__} but it has no user_id/household_id columns."
        )
    if scope.is_household:
        return model.query.filter(model.household_id == scope.household_id)
    return model.query.filter(model.user_id == scope.user_id, model.household_id.is_(None))


def scope_get(model, scope, record_id):
    """Fetch one record by id within *scope*; ``None`` if missing or out of scope."""
    return scope_query(model, scope).filter(model.id == record_id).first()


def sum_amounts(query, column):
    """``SUM(column)`` over *query* as a 4-dp Decimal (0 for no rows)."""
    total = query.with_entities(db.func.coalesce(db.func.sum(column), 0)).scalar()
    return to_amount(total)


def resolve_scope(household_id=None, user=None):
    """Build the scope for a request.

    *household_id* comes from the request (query string or JSON body);
    empty means the individual scope.  Aborts 403 when the user is not a
    member of the requested household and 400 on a malformed id.
    """
    from utils.permissions import is_household_member

    user = user or current_user
    if household_id in (None, '', 'null', 'individual'):
        return Scope.individual(user.id)
    try:
        household_id = int(household_id)
    except (TypeError, ValueError):
        abort(400, description=f'Invalid household_id: {household_id!r}')
    if not is_household_member(user.id, household_id):
        abort(403)
    return Scope.for_household(user.id, household_id)
