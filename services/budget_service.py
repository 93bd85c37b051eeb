"""
Budget Service
Budget goal management and the planned-vs-actual aggregation for a month.

A goal applies to every month its [start_date, end_date] window overlaps
(open-ended when end_date is NULL).
"""
import logging
from decimal import Decimal

from sqlalchemy import case, func, or_

from extensions import db
from models.budgets import BudgetGoal
from models.transactions import Transaction
from services.carry_forward_service import CarryForwardService
from services.errors import BudgetError, MissingFieldError, RecordNotFoundError
from utils.constants import GOAL_KINDS, GOAL_STATUSES, INTERVALS
from utils.dates import ZERO, month_end, month_start, parse_date, to_amount
from utils.db_helpers import scope_get, scope_query, sum_amounts

logger = logging.getLogger(__name__)

GOAL_FIELDS = ('category', 'planned_amount', 'interval', 'start_date', 'end_date')


class BudgetService:

    # ------------------------------------------------------------------
    # Goal records
    # ------------------------------------------------------------------

    @staticmethod
    def _clean_goal_fields(data, partial=False):
        """Validate goal input; returns only the fields present in *data*."""
        cleaned = {}

        if 'category' in data or not partial:
            category = (data.get('category') or '').strip()
            if not category:
                raise MissingFieldError('category')
            cleaned['category'] = category

        if 'planned_amount' in data or not partial:
            raw = data.get('planned_amount')
            if raw is None or raw == '':
                raise MissingFieldError('planned_amount')
            try:
                planned = to_amount(raw)
            except ValueError as exc:
                raise BudgetError(str(exc), code='invalid_amount')
            if planned < ZERO:
                raise BudgetError('Planned amount cannot be negative', code='invalid_amount')
            cleaned['planned_amount'] = planned

        if 'interval' in data or not partial:
            interval = data.get('interval') or 'monthly'
            if interval not in INTERVALS:
                raise BudgetError(f'Unknown interval: {interval}', code='invalid_interval')
            cleaned['interval'] = interval

        if 'start_date' in data or not partial:
            if not data.get('start_date'):
                raise MissingFieldError('start_date')
            try:
                cleaned['start_date'] = parse_date(data['start_date'])
            except ValueError as exc:
                raise BudgetError(str(exc), code='invalid_date')

        if 'end_date' in data:
            try:
                cleaned['end_date'] = parse_date(data['end_date']) if data['end_date'] else None
            except ValueError as exc:
                raise BudgetError(str(exc), code='invalid_date')

        return cleaned

    @staticmethod
    def create_goal(scope, kind, **data):
        """Create a budget goal in *scope*.

        ``month_year`` is derived from ``start_date``.
        """
        if kind not in GOAL_KINDS:
            raise BudgetError(f'Goal kind must be one of {", ".join(GOAL_KINDS)}', code='invalid_kind')
        fields = BudgetService._clean_goal_fields(data)
        end_date = fields.get('end_date')
        if end_date is not None and end_date < fields['start_date']:
            raise BudgetError('End date cannot be before start date', code='invalid_date')

        goal = BudgetGoal(
            kind=kind,
            status='pending',
            month_year=month_start(fields['start_date']),
            **fields,
            **scope.owner_fields()
        )
        db.session.add(goal)
        db.session.commit()
        logger.info('created %s goal %s (%s, %s)', kind, goal.id, goal.category, scope.label)
        return goal

    @staticmethod
    def get_goal(scope, goal_id):
        goal = scope_get(BudgetGoal, scope, goal_id)
        if goal is None:
            raise RecordNotFoundError(f'Budget goal {goal_id} not found')
        return goal

    @staticmethod
    def update_goal(scope, goal_id, **data):
        """Edit a goal in place.  The kind of a goal cannot change."""
        goal = BudgetService.get_goal(scope, goal_id)
        fields = BudgetService._clean_goal_fields(data, partial=True)

        start_date = fields.get('start_date', goal.start_date)
        end_date = fields['end_date'] if 'end_date' in fields else goal.end_date
        if end_date is not None and end_date < start_date:
            raise BudgetError('End date cannot be before start date', code='invalid_date')

        for name, value in fields.items():
            setattr(goal, name, value)
        goal.month_year = month_start(start_date)
        db.session.commit()
        return goal

    @staticmethod
    def delete_goal(scope, goal_id):
        """Delete a goal and every allocation on either side of it."""
        goal = BudgetService.get_goal(scope, goal_id)
        db.session.delete(goal)
        db.session.commit()
        logger.info('deleted goal %s (%s)', goal_id, scope.label)

    @staticmethod
    def set_goal_status(scope, goal_id, status):
        if status not in GOAL_STATUSES:
            raise BudgetError(f'Status must be one of {", ".join(GOAL_STATUSES)}', code='invalid_status')
        goal = BudgetService.get_goal(scope, goal_id)
        goal.status = status
        db.session.commit()
        return goal

    @staticmethod
    def list_goals(scope, kind=None):
        """All goals of the scope, newest month first (no date filter)."""
        query = scope_query(BudgetGoal, scope)
        if kind:
            query = query.filter(BudgetGoal.kind == kind)
        return query.order_by(BudgetGoal.month_year.desc(), BudgetGoal.category).all()

    @staticmethod
    def _overlapping(query, period_start, period_end):
        return query.filter(
            BudgetGoal.start_date <= period_end,
            or_(BudgetGoal.end_date.is_(None), BudgetGoal.end_date >= period_start),
        )

    @staticmethod
    def get_goals_for_month(scope, month, kind=None):
        """Goals applying to *month*, pending ones first.

        Returns: list of ``{'goal': BudgetGoal, 'carry_forward': CarryForwardResult|None}``;
        income goals carry the carry-forward of their category into the month.
        """
        period_start = month_start(month)
        period_end = month_end(period_start)
        query = BudgetService._overlapping(scope_query(BudgetGoal, scope), period_start, period_end)
        if kind:
            query = query.filter(BudgetGoal.kind == kind)
        goals = query.order_by(
            case((BudgetGoal.status == 'pending', 0), else_=1),
            BudgetGoal.kind.desc(),
            BudgetGoal.category,
        ).all()

        income_categories = sorted({g.category for g in goals if g.kind == 'income'})
        carry = CarryForwardService.calculate_by_category(scope, period_start, income_categories)

        return [
            {'goal': goal, 'carry_forward': carry.get(goal.category) if goal.kind == 'income' else None}
            for goal in goals
        ]

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    @staticmethod
    def get_budget_breakdown(scope, month, kind='expense'):
        """Planned vs actual per category for one month.

        Returns: list of dicts sorted by category::

            {'category', 'planned_amount', 'actual_amount', 'difference',
             'status', 'percent_used'}

        ``status`` is ``no_budget`` when nothing is planned (``percent_used``
        is then None), ``over_budget`` when actual exceeds planned, otherwise
        ``within_budget``.  ``difference`` is actual minus planned.
        """
        if kind not in GOAL_KINDS:
            raise BudgetError(f'Breakdown kind must be one of {", ".join(GOAL_KINDS)}', code='invalid_kind')
        period_start = month_start(month)
        period_end = month_end(period_start)

        planned_rows = BudgetService._overlapping(
            scope_query(BudgetGoal, scope).filter(BudgetGoal.kind == kind), period_start, period_end
        ).with_entities(BudgetGoal.category, func.sum(BudgetGoal.planned_amount)).group_by(BudgetGoal.category).all()

        actual_rows = scope_query(Transaction, scope).filter(
            Transaction.kind == kind,
            Transaction.transaction_date >= period_start,
            Transaction.transaction_date <= period_end,
        ).with_entities(Transaction.category, func.sum(Transaction.amount)).group_by(Transaction.category).all()

        planned = {category: to_amount(total) for category, total in planned_rows}
        actual = {category: to_amount(total) for category, total in actual_rows}

        breakdown = []
        for category in sorted(set(planned) | set(actual)):
            planned_amount = planned.get(category, ZERO)
            actual_amount = actual.get(category, ZERO)
            if planned_amount == ZERO:
                status = 'no_budget'
                percent_used = None
            else:
                status = 'over_budget' if actual_amount > planned_amount else 'within_budget'
                percent_used = (actual_amount / planned_amount * 100).quantize(Decimal('0.01'))
            breakdown.append({
                'category': category,
                'planned_amount': planned_amount,
                'actual_amount': actual_amount,
                'difference': actual_amount - planned_amount,
                'status': status,
                'percent_used': percent_used,
            })
        return breakdown

    @staticmethod
    def get_budget_summary(scope, month):
        """Month totals for the budget header.

        ``total_available`` is planned income plus the global carry-forward
        (zero when the carry-forward could not be computed; the outcome is
        returned as ``carry_forward`` so callers can tell).
        """
        period_start = month_start(month)
        period_end = month_end(period_start)

        def planned(kind):
            query = BudgetService._overlapping(
                scope_query(BudgetGoal, scope).filter(BudgetGoal.kind == kind), period_start, period_end
            )
            return sum_amounts(query, BudgetGoal.planned_amount)

        def actual(kind):
            query = scope_query(Transaction, scope).filter(
                Transaction.kind == kind,
                Transaction.transaction_date >= period_start,
                Transaction.transaction_date <= period_end,
            )
            return sum_amounts(query, Transaction.amount)

        carry_forward = CarryForwardService.calculate(scope, period_start)
        planned_income = planned('income')
        planned_expenses = planned('expense')
        total_available = planned_income + carry_forward.value_or_zero()

        return {
            'month': period_start,
            'planned_income': planned_income,
            'planned_expenses': planned_expenses,
            'actual_income': actual('income'),
            'actual_expenses': actual('expense'),
            'total_available': total_available,
            'remaining': total_available - planned_expenses,
            'carry_forward': carry_forward,
        }
