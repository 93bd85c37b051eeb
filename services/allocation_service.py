"""
Allocation Service
==================
Binds amounts of income to expense goals and keeps the total committed
against an income category within the income actually received.

Available balance
-----------------
Balances are kept per income category, since a category may have one goal
per month or a single open-ended goal::

    headroom(category, M) = income in category dated up to the last day of M
                          - allocations drawn on any income goal of category
                            for months up to and including M

    available(category, M) = min(headroom(category, L)
                                 for L in {M} + later months with allocations)

An allocation made for month M also uses up headroom of every later month,
so committed allocations never exceed cumulative income at any month.
``get_available_balance(goal)`` evaluates this at the goal's own month.

Virtual goals
-------------
An income category with transactions but no income goal is offered as
``virtual:<category>`` (planned 0, interval ``irregular``).  A real goal
row is created for it only when an allocation against it is accepted.

Consistency
-----------
``create_allocation`` checks the balance and inserts in one transaction with
the category's income goal rows locked (``SELECT ... FOR UPDATE``; SQLite
serialises writers instead).  ``replace_month_allocations`` deletes and
re-inserts a month's set in one transaction and rolls back to the previous
set on any failure.
"""
import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.allocations import BudgetAllocation
from models.budgets import BudgetGoal
from models.transactions import Transaction
from services.errors import (
    AllocationError, BudgetError, InsufficientBalanceError, MissingFieldError, RecordNotFoundError,
)
from utils.dates import ZERO, format_amount, month_end, month_start, to_amount
from utils.db_helpers import Scope, scope_get, scope_query, sum_amounts

logger = logging.getLogger(__name__)

VIRTUAL_PREFIX = 'virtual:'


class AllocationService:

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    @staticmethod
    def virtual_id(category):
        return f'{VIRTUAL_PREFIX}{category}'

    @staticmethod
    def is_virtual_id(goal_id):
        return isinstance(goal_id, str) and goal_id.startswith(VIRTUAL_PREFIX)

    @staticmethod
    def _category_income_through(scope, category, through_date):
        query = scope_query(Transaction, scope).filter(
            Transaction.kind == 'income',
            Transaction.category == category,
            Transaction.transaction_date <= through_date,
        )
        return sum_amounts(query, Transaction.amount)

    @staticmethod
    def _category_allocations_by_month(scope, category):
        """Allocated totals per allocation month, across every income goal of *category*."""
        rows = scope_query(BudgetAllocation, scope).join(
            BudgetGoal, BudgetGoal.id == BudgetAllocation.income_goal_id
        ).filter(
            BudgetGoal.category == category,
        ).with_entities(
            BudgetAllocation.month_year, func.sum(BudgetAllocation.amount)
        ).group_by(BudgetAllocation.month_year).all()
        return {month: to_amount(total) for month, total in rows}

    @staticmethod
    def get_category_balance(scope, category, month):
        """Income of *category* still free to allocate for *month*.

        Later months that already hold allocations are checkpoints too: a new
        allocation for *month* may not push any of them past its income.
        """
        period_start = month_start(month)
        by_month = AllocationService._category_allocations_by_month(scope, category)
        checkpoints = [period_start] + sorted(m for m in by_month if m > period_start)

        available = None
        for checkpoint in checkpoints:
            income = AllocationService._category_income_through(scope, category, month_end(checkpoint))
            allocated = sum((total for m, total in by_month.items() if m <= checkpoint), ZERO)
            headroom = income - allocated
            if available is None or headroom < available:
                available = headroom
        return available

    @staticmethod
    def get_available_balance(goal, month=None):
        """Income still available to allocate from an income *goal*.

        Evaluated at *month*, or at the goal's own month when omitted.
        """
        if goal.kind != 'income':
            raise AllocationError('Only income goals have an available balance', code='invalid_goal')
        goal_scope = Scope(user_id=goal.user_id, household_id=goal.household_id)
        return AllocationService.get_category_balance(goal_scope, goal.category, month or goal.month_year)

    @staticmethod
    def _latest_income_goal(scope, category, month):
        return scope_query(BudgetGoal, scope).filter(
            BudgetGoal.kind == 'income',
            BudgetGoal.category == category,
            BudgetGoal.month_year <= month_start(month),
        ).order_by(BudgetGoal.month_year.desc(), BudgetGoal.id.desc()).first()

    @staticmethod
    def _lock_category(scope, category):
        scope_query(BudgetGoal, scope).filter(
            BudgetGoal.kind == 'income',
            BudgetGoal.category == category,
        ).with_for_update().all()

    @staticmethod
    def get_income_sources(scope, month):
        """Income sources selectable for allocations in *month*.

        One entry per income category with transactions up to the month end:
        the latest income goal of that category tagged to this month or
        earlier, or a virtual goal when there is none.
        """
        period_start = month_start(month)
        rows = scope_query(Transaction, scope).filter(
            Transaction.kind == 'income',
            Transaction.transaction_date <= month_end(period_start),
        ).with_entities(Transaction.category).distinct().all()

        goals = scope_query(BudgetGoal, scope).filter(
            BudgetGoal.kind == 'income',
            BudgetGoal.month_year <= period_start,
        ).order_by(BudgetGoal.month_year.desc(), BudgetGoal.id.desc()).all()
        latest = {}
        for goal in goals:
            latest.setdefault(goal.category, goal)

        sources = []
        for category in sorted(c for (c,) in rows):
            goal = latest.get(category)
            if goal is not None:
                sources.append({
                    'id': goal.id,
                    'category': category,
                    'interval': goal.interval,
                    'planned_amount': format_amount(goal.planned_amount),
                    'available': format_amount(AllocationService.get_available_balance(goal, period_start)),
                    'is_virtual': False,
                })
            else:
                sources.append({
                    'id': AllocationService.virtual_id(category),
                    'category': category,
                    'interval': 'irregular',
                    'planned_amount': format_amount(ZERO),
                    'available': format_amount(AllocationService.get_category_balance(scope, category, period_start)),
                    'is_virtual': True,
                })
        return sources

    # ------------------------------------------------------------------
    # Input helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_amount(raw, field='amount', allow_zero=False):
        if raw is None or raw == '':
            raise MissingFieldError(field)
        try:
            amount = to_amount(raw)
        except ValueError:
            raise AllocationError(f'Invalid amount: {raw!r}', code='invalid_amount')
        if amount < ZERO or (amount == ZERO and not allow_zero):
            raise AllocationError('Amount must be greater than zero', code='invalid_amount')
        return amount

    @staticmethod
    def _get_goal(scope, goal_id, kind):
        try:
            goal_id = int(goal_id)
        except (TypeError, ValueError):
            raise AllocationError(f'{kind.capitalize()} goal {goal_id!r} not found', code='goal_not_found')
        goal = scope_query(BudgetGoal, scope).filter(BudgetGoal.id == goal_id, BudgetGoal.kind == kind).first()
        if goal is None:
            raise AllocationError(f'{kind.capitalize()} goal {goal_id} not found', code='goal_not_found')
        return goal

    @staticmethod
    def _resolve_income_goal(scope, income_goal_id, month):
        """Return ``(goal, category)``; ``goal`` is None for a virtual source.

        A virtual id whose category has since gained a goal resolves to that
        goal so a stale client cannot create a duplicate.  The category's
        income goals stay locked until the caller commits or rolls back.
        """
        if AllocationService.is_virtual_id(income_goal_id):
            category = income_goal_id[len(VIRTUAL_PREFIX):].strip()
            if not category:
                raise MissingFieldError('income_goal_id')
            AllocationService._lock_category(scope, category)
            return AllocationService._latest_income_goal(scope, category, month), category
        goal = AllocationService._get_goal(scope, income_goal_id, 'income')
        AllocationService._lock_category(scope, goal.category)
        return goal, goal.category

    @staticmethod
    def _materialize_virtual_goal(scope, category, month):
        period_start = month_start(month)
        goal = BudgetGoal(
            kind='income',
            category=category,
            planned_amount=ZERO,
            interval='irregular',
            status='pending',
            month_year=period_start,
            start_date=period_start,
            **scope.owner_fields()
        )
        db.session.add(goal)
        db.session.flush()
        logger.info('materialised virtual income goal %s for %s (%s)', goal.id, category, scope.label)
        return goal

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def create_allocation(scope, income_goal_id, expense_goal_id, amount, month):
        """Allocate *amount* of an income goal to an expense goal for *month*.

        Raises:
            MissingFieldError: an id or the amount is absent
            AllocationError: amount is not a positive number, or a goal is
                missing, of the wrong kind or out of scope
            InsufficientBalanceError: amount exceeds the income category's available balance
        """
        if income_goal_id is None or income_goal_id == '':
            raise MissingFieldError('income_goal_id')
        if expense_goal_id is None or expense_goal_id == '':
            raise MissingFieldError('expense_goal_id')
        amount = AllocationService._parse_amount(amount)
        if month is None:
            raise MissingFieldError('month')
        period_start = month_start(month)

        try:
            expense_goal = AllocationService._get_goal(scope, expense_goal_id, 'expense')
            income_goal, category = AllocationService._resolve_income_goal(scope, income_goal_id, period_start)

            available = AllocationService.get_category_balance(scope, category, period_start)
            if amount > available:
                raise InsufficientBalanceError(available, amount, category)

            if income_goal is None:
                income_goal = AllocationService._materialize_virtual_goal(scope, category, period_start)

            allocation = BudgetAllocation(
                income_goal_id=income_goal.id,
                expense_goal_id=expense_goal.id,
                amount=amount,
                month_year=period_start,
                **scope.owner_fields()
            )
            db.session.add(allocation)
            db.session.commit()
        except BudgetError:
            db.session.rollback()
            raise
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('allocation insert failed (%s, income=%s, expense=%s)',
                             scope.label, income_goal_id, expense_goal_id)
            raise

        logger.info('allocated %s from %s to %s for %s (%s)',
                    amount, category, expense_goal.category, period_start, scope.label)
        return allocation

    @staticmethod
    def replace_month_allocations(scope, month, entries):
        """Replace every allocation of *scope* for *month* with *entries*.

        *entries* is an iterable of mappings with ``income_goal_id``,
        ``expense_goal_id`` and ``amount``.  Zero amounts are skipped (a
        cleared row).  Runs as one transaction: either the whole new set is
        stored or the previous set is left untouched.

        Returns: list of the new BudgetAllocation rows
        """
        if month is None:
            raise MissingFieldError('month')
        period_start = month_start(month)

        parsed = []
        for index, entry in enumerate(entries or []):
            income_goal_id = entry.get('income_goal_id')
            expense_goal_id = entry.get('expense_goal_id')
            if income_goal_id is None or income_goal_id == '':
                raise MissingFieldError(f'entries[{index}].income_goal_id')
            if expense_goal_id is None or expense_goal_id == '':
                raise MissingFieldError(f'entries[{index}].expense_goal_id')
            amount = AllocationService._parse_amount(
                entry.get('amount'), field=f'entries[{index}].amount', allow_zero=True
            )
            if amount == ZERO:
                continue
            parsed.append((income_goal_id, expense_goal_id, amount))

        try:
            existing = scope_query(BudgetAllocation, scope).filter(
                BudgetAllocation.month_year == period_start
            ).all()
            for allocation in existing:
                db.session.delete(allocation)
            db.session.flush()

            totals = {}
            rows = []
            for income_goal_id, expense_goal_id, amount in parsed:
                expense_goal = AllocationService._get_goal(scope, expense_goal_id, 'expense')
                income_goal, category = AllocationService._resolve_income_goal(scope, income_goal_id, period_start)
                if income_goal is None:
                    income_goal = AllocationService._materialize_virtual_goal(scope, category, period_start)
                totals[category] = totals.get(category, ZERO) + amount
                rows.append(BudgetAllocation(
                    income_goal_id=income_goal.id,
                    expense_goal_id=expense_goal.id,
                    amount=amount,
                    month_year=period_start,
                    **scope.owner_fields()
                ))

            for category, total in totals.items():
                available = AllocationService.get_category_balance(scope, category, period_start)
                if total > available:
                    raise InsufficientBalanceError(available, total, category)

            db.session.add_all(rows)
            db.session.commit()
        except BudgetError:
            db.session.rollback()
            raise
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('replacing allocations failed for %s %s; previous set kept',
                             scope.label, period_start)
            raise

        logger.info('replaced %d allocation(s) with %d for %s (%s)',
                    len(existing), len(rows), period_start, scope.label)
        return rows

    @staticmethod
    def delete_allocation(scope, allocation_id):
        allocation = scope_get(BudgetAllocation, scope, allocation_id)
        if allocation is None:
            raise RecordNotFoundError(f'Allocation {allocation_id} not found')
        db.session.delete(allocation)
        db.session.commit()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def get_month_allocations(scope, month):
        """Allocations made for *month* with per-goal totals.

        Returns: dict with ``allocations``, ``incomes`` and ``expenses``.
        The expense entries cover every expense goal active in the month,
        including ones with nothing allocated yet.
        """
        period_start = month_start(month)
        period_end = month_end(period_start)
        allocations = scope_query(BudgetAllocation, scope).filter(
            BudgetAllocation.month_year == period_start
        ).order_by(BudgetAllocation.id).all()

        income_totals = {}
        expense_totals = {}
        for allocation in allocations:
            income_totals[allocation.income_goal_id] = \
                income_totals.get(allocation.income_goal_id, ZERO) + to_amount(allocation.amount)
            expense_totals[allocation.expense_goal_id] = \
                expense_totals.get(allocation.expense_goal_id, ZERO) + to_amount(allocation.amount)

        expense_goals = [
            goal for goal in scope_query(BudgetGoal, scope).filter(
                BudgetGoal.kind == 'expense',
                BudgetGoal.start_date <= period_end,
            ).order_by(BudgetGoal.category).all()
            if goal.overlaps(period_start, period_end) or goal.id in expense_totals
        ]

        incomes = []
        for goal_id, total in income_totals.items():
            goal = db.session.get(BudgetGoal, goal_id)
            incomes.append({
                'goal_id': goal_id,
                'category': goal.category if goal else None,
                'allocated': format_amount(total),
            })

        expenses = []
        for goal in expense_goals:
            allocated = expense_totals.get(goal.id, ZERO)
            expenses.append({
                'goal_id': goal.id,
                'category': goal.category,
                'planned_amount': format_amount(goal.planned_amount),
                'allocated': format_amount(allocated),
                'remaining': format_amount(to_amount(goal.planned_amount) - allocated),
            })

        return {
            'month': period_start.isoformat(),
            'allocations': [a.to_dict() for a in allocations],
            'incomes': sorted(incomes, key=lambda i: i['category'] or ''),
            'expenses': expenses,
        }
