"""
Carry-Forward Service
=====================
Unspent income surplus rolled forward from all months before a reference
month.

    carry_forward = max(0, income_before_month - allocated_against_old_goals)

  income_before_month:        income transactions dated before the first day
                               of the reference month.
  allocated_against_old_goals: every allocation whose income side is an
                               income goal tagged to an earlier month, no
                               matter which month the allocation was made in.

With a category the same sums are restricted to that category.  Without one
("global" mode) surpluses and deficits of different categories net against
each other before the clamp, so the per-category figures summed can be larger
than the global figure.

Failures do not masquerade as zero: every call returns a CarryForwardResult
that says whether the figure could be computed.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.allocations import BudgetAllocation
from models.budgets import BudgetGoal
from models.transactions import Transaction
from utils.dates import ZERO, month_start, format_amount
from utils.db_helpers import scope_query, sum_amounts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CarryForwardResult:
    """Outcome of a carry-forward computation.

    ``amount`` is ``None`` when ``ok`` is False; use ``value_or_zero()`` where
    an unavailable figure may be shown as zero.
    """
    ok: bool
    amount: Optional[Decimal] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, amount):
        return cls(ok=True, amount=amount)

    @classmethod
    def failure(cls, error):
        return cls(ok=False, amount=None, error=error)

    def value_or_zero(self):
        return self.amount if self.ok else ZERO

    def to_dict(self):
        return {
            'carry_forward': format_amount(self.amount) if self.ok else None,
            'carry_forward_available': self.ok,
        }


class CarryForwardService:

    @staticmethod
    def _income_before(scope, before, category=None):
        query = scope_query(Transaction, scope).filter(
            Transaction.kind == 'income',
            Transaction.transaction_date < before,
        )
        if category is not None:
            query = query.filter(Transaction.category == category)
        return sum_amounts(query, Transaction.amount)

    @staticmethod
    def _allocated_against_goals_before(scope, before, category=None):
        goal_query = scope_query(BudgetGoal, scope).filter(
            BudgetGoal.kind == 'income',
            BudgetGoal.month_year < before,
        )
        if category is not None:
            goal_query = goal_query.filter(BudgetGoal.category == category)
        goal_ids = [goal_id for (goal_id,) in goal_query.with_entities(BudgetGoal.id).all()]
        if not goal_ids:
            return ZERO
        return sum_amounts(
            BudgetAllocation.query.filter(BudgetAllocation.income_goal_id.in_(goal_ids)),
            BudgetAllocation.amount,
        )

    @staticmethod
    def _income_categories_before(scope, before):
        txn_categories = scope_query(Transaction, scope).filter(
            Transaction.kind == 'income',
            Transaction.transaction_date < before,
        ).with_entities(Transaction.category).distinct().all()
        goal_categories = scope_query(BudgetGoal, scope).filter(
            BudgetGoal.kind == 'income',
            BudgetGoal.month_year < before,
        ).with_entities(BudgetGoal.category).distinct().all()
        return sorted({c for (c,) in txn_categories} | {c for (c,) in goal_categories})

    @staticmethod
    def calculate(scope, reference_month, category=None):
        """Carry-forward into *reference_month* for *scope*.

        Args:
            scope: utils.db_helpers.Scope
            reference_month: any date; only its year/month are used
            category: restrict to one income category (None = global)

        Returns: CarryForwardResult
        """
        before = month_start(reference_month)
        try:
            income = CarryForwardService._income_before(scope, before, category)
            allocated = CarryForwardService._allocated_against_goals_before(scope, before, category)
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception(
                'carry-forward failed for %s month=%s category=%s', scope, before, category
            )
            return CarryForwardResult.failure(str(exc))

        surplus = income - allocated
        logger.debug(
            'carry-forward %s month=%s category=%s: income=%s allocated=%s',
            scope.label, before, category or '*', income, allocated,
        )
        return CarryForwardResult.success(max(surplus, ZERO))

    @staticmethod
    def calculate_by_category(scope, reference_month, categories=None):
        """Per-category carry-forward.

        Without *categories*, covers every income category that has either a
        transaction or an income goal before the reference month.

        Returns: dict category -> CarryForwardResult, or None when the
        categories themselves could not be read
        """
        before = month_start(reference_month)
        if categories is None:
            try:
                categories = CarryForwardService._income_categories_before(scope, before)
            except SQLAlchemyError:
                db.session.rollback()
                logger.exception('carry-forward category lookup failed for %s month=%s', scope, before)
                return None

        return {
            category: CarryForwardService.calculate(scope, before, category)
            for category in categories
        }
