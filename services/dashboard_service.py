"""
Dashboard Service
Headline figures and category charts for the dashboard.

Earnings are taken from the previous month (salary for month N usually lands
at the end of month N-1); expenses and investments from the current month.
"""
from datetime import date
from decimal import Decimal

from sqlalchemy import func

from models.transactions import Transaction
from utils.dates import ZERO, month_end, month_start, previous_month, to_amount
from utils.db_helpers import scope_query, sum_amounts


class DashboardService:

    @staticmethod
    def _month_query(scope, kind, month):
        period_start = month_start(month)
        return scope_query(Transaction, scope).filter(
            Transaction.kind == kind,
            Transaction.transaction_date >= period_start,
            Transaction.transaction_date <= month_end(period_start),
        )

    @staticmethod
    def get_dashboard_stats(scope, today=None):
        """
        Returns:
            dict with total_earnings, total_expenses, net_balance,
            savings_rate (percent, 0 when there were no earnings) and
            total_investments
        """
        today = today or date.today()
        earnings = sum_amounts(
            DashboardService._month_query(scope, 'income', previous_month(today)), Transaction.amount
        )
        expenses = sum_amounts(DashboardService._month_query(scope, 'expense', today), Transaction.amount)
        investments = sum_amounts(DashboardService._month_query(scope, 'investment', today), Transaction.amount)

        net_balance = earnings - expenses
        if earnings > ZERO:
            savings_rate = (net_balance / earnings * 100).quantize(Decimal('0.01'))
        else:
            savings_rate = Decimal('0.00')

        return {
            'total_earnings': earnings,
            'total_expenses': expenses,
            'net_balance': net_balance,
            'savings_rate': savings_rate,
            'total_investments': investments,
        }

    @staticmethod
    def get_category_breakdown(scope, month, kind='expense'):
        """Per-category totals for *month*, largest first, with percentage share."""
        rows = DashboardService._month_query(scope, kind, month).with_entities(
            Transaction.category, func.sum(Transaction.amount)
        ).group_by(Transaction.category).all()

        totals = [(category, to_amount(total)) for category, total in rows]
        grand_total = sum((total for _, total in totals), ZERO)
        totals.sort(key=lambda item: (-item[1], item[0]))

        return [
            {
                'category': category,
                'total': total,
                'percentage': (total / grand_total * 100).quantize(Decimal('0.01')) if grand_total else Decimal('0.00'),
            }
            for category, total in totals
        ]
