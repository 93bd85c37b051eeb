"""
Tests for TransactionService and DashboardService.
"""
from datetime import date
from decimal import Decimal

import pytest

from models.transactions import Transaction
from services.dashboard_service import DashboardService
from services.errors import BudgetError, MissingFieldError, RecordNotFoundError
from services.transaction_service import TransactionService
from utils.dates import ZERO

from conftest import add_transaction


class TestTransactionRecords:
    def test_create(self, app, scope):
        txn = TransactionService.create_transaction(
            scope, kind='expense', category=' Groceries ', amount='12.345678',
            transaction_date='2024-01-05', remarks='weekly shop',
        )

        assert txn.category == 'Groceries'
        assert txn.amount == Decimal('12.3457')
        assert txn.transaction_date == date(2024, 1, 5)
        assert txn.interval == 'one-time'
        assert txn.household_id is None

    @pytest.mark.parametrize('amount', ['0', '-10', 'ten'])
    def test_amount_must_be_positive_number(self, app, scope, amount):
        with pytest.raises(BudgetError) as exc_info:
            TransactionService.create_transaction(scope, kind='income', category='Salary',
                                                  amount=amount, transaction_date='2024-01-05')

        assert exc_info.value.code == 'invalid_amount'
        assert Transaction.query.count() == 0

    def test_kind_validated(self, app, scope):
        with pytest.raises(BudgetError):
            TransactionService.create_transaction(scope, kind='transfer', category='X',
                                                  amount='1', transaction_date='2024-01-05')

    def test_date_required(self, app, scope):
        with pytest.raises(MissingFieldError):
            TransactionService.create_transaction(scope, kind='income', category='Salary', amount='1')

    def test_update_in_place(self, app, scope):
        txn = add_transaction(scope, 'expense', 'Fuel', 30, date(2024, 1, 3))

        TransactionService.update_transaction(scope, txn.id, amount='45', remarks='')

        assert txn.amount == Decimal('45.0000')
        assert txn.remarks is None
        assert txn.category == 'Fuel'

    def test_other_scope_not_found(self, app, scope, household_scope):
        txn = add_transaction(household_scope, 'expense', 'Fuel', 30, date(2024, 1, 3))

        with pytest.raises(RecordNotFoundError):
            TransactionService.get_transaction(scope, txn.id)
        with pytest.raises(RecordNotFoundError):
            TransactionService.delete_transaction(scope, txn.id)

    def test_delete(self, app, scope):
        txn = add_transaction(scope, 'expense', 'Fuel', 30, date(2024, 1, 3))

        TransactionService.delete_transaction(scope, txn.id)

        assert Transaction.query.count() == 0

    def test_list_filters(self, app, scope):
        add_transaction(scope, 'expense', 'Fuel', 30, date(2024, 1, 3))
        add_transaction(scope, 'expense', 'Rent', 800, date(2024, 1, 1))
        add_transaction(scope, 'income', 'Salary', 5000, date(2024, 1, 25))
        add_transaction(scope, 'expense', 'Fuel', 35, date(2024, 2, 3))

        january = TransactionService.list_transactions(scope, month=date(2024, 1, 1))
        assert [t.transaction_date.day for t in january] == [25, 3, 1]

        fuel = TransactionService.list_transactions(scope, kind='expense', category='Fuel')
        assert len(fuel) == 2


class TestDashboard:
    def test_stats_use_previous_month_earnings(self, app, scope):
        add_transaction(scope, 'income', 'Salary', 4000, date(2024, 2, 28))
        add_transaction(scope, 'income', 'Salary', 9999, date(2024, 3, 28))
        add_transaction(scope, 'expense', 'Rent', 1000, date(2024, 3, 1))
        add_transaction(scope, 'investment', 'Mutual Funds (MF)', 500, date(2024, 3, 10))

        stats = DashboardService.get_dashboard_stats(scope, date(2024, 3, 15))

        assert stats['total_earnings'] == Decimal('4000.0000')
        assert stats['total_expenses'] == Decimal('1000.0000')
        assert stats['net_balance'] == Decimal('3000.0000')
        assert stats['savings_rate'] == Decimal('75.00')
        assert stats['total_investments'] == Decimal('500.0000')

    def test_savings_rate_zero_without_earnings(self, app, scope):
        add_transaction(scope, 'expense', 'Rent', 1000, date(2024, 3, 1))

        stats = DashboardService.get_dashboard_stats(scope, date(2024, 3, 15))

        assert stats['savings_rate'] == 0
        assert stats['net_balance'] == Decimal('-1000.0000')

    def test_category_breakdown_largest_first(self, app, scope):
        add_transaction(scope, 'expense', 'Fuel', 25, date(2024, 3, 1))
        add_transaction(scope, 'expense', 'Rent', 75, date(2024, 3, 2))

        rows = DashboardService.get_category_breakdown(scope, date(2024, 3, 1))

        assert [(r['category'], r['percentage']) for r in rows] == [
            ('Rent', Decimal('75.00')),
            ('Fuel', Decimal('25.00')),
        ]

    def test_category_breakdown_empty(self, app, scope):
        assert DashboardService.get_category_breakdown(scope, date(2024, 3, 1), 'investment') == []
        assert DashboardService.get_dashboard_stats(scope, date(2024, 3, 1))['total_earnings'] == ZERO
