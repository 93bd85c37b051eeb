"""
Tests for CarryForwardService: unspent income rolled into later months.
"""
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from extensions import db
from services.carry_forward_service import CarryForwardResult, CarryForwardService
from utils.dates import ZERO

from conftest import add_allocation, add_goal, add_transaction

JAN = date(2024, 1, 1)
FEB = date(2024, 2, 1)
MAR = date(2024, 3, 1)


class TestCalculate:
    def test_no_data_is_zero(self, app, scope):
        result = CarryForwardService.calculate(scope, FEB)

        assert result.ok is True
        assert result.amount == ZERO

    def test_only_income_before_the_month_counts(self, app, scope):
        add_transaction(scope, 'income', 'Salary', 1000, date(2024, 1, 31))
        add_transaction(scope, 'income', 'Salary', 500, date(2024, 2, 1))

        assert CarryForwardService.calculate(scope, FEB).amount == Decimal('1000.0000')
        assert CarryForwardService.calculate(scope, MAR).amount == Decimal('1500.0000')

    def test_reference_day_is_ignored(self, app, scope):
        add_transaction(scope, 'income', 'Salary', 1000, date(2024, 1, 15))

        assert CarryForwardService.calculate(scope, date(2024, 2, 27)).amount == Decimal('1000.0000')

    def test_expenses_do_not_reduce_carry_forward(self, app, scope):
        add_transaction(scope, 'income', 'Salary', 1000, date(2024, 1, 15))
        add_transaction(scope, 'expense', 'Rent', 800, date(2024, 1, 20))

        assert CarryForwardService.calculate(scope, FEB).amount == Decimal('1000.0000')

    def test_allocations_against_earlier_goals_are_subtracted(self, app, scope):
        add_transaction(scope, 'income', 'Salary', 5000, date(2024, 1, 10))
        salary = add_goal(scope, 'income', 'Salary', 5000, JAN)
        rent = add_goal(scope, 'expense', 'Rent', 3000, JAN)
        # Made in March, but against a January goal: still counts for February
        add_allocation(scope, salary, rent, 3000, MAR)

        assert CarryForwardService.calculate(scope, FEB).amount == Decimal('2000.0000')

    def test_allocations_against_goals_of_the_month_itself_are_ignored(self, app, scope):
        add_transaction(scope, 'income', 'Salary', 5000, date(2024, 1, 10))
        salary = add_goal(scope, 'income', 'Salary', 5000, FEB)
        rent = add_goal(scope, 'expense', 'Rent', 3000, FEB)
        add_allocation(scope, salary, rent, 3000, FEB)

        assert CarryForwardService.calculate(scope, FEB).amount == Decimal('5000.0000')

    def test_never_negative(self, app, scope):
        add_transaction(scope, 'income', 'Salary', 100, date(2024, 1, 10))
        salary = add_goal(scope, 'income', 'Salary', 100, JAN)
        rent = add_goal(scope, 'expense', 'Rent', 500, JAN)
        add_allocation(scope, salary, rent, 500, JAN)

        result = CarryForwardService.calculate(scope, FEB)

        assert result.ok is True
        assert result.amount == ZERO

    def test_scopes_do_not_mix(self, app, scope, household_scope):
        add_transaction(scope, 'income', 'Salary', 1000, date(2024, 1, 10))
        add_transaction(household_scope, 'income', 'Salary', 250, date(2024, 1, 10))

        assert CarryForwardService.calculate(scope, FEB).amount == Decimal('1000.0000')
        assert CarryForwardService.calculate(household_scope, FEB).amount == Decimal('250.0000')

    def test_deleting_a_transaction_changes_the_next_result(self, app, scope):
        add_transaction(scope, 'income', 'Salary', 1000, date(2024, 1, 10))
        bonus = add_transaction(scope, 'income', 'Bonus', 300, date(2024, 1, 20))
        assert CarryForwardService.calculate(scope, FEB).amount == Decimal('1300.0000')

        db.session.delete(bonus)
        db.session.commit()

        assert CarryForwardService.calculate(scope, FEB).amount == Decimal('1000.0000')


class TestCategoryMode:
    def test_category_restricts_income_and_allocations(self, app, scope):
        add_transaction(scope, 'income', 'Salary', 1000, date(2024, 1, 10))
        add_transaction(scope, 'income', 'Dividends', 200, date(2024, 1, 12))
        salary = add_goal(scope, 'income', 'Salary', 1000, JAN)
        rent = add_goal(scope, 'expense', 'Rent', 400, JAN)
        add_allocation(scope, salary, rent, 400, JAN)

        assert CarryForwardService.calculate(scope, FEB, 'Salary').amount == Decimal('600.0000')
        assert CarryForwardService.calculate(scope, FEB, 'Dividends').amount == Decimal('200.0000')

    def test_per_category_sum_can_exceed_global_figure(self, app, scope):
        """Deficits net across categories globally but clamp at zero per category."""
        add_transaction(scope, 'income', 'Salary', 1000, date(2024, 1, 10))
        add_transaction(scope, 'income', 'Bonus', 100, date(2024, 1, 15))
        salary = add_goal(scope, 'income', 'Salary', 1000, JAN)
        bonus = add_goal(scope, 'income', 'Bonus', 100, JAN)
        rent = add_goal(scope, 'expense', 'Rent', 600, JAN)
        add_allocation(scope, salary, rent, 400, JAN)
        # Over-allocated: only possible through direct rows, not the service
        add_allocation(scope, bonus, rent, 200, JAN)

        per_category = CarryForwardService.calculate_by_category(scope, FEB)
        global_result = CarryForwardService.calculate(scope, FEB)

        assert per_category['Salary'].amount == Decimal('600.0000')
        assert per_category['Bonus'].amount == ZERO
        assert sum(r.amount for r in per_category.values()) == Decimal('600.0000')
        assert global_result.amount == Decimal('500.0000')

    def test_by_category_lists_categories_from_transactions_and_goals(self, app, scope):
        add_transaction(scope, 'income', 'Salary', 1000, date(2024, 1, 10))
        add_goal(scope, 'income', 'Dividends', 50, JAN)
        add_transaction(scope, 'income', 'Rental Income', 700, date(2024, 2, 3))  # not before February

        results = CarryForwardService.calculate_by_category(scope, FEB)

        assert sorted(results) == ['Dividends', 'Salary']
        assert results['Dividends'].amount == ZERO

    def test_by_category_with_explicit_categories(self, app, scope):
        add_transaction(scope, 'income', 'Salary', 1000, date(2024, 1, 10))

        results = CarryForwardService.calculate_by_category(scope, FEB, ['Salary', 'Bonus'])

        assert results['Salary'].amount == Decimal('1000.0000')
        assert results['Bonus'].amount == ZERO


class TestFailureOutcome:
    def test_database_error_is_reported_not_zero(self, app, scope, monkeypatch):
        def boom(*args, **kwargs):
            raise OperationalError('SELECT', {}, Exception('database is locked'))

        monkeypatch.setattr(CarryForwardService, '_income_before', boom)

        result = CarryForwardService.calculate(scope, FEB)

        assert result.ok is False
        assert result.amount is None
        assert 'database is locked' in result.error
        assert result.value_or_zero() == ZERO
        assert result.to_dict() == {'carry_forward': None, 'carry_forward_available': False}

    def test_category_lookup_error_is_reported(self, app, scope, monkeypatch):
        def boom(*args, **kwargs):
            raise OperationalError('SELECT', {}, Exception('database is locked'))

        monkeypatch.setattr(CarryForwardService, '_income_categories_before', boom)

        assert CarryForwardService.calculate_by_category(scope, FEB) is None

    def test_category_lookup_error_over_http(self, app, auth_client, monkeypatch):
        def boom(*args, **kwargs):
            raise OperationalError('SELECT', {}, Exception('database is locked'))

        monkeypatch.setattr(CarryForwardService, '_income_categories_before', boom)

        data = auth_client.get('/budgets/carry-forward?month=2024-02&by_category=1').get_json()

        assert data['carry_forward_available'] is True
        assert data['categories_available'] is False
        assert data['categories'] is None

    def test_success_serialises_amount(self):
        result = CarryForwardResult.success(Decimal('12.5'))

        assert result.to_dict() == {'carry_forward': '12.5000', 'carry_forward_available': True}


class TestEndToEnd:
    def test_salary_rent_scenario(self, app, scope):
        from services.allocation_service import AllocationService
        from services.errors import InsufficientBalanceError

        add_transaction(scope, 'income', 'Salary', 5000, date(2024, 1, 25))
        salary = add_goal(scope, 'income', 'Salary', 5000, JAN)
        rent = add_goal(scope, 'expense', 'Rent', 3000, JAN)

        AllocationService.create_allocation(scope, salary.id, rent.id, '3000', JAN)

        assert AllocationService.get_available_balance(salary) == Decimal('2000.0000')
        assert CarryForwardService.calculate(scope, FEB).amount == Decimal('2000.0000')

        feb_rent = add_goal(scope, 'expense', 'Rent', 3000, FEB)
        sources = AllocationService.get_income_sources(scope, FEB)
        assert [(s['id'], s['available']) for s in sources] == [(salary.id, '2000.0000')]

        with pytest.raises(InsufficientBalanceError):
            AllocationService.create_allocation(scope, salary.id, feb_rent.id, '2500', FEB)
        assert len(salary.income_allocations) == 1
