# Models package - Import all models for Flask-SQLAlchemy

from models.allocations import BudgetAllocation
from models.budgets import BudgetGoal
from models.households import Household, HouseholdInvitation, HouseholdMember
from models.transactions import Transaction
from models.users import User

__all__ = [
    'BudgetAllocation',
    'BudgetGoal',
    'Household',
    'HouseholdInvitation',
    'HouseholdMember',
    'Transaction',
    'User',
]
