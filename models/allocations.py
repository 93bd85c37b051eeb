from extensions import db
from utils.dates import utcnow, format_amount


class BudgetAllocation(db.Model):
    """A committed amount of one income goal bound to one expense goal."""
    __tablename__ = 'budget_allocations'

    id = db.Column(db.Integer, primary_key=True)
    # Scope of the user who made the allocation (same partitioning as goals)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    household_id = db.Column(db.Integer, db.ForeignKey('households.id', ondelete='CASCADE'), nullable=True, index=True)
    income_goal_id = db.Column(db.Integer, db.ForeignKey('budget_goals.id', name='fk_income_goal', ondelete='CASCADE'),
                               nullable=False, index=True)
    expense_goal_id = db.Column(db.Integer, db.ForeignKey('budget_goals.id', name='fk_expense_goal', ondelete='CASCADE'),
                                nullable=False, index=True)
    amount = db.Column(db.Numeric(15, 4), nullable=False)
    month_year = db.Column(db.Date, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    income_goal = db.relationship('BudgetGoal', foreign_keys=[income_goal_id], back_populates='income_allocations')
    expense_goal = db.relationship('BudgetGoal', foreign_keys=[expense_goal_id], back_populates='expense_allocations')

    def to_dict(self):
        return {
            'id': self.id,
            'income_goal_id': self.income_goal_id,
            'expense_goal_id': self.expense_goal_id,
            'income_category': self.income_goal.category if self.income_goal else None,
            'expense_category': self.expense_goal.category if self.expense_goal else None,
            'amount': format_amount(self.amount),
            'month_year': self.month_year.isoformat(),
        }

    def __repr__(self):
        return f'<BudgetAllocation {self.income_goal_id}->{self.expense_goal_id}: {self.amount}>'
