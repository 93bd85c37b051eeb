from extensions import db
from utils.dates import utcnow, format_amount


class BudgetGoal(db.Model):
    """Planned amount for a category over a date window.

    ``month_year`` is the month tag (first day of the start month) used by
    the carry-forward calculation; ``start_date``/``end_date`` decide which
    months the goal applies to.  ``end_date`` NULL means open-ended.
    """
    __tablename__ = 'budget_goals'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    household_id = db.Column(db.Integer, db.ForeignKey('households.id', ondelete='CASCADE'), nullable=True, index=True)
    kind = db.Column(db.String(20), nullable=False)  # income | expense
    category = db.Column(db.String(100), nullable=False)
    planned_amount = db.Column(db.Numeric(15, 4), nullable=False, default=0)
    interval = db.Column(db.String(20), nullable=False, default='monthly')
    status = db.Column(db.String(20), nullable=False, default='pending')  # pending | done
    month_year = db.Column(db.Date, nullable=False, index=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Deleting a goal deletes every allocation on either side of it
    income_allocations = db.relationship('BudgetAllocation', foreign_keys='BudgetAllocation.income_goal_id',
                                         back_populates='income_goal', cascade='all')
    expense_allocations = db.relationship('BudgetAllocation', foreign_keys='BudgetAllocation.expense_goal_id',
                                          back_populates='expense_goal', cascade='all')

    def overlaps(self, period_start, period_end):
        """True if this goal's window intersects [period_start, period_end]."""
        if self.start_date > period_end:
            return False
        return self.end_date is None or self.end_date >= period_start

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'household_id': self.household_id,
            'kind': self.kind,
            'category': self.category,
            'planned_amount': format_amount(self.planned_amount),
            'interval': self.interval,
            'status': self.status,
            'month_year': self.month_year.isoformat(),
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat() if self.end_date else None,
        }

    def __repr__(self):
        return f'<BudgetGoal {self.id}: {self.kind} {self.category} {self.planned_amount}>'
