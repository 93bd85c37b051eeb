from extensions import db
from utils.dates import utcnow, format_amount


class Transaction(db.Model):
    __tablename__ = 'transactions'
    __table_args__ = (
        db.Index('ix_transactions_scope_kind_date', 'household_id', 'user_id', 'kind', 'transaction_date'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    # NULL = individual scope of user_id; set = shared with the household
    household_id = db.Column(db.Integer, db.ForeignKey('households.id', ondelete='CASCADE'), nullable=True, index=True)
    kind = db.Column(db.String(20), nullable=False)  # income | expense | investment
    category = db.Column(db.String(100), nullable=False)
    amount = db.Column(db.Numeric(15, 4), nullable=False)
    transaction_date = db.Column(db.Date, nullable=False)
    interval = db.Column(db.String(20), nullable=False, default='one-time')
    remarks = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'household_id': self.household_id,
            'kind': self.kind,
            'category': self.category,
            'amount': format_amount(self.amount),
            'transaction_date': self.transaction_date.isoformat(),
            'interval': self.interval,
            'remarks': self.remarks,
        }

    def __repr__(self):
        return f'<Transaction {self.transaction_date}: {self.kind} {self.category} - {self.amount}>'
