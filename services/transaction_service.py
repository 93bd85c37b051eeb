"""
Transaction Service
Income, expense and investment records for a scope.
"""
import logging

from extensions import db
from models.transactions import Transaction
from services.errors import BudgetError, MissingFieldError, RecordNotFoundError
from utils.constants import INTERVALS, TRANSACTION_KINDS
from utils.dates import ZERO, month_end, month_start, parse_date, to_amount
from utils.db_helpers import scope_get, scope_query

logger = logging.getLogger(__name__)


class TransactionService:

    @staticmethod
    def _clean(data, partial=False):
        cleaned = {}

        if 'kind' in data or not partial:
            kind = data.get('kind')
            if not kind:
                raise MissingFieldError('kind')
            if kind not in TRANSACTION_KINDS:
                raise BudgetError(f'Kind must be one of {", ".join(TRANSACTION_KINDS)}', code='invalid_kind')
            cleaned['kind'] = kind

        if 'category' in data or not partial:
            category = (data.get('category') or '').strip()
            if not category:
                raise MissingFieldError('category')
            cleaned['category'] = category

        if 'amount' in data or not partial:
            raw = data.get('amount')
            if raw is None or raw == '':
                raise MissingFieldError('amount')
            try:
                amount = to_amount(raw)
            except ValueError as exc:
                raise BudgetError(str(exc), code='invalid_amount')
            if amount <= ZERO:
                raise BudgetError('Amount must be greater than zero', code='invalid_amount')
            cleaned['amount'] = amount

        if 'transaction_date' in data or not partial:
            if not data.get('transaction_date'):
                raise MissingFieldError('transaction_date')
            try:
                cleaned['transaction_date'] = parse_date(data['transaction_date'])
            except ValueError as exc:
                raise BudgetError(str(exc), code='invalid_date')

        if 'interval' in data:
            interval = data.get('interval') or 'one-time'
            if interval not in INTERVALS:
                raise BudgetError(f'Unknown interval: {interval}', code='invalid_interval')
            cleaned['interval'] = interval

        if 'remarks' in data:
            cleaned['remarks'] = (data.get('remarks') or '').strip() or None

        return cleaned

    @staticmethod
    def create_transaction(scope, **data):
        """Record a transaction in *scope*.

        Required: kind, category, amount (> 0), transaction_date.
        Optional: interval (default ``one-time``), remarks.
        """
        fields = TransactionService._clean(data)
        txn = Transaction(**fields, **scope.owner_fields())
        db.session.add(txn)
        db.session.commit()
        logger.debug('created transaction %s (%s %s, %s)', txn.id, txn.kind, txn.amount, scope.label)
        return txn

    @staticmethod
    def get_transaction(scope, transaction_id):
        txn = scope_get(Transaction, scope, transaction_id)
        if txn is None:
            raise RecordNotFoundError(f'Transaction {transaction_id} not found')
        return txn

    @staticmethod
    def update_transaction(scope, transaction_id, **data):
        txn = TransactionService.get_transaction(scope, transaction_id)
        for name, value in TransactionService._clean(data, partial=True).items():
            setattr(txn, name, value)
        db.session.commit()
        return txn

    @staticmethod
    def delete_transaction(scope, transaction_id):
        txn = TransactionService.get_transaction(scope, transaction_id)
        db.session.delete(txn)
        db.session.commit()
        logger.debug('deleted transaction %s (%s)', transaction_id, scope.label)

    @staticmethod
    def list_transactions(scope, month=None, kind=None, category=None):
        """Transactions of *scope*, newest first, optionally filtered."""
        query = scope_query(Transaction, scope)
        if month is not None:
            period_start = month_start(month)
            query = query.filter(
                Transaction.transaction_date >= period_start,
                Transaction.transaction_date <= month_end(period_start),
            )
        if kind:
            query = query.filter(Transaction.kind == kind)
        if category:
            query = query.filter(Transaction.category == category)
        return query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc()).all()
