from flask import request, jsonify
from . import transactions_bp
from .forms import TransactionForm
from services.transaction_service import TransactionService
from utils.api import form_error_response, get_month, get_scope, request_data

EDITABLE_FIELDS = ('kind', 'category', 'amount', 'transaction_date', 'interval', 'remarks')


@transactions_bp.route('/transactions')
def index():
    """List transactions of the scope, optionally filtered by month/kind/category"""
    scope = get_scope()
    month = get_month() if request.args.get('month') else None
    transactions = TransactionService.list_transactions(
        scope,
        month=month,
        kind=request.args.get('kind') or None,
        category=request.args.get('category') or None,
    )
    return jsonify({
        'scope': scope.to_dict(),
        'transactions': [t.to_dict() for t in transactions],
    })


@transactions_bp.route('/transactions/add', methods=['POST'])
def add():
    scope = get_scope()
    form = TransactionForm()
    if not form.validate():
        return form_error_response(form)

    txn = TransactionService.create_transaction(
        scope,
        kind=form.kind.data,
        category=form.category.data,
        amount=form.amount.data,
        transaction_date=form.transaction_date.data,
        interval=form.interval.data or 'one-time',
        remarks=form.remarks.data,
    )
    return jsonify({'success': True, 'transaction': txn.to_dict()}), 201


@transactions_bp.route('/transactions/<int:id>')
def detail(id):
    txn = TransactionService.get_transaction(get_scope(), id)
    return jsonify({'transaction': txn.to_dict()})


@transactions_bp.route('/transactions/<int:id>/edit', methods=['POST'])
def edit(id):
    """Partial update: only the fields present in the body change"""
    data = request_data()
    fields = {name: data[name] for name in EDITABLE_FIELDS if name in data}
    txn = TransactionService.update_transaction(get_scope(), id, **fields)
    return jsonify({'success': True, 'transaction': txn.to_dict()})


@transactions_bp.route('/transactions/<int:id>/delete', methods=['POST'])
def delete(id):
    TransactionService.delete_transaction(get_scope(), id)
    return jsonify({'success': True})
