from flask import current_app, jsonify
from . import allocations_bp
from services.allocation_service import AllocationService
from services.errors import BudgetError
from utils.api import get_month, get_scope, request_data


@allocations_bp.route('/allocations')
def index():
    """Allocations made for the month with per-goal totals"""
    scope = get_scope()
    data = AllocationService.get_month_allocations(scope, get_month())
    return jsonify({'scope': scope.to_dict(), **data})


@allocations_bp.route('/allocations/sources')
def sources():
    """Income goals (real or virtual) that can fund allocations this month"""
    scope = get_scope()
    month = get_month()
    return jsonify({
        'scope': scope.to_dict(),
        'month': month.isoformat(),
        'sources': AllocationService.get_income_sources(scope, month),
    })


@allocations_bp.route('/allocations/add', methods=['POST'])
def add():
    scope = get_scope()
    data = request_data()
    allocation = AllocationService.create_allocation(
        scope,
        data.get('income_goal_id'),
        data.get('expense_goal_id'),
        data.get('amount'),
        get_month(),
    )
    return jsonify({'success': True, 'allocation': allocation.to_dict()}), 201


@allocations_bp.route('/allocations/replace', methods=['POST'])
def replace():
    """Replace the month's allocations with ``entries`` in one transaction"""
    scope = get_scope()
    month = get_month()
    entries = request_data().get('entries')
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise BudgetError('entries must be a list of objects', code='invalid_entries')

    rows = AllocationService.replace_month_allocations(scope, month, entries)
    current_app.logger.info(f'Allocations for {month:%Y-%m} saved ({len(rows)} rows, {scope.label})')
    return jsonify({'success': True, 'allocations': [a.to_dict() for a in rows]})


@allocations_bp.route('/allocations/<int:id>/delete', methods=['POST'])
def delete(id):
    AllocationService.delete_allocation(get_scope(), id)
    return jsonify({'success': True})
