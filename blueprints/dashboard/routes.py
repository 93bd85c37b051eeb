from datetime import date

from flask import request, jsonify
from . import dashboard_bp
from services.dashboard_service import DashboardService
from services.errors import BudgetError
from utils.api import get_month, get_scope
from utils.constants import TRANSACTION_KINDS
from utils.dates import format_amount


@dashboard_bp.route('/')
@dashboard_bp.route('/dashboard')
def index():
    """Headline figures: last month's earnings against this month's spending"""
    scope = get_scope()
    stats = DashboardService.get_dashboard_stats(scope, date.today())
    return jsonify({
        'scope': scope.to_dict(),
        'total_earnings': format_amount(stats['total_earnings']),
        'total_expenses': format_amount(stats['total_expenses']),
        'net_balance': format_amount(stats['net_balance']),
        'savings_rate': str(stats['savings_rate']),
        'total_investments': format_amount(stats['total_investments']),
    })


@dashboard_bp.route('/dashboard/categories')
def categories():
    """Category chart data (expense or investment)"""
    scope = get_scope()
    month = get_month()
    kind = request.args.get('kind', 'expense')
    if kind not in TRANSACTION_KINDS:
        raise BudgetError(f'Unknown kind: {kind}', code='invalid_kind')
    rows = DashboardService.get_category_breakdown(scope, month, kind)
    return jsonify({
        'scope': scope.to_dict(),
        'month': month.isoformat(),
        'kind': kind,
        'categories': [
            {'category': r['category'], 'total': format_amount(r['total']), 'percentage': str(r['percentage'])}
            for r in rows
        ],
    })
