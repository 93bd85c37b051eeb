from flask import request, jsonify
from . import budgets_bp
from .forms import BudgetGoalForm
from services.budget_service import BudgetService
from services.carry_forward_service import CarryForwardService
from services.errors import MissingFieldError
from utils.api import form_error_response, get_month, get_scope, request_data
from utils.dates import format_amount

EDITABLE_FIELDS = ('category', 'planned_amount', 'interval', 'start_date', 'end_date')


def _goal_row(row):
    data = row['goal'].to_dict()
    if row['carry_forward'] is not None:
        data.update(row['carry_forward'].to_dict())
    return data


def _breakdown_row(row):
    return {
        'category': row['category'],
        'planned_amount': format_amount(row['planned_amount']),
        'actual_amount': format_amount(row['actual_amount']),
        'difference': format_amount(row['difference']),
        'status': row['status'],
        'percent_used': str(row['percent_used']) if row['percent_used'] is not None else None,
    }


def _summary(summary):
    data = {
        name: format_amount(summary[name])
        for name in ('planned_income', 'planned_expenses', 'actual_income',
                     'actual_expenses', 'total_available', 'remaining')
    }
    data['month'] = summary['month'].isoformat()
    data.update(summary['carry_forward'].to_dict())
    return data


@budgets_bp.route('/budgets')
def index():
    """Goals applying to the month, pending first, with the month summary"""
    scope = get_scope()
    month = get_month()
    rows = BudgetService.get_goals_for_month(scope, month, kind=request.args.get('kind') or None)
    return jsonify({
        'scope': scope.to_dict(),
        'month': month.isoformat(),
        'goals': [_goal_row(row) for row in rows],
        'summary': _summary(BudgetService.get_budget_summary(scope, month)),
    })


@budgets_bp.route('/budgets/goals')
def goals():
    """Every goal of the scope regardless of month"""
    scope = get_scope()
    goals = BudgetService.list_goals(scope, kind=request.args.get('kind') or None)
    return jsonify({'scope': scope.to_dict(), 'goals': [g.to_dict() for g in goals]})


@budgets_bp.route('/budgets/add', methods=['POST'])
def add():
    scope = get_scope()
    form = BudgetGoalForm()
    if not form.validate():
        return form_error_response(form)

    goal = BudgetService.create_goal(
        scope,
        form.kind.data,
        category=form.category.data,
        planned_amount=form.planned_amount.data,
        interval=form.interval.data or 'monthly',
        start_date=form.start_date.data,
        end_date=form.end_date.data or None,
    )
    return jsonify({'success': True, 'goal': goal.to_dict()}), 201


@budgets_bp.route('/budgets/<int:id>/edit', methods=['POST'])
def edit(id):
    data = request_data()
    fields = {name: data[name] for name in EDITABLE_FIELDS if name in data}
    goal = BudgetService.update_goal(get_scope(), id, **fields)
    return jsonify({'success': True, 'goal': goal.to_dict()})


@budgets_bp.route('/budgets/<int:id>/delete', methods=['POST'])
def delete(id):
    """Delete a goal together with its allocations"""
    BudgetService.delete_goal(get_scope(), id)
    return jsonify({'success': True})


@budgets_bp.route('/budgets/<int:id>/status', methods=['POST'])
def set_status(id):
    status = request_data().get('status')
    if not status:
        raise MissingFieldError('status')
    goal = BudgetService.set_goal_status(get_scope(), id, status)
    return jsonify({'success': True, 'goal': goal.to_dict()})


@budgets_bp.route('/budgets/breakdown')
def breakdown():
    scope = get_scope()
    month = get_month()
    kind = request.args.get('kind', 'expense')
    rows = BudgetService.get_budget_breakdown(scope, month, kind)
    return jsonify({
        'scope': scope.to_dict(),
        'month': month.isoformat(),
        'kind': kind,
        'categories': [_breakdown_row(row) for row in rows],
    })


@budgets_bp.route('/budgets/summary')
def summary():
    scope = get_scope()
    month = get_month()
    return jsonify({'scope': scope.to_dict(), **_summary(BudgetService.get_budget_summary(scope, month))})


@budgets_bp.route('/budgets/carry-forward')
def carry_forward():
    """Global carry-forward into the month, or one category's with ?category="""
    scope = get_scope()
    month = get_month()
    category = request.args.get('category') or None
    result = CarryForwardService.calculate(scope, month, category)
    data = {'scope': scope.to_dict(), 'month': month.isoformat(), 'category': category, **result.to_dict()}
    if request.args.get('by_category') and category is None:
        outcomes = CarryForwardService.calculate_by_category(scope, month)
        data['categories_available'] = outcomes is not None
        data['categories'] = None if outcomes is None else {
            name: outcome.to_dict() for name, outcome in outcomes.items()
        }
    return jsonify(data)
