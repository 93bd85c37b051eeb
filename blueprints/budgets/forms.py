from wtforms import SelectField, StringField
from wtforms.validators import DataRequired, Length, Optional

from utils.api import ApiForm
from utils.constants import GOAL_KINDS, INTERVALS


class BudgetGoalForm(ApiForm):
    kind = SelectField('Type', choices=[(k, k.capitalize()) for k in GOAL_KINDS],
                       validators=[DataRequired(message='Type is required')])
    category = StringField('Category', validators=[
        DataRequired(message='Category is required'),
        Length(max=100)
    ])
    planned_amount = StringField('Planned Amount', validators=[DataRequired(message='Planned amount is required')])
    interval = SelectField('Interval', choices=list(INTERVALS.items()), default='monthly',
                           validators=[Optional()])
    start_date = StringField('Start Date', validators=[DataRequired(message='Start date is required')])
    end_date = StringField('End Date', validators=[Optional()])
