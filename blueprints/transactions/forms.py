from wtforms import SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from utils.api import ApiForm
from utils.constants import INTERVALS, TRANSACTION_KINDS


class TransactionForm(ApiForm):
    kind = SelectField('Type', choices=[(k, k.capitalize()) for k in TRANSACTION_KINDS],
                       validators=[DataRequired(message='Type is required')])
    category = StringField('Category', validators=[
        DataRequired(message='Category is required'),
        Length(max=100)
    ])
    amount = StringField('Amount', validators=[DataRequired(message='Amount is required')])
    transaction_date = StringField('Date', validators=[DataRequired(message='Date is required')])
    interval = SelectField('Interval', choices=list(INTERVALS.items()), default='one-time',
                           validators=[Optional()])
    remarks = TextAreaField('Remarks', validators=[Optional(), Length(max=500)])
