from wtforms import SelectField, StringField
from wtforms.validators import DataRequired, Email, Length

from utils.api import ApiForm
from utils.constants import HOUSEHOLD_ROLES


class HouseholdForm(ApiForm):
    name = StringField('Household Name', validators=[
        DataRequired(message='Household name is required'),
        Length(min=2, max=100, message='Household name must be between 2 and 100 characters')
    ])


class InvitationForm(ApiForm):
    email = StringField('Email', validators=[
        DataRequired(message='Email is required'),
        Email(message='Invalid email address')
    ])
    role = SelectField('Role', choices=[(r, r.capitalize()) for r in HOUSEHOLD_ROLES], default='member')
