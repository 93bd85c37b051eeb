# Allowed values for kind / interval / status / role columns.

TRANSACTION_KINDS = ('income', 'expense', 'investment')
GOAL_KINDS = ('income', 'expense')

GOAL_STATUSES = ('pending', 'done')

HOUSEHOLD_ROLES = ('admin', 'member')

INTERVALS = {
    'one-time':    'One-time',
    'weekly':      'Weekly',
    'monthly':     'Monthly',
    'quarterly':   'Quarterly',
    'half-yearly': 'Half Yearly',
    'yearly':      'Yearly',
    'irregular':   'Irregular',  # unbudgeted income materialised by an allocation
}
