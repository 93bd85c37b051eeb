"""
Service-layer exceptions.

All are ``ValueError`` subclasses so callers that only care about "the input
was rejected" can keep catching ``ValueError``.  ``code`` is a stable machine
identifier returned to API clients alongside the message.
"""


class BudgetError(ValueError):
    code = 'invalid'

    def __init__(self, message, code=None):
        super().__init__(message)
        if code is not None:
            self.code = code

    @property
    def message(self):
        return self.args[0] if self.args else ''


class MissingFieldError(BudgetError):
    code = 'missing_field'

    def __init__(self, field):
        super().__init__(f'Missing required field: {field}')
        self.field = field


class RecordNotFoundError(BudgetError):
    code = 'not_found'


class InsufficientBalanceError(BudgetError):
    code = 'exceeds_available_balance'

    def __init__(self, available, requested, category=None):
        label = f' for {category}' if category else ''
        super().__init__(f'Amount {requested} exceeds available balance{label} ({available})')
        self.available = available
        self.requested = requested
        self.category = category


class AllocationError(BudgetError):
    """An allocation request that cannot be honoured (bad amount, unknown goal)."""


class PermissionDeniedError(BudgetError):
    """The acting user lacks the household role the operation needs."""
    code = 'forbidden'
