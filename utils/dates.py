"""
Date and amount helpers shared by the accounting services.

Months are identified by their first day.  Amounts are ``Decimal`` values
quantised to 4 fractional digits, matching the ``Numeric(15, 4)`` columns.
"""
import calendar
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from dateutil.relativedelta import relativedelta


AMOUNT_QUANTUM = Decimal('0.0001')
ZERO = Decimal('0.0000')


def utcnow():
    """Naive UTC timestamp for ``created_at``/``updated_at`` columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_amount(value):
    """Convert *value* to a 4-dp ``Decimal``.

    Floats go through ``str()`` so binary noise (0.1 + 0.2) does not leak
    into stored amounts.  Raises ``ValueError`` for anything non-numeric.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValueError(f'Invalid amount: {value!r}')
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f'Invalid amount: {value!r}')
    if not amount.is_finite():
        raise ValueError(f'Invalid amount: {value!r}')
    return amount.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def format_amount(value):
    """Serialise an amount for JSON output (string, 4 dp)."""
    return str(to_amount(value))


def month_start(value):
    """First day of the month containing *value*."""
    return date(value.year, value.month, 1)


def month_end(value):
    """Last day of the month containing *value*."""
    _, last_day = calendar.monthrange(value.year, value.month)
    return date(value.year, value.month, last_day)


def previous_month(value):
    return month_start(value) - relativedelta(months=1)


def parse_date(value):
    """Parse ``YYYY-MM-DD`` (or pass a ``date`` through)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()
    except ValueError:
        raise ValueError(f'Invalid date: {value!r} (expected YYYY-MM-DD)')


def parse_month(value, default=None):
    """Parse ``YYYY-MM`` or ``YYYY-MM-DD`` into the first day of that month.

    Empty input returns the month of *default* (today when not given).
    """
    if value in (None, ''):
        return month_start(default or date.today())
    if isinstance(value, date):
        return month_start(value)
    text = str(value).strip()
    for fmt in ('%Y-%m', '%Y-%m-%d'):
        try:
            return month_start(datetime.strptime(text, fmt).date())
        except ValueError:
            continue
    raise ValueError(f'Invalid month: {value!r} (expected YYYY-MM)')
