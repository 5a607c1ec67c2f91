"""
Delinquency calculation for financed sales.

A sale's next installment is due one payment period after its most recent
payment (or after the sale date when nothing has been paid yet). All
arithmetic is done on calendar dates in the business time zone, so a
payment made late in the evening never shifts the due date by a day.
"""

import logging
from collections import namedtuple
from datetime import datetime, time, timedelta

from dateutil.relativedelta import relativedelta
from django.utils import timezone

logger = logging.getLogger(__name__)


Delinquency = namedtuple('Delinquency', ['days_late', 'due_date', 'is_overdue'])

DEFAULT_FREQUENCY = 'weekly'

PAYMENT_PERIODS = {
    'daily': timedelta(days=1),
    'weekly': timedelta(days=7),
    'fortnightly': timedelta(days=15),
    'monthly': relativedelta(months=1),
}


def normalize_frequency(frequency):
    """
    Map a stored frequency to a known one. Unknown or empty values fall back
    to weekly.
    """
    value = str(frequency or '').strip().lower()
    if value in PAYMENT_PERIODS:
        return value
    if value:
        logger.debug(f"[Delinquency] Unknown payment frequency {frequency!r}, using weekly")
    return DEFAULT_FREQUENCY


def _local_date(value, tz):
    if isinstance(value, datetime):
        if timezone.is_naive(value):
            value = timezone.make_aware(value, tz)
        return timezone.localtime(value, tz).date()
    return value


def get_anchor_date(sale, payments=None):
    """
    Date of the most recent payment, or the sale date when there are none.
    """
    if payments is None:
        payments = sale.payments.all()

    latest = max(payments, key=lambda p: p.payment_date, default=None)
    if latest is not None:
        return latest.payment_date
    return sale.sale_date


def calculate_days_late(sale, payments=None, frequency=None, now=None):
    """
    Compute how late a financed sale is.

    Args:
        sale: Sale instance (only sale_date and payment_frequency are read)
        payments: iterable of Payment; defaults to sale.payments.all()
        frequency: overrides sale.payment_frequency when given
        now: reference instant; defaults to timezone.now()

    Returns:
        Delinquency(days_late, due_date, is_overdue) where due_date is the
        end of the due day in the business time zone.
    """
    tz = timezone.get_current_timezone()
    now = now or timezone.now()

    if frequency is None:
        frequency = getattr(sale, 'payment_frequency', None)
    period = PAYMENT_PERIODS[normalize_frequency(frequency)]

    anchor_day = _local_date(get_anchor_date(sale, payments), tz)
    due_day = anchor_day + period
    due_date = timezone.make_aware(datetime.combine(due_day, time.max), tz)

    today = _local_date(now, tz)
    days_late = max((today - due_day).days, 0)

    return Delinquency(days_late=days_late, due_date=due_date, is_overdue=days_late > 0)
