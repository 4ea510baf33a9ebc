# src/domain/references.py

"""
Customer-facing reference formats. Operational tooling and confirmation
emails depend on these layouts, so they must not change:

    booking   {PREFIX}-{YYMMDD}-XXXX
    order     {PREFIX}-S{YYMMDD}-XXXX
    voucher   {PREFIX}-VXXXXXXXX
    adoption  {PREFIX}-AXXXXXX
"""

import secrets
import string
from datetime import date

ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
DEFAULT_PREFIX = "RFP"


def random_suffix(size: int) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(size)).upper()


def date_stamp(day: date) -> str:
    return day.strftime("%y%m%d")


def booking_reference(today: date, prefix: str = DEFAULT_PREFIX) -> str:
    return f"{prefix}-{date_stamp(today)}-{random_suffix(4)}"


def order_reference(today: date, prefix: str = DEFAULT_PREFIX) -> str:
    return f"{prefix}-S{date_stamp(today)}-{random_suffix(4)}"


def voucher_code(prefix: str = DEFAULT_PREFIX) -> str:
    return f"{prefix}-V{random_suffix(8)}"


def adoption_reference(prefix: str = DEFAULT_PREFIX) -> str:
    return f"{prefix}-A{random_suffix(6)}"
