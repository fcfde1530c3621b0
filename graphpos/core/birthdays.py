"""Birthday helpers. Feb 29 birthdays fall on Feb 28 in common years."""
import calendar
from datetime import date
from typing import Optional


def birthday_in_year(birth_date: date, year: int) -> date:
    day = birth_date.day
    if birth_date.month == 2 and day == 29 and not calendar.isleap(year):
        day = 28
    return date(year, birth_date.month, day)


def calculate_age(birth_date: Optional[date], reference: Optional[date] = None) -> Optional[int]:
    if birth_date is None:
        return None
    reference = reference or date.today()
    age = reference.year - birth_date.year
    if (reference.month, reference.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def is_birthday_today(birth_date: Optional[date], reference: Optional[date] = None) -> bool:
    if birth_date is None:
        return False
    reference = reference or date.today()
    return birthday_in_year(birth_date, reference.year) == reference


def days_until_birthday(birth_date: date, reference: Optional[date] = None) -> int:
    reference = reference or date.today()
    candidate = birthday_in_year(birth_date, reference.year)
    if candidate < reference:
        candidate = birthday_in_year(birth_date, reference.year + 1)
    return (candidate - reference).days


def is_birthday_within_days(
    birth_date: Optional[date],
    days_ahead: int = 7,
    reference: Optional[date] = None,
) -> bool:
    if birth_date is None:
        return False
    return 0 <= days_until_birthday(birth_date, reference) <= days_ahead
