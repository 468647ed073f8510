"""
Tabular Islamic (Hijri) calendar

Arithmetical approximation of the lunar calendar: 30-year cycle of 354/355
day years, civil epoch 16 July 622 (Julian). Can be a day or two off the
sighted calendar around month boundaries.
"""
from datetime import date
from typing import NamedTuple

# Canonical month names. The network lookup is mapped onto this same table
# so both paths spell a month identically.
HIJRI_MONTHS = (
    "Muharram",
    "Safar",
    "Rabi al-Awwal",
    "Rabi al-Thani",
    "Jumada al-Ula",
    "Jumada al-Akhirah",
    "Rajab",
    "Sha'ban",
    "Ramadan",
    "Shawwal",
    "Dhu al-Qadah",
    "Dhu al-Hijjah",
)

# date.toordinal() of 0001-01-01 is 1; its Julian Day Number is 1721426
_ORDINAL_TO_JDN = 1721425
_CIVIL_EPOCH_JDN = 1948440


class HijriDate(NamedTuple):
    year: int
    month: int
    day: int

    @property
    def month_name(self) -> str:
        return month_name(self.month)


def month_name(month: int) -> str:
    """
    Month number (1-12) to canonical name

    Raises:
        ValueError: month outside 1..12
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Hijri month must be 1..12, got {month}")
    return HIJRI_MONTHS[month - 1]


def gregorian_to_hijri(day: date) -> HijriDate:
    """
    Convert a Gregorian date with the tabular civil calendar

    Example:
        gregorian_to_hijri(date(2000, 1, 1)) -> HijriDate(1420, 9, 24)
    """
    jdn = day.toordinal() + _ORDINAL_TO_JDN

    l = jdn - _CIVIL_EPOCH_JDN + 10632
    n = (l - 1) // 10631
    l = l - 10631 * n + 354
    j = ((10985 - l) // 5316) * ((50 * l) // 17719) + (l // 5670) * ((43 * l) // 15238)
    l = l - ((30 - j) // 15) * ((17719 * j) // 50) - (j // 16) * ((15238 * j) // 43) + 29
    month = (24 * l) // 709
    day_of_month = l - (709 * month) // 24
    year = 30 * n + j - 30

    return HijriDate(year, month, day_of_month)
