"""Child age groups and their mapping onto instrument types.

Age is counted in whole months between date of birth and a reference
date (today by default):

- infant: 0-11 months
- toddler: 12-35 months
- preschool: 36-59 months
- k2: 60 months and over
"""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class AgeRange:
    """Month range covered by one age group."""
    group: str
    min_months: int
    max_months: int | None
    label: str

    @property
    def instrument_type(self) -> str:
        return f"children_{self.group}"


AGE_RANGES = (
    AgeRange("infant", 0, 11, "Infant"),
    AgeRange("toddler", 12, 35, "Toddler"),
    AgeRange("preschool", 36, 59, "Preschool"),
    AgeRange("k2", 60, None, "K-2"),
)

# Canonical display order
AGE_GROUP_ORDER = tuple(r.group for r in AGE_RANGES)

_BY_GROUP = {r.group: r for r in AGE_RANGES}


def calculate_age_months(dob: date, reference: date | None = None) -> int:
    """Whole months elapsed from ``dob`` to ``reference``."""
    reference = reference or date.today()
    months = (reference.year - dob.year) * 12 + (reference.month - dob.month)
    if reference.day < dob.day:
        months -= 1
    return max(months, 0)


def calculate_age_group(dob: date, reference: date | None = None) -> str:
    """Age group for a child born on ``dob``."""
    months = calculate_age_months(dob, reference)
    for age_range in AGE_RANGES:
        if months >= age_range.min_months and (
            age_range.max_months is None or months <= age_range.max_months
        ):
            return age_range.group
    return "k2"


def instrument_type_for_age_group(group: str) -> str | None:
    age_range = _BY_GROUP.get(group)
    return age_range.instrument_type if age_range else None


def age_group_label(group: str) -> str:
    age_range = _BY_GROUP.get(group)
    if age_range:
        return age_range.label
    return group[:1].upper() + group[1:]


def is_valid_age_group(group: str | None) -> bool:
    return group in _BY_GROUP
