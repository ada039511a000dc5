"""Day classification and plan validation.

``classify_day`` decides which set of plans applies to a calendar date.
``validate_plan`` is the only guard on the daily budget: it must run
before any plan is written, since the store itself does not check totals.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, time
from typing import Iterable, List, Optional

from daywell.config import DAY_MINUTES
from daywell.errors import BudgetExceededError, ValidationError
from daywell.models import CATEGORIES, DAY_TYPES, WEEKDAY, WEEKEND, Plan, normalize_category
from daywell.utils import DateLike, format_budget, parse_date

logger = logging.getLogger(__name__)


def classify_day(value: DateLike) -> str:
    """
    Return ``weekend`` for Saturdays and Sundays and ``weekday`` otherwise.

    The date is evaluated at local noon so that no DST shift or midnight
    boundary can move it onto a neighbouring day.  ``holiday`` is never
    returned; it only exists as an explicit choice on a plan.
    """
    noon = datetime.combine(parse_date(value), time(12, 0))
    return WEEKEND if noon.weekday() >= 5 else WEEKDAY


def plans_for_day_type(plans: Iterable[Plan], day_type: str) -> List[Plan]:
    """Active plans for ``day_type``, in their original order."""
    return [p for p in plans if p.active and p.day_type == day_type]


def committed_minutes(plans: Iterable[Plan], day_type: str, exclude_id=None) -> int:
    """Sum of active targets for ``day_type``, leaving out ``exclude_id``."""
    return sum(
        p.target_minutes
        for p in plans_for_day_type(plans, day_type)
        if exclude_id is None or p.id != exclude_id
    )


def check_budget(plan: Plan, existing: Iterable[Plan]) -> int:
    """
    Raise ``BudgetExceededError`` if saving ``plan`` would push its day
    type past 24 hours.  Returns the proposed total in minutes.
    """
    others = committed_minutes(
        (p for p in existing if p.owner_id == plan.owner_id), plan.day_type, exclude_id=plan.id
    )
    total = others + plan.target_minutes
    if total > DAY_MINUTES:
        logger.info("Rejected plan %r: %s budget over by %d min", plan.activity_name, plan.day_type, total - DAY_MINUTES)
        raise BudgetExceededError(plan.day_type, total - DAY_MINUTES)
    return total


def _parse_minutes(raw) -> Optional[int]:
    """Whole minutes from an int or numeric string; ``None`` if not whole."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if raw.is_integer() else None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def validate_plan(plan: Plan, existing: Iterable[Plan]) -> Plan:
    """
    Validate a plan about to be created or edited against the owner's
    other plans and return a normalised copy.

    ``existing`` may include the plan's own stored version; it is excluded
    from the budget by id.
    """
    name = (plan.activity_name or "").strip()
    if not name:
        raise ValidationError("Activity name is required.")
    if plan.day_type not in DAY_TYPES:
        raise ValidationError(f"Unknown day type: {plan.day_type!r}")
    category = normalize_category(plan.category)
    if category not in CATEGORIES:
        raise ValidationError(f"Unknown category: {plan.category!r}")
    target = _parse_minutes(plan.target_minutes)
    if target is None or target <= 0:
        raise ValidationError("Please enter a valid duration.")
    normalised = replace(plan, activity_name=name, category=category, target_minutes=target)
    if normalised.active:
        check_budget(normalised, existing)
    return normalised


@dataclass
class BudgetSummary:
    day_type: str
    used_minutes: int

    @property
    def remaining_minutes(self) -> int:
        return max(0, DAY_MINUTES - self.used_minutes)

    @property
    def label(self) -> str:
        return f"Budget: {format_budget(self.used_minutes)} of 24h"


def budget_summary(plans: Iterable[Plan], day_type: str) -> BudgetSummary:
    return BudgetSummary(day_type=day_type, used_minutes=committed_minutes(plans, day_type))
