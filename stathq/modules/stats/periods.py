"""Period resolution – week-ending validation and business-day derivation.

A business week is identified by its week-ending (W/E) date, which must fall
on a fixed anchor weekday. The five business days of that week are the
anchor itself and the anchor plus 1, 4, 5 and 6 days (a Thu–Wed week with the
weekend skipped when the anchor is Thursday).
"""
import calendar
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from stathq.modules.stats.errors import ValidationError

THURSDAY = 3
BUSINESS_DAY_OFFSETS = (0, 1, 4, 5, 6)
DAYS_PER_WEEK = len(BUSINESS_DAY_OFFSETS)
ISO_FORMAT = "%Y-%m-%d"


class PeriodResolver:
    def __init__(self, anchor_weekday: int = THURSDAY):
        if not 0 <= anchor_weekday <= 6:
            raise ValueError(f"anchor_weekday must be 0..6, got {anchor_weekday}")
        self.anchor_weekday = anchor_weekday

    @property
    def anchor_name(self) -> str:
        return calendar.day_name[self.anchor_weekday]

    def parse_date(self, text) -> date:
        if isinstance(text, datetime):
            return text.date()
        if isinstance(text, date):
            return text
        try:
            return datetime.strptime(str(text).strip(), ISO_FORMAT).date()
        except (TypeError, ValueError):
            raise ValidationError(
                "The weekending date is invalid",
                code="invalid_week_ending",
                details={"week_ending": text, "expected": f"YYYY-MM-DD on a {self.anchor_name}"},
            )

    def validate_week_ending(self, text) -> date:
        """Return the W/E date, or raise ``ValidationError`` if it is malformed or off-anchor."""
        we = self.parse_date(text)
        if we.weekday() != self.anchor_weekday:
            raise ValidationError(
                "The weekending date is invalid",
                code="invalid_week_ending",
                details={"week_ending": str(text), "expected": f"YYYY-MM-DD on a {self.anchor_name}"},
            )
        return we

    def derive_weekdays(self, week_ending: date) -> Tuple[date, ...]:
        return tuple(week_ending + timedelta(days=offset) for offset in BUSINESS_DAY_OFFSETS)

    def day_labels(self, week_ending: date) -> List[str]:
        return [calendar.day_name[d.weekday()] for d in self.derive_weekdays(week_ending)]

    def previous_week_ending(self, week_ending: date) -> date:
        return week_ending - timedelta(days=7)

    def current_week_ending(self, today: Optional[date] = None) -> date:
        today = today or date.today()
        return today + timedelta(days=(self.anchor_weekday - today.weekday()) % 7)

    def recent_week_endings(self, count: int, today: Optional[date] = None) -> List[date]:
        """The open week's W/E followed by ``count`` earlier ones, newest first."""
        if count < 0:
            raise ValidationError("count must not be negative", details={"count": count})
        current = self.current_week_ending(today)
        return [current - timedelta(days=7 * i) for i in range(count + 1)]
