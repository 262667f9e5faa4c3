"""Aggregation engine – cumulative sums, quota pro-ration and the 7R grid.

All arithmetic is done on scaled integers (cents, hundredths of a percent,
raw counts). Unset days count as zero.
"""
from collections import defaultdict
from dataclasses import dataclass, asdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from stathq.modules.stats.errors import ValidationError
from stathq.modules.stats.periods import DAYS_PER_WEEK


def cumulative_for_week(values: Sequence[Optional[int]], through: Optional[int] = None) -> int:
    """Sum the first ``through`` business days (all of them when omitted)."""
    if through is None:
        through = len(values)
    if not 0 <= through <= DAYS_PER_WEEK:
        raise ValidationError(f"through must be 0..{DAYS_PER_WEEK}", details={"through": through})
    return sum(v or 0 for v in list(values)[:through])


def running_totals(values: Sequence[Optional[int]]) -> List[int]:
    totals, acc = [], 0
    for v in values:
        acc += v or 0
        totals.append(acc)
    return totals


def _div_round_half_up(numerator: int, denominator: int) -> int:
    whole, rem = divmod(abs(numerator), denominator)
    if rem * 2 >= denominator:
        whole += 1
    return whole if numerator >= 0 else -whole


def quota_for_day(day_index: int, weekly_quota: Optional[int]) -> int:
    """Pro-rate a weekly quota: ``quota * day_index / 5`` rounded half-up.

    ``day_index`` 1 is the first business day and 5 the last, so day 5
    always returns the full quota.
    """
    if not 1 <= day_index <= DAYS_PER_WEEK:
        raise ValidationError(f"day_index must be 1..{DAYS_PER_WEEK}", details={"day_index": day_index})
    return _div_round_half_up((weekly_quota or 0) * day_index, DAYS_PER_WEEK)


@dataclass
class GridRow:
    day: str
    date: date
    this_week: int
    cumulative: int
    last_week_cumulative: int
    quota: int

    def to_dict(self) -> dict:
        return asdict(self)


def build_daily_grid(
    labels: Sequence[str],
    dates: Sequence[date],
    this_week: Sequence[Optional[int]],
    last_week: Sequence[Optional[int]],
    weekly_quota: Optional[int],
) -> List[GridRow]:
    if not len(labels) == len(dates) == len(this_week) == len(last_week) == DAYS_PER_WEEK:
        raise ValidationError("A 7R grid needs exactly five business days")
    cum = running_totals(this_week)
    last_cum = running_totals(last_week)
    return [
        GridRow(
            day=labels[i],
            date=dates[i],
            this_week=this_week[i] or 0,
            cumulative=cum[i],
            last_week_cumulative=last_cum[i],
            quota=quota_for_day(i + 1, weekly_quota),
        )
        for i in range(DAYS_PER_WEEK)
    ]


def combine_series(series_list: Iterable[Iterable[Tuple[date, int]]]) -> List[Tuple[date, int]]:
    """Per-period sum of several ``(period_key, value)`` series, ordered by key."""
    totals: Dict[date, int] = defaultdict(int)
    for series in series_list:
        for key, value in series:
            totals[key] += value or 0
    return sorted(totals.items())
