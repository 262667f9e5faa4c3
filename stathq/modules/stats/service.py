"""Stat value service – the read and write operations exposed to routers.

Each write runs the same pipeline: authorize the actor against the stat's
scope, parse the raw value for the stat's value type, resolve the period,
then upsert the canonical row inside one transaction. Batches share a single
transaction, so the first failing row rolls back everything before it.
"""
import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence, Union

from sqlalchemy.orm import Session

from stathq.config import Settings, get_settings
from stathq.modules.stats import aggregation
from stathq.modules.stats.assignment import Actor, authorize, OP_READ, OP_WRITE, PATH_PERSONAL
from stathq.modules.stats.codec import parse_value, format_value
from stathq.modules.stats.errors import ValidationError
from stathq.modules.stats.periods import PeriodResolver, DAYS_PER_WEEK
from stathq.modules.stats.registry import StatRegistry, StatMetadata
from stathq.modules.stats.schemas import WeeklyValueIn, DailyRowIn
from stathq.modules.stats.store import CanonicalSeriesStore, SeriesKind, WEEKLY, DAILY, QUOTA

logger = logging.getLogger(__name__)

StatRef = Union[int, str]


class StatValueService:
    def __init__(self, db: Session, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.db = db
        self.registry = StatRegistry(db, lenient_short_id=settings.LENIENT_SHORT_ID_LOOKUP)
        self.periods = PeriodResolver(settings.WEEK_ENDING_WEEKDAY)
        self.store = CanonicalSeriesStore(db)

    # ─── Reads ───
    def _readable_stat(self, actor: Actor, stat_ref: StatRef, on_behalf_of: Optional[int] = None) -> StatMetadata:
        stat = self.registry.lookup(stat_ref, company_id=actor.company_id)
        authorize(actor, stat, OP_READ, on_behalf_of=on_behalf_of)
        return stat

    def _source_ids(self, stat: StatMetadata) -> List[int]:
        if stat.placeholder:
            return []
        if stat.is_calculated:
            return self.registry.dependencies(stat.id)
        return [stat.id]

    def _values_by_key(self, stat: StatMetadata, kind: SeriesKind, keys: Sequence[date]) -> dict:
        """Stored values for ``keys``; calculated stats sum their dependents per key."""
        per_source = [self.store.values_by_key(kind, sid, keys) for sid in self._source_ids(stat)]
        if not stat.is_calculated:
            return per_source[0] if per_source else {}
        return dict(aggregation.combine_series(s.items() for s in per_source))

    def get_canonical_weekly(self, actor: Actor, stat_ref: StatRef, on_behalf_of: Optional[int] = None) -> List[dict]:
        stat = self._readable_stat(actor, stat_ref, on_behalf_of)
        if stat.is_calculated:
            series = aggregation.combine_series(
                [(pv.period_key, pv.value) for pv in self.store.read_canonical(WEEKLY, sid)]
                for sid in self._source_ids(stat)
            )
            points = [(key, value, None) for key, value in series]
        else:
            points = [
                (pv.period_key, pv.value, pv.author_user_id)
                for sid in self._source_ids(stat)
                for pv in self.store.read_canonical(WEEKLY, sid)
            ]
        return [
            {
                "week_ending": key.isoformat(),
                "value": value,
                "display": format_value(stat.value_type, value),
                "author_user_id": author,
            }
            for key, value, author in points
        ]

    def get_canonical_daily(self, actor: Actor, stat_ref: StatRef, week_ending) -> dict:
        we = self.periods.validate_week_ending(week_ending)
        stat = self._readable_stat(actor, stat_ref)
        dates = self.periods.derive_weekdays(we)
        labels = self.periods.day_labels(we)
        daily = self._values_by_key(stat, DAILY, dates)
        quota = self._values_by_key(stat, QUOTA, [we]).get(we)
        return {
            "stat_id": stat.id,
            "short_id": stat.short_id,
            "value_type": stat.value_type,
            "week_ending": we.isoformat(),
            "days": [
                {
                    "date": d.isoformat(),
                    "label": label,
                    "value": daily.get(d),
                    "display": format_value(stat.value_type, daily.get(d)),
                }
                for d, label in zip(dates, labels)
            ],
            "quota": {"value": quota, "display": format_value(stat.value_type, quota)},
        }

    def get_daily_grid(self, actor: Actor, stat_ref: StatRef, week_ending) -> dict:
        """The 7R grid: daily value, running totals for this and last week, pro-rated quota."""
        we = self.periods.validate_week_ending(week_ending)
        stat = self._readable_stat(actor, stat_ref)
        last_we = self.periods.previous_week_ending(we)
        dates = self.periods.derive_weekdays(we)
        last_dates = self.periods.derive_weekdays(last_we)
        this_week = self._values_by_key(stat, DAILY, dates)
        last_week = self._values_by_key(stat, DAILY, last_dates)
        quota = self._values_by_key(stat, QUOTA, [we]).get(we)

        rows = aggregation.build_daily_grid(
            labels=self.periods.day_labels(we),
            dates=dates,
            this_week=[this_week.get(d) for d in dates],
            last_week=[last_week.get(d) for d in last_dates],
            weekly_quota=quota,
        )
        fmt = stat.value_type
        return {
            "stat_id": stat.id,
            "short_id": stat.short_id,
            "value_type": fmt,
            "reversed": stat.reversed,
            "week_ending": we.isoformat(),
            "rows": [
                {
                    "day": r.day,
                    "date": r.date.isoformat(),
                    "this_week": format_value(fmt, r.this_week),
                    "cumulative": format_value(fmt, r.cumulative),
                    "last_week": format_value(fmt, r.last_week_cumulative),
                    "quota": format_value(fmt, r.quota),
                }
                for r in rows
            ],
        }

    def recent_weeks(self, count: int, today: Optional[date] = None) -> List[str]:
        return [d.isoformat() for d in self.periods.recent_week_endings(count, today)]

    # ─── Writes ───
    def _writable_stat(self, actor: Actor, stat_id: int, path: str) -> StatMetadata:
        stat = self.registry.get(stat_id)
        authorize(actor, stat, OP_WRITE, path=path)
        return stat

    def upsert_weekly(self, actor: Actor, stat_id: int, week_ending, raw_value, path: str = PATH_PERSONAL) -> dict:
        stat = self._writable_stat(actor, stat_id, path)
        value = parse_value(stat.value_type, raw_value, field=f"week ending {week_ending} for stat {stat.short_id}")
        we = self.periods.validate_week_ending(week_ending)
        if value is None:
            logger.debug("Empty weekly value for stat %s on %s skipped", stat.short_id, we)
            return {"written": 0}
        with self.store.transaction():
            self.store.upsert_canonical(WEEKLY, stat.id, we, value, actor.user_id)
        logger.info("Weekly value saved: stat=%s we=%s author=%s", stat.short_id, we, actor.user_id)
        return {"written": 1}

    def upsert_weekly_batch(self, actor: Actor, rows: Iterable[WeeklyValueIn], path: str = PATH_PERSONAL) -> dict:
        rows = list(rows)
        if not rows:
            raise ValidationError("Empty payload", details="no rows provided")
        written = 0
        with self.store.transaction():
            for idx, row in enumerate(rows):
                stat = self._writable_stat(actor, row.stat_id, path)
                value = parse_value(
                    stat.value_type, row.value,
                    field=f"week ending {row.week_ending} for stat {stat.short_id} (row {idx})",
                )
                we = self.periods.validate_week_ending(row.week_ending)
                if value is None:
                    continue
                self.store.upsert_canonical(WEEKLY, stat.id, we, value, actor.user_id)
                written += 1
        logger.info("Weekly batch saved: rows=%s written=%s author=%s", len(rows), written, actor.user_id)
        return {"written": written}

    def upsert_daily_batch(self, actor: Actor, week_ending, rows: Iterable[DailyRowIn],
                           path: str = PATH_PERSONAL) -> dict:
        we = self.periods.validate_week_ending(week_ending)
        dates = self.periods.derive_weekdays(we)
        labels = self.periods.day_labels(we)
        rows = list(rows)
        written = 0
        with self.store.transaction():
            for row in rows:
                stat = self._writable_stat(actor, row.stat_id, path)
                raw_days = list(row.days) + [""] * (DAYS_PER_WEEK - len(row.days))
                for d, label, raw in zip(dates, labels, raw_days):
                    value = parse_value(stat.value_type, raw, field=f"{label} for stat {stat.short_id}")
                    if value is None:
                        continue
                    self.store.upsert_canonical(DAILY, stat.id, d, value, actor.user_id)
                    written += 1
                quota = parse_value(stat.value_type, row.quota, field=f"the {stat.short_id} Quota")
                if quota is not None:
                    self.store.upsert_canonical(QUOTA, stat.id, we, quota, actor.user_id)
                    written += 1
        logger.info("7R grid saved: we=%s rows=%s cells=%s author=%s", we, len(rows), written, actor.user_id)
        return {"written": written}
