"""Canonical series store – at most one value row per (stat, period).

Three series share the same rules: weekly values keyed by W/E date, daily
values keyed by calendar date, and weekly quotas keyed by W/E date. A write
replaces the existing row for its key in place; it never appends.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, asdict
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import select, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from stathq.modules.stats.errors import PersistenceError
from stathq.modules.stats.models import WeeklyValue, DailyValue, WeeklyQuota

logger = logging.getLogger(__name__)

_NATIVE_UPSERT = {"sqlite": sqlite_insert, "postgresql": pg_insert}


@dataclass(frozen=True)
class SeriesKind:
    name: str
    model: type
    key_column: str

    @property
    def key(self):
        return getattr(self.model, self.key_column)


WEEKLY = SeriesKind("weekly", WeeklyValue, "week_ending")
DAILY = SeriesKind("daily", DailyValue, "value_date")
QUOTA = SeriesKind("quota", WeeklyQuota, "week_ending")


@dataclass(frozen=True)
class PeriodValue:
    stat_id: int
    period_key: date
    value: int
    author_user_id: Optional[int]

    def to_dict(self) -> dict:
        return asdict(self)


@contextmanager
def transaction(db: Session):
    """Commit on success, roll back on every exit path that raises.

    Store failures surface as ``PersistenceError``; any other exception
    (validation, scope) propagates unchanged after the rollback.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Transaction rolled back after store failure: %s", exc)
        raise PersistenceError("Failed to save stat values", details=exc.__class__.__name__) from exc
    except BaseException:
        db.rollback()
        raise


class CanonicalSeriesStore:
    def __init__(self, db: Session, *, native_upsert: Optional[bool] = None):
        self.db = db
        dialect = db.get_bind().dialect.name
        if native_upsert is None:
            native_upsert = dialect in _NATIVE_UPSERT
        self._insert = _NATIVE_UPSERT.get(dialect) if native_upsert else None

    def transaction(self):
        return transaction(self.db)

    def upsert_canonical(self, kind: SeriesKind, stat_id: int, period_key: date, value: int,
                         author_user_id: Optional[int]) -> None:
        """Insert or overwrite the row for ``(stat_id, period_key)``.

        Runs inside the caller's transaction; the caller commits.
        """
        if self._insert is not None:
            self._upsert_native(kind, stat_id, period_key, value, author_user_id)
        else:
            self._upsert_portable(kind, stat_id, period_key, value, author_user_id)
        logger.debug("Upserted %s value stat=%s period=%s author=%s", kind.name, stat_id, period_key, author_user_id)

    def _upsert_native(self, kind, stat_id, period_key, value, author_user_id):
        stmt = self._insert(kind.model.__table__).values(
            stat_id=stat_id, value=value, author_user_id=author_user_id, **{kind.key_column: period_key}
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["stat_id", kind.key_column],
            set_={
                "value": stmt.excluded.value,
                "author_user_id": stmt.excluded.author_user_id,
                "updated_at": func.now(),
            },
        )
        self.db.execute(stmt)

    def _upsert_portable(self, kind, stat_id, period_key, value, author_user_id):
        if self._update_locked(kind, stat_id, period_key, value, author_user_id):
            return
        try:
            with self.db.begin_nested():
                self.db.add(kind.model(
                    stat_id=stat_id, value=value, author_user_id=author_user_id, **{kind.key_column: period_key}
                ))
        except IntegrityError:
            # A concurrent writer inserted the key between our read and insert.
            if not self._update_locked(kind, stat_id, period_key, value, author_user_id):
                raise

    def _update_locked(self, kind, stat_id, period_key, value, author_user_id) -> bool:
        row = (
            self.db.query(kind.model)
            .filter(kind.model.stat_id == stat_id, kind.key == period_key)
            .with_for_update()
            .first()
        )
        if row is None:
            return False
        row.value = value
        row.author_user_id = author_user_id
        self.db.flush()
        return True

    def read_canonical(self, kind: SeriesKind, stat_id: int, start: Optional[date] = None,
                       end: Optional[date] = None, keys: Optional[Iterable[date]] = None) -> List[PeriodValue]:
        """Rows for one stat ordered by period key, optionally limited to a range or key set."""
        model = kind.model
        stmt = select(model.stat_id, kind.key, model.value, model.author_user_id).where(model.stat_id == stat_id)
        if start is not None:
            stmt = stmt.where(kind.key >= start)
        if end is not None:
            stmt = stmt.where(kind.key <= end)
        if keys is not None:
            stmt = stmt.where(kind.key.in_(list(keys)))
        stmt = stmt.order_by(kind.key.asc())
        try:
            rows = self.db.execute(stmt).all()
        except SQLAlchemyError as exc:
            logger.error("Failed to read %s values for stat %s: %s", kind.name, stat_id, exc)
            raise PersistenceError(f"Failed to read {kind.name} values", details=exc.__class__.__name__) from exc
        return [PeriodValue(stat_id=r[0], period_key=r[1], value=r[2], author_user_id=r[3]) for r in rows]

    def values_by_key(self, kind: SeriesKind, stat_id: int, keys: Iterable[date]) -> dict:
        keys = list(keys)
        return {pv.period_key: pv.value for pv in self.read_canonical(kind, stat_id, keys=keys)}
