"""Stat registry – metadata lookup and admin-side stat management."""
import logging
from dataclasses import dataclass, asdict
from typing import Iterable, List, Optional, Union

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stathq.auth.models import UserAccount
from stathq.modules.org.models import Division
from stathq.modules.stats.errors import NotFoundError, ValidationError
from stathq.modules.stats.models import (
    Stat, StatCalculation, SCOPE_TYPES, SCOPE_PERSONAL, SCOPE_DIVISIONAL, SCOPE_MAIN,
    VALUE_TYPES, VALUE_NUMBER,
)
from stathq.modules.stats.store import transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatMetadata:
    id: Optional[int]
    company_id: Optional[int]
    short_id: str
    full_name: str
    scope_type: str
    value_type: str
    reversed: bool = False
    assigned_user_id: Optional[int] = None
    assigned_division_id: Optional[int] = None
    is_calculated: bool = False
    placeholder: bool = False

    @classmethod
    def from_row(cls, stat: Stat) -> "StatMetadata":
        return cls(
            id=stat.id,
            company_id=stat.company_id,
            short_id=stat.short_id,
            full_name=stat.full_name,
            scope_type=stat.scope_type,
            value_type=stat.value_type,
            reversed=bool(stat.reversed),
            assigned_user_id=stat.assigned_user_id,
            assigned_division_id=stat.assigned_division_id,
            is_calculated=bool(stat.is_calculated),
        )

    def to_dict(self) -> dict:
        return asdict(self)


class StatRegistry:
    def __init__(self, db: Session, *, lenient_short_id: bool = False):
        self.db = db
        self.lenient_short_id = lenient_short_id

    # ─── Lookup ───
    def get(self, stat_id: int) -> StatMetadata:
        stat = self.db.query(Stat).filter(Stat.id == stat_id).first()
        if not stat:
            raise NotFoundError(f"Stat not found for StatID {stat_id}", details={"stat_id": stat_id})
        return StatMetadata.from_row(stat)

    def lookup(self, identifier: Union[int, str], company_id: Optional[int] = None) -> StatMetadata:
        """Resolve a stat by numeric id, falling back to a case-insensitive short code."""
        if isinstance(identifier, int):
            return self.get(identifier)
        text = str(identifier or "").strip()
        if not text:
            raise ValidationError("either stat_id or stat (short id) must be provided")
        if text.isdigit():
            return self.get(int(text))

        q = self.db.query(Stat).filter(func.lower(Stat.short_id) == text.lower())
        if company_id is not None:
            q = q.filter(Stat.company_id == company_id)
        stat = q.order_by(Stat.id.asc()).first()
        if stat:
            return StatMetadata.from_row(stat)
        if self.lenient_short_id:
            logger.warning("Unknown short id %r resolved to placeholder metadata", text)
            return StatMetadata(
                id=None, company_id=company_id, short_id=text.upper(), full_name=text.upper(),
                scope_type=SCOPE_PERSONAL, value_type=VALUE_NUMBER, placeholder=True,
            )
        raise NotFoundError(f"Stat not found for short id {text!r}", details={"stat": text})

    def list_stats(self, company_id: int) -> List[StatMetadata]:
        rows = self.db.query(Stat).filter(Stat.company_id == company_id).order_by(Stat.short_id.asc()).all()
        return [StatMetadata.from_row(s) for s in rows]

    def list_assigned(self, user: UserAccount) -> List[StatMetadata]:
        """Personal stats owned by ``user`` plus divisional stats of the user's division."""
        conditions = [Stat.assigned_user_id == user.id]
        if user.division_id:
            conditions.append(Stat.assigned_division_id == user.division_id)
        rows = (
            self.db.query(Stat)
            .filter(Stat.company_id == user.company_id, or_(*conditions))
            .order_by(Stat.short_id.asc())
            .all()
        )
        return [StatMetadata.from_row(s) for s in rows]

    def dependencies(self, stat_id: int) -> List[int]:
        rows = (
            self.db.query(StatCalculation.dependent_stat_id)
            .filter(StatCalculation.stat_id == stat_id)
            .order_by(StatCalculation.dependent_stat_id.asc())
            .all()
        )
        return [r[0] for r in rows]

    # ─── Management ───
    def create_stat(self, company_id: int, data: dict,
                    dependent_ids: Optional[Iterable[int]] = None) -> StatMetadata:
        """Create a stat, and for calculated stats its dependencies, in one transaction."""
        fields = self._clean_definition(company_id, data)
        stat = Stat(company_id=company_id, **fields)
        with transaction(self.db):
            self.db.add(stat)
            self._flush_unique(fields["short_id"])
            self._apply_dependencies(stat, company_id, dependent_ids or [])
        self.db.refresh(stat)
        logger.info("Stat %s (id=%s) created for company %s", stat.short_id, stat.id, company_id)
        return StatMetadata.from_row(stat)

    def update_stat(self, stat_id: int, company_id: int, data: dict,
                    dependent_ids: Optional[Iterable[int]] = None) -> StatMetadata:
        """Update a stat's definition; ``dependent_ids`` of None keeps the current dependencies."""
        stat = self._owned_row(stat_id, company_id)
        current = {
            "short_id": stat.short_id, "full_name": stat.full_name, "scope_type": stat.scope_type,
            "value_type": stat.value_type, "reversed": stat.reversed,
            "assigned_user_id": stat.assigned_user_id, "assigned_division_id": stat.assigned_division_id,
            "is_calculated": stat.is_calculated,
        }
        current.update({k: v for k, v in data.items() if k in current})
        fields = self._clean_definition(company_id, current)
        if dependent_ids is None:
            dependent_ids = self.dependencies(stat_id) if fields["is_calculated"] else []
        with transaction(self.db):
            for k, v in fields.items():
                setattr(stat, k, v)
            self._flush_unique(fields["short_id"])
            self._apply_dependencies(stat, company_id, dependent_ids)
        self.db.refresh(stat)
        logger.info("Stat %s (id=%s) updated", stat.short_id, stat.id)
        return StatMetadata.from_row(stat)

    def delete_stat(self, stat_id: int, company_id: int) -> None:
        stat = self._owned_row(stat_id, company_id)
        with transaction(self.db):
            self.db.delete(stat)
        logger.info("Stat id=%s deleted", stat_id)

    def set_dependencies(self, stat_id: int, company_id: int, dependent_ids: Iterable[int]) -> List[int]:
        stat = self._owned_row(stat_id, company_id)
        if not stat.is_calculated:
            raise ValidationError(f"Stat {stat.short_id} is not a calculated stat")
        with transaction(self.db):
            return self._apply_dependencies(stat, company_id, dependent_ids)

    # ─── Helpers ───
    def _apply_dependencies(self, stat: Stat, company_id: int, dependent_ids: Iterable[int]) -> List[int]:
        """Replace the StatCalculation rows of ``stat``; runs inside the caller's transaction."""
        wanted = sorted(set(int(d) for d in dependent_ids))
        if wanted and not stat.is_calculated:
            raise ValidationError(f"Stat {stat.short_id} is not a calculated stat")
        for dep_id in wanted:
            if dep_id == stat.id:
                raise ValidationError("A calculated stat cannot depend on itself")
            dep = self._owned_row(dep_id, company_id)
            if dep.is_calculated:
                raise ValidationError(f"Stat {dep.short_id} is itself calculated")
            if dep.value_type != stat.value_type:
                raise ValidationError(
                    f"Stat {dep.short_id} is {dep.value_type}, expected {stat.value_type}",
                    details={"dependent_stat_id": dep_id},
                )
        self.db.query(StatCalculation).filter(StatCalculation.stat_id == stat.id).delete()
        for dep_id in wanted:
            self.db.add(StatCalculation(stat_id=stat.id, dependent_stat_id=dep_id))
        self.db.flush()
        return wanted

    def _owned_row(self, stat_id: int, company_id: int) -> Stat:
        stat = self.db.query(Stat).filter(Stat.id == stat_id, Stat.company_id == company_id).first()
        if not stat:
            raise NotFoundError(f"Stat not found for StatID {stat_id}", details={"stat_id": stat_id})
        return stat

    def _flush_unique(self, short_id: str) -> None:
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise ValidationError(f"Short ID {short_id} already exists", code="duplicate_short_id") from exc

    def _clean_definition(self, company_id: int, data: dict) -> dict:
        short_id = (data.get("short_id") or "").strip().upper()
        full_name = (data.get("full_name") or "").strip()
        scope_type = (data.get("scope_type") or "").strip().lower()
        value_type = (data.get("value_type") or "").strip().lower()
        user_id = data.get("assigned_user_id")
        division_id = data.get("assigned_division_id")

        if not short_id:
            raise ValidationError("Short ID is required")
        if not full_name:
            raise ValidationError("Full Name is required")
        if scope_type not in SCOPE_TYPES:
            raise ValidationError(f"type must be one of {', '.join(SCOPE_TYPES)}")
        if value_type not in VALUE_TYPES:
            raise ValidationError(f"value_type must be one of {', '.join(VALUE_TYPES)}")

        if scope_type == SCOPE_PERSONAL:
            if user_id is None or division_id is not None:
                raise ValidationError("A personal stat must be assigned to exactly one user")
            user = self.db.query(UserAccount).filter(UserAccount.id == user_id).first()
            if not user or user.company_id != company_id:
                raise ValidationError(f"User {user_id} not found in this company")
        elif scope_type == SCOPE_DIVISIONAL:
            if division_id is None or user_id is not None:
                raise ValidationError("A divisional stat must be assigned to exactly one division")
            division = self.db.query(Division).filter(Division.id == division_id).first()
            if not division or division.company_id != company_id:
                raise ValidationError(f"Division {division_id} not found in this company")
        elif scope_type == SCOPE_MAIN and (user_id is not None or division_id is not None):
            raise ValidationError("A main stat cannot be assigned to a user or division")

        return {
            "short_id": short_id,
            "full_name": full_name,
            "scope_type": scope_type,
            "value_type": value_type,
            "reversed": bool(data.get("reversed", False)),
            "assigned_user_id": user_id,
            "assigned_division_id": division_id,
            "is_calculated": bool(data.get("is_calculated", False)),
        }
