"""Stat value routes – weekly/daily reads and the personal and admin write paths."""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from stathq.database import get_db
from stathq.config import get_settings
from stathq.auth.dependencies import get_current_actor, require_roles
from stathq.auth.models import ADMIN_ROLE
from stathq.modules.stats.assignment import Actor, PATH_PERSONAL, PATH_PRIVILEGED
from stathq.modules.stats.errors import ValidationError
from stathq.modules.stats.schemas import WeeklyValueIn, DailyRowIn
from stathq.modules.stats.service import StatValueService

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/services", tags=["Stat Values"])
admin_router = APIRouter(
    prefix="/services/admin",
    tags=["Stat Values (admin)"],
    dependencies=[Depends(require_roles([ADMIN_ROLE]))],
)


def get_service(db: Session = Depends(get_db)) -> StatValueService:
    return StatValueService(db)


def _stat_ref(stat_id: Optional[int], stat: Optional[str]):
    if stat_id is not None:
        return stat_id
    if stat:
        return stat
    raise ValidationError("stat_id or stat query param required")


# ─── Reads ───
@router.get("/getWeeklyStats")
def get_weekly_stats(stat_id: Optional[int] = None, stat: Optional[str] = None,
                     user_id: Optional[int] = None,
                     svc: StatValueService = Depends(get_service), actor: Actor = Depends(get_current_actor)):
    return svc.get_canonical_weekly(actor, _stat_ref(stat_id, stat), on_behalf_of=user_id)


@router.get("/getDailyStats")
def get_daily_stats(date: str, stat_id: Optional[int] = None, stat: Optional[str] = None,
                    svc: StatValueService = Depends(get_service), actor: Actor = Depends(get_current_actor)):
    return svc.get_canonical_daily(actor, _stat_ref(stat_id, stat), date)


@router.get("/get7R")
def get_7r_grid(date: str, stat_id: Optional[int] = None, stat: Optional[str] = None,
                svc: StatValueService = Depends(get_service), actor: Actor = Depends(get_current_actor)):
    return svc.get_daily_grid(actor, _stat_ref(stat_id, stat), date)


@router.get("/weeks")
def list_weeks(count: int = Query(default=settings.RECENT_WEEKS_DEFAULT, ge=0, le=260),
               svc: StatValueService = Depends(get_service), actor: Actor = Depends(get_current_actor)):
    return {"weeks": svc.recent_weeks(count)}


# ─── Personal writes ───
@router.post("/logWeeklyStats")
def log_weekly_stats(data: WeeklyValueIn, svc: StatValueService = Depends(get_service),
                     actor: Actor = Depends(get_current_actor)):
    result = svc.upsert_weekly(actor, data.stat_id, data.week_ending, data.value, path=PATH_PERSONAL)
    return {"message": "Weekly value saved", **result}


@router.post("/saveWeeklyEdit")
def save_weekly_edit(rows: List[WeeklyValueIn], svc: StatValueService = Depends(get_service),
                     actor: Actor = Depends(get_current_actor)):
    result = svc.upsert_weekly_batch(actor, rows, path=PATH_PERSONAL)
    return {"message": "Saved Weekly stat data", **result}


@router.post("/save7R")
def save_7r(rows: List[DailyRowIn], thisWeek: str = Query(...),
            svc: StatValueService = Depends(get_service), actor: Actor = Depends(get_current_actor)):
    result = svc.upsert_daily_batch(actor, thisWeek, rows, path=PATH_PERSONAL)
    return {"message": "Saved 7R grid", **result}


# ─── Divisional / main writes ───
@admin_router.post("/logWeeklyStats")
def admin_log_weekly_stats(data: WeeklyValueIn, svc: StatValueService = Depends(get_service),
                           actor: Actor = Depends(get_current_actor)):
    result = svc.upsert_weekly(actor, data.stat_id, data.week_ending, data.value, path=PATH_PRIVILEGED)
    return {"message": "Weekly value saved", **result}


@admin_router.post("/saveWeeklyEdit")
def admin_save_weekly_edit(rows: List[WeeklyValueIn], svc: StatValueService = Depends(get_service),
                           actor: Actor = Depends(get_current_actor)):
    result = svc.upsert_weekly_batch(actor, rows, path=PATH_PRIVILEGED)
    return {"message": "Saved Weekly stat data", **result}


@admin_router.post("/save7R")
def admin_save_7r(rows: List[DailyRowIn], thisWeek: str = Query(...),
                  svc: StatValueService = Depends(get_service), actor: Actor = Depends(get_current_actor)):
    result = svc.upsert_daily_batch(actor, thisWeek, rows, path=PATH_PRIVILEGED)
    return {"message": "Saved 7R grid", **result}
