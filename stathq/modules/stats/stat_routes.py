"""Stat definition routes – assigned list for users, management for admins."""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from stathq.database import get_db
from stathq.config import get_settings
from stathq.auth.dependencies import get_current_user, require_roles
from stathq.auth.models import UserAccount, ADMIN_ROLE
from stathq.modules.stats.registry import StatRegistry
from stathq.modules.stats.schemas import StatCreate, StatUpdate

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/api/stats", tags=["Stats"])


def _registry(db: Session) -> StatRegistry:
    return StatRegistry(db, lenient_short_id=settings.LENIENT_SHORT_ID_LOOKUP)


def _with_dependencies(reg: StatRegistry, meta) -> dict:
    d = meta.to_dict()
    d.pop("placeholder", None)
    d["dependent_stat_ids"] = reg.dependencies(meta.id) if meta.is_calculated else []
    return d


@router.get("/assigned")
def list_assigned_stats(db: Session = Depends(get_db), user: UserAccount = Depends(get_current_user)):
    reg = _registry(db)
    items = reg.list_assigned(user)
    return {"total": len(items), "items": [_with_dependencies(reg, s) for s in items]}


@router.get("/all")
def list_all_stats(db: Session = Depends(get_db), user: UserAccount = Depends(require_roles([ADMIN_ROLE]))):
    reg = _registry(db)
    items = reg.list_stats(user.company_id)
    return {"total": len(items), "items": [_with_dependencies(reg, s) for s in items]}


@router.post("", status_code=201)
def create_stat(data: StatCreate, db: Session = Depends(get_db),
                user: UserAccount = Depends(require_roles([ADMIN_ROLE]))):
    reg = _registry(db)
    payload = data.model_dump()
    dependents = payload.pop("dependent_stat_ids")
    meta = reg.create_stat(user.company_id, payload, dependent_ids=dependents)
    return _with_dependencies(reg, meta)


@router.patch("/{stat_id}")
def update_stat(stat_id: int, data: StatUpdate, db: Session = Depends(get_db),
                user: UserAccount = Depends(require_roles([ADMIN_ROLE]))):
    reg = _registry(db)
    payload = data.model_dump(exclude_unset=True)
    dependents = payload.pop("dependent_stat_ids", None)
    meta = reg.update_stat(stat_id, user.company_id, payload, dependent_ids=dependents)
    return _with_dependencies(reg, meta)


@router.delete("/{stat_id}")
def delete_stat(stat_id: int, db: Session = Depends(get_db),
                user: UserAccount = Depends(require_roles([ADMIN_ROLE]))):
    _registry(db).delete_stat(stat_id, user.company_id)
    return {"message": "Stat deleted", "stat_id": stat_id}
