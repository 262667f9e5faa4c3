"""Auth dependencies – JWT token validation, role checks, actor resolution."""
import logging
from datetime import datetime, timedelta
from typing import Optional, List
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from stathq.database import get_db
from stathq.config import get_settings
from stathq.auth.models import UserAccount, Role, ADMIN_ROLE
from stathq.modules.stats.assignment import Actor

logger = logging.getLogger(__name__)
settings = get_settings()
security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def get_current_user_from_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[UserAccount]:
    if getattr(request.state, "_current_user_loaded", False):
        return getattr(request.state, "_current_user", None)

    token = credentials.credentials if credentials else request.cookies.get("access_token")
    user = None
    if not token:
        logger.debug("No token found in headers or cookies")
    else:
        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
            user_id = int(payload.get("sub"))
        except JWTError as e:
            logger.debug("JWT Error: %s", e)
            user_id = None
        except (ValueError, TypeError):
            user_id = None
        if user_id is not None:
            user = db.query(UserAccount).filter(UserAccount.id == user_id, UserAccount.is_active == True).first()
            logger.debug("User found: %s", user.username if user else None)

    request.state._current_user = user
    request.state._current_user_loaded = True
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> UserAccount:
    user = await get_current_user_from_token(request, credentials, db)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


def require_roles(allowed_roles: List[str]):
    async def role_checker(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        db: Session = Depends(get_db),
    ):
        user = await get_current_user(request, credentials, db)
        role = _get_current_role(request, db, user.role_id)
        if not role or role.role_name not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user
    return role_checker


def _get_current_role(request: Request, db: Session, role_id: int) -> Optional[Role]:
    cached_role = getattr(request.state, "_current_role", None)
    if cached_role and cached_role.id == role_id:
        return cached_role
    role = db.query(Role).filter(Role.id == role_id, Role.is_active == True).first()
    request.state._current_role = role
    return role


async def get_current_actor(
    request: Request,
    user: UserAccount = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Actor:
    role = _get_current_role(request, db, user.role_id)
    return Actor(
        user_id=user.id,
        company_id=user.company_id,
        is_admin=bool(role and role.role_name == ADMIN_ROLE),
        division_id=user.division_id,
        username=user.username,
    )
