"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from stathq.config import get_settings
from stathq.database import SessionLocal, init_db
from stathq.auth.models import Role, ADMIN_ROLE
from stathq.modules.stats.errors import StatEngineError
from stathq.modules.stats.routes import router as stat_values_router, admin_router as stat_values_admin_router
from stathq.modules.stats.stat_routes import router as stat_definitions_router
from stathq.utils.export_service import router as export_router

settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

ROLE_DEFAULTS = [
    (ADMIN_ROLE, "Full access to every stat in the company", {"all": True}),
    ("manager", "Division manager", {"stats": True, "export": True}),
    ("user", "Staff member logging personal stats", {"stats": True}),
]


def seed_roles(db):
    """Create or refresh the system roles without overwriting custom permissions."""
    for role_name, description, default_perms in ROLE_DEFAULTS:
        role = db.query(Role).filter(Role.role_name == role_name).first()
        if not role:
            db.add(Role(role_name=role_name, description=description, permissions=default_perms,
                        is_system=True, is_active=True))
            continue
        current_perms = role.permissions if isinstance(role.permissions, dict) else {}
        role.permissions = {**default_perms, **current_perms}
        role.description = role.description or description
        role.is_system = True
        if role.is_active is None:
            role.is_active = True
    db.commit()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup ---
    init_db()
    db = SessionLocal()
    try:
        seed_roles(db)
    finally:
        db.close()
    logger.info("Application startup complete.")

    yield

    # --- Shutdown ---
    logger.info("Application shutdown complete.")


app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StatEngineError)
async def stat_engine_error_handler(request: Request, exc: StatEngineError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(stat_values_router)
app.include_router(stat_values_admin_router)
app.include_router(stat_definitions_router)
app.include_router(export_router)


# --- Health Check ---
@app.get("/api/health")
def health_check():
    return {"status": "healthy", "version": settings.APP_VERSION}
