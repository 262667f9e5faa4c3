"""Shared fixtures for Stat HQ tests."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stathq.database import Base, get_db, enable_sqlite_foreign_keys
from stathq.auth.dependencies import create_access_token
from stathq.auth.models import Role, UserAccount, ADMIN_ROLE
from stathq.modules.org.models import Company, Division
from stathq.modules.stats.assignment import Actor
from stathq.modules.stats.models import Stat, StatCalculation
from stathq.main import app

# Thursdays, so both are valid week-ending dates.
WEEK_ENDING = "2024-01-04"
PREVIOUS_WEEK_ENDING = "2023-12-28"


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(eng)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def org(db_session):
    """Two companies, one division, an admin, a stat owner and a bystander."""
    admin_role = Role(role_name=ADMIN_ROLE, description="Admin", permissions={"all": True}, is_system=True)
    user_role = Role(role_name="user", description="Staff", permissions={"stats": True}, is_system=True)
    db_session.add_all([admin_role, user_role])
    db_session.flush()

    company = Company(company_code="ACME", name="Acme Corp")
    other_company = Company(company_code="GLOBEX", name="Globex")
    db_session.add_all([company, other_company])
    db_session.flush()

    division = Division(company_id=company.id, name="Sales")
    db_session.add(division)
    db_session.flush()

    admin = UserAccount(company_id=company.id, username="admin", full_name="Ada Admin", role_id=admin_role.id)
    owner = UserAccount(
        company_id=company.id, username="owner", full_name="Olive Owner",
        role_id=user_role.id, division_id=division.id,
    )
    other = UserAccount(company_id=company.id, username="other", full_name="Oscar Other", role_id=user_role.id)
    outsider = UserAccount(
        company_id=other_company.id, username="admin", full_name="Gia Globex", role_id=admin_role.id,
    )
    db_session.add_all([admin, owner, other, outsider])
    db_session.commit()

    return SimpleNamespace(
        company=company,
        other_company=other_company,
        division=division,
        admin_role=admin_role,
        user_role=user_role,
        admin=admin,
        owner=owner,
        other=other,
        outsider=outsider,
    )


@pytest.fixture
def stats(db_session, org):
    """Personal stats for the owner, a divisional, a main and a calculated stat."""
    cid = org.company.id

    def _stat(short_id, scope, value_type, **kw):
        stat = Stat(
            company_id=cid, short_id=short_id, full_name=f"{short_id} stat",
            scope_type=scope, value_type=value_type, **kw,
        )
        db_session.add(stat)
        return stat

    gi = _stat("GI", "personal", "currency", assigned_user_id=org.owner.id)
    sites = _stat("SITES", "personal", "number", assigned_user_id=org.owner.id)
    close_rate = _stat("CLOSE", "personal", "percentage", assigned_user_id=org.owner.id)
    div_gi = _stat("DIV-GI", "divisional", "currency", assigned_division_id=org.division.id)
    main_gi = _stat("CO-GI", "main", "currency")
    total = _stat("TOTAL", "main", "currency", is_calculated=True)
    db_session.flush()
    db_session.add_all([
        StatCalculation(stat_id=total.id, dependent_stat_id=gi.id),
        StatCalculation(stat_id=total.id, dependent_stat_id=div_gi.id),
    ])
    db_session.commit()

    return SimpleNamespace(gi=gi, sites=sites, close_rate=close_rate, div_gi=div_gi, main_gi=main_gi, total=total)


def actor_for(user, is_admin=False) -> Actor:
    return Actor(
        user_id=user.id,
        company_id=user.company_id,
        is_admin=is_admin,
        division_id=user.division_id,
        username=user.username,
    )


@pytest.fixture
def actors(org):
    return SimpleNamespace(
        admin=actor_for(org.admin, is_admin=True),
        owner=actor_for(org.owner),
        other=actor_for(org.other),
        outsider=actor_for(org.outsider, is_admin=True),
    )


@pytest.fixture
def client(db_session):
    """TestClient whose requests share the test session."""

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}

    return _headers
