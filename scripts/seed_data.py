"""Seed a sample company with users, a division and a handful of stats.

Usage:
    python scripts/seed_data.py
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from stathq.database import SessionLocal, init_db
from stathq.auth.dependencies import create_access_token
from stathq.auth.models import Role, UserAccount, ADMIN_ROLE
from stathq.main import seed_roles
from stathq.modules.org.models import Company, Division
from stathq.modules.stats.models import Stat, StatCalculation


def get_or_create(db, model, defaults=None, **filters):
    defaults = defaults or {}
    instance = db.query(model).filter_by(**filters).first()
    if instance:
        return instance, False
    params = {**filters, **defaults}
    instance = model(**params)
    db.add(instance)
    db.flush()
    return instance, True


def seed_users(db, company_id, division_id):
    roles = {r.role_name: r.id for r in db.query(Role).all()}
    users = [
        ("sample_admin", "Sample Admin", ADMIN_ROLE),
        ("sample_manager", "Sample Manager", "manager"),
        ("sample_staff", "Sample Staff", "user"),
    ]
    created = {}
    for username, full_name, role_name in users:
        user, is_new = get_or_create(
            db,
            UserAccount,
            company_id=company_id,
            username=username,
            defaults={
                "full_name": full_name,
                "role_id": roles[role_name],
                "division_id": division_id,
                "is_active": True,
            },
        )
        if not is_new:
            user.role_id = roles[role_name]
            user.division_id = user.division_id or division_id
        created[username] = user
    db.flush()
    return created


def seed_stats(db, company_id, division_id, users):
    staff = users["sample_staff"]
    specs = [
        ("GI", "Gross Income", "personal", "currency", staff.id, None),
        ("SITES", "Sites Visited", "personal", "number", staff.id, None),
        ("CLOSE", "Close Rate", "personal", "percentage", staff.id, None),
        ("DIV-GI", "Division Gross Income", "divisional", "currency", None, division_id),
        ("CO-GI", "Company Gross Income", "main", "currency", None, None),
        ("TOTAL-GI", "Total Gross Income", "main", "currency", None, None),
    ]
    stats = {}
    for short_id, full_name, scope, value_type, user_id, div_id in specs:
        stat, _ = get_or_create(
            db,
            Stat,
            company_id=company_id,
            short_id=short_id,
            defaults={
                "full_name": full_name,
                "scope_type": scope,
                "value_type": value_type,
                "reversed": False,
                "assigned_user_id": user_id,
                "assigned_division_id": div_id,
                "is_calculated": short_id == "TOTAL-GI",
            },
        )
        stats[short_id] = stat

    for dependent in ("GI", "DIV-GI", "CO-GI"):
        get_or_create(db, StatCalculation, stat_id=stats["TOTAL-GI"].id, dependent_stat_id=stats[dependent].id)
    db.flush()
    return stats


def seed():
    init_db()
    db = SessionLocal()

    try:
        seed_roles(db)

        company, _ = get_or_create(db, Company, company_code="SMP", defaults={"name": "Sample Company"})
        division, _ = get_or_create(db, Division, company_id=company.id, name="Sales")

        users = seed_users(db, company.id, division.id)
        stats = seed_stats(db, company.id, division.id, users)

        db.commit()

        print("Sample data seeded successfully.")
        print(f"Companies: {db.query(Company).count()}")
        print(f"Users: {db.query(UserAccount).count()}")
        print(f"Stats: {db.query(Stat).count()} ({', '.join(sorted(stats))})")
        for username, user in users.items():
            print(f"Token for {username}: {create_access_token({'sub': str(user.id)})}")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
