"""Stat models – Stat, StatCalculation and the three canonical value series."""
from sqlalchemy import (
    Column, Integer, BigInteger, String, Boolean, DateTime, Date, ForeignKey,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.sql import func
from stathq.database import Base

SCOPE_PERSONAL = "personal"
SCOPE_DIVISIONAL = "divisional"
SCOPE_MAIN = "main"
SCOPE_TYPES = (SCOPE_PERSONAL, SCOPE_DIVISIONAL, SCOPE_MAIN)

VALUE_CURRENCY = "currency"
VALUE_NUMBER = "number"
VALUE_PERCENTAGE = "percentage"
VALUE_TYPES = (VALUE_CURRENCY, VALUE_NUMBER, VALUE_PERCENTAGE)


class Stat(Base):
    __tablename__ = "stats"
    __table_args__ = (
        UniqueConstraint("company_id", "short_id", name="uq_stat_company_short_id"),
        CheckConstraint("scope_type IN ('personal','divisional','main')", name="ck_stat_scope_type"),
        CheckConstraint("value_type IN ('currency','number','percentage')", name="ck_stat_value_type"),
    )
    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    short_id = Column(String(30), nullable=False)
    full_name = Column(String(200), nullable=False)
    scope_type = Column(String(20), nullable=False)
    value_type = Column(String(20), nullable=False)
    reversed = Column(Boolean, nullable=False, default=False)
    assigned_user_id = Column(Integer, ForeignKey("user_accounts.id", ondelete="SET NULL"), index=True)
    assigned_division_id = Column(Integer, ForeignKey("divisions.id", ondelete="SET NULL"), index=True)
    is_calculated = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class StatCalculation(Base):
    __tablename__ = "stat_calculations"
    __table_args__ = (UniqueConstraint("stat_id", "dependent_stat_id", name="uq_stat_calculation"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    stat_id = Column(Integer, ForeignKey("stats.id", ondelete="CASCADE"), nullable=False, index=True)
    dependent_stat_id = Column(Integer, ForeignKey("stats.id", ondelete="CASCADE"), nullable=False)


class WeeklyValue(Base):
    __tablename__ = "weekly_values"
    __table_args__ = (UniqueConstraint("stat_id", "week_ending", name="uq_weekly_stat_week"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    stat_id = Column(Integer, ForeignKey("stats.id", ondelete="CASCADE"), nullable=False)
    week_ending = Column(Date, nullable=False)
    value = Column(BigInteger, nullable=False)
    author_user_id = Column(Integer, ForeignKey("user_accounts.id", ondelete="SET NULL"))
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class DailyValue(Base):
    __tablename__ = "daily_values"
    __table_args__ = (UniqueConstraint("stat_id", "value_date", name="uq_daily_stat_date"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    stat_id = Column(Integer, ForeignKey("stats.id", ondelete="CASCADE"), nullable=False)
    value_date = Column(Date, nullable=False)
    value = Column(BigInteger, nullable=False)
    author_user_id = Column(Integer, ForeignKey("user_accounts.id", ondelete="SET NULL"))
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class WeeklyQuota(Base):
    __tablename__ = "weekly_quotas"
    __table_args__ = (UniqueConstraint("stat_id", "week_ending", name="uq_quota_stat_week"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    stat_id = Column(Integer, ForeignKey("stats.id", ondelete="CASCADE"), nullable=False)
    week_ending = Column(Date, nullable=False)
    value = Column(BigInteger, nullable=False)
    author_user_id = Column(Integer, ForeignKey("user_accounts.id", ondelete="SET NULL"))
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
