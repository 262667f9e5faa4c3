"""Request schemas for stat value endpoints.

Payloads are validated once here; the engine receives typed rows. The
PascalCase names used by the existing front end (``StatID``, ``Weekending``,
``Thursday`` ...) are accepted as aliases.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator, model_validator

# Day keys of the legacy Thursday-anchored 7R payload, in business-day order.
LEGACY_DAY_KEYS = ("Thursday", "Friday", "Monday", "Tuesday", "Wednesday")


def _as_text(v):
    if v is None:
        return ""
    if isinstance(v, bool):
        raise ValueError("value must be a string or number")
    if isinstance(v, (int, float)):
        return str(v)
    return v


class WeeklyValueIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    stat_id: int = Field(validation_alias=AliasChoices("stat_id", "StatID"), gt=0)
    week_ending: str = Field(validation_alias=AliasChoices("week_ending", "Weekending", "date"))
    value: str = Field(default="", validation_alias=AliasChoices("value", "Value"))

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, v):
        return _as_text(v)


class DailyRowIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    stat_id: int = Field(validation_alias=AliasChoices("stat_id", "StatID"), gt=0)
    days: List[str] = Field(default_factory=list, max_length=5)
    quota: str = Field(default="", validation_alias=AliasChoices("quota", "Quota"))

    @model_validator(mode="before")
    @classmethod
    def _legacy_day_fields(cls, data):
        if isinstance(data, dict) and "days" not in data and any(k in data for k in LEGACY_DAY_KEYS):
            data = dict(data)
            data["days"] = [data.pop(k, "") for k in LEGACY_DAY_KEYS]
        return data

    @field_validator("days", mode="before")
    @classmethod
    def _coerce_days(cls, v):
        if v is None:
            return []
        return [_as_text(x) for x in v]

    @field_validator("quota", mode="before")
    @classmethod
    def _coerce_quota(cls, v):
        return _as_text(v)


class StatCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    short_id: str
    full_name: str
    scope_type: str = Field(validation_alias=AliasChoices("scope_type", "type"))
    value_type: str
    reversed: bool = False
    assigned_user_id: Optional[int] = None
    assigned_division_id: Optional[int] = None
    is_calculated: bool = False
    dependent_stat_ids: List[int] = Field(default_factory=list)


class StatUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    short_id: Optional[str] = None
    full_name: Optional[str] = None
    scope_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("scope_type", "type"))
    value_type: Optional[str] = None
    reversed: Optional[bool] = None
    assigned_user_id: Optional[int] = None
    assigned_division_id: Optional[int] = None
    is_calculated: Optional[bool] = None
    dependent_stat_ids: Optional[List[int]] = None
