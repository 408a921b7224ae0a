"""SproutSync — Source Analytics Models.

Profiles, groups and daily data points as they come out of the analytics API,
plus the inclusive day-granularity TimeWindow used for fetching and dedup.
"""

import calendar
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator


def coerce_profile_id(value: Any) -> str:
    """Normalize a profile identifier so ``"123"``, ``123`` and ``123.0`` match."""
    if isinstance(value, bool):
        raise ValueError("profile id cannot be a boolean")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    if not text:
        raise ValueError("profile id is empty")
    if text.isdigit():
        return str(int(text))
    return text


class Profile(BaseModel):
    """A tracked social profile, from the metadata endpoint."""

    profile_id: str = Field(alias="customer_profile_id")
    name: str = ""
    network_type: str = ""
    network_id: str = ""
    groups: Tuple[str, ...] = ()

    model_config = {"frozen": True, "populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def _network_id_fallback(cls, data: Any) -> Any:
        # The API exposes the native network id as native_id
        if isinstance(data, dict) and not data.get("network_id"):
            data = dict(data)
            data["network_id"] = data.get("native_id") or ""
        return data

    @field_validator("profile_id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> str:
        return coerce_profile_id(v)

    @field_validator("network_id", "name", "network_type", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("groups", mode="before")
    @classmethod
    def _coerce_groups(cls, v: Any) -> Tuple[str, ...]:
        return tuple(str(g) for g in (v or []))


class Group(BaseModel):
    """A customer group and the profiles that belong to it."""

    group_id: str
    name: str
    profiles: List[Profile] = []

    @field_validator("group_id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> str:
        return str(v)

    @property
    def profile_ids(self) -> List[str]:
        return [p.profile_id for p in self.profiles]


class DataPoint(BaseModel):
    """One profile's metrics for one reporting day.

    ``metrics`` is None when the source record had no metrics block at all;
    an empty mapping means the block was present but sparse.
    """

    profile_id: str
    reporting_period: date
    metrics: Optional[Dict[str, Any]] = None

    model_config = {"frozen": True}

    @field_validator("profile_id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> str:
        return coerce_profile_id(v)

    @property
    def key(self) -> Tuple[str, date]:
        return self.profile_id, self.reporting_period


class TimeWindow(BaseModel):
    """Inclusive [start_date, end_date] range at day granularity."""

    start_date: date
    end_date: date

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _ordered(self) -> "TimeWindow":
        if self.end_date < self.start_date:
            raise ValueError(
                f"end_date {self.end_date} is before start_date {self.start_date}"
            )
        return self

    @property
    def month_key(self) -> str:
        """Calendar month of the window start as ``YYYY-MM``."""
        return self.start_date.strftime("%Y-%m")

    @property
    def label(self) -> str:
        """Human label such as ``January 2024``."""
        return f"{calendar.month_name[self.start_date.month]} {self.start_date.year}"

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def __str__(self) -> str:
        return f"{self.start_date.isoformat()} to {self.end_date.isoformat()}"
