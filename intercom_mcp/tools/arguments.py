"""Tool argument models and DD/MM/YYYY date handling."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DATE_PATTERN = re.compile(r"^\d{2}/\d{2}/\d{4}$")
MAX_LIST_RANGE_DAYS = 7


def validate_and_transform_date(date_str: str, is_start_date: bool = True) -> datetime:
    """Parse DD/MM/YYYY into a UTC datetime at the start (or end) of that day."""
    if not date_str:
        raise ValueError("Date is required")
    if not DATE_PATTERN.match(date_str):
        raise ValueError(f"Invalid date format: {date_str}. Must be in DD/MM/YYYY format (e.g., 15/01/2025)")
    day, month, year = (int(part) for part in date_str.split("/"))
    try:
        parsed = datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError as exc:
        raise ValueError(f"Invalid date: {date_str}") from exc
    if is_start_date:
        return parsed
    return parsed.replace(hour=23, minute=59, second=59, microsecond=999_000)


def validate_date_range(start: datetime, end: datetime) -> None:
    if end < start:
        raise ValueError("End date cannot be before start date")


def validate_max_date_range(start: datetime, end: datetime, max_days: int) -> None:
    actual = end - start
    if actual > timedelta(days=max_days):
        days = round(actual / timedelta(days=1))
        raise ValueError(
            f"Date range exceeds {max_days}-day maximum ({days} days). "
            f"Please limit to {max_days} days or less."
        )


class _ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class _OptionalDateWindow(_ToolArgs):
    start_date: str | None = Field(default=None, alias="startDate")
    end_date: str | None = Field(default=None, alias="endDate")

    @model_validator(mode="after")
    def _check_window(self):
        start, end = self.window()
        if start is not None and end is not None:
            validate_date_range(start, end)
        return self

    def window(self) -> tuple[datetime | None, datetime | None]:
        start = validate_and_transform_date(self.start_date, True) if self.start_date else None
        end = validate_and_transform_date(self.end_date, False) if self.end_date else None
        return start, end


class _CustomerArgs(_OptionalDateWindow):
    customer_identifier: str = Field(alias="customerIdentifier", min_length=1)

    @field_validator("customer_identifier")
    @classmethod
    def _strip_identifier(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Customer email or ID is required")
        return value


class ListConversationsArgs(_ToolArgs):
    start_date: str = Field(alias="startDate")
    end_date: str = Field(alias="endDate")
    keyword: str | None = None
    exclude: str | None = None

    @model_validator(mode="after")
    def _check_window(self):
        start, end = self.window()
        validate_date_range(start, end)
        validate_max_date_range(start, end, MAX_LIST_RANGE_DAYS)
        return self

    def window(self) -> tuple[datetime, datetime]:
        return (
            validate_and_transform_date(self.start_date, True),
            validate_and_transform_date(self.end_date, False),
        )


class SearchConversationsByCustomerArgs(_CustomerArgs):
    keywords: list[str] | None = None


class SearchTicketsByCustomerArgs(_CustomerArgs):
    pass


class SearchTicketsByStatusArgs(_OptionalDateWindow):
    status: Literal["open", "pending", "resolved"]
