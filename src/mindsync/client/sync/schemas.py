"""Pydantic schemas for downloaded payloads.

Remote files are written by other devices (and possibly older app
versions), so they are validated before they reach a merge. Validation
normalizes the payload; records are then built from the normalized dict.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Annotated, Any, Literal

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    ValidationError,
    model_validator,
)
from pydantic.alias_generators import to_camel

from mindsync.client.sync.types import MergeFailureError

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _check_date(value: str) -> str:
    # The pattern fixes the layout, fromisoformat rejects impossible days
    if not ISO_DATE.match(value):
        raise ValueError(f"invalid date {value!r}")
    date.fromisoformat(value)
    return value


def _check_day_keys(value: dict[str, Any]) -> dict[str, Any]:
    for day in value:
        _check_date(day)
    return value


IsoDate = Annotated[str, AfterValidator(_check_date)]
DayCountsField = Annotated[
    dict[str, dict[str, NonNegativeInt]], AfterValidator(_check_day_keys)
]


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# === Current period ===


class SyncMetadataSchema(_Payload):
    """Metadata block of the current-period payload."""

    device_id: str = ""
    current_week_dirty: bool = False
    daily_totals_dirty: bool = False
    weekly_totals_dirty: bool = False
    history_dirty: bool = False
    daily_totals_updated_at: NonNegativeInt = 0
    weekly_totals_updated_at: NonNegativeInt = 0
    is_fresh_install: bool = False
    date_reset_performed: bool = False
    date_reset_type: Literal["DAILY", "WEEKLY"] | None = None
    date_reset_timestamp: NonNegativeInt = 0
    daily_reset_timestamp: NonNegativeInt = 0
    weekly_reset_timestamp: NonNegativeInt = 0
    previous_week_start_date: IsoDate | None = None
    week_start_day: str = "Sunday"
    schema_version: int = 1


class CurrentRecordSchema(_Payload):
    """Current-period payload."""

    current_day_date: IsoDate
    current_week_start_date: IsoDate
    daily_counts: DayCountsField = Field(default_factory=dict)
    weekly_counts: dict[str, NonNegativeInt] = Field(default_factory=dict)
    last_modified: NonNegativeInt = 0
    metadata: SyncMetadataSchema = Field(default_factory=SyncMetadataSchema)


# === Archive ===


class ArchiveMetadataSchema(_Payload):
    """Metadata block of an archived week."""

    created_at: NonNegativeInt = 0
    updated_at: NonNegativeInt = 0
    schema_version: int = 1
    device_id: str = ""
    sync_status: Literal["local", "synced"] = "local"
    merged_after_reset: bool = False


class ArchiveRecordSchema(_Payload):
    """Archived-week payload."""

    id: str | None = None
    week_start_date: IsoDate
    week_end_date: IsoDate | None = None
    daily_breakdown: DayCountsField = Field(default_factory=dict)
    totals: dict[str, NonNegativeInt] = Field(default_factory=dict)
    targets: dict[str, Any] = Field(default_factory=dict)
    metadata: ArchiveMetadataSchema = Field(default_factory=ArchiveMetadataSchema)


class IndexEntrySchema(_Payload):
    """One week of the archive index."""

    week_start_date: IsoDate
    updated_at: NonNegativeInt = 0

    @model_validator(mode="before")
    @classmethod
    def _accept_anchor_date(cls, data: Any) -> Any:
        # Older writers used "anchorDate"
        if isinstance(data, dict) and "weekStartDate" not in data and "anchorDate" in data:
            data = {**data, "weekStartDate": data["anchorDate"]}
        return data


class ArchiveIndexSchema(_Payload):
    """Archive index payload."""

    last_updated: NonNegativeInt = 0
    weeks: list[IndexEntrySchema] = Field(default_factory=list)


def _validate(schema: type[_Payload], data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise MergeFailureError(f"{what} payload is not a JSON object")
    try:
        return schema.model_validate(data).model_dump(by_alias=True)
    except ValidationError as e:
        raise MergeFailureError(f"Malformed {what} payload: {e.error_count()} error(s): {e}") from e


def validate_current_payload(data: Any) -> dict[str, Any]:
    """Validate and normalize a current-period payload.

    Raises:
        MergeFailureError: If the payload is malformed.
    """
    return _validate(CurrentRecordSchema, data, "current period")


def validate_archive_payload(data: Any) -> dict[str, Any]:
    """Validate and normalize an archived-week payload.

    Raises:
        MergeFailureError: If the payload is malformed.
    """
    return _validate(ArchiveRecordSchema, data, "archive record")


def validate_index_payload(data: Any) -> dict[str, Any]:
    """Validate and normalize an archive index payload.

    Raises:
        MergeFailureError: If the payload is malformed.
    """
    return _validate(ArchiveIndexSchema, data, "archive index")
