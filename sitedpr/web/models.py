"""Request/response models for the SiteDPR web API.

Bodies use the same camelCase keys as stored documents.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DateSelection(ApiModel):
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")


class AddItemsRequest(ApiModel):
    items: list[dict[str, Any]]
    raw_text: str = ""


class IngestRequest(ApiModel):
    raw_text: str
    instructions: Optional[str] = None
    context_locations: Optional[list[str]] = None
    context_components: Optional[list[str]] = None
    bulk: bool = False


class AddItemsResponse(ApiModel):
    report_id: Optional[str]
    date: str
    added: int
    backup_id: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)


class ReportSummary(ApiModel):
    id: str
    date: str
    entry_count: int
    last_updated: str
    project_title: str
    is_recovered: bool


class SessionState(ApiModel):
    date: str
    report_id: Optional[str]
    entries: list[dict[str, Any]]
    can_undo: bool
    can_redo: bool
    inspected_id: Optional[str] = None


class HardSyncResponse(ApiModel):
    scanned: int
    repaired: int
    failed: int
    reports_updated: int
    errors: list[str] = Field(default_factory=list)
