"""SiteDPR Pydantic models for type-safe data validation.

Documents are stored as camelCase JSON (the shape the document store and the
web API exchange); Python code uses the snake_case attribute names.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_UNIT = "m3"
ANONYMOUS = "Anonymous"

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


def validate_report_date(value: str) -> str:
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise ValueError("date must be YYYY-MM-DD")
    return value


class Document(BaseModel):
    """Base for everything persisted as a whole-object document."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible camelCase wire shape."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_document(cls, data: dict[str, Any]):
        return cls.model_validate(data)


class EditHistoryEntry(Document):
    """One field-level change on an item. Immutable once appended."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    timestamp: datetime = Field(default_factory=utcnow)
    user: str
    field: str
    old_value: str = ""
    new_value: str = ""


class PhotoAttachment(Document):
    url: str
    name: str = ""
    uploaded_at: datetime = Field(default_factory=utcnow)


class DPRItem(Document):
    """One line of reported construction activity."""

    id: str = Field(default_factory=new_id)

    # Classification
    location: str = ""
    component: str = ""
    structural_element: str = ""
    chainage: str = ""
    chainage_or_area: str = ""  # derived: "{chainage} {structural_element}"
    item_type: str = "Other"

    activity_description: str = ""
    planned_next_activity: str = ""

    # Quantities
    quantity: float = 0.0
    unit: str = DEFAULT_UNIT  # never empty

    # Provenance
    created_by: str | None = None
    last_modified_by: str | None = None
    last_modified_at: datetime | None = None
    source_backup_id: str | None = None  # weak reference into the raw-input archive
    edit_history: list[EditHistoryEntry] = Field(default_factory=list)

    photos: list[PhotoAttachment] = Field(default_factory=list)

    # Parser-only hint for bulk mode; never persisted
    extracted_date: str | None = Field(default=None, exclude=True)

    @field_validator("unit", mode="before")
    @classmethod
    def default_blank_unit(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            return DEFAULT_UNIT
        return str(v).strip()

    @field_validator("quantity", mode="before")
    @classmethod
    def default_missing_quantity(cls, v: Any) -> Any:
        if v is None or v == "":
            return 0.0
        return v

    @field_validator("id", mode="before")
    @classmethod
    def default_blank_id(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            return new_id()
        return str(v)

    @field_validator("extracted_date")
    @classmethod
    def validate_extracted_date(cls, v: str | None) -> str | None:
        if v and not _DATE_RE.match(v):
            return None
        return v or None


class DailyReport(Document):
    """The report for one calendar date."""

    id: str = Field(default_factory=new_id)
    date: str
    entries: list[DPRItem] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=utcnow)
    project_title: str = ""
    company_name: str = ""
    is_recovered: bool = False

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        return validate_report_date(v)

    def index_of(self, item_id: str) -> int:
        for index, entry in enumerate(self.entries):
            if entry.id == item_id:
                return index
        return -1

    def find(self, item_id: str) -> DPRItem | None:
        index = self.index_of(item_id)
        return self.entries[index] if index >= 0 else None


class TrashType(str, Enum):
    REPORT = "report"
    ITEM = "item"
    QUANTITY = "quantity"


class TrashItem(Document):
    """Envelope around a soft-deleted object, restorable verbatim."""

    trash_id: str = Field(default_factory=new_id)
    original_id: str
    type: TrashType
    content: dict[str, Any]
    deleted_at: datetime = Field(default_factory=utcnow)
    deleted_by: str = ANONYMOUS
    report_date: str = ""
    report_id: str | None = None  # owning report for items


class BackupEntry(Document):
    """Immutable archive record of one raw input and what it parsed into."""

    id: str = Field(default_factory=new_id)
    date: str
    timestamp: datetime = Field(default_factory=utcnow)
    user: str = ANONYMOUS
    raw_input: str
    parsed_items: list[DPRItem] = Field(default_factory=list)
    report_id_context: str = ""


class LogEntry(Document):
    id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=utcnow)
    user: str = ANONYMOUS
    action: str
    details: str = ""
    report_date: str = ""
    related_backup_id: str | None = None


class ReportSnapshot(Document):
    """Full-state copy of a report taken on every committed save."""

    history_id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=utcnow)
    report_id: str
    report_date: str
    snapshot: DailyReport


class QuantityEntry(Document):
    """Stand-alone quantity ledger row (legacy collection, trash-restorable)."""

    id: str = Field(default_factory=new_id)
    date: str
    location: str = ""
    structure: str = ""
    detail_element: str = ""
    detail_location: str = ""
    item_type: str = "Other"
    description: str = ""
    quantity_value: float = 0.0
    quantity_unit: str = DEFAULT_UNIT
    original_report_item_id: str | None = None
    report_id: str | None = None
    last_updated: datetime = Field(default_factory=utcnow)
    updated_by: str = ANONYMOUS


class UserIdentity(BaseModel):
    """Identity supplied by the auth provider, used purely for attribution."""

    uid: str | None = None
    display_name: str | None = None
    email: str | None = None
    photo_url: str | None = None

    @property
    def attribution(self) -> str:
        return self.display_name or self.email or ANONYMOUS


class UserProfile(Document):
    uid: str
    display_name: str = ""
    email: str = ""
    total_entries: int = 0
    total_days: int = 0
    last_active_date: str | None = None
    level: int = 1
    xp: int = 0
    joined_date: datetime = Field(default_factory=utcnow)


class ItemTypeDefinition(Document):
    """Custom item type: regex pattern plus the unit it defaults to."""

    name: str
    pattern: str
    default_unit: str = DEFAULT_UNIT


class SubContractor(Document):
    id: str = Field(default_factory=new_id)
    name: str
    assigned_components: list[str] = Field(default_factory=list)
    rates: dict[str, float] = Field(default_factory=dict)


class ProjectSettings(Document):
    project_name: str = ""
    project_description: str = ""
    company_name: str = ""
    location_hierarchy: dict[str, list[str]] = Field(default_factory=dict)
    item_types: list[ItemTypeDefinition] = Field(default_factory=list)
    item_rates: dict[str, float] = Field(default_factory=dict)
