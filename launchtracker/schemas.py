"""Pydantic request/response schemas for the launch tracker API.

Field names are snake_case in Python and camelCase on the wire; input accepts either.
"""
from __future__ import annotations

import datetime as dt
import re
from datetime import date, datetime
from typing import Generic, TypeVar
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from launchtracker.enums import (
    AlertSeverity,
    ContactSegment,
    ContactStatus,
    KpiCalculationType,
    KpiCategory,
    KpiResult,
    KpiStatus,
    KpiTargetType,
    KpiTrend,
    KpiUnit,
    NoteLinkedType,
    OutreachChannel,
    OutreachOutcome,
    PlanStatus,
    TaskCategory,
    TaskPriority,
    TaskStatus,
    UserRole,
)

T = TypeVar("T")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_TIME_RE = r"^\d{2}:\d{2}$"


def check_email(value: str) -> str:
    value = value.strip()
    if not _EMAIL_RE.match(value):
        raise ValueError("Invalid email address")
    return value


def check_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Invalid URL: {value}")
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Envelope(CamelModel, Generic[T]):
    data: T
    success: bool = True
    message: str | None = None


class Ack(CamelModel):
    success: bool = True
    message: str


class HealthOut(CamelModel):
    status: str
    timestamp: datetime


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginIn(CamelModel):
    email: str
    password: str = Field(min_length=6)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return check_email(v)


class RegisterIn(LoginIn):
    name: str = Field(min_length=1)


class PasswordChangeIn(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


class RoleUpdateIn(CamelModel):
    role: UserRole


class UserOut(CamelModel):
    id: int
    email: str
    name: str
    role: UserRole
    created_at: datetime | None = None


class AuthOut(CamelModel):
    user: UserOut
    token: str


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


class PlanCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    timezone: str = "America/Chicago"
    start_date: date
    end_date: date
    strategy_tags: list[str] = []
    notes: str | None = None
    template_id: str | None = None

    @model_validator(mode="after")
    def _window(self) -> PlanCreate:
        if self.start_date > self.end_date:
            raise ValueError("startDate must be on or before endDate")
        return self


class PlanUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    timezone: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    strategy_tags: list[str] | None = None
    notes: str | None = None
    status: PlanStatus | None = None


class PlanOut(CamelModel):
    id: int
    user_id: int
    name: str
    timezone: str
    start_date: date
    end_date: date
    strategy_tags: list[str] = []
    notes: str | None = None
    status: PlanStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TemplateOut(CamelModel):
    id: str
    name: str
    description: str
    task_count: int
    kpi_count: int


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreate(CamelModel):
    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    due_date: date
    due_time: str | None = Field(None, pattern=_TIME_RE)
    estimated_minutes: int | None = Field(None, gt=0)
    status: TaskStatus = TaskStatus.not_started
    priority: TaskPriority = TaskPriority.medium
    category: TaskCategory = TaskCategory.other
    owner_id: int | None = Field(None, gt=0)
    links: list[str] = []
    depends_on: list[int] = []

    @field_validator("links")
    @classmethod
    def _links(cls, v: list[str]) -> list[str]:
        return [check_url(link) for link in v]

    @field_validator("depends_on")
    @classmethod
    def _depends_on(cls, v: list[int]) -> list[int]:
        if any(i <= 0 for i in v):
            raise ValueError("Task ids must be positive")
        return list(dict.fromkeys(v))


class TaskBulkCreate(CamelModel):
    tasks: list[TaskCreate] = Field(min_length=1)


class TaskUpdate(CamelModel):
    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None
    due_date: date | None = None
    due_time: str | None = Field(None, pattern=_TIME_RE)
    estimated_minutes: int | None = Field(None, gt=0)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    category: TaskCategory | None = None
    owner_id: int | None = Field(None, gt=0)
    links: list[str] | None = None
    depends_on: list[int] | None = None
    completion_notes: str | None = None

    @field_validator("links")
    @classmethod
    def _links(cls, v: list[str] | None) -> list[str] | None:
        return None if v is None else [check_url(link) for link in v]

    @field_validator("depends_on")
    @classmethod
    def _depends_on(cls, v: list[int] | None) -> list[int] | None:
        if v is None:
            return None
        if any(i <= 0 for i in v):
            raise ValueError("Task ids must be positive")
        return list(dict.fromkeys(v))


class TaskComplete(CamelModel):
    completion_notes: str | None = None


class TaskOut(CamelModel):
    id: int
    plan_id: int
    title: str
    description: str | None = None
    due_date: date
    due_time: str | None = None
    estimated_minutes: int | None = None
    status: TaskStatus
    priority: TaskPriority
    category: TaskCategory
    owner_id: int | None = None
    links: list[str] = []
    depends_on: list[int] = []
    completion_notes: str | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TaskDependencyOut(CamelModel):
    id: int
    task_id: int
    depends_on_task_id: int


# ---------------------------------------------------------------------------
# Calendar and day views
# ---------------------------------------------------------------------------


class CalendarDayOut(CamelModel):
    date: dt.date
    total_tasks: int
    completed_tasks: int
    completion_percent: int
    has_blocked_tasks: bool
    has_critical_priority_tasks: bool
    has_alerts: bool


class CalendarOut(CamelModel):
    plan_id: int
    start_date: date
    end_date: date
    days: list[CalendarDayOut]


class DayGroupsOut(CamelModel):
    must_do: list[TaskOut]
    should_do: list[TaskOut]
    optional: list[TaskOut]


class DaySummaryOut(CamelModel):
    total: int
    completed: int
    blocked: int
    completion_percent: int


class DayOut(CamelModel):
    date: dt.date
    in_window: bool
    tasks: list[TaskOut]
    grouped: DayGroupsOut
    dependencies: list[TaskDependencyOut]
    blocking_tasks: list[TaskOut]
    summary: DaySummaryOut


# ---------------------------------------------------------------------------
# KPIs and alerts
# ---------------------------------------------------------------------------


class KpiCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    category: KpiCategory
    unit: KpiUnit
    target_type: KpiTargetType
    target_value: float
    calculation_type: KpiCalculationType = KpiCalculationType.manual
    numerator_key: str | None = None
    denominator_key: str | None = None


class KpiUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    category: KpiCategory | None = None
    unit: KpiUnit | None = None
    target_type: KpiTargetType | None = None
    target_value: float | None = None
    calculation_type: KpiCalculationType | None = None
    numerator_key: str | None = None
    denominator_key: str | None = None


class KpiEntryIn(CamelModel):
    date: dt.date
    value: float
    notes: str | None = None


class KpiEntryOut(CamelModel):
    id: int
    plan_id: int
    kpi_id: int
    date: dt.date
    value: float
    notes: str | None = None
    created_at: datetime | None = None


class KpiOut(CamelModel):
    id: int
    plan_id: int
    name: str
    category: KpiCategory
    unit: KpiUnit
    target_type: KpiTargetType
    target_value: float
    calculation_type: KpiCalculationType
    numerator_key: str | None = None
    denominator_key: str | None = None
    created_at: datetime | None = None


class KpiWithStatusOut(KpiOut):
    latest_value: float | None = None
    latest_date: date | None = None
    status: KpiStatus
    trend: KpiTrend
    entries: list[KpiEntryOut] = []


class KpiEntryResultOut(KpiEntryOut):
    alert_created: bool = False


class AlertResolveIn(CamelModel):
    resolution_notes: str = Field(min_length=1)

    @field_validator("resolution_notes")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Resolution notes are required")
        return v


class AlertOut(CamelModel):
    id: int
    plan_id: int
    kpi_id: int | None = None
    date_triggered: date
    severity: AlertSeverity
    message: str
    resolved_at: datetime | None = None
    resolution_notes: str | None = None
    created_at: datetime | None = None
    kpi: KpiOut | None = None


# ---------------------------------------------------------------------------
# Contacts and outreach
# ---------------------------------------------------------------------------


class ContactCreate(CamelModel):
    email: str
    name: str | None = None
    segment: ContactSegment
    status: ContactStatus = ContactStatus.not_contacted
    tags: list[str] = []
    notes: str | None = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return check_email(v)


class ContactUpdate(CamelModel):
    email: str | None = None
    name: str | None = None
    segment: ContactSegment | None = None
    status: ContactStatus | None = None
    tags: list[str] | None = None
    notes: str | None = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str | None) -> str | None:
        return None if v is None else check_email(v)


class ContactImportRow(CamelModel):
    email: str
    name: str | None = None
    segment: ContactSegment
    tags: list[str] = []

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return check_email(v)


class ContactImportIn(CamelModel):
    contacts: list[ContactImportRow]


class ContactOut(CamelModel):
    id: int
    plan_id: int
    email: str
    name: str | None = None
    segment: ContactSegment
    status: ContactStatus
    tags: list[str] = []
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ImportRowError(CamelModel):
    row: int
    message: str


class ContactFileImportOut(CamelModel):
    imported: int
    contacts: list[ContactOut]
    errors: list[ImportRowError]


class OutreachEventCreate(CamelModel):
    contact_id: int = Field(gt=0)
    date: dt.date
    channel: OutreachChannel
    template_key: str | None = None
    outcome: OutreachOutcome
    notes: str | None = None


class OutreachEventOut(CamelModel):
    id: int
    plan_id: int
    contact_id: int
    date: dt.date
    channel: OutreachChannel
    template_key: str | None = None
    outcome: OutreachOutcome
    notes: str | None = None
    created_at: datetime | None = None
    contact: ContactOut | None = None


# ---------------------------------------------------------------------------
# Assets and notes
# ---------------------------------------------------------------------------


class AssetCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    type: str = Field(min_length=1)
    url: str | None = None
    linked_task_id: int | None = Field(None, gt=0)
    linked_date: date | None = None
    notes: str | None = None

    @field_validator("url")
    @classmethod
    def _url(cls, v: str | None) -> str | None:
        return None if v is None else check_url(v)


class AssetUpdate(CamelModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    type: str | None = Field(None, min_length=1)
    url: str | None = None
    linked_task_id: int | None = Field(None, gt=0)
    linked_date: date | None = None
    notes: str | None = None

    @field_validator("url")
    @classmethod
    def _url(cls, v: str | None) -> str | None:
        return None if v is None else check_url(v)


class AssetOut(CamelModel):
    id: int
    plan_id: int
    title: str
    type: str
    url: str | None = None
    linked_task_id: int | None = None
    linked_date: date | None = None
    notes: str | None = None
    created_at: datetime | None = None


class NoteCreate(CamelModel):
    linked_type: NoteLinkedType
    linked_id: int | str
    content: str = Field(min_length=1)

    @field_validator("linked_id")
    @classmethod
    def _linked_id(cls, v: int | str) -> str:
        if isinstance(v, int) and v <= 0:
            raise ValueError("linkedId must be a positive id or a string")
        return str(v)


class NoteUpdate(CamelModel):
    content: str = Field(min_length=1)


class NoteOut(CamelModel):
    id: int
    plan_id: int
    linked_type: NoteLinkedType
    linked_id: str
    content: str
    created_at: datetime | None = None


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


class TaskSummaryOut(CamelModel):
    total: int
    completed: int
    skipped: int
    blocked: int
    completion_percent: int


class ReportKpiOut(CamelModel):
    id: int
    name: str
    category: KpiCategory
    unit: KpiUnit
    target_type: KpiTargetType
    target_value: float
    final_value: float | None = None
    final_date: date | None = None
    result: KpiResult


class FunnelRowOut(CamelModel):
    segment: ContactSegment
    total: int
    contacted: int
    replied: int
    converted: int


class ReportOut(CamelModel):
    plan: PlanOut
    task_summary: TaskSummaryOut
    kpis: list[ReportKpiOut]
    outreach_funnel: list[FunnelRowOut]
    learnings: list[NoteOut]
