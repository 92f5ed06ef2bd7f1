"""Closed value sets shared by the ORM models, request schemas and metrics."""
from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    admin = "admin"
    collaborator = "collaborator"


class PlanStatus(str, Enum):
    draft = "draft"
    active = "active"
    completed = "completed"
    archived = "archived"


class TaskStatus(str, Enum):
    not_started = "not_started"
    in_progress = "in_progress"
    blocked = "blocked"
    complete = "complete"
    skipped = "skipped"


class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class TaskCategory(str, Enum):
    product = "product"
    funnel = "funnel"
    outreach = "outreach"
    email = "email"
    ads = "ads"
    analytics = "analytics"
    support = "support"
    other = "other"


class KpiCategory(str, Enum):
    email_deliverability = "email_deliverability"
    funnel_conversion = "funnel_conversion"
    revenue = "revenue"
    activation = "activation"
    ads = "ads"


class KpiUnit(str, Enum):
    percent = "percent"
    count = "count"
    currency = "currency"
    ratio = "ratio"


class KpiTargetType(str, Enum):
    minimum = "minimum"
    maximum = "maximum"


class KpiCalculationType(str, Enum):
    manual = "manual"
    calculated = "calculated"  # declared only; entries are always supplied by hand


class KpiStatus(str, Enum):
    green = "green"
    yellow = "yellow"
    red = "red"


class KpiTrend(str, Enum):
    up = "up"
    down = "down"
    stable = "stable"


class KpiResult(str, Enum):
    met = "met"
    missed = "missed"
    no_data = "no_data"


class ContactSegment(str, Enum):
    past_payer = "past_payer"
    cold_list = "cold_list"


class ContactStatus(str, Enum):
    not_contacted = "not_contacted"
    contacted = "contacted"
    replied = "replied"
    booked_call = "booked_call"
    started_trial = "started_trial"
    paid_starter = "paid_starter"
    paid_pro = "paid_pro"
    unsubscribed = "unsubscribed"


# Funnel stages counted by the report
REPLIED_STATUSES = (
    ContactStatus.replied, ContactStatus.booked_call, ContactStatus.started_trial,
    ContactStatus.paid_starter, ContactStatus.paid_pro,
)
CONVERTED_STATUSES = (ContactStatus.paid_starter, ContactStatus.paid_pro)


class OutreachChannel(str, Enum):
    email = "email"
    dm = "dm"
    call = "call"


class OutreachOutcome(str, Enum):
    delivered = "delivered"
    replied = "replied"
    clicked = "clicked"
    converted = "converted"


class AlertSeverity(str, Enum):
    info = "info"
    warning = "warning"
    critical = "critical"


class NoteLinkedType(str, Enum):
    day = "day"
    task = "task"
    kpi = "kpi"
    contact = "contact"
