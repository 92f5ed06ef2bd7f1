"""Plan-scoped business logic shared by the API routes and the seed script."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable

from sqlalchemy import case, select
from sqlalchemy.orm import Session, selectinload

from launchtracker import metrics
from launchtracker.db import bool_or, count_all, count_where
from launchtracker.enums import (
    CONVERTED_STATUSES,
    REPLIED_STATUSES,
    AlertSeverity,
    ContactStatus,
    KpiCalculationType,
    PlanStatus,
    TaskPriority,
    TaskStatus,
)
from launchtracker.errors import NotFoundError, ValidationError
from launchtracker.models import (
    Alert,
    Asset,
    Contact,
    Kpi,
    KpiEntry,
    LaunchPlan,
    Note,
    OutreachEvent,
    Task,
    TaskDependency,
    User,
)
from launchtracker.schemas import (
    AssetCreate,
    AssetUpdate,
    ContactCreate,
    ContactImportRow,
    ContactUpdate,
    KpiCreate,
    KpiEntryIn,
    KpiUpdate,
    NoteCreate,
    OutreachEventCreate,
    PlanCreate,
    PlanUpdate,
    TaskCreate,
    TaskUpdate,
)
from launchtracker.templates import LaunchTemplate, get_template
from launchtracker.utils import json_dump, json_parse, utc_now

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared field tuples
# ---------------------------------------------------------------------------

PLAN_FIELDS = ("name", "timezone", "start_date", "end_date", "notes", "status")
PLAN_NULLABLE = ("notes",)

TASK_FIELDS = (
    "title", "description", "due_date", "due_time", "estimated_minutes",
    "status", "priority", "category", "owner_id", "completion_notes",
)
TASK_NULLABLE = ("description", "due_time", "estimated_minutes", "owner_id", "completion_notes")

KPI_FIELDS = (
    "name", "category", "unit", "target_type", "target_value",
    "calculation_type", "numerator_key", "denominator_key",
)
KPI_NULLABLE = ("numerator_key", "denominator_key")

CONTACT_FIELDS = ("email", "name", "segment", "status", "notes")
CONTACT_NULLABLE = ("name", "notes")

ASSET_FIELDS = ("title", "type", "url", "linked_task_id", "linked_date", "notes")
ASSET_NULLABLE = ("url", "linked_task_id", "linked_date", "notes")

CSV_HEADER = ("Date", "KPI Name", "Category", "Value", "Unit", "Notes")

# Entries considered when computing a KPI's trend on the dashboard
KPI_TREND_ENTRIES = 7

_PRIORITY_RANK = {TaskPriority.high: 3, TaskPriority.medium: 2, TaskPriority.low: 1}


def priority_rank():
    return case(*((Task.priority == p, rank) for p, rank in _PRIORITY_RANK.items()), else_=0)


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def user_summary(user: User) -> dict:
    return {
        "id": user.id, "email": user.email, "name": user.name,
        "role": user.role, "created_at": user.created_at,
    }


def plan_summary(plan: LaunchPlan) -> dict:
    return {
        "id": plan.id, "user_id": plan.user_id, "name": plan.name,
        "timezone": plan.timezone, "start_date": plan.start_date, "end_date": plan.end_date,
        "strategy_tags": json_parse(plan.strategy_tags_json),
        "notes": plan.notes, "status": plan.status,
        "created_at": plan.created_at, "updated_at": plan.updated_at,
    }


def task_summary(task: Task) -> dict:
    return {
        "id": task.id, "plan_id": task.plan_id, "title": task.title,
        "description": task.description, "due_date": task.due_date, "due_time": task.due_time,
        "estimated_minutes": task.estimated_minutes, "status": task.status,
        "priority": task.priority, "category": task.category, "owner_id": task.owner_id,
        "links": json_parse(task.links_json),
        "depends_on": sorted(d.depends_on_task_id for d in task.dependencies),
        "completion_notes": task.completion_notes, "completed_at": task.completed_at,
        "created_at": task.created_at, "updated_at": task.updated_at,
    }


def dependency_summary(dep: TaskDependency) -> dict:
    return {"id": dep.id, "task_id": dep.task_id, "depends_on_task_id": dep.depends_on_task_id}


def kpi_summary(kpi: Kpi) -> dict:
    return {
        "id": kpi.id, "plan_id": kpi.plan_id, "name": kpi.name, "category": kpi.category,
        "unit": kpi.unit, "target_type": kpi.target_type, "target_value": kpi.target_value,
        "calculation_type": kpi.calculation_type, "numerator_key": kpi.numerator_key,
        "denominator_key": kpi.denominator_key, "created_at": kpi.created_at,
    }


def entry_summary(entry: KpiEntry) -> dict:
    return {
        "id": entry.id, "plan_id": entry.plan_id, "kpi_id": entry.kpi_id,
        "date": entry.date, "value": entry.value, "notes": entry.notes,
        "created_at": entry.created_at,
    }


def alert_summary(alert: Alert) -> dict:
    return {
        "id": alert.id, "plan_id": alert.plan_id, "kpi_id": alert.kpi_id,
        "date_triggered": alert.date_triggered, "severity": alert.severity,
        "message": alert.message, "resolved_at": alert.resolved_at,
        "resolution_notes": alert.resolution_notes, "created_at": alert.created_at,
        "kpi": kpi_summary(alert.kpi) if alert.kpi else None,
    }


def contact_summary(contact: Contact) -> dict:
    return {
        "id": contact.id, "plan_id": contact.plan_id, "email": contact.email,
        "name": contact.name, "segment": contact.segment, "status": contact.status,
        "tags": json_parse(contact.tags_json), "notes": contact.notes,
        "created_at": contact.created_at, "updated_at": contact.updated_at,
    }


def outreach_summary(event: OutreachEvent, with_contact: bool = True) -> dict:
    return {
        "id": event.id, "plan_id": event.plan_id, "contact_id": event.contact_id,
        "date": event.date, "channel": event.channel, "template_key": event.template_key,
        "outcome": event.outcome, "notes": event.notes, "created_at": event.created_at,
        "contact": contact_summary(event.contact) if with_contact and event.contact else None,
    }


def asset_summary(asset: Asset) -> dict:
    return {
        "id": asset.id, "plan_id": asset.plan_id, "title": asset.title, "type": asset.type,
        "url": asset.url, "linked_task_id": asset.linked_task_id,
        "linked_date": asset.linked_date, "notes": asset.notes, "created_at": asset.created_at,
    }


def note_summary(note: Note) -> dict:
    return {
        "id": note.id, "plan_id": note.plan_id, "linked_type": note.linked_type,
        "linked_id": note.linked_id, "content": note.content, "created_at": note.created_at,
    }


# ---------------------------------------------------------------------------
# Mutation helpers
# ---------------------------------------------------------------------------


def apply_updates(
    obj, updates: dict[str, Any], fields: tuple[str, ...], nullable: tuple[str, ...] = (),
) -> None:
    """Apply the keys present in ``updates`` to an ORM object.

    ``None`` clears a field only when it is listed in ``nullable``; otherwise it is ignored.
    """
    for field in fields:
        if field not in updates:
            continue
        val = updates[field]
        if val is None and field not in nullable:
            continue
        setattr(obj, field, val)


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------


def get_owned_plan(session: Session, plan_id: int, user: User) -> LaunchPlan:
    """The plan if it exists and belongs to ``user``; NotFound either way otherwise."""
    plan = session.execute(
        select(LaunchPlan).where(LaunchPlan.id == plan_id, LaunchPlan.user_id == user.id)
    ).scalars().first()
    if plan is None:
        raise NotFoundError("Plan not found")
    return plan


def get_plan_child(session: Session, model, plan_id: int, child_id: int, label: str):
    obj = session.execute(
        select(model).where(model.id == child_id, model.plan_id == plan_id)
    ).scalars().first()
    if obj is None:
        raise NotFoundError(f"{label} not found")
    return obj


def _check_plan_tasks(session: Session, plan_id: int, task_ids: Iterable[int]) -> None:
    wanted = set(task_ids)
    if not wanted:
        return
    found = set(session.execute(
        select(Task.id).where(Task.plan_id == plan_id, Task.id.in_(wanted))
    ).scalars())
    missing = sorted(wanted - found)
    if missing:
        raise ValidationError(
            f"Unknown task ids for this plan: {', '.join(map(str, missing))}",
            [{"field": "dependsOn", "message": f"Task {i} not found in plan"} for i in missing],
        )


def _check_owner(session: Session, owner_id: int | None) -> None:
    if owner_id is not None and session.get(User, owner_id) is None:
        raise ValidationError("Unknown owner", [{"field": "ownerId", "message": "User not found"}])


# ---------------------------------------------------------------------------
# Plans and templates
# ---------------------------------------------------------------------------


def list_plans(session: Session, user: User) -> list[LaunchPlan]:
    return list(session.execute(
        select(LaunchPlan).where(LaunchPlan.user_id == user.id)
        .order_by(LaunchPlan.created_at.desc(), LaunchPlan.id.desc())
    ).scalars())


def apply_template(session: Session, plan: LaunchPlan, template: LaunchTemplate) -> None:
    """Add the template's tasks and KPIs to ``plan``; the caller commits."""
    session.add_all(
        Task(
            plan_id=plan.id, title=t.title, description=t.description,
            due_date=metrics.add_days(plan.start_date, t.day_offset),
            estimated_minutes=t.estimated_minutes, status=TaskStatus.not_started,
            priority=t.priority, category=t.category, links_json="[]",
        )
        for t in template.tasks
    )
    session.add_all(
        Kpi(
            plan_id=plan.id, name=k.name, category=k.category, unit=k.unit,
            target_type=k.target_type, target_value=k.target_value,
            calculation_type=KpiCalculationType.manual,
        )
        for k in template.kpis
    )
    log.info("Applied template %s to plan %d: %d tasks, %d KPIs",
             template.id, plan.id, len(template.tasks), len(template.kpis))


def create_plan(session: Session, user: User, body: PlanCreate) -> LaunchPlan:
    """Create a plan, applying its template in the same transaction."""
    template = None
    if body.template_id:
        template = get_template(body.template_id)
        if template is None:
            raise ValidationError(
                f"Unknown template: {body.template_id}",
                [{"field": "templateId", "message": "Unknown template"}],
            )
    plan = LaunchPlan(
        user_id=user.id, name=body.name, timezone=body.timezone,
        start_date=body.start_date, end_date=body.end_date,
        strategy_tags_json=json_dump(body.strategy_tags), notes=body.notes,
        status=PlanStatus.draft,
    )
    session.add(plan)
    session.flush()
    if template is not None:
        apply_template(session, plan, template)
    session.commit()
    log.info("Created plan %d (%s) for user %d", plan.id, plan.name, user.id)
    return plan


def update_plan(session: Session, plan: LaunchPlan, body: PlanUpdate) -> LaunchPlan:
    updates = body.model_dump(exclude_unset=True)
    start = updates.get("start_date") or plan.start_date
    end = updates.get("end_date") or plan.end_date
    if start > end:
        raise ValidationError(
            "startDate must be on or before endDate",
            [{"field": "endDate", "message": "Must be on or after startDate"}],
        )
    apply_updates(plan, updates, PLAN_FIELDS, PLAN_NULLABLE)
    if updates.get("strategy_tags") is not None:
        plan.strategy_tags_json = json_dump(updates["strategy_tags"])
    session.commit()
    return plan


def delete_plan(session: Session, plan: LaunchPlan) -> None:
    session.delete(plan)
    session.commit()
    log.info("Deleted plan %d", plan.id)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def list_tasks(
    session: Session, plan_id: int, *, status=None, priority=None, category=None,
    due_date: date | None = None,
) -> list[Task]:
    query = select(Task).where(Task.plan_id == plan_id).options(selectinload(Task.dependencies))
    if status:
        query = query.where(Task.status == status)
    if priority:
        query = query.where(Task.priority == priority)
    if category:
        query = query.where(Task.category == category)
    if due_date:
        query = query.where(Task.due_date == due_date)
    query = query.order_by(Task.due_date, priority_rank().desc(), Task.created_at, Task.id)
    return list(session.execute(query).scalars())


def create_task(session: Session, plan: LaunchPlan, body: TaskCreate, commit: bool = True) -> Task:
    _check_owner(session, body.owner_id)
    _check_plan_tasks(session, plan.id, body.depends_on)
    task = Task(
        plan_id=plan.id, title=body.title, description=body.description,
        due_date=body.due_date, due_time=body.due_time,
        estimated_minutes=body.estimated_minutes, status=body.status,
        priority=body.priority, category=body.category, owner_id=body.owner_id,
        links_json=json_dump(body.links),
        completed_at=utc_now() if body.status == TaskStatus.complete else None,
    )
    task.dependencies = [TaskDependency(depends_on_task_id=dep_id) for dep_id in body.depends_on]
    session.add(task)
    if commit:
        session.commit()
    else:
        session.flush()
    return task


def create_tasks(session: Session, plan: LaunchPlan, bodies: list[TaskCreate]) -> list[Task]:
    """Create several tasks atomically; later tasks may depend on existing ones only."""
    created = [create_task(session, plan, body, commit=False) for body in bodies]
    session.commit()
    return created


def _set_status(task: Task, status: TaskStatus) -> None:
    if status == task.status:
        return
    if status == TaskStatus.complete:
        task.completed_at = utc_now()
    elif task.status == TaskStatus.complete:
        task.completed_at = None
    task.status = status


def _replace_dependencies(session: Session, task: Task, dep_ids: list[int]) -> None:
    if task.id in dep_ids:
        raise ValidationError(
            "A task cannot depend on itself",
            [{"field": "dependsOn", "message": "A task cannot depend on itself"}],
        )
    _check_plan_tasks(session, task.plan_id, dep_ids)
    wanted = set(dep_ids)
    for dep in list(task.dependencies):
        if dep.depends_on_task_id not in wanted:
            task.dependencies.remove(dep)
    existing = {d.depends_on_task_id for d in task.dependencies}
    for dep_id in dep_ids:
        if dep_id not in existing:
            task.dependencies.append(TaskDependency(depends_on_task_id=dep_id))


def update_task(session: Session, task: Task, body: TaskUpdate) -> Task:
    updates = body.model_dump(exclude_unset=True)
    if "owner_id" in updates:
        _check_owner(session, updates["owner_id"])
    if updates.get("depends_on") is not None:
        _replace_dependencies(session, task, updates["depends_on"])
    status = updates.pop("status", None)
    apply_updates(task, updates, TASK_FIELDS, TASK_NULLABLE)
    if status is not None:
        _set_status(task, status)
    if updates.get("links") is not None:
        task.links_json = json_dump(updates["links"])
    session.commit()
    return task


def complete_task(session: Session, task: Task, completion_notes: str | None = None) -> Task:
    """Quick action: mark complete and stamp ``completed_at``."""
    task.status = TaskStatus.complete
    task.completed_at = utc_now()
    if completion_notes is not None:
        task.completion_notes = completion_notes
    session.commit()
    return task


def delete_task(session: Session, task: Task) -> None:
    session.delete(task)
    session.commit()


# ---------------------------------------------------------------------------
# Calendar and day views
# ---------------------------------------------------------------------------


def _unresolved_alert_dates(session: Session, plan_id: int) -> set[date]:
    return set(session.execute(
        select(Alert.date_triggered)
        .where(Alert.plan_id == plan_id, Alert.resolved_at.is_(None))
        .distinct()
    ).scalars())


def calendar(session: Session, plan: LaunchPlan) -> dict:
    """One summary row per due date that has tasks; empty days are omitted."""
    rows = session.execute(
        select(
            Task.due_date,
            count_all().label("total"),
            count_where(Task.status == TaskStatus.complete).label("completed"),
            bool_or(Task.status == TaskStatus.blocked).label("blocked"),
            bool_or(Task.priority == TaskPriority.high).label("high"),
        )
        .where(Task.plan_id == plan.id)
        .group_by(Task.due_date)
        .order_by(Task.due_date)
    ).all()
    alert_dates = _unresolved_alert_dates(session, plan.id)
    days = [
        {
            "date": row.due_date,
            "total_tasks": int(row.total),
            "completed_tasks": int(row.completed),
            "completion_percent": metrics.completion_percent(int(row.completed), int(row.total)),
            "has_blocked_tasks": bool(row.blocked),
            "has_critical_priority_tasks": bool(row.high),
            "has_alerts": row.due_date in alert_dates,
        }
        for row in rows
    ]
    return {"plan_id": plan.id, "start_date": plan.start_date, "end_date": plan.end_date, "days": days}


def day_view(session: Session, plan: LaunchPlan, day: date) -> dict:
    tasks = list(session.execute(
        select(Task)
        .where(Task.plan_id == plan.id, Task.due_date == day)
        .options(selectinload(Task.dependencies))
        .order_by(priority_rank().desc(), Task.created_at, Task.id)
    ).scalars())

    dependencies = sorted((d for t in tasks for d in t.dependencies), key=lambda d: d.id)
    blocking_ids = {d.depends_on_task_id for d in dependencies}
    blocking = []
    if blocking_ids:
        blocking = list(session.execute(
            select(Task)
            .where(Task.plan_id == plan.id, Task.id.in_(blocking_ids))
            .options(selectinload(Task.dependencies))
            .order_by(Task.due_date, Task.id)
        ).scalars())

    summaries = [task_summary(t) for t in tasks]
    completed = sum(1 for t in tasks if t.status == TaskStatus.complete)
    return {
        "date": day,
        "in_window": metrics.in_window(day, plan.start_date, plan.end_date),
        "tasks": summaries,
        "grouped": {
            "must_do": [s for s in summaries if s["priority"] == TaskPriority.high],
            "should_do": [s for s in summaries if s["priority"] == TaskPriority.medium],
            "optional": [s for s in summaries if s["priority"] == TaskPriority.low],
        },
        "dependencies": [dependency_summary(d) for d in dependencies],
        "blocking_tasks": [task_summary(t) for t in blocking],
        "summary": {
            "total": len(tasks),
            "completed": completed,
            "blocked": sum(1 for t in tasks if t.status == TaskStatus.blocked),
            "completion_percent": metrics.completion_percent(completed, len(tasks)),
        },
    }


# ---------------------------------------------------------------------------
# KPIs, entries and alerts
# ---------------------------------------------------------------------------


def list_kpis(session: Session, plan_id: int) -> list[Kpi]:
    return list(session.execute(
        select(Kpi).where(Kpi.plan_id == plan_id).order_by(Kpi.id)
    ).scalars())


def kpi_with_status(kpi: Kpi, recent: list[KpiEntry], warning_threshold: float) -> dict:
    """KPI dict enriched with latest value, status and trend; ``recent`` is oldest first."""
    latest = recent[-1] if recent else None
    result = kpi_summary(kpi)
    result.update({
        "latest_value": latest.value if latest else None,
        "latest_date": latest.date if latest else None,
        "status": metrics.kpi_status_for(
            latest.value if latest else None, kpi.target_value, kpi.target_type, warning_threshold,
        ),
        "trend": metrics.calculate_trend([e.value for e in recent]),
        "entries": [entry_summary(e) for e in recent],
    })
    return result


def kpi_dashboard(session: Session, plan_id: int, warning_threshold: float) -> list[dict]:
    kpis = session.execute(
        select(Kpi).where(Kpi.plan_id == plan_id)
        .options(selectinload(Kpi.entries)).order_by(Kpi.id)
    ).scalars()
    # Kpi.entries is ordered by date ascending
    return [kpi_with_status(k, list(k.entries)[-KPI_TREND_ENTRIES:], warning_threshold) for k in kpis]


def create_kpi(session: Session, plan: LaunchPlan, body: KpiCreate) -> Kpi:
    kpi = Kpi(plan_id=plan.id, **body.model_dump())
    session.add(kpi)
    session.commit()
    return kpi


def update_kpi(session: Session, kpi: Kpi, body: KpiUpdate) -> Kpi:
    apply_updates(kpi, body.model_dump(exclude_unset=True), KPI_FIELDS, KPI_NULLABLE)
    session.commit()
    return kpi


def delete_kpi(session: Session, kpi: Kpi) -> None:
    session.delete(kpi)
    session.commit()


def list_entries(session: Session, kpi: Kpi) -> list[KpiEntry]:
    return list(session.execute(
        select(KpiEntry).where(KpiEntry.kpi_id == kpi.id).order_by(KpiEntry.date)
    ).scalars())


def upsert_kpi_entry(
    session: Session, kpi: Kpi, body: KpiEntryIn, alert_threshold: float,
) -> tuple[KpiEntry, Alert | None]:
    """Write the entry for ``(kpi, date)`` and raise an alert if it is out of range.

    Read-then-write: a second writer for the same key can still hit the unique constraint.
    Every out-of-range write adds a new alert, even for a date that already has one.
    """
    entry = session.execute(
        select(KpiEntry).where(KpiEntry.kpi_id == kpi.id, KpiEntry.date == body.date)
    ).scalars().first()
    if entry is None:
        entry = KpiEntry(plan_id=kpi.plan_id, kpi_id=kpi.id, date=body.date, value=body.value, notes=body.notes)
        session.add(entry)
    else:
        entry.value = body.value
        if "notes" in body.model_fields_set:
            entry.notes = body.notes

    alert = None
    if metrics.should_alert(body.value, kpi.target_value, kpi.target_type, alert_threshold):
        alert = Alert(
            plan_id=kpi.plan_id, kpi_id=kpi.id, date_triggered=body.date,
            severity=AlertSeverity.warning,
            message=metrics.alert_message(kpi.name, body.value, kpi.target_type, kpi.target_value),
        )
        session.add(alert)
    session.commit()
    if alert is not None:
        log.info("Alert %d raised for KPI %d on %s: %s", alert.id, kpi.id, body.date, alert.message)
    return entry, alert


def list_alerts(session: Session, plan_id: int, resolved: bool | None = None) -> list[Alert]:
    query = select(Alert).where(Alert.plan_id == plan_id).options(selectinload(Alert.kpi))
    if resolved is False:
        query = query.where(Alert.resolved_at.is_(None))
    elif resolved is True:
        query = query.where(Alert.resolved_at.is_not(None))
    return list(session.execute(query.order_by(Alert.created_at.desc(), Alert.id.desc())).scalars())


def resolve_alert(session: Session, alert: Alert, resolution_notes: str) -> Alert:
    alert.resolved_at = utc_now()
    alert.resolution_notes = resolution_notes
    session.commit()
    return alert


# ---------------------------------------------------------------------------
# Contacts and outreach
# ---------------------------------------------------------------------------


def list_contacts(session: Session, plan_id: int, *, segment=None, status=None) -> list[Contact]:
    query = select(Contact).where(Contact.plan_id == plan_id)
    if segment:
        query = query.where(Contact.segment == segment)
    if status:
        query = query.where(Contact.status == status)
    return list(session.execute(query.order_by(Contact.email, Contact.id)).scalars())


def create_contact(session: Session, plan: LaunchPlan, body: ContactCreate) -> Contact:
    contact = Contact(
        plan_id=plan.id, email=body.email, name=body.name, segment=body.segment,
        status=body.status, tags_json=json_dump(body.tags), notes=body.notes,
    )
    session.add(contact)
    session.commit()
    return contact


def update_contact(session: Session, contact: Contact, body: ContactUpdate) -> Contact:
    updates = body.model_dump(exclude_unset=True)
    apply_updates(contact, updates, CONTACT_FIELDS, CONTACT_NULLABLE)
    if updates.get("tags") is not None:
        contact.tags_json = json_dump(updates["tags"])
    session.commit()
    return contact


def delete_contact(session: Session, contact: Contact) -> None:
    session.delete(contact)
    session.commit()


def import_contacts(session: Session, plan: LaunchPlan, rows: list[ContactImportRow]) -> list[Contact]:
    """Insert every row as a fresh ``not_contacted`` contact."""
    contacts = [
        Contact(
            plan_id=plan.id, email=row.email, name=row.name or None, segment=row.segment,
            status=ContactStatus.not_contacted, tags_json=json_dump(row.tags),
        )
        for row in rows
    ]
    session.add_all(contacts)
    session.commit()
    log.info("Imported %d contacts into plan %d", len(contacts), plan.id)
    return contacts


def create_outreach_event(session: Session, plan: LaunchPlan, body: OutreachEventCreate) -> OutreachEvent:
    """Log an outreach event; a ``not_contacted`` contact becomes ``contacted`` in the same commit."""
    contact = get_plan_child(session, Contact, plan.id, body.contact_id, "Contact")
    event = OutreachEvent(plan_id=plan.id, **body.model_dump())
    session.add(event)
    if contact.status == ContactStatus.not_contacted:
        contact.status = ContactStatus.contacted
    session.commit()
    return event


def list_outreach_events(session: Session, plan_id: int) -> list[OutreachEvent]:
    return list(session.execute(
        select(OutreachEvent).where(OutreachEvent.plan_id == plan_id)
        .options(selectinload(OutreachEvent.contact))
        .order_by(OutreachEvent.date.desc(), OutreachEvent.id.desc())
    ).scalars())


# ---------------------------------------------------------------------------
# Assets and notes
# ---------------------------------------------------------------------------


def list_assets(session: Session, plan_id: int) -> list[Asset]:
    return list(session.execute(
        select(Asset).where(Asset.plan_id == plan_id).order_by(Asset.created_at.desc(), Asset.id.desc())
    ).scalars())


def create_asset(session: Session, plan: LaunchPlan, body: AssetCreate) -> Asset:
    if body.linked_task_id is not None:
        get_plan_child(session, Task, plan.id, body.linked_task_id, "Linked task")
    asset = Asset(plan_id=plan.id, **body.model_dump())
    session.add(asset)
    session.commit()
    return asset


def update_asset(session: Session, asset: Asset, body: AssetUpdate) -> Asset:
    updates = body.model_dump(exclude_unset=True)
    if updates.get("linked_task_id") is not None:
        get_plan_child(session, Task, asset.plan_id, updates["linked_task_id"], "Linked task")
    apply_updates(asset, updates, ASSET_FIELDS, ASSET_NULLABLE)
    session.commit()
    return asset


def delete_asset(session: Session, asset: Asset) -> None:
    session.delete(asset)
    session.commit()


def list_notes(session: Session, plan_id: int, *, linked_type=None, linked_id: str | None = None) -> list[Note]:
    query = select(Note).where(Note.plan_id == plan_id)
    if linked_type:
        query = query.where(Note.linked_type == linked_type)
    if linked_id:
        query = query.where(Note.linked_id == linked_id)
    return list(session.execute(query.order_by(Note.created_at.desc(), Note.id.desc())).scalars())


def create_note(session: Session, plan: LaunchPlan, body: NoteCreate) -> Note:
    note = Note(plan_id=plan.id, linked_type=body.linked_type, linked_id=str(body.linked_id), content=body.content)
    session.add(note)
    session.commit()
    return note


def update_note(session: Session, note: Note, content: str) -> Note:
    note.content = content
    session.commit()
    return note


def delete_note(session: Session, note: Note) -> None:
    session.delete(note)
    session.commit()


# ---------------------------------------------------------------------------
# Report and export
# ---------------------------------------------------------------------------


def task_breakdown(session: Session, plan_id: int) -> dict:
    row = session.execute(
        select(
            count_all().label("total"),
            count_where(Task.status == TaskStatus.complete).label("completed"),
            count_where(Task.status == TaskStatus.skipped).label("skipped"),
            count_where(Task.status == TaskStatus.blocked).label("blocked"),
        ).where(Task.plan_id == plan_id)
    ).one()
    total, completed = int(row.total), int(row.completed)
    return {
        "total": total, "completed": completed,
        "skipped": int(row.skipped), "blocked": int(row.blocked),
        "completion_percent": metrics.completion_percent(completed, total),
    }


def outreach_funnel(session: Session, plan_id: int) -> list[dict]:
    rows = session.execute(
        select(
            Contact.segment,
            count_all().label("total"),
            count_where(Contact.status != ContactStatus.not_contacted).label("contacted"),
            count_where(Contact.status.in_(REPLIED_STATUSES)).label("replied"),
            count_where(Contact.status.in_(CONVERTED_STATUSES)).label("converted"),
        )
        .where(Contact.plan_id == plan_id)
        .group_by(Contact.segment)
        .order_by(Contact.segment)
    ).all()
    return [
        {"segment": r.segment, "total": int(r.total), "contacted": int(r.contacted),
         "replied": int(r.replied), "converted": int(r.converted)}
        for r in rows
    ]


def build_report(session: Session, plan: LaunchPlan) -> dict:
    latest: dict[int, KpiEntry] = {}
    for entry in session.execute(
        select(KpiEntry).where(KpiEntry.plan_id == plan.id).order_by(KpiEntry.date)
    ).scalars():
        latest[entry.kpi_id] = entry

    kpis = []
    for kpi in list_kpis(session, plan.id):
        final = latest.get(kpi.id)
        final_value = final.value if final else None
        kpis.append({
            "id": kpi.id, "name": kpi.name, "category": kpi.category, "unit": kpi.unit,
            "target_type": kpi.target_type, "target_value": kpi.target_value,
            "final_value": final_value, "final_date": final.date if final else None,
            "result": metrics.target_met(final_value, kpi.target_value, kpi.target_type),
        })

    return {
        "plan": plan_summary(plan),
        "task_summary": task_breakdown(session, plan.id),
        "kpis": kpis,
        "outreach_funnel": outreach_funnel(session, plan.id),
        "learnings": [note_summary(n) for n in list_notes(session, plan.id)],
    }


def kpi_csv(session: Session, plan_id: int) -> str:
    """All KPI entries of a plan as CSV, oldest first.

    Fields are comma-joined without quoting; KPI names and notes are assumed comma-free.
    """
    rows = session.execute(
        select(KpiEntry, Kpi)
        .join(Kpi, KpiEntry.kpi_id == Kpi.id)
        .where(KpiEntry.plan_id == plan_id)
        .order_by(KpiEntry.date, Kpi.id)
    ).all()
    lines = [",".join(CSV_HEADER)]
    for entry, kpi in rows:
        lines.append(",".join((
            entry.date.isoformat(), kpi.name, kpi.category.value,
            metrics.format_number(entry.value), kpi.unit.value, entry.notes or "",
        )))
    return "\n".join(lines)
