from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date

from fastapi import APIRouter, Depends, FastAPI, File, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from sqlalchemy.orm import Session

from launchtracker import services
from launchtracker.auth import app_settings, get_current_user
from launchtracker.auth import router as auth_router
from launchtracker.config import Settings, get_settings
from launchtracker.db import Database, db_session
from launchtracker.enums import (
    ContactSegment,
    ContactStatus,
    NoteLinkedType,
    TaskCategory,
    TaskPriority,
    TaskStatus,
)
from launchtracker.errors import register_error_handlers
from launchtracker.importer import parse_contacts_file
from launchtracker.models import Alert, Asset, Contact, Kpi, LaunchPlan, Note, Task, User
from launchtracker.schemas import (
    Ack,
    AlertOut,
    AlertResolveIn,
    AssetCreate,
    AssetOut,
    AssetUpdate,
    CalendarOut,
    ContactCreate,
    ContactFileImportOut,
    ContactImportIn,
    ContactOut,
    ContactUpdate,
    DayOut,
    Envelope,
    HealthOut,
    KpiCreate,
    KpiEntryIn,
    KpiEntryOut,
    KpiEntryResultOut,
    KpiOut,
    KpiUpdate,
    KpiWithStatusOut,
    NoteCreate,
    NoteOut,
    NoteUpdate,
    OutreachEventCreate,
    OutreachEventOut,
    PlanCreate,
    PlanOut,
    PlanUpdate,
    ReportOut,
    TaskBulkCreate,
    TaskComplete,
    TaskCreate,
    TaskOut,
    TaskUpdate,
    TemplateOut,
)
from launchtracker.templates import LAUNCH_TEMPLATES, template_summary
from launchtracker.utils import utc_now

log = logging.getLogger(__name__)

api = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def owned_plan(
    plan_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(db_session),
) -> LaunchPlan:
    return services.get_owned_plan(session, plan_id, user)


def _ok(data, message: str | None = None) -> dict:
    return {"data": data, "success": True, "message": message}


# ---------------------------------------------------------------------------
# Routes: Health
# ---------------------------------------------------------------------------


@api.get("/health", response_model=HealthOut, tags=["Health"], summary="Liveness check")
async def health():
    return {"status": "ok", "timestamp": utc_now()}


# ---------------------------------------------------------------------------
# Routes: Plans (templates before parameterized to avoid route shadowing)
# ---------------------------------------------------------------------------


@api.get("/plans", response_model=Envelope[list[PlanOut]],
         tags=["Plans"], summary="List the current user's plans, newest first")
async def list_plans(user: User = Depends(get_current_user), session: Session = Depends(db_session)):
    return _ok([services.plan_summary(p) for p in services.list_plans(session, user)])


@api.get("/plans/templates", response_model=Envelope[list[TemplateOut]],
         tags=["Plans"], summary="List available launch templates")
async def list_templates(user: User = Depends(get_current_user)):
    return _ok([template_summary(t) for t in LAUNCH_TEMPLATES.values()])


@api.post("/plans", response_model=Envelope[PlanOut], status_code=201,
          tags=["Plans"], summary="Create a plan, optionally from a template")
async def create_plan(
    body: PlanCreate, user: User = Depends(get_current_user), session: Session = Depends(db_session),
):
    return _ok(services.plan_summary(services.create_plan(session, user, body)))


@api.get("/plans/{plan_id}", response_model=Envelope[PlanOut], tags=["Plans"], summary="Get a plan")
async def get_plan(plan: LaunchPlan = Depends(owned_plan)):
    return _ok(services.plan_summary(plan))


@api.patch("/plans/{plan_id}", response_model=Envelope[PlanOut],
           tags=["Plans"], summary="Update plan fields (partial update)")
async def update_plan(body: PlanUpdate, plan: LaunchPlan = Depends(owned_plan),
                      session: Session = Depends(db_session)):
    return _ok(services.plan_summary(services.update_plan(session, plan, body)))


@api.delete("/plans/{plan_id}", response_model=Ack,
            tags=["Plans"], summary="Delete a plan and everything it owns")
async def delete_plan(plan: LaunchPlan = Depends(owned_plan), session: Session = Depends(db_session)):
    services.delete_plan(session, plan)
    return {"success": True, "message": "Plan deleted"}


# ---------------------------------------------------------------------------
# Routes: Calendar & Day
# ---------------------------------------------------------------------------


@api.get("/plans/{plan_id}/calendar", response_model=Envelope[CalendarOut],
         tags=["Calendar"], summary="Per-day task completion summary (days without tasks omitted)")
async def get_calendar(plan: LaunchPlan = Depends(owned_plan), session: Session = Depends(db_session)):
    return _ok(services.calendar(session, plan))


@api.get("/plans/{plan_id}/day/{day}", response_model=Envelope[DayOut],
         tags=["Calendar"], summary="Tasks due on a date, grouped by priority, with dependencies")
async def get_day(day: date, plan: LaunchPlan = Depends(owned_plan), session: Session = Depends(db_session)):
    return _ok(services.day_view(session, plan, day))


# ---------------------------------------------------------------------------
# Routes: Tasks (bulk before parameterized to avoid route shadowing)
# ---------------------------------------------------------------------------


@api.get("/plans/{plan_id}/tasks", response_model=Envelope[list[TaskOut]],
         tags=["Tasks"], summary="List tasks with optional filters")
async def list_tasks(
    status: TaskStatus | None = Query(None),
    priority: TaskPriority | None = Query(None),
    category: TaskCategory | None = Query(None),
    due_date: date | None = Query(None, alias="date"),
    plan: LaunchPlan = Depends(owned_plan),
    session: Session = Depends(db_session),
):
    tasks = services.list_tasks(
        session, plan.id, status=status, priority=priority, category=category, due_date=due_date,
    )
    return _ok([services.task_summary(t) for t in tasks])


@api.post("/plans/{plan_id}/tasks", response_model=Envelope[TaskOut], status_code=201,
          tags=["Tasks"], summary="Create a task")
async def create_task(body: TaskCreate, plan: LaunchPlan = Depends(owned_plan),
                      session: Session = Depends(db_session)):
    return _ok(services.task_summary(services.create_task(session, plan, body)))


@api.post("/plans/{plan_id}/tasks/bulk", response_model=Envelope[list[TaskOut]], status_code=201,
          tags=["Tasks"], summary="Create several tasks in one transaction")
async def create_tasks_bulk(body: TaskBulkCreate, plan: LaunchPlan = Depends(owned_plan),
                            session: Session = Depends(db_session)):
    tasks = services.create_tasks(session, plan, body.tasks)
    return _ok([services.task_summary(t) for t in tasks], f"Created {len(tasks)} tasks")


@api.get("/plans/{plan_id}/tasks/{task_id}", response_model=Envelope[TaskOut],
         tags=["Tasks"], summary="Get a task")
async def get_task(task_id: int, plan: LaunchPlan = Depends(owned_plan),
                   session: Session = Depends(db_session)):
    return _ok(services.task_summary(services.get_plan_child(session, Task, plan.id, task_id, "Task")))


@api.patch("/plans/{plan_id}/tasks/{task_id}", response_model=Envelope[TaskOut],
           tags=["Tasks"], summary="Update task fields (partial update)")
async def update_task(task_id: int, body: TaskUpdate, plan: LaunchPlan = Depends(owned_plan),
                      session: Session = Depends(db_session)):
    task = services.get_plan_child(session, Task, plan.id, task_id, "Task")
    return _ok(services.task_summary(services.update_task(session, task, body)))


@api.post("/plans/{plan_id}/tasks/{task_id}/complete", response_model=Envelope[TaskOut],
          tags=["Tasks"], summary="Mark a task complete")
async def complete_task(task_id: int, body: TaskComplete | None = None,
                        plan: LaunchPlan = Depends(owned_plan), session: Session = Depends(db_session)):
    task = services.get_plan_child(session, Task, plan.id, task_id, "Task")
    notes = body.completion_notes if body else None
    return _ok(services.task_summary(services.complete_task(session, task, notes)))


@api.delete("/plans/{plan_id}/tasks/{task_id}", response_model=Ack, tags=["Tasks"], summary="Delete a task")
async def delete_task(task_id: int, plan: LaunchPlan = Depends(owned_plan),
                      session: Session = Depends(db_session)):
    services.delete_task(session, services.get_plan_child(session, Task, plan.id, task_id, "Task"))
    return {"success": True, "message": "Task deleted"}


# ---------------------------------------------------------------------------
# Routes: KPIs & Entries
# ---------------------------------------------------------------------------


@api.get("/plans/{plan_id}/kpis", response_model=Envelope[list[KpiWithStatusOut]],
         tags=["KPIs"], summary="List KPIs with latest value, status and trend")
async def list_kpis(plan: LaunchPlan = Depends(owned_plan), session: Session = Depends(db_session),
                    settings: Settings = Depends(app_settings)):
    return _ok(services.kpi_dashboard(session, plan.id, settings.kpi_warning_threshold))


@api.post("/plans/{plan_id}/kpis", response_model=Envelope[KpiOut], status_code=201,
          tags=["KPIs"], summary="Create a KPI")
async def create_kpi(body: KpiCreate, plan: LaunchPlan = Depends(owned_plan),
                     session: Session = Depends(db_session)):
    return _ok(services.kpi_summary(services.create_kpi(session, plan, body)))


@api.patch("/plans/{plan_id}/kpis/{kpi_id}", response_model=Envelope[KpiOut],
           tags=["KPIs"], summary="Update KPI fields (partial update)")
async def update_kpi(kpi_id: int, body: KpiUpdate, plan: LaunchPlan = Depends(owned_plan),
                     session: Session = Depends(db_session)):
    kpi = services.get_plan_child(session, Kpi, plan.id, kpi_id, "KPI")
    return _ok(services.kpi_summary(services.update_kpi(session, kpi, body)))


@api.delete("/plans/{plan_id}/kpis/{kpi_id}", response_model=Ack,
            tags=["KPIs"], summary="Delete a KPI and its entries")
async def delete_kpi(kpi_id: int, plan: LaunchPlan = Depends(owned_plan),
                     session: Session = Depends(db_session)):
    services.delete_kpi(session, services.get_plan_child(session, Kpi, plan.id, kpi_id, "KPI"))
    return {"success": True, "message": "KPI deleted"}


@api.get("/plans/{plan_id}/kpis/{kpi_id}/entries", response_model=Envelope[list[KpiEntryOut]],
         tags=["KPIs"], summary="List a KPI's entries, oldest first")
async def list_kpi_entries(kpi_id: int, plan: LaunchPlan = Depends(owned_plan),
                           session: Session = Depends(db_session)):
    kpi = services.get_plan_child(session, Kpi, plan.id, kpi_id, "KPI")
    return _ok([services.entry_summary(e) for e in services.list_entries(session, kpi)])


@api.post("/plans/{plan_id}/kpis/{kpi_id}/entries", response_model=Envelope[KpiEntryResultOut],
          status_code=201, tags=["KPIs"],
          summary="Record the KPI value for a date (upsert); raises an alert when out of range")
async def upsert_kpi_entry(kpi_id: int, body: KpiEntryIn, plan: LaunchPlan = Depends(owned_plan),
                           session: Session = Depends(db_session), settings: Settings = Depends(app_settings)):
    kpi = services.get_plan_child(session, Kpi, plan.id, kpi_id, "KPI")
    entry, alert = services.upsert_kpi_entry(session, kpi, body, settings.alert_threshold)
    data = services.entry_summary(entry)
    data["alert_created"] = alert is not None
    return _ok(data, alert.message if alert else None)


# ---------------------------------------------------------------------------
# Routes: Alerts
# ---------------------------------------------------------------------------


@api.get("/plans/{plan_id}/alerts", response_model=Envelope[list[AlertOut]],
         tags=["Alerts"], summary="List alerts, newest first; resolved=false for open alerts only")
async def list_alerts(resolved: bool | None = Query(None), plan: LaunchPlan = Depends(owned_plan),
                      session: Session = Depends(db_session)):
    return _ok([services.alert_summary(a) for a in services.list_alerts(session, plan.id, resolved)])


@api.post("/plans/{plan_id}/alerts/{alert_id}/resolve", response_model=Envelope[AlertOut],
          tags=["Alerts"], summary="Resolve an alert with notes")
async def resolve_alert(alert_id: int, body: AlertResolveIn, plan: LaunchPlan = Depends(owned_plan),
                        session: Session = Depends(db_session)):
    alert = services.get_plan_child(session, Alert, plan.id, alert_id, "Alert")
    return _ok(services.alert_summary(services.resolve_alert(session, alert, body.resolution_notes)))


# ---------------------------------------------------------------------------
# Routes: Contacts (imports before parameterized to avoid route shadowing)
# ---------------------------------------------------------------------------


@api.get("/plans/{plan_id}/contacts", response_model=Envelope[list[ContactOut]],
         tags=["Contacts"], summary="List contacts with optional segment/status filters")
async def list_contacts(
    segment: ContactSegment | None = Query(None),
    status: ContactStatus | None = Query(None),
    plan: LaunchPlan = Depends(owned_plan),
    session: Session = Depends(db_session),
):
    contacts = services.list_contacts(session, plan.id, segment=segment, status=status)
    return _ok([services.contact_summary(c) for c in contacts])


@api.post("/plans/{plan_id}/contacts", response_model=Envelope[ContactOut], status_code=201,
          tags=["Contacts"], summary="Create a contact")
async def create_contact(body: ContactCreate, plan: LaunchPlan = Depends(owned_plan),
                         session: Session = Depends(db_session)):
    return _ok(services.contact_summary(services.create_contact(session, plan, body)))


@api.post("/plans/{plan_id}/contacts/import", response_model=Envelope[list[ContactOut]], status_code=201,
          tags=["Contacts"], summary="Bulk import contacts from JSON")
async def import_contacts(body: ContactImportIn, plan: LaunchPlan = Depends(owned_plan),
                          session: Session = Depends(db_session)):
    contacts = services.import_contacts(session, plan, body.contacts)
    return _ok([services.contact_summary(c) for c in contacts], f"Imported {len(contacts)} contacts")


@api.post("/plans/{plan_id}/contacts/import/file", response_model=Envelope[ContactFileImportOut],
          status_code=201, tags=["Contacts"], summary="Import contacts from a CSV or XLSX file")
async def import_contacts_file(file: UploadFile = File(...), plan: LaunchPlan = Depends(owned_plan),
                               session: Session = Depends(db_session)):
    content = await file.read()
    rows, errors = parse_contacts_file(file.filename or "", content)
    contacts = services.import_contacts(session, plan, rows) if rows else []
    data = {
        "imported": len(contacts),
        "contacts": [services.contact_summary(c) for c in contacts],
        "errors": errors,
    }
    return _ok(data, f"Imported {len(contacts)} contacts, {len(errors)} rows rejected")


@api.patch("/plans/{plan_id}/contacts/{contact_id}", response_model=Envelope[ContactOut],
           tags=["Contacts"], summary="Update contact fields (partial update)")
async def update_contact(contact_id: int, body: ContactUpdate, plan: LaunchPlan = Depends(owned_plan),
                         session: Session = Depends(db_session)):
    contact = services.get_plan_child(session, Contact, plan.id, contact_id, "Contact")
    return _ok(services.contact_summary(services.update_contact(session, contact, body)))


@api.delete("/plans/{plan_id}/contacts/{contact_id}", response_model=Ack,
            tags=["Contacts"], summary="Delete a contact and its outreach events")
async def delete_contact(contact_id: int, plan: LaunchPlan = Depends(owned_plan),
                         session: Session = Depends(db_session)):
    services.delete_contact(session, services.get_plan_child(session, Contact, plan.id, contact_id, "Contact"))
    return {"success": True, "message": "Contact deleted"}


# ---------------------------------------------------------------------------
# Routes: Outreach events
# ---------------------------------------------------------------------------


@api.get("/plans/{plan_id}/outreach-events", response_model=Envelope[list[OutreachEventOut]],
         tags=["Outreach"], summary="List outreach events, newest first")
async def list_outreach_events(plan: LaunchPlan = Depends(owned_plan), session: Session = Depends(db_session)):
    return _ok([services.outreach_summary(e) for e in services.list_outreach_events(session, plan.id)])


@api.post("/plans/{plan_id}/outreach-events", response_model=Envelope[OutreachEventOut], status_code=201,
          tags=["Outreach"], summary="Log an outreach event; marks a new contact as contacted")
async def create_outreach_event(body: OutreachEventCreate, plan: LaunchPlan = Depends(owned_plan),
                                session: Session = Depends(db_session)):
    return _ok(services.outreach_summary(services.create_outreach_event(session, plan, body)))


# ---------------------------------------------------------------------------
# Routes: Assets
# ---------------------------------------------------------------------------


@api.get("/plans/{plan_id}/assets", response_model=Envelope[list[AssetOut]],
         tags=["Assets"], summary="List assets, newest first")
async def list_assets(plan: LaunchPlan = Depends(owned_plan), session: Session = Depends(db_session)):
    return _ok([services.asset_summary(a) for a in services.list_assets(session, plan.id)])


@api.post("/plans/{plan_id}/assets", response_model=Envelope[AssetOut], status_code=201,
          tags=["Assets"], summary="Create an asset")
async def create_asset(body: AssetCreate, plan: LaunchPlan = Depends(owned_plan),
                       session: Session = Depends(db_session)):
    return _ok(services.asset_summary(services.create_asset(session, plan, body)))


@api.patch("/plans/{plan_id}/assets/{asset_id}", response_model=Envelope[AssetOut],
           tags=["Assets"], summary="Update asset fields (partial update)")
async def update_asset(asset_id: int, body: AssetUpdate, plan: LaunchPlan = Depends(owned_plan),
                       session: Session = Depends(db_session)):
    asset = services.get_plan_child(session, Asset, plan.id, asset_id, "Asset")
    return _ok(services.asset_summary(services.update_asset(session, asset, body)))


@api.delete("/plans/{plan_id}/assets/{asset_id}", response_model=Ack, tags=["Assets"], summary="Delete an asset")
async def delete_asset(asset_id: int, plan: LaunchPlan = Depends(owned_plan),
                       session: Session = Depends(db_session)):
    services.delete_asset(session, services.get_plan_child(session, Asset, plan.id, asset_id, "Asset"))
    return {"success": True, "message": "Asset deleted"}


# ---------------------------------------------------------------------------
# Routes: Notes
# ---------------------------------------------------------------------------


@api.get("/plans/{plan_id}/notes", response_model=Envelope[list[NoteOut]],
         tags=["Notes"], summary="List notes, newest first, optionally for one linked item")
async def list_notes(
    linked_type: NoteLinkedType | None = Query(None, alias="linkedType"),
    linked_id: str | None = Query(None, alias="linkedId"),
    plan: LaunchPlan = Depends(owned_plan),
    session: Session = Depends(db_session),
):
    notes = services.list_notes(session, plan.id, linked_type=linked_type, linked_id=linked_id)
    return _ok([services.note_summary(n) for n in notes])


@api.post("/plans/{plan_id}/notes", response_model=Envelope[NoteOut], status_code=201,
          tags=["Notes"], summary="Create a note")
async def create_note(body: NoteCreate, plan: LaunchPlan = Depends(owned_plan),
                      session: Session = Depends(db_session)):
    return _ok(services.note_summary(services.create_note(session, plan, body)))


@api.patch("/plans/{plan_id}/notes/{note_id}", response_model=Envelope[NoteOut],
           tags=["Notes"], summary="Edit a note's content")
async def update_note(note_id: int, body: NoteUpdate, plan: LaunchPlan = Depends(owned_plan),
                      session: Session = Depends(db_session)):
    note = services.get_plan_child(session, Note, plan.id, note_id, "Note")
    return _ok(services.note_summary(services.update_note(session, note, body.content)))


@api.delete("/plans/{plan_id}/notes/{note_id}", response_model=Ack, tags=["Notes"], summary="Delete a note")
async def delete_note(note_id: int, plan: LaunchPlan = Depends(owned_plan),
                      session: Session = Depends(db_session)):
    services.delete_note(session, services.get_plan_child(session, Note, plan.id, note_id, "Note"))
    return {"success": True, "message": "Note deleted"}


# ---------------------------------------------------------------------------
# Routes: Report & Export
# ---------------------------------------------------------------------------


@api.get("/plans/{plan_id}/report", response_model=Envelope[ReportOut],
         tags=["Report"], summary="End-of-launch report: tasks, KPI results, funnel, learnings")
async def get_report(plan: LaunchPlan = Depends(owned_plan), session: Session = Depends(db_session)):
    return _ok(services.build_report(session, plan))


@api.get("/plans/{plan_id}/export/csv", tags=["Report"], summary="Download all KPI entries as CSV",
         response_class=Response)
async def export_csv(plan: LaunchPlan = Depends(owned_plan), session: Session = Depends(db_session)):
    return Response(
        content=services.kpi_csv(session, plan.id),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=launch-kpis-{plan.id}.csv"},
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.db.create_all()
    log.info("Launch tracker API started (%s)", app.state.settings.env)
    yield
    app.state.db.dispose()
    log.info("Launch tracker API stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        title="Launch Tracker",
        version="0.1.0",
        description=(
            "Launch-campaign tracker API: plans, tasks, KPIs with alerts, "
            "contacts and outreach, and an end-of-launch report. "
            "All endpoints except /api/health and /api/auth/register|login require a session."
        ),
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Auth", "description": "Registration, login and session management."},
            {"name": "Plans", "description": "Launch plans and templates."},
            {"name": "Calendar", "description": "Calendar and daily checklist views."},
            {"name": "Tasks", "description": "Plan tasks and dependencies."},
            {"name": "KPIs", "description": "KPI definitions and daily entries."},
            {"name": "Alerts", "description": "Out-of-range KPI alerts."},
            {"name": "Contacts", "description": "Contact lists and imports."},
            {"name": "Outreach", "description": "Outreach event log."},
            {"name": "Assets", "description": "Launch assets."},
            {"name": "Notes", "description": "Notes and learnings."},
            {"name": "Report", "description": "Final report and CSV export."},
        ],
    )
    app.state.settings = settings
    app.state.db = Database(settings.database_url, echo=settings.sql_echo)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    app.include_router(auth_router, prefix="/api")
    app.include_router(api)
    return app


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("launchtracker.app:create_app", factory=True, host=settings.host, port=settings.port,
                reload=settings.env == "dev")


if __name__ == "__main__":
    main()
