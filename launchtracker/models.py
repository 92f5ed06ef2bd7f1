from __future__ import annotations

import datetime as dt
from datetime import date, datetime

from sqlalchemy import (
    Date, DateTime, Enum, Float, ForeignKey, Integer, String, Text, UniqueConstraint, func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from launchtracker.enums import (
    AlertSeverity,
    ContactSegment,
    ContactStatus,
    KpiCalculationType,
    KpiCategory,
    KpiTargetType,
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


class Base(DeclarativeBase):
    pass


def _enum(enum_cls) -> Enum:
    """String-backed enum column; rejects values outside the closed set."""
    return Enum(
        enum_cls, native_enum=False, create_constraint=True, length=32,
        values_callable=lambda members: [m.value for m in members],
    )


_PLAN_FK = "launch_plans.id"
_CHILD_CASCADE = "all, delete-orphan"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(_enum(UserRole), default=UserRole.admin, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    plans: Mapped[list[LaunchPlan]] = relationship("LaunchPlan", back_populates="user", cascade=_CHILD_CASCADE)


class LaunchPlan(Base):
    __tablename__ = "launch_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), default="America/Chicago", nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    strategy_tags_json: Mapped[str] = mapped_column(Text, default="[]")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[PlanStatus] = mapped_column(_enum(PlanStatus), default=PlanStatus.draft, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user: Mapped[User] = relationship("User", back_populates="plans")
    tasks: Mapped[list[Task]] = relationship("Task", back_populates="plan", cascade=_CHILD_CASCADE)
    kpis: Mapped[list[Kpi]] = relationship("Kpi", back_populates="plan", cascade=_CHILD_CASCADE)
    kpi_entries: Mapped[list[KpiEntry]] = relationship("KpiEntry", back_populates="plan", cascade=_CHILD_CASCADE)
    alerts: Mapped[list[Alert]] = relationship("Alert", back_populates="plan", cascade=_CHILD_CASCADE)
    contacts: Mapped[list[Contact]] = relationship("Contact", back_populates="plan", cascade=_CHILD_CASCADE)
    outreach_events: Mapped[list[OutreachEvent]] = relationship("OutreachEvent", back_populates="plan", cascade=_CHILD_CASCADE)
    assets: Mapped[list[Asset]] = relationship("Asset", back_populates="plan", cascade=_CHILD_CASCADE)
    notes_log: Mapped[list[Note]] = relationship("Note", back_populates="plan", cascade=_CHILD_CASCADE)


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(Integer, ForeignKey(_PLAN_FK, ondelete="CASCADE"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    due_time: Mapped[str | None] = mapped_column(String(5), nullable=True)  # HH:MM
    estimated_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[TaskStatus] = mapped_column(_enum(TaskStatus), default=TaskStatus.not_started, nullable=False)
    priority: Mapped[TaskPriority] = mapped_column(_enum(TaskPriority), default=TaskPriority.medium, nullable=False)
    category: Mapped[TaskCategory] = mapped_column(_enum(TaskCategory), default=TaskCategory.other, nullable=False)
    owner_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    links_json: Mapped[str] = mapped_column(Text, default="[]")
    completion_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    plan: Mapped[LaunchPlan] = relationship("LaunchPlan", back_populates="tasks")
    dependencies: Mapped[list[TaskDependency]] = relationship(
        "TaskDependency", foreign_keys="TaskDependency.task_id",
        back_populates="task", cascade=_CHILD_CASCADE,
    )
    dependents: Mapped[list[TaskDependency]] = relationship(
        "TaskDependency", foreign_keys="TaskDependency.depends_on_task_id",
        back_populates="depends_on", cascade="all, delete",
    )


class TaskDependency(Base):
    __tablename__ = "task_dependencies"
    __table_args__ = (UniqueConstraint("task_id", "depends_on_task_id", name="unique_dependency"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[int] = mapped_column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    depends_on_task_id: Mapped[int] = mapped_column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    task: Mapped[Task] = relationship("Task", foreign_keys=[task_id], back_populates="dependencies")
    depends_on: Mapped[Task] = relationship("Task", foreign_keys=[depends_on_task_id], back_populates="dependents")


class Kpi(Base):
    __tablename__ = "kpis"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(Integer, ForeignKey(_PLAN_FK, ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[KpiCategory] = mapped_column(_enum(KpiCategory), nullable=False)
    unit: Mapped[KpiUnit] = mapped_column(_enum(KpiUnit), nullable=False)
    target_type: Mapped[KpiTargetType] = mapped_column(_enum(KpiTargetType), nullable=False)
    target_value: Mapped[float] = mapped_column(Float, nullable=False)
    calculation_type: Mapped[KpiCalculationType] = mapped_column(
        _enum(KpiCalculationType), default=KpiCalculationType.manual, nullable=False,
    )
    numerator_key: Mapped[str | None] = mapped_column(String(100), nullable=True)
    denominator_key: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    plan: Mapped[LaunchPlan] = relationship("LaunchPlan", back_populates="kpis")
    entries: Mapped[list[KpiEntry]] = relationship(
        "KpiEntry", back_populates="kpi", cascade=_CHILD_CASCADE, order_by="KpiEntry.date",
    )


class KpiEntry(Base):
    __tablename__ = "kpi_entries"
    __table_args__ = (UniqueConstraint("kpi_id", "date", name="unique_kpi_entry"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(Integer, ForeignKey(_PLAN_FK, ondelete="CASCADE"), nullable=False, index=True)
    kpi_id: Mapped[int] = mapped_column(Integer, ForeignKey("kpis.id", ondelete="CASCADE"), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    plan: Mapped[LaunchPlan] = relationship("LaunchPlan", back_populates="kpi_entries")
    kpi: Mapped[Kpi] = relationship("Kpi", back_populates="entries")


class Alert(Base):
    __tablename__ = "alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(Integer, ForeignKey(_PLAN_FK, ondelete="CASCADE"), nullable=False, index=True)
    kpi_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("kpis.id", ondelete="SET NULL"), nullable=True)
    date_triggered: Mapped[date] = mapped_column(Date, nullable=False)
    severity: Mapped[AlertSeverity] = mapped_column(_enum(AlertSeverity), default=AlertSeverity.warning, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    plan: Mapped[LaunchPlan] = relationship("LaunchPlan", back_populates="alerts")
    kpi: Mapped[Kpi | None] = relationship("Kpi")


class Contact(Base):
    __tablename__ = "contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(Integer, ForeignKey(_PLAN_FK, ondelete="CASCADE"), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    segment: Mapped[ContactSegment] = mapped_column(_enum(ContactSegment), nullable=False)
    status: Mapped[ContactStatus] = mapped_column(_enum(ContactStatus), default=ContactStatus.not_contacted, nullable=False)
    tags_json: Mapped[str] = mapped_column(Text, default="[]")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    plan: Mapped[LaunchPlan] = relationship("LaunchPlan", back_populates="contacts")
    outreach_events: Mapped[list[OutreachEvent]] = relationship(
        "OutreachEvent", back_populates="contact", cascade=_CHILD_CASCADE,
    )


class OutreachEvent(Base):
    __tablename__ = "outreach_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(Integer, ForeignKey(_PLAN_FK, ondelete="CASCADE"), nullable=False, index=True)
    contact_id: Mapped[int] = mapped_column(Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    channel: Mapped[OutreachChannel] = mapped_column(_enum(OutreachChannel), nullable=False)
    template_key: Mapped[str | None] = mapped_column(String(100), nullable=True)
    outcome: Mapped[OutreachOutcome] = mapped_column(_enum(OutreachOutcome), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    plan: Mapped[LaunchPlan] = relationship("LaunchPlan", back_populates="outreach_events")
    contact: Mapped[Contact] = relationship("Contact", back_populates="outreach_events")


class Asset(Base):
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(Integer, ForeignKey(_PLAN_FK, ondelete="CASCADE"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)  # sample_output | ad_creative | landing_page | email_draft | ...
    url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    linked_task_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)
    linked_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    plan: Mapped[LaunchPlan] = relationship("LaunchPlan", back_populates="assets")


class Note(Base):
    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(Integer, ForeignKey(_PLAN_FK, ondelete="CASCADE"), nullable=False, index=True)
    linked_type: Mapped[NoteLinkedType] = mapped_column(_enum(NoteLinkedType), nullable=False)
    linked_id: Mapped[str] = mapped_column(String(64), nullable=False)  # entity id or YYYY-MM-DD
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    plan: Mapped[LaunchPlan] = relationship("LaunchPlan", back_populates="notes_log")
