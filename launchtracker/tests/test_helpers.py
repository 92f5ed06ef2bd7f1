"""Tests for JSON helpers, templates, the database wrapper and seeding."""
from __future__ import annotations

from datetime import date

from sqlalchemy import select

from launchtracker.config import Settings
from launchtracker.db import Database, bool_or, count_all, count_where
from launchtracker.enums import TaskPriority, UserRole
from launchtracker.models import LaunchPlan, Task, User
from launchtracker.seed import seed_admin
from launchtracker.templates import LAUNCH_TEMPLATES, get_template, template_summary


class TestJsonParse:
    def test_valid_json(self):
        from launchtracker.utils import json_parse
        assert json_parse('["a", "b"]') == ["a", "b"]

    def test_invalid_json_defaults_to_list(self):
        from launchtracker.utils import json_parse
        assert json_parse("not json") == []

    def test_none_with_default(self):
        from launchtracker.utils import json_parse
        assert json_parse(None, "fallback") == "fallback"

    def test_dump_none(self):
        from launchtracker.utils import json_dump
        assert json_dump(None) == "[]"


class TestTemplates:
    def test_feb_launch_counts(self):
        template = get_template("feb-2026-launch")
        assert template is not None
        assert len(template.tasks) == 67
        assert len(template.kpis) == 13

    def test_offsets_cover_two_weeks(self):
        offsets = {t.day_offset for t in get_template("feb-2026-launch").tasks}
        assert offsets == set(range(14))

    def test_unknown_template(self):
        assert get_template("nope") is None

    def test_summary(self):
        summary = template_summary(LAUNCH_TEMPLATES["feb-2026-launch"])
        assert summary["task_count"] == 67
        assert summary["kpi_count"] == 13
        assert summary["name"] == "Feb 1-14, 2026 Launch Calendar"


class TestDatabase:
    def _db_with_tasks(self):
        db = Database("sqlite://")
        db.create_all()
        with db.session_scope() as session:
            user = User(email="a@example.com", password_hash="x", name="A")
            session.add(user)
            session.flush()
            plan = LaunchPlan(
                user_id=user.id, name="P",
                start_date=date(2026, 2, 1), end_date=date(2026, 2, 14),
            )
            session.add(plan)
            session.flush()
            for priority in (TaskPriority.high, TaskPriority.low, TaskPriority.low):
                session.add(Task(plan_id=plan.id, title="t", due_date=plan.start_date, priority=priority))
            session.commit()
        return db

    def test_aggregate_helpers(self):
        db = self._db_with_tasks()
        with db.session_scope() as session:
            row = session.execute(
                select(
                    count_all().label("total"),
                    count_where(Task.priority == TaskPriority.low).label("low"),
                    bool_or(Task.priority == TaskPriority.high).label("any_high"),
                    bool_or(Task.priority == TaskPriority.medium).label("any_medium"),
                )
            ).one()
        assert row.total == 3
        assert row.low == 2
        assert bool(row.any_high) is True
        assert bool(row.any_medium) is False
        db.dispose()

    def test_in_memory_databases_are_isolated(self):
        db = self._db_with_tasks()
        other = Database("sqlite://")
        other.create_all()
        with other.session_scope() as session:
            assert session.execute(select(count_all()).select_from(Task)).scalar() == 0
        db.dispose()
        other.dispose()


class TestSeed:
    def test_seed_admin_is_idempotent(self):
        settings = Settings(_env_file=None, database_url="sqlite://", seed_admin_email="Boss@Example.com")
        db = Database(settings.database_url)
        db.create_all()
        first = seed_admin(db, settings)
        second = seed_admin(db, settings)
        assert first.id == second.id
        assert first.email == "boss@example.com"
        assert first.role == UserRole.admin
        with db.session_scope() as session:
            assert session.execute(select(count_all()).select_from(User)).scalar() == 1
        db.dispose()
