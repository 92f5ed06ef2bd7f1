"""Create the schema and a first admin account.

    launchtracker-seed            # uses LAUNCHTRACKER_SEED_ADMIN_* settings
"""
from __future__ import annotations

import logging

from sqlalchemy import select

from launchtracker.auth import hash_pw
from launchtracker.config import Settings, get_settings
from launchtracker.db import Database
from launchtracker.enums import UserRole
from launchtracker.models import User

log = logging.getLogger(__name__)


def seed_admin(db: Database, settings: Settings) -> User:
    """Return the admin user for ``settings.seed_admin_email``, creating it if missing."""
    email = settings.seed_admin_email.lower()
    with db.session_scope() as session:
        user = session.execute(select(User).where(User.email == email)).scalars().first()
        if user is not None:
            log.info("Admin %s already exists (id %d)", email, user.id)
            return user
        user = User(
            email=email,
            password_hash=hash_pw(settings.seed_admin_password),
            name=settings.seed_admin_name,
            role=UserRole.admin,
        )
        session.add(user)
        session.commit()
        log.info("Created admin %s (id %d)", email, user.id)
        return user


def main():
    settings = get_settings()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    db = Database(settings.database_url, echo=settings.sql_echo)
    try:
        db.create_all()
        seed_admin(db, settings)
    finally:
        db.dispose()


if __name__ == "__main__":
    main()
