"""Seed the admin user from env vars."""

import logging
from sqlalchemy.orm import Session
from roster.models.user import User
from roster.models.role import Role
from roster.core.config import settings

logger = logging.getLogger("roster.seeds")


def seed_admin(db: Session) -> bool:
    """Create the admin user if not already present. Returns True if created."""
    admin_role = db.query(Role).filter(Role.name == "admin").first()
    if not admin_role:
        logger.warning("admin role not found. Run seed_roles first.")
        return False

    existing = db.query(User).filter(User.email == settings.ADMIN_EMAIL).first()
    if existing:
        logger.info("Admin '%s' already exists, skipping.", settings.ADMIN_EMAIL)
        return False

    admin = User(
        email=settings.ADMIN_EMAIL,
        first_name="Roster",
        last_name="Admin",
        role=admin_role,
    )
    admin.password = settings.ADMIN_PASSWORD
    db.add(admin)
    db.commit()
    logger.info("Created admin: %s", settings.ADMIN_EMAIL)
    return True
