"""Seed default permissions and roles into the database."""

import logging
from sqlalchemy.orm import Session
from roster.models.role import Role, Permission

logger = logging.getLogger("roster.seeds")

PERMISSIONS = {
    "read": "Can read records",
    "create": "Can create records",
    "update": "Can update records",
    "delete": "Can delete records",
}

ROLES = [
    {
        "name": "admin",
        "description": "Full access to every resource",
        "permissions": ["read", "create", "update", "delete"],
    },
    {
        "name": "instructor",
        "description": "Manages groups, attendance and students",
        "permissions": ["read", "create", "update"],
    },
    {
        "name": "student",
        "description": "Reads and updates their own records",
        "permissions": ["read", "update"],
    },
]


def seed_roles(db: Session) -> None:
    """Insert default permissions and roles if they don't already exist."""
    by_name = {p.name: p for p in db.query(Permission).all()}
    for name, description in PERMISSIONS.items():
        if name not in by_name:
            by_name[name] = Permission(name=name, description=description)
            db.add(by_name[name])

    for role_data in ROLES:
        existing = db.query(Role).filter(Role.name == role_data["name"]).first()
        if not existing:
            db.add(Role(
                name=role_data["name"],
                description=role_data["description"],
                permissions=[by_name[p] for p in role_data["permissions"]],
            ))

    db.commit()
    logger.info("Seeded %d permissions and %d roles", len(PERMISSIONS), len(ROLES))
