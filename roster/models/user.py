"""User model."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import relationship
from roster.db.base import Base
from roster.core.security import password_hasher


class User(Base):
    """Roster user. Credentials are only ever written through ``password``."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    # Binary collation keeps MySQL comparisons case-sensitive, as on SQLite
    email = Column(
        String(255).with_variant(mysql.VARCHAR(255, collation="utf8mb4_bin"), "mysql"),
        unique=True,
        nullable=False,
        index=True,
    )
    password_hash = Column(String(255), nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    phone = Column(String(30), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    ward_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    role = relationship("Role", lazy="joined")
    sessions = relationship(
        "SessionMetadata",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def password(self):
        raise AttributeError("password is write-only")

    @password.setter
    def password(self, plaintext: str) -> None:
        self.password_hash = password_hasher.hash(plaintext)

    @property
    def role_name(self):
        return self.role.name if self.role else None
