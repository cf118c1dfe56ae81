"""
Identity model - an authenticatable account.

Holds login credentials and role, independent of the domain profile data.
Student and faculty identities point at exactly one profile record through a
``(profile_kind, profile_id)`` pair; admin identities carry no profile.
"""

import uuid
from datetime import datetime
from typing import NamedTuple, Optional

from sqlalchemy import Column, Text, DateTime, Boolean, Integer, String, Index

from sims.clock import utcnow
from sims.database import Base

ROLES = ("student", "faculty", "admin")
PROFILE_KINDS = ("student", "faculty")


class ProfileRef(NamedTuple):
    """Discriminated reference to a Student or Faculty profile."""
    kind: str
    id: str


class Identity(Base):
    """
    SQLAlchemy model for the users table.

    Lockout state (``login_attempts``/``lock_until``) and the password reset
    token hash are maintained by ``sims.services.identity``.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique identity identifier")
    username = Column(String(30), nullable=False, unique=True,
                      doc="Unique login name, 3-30 characters")
    email = Column(String(254), nullable=False, unique=True,
                   doc="Unique, lower-cased email address")
    password_hash = Column(Text, nullable=False,
                           doc="One-way salted password hash; never serialized")
    role = Column(String(16), nullable=False,
                  doc="student | faculty | admin")
    profile_kind = Column(String(16), nullable=True,
                          doc="Profile table the identity points at; NULL for admins")
    profile_id = Column(String(36), nullable=True,
                        doc="Identifier of the Student or Faculty profile")
    is_active = Column(Boolean, nullable=False, default=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    verification_token = Column(Text, nullable=True)
    login_attempts = Column(Integer, nullable=False, default=0,
                            doc="Consecutive failed logins")
    lock_until = Column(DateTime, nullable=True,
                        doc="Logins are rejected until this UTC time")
    reset_password_token = Column(Text, nullable=True,
                                  doc="SHA-256 hash of the outstanding reset token")
    reset_password_expires = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_users_profile", "profile_kind", "profile_id"),
    )

    @property
    def profile(self) -> Optional[ProfileRef]:
        if self.profile_kind is None or self.profile_id is None:
            return None
        return ProfileRef(self.profile_kind, self.profile_id)

    @profile.setter
    def profile(self, ref: Optional[ProfileRef]):
        self.profile_kind = ref.kind if ref else None
        self.profile_id = ref.id if ref else None

    def is_locked(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.lock_until is not None and self.lock_until > now

    def owns(self, kind: str, profile_id: str) -> bool:
        """True when this identity's profile reference is ``(kind, profile_id)``."""
        return self.profile == ProfileRef(kind, profile_id)

    def __repr__(self):
        return f"<Identity(id={self.id}, username='{self.username}', role='{self.role}')>"
