"""
Faculty model - the faculty profile linked 1:1 to an Identity.

Courses taught are read through the ``course_faculty`` association table,
so the faculty side and the course side of an assignment are one row.
"""

import uuid
from sqlalchemy import Column, Text, Date, DateTime, Boolean, String, JSON, Index
from sqlalchemy.orm import relationship

from sims.clock import utcnow
from sims.database import Base
from sims.models.course import course_faculty

POSITIONS = ("Assistant Professor", "Associate Professor", "Professor", "Adjunct", "Lecturer")


class Faculty(Base):
    """SQLAlchemy model for the faculty table."""
    __tablename__ = "faculty"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique faculty identifier")
    employee_id = Column(String(32), nullable=False, unique=True)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    email = Column(String(254), nullable=False, unique=True)
    password_hash = Column(Text, nullable=False,
                           doc="Same hash as the owning identity; never serialized")
    department = Column(Text, nullable=False)
    position = Column(String(32), nullable=False)
    date_of_joining = Column(Date, nullable=False)
    qualifications = Column(JSON, nullable=False, default=list)
    specializations = Column(JSON, nullable=False, default=list)
    research_interests = Column(JSON, nullable=False, default=list)
    publications = Column(JSON, nullable=False, default=list)
    office_hours = Column(JSON, nullable=False, default=list)
    contact_number = Column(String(32), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    courses = relationship("Course", secondary=course_faculty, back_populates="faculty",
                           order_by="Course.course_code")

    __table_args__ = (
        Index("ix_faculty_department", "department"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<Faculty(id={self.id}, employee='{self.employee_id}', name='{self.full_name}')>"
