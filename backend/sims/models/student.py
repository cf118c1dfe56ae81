"""
Student model - the student profile linked 1:1 to an Identity.

Name, contact and academic sub-records are flattened into columns; the
address, parent contacts, documents and fees are JSON documents.
"""

import uuid
from sqlalchemy import Column, Text, Integer, Float, Date, DateTime, Boolean, String, JSON, ForeignKey, Index
from sqlalchemy.orm import relationship

from sims.clock import utcnow
from sims.database import Base

GENDERS = ("Male", "Female", "Other")


class Student(Base):
    """
    SQLAlchemy model for the students table.

    ``courses`` lists this student's roster entries across all courses; it
    reads the same ``enrollments`` rows as ``Course.enrolled_students``.
    """
    __tablename__ = "students"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique student identifier")
    roll_number = Column(String(32), nullable=False, unique=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False,
                     doc="Owning identity")
    first_name = Column(Text, nullable=False)
    middle_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String(8), nullable=False)
    email = Column(String(254), nullable=False, unique=True)
    phone = Column(String(32), nullable=False, doc="xxx-xxx-xxxx")
    address = Column(JSON, nullable=True)
    branch = Column(Text, nullable=False)
    semester = Column(Integer, nullable=False, doc="1-8")
    batch = Column(Text, nullable=False)
    section = Column(Text, nullable=True)
    cgpa = Column(Float, nullable=False, default=0, doc="0-10")
    backlog_count = Column(Integer, nullable=False, default=0)
    parent_info = Column(JSON, nullable=True, doc="father / mother / guardian contacts")
    documents = Column(JSON, nullable=False, default=list)
    fees = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("Identity")
    courses = relationship("Enrollment", back_populates="student",
                           order_by="Enrollment.enrollment_date")

    __table_args__ = (
        Index("ix_students_branch_semester", "branch", "semester"),
        Index("ix_students_user_id", "user_id"),
    )

    @property
    def full_name(self) -> str:
        if self.middle_name:
            return f"{self.first_name} {self.middle_name} {self.last_name}"
        return f"{self.first_name} {self.last_name}"

    @property
    def attendance_percentage(self) -> float:
        """Overall attendance across every course the student is enrolled in."""
        total = sum(e.attendance_total for e in self.courses)
        if not total:
            return 0.0
        return sum(e.attendance_present for e in self.courses) / total * 100

    def __repr__(self):
        return f"<Student(id={self.id}, roll='{self.roll_number}', name='{self.full_name}')>"
