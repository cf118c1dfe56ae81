"""
Course model - a catalog entry with its faculty list and roster.

Faculty assignments and prerequisites are many-to-many association tables;
the roster is the set of ``Enrollment`` rows pointing at the course. The
schedule, syllabus and assessments are stored as JSON documents.
"""

import uuid
from sqlalchemy import (
    Column, Text, Integer, DateTime, String, JSON, ForeignKey, Table, Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from sims.clock import utcnow
from sims.database import Base

COURSE_STATUSES = ("active", "inactive", "archived")

# Composite primary key: a faculty member is listed on a course at most once
course_faculty = Table(
    "course_faculty",
    Base.metadata,
    Column("course_id", String(36), ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
    Column("faculty_id", String(36), ForeignKey("faculty.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime, default=utcnow),
)

course_prerequisites = Table(
    "course_prerequisites",
    Base.metadata,
    Column("course_id", String(36), ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
    Column("prerequisite_id", String(36), ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
)


class Course(Base):
    """
    SQLAlchemy model for the courses table.

    ``capacity`` is only checked when a student enrolls; lowering it below
    the current enrollment is allowed and not reconciled.
    """
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique course identifier")
    course_code = Column(String(32), nullable=False, unique=True,
                         doc="Upper-cased course code, e.g. CS101")
    course_name = Column(Text, nullable=False)
    department = Column(Text, nullable=False)
    credits = Column(Integer, nullable=False, doc="1-6")
    description = Column(Text, nullable=False)
    semester = Column(Integer, nullable=False, doc="1-8")
    capacity = Column(Integer, nullable=False, doc="Maximum roster size, at least 1")
    schedule = Column(JSON, nullable=True,
                      doc='{"days": [...], "start_time": "HH:MM", "end_time": "HH:MM", "room": ...}')
    status = Column(String(16), nullable=False, default="active",
                    doc="active | inactive | archived")
    syllabus = Column(JSON, nullable=False, default=lambda: {"topics": [], "textbooks": []})
    assessments = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    faculty = relationship("Faculty", secondary=course_faculty, back_populates="courses",
                           order_by="Faculty.last_name")
    prerequisites = relationship(
        "Course",
        secondary=course_prerequisites,
        primaryjoin=id == course_prerequisites.c.course_id,
        secondaryjoin=id == course_prerequisites.c.prerequisite_id,
        order_by="Course.course_code",
    )
    enrolled_students = relationship("Enrollment", back_populates="course",
                                     order_by="Enrollment.enrollment_date",
                                     cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_courses_department_semester", "department", "semester"),
        CheckConstraint("capacity >= 1", name="ck_courses_capacity_positive"),
    )

    @property
    def current_enrollment(self) -> int:
        return len(self.enrolled_students)

    @property
    def available_seats(self) -> int:
        return self.capacity - len(self.enrolled_students)

    def is_full(self) -> bool:
        return len(self.enrolled_students) >= self.capacity

    def faculty_ids(self):
        return [f.id for f in self.faculty]

    def __repr__(self):
        return f"<Course(id={self.id}, code='{self.course_code}', capacity={self.capacity})>"
