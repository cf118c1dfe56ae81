"""
Enrollment model - one roster entry linking a student to a course.

This table is the single record of who is enrolled where. ``Course.enrolled_students``
and ``Student.courses`` are both views over these rows.
"""

import uuid
from sqlalchemy import Column, Integer, DateTime, ForeignKey, String, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from sims.clock import utcnow
from sims.database import Base

GRADES = ("A+", "A", "B+", "B", "C+", "C", "D", "F", "I", "W")
INCOMPLETE = "I"


class Enrollment(Base):
    """
    SQLAlchemy model for the enrollments table.

    The unique constraint on (course_id, student_id) backs the
    "at most once per roster" rule when two enroll requests race.
    """
    __tablename__ = "enrollments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(String(36), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    enrollment_date = Column(DateTime, nullable=False, default=utcnow)
    grade = Column(String(2), nullable=False, default=INCOMPLETE,
                   doc="One of A+, A, B+, B, C+, C, D, F, I (incomplete), W")
    attendance_present = Column(Integer, nullable=False, default=0)
    attendance_total = Column(Integer, nullable=False, default=0)

    course = relationship("Course", back_populates="enrolled_students")
    student = relationship("Student", back_populates="courses")

    __table_args__ = (
        UniqueConstraint("course_id", "student_id", name="uq_enrollments_course_student"),
        Index("ix_enrollments_student_id", "student_id"),
    )

    @property
    def attendance_percentage(self) -> float:
        if not self.attendance_total:
            return 0.0
        return self.attendance_present / self.attendance_total * 100

    def __repr__(self):
        return f"<Enrollment(course={self.course_id}, student={self.student_id}, grade='{self.grade}')>"
