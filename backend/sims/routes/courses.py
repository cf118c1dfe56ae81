"""
Courses API routes - catalog CRUD and the course-side workflow endpoints.

Provides endpoints for:
- Listing and viewing courses (public)
- Creating, updating and deleting courses
- Student self-service enroll / withdraw
- Grade and attendance updates for a roster entry
"""

import time
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from sims.config import Settings
from sims.database import get_db
from sims.dependencies import get_current_identity, get_optional_identity, get_settings
from sims.logging_config import get_logger, log_with_context
from sims.models.identity import Identity
from sims.routes.serializers import pagination, serialize_course, serialize_courses, serialize_roster_entry
from sims.services import catalog, enrollment

router = APIRouter()
logger = get_logger("http")

TIME_PATTERN = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"


# ── Pydantic schemas ─────────────────────────────────────────

class Schedule(BaseModel):
    days: List[Literal["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]] = Field(..., min_length=1)
    start_time: str = Field(..., pattern=TIME_PATTERN, description="HH:MM")
    end_time: str = Field(..., pattern=TIME_PATTERN, description="HH:MM")
    room: str = Field(..., min_length=1)


class Topic(BaseModel):
    title: str
    description: Optional[str] = None
    duration: Optional[float] = Field(None, ge=0, description="Hours")


class Textbook(BaseModel):
    title: str
    author: Optional[str] = None
    isbn: Optional[str] = None
    required: bool = False


class Syllabus(BaseModel):
    topics: List[Topic] = Field(default_factory=list)
    textbooks: List[Textbook] = Field(default_factory=list)


class Assessment(BaseModel):
    type: Literal["quiz", "assignment", "midterm", "final", "project"]
    weightage: float = Field(..., ge=0, le=100)
    deadline: Optional[datetime] = None


class CourseCreate(BaseModel):
    """Schema for creating a course."""
    course_code: str = Field(..., min_length=1, max_length=32)
    course_name: str = Field(..., min_length=1)
    department: str = Field(..., min_length=1)
    credits: int = Field(..., ge=1, le=6)
    description: str = Field(..., min_length=10, max_length=1000)
    semester: int = Field(..., ge=1, le=8)
    capacity: int = Field(..., ge=1)
    faculty: List[str] = Field(default_factory=list, description="Faculty ids")
    prerequisites: List[str] = Field(default_factory=list, description="Course ids")
    schedule: Optional[Schedule] = None
    status: Literal["active", "inactive", "archived"] = "active"
    syllabus: Syllabus = Field(default_factory=Syllabus)
    assessments: List[Assessment] = Field(default_factory=list)


class CourseUpdate(BaseModel):
    """Schema for a partial course update. Faculty and roster have their own endpoints."""
    course_code: Optional[str] = Field(None, min_length=1, max_length=32)
    course_name: Optional[str] = Field(None, min_length=1)
    department: Optional[str] = Field(None, min_length=1)
    credits: Optional[int] = Field(None, ge=1, le=6)
    description: Optional[str] = Field(None, min_length=10, max_length=1000)
    semester: Optional[int] = Field(None, ge=1, le=8)
    capacity: Optional[int] = Field(None, ge=1)
    prerequisites: Optional[List[str]] = None
    schedule: Optional[Schedule] = None
    status: Optional[Literal["active", "inactive", "archived"]] = None
    syllabus: Optional[Syllabus] = None
    assessments: Optional[List[Assessment]] = None


class GradeRequest(BaseModel):
    grade: str = Field(..., min_length=1)


class AttendanceRequest(BaseModel):
    present: int = Field(..., ge=0)
    total: int = Field(..., ge=0)


# ── Catalog ──────────────────────────────────────────────────

@router.get("/api/courses")
def list_courses(
    department: Optional[str] = Query(None),
    semester: Optional[int] = Query(None, ge=1, le=8),
    faculty: Optional[str] = Query(None, description="Faculty id"),
    status: Optional[Literal["active", "inactive", "archived"]] = Query(None),
    search: Optional[str] = Query(None, description="Search course code or name"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    actor: Optional[Identity] = Depends(get_optional_identity),
    db: Session = Depends(get_db)
):
    """List courses with filters, search and pagination, ordered by course code."""
    start_time = time.time()
    courses, total = catalog.list_courses(db, actor, department=department, semester=semester,
                                          faculty=faculty, status=status, search=search,
                                          page=page, per_page=per_page)

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO",
        "Listed {} courses (page {}, total {})".format(len(courses), page, total),
        extra_data={"duration_ms": round(duration_ms, 2)})

    return {"data": serialize_courses(courses), "pagination": pagination(page, per_page, total)}


@router.get("/api/courses/{course_id}")
def get_course(course_id: str, actor: Optional[Identity] = Depends(get_optional_identity),
               db: Session = Depends(get_db)):
    return serialize_course(catalog.get_course(db, actor, course_id), actor)


@router.post("/api/courses", status_code=201)
def create_course(request: CourseCreate, actor: Identity = Depends(get_current_identity),
                  db: Session = Depends(get_db)):
    course = catalog.create_course(db, actor, request.model_dump())
    return serialize_course(course, actor)


@router.put("/api/courses/{course_id}")
def update_course(course_id: str, request: CourseUpdate,
                  actor: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    course = catalog.update_course(db, actor, course_id, request.model_dump(exclude_unset=True))
    return serialize_course(course, actor)


@router.delete("/api/courses/{course_id}")
def delete_course(course_id: str, actor: Identity = Depends(get_current_identity),
                  db: Session = Depends(get_db)):
    enrollment.delete_course(db, actor, course_id)
    return {"msg": "Course removed"}


# ── Workflow ─────────────────────────────────────────────────

@router.post("/api/courses/{course_id}/enroll")
def self_enroll(course_id: str, actor: Identity = Depends(get_current_identity),
                settings: Settings = Depends(get_settings), db: Session = Depends(get_db)):
    """Enroll the calling student in a course."""
    enrollment.self_enroll(db, actor, course_id, strict=settings.strict_capacity)
    return serialize_course(catalog.get_course(db, actor, course_id), actor)


@router.delete("/api/courses/{course_id}/enroll")
def self_withdraw(course_id: str, actor: Identity = Depends(get_current_identity),
                  db: Session = Depends(get_db)):
    """Withdraw the calling student from a course."""
    enrollment.self_withdraw(db, actor, course_id)
    return serialize_course(catalog.get_course(db, actor, course_id), actor)


@router.put("/api/courses/{course_id}/grade/{student_id}")
def assign_grade(course_id: str, student_id: str, request: GradeRequest,
                 actor: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    enrollment.assign_grade(db, actor, course_id, student_id, request.grade)
    return serialize_course(catalog.get_course(db, actor, course_id), actor)


@router.put("/api/courses/{course_id}/attendance/{student_id}")
def record_attendance(course_id: str, student_id: str, request: AttendanceRequest,
                      actor: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    entry = enrollment.record_attendance(db, actor, course_id, student_id,
                                         request.present, request.total)
    return serialize_roster_entry(entry, actor)
