"""
Students API routes - student profiles and staff-driven enrollment.

Provides endpoints for:
- Creating a student together with their account (admin)
- Listing, viewing, updating and deleting students
- Listing a student's courses
- Enrolling / unenrolling a student on a course (admin or faculty)
"""

import time
from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from sims.config import Settings
from sims.database import get_db
from sims.dependencies import get_current_identity, get_settings
from sims.logging_config import get_logger, log_with_context
from sims.models.identity import Identity
from sims.routes.serializers import (
    pagination, serialize_course, serialize_student, serialize_student_course,
)
from sims.services import catalog, enrollment, profiles

router = APIRouter()
logger = get_logger("http")

PHONE_PATTERN = r"^\d{3}-\d{3}-\d{4}$"


# ── Pydantic schemas ─────────────────────────────────────────

class Name(BaseModel):
    first_name: str = Field(..., min_length=1)
    middle_name: Optional[str] = None
    last_name: str = Field(..., min_length=1)


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    country: str = "India"


class ContactInfo(BaseModel):
    email: EmailStr
    phone: str = Field(..., pattern=PHONE_PATTERN, description="xxx-xxx-xxxx")
    address: Optional[Address] = None


class Academic(BaseModel):
    branch: str = Field(..., min_length=1)
    semester: int = Field(..., ge=1, le=8)
    batch: str = Field(..., min_length=1)
    section: Optional[str] = None
    cgpa: float = Field(0, ge=0, le=10)
    backlog_count: int = Field(0, ge=0)


class Contact(BaseModel):
    name: Optional[str] = None
    occupation: Optional[str] = None
    relationship: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class ParentInfo(BaseModel):
    father: Optional[Contact] = None
    mother: Optional[Contact] = None
    guardian: Optional[Contact] = None


class Document(BaseModel):
    type: Literal["aadhar", "pancard", "passport", "other"]
    number: str
    is_verified: bool = False


class Fee(BaseModel):
    semester: int = Field(..., ge=1, le=8)
    amount: float = Field(..., ge=0)
    paid: bool = False
    transaction_id: Optional[str] = None
    paid_date: Optional[date] = None
    due_date: Optional[date] = None


class StudentCreate(BaseModel):
    """Schema for creating a student and their login account."""
    roll_number: str = Field(..., min_length=1, max_length=32)
    username: Optional[str] = Field(None, min_length=3, max_length=30,
                                    description="Defaults to the roll number")
    password: str = Field(..., min_length=8)
    name: Name
    date_of_birth: date
    gender: Literal["Male", "Female", "Other"]
    contact_info: ContactInfo
    academic: Academic
    parent_info: Optional[ParentInfo] = None
    documents: List[Document] = Field(default_factory=list)
    fees: List[Fee] = Field(default_factory=list)


class NameUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1)
    middle_name: Optional[str] = None
    last_name: Optional[str] = Field(None, min_length=1)


class ContactInfoUpdate(BaseModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    address: Optional[Address] = None


class AcademicUpdate(BaseModel):
    branch: Optional[str] = Field(None, min_length=1)
    semester: Optional[int] = Field(None, ge=1, le=8)
    batch: Optional[str] = Field(None, min_length=1)
    section: Optional[str] = None
    cgpa: Optional[float] = Field(None, ge=0, le=10)
    backlog_count: Optional[int] = Field(None, ge=0)


class StudentUpdate(BaseModel):
    """Partial update; nested objects are merged into the stored record."""
    roll_number: Optional[str] = Field(None, min_length=1, max_length=32)
    name: Optional[NameUpdate] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Literal["Male", "Female", "Other"]] = None
    contact_info: Optional[ContactInfoUpdate] = None
    academic: Optional[AcademicUpdate] = None
    parent_info: Optional[ParentInfo] = None
    documents: Optional[List[Document]] = None
    fees: Optional[List[Fee]] = None
    is_active: Optional[bool] = None


# ── Profile CRUD ─────────────────────────────────────────────

@router.post("/api/students", status_code=201)
def create_student(request: StudentCreate, actor: Identity = Depends(get_current_identity),
                   db: Session = Depends(get_db)):
    student = profiles.create_student(db, actor, request.model_dump())
    return serialize_student(student)


@router.get("/api/students")
def list_students(
    branch: Optional[str] = Query(None),
    semester: Optional[int] = Query(None, ge=1, le=8),
    batch: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Search roll number or name"),
    sort_by: Optional[str] = Query(None, description="roll_number, first_name, last_name, semester, cgpa, batch, created_at"),
    order: Literal["asc", "desc"] = Query("asc"),
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    actor: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """List students with filters, search, sorting and pagination."""
    start_time = time.time()
    students, total = profiles.list_students(db, actor, branch=branch, semester=semester,
                                             batch=batch, search=search, sort_by=sort_by,
                                             order=order, page=page, per_page=per_page)

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO",
        "Listed {} students (page {}, total {})".format(len(students), page, total),
        extra_data={"duration_ms": round(duration_ms, 2)})

    return {"data": [serialize_student(s) for s in students],
            "pagination": pagination(page, per_page, total)}


@router.get("/api/students/{student_id}")
def get_student(student_id: str, actor: Identity = Depends(get_current_identity),
                db: Session = Depends(get_db)):
    return serialize_student(profiles.get_student(db, actor, student_id))


@router.put("/api/students/{student_id}")
def update_student(student_id: str, request: StudentUpdate,
                   actor: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    student = profiles.update_student(db, actor, student_id, request.model_dump(exclude_unset=True))
    return serialize_student(student)


@router.delete("/api/students/{student_id}")
def delete_student(student_id: str, actor: Identity = Depends(get_current_identity),
                   db: Session = Depends(get_db)):
    enrollment.delete_student(db, actor, student_id)
    return {"msg": "Student removed"}


# ── Student courses ──────────────────────────────────────────

@router.get("/api/students/{student_id}/courses")
def list_student_courses(student_id: str, actor: Identity = Depends(get_current_identity),
                         db: Session = Depends(get_db)):
    entries = enrollment.student_courses(db, actor, student_id)
    return [serialize_student_course(e) for e in entries]


@router.post("/api/students/{student_id}/courses/{course_id}")
def enroll_student(student_id: str, course_id: str,
                   actor: Identity = Depends(get_current_identity),
                   settings: Settings = Depends(get_settings), db: Session = Depends(get_db)):
    enrollment.enroll(db, actor, course_id, student_id, strict=settings.strict_capacity)
    return serialize_course(catalog.get_course(db, actor, course_id), actor)


@router.delete("/api/students/{student_id}/courses/{course_id}")
def unenroll_student(student_id: str, course_id: str,
                     actor: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    enrollment.unenroll(db, actor, course_id, student_id)
    return serialize_course(catalog.get_course(db, actor, course_id), actor)
