"""
Faculty API routes - faculty profiles and course assignments.
"""

from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from sims.database import get_db
from sims.dependencies import get_current_identity
from sims.models.identity import Identity
from sims.routes.serializers import pagination, serialize_course, serialize_courses, serialize_faculty
from sims.services import enrollment, profiles

router = APIRouter()

PHONE_PATTERN = r"^\d{3}-\d{3}-\d{4}$"
TIME_PATTERN = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"
Position = Literal["Assistant Professor", "Associate Professor", "Professor", "Adjunct", "Lecturer"]


class Qualification(BaseModel):
    degree: str
    field: Optional[str] = None
    institution: Optional[str] = None
    year: Optional[int] = None


class Publication(BaseModel):
    title: str
    journal: Optional[str] = None
    year: Optional[int] = None
    doi: Optional[str] = None


class OfficeHour(BaseModel):
    day: Literal["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
    start_time: str = Field(..., pattern=TIME_PATTERN)
    end_time: str = Field(..., pattern=TIME_PATTERN)


class FacultyCreate(BaseModel):
    """Schema for creating a faculty member and their login account."""
    employee_id: str = Field(..., min_length=1, max_length=32)
    username: Optional[str] = Field(None, min_length=3, max_length=30,
                                    description="Defaults to the employee id")
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    department: str = Field(..., min_length=1)
    position: Position
    date_of_joining: date
    qualifications: List[Qualification] = Field(default_factory=list)
    specializations: List[str] = Field(default_factory=list)
    research_interests: List[str] = Field(default_factory=list)
    publications: List[Publication] = Field(default_factory=list)
    office_hours: List[OfficeHour] = Field(default_factory=list)
    contact_number: Optional[str] = Field(None, pattern=PHONE_PATTERN)


class FacultyUpdate(BaseModel):
    employee_id: Optional[str] = Field(None, min_length=1, max_length=32)
    password: Optional[str] = Field(None, min_length=8)
    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    department: Optional[str] = Field(None, min_length=1)
    position: Optional[Position] = None
    date_of_joining: Optional[date] = None
    qualifications: Optional[List[Qualification]] = None
    specializations: Optional[List[str]] = None
    research_interests: Optional[List[str]] = None
    publications: Optional[List[Publication]] = None
    office_hours: Optional[List[OfficeHour]] = None
    contact_number: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    is_active: Optional[bool] = None


@router.post("/api/faculty", status_code=201)
def create_faculty(request: FacultyCreate, actor: Identity = Depends(get_current_identity),
                   db: Session = Depends(get_db)):
    return serialize_faculty(profiles.create_faculty(db, actor, request.model_dump()))


@router.get("/api/faculty")
def list_faculty(
    department: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Search employee id or name"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    actor: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    members, total = profiles.list_faculty(db, actor, department=department, search=search,
                                           page=page, per_page=per_page)
    return {"data": [serialize_faculty(f) for f in members],
            "pagination": pagination(page, per_page, total)}


@router.get("/api/faculty/{faculty_id}")
def get_faculty(faculty_id: str, actor: Identity = Depends(get_current_identity),
                db: Session = Depends(get_db)):
    return serialize_faculty(profiles.get_faculty(db, actor, faculty_id))


@router.put("/api/faculty/{faculty_id}")
def update_faculty(faculty_id: str, request: FacultyUpdate,
                   actor: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    faculty = profiles.update_faculty(db, actor, faculty_id, request.model_dump(exclude_unset=True))
    return serialize_faculty(faculty)


@router.delete("/api/faculty/{faculty_id}")
def delete_faculty(faculty_id: str, actor: Identity = Depends(get_current_identity),
                   db: Session = Depends(get_db)):
    enrollment.delete_faculty(db, actor, faculty_id)
    return {"msg": "Faculty member removed"}


@router.get("/api/faculty/{faculty_id}/courses")
def list_faculty_courses(faculty_id: str, actor: Identity = Depends(get_current_identity),
                         db: Session = Depends(get_db)):
    return serialize_courses(enrollment.faculty_courses(db, actor, faculty_id))


@router.post("/api/faculty/{faculty_id}/courses/{course_id}")
def assign_course(faculty_id: str, course_id: str, actor: Identity = Depends(get_current_identity),
                  db: Session = Depends(get_db)):
    return serialize_course(enrollment.assign_faculty(db, actor, course_id, faculty_id), actor)


@router.delete("/api/faculty/{faculty_id}/courses/{course_id}")
def remove_course(faculty_id: str, course_id: str, actor: Identity = Depends(get_current_identity),
                  db: Session = Depends(get_db)):
    return serialize_course(enrollment.remove_faculty(db, actor, course_id, faculty_id), actor)
