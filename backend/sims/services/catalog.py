"""
Catalog Service - course creation, update and lookup.

Course reads are public. Roster and faculty-list changes do not go through
``update_course``; they are workflow operations in
``sims.services.enrollment``.
"""

from typing import List, Optional, Tuple

from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from sims.errors import Duplicate, NotFound, ValidationError
from sims.logging_config import get_logger, log_with_context
from sims.models.course import Course, course_faculty
from sims.models.enrollment import Enrollment
from sims.models.faculty import Faculty
from sims.models.identity import Identity
from sims.services import enrollment, policy
from sims.services.profiles import paginate
from sims.services.policy import Action

logger = get_logger("db")

COURSE_COLUMNS = ("course_name", "department", "credits", "description", "semester",
                  "capacity", "status")
COURSE_DOCUMENTS = ("schedule", "syllabus", "assessments")


def _load_all(db: Session, model, ids: List[str], label: str) -> list:
    records = []
    for record_id in dict.fromkeys(ids):
        record = db.get(model, record_id)
        if record is None:
            raise NotFound("{} not found: {}".format(label, record_id))
        records.append(record)
    return records


def _apply_course_fields(course: Course, data: dict):
    for column in COURSE_COLUMNS:
        if column in data and data[column] is not None:
            setattr(course, column, data[column])
    for column in COURSE_DOCUMENTS:
        if column in data and data[column] is not None:
            setattr(course, column, jsonable_encoder(data[column]))


def _check_code_free(db: Session, code: str, course_id: Optional[str] = None):
    query = db.query(Course).filter(Course.course_code == code)
    if course_id:
        query = query.filter(Course.id != course_id)
    if query.first():
        raise Duplicate("Course code already exists")


def create_course(db: Session, actor: Identity, data: dict) -> Course:
    """Create a course; faculty and prerequisite ids must resolve."""
    policy.require(actor, Action.CREATE_COURSE, message="Not authorized to create courses")

    code = data["course_code"].strip().upper()
    _check_code_free(db, code)

    course = Course(course_code=code)
    _apply_course_fields(course, data)
    course.faculty = _load_all(db, Faculty, data.get("faculty") or [], "Faculty member")
    course.prerequisites = _load_all(db, Course, data.get("prerequisites") or [], "Prerequisite course")
    db.add(course)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Duplicate("Course code already exists")

    log_with_context(logger, "INFO", "Created course {}".format(code),
                     context={"course_id": course.id},
                     extra_data={"capacity": course.capacity})
    return course


def update_course(db: Session, actor: Identity, course_id: str, changes: dict) -> Course:
    """
    Partial update of a course.

    Lowering ``capacity`` below the current enrollment is accepted; the
    roster is not trimmed and only new enrollments are refused.

    The new code and prerequisite ids are checked before the course is
    touched, so a rejected update leaves nothing pending on the session.
    """
    course = enrollment.get_course(db, course_id)
    policy.require(actor, Action.UPDATE_COURSE, course, message="Not authorized to update this course")

    code = None
    if changes.get("course_code"):
        code = changes["course_code"].strip().upper()
        _check_code_free(db, code, course.id)

    prerequisites = None
    if changes.get("prerequisites") is not None:
        if course.id in changes["prerequisites"]:
            raise ValidationError.single("prerequisites", "A course cannot be its own prerequisite")
        prerequisites = _load_all(db, Course, changes["prerequisites"], "Prerequisite course")

    if code:
        course.course_code = code
    _apply_course_fields(course, changes)
    if prerequisites is not None:
        course.prerequisites = prerequisites

    enrolled = db.query(Enrollment).filter(Enrollment.course_id == course.id).count()
    if enrolled > course.capacity:
        log_with_context(logger, "WARNING", "Capacity of {} is below current enrollment".format(course.course_code),
                         context={"course_id": course.id},
                         extra_data={"capacity": course.capacity, "enrolled": enrolled})

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Duplicate("Course code already exists")

    log_with_context(logger, "INFO", "Updated course {}".format(course.course_code),
                     context={"course_id": course.id},
                     extra_data={"fields": sorted(changes.keys())})
    return course


def get_course(db: Session, actor: Optional[Identity], course_id: str) -> Course:
    policy.require(actor, Action.READ_COURSE)
    course = db.query(Course).options(
        selectinload(Course.faculty),
        selectinload(Course.prerequisites),
        selectinload(Course.enrolled_students).selectinload(Enrollment.student),
    ).filter(Course.id == course_id).first()
    if course is None:
        raise NotFound("Course not found")
    return course


def list_courses(db: Session, actor: Optional[Identity], department: Optional[str] = None,
                 semester: Optional[int] = None, faculty: Optional[str] = None,
                 status: Optional[str] = None, search: Optional[str] = None,
                 page: int = 1, per_page: int = 20) -> Tuple[List[Course], int]:
    policy.require(actor, Action.READ_COURSE)

    query = db.query(Course).options(
        selectinload(Course.faculty),
        selectinload(Course.prerequisites),
        selectinload(Course.enrolled_students),
    )
    if department:
        query = query.filter(Course.department == department)
    if semester:
        query = query.filter(Course.semester == semester)
    if faculty:
        query = query.filter(Course.id.in_(
            db.query(course_faculty.c.course_id).filter(course_faculty.c.faculty_id == faculty)
        ))
    if status:
        query = query.filter(Course.status == status)
    if search:
        pattern = "%{}%".format(search)
        query = query.filter(Course.course_code.ilike(pattern) | Course.course_name.ilike(pattern))

    return paginate(query.order_by(Course.course_code.asc()), page, per_page)
