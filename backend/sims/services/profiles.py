"""
Profile Service - Student, Faculty and Identity record management.

Student and faculty records are created together with their identity in a
single commit by an admin. Updates merge nested sub-records (name, contact
info, academic record) into the flattened columns; the owning identity
reference is never writable. Deletes are delegated to the enrollment
workflow so that roster and faculty-list cleanup always happens.
"""

import uuid
from typing import List, Optional, Tuple

from fastapi.encoders import jsonable_encoder
from sqlalchemy import asc, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sims.errors import Duplicate, ValidationError
from sims.logging_config import get_logger, log_with_context
from sims.models.faculty import Faculty
from sims.models.identity import Identity, ProfileRef
from sims.models.student import Student
from sims.services import enrollment, identity as identity_service, policy
from sims.services.policy import Action

logger = get_logger("db")

# Nested input groups -> flattened Student columns
STUDENT_GROUPS = {
    "name": ("first_name", "middle_name", "last_name"),
    "contact_info": ("email", "phone", "address"),
    "academic": ("branch", "semester", "batch", "section", "cgpa", "backlog_count"),
}
STUDENT_TOP_LEVEL = ("roll_number", "date_of_birth", "gender", "is_active")
STUDENT_DOCUMENTS = ("parent_info", "documents", "fees")

STUDENT_SORT_FIELDS = {
    "roll_number": Student.roll_number,
    "first_name": Student.first_name,
    "last_name": Student.last_name,
    "semester": Student.semester,
    "cgpa": Student.cgpa,
    "batch": Student.batch,
    "created_at": Student.created_at,
}

FACULTY_DOCUMENTS = ("qualifications", "specializations", "research_interests",
                     "publications", "office_hours")
FACULTY_COLUMNS = ("employee_id", "first_name", "last_name", "email", "department",
                   "position", "date_of_joining", "contact_number", "is_active")


def _commit(db: Session, message: str):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Duplicate(message)


def _merge(current: Optional[dict], changes: dict) -> dict:
    merged = dict(current or {})
    merged.update(jsonable_encoder(changes))
    return merged


def paginate(query, page: int, per_page: int) -> Tuple[list, int]:
    total = query.count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()
    return items, total


# ── Students ─────────────────────────────────────────────────

def _apply_student_fields(student: Student, data: dict, merge: bool):
    for group, columns in STUDENT_GROUPS.items():
        values = data.get(group)
        if not values:
            continue
        for column in columns:
            if column not in values:
                continue
            value = values[column]
            if column == "address" and value is not None:
                value = _merge(student.address if merge else None, value)
            elif column == "email" and value:
                value = value.strip().lower()
            setattr(student, column, value)

    for column in STUDENT_TOP_LEVEL:
        if column in data:
            setattr(student, column, data[column])

    if "parent_info" in data and data["parent_info"] is not None:
        student.parent_info = _merge(student.parent_info if merge else None, data["parent_info"])
    for column in ("documents", "fees"):
        if column in data and data[column] is not None:
            setattr(student, column, jsonable_encoder(data[column]))


def create_student(db: Session, actor: Identity, data: dict) -> Student:
    """
    Create a Student profile and its student Identity in one commit.

    ``data`` carries the nested profile (name, contact_info, academic, ...)
    plus ``password`` and an optional ``username`` (defaults to the roll
    number) for the identity.
    """
    policy.require(actor, Action.CREATE_STUDENT, message="Not authorized to create students")

    roll_number = data["roll_number"].strip()
    email = data["contact_info"]["email"].strip().lower()
    existing = db.query(Student).filter(
        (Student.roll_number == roll_number) | (Student.email == email)
    ).first()
    if existing:
        raise Duplicate("Student already exists")

    student_id = str(uuid.uuid4())
    try:
        account = identity_service.register(
            db,
            username=data.get("username") or roll_number,
            email=email,
            password=data["password"],
            role="student",
            profile=ProfileRef("student", student_id),
            commit=False,
        )
    except Duplicate:
        db.rollback()
        raise

    student = Student(id=student_id, user_id=account.id)
    _apply_student_fields(student, data, merge=False)
    student.roll_number = roll_number
    db.add(student)
    _commit(db, "Student already exists")

    log_with_context(logger, "INFO", "Created student {}".format(roll_number),
                     context={"student_id": student.id, "identity_id": account.id})
    return student


def get_student(db: Session, actor: Identity, student_id: str) -> Student:
    student = enrollment.get_student(db, student_id)
    policy.require(actor, Action.READ_STUDENT, student, message="Not authorized to view this student")
    return student


def update_student(db: Session, actor: Identity, student_id: str, changes: dict) -> Student:
    """Apply a partial update; nested objects are merged into the stored ones."""
    student = enrollment.get_student(db, student_id)
    policy.require(actor, Action.UPDATE_STUDENT, student, message="Not authorized to update this student")

    changes = {k: v for k, v in changes.items() if k not in ("id", "user_id", "user")}
    new_email = (changes.get("contact_info") or {}).get("email")
    if new_email:
        clash = db.query(Student).filter(
            Student.email == new_email.strip().lower(), Student.id != student.id
        ).first()
        if clash:
            raise Duplicate("Email already in use")

    _apply_student_fields(student, changes, merge=True)
    _commit(db, "Student already exists")

    log_with_context(logger, "INFO", "Updated student {}".format(student.roll_number),
                     context={"student_id": student.id},
                     extra_data={"fields": sorted(changes.keys())})
    return student


def list_students(db: Session, actor: Identity, branch: Optional[str] = None,
                  semester: Optional[int] = None, batch: Optional[str] = None,
                  search: Optional[str] = None, sort_by: Optional[str] = None,
                  order: str = "asc", page: int = 1, per_page: int = 10) -> Tuple[List[Student], int]:
    policy.require(actor, Action.LIST_STUDENTS, message="Not authorized to list students")

    query = db.query(Student)
    if branch:
        query = query.filter(Student.branch == branch)
    if semester:
        query = query.filter(Student.semester == semester)
    if batch:
        query = query.filter(Student.batch == batch)
    if search:
        pattern = "%{}%".format(search)
        query = query.filter(
            Student.roll_number.ilike(pattern) |
            Student.first_name.ilike(pattern) |
            Student.last_name.ilike(pattern)
        )

    if sort_by and sort_by not in STUDENT_SORT_FIELDS:
        raise ValidationError.single("sort_by", "Cannot sort by {}".format(sort_by))
    column = STUDENT_SORT_FIELDS[sort_by or "roll_number"]
    query = query.order_by(desc(column) if order == "desc" else asc(column))

    return paginate(query, page, per_page)


# ── Faculty ──────────────────────────────────────────────────

def _apply_faculty_fields(faculty: Faculty, data: dict):
    for column in FACULTY_COLUMNS:
        if column in data:
            value = data[column]
            if column == "email" and value:
                value = value.strip().lower()
            setattr(faculty, column, value)
    for column in FACULTY_DOCUMENTS:
        if column in data and data[column] is not None:
            setattr(faculty, column, jsonable_encoder(data[column]))


def create_faculty(db: Session, actor: Identity, data: dict) -> Faculty:
    """Create a Faculty profile and its faculty Identity in one commit."""
    policy.require(actor, Action.CREATE_FACULTY, message="Not authorized to create faculty members")

    employee_id = data["employee_id"].strip()
    email = data["email"].strip().lower()
    existing = db.query(Faculty).filter(
        (Faculty.employee_id == employee_id) | (Faculty.email == email)
    ).first()
    if existing:
        raise Duplicate("Faculty member already exists")

    faculty_id = str(uuid.uuid4())
    try:
        account = identity_service.register(
            db,
            username=data.get("username") or employee_id,
            email=email,
            password=data["password"],
            role="faculty",
            profile=ProfileRef("faculty", faculty_id),
            commit=False,
        )
    except Duplicate:
        db.rollback()
        raise

    faculty = Faculty(id=faculty_id, password_hash=account.password_hash)
    _apply_faculty_fields(faculty, data)
    db.add(faculty)
    _commit(db, "Faculty member already exists")

    log_with_context(logger, "INFO", "Created faculty member {}".format(employee_id),
                     context={"faculty_id": faculty.id, "identity_id": account.id})
    return faculty


def get_faculty(db: Session, actor: Identity, faculty_id: str) -> Faculty:
    policy.require(actor, Action.READ_FACULTY)
    return enrollment.get_faculty(db, faculty_id)


def update_faculty(db: Session, actor: Identity, faculty_id: str, changes: dict) -> Faculty:
    faculty = enrollment.get_faculty(db, faculty_id)
    policy.require(actor, Action.UPDATE_FACULTY, faculty, message="Not authorized to update this faculty member")

    for key in ("employee_id", "email"):
        value = changes.get(key)
        if not value:
            continue
        column = getattr(Faculty, key)
        value = value.strip().lower() if key == "email" else value.strip()
        if db.query(Faculty).filter(column == value, Faculty.id != faculty.id).first():
            raise Duplicate("Faculty member already exists")

    _apply_faculty_fields(faculty, changes)
    if changes.get("password"):
        account = identity_service.find_identity_for_profile(db, "faculty", faculty.id)
        if account is not None:
            identity_service.set_password(db, account, changes["password"])
        else:
            faculty.password_hash = identity_service.hash_password(changes["password"])
    _commit(db, "Faculty member already exists")

    log_with_context(logger, "INFO", "Updated faculty member {}".format(faculty.employee_id),
                     context={"faculty_id": faculty.id},
                     extra_data={"fields": sorted(k for k in changes if k != "password")})
    return faculty


def list_faculty(db: Session, actor: Identity, department: Optional[str] = None,
                 search: Optional[str] = None, page: int = 1,
                 per_page: int = 20) -> Tuple[List[Faculty], int]:
    policy.require(actor, Action.READ_FACULTY)

    query = db.query(Faculty)
    if department:
        query = query.filter(Faculty.department == department)
    if search:
        pattern = "%{}%".format(search)
        query = query.filter(
            Faculty.employee_id.ilike(pattern) |
            Faculty.first_name.ilike(pattern) |
            Faculty.last_name.ilike(pattern)
        )
    query = query.order_by(Faculty.last_name.asc(), Faculty.first_name.asc())
    return paginate(query, page, per_page)


# ── Identities ───────────────────────────────────────────────

def list_identities(db: Session, actor: Identity, role: Optional[str] = None,
                    search: Optional[str] = None, page: int = 1,
                    per_page: int = 20) -> Tuple[List[Identity], int]:
    policy.require(actor, Action.MANAGE_USERS, message="Not authorized to list users")
    query = db.query(Identity)
    if role:
        query = query.filter(Identity.role == role)
    if search:
        pattern = "%{}%".format(search)
        query = query.filter(Identity.username.ilike(pattern) | Identity.email.ilike(pattern))
    return paginate(query.order_by(Identity.username.asc()), page, per_page)


def create_identity(db: Session, actor: Identity, data: dict) -> Identity:
    """Admin registration of an identity; student/faculty ones must name an existing profile."""
    policy.require(actor, Action.MANAGE_USERS, message="Not authorized to create users")
    profile = None
    if data.get("profile_id"):
        profile = ProfileRef(data.get("role"), data["profile_id"])
        if identity_service.resolve_profile(db, profile) is None:
            raise ValidationError.single("profile_id", "Profile not found")
        if identity_service.find_identity_for_profile(db, profile.kind, profile.id):
            raise Duplicate("Profile already has an account")
    return identity_service.register(
        db, data["username"], data["email"], data["password"], data["role"],
        profile=profile, is_verified=data.get("is_verified", False),
    )


def get_identity(db: Session, actor: Identity, identity_id: str) -> Identity:
    target = identity_service.get_identity(db, identity_id)
    policy.require(actor, Action.READ_USER, target, message="Not authorized to view this user")
    return target


def update_identity(db: Session, actor: Identity, identity_id: str, changes: dict) -> Identity:
    """Admins may change email and the active/verified flags; owners only their email."""
    target = identity_service.get_identity(db, identity_id)
    policy.require(actor, Action.UPDATE_USER, target, message="Not authorized to update this user")

    if actor.role != "admin":
        forbidden = sorted(k for k in changes if k != "email")
        if forbidden:
            raise ValidationError([{"field": k, "msg": "Only an admin can change {}".format(k)} for k in forbidden])

    if changes.get("email"):
        email = changes["email"].strip().lower()
        if db.query(Identity).filter(Identity.email == email, Identity.id != target.id).first():
            raise Duplicate("Email already in use")
        target.email = email
    for flag in ("is_active", "is_verified"):
        if changes.get(flag) is not None:
            setattr(target, flag, changes[flag])

    _commit(db, "Email already in use")
    log_with_context(logger, "INFO", "Updated user {}".format(target.username),
                     context={"identity_id": target.id}, extra_data={"fields": sorted(changes)})
    return target


def delete_identity(db: Session, actor: Identity, identity_id: str):
    """Delete an identity; accounts with a profile go through the profile cascade."""
    policy.require(actor, Action.MANAGE_USERS, message="Not authorized to delete users")
    target = identity_service.get_identity(db, identity_id)

    ref = target.profile
    if ref is not None and ref.kind == "student":
        return enrollment.delete_student(db, actor, ref.id)
    if ref is not None and ref.kind == "faculty":
        return enrollment.delete_faculty(db, actor, ref.id)

    if target.id == actor.id:
        raise ValidationError.single("id", "You cannot delete your own account")
    username = target.username
    db.delete(target)
    db.commit()
    log_with_context(logger, "INFO", "Deleted user {}".format(username),
                     context={"identity_id": identity_id})
