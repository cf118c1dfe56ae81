"""
Enrollment Service - the enrollment/grading workflow.

Per (student, course) pair the states are Unenrolled -> Enrolled -> Graded,
and withdrawal returns to Unenrolled. Re-enrolling after a withdrawal creates
a fresh roster entry, so the grade starts again at "I" (incomplete).

Every operation:
1. Authorizes the actor through ``sims.services.policy`` before any write
2. Runs all checks before mutating anything, so a failed call leaves the
   store untouched
3. Commits once and logs the outcome on the ``enrollment`` channel

Capacity under concurrency: the roster is re-read immediately before the
capacity and duplicate checks. That is best-effort; two racing enrolls can
both pass the capacity check. With ``strict`` set the course row is locked
(SELECT ... FOR UPDATE) for the check-and-insert, which gives exact
exclusion on PostgreSQL. Duplicate entries are always prevented by the
(course_id, student_id) unique constraint.
"""

from typing import List

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sims.clock import utcnow
from sims.errors import (
    AlreadyAssigned, AlreadyEnrolled, CourseFull, HasEnrollments, InvalidGrade,
    NotAssigned, NotEnrolled, NotFound, ValidationError,
)
from sims.logging_config import get_logger, log_with_context
from sims.models.course import Course, course_prerequisites
from sims.models.enrollment import Enrollment, GRADES, INCOMPLETE
from sims.models.faculty import Faculty
from sims.models.identity import Identity
from sims.models.student import Student
from sims.services import policy
from sims.services.identity import find_identity_for_profile
from sims.services.policy import Action

logger = get_logger("enrollment")


def get_course(db: Session, course_id: str, lock: bool = False) -> Course:
    query = db.query(Course).filter(Course.id == course_id)
    if lock:
        query = query.with_for_update()
    course = query.first()
    if course is None:
        raise NotFound("Course not found")
    return course


def get_student(db: Session, student_id: str) -> Student:
    student = db.get(Student, student_id)
    if student is None:
        raise NotFound("Student not found")
    return student


def get_faculty(db: Session, faculty_id: str) -> Faculty:
    faculty = db.get(Faculty, faculty_id)
    if faculty is None:
        raise NotFound("Faculty member not found")
    return faculty


def _roster_entry(db: Session, course_id: str, student_id: str):
    return db.query(Enrollment).filter(
        Enrollment.course_id == course_id,
        Enrollment.student_id == student_id
    ).first()


def _commit(db: Session, conflict):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise conflict


def _roster_ids(db: Session, course_id: str) -> List[str]:
    return [row.student_id for row in db.query(Enrollment.student_id).filter(
        Enrollment.course_id == course_id
    ).all()]


# ── Enroll / unenroll ────────────────────────────────────────

def _enroll(db: Session, course_id: str, student_id: str, strict: bool) -> Enrollment:
    course = get_course(db, course_id, lock=strict)
    student = get_student(db, student_id)

    # Fresh read of the roster right before the checks
    roster = _roster_ids(db, course.id)

    if len(roster) >= course.capacity:
        raise CourseFull()
    if student.id in roster:
        raise AlreadyEnrolled()

    entry = Enrollment(
        course_id=course.id,
        student_id=student.id,
        enrollment_date=utcnow(),
        grade=INCOMPLETE,
    )
    db.add(entry)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        # A course or student removed since the checks is missing, not a duplicate
        if db.get(Course, course_id) is None:
            raise NotFound("Course not found")
        if db.get(Student, student_id) is None:
            raise NotFound("Student not found")
        raise AlreadyEnrolled()

    log_with_context(logger, "INFO", "Student enrolled in {}".format(course.course_code),
                     context={"course_id": course.id, "student_id": student.id},
                     extra_data={"roster_size": len(roster) + 1, "capacity": course.capacity})
    return entry


def enroll(db: Session, actor: Identity, course_id: str, student_id: str,
           strict: bool = False) -> Enrollment:
    """
    Staff action: put ``student_id`` on the roster of ``course_id``.

    Raises:
        NotFound: course or student absent
        CourseFull: roster length has reached capacity
        AlreadyEnrolled: the student is already on the roster
    """
    policy.require(actor, Action.MANAGE_ENROLLMENT,
                   message="Not authorized to enroll students in courses")
    return _enroll(db, course_id, student_id, strict)


def self_enroll(db: Session, actor: Identity, course_id: str, strict: bool = False) -> Enrollment:
    """Student self-service enroll into ``course_id``."""
    policy.require(actor, Action.SELF_ENROLL, message="Only students can enroll in courses")
    return _enroll(db, course_id, actor.profile_id, strict)


def _unenroll(db: Session, course_id: str, student_id: str):
    course = get_course(db, course_id)
    student = get_student(db, student_id)

    entry = _roster_entry(db, course.id, student.id)
    if entry is None:
        raise NotEnrolled()

    db.delete(entry)
    db.commit()

    log_with_context(logger, "INFO", "Student removed from {}".format(course.course_code),
                     context={"course_id": course.id, "student_id": student.id})
    return course


def unenroll(db: Session, actor: Identity, course_id: str, student_id: str) -> Course:
    """
    Staff action: take ``student_id`` off the roster of ``course_id``.

    Raises:
        NotFound: course or student absent
        NotEnrolled: no roster entry for the student
    """
    policy.require(actor, Action.MANAGE_ENROLLMENT,
                   message="Not authorized to remove students from courses")
    return _unenroll(db, course_id, student_id)


def self_withdraw(db: Session, actor: Identity, course_id: str) -> Course:
    policy.require(actor, Action.SELF_WITHDRAW, message="Only students can withdraw from courses")
    return _unenroll(db, course_id, actor.profile_id)


# ── Grades and attendance ────────────────────────────────────

def assign_grade(db: Session, actor: Identity, course_id: str, student_id: str, grade: str) -> Enrollment:
    """
    Overwrite the grade of a roster entry.

    Raises:
        NotFound: course absent or student not on the roster
        InvalidGrade: grade outside A+, A, B+, B, C+, C, D, F, I, W
    """
    course = get_course(db, course_id)
    policy.require(actor, Action.ASSIGN_GRADE, course, message="Not authorized to update grades")

    entry = _roster_entry(db, course.id, student_id)
    if entry is None:
        raise NotFound("Student not found in this course")
    if grade not in GRADES:
        raise InvalidGrade("Invalid grade: {}. Allowed: {}".format(grade, ", ".join(GRADES)))

    previous = entry.grade
    entry.grade = grade
    db.commit()

    log_with_context(logger, "INFO", "Grade {} recorded in {}".format(grade, course.course_code),
                     context={"course_id": course.id, "student_id": student_id},
                     extra_data={"previous_grade": previous})
    return entry


def record_attendance(db: Session, actor: Identity, course_id: str, student_id: str,
                      present: int, total: int) -> Enrollment:
    """Set the present/total attendance counters of a roster entry."""
    course = get_course(db, course_id)
    policy.require(actor, Action.RECORD_ATTENDANCE, course, message="Not authorized to record attendance")

    entry = _roster_entry(db, course.id, student_id)
    if entry is None:
        raise NotFound("Student not found in this course")
    if present < 0 or total < 0 or present > total:
        raise ValidationError.single("present", "Attendance must satisfy 0 <= present <= total")

    entry.attendance_present = present
    entry.attendance_total = total
    db.commit()

    log_with_context(logger, "INFO", "Attendance updated in {}".format(course.course_code),
                     context={"course_id": course.id, "student_id": student_id},
                     extra_data={"present": present, "total": total})
    return entry


# ── Faculty assignment ───────────────────────────────────────

def assign_faculty(db: Session, actor: Identity, course_id: str, faculty_id: str) -> Course:
    policy.require(actor, Action.MANAGE_COURSE_FACULTY, message="Not authorized to assign courses")
    course = get_course(db, course_id)
    faculty = get_faculty(db, faculty_id)

    if faculty.id in course.faculty_ids():
        raise AlreadyAssigned()

    course.faculty.append(faculty)
    _commit(db, AlreadyAssigned())

    log_with_context(logger, "INFO", "Faculty assigned to {}".format(course.course_code),
                     context={"course_id": course.id, "faculty_id": faculty.id})
    return course


def remove_faculty(db: Session, actor: Identity, course_id: str, faculty_id: str) -> Course:
    policy.require(actor, Action.MANAGE_COURSE_FACULTY, message="Not authorized to remove course assignments")
    course = get_course(db, course_id)
    faculty = get_faculty(db, faculty_id)

    if faculty.id not in course.faculty_ids():
        raise NotAssigned()

    # By value, never by position
    course.faculty.remove(faculty)
    db.commit()

    log_with_context(logger, "INFO", "Faculty removed from {}".format(course.course_code),
                     context={"course_id": course.id, "faculty_id": faculty.id})
    return course


# ── Deletes with referential cleanup ─────────────────────────

def delete_course(db: Session, actor: Identity, course_id: str):
    """
    Delete a course with an empty roster.

    The course is dropped from every faculty member's course list and from
    other courses' prerequisite lists.

    Raises:
        HasEnrollments: the roster is not empty
    """
    policy.require(actor, Action.DELETE_COURSE, message="Not authorized to delete courses")
    course = get_course(db, course_id)

    enrolled = db.query(Enrollment).filter(Enrollment.course_id == course.id).count()
    if enrolled > 0:
        raise HasEnrollments()

    course_code = course.course_code
    faculty_count = len(course.faculty)
    course.faculty.clear()
    course.prerequisites.clear()
    db.execute(delete(course_prerequisites).where(course_prerequisites.c.prerequisite_id == course_id))
    db.delete(course)
    db.commit()

    log_with_context(logger, "INFO", "Course {} deleted".format(course_code),
                     context={"course_id": course_id},
                     extra_data={"faculty_unassigned": faculty_count})


def delete_student(db: Session, actor: Identity, student_id: str):
    """Delete a student, their roster entries in every course and their identity."""
    policy.require(actor, Action.DELETE_STUDENT, message="Not authorized to delete students")
    student = get_student(db, student_id)
    roll_number = student.roll_number

    entries = db.query(Enrollment).filter(Enrollment.student_id == student.id).all()
    for entry in entries:
        db.delete(entry)
    db.flush()

    identity = student.user
    db.delete(student)
    db.flush()
    if identity is not None:
        db.delete(identity)
    db.commit()

    log_with_context(logger, "INFO", "Student {} deleted".format(roll_number),
                     context={"student_id": student_id},
                     extra_data={"rosters_cleaned": len(entries)})


def delete_faculty(db: Session, actor: Identity, faculty_id: str):
    """Delete a faculty member, their course assignments and their identity."""
    policy.require(actor, Action.DELETE_FACULTY, message="Not authorized to delete faculty members")
    faculty = get_faculty(db, faculty_id)
    employee_id = faculty.employee_id

    course_count = len(faculty.courses)
    faculty.courses.clear()
    db.flush()

    identity = find_identity_for_profile(db, "faculty", faculty.id)
    db.delete(faculty)
    if identity is not None:
        db.delete(identity)
    db.commit()

    log_with_context(logger, "INFO", "Faculty member {} deleted".format(employee_id),
                     context={"faculty_id": faculty_id},
                     extra_data={"courses_unassigned": course_count})


# ── Read views ───────────────────────────────────────────────

def student_courses(db: Session, actor: Identity, student_id: str) -> List[Enrollment]:
    student = get_student(db, student_id)
    policy.require(actor, Action.READ_STUDENT, student,
                   message="Not authorized to view this student's courses")
    return sorted(student.courses, key=lambda e: e.course.course_code)


def faculty_courses(db: Session, actor: Identity, faculty_id: str) -> List[Course]:
    policy.require(actor, Action.READ_FACULTY)
    return list(get_faculty(db, faculty_id).courses)
