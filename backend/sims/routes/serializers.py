"""
Serializers turning ORM records into API response dicts.

Password hashes and reset/verification tokens are never included.
"""

from typing import List, Optional

from sims.models.course import Course
from sims.models.enrollment import Enrollment
from sims.models.faculty import Faculty
from sims.models.identity import Identity
from sims.models.student import Student
from sims.services.policy import Action, Decision, authorize


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def pagination(page: int, per_page: int, total: int) -> dict:
    return {
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": (total + per_page - 1) // per_page
    }


def serialize_identity(identity: Identity) -> dict:
    profile = identity.profile
    return {
        "id": str(identity.id),
        "username": identity.username,
        "email": identity.email,
        "role": identity.role,
        "profile": {"kind": profile.kind, "id": profile.id} if profile else None,
        "is_active": identity.is_active,
        "is_verified": identity.is_verified,
        "last_login": _iso(identity.last_login),
        "created_at": _iso(identity.created_at),
    }


def faculty_summary(faculty: Faculty) -> dict:
    return {
        "id": str(faculty.id),
        "first_name": faculty.first_name,
        "last_name": faculty.last_name,
        "full_name": faculty.full_name,
        "email": faculty.email,
    }


def course_summary(course: Course) -> dict:
    return {
        "id": str(course.id),
        "course_code": course.course_code,
        "course_name": course.course_name,
        "credits": course.credits,
    }


def serialize_roster_entry(entry: Enrollment, actor: Optional[Identity] = None) -> dict:
    """
    One roster line. Grade and attendance belong to the student record, so
    they are only shown to callers allowed to read that student.
    """
    student = entry.student
    result = {
        "student": {
            "id": str(student.id),
            "roll_number": student.roll_number,
            "full_name": student.full_name,
        } if student else {"id": str(entry.student_id)},
        "enrollment_date": _iso(entry.enrollment_date),
    }
    if student is not None and authorize(actor, Action.READ_STUDENT, student) is Decision.ALLOW:
        result["grade"] = entry.grade
        result["attendance"] = {
            "present": entry.attendance_present,
            "total": entry.attendance_total,
            "percentage": round(entry.attendance_percentage, 2),
        }
    return result


def serialize_course(course: Course, actor: Optional[Identity] = None,
                     include_roster: bool = True) -> dict:
    result = {
        "id": str(course.id),
        "course_code": course.course_code,
        "course_name": course.course_name,
        "department": course.department,
        "credits": course.credits,
        "description": course.description,
        "semester": course.semester,
        "capacity": course.capacity,
        "current_enrollment": course.current_enrollment,
        "available_seats": course.available_seats,
        "is_full": course.is_full(),
        "faculty": [faculty_summary(f) for f in course.faculty],
        "prerequisites": [
            {"id": str(p.id), "course_code": p.course_code, "course_name": p.course_name}
            for p in course.prerequisites
        ],
        "schedule": course.schedule,
        "status": course.status,
        "syllabus": course.syllabus,
        "assessments": course.assessments or [],
        "created_at": _iso(course.created_at),
        "updated_at": _iso(course.updated_at),
    }
    if include_roster:
        result["enrolled_students"] = [serialize_roster_entry(e, actor) for e in course.enrolled_students]
    return result


def serialize_student_course(entry: Enrollment) -> dict:
    return {
        "course": course_summary(entry.course),
        "enrollment_date": _iso(entry.enrollment_date),
        "grade": entry.grade,
        "attendance": {
            "present": entry.attendance_present,
            "total": entry.attendance_total,
            "percentage": round(entry.attendance_percentage, 2),
        },
    }


def serialize_student(student: Student) -> dict:
    return {
        "id": str(student.id),
        "roll_number": student.roll_number,
        "user": str(student.user_id),
        "name": {
            "first_name": student.first_name,
            "middle_name": student.middle_name,
            "last_name": student.last_name,
        },
        "full_name": student.full_name,
        "date_of_birth": _iso(student.date_of_birth),
        "gender": student.gender,
        "contact_info": {
            "email": student.email,
            "phone": student.phone,
            "address": student.address,
        },
        "academic": {
            "branch": student.branch,
            "semester": student.semester,
            "batch": student.batch,
            "section": student.section,
            "cgpa": student.cgpa,
            "backlog_count": student.backlog_count,
        },
        "courses": [serialize_student_course(e) for e in student.courses],
        "attendance_percentage": round(student.attendance_percentage, 2),
        "parent_info": student.parent_info,
        "documents": student.documents or [],
        "fees": student.fees or [],
        "is_active": student.is_active,
        "created_at": _iso(student.created_at),
        "updated_at": _iso(student.updated_at),
    }


def serialize_faculty(faculty: Faculty) -> dict:
    return {
        "id": str(faculty.id),
        "employee_id": faculty.employee_id,
        "first_name": faculty.first_name,
        "last_name": faculty.last_name,
        "full_name": faculty.full_name,
        "email": faculty.email,
        "department": faculty.department,
        "position": faculty.position,
        "date_of_joining": _iso(faculty.date_of_joining),
        "qualifications": faculty.qualifications or [],
        "specializations": faculty.specializations or [],
        "research_interests": faculty.research_interests or [],
        "publications": faculty.publications or [],
        "office_hours": faculty.office_hours or [],
        "contact_number": faculty.contact_number,
        "courses": [course_summary(c) for c in faculty.courses],
        "is_active": faculty.is_active,
        "last_login": _iso(faculty.last_login),
        "created_at": _iso(faculty.created_at),
    }


def serialize_courses(courses: List[Course]) -> List[dict]:
    return [serialize_course(c, include_roster=False) for c in courses]
