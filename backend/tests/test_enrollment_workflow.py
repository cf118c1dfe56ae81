"""
Enrollment/grading workflow tests.

Covers roster capacity and uniqueness, grading, attendance, faculty
assignment and the referential cleanup performed by deletes.
"""
import pytest

from sims.errors import (
    AlreadyAssigned, AlreadyEnrolled, CourseFull, Forbidden, HasEnrollments,
    InvalidGrade, NotAssigned, NotEnrolled, NotFound, ValidationError,
)
from sims.models.course import Course
from sims.models.enrollment import Enrollment
from sims.models.faculty import Faculty
from sims.models.identity import Identity
from sims.models.student import Student
from sims.services import catalog, enrollment


def roster_ids(db, course_id):
    db.expire_all()
    return [e.student_id for e in db.get(Course, course_id).enrolled_students]


def test_capacity_scenario(db, admin, make_student, make_course):
    course = make_course("CS101", capacity=2)
    a, b, c = make_student("R001"), make_student("R002"), make_student("R003")

    enrollment.enroll(db, admin, course.id, a.id)
    assert roster_ids(db, course.id) == [a.id]
    enrollment.enroll(db, admin, course.id, b.id)
    assert set(roster_ids(db, course.id)) == {a.id, b.id}

    with pytest.raises(CourseFull):
        enrollment.enroll(db, admin, course.id, c.id)
    assert len(roster_ids(db, course.id)) == 2

    enrollment.unenroll(db, admin, course.id, a.id)
    assert roster_ids(db, course.id) == [b.id]

    enrollment.enroll(db, admin, course.id, c.id)
    assert set(roster_ids(db, course.id)) == {b.id, c.id}
    assert db.get(Course, course.id).is_full()


def test_capacity_scenario_with_locked_course_row(db, admin, make_student, make_course):
    course = make_course("CS100", capacity=2)
    a, b, c = make_student("R004"), make_student("R005"), make_student("R006")

    enrollment.enroll(db, admin, course.id, a.id, strict=True)
    enrollment.enroll(db, admin, course.id, b.id, strict=True)
    with pytest.raises(CourseFull):
        enrollment.enroll(db, admin, course.id, c.id, strict=True)
    assert set(roster_ids(db, course.id)) == {a.id, b.id}

    enrollment.unenroll(db, admin, course.id, a.id)
    enrollment.enroll(db, admin, course.id, c.id, strict=True)
    assert set(roster_ids(db, course.id)) == {b.id, c.id}


def test_duplicate_insert_after_stale_roster_read(db, admin, make_student, make_course, monkeypatch):
    course = make_course("CS108")
    student = make_student("R011")
    enrollment.enroll(db, admin, course.id, student.id)

    # Another request enrolled the student after this one read the roster
    monkeypatch.setattr(enrollment, "_roster_ids", lambda db, course_id: [])
    with pytest.raises(AlreadyEnrolled):
        enrollment.enroll(db, admin, course.id, student.id, strict=True)

    assert roster_ids(db, course.id) == [student.id]


def test_student_removed_before_insert_is_not_found(db, admin, make_course, monkeypatch):
    course = make_course("CS109")

    monkeypatch.setattr(enrollment, "get_student", lambda db, student_id: Student(id=student_id))
    with pytest.raises(NotFound) as excinfo:
        enrollment.enroll(db, admin, course.id, "removed-student")

    assert excinfo.value.message == "Student not found"
    assert roster_ids(db, course.id) == []


def test_enrolling_twice_fails_without_changing_roster(db, admin, make_student, make_course):
    course = make_course("CS102")
    student = make_student("R010")

    enrollment.enroll(db, admin, course.id, student.id)
    with pytest.raises(AlreadyEnrolled):
        enrollment.enroll(db, admin, course.id, student.id)

    assert roster_ids(db, course.id) == [student.id]


def test_unenroll_of_non_member_fails(db, admin, make_student, make_course):
    course = make_course("CS103")
    member, outsider = make_student("R020"), make_student("R021")
    enrollment.enroll(db, admin, course.id, member.id)

    with pytest.raises(NotEnrolled):
        enrollment.unenroll(db, admin, course.id, outsider.id)

    assert roster_ids(db, course.id) == [member.id]


def test_enroll_unknown_course_or_student(db, admin, make_student, make_course):
    course = make_course("CS104")
    student = make_student("R030")

    with pytest.raises(NotFound):
        enrollment.enroll(db, admin, "missing-course", student.id)
    with pytest.raises(NotFound):
        enrollment.enroll(db, admin, course.id, "missing-student")


def test_invalid_grade_leaves_grade_untouched(db, admin, make_student, make_course):
    course = make_course("CS105")
    student = make_student("R040")
    enrollment.enroll(db, admin, course.id, student.id)
    enrollment.assign_grade(db, admin, course.id, student.id, "A")

    with pytest.raises(InvalidGrade):
        enrollment.assign_grade(db, admin, course.id, student.id, "Z")

    db.expire_all()
    entry = db.query(Enrollment).filter_by(course_id=course.id, student_id=student.id).one()
    assert entry.grade == "A"


def test_grade_for_student_not_on_roster(db, admin, make_student, make_course):
    course = make_course("CS106")
    student = make_student("R050")

    with pytest.raises(NotFound) as excinfo:
        enrollment.assign_grade(db, admin, course.id, student.id, "B")
    assert excinfo.value.message == "Student not found in this course"


def test_reenroll_resets_grade_to_incomplete(db, admin, make_student, make_course):
    course = make_course("CS107")
    student = make_student("R060")

    enrollment.enroll(db, admin, course.id, student.id)
    enrollment.assign_grade(db, admin, course.id, student.id, "B+")
    enrollment.unenroll(db, admin, course.id, student.id)
    entry = enrollment.enroll(db, admin, course.id, student.id)

    assert entry.grade == "I"


def test_course_and_student_views_agree(db, admin, make_student, make_course):
    first, second, third = make_course("CS110"), make_course("CS111"), make_course("CS112")
    student = make_student("R070")

    enrollment.enroll(db, admin, first.id, student.id)
    enrollment.enroll(db, admin, third.id, student.id)
    enrollment.unenroll(db, admin, first.id, student.id)
    enrollment.enroll(db, admin, second.id, student.id)

    db.expire_all()
    from_student = {e.course_id for e in db.get(Student, student.id).courses}
    from_courses = {
        c.id for c in db.query(Course).all()
        if student.id in [e.student_id for e in c.enrolled_students]
    }
    assert from_student == from_courses == {second.id, third.id}


def test_capacity_shrink_is_not_reconciled(db, admin, make_student, make_course):
    course = make_course("CS113", capacity=3)
    students = [make_student("R08{}".format(i)) for i in range(3)]
    for s in students[:2]:
        enrollment.enroll(db, admin, course.id, s.id)

    updated = catalog.update_course(db, admin, course.id, {"capacity": 1})

    assert updated.capacity == 1
    assert updated.current_enrollment == 2
    assert updated.available_seats == -1
    with pytest.raises(CourseFull):
        enrollment.enroll(db, admin, course.id, students[2].id)


def test_record_attendance(db, admin, make_student, make_course):
    course = make_course("CS114")
    student = make_student("R090")
    enrollment.enroll(db, admin, course.id, student.id)

    entry = enrollment.record_attendance(db, admin, course.id, student.id, 3, 4)
    assert entry.attendance_percentage == 75.0

    with pytest.raises(ValidationError):
        enrollment.record_attendance(db, admin, course.id, student.id, 5, 4)
    db.expire_all()
    assert db.get(Student, student.id).attendance_percentage == 75.0


def test_assign_and_remove_faculty(db, admin, make_faculty, make_course):
    course = make_course("CS120")
    member = make_faculty("F001")

    enrollment.assign_faculty(db, admin, course.id, member.id)
    with pytest.raises(AlreadyAssigned):
        enrollment.assign_faculty(db, admin, course.id, member.id)
    db.expire_all()
    assert db.get(Course, course.id).faculty_ids() == [member.id]
    assert [c.id for c in db.get(Faculty, member.id).courses] == [course.id]

    enrollment.remove_faculty(db, admin, course.id, member.id)
    with pytest.raises(NotAssigned):
        enrollment.remove_faculty(db, admin, course.id, member.id)
    db.expire_all()
    assert db.get(Course, course.id).faculty_ids() == []


def test_delete_course_requires_empty_roster(db, admin, make_student, make_course):
    course = make_course("CS130")
    student = make_student("R100")
    enrollment.enroll(db, admin, course.id, student.id)

    with pytest.raises(HasEnrollments):
        enrollment.delete_course(db, admin, course.id)
    assert catalog.get_course(db, None, course.id).course_code == "CS130"

    enrollment.unenroll(db, admin, course.id, student.id)
    enrollment.delete_course(db, admin, course.id)

    with pytest.raises(NotFound):
        catalog.get_course(db, None, course.id)


def test_delete_course_clears_faculty_and_prerequisite_links(db, admin, make_faculty, make_course):
    member = make_faculty("F010")
    intro = make_course("CS140", faculty=[])
    advanced = make_course("CS240")
    catalog.update_course(db, admin, advanced.id, {"prerequisites": [intro.id]})
    enrollment.assign_faculty(db, admin, intro.id, member.id)

    enrollment.delete_course(db, admin, intro.id)

    db.expire_all()
    assert db.get(Course, advanced.id).prerequisites == []
    assert db.get(Faculty, member.id).courses == []


def test_delete_faculty_removes_every_assignment(db, admin, make_faculty, make_course, account_of):
    member = make_faculty("F020")
    other = make_faculty("F021")
    courses = [make_course("CS15{}".format(i)) for i in range(2)]
    for course in courses:
        enrollment.assign_faculty(db, admin, course.id, member.id)
        enrollment.assign_faculty(db, admin, course.id, other.id)
    account_id = account_of(member).id

    enrollment.delete_faculty(db, admin, member.id)

    db.expire_all()
    for course in courses:
        assert db.get(Course, course.id).faculty_ids() == [other.id]
    assert db.get(Faculty, member.id) is None
    assert db.get(Identity, account_id) is None


def test_delete_student_removes_roster_entries_and_identity(db, admin, make_student, make_course):
    courses = [make_course("CS16{}".format(i)) for i in range(2)]
    student = make_student("R110")
    keeper = make_student("R111")
    for course in courses:
        enrollment.enroll(db, admin, course.id, student.id)
        enrollment.enroll(db, admin, course.id, keeper.id)
    student_id, account_id = student.id, student.user_id

    enrollment.delete_student(db, admin, student_id)

    for course in courses:
        assert roster_ids(db, course.id) == [keeper.id]
    assert db.get(Student, student_id) is None
    assert db.get(Identity, account_id) is None


def test_students_cannot_use_staff_enrollment(db, make_student, make_course, account_of):
    course = make_course("CS170")
    student = make_student("R120")

    with pytest.raises(Forbidden):
        enrollment.enroll(db, account_of(student), course.id, student.id)
    assert roster_ids(db, course.id) == []


def test_self_enroll_and_withdraw(db, make_student, make_course, account_of):
    course = make_course("CS171")
    student = make_student("R130")
    account = account_of(student)

    enrollment.self_enroll(db, account, course.id)
    assert roster_ids(db, course.id) == [student.id]

    enrollment.self_withdraw(db, account, course.id)
    assert roster_ids(db, course.id) == []

    with pytest.raises(NotEnrolled):
        enrollment.self_withdraw(db, account, course.id)


def test_only_teaching_faculty_can_grade(db, admin, make_student, make_faculty, make_course, account_of):
    course = make_course("CS180")
    student = make_student("R140")
    lecturer, outsider = make_faculty("F030"), make_faculty("F031")
    enrollment.assign_faculty(db, admin, course.id, lecturer.id)
    enrollment.enroll(db, admin, course.id, student.id)

    with pytest.raises(Forbidden):
        enrollment.assign_grade(db, account_of(outsider), course.id, student.id, "A")

    entry = enrollment.assign_grade(db, account_of(lecturer), course.id, student.id, "A")
    assert entry.grade == "A"


def test_student_courses_visible_to_owner_only(db, admin, make_student, make_course, account_of):
    course = make_course("CS190")
    owner, other = make_student("R150"), make_student("R151")
    enrollment.enroll(db, admin, course.id, owner.id)

    entries = enrollment.student_courses(db, account_of(owner), owner.id)
    assert [e.course.course_code for e in entries] == ["CS190"]

    with pytest.raises(Forbidden):
        enrollment.student_courses(db, account_of(other), owner.id)
