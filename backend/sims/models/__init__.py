from sims.models.identity import Identity, ProfileRef
from sims.models.student import Student
from sims.models.faculty import Faculty
from sims.models.course import Course, course_faculty, course_prerequisites
from sims.models.enrollment import Enrollment

__all__ = [
    "Identity", "ProfileRef", "Student", "Faculty", "Course", "Enrollment",
    "course_faculty", "course_prerequisites",
]
