"""
Error taxonomy for the student information backend.

Services raise these exceptions synchronously; the exception handlers in
``sims.main`` turn them into JSON responses. Each class carries the HTTP
status it maps to and renders either ``{"msg": ...}`` or, for field-level
validation failures, ``{"errors": [...]}``.
"""

from typing import List, Optional


class SimsError(Exception):
    """Base class for every error the services raise on purpose."""

    status_code = 500
    default_message = "Server Error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_body(self) -> dict:
        return {"msg": self.message}


class ValidationError(SimsError):
    """Malformed or missing input, reported field by field."""

    status_code = 400
    default_message = "Invalid input"

    def __init__(self, errors: List[dict], message: Optional[str] = None):
        super().__init__(message)
        self.errors = errors

    def to_body(self) -> dict:
        return {"errors": self.errors}

    @classmethod
    def single(cls, field: str, msg: str) -> "ValidationError":
        return cls([{"field": field, "msg": msg}], message=msg)


class NotFound(SimsError):
    status_code = 404
    default_message = "Not found"


class Duplicate(SimsError):
    """Unique constraint violation (username, email, roll number, ...)."""

    status_code = 400
    default_message = "Record already exists"


class Unauthenticated(SimsError):
    status_code = 401
    default_message = "No token, authorization denied"


class InvalidCredentials(Unauthenticated):
    default_message = "Invalid login credentials"


class AccountLocked(Unauthenticated):
    default_message = "Account is temporarily locked"


class Forbidden(SimsError):
    status_code = 403
    default_message = "Not authorized"


class DomainConflict(SimsError):
    """A workflow rule rejected the operation."""

    status_code = 400
    default_message = "Operation conflicts with current state"


class CourseFull(DomainConflict):
    default_message = "Course is full"


class AlreadyEnrolled(DomainConflict):
    default_message = "Student already enrolled in this course"


class NotEnrolled(DomainConflict):
    default_message = "Student not enrolled in this course"


class HasEnrollments(DomainConflict):
    default_message = "Cannot delete course with enrolled students"


class InvalidGrade(DomainConflict):
    default_message = "Invalid grade"


class AlreadyAssigned(DomainConflict):
    default_message = "Faculty already assigned to this course"


class NotAssigned(DomainConflict):
    default_message = "Faculty not assigned to this course"


class DependencyFailure(SimsError):
    """The store or the email collaborator is unavailable."""

    status_code = 500
    default_message = "Server Error"


class DeliveryError(DependencyFailure):
    default_message = "Email could not be sent"
