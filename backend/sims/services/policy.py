"""
Access-control policy.

``authorize`` is a pure function of (identity, action, resource) returning
ALLOW or DENY from plain role and ownership checks: no role hierarchy and no
delegation. ``require`` is the form services call before touching the store;
it raises ``Unauthenticated`` when an identity is needed but missing and
``Forbidden`` otherwise.
"""

from enum import Enum
from typing import Optional

from sims.errors import Forbidden, Unauthenticated
from sims.models.identity import Identity


class Decision(Enum):
    ALLOW = "allow"
    DENY = "deny"


class Action(Enum):
    CREATE_STUDENT = "create_student"
    DELETE_STUDENT = "delete_student"
    UPDATE_STUDENT = "update_student"
    READ_STUDENT = "read_student"
    LIST_STUDENTS = "list_students"

    CREATE_FACULTY = "create_faculty"
    DELETE_FACULTY = "delete_faculty"
    UPDATE_FACULTY = "update_faculty"
    READ_FACULTY = "read_faculty"

    CREATE_COURSE = "create_course"
    DELETE_COURSE = "delete_course"
    UPDATE_COURSE = "update_course"
    READ_COURSE = "read_course"

    SELF_ENROLL = "self_enroll"
    SELF_WITHDRAW = "self_withdraw"
    MANAGE_ENROLLMENT = "manage_enrollment"
    MANAGE_COURSE_FACULTY = "manage_course_faculty"
    ASSIGN_GRADE = "assign_grade"
    RECORD_ATTENDANCE = "record_attendance"

    MANAGE_USERS = "manage_users"
    READ_USER = "read_user"
    UPDATE_USER = "update_user"


# Actions open to unauthenticated callers
PUBLIC_ACTIONS = {Action.READ_COURSE}

ADMIN_ONLY = {
    Action.CREATE_STUDENT, Action.DELETE_STUDENT,
    Action.CREATE_FACULTY, Action.DELETE_FACULTY,
    Action.DELETE_COURSE, Action.MANAGE_USERS,
}

STAFF = {"admin", "faculty"}


def _is_admin(identity: Identity) -> bool:
    return identity.role == "admin"


def _teaches(identity: Identity, course) -> bool:
    return (
        identity.role == "faculty"
        and identity.profile_id is not None
        and identity.profile_id in {f.id for f in course.faculty}
    )


def _allowed(identity: Identity, action: Action, resource) -> bool:
    if action in ADMIN_ONLY:
        return _is_admin(identity)

    if action == Action.CREATE_COURSE:
        return identity.role in STAFF

    if action == Action.UPDATE_STUDENT:
        return _is_admin(identity) or identity.owns("student", resource.id)

    if action == Action.UPDATE_FACULTY:
        return _is_admin(identity) or identity.owns("faculty", resource.id)

    if action == Action.READ_STUDENT:
        return identity.role in STAFF or identity.owns("student", resource.id)

    if action == Action.LIST_STUDENTS:
        return identity.role in STAFF

    if action == Action.READ_FACULTY:
        return True

    if action in (Action.UPDATE_COURSE, Action.ASSIGN_GRADE, Action.RECORD_ATTENDANCE):
        return _is_admin(identity) or _teaches(identity, resource)

    if action in (Action.SELF_ENROLL, Action.SELF_WITHDRAW):
        return identity.role == "student" and identity.profile_kind == "student"

    if action in (Action.MANAGE_ENROLLMENT, Action.MANAGE_COURSE_FACULTY):
        return identity.role in STAFF

    if action in (Action.READ_USER, Action.UPDATE_USER):
        return _is_admin(identity) or identity.id == resource.id

    return False


def authorize(identity: Optional[Identity], action: Action, resource=None) -> Decision:
    """
    Decide whether ``identity`` may perform ``action`` on ``resource``.

    Args:
        identity: The authenticated identity, or None for anonymous callers
        action: What the caller wants to do
        resource: The Student, Faculty, Course or Identity acted upon, when
            the rule depends on ownership or course membership

    Returns:
        Decision.ALLOW or Decision.DENY
    """
    if action in PUBLIC_ACTIONS:
        return Decision.ALLOW
    if identity is None or not identity.is_active:
        return Decision.DENY
    return Decision.ALLOW if _allowed(identity, action, resource) else Decision.DENY


def require(identity: Optional[Identity], action: Action, resource=None,
            message: Optional[str] = None):
    """Raise unless ``authorize`` allows the action."""
    if authorize(identity, action, resource) is Decision.ALLOW:
        return
    if identity is None:
        raise Unauthenticated()
    raise Forbidden(message)
