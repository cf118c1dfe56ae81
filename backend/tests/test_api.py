"""
HTTP contract tests.

Status codes and JSON bodies for the auth, users, students, faculty and
courses endpoints, run through FastAPI's TestClient.
"""
from conftest import FakeMailer, login

from sims.errors import DeliveryError
from sims.models.identity import Identity


STUDENT_BODY = {
    "roll_number": "CS23001",
    "password": "studentpass1",
    "name": {"first_name": "Meera", "middle_name": "K", "last_name": "Iyer"},
    "date_of_birth": "2005-02-11",
    "gender": "Female",
    "contact_info": {"email": "meera@example.com", "phone": "555-222-3333",
                     "address": {"city": "Chennai"}},
    "academic": {"branch": "CSE", "semester": 2, "batch": "2023"},
}

FACULTY_BODY = {
    "employee_id": "EMP100",
    "password": "facultypass1",
    "first_name": "Anil",
    "last_name": "Kumar",
    "email": "anil@example.com",
    "department": "Computer Science",
    "position": "Associate Professor",
    "date_of_joining": "2018-06-01",
    "office_hours": [{"day": "Monday", "start_time": "10:00", "end_time": "11:00"}],
}

COURSE_BODY = {
    "course_code": "cs201",
    "course_name": "Data Structures",
    "department": "Computer Science",
    "credits": 4,
    "description": "Lists, trees, hash tables and graphs.",
    "semester": 3,
    "capacity": 1,
    "schedule": {"days": ["Tuesday", "Thursday"], "start_time": "11:00",
                 "end_time": "12:30", "room": "LH-204"},
}


def create(client, headers, path, body):
    resp = client.post(path, json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_health_and_request_id(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
    assert resp.headers.get("X-Request-ID")


def test_login_and_me(client, admin_headers):
    resp = client.get("/api/auth/me", headers=admin_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["username"] == "admin"
    assert body["role"] == "admin"
    assert "password_hash" not in body


def test_login_with_wrong_password(client):
    resp = client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
    assert resp.status_code == 401
    assert resp.json() == {"msg": "Invalid login credentials"}


def test_missing_and_invalid_tokens(client):
    resp = client.post("/api/courses", json=COURSE_BODY)
    assert resp.status_code == 401
    assert resp.json() == {"msg": "No token, authorization denied"}

    resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json() == {"msg": "Token is not valid"}


def test_course_catalog_is_public(client, admin_headers):
    created = create(client, admin_headers, "/api/courses", COURSE_BODY)
    assert created["course_code"] == "CS201"
    assert created["available_seats"] == 1

    resp = client.get("/api/courses")
    assert resp.status_code == 200
    body = resp.json()
    assert [c["course_code"] for c in body["data"]] == ["CS201"]
    assert body["pagination"]["total"] == 1

    resp = client.get("/api/courses/{}".format(created["id"]))
    assert resp.status_code == 200
    assert resp.json()["enrolled_students"] == []


def test_public_course_view_hides_roster_grades(client, admin_headers):
    course = create(client, admin_headers, "/api/courses", COURSE_BODY)
    student = create(client, admin_headers, "/api/students", STUDENT_BODY)
    resp = client.post("/api/students/{}/courses/{}".format(student["id"], course["id"]),
                       headers=admin_headers)
    assert resp.status_code == 200
    path = "/api/courses/{}".format(course["id"])

    entry = client.get(path).json()["enrolled_students"][0]
    assert entry["student"]["roll_number"] == "CS23001"
    assert "grade" not in entry
    assert "attendance" not in entry

    own = client.get(path, headers=login(client, "CS23001", "studentpass1")).json()
    assert own["enrolled_students"][0]["grade"] == "I"

    staff = client.get(path, headers=admin_headers).json()
    assert staff["enrolled_students"][0]["attendance"]["total"] == 0


def test_unknown_course_is_404(client):
    resp = client.get("/api/courses/does-not-exist")
    assert resp.status_code == 404
    assert resp.json() == {"msg": "Course not found"}


def test_request_validation_errors(client, admin_headers):
    resp = client.post("/api/courses", json=dict(COURSE_BODY, credits=9), headers=admin_headers)
    assert resp.status_code == 400
    errors = resp.json()["errors"]
    assert [e["field"] for e in errors] == ["credits"]


def test_duplicate_course_code(client, admin_headers):
    create(client, admin_headers, "/api/courses", COURSE_BODY)
    resp = client.post("/api/courses", json=dict(COURSE_BODY, course_code="CS201"), headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json() == {"msg": "Course code already exists"}


def test_student_self_service_flow(client, admin_headers):
    course = create(client, admin_headers, "/api/courses", dict(COURSE_BODY, capacity=30))
    student = create(client, admin_headers, "/api/students", STUDENT_BODY)
    assert student["full_name"] == "Meera K Iyer"
    assert student["contact_info"]["address"]["country"] == "India"

    headers = login(client, "CS23001", "studentpass1")
    enroll_path = "/api/courses/{}/enroll".format(course["id"])

    resp = client.post(enroll_path, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["current_enrollment"] == 1
    assert resp.json()["enrolled_students"][0]["grade"] == "I"

    resp = client.post(enroll_path, headers=headers)
    assert resp.status_code == 400
    assert resp.json() == {"msg": "Student already enrolled in this course"}

    resp = client.get("/api/students/{}/courses".format(student["id"]), headers=headers)
    assert [e["course"]["course_code"] for e in resp.json()] == ["CS201"]

    resp = client.delete(enroll_path, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["current_enrollment"] == 0


def test_full_course_rejects_enrollment(client, admin_headers):
    course = create(client, admin_headers, "/api/courses", COURSE_BODY)
    first = create(client, admin_headers, "/api/students", STUDENT_BODY)
    second = create(client, admin_headers, "/api/students", dict(
        STUDENT_BODY, roll_number="CS23002",
        contact_info=dict(STUDENT_BODY["contact_info"], email="second@example.com")))

    path = "/api/students/{}/courses/{}"
    assert client.post(path.format(first["id"], course["id"]), headers=admin_headers).status_code == 200
    resp = client.post(path.format(second["id"], course["id"]), headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json() == {"msg": "Course is full"}


def test_students_are_forbidden_from_staff_actions(client, admin_headers):
    course = create(client, admin_headers, "/api/courses", COURSE_BODY)
    create(client, admin_headers, "/api/students", STUDENT_BODY)
    headers = login(client, "CS23001", "studentpass1")

    resp = client.delete("/api/courses/{}".format(course["id"]), headers=headers)
    assert resp.status_code == 403
    assert resp.json() == {"msg": "Not authorized to delete courses"}

    resp = client.get("/api/students", headers=headers)
    assert resp.status_code == 403


def test_delete_course_with_roster(client, admin_headers):
    course = create(client, admin_headers, "/api/courses", COURSE_BODY)
    student = create(client, admin_headers, "/api/students", STUDENT_BODY)
    client.post("/api/students/{}/courses/{}".format(student["id"], course["id"]), headers=admin_headers)

    resp = client.delete("/api/courses/{}".format(course["id"]), headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json() == {"msg": "Cannot delete course with enrolled students"}


def test_faculty_grading_flow(client, admin_headers):
    course = create(client, admin_headers, "/api/courses", COURSE_BODY)
    student = create(client, admin_headers, "/api/students", STUDENT_BODY)
    member = create(client, admin_headers, "/api/faculty", FACULTY_BODY)
    assert member["office_hours"][0]["day"] == "Monday"
    assert "password_hash" not in member

    resp = client.post("/api/faculty/{}/courses/{}".format(member["id"], course["id"]), headers=admin_headers)
    assert [f["id"] for f in resp.json()["faculty"]] == [member["id"]]
    client.post("/api/students/{}/courses/{}".format(student["id"], course["id"]), headers=admin_headers)

    headers = login(client, "EMP100", "facultypass1")
    grade_path = "/api/courses/{}/grade/{}".format(course["id"], student["id"])

    resp = client.put(grade_path, json={"grade": "A+"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["enrolled_students"][0]["grade"] == "A+"

    resp = client.put(grade_path, json={"grade": "E"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["msg"].startswith("Invalid grade")

    resp = client.put("/api/courses/{}/attendance/{}".format(course["id"], student["id"]),
                      json={"present": 9, "total": 10}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["attendance"]["percentage"] == 90.0

    resp = client.get("/api/faculty/{}/courses".format(member["id"]), headers=headers)
    assert [c["course_code"] for c in resp.json()] == ["CS201"]


def test_deleting_faculty_through_users_endpoint(client, admin_headers):
    course = create(client, admin_headers, "/api/courses", COURSE_BODY)
    member = create(client, admin_headers, "/api/faculty", FACULTY_BODY)
    client.post("/api/faculty/{}/courses/{}".format(member["id"], course["id"]), headers=admin_headers)

    users = client.get("/api/users", params={"role": "faculty"}, headers=admin_headers).json()["data"]
    assert [u["profile"] for u in users] == [{"kind": "faculty", "id": member["id"]}]

    resp = client.delete("/api/users/{}".format(users[0]["id"]), headers=admin_headers)
    assert resp.status_code == 200

    assert client.get("/api/courses/{}".format(course["id"])).json()["faculty"] == []
    assert client.get("/api/faculty/{}".format(member["id"]), headers=admin_headers).status_code == 404


def test_users_can_update_only_their_email(client, admin_headers):
    create(client, admin_headers, "/api/students", STUDENT_BODY)
    headers = login(client, "CS23001", "studentpass1")
    me = client.get("/api/auth/me", headers=headers).json()

    resp = client.put("/api/users/{}".format(me["id"]), json={"is_active": False}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "is_active"

    resp = client.put("/api/users/{}".format(me["id"]), json={"email": "New@Example.com"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["email"] == "new@example.com"


def test_forgot_and_reset_password(client, mailer):
    resp = client.post("/api/auth/forgot-password", json={"email": "admin@example.com"})
    assert resp.status_code == 200
    assert len(mailer.sent) == 1
    token = mailer.sent[0]["body"].split("token=")[1].split()[0]

    resp = client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new-pass"})
    assert resp.status_code == 200
    login(client, "admin", "brand-new-pass")

    resp = client.post("/api/auth/reset-password", json={"token": token, "password": "again-new-pass"})
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "token"


def test_forgot_password_for_unknown_email(client, mailer):
    resp = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    assert resp.status_code == 200
    assert mailer.sent == []


def test_forgot_password_delivery_failure_keeps_token(app, client, db):
    app.state.mailer = FakeMailer(error=DeliveryError())

    resp = client.post("/api/auth/forgot-password", json={"email": "admin@example.com"})

    assert resp.status_code == 500
    assert resp.json() == {"msg": "Email could not be sent"}
    admin = db.query(Identity).filter(Identity.username == "admin").one()
    assert admin.reset_password_token is not None
