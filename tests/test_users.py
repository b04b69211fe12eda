from hireveno.database.database import UserRole, UserStatus
from conftest import auth_headers, make_token, make_user

def identity_headers(user_id="0b6f8f1e-3c1a-4f43-9a55-6c2f1f0d9a11", email="new.student@uniosun.edu.ng"):
    return {"Authorization": f"Bearer {make_token(user_id, email)}"}

def test_register_student(client, db, department):
    response = client.post("/users/register", headers=identity_headers(),
                           json={"name": "New Student", "role": "student", "department_id": department.id})
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == "0b6f8f1e-3c1a-4f43-9a55-6c2f1f0d9a11"
    assert data["email"] == "new.student@uniosun.edu.ng"
    assert data["status"] == "active"
    assert data["is_verified"] is False
    assert data["badge"] is False
    assert data["wallet_balance"] == 0

def test_register_twice(client, department):
    payload = {"name": "New Student", "role": "student", "department_id": department.id}
    client.post("/users/register", headers=identity_headers(), json=payload)
    response = client.post("/users/register", headers=identity_headers(), json=payload)
    assert response.status_code == 400

def test_cannot_register_as_admin(client):
    response = client.post("/users/register", headers=identity_headers(), json={"name": "Sneaky", "role": "admin"})
    assert response.status_code == 422

def test_student_needs_department(client):
    response = client.post("/users/register", headers=identity_headers(), json={"name": "New", "role": "student"})
    assert response.status_code == 400

def test_unregistered_identity_is_refused(client):
    response = client.get("/users/me", headers=identity_headers())
    assert response.status_code == 403

def test_expired_token_is_refused(client, aspirant):
    token = make_token(aspirant.id, aspirant.email, expires_in=-60)
    response = client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401

def test_missing_token_is_refused(client):
    assert client.get("/users/me").status_code == 401

def test_profile_update_is_sanitized(client, aspirant):
    response = client.put("/users/me", json={"bio": "<script>alert(1)</script>Aspiring medic"},
                          headers=auth_headers(aspirant))
    assert response.status_code == 200
    assert "<script>" not in response.json()["bio"]
    assert response.json()["name"] == "Ada Learner"

def test_blocked_user_is_refused(client, db):
    blocked = make_user(db, UserRole.ASPIRANT, name="Blocked User", status=UserStatus.BLOCKED)
    response = client.get("/users/me", headers=auth_headers(blocked))
    assert response.status_code == 403

def test_tutor_directory_filters(client, db, aspirant, tutor, department):
    make_user(db, UserRole.STUDENT, name="Banned Tutor", badge=True, status=UserStatus.BANNED,
              department_id=department.id)
    tutors = client.get(f"/users/tutors?department_id={department.id}", headers=auth_headers(aspirant)).json()
    assert [t["id"] for t in tutors] == [tutor.id]

def test_departments_are_public(client, department):
    response = client.get("/users/departments")
    assert response.status_code == 200
    assert response.json()[0]["name"] == "Biology"
