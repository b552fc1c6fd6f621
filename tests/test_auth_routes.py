import pytest

from auth_manager import AuthManager


def signup(client, **overrides):
    payload = {"username": "tester", "email": "tester@example.com", "password": "password123"}
    payload.update(overrides)
    return client.post("/backend/auth/signup", json=payload)


# ---------- signup ----------

def test_signup_success(client, store):
    resp = signup(client)

    assert resp.status_code == 201
    assert resp.get_json() == {"success": True, "message": "Signup successful!"}
    user = store.find_user_by_email("tester@example.com")
    assert user["username"] == "tester"
    assert user["password"] != "password123"


@pytest.mark.parametrize("payload, message", [
    ({"username": ""}, "All fields are required!"),
    ({"email": "not-an-email"}, "Invalid email format."),
    ({"password": "pass1"}, "Password must be at least 8 characters long."),
    ({"password": "passwordonly"}, "Password must contain at least one letter and one number."),
])
def test_signup_validation(client, payload, message):
    resp = signup(client, **payload)

    assert resp.status_code == 400
    assert resp.get_json() == {"success": False, "error": message}


@pytest.mark.parametrize("payload, message", [
    ({"username": 5}, "username must be a string"),
    ({"email": ["tester@example.com"]}, "email must be a string"),
    ({"password": 12345678}, "password must be a string"),
])
def test_signup_rejects_non_string_fields(client, payload, message):
    resp = signup(client, **payload)

    assert resp.status_code == 400
    assert resp.get_json() == {"success": False, "error": message}


@pytest.mark.parametrize("path", ["/backend/auth/signup", "/backend/auth/signin"])
def test_non_object_body_is_rejected(client, path):
    resp = client.post(path, json=["x"])

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Request body must be a JSON object"


def test_signin_rejects_non_string_password(client):
    signup(client)
    resp = client.post("/backend/auth/signin", json={"email": "tester@example.com", "password": 123})

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "password must be a string"


@pytest.mark.parametrize("email, ok", [
    ("a@b.c", True),
    ("first.last+tag@mail.example.org", True),
    ("no-at-sign.com", False),
    ("two words@example.com", False),
    ("missing@dot", False),
])
def test_email_format(email, ok):
    assert AuthManager.validate_email(email) is ok


def test_signup_duplicate_email(client):
    signup(client)
    resp = signup(client, username="someone-else")

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Email already registered"


# ---------- signin ----------

def test_signin_returns_token_and_sets_cookie(client):
    signup(client)
    resp = client.post("/backend/auth/signin",
                       json={"email": "tester@example.com", "password": "password123"})

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["token"]
    assert data["expiresAt"] > 0
    assert data["_id"]
    assert "password" not in data
    cookies = resp.headers.getlist("Set-Cookie")
    assert any(c.startswith("access_token=") and "HttpOnly" in c for c in cookies)


def test_signin_missing_fields(client):
    resp = client.post("/backend/auth/signin", json={"email": "tester@example.com"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "All fields are required!"


def test_signin_unknown_email(client):
    resp = client.post("/backend/auth/signin",
                       json={"email": "nobody@example.com", "password": "password123"})
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "Invalid credentials!"


def test_signin_wrong_password(client):
    signup(client)
    resp = client.post("/backend/auth/signin",
                       json={"email": "tester@example.com", "password": "wrongpass123"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid credentials!"


# ---------- session endpoints ----------

def test_me_returns_profile_without_password(auth_client):
    resp = auth_client.get("/backend/auth/me")

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["email"] == "tester@example.com"
    assert "password" not in data


def test_me_requires_token(client):
    assert client.get("/backend/auth/me").status_code == 401


def test_me_rejects_bad_token(client):
    resp = client.get("/backend/auth/me", headers={"Authorization": "Bearer not-a-real-token"})
    assert resp.status_code == 401


def test_bearer_header_is_accepted(app, client, register):
    token = register(client)["token"]
    fresh = app.test_client()

    resp = fresh.get("/backend/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200


def test_logout_clears_cookie(auth_client):
    resp = auth_client.post("/backend/auth/logout")

    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Signed out successfully."
    assert auth_client.get("/backend/auth/me").status_code == 401


def test_delete_profile_removes_user_and_habits(auth_client, store, create_habit):
    create_habit(auth_client)
    user_id = auth_client.get("/backend/auth/me").get_json()["data"]["_id"]

    resp = auth_client.delete("/backend/auth/delete-profile")

    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Account deleted successfully."
    assert store.get_user(user_id) is None
    assert store.list_habits(user_id) == []


def test_delete_profile_requires_auth(client):
    assert client.delete("/backend/auth/delete-profile").status_code == 401
