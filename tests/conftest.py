import pytest

from web_app import create_app

TEST_CONFIG = {
    "TESTING": True,
    "USE_FIRESTORE": False,
    "STORAGE_FILE": None,
    "SECRET_KEY": "test-secret-key-for-testing",
}


@pytest.fixture
def app():
    return create_app(TEST_CONFIG)


@pytest.fixture
def store(app):
    return app.extensions["habit_store"]


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def register():
    """Sign up and sign in on ``client``; the client then carries the access_token cookie."""
    def _register(client, username="tester", email="tester@example.com", password="password123"):
        resp = client.post("/backend/auth/signup",
                           json={"username": username, "email": email, "password": password})
        assert resp.status_code == 201
        resp = client.post("/backend/auth/signin", json={"email": email, "password": password})
        assert resp.status_code == 200
        return resp.get_json()
    return _register


@pytest.fixture
def auth_client(client, register):
    register(client)
    return client


@pytest.fixture
def create_habit():
    def _create(client, **fields):
        payload = {"title": "Morning Run", "category": "EXERCISE", "isDaily": True}
        payload.update(fields)
        resp = client.post("/backend/habits/create-new-habit", json=payload)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["data"]
    return _create
