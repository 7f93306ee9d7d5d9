import mongomock
import pytest
from fastapi.testclient import TestClient

from database import get_db
from main import app, create_access_token


@pytest.fixture
def db():
    return mongomock.MongoClient()["heartsUnite-test"]


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    # no context manager: the lifespan (real MongoClient) is never started
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    def _login(email):
        client.cookies.set("token", create_access_token(email))
        return client
    return _login


@pytest.fixture
def admin(db, login):
    db["users"].insert_one({"email": "admin@heartsunite.com", "name": "Admin", "status": "Admin"})
    return login("admin@heartsunite.com")


def biodata_payload(**overrides):
    data = {
        "biodataType": "Male",
        "name": "Rahim Uddin",
        "age": 28,
        "occupation": "Engineer",
        "permanentDivision": "Dhaka",
        "mobileNumber": "01700000000",
    }
    data.update(overrides)
    return data
