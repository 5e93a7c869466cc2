import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app


@pytest.fixture
def mock_db():
    """An in-memory MongoDB with the same indexes as production."""
    database = mongomock.MongoClient()["workforce_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(mock_db):
    app.dependency_overrides[get_db] = lambda: mock_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sample_employee():
    return {
        "name": "Jane Doe",
        "email": "jane.doe@example.com",
        "phone": "555-0100",
        "salary": 72000,
        "department": "Engineering",
        "position": "Backend Developer",
        "dateOfBirth": "1990-05-01",
        "city": "Lisbon",
        "country": "Portugal",
    }


@pytest.fixture
def employee_id(client, sample_employee):
    resp = client.post("/api/employee", json=sample_employee)
    assert resp.status_code == 201
    return resp.json()["id"]


@pytest.fixture
def sample_task(employee_id):
    return {
        "title": "Write report",
        "description": "Quarterly numbers",
        "employeeId": employee_id,
    }
