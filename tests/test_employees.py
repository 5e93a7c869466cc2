"""Endpoint tests for /api/employee, backed by mongomock."""

import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

import employees
from database import get_db
from main import app

URL = "/api/employee"


def make_employee(i, **overrides):
    data = {
        "name": f"Employee {i:02d}",
        "email": f"employee{i}@example.com",
        "phone": f"555-{i:04d}",
        "salary": 40000 + i * 1000,
        "department": "Engineering" if i % 2 == 0 else "Sales",
        "position": "Developer" if i % 3 == 0 else "Analyst",
    }
    data.update(overrides)
    return data


# --- create / read ---

def test_list_employees_empty(client):
    resp = client.get(URL)
    assert resp.status_code == 200
    assert resp.json() == []


def test_create_employee_applies_defaults_and_hides_bookkeeping(client, sample_employee):
    resp = client.post(URL, json=sample_employee)
    assert resp.status_code == 201
    data = resp.json()
    assert ObjectId.is_valid(data["id"])
    assert data["role"] == "employee"
    assert data["avatar"] == ""
    for field in ("createdAt", "updatedAt", "__v", "_id"):
        assert field not in data


def test_create_then_read_returns_same_values(client, sample_employee):
    created = client.post(URL, json=sample_employee).json()
    resp = client.get(f"{URL}/{created['id']}")
    assert resp.status_code == 200
    fetched = resp.json()
    assert fetched == created
    for field in ("name", "email", "phone", "salary", "department", "position", "city", "country"):
        assert fetched[field] == sample_employee[field]
    assert fetched["dateOfBirth"].startswith("1990-05-01")


def test_create_employee_missing_fields(client):
    resp = client.post(URL, json={"name": "Only Name"})
    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["error"] == "Validation Error"
    assert "email is required" in detail["details"]
    assert "salary is required" in detail["details"]


def test_create_employee_with_zero_salary(client, sample_employee):
    resp = client.post(URL, json=dict(sample_employee, salary=0))
    assert resp.status_code == 201
    assert resp.json()["salary"] == 0


def test_create_employee_empty_body(client):
    assert client.post(URL).status_code == 400
    resp = client.post(URL, json={})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Request body is empty or undefined"


def test_create_employee_malformed_json(client):
    resp = client.post(URL, content="{not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400


def test_create_employee_duplicate_email(client, sample_employee):
    client.post(URL, json=sample_employee)
    resp = client.post(URL, json=dict(sample_employee, name="Someone Else"))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Email already exists"


def test_create_employee_rejects_non_finite_salary(client):
    body = '{"name": "N", "email": "n@example.com", "phone": "1", "salary": NaN, "department": "D", "position": "P"}'
    resp = client.post(URL, content=body, headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert "salary must be a finite number" in resp.json()["detail"]["details"]
    listing = client.get(URL)
    assert listing.status_code == 200
    assert listing.json() == []


def test_create_employee_rejects_oversized_salary(client, sample_employee):
    resp = client.post(URL, json=dict(sample_employee, salary=10 ** 20))
    assert resp.status_code == 400
    assert resp.json()["detail"]["details"] == ["salary is out of range"]


def test_email_is_stored_without_surrounding_whitespace(client, sample_employee):
    resp = client.post(URL, json=dict(sample_employee, email="  jane.doe@example.com "))
    assert resp.status_code == 201
    assert resp.json()["email"] == "jane.doe@example.com"
    again = client.post(URL, json=sample_employee)
    assert again.status_code == 400
    assert again.json()["detail"] == "Email already exists"


def test_get_employee_bad_id(client):
    resp = client.get(f"{URL}/not-an-id")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid id"


def test_get_employee_not_found(client):
    resp = client.get(f"{URL}/{ObjectId()}")
    assert resp.status_code == 404


# --- bulk ---

def test_bulk_rejects_empty_array(client):
    resp = client.post(f"{URL}/bulk", json=[])
    assert resp.status_code == 400


def test_bulk_rejects_more_than_100(client):
    resp = client.post(f"{URL}/bulk", json=[make_employee(i) for i in range(101)])
    assert resp.status_code == 400
    assert client.get(URL).json() == []


def test_bulk_creates_all_valid_records(client):
    resp = client.post(f"{URL}/bulk", json=[make_employee(i) for i in range(3)])
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"]["count"] == 3
    assert [r["email"] for r in body["success"]["records"]] == [
        "employee0@example.com",
        "employee1@example.com",
        "employee2@example.com",
    ]
    assert "createdAt" not in body["success"]["records"][0]
    assert "duplicates" not in body and "failed" not in body
    assert len(client.get(URL).json()) == 3


def test_bulk_with_invalid_record_persists_nothing(client):
    records = [make_employee(0), make_employee(1, email="broken"), make_employee(2, salary=-1)]
    resp = client.post(f"{URL}/bulk", json=records)
    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["invalidCount"] == 2
    assert detail["validCount"] == 1
    assert len(detail["errors"]) == 2
    assert client.get(URL).json() == []


def test_bulk_duplicate_email_is_partial_success(client):
    client.post(URL, json=make_employee(1))
    resp = client.post(f"{URL}/bulk", json=[make_employee(0), make_employee(1), make_employee(2)])
    assert resp.status_code == 207
    body = resp.json()
    assert body["success"]["count"] == 2
    assert body["duplicates"]["count"] == 1
    assert body["duplicates"]["records"][0]["index"] == 1
    assert body["duplicates"]["records"][0]["error"] == "Email already exists"


def test_bulk_duplicates_within_batch(client):
    resp = client.post(f"{URL}/bulk", json=[make_employee(0), make_employee(0, name="Twin")])
    assert resp.status_code == 207
    assert resp.json()["duplicates"]["count"] == 1


def test_bulk_all_duplicates_is_bad_request(client):
    client.post(URL, json=make_employee(0))
    resp = client.post(f"{URL}/bulk", json=[make_employee(0)])
    assert resp.status_code == 400
    assert resp.json()["success"]["count"] == 0


def test_bulk_with_out_of_range_salary_persists_nothing(client):
    records = [make_employee(0, salary=1), make_employee(1, salary=10 ** 20), make_employee(2, salary=1)]
    resp = client.post(f"{URL}/bulk", json=records)
    assert resp.status_code == 400
    assert resp.json()["detail"]["errors"][0]["errors"] == ["salary is out of range"]
    assert client.get(URL).json() == []


def test_bulk_item_that_cannot_be_stored_does_not_stop_the_rest(client, monkeypatch):
    store = employees.create_document

    def create_or_overflow(db, collection, document):
        if document["email"] == "employee1@example.com":
            raise OverflowError("MongoDB can only handle up to 8-byte ints")
        return store(db, collection, document)

    monkeypatch.setattr(employees, "create_document", create_or_overflow)
    resp = client.post(f"{URL}/bulk", json=[make_employee(i) for i in range(3)])
    assert resp.status_code == 207
    body = resp.json()
    assert body["success"]["count"] == 2
    assert body["failed"]["count"] == 1
    assert body["failed"]["records"][0]["index"] == 1
    stored = sorted(e["email"] for e in client.get(URL).json())
    assert stored == ["employee0@example.com", "employee2@example.com"]


# --- pagination ---

@pytest.fixture
def many_employees(client):
    resp = client.post(f"{URL}/bulk", json=[make_employee(i) for i in range(25)])
    assert resp.status_code == 201


def test_paginated_second_page(client, many_employees):
    resp = client.get(f"{URL}/paginated", params={"page": 2, "limit": 10, "sortBy": "name", "sortOrder": "asc"})
    assert resp.status_code == 200
    body = resp.json()
    assert [e["name"] for e in body["employees"]] == [f"Employee {i:02d}" for i in range(10, 20)]
    assert body["pagination"] == {
        "currentPage": 2,
        "totalPages": 3,
        "totalCount": 25,
        "limit": 10,
        "hasNextPage": True,
        "hasPrevPage": True,
        "nextPage": 3,
        "prevPage": 1,
    }


def test_paginated_last_page(client, many_employees):
    body = client.get(f"{URL}/paginated", params={"page": 3, "limit": 10}).json()
    assert len(body["employees"]) == 5
    assert body["pagination"]["hasNextPage"] is False
    assert body["pagination"]["nextPage"] is None


def test_paginated_clamps_limit_and_page(client, many_employees):
    body = client.get(f"{URL}/paginated", params={"page": 0, "limit": 500}).json()
    assert body["pagination"]["limit"] == 100
    assert body["pagination"]["currentPage"] == 1
    assert len(body["employees"]) == 25


def test_paginated_search_is_case_insensitive(client, many_employees):
    body = client.get(f"{URL}/paginated", params={"search": "EMPLOYEE1@"}).json()
    assert body["pagination"]["totalCount"] == 1
    assert body["employees"][0]["email"] == "employee1@example.com"


def test_paginated_department_and_position_filters(client, many_employees):
    body = client.get(
        f"{URL}/paginated", params={"department": "engineering", "position": "developer", "limit": 100}
    ).json()
    expected = [i for i in range(25) if i % 2 == 0 and i % 3 == 0]
    assert body["pagination"]["totalCount"] == len(expected)


def test_paginated_sort_descending(client, many_employees):
    body = client.get(f"{URL}/paginated", params={"sortBy": "salary", "sortOrder": "desc", "limit": 3}).json()
    assert [e["salary"] for e in body["employees"]] == [64000, 63000, 62000]


def test_paginated_rejects_unknown_sort_field(client):
    resp = client.get(f"{URL}/paginated", params={"sortBy": "password"})
    assert resp.status_code == 400


def test_paginated_empty_collection(client):
    body = client.get(f"{URL}/paginated").json()
    assert body["employees"] == []
    assert body["pagination"]["totalPages"] == 0
    assert body["pagination"]["hasNextPage"] is False


# --- update / delete ---

def test_update_employee_partial(client, employee_id, sample_employee):
    resp = client.put(f"{URL}/{employee_id}", json={"salary": 80000, "city": "Porto"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["salary"] == 80000
    assert data["city"] == "Porto"
    assert data["name"] == sample_employee["name"]


def test_update_employee_invalid_field(client, employee_id):
    resp = client.put(f"{URL}/{employee_id}", json={"email": "nope"})
    assert resp.status_code == 400


def test_update_employee_not_found(client):
    resp = client.put(f"{URL}/{ObjectId()}", json={"salary": 1})
    assert resp.status_code == 404


def test_update_employee_email_conflict(client, employee_id):
    client.post(URL, json=make_employee(7))
    resp = client.put(f"{URL}/{employee_id}", json={"email": "employee7@example.com"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Email already exists"


def test_delete_employee(client, employee_id):
    resp = client.delete(f"{URL}/{employee_id}")
    assert resp.status_code == 200
    assert client.get(f"{URL}/{employee_id}").status_code == 404
    assert client.delete(f"{URL}/{employee_id}").status_code == 404


def test_delete_all_is_idempotent(client):
    client.post(f"{URL}/bulk", json=[make_employee(i) for i in range(3)])
    first = client.delete(URL)
    assert first.status_code == 200
    assert first.json()["deletedCount"] == 3
    assert client.get(URL).json() == []
    second = client.delete(URL)
    assert second.status_code == 200
    assert second.json()["deletedCount"] == 0


# --- service ---

def test_cors_preflight(client):
    resp = client.options(
        URL,
        headers={"Origin": "http://example.org", "Access-Control-Request-Method": "POST"},
    )
    assert resp.status_code == 200
    assert "access-control-allow-origin" in resp.headers


def test_root_and_health(client):
    assert client.get("/").status_code == 200
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "database": "connected"}


class UnreachableDatabase:
    def list_collection_names(self):
        raise ServerSelectionTimeoutError("no servers available")


def test_health_reports_unreachable_database(client):
    app.dependency_overrides[get_db] = UnreachableDatabase
    resp = client.get("/health")
    assert resp.status_code == 503
    assert resp.json()["status"] == "unavailable"
