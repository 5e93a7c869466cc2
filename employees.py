import logging
import math
import re
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import ValidationError
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from bulk import check_batch_size, compose_bulk_response, persist_all, validate_all
from database import (
    HIDDEN_PROJECTION,
    create_document,
    doc_to_dict,
    get_db,
    get_documents,
    to_object_id,
    update_document,
)
from schemas import Employee, EmployeeUpdate, describe_errors
from validation import validate_employee

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/employee", tags=["Employee"])

COLLECTION = "employee"
MAX_PAGE_SIZE = 100
SEARCH_FIELDS = ("name", "email", "phone", "department", "position")
SORTABLE_FIELDS = (
    "name", "email", "phone", "salary", "department", "position",
    "dateOfBirth", "city", "country", "role", "createdAt", "updatedAt",
)


# -------------------- Helpers --------------------

def require_object(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict) or not payload:
        raise HTTPException(status_code=400, detail="Request body is empty or undefined")
    return payload


def store_error(exc: Exception, action: str) -> HTTPException:
    logger.exception("Error %s employee", action)
    return HTTPException(status_code=500, detail=str(exc))


def build_employee(record: Dict[str, Any]) -> Dict[str, Any]:
    return Employee.model_validate(record).to_document()


def build_employee_filter(
    search: Optional[str], department: Optional[str], position: Optional[str]
) -> Dict[str, Any]:
    filt: Dict[str, Any] = {}
    if search and search.strip():
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        filt["$or"] = [{field: pattern} for field in SEARCH_FIELDS]
    if department and department.strip():
        filt["department"] = {"$regex": f"^{re.escape(department.strip())}$", "$options": "i"}
    if position and position.strip():
        filt["position"] = {"$regex": f"^{re.escape(position.strip())}$", "$options": "i"}
    return filt


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit)
    has_next = page < total_pages
    has_prev = page > 1
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalCount": total,
        "limit": limit,
        "hasNextPage": has_next,
        "hasPrevPage": has_prev,
        "nextPage": page + 1 if has_next else None,
        "prevPage": page - 1 if has_prev else None,
    }


# -------------------- Read --------------------

@router.get("", summary="List all employees")
def list_employees(db: Database = Depends(get_db)):
    try:
        return get_documents(db, COLLECTION)
    except PyMongoError as exc:
        raise store_error(exc, "listing")


@router.get("/paginated", summary="Search, filter, sort and paginate employees")
def list_employees_paginated(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    department: Optional[str] = None,
    position: Optional[str] = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    db: Database = Depends(get_db),
):
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    if sort_by not in SORTABLE_FIELDS:
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid sortBy field", "allowed": list(SORTABLE_FIELDS), "received": sort_by},
        )
    if sort_order.lower() not in ("asc", "desc"):
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid sortOrder", "allowed": ["asc", "desc"], "received": sort_order},
        )
    direction = ASCENDING if sort_order.lower() == "asc" else DESCENDING

    filt = build_employee_filter(search, department, position)
    skip = (page - 1) * limit
    try:
        total = db[COLLECTION].count_documents(filt)
        employees = get_documents(
            db, COLLECTION, filt,
            sort=[(sort_by, direction), ("_id", direction)],
            skip=skip,
            limit=limit,
        )
    except PyMongoError as exc:
        raise store_error(exc, "paginating")

    return {
        "employees": employees,
        "pagination": pagination_meta(page, limit, total),
        "filters": {
            "search": search,
            "department": department,
            "position": position,
            "sortBy": sort_by,
            "sortOrder": sort_order.lower(),
        },
    }


@router.get("/{employee_id}", summary="Get one employee")
def get_employee(employee_id: str, db: Database = Depends(get_db)):
    oid = to_object_id(employee_id)
    try:
        employee = db[COLLECTION].find_one({"_id": oid}, HIDDEN_PROJECTION)
    except PyMongoError as exc:
        raise store_error(exc, "reading")
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found")
    return doc_to_dict(employee)


# -------------------- Write --------------------

@router.post("", status_code=201, summary="Create one employee")
def create_employee(payload: Any = Body(None), db: Database = Depends(get_db)):
    record = require_object(payload)
    errors = validate_employee(record)
    if errors:
        raise HTTPException(status_code=400, detail={"error": "Validation Error", "details": errors})
    try:
        document = build_employee(record)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400, detail={"error": "Validation Error", "details": describe_errors(exc)}
        )

    try:
        created = create_document(db, COLLECTION, document)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email already exists")
    except PyMongoError as exc:
        raise store_error(exc, "creating")
    logger.info("Created employee %s", created["id"])
    return created


@router.post("/bulk", summary="Create up to 100 employees")
def create_employees_bulk(payload: Any = Body(None), db: Database = Depends(get_db)):
    records = check_batch_size(payload)
    prepared = validate_all(records, validate_employee, build_employee)
    collection = db[COLLECTION]
    outcome = persist_all(
        prepared,
        insert=lambda document: create_document(db, COLLECTION, document),
        find_existing=lambda document: collection.find_one({"email": document["email"]}, {"_id": 1}) is not None,
        duplicate_message="Email already exists",
    )
    return compose_bulk_response(outcome, "employees")


@router.put("/{employee_id}", summary="Update fields of one employee")
def update_employee(employee_id: str, payload: Any = Body(None), db: Database = Depends(get_db)):
    oid = to_object_id(employee_id)
    record = require_object(payload)
    errors = validate_employee(record, partial=True)
    if errors:
        raise HTTPException(status_code=400, detail={"error": "Validation Error", "details": errors})
    try:
        updates = EmployeeUpdate.model_validate(record).to_document()
    except ValidationError as exc:
        raise HTTPException(
            status_code=400, detail={"error": "Validation Error", "details": describe_errors(exc)}
        )
    if not updates:
        raise HTTPException(status_code=400, detail="No valid fields to update")

    try:
        employee = update_document(db, COLLECTION, oid, updates)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email already exists")
    except PyMongoError as exc:
        raise store_error(exc, "updating")
    if employee is None:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee


@router.delete("/{employee_id}", summary="Delete one employee")
def delete_employee(employee_id: str, db: Database = Depends(get_db)):
    oid = to_object_id(employee_id)
    try:
        res = db[COLLECTION].delete_one({"_id": oid})
    except PyMongoError as exc:
        raise store_error(exc, "deleting")
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Employee not found")
    logger.info("Deleted employee %s", employee_id)
    return {"message": "Employee deleted", "id": employee_id}


@router.delete("", summary="Delete all employees")
def delete_all_employees(db: Database = Depends(get_db)):
    try:
        res = db[COLLECTION].delete_many({})
    except PyMongoError as exc:
        raise store_error(exc, "deleting all")
    logger.info("Deleted %d employees", res.deleted_count)
    return {"message": "All employees deleted", "deletedCount": res.deleted_count}
