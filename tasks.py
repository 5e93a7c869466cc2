import calendar
import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidDocument
from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError
from pymongo import ASCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from bulk import BulkOutcome, check_batch_size, compose_bulk_response, persist_all, validate_all
from database import (
    HIDDEN_PROJECTION,
    create_document,
    doc_to_dict,
    get_db,
    get_documents,
    to_object_id,
    update_document,
    utcnow,
)
from schemas import Task, TaskUpdate, describe_errors
from validation import IMPORTANCE_LEVELS, TASK_STATUSES, validate_task

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/task", tags=["Task"])

COLLECTION = "task"


# -------------------- Helpers --------------------

def require_object(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict) or not payload:
        raise HTTPException(status_code=400, detail="Request body is empty or undefined")
    return payload


def store_error(exc: Exception, action: str) -> HTTPException:
    logger.exception("Error %s task", action)
    return HTTPException(status_code=500, detail=str(exc))


def build_task(record: Dict[str, Any]) -> Dict[str, Any]:
    return Task.model_validate(record).to_document()


def parse_task_update(record: Any) -> Tuple[Dict[str, Any], List[str]]:
    """Returns (updates, errors); updates is empty whenever errors is not."""
    if not isinstance(record, dict) or not record:
        return {}, ["updates must be a non-empty object"]
    errors = validate_task(record, partial=True)
    if errors:
        return {}, errors
    try:
        updates = TaskUpdate.model_validate(record).to_document()
    except ValidationError as exc:
        return {}, describe_errors(exc)
    if not updates:
        return {}, ["No valid fields to update"]
    return updates, []


def month_range(month: int, year: int) -> Tuple[datetime, datetime]:
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1)
    end = datetime(year, month, last_day, 23, 59, 59, 999000)
    return start, end


def task_statistics(tasks: List[Dict[str, Any]]) -> Dict[str, Any]:
    counts = Counter(task.get("status") for task in tasks)
    total = len(tasks)
    completed = counts["completed"]
    return {
        "totalTasks": total,
        "completedTasks": completed,
        "pendingTasks": counts["pending"],
        "inProgressTasks": counts["in-progress"],
        "cancelledTasks": counts["cancelled"],
        "completionRate": f"{completed / total * 100:.2f}%" if total else "0%",
    }


# -------------------- Read --------------------

@router.get("", summary="List all tasks")
def list_tasks(db: Database = Depends(get_db)):
    try:
        return get_documents(db, COLLECTION)
    except PyMongoError as exc:
        raise store_error(exc, "listing")


@router.get("/employee/{employee_id}", summary="List tasks of one employee")
def list_tasks_by_employee(employee_id: str, db: Database = Depends(get_db)):
    oid = to_object_id(employee_id)
    try:
        return get_documents(db, COLLECTION, {"employeeId": oid})
    except PyMongoError as exc:
        raise store_error(exc, "listing employee")


@router.get("/employee/{employee_id}/monthly", summary="Tasks of one employee for a month, with statistics")
def monthly_tasks(
    employee_id: str,
    month: Optional[int] = None,
    year: Optional[int] = None,
    status: Optional[str] = None,
    importance: Optional[str] = None,
    db: Database = Depends(get_db),
):
    oid = to_object_id(employee_id)
    today = utcnow()
    month = month if month is not None else today.month
    year = year if year is not None else today.year
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="month must be between 1 and 12")
    if not 1 <= year <= 9999:
        raise HTTPException(status_code=400, detail="year must be between 1 and 9999")
    if status and status not in TASK_STATUSES:
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid status value", "allowed": list(TASK_STATUSES), "received": status},
        )
    if importance and importance not in IMPORTANCE_LEVELS:
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid importance value", "allowed": list(IMPORTANCE_LEVELS), "received": importance},
        )

    start, end = month_range(month, year)
    filt: Dict[str, Any] = {
        "employeeId": oid,
        "$or": [
            {"day": {"$gte": start, "$lte": end}},
            {"createdAt": {"$gte": start, "$lte": end}},
        ],
    }
    if status:
        filt["status"] = status
    if importance:
        filt["importance"] = importance

    try:
        tasks = get_documents(db, COLLECTION, filt, sort=[("day", ASCENDING), ("createdAt", ASCENDING)])
    except PyMongoError as exc:
        raise store_error(exc, "querying monthly")

    return {
        "employeeId": employee_id,
        "month": month,
        "year": year,
        "dateRange": {"start": start, "end": end},
        "filters": {"status": status, "importance": importance},
        "statistics": task_statistics(tasks),
        "tasks": tasks,
    }


@router.get("/{task_id}", summary="Get one task")
def get_task(task_id: str, db: Database = Depends(get_db)):
    oid = to_object_id(task_id)
    try:
        task = db[COLLECTION].find_one({"_id": oid}, HIDDEN_PROJECTION)
    except PyMongoError as exc:
        raise store_error(exc, "reading")
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return doc_to_dict(task)


# -------------------- Write --------------------

@router.post("", status_code=201, summary="Create one task")
def create_task(payload: Any = Body(None), db: Database = Depends(get_db)):
    record = require_object(payload)
    errors = validate_task(record)
    if errors:
        raise HTTPException(status_code=400, detail={"error": "Validation Error", "details": errors})
    try:
        document = build_task(record)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400, detail={"error": "Validation Error", "details": describe_errors(exc)}
        )

    try:
        created = create_document(db, COLLECTION, document)
    except PyMongoError as exc:
        raise store_error(exc, "creating")
    logger.info("Created task %s for employee %s", created["id"], created["employeeId"])
    return created


@router.post("/bulk", summary="Create up to 100 tasks")
def create_tasks_bulk(payload: Any = Body(None), db: Database = Depends(get_db)):
    records = check_batch_size(payload)
    prepared = validate_all(records, validate_task, build_task)
    outcome = persist_all(prepared, insert=lambda document: create_document(db, COLLECTION, document))
    return compose_bulk_response(outcome, "tasks")


@router.put("", summary="Apply partial updates to up to 100 tasks")
def update_tasks_bulk(payload: Any = Body(None), db: Database = Depends(get_db)):
    items = check_batch_size(payload)
    outcome = BulkOutcome(len(items))
    for index, item in enumerate(items):
        task_id = item.get("id", item.get("_id")) if isinstance(item, dict) else None
        if not isinstance(task_id, str) or not ObjectId.is_valid(task_id):
            outcome.fail(index, item, "Invalid id")
            continue
        updates, errors = parse_task_update(item.get("updates"))
        if errors:
            outcome.fail(index, item, "; ".join(errors))
            continue
        try:
            task = update_document(db, COLLECTION, ObjectId(task_id), updates)
        except (PyMongoError, InvalidDocument, OverflowError) as exc:
            logger.warning("bulk update failed for task %s: %s", task_id, exc)
            outcome.fail(index, item, str(exc))
            continue
        if task is None:
            outcome.fail(index, item, "Task not found")
        else:
            outcome.succeeded.append(task)
    return compose_bulk_response(outcome, "tasks", action="updated", success_status=200)


@router.put("/{task_id}", summary="Update fields of one task")
def update_task(task_id: str, payload: Any = Body(None), db: Database = Depends(get_db)):
    oid = to_object_id(task_id)
    record = require_object(payload)
    updates, errors = parse_task_update(record)
    if errors:
        raise HTTPException(status_code=400, detail={"error": "Validation Error", "details": errors})
    try:
        task = update_document(db, COLLECTION, oid, updates)
    except PyMongoError as exc:
        raise store_error(exc, "updating")
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.delete("/{task_id}", summary="Delete one task")
def delete_task(task_id: str, db: Database = Depends(get_db)):
    oid = to_object_id(task_id)
    try:
        res = db[COLLECTION].delete_one({"_id": oid})
    except PyMongoError as exc:
        raise store_error(exc, "deleting")
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Task not found")
    logger.info("Deleted task %s", task_id)
    return {"message": "Task deleted", "id": task_id}


@router.delete("", summary="Delete all tasks")
def delete_all_tasks(db: Database = Depends(get_db)):
    try:
        res = db[COLLECTION].delete_many({})
    except PyMongoError as exc:
        raise store_error(exc, "deleting all")
    logger.info("Deleted %d tasks", res.deleted_count)
    return {"message": "All tasks deleted", "deletedCount": res.deleted_count}
