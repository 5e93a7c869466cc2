"""
Field-level validation for employee and task records.

Validators take the raw request mapping and return a list of readable error
strings; an empty list means the record is valid. Every check runs, so the
list covers all problems with the record. Nothing here touches the database.
"""

import math
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId

TASK_STATUSES = ("pending", "in-progress", "completed", "cancelled")
IMPORTANCE_LEVELS = ("low", "medium", "high")

EMPLOYEE_REQUIRED = ("name", "email", "phone", "salary", "department", "position")
EMPLOYEE_TEXT_FIELDS = (
    "name", "email", "phone", "department", "position",
    "address", "city", "country", "role", "avatar",
)

TASK_REQUIRED = ("title", "description", "employeeId")
TASK_TEXT_FIELDS = ("title", "description")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# BSON stores integers as signed 64-bit
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


def parse_date(value: Any) -> Optional[datetime]:
    """Parse an ISO date or datetime into a naive UTC datetime, None if it isn't one."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def is_missing(value: Any) -> bool:
    # 0 and False are real values; only absent, null or blank text is missing
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _fits_int64(value: int) -> bool:
    return INT64_MIN <= value <= INT64_MAX


def _present(record: Dict[str, Any], field: str) -> bool:
    return field in record and not is_missing(record[field])


def _check_required(record: Dict[str, Any], required: tuple, partial: bool) -> List[str]:
    errors = []
    for field in required:
        if partial:
            if field in record and is_missing(record[field]):
                errors.append(f"{field} cannot be empty")
        elif not _present(record, field):
            errors.append(f"{field} is required")
    return errors


def _check_text(record: Dict[str, Any], fields: tuple) -> List[str]:
    return [
        f"{field} must be a string"
        for field in fields
        if _present(record, field) and not isinstance(record[field], str)
    ]


def validate_employee(record: Any, partial: bool = False) -> List[str]:
    if not isinstance(record, dict):
        return ["record must be an object"]

    errors = _check_required(record, EMPLOYEE_REQUIRED, partial)
    errors.extend(_check_text(record, EMPLOYEE_TEXT_FIELDS))

    email = record.get("email")
    if _present(record, "email") and isinstance(email, str) and not EMAIL_RE.match(email.strip()):
        errors.append("email must be a valid email address")

    if _present(record, "salary"):
        salary = record["salary"]
        if not _is_number(salary):
            errors.append("salary must be a number")
        elif isinstance(salary, float) and not math.isfinite(salary):
            errors.append("salary must be a finite number")
        elif isinstance(salary, int) and not _fits_int64(salary):
            errors.append("salary is out of range")
        elif salary < 0:
            errors.append("salary must be a non-negative number")

    if _present(record, "dateOfBirth") and parse_date(record["dateOfBirth"]) is None:
        errors.append("dateOfBirth must be a valid date")

    return errors


def validate_task(record: Any, partial: bool = False) -> List[str]:
    if not isinstance(record, dict):
        return ["record must be an object"]

    errors = _check_required(record, TASK_REQUIRED, partial)
    errors.extend(_check_text(record, TASK_TEXT_FIELDS))

    if _present(record, "employeeId"):
        employee_id = record["employeeId"]
        if not isinstance(employee_id, str) or not ObjectId.is_valid(employee_id):
            errors.append("employeeId must be a valid id")

    if _present(record, "status") and record["status"] not in TASK_STATUSES:
        errors.append(f"status must be one of: {', '.join(TASK_STATUSES)}")

    if _present(record, "importance") and record["importance"] not in IMPORTANCE_LEVELS:
        errors.append(f"importance must be one of: {', '.join(IMPORTANCE_LEVELS)}")

    if _present(record, "scheduled") and not isinstance(record["scheduled"], bool):
        errors.append("scheduled must be a boolean")

    if _present(record, "day") and parse_date(record["day"]) is None:
        errors.append("day must be a valid date")

    if _present(record, "slotCount"):
        if not _is_integer(record["slotCount"]):
            errors.append("slotCount must be an integer")
        elif not _fits_int64(record["slotCount"]):
            errors.append("slotCount is out of range")
        elif record["slotCount"] < 1:
            errors.append("slotCount must be at least 1")

    if _present(record, "startSlot"):
        if not _is_integer(record["startSlot"]):
            errors.append("startSlot must be an integer")
        elif not _fits_int64(record["startSlot"]):
            errors.append("startSlot is out of range")
        elif record["startSlot"] < 0:
            errors.append("startSlot must be at least 0")

    return errors
