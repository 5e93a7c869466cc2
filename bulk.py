"""
Bulk record processing shared by the employee and task routers.

A batch goes through two phases:

1. every record is validated; if any record fails, the whole batch is
   rejected with all of the errors and nothing is written;
2. records are inserted one by one in input order, each outcome classified
   as created, duplicate or failed. A failing record never stops the ones
   after it.

`compose_bulk_response` turns the outcome into the HTTP status and payload.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from bson.errors import InvalidDocument
from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError

from schemas import describe_errors

logger = logging.getLogger(__name__)

MAX_BULK_RECORDS = 100

Validator = Callable[[Any], List[str]]
Builder = Callable[[Dict[str, Any]], Dict[str, Any]]


class BulkOutcome:
    """Per-item results of a bulk operation, each list in input order."""

    def __init__(self, total: int):
        self.total = total
        self.succeeded: List[Dict[str, Any]] = []
        self.duplicates: List[Dict[str, Any]] = []
        self.failed: List[Dict[str, Any]] = []

    def fail(self, index: int, record: Any, error: str) -> None:
        self.failed.append({"index": index, "record": record, "error": error})

    def duplicate(self, index: int, record: Any, error: str) -> None:
        self.duplicates.append({"index": index, "record": record, "error": error})


def check_batch_size(payload: Any) -> List[Any]:
    if not isinstance(payload, list) or len(payload) == 0:
        raise HTTPException(status_code=400, detail="Request body must be a non-empty array")
    if len(payload) > MAX_BULK_RECORDS:
        raise HTTPException(
            status_code=400,
            detail=f"Too many records: maximum is {MAX_BULK_RECORDS} per request",
        )
    return payload


def validate_all(
    records: List[Any], validate: Validator, build: Builder
) -> List[Tuple[int, Dict[str, Any], Dict[str, Any]]]:
    """Validate every record; returns (index, record, document) triples or raises 400."""
    prepared = []
    invalid = []
    for index, record in enumerate(records):
        errors = validate(record)
        if not errors:
            try:
                prepared.append((index, record, build(record)))
                continue
            except ValidationError as exc:
                errors = describe_errors(exc)
        invalid.append({"index": index, "record": record, "errors": errors})

    if invalid:
        logger.info("bulk batch rejected: %d of %d records invalid", len(invalid), len(records))
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Validation failed",
                "message": f"{len(invalid)} of {len(records)} records failed validation",
                "validCount": len(records) - len(invalid),
                "invalidCount": len(invalid),
                "errors": invalid,
            },
        )
    return prepared


def persist_all(
    prepared: List[Tuple[int, Dict[str, Any], Dict[str, Any]]],
    insert: Builder,
    find_existing: Optional[Callable[[Dict[str, Any]], bool]] = None,
    duplicate_message: str = "Record already exists",
) -> BulkOutcome:
    """Insert documents sequentially.

    `find_existing` is a cheap pre-check; the store's unique index still
    decides, so a DuplicateKeyError on insert is also counted as a duplicate.
    """
    outcome = BulkOutcome(len(prepared))
    for index, record, document in prepared:
        try:
            if find_existing is not None and find_existing(document):
                outcome.duplicate(index, record, duplicate_message)
                continue
            outcome.succeeded.append(insert(document))
        except DuplicateKeyError:
            outcome.duplicate(index, record, duplicate_message)
        except (PyMongoError, InvalidDocument, OverflowError) as exc:
            logger.warning("bulk insert failed for record %d: %s", index, exc)
            outcome.fail(index, record, str(exc))
    return outcome


def outcome_status(outcome: BulkOutcome, success_status: int = 201) -> int:
    if not outcome.succeeded:
        return 400
    if outcome.duplicates or outcome.failed:
        return 207
    return success_status


def compose_bulk_response(
    outcome: BulkOutcome, noun: str, action: str = "created", success_status: int = 201
) -> JSONResponse:
    status_code = outcome_status(outcome, success_status)
    content: Dict[str, Any] = {
        "message": f"{len(outcome.succeeded)} of {outcome.total} {noun} {action}",
        "summary": {
            "total": outcome.total,
            action: len(outcome.succeeded),
            "duplicates": len(outcome.duplicates),
            "failed": len(outcome.failed),
        },
        "success": {"count": len(outcome.succeeded), "records": outcome.succeeded},
    }
    if outcome.duplicates:
        content["duplicates"] = {"count": len(outcome.duplicates), "records": outcome.duplicates}
    if outcome.failed:
        content["failed"] = {"count": len(outcome.failed), "records": outcome.failed}

    logger.info(
        "bulk %s %s: %d ok, %d duplicates, %d failed (status %d)",
        action, noun, len(outcome.succeeded), len(outcome.duplicates), len(outcome.failed), status_code,
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))
