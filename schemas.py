"""
Database Schemas for the Workforce Records API

Each Pydantic model maps to a MongoDB collection (lowercased class name).
Request bodies go through `validation.py` first for readable error lists,
then through these models to apply defaults and build the stored document.

Field names in the store and on the wire are camelCase; Python attributes
are snake_case with camelCase aliases.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from bson import ObjectId
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from validation import parse_date

TaskStatus = Literal["pending", "in-progress", "completed", "cancelled"]
Importance = Literal["low", "medium", "high"]


def _coerce_date(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError("must be a valid date")
    return parsed


ParsedDate = Annotated[Optional[datetime], BeforeValidator(_coerce_date)]


def describe_errors(exc: ValidationError) -> List[str]:
    """Flatten a pydantic ValidationError into "field: message" strings."""
    return [
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    ]


class Employee(BaseModel):
    """
    Staff members
    Collection: "employee"
    """
    # emails are unique on their stripped form; NaN and Infinity are not storable salaries
    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", str_strip_whitespace=True, allow_inf_nan=False
    )

    name: str = Field(..., description="Full name")
    email: str = Field(..., description="Unique email address")
    phone: str = Field(..., description="Contact phone")
    salary: Union[int, float] = Field(..., description="Salary, non-negative")
    department: str = Field(..., description="Department name")
    position: str = Field(..., description="Job position")
    date_of_birth: ParsedDate = Field(None, alias="dateOfBirth")
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    role: str = Field("employee", description="Application role")
    avatar: str = Field("", description="Avatar URL")

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class EmployeeUpdate(BaseModel):
    """Partial employee update; only fields sent by the client are written."""
    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", str_strip_whitespace=True, allow_inf_nan=False
    )

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    salary: Optional[Union[int, float]] = None
    department: Optional[str] = None
    position: Optional[str] = None
    date_of_birth: ParsedDate = Field(None, alias="dateOfBirth")
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    role: Optional[str] = None
    avatar: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)


class Task(BaseModel):
    """
    Work items assigned to an employee
    Collection: "task"
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = Field(..., description="Short title")
    description: str = Field(..., description="Details")
    status: TaskStatus = Field("pending", description="pending | in-progress | completed | cancelled")
    scheduled: bool = Field(False, description="Placed on the schedule")
    day: ParsedDate = Field(None, description="Scheduled day")
    slot_count: int = Field(1, ge=1, alias="slotCount")
    start_slot: int = Field(0, ge=0, alias="startSlot")
    importance: Importance = Field("medium", description="low | medium | high")
    employee_id: str = Field(..., alias="employeeId", description="Employee _id as string")

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(by_alias=True)
        doc["employeeId"] = ObjectId(doc["employeeId"])
        return doc


class TaskUpdate(BaseModel):
    """Partial task update; only fields sent by the client are written."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    scheduled: Optional[bool] = None
    day: ParsedDate = None
    slot_count: Optional[int] = Field(None, ge=1, alias="slotCount")
    start_slot: Optional[int] = Field(None, ge=0, alias="startSlot")
    importance: Optional[Importance] = None
    employee_id: Optional[str] = Field(None, alias="employeeId")

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(by_alias=True, exclude_unset=True)
        # day may be cleared with null, every other field keeps its value
        doc = {k: v for k, v in doc.items() if v is not None or k == "day"}
        if doc.get("employeeId"):
            doc["employeeId"] = ObjectId(doc["employeeId"])
        return doc
