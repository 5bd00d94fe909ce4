from datetime import datetime, date
from pydantic import BaseModel, EmailStr
from typing import Optional, Literal, List, Dict, Any

from availability import ShiftKind, ShiftSource, Weekday


class StaffCreate(BaseModel):
    first_name: str
    last_name: str
    role: str
    department: str
    email: EmailStr
    phone: str = ""
    address: str = ""
    joining_date: Optional[date] = None
    license_number: str = ""
    specialty: str = ""
    qualification: str = ""


class StaffUpdate(BaseModel):
    """Profile fields only. Availability has its own endpoints."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = None
    department: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    joining_date: Optional[date] = None
    status: Optional[Literal["active", "inactive"]] = None
    license_number: Optional[str] = None
    specialty: Optional[str] = None
    qualification: Optional[str] = None


class StaffOut(BaseModel):
    id: str
    first_name: str
    last_name: str
    role: str
    department: str
    email: str
    phone: str = ""
    address: str = ""
    joining_date: Optional[str] = None
    status: str = "active"
    license_number: str = ""
    specialty: str = ""
    qualification: str = ""
    # Returned as stored, even when it no longer validates.
    availability: Any = {}
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StaffPage(BaseModel):
    items: List[StaffOut]
    page: int
    page_size: int
    total: int


class StaffStats(BaseModel):
    total_staff: int
    active_staff: int
    inactive_staff: int
    department_breakdown: Dict[str, int]
    role_breakdown: Dict[str, int]


class ShiftIn(BaseModel):
    shift: ShiftKind


class DayShiftOut(BaseModel):
    date: date
    weekday: Weekday
    shift: ShiftKind
    source: ShiftSource


class StaffShiftOut(BaseModel):
    staff_id: str
    name: str
    department: str
    date: date
    shift: ShiftKind
    source: ShiftSource


class StaffWeekOut(BaseModel):
    staff_id: str
    name: str
    department: str
    days: List[DayShiftOut]
