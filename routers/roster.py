"""
Roster views built on the availability resolver.

Stored availability documents are handed to the resolver as they are, so a
record with a damaged or missing template still renders (as "off", with a
warning in the logs) instead of failing the whole roster.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from availability import ShiftKind, resolve_entry, resolve_week, weekday_of
from database import get_db
from deps import get_current_user
from models import DayShiftOut, StaffShiftOut, StaffWeekOut
from routers.staff import exact_ci, load_staff, path_date

router = APIRouter(prefix="/api/roster", tags=["roster"])


def query_date(value: Optional[str]) -> date:
    if not value:
        return date.today()
    return path_date(value)


def display_name(doc: dict) -> str:
    return f"{doc.get('first_name') or ''} {doc.get('last_name') or ''}".strip()


def week_for(doc: dict, anchor: date) -> StaffWeekOut:
    days = [
        DayShiftOut(date=r.date, weekday=weekday_of(r.date), shift=r.shift, source=r.source)
        for r in resolve_week(doc.get("availability"), anchor)
    ]
    return StaffWeekOut(
        staff_id=str(doc["_id"]),
        name=display_name(doc),
        department=doc.get("department") or "",
        days=days,
    )


def active_staff_query(department: Optional[str]) -> dict:
    query: dict = {"status": "active"}
    if department:
        query["department"] = exact_ci(department)
    return query


@router.get("/staff/{staff_id}/shift", response_model=StaffShiftOut)
async def staff_shift(
    staff_id: str,
    on: Optional[str] = Query(None, alias="date", description="YYYY-MM-DD, defaults to today"),
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    day = query_date(on)
    doc = await load_staff(db, staff_id)
    resolved = resolve_entry(doc.get("availability"), day)
    return StaffShiftOut(
        staff_id=str(doc["_id"]),
        name=display_name(doc),
        department=doc.get("department") or "",
        date=resolved.date,
        shift=resolved.shift,
        source=resolved.source,
    )


@router.get("/staff/{staff_id}/week", response_model=StaffWeekOut)
async def staff_week(
    staff_id: str,
    on: Optional[str] = Query(None, alias="date", description="Any day of the week, YYYY-MM-DD"),
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    day = query_date(on)
    doc = await load_staff(db, staff_id)
    return week_for(doc, day)


@router.get("/week", response_model=List[StaffWeekOut])
async def roster_week(
    on: Optional[str] = Query(None, alias="date", description="Any day of the week, YYYY-MM-DD"),
    department: Optional[str] = None,
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    day = query_date(on)
    cursor = db.staff.find(active_staff_query(department)).sort(
        [("last_name", 1), ("first_name", 1)]
    )

    items: List[StaffWeekOut] = []
    async for doc in cursor:
        items.append(week_for(doc, day))
    return items


@router.get("/on-shift", response_model=List[StaffShiftOut])
async def on_shift(
    shift: ShiftKind,
    on: Optional[str] = Query(None, alias="date", description="YYYY-MM-DD, defaults to today"),
    department: Optional[str] = None,
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    day = query_date(on)
    cursor = db.staff.find(active_staff_query(department)).sort(
        [("last_name", 1), ("first_name", 1)]
    )

    items: List[StaffShiftOut] = []
    async for doc in cursor:
        resolved = resolve_entry(doc.get("availability"), day)
        if resolved.shift != shift:
            continue
        items.append(
            StaffShiftOut(
                staff_id=str(doc["_id"]),
                name=display_name(doc),
                department=doc.get("department") or "",
                date=resolved.date,
                shift=resolved.shift,
                source=resolved.source,
            )
        )
    return items
