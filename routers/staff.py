import logging
import re
from datetime import datetime, date
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError

from availability import (
    StaffAvailability,
    Weekday,
    default_availability,
    parse_target_date,
    with_override,
    with_recurring,
    without_override,
)
from config import settings
from database import get_db
from deps import get_current_user, get_admin_user
from models import ShiftIn, StaffCreate, StaffOut, StaffPage, StaffStats, StaffUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/staff", tags=["staff"])


def serialize_staff(doc: dict) -> StaffOut:
    if not doc:
        raise ValueError("Cannot serialize empty staff document")

    return StaffOut(
        id=str(doc.get("_id")),
        first_name=doc.get("first_name") or "",
        last_name=doc.get("last_name") or "",
        role=doc.get("role") or "",
        department=doc.get("department") or "",
        email=doc.get("email") or "",
        phone=doc.get("phone") or "",
        address=doc.get("address") or "",
        joining_date=doc.get("joining_date"),
        status=doc.get("status") or "active",
        license_number=doc.get("license_number") or "",
        specialty=doc.get("specialty") or "",
        qualification=doc.get("qualification") or "",
        availability=doc.get("availability") or {},
        created_at=doc.get("created_at"),
        updated_at=doc.get("updated_at"),
    )


def staff_oid(staff_id: str) -> ObjectId:
    if not ObjectId.is_valid(staff_id):
        raise HTTPException(status_code=400, detail="Invalid staff id")
    return ObjectId(staff_id)


def path_date(value: str) -> date:
    try:
        return parse_target_date(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="date must be in YYYY-MM-DD format")


async def load_staff(db, staff_id: str) -> dict:
    doc = await db.staff.find_one({"_id": staff_oid(staff_id)})
    if not doc:
        raise HTTPException(status_code=404, detail="Staff member not found")
    return doc


def stored_availability(doc: dict) -> StaffAvailability:
    """Validate what is stored before editing it in place."""
    raw = doc.get("availability")
    if not raw:
        raise HTTPException(
            status_code=409,
            detail="Staff member has no availability; replace it with PUT /availability first",
        )
    try:
        return StaffAvailability.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Stored availability for staff %s is invalid: %s", doc.get("_id"), exc)
        raise HTTPException(
            status_code=409,
            detail="Stored availability is invalid; replace it with PUT /availability",
        )


async def save_availability(db, doc: dict, availability: StaffAvailability) -> StaffOut:
    await db.staff.update_one(
        {"_id": doc["_id"]},
        {"$set": {"availability": availability.to_document(), "updated_at": datetime.utcnow()}},
    )
    logger.info("Updated availability for staff %s", doc["_id"])
    updated = await db.staff.find_one({"_id": doc["_id"]})
    return serialize_staff(updated)


def exact_ci(value: str) -> dict:
    return {"$regex": f"^{re.escape(value)}$", "$options": "i"}


@router.post("", response_model=StaffOut)
async def create_staff(
    payload: StaffCreate,
    admin=Depends(get_admin_user),
    db=Depends(get_db),
):
    email = payload.email.lower()
    existing = await db.staff.find_one({"email": email})
    if existing:
        raise HTTPException(status_code=400, detail="A staff member with this email already exists")

    now = datetime.utcnow()
    doc = {
        "first_name": payload.first_name.strip(),
        "last_name": payload.last_name.strip(),
        "role": payload.role.strip(),
        "department": payload.department.strip(),
        "email": email,
        "phone": payload.phone,
        "address": payload.address,
        "joining_date": (payload.joining_date or date.today()).isoformat(),
        "status": "active",
        "license_number": payload.license_number,
        "specialty": payload.specialty,
        "qualification": payload.qualification,
        "availability": default_availability().to_document(),
        "created_at": now,
        "updated_at": now,
    }

    res = await db.staff.insert_one(doc)
    doc["_id"] = res.inserted_id
    logger.info("Created staff %s (%s)", res.inserted_id, email)
    return serialize_staff(doc)


@router.get("", response_model=StaffPage)
async def list_staff(
    q: Optional[str] = Query(None, description="Search by name or email"),
    department: Optional[str] = None,
    role: Optional[str] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    query: dict = {}
    if q and q.strip():
        pattern = {"$regex": re.escape(q.strip()), "$options": "i"}
        query["$or"] = [
            {"first_name": pattern},
            {"last_name": pattern},
            {"email": pattern},
        ]
    if department:
        query["department"] = exact_ci(department)
    if role:
        query["role"] = exact_ci(role)
    if status:
        query["status"] = exact_ci(status)

    total = await db.staff.count_documents(query)

    skip = (page - 1) * page_size
    cursor = (
        db.staff.find(query)
        .sort([("last_name", 1), ("first_name", 1)])
        .skip(skip)
        .limit(page_size)
    )

    items = []
    async for doc in cursor:
        items.append(serialize_staff(doc))

    return StaffPage(items=items, page=page, page_size=page_size, total=total)


@router.get("/stats", response_model=StaffStats)
async def staff_stats(
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    total = active = inactive = 0
    departments: dict = {}
    roles: dict = {}

    async for doc in db.staff.find({}):
        total += 1
        status = doc.get("status") or "active"
        if status == "active":
            active += 1
        elif status == "inactive":
            inactive += 1
        department = doc.get("department") or ""
        departments[department] = departments.get(department, 0) + 1
        role = doc.get("role") or ""
        roles[role] = roles.get(role, 0) + 1

    return StaffStats(
        total_staff=total,
        active_staff=active,
        inactive_staff=inactive,
        department_breakdown=departments,
        role_breakdown=roles,
    )


@router.get("/{staff_id}", response_model=StaffOut)
async def get_staff(
    staff_id: str,
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    return serialize_staff(await load_staff(db, staff_id))


@router.put("/{staff_id}", response_model=StaffOut)
async def update_staff(
    staff_id: str,
    payload: StaffUpdate,
    admin=Depends(get_admin_user),
    db=Depends(get_db),
):
    doc = await load_staff(db, staff_id)

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in changes:
        changes["email"] = changes["email"].lower()
        clash = await db.staff.find_one({"email": changes["email"], "_id": {"$ne": doc["_id"]}})
        if clash:
            raise HTTPException(status_code=409, detail="Email already in use")
    if "joining_date" in changes:
        changes["joining_date"] = changes["joining_date"].isoformat()

    if changes:
        changes["updated_at"] = datetime.utcnow()
        await db.staff.update_one({"_id": doc["_id"]}, {"$set": changes})
        logger.info("Updated staff %s fields %s", doc["_id"], sorted(changes))

    updated = await db.staff.find_one({"_id": doc["_id"]})
    return serialize_staff(updated)


@router.put("/{staff_id}/availability", response_model=StaffOut)
async def replace_availability(
    staff_id: str,
    payload: StaffAvailability,
    admin=Depends(get_admin_user),
    db=Depends(get_db),
):
    doc = await load_staff(db, staff_id)
    return await save_availability(db, doc, payload)


@router.patch("/{staff_id}/availability/recurring/{weekday}", response_model=StaffOut)
async def set_recurring_shift(
    staff_id: str,
    weekday: Weekday,
    payload: ShiftIn,
    admin=Depends(get_admin_user),
    db=Depends(get_db),
):
    doc = await load_staff(db, staff_id)
    availability = with_recurring(stored_availability(doc), weekday, payload.shift)
    return await save_availability(db, doc, availability)


@router.put("/{staff_id}/availability/overrides/{override_date}", response_model=StaffOut)
async def set_override(
    staff_id: str,
    override_date: str,
    payload: ShiftIn,
    admin=Depends(get_admin_user),
    db=Depends(get_db),
):
    day = path_date(override_date)
    doc = await load_staff(db, staff_id)
    availability = with_override(stored_availability(doc), day, payload.shift)
    return await save_availability(db, doc, availability)


@router.delete("/{staff_id}/availability/overrides/{override_date}", response_model=StaffOut)
async def delete_override(
    staff_id: str,
    override_date: str,
    admin=Depends(get_admin_user),
    db=Depends(get_db),
):
    day = path_date(override_date)
    doc = await load_staff(db, staff_id)
    availability = without_override(stored_availability(doc), day)
    return await save_availability(db, doc, availability)


@router.delete("/{staff_id}")
async def delete_staff(
    staff_id: str,
    admin=Depends(get_admin_user),
    db=Depends(get_db),
):
    oid = staff_oid(staff_id)
    res = await db.staff.delete_one({"_id": oid})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Staff member not found")
    logger.info("Deleted staff %s", oid)
    return {"status": "deleted", "id": staff_id}
