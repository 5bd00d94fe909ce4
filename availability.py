"""
Staff availability: a weekly recurring shift pattern plus date-specific
overrides, and the rule that turns the two into "what shift is this person
working on date X".

The persisted document looks like:

    {
        "recurring": {"monday": "on-call", ..., "sunday": "off"},
        "overrides": {"2024-03-04": "off", ...}
    }

``resolve_shift`` accepts either a validated ``StaffAvailability`` or that raw
document as stored.
"""
import logging
import re
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, NamedTuple, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


class ShiftKind(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    NIGHT = "night"
    ON_CALL = "on-call"
    OFF = "off"


class Weekday(str, Enum):
    # Ordered so that list(Weekday)[d.weekday()] is the weekday of d.
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


WEEKDAYS: Tuple[Weekday, ...] = tuple(Weekday)

DateLike = Union[date, datetime, str]


class WeeklyTemplate(BaseModel):
    """One shift per weekday. All seven days are required."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    monday: ShiftKind
    tuesday: ShiftKind
    wednesday: ShiftKind
    thursday: ShiftKind
    friday: ShiftKind
    saturday: ShiftKind
    sunday: ShiftKind

    def shift_for(self, weekday: Weekday) -> ShiftKind:
        return getattr(self, Weekday(weekday).value)


class StaffAvailability(BaseModel):
    """
    A validated availability snapshot.

    Frozen only at the attribute level: ``overrides`` is a plain dict, and
    writing to it directly skips the key check. Use ``with_override`` and
    ``without_override``, which always build a new instance.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    recurring: WeeklyTemplate
    overrides: Dict[str, ShiftKind] = Field(default_factory=dict)

    @field_validator("overrides")
    @classmethod
    def _override_keys_are_dates(cls, value: Dict[str, ShiftKind]) -> Dict[str, ShiftKind]:
        bad = [key for key in value if not is_iso_date(key)]
        if bad:
            raise ValueError(f"override keys must be YYYY-MM-DD dates, got {bad}")
        return value

    def to_document(self) -> dict:
        return self.model_dump(mode="json")


ShiftSource = Literal["override", "recurring", "fallback"]


class ResolvedShift(NamedTuple):
    date: date
    shift: ShiftKind
    source: ShiftSource


def is_iso_date(value: Any) -> bool:
    if not isinstance(value, str) or not _ISO_DATE.fullmatch(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def parse_target_date(value: DateLike) -> date:
    """
    Normalise a date-like value to a naive calendar date.

    datetimes keep their own calendar day (no timezone conversion); strings
    must be strict YYYY-MM-DD. Anything else is a caller bug and raises.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        if not is_iso_date(value):
            raise ValueError(f"date must be in YYYY-MM-DD format, got {value!r}")
        return datetime.strptime(value, "%Y-%m-%d").date()
    raise TypeError(f"expected a date or YYYY-MM-DD string, got {type(value).__name__}")


def weekday_of(value: DateLike) -> Weekday:
    return WEEKDAYS[parse_target_date(value).weekday()]


def default_availability() -> StaffAvailability:
    """Availability given to newly onboarded staff: on-call weekdays, off weekends."""
    recurring = {day.value: ShiftKind.ON_CALL for day in WEEKDAYS[:5]}
    recurring.update({day.value: ShiftKind.OFF for day in WEEKDAYS[5:]})
    return StaffAvailability(recurring=WeeklyTemplate(**recurring), overrides={})


def _entries(availability: Union[StaffAvailability, Mapping, None]) -> Tuple[Mapping, Mapping]:
    if isinstance(availability, StaffAvailability):
        return availability.recurring.model_dump(), availability.overrides
    if not availability:
        return {}, {}
    if not isinstance(availability, Mapping):
        logger.warning("Ignoring availability of type %s", type(availability).__name__)
        return {}, {}
    return (
        _mapping_or_empty(availability.get("recurring"), "recurring"),
        _mapping_or_empty(availability.get("overrides"), "overrides"),
    )


def _mapping_or_empty(value: Any, part: str) -> Mapping:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        logger.warning("Ignoring %s of type %s", part, type(value).__name__)
        return {}
    return value


def _as_shift(value: Any, where: str) -> Optional[ShiftKind]:
    if value is None:
        return None
    try:
        return ShiftKind(value)
    except ValueError:
        logger.warning("Ignoring unknown shift value %r for %s", value, where)
        return None


def resolve_entry(
    availability: Union[StaffAvailability, Mapping, None], target_date: DateLike
) -> ResolvedShift:
    """
    Resolve the effective shift for ``target_date`` and report where it came from.

    Order:
        1. an override keyed by the exact ISO date wins;
        2. otherwise the recurring entry for the date's weekday;
        3. otherwise ``off``. This only happens on malformed data and is logged.
    """
    day = parse_target_date(target_date)
    recurring, overrides = _entries(availability)

    key = day.isoformat()
    shift = _as_shift(overrides.get(key), f"override {key}")
    if shift is not None:
        return ResolvedShift(day, shift, "override")

    weekday = WEEKDAYS[day.weekday()]
    shift = _as_shift(recurring.get(weekday.value), f"recurring {weekday.value}")
    if shift is not None:
        return ResolvedShift(day, shift, "recurring")

    logger.warning(
        "No shift entry for %s (%s); availability is incomplete, treating as off",
        key,
        weekday.value,
    )
    return ResolvedShift(day, ShiftKind.OFF, "fallback")


def resolve_shift(
    availability: Union[StaffAvailability, Mapping, None], target_date: DateLike
) -> ShiftKind:
    return resolve_entry(availability, target_date).shift


def week_dates(anchor: DateLike) -> List[date]:
    """The Sunday-to-Saturday week containing ``anchor``."""
    day = parse_target_date(anchor)
    start = day - timedelta(days=(day.weekday() + 1) % 7)
    return [start + timedelta(days=offset) for offset in range(7)]


def resolve_week(
    availability: Union[StaffAvailability, Mapping, None], anchor: DateLike
) -> List[ResolvedShift]:
    return [resolve_entry(availability, day) for day in week_dates(anchor)]


def with_override(
    availability: StaffAvailability, target_date: DateLike, shift: Union[ShiftKind, str]
) -> StaffAvailability:
    key = parse_target_date(target_date).isoformat()
    overrides = dict(availability.overrides)
    overrides[key] = ShiftKind(shift)
    return availability.model_copy(update={"overrides": overrides})


def without_override(availability: StaffAvailability, target_date: DateLike) -> StaffAvailability:
    key = parse_target_date(target_date).isoformat()
    if key not in availability.overrides:
        return availability
    overrides = {k: v for k, v in availability.overrides.items() if k != key}
    return availability.model_copy(update={"overrides": overrides})


def with_recurring(
    availability: StaffAvailability, weekday: Union[Weekday, str], shift: Union[ShiftKind, str]
) -> StaffAvailability:
    recurring = availability.recurring.model_copy(
        update={Weekday(weekday).value: ShiftKind(shift)}
    )
    return availability.model_copy(update={"recurring": recurring})
