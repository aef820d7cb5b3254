# backend/tutorlink/services/availability.py
"""
Declared weekly availability.

A tutor declares availability as a JSON array with one entry per weekday::

    [{"day": "MON", "off": false, "slots": [{"start": "14:00", "end": "16:00"}]}, ...]

``parse_availability`` is a validating constructor that never raises:
anything it cannot make sense of yields ``None``, which every caller
treats exactly like "no availability declared".
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
import json
import logging
import re
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..core.enums import DayKey
from ..core.timezone_utils import same_calendar_day, start_of_day

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
END_OF_DAY = "24:00"

_HHMM = re.compile(r"^(\d{2}):(\d{2})$")


def to_minutes(hhmm: str) -> int:
    """
    Minutes since midnight for an ``HH:MM`` string.

    ``"24:00"`` maps to 1440 so it can close the last slot of a day.

    Raises:
        ValueError: if the value is not a valid time of day
    """
    if hhmm == END_OF_DAY:
        return MINUTES_PER_DAY
    match = _HHMM.match(hhmm) if isinstance(hhmm, str) else None
    if not match:
        raise ValueError(f"Invalid time of day: {hhmm!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid time of day: {hhmm!r}")
    return hours * 60 + minutes


@dataclass(frozen=True)
class TimeSlot:
    start: str
    end: str

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end)

    def contains(self, start_minute: float, end_minute: float) -> bool:
        return self.start_minutes <= start_minute and end_minute <= self.end_minutes

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class DayAvailability:
    day: DayKey
    off: bool
    slots: Tuple[TimeSlot, ...] = ()

    @property
    def open_slots(self) -> Tuple[TimeSlot, ...]:
        """Slots that count for matching; an off day has none."""
        return () if self.off else self.slots

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": self.day.value,
            "off": self.off,
            "slots": [slot.to_dict() for slot in self.slots],
        }


@dataclass(frozen=True)
class DeclaredAvailability:
    """All seven weekdays, MON first. Days missing from the source are off."""

    days: Tuple[DayAvailability, ...]

    def for_day(self, key: DayKey) -> DayAvailability:
        return self.days[DayKey.ordered().index(key)]

    def for_date(self, day: date) -> DayAvailability:
        return self.days[day.weekday()]

    def iter_open_ranges(self, day: date) -> Iterator[TimeSlot]:
        yield from self.for_date(day).open_slots

    def fits(self, start: datetime, end: datetime) -> bool:
        """
        True iff ``[start, end)`` sits inside a single declared slot of its day.

        The range must not cross midnight (ending exactly at the next
        midnight is allowed) and the day must not be off.
        """
        if end <= start or not same_calendar_day(start, end):
            return False
        midnight = start_of_day(start.date())
        start_minute = (start - midnight).total_seconds() / 60
        end_minute = (end - midnight).total_seconds() / 60
        return any(
            slot.contains(start_minute, end_minute)
            for slot in self.iter_open_ranges(start.date())
        )

    def to_list(self) -> List[Dict[str, Any]]:
        return [day.to_dict() for day in self.days]

    def to_json(self) -> str:
        """Serialize to the stored format (compact JSON, MON..SUN)."""
        return json.dumps(self.to_list(), separators=(",", ":"))

    @property
    def is_empty(self) -> bool:
        return not any(day.open_slots for day in self.days)


def _parse_slots(raw_slots: Any, day: DayKey) -> Tuple[TimeSlot, ...]:
    if not isinstance(raw_slots, list):
        return ()
    slots: List[TimeSlot] = []
    for raw in raw_slots:
        if not isinstance(raw, dict):
            continue
        start, end = raw.get("start"), raw.get("end")
        try:
            if start == END_OF_DAY:
                raise ValueError("24:00 is only valid as an end time")
            if to_minutes(end) <= to_minutes(start):
                raise ValueError("slot end must be after its start")
        except ValueError as exc:
            logger.debug(f"Skipping slot {raw!r} on {day.value}: {exc}")
            continue
        slots.append(TimeSlot(start=start, end=end))
    return tuple(slots)


def parse_availability(raw: Any) -> Optional[DeclaredAvailability]:
    """
    Parse stored availability into a ``DeclaredAvailability``.

    Accepts the JSON text as stored or an already-decoded list. Returns
    ``None`` for missing, malformed or empty input, or when no entry names
    a known day. Unknown day keys and invalid slots are dropped; the first
    entry for a day wins.
    """
    if raw is None:
        return None
    if isinstance(raw, (str, bytes)):
        if not raw.strip():
            return None
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(raw, list) or not raw:
        return None

    parsed: Dict[DayKey, DayAvailability] = {}
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        try:
            key = DayKey(entry.get("day"))
        except (TypeError, ValueError):
            continue
        if key in parsed:
            continue
        parsed[key] = DayAvailability(
            day=key,
            off=entry.get("off") is True,
            slots=_parse_slots(entry.get("slots"), key),
        )

    if not parsed:
        return None

    days = tuple(
        parsed.get(key) or DayAvailability(day=key, off=True) for key in DayKey.ordered()
    )
    return DeclaredAvailability(days=days)


def iter_window_days(window_start: datetime, window_days: int) -> Iterator[date]:
    first = window_start.date()
    for offset in range(window_days):
        yield first + timedelta(days=offset)
