"""
Exam sitting conflict detection.

validate_schedule() checks a proposed sitting against the other sittings on
the same day and returns every clash it finds:

- the cohort (class) already sits another exam in an overlapping slot
- an invigilator already supervises an overlapping sitting (one violation per
  invigilator)
- the room is already booked for an overlapping sitting

Slots are half-open, so 09:00-11:00 and 11:00-13:00 do not overlap. A
malformed slot (bad time string, or start not before end) is reported as
invalid_interval and nothing else is checked.

The function does no I/O. Callers fetch the same-day sittings and must make
"read, validate, insert" atomic themselves (see examinations.services).
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time

from .choices import ConflictKind
from .exceptions import InvalidIntervalError

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$')


def parse_exam_date(value):
    """
    Return value as a datetime.date.

    Accepts date objects (datetimes are truncated) and 'YYYY-MM-DD' strings.

    Raises:
        InvalidIntervalError: If the value is not a calendar date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise InvalidIntervalError(f'Invalid date format: {value!r}. Expected YYYY-MM-DD')


@dataclass(frozen=True)
class ExamSlot:
    """
    One sitting as the validator sees it.

    date is normalised to datetime.date so string and date inputs compare
    equal; times stay as given and are parsed when checked.
    """
    date: date
    start_time: time | str
    end_time: time | str
    cohort_id: int
    room_id: str | None = None
    invigilator_ids: frozenset[int] = frozenset()
    id: int | None = None

    def __post_init__(self):
        object.__setattr__(self, 'date', parse_exam_date(self.date))
        object.__setattr__(self, 'invigilator_ids', frozenset(self.invigilator_ids or ()))
        object.__setattr__(self, 'room_id', self.room_id or None)


@dataclass(frozen=True)
class Violation:
    kind: ConflictKind
    message: str
    sitting_ref: object = None
    details: dict = field(default_factory=dict, compare=False)


def parse_time_of_day(value, field_name='time'):
    """
    Return value as a datetime.time.

    Accepts time objects and 'HH:MM' / 'HH:MM:SS' strings (24-hour clock).

    Raises:
        InvalidIntervalError: If the value is not a well-formed time of day.
    """
    if isinstance(value, time):
        return value
    if isinstance(value, str):
        match = TIME_PATTERN.match(value.strip())
        if match:
            hours, minutes, seconds = match.groups()
            return time(int(hours), int(minutes), int(seconds or 0))
    raise InvalidIntervalError(f'Invalid {field_name} format: {value!r}. Expected HH:MM')


def slot_bounds(slot):
    """Parsed (start, end) times of a slot."""
    return (
        parse_time_of_day(slot.start_time, 'start time'),
        parse_time_of_day(slot.end_time, 'end time'),
    )


def sittings_overlap(a, b):
    """True if both slots fall on the same date and their times intersect."""
    if a.date != b.date:
        return False
    start_a, end_a = slot_bounds(a)
    start_b, end_b = slot_bounds(b)
    return start_a < end_b and start_b < end_a


def check_interval(slot):
    """Return invalid_interval violations for a slot (empty when well-formed)."""
    violations = []
    parsed = {}
    for field_name, value in (('start time', slot.start_time), ('end time', slot.end_time)):
        try:
            parsed[field_name] = parse_time_of_day(value, field_name)
        except InvalidIntervalError as e:
            violations.append(Violation(
                kind=ConflictKind.INVALID_INTERVAL,
                message=str(e),
                details={field_name.replace(' ', '_'): value},
            ))

    if violations:
        return violations

    if parsed['start time'] >= parsed['end time']:
        violations.append(Violation(
            kind=ConflictKind.INVALID_INTERVAL,
            message='Start time must be before end time',
            details={'start_time': str(slot.start_time), 'end_time': str(slot.end_time)},
        ))
    return violations


def _conflict_details(existing):
    start, end = slot_bounds(existing)
    return {
        'conflicting_sitting_id': existing.id,
        'date': str(existing.date),
        'start_time': start.strftime('%H:%M'),
        'end_time': end.strftime('%H:%M'),
    }


def validate_schedule(proposed, existing_same_day, exclude_id=None):
    """
    Check a proposed sitting against existing sittings.

    Args:
        proposed: ExamSlot to validate.
        existing_same_day: Iterable of ExamSlot already scheduled (sittings on
            other dates are ignored; ones with malformed times are logged
            and skipped).
        exclude_id: Id of a sitting to skip, i.e. the one being updated.

    Returns:
        list[Violation]: Every conflict found, in the order the existing
        sittings were given; empty means the sitting can be saved.
    """
    violations = check_interval(proposed)
    if violations:
        return violations

    overlapping = []
    for existing in existing_same_day:
        if exclude_id is not None and existing.id == exclude_id:
            continue
        if check_interval(existing):
            # A stored sitting with unusable times cannot clash with anything
            logger.warning(f'Skipping sitting {existing.id} with malformed times in conflict check')
            continue
        if sittings_overlap(proposed, existing):
            overlapping.append(existing)

    for existing in overlapping:
        details = _conflict_details(existing)

        if existing.cohort_id == proposed.cohort_id:
            violations.append(Violation(
                kind=ConflictKind.COHORT_OVERLAP,
                message='Students in this class already have an exam scheduled at this time',
                sitting_ref=existing.id,
                details={**details, 'cohort_id': proposed.cohort_id},
            ))

        for invigilator_id in sorted(proposed.invigilator_ids & existing.invigilator_ids):
            violations.append(Violation(
                kind=ConflictKind.INVIGILATOR_OVERLAP,
                message=f'Invigilator (ID: {invigilator_id}) already has invigilation duty at this time',
                sitting_ref=existing.id,
                details={**details, 'invigilator_id': invigilator_id},
            ))

        if proposed.room_id and existing.room_id == proposed.room_id:
            violations.append(Violation(
                kind=ConflictKind.ROOM_OVERLAP,
                message=f'Room {proposed.room_id} is already booked at this time',
                sitting_ref=existing.id,
                details={**details, 'room': proposed.room_id},
            ))

    if violations:
        logger.debug(
            f'Sitting for cohort {proposed.cohort_id} on {proposed.date} '
            f'has {len(violations)} conflict(s) with {len(overlapping)} sitting(s)'
        )

    return violations
