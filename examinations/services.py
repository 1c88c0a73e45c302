"""
Scheduling operations backed by the database.

These functions are the storage side of the conflict validator: they fetch
the same-day sittings, run validate_schedule() and save only when the report
is empty.

Concurrency: "read same-day sittings, validate, insert" runs inside one
transaction.atomic() block, and the same-day rows are locked with
select_for_update(). On PostgreSQL/MySQL this serialises two requests that
touch an existing sitting on that day, but a row lock cannot cover a row that
does not exist yet: two requests on an otherwise empty day can still both pass
validation. Closing that gap needs a storage-level exclusion constraint (e.g.
PostgreSQL EXCLUDE USING gist on (room, tsrange)) or an application lock keyed
by date; which one fits depends on the production database. SQLite serialises
writers on its own.
"""
import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from .choices import ConflictKind
from .exceptions import InvalidIntervalError, ScheduleConflictError
from .models import ExamSitting
from .scheduling import ExamSlot, parse_time_of_day, validate_schedule

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    'exam_name', 'subject_name', 'date', 'start_time', 'end_time',
    'cohort_id', 'room', 'invigilator_ids',
}


def same_day_sittings(date, exclude_id=None, lock=False):
    """
    Get all sittings on a date.

    Args:
        date: The calendar date
        exclude_id: Optional sitting id to leave out
        lock: Lock the rows for the rest of the current transaction
    """
    sittings = ExamSitting.objects.filter(date=date)
    if lock:
        sittings = sittings.select_for_update()
    if exclude_id is not None:
        sittings = sittings.exclude(pk=exclude_id)
    return sittings


def check_sitting(slot, exclude_id=None, lock=False):
    """
    Validate a slot against the stored sittings for its date.

    Raises:
        InvalidIntervalError: If the slot's times are malformed.
        ScheduleConflictError: If the slot clashes with stored sittings.
    """
    peers = [s.to_slot() for s in same_day_sittings(slot.date, exclude_id, lock=lock)]
    violations = validate_schedule(slot, peers, exclude_id=exclude_id)

    if not violations:
        return

    if violations[0].kind == ConflictKind.INVALID_INTERVAL:
        raise InvalidIntervalError('; '.join(v.message for v in violations), violations)

    logger.warning(
        f'Rejected sitting for cohort {slot.cohort_id} on {slot.date}: '
        f'{len(violations)} conflict(s)'
    )
    raise ScheduleConflictError(violations)


def _slot_from_fields(fields, sitting_id=None):
    # Accept 'YYYY-MM-DD' strings so dates compare equal to stored ones
    fields['date'] = ExamSitting._meta.get_field('date').to_python(fields['date'])
    return ExamSlot(
        date=fields['date'],
        start_time=fields['start_time'],
        end_time=fields['end_time'],
        cohort_id=fields['cohort_id'],
        room_id=fields.get('room') or None,
        invigilator_ids=fields.get('invigilator_ids') or (),
        id=sitting_id,
    )


def schedule_sitting(exam_name, date, start_time, end_time, cohort_id,
                     subject_name='', room='', invigilator_ids=None):
    """
    Create an exam sitting if it clashes with nothing on its date.

    Returns:
        The saved ExamSitting.

    Raises:
        InvalidIntervalError: Malformed times or start not before end.
        ScheduleConflictError: Carries every cohort/invigilator/room clash.
        django.core.exceptions.ValidationError: Field-level problems.
    """
    fields = {
        'exam_name': exam_name,
        'subject_name': subject_name,
        'date': date,
        'start_time': start_time,
        'end_time': end_time,
        'cohort_id': cohort_id,
        'room': room or '',
        'invigilator_ids': list(invigilator_ids or []),
    }

    with transaction.atomic():
        check_sitting(_slot_from_fields(fields), lock=True)

        fields['start_time'] = parse_time_of_day(start_time, 'start time')
        fields['end_time'] = parse_time_of_day(end_time, 'end time')
        sitting = ExamSitting(**fields)
        sitting.full_clean()
        sitting.save()

    logger.info(f'Scheduled {sitting} for cohort {cohort_id}')
    return sitting


def reschedule_sitting(sitting_id, **changes):
    """
    Update an existing sitting, checking it against its peers (not itself).

    Raises:
        ExamSitting.DoesNotExist: If no sitting has that id.
        ValueError: If changes name a field that cannot be edited.
        InvalidIntervalError / ScheduleConflictError: As for schedule_sitting.
    """
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update sitting fields: {', '.join(sorted(unknown))}")

    with transaction.atomic():
        sitting = ExamSitting.objects.select_for_update().get(pk=sitting_id)

        fields = {name: getattr(sitting, name) for name in EDITABLE_FIELDS}
        fields.update(changes)
        if fields.get('invigilator_ids') is None:
            fields['invigilator_ids'] = []

        check_sitting(_slot_from_fields(fields, sitting.pk), exclude_id=sitting.pk, lock=True)

        fields['start_time'] = parse_time_of_day(fields['start_time'], 'start time')
        fields['end_time'] = parse_time_of_day(fields['end_time'], 'end time')
        fields['invigilator_ids'] = list(fields['invigilator_ids'])
        for name, value in fields.items():
            setattr(sitting, name, value)
        sitting.full_clean()
        sitting.save()

    logger.info(f'Rescheduled sitting {sitting_id}: {sitting}')
    return sitting


def bulk_schedule_sittings(items):
    """
    Schedule several sittings one after another.

    Each item is checked against the stored schedule, which already includes
    the items accepted earlier in the batch. A rejected item never stops the
    batch; each item is saved or rolled back on its own.

    Args:
        items: Iterable of keyword dicts for schedule_sitting.

    Returns:
        tuple: (created sittings, [(item, errors), ...] for rejected items).
        errors is the list of Violation for timetable problems, or the
        ValidationError messages for field problems (e.g. a bad date).
    """
    created = []
    failed = []

    for item in items:
        try:
            created.append(schedule_sitting(**item))
        except (ScheduleConflictError, InvalidIntervalError) as e:
            failed.append((item, e.violations))
        except ValidationError as e:
            logger.warning(f'Rejected sitting {item.get("exam_name", "")!r}: {e.messages}')
            failed.append((item, e.messages))

    logger.info(f'Bulk scheduling: {len(created)} created, {len(failed)} rejected')
    return created, failed


def _timetable_entry(sitting):
    return {
        'sitting_id': sitting.pk,
        'exam_name': sitting.exam_name,
        'subject_name': sitting.subject_name,
        'date': sitting.date,
        'start_time': sitting.start_time,
        'end_time': sitting.end_time,
        'duration': sitting.duration_minutes,
        'room': sitting.room,
        'invigilator_ids': list(sitting.invigilator_ids or []),
        'cohort_id': sitting.cohort_id,
    }


def _in_range(sittings, start_date, end_date):
    if start_date:
        sittings = sittings.filter(date__gte=start_date)
    if end_date:
        sittings = sittings.filter(date__lte=end_date)
    return sittings.order_by('date', 'start_time')


def cohort_timetable(cohort_id, start_date=None, end_date=None):
    """Exam timetable for one cohort, in date/time order."""
    sittings = _in_range(ExamSitting.objects.filter(cohort_id=cohort_id), start_date, end_date)
    return [_timetable_entry(s) for s in sittings]


def invigilator_timetable(invigilator_id, start_date=None, end_date=None):
    """Invigilation duties for one staff member, in date/time order."""
    # JSON containment lookups are not available on every backend
    sittings = _in_range(ExamSitting.objects.all(), start_date, end_date)
    return [
        _timetable_entry(s) for s in sittings
        if invigilator_id in (s.invigilator_ids or [])
    ]
