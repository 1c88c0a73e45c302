from datetime import date, time

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, TestCase

from gradebook.exceptions import PreconditionError

from .choices import ConflictKind
from .exceptions import InvalidIntervalError, ScheduleConflictError
from .forms import ExamSittingForm
from .models import ExamSitting
from .scheduling import (
    ExamSlot, parse_exam_date, parse_time_of_day, sittings_overlap, validate_schedule,
)
from .services import (
    bulk_schedule_sittings, cohort_timetable, invigilator_timetable,
    reschedule_sitting, schedule_sitting,
)

EXAM_DAY = date(2025, 3, 10)


def make_slot(start, end, cohort_id=1, room=None, invigilators=(), slot_id=None, day=EXAM_DAY):
    return ExamSlot(
        date=day,
        start_time=start,
        end_time=end,
        cohort_id=cohort_id,
        room_id=room,
        invigilator_ids=invigilators,
        id=slot_id,
    )


class ValidateScheduleTest(SimpleTestCase):
    """Tests for sitting conflict detection."""

    def test_no_conflicts(self):
        existing = [make_slot('09:00', '11:00', cohort_id=2, room='101', invigilators={1}, slot_id=1)]
        proposed = make_slot('09:00', '11:00', cohort_id=1, room='102', invigilators={2})
        self.assertEqual(validate_schedule(proposed, existing), [])

    def test_adjacent_slots_do_not_overlap(self):
        """Test a sitting may start exactly when another ends."""
        existing = [make_slot('09:00', '11:00', room='101', invigilators={1}, slot_id=1)]
        proposed = make_slot('11:00', '13:00', room='101', invigilators={1})
        self.assertEqual(validate_schedule(proposed, existing), [])

    def test_other_dates_ignored(self):
        existing = [make_slot('09:00', '11:00', slot_id=1, day=date(2025, 3, 11))]
        self.assertEqual(validate_schedule(make_slot('10:00', '12:00'), existing), [])

    def test_cohort_overlap(self):
        existing = [make_slot('09:00', '11:00', slot_id=7)]
        violations = validate_schedule(make_slot('10:30', '12:00'), existing)

        self.assertEqual(len(violations), 1)
        self.assertEqual(violations[0].kind, ConflictKind.COHORT_OVERLAP)
        self.assertEqual(violations[0].sitting_ref, 7)
        self.assertEqual(
            violations[0].message,
            'Students in this class already have an exam scheduled at this time'
        )
        self.assertEqual(violations[0].details['conflicting_sitting_id'], 7)

    def test_one_violation_per_shared_invigilator(self):
        """Test each shared invigilator is reported once, in id order."""
        existing = [make_slot('09:00', '11:00', cohort_id=2, invigilators={1, 3, 5}, slot_id=1)]
        proposed = make_slot('10:00', '12:00', invigilators={3, 1, 4})
        violations = validate_schedule(proposed, existing)

        self.assertEqual([v.kind for v in violations], [ConflictKind.INVIGILATOR_OVERLAP] * 2)
        self.assertEqual([v.details['invigilator_id'] for v in violations], [1, 3])
        self.assertIn('Invigilator (ID: 1)', violations[0].message)

    def test_room_overlap(self):
        existing = [make_slot('09:00', '11:00', cohort_id=2, room='101', slot_id=1)]
        violations = validate_schedule(make_slot('10:00', '12:00', room='101'), existing)

        self.assertEqual([v.kind for v in violations], [ConflictKind.ROOM_OVERLAP])
        self.assertEqual(violations[0].message, 'Room 101 is already booked at this time')

    def test_no_room_never_conflicts(self):
        existing = [make_slot('09:00', '11:00', cohort_id=2, slot_id=1)]
        self.assertEqual(validate_schedule(make_slot('10:00', '12:00'), existing), [])

    def test_all_conflicts_reported(self):
        """Test every clash is reported, not just the first."""
        existing = [
            make_slot('09:00', '11:00', room='101', invigilators={4}, slot_id=1),
            make_slot('10:00', '12:00', cohort_id=3, room='101', slot_id=2),
        ]
        proposed = make_slot('10:00', '11:30', room='101', invigilators={4})
        violations = validate_schedule(proposed, existing)

        self.assertEqual(
            [(v.kind, v.sitting_ref) for v in violations],
            [
                (ConflictKind.COHORT_OVERLAP, 1),
                (ConflictKind.INVIGILATOR_OVERLAP, 1),
                (ConflictKind.ROOM_OVERLAP, 1),
                (ConflictKind.ROOM_OVERLAP, 2),
            ]
        )

    def test_exclude_self_on_update(self):
        existing = [make_slot('09:00', '11:00', room='101', slot_id=1)]
        proposed = make_slot('09:30', '11:00', room='101', slot_id=1)
        self.assertEqual(validate_schedule(proposed, existing, exclude_id=1), [])

    def test_start_not_before_end(self):
        """Test an empty or reversed interval is the only violation reported."""
        existing = [make_slot('09:00', '11:00', slot_id=1)]
        for start, end in (('10:00', '10:00'), ('11:00', '10:00')):
            with self.subTest(start=start, end=end):
                violations = validate_schedule(make_slot(start, end), existing)
                self.assertEqual([v.kind for v in violations], [ConflictKind.INVALID_INTERVAL])
                self.assertEqual(violations[0].message, 'Start time must be before end time')

    def test_malformed_times(self):
        violations = validate_schedule(make_slot('25:00', 'noon'), [])
        self.assertEqual(len(violations), 2)
        self.assertTrue(all(v.kind == ConflictKind.INVALID_INTERVAL for v in violations))

    def test_time_objects_accepted(self):
        existing = [make_slot(time(9, 0), time(11, 0), slot_id=1)]
        violations = validate_schedule(make_slot('10:00', '12:00'), existing)
        self.assertEqual(len(violations), 1)

    def test_string_date_matches_date_object(self):
        """Test an ISO date string clashes with the same calendar date."""
        proposed = ExamSlot('2025-03-10', '10:00', '12:00', 1)
        existing = [ExamSlot(date(2025, 3, 10), '09:00', '11:00', 1, id=1)]

        violations = validate_schedule(proposed, existing)

        self.assertEqual([v.kind for v in violations], [ConflictKind.COHORT_OVERLAP])
        self.assertEqual(proposed.date, EXAM_DAY)

    def test_malformed_peer_skipped(self):
        """Test a stored sitting with bad times is logged and ignored."""
        existing = [
            make_slot('9am', '11:00', slot_id=1),
            make_slot('09:00', '11:00', slot_id=2),
        ]
        with self.assertLogs('examinations.scheduling', level='WARNING'):
            violations = validate_schedule(make_slot('10:00', '12:00'), existing)

        self.assertEqual([v.sitting_ref for v in violations], [2])


class TimeHelpersTest(SimpleTestCase):
    """Tests for time parsing and overlap helpers."""

    def test_parse_time_of_day(self):
        self.assertEqual(parse_time_of_day('09:30'), time(9, 30))
        self.assertEqual(parse_time_of_day('23:59:59'), time(23, 59, 59))
        self.assertEqual(parse_time_of_day(time(8, 0)), time(8, 0))

    def test_parse_time_rejects_bad_values(self):
        for value in ('9:30', '24:00', '12:60', '', None):
            with self.subTest(value=value):
                with self.assertRaises(InvalidIntervalError):
                    parse_time_of_day(value)

    def test_parse_exam_date(self):
        self.assertEqual(parse_exam_date('2025-03-10'), EXAM_DAY)
        self.assertEqual(parse_exam_date(EXAM_DAY), EXAM_DAY)

    def test_parse_exam_date_rejects_bad_values(self):
        for value in ('10/03/2025', 'not-a-date', None, 20250310):
            with self.subTest(value=value):
                with self.assertRaises(InvalidIntervalError):
                    parse_exam_date(value)

    def test_interval_error_is_precondition_error(self):
        with self.assertRaises(PreconditionError):
            ExamSlot('2025-13-01', '09:00', '10:00', 1)

    def test_sittings_overlap_symmetric(self):
        a = make_slot('09:00', '11:00')
        b = make_slot('10:59', '12:00')
        c = make_slot('11:00', '12:00')
        self.assertTrue(sittings_overlap(a, b))
        self.assertTrue(sittings_overlap(b, a))
        self.assertFalse(sittings_overlap(a, c))
        self.assertFalse(sittings_overlap(c, a))


class ExamSittingModelTest(TestCase):
    """Tests for ExamSitting model."""

    def setUp(self):
        self.sitting = ExamSitting.objects.create(
            exam_name='First Terminal Examination',
            subject_name='Mathematics',
            date=EXAM_DAY,
            start_time=time(9, 0),
            end_time=time(12, 0),
            cohort_id=10,
            room='101',
            invigilator_ids=[4, 7]
        )

    def test_str_representation(self):
        self.assertEqual(
            str(self.sitting),
            'First Terminal Examination - Mathematics (2025-03-10 09:00-12:00)'
        )

    def test_duration_minutes(self):
        self.assertEqual(self.sitting.duration_minutes, 180)

    def test_to_slot(self):
        slot = self.sitting.to_slot()
        self.assertEqual(slot.id, self.sitting.pk)
        self.assertEqual(slot.room_id, '101')
        self.assertEqual(slot.invigilator_ids, frozenset({4, 7}))

    def test_invalid_invigilator_ids(self):
        for ids in (['4'], [0], [4, 4], {'a': 1}):
            with self.subTest(ids=ids):
                self.sitting.invigilator_ids = ids
                with self.assertRaises(ValidationError):
                    self.sitting.full_clean()


class SchedulingServiceTest(TestCase):
    """Tests for the database-backed scheduling operations."""

    def setUp(self):
        self.maths = schedule_sitting(
            exam_name='First Terminal Examination',
            subject_name='Mathematics',
            date=EXAM_DAY,
            start_time='09:00',
            end_time='12:00',
            cohort_id=10,
            room='101',
            invigilator_ids=[4]
        )

    def test_schedule_sitting(self):
        self.assertEqual(self.maths.start_time, time(9, 0))
        self.assertEqual(ExamSitting.objects.count(), 1)

    def test_conflict_rejected(self):
        """Test a clashing sitting is not saved and every clash is reported."""
        with self.assertLogs('examinations.services', level='WARNING'):
            with self.assertRaises(ScheduleConflictError) as ctx:
                schedule_sitting(
                    exam_name='First Terminal Examination',
                    subject_name='Science',
                    date='2025-03-10',
                    start_time='11:00',
                    end_time='13:00',
                    cohort_id=10,
                    room='101',
                    invigilator_ids=[4]
                )

        kinds = [v.kind for v in ctx.exception.violations]
        self.assertEqual(
            kinds,
            [ConflictKind.COHORT_OVERLAP, ConflictKind.INVIGILATOR_OVERLAP, ConflictKind.ROOM_OVERLAP]
        )
        self.assertEqual(ExamSitting.objects.count(), 1)

    def test_invalid_interval_rejected(self):
        with self.assertRaises(InvalidIntervalError):
            schedule_sitting(
                exam_name='Unit Test',
                date=EXAM_DAY,
                start_time='14:00',
                end_time='13:00',
                cohort_id=11
            )
        self.assertEqual(ExamSitting.objects.count(), 1)

    def test_reschedule_ignores_itself(self):
        sitting = reschedule_sitting(self.maths.pk, start_time='10:00', end_time='13:00')
        self.assertEqual(sitting.start_time, time(10, 0))
        self.maths.refresh_from_db()
        self.assertEqual(self.maths.end_time, time(13, 0))

    def test_reschedule_into_conflict(self):
        english = schedule_sitting(
            exam_name='First Terminal Examination',
            subject_name='English',
            date=EXAM_DAY,
            start_time='13:00',
            end_time='15:00',
            cohort_id=10
        )
        with self.assertRaises(ScheduleConflictError):
            reschedule_sitting(english.pk, start_time='11:00')

        english.refresh_from_db()
        self.assertEqual(english.start_time, time(13, 0))

    def test_reschedule_unknown_field(self):
        with self.assertRaises(ValueError):
            reschedule_sitting(self.maths.pk, created_at=None)

    def test_bulk_schedule(self):
        """Test later items are checked against earlier accepted ones."""
        base = {'exam_name': 'Second Terminal Examination', 'date': date(2025, 6, 2)}
        created, failed = bulk_schedule_sittings([
            {**base, 'start_time': '09:00', 'end_time': '11:00', 'cohort_id': 1, 'room': '201'},
            {**base, 'start_time': '10:00', 'end_time': '12:00', 'cohort_id': 2, 'room': '201'},
            {**base, 'start_time': '10:00', 'end_time': '12:00', 'cohort_id': 3, 'room': '202'},
            {**base, 'start_time': '12:00', 'end_time': '10:00', 'cohort_id': 4},
        ])

        self.assertEqual([s.cohort_id for s in created], [1, 3])
        self.assertEqual(len(failed), 2)
        self.assertEqual(failed[0][0]['cohort_id'], 2)
        self.assertEqual([v.kind for v in failed[0][1]], [ConflictKind.ROOM_OVERLAP])
        self.assertEqual([v.kind for v in failed[1][1]], [ConflictKind.INVALID_INTERVAL])

    def test_bulk_schedule_continues_past_field_errors(self):
        """Test a malformed item is reported and the rest of the batch is saved."""
        base = {'exam_name': 'Second Terminal Examination', 'start_time': '09:00', 'end_time': '11:00'}
        created, failed = bulk_schedule_sittings([
            {**base, 'date': '2025-06-02', 'cohort_id': 1},
            {**base, 'date': 'not-a-date', 'cohort_id': 2},
            {**base, 'date': '2025-06-02', 'cohort_id': 3},
        ])

        self.assertEqual([s.cohort_id for s in created], [1, 3])
        self.assertEqual(len(failed), 1)
        self.assertEqual(failed[0][0]['cohort_id'], 2)
        self.assertTrue(failed[0][1])
        self.assertEqual(ExamSitting.objects.filter(date=date(2025, 6, 2)).count(), 2)

    def test_cohort_timetable(self):
        schedule_sitting(
            exam_name='First Terminal Examination',
            subject_name='Nepali',
            date=date(2025, 3, 9),
            start_time='09:00',
            end_time='11:00',
            cohort_id=10
        )
        timetable = cohort_timetable(10)
        self.assertEqual([e['subject_name'] for e in timetable], ['Nepali', 'Mathematics'])
        self.assertEqual(timetable[1]['duration'], 180)

        self.assertEqual(len(cohort_timetable(10, start_date=EXAM_DAY)), 1)
        self.assertEqual(cohort_timetable(99), [])

    def test_invigilator_timetable(self):
        schedule_sitting(
            exam_name='First Terminal Examination',
            subject_name='Science',
            date=EXAM_DAY,
            start_time='13:00',
            end_time='15:00',
            cohort_id=11,
            invigilator_ids=[5]
        )
        duties = invigilator_timetable(4)
        self.assertEqual([e['sitting_id'] for e in duties], [self.maths.pk])
        self.assertEqual(invigilator_timetable(4, end_date=date(2025, 3, 9)), [])


class ExamSittingFormTest(TestCase):
    """Tests for ExamSittingForm."""

    def setUp(self):
        self.existing = ExamSitting.objects.create(
            exam_name='First Terminal Examination',
            subject_name='Mathematics',
            date=EXAM_DAY,
            start_time=time(9, 0),
            end_time=time(12, 0),
            cohort_id=10,
            room='101',
            invigilator_ids=[4]
        )

    def form_data(self, **overrides):
        data = {
            'exam_name': 'First Terminal Examination',
            'subject_name': 'Science',
            'date': '2025-03-10',
            'start_time': '13:00',
            'end_time': '15:00',
            'cohort_id': 10,
            'room': '101',
            'invigilators': '4, 7',
        }
        data.update(overrides)
        return data

    def test_valid_form(self):
        form = ExamSittingForm(data=self.form_data())
        self.assertTrue(form.is_valid(), form.errors)
        sitting = form.save()
        self.assertEqual(sitting.invigilator_ids, [4, 7])

    def test_conflicts_reported(self):
        """Test the form lists every clash."""
        form = ExamSittingForm(data=self.form_data(start_time='11:00'))
        self.assertFalse(form.is_valid())
        errors = form.non_field_errors()
        self.assertEqual(len(errors), 3)
        self.assertIn('Room 101 is already booked at this time', errors)

    def test_start_after_end(self):
        form = ExamSittingForm(data=self.form_data(start_time='16:00'))
        self.assertFalse(form.is_valid())
        self.assertIn('Start time must be before end time', str(form.errors))

    def test_invalid_invigilators(self):
        form = ExamSittingForm(data=self.form_data(invigilators='4, abc'))
        self.assertFalse(form.is_valid())
        self.assertIn('invigilators', form.errors)

    def test_edit_existing_sitting(self):
        """Test an edited sitting is not compared with itself."""
        form = ExamSittingForm(
            data=self.form_data(subject_name='Mathematics', start_time='09:30', end_time='12:00'),
            instance=self.existing
        )
        self.assertTrue(form.is_valid(), form.errors)
