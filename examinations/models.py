from datetime import datetime

from django.core.exceptions import ValidationError
from django.db import models

from .scheduling import ExamSlot


class ExamSitting(models.Model):
    """
    A time-boxed exam sitting for one cohort (class) on one day.
    Example: Grade 10 A sits Mathematics on 2081-03-12, 09:00 - 12:00 in Room 101.
    """
    exam_name = models.CharField(
        max_length=100,
        help_text="e.g., First Terminal Examination"
    )
    subject_name = models.CharField(
        max_length=100,
        blank=True,
        help_text="e.g., Mathematics, English"
    )
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    cohort_id = models.PositiveIntegerField(
        help_text="Class/section sitting this exam together"
    )
    room = models.CharField(
        max_length=20,
        blank=True,
        help_text="Room number (optional)"
    )
    invigilator_ids = models.JSONField(
        default=list,
        blank=True,
        help_text="Staff ids supervising this sitting"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'exam_sitting'
        ordering = ['date', 'start_time']
        verbose_name = "Exam Sitting"
        verbose_name_plural = "Exam Sittings"
        indexes = [
            models.Index(fields=['date', 'cohort_id'], name='sitting_date_cohort_idx'),
            models.Index(fields=['date', 'room'], name='sitting_date_room_idx'),
        ]

    def __str__(self):
        return (
            f"{self.exam_name} - {self.subject_name or 'General'} "
            f"({self.date} {self.start_time.strftime('%H:%M')}-{self.end_time.strftime('%H:%M')})"
        )

    def clean(self):
        """Validate the invigilator list holds distinct positive staff ids"""
        ids = self.invigilator_ids or []
        if not isinstance(ids, list) or not all(
            isinstance(i, int) and not isinstance(i, bool) and i > 0 for i in ids
        ):
            raise ValidationError({'invigilator_ids': 'Invigilators must be a list of staff ids.'})
        if len(set(ids)) != len(ids):
            raise ValidationError({'invigilator_ids': 'An invigilator is listed more than once.'})

    def to_slot(self):
        """Convert to the ExamSlot value the conflict validator works on."""
        return ExamSlot(
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            cohort_id=self.cohort_id,
            room_id=self.room or None,
            invigilator_ids=frozenset(self.invigilator_ids or ()),
            id=self.pk,
        )

    @property
    def duration_minutes(self):
        """Calculate duration in minutes."""
        start = datetime.combine(self.date, self.start_time)
        end = datetime.combine(self.date, self.end_time)
        return int((end - start).total_seconds() / 60)
