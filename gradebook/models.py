import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models

from .exceptions import ConfigurationError
from .grading import GradeBand as ScaleBand, GradeScale


class GradingSystem(models.Model):
    """Defines a grading system (e.g., NEB Secondary, or a custom school scale)"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    SCHOOL_LEVELS = [
        ('BASIC', 'Basic Level (Grades 1-8)'),
        ('SECONDARY', 'Secondary Level (Grades 9-12)'),
    ]

    name = models.CharField(
        max_length=100,
        unique=True,
        help_text='Name of the grading system (e.g., NEB Secondary, Custom)'
    )
    level = models.CharField(
        max_length=10,
        choices=SCHOOL_LEVELS,
        help_text='School level this grading system is for'
    )
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.get_level_display()})"

    def get_scale(self):
        """
        Build the pure GradeScale for this system's bands.

        Raises:
            ConfigurationError: If the bands leave a gap, overlap, or have
                grade points that drop as percentages rise.
        """
        return GradeScale(
            ScaleBand(
                min_percentage=band.min_percentage,
                label=band.grade_label,
                point=float(band.grade_point),
                description=band.interpretation,
                is_pass=band.is_pass,
            )
            for band in self.bands.all()
        )

    def classify(self, percentage):
        """Look up the grade band for a percentage."""
        return self.get_scale().classify(percentage)

    def is_passing_score(self, score):
        """Check if a score falls in a passing band."""
        if score is None:
            return False
        return self.classify(score).is_pass

    class Meta:
        db_table = 'grading_system'
        ordering = ['level', 'name']
        verbose_name = 'Grading System'
        verbose_name_plural = 'Grading Systems'


class GradeBand(models.Model):
    """
    One row of a grading system's table (e.g., A+ = 90% and above, 4.0).
    A band covers its minimum up to the next band's minimum.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    grading_system = models.ForeignKey(
        GradingSystem,
        on_delete=models.CASCADE,
        related_name='bands',
        db_index=True
    )
    grade_label = models.CharField(
        max_length=10,
        help_text='Grade label (e.g., A+, B, NG)'
    )
    min_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text='Minimum percentage for this grade (inclusive)'
    )
    grade_point = models.DecimalField(
        max_digits=3,
        decimal_places=2,
        validators=[MinValueValidator(0)],
        help_text='Grade point awarded for this grade (e.g., 4.0 for A+)'
    )
    interpretation = models.CharField(
        max_length=50,
        blank=True,
        help_text='Grade interpretation (e.g., Outstanding, Not Graded)'
    )
    is_pass = models.BooleanField(
        default=True,
        help_text='Whether this grade is considered passing'
    )
    order = models.IntegerField(
        default=0,
        help_text='Display order (lower numbers appear first)'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.grade_label} (>= {self.min_percentage}%) - {self.grade_point}"

    def clean(self):
        """Validate that no other band in the system starts at the same percentage"""
        if self.min_percentage is None or self.grading_system_id is None:
            return

        overlapping = GradeBand.objects.filter(
            grading_system=self.grading_system,
            min_percentage=self.min_percentage
        ).exclude(pk=self.pk)

        if overlapping.exists():
            raise ValidationError(
                f'Grade band overlaps with existing grade: {overlapping.first()}'
            )

        # Check the whole table stays monotonic with this band in place
        siblings = [
            ScaleBand(b.min_percentage, b.grade_label, float(b.grade_point))
            for b in GradeBand.objects.filter(
                grading_system=self.grading_system
            ).exclude(pk=self.pk).exclude(grade_label=self.grade_label)
        ]
        siblings.append(ScaleBand(
            self.min_percentage, self.grade_label, float(self.grade_point or Decimal('0'))
        ))
        # A table still being entered may not reach 0% yet
        if all(b.min_percentage != 0 for b in siblings):
            siblings.append(ScaleBand(Decimal('0'), '__floor__', 0.0))
        try:
            GradeScale(siblings)
        except ConfigurationError as e:
            raise ValidationError(str(e))

    class Meta:
        db_table = 'grade_band'
        ordering = ['grading_system', 'order', '-min_percentage']
        verbose_name = 'Grade Band'
        verbose_name_plural = 'Grade Bands'
        unique_together = ['grading_system', 'grade_label']
        indexes = [
            models.Index(fields=['grading_system', 'min_percentage'], name='grade_band_system_min_idx'),
        ]
