"""
Management command to seed the default NEB grading system.
This creates the grading system from the GRADEBOOK_GRADE_BANDS table
(Nepal NEB 8-band scale unless overridden in settings).

Usage:
    python manage.py seed_grading_data
    python manage.py seed_grading_data --force
"""
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from gradebook import config
from gradebook.exceptions import ConfigurationError
from gradebook.grading import GradeScale
from gradebook.models import GradingSystem, GradeBand


class Command(BaseCommand):
    help = 'Seed the default NEB grading system and its grade bands'

    def add_arguments(self, parser):
        parser.add_argument(
            '--force',
            action='store_true',
            help='Overwrite existing grading data',
        )
        parser.add_argument(
            '--name',
            type=str,
            default='NEB Standard',
            help='Name of the grading system to create',
        )
        parser.add_argument(
            '--level',
            type=str,
            default='SECONDARY',
            choices=[code for code, _ in GradingSystem.SCHOOL_LEVELS],
            help='School level the grading system applies to',
        )

    def handle(self, *args, **options):
        try:
            scale = GradeScale(config.GRADE_BANDS)
        except ConfigurationError as e:
            raise CommandError(f'GRADEBOOK_GRADE_BANDS is invalid: {e}')

        with transaction.atomic():
            self.create_grading_system(scale, options['name'], options['level'], options['force'])

    def create_grading_system(self, scale, name, level, force):
        """Create the grading system with one band per scale row."""
        if GradingSystem.objects.filter(name=name).exists() and not force:
            self.stdout.write(f'{name} grading system already exists. Use --force to overwrite.')
            return

        if force:
            GradingSystem.objects.filter(name=name).delete()

        system = GradingSystem.objects.create(
            name=name,
            level=level,
            description='National Examination Board (Nepal) letter grading scale',
            is_active=True,
        )

        for i, band in enumerate(scale.bands):
            GradeBand.objects.create(
                grading_system=system,
                grade_label=band.label,
                min_percentage=band.min_percentage,
                grade_point=band.point,
                interpretation=band.description,
                is_pass=band.is_pass,
                order=i,
            )
            self.stdout.write(f'  Created grade: {band.label} (>= {band.min_percentage}%, {band.point})')

        self.stdout.write(self.style.SUCCESS(f'Created {name} grading system with {len(scale)} grades'))
