import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='GradingSystem',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(help_text='Name of the grading system (e.g., NEB Secondary, Custom)', max_length=100, unique=True)),
                ('level', models.CharField(choices=[('BASIC', 'Basic Level (Grades 1-8)'), ('SECONDARY', 'Secondary Level (Grades 9-12)')], help_text='School level this grading system is for', max_length=10)),
                ('description', models.TextField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Grading System',
                'verbose_name_plural': 'Grading Systems',
                'db_table': 'grading_system',
                'ordering': ['level', 'name'],
            },
        ),
        migrations.CreateModel(
            name='GradeBand',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('grade_label', models.CharField(help_text='Grade label (e.g., A+, B, NG)', max_length=10)),
                ('min_percentage', models.DecimalField(decimal_places=2, help_text='Minimum percentage for this grade (inclusive)', max_digits=5, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('grade_point', models.DecimalField(decimal_places=2, help_text='Grade point awarded for this grade (e.g., 4.0 for A+)', max_digits=3, validators=[django.core.validators.MinValueValidator(0)])),
                ('interpretation', models.CharField(blank=True, help_text='Grade interpretation (e.g., Outstanding, Not Graded)', max_length=50)),
                ('is_pass', models.BooleanField(default=True, help_text='Whether this grade is considered passing')),
                ('order', models.IntegerField(default=0, help_text='Display order (lower numbers appear first)')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('grading_system', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bands', to='gradebook.gradingsystem')),
            ],
            options={
                'verbose_name': 'Grade Band',
                'verbose_name_plural': 'Grade Bands',
                'db_table': 'grade_band',
                'ordering': ['grading_system', 'order', '-min_percentage'],
                'unique_together': {('grading_system', 'grade_label')},
                'indexes': [models.Index(fields=['grading_system', 'min_percentage'], name='grade_band_system_min_idx')],
            },
        ),
    ]
