from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='ExamSitting',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('exam_name', models.CharField(help_text='e.g., First Terminal Examination', max_length=100)),
                ('subject_name', models.CharField(blank=True, help_text='e.g., Mathematics, English', max_length=100)),
                ('date', models.DateField()),
                ('start_time', models.TimeField()),
                ('end_time', models.TimeField()),
                ('cohort_id', models.PositiveIntegerField(help_text='Class/section sitting this exam together')),
                ('room', models.CharField(blank=True, help_text='Room number (optional)', max_length=20)),
                ('invigilator_ids', models.JSONField(blank=True, default=list, help_text='Staff ids supervising this sitting')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Exam Sitting',
                'verbose_name_plural': 'Exam Sittings',
                'db_table': 'exam_sitting',
                'ordering': ['date', 'start_time'],
                'indexes': [
                    models.Index(fields=['date', 'cohort_id'], name='sitting_date_cohort_idx'),
                    models.Index(fields=['date', 'room'], name='sitting_date_room_idx'),
                ],
            },
        ),
    ]
