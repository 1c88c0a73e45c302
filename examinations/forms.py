from django import forms

from .models import ExamSitting
from .scheduling import validate_schedule
from .services import same_day_sittings


class ExamSittingForm(forms.ModelForm):
    """Form for scheduling an exam sitting; reports every timetable clash."""

    invigilators = forms.CharField(
        required=False,
        help_text='Comma-separated staff ids, e.g. 12, 31',
        widget=forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'e.g., 12, 31'}),
    )

    class Meta:
        model = ExamSitting
        fields = ['exam_name', 'subject_name', 'date', 'start_time', 'end_time', 'cohort_id', 'room']
        widgets = {
            'exam_name': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'e.g., First Terminal Examination'}),
            'subject_name': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'e.g., Mathematics'}),
            'date': forms.DateInput(attrs={'class': 'input input-bordered w-full', 'type': 'date'}),
            'start_time': forms.TimeInput(attrs={'class': 'input input-bordered w-full', 'type': 'time'}),
            'end_time': forms.TimeInput(attrs={'class': 'input input-bordered w-full', 'type': 'time'}),
            'cohort_id': forms.NumberInput(attrs={'class': 'input input-bordered w-full', 'min': '1'}),
            'room': forms.TextInput(attrs={'class': 'input input-bordered w-full', 'placeholder': 'e.g., 101'}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if self.instance.pk and not self.is_bound:
            self.fields['invigilators'].initial = ', '.join(
                str(i) for i in self.instance.invigilator_ids or []
            )

    def clean_invigilators(self):
        raw = self.cleaned_data.get('invigilators') or ''
        ids = []
        for part in raw.split(','):
            part = part.strip()
            if not part:
                continue
            if not part.isdigit() or int(part) < 1:
                raise forms.ValidationError(f'"{part}" is not a valid staff id.')
            if int(part) in ids:
                raise forms.ValidationError(f'Staff id {part} is listed more than once.')
            ids.append(int(part))
        return ids

    def clean_room(self):
        return (self.cleaned_data.get('room') or '').strip()

    def clean(self):
        cleaned_data = super().clean()
        self.instance.invigilator_ids = cleaned_data.get('invigilators', [])

        required = ('date', 'start_time', 'end_time', 'cohort_id')
        if any(cleaned_data.get(name) is None for name in required):
            return cleaned_data

        if cleaned_data['start_time'] >= cleaned_data['end_time']:
            raise forms.ValidationError('Start time must be before end time.')

        proposed = ExamSitting(
            date=cleaned_data['date'],
            start_time=cleaned_data['start_time'],
            end_time=cleaned_data['end_time'],
            cohort_id=cleaned_data['cohort_id'],
            room=cleaned_data.get('room', ''),
            invigilator_ids=self.instance.invigilator_ids,
        ).to_slot()

        exclude_id = self.instance.pk
        peers = [s.to_slot() for s in same_day_sittings(proposed.date, exclude_id)]
        violations = validate_schedule(proposed, peers, exclude_id=exclude_id)
        if violations:
            raise forms.ValidationError([v.message for v in violations])

        return cleaned_data
