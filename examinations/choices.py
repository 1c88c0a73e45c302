from django.db import models
from django.utils.translation import gettext_lazy as _


class ConflictKind(models.TextChoices):
    COHORT_OVERLAP = 'cohort_overlap', _('Cohort overlap')
    INVIGILATOR_OVERLAP = 'invigilator_overlap', _('Invigilator overlap')
    ROOM_OVERLAP = 'room_overlap', _('Room overlap')
    INVALID_INTERVAL = 'invalid_interval', _('Invalid interval')
