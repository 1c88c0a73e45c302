"""
Signals keeping cached grade scales in step with their sources.

- GradeBand / GradingSystem changes drop the cached DB-backed scale.
- Changing GRADEBOOK_* settings (e.g. override_settings in tests) drops the
  default scale built from GRADEBOOK_GRADE_BANDS.
"""
import logging

from django.core.signals import setting_changed
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from .grading import reset_default_scale
from .models import GradeBand, GradingSystem
from .utils import invalidate_grade_scale_cache

logger = logging.getLogger(__name__)


# ============ Cache Invalidation Signals ============

@receiver(post_save, sender=GradeBand)
@receiver(post_delete, sender=GradeBand)
def invalidate_band_scale_cache(sender, instance, **kwargs):
    """Invalidate the cached scale when one of its bands is modified."""
    invalidate_grade_scale_cache(instance.grading_system_id)
    logger.debug(f"Grade scale cache invalidated due to {sender.__name__} change")


@receiver(post_delete, sender=GradingSystem)
def invalidate_system_scale_cache(sender, instance, **kwargs):
    """Invalidate the cached scale when its grading system is removed."""
    invalidate_grade_scale_cache(instance.pk)


@receiver(setting_changed)
def reset_configured_scale(sender, setting, **kwargs):
    """Rebuild the default scale lazily after GRADEBOOK_GRADE_BANDS changes."""
    if setting == 'GRADEBOOK_GRADE_BANDS':
        reset_default_scale()
