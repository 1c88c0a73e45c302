"""
Utility functions for the gradebook app.
Cached access to DB-backed grade scales.
"""
import logging

from django.core.cache import cache

from . import config
from .grading import get_default_scale

logger = logging.getLogger(__name__)


def _scale_cache_key(grading_system_id):
    return f'grade_scale_{grading_system_id}'


def get_active_grading_system(level=None):
    """
    Get the active grading system for a level, falling back to any active system.

    Returns:
        GradingSystem instance or None
    """
    from .models import GradingSystem

    systems = GradingSystem.objects.filter(is_active=True)
    grading_system = None
    if level:
        grading_system = systems.filter(level=level).first()
    return grading_system or systems.first()


def get_grade_scale_cached(grading_system=None):
    """
    Get the GradeScale for a grading system with caching.

    Args:
        grading_system: GradingSystem instance, or None for the scale configured
            in settings (GRADEBOOK_GRADE_BANDS).

    Returns:
        GradeScale

    Raises:
        ConfigurationError: If the stored bands do not form a valid scale.
    """
    if grading_system is None:
        return get_default_scale()

    cache_key = _scale_cache_key(grading_system.pk)
    scale = cache.get(cache_key)

    if scale is None:
        scale = grading_system.get_scale()
        cache.set(cache_key, scale, config.GRADE_SCALE_CACHE_TIMEOUT)
        logger.debug(f"Cached grade scale for {grading_system.name}: {scale!r}")

    return scale


def invalidate_grade_scale_cache(grading_system_id):
    """Drop the cached scale for a grading system."""
    cache.delete(_scale_cache_key(grading_system_id))
