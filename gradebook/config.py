"""
Configuration settings for the gradebook app.

These values can be overridden in Django settings by prefixing with GRADEBOOK_.
For example, to widen the internal assessment weight range:
    GRADEBOOK_INTERNAL_WEIGHT_RANGE = (20, 50)

All configuration values are lazily loaded to avoid Django setup issues.
"""
from collections import namedtuple
from decimal import Decimal

from .exceptions import ConfigurationError


def _get_setting(name, default):
    """Get a gradebook setting from Django settings or use default."""
    from django.conf import settings
    return getattr(settings, f'GRADEBOOK_{name}', default)


# Define defaults as constants for direct use when Django settings are not needed
_DEFAULTS = {
    # NEB grading scale: (min_percentage, label, grade_point, description, is_pass)
    'GRADE_BANDS': (
        (90, 'A+', 4.0, 'Outstanding', True),
        (80, 'A', 3.6, 'Excellent', True),
        (70, 'B+', 3.2, 'Very Good', True),
        (60, 'B', 2.8, 'Good', True),
        (50, 'C+', 2.4, 'Satisfactory', True),
        (40, 'C', 2.0, 'Acceptable', True),
        (35, 'D', 1.6, 'Basic', True),
        (0, 'NG', 0.0, 'Not Graded', False),
    ),

    # Internal + terminal combination (NEB)
    'INTERNAL_WEIGHT_RANGE': (25, 50),
    'TERMINAL_WEIGHT_RANGE': (50, 75),

    # Weights must sum to 100 within this tolerance
    'WEIGHT_SUM_TOLERANCE': Decimal('0.01'),

    # Rounding for percentages, percentiles and GPA
    'DECIMAL_PLACES': 2,

    # Highest grade point on the scale (GPA sanity checks)
    'MAX_GRADE_POINT': 4.0,

    # Cache timeout for DB-backed grade scales (5 minutes)
    'GRADE_SCALE_CACHE_TIMEOUT': 300,
}


WeightBounds = namedtuple(
    'WeightBounds',
    ['internal_min', 'internal_max', 'terminal_min', 'terminal_max'],
)


def get_weight_bounds():
    """
    Load and validate the internal/terminal weight bounds.

    Raises:
        ConfigurationError: If a range is inverted, falls outside 0-100, or no
            internal/terminal pair inside the ranges can sum to 100.
    """
    internal = _config.INTERNAL_WEIGHT_RANGE
    terminal = _config.TERMINAL_WEIGHT_RANGE

    try:
        internal_min, internal_max = (Decimal(str(v)) for v in internal)
        terminal_min, terminal_max = (Decimal(str(v)) for v in terminal)
    except (TypeError, ValueError, ArithmeticError) as exc:
        raise ConfigurationError(
            f'Weight ranges must be (min, max) number pairs: {internal!r}, {terminal!r}'
        ) from exc

    for label, low, high in (
        ('Internal', internal_min, internal_max),
        ('Terminal', terminal_min, terminal_max),
    ):
        if not (0 <= low <= high <= 100):
            raise ConfigurationError(
                f'{label} weight range must satisfy 0 <= min <= max <= 100, got ({low}, {high})'
            )

    if internal_min + terminal_min > 100 or internal_max + terminal_max < 100:
        raise ConfigurationError(
            'Internal and terminal weight ranges cannot produce a total of 100%'
        )

    return WeightBounds(internal_min, internal_max, terminal_min, terminal_max)


class _ConfigProxy:
    """
    Lazy configuration proxy that loads settings only when accessed.
    This avoids Django setup issues during module import.
    """

    def __getattr__(self, name):
        if name in _DEFAULTS:
            return _get_setting(name, _DEFAULTS[name])
        raise AttributeError(f"Unknown config setting: {name}")


# Module-level proxy object for attribute access
_config = _ConfigProxy()


# For backwards compatibility and direct attribute access
def __getattr__(name):
    """Enable module-level attribute access via the config proxy."""
    return getattr(_config, name)
