"""
Table-driven grade lookup.

A GradeScale is an immutable, validated table of GradeBand rows. Each band
covers the percentages from its own minimum up to (but excluding) the minimum
of the next band above it; the top band runs up to 100 inclusive.

The default scale is built from the GRADEBOOK_GRADE_BANDS setting (Nepal NEB
scale unless overridden):

    >>> classify_grade(85).label
    'A'
    >>> classify_grade(34.99).label
    'NG'
"""
import logging
import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .exceptions import ConfigurationError, PercentageRangeError

logger = logging.getLogger(__name__)

HUNDRED = Decimal('100')


def to_decimal(value, field='Percentage'):
    """Convert a number to Decimal, rejecting non-numeric and non-finite values."""
    if isinstance(value, bool):
        raise PercentageRangeError(f'{field} must be a number, got {value!r}')
    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise PercentageRangeError(f'{field} must be a number, got {value!r}')
    if not number.is_finite():
        raise PercentageRangeError(f'{field} must be a finite number, got {value!r}')
    return number


def check_percentage(value, field='Percentage'):
    """Return value as Decimal, raising PercentageRangeError unless 0 <= value <= 100."""
    number = to_decimal(value, field)
    if number < 0 or number > HUNDRED:
        raise PercentageRangeError(f'{field} must be between 0 and 100, got {value}')
    return number


def quantize(value, places=2):
    """Round half-up to the given number of decimal places."""
    return Decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class GradeBand:
    min_percentage: Decimal
    label: str
    point: float
    description: str = ''
    is_pass: bool = True

    def __str__(self):
        return f"{self.label} (>= {self.min_percentage}%) - {self.point}"


class GradeScale:
    """
    Immutable grade table.

    Args:
        bands: Iterable of GradeBand instances, or tuples of
            (min_percentage, label, point[, description[, is_pass]]).

    Raises:
        ConfigurationError: If the table is empty, has duplicate minimums or
            labels, a minimum outside 0-100, no band starting at 0, or a grade
            point that drops as the minimum rises.
    """

    def __init__(self, bands):
        self._bands = self._build(bands)

    @property
    def bands(self):
        """Bands ordered from the highest minimum to the lowest."""
        return self._bands

    def classify(self, percentage):
        """
        Look up the band containing a percentage.

        Raises:
            PercentageRangeError: If percentage is not a finite number in 0-100.
        """
        value = check_percentage(percentage)
        for band in self._bands:
            if value >= band.min_percentage:
                return band
        # Unreachable: the lowest band always starts at 0
        raise ConfigurationError(f'No grade band contains {percentage}')

    def get_band(self, label):
        """Return the band with the given label, or None."""
        for band in self._bands:
            if band.label == label:
                return band
        return None

    def __iter__(self):
        return iter(self._bands)

    def __len__(self):
        return len(self._bands)

    def __repr__(self):
        return f"GradeScale({', '.join(band.label for band in self._bands)})"

    # === table validation ===

    @staticmethod
    def _coerce(band):
        if isinstance(band, GradeBand):
            return band
        try:
            minimum, label, point, *rest = band
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f'Malformed grade band: {band!r}') from exc
        if len(rest) > 2:
            raise ConfigurationError(f'Malformed grade band: {band!r}')
        description = rest[0] if rest else ''
        is_pass = rest[1] if len(rest) > 1 else True
        return GradeBand(minimum, str(label), point, description, bool(is_pass))

    @classmethod
    def _build(cls, bands):
        rows = []
        for band in bands:
            band = cls._coerce(band)
            try:
                minimum = Decimal(str(band.min_percentage))
                point = float(band.point)
            except (InvalidOperation, TypeError, ValueError) as exc:
                raise ConfigurationError(f'Malformed grade band: {band!r}') from exc
            if not minimum.is_finite() or not math.isfinite(point):
                raise ConfigurationError(f'Grade band {band.label} has a non-finite value')
            if minimum < 0 or minimum > HUNDRED:
                raise ConfigurationError(
                    f'Grade band {band.label} minimum must be between 0 and 100, got {minimum}'
                )
            rows.append(GradeBand(minimum, band.label, point, band.description, band.is_pass))

        if not rows:
            raise ConfigurationError('Grade scale must contain at least one band')

        rows.sort(key=lambda b: b.min_percentage, reverse=True)

        labels = [b.label for b in rows]
        if len(set(labels)) != len(labels):
            raise ConfigurationError(f'Grade scale has duplicate labels: {labels}')

        for higher, lower in zip(rows, rows[1:]):
            if higher.min_percentage == lower.min_percentage:
                raise ConfigurationError(
                    f'Grade bands {higher.label} and {lower.label} overlap at {higher.min_percentage}%'
                )
            if higher.point < lower.point:
                raise ConfigurationError(
                    f'Grade point for {higher.label} ({higher.point}) is lower than '
                    f'for {lower.label} ({lower.point})'
                )

        if rows[-1].min_percentage != 0:
            raise ConfigurationError(
                f'Grade scale leaves a gap below {rows[-1].min_percentage}%; lowest band must start at 0'
            )

        return tuple(rows)


_default_scale = None


def get_default_scale():
    """Build (once) the scale configured by GRADEBOOK_GRADE_BANDS."""
    global _default_scale
    if _default_scale is None:
        from . import config
        try:
            _default_scale = GradeScale(config.GRADE_BANDS)
        except ConfigurationError as e:
            logger.error(f'Invalid GRADEBOOK_GRADE_BANDS setting: {e}')
            raise
    return _default_scale


def reset_default_scale():
    """Forget the cached default scale (used when settings change)."""
    global _default_scale
    _default_scale = None


def classify_grade(percentage, scale=None):
    """Classify a percentage on the given scale (default: configured scale)."""
    if scale is None:
        scale = get_default_scale()
    return scale.classify(percentage)


def is_passing(percentage, scale=None):
    """Check if a percentage falls in a passing band (NG fails)."""
    return classify_grade(percentage, scale).is_pass
