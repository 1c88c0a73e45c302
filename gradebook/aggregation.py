"""
Weighted grade and GPA aggregation.

- combine_weighted: any number of assessments whose weights sum to 100%
- combine_internal_terminal: the NEB internal + terminal exam case, with the
  configured weight bounds enforced before anything is calculated
- term_gpa: credit-hour weighted GPA for one term
- aggregate_gpa: two-year aggregate GPA (Class 11 + Class 12)
"""
import logging
from dataclasses import dataclass
from decimal import Decimal

from . import config
from .exceptions import PreconditionError, WeightBoundsError, WeightSumError
from .grading import check_percentage, classify_grade, quantize, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WeightedAssessment:
    percentage: float
    weight_percent: float
    name: str = ''


@dataclass(frozen=True)
class SubjectResult:
    credit_hours: float
    grade_point: float
    name: str = ''


@dataclass(frozen=True)
class WeightedResult:
    final_percentage: float
    label: str
    point: float
    contributions: tuple


def _as_assessment(item):
    if isinstance(item, WeightedAssessment):
        return item
    percentage, weight_percent = item
    return WeightedAssessment(percentage, weight_percent)


def _as_subject(item):
    if isinstance(item, SubjectResult):
        return item
    credit_hours, grade_point = item
    return SubjectResult(credit_hours, grade_point)


def combine_weighted(assessments, scale=None):
    """
    Combine weighted assessment percentages into one graded result.

    finalPercentage = sum(percentage * weight / 100)

    Args:
        assessments: Iterable of WeightedAssessment or (percentage, weight) pairs.
        scale: GradeScale to classify with (default: configured scale).

    Returns:
        WeightedResult with the final percentage, grade label, grade point and
        each assessment's weighted contribution in input order.

    Raises:
        PercentageRangeError: If a percentage or weight is outside 0-100.
        WeightSumError: If weights do not sum to 100 (within tolerance).
    """
    assessments = [_as_assessment(a) for a in assessments]
    places = config.DECIMAL_PLACES

    values = []
    for assessment in assessments:
        label = f' for {assessment.name}' if assessment.name else ''
        percentage = check_percentage(assessment.percentage, f'Percentage{label}')
        weight = check_percentage(assessment.weight_percent, f'Weight{label}')
        values.append((percentage, weight))

    total_weight = sum((w for _, w in values), Decimal('0'))
    if abs(total_weight - 100) > Decimal(str(config.WEIGHT_SUM_TOLERANCE)):
        raise WeightSumError(total_weight)

    contributions = [p * w / 100 for p, w in values]
    # Weight tolerance can push the total just past 100
    exact = min(max(sum(contributions, Decimal('0')), Decimal('0')), Decimal('100'))
    # Classify before rounding so 89.995 stays below the 90 boundary
    band = classify_grade(exact, scale)
    final = quantize(exact, places)

    logger.debug(f'Combined {len(values)} assessments into {final}% ({band.label})')

    return WeightedResult(
        final_percentage=float(final),
        label=band.label,
        point=band.point,
        contributions=tuple(float(quantize(c, places)) for c in contributions),
    )


def validate_weight_config(internal_weight, terminal_weight, bounds=None):
    """
    Check internal/terminal weights against the configured bounds.

    Returns:
        list[str]: Every broken rule; empty when the pair is acceptable.
    """
    bounds = bounds or config.get_weight_bounds()
    errors = []

    internal = to_decimal(internal_weight, 'Internal weight')
    terminal = to_decimal(terminal_weight, 'Terminal weight')

    if internal < bounds.internal_min or internal > bounds.internal_max:
        errors.append(
            f'Internal assessment weightage must be between '
            f'{bounds.internal_min}% and {bounds.internal_max}%'
        )
    if terminal < bounds.terminal_min or terminal > bounds.terminal_max:
        errors.append(
            f'Terminal exam weightage must be between '
            f'{bounds.terminal_min}% and {bounds.terminal_max}%'
        )

    total = internal + terminal
    if abs(total - 100) > Decimal(str(config.WEIGHT_SUM_TOLERANCE)):
        errors.append(f'Internal and terminal weightages must sum to 100%. Current sum: {total}%')

    return errors


def combine_internal_terminal(
    internal_percentage,
    terminal_percentage,
    internal_weight,
    terminal_weight=None,
    scale=None,
    bounds=None,
):
    """
    Combine an internal assessment with a terminal exam (NEB rules).

    terminal_weight defaults to 100 - internal_weight. Weight bounds are
    checked first; no calculation happens when any bound is broken.

    Raises:
        WeightBoundsError: Lists every broken weight rule.
        PercentageRangeError: If either percentage is outside 0-100.
    """
    if terminal_weight is None:
        terminal_weight = 100 - to_decimal(internal_weight, 'Internal weight')

    errors = validate_weight_config(internal_weight, terminal_weight, bounds)
    if errors:
        raise WeightBoundsError(errors)

    return combine_weighted(
        [
            WeightedAssessment(internal_percentage, internal_weight, 'internal assessment'),
            WeightedAssessment(terminal_percentage, terminal_weight, 'terminal exam'),
        ],
        scale,
    )


def term_gpa(subjects):
    """
    GPA = sum(credit_hours * grade_point) / sum(credit_hours), rounded to 2dp.

    An empty list, or subjects whose credit hours are all zero, yields 0.0.

    Raises:
        PreconditionError: If a subject has negative or non-numeric credit hours
            (fractional credit hours such as 4.0 or 1.5 are accepted).
    """
    weighted = Decimal('0')
    total_credits = 0

    for subject in (_as_subject(s) for s in subjects):
        credits = to_decimal(subject.credit_hours, f'Credit hours for {subject.name or "subject"}')
        if credits < 0:
            raise PreconditionError(
                f'Invalid credit hours for subject {subject.name or "?"}: {subject.credit_hours}'
            )
        if credits == 0:
            continue
        weighted += credits * to_decimal(subject.grade_point, 'Grade point')
        total_credits += credits

    if total_credits == 0:
        return 0.0
    return float(quantize(weighted / total_credits, config.DECIMAL_PLACES))


def aggregate_gpa(first_year_gpa, second_year_gpa):
    """
    Aggregate GPA for a two-year programme (NEB Class 11 + Class 12).

    Raises:
        PreconditionError: If either GPA is outside 0 to MAX_GRADE_POINT.
    """
    max_point = to_decimal(config.MAX_GRADE_POINT, 'Maximum grade point')
    gpas = []
    for label, gpa in (('first year', first_year_gpa), ('second year', second_year_gpa)):
        value = to_decimal(gpa, f'GPA for {label}')
        if value < 0 or value > max_point:
            raise PreconditionError(f'Invalid GPA for {label}: {gpa}. Must be between 0 and {max_point}')
        gpas.append(value)

    return float(quantize(sum(gpas) / 2, config.DECIMAL_PLACES))
