"""
Exceptions raised by the grading, aggregation and ranking code.

ConfigurationError signals a broken grade table or weight configuration and is
not recoverable per call. PreconditionError subclasses signal caller input that
breaks a documented rule; nothing is computed when one is raised.
"""


class AssessmentError(Exception):
    """Base class for assessment engine errors."""


class ConfigurationError(AssessmentError):
    """Grade scale table or weight-bound configuration is malformed."""


class PreconditionError(AssessmentError, ValueError):
    """Caller supplied data violating a documented rule."""


class PercentageRangeError(PreconditionError):
    """A percentage or weight lies outside 0-100 or is not a finite number."""


class WeightSumError(PreconditionError):
    """Assessment weights do not add up to 100%."""

    def __init__(self, total):
        self.total = total
        super().__init__(f'Assessment weights must sum to 100%. Current sum: {total}%')


class WeightBoundsError(PreconditionError):
    """Internal/terminal weights break the configured bounds."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(f"Invalid weightage configuration: {', '.join(self.errors)}")
