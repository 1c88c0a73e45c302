from gradebook.exceptions import AssessmentError, PreconditionError


class InvalidIntervalError(PreconditionError):
    """An exam sitting's date or times are malformed, or start is not before end."""

    def __init__(self, message, violations=()):
        self.violations = list(violations)
        super().__init__(message)


class ScheduleConflictError(AssessmentError):
    """A sitting clashes with existing sittings; carries every violation found."""

    def __init__(self, violations):
        self.violations = list(violations)
        messages = '; '.join(v.message for v in self.violations)
        super().__init__(f'Exam sitting conflicts with the existing schedule: {messages}')
