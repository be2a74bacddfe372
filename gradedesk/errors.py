"""Exceptions raised by the grading core."""

from typing import Iterable, List, Optional


class GradingError(Exception):
    """Base class for every gradedesk grading failure."""


class NetworkError(GradingError):
    """The grading backend was unreachable or answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(NetworkError):
    """The backend does not know the requested exam (or other resource)."""


class SchemaError(NetworkError):
    """A backend response did not match the expected schema."""


class IncompleteGradingError(GradingError):
    """A save was attempted while some answers still lack a score."""

    def __init__(self, missing: Iterable[int]):
        self.missing: List[int] = list(missing)
        listed = ", ".join(str(q) for q in self.missing)
        super().__init__(f"Missing scores for question(s): {listed}")


class OracleError(GradingError):
    """The auto-grading oracle failed or returned an unusable response."""


class ScoreRangeError(GradingError, ValueError):
    """A score is negative, not finite, or above the question weight."""

    def __init__(self, message: str, question_ids: Iterable[int] = ()):
        super().__init__(message)
        self.question_ids: List[int] = list(question_ids)


class UnknownQuestionError(GradingError, KeyError):
    """An edit referenced a question that is not part of the submission."""

    def __init__(self, question_id):
        super().__init__(question_id)
        self.question_id = question_id

    def __str__(self) -> str:
        return f"Question {self.question_id!r} is not part of this submission"


class NotSubmittedError(GradingError):
    """The student never submitted, so there is nothing to grade."""


class NoGradedSubmissionsError(GradingError):
    """Analytics were requested for an exam with no graded submissions."""


class ExamValidationError(GradingError, ValueError):
    """An edited exam definition is incomplete and was not sent to the backend."""

    def __init__(self, problems: Iterable[str]):
        self.problems: List[str] = list(problems)
        super().__init__("; ".join(self.problems))
