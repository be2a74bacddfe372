"""Total and percentage scores for individual submissions."""

from dataclasses import dataclass

from .models import StudentSubmission

DISPLAY_PRECISION = 2


@dataclass
class SubmissionScore:
    """Aggregated score of one submission at full precision."""
    student_id: int
    student_name: str
    total: float
    max_score: float
    percentage: float
    is_graded: bool


def total_score(submission: StudentSubmission) -> float:
    """Sum of received weights over the answers that have one (0 when none do)."""
    return sum(a.received_weight for a in submission.answers if a.received_weight is not None)


def percentage(total: float, overall_score: float) -> float:
    """Share of ``overall_score`` earned, in percent; 0 for an exam worth nothing."""
    if overall_score == 0:
        return 0.0
    return 100 * total / overall_score


def display(value: float) -> float:
    """Round a score for presentation; aggregation itself never rounds."""
    return round(value, DISPLAY_PRECISION)


def score_submission(submission: StudentSubmission, overall_score: float) -> SubmissionScore:
    total = total_score(submission)
    return SubmissionScore(
        student_id=submission.student_id,
        student_name=submission.student_name,
        total=total,
        max_score=overall_score,
        percentage=percentage(total, overall_score),
        is_graded=submission.is_graded,
    )
