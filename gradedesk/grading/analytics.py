"""Class-wide statistics over the graded submissions of one exam."""

import logging
import statistics
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from gradedesk.errors import NoGradedSubmissionsError
from .aggregator import SubmissionScore, score_submission
from .models import Exam, StudentSubmission

LOG = logging.getLogger(__name__)

# (lower, upper, label); lower bound exclusive except for the first bucket
BUCKETS = [
    (0.0, 20.0, "0-20%"),
    (20.0, 40.0, "20-40%"),
    (40.0, 60.0, "40-60%"),
    (60.0, 80.0, "60-80%"),
    (80.0, 100.0, "80-100%"),
]

EASY_THRESHOLD = 80.0
MEDIUM_THRESHOLD = 60.0


class DifficultyLevel(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class SummaryStats(BaseModel):
    """Headline numbers for an exam."""
    graded_count: int
    overall_score: float
    average: float = Field(description="Mean total score")
    average_percentage: float = Field(description="Mean total as a percentage of overall_score")
    maximum: float
    minimum: float
    median_percentage: float
    stdev_percentage: float = Field(description="Population standard deviation of percentages")


class RankedSubmission(BaseModel):
    rank: int
    student_id: int
    student_name: str
    total: float
    percentage: float


class DistributionBucket(BaseModel):
    label: str
    lower: float
    upper: float
    count: int


class QuestionDifficulty(BaseModel):
    """Average performance on one question."""
    question_id: int
    text: str
    weight: float
    graded_answers: int
    average_score: float
    average_percentage: float
    level: DifficultyLevel


class ExamAnalytics(BaseModel):
    """Everything the analytics view shows for one exam."""
    exam_id: int
    exam_name: str
    summary: SummaryStats
    ranking: List[RankedSubmission]
    distribution: List[DistributionBucket]
    difficulty: List[QuestionDifficulty]

    def to_yaml_dict(self) -> Dict[str, Any]:
        """Convert to dictionary suitable for YAML serialization."""
        return self.model_dump(mode="json")


def bucket_index(pct: float) -> int:
    """Index of the distribution bucket holding ``pct``; values above 100 land in the top bucket."""
    for i, (_, upper, _) in enumerate(BUCKETS):
        if pct <= upper:
            return i
    return len(BUCKETS) - 1


def classify(pct: float) -> DifficultyLevel:
    if pct >= EASY_THRESHOLD:
        return DifficultyLevel.EASY
    if pct >= MEDIUM_THRESHOLD:
        return DifficultyLevel.MEDIUM
    return DifficultyLevel.HARD


class AnalyticsEngine:
    """Pure, synchronous analytics; callers should check ``has_data`` first."""

    def __init__(self, exam: Exam, submissions: Sequence[StudentSubmission]):
        self.exam = exam
        self.graded: List[StudentSubmission] = [
            s for s in submissions if s.is_submitted and s.is_graded
        ]
        self.scores: List[SubmissionScore] = [
            score_submission(s, exam.overall_score) for s in self.graded
        ]

    @property
    def has_data(self) -> bool:
        return bool(self.graded)

    def summary(self) -> SummaryStats:
        self._require_data()
        totals = [s.total for s in self.scores]
        percentages = [s.percentage for s in self.scores]
        return SummaryStats(
            graded_count=len(totals),
            overall_score=self.exam.overall_score,
            average=statistics.fmean(totals),
            average_percentage=statistics.fmean(percentages),
            maximum=max(totals),
            minimum=min(totals),
            median_percentage=statistics.median(percentages),
            stdev_percentage=statistics.pstdev(percentages),
        )

    def ranking(self) -> List[RankedSubmission]:
        """Graded submissions by total, highest first; ties keep input order."""
        self._require_data()
        ordered = sorted(self.scores, key=lambda s: s.total, reverse=True)
        return [
            RankedSubmission(
                rank=i + 1,
                student_id=s.student_id,
                student_name=s.student_name,
                total=s.total,
                percentage=s.percentage,
            )
            for i, s in enumerate(ordered)
        ]

    def distribution(self) -> List[DistributionBucket]:
        """Non-empty percentage buckets in ascending order."""
        self._require_data()
        counts = [0] * len(BUCKETS)
        for s in self.scores:
            counts[bucket_index(s.percentage)] += 1
        return [
            DistributionBucket(label=label, lower=lower, upper=upper, count=count)
            for (lower, upper, label), count in zip(BUCKETS, counts)
            if count
        ]

    def question_difficulty(self) -> List[QuestionDifficulty]:
        """Per-question averages, hardest first.

        Questions nobody has a graded answer for are left out.
        """
        self._require_data()
        results = []
        for question in self.exam.questions:
            difficulty = self._difficulty_for(question.id, question.text, question.weight)
            if difficulty is not None:
                results.append(difficulty)
        results.sort(key=lambda d: d.average_percentage)
        return results

    def report(self) -> ExamAnalytics:
        return ExamAnalytics(
            exam_id=self.exam.id,
            exam_name=self.exam.name,
            summary=self.summary(),
            ranking=self.ranking(),
            distribution=self.distribution(),
            difficulty=self.question_difficulty(),
        )

    def _difficulty_for(self, question_id: int, text: str, weight: float) -> Optional[QuestionDifficulty]:
        received = []
        possible = 0.0
        for submission in self.graded:
            answer = submission.answer_for(question_id)
            if answer is None or answer.received_weight is None:
                continue
            received.append(answer.received_weight)
            possible += answer.question_weight
        if not received or possible == 0:
            return None

        pct = 100 * sum(received) / possible
        return QuestionDifficulty(
            question_id=question_id,
            text=text,
            weight=weight,
            graded_answers=len(received),
            average_score=statistics.fmean(received),
            average_percentage=pct,
            level=classify(pct),
        )

    def _require_data(self) -> None:
        if not self.graded:
            raise NoGradedSubmissionsError(
                f"Exam {self.exam.name} has no graded submissions"
            )
