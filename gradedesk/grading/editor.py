"""In-progress grade edits for a single submission."""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from gradedesk.errors import (
    IncompleteGradingError,
    NotSubmittedError,
    ScoreRangeError,
    UnknownQuestionError,
)
from gradedesk.libs.config_loader import ConfigType, get_config
from .models import Answer, StudentSubmission

LOG = logging.getLogger(__name__)

OVER_MAX_POLICIES = ("reject", "clamp")


class GradingState(str, Enum):
    """Where a submission is in the grading workflow."""
    UNSUBMITTED = "unsubmitted"
    SUBMITTED = "submitted"
    PARTIALLY_GRADED = "partially_graded"
    READY_TO_SAVE = "ready_to_save"
    SAVED = "saved"


@dataclass
class GradeEntry:
    """Pending score and feedback for one question."""
    received_weight: Optional[float] = None
    feedback: str = ""


def coerce_score(value: Any) -> float:
    """Turn user input into a score.

    Non-numeric input becomes 0. Negative or non-finite numbers raise
    ScoreRangeError.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        score = float(value)
    else:
        try:
            score = float(str(value).strip())
        except (TypeError, ValueError):
            LOG.debug(f"Non-numeric score {value!r} treated as 0")
            score = 0.0
    if not math.isfinite(score):
        raise ScoreRangeError(f"Score must be a finite number, got {value!r}")
    if score < 0:
        raise ScoreRangeError(f"Score cannot be negative, got {score}")
    return score


class GradeEditor:
    """Edit buffer and save validation for one student's submission.

    The buffer maps question ids to GradeEntry objects. Nothing touches the
    underlying answers until ``commit`` succeeds.
    """

    def __init__(self, submission: StudentSubmission, over_max_policy: str = "reject"):
        """
        Initialize the editor.

        Args:
            submission: Submission being graded
            over_max_policy: "reject" to refuse saving scores above a question's
                weight, "clamp" to cap them at the weight when committing
        """
        if over_max_policy not in OVER_MAX_POLICIES:
            raise ValueError(f"Unknown over-max policy {over_max_policy!r}")
        self.submission = submission
        self.over_max_policy = over_max_policy
        self.edits: Dict[int, GradeEntry] = {}
        self._overall_feedback = submission.overall_feedback or ""
        self._saved = False
        self._prefill()

    @classmethod
    def from_config(cls, submission: StudentSubmission, configs: ConfigType) -> "GradeEditor":
        policy = get_config("grading.over_max_policy", configs, default="reject")
        return cls(submission, over_max_policy=policy)

    @property
    def state(self) -> GradingState:
        if not self.submission.is_submitted:
            return GradingState.UNSUBMITTED
        if self._saved:
            return GradingState.SAVED
        if not self.edits:
            return GradingState.SUBMITTED
        if self.can_save():
            return GradingState.READY_TO_SAVE
        return GradingState.PARTIALLY_GRADED

    @property
    def overall_feedback(self) -> str:
        return self._overall_feedback

    @overall_feedback.setter
    def overall_feedback(self, text: str) -> None:
        self._require_submitted()
        self._overall_feedback = text or ""
        self._saved = False

    @property
    def running_total(self) -> float:
        """Total of the scores currently in the buffer."""
        return sum(
            e.received_weight for e in self.edits.values() if e.received_weight is not None
        )

    def set_score(self, question_id: int, value: Any) -> GradeEntry:
        """Record a score for a question.

        Scores above the question weight are kept in the buffer and reported
        by ``over_max``; the over-max policy decides what happens at save time.
        """
        self._require_submitted()
        answer = self._answer(question_id)
        score = coerce_score(value)
        if score > answer.question_weight:
            LOG.debug(f"Score {score} for question {question_id} exceeds weight {answer.question_weight}")
        entry = self.edits.setdefault(question_id, GradeEntry())
        entry.received_weight = score
        self._saved = False
        return entry

    def clear_score(self, question_id: int) -> None:
        self._require_submitted()
        self._answer(question_id)
        entry = self.edits.get(question_id)
        if entry is not None:
            entry.received_weight = None
            self._saved = False

    def set_feedback(self, question_id: int, text: str) -> GradeEntry:
        self._require_submitted()
        self._answer(question_id)
        entry = self.edits.setdefault(question_id, GradeEntry())
        entry.feedback = text or ""
        self._saved = False
        return entry

    def apply(self, entries: Dict[int, GradeEntry], overall_feedback: Optional[str] = None) -> None:
        """Overwrite several entries at once; either all are applied or none."""
        self._require_submitted()
        for question_id, entry in entries.items():
            self._answer(question_id)
            if entry.received_weight is not None:
                coerce_score(entry.received_weight)

        for question_id, entry in entries.items():
            self.edits[question_id] = GradeEntry(entry.received_weight, entry.feedback or "")
        if overall_feedback is not None:
            self._overall_feedback = overall_feedback
        self._saved = False

    def missing(self) -> List[int]:
        """Question ids that still lack a score, in answer order."""
        return [
            a.question_id for a in self.submission.answers
            if a.question_id not in self.edits or self.edits[a.question_id].received_weight is None
        ]

    def over_max(self) -> List[int]:
        """Question ids whose pending score exceeds the question weight."""
        flagged = []
        for answer in self.submission.answers:
            entry = self.edits.get(answer.question_id)
            if entry and entry.received_weight is not None and entry.received_weight > answer.question_weight:
                flagged.append(answer.question_id)
        return flagged

    def can_save(self) -> bool:
        return self.submission.is_submitted and not self.missing()

    def validate(self) -> None:
        """Check the buffer can be committed without changing anything.

        Raises:
            NotSubmittedError: If the student never submitted
            IncompleteGradingError: If any answer lacks a score
            ScoreRangeError: If a score exceeds its weight under the "reject" policy
        """
        self._require_submitted()
        missing = self.missing()
        if missing:
            raise IncompleteGradingError(missing)
        over = self.over_max()
        if over and self.over_max_policy == "reject":
            raise ScoreRangeError(
                f"Scores exceed the question weight for question(s): {', '.join(map(str, over))}",
                question_ids=over,
            )

    def grades_payload(self) -> List[Dict[str, Any]]:
        """Per-question scores and feedback in the shape the backend expects."""
        self.validate()
        return [
            {
                "question_id": answer.question_id,
                "score": self._final_score(answer),
                "feedback": self.edits[answer.question_id].feedback,
            }
            for answer in self.submission.answers
        ]

    def commit(self) -> StudentSubmission:
        """Apply the buffer to the submission and mark it graded.

        Returns:
            The updated submission. Pending edits are cleared and the buffer
            is reseeded from the committed answers, as when reopening it.
        """
        self.validate()
        answers = [
            answer.model_copy(update={
                "received_weight": self._final_score(answer),
                "feedback": self.edits[answer.question_id].feedback,
            })
            for answer in self.submission.answers
        ]
        updated = self.submission.model_copy(update={
            "answers": answers,
            "is_graded": True,
            "overall_feedback": self._overall_feedback,
        })
        self.submission = updated
        self.edits = {}
        self._prefill()
        LOG.info(f"Committed grades for {updated.student_name}")
        return updated

    def discard(self) -> None:
        """Drop every pending edit, back to the state the submission was opened in."""
        self.edits = {}
        self._saved = False
        self._overall_feedback = self.submission.overall_feedback or ""
        self._prefill()

    def _prefill(self) -> None:
        # A graded submission opens with its saved scores in the buffer
        if not (self.submission.is_submitted and self.submission.is_graded):
            return
        for answer in self.submission.answers:
            self.edits[answer.question_id] = GradeEntry(
                received_weight=answer.received_weight,
                feedback=answer.feedback or "",
            )
        self._saved = True

    def _final_score(self, answer: Answer) -> float:
        score = self.edits[answer.question_id].received_weight
        if score > answer.question_weight:
            LOG.warning(
                f"Clamping score {score} to {answer.question_weight} for question {answer.question_id}"
            )
            return answer.question_weight
        return score

    def _answer(self, question_id: int) -> Answer:
        answer = self.submission.answer_for(question_id)
        if answer is None:
            raise UnknownQuestionError(question_id)
        return answer

    def _require_submitted(self) -> None:
        if not self.submission.is_submitted:
            raise NotSubmittedError(f"{self.submission.student_name} has not submitted this exam")
