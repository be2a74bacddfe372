"""Applies scoring-oracle suggestions to a GradeEditor."""

import logging
from typing import Dict, Protocol

from pydantic import ValidationError

from gradedesk.errors import GradingError, OracleError
from gradedesk.libs.backend import AUTO_GRADE_PATH, BackendClient
from .editor import GradeEditor, GradeEntry
from .models import AutoGradeResult, StudentSubmission

LOG = logging.getLogger(__name__)


class ScoringOracle(Protocol):
    """Anything that can suggest scores for one student's exam."""

    async def score(self, course_id: int, exam_id: int, student_id: int) -> AutoGradeResult:
        ...


class BackendOracle:
    """Scoring oracle reached through the backend's auto-grade endpoint."""

    def __init__(self, client: BackendClient):
        self.client = client

    async def score(self, course_id: int, exam_id: int, student_id: int) -> AutoGradeResult:
        path = AUTO_GRADE_PATH.format(course_id=course_id, exam_id=exam_id, student_id=student_id)
        try:
            data = await self.client.get_json(path)
        except GradingError as e:
            raise OracleError(f"Auto-grade request failed: {e}") from e
        try:
            return AutoGradeResult.model_validate(data)
        except ValidationError as e:
            raise OracleError(f"Auto-grade response is missing required fields: {e}") from e


class AutoGradeAdapter:
    """Maps an oracle's suggestions onto an editor, all or nothing.

    Applying a result overwrites existing entries for the questions it
    covers and leaves other questions alone, so repeating the same result
    always yields the same buffer.
    """

    def __init__(self, oracle: ScoringOracle):
        self.oracle = oracle

    async def auto_grade(self, course_id: int, exam_id: int, student_id: int,
                         editor: GradeEditor) -> AutoGradeResult:
        """Ask the oracle for scores and load them into ``editor``.

        Raises:
            OracleError: If the call fails or its response cannot be applied;
                the editor is left untouched
        """
        result = await self.fetch(course_id, exam_id, student_id)
        self.apply(result, editor)
        return result

    async def fetch(self, course_id: int, exam_id: int, student_id: int) -> AutoGradeResult:
        try:
            result = await self.oracle.score(course_id, exam_id, student_id)
        except OracleError:
            raise
        except Exception as e:  # pylint: disable=broad-except
            LOG.error(f"Oracle failed for student {student_id} on exam {exam_id}: {e}")
            raise OracleError(f"Oracle failed: {e}") from e
        if not isinstance(result, AutoGradeResult):
            raise OracleError(f"Oracle returned {type(result).__name__}, expected AutoGradeResult")
        LOG.debug(f"Oracle suggested {len(result.answers)} scores for student {student_id}")
        return result

    def apply(self, result: AutoGradeResult, editor: GradeEditor) -> None:
        entries = self.to_entries(result, editor.submission)
        try:
            editor.apply(entries, overall_feedback=result.overall_feedback)
        except GradingError as e:
            raise OracleError(f"Could not apply auto-grade result: {e}") from e

    @staticmethod
    def to_entries(result: AutoGradeResult, submission: StudentSubmission) -> Dict[int, GradeEntry]:
        """Resolve each suggestion to a question and clamp its score into range."""
        by_text = {a.question_text.strip(): a for a in submission.answers if a.question_text.strip()}
        entries: Dict[int, GradeEntry] = {}
        for suggestion in result.answers:
            if suggestion.question_id is not None:
                answer = submission.answer_for(suggestion.question_id)
            else:
                answer = by_text.get(suggestion.question_text.strip())
            if answer is None:
                ident = suggestion.question_id if suggestion.question_id is not None else suggestion.question_text
                raise OracleError(f"Oracle scored unknown question {ident!r}")

            score = min(max(suggestion.score, 0.0), answer.question_weight)
            if score != suggestion.score:
                LOG.warning(
                    f"Oracle score {suggestion.score} for question {answer.question_id} "
                    f"clamped to {score}"
                )
            entries[answer.question_id] = GradeEntry(received_weight=score, feedback=suggestion.feedback)
        return entries
