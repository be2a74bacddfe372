"""Fetches exams and submissions from the grading backend and sends grades back."""

import logging
from typing import Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from gradedesk.libs.backend import (
    EXAM_PATH,
    EXAM_SUBMISSIONS_PATH,
    EXAMS_PATH,
    SAVE_GRADES_PATH,
    BackendClient,
)
from gradedesk.errors import ExamValidationError, NotFoundError, SchemaError
from .models import Exam, ExamSubmissions, Question, StudentSubmission

LOG = logging.getLogger(__name__)

_EXAM_LIST = TypeAdapter(List[Exam])


class SubmissionRepository:
    """Read-through access to exam definitions and student submissions.

    Every call fetches a fresh snapshot; the cache only remembers the most
    recently fetched definition of each exam for lookups by id.
    """

    def __init__(self, client: BackendClient):
        self.client = client
        self._exams: Dict[int, Exam] = {}

    async def list_exams(self) -> List[Exam]:
        """Fetch every exam visible to the instructor."""
        data = await self.client.get_json(EXAMS_PATH)
        try:
            exams = _EXAM_LIST.validate_python(data)
        except ValidationError as e:
            raise SchemaError(f"Invalid exam list: {e}") from e

        for exam in exams:
            # Summaries may omit questions; keep a richer cached definition if present
            cached = self._exams.get(exam.id)
            if exam.questions or cached is None:
                self._exams[exam.id] = exam
        LOG.info(f"Fetched {len(exams)} exams")
        return exams

    async def get_submissions(self, exam_id: int) -> ExamSubmissions:
        """Fetch an exam together with all student submissions.

        Raises:
            NotFoundError: If the backend does not know the exam
            NetworkError: On transport failure or non-success status
            SchemaError: If the response does not match the expected schema
        """
        data = await self.client.get_json(EXAM_SUBMISSIONS_PATH.format(exam_id=exam_id))
        if data is None:
            raise NotFoundError(f"Exam {exam_id} not found")
        try:
            snapshot = ExamSubmissions.model_validate(data)
        except ValidationError as e:
            raise SchemaError(f"Invalid submissions for exam {exam_id}: {e}") from e
        if any(q.id is None for q in snapshot.exam.questions):
            raise SchemaError(f"Exam {exam_id} has questions without an id")

        snapshot.submissions = [
            resolve_answer_ids(snapshot.exam, s) for s in snapshot.submissions
        ]
        self._exams[snapshot.exam.id] = snapshot.exam
        LOG.info(
            f"Fetched {len(snapshot.submissions)} submissions for exam "
            f"{snapshot.exam.name} ({len(snapshot.submitted)} submitted)"
        )
        return snapshot

    def cached_exam(self, exam_id: int) -> Optional[Exam]:
        """Return the last fetched definition of an exam, if any."""
        return self._exams.get(exam_id)

    async def save_grades(self, course_id: int, exam_id: int, student_id: int,
                          grades: List[Dict], overall_feedback: str = "") -> Dict:
        """Send per-question scores and feedback for one submission.

        Args:
            grades: ``[{"question_id", "score", "feedback"}]`` as built by GradeEditor
            overall_feedback: Feedback for the submission as a whole

        Returns:
            The backend's confirmation payload (empty dict if it sent none)
        """
        path = SAVE_GRADES_PATH.format(course_id=course_id, exam_id=exam_id, student_id=student_id)
        payload = {"answers": grades, "overall_feedback": overall_feedback}
        LOG.debug(f"Saving {len(grades)} grades for student {student_id} on exam {exam_id}")
        result = await self.client.post_json(path, payload)
        return result if isinstance(result, dict) else {}

    async def update_exam(self, course_id: int, exam_id: int, exam: Exam) -> Exam:
        """Save an edited exam definition.

        The overall score sent is always the sum of the question weights, never
        a stored value. Questions keep their ids where known so the backend
        updates them in place; new questions are sent without one.

        Returns:
            The saved definition: the backend's copy when it echoes the exam
            back, otherwise a copy of ``exam``

        Raises:
            ExamValidationError: If the name, questions or rubric are missing;
                nothing is sent in that case
            NotFoundError: If the backend does not know the exam
            NetworkError: On transport failure or non-success status
            SchemaError: If the echoed exam does not match the expected schema
        """
        problems = exam.definition_problems()
        if problems:
            raise ExamValidationError(problems)

        path = EXAM_PATH.format(course_id=course_id, exam_id=exam_id)
        payload = {
            "exam_name": exam.name.strip(),
            "course": course_id,
            "rubrics": exam.rubrics,
            "overall_score": exam.overall_score,
            "assessment_questions": [_question_payload(q) for q in exam.questions],
        }
        LOG.debug(f"Updating exam {exam_id} with {len(exam.questions)} questions")
        data = await self.client.put_json(path, payload)

        if isinstance(data, dict) and ("exam_name" in data or "name" in data):
            try:
                saved = Exam.model_validate(data)
            except ValidationError as e:
                raise SchemaError(f"Invalid exam returned for exam {exam_id}: {e}") from e
        else:
            saved = exam.model_copy(update={"id": exam_id, "course_id": course_id})
        self._exams[exam_id] = saved
        LOG.info(f"Saved exam {saved.name} ({len(saved.questions)} questions, {saved.overall_score:g} points)")
        return saved


def _question_payload(question: Question) -> Dict:
    payload = {
        "question": question.text,
        "question_weight": question.weight,
        "min_words": question.min_words,
    }
    if question.id is not None:
        payload["id"] = question.id
    return payload


def resolve_answer_ids(exam: Exam, submission: StudentSubmission) -> StudentSubmission:
    """Give every answer a stable question id.

    Uses the id sent by the backend, then the question text, and only as a
    last resort the answer's position within the exam's question list.

    Raises:
        SchemaError: If a backend id repeats or names a question outside the
            exam, or if an answer cannot be identified at all
    """
    by_text = {q.text.strip(): q.id for q in exam.questions if q.text.strip() and q.id is not None}
    known = {q.id for q in exam.questions if q.id is not None}
    used = set()
    for answer in submission.answers:
        if answer.question_id is None:
            continue
        if answer.question_id in used:
            raise SchemaError(
                f"Question {answer.question_id} is answered more than once by {submission.student_name}"
            )
        if answer.question_id not in known:
            raise SchemaError(
                f"Answer from {submission.student_name} refers to question "
                f"{answer.question_id}, which is not part of exam {exam.name}"
            )
        used.add(answer.question_id)

    for index, answer in enumerate(submission.answers):
        if answer.question_id is not None:
            continue
        question_id = by_text.get(answer.question_text.strip())
        if question_id is None or question_id in used:
            if index < len(exam.questions) and exam.questions[index].id in known - used:
                question_id = exam.questions[index].id
                LOG.warning(
                    f"Answer {index} of {submission.student_name} has no question id; "
                    f"falling back to position (question {question_id})"
                )
            else:
                raise SchemaError(
                    f"Cannot identify question for answer {index} of {submission.student_name}"
                )
        answer.question_id = question_id
        used.add(question_id)
    return submission
