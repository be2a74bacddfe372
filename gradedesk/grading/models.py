"""Pydantic models for exams, submissions and auto-grading results."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_QUESTION_WEIGHT = 10
DEFAULT_MIN_WORDS = 50


class Question(BaseModel):
    """Single weighted exam question."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = Field(
        default=None, description="Stable question identity; None until the backend assigns one"
    )
    text: str = Field(
        default="",
        validation_alias=AliasChoices("text", "question"),
        description="Question text shown to students",
    )
    weight: float = Field(
        gt=0,
        validation_alias=AliasChoices("weight", "question_weight"),
        description="Points available for this question",
    )
    min_words: int = Field(default=0, ge=0, description="Advisory minimum answer length")


class Exam(BaseModel):
    """An assessment within a course, composed of weighted questions."""
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(validation_alias=AliasChoices("id", "exam_id"))
    name: str = Field(validation_alias=AliasChoices("name", "exam_name"))
    course_id: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("course_id", "course")
    )
    course_name: str = ""
    rubrics: str = Field(default="", description="Free-text grading rubric for the exam")
    questions: List[Question] = Field(
        default_factory=list,
        validation_alias=AliasChoices("questions", "assessment_questions"),
    )
    submission_count: int = Field(default=0, ge=0)
    reported_question_count: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("reported_question_count", "question_count"),
        description="Question count reported by the exam list when questions are omitted",
    )

    @field_validator("course_name", "rubrics", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def overall_score(self) -> float:
        """Sum of question weights, always derived from the current questions."""
        return sum(q.weight for q in self.questions)

    @property
    def question_count(self) -> int:
        if self.questions or self.reported_question_count is None:
            return len(self.questions)
        return self.reported_question_count

    def question(self, question_id: int) -> Optional[Question]:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None

    def add_question(self, text: str = "", weight: float = DEFAULT_QUESTION_WEIGHT,
                     min_words: int = DEFAULT_MIN_WORDS) -> Question:
        """Append a new question; it has no id until the exam is saved."""
        question = Question(text=text, weight=weight, min_words=min_words)
        self.questions.append(question)
        return question

    def update_question(self, index: int, **changes: Any) -> Question:
        """Replace fields of the question at ``index``.

        Args:
            index: Position of the question in ``questions``
            **changes: Any of ``text``, ``weight`` and ``min_words``

        Raises:
            IndexError: If there is no question at ``index``
            ValueError: For unknown fields or values the Question model rejects
        """
        current = self.questions[index]
        unknown = set(changes) - {"text", "weight", "min_words"}
        if unknown:
            raise ValueError(f"Cannot update question field(s): {', '.join(sorted(unknown))}")
        question = Question.model_validate({**current.model_dump(), **changes})
        self.questions[index] = question
        return question

    def remove_question(self, index: int) -> Question:
        return self.questions.pop(index)

    def definition_problems(self) -> List[str]:
        """Reasons this definition cannot be saved; empty when it can."""
        problems = []
        if not self.name.strip():
            problems.append("Exam name is empty")
        if not self.questions:
            problems.append("Exam has no questions")
        if not self.rubrics.strip():
            problems.append("Grading rubric is empty")
        return problems


class Answer(BaseModel):
    """One student's answer to one question."""
    model_config = ConfigDict(populate_by_name=True)

    question_id: Optional[int] = Field(
        default=None, description="Identity of the answered question"
    )
    question_text: str = Field(
        default="", validation_alias=AliasChoices("question_text", "question")
    )
    question_weight: float = Field(
        ge=0, description="Weight copied at submission time; authoritative for scoring"
    )
    answer_text: str = ""
    received_weight: Optional[float] = Field(default=None, ge=0)
    feedback: Optional[str] = None

    @field_validator("question_text", "answer_text", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @model_validator(mode="after")
    def _check_bounds(self) -> "Answer":
        if self.received_weight is not None and self.received_weight > self.question_weight:
            raise ValueError(
                f"received_weight {self.received_weight} exceeds question_weight {self.question_weight}"
            )
        return self

    @property
    def is_graded(self) -> bool:
        return self.received_weight is not None


class StudentSubmission(BaseModel):
    """One student's set of answers to an exam."""
    model_config = ConfigDict(populate_by_name=True)

    student_id: int
    student_name: str
    is_submitted: bool = False
    submission_timestamp: Optional[datetime] = None
    is_graded: bool = False
    answers: List[Answer] = Field(default_factory=list)
    overall_feedback: Optional[str] = None

    @model_validator(mode="after")
    def _normalize_graded(self) -> "StudentSubmission":
        if not self.is_graded:
            # Scores on an ungraded record are placeholders, not grades
            for answer in self.answers:
                answer.received_weight = None
        elif not all(a.is_graded for a in self.answers):
            raise ValueError(
                f"Submission for {self.student_name} is marked graded but has unscored answers"
            )
        return self

    def answer_for(self, question_id: int) -> Optional[Answer]:
        for answer in self.answers:
            if answer.question_id == question_id:
                return answer
        return None

    @property
    def question_ids(self) -> List[int]:
        return [a.question_id for a in self.answers]


class ExamSubmissions(BaseModel):
    """Snapshot of an exam together with every student's submission."""

    exam: Exam
    submissions: List[StudentSubmission] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _split_flat_payload(cls, data: Any) -> Any:
        # The backend sends exam fields and student_submissions side by side
        if isinstance(data, dict) and "exam" not in data:
            return {"exam": data, "submissions": data.get("student_submissions", [])}
        return data

    def submission_for(self, student_id: int) -> Optional[StudentSubmission]:
        for submission in self.submissions:
            if submission.student_id == student_id:
                return submission
        return None

    @property
    def submitted(self) -> List[StudentSubmission]:
        return [s for s in self.submissions if s.is_submitted]


class SuggestedGrade(BaseModel):
    """Oracle-suggested score and feedback for one question."""
    model_config = ConfigDict(populate_by_name=True)

    question_id: Optional[int] = None
    question_text: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("question_text", "question")
    )
    score: float = Field(allow_inf_nan=False, description="Suggested points for the answer")
    feedback: str = ""

    @model_validator(mode="before")
    @classmethod
    def _unwrap_nested_feedback(cls, data: Any) -> Any:
        # Backend shape: {"feedback": {"total_score": {"result": "8"}, "overall_feedback": "..."}}
        if isinstance(data, dict) and isinstance(data.get("feedback"), dict):
            nested = data["feedback"]
            data = dict(data)
            total = nested.get("total_score")
            if isinstance(total, dict):
                total = total.get("result")
            if "score" not in data and total is not None:
                data["score"] = total
            data["feedback"] = nested.get("overall_feedback") or ""
        return data

    @field_validator("feedback", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @model_validator(mode="after")
    def _require_identity(self) -> "SuggestedGrade":
        if self.question_id is None and not self.question_text:
            raise ValueError("suggested grade has neither question_id nor question text")
        return self


class AutoGradeResult(BaseModel):
    """Normalized response of a scoring oracle."""

    answers: List[SuggestedGrade] = Field(description="One suggestion per graded question")
    overall_feedback: str = Field(default="", description="Feedback not tied to any question")

    @field_validator("overall_feedback", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value
