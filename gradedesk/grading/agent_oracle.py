"""Scoring oracle backed by a pydantic-ai agent instead of the backend endpoint."""

import json
import logging
import re
from typing import Any, Dict, Optional

from pydantic import ValidationError

from gradedesk.errors import GradingError, OracleError
from gradedesk.libs.config_loader import ConfigType
from gradedesk.libs.llm import create_agent
from .models import AutoGradeResult, Exam, StudentSubmission
from .repository import SubmissionRepository

LOG = logging.getLogger(__name__)


def create_grading_agent(configs: ConfigType,
                         model: Optional[str] = None,
                         settings_dict: Optional[Dict[str, Any]] = None) -> Any:
    """
    Create a pydantic-ai Agent configured for grading exam answers.

    Args:
        configs: Configuration dictionary (required)
        model: Model to use (overrides config value)
        settings_dict: Pydantic AI settings dict (overrides config values)

    Returns:
        Configured Agent for grading
    """
    system_prompt = (
        "You are a helpful grading assistant for free-text exam answers. "
        "Score each answer against its question and the exam rubric. "
        "Be fair, constructive, and specific in your feedback. Award partial "
        "credit where appropriate and never exceed a question's points."
    )

    return create_agent(
        configs=configs,
        model=model,
        settings_dict=settings_dict,
        system_prompt=system_prompt
    )


class AgentOracle:
    """Grade a student's answers with an LLM agent."""

    def __init__(self, configs: ConfigType, repository: SubmissionRepository,
                 model: Optional[str] = None, settings: Optional[Dict[str, Any]] = None,
                 agent: Any = None):
        """
        Initialize the oracle.

        Args:
            configs: Configuration dictionary (required)
            repository: Source of exam questions and student answers
            model: Model to use (overrides config value)
            settings: Pydantic AI settings dict (overrides config values)
            agent: Pre-built agent (skips agent creation)
        """
        self.configs = configs
        self.repository = repository
        self.agent = agent or create_grading_agent(configs, model=model, settings_dict=settings)

    async def score(self, course_id: int, exam_id: int, student_id: int) -> AutoGradeResult:
        try:
            snapshot = await self.repository.get_submissions(exam_id)
        except GradingError as e:
            raise OracleError(f"Could not load submission to grade: {e}") from e

        submission = snapshot.submission_for(student_id)
        if submission is None:
            raise OracleError(f"Student {student_id} has no submission for exam {exam_id}")

        prompt = self._build_prompt(snapshot.exam, submission)
        try:
            result = await self.agent.run(prompt)
        except Exception as e:  # pylint: disable=broad-except
            LOG.error(f"Agent grading failed for student {student_id}: {e}")
            raise OracleError(f"Agent grading failed: {e}") from e

        if hasattr(result, 'output'):
            response_text = str(result.output)
        elif hasattr(result, 'data'):
            response_text = str(result.data)
        else:
            response_text = str(result)

        return self._parse_response(response_text)

    def _parse_response(self, response_text: str) -> AutoGradeResult:
        json_match = re.search(r'{.*}', response_text, re.DOTALL)
        if not json_match:
            raise OracleError("Agent response contained no JSON object")
        try:
            return AutoGradeResult.model_validate(json.loads(json_match.group()))
        except json.JSONDecodeError as e:
            raise OracleError(f"Agent response is not valid JSON: {e}") from e
        except ValidationError as e:
            raise OracleError(f"Agent response is missing required fields: {e}") from e

    def _build_prompt(self, exam: Exam, submission: StudentSubmission) -> str:
        """Build the grading prompt with every question and answer."""
        blocks = []
        for answer in submission.answers:
            question = exam.question(answer.question_id)
            min_words = f", suggested minimum {question.min_words} words" if question and question.min_words else ""
            text = answer.question_text or (question.text if question else "")
            blocks.append(
                f"QUESTION {answer.question_id} ({answer.question_weight} points{min_words}):\n"
                f"{text}\n\nSTUDENT ANSWER:\n{answer.answer_text or '(no answer)'}"
            )
        questions_text = "\n\n---\n\n".join(blocks)
        rubric = exam.rubrics.strip() or "(no rubric provided; use your judgement)"

        return f"""Grade this student's exam "{exam.name}" according to the following rubric:

RUBRIC:
{rubric}

INSTRUCTIONS:
1. Score every answer from 0 to the question's points
2. Give brief, specific feedback for each answer
3. Write a short overall comment on the student's performance

Return your evaluation as a JSON object with this structure:
{{
    "answers": [
        {{"question_id": <question id>, "score": <points>, "feedback": "<feedback>"}}
    ],
    "overall_feedback": "<overall comment for the student>"
}}

{questions_text}"""
