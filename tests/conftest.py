"""Shared fixtures for gradedesk tests."""

import json
from typing import Dict, List, Optional, Sequence

import httpx
import pytest
import pytest_asyncio

from gradedesk.grading.models import Answer, Exam, Question, StudentSubmission
from gradedesk.libs.backend import BackendClient
from gradedesk.libs.session import SessionContext


def build_exam(weights: Sequence[float] = (10, 10), exam_id: int = 1, course_id: int = 3) -> Exam:
    return Exam(
        id=exam_id,
        name="Midterm Exam",
        course_id=course_id,
        course_name="Data Structures",
        rubrics="Clarity, correctness and completeness.",
        questions=[
            Question(id=i + 1, text=f"Question {i + 1}?", weight=w, min_words=20)
            for i, w in enumerate(weights)
        ],
    )


@pytest.fixture
def make_exam():
    """Factory for exams with the given question weights."""
    return build_exam


@pytest.fixture
def exam() -> Exam:
    """Two questions worth 10 points each."""
    return build_exam()


@pytest.fixture
def make_submission():
    """Factory for submissions answering every question of an exam."""
    def _make(exam: Exam, scores: Optional[Sequence[float]] = None, student_id: int = 1,
              name: str = "Alice Johnson", submitted: bool = True) -> StudentSubmission:
        answers = [
            Answer(
                question_id=q.id,
                question_text=q.text,
                question_weight=q.weight,
                answer_text=f"Answer to {q.text}",
                received_weight=scores[i] if scores is not None else None,
                feedback="Looks good" if scores is not None else None,
            )
            for i, q in enumerate(exam.questions)
        ]
        return StudentSubmission(
            student_id=student_id,
            student_name=name,
            is_submitted=submitted,
            submission_timestamp="2025-10-28T14:30:00Z" if submitted else None,
            is_graded=scores is not None,
            answers=answers,
        )
    return _make


class FakeBackend:
    """Route table for httpx.MockTransport plus a log of received requests."""

    def __init__(self):
        self.routes: Dict[tuple, dict] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, status_code: int = 200, json_body=None, text=None):
        if text is not None:
            self.routes[(method, path)] = {"status_code": status_code, "text": text}
        else:
            self.routes[(method, path)] = {"status_code": status_code, "json": json_body}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"detail": "Not found."})
        return httpx.Response(**route)

    def last_json(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def client(fake_backend):
    """BackendClient talking to the fake backend."""
    session = SessionContext(base_url="http://grading.test", token="secret-token")
    backend_client = BackendClient(session, transport=httpx.MockTransport(fake_backend.handler))
    yield backend_client
    await backend_client.aclose()


@pytest.fixture
def submissions_payload() -> dict:
    """Backend response for GET /api/exams/1/submissions/."""
    return {
        "exam_id": 1,
        "exam_name": "Midterm Exam",
        "course_id": 3,
        "course_name": "Data Structures",
        "rubrics": "Clarity, correctness and completeness.",
        "overall_score": 999,
        "questions": [
            {"id": 1, "question": "Explain a stack.", "question_weight": 10, "min_words": 50},
            {"id": 2, "question": "Explain a queue.", "question_weight": 10, "min_words": 50},
        ],
        "student_submissions": [
            {
                "student_id": 11,
                "student_name": "Alice Johnson",
                "is_submitted": True,
                "submission_timestamp": "2025-10-28T14:30:00Z",
                "is_graded": True,
                "answers": [
                    {"question_id": 1, "question": "Explain a stack.", "question_weight": 10,
                     "answer_text": "LIFO", "received_weight": 8, "feedback": "Good"},
                    {"question_id": 2, "question": "Explain a queue.", "question_weight": 10,
                     "answer_text": "FIFO", "received_weight": 10, "feedback": "Great"},
                ],
            },
            {
                "student_id": 12,
                "student_name": "Bob Smith",
                "is_submitted": True,
                "submission_timestamp": "2025-10-28T15:45:00Z",
                "is_graded": False,
                "answers": [
                    {"question": "Explain a stack.", "question_weight": 10,
                     "answer_text": "Pile of plates", "received_weight": 0},
                    {"question": "Explain a queue.", "question_weight": 10,
                     "answer_text": "A line", "received_weight": 0},
                ],
            },
            {
                "student_id": 13,
                "student_name": "Charlie Brown",
                "is_submitted": False,
                "submission_timestamp": None,
                "is_graded": False,
                "answers": [],
            },
        ],
    }
