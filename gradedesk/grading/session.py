"""A single grading view: one submission, its editor, and its in-flight calls."""

import asyncio
import logging
from typing import Any, Awaitable, Optional, Set

from gradedesk.errors import GradingError, NotFoundError
from gradedesk.libs.config_loader import ConfigType
from .auto_grade import AutoGradeAdapter
from .editor import GradeEditor
from .models import AutoGradeResult, Exam, StudentSubmission
from .repository import SubmissionRepository

LOG = logging.getLogger(__name__)

_DROPPED = object()


class GradingSession:
    """Owns the GradeEditor for one submission while it is being graded.

    Remote calls run as tasks. Once the session is abandoned those tasks are
    cancelled and any response that still arrives is dropped instead of
    being applied.
    """

    def __init__(self, repository: SubmissionRepository, adapter: AutoGradeAdapter,
                 exam: Exam, editor: GradeEditor, course_id: Optional[int] = None):
        self.repository = repository
        self.adapter = adapter
        self.exam = exam
        self.editor = editor
        self.course_id = course_id if course_id is not None else exam.course_id
        self.abandoned = False
        self._tasks: Set[asyncio.Task] = set()

    @classmethod
    async def open(cls, repository: SubmissionRepository, adapter: AutoGradeAdapter,
                   exam_id: int, student_id: int, configs: Optional[ConfigType] = None,
                   course_id: Optional[int] = None) -> "GradingSession":
        """Fetch a fresh snapshot and start grading one student's submission.

        Raises:
            NotFoundError: If the exam or the student's submission does not exist
        """
        snapshot = await repository.get_submissions(exam_id)
        submission = snapshot.submission_for(student_id)
        if submission is None:
            raise NotFoundError(f"No submission from student {student_id} for exam {exam_id}")
        if configs is not None:
            editor = GradeEditor.from_config(submission, configs)
        else:
            editor = GradeEditor(submission)
        return cls(repository, adapter, snapshot.exam, editor, course_id=course_id)

    @property
    def submission(self) -> StudentSubmission:
        return self.editor.submission

    @property
    def student_id(self) -> int:
        return self.editor.submission.student_id

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def auto_grade(self) -> Optional[AutoGradeResult]:
        """Load oracle suggestions into the editor.

        Returns:
            The oracle result, or None if the session was abandoned meanwhile
        """
        result = await self._run(
            self.adapter.fetch(self._course_id(), self.exam.id, self.student_id)
        )
        if result is _DROPPED:
            return None
        self.adapter.apply(result, self.editor)
        return result

    async def save(self) -> Optional[StudentSubmission]:
        """Send the edit buffer to the backend, then commit it locally.

        Validation happens before anything is sent. If the backend call fails
        the buffer is kept so the grader can retry.

        Returns:
            The committed submission, or None if the session was abandoned meanwhile
        """
        self._require_active()
        grades = self.editor.grades_payload()
        outcome = await self._run(self.repository.save_grades(
            self._course_id(),
            self.exam.id,
            self.student_id,
            grades,
            overall_feedback=self.editor.overall_feedback,
        ))
        if outcome is _DROPPED:
            return None
        return self.editor.commit()

    def abandon(self) -> None:
        """Leave the grading view: cancel pending calls and drop unsaved edits."""
        self.abandoned = True
        for task in list(self._tasks):
            task.cancel()
        self.editor.discard()
        LOG.debug(f"Abandoned grading session for student {self.student_id}")

    def _require_active(self) -> None:
        if self.abandoned:
            raise GradingError("Grading session was abandoned")

    async def _run(self, coro: Awaitable[Any]) -> Any:
        if self.abandoned:
            if asyncio.iscoroutine(coro):
                coro.close()
        self._require_active()

        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        try:
            result = await task
        except asyncio.CancelledError:
            if self.abandoned:
                LOG.debug("Call cancelled by abandoned session")
                return _DROPPED
            raise
        finally:
            self._tasks.discard(task)

        if self.abandoned:
            LOG.info(f"Dropping late response for student {self.student_id}")
            return _DROPPED
        return result

    def _course_id(self) -> int:
        if self.course_id is None:
            raise GradingError(f"Exam {self.exam.name} has no course id")
        return self.course_id
