"""Auto-grade every pending submission of an exam concurrently using async/await."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from tqdm.asyncio import tqdm

from gradedesk.errors import GradingError
from gradedesk.grading.aggregator import total_score
from gradedesk.grading.auto_grade import AutoGradeAdapter
from gradedesk.grading.editor import GradeEditor
from gradedesk.grading.models import Exam, StudentSubmission
from gradedesk.grading.repository import SubmissionRepository
from gradedesk.grading.session import GradingSession
from gradedesk.libs.config_loader import ConfigType, get_config

LOG = logging.getLogger(__name__)


@dataclass
class BatchAutoGradeResult:
    """Outcome of auto-grading one submission."""
    student_id: int
    student_name: str
    total_score: float
    max_score: float
    success: bool
    saved: bool = False
    missing: List[int] = field(default_factory=list)
    error_message: Optional[str] = None
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for YAML serialization."""
        data = {
            'student_id': self.student_id,
            'student_name': self.student_name,
            'total_score': self.total_score,
            'max_score': self.max_score,
            'success': self.success,
            'saved': self.saved,
            'timestamp': self.timestamp
        }
        if self.missing:
            data['missing_questions'] = list(self.missing)
        if self.error_message:
            data['error_message'] = self.error_message
        return data


class BatchAutoGrader:
    """Auto-grade and save many submissions with bounded concurrency."""

    def __init__(self, configs: ConfigType, repository: SubmissionRepository,
                 adapter: AutoGradeAdapter, max_concurrent: Optional[int] = None):
        """
        Initialize the batch auto-grader.

        Args:
            configs: Configuration dictionary
            repository: Source of submissions and target of saved grades
            adapter: Auto-grade adapter wrapping the scoring oracle
            max_concurrent: Maximum number of concurrent grading tasks (overrides config)
        """
        self.configs = configs
        self.repository = repository
        self.adapter = adapter

        if max_concurrent is not None:
            self.max_concurrent = max_concurrent
        else:
            self.max_concurrent = get_config("tools.max_concurrent", configs, default=4)

        LOG.info(f"BatchAutoGrader initialized with max_concurrent={self.max_concurrent}")

    async def _grade_single_submission_async(self, exam: Exam, submission: StudentSubmission,
                                             save: bool) -> BatchAutoGradeResult:
        editor = GradeEditor.from_config(submission, self.configs)
        session = GradingSession(self.repository, self.adapter, exam, editor)
        LOG.debug(f"Auto-grading {submission.student_name}")

        try:
            await session.auto_grade()
            missing = editor.missing()
            saved = False
            if save and not missing:
                await session.save()
                saved = True

            return BatchAutoGradeResult(
                student_id=submission.student_id,
                student_name=submission.student_name,
                total_score=total_score(editor.submission) if saved else editor.running_total,
                max_score=exam.overall_score,
                success=True,
                saved=saved,
                missing=missing,
            )

        except GradingError as e:
            LOG.error(f"Error auto-grading {submission.student_name}: {e}")
            return BatchAutoGradeResult(
                student_id=submission.student_id,
                student_name=submission.student_name,
                total_score=0,
                max_score=exam.overall_score,
                success=False,
                error_message=str(e)
            )

    async def grade_exam_async(self, exam_id: int, save: bool = True,
                               regrade: bool = False) -> List[BatchAutoGradeResult]:
        """
        Auto-grade all submitted (and, unless ``regrade``, ungraded) submissions.

        Args:
            exam_id: Exam to grade
            save: Send complete results to the backend
            regrade: Also re-grade submissions that are already graded

        Returns:
            List of BatchAutoGradeResult objects sorted by student name
        """
        snapshot = await self.repository.get_submissions(exam_id)
        pending = [s for s in snapshot.submitted if regrade or not s.is_graded]
        if not pending:
            LOG.info(f"No submissions to auto-grade for exam {snapshot.exam.name}")
            return []

        LOG.info(f"Auto-grading {len(pending)} submissions for exam {snapshot.exam.name}")

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def grade_with_semaphore(submission: StudentSubmission) -> BatchAutoGradeResult:
            async with semaphore:
                return await self._grade_single_submission_async(snapshot.exam, submission, save)

        tasks = [grade_with_semaphore(s) for s in pending]

        results = []
        for coro in tqdm.as_completed(tasks, total=len(tasks), desc="Auto-grading submissions"):
            result = await coro
            results.append(result)
            if result.success:
                LOG.debug(f"Completed: {result.student_name} - {result.total_score}/{result.max_score}")
            else:
                LOG.warning(f"Failed: {result.student_name} - {result.error_message}")

        results.sort(key=lambda r: r.student_name)
        return results

    def grade_exam(self, exam_id: int, save: bool = True,
                   regrade: bool = False) -> List[BatchAutoGradeResult]:
        """Synchronous wrapper for grade_exam_async."""
        return asyncio.run(self.grade_exam_async(exam_id, save=save, regrade=regrade))

    def save_summary(self, results: List[BatchAutoGradeResult], output_path: Path):
        """
        Save auto-grading summary to YAML file.

        Args:
            results: List of auto-grading results
            output_path: Path to save summary file
        """
        successful = [r for r in results if r.success]
        failed = [r for r in results if not r.success]

        summary = {
            'auto_grading_summary': {
                'timestamp': datetime.now().isoformat(),
                'total_submissions': len(results),
                'successful': len(successful),
                'saved': sum(1 for r in successful if r.saved),
                'incomplete': sum(1 for r in successful if r.missing),
                'failed': len(failed),
                'average_score': sum(r.total_score for r in successful) / len(successful) if successful else 0,
                'max_possible_score': results[0].max_score if results else 0,
            },
            'submissions': [r.to_dict() for r in results]
        }

        with open(output_path, 'w') as f:
            yaml.dump(summary, f, default_flow_style=False, sort_keys=False)

        LOG.info(f"Summary saved to {output_path}")
