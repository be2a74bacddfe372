"""Grading core: submissions, grade editing, auto-grading, scores, analytics and export."""

from .models import Answer, AutoGradeResult, Exam, ExamSubmissions, Question, StudentSubmission, SuggestedGrade
from .repository import SubmissionRepository
from .editor import GradeEditor, GradeEntry, GradingState
from .auto_grade import AutoGradeAdapter, BackendOracle
from .analytics import AnalyticsEngine, ExamAnalytics
from .session import GradingSession

__all__ = [
    'Answer',
    'AutoGradeResult',
    'Exam',
    'ExamSubmissions',
    'Question',
    'StudentSubmission',
    'SuggestedGrade',
    'SubmissionRepository',
    'GradeEditor',
    'GradeEntry',
    'GradingState',
    'AutoGradeAdapter',
    'BackendOracle',
    'AnalyticsEngine',
    'ExamAnalytics',
    'GradingSession',
]
