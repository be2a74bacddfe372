"""Command line tools for exam analytics, grade export and batch auto-grading."""

from .batch_autograder import BatchAutoGrader, BatchAutoGradeResult

__all__ = [
    'BatchAutoGrader',
    'BatchAutoGradeResult'
]
