"""CSV grade reports for an exam."""

import csv
import io
import logging
import re
from pathlib import Path
from typing import List, Sequence

from .aggregator import display, percentage, total_score
from .models import StudentSubmission

LOG = logging.getLogger(__name__)

HEADER = [
    "Student Name",
    "Exam Name",
    "Course Name",
    "Total Score",
    "Max Score",
    "Percentage",
    "Status",
]
FILENAME_SUFFIX = "_grades.csv"


def to_table(exam_name: str, course_name: str, overall_score: float,
             submissions: Sequence[StudentSubmission]) -> List[List[str]]:
    """One row per submitted submission, graded or not, in the given order."""
    rows = []
    for submission in submissions:
        if not submission.is_submitted:
            continue
        total = total_score(submission)
        pct = percentage(total, overall_score)
        rows.append([
            submission.student_name,
            exam_name,
            course_name,
            f"{display(total):.2f}",
            f"{display(overall_score):.2f}",
            f"{display(pct):.2f}%",
            "Graded" if submission.is_graded else "Pending",
        ])
    return rows


def to_csv(exam_name: str, course_name: str, overall_score: float,
           submissions: Sequence[StudentSubmission]) -> str:
    """Render the report, header included, as CSV text."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(HEADER)
    writer.writerows(to_table(exam_name, course_name, overall_score, submissions))
    return buffer.getvalue()


def export_filename(exam_name: str) -> str:
    """File name for an exam's report, e.g. ``Final_Exam_grades.csv``."""
    slug = re.sub(r"[^\w\-]+", "_", exam_name.strip()).strip("_") or "exam"
    return f"{slug}{FILENAME_SUFFIX}"


def write_csv(output_path: Path, exam_name: str, course_name: str, overall_score: float,
              submissions: Sequence[StudentSubmission]) -> Path:
    """Write the report to ``output_path`` (a directory gets the default file name)."""
    output_path = Path(output_path)
    if output_path.is_dir():
        output_path = output_path / export_filename(exam_name)

    rows = to_table(exam_name, course_name, overall_score, submissions)
    with open(output_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(HEADER)
        writer.writerows(rows)

    LOG.info(f"Exported {len(rows)} rows to {output_path}")
    return output_path
