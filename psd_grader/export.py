from __future__ import annotations

import csv
import io
import re
from collections.abc import Sequence

from psd_grader.config import DEFAULT_PASS_THRESHOLD
from psd_grader.filename_patterns import strip_document_name
from psd_grader.scoring import GradingResult

RESULTS_FILENAME = "grading_results.csv"
RESULTS_HEADERS = ["Filename", "Score", "Percentage", "Letter Grade", "Status"]
GRADEBOOK_FIXED_HEADERS = ["Student", "ID", "SIS User ID", "SIS Login ID"]
DEFAULT_ASSIGNMENT_NAME = "Assignment"


def _write_csv(headers: list[str], rows: list[list]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return output.getvalue()


def results_csv(results: Sequence[GradingResult], pass_threshold: int = DEFAULT_PASS_THRESHOLD) -> str:
    rows = []
    for result in results:
        status = "Pass" if result.percentage >= pass_threshold else "Needs Review"
        rows.append([result.filename, result.score, f"{result.percentage}%", result.letter_grade, status])
    return _write_csv(RESULTS_HEADERS, rows)


def gradebook_filename(assignment_name: str | None) -> str:
    name = (assignment_name or DEFAULT_ASSIGNMENT_NAME).strip() or DEFAULT_ASSIGNMENT_NAME
    slug = re.sub(r"\s+", "_", name).lower()
    return f"canvas_import_{slug}.csv"


def gradebook_csv(results: Sequence[GradingResult], assignment_name: str | None = None) -> str:
    """Canvas gradebook import sheet; LMS submissions carry the Canvas user id."""

    assignment = (assignment_name or DEFAULT_ASSIGNMENT_NAME).strip() or DEFAULT_ASSIGNMENT_NAME
    rows = []
    for result in results:
        if result.submission is not None:
            rows.append([result.submission.student_name_token, result.submission.user_id, "", "", result.percentage])
        else:
            student = result.student_name or strip_document_name(result.filename)
            rows.append([student, "", "", "", result.percentage])
    return _write_csv([*GRADEBOOK_FIXED_HEADERS, assignment], rows)
