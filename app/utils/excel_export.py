import io
from typing import Any, Dict, List, Optional, Sequence

from openpyxl.styles import Font
from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from app.db import models

# --- Gradebook Export ---

GRADEBOOK_HEADER = [
    "Attempt ID", "Student ID", "Attempt #", "Status",
    "Start Time", "Submit Time", "Graded Time", "Time Spent (Minutes)",
    "Total Marks", "Maximum Marks", "Percentage", "Result", "Feedback",
]
PASS_LABEL = "Pass"
FAIL_LABEL = "Fail"
# Attempts still open have no result yet
PENDING_LABEL = "Pending"


def _question_header(index: int) -> str:
    return f"Q{index + 1}"


def _effective_marks(attempt: models.ExamAttempt) -> Dict[int, float]:
    """Per question marks as they count toward the total: manual marks override auto-graded ones."""
    marks = {answer.question_index: answer.marks_awarded for answer in attempt.answers}
    marks.update({mark.question_index: mark.marks_awarded for mark in attempt.manual_marks})
    return marks


def _result_label(attempt: models.ExamAttempt, passing_marks: int) -> str:
    if attempt.status == models.AttemptStatusEnum.in_progress:
        return PENDING_LABEL
    return PASS_LABEL if (attempt.total_marks or 0) >= passing_marks else FAIL_LABEL


def _format_timestamp(value) -> Optional[str]:
    return value.isoformat(sep=" ", timespec="seconds") if value else None


def _format_attempt_for_export(attempt: models.ExamAttempt, exam: models.Exam) -> Dict[str, Any]:
    """Formats an ExamAttempt model object for a gradebook row."""
    row = {
        "Attempt ID": attempt.id,
        "Student ID": attempt.student_id,
        "Attempt #": attempt.attempt_number,
        "Status": attempt.status.value,
        "Start Time": _format_timestamp(attempt.started_at),
        "Submit Time": _format_timestamp(attempt.submitted_at),
        "Graded Time": _format_timestamp(attempt.graded_at),
        "Time Spent (Minutes)": attempt.time_spent,
        "Total Marks": float(attempt.total_marks or 0),
        "Maximum Marks": exam.total_marks,
        "Percentage": attempt.percentage or 0,
        "Result": _result_label(attempt, exam.passing_marks),
        "Feedback": attempt.feedback or "",
    }
    for index, marks in _effective_marks(attempt).items():
        row[_question_header(index)] = float(marks)
    return row


def build_gradebook(exam: models.Exam, attempts: Sequence[models.ExamAttempt]) -> bytes:
    """Renders the attempts of an exam as an .xlsx workbook, one row per attempt."""
    question_headers = [_question_header(question.order_index) for question in exam.questions]
    header: List[str] = GRADEBOOK_HEADER + question_headers

    workbook = Workbook()
    sheet: Worksheet = workbook.active
    sheet.title = "Gradebook"

    sheet.append([exam.title])
    sheet.append([f"Passing marks: {exam.passing_marks} / {exam.total_marks}"])
    sheet.append(header)
    sheet["A1"].font = Font(bold=True, size=14)
    for cell in sheet[3]:
        cell.font = Font(bold=True)

    for attempt in attempts:
        formatted_row_dict = _format_attempt_for_export(attempt, exam)
        sheet.append([formatted_row_dict.get(column) for column in header])

    # Save to memory
    file_stream = io.BytesIO()
    workbook.save(file_stream)
    file_stream.seek(0)

    return file_stream.read()


def gradebook_filename(exam: models.Exam) -> str:
    safe_title = "".join(ch if ch.isalnum() else "_" for ch in exam.title).strip("_") or "exam"
    return f"gradebook_{exam.id}_{safe_title[:50]}.xlsx"
