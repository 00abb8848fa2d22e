"""
Scoring engine.

Two pure phases, no I/O:

* objective phase, run at submission: auto-grades ``mcq``/``true_false``
  answers by exact (trimmed, case-sensitive) comparison with the answer key.
  Subjective answers start at zero.
* merge phase, run at grading: recomputes the total from the stored
  objective marks and the grader's manual marks, manual winning per index.

Both phases recompute from scratch, so grading the same input twice yields
the same result.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Mapping, Optional, Protocol, Sequence

from app.db.models.exam import OBJECTIVE_QUESTION_TYPES, QuestionTypeEnum
from app.schemas.attempt import AnswerSubmit
from app.schemas.grading import ManualMarkInput, MergedScore, ObjectiveScore, ScoredAnswer


class GradableQuestion(Protocol):
    question_type: QuestionTypeEnum
    correct_answer: Optional[str]
    marks: int


def percentage_of(total_marks: float, exam_total_marks: float) -> int:
    """round(total / exam_total * 100) with halves rounded up; 0 when the exam total is 0."""
    if not exam_total_marks:
        return 0
    ratio = Decimal(str(total_marks)) / Decimal(str(exam_total_marks)) * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def grade_answer(question: Optional[GradableQuestion], answer: str) -> tuple[bool, float]:
    """(is_correct, marks_awarded) for one answer in the objective phase."""
    if question is None or question.question_type not in OBJECTIVE_QUESTION_TYPES:
        return False, 0.0
    key = (question.correct_answer or "").strip()
    if not key:
        # No answer key, nothing to grade against
        return False, 0.0
    is_correct = answer.strip() == key
    return is_correct, float(question.marks) if is_correct else 0.0


def score_objective(
    questions: Sequence[GradableQuestion],
    answers: Sequence[AnswerSubmit],
    exam_total_marks: float,
) -> ObjectiveScore:
    """Auto-grades a submission. A repeated question index keeps the last answer sent."""
    latest: Dict[int, AnswerSubmit] = {}
    for answer in answers:
        latest[answer.question_index] = answer

    scored = []
    for index in sorted(latest):
        question = questions[index] if 0 <= index < len(questions) else None
        is_correct, marks_awarded = grade_answer(question, latest[index].answer)
        scored.append(ScoredAnswer(
            question_index=index,
            answer=latest[index].answer,
            is_correct=is_correct,
            marks_awarded=marks_awarded,
        ))

    total = sum(answer.marks_awarded for answer in scored)
    return ObjectiveScore(answers=scored, total_marks=total, percentage=percentage_of(total, exam_total_marks))


def merge_manual_marks(
    objective_marks: Mapping[int, float],
    manual_marks: Sequence[ManualMarkInput],
    exam_total_marks: float,
) -> MergedScore:
    """
    Effective mark per observed question index: the manual mark when the
    grader gave one, else the objective mark. Indices nobody marked count as
    0 and are left out of ``marks_by_index``.
    """
    manual = {mark.question_index: mark.marks_awarded for mark in manual_marks}

    marks_by_index: Dict[int, float] = {}
    for index in sorted(set(objective_marks) | set(manual)):
        if index < 0:
            continue
        if index in manual:
            marks_by_index[index] = float(manual[index])
        else:
            marks_by_index[index] = float(objective_marks[index] or 0)

    total = sum(marks_by_index.values())
    return MergedScore(marks_by_index=marks_by_index, total_marks=total, percentage=percentage_of(total, exam_total_marks))
