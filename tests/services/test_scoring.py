from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from app.db.models import QuestionTypeEnum
from app.schemas import AnswerSubmit, ManualMarkInput
from app.services import scoring


def question(question_type=QuestionTypeEnum.mcq, correct_answer="A", marks=5):
    return SimpleNamespace(question_type=question_type, correct_answer=correct_answer, marks=marks)


def answers(*pairs):
    return [AnswerSubmit(question_index=index, answer=answer) for index, answer in pairs]


PAPER = [
    question(correct_answer="A", marks=5),
    question(correct_answer="B", marks=10),
    question(QuestionTypeEnum.true_false, correct_answer="true", marks=2),
    question(QuestionTypeEnum.long_answer, correct_answer="", marks=8),
]


@pytest.mark.parametrize("total, exam_total, expected", [
    (5, 15, 33),
    (15, 15, 100),
    (0, 15, 0),
    (1, 8, 13),    # 12.5 rounds half up
    (1, 200, 1),   # 0.5 rounds half up
    (7, 0, 0),
    (20, 10, 200),
])
def test_percentage_of(total, exam_total, expected):
    assert scoring.percentage_of(total, exam_total) == expected


def test_score_objective_mixed_answers():
    result = scoring.score_objective(PAPER, answers((0, "A"), (1, "C"), (2, "true"), (3, "an essay")), 25)

    assert [(a.question_index, a.is_correct, a.marks_awarded) for a in result.answers] == [
        (0, True, 5), (1, False, 0), (2, True, 2), (3, False, 0),
    ]
    assert result.total_marks == 7
    assert result.percentage == 28


def test_score_objective_trims_but_is_case_sensitive():
    result = scoring.score_objective(PAPER, answers((0, "  A "), (1, "b")), 15)

    assert [a.is_correct for a in result.answers] == [True, False]
    assert result.total_marks == 5


def test_score_objective_trims_answer_key():
    paper = [question(correct_answer=" A ")]

    result = scoring.score_objective(paper, answers((0, "A")), 5)

    assert result.total_marks == 5


def test_score_objective_out_of_range_indices_score_zero():
    result = scoring.score_objective(PAPER, answers((-1, "A"), (4, "A"), (99, "B")), 25)

    assert [(a.question_index, a.is_correct, a.marks_awarded) for a in result.answers] == [
        (-1, False, 0), (4, False, 0), (99, False, 0),
    ]
    assert result.total_marks == 0


def test_score_objective_last_answer_for_index_wins():
    result = scoring.score_objective(PAPER, answers((1, "B"), (1, "A")), 15)

    assert len(result.answers) == 1
    assert result.answers[0].answer == "A"
    assert result.total_marks == 0


def test_score_objective_empty_key_is_never_correct():
    paper = [question(correct_answer="")]

    result = scoring.score_objective(paper, answers((0, "")), 5)

    assert result.answers[0].is_correct is False
    assert result.total_marks == 0


def test_score_objective_no_answers():
    result = scoring.score_objective(PAPER, [], 25)

    assert result.answers == []
    assert result.total_marks == 0
    assert result.percentage == 0


def test_merge_manual_overrides_objective():
    merged = scoring.merge_manual_marks(
        {0: 5, 1: 0},
        [ManualMarkInput(question_index=1, marks_awarded=10, comment="accepted alternate phrasing")],
        15,
    )

    assert merged.marks_by_index == {0: 5, 1: 10}
    assert merged.total_marks == 15
    assert merged.percentage == 100


def test_merge_gaps_count_as_zero():
    merged = scoring.merge_manual_marks({0: 5}, [ManualMarkInput(question_index=3, marks_awarded=4)], 30)

    assert merged.marks_by_index == {0: 5, 3: 4}
    assert merged.total_marks == 9
    assert merged.percentage == 30


def test_merge_stays_sparse_for_far_indices():
    far = 2 ** 31 - 1

    merged = scoring.merge_manual_marks({0: 5, far: 0}, [ManualMarkInput(question_index=far - 1, marks_awarded=2)], 15)

    assert merged.marks_by_index == {0: 5, far - 1: 2, far: 0}
    assert merged.total_marks == 7


def test_merge_ignores_negative_objective_indices():
    merged = scoring.merge_manual_marks({-1: 0, 0: 5}, [], 10)

    assert merged.marks_by_index == {0: 5}
    assert merged.total_marks == 5


def test_merge_with_nothing_is_zero():
    merged = scoring.merge_manual_marks({}, [], 10)

    assert merged.marks_by_index == {}
    assert merged.total_marks == 0
    assert merged.percentage == 0


def test_merge_is_idempotent():
    manual = [ManualMarkInput(question_index=1, marks_awarded=7.5)]

    first = scoring.merge_manual_marks({0: 5, 1: 0}, manual, 15)
    second = scoring.merge_manual_marks({0: 5, 1: 0}, manual, 15)

    assert first == second
    assert first.total_marks == 12.5
    assert first.percentage == 83


def test_manual_mark_input_coerces_marks():
    assert ManualMarkInput(question_index=0, marks_awarded=-3).marks_awarded == 0
    assert ManualMarkInput(question_index=0, marks_awarded="abc").marks_awarded == 0
    assert ManualMarkInput(question_index=0, marks_awarded="4.5").marks_awarded == 4.5


@pytest.mark.parametrize("index", [2 ** 31, 2 ** 63, -(2 ** 31) - 1])
def test_answer_index_outside_storage_range_is_rejected(index):
    with pytest.raises(ValidationError):
        AnswerSubmit(question_index=index, answer="A")


def test_answer_index_at_storage_edges_is_accepted():
    assert AnswerSubmit(question_index=2 ** 31 - 1).question_index == 2 ** 31 - 1
    assert AnswerSubmit(question_index=-(2 ** 31)).question_index == -(2 ** 31)


def test_manual_mark_index_outside_storage_range_is_rejected():
    with pytest.raises(ValidationError):
        ManualMarkInput(question_index=2 ** 31, marks_awarded=1)
