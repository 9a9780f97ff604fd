from mindpop.core.models import Question, QuestionType
from mindpop.core.scoring import (
    compute_progress,
    has_passed,
    is_answer_correct,
    is_course_complete,
    percentage,
    round_half_up,
    score_answers,
)


def _question(question_id, answer, points=1, kind=QuestionType.SHORT_ANSWER):
    return Question(id=question_id, quiz_id="quiz", text="Question", type=kind, correct_answer=answer, points=points)


def test_score_counts_points_of_correct_answers_only():
    questions = [_question("q1", "a"), _question("q2", "b"), _question("q3", "c", points=2)]

    result = score_answers(questions, {"q1": "a", "q2": "wrong", "q3": "c"})

    assert result.score == 3
    assert result.max_score == 4
    assert result.correct_count == 2
    assert [answer.is_correct for answer in result.answers] == [True, False, True]


def test_unanswered_questions_are_recorded_as_empty_and_incorrect():
    questions = [_question("q1", "a"), _question("q2", "b")]

    result = score_answers(questions, {"q1": "a"})

    assert [answer.question_id for answer in result.answers] == ["q1", "q2"]
    assert result.answers[1].answer == ""
    assert result.answers[1].is_correct is False
    assert result.score == 1


def test_answer_matching_is_exact():
    question = _question("q1", "Paris")

    assert is_answer_correct(question, "Paris")
    assert not is_answer_correct(question, "paris")
    assert not is_answer_correct(question, " Paris")


def test_list_answers_accept_their_joined_form():
    question = _question("q1", ["a", "b"])

    assert is_answer_correct(question, ["a", "b"])
    assert is_answer_correct(question, "a,b")
    assert not is_answer_correct(question, ["b", "a"])


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(66.666) == 67
    assert round_half_up(0.49) == 0


def test_progress_is_rounded_percentage_of_completed_quizzes():
    assert compute_progress(["a", "b"], ["a", "b", "c"]) == 67
    assert compute_progress(["a"], ["a", "b"]) == 50
    assert compute_progress(["a", "b", "c"], ["a", "b", "c"]) == 100


def test_progress_of_course_without_quizzes_is_complete():
    assert compute_progress([], []) == 100
    assert is_course_complete([], [])


def test_progress_never_exceeds_one_hundred():
    assert compute_progress(["a", "b", "gone"], ["a", "b"]) == 100


def test_course_complete_requires_every_quiz():
    assert not is_course_complete(["a"], ["a", "b"])
    assert is_course_complete(["b", "a"], ["a", "b"])


def test_pass_fail_threshold():
    assert percentage(3, 4) == 75
    assert percentage(1, 0) == 0
    assert has_passed(3, 4, 70)
    assert not has_passed(2, 4, None)
    assert has_passed(2, 4, 50)
