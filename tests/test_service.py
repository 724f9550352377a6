import threading

import pytest

import quiz_service
from quiz_errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationError


def _create(storage, user_id, body):
    return quiz_service.create_quiz(storage, user_id, body)


@pytest.mark.parametrize("correct, total, expected", [
    (3, 5, 60),
    (3, 4, 75),
    (1, 3, 33),
    (2, 3, 67),
    (1, 8, 13),
    (0, 4, 0),
    (4, 4, 100),
    (0, 0, 0),
])
def test_compute_score_rounds_half_up(correct, total, expected):
    assert quiz_service.compute_score(correct, total) == expected


def test_register_and_authenticate(mem_storage):
    user = quiz_service.register_user(mem_storage, {"username": "alice", "password": "secret123"})
    assert user.password_hash != "secret123"

    assert quiz_service.authenticate(mem_storage, {"username": "alice", "password": "secret123"}).id == user.id

    with pytest.raises(Unauthorized) as exc_info:
        quiz_service.authenticate(mem_storage, {"username": "alice", "password": "wrong"})
    assert exc_info.value.message == "Invalid credentials"

    with pytest.raises(Unauthorized):
        quiz_service.authenticate(mem_storage, {"username": "nobody", "password": "secret123"})


def test_register_rejects_taken_username(mem_storage):
    quiz_service.register_user(mem_storage, {"username": "alice", "password": "one"})
    with pytest.raises(Conflict) as exc_info:
        quiz_service.register_user(mem_storage, {"username": "alice", "password": "two"})
    assert exc_info.value.message == "Username already taken"
    assert exc_info.value.status_code == 400


def test_authenticate_requires_both_fields(mem_storage):
    with pytest.raises(ValidationError) as exc_info:
        quiz_service.authenticate(mem_storage, {"username": "alice"})
    assert exc_info.value.message == "Username and password are required"


def test_current_user(mem_storage):
    with pytest.raises(Unauthorized):
        quiz_service.get_current_user(mem_storage, None)
    with pytest.raises(NotFound):
        quiz_service.get_current_user(mem_storage, 42)


def test_owner_checks_come_after_existence(mem_storage, quiz_body):
    quiz = _create(mem_storage, 1, quiz_body())

    with pytest.raises(NotFound):
        quiz_service.update_quiz(mem_storage, 2, 999, {"title": "x"})
    with pytest.raises(Forbidden) as exc_info:
        quiz_service.update_quiz(mem_storage, 2, quiz.id, {"title": "x"})
    assert exc_info.value.message == "Not authorized to update this quiz"
    with pytest.raises(Forbidden) as exc_info:
        quiz_service.delete_quiz(mem_storage, 2, quiz.id)
    assert exc_info.value.message == "Not authorized to delete this quiz"
    with pytest.raises(Forbidden) as exc_info:
        quiz_service.list_quiz_attempts(mem_storage, 2, quiz.id)
    assert exc_info.value.message == "Not authorized to view all attempts for this quiz"

    assert mem_storage.get_quiz(quiz.id).title == "Python Basics"


def test_update_validates_before_writing(mem_storage, quiz_body):
    quiz = _create(mem_storage, 1, quiz_body())
    with pytest.raises(ValidationError):
        quiz_service.update_quiz(mem_storage, 1, quiz.id, {"title": "New", "timeLimit": 1})
    assert mem_storage.get_quiz(quiz.id).title == "Python Basics"

    updated = quiz_service.update_quiz(mem_storage, 1, quiz.id, {"title": "New"})
    assert updated.title == "New"
    assert updated.time_limit == 30


def test_score_example_five_questions(mem_storage, quiz_body, answer_all):
    quiz = _create(mem_storage, 1, quiz_body(question_count=5, passing_score=70))
    attempt = quiz_service.submit_attempt(mem_storage, 2, quiz.id, answer_all(len(quiz.questions), correct=3))
    assert attempt.score == 60
    assert attempt.passed is False


def test_score_example_four_questions(mem_storage, quiz_body, answer_all):
    quiz = _create(mem_storage, 1, quiz_body(question_count=4, passing_score=70))
    attempt = quiz_service.submit_attempt(mem_storage, 2, quiz.id, answer_all(len(quiz.questions), correct=3))
    assert attempt.score == 75
    assert attempt.passed is True


def test_passing_score_is_inclusive(mem_storage, quiz_body, answer_all):
    quiz = _create(mem_storage, 1, quiz_body(question_count=4, passing_score=75))
    assert quiz_service.submit_attempt(mem_storage, 2, quiz.id, answer_all(len(quiz.questions), correct=3)).passed is True


def test_client_correct_flag_is_ignored(mem_storage, quiz_body):
    quiz = _create(mem_storage, 1, quiz_body(question_count=2))
    attempt = quiz_service.submit_attempt(mem_storage, 2, quiz.id, {"answers": [
        {"questionId": "q1", "selectedOptionId": "q1-b", "correct": True},
        {"questionId": "q2", "selectedOptionId": "q2-a", "correct": False},
    ]})
    assert attempt.score == 50
    assert [a.correct for a in attempt.answers] == [False, True]


def test_unanswered_questions_count_against_score(mem_storage, quiz_body):
    quiz = _create(mem_storage, 1, quiz_body(question_count=4))
    attempt = quiz_service.submit_attempt(mem_storage, 2, quiz.id, {"answers": [
        {"questionId": "q1", "selectedOptionId": "q1-a"},
        {"questionId": "q2", "selectedOptionId": "", "correct": False},
    ]})
    assert attempt.score == 25
    assert attempt.answers[1].selected_option_id == ""


def test_last_answer_for_a_question_wins(mem_storage, quiz_body):
    quiz = _create(mem_storage, 1, quiz_body(question_count=1))
    attempt = quiz_service.submit_attempt(mem_storage, 2, quiz.id, {"answers": [
        {"questionId": "q1", "selectedOptionId": "q1-a"},
        {"questionId": "q1", "selectedOptionId": "q1-b"},
    ]})
    assert attempt.score == 0
    assert len(attempt.answers) == 1
    assert attempt.answers[0].selected_option_id == "q1-b"


def test_unknown_questions_are_dropped(mem_storage, quiz_body):
    quiz = _create(mem_storage, 1, quiz_body(question_count=2))
    attempt = quiz_service.submit_attempt(mem_storage, 2, quiz.id, {"answers": [
        {"questionId": "q1", "selectedOptionId": "q1-a"},
        {"questionId": "ghost", "selectedOptionId": "ghost-a", "correct": True},
    ]})
    assert attempt.score == 50
    assert [a.question_id for a in attempt.answers] == ["q1"]


def test_submit_to_missing_quiz(mem_storage):
    with pytest.raises(NotFound):
        quiz_service.submit_attempt(mem_storage, 2, 999, {"answers": []})


def test_attempt_is_private_to_its_user(mem_storage, quiz_body, answer_all):
    quiz = _create(mem_storage, 1, quiz_body())
    attempt = quiz_service.submit_attempt(mem_storage, 2, quiz.id, answer_all(len(quiz.questions), correct=3))

    assert quiz_service.get_user_attempt(mem_storage, 2, attempt.id).id == attempt.id
    with pytest.raises(NotFound):
        quiz_service.get_user_attempt(mem_storage, 1, attempt.id)
    assert [a.id for a in quiz_service.list_quiz_attempts(mem_storage, 1, quiz.id)] == [attempt.id]


def test_delete_keeps_attempts(mem_storage, quiz_body, answer_all):
    quiz = _create(mem_storage, 1, quiz_body())
    quiz_service.submit_attempt(mem_storage, 2, quiz.id, answer_all(len(quiz.questions), correct=1))
    quiz_service.delete_quiz(mem_storage, 1, quiz.id)

    with pytest.raises(NotFound):
        quiz_service.get_quiz(mem_storage, quiz.id)
    attempts = quiz_service.list_user_attempts(mem_storage, 2)
    assert attempts[0].quiz_snapshot["title"] == "Python Basics"


def test_concurrent_registration_of_one_username(mem_storage):
    count = 8
    barrier = threading.Barrier(count)
    outcomes = []

    def register():
        barrier.wait()
        try:
            quiz_service.register_user(mem_storage, {"username": "racer", "password": "secret123"})
            outcomes.append("created")
        except Conflict:
            outcomes.append("conflict")

    threads = [threading.Thread(target=register) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["conflict"] * (count - 1) + ["created"]
    assert mem_storage.get_user_by_username("racer").id == 1
