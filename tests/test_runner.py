import pytest

from quiz_runner import FINISHED, INTRO, RUNNING, SUBMITTING, Countdown, QuizRunner, RunnerError


def _runner(question_count=3, time_limit=10):
    questions = [{"id": f"q{n}", "correct_option_id": f"q{n}-a"} for n in range(1, question_count + 1)]
    return QuizRunner(quiz_id=1, time_limit=time_limit, questions=questions)


def test_countdown_ticks_to_zero_once():
    countdown = Countdown(3)
    assert [countdown.tick() for _ in range(5)] == [False, False, True, False, False]
    assert countdown.remaining == 0

    countdown.reset()
    assert countdown.remaining == 3


def test_countdown_pause_resume_clear():
    countdown = Countdown(2)
    countdown.pause()
    assert countdown.tick() is False
    assert countdown.remaining == 2

    countdown.resume()
    countdown.tick()
    assert countdown.remaining == 1

    countdown.clear()
    assert countdown.tick() is False
    assert countdown.expired


def test_start_and_answer():
    runner = _runner()
    assert runner.state == INTRO
    with pytest.raises(RunnerError):
        runner.select("q1-a")

    runner.start(now=100.0)
    assert runner.state == RUNNING
    runner.select("q1-b")
    runner.select("q1-a")
    assert runner.answers["q1"] == {"selectedOptionId": "q1-a", "correct": True}


def test_timeout_records_blank_answer_and_advances():
    runner = _runner(time_limit=10)
    runner.start(now=0.0)

    assert runner.sync(now=9.5) is None
    assert runner.current_index == 0

    runner.sync(now=10.2)
    assert runner.answers["q1"] == {"selectedOptionId": "", "correct": False}
    assert runner.current_index == 1
    assert runner.time_remaining == 10


def test_timeout_keeps_an_existing_answer():
    runner = _runner()
    runner.start(now=0.0)
    runner.select("q1-a")
    runner.time_up()
    assert runner.answers["q1"]["correct"] is True
    assert runner.current_index == 1


def test_timeout_on_last_question_submits():
    runner = _runner(question_count=2, time_limit=5)
    runner.start(now=0.0)
    runner.select("q1-a")
    runner.next()

    submission = runner.sync(now=5.0)
    assert runner.state == SUBMITTING
    assert submission == [
        {"questionId": "q1", "selectedOptionId": "q1-a", "correct": True},
        {"questionId": "q2", "selectedOptionId": "", "correct": False},
    ]


def test_long_absence_expires_several_questions():
    runner = _runner(question_count=3, time_limit=5)
    runner.start(now=0.0)
    submission = runner.sync(now=100.0)
    assert runner.state == SUBMITTING
    assert [a["selectedOptionId"] for a in submission] == ["", "", ""]


def test_previous_keeps_answers_and_resets_timer():
    runner = _runner(time_limit=10)
    runner.start(now=0.0)
    assert runner.previous() is False

    runner.select("q1-b")
    runner.next()
    runner.sync(now=4.0)
    assert runner.time_remaining == 6

    assert runner.previous() is True
    assert runner.current_index == 0
    assert runner.time_remaining == 10
    assert runner.selected_option("q1") == "q1-b"


def test_next_on_last_question_returns_answers_in_order():
    runner = _runner(question_count=2)
    runner.start(now=0.0)
    runner.next()
    runner.select("q2-a")
    submission = runner.next()

    # q1 was skipped without a timeout, so it is simply not answered
    assert submission == [{"questionId": "q2", "selectedOptionId": "q2-a", "correct": True}]
    assert runner.state == SUBMITTING
    assert runner.sync(now=1000.0) is None


def test_failed_submit_stays_submitting_then_finishes():
    runner = _runner(question_count=1)
    runner.start(now=0.0)
    runner.next()
    assert runner.state == SUBMITTING
    with pytest.raises(RunnerError):
        runner.next()

    runner.finish(attempt_id=7)
    assert runner.state == FINISHED
    assert runner.attempt_id == 7


def test_session_round_trip():
    runner = _runner()
    runner.start(now=50.0)
    runner.select("q1-a")
    runner.sync(now=53.0)

    restored = QuizRunner.from_session(runner.to_session())
    assert restored.state == RUNNING
    assert restored.time_remaining == 7
    assert restored.answers == runner.answers
    assert restored.last_sync == 53.0
