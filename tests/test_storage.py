import threading

from quiz_storage import QuizAnswer, SessionStore, snapshot_quiz


def _quiz_data(created_by=1, **overrides):
    data = {
        "title": "Capitals",
        "description": "European capitals",
        "time_limit": 20,
        "passing_score": 50,
        "created_by": created_by,
        "questions": [{
            "text": "Capital of France?",
            "options": [
                {"text": "Paris", "is_correct": True},
                {"id": "opt-berlin", "text": "Berlin"},
            ],
        }],
    }
    data.update(overrides)
    return data


def test_user_ids_increment_and_lookup(mem_storage):
    alice = mem_storage.create_user({"username": "alice", "password_hash": "h1"})
    bob = mem_storage.create_user({"username": "bob", "password_hash": "h2"})

    assert (alice.id, bob.id) == (1, 2)
    assert mem_storage.get_user(2).username == "bob"
    assert mem_storage.get_user_by_username("alice").id == 1
    assert mem_storage.get_user_by_username("carol") is None
    assert mem_storage.get_user(99) is None


def test_counters_are_per_collection(mem_storage):
    mem_storage.create_user({"username": "alice", "password_hash": "h"})
    mem_storage.create_user({"username": "bob", "password_hash": "h"})
    quiz = mem_storage.create_quiz(_quiz_data())
    assert quiz.id == 1


def test_create_quiz_backfills_missing_ids(mem_storage):
    quiz = mem_storage.create_quiz(_quiz_data())
    question = quiz.questions[0]

    assert question.id
    assert question.options[0].id
    assert question.options[1].id == "opt-berlin"
    assert question.options[1].is_correct is False
    assert question.explanation == ""
    assert quiz.created_at


def test_records_are_copies(mem_storage):
    quiz = mem_storage.create_quiz(_quiz_data())
    quiz.title = "Changed"
    quiz.questions[0].text = "Changed"

    stored = mem_storage.get_quiz(quiz.id)
    assert stored.title == "Capitals"
    assert stored.questions[0].text == "Capital of France?"


def test_update_quiz_is_shallow_merge(mem_storage):
    quiz = mem_storage.create_quiz(_quiz_data())
    question_id = quiz.questions[0].id

    updated = mem_storage.update_quiz(quiz.id, {"title": "World capitals", "id": 42})
    assert updated.id == quiz.id
    assert updated.title == "World capitals"
    assert updated.description == "European capitals"
    assert updated.questions[0].id == question_id

    replaced = mem_storage.update_quiz(quiz.id, {"questions": [{
        "text": "Capital of Spain?",
        "options": [{"text": "Madrid", "is_correct": True}, {"text": "Lisbon"}],
    }]})
    assert replaced.questions[0].text == "Capital of Spain?"
    assert replaced.questions[0].id and replaced.questions[0].id != question_id

    assert mem_storage.update_quiz(999, {"title": "x"}) is None


def test_list_and_delete_quizzes(mem_storage):
    first = mem_storage.create_quiz(_quiz_data(created_by=1))
    mem_storage.create_quiz(_quiz_data(created_by=2))

    assert [q.id for q in mem_storage.get_quizzes_by_user(1)] == [first.id]
    assert len(mem_storage.get_all_quizzes()) == 2

    assert mem_storage.delete_quiz(first.id) is True
    assert mem_storage.delete_quiz(first.id) is False
    assert mem_storage.get_quiz(first.id) is None


def test_attempts_by_user_and_quiz(mem_storage):
    quiz = mem_storage.create_quiz(_quiz_data())
    attempt = mem_storage.create_quiz_attempt({
        "quiz_id": quiz.id,
        "user_id": 7,
        "score": 100,
        "passed": True,
        "answers": [QuizAnswer(quiz.questions[0].id, quiz.questions[0].options[0].id, True)],
        "quiz_snapshot": snapshot_quiz(quiz),
    })
    mem_storage.create_quiz_attempt({
        "quiz_id": quiz.id, "user_id": 8, "score": 0, "passed": False,
        "answers": [{"question_id": quiz.questions[0].id, "selected_option_id": "", "correct": False}],
    })

    assert attempt.id == 1
    assert attempt.completed_at
    assert [a.user_id for a in mem_storage.get_quiz_attempts_by_quiz(quiz.id)] == [7, 8]
    assert [a.id for a in mem_storage.get_quiz_attempts_by_user(7)] == [1]
    assert mem_storage.get_quiz_attempt(2).answers[0].selected_option_id == ""
    assert mem_storage.get_quiz_attempt(1).quiz_snapshot["title"] == "Capitals"


def test_attempt_snapshot_survives_quiz_deletion(mem_storage):
    quiz = mem_storage.create_quiz(_quiz_data())
    mem_storage.create_quiz_attempt({
        "quiz_id": quiz.id, "user_id": 1, "score": 100, "passed": True,
        "answers": [], "quiz_snapshot": snapshot_quiz(quiz),
    })
    mem_storage.delete_quiz(quiz.id)

    attempt = mem_storage.get_quiz_attempts_by_user(1)[0]
    assert attempt.quiz_snapshot["questions"][0]["text"] == "Capital of France?"
    assert attempt.to_dict()["quizSnapshot"]["passingScore"] == 50


def test_quiz_to_dict_uses_wire_names(mem_storage):
    data = mem_storage.create_quiz(_quiz_data()).to_dict()
    assert {"timeLimit", "passingScore", "createdBy", "createdAt"} <= set(data)
    assert data["questions"][0]["options"][0]["isCorrect"] is True


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_session_store_expiry():
    clock = FakeClock()
    sessions = SessionStore(lifetime_seconds=60, prune_interval=3600, clock=clock)
    token = sessions.create(5)

    assert sessions.get_user_id(token) == 5
    assert sessions.get_user_id(None) is None
    assert sessions.get_user_id("unknown") is None

    clock.now += 61
    assert sessions.get_user_id(token) is None
    assert len(sessions) == 0


def test_session_store_destroy_and_prune():
    clock = FakeClock()
    sessions = SessionStore(lifetime_seconds=60, prune_interval=3600, clock=clock)
    old = sessions.create(1)
    clock.now += 30
    expiring = sessions.create(2)

    assert sessions.destroy(old) is True
    assert sessions.destroy(old) is False

    clock.now += 45
    recent = sessions.create(3)
    clock.now += 20
    assert sessions.prune() == 1
    assert sessions.get_user_id(expiring) is None
    assert sessions.get_user_id(recent) == 3


def test_session_drafts_belong_to_their_token():
    clock = FakeClock()
    sessions = SessionStore(lifetime_seconds=60, prune_interval=3600, clock=clock)
    mine, theirs = sessions.create(1), sessions.create(2)

    draft = {"quiz_id": None, "questions": [{"id": "q1", "text": "Draft"}]}
    assert sessions.put_draft(mine, "quiz_builder", draft) is True
    draft["questions"][0]["text"] = "changed after saving"

    assert sessions.get_draft(mine, "quiz_builder")["questions"][0]["text"] == "Draft"
    assert sessions.get_draft(theirs, "quiz_builder") is None
    assert sessions.put_draft("unknown", "quiz_builder", draft) is False

    sessions.drop_draft(mine, "quiz_builder")
    assert sessions.get_draft(mine, "quiz_builder") is None


def test_session_drafts_go_with_the_session():
    clock = FakeClock()
    sessions = SessionStore(lifetime_seconds=60, prune_interval=3600, clock=clock)
    token = sessions.create(1)
    sessions.put_draft(token, "quiz_run", {"quiz_id": 3})

    clock.now += 61
    assert sessions.get_draft(token, "quiz_run") is None
    assert sessions.put_draft(token, "quiz_run", {"quiz_id": 3}) is False

    token = sessions.create(1)
    sessions.put_draft(token, "quiz_run", {"quiz_id": 3})
    sessions.destroy(token)
    assert sessions.get_draft(token, "quiz_run") is None


def _run_together(count, target):
    """Start `count` threads at the same moment and collect what each returns"""
    barrier = threading.Barrier(count)
    results = [None] * count

    def worker(index):
        barrier.wait()
        results[index] = target(index)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_concurrent_quiz_creation_gets_distinct_ids(mem_storage):
    quizzes = _run_together(16, lambda i: mem_storage.create_quiz(_quiz_data(created_by=i)))

    assert sorted(q.id for q in quizzes) == list(range(1, 17))
    assert len(mem_storage.get_all_quizzes()) == 16


def test_concurrent_attempts_get_distinct_ids(mem_storage):
    quiz = mem_storage.create_quiz(_quiz_data())
    attempts = _run_together(16, lambda i: mem_storage.create_quiz_attempt({
        "quiz_id": quiz.id, "user_id": i, "score": 0, "passed": False, "answers": [],
    }))

    assert sorted(a.id for a in attempts) == list(range(1, 17))
    assert len(mem_storage.get_quiz_attempts_by_quiz(quiz.id)) == 16
