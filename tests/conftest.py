import os, sys

# Make sure Python can see the repo root (the folder that contains app.py)
REPO_ROOT = os.path.dirname(os.path.dirname(__file__))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

import pytest

from app import TestingConfig, create_app
from quiz_storage import MemStorage


def build_quiz_body(question_count=3, title="Python Basics", time_limit=30, passing_score=70):
    """Quiz request body whose correct option is always '<qid>-a'"""
    questions = []
    for n in range(1, question_count + 1):
        questions.append({
            "id": f"q{n}",
            "text": f"Question {n}?",
            "options": [
                {"id": f"q{n}-a", "text": f"Right {n}", "isCorrect": True},
                {"id": f"q{n}-b", "text": f"Wrong {n}", "isCorrect": False},
                {"id": f"q{n}-c", "text": f"Also wrong {n}", "isCorrect": False},
            ],
            "explanation": f"Option A is right for question {n}.",
        })
    return {
        "title": title,
        "description": "A short quiz used by the tests",
        "timeLimit": time_limit,
        "passingScore": passing_score,
        "questions": questions,
    }


@pytest.fixture
def app():
    return create_app(TestingConfig)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def storage(app):
    return app.extensions["quiz_storage"]


@pytest.fixture
def mem_storage():
    return MemStorage()


@pytest.fixture
def quiz_body():
    return build_quiz_body


@pytest.fixture
def register(app):
    """Return a logged-in test client for a freshly registered user"""
    def _register(username, password="secret123"):
        client = app.test_client()
        resp = client.post("/api/auth/register", json={"username": username, "password": password})
        assert resp.status_code == 201, resp.get_json()
        return client
    return _register


def answer_quiz(question_count, correct):
    """Attempt body for a quiz from build_quiz_body: the first `correct` answers are right"""
    answers = []
    for n in range(1, question_count + 1):
        choice = "a" if n <= correct else "b"
        answers.append({"questionId": f"q{n}", "selectedOptionId": f"q{n}-{choice}"})
    return {"answers": answers}


@pytest.fixture
def answer_all():
    return answer_quiz
