"""
QuizCraft - Quiz Authoring and Timed Quiz Platform
Data Store: record types, the storage port and the in-memory implementation
"""

import copy
import logging
import secrets
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime as dt, timezone
from typing import Any, Callable, Dict, List, Optional

from flask import current_app

logger = logging.getLogger(__name__)


def new_token() -> str:
    """Opaque id for questions and options"""
    return uuid.uuid4().hex


def utc_now() -> str:
    return dt.now(timezone.utc).isoformat()


# Data Models
@dataclass
class User:
    id: int
    username: str
    password_hash: str
    created_at: str = ''

    def to_public(self) -> Dict[str, Any]:
        return {'id': self.id, 'username': self.username}


@dataclass
class QuizOption:
    id: str
    text: str
    is_correct: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'text': self.text, 'isCorrect': self.is_correct}


@dataclass
class QuizQuestion:
    id: str
    text: str
    options: List[QuizOption] = field(default_factory=list)
    explanation: str = ''

    def correct_option(self) -> Optional[QuizOption]:
        return next((o for o in self.options if o.is_correct), None)

    def find_option(self, option_id: str) -> Optional[QuizOption]:
        return next((o for o in self.options if o.id == option_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'text': self.text,
            'options': [o.to_dict() for o in self.options],
            'explanation': self.explanation,
        }


@dataclass
class Quiz:
    id: int
    title: str
    description: str
    time_limit: int
    passing_score: int
    created_by: int
    questions: List[QuizQuestion]
    created_at: str

    def find_question(self, question_id: str) -> Optional[QuizQuestion]:
        return next((q for q in self.questions if q.id == question_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'timeLimit': self.time_limit,
            'passingScore': self.passing_score,
            'createdBy': self.created_by,
            'questions': [q.to_dict() for q in self.questions],
            'createdAt': self.created_at,
        }


@dataclass
class QuizAnswer:
    question_id: str
    selected_option_id: str
    correct: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'questionId': self.question_id,
            'selectedOptionId': self.selected_option_id,
            'correct': self.correct,
        }


@dataclass
class QuizAttempt:
    id: int
    quiz_id: int
    user_id: int
    score: int
    passed: bool
    answers: List[QuizAnswer]
    completed_at: str
    # Enough of the quiz to review the attempt after the quiz is edited or deleted
    quiz_snapshot: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'quizId': self.quiz_id,
            'userId': self.user_id,
            'score': self.score,
            'passed': self.passed,
            'answers': [a.to_dict() for a in self.answers],
            'completedAt': self.completed_at,
            'quizSnapshot': copy.deepcopy(self.quiz_snapshot),
        }


def build_questions(raw_questions: List[Dict[str, Any]]) -> List[QuizQuestion]:
    """Turn validated question dicts into records, backfilling missing ids"""
    questions = []
    for raw in raw_questions:
        options = [
            QuizOption(
                id=raw_option.get('id') or new_token(),
                text=raw_option['text'],
                is_correct=bool(raw_option.get('is_correct', False)),
            )
            for raw_option in raw.get('options', [])
        ]
        questions.append(QuizQuestion(
            id=raw.get('id') or new_token(),
            text=raw['text'],
            options=options,
            explanation=raw.get('explanation') or '',
        ))
    return questions


# Storage Port
class QuizStorage(ABC):
    """Persistence port; the API layer only talks to this interface"""

    @abstractmethod
    def create_user(self, data: Dict[str, Any]) -> User: ...

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def create_quiz(self, data: Dict[str, Any]) -> Quiz: ...

    @abstractmethod
    def get_quiz(self, quiz_id: int) -> Optional[Quiz]: ...

    @abstractmethod
    def get_quizzes_by_user(self, user_id: int) -> List[Quiz]: ...

    @abstractmethod
    def get_all_quizzes(self) -> List[Quiz]: ...

    @abstractmethod
    def update_quiz(self, quiz_id: int, data: Dict[str, Any]) -> Optional[Quiz]: ...

    @abstractmethod
    def delete_quiz(self, quiz_id: int) -> bool: ...

    @abstractmethod
    def create_quiz_attempt(self, data: Dict[str, Any]) -> QuizAttempt: ...

    @abstractmethod
    def get_quiz_attempt(self, attempt_id: int) -> Optional[QuizAttempt]: ...

    @abstractmethod
    def get_quiz_attempts_by_user(self, user_id: int) -> List[QuizAttempt]: ...

    @abstractmethod
    def get_quiz_attempts_by_quiz(self, quiz_id: int) -> List[QuizAttempt]: ...


class MemStorage(QuizStorage):
    """In-memory store. Each collection has its own id counter and lock."""

    QUIZ_FIELDS = ('title', 'description', 'time_limit', 'passing_score', 'created_by', 'questions')

    def __init__(self):
        self._users: Dict[int, User] = {}
        self._quizzes: Dict[int, Quiz] = {}
        self._attempts: Dict[int, QuizAttempt] = {}
        self._counters = {'users': 1, 'quizzes': 1, 'attempts': 1}
        self._locks = {name: threading.Lock() for name in self._counters}

    def _next_id(self, collection: str) -> int:
        # Caller holds the collection lock
        next_id = self._counters[collection]
        self._counters[collection] += 1
        return next_id

    # User Management
    def create_user(self, data: Dict[str, Any]) -> User:
        """Store a new user; uniqueness is the caller's concern"""
        with self._locks['users']:
            user = User(
                id=self._next_id('users'),
                username=data['username'],
                password_hash=data['password_hash'],
                created_at=utc_now(),
            )
            self._users[user.id] = user
            return copy.deepcopy(user)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._locks['users']:
            user = self._users.get(user_id)
            return copy.deepcopy(user) if user else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._locks['users']:
            for user in self._users.values():
                if user.username == username:
                    return copy.deepcopy(user)
        return None

    # Quiz Management
    def create_quiz(self, data: Dict[str, Any]) -> Quiz:
        """Store a quiz, assigning its id, creation time and any missing question/option ids"""
        questions = build_questions(data.get('questions', []))
        with self._locks['quizzes']:
            quiz = Quiz(
                id=self._next_id('quizzes'),
                title=data['title'],
                description=data['description'],
                time_limit=data['time_limit'],
                passing_score=data['passing_score'],
                created_by=data['created_by'],
                questions=questions,
                created_at=utc_now(),
            )
            self._quizzes[quiz.id] = quiz
            return copy.deepcopy(quiz)

    def get_quiz(self, quiz_id: int) -> Optional[Quiz]:
        with self._locks['quizzes']:
            quiz = self._quizzes.get(quiz_id)
            return copy.deepcopy(quiz) if quiz else None

    def get_quizzes_by_user(self, user_id: int) -> List[Quiz]:
        with self._locks['quizzes']:
            return [copy.deepcopy(q) for q in self._quizzes.values() if q.created_by == user_id]

    def get_all_quizzes(self) -> List[Quiz]:
        with self._locks['quizzes']:
            return [copy.deepcopy(q) for q in self._quizzes.values()]

    def update_quiz(self, quiz_id: int, data: Dict[str, Any]) -> Optional[Quiz]:
        """Shallow-merge the given fields over the stored quiz"""
        changes = {k: v for k, v in data.items() if k in self.QUIZ_FIELDS}
        if 'questions' in changes:
            changes['questions'] = build_questions(changes['questions'])

        with self._locks['quizzes']:
            quiz = self._quizzes.get(quiz_id)
            if quiz is None:
                return None
            for key, value in changes.items():
                setattr(quiz, key, value)
            return copy.deepcopy(quiz)

    def delete_quiz(self, quiz_id: int) -> bool:
        with self._locks['quizzes']:
            return self._quizzes.pop(quiz_id, None) is not None

    # Quiz Attempts
    def create_quiz_attempt(self, data: Dict[str, Any]) -> QuizAttempt:
        answers = [
            a if isinstance(a, QuizAnswer) else QuizAnswer(**a)
            for a in data.get('answers', [])
        ]
        with self._locks['attempts']:
            attempt = QuizAttempt(
                id=self._next_id('attempts'),
                quiz_id=data['quiz_id'],
                user_id=data['user_id'],
                score=data['score'],
                passed=data['passed'],
                answers=answers,
                completed_at=utc_now(),
                quiz_snapshot=copy.deepcopy(data.get('quiz_snapshot', {})),
            )
            self._attempts[attempt.id] = attempt
            return copy.deepcopy(attempt)

    def get_quiz_attempt(self, attempt_id: int) -> Optional[QuizAttempt]:
        with self._locks['attempts']:
            attempt = self._attempts.get(attempt_id)
            return copy.deepcopy(attempt) if attempt else None

    def get_quiz_attempts_by_user(self, user_id: int) -> List[QuizAttempt]:
        with self._locks['attempts']:
            return [copy.deepcopy(a) for a in self._attempts.values() if a.user_id == user_id]

    def get_quiz_attempts_by_quiz(self, quiz_id: int) -> List[QuizAttempt]:
        with self._locks['attempts']:
            return [copy.deepcopy(a) for a in self._attempts.values() if a.quiz_id == quiz_id]

    def stats(self) -> Dict[str, int]:
        """Record counts for the health check"""
        counts = {}
        for name, records in (('users', self._users), ('quizzes', self._quizzes), ('attempts', self._attempts)):
            with self._locks[name]:
                counts[name] = len(records)
        return counts


# Server-side sessions
@dataclass
class SessionRecord:
    user_id: int
    expires_at: float
    drafts: Dict[str, Dict[str, Any]] = field(default_factory=dict)


class SessionStore:
    """
    Maps opaque session tokens (held in the signed cookie) to user ids.

    Each session also carries named drafts: the quiz builder and the timed
    run in progress. They stay on the server so the cookie holds only the
    token, and they go away with the session.
    """

    def __init__(self, lifetime_seconds: int = 86400, prune_interval: int = 3600,
                 clock: Callable[[], float] = time.time):
        self.lifetime_seconds = lifetime_seconds
        self.prune_interval = prune_interval
        self._clock = clock
        self._records: Dict[str, SessionRecord] = {}
        self._lock = threading.Lock()
        self._last_prune = clock()

    def create(self, user_id: int) -> str:
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._records[token] = SessionRecord(user_id, self._clock() + self.lifetime_seconds)
        self._maybe_prune()
        return token

    def get_user_id(self, token: Optional[str]) -> Optional[int]:
        if not token:
            return None
        with self._lock:
            record = self._records.get(token)
            if record is None:
                return None
            if record.expires_at <= self._clock():
                del self._records[token]
                return None
            return record.user_id

    def _live_record(self, token: Optional[str]) -> Optional[SessionRecord]:
        # Caller holds the lock
        record = self._records.get(token) if token else None
        if record is None or record.expires_at <= self._clock():
            return None
        return record

    def get_draft(self, token: Optional[str], key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._live_record(token)
            if record is None or key not in record.drafts:
                return None
            return copy.deepcopy(record.drafts[key])

    def put_draft(self, token: Optional[str], key: str, data: Dict[str, Any]) -> bool:
        """Store a draft for the session; False when the session is gone"""
        with self._lock:
            record = self._live_record(token)
            if record is None:
                return False
            record.drafts[key] = copy.deepcopy(data)
            return True

    def drop_draft(self, token: Optional[str], key: str):
        with self._lock:
            record = self._live_record(token)
            if record is not None:
                record.drafts.pop(key, None)

    def destroy(self, token: Optional[str]) -> bool:
        if not token:
            return False
        with self._lock:
            return self._records.pop(token, None) is not None

    def prune(self) -> int:
        """Drop expired sessions, returning how many were removed"""
        now = self._clock()
        with self._lock:
            expired = [t for t, r in self._records.items() if r.expires_at <= now]
            for token in expired:
                del self._records[token]
            self._last_prune = now
        if expired:
            logger.info(f"Pruned {len(expired)} expired sessions")
        return len(expired)

    def _maybe_prune(self):
        if self._clock() - self._last_prune >= self.prune_interval:
            self.prune()

    def __len__(self) -> int:
        return len(self._records)


def get_storage() -> QuizStorage:
    """Storage bound to the current Flask app"""
    return current_app.extensions['quiz_storage']


def get_sessions() -> SessionStore:
    return current_app.extensions['quiz_sessions']


def snapshot_quiz(quiz: Quiz) -> Dict[str, Any]:
    """Denormalized copy of the quiz content needed to review an attempt"""
    data = quiz.to_dict()
    return {
        'title': data['title'],
        'passingScore': data['passingScore'],
        'questions': data['questions'],
    }


__all__ = [
    'User', 'QuizOption', 'QuizQuestion', 'Quiz', 'QuizAnswer', 'QuizAttempt',
    'QuizStorage', 'MemStorage', 'SessionStore', 'get_storage', 'get_sessions',
    'snapshot_quiz', 'new_token',
]
