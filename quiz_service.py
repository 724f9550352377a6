"""
QuizCraft - Quiz Authoring and Timed Quiz Platform
API Layer services: authentication, quiz CRUD with ownership checks, attempt scoring

Every function takes the storage port as its first argument so the same rules
back both the REST API and the page routes.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from quiz_auth import hash_password, verify_password
from quiz_errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationError
from quiz_schemas import validate_answers, validate_credentials, validate_quiz, validate_quiz_update
from quiz_storage import Quiz, QuizAnswer, QuizAttempt, QuizStorage, User, snapshot_quiz

logger = logging.getLogger(__name__)

# Serializes the username check with the insert
_registration_lock = threading.Lock()


# Authentication
def register_user(storage: QuizStorage, body: Any) -> User:
    """Create a user with a hashed password; usernames are unique"""
    credentials = validate_credentials(body)

    with _registration_lock:
        if storage.get_user_by_username(credentials['username']):
            raise Conflict('Username already taken')
        user = storage.create_user({
            'username': credentials['username'],
            'password_hash': hash_password(credentials['password']),
        })

    logger.info(f"New user registered: {user.username}")
    return user


def authenticate(storage: QuizStorage, body: Any) -> User:
    """Check username and password, returning the matching user"""
    try:
        credentials = validate_credentials(body)
    except ValidationError as e:
        raise ValidationError(e.errors, 'Username and password are required') from e

    user = storage.get_user_by_username(credentials['username'])
    if not user or not verify_password(credentials['password'], user.password_hash):
        logger.warning(f"Failed login attempt for username: {credentials['username']}")
        raise Unauthorized('Invalid credentials')

    logger.info(f"User {user.username} logged in successfully")
    return user


def get_current_user(storage: QuizStorage, user_id: Optional[int]) -> User:
    if user_id is None:
        raise Unauthorized('Not authenticated')
    user = storage.get_user(user_id)
    if not user:
        raise NotFound('User not found')
    return user


# Quiz CRUD
def create_quiz(storage: QuizStorage, user_id: int, body: Any) -> Quiz:
    data = validate_quiz(body)
    data['created_by'] = user_id
    quiz = storage.create_quiz(data)
    logger.info(f"User {user_id} created quiz {quiz.id} with {len(quiz.questions)} questions")
    return quiz


def get_quiz(storage: QuizStorage, quiz_id: int) -> Quiz:
    quiz = storage.get_quiz(quiz_id)
    if not quiz:
        raise NotFound('Quiz not found')
    return quiz


def get_owned_quiz(storage: QuizStorage, user_id: int, quiz_id: int, action: str = 'modify') -> Quiz:
    """Load a quiz the user created; existence is checked before ownership"""
    quiz = get_quiz(storage, quiz_id)
    if quiz.created_by != user_id:
        raise Forbidden(f'Not authorized to {action} this quiz')
    return quiz


def list_all_quizzes(storage: QuizStorage) -> List[Quiz]:
    return storage.get_all_quizzes()


def list_user_quizzes(storage: QuizStorage, user_id: int) -> List[Quiz]:
    return storage.get_quizzes_by_user(user_id)


def update_quiz(storage: QuizStorage, user_id: int, quiz_id: int, body: Any) -> Quiz:
    get_owned_quiz(storage, user_id, quiz_id, 'update')
    changes = validate_quiz_update(body)

    updated = storage.update_quiz(quiz_id, changes)
    if updated is None:
        raise NotFound('Quiz not found')

    logger.info(f"User {user_id} updated quiz {quiz_id}: {', '.join(sorted(changes)) or 'no changes'}")
    return updated


def delete_quiz(storage: QuizStorage, user_id: int, quiz_id: int) -> None:
    """Remove a quiz; its attempts keep their own snapshot of the quiz"""
    get_owned_quiz(storage, user_id, quiz_id, 'delete')
    storage.delete_quiz(quiz_id)
    logger.info(f"User {user_id} deleted quiz {quiz_id}")


# Attempts & Scoring
def compute_score(correct_count: int, total_questions: int) -> int:
    """Percentage of correct answers, rounded half up"""
    if total_questions <= 0:
        return 0
    return (200 * correct_count + total_questions) // (2 * total_questions)


def grade_answers(quiz: Quiz, raw_answers: List[Dict[str, Any]]) -> Tuple[List[QuizAnswer], int]:
    """
    Judge each answer against the stored quiz.

    The client's own `correct` flag is ignored. One answer is kept per question
    (the last one submitted); answers for questions the quiz does not have are
    dropped.
    """
    graded: Dict[str, QuizAnswer] = {}

    for raw in raw_answers:
        question = quiz.find_question(raw['question_id'])
        if question is None:
            logger.warning(f"Quiz {quiz.id}: dropping answer for unknown question {raw['question_id']}")
            continue

        option = question.find_option(raw['selected_option_id']) if raw['selected_option_id'] else None
        correct = bool(option and option.is_correct)
        if raw.get('correct') is not None and raw['correct'] != correct:
            logger.debug(f"Quiz {quiz.id}: client judged question {question.id} as {raw['correct']}, server says {correct}")

        graded[question.id] = QuizAnswer(
            question_id=question.id,
            selected_option_id=raw['selected_option_id'],
            correct=correct,
        )

    answers = list(graded.values())
    return answers, sum(1 for answer in answers if answer.correct)


def submit_attempt(storage: QuizStorage, user_id: int, quiz_id: int, body: Any) -> QuizAttempt:
    """Score a finished run and record it"""
    quiz = get_quiz(storage, quiz_id)
    raw_answers = validate_answers(body)

    answers, correct_count = grade_answers(quiz, raw_answers)
    # Unanswered questions still count towards the total
    score = compute_score(correct_count, len(quiz.questions))
    passed = score >= quiz.passing_score

    attempt = storage.create_quiz_attempt({
        'quiz_id': quiz.id,
        'user_id': user_id,
        'score': score,
        'passed': passed,
        'answers': answers,
        'quiz_snapshot': snapshot_quiz(quiz),
    })

    logger.info(f"User {user_id} completed quiz {quiz.id}: {correct_count}/{len(quiz.questions)} ({score}%)")
    return attempt


def list_user_attempts(storage: QuizStorage, user_id: int) -> List[QuizAttempt]:
    return storage.get_quiz_attempts_by_user(user_id)


def list_quiz_attempts(storage: QuizStorage, user_id: int, quiz_id: int) -> List[QuizAttempt]:
    """All attempts at a quiz, visible to its creator only"""
    get_owned_quiz(storage, user_id, quiz_id, 'view all attempts for')
    return storage.get_quiz_attempts_by_quiz(quiz_id)


def get_user_attempt(storage: QuizStorage, user_id: int, attempt_id: int) -> QuizAttempt:
    attempt = storage.get_quiz_attempt(attempt_id)
    if not attempt or attempt.user_id != user_id:
        raise NotFound('Quiz attempt not found')
    return attempt
