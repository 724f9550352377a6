"""
QuizCraft - Quiz Authoring and Timed Quiz Platform
Page Routes: authentication, quiz lists, builder, timed quiz flow, results, analytics
"""

import logging
import time
from typing import Optional

from flask import Blueprint, flash, redirect, request, session, url_for

import quiz_service
from quiz_analytics import QuizAnalytics
from quiz_auth import (
    SESSION_TOKEN_KEY, current_user_id, destroy_session, establish_session, login_required, rate_limit,
)
from quiz_builder import BuilderError, QuizBuilder
from quiz_errors import QuizAppError, Unauthorized, ValidationError
from quiz_runner import INTRO, RUNNING, SUBMITTING, QuizRunner, RunnerError
from quiz_storage import User, get_sessions, get_storage
from quiz_templates import build_review, render_template

logger = logging.getLogger(__name__)

web = Blueprint('web', __name__)

BUILDER_KEY = 'quiz_builder'
RUN_KEY = 'quiz_run'


def get_current_user() -> Optional[User]:
    """Get current logged-in user"""
    user_id = current_user_id()
    if user_id is None:
        return None
    return get_storage().get_user(user_id)


def _safe_next(target: Optional[str]) -> Optional[str]:
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return None


@web.errorhandler(QuizAppError)
def handle_app_error(error: QuizAppError):
    """Surface the failure as a flash message and go somewhere sensible"""
    flash(error.message, 'danger')
    if current_user_id() is None:
        return redirect(url_for('web.login'))
    return redirect(url_for('web.my_quizzes'))


# Authentication Routes
@web.route('/')
def index():
    """Home page - redirect based on authentication status"""
    if current_user_id() is not None:
        return redirect(url_for('web.my_quizzes'))
    return redirect(url_for('web.login'))


@web.route('/login', methods=['GET', 'POST'])
@rate_limit(5, 300)
def login():
    next_page = _safe_next(request.values.get('next'))

    if request.method == 'POST':
        try:
            user = quiz_service.authenticate(get_storage(), {
                'username': request.form.get('username', ''),
                'password': request.form.get('password', ''),
            })
        except ValidationError:
            flash('Please provide both username and password.', 'danger')
        except Unauthorized:
            flash('Invalid username or password. Please try again.', 'danger')
        else:
            establish_session(user.id)
            flash(f'Welcome back, {user.username}!', 'success')
            return redirect(next_page or url_for('web.my_quizzes'))

    return render_template('login', user=None, next_page=next_page)


@web.route('/register', methods=['GET', 'POST'])
@rate_limit(3, 300)
def register():
    if request.method == 'POST':
        try:
            user = quiz_service.register_user(get_storage(), {
                'username': request.form.get('username', ''),
                'password': request.form.get('password', ''),
            })
        except ValidationError as e:
            flash(e.summary(), 'danger')
        except QuizAppError as e:
            flash(e.message, 'danger')
        else:
            establish_session(user.id)
            flash(f'Registration successful! Welcome to QuizCraft, {user.username}.', 'success')
            return redirect(url_for('web.my_quizzes'))

    return render_template('register', user=None)


@web.route('/logout')
def logout():
    user_id = current_user_id()
    destroy_session()
    if user_id is not None:
        logger.info(f"User {user_id} logged out")
    flash('You have been logged out successfully.', 'info')
    return redirect(url_for('web.login'))


# Quiz Lists
@web.route('/my-quizzes')
@login_required
def my_quizzes():
    user = get_current_user()
    quizzes, load_error = [], False
    try:
        quizzes = quiz_service.list_user_quizzes(get_storage(), user.id)
    except Exception as e:
        logger.error(f"Error loading quizzes for user {user.id}: {e}")
        flash('Failed to load your quizzes.', 'danger')
        load_error = True
    return render_template('my_quizzes', user=user, quizzes=quizzes, load_error=load_error)


@web.route('/quizzes')
def browse_quizzes():
    user = get_current_user()
    quizzes = quiz_service.list_all_quizzes(get_storage())
    return render_template('browse', user=user, quizzes=quizzes)


@web.route('/quizzes/<int:quiz_id>/delete', methods=['POST'])
@login_required
def delete_quiz(quiz_id: int):
    quiz_service.delete_quiz(get_storage(), current_user_id(), quiz_id)
    flash('Quiz deleted successfully', 'success')
    return redirect(url_for('web.my_quizzes'))


# Quiz Builder
# Builder and run state live in the session store, keyed by the cookie token
def _load_draft(key: str):
    return get_sessions().get_draft(session.get(SESSION_TOKEN_KEY), key)


def _save_draft(key: str, data):
    get_sessions().put_draft(session.get(SESSION_TOKEN_KEY), key, data)


def _drop_draft(key: str):
    get_sessions().drop_draft(session.get(SESSION_TOKEN_KEY), key)


def _load_builder(quiz_id: Optional[int]) -> Optional[QuizBuilder]:
    data = _load_draft(BUILDER_KEY)
    if data and data.get('quiz_id') == quiz_id:
        return QuizBuilder.from_session(data)
    return None


def _save_builder(builder: QuizBuilder):
    _save_draft(BUILDER_KEY, builder.to_session())


def _apply_builder_action(builder: QuizBuilder, action: str):
    """Run one edit posted from the builder form, e.g. ``remove_option:0:2``"""
    name, _, args = action.partition(':')
    indexes = [int(part) for part in args.split(':') if part.isdigit()]

    if name == 'add_question':
        builder.add_question()
    elif name == 'delete_question' and len(indexes) == 1:
        builder.delete_question(indexes[0])
    elif name == 'add_option' and len(indexes) == 1:
        builder.add_option(indexes[0])
    elif name == 'remove_option' and len(indexes) == 2:
        builder.remove_option(indexes[0], indexes[1])
    else:
        raise BuilderError('Unknown builder action')


def _handle_builder_post(builder: QuizBuilder, this_page: str):
    builder.apply_form(request.form)
    action = request.form.get('action', 'save')

    if action != 'save':
        try:
            _apply_builder_action(builder, action)
        except BuilderError as e:
            flash(str(e), 'warning')
        _save_builder(builder)
        return redirect(this_page)

    errors = builder.validate_details() + builder.validate()
    if errors:
        for error in errors:
            flash(error, 'danger')
        _save_builder(builder)
        return redirect(this_page)

    storage, user_id = get_storage(), current_user_id()
    try:
        if builder.quiz_id is None:
            quiz_service.create_quiz(storage, user_id, builder.to_payload())
            flash('Quiz created successfully. Your quiz is now ready to be taken.', 'success')
        else:
            quiz_service.update_quiz(storage, user_id, builder.quiz_id, builder.to_payload())
            flash('Quiz updated successfully', 'success')
    except ValidationError as e:
        flash(f'Failed to save quiz: {e.summary()}', 'danger')
        _save_builder(builder)
        return redirect(this_page)

    _drop_draft(BUILDER_KEY)
    return redirect(url_for('web.my_quizzes'))


@web.route('/create', methods=['GET', 'POST'])
@login_required
def create_quiz():
    builder = _load_builder(None) or QuizBuilder()
    if request.method == 'POST':
        return _handle_builder_post(builder, url_for('web.create_quiz'))
    _save_builder(builder)
    return render_template('builder', user=get_current_user(), builder=builder)


@web.route('/quizzes/<int:quiz_id>/edit', methods=['GET', 'POST'])
@login_required
def edit_quiz(quiz_id: int):
    quiz = quiz_service.get_owned_quiz(get_storage(), current_user_id(), quiz_id, 'update')
    builder = _load_builder(quiz_id) or QuizBuilder.from_quiz(quiz)
    if request.method == 'POST':
        return _handle_builder_post(builder, url_for('web.edit_quiz', quiz_id=quiz_id))
    _save_builder(builder)
    return render_template('builder', user=get_current_user(), builder=builder)


@web.route('/builder/cancel')
@login_required
def cancel_builder():
    _drop_draft(BUILDER_KEY)
    return redirect(url_for('web.my_quizzes'))


# Taking a Quiz
def _load_runner(quiz_id: int) -> Optional[QuizRunner]:
    data = _load_draft(RUN_KEY)
    if data and data.get('quiz_id') == quiz_id:
        return QuizRunner.from_session(data)
    return None


def _save_runner(runner: QuizRunner):
    _save_draft(RUN_KEY, runner.to_session())


def _submit_run(runner: QuizRunner, quiz_id: int):
    """Send the finished run to the attempt service; a failure keeps the run for a retry"""
    try:
        attempt = quiz_service.submit_attempt(
            get_storage(), current_user_id(), quiz_id, {'answers': runner.submission()}
        )
    except QuizAppError as e:
        logger.error(f"Failed to submit attempt for quiz {quiz_id}: {e.message}")
        flash(f'Failed to submit quiz: {e.message}', 'danger')
        _save_runner(runner)
        return redirect(url_for('web.take_quiz', quiz_id=quiz_id))

    runner.finish(attempt.id)
    _drop_draft(RUN_KEY)
    return redirect(url_for('web.quiz_results', attempt_id=attempt.id))


@web.route('/take/<int:quiz_id>', methods=['GET', 'POST'])
@login_required
def take_quiz(quiz_id: int):
    user = get_current_user()
    quiz = quiz_service.get_quiz(get_storage(), quiz_id)
    runner = _load_runner(quiz_id)
    now = time.time()

    if request.method == 'POST':
        action = request.form.get('action') or request.form.get('action_field') or 'next'

        if action == 'start':
            if runner is None or runner.state == INTRO:
                runner = QuizRunner.for_quiz(quiz)
                runner.start(now)
                logger.info(f"User {user.id} started quiz {quiz_id}")
        elif runner is not None and runner.state == RUNNING:
            index_before = runner.current_index
            runner.sync(now)
            posted_question = request.form.get('question_id')
            if (runner.state != RUNNING or runner.current_index != index_before
                    or posted_question != runner.current_question['id']):
                flash("Time's up! The quiz moved on to the next question.", 'warning')
            else:
                try:
                    option_id = request.form.get('option')
                    if option_id:
                        runner.select(option_id)
                    if action == 'previous':
                        runner.previous()
                    elif action == 'timeout':
                        runner.time_up()
                    else:
                        runner.next()
                except RunnerError as e:
                    flash(str(e), 'warning')
        elif runner is None:
            return redirect(url_for('web.take_quiz', quiz_id=quiz_id))

        if runner.state == SUBMITTING:
            return _submit_run(runner, quiz_id)
        _save_runner(runner)
        return redirect(url_for('web.take_quiz', quiz_id=quiz_id))

    if runner is None or runner.state == INTRO:
        return render_template('quiz_intro', user=user, quiz=quiz)

    if runner.state == RUNNING and runner.sync(now) is not None:
        return _submit_run(runner, quiz_id)
    if runner.state == SUBMITTING:
        _save_runner(runner)
        return render_template('submit_retry', user=user, quiz=quiz)

    question = quiz.find_question(runner.current_question['id'])
    if question is None:
        _drop_draft(RUN_KEY)
        flash('This quiz changed while you were taking it. Please start again.', 'warning')
        return redirect(url_for('web.take_quiz', quiz_id=quiz_id))

    _save_runner(runner)
    return render_template('quiz_question', user=user, quiz=quiz, question=question, runner=runner)


# Results & Analytics
@web.route('/results/<int:attempt_id>')
@login_required
def quiz_results(attempt_id: int):
    storage = get_storage()
    attempt = quiz_service.get_user_attempt(storage, current_user_id(), attempt_id)
    snapshot = attempt.quiz_snapshot
    return render_template(
        'quiz_results',
        user=get_current_user(),
        attempt=attempt,
        review=build_review(attempt),
        quiz_title=snapshot.get('title') or f'Quiz #{attempt.quiz_id}',
        passing_score=snapshot.get('passingScore', ''),
        quiz_available=storage.get_quiz(attempt.quiz_id) is not None,
    )


@web.route('/analytics')
@login_required
def analytics():
    storage, user_id = get_storage(), current_user_id()
    attempts = quiz_service.list_user_attempts(storage, user_id)
    quizzes = quiz_service.list_user_quizzes(storage, user_id)
    return render_template(
        'analytics',
        user=get_current_user(),
        dashboard=QuizAnalytics.build_dashboard(attempts, quizzes),
    )
