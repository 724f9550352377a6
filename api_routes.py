"""
QuizCraft - Quiz Authoring and Timed Quiz Platform
REST API Routes
"""

import logging

from flask import Blueprint, jsonify, request
from werkzeug.exceptions import HTTPException

import quiz_service
from quiz_auth import api_login_required, current_user_id, destroy_session, establish_session, rate_limit
from quiz_errors import Internal, QuizAppError
from quiz_storage import get_storage

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__, url_prefix='/api')


def _json_body():
    """Parsed JSON body, or None when the body is missing or malformed"""
    return request.get_json(silent=True)


# Error Handlers
@api.errorhandler(QuizAppError)
def handle_app_error(error: QuizAppError):
    return jsonify(error.to_dict()), error.status_code


@api.errorhandler(Exception)
def handle_unexpected_error(error: Exception):
    if isinstance(error, HTTPException):
        return jsonify({'message': error.description}), error.code
    logger.exception(f"Unhandled error on {request.method} {request.path}: {error}")
    return jsonify(Internal('Internal server error').to_dict()), 500


# Authentication Routes
@api.route('/auth/register', methods=['POST'])
@rate_limit(10, 300)
def register():
    user = quiz_service.register_user(get_storage(), _json_body())
    establish_session(user.id)
    return jsonify(user.to_public()), 201


@api.route('/auth/login', methods=['POST'])
@rate_limit(10, 300)
def login():
    user = quiz_service.authenticate(get_storage(), _json_body())
    establish_session(user.id)
    return jsonify(user.to_public())


@api.route('/auth/logout', methods=['POST'])
def logout():
    user_id = current_user_id()
    destroy_session()
    if user_id is not None:
        logger.info(f"User {user_id} logged out")
    return jsonify({'message': 'Logged out successfully'})


@api.route('/auth/me')
def me():
    user = quiz_service.get_current_user(get_storage(), current_user_id())
    return jsonify(user.to_public())


# Quiz Routes
@api.route('/quizzes', methods=['POST'])
@api_login_required
def create_quiz():
    quiz = quiz_service.create_quiz(get_storage(), current_user_id(), _json_body())
    return jsonify(quiz.to_dict()), 201


@api.route('/quizzes')
def list_quizzes():
    """Get all quizzes"""
    return jsonify([q.to_dict() for q in quiz_service.list_all_quizzes(get_storage())])


@api.route('/quizzes/me')
@api_login_required
def list_my_quizzes():
    quizzes = quiz_service.list_user_quizzes(get_storage(), current_user_id())
    return jsonify([q.to_dict() for q in quizzes])


@api.route('/quizzes/<int:quiz_id>')
def get_quiz(quiz_id: int):
    return jsonify(quiz_service.get_quiz(get_storage(), quiz_id).to_dict())


@api.route('/quizzes/<int:quiz_id>', methods=['PUT'])
@api_login_required
def update_quiz(quiz_id: int):
    quiz = quiz_service.update_quiz(get_storage(), current_user_id(), quiz_id, _json_body())
    return jsonify(quiz.to_dict())


@api.route('/quizzes/<int:quiz_id>', methods=['DELETE'])
@api_login_required
def delete_quiz(quiz_id: int):
    quiz_service.delete_quiz(get_storage(), current_user_id(), quiz_id)
    return jsonify({'message': 'Quiz deleted successfully'})


# Quiz Attempt Routes
@api.route('/quizzes/<int:quiz_id>/attempt', methods=['POST'])
@api_login_required
def submit_attempt(quiz_id: int):
    attempt = quiz_service.submit_attempt(get_storage(), current_user_id(), quiz_id, _json_body())
    return jsonify(attempt.to_dict()), 201


@api.route('/quiz-attempts/me')
@api_login_required
def list_my_attempts():
    attempts = quiz_service.list_user_attempts(get_storage(), current_user_id())
    return jsonify([a.to_dict() for a in attempts])


@api.route('/quiz-attempts/<int:attempt_id>')
@api_login_required
def get_attempt(attempt_id: int):
    attempt = quiz_service.get_user_attempt(get_storage(), current_user_id(), attempt_id)
    return jsonify(attempt.to_dict())


@api.route('/quizzes/<int:quiz_id>/attempts')
@api_login_required
def list_quiz_attempts(quiz_id: int):
    attempts = quiz_service.list_quiz_attempts(get_storage(), current_user_id(), quiz_id)
    return jsonify([a.to_dict() for a in attempts])
