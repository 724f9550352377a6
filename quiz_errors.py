"""
QuizCraft - Quiz Authoring and Timed Quiz Platform
Error taxonomy shared by the service layer, the REST API and the pages.
"""

from typing import Any, Dict, List, Optional


class QuizAppError(Exception):
    """Base class for every error the application reports to a client"""
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {'message': self.message}


class ValidationError(QuizAppError):
    """Malformed or missing fields; always carries the full violation list"""
    status_code = 400
    default_message = 'Validation failed'

    def __init__(self, errors: List[Dict[str, str]], message: Optional[str] = None):
        self.errors = errors
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {'message': self.message, 'errors': self.errors}

    def summary(self) -> str:
        """One line per violation, for flash messages"""
        return '; '.join(
            f"{err['field']}: {err['message']}" if err.get('field') else err['message']
            for err in self.errors
        )


class Unauthorized(QuizAppError):
    status_code = 401
    default_message = 'Not authenticated'


class Forbidden(QuizAppError):
    status_code = 403
    default_message = 'Not authorized'


class NotFound(QuizAppError):
    status_code = 404
    default_message = 'Not found'


class Conflict(QuizAppError):
    # The wire contract reports a taken username as a plain 400.
    status_code = 400
    default_message = 'Already exists'


class Internal(QuizAppError):
    status_code = 500


class RateLimited(QuizAppError):
    status_code = 429
    default_message = 'Rate limit exceeded'
