"""
QuizCraft - Quiz Authoring and Timed Quiz Platform
Authentication and Session Management
"""

import logging
import threading
import time
from functools import wraps
from typing import Optional

from flask import current_app, flash, g, redirect, request, session, url_for
from werkzeug.security import check_password_hash, generate_password_hash

from quiz_errors import Internal, RateLimited, Unauthorized
from quiz_storage import get_sessions

logger = logging.getLogger(__name__)

SESSION_TOKEN_KEY = 'token'


def hash_password(password: str) -> str:
    """Hash password securely"""
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against hash"""
    return check_password_hash(password_hash, password)


def establish_session(user_id: int) -> str:
    """Start an authenticated session for the user, replacing any previous one"""
    sessions = get_sessions()
    sessions.destroy(session.get(SESSION_TOKEN_KEY))
    token = sessions.create(user_id)
    session.clear()
    session[SESSION_TOKEN_KEY] = token
    session.permanent = True
    g.user_id = user_id
    return token


def destroy_session():
    """Forget the server-side session and clear the cookie"""
    try:
        get_sessions().destroy(session.get(SESSION_TOKEN_KEY))
        session.clear()
    except Exception as e:
        logger.error(f"Error destroying session: {e}")
        raise Internal('Failed to logout') from e
    g.pop('user_id', None)


def current_user_id() -> Optional[int]:
    """Id of the logged-in user, or None for anonymous requests"""
    if 'user_id' not in g:
        g.user_id = get_sessions().get_user_id(session.get(SESSION_TOKEN_KEY))
    return g.user_id


def login_required(f):
    """Page routes: send anonymous users to the login page"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_user_id() is None:
            flash('Please log in to access this page.', 'warning')
            return redirect(url_for('web.login', next=request.path))
        return f(*args, **kwargs)
    return decorated_function


def api_login_required(f):
    """API routes: reject anonymous requests with 401"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_user_id() is None:
            raise Unauthorized('Unauthorized')
        return f(*args, **kwargs)
    return decorated_function


# Rate Limiting Store
rate_limit_store = {}
_rate_limit_lock = threading.Lock()


def rate_limit(max_requests: int, window_seconds: int):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_app.config.get('RATELIMIT_ENABLED', True) or request.method == 'GET':
                return f(*args, **kwargs)

            client_ip = request.environ.get('HTTP_X_FORWARDED_FOR', request.remote_addr)
            current_time = time.time()
            key = f"{client_ip}:{f.__name__}"

            with _rate_limit_lock:
                # Clean old requests
                recent = [req_time for req_time in rate_limit_store.get(key, [])
                          if current_time - req_time < window_seconds]
                if len(recent) >= max_requests:
                    rate_limit_store[key] = recent
                    logger.warning(f"Rate limit exceeded for {key}")
                    raise RateLimited()
                recent.append(current_time)
                rate_limit_store[key] = recent

            return f(*args, **kwargs)
        return decorated_function
    return decorator
