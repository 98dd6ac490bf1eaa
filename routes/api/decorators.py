# routes/api/decorators.py
"""
Shared decorators for API routes.
"""

from functools import wraps

from flask import current_app, g, request

from services.container import get_services
from services.contracts.types import UserRole
from .helpers import error_response

USER_HEADER = 'X-User-Id'


def current_user_id():
    """The caller's user id from the X-User-Id header, if any."""
    user_id = request.headers.get(USER_HEADER, '').strip()
    return user_id or None


def admin_required(f):
    """Decorator to require an active admin profile for the X-User-Id caller."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = current_user_id()
        if not user_id:
            return error_response('Authentication required', 401)

        profile = get_services().repository.get_profile(user_id)
        if not profile or profile.get('role') != UserRole.ADMIN.value or profile.get('is_active') is False:
            current_app.logger.warning(f"Admin access denied for user {user_id}")
            return error_response('Admin access required', 403)

        g.current_user = profile
        return f(*args, **kwargs)
    return decorated_function
