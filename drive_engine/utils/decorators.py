"""Custom decorators for authorization."""
from functools import wraps

from flask import g
from flask_jwt_extended import get_jwt_identity

from drive_engine import db
from drive_engine.models.user import User
from drive_engine.utils.helpers import error_response


def _load_current_user():
    identity = get_jwt_identity()
    try:
        user = db.session.get(User, int(identity))
    except (TypeError, ValueError):
        return None
    if user is not None and user.is_active:
        g.current_user = user
        return user
    return None


def admin_required(f):
    """Decorator to require admin role."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = _load_current_user()
        
        if not user:
            return error_response("User not found", 404)
        
        if not user.is_admin():
            return error_response("Admin access required", 403)
        
        return f(*args, **kwargs)
    return decorated_function


def student_required(f):
    """Decorator to require student role."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = _load_current_user()
        
        if not user:
            return error_response("User not found", 404)
        
        if not user.is_student():
            return error_response("Student access required", 403)
        
        return f(*args, **kwargs)
    return decorated_function
