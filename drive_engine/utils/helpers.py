"""Helper functions for the application."""
import json
from datetime import datetime, timezone
from typing import Any, Dict

from flask import current_app, jsonify


def utcnow() -> datetime:
    """Naive UTC now, matching the naive DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value: datetime = None):
    return value.isoformat() if value else None


def handle_error(error, status_code: int):
    """Handle application errors with consistent format."""
    return jsonify({
        'error': True,
        'message': str(error),
        'status_code': status_code
    }), status_code


def success_response(data: Any = None, message: str = "Success", status_code: int = 200):
    """Return consistent success response."""
    response = {
        'error': False,
        'message': message
    }
    
    if data is not None:
        response['data'] = data
    
    return jsonify(response), status_code


def error_response(message: str, status_code: int = 400):
    """Return consistent error response."""
    return jsonify({
        'error': True,
        'message': message,
        'status_code': status_code
    }), status_code


def log_security_event(event: str, **details: Dict[str, Any]) -> None:
    """Write an audit line for an admin or scanner action."""
    current_app.logger.info(
        '[SECURITY] %s %s', event, json.dumps(details, default=str, sort_keys=True)
    )
