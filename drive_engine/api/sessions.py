"""Session lifecycle API endpoints."""
from flask import Blueprint, g, request
from flask_jwt_extended import jwt_required

from drive_engine.services.session_service import SessionService
from drive_engine.utils.decorators import admin_required
from drive_engine.utils.helpers import success_response
from drive_engine.utils.validators import Validator

sessions_bp = Blueprint('sessions', __name__)

@sessions_bp.route('/jobs/<int:job_id>/sessions', methods=['GET'])
@jwt_required()
@admin_required
def list_sessions(job_id):
    """List sessions of a job, optionally for one round."""
    round_id = request.args.get('round_id', type=int)
    sessions = SessionService.list_sessions(job_id, round_id=round_id)
    return success_response(data={'sessions': sessions})

@sessions_bp.route('/rounds/<int:round_id>/sessions', methods=['POST'])
@jwt_required()
@admin_required
def start_session(round_id):
    """Start a new session for a round."""
    session = SessionService.start(round_id, admin_id=g.current_user.id)
    return success_response(
        data={'session': SessionService.serialize(session)},
        message="Session started",
        status_code=201
    )

@sessions_bp.route('/sessions/<int:session_id>', methods=['PUT'])
@jwt_required()
@admin_required
def update_session(session_id):
    """Apply TEMP_CLOSE, PERM_CLOSE or REOPEN to a session."""
    data = Validator.require_json(request.get_json(silent=True))
    Validator.validate_required_fields(data, ['action'])
    
    session = SessionService.update(session_id, data['action'], admin_id=g.current_user.id)
    return success_response(
        data={'session': SessionService.serialize(session)},
        message=f"Session is now {session.status.value}"
    )
