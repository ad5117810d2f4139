"""Round registry API endpoints."""
from flask import Blueprint, current_app, g, request
from flask_jwt_extended import jwt_required

from drive_engine.services.round_service import RoundService
from drive_engine.utils.decorators import admin_required
from drive_engine.utils.errors import ConflictError
from drive_engine.utils.helpers import success_response
from drive_engine.utils.validators import Validator

rounds_bp = Blueprint('rounds', __name__)

@rounds_bp.route('/jobs/<int:job_id>/rounds', methods=['GET'])
@jwt_required()
@admin_required
def list_rounds(job_id):
    """List a job's rounds with latest session and attendance counts."""
    include_removed = request.args.get('include_removed', 'true').lower() != 'false'
    rounds = RoundService.list_rounds(job_id, include_removed=include_removed)
    return success_response(data={'rounds': rounds})

@rounds_bp.route('/jobs/<int:job_id>/rounds', methods=['POST'])
@jwt_required()
@admin_required
def create_round(job_id):
    """Add a round to a job."""
    data = Validator.require_json(request.get_json(silent=True))
    Validator.validate_required_fields(data, ['name', 'order'])
    
    round_ = RoundService.create_round(job_id, data['name'], data['order'], admin_id=g.current_user.id)
    return success_response(
        data={'round': RoundService.serialize(round_)},
        message="Round created successfully",
        status_code=201
    )

@rounds_bp.route('/rounds/<int:round_id>', methods=['PATCH'])
@jwt_required()
@admin_required
def rename_round(round_id):
    """Rename a round."""
    data = Validator.require_json(request.get_json(silent=True))
    Validator.validate_required_fields(data, ['name'])
    
    round_ = RoundService.rename_round(round_id, data['name'], admin_id=g.current_user.id)
    return success_response(data={'round': round_.to_dict()}, message="Round renamed successfully")

@rounds_bp.route('/rounds/<int:round_id>/reorder', methods=['POST'])
@jwt_required()
@admin_required
def reorder_round(round_id):
    """Move a round one step up or down."""
    data = Validator.require_json(request.get_json(silent=True))
    direction = Validator.validate_direction(data.get('direction'))
    
    try:
        round_, neighbour = RoundService.reorder(round_id, direction, admin_id=g.current_user.id)
    except ConflictError as e:
        # a lost reorder race is transient: retry once
        current_app.logger.info('Retrying reorder of round %s after conflict: %s', round_id, e.message)
        round_, neighbour = RoundService.reorder(round_id, direction, admin_id=g.current_user.id)
    
    return success_response(
        data={'round': round_.to_dict(), 'swapped_with': neighbour.to_dict()},
        message="Round reordered successfully"
    )

@rounds_bp.route('/rounds/<int:round_id>/remove', methods=['POST'])
@jwt_required()
@admin_required
def remove_round(round_id):
    """Soft-delete a round."""
    round_ = RoundService.remove(round_id, admin_id=g.current_user.id)
    return success_response(data={'round': round_.to_dict()}, message="Round removed")

@rounds_bp.route('/rounds/<int:round_id>/restore', methods=['POST'])
@jwt_required()
@admin_required
def restore_round(round_id):
    """Restore a removed round."""
    round_ = RoundService.restore(round_id, admin_id=g.current_user.id)
    return success_response(data={'round': round_.to_dict()}, message="Round restored")
