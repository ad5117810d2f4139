"""Round attendance API endpoints: student polling, scanner and ledger."""
from flask import Blueprint, current_app, g, request
from flask_jwt_extended import jwt_required

from drive_engine import limiter
from drive_engine.services.attendance_service import AttendanceService
from drive_engine.services.eligibility_service import EligibilityService
from drive_engine.services.token_service import TokenService
from drive_engine.utils.decorators import admin_required, student_required
from drive_engine.utils.helpers import success_response
from drive_engine.utils.validators import Validator

attendance_bp = Blueprint('attendance', __name__)
attendance_admin_bp = Blueprint('attendance_admin', __name__)

@attendance_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Attendance service is running')

@attendance_bp.route('/jobs/<int:job_id>/my-rounds', methods=['GET'])
@jwt_required()
@student_required
def my_round_statuses(job_id):
    """Round-by-round status for the calling student, with tokens for ACTIVE rounds."""
    rounds = EligibilityService.get_my_round_statuses(job_id, g.current_user.id)
    return success_response(data={
        'rounds': rounds,
        'refresh_in': current_app.config.get('SCAN_TOKEN_REFRESH_SECONDS', 55)
    })

@attendance_bp.route('/rounds/<int:round_id>/token', methods=['POST'])
@jwt_required()
@student_required
@limiter.limit("30 per minute")
def refresh_token(round_id):
    """Rotate the calling student's scan token for one round."""
    issued = TokenService.issue(g.current_user.id, round_id)
    return success_response(data={'token': issued.to_dict()}, message="Scan token issued")

@attendance_bp.route('/scan/verify', methods=['POST'])
@jwt_required()
@admin_required
@limiter.limit("120 per minute")
def verify_scan():
    """Preview a scanned token without consuming it."""
    data = Validator.require_json(request.get_json(silent=True))
    Validator.validate_required_fields(data, ['token'])
    
    details = TokenService.inspect(data['token'])
    return success_response(data=details, message="Student verified. Ready to mark attendance.")

@attendance_bp.route('/scan', methods=['POST'])
@jwt_required()
@admin_required
@limiter.limit("120 per minute")
def redeem_scan():
    """Redeem a scanned token and record attendance."""
    data = Validator.require_json(request.get_json(silent=True))
    Validator.validate_required_fields(data, ['token'])
    
    result = TokenService.redeem(data['token'], admin_id=g.current_user.id)
    return success_response(
        data=result,
        message=f"Attendance recorded for {result['round']['name']}",
        status_code=201
    )

@attendance_admin_bp.route('/attendance/<int:attendance_id>', methods=['PUT'])
@jwt_required()
@admin_required
def set_attendance_outcome(attendance_id):
    """Mark an attendance PASSED or FAILED."""
    data = Validator.require_json(request.get_json(silent=True))
    Validator.validate_required_fields(data, ['status'])
    
    attendance = AttendanceService.set_outcome(attendance_id, data['status'], decided_by=g.current_user.id)
    return success_response(
        data={'attendance': AttendanceService.serialize(attendance)},
        message=f"Attendance marked {attendance.status.value}"
    )

@attendance_admin_bp.route('/jobs/<int:job_id>/attendance', methods=['GET'])
@jwt_required()
@admin_required
def list_attendance(job_id):
    """Paginated attendance records for export and review."""
    page, limit = Validator.validate_pagination(
        request.args.get('page'),
        request.args.get('limit'),
        current_app.config.get('DEFAULT_PAGE_SIZE', 50),
        current_app.config.get('MAX_PAGE_SIZE', 200)
    )
    result = AttendanceService.list_attendance(
        job_id,
        round_id=request.args.get('round_id', type=int),
        status=request.args.get('status'),
        page=page,
        limit=limit
    )
    return success_response(data=result)
