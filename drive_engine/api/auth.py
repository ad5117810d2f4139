"""Authentication API."""
from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt_identity
from drive_engine import limiter
from drive_engine.utils.helpers import success_response, error_response
from drive_engine.services.auth_service import AuthService

auth_bp = Blueprint("auth", __name__)

@auth_bp.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint."""
    return success_response(message="Auth service is running")

@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per minute")
def login():
    """Login for admins and students."""
    data = request.get_json(silent=True)
    
    if not data:
        return error_response("Request body must be JSON", 400)
    
    email = data.get("email", "").strip()
    password = data.get("password", "")
    
    if not email or not password:
        return error_response("Email and password are required", 400)
    
    result, error = AuthService.login(email, password)
    
    if error:
        return error_response(error, 401)
    
    return success_response(
        data=result,
        message="Login successful"
    )

@auth_bp.route("/me", methods=["GET"])
@jwt_required()
def me():
    """Get the current user's profile."""
    user = AuthService.get_user_by_id(get_jwt_identity())
    
    if not user:
        return error_response("User not found", 404)
    
    return success_response(data=user.to_dict())

@auth_bp.route("/refresh", methods=["POST"])
@jwt_required(refresh=True)
def refresh_token():
    """Refresh access token."""
    result, error = AuthService.refresh_token(get_jwt_identity())
    
    if error:
        return error_response(error, 401)
    
    return success_response(
        data=result,
        message="Token refreshed successfully"
    )
