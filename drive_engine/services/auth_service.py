"""Authentication service for portal users."""
import re
from typing import Optional, Tuple

from flask_jwt_extended import create_access_token, create_refresh_token

from drive_engine import db
from drive_engine.models.user import User
from drive_engine.utils.helpers import utcnow

class AuthService:
    @staticmethod
    def validate_email(email: str) -> bool:
        """Validate email format."""
        pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        return re.match(pattern, email) is not None
    
    @staticmethod
    def login(email: str, password: str) -> Tuple[Optional[dict], Optional[str]]:
        """Authenticate user and return tokens."""
        if not email or not password:
            return None, "Email and password are required"
        
        if not AuthService.validate_email(email):
            return None, "Invalid email format"
        
        user = User.query.filter_by(email=email.lower().strip()).first()
        
        if not user or not user.check_password(password):
            return None, "Invalid email or password"
        
        if not user.is_active:
            return None, "Account is deactivated"
        
        user.last_login = utcnow()
        db.session.commit()
        
        # JWT subjects must be strings
        access_token = create_access_token(identity=str(user.id), additional_claims={'role': user.role.value})
        refresh_token = create_refresh_token(identity=str(user.id))
        
        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "user": user.to_dict()
        }, None
    
    @staticmethod
    def get_user_by_id(user_id) -> Optional[User]:
        """Get user by ID."""
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None
    
    @staticmethod
    def refresh_token(user_id) -> Tuple[Optional[dict], Optional[str]]:
        """Generate a new access token for an active user."""
        user = AuthService.get_user_by_id(user_id)
        if not user or not user.is_active:
            return None, "User not found or inactive"
        
        access_token = create_access_token(identity=str(user.id), additional_claims={'role': user.role.value})
        
        return {
            "access_token": access_token,
            "user": user.to_dict()
        }, None
