"""Short-lived scan tokens."""
import hashlib
import secrets
from drive_engine import db
from drive_engine.models.base import BaseModel

class ScanToken(BaseModel):
    """Single-use credential bound to (user, round, session).

    Only the SHA-256 digest of the token value is stored.
    """
    
    __tablename__ = 'scan_tokens'
    __table_args__ = (
        db.Index('ix_scan_tokens_binding', 'user_id', 'round_id', 'session_id'),
    )
    
    token_hash = db.Column(db.String(64), unique=True, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    job_id = db.Column(db.Integer, db.ForeignKey('jobs.id'), nullable=False)
    round_id = db.Column(db.Integer, db.ForeignKey('rounds.id'), nullable=False)
    session_id = db.Column(db.Integer, db.ForeignKey('drive_sessions.id'), nullable=False, index=True)
    issued_at = db.Column(db.DateTime, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    consumed_at = db.Column(db.DateTime, nullable=True)
    revoked_at = db.Column(db.DateTime, nullable=True)
    
    @staticmethod
    def generate_value() -> str:
        """Generate an opaque token value."""
        return secrets.token_urlsafe(32)
    
    @staticmethod
    def hash_value(value: str) -> str:
        return hashlib.sha256(value.encode()).hexdigest()
    
    def is_expired(self, now) -> bool:
        return now > self.expires_at
    
    def __repr__(self):
        return f'<ScanToken user={self.user_id} round={self.round_id} session={self.session_id}>'
