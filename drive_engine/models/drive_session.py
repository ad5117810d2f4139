"""Attendance window for a round."""
from enum import Enum
from drive_engine import db
from drive_engine.models.base import BaseModel
from drive_engine.utils.helpers import utcnow

class SessionStatus(Enum):
    """Stored session states. A round with no session row is NOT_STARTED."""
    ACTIVE = 'ACTIVE'
    TEMP_CLOSED = 'TEMP_CLOSED'
    PERM_CLOSED = 'PERM_CLOSED'

    @property
    def is_open(self) -> bool:
        return self is not SessionStatus.PERM_CLOSED

class DriveSession(BaseModel):
    """Session during which a round accepts attendance scans."""
    
    __tablename__ = 'drive_sessions'
    __table_args__ = (
        db.Index(
            'uq_drive_sessions_open_round', 'round_id',
            unique=True,
            sqlite_where=db.text("status != 'PERM_CLOSED'"),
            postgresql_where=db.text("status != 'PERM_CLOSED'")
        ),
    )
    
    job_id = db.Column(db.Integer, db.ForeignKey('jobs.id'), nullable=False, index=True)
    round_id = db.Column(db.Integer, db.ForeignKey('rounds.id'), nullable=False, index=True)
    status = db.Column(db.Enum(SessionStatus), nullable=False, default=SessionStatus.ACTIVE)
    start_time = db.Column(db.DateTime, nullable=False, default=utcnow)
    end_time = db.Column(db.DateTime, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    
    attendances = db.relationship('RoundAttendance', backref='session', lazy='dynamic')
    
    def to_summary(self) -> dict:
        return {
            'id': self.id,
            'status': self.status.value,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'end_time': self.end_time.isoformat() if self.end_time else None
        }
    
    def __repr__(self):
        return f'<DriveSession {self.id} round={self.round_id} {self.status.value}>'
