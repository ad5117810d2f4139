"""Attendance ledger rows."""
from enum import Enum
from drive_engine import db
from drive_engine.models.base import BaseModel
from drive_engine.utils.helpers import utcnow

class AttendanceStatus(Enum):
    """ATTENDED on scan; PASSED/FAILED once an admin decides."""
    ATTENDED = 'ATTENDED'
    PASSED = 'PASSED'
    FAILED = 'FAILED'

class RoundAttendance(BaseModel):
    """At most one row per (user, round)."""
    
    __tablename__ = 'round_attendances'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'round_id', name='uq_round_attendance_user_round'),
    )
    
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    job_id = db.Column(db.Integer, db.ForeignKey('jobs.id'), nullable=False, index=True)
    round_id = db.Column(db.Integer, db.ForeignKey('rounds.id'), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey('drive_sessions.id'), nullable=False)
    status = db.Column(db.Enum(AttendanceStatus), nullable=False, default=AttendanceStatus.ATTENDED)
    marked_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    marked_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    decided_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    
    user = db.relationship('User', foreign_keys=[user_id])
    
    def __repr__(self):
        return f'<RoundAttendance {self.user_id}-{self.round_id} {self.status.value}>'
