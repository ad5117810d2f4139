"""Models package with all models."""
from .base import BaseModel
from .user import User, UserRole
from .job import Job
from .round import Round
from .drive_session import DriveSession, SessionStatus
from .round_attendance import RoundAttendance, AttendanceStatus
from .scan_token import ScanToken

__all__ = [
    'BaseModel', 'User', 'UserRole', 'Job', 'Round',
    'DriveSession', 'SessionStatus',
    'RoundAttendance', 'AttendanceStatus', 'ScanToken'
]
