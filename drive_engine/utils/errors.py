"""Error taxonomy for the drive round and attendance engine.

Every error is terminal for the request that raised it. The API layer renders
them through a single Flask error handler, so services simply raise.
"""


class DriveError(Exception):
    """Base class for engine errors."""

    status_code = 400
    code = 'drive_error'

    def __init__(self, message: str = None, **details):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__
        self.details = details

    def to_dict(self) -> dict:
        data = {
            'error': True,
            'message': self.message,
            'status_code': self.status_code,
            'code': self.code
        }
        if self.details:
            data['details'] = self.details
        return data


class ValidationError(DriveError):
    """Invalid request data."""
    status_code = 400
    code = 'validation_error'


class NotFoundError(DriveError):
    """Resource not found."""
    status_code = 404
    code = 'not_found'


class ConflictError(DriveError):
    """Conflicting concurrent or duplicate change."""
    status_code = 409
    code = 'conflict'


class InvalidStateError(DriveError):
    """Operation not allowed in the current state."""
    status_code = 409
    code = 'invalid_state'


class NotActiveError(DriveError):
    """Round session is not active for this student."""
    status_code = 409
    code = 'not_active'


class TokenExpiredError(DriveError):
    """Scan token has expired."""
    status_code = 410
    code = 'token_expired'


class TokenConsumedError(DriveError):
    """Scan token has already been used."""
    status_code = 409
    code = 'token_consumed'


class TokenNotFoundError(DriveError):
    """Scan token is not recognised."""
    status_code = 404
    code = 'token_not_found'


class DuplicateAttendanceError(DriveError):
    """Attendance already recorded for this round."""
    status_code = 409
    code = 'duplicate_attendance'


class NotEligibleError(DriveError):
    """Student is not eligible for this round."""
    status_code = 403
    code = 'not_eligible'
