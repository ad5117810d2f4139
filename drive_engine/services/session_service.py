"""Round session lifecycle.

NONE -> ACTIVE -> (TEMP_CLOSED <-> ACTIVE)* -> PERM_CLOSED

NONE is the absence of a session row. A round may get a fresh session once
its latest one is PERM_CLOSED. Transitions are applied with a conditional
UPDATE on the current status, so two admins racing on the same session get
one success and one InvalidStateError.
"""
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from drive_engine import db
from drive_engine.models.drive_session import DriveSession, SessionStatus
from drive_engine.models.job import Job
from drive_engine.models.round import Round
from drive_engine.services.attendance_service import AttendanceService
from drive_engine.services.token_service import TokenService
from drive_engine.utils.errors import InvalidStateError, NotFoundError, ValidationError
from drive_engine.utils.helpers import log_security_event, utcnow


class SessionService:
    """Service for opening, pausing and closing round sessions."""

    @staticmethod
    def get_session(session_id: int) -> DriveSession:
        session = db.session.get(DriveSession, session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session

    @staticmethod
    def latest_for_round(round_id: int) -> Optional[DriveSession]:
        return DriveSession.query.filter_by(round_id=round_id).order_by(DriveSession.id.desc()).first()

    @staticmethod
    def start(round_id: int, admin_id: int = None) -> DriveSession:
        """Open a new ACTIVE session for a round."""
        round_ = db.session.get(Round, round_id)
        if round_ is None:
            raise NotFoundError(f"Round {round_id} not found")
        if round_.is_removed:
            raise InvalidStateError(f"Round '{round_.name}' is removed; restore it before starting a session")

        latest = SessionService.latest_for_round(round_id)
        if latest is not None and latest.status.is_open:
            raise InvalidStateError(
                f"Cannot start a session for round '{round_.name}': "
                f"session {latest.id} is {latest.status.value}, requested ACTIVE",
                current=latest.status.value,
                requested=SessionStatus.ACTIVE.value
            )

        session = DriveSession(
            job_id=round_.job_id,
            round_id=round_id,
            status=SessionStatus.ACTIVE,
            start_time=utcnow(),
            created_by=admin_id
        )
        db.session.add(session)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            latest = SessionService.latest_for_round(round_id)
            current = latest.status.value if latest else None
            raise InvalidStateError(
                f"Round '{round_.name}' already has an open session ({current}), requested ACTIVE",
                current=current,
                requested=SessionStatus.ACTIVE.value
            )

        log_security_event(
            'session_started',
            admin_id=admin_id,
            job_id=round_.job_id,
            round_id=round_id,
            session_id=session.id
        )
        return session

    @staticmethod
    def _transition(
        session_id: int,
        allowed_from: tuple,
        target: SessionStatus,
        event: str,
        admin_id: int = None
    ) -> DriveSession:
        session = SessionService.get_session(session_id)
        if session.status not in allowed_from:
            raise InvalidStateError(
                f"Session {session_id} is {session.status.value}; cannot move to {target.value}",
                current=session.status.value,
                requested=target.value
            )

        now = utcnow()
        values = {'status': target, 'updated_at': now}
        if target is SessionStatus.PERM_CLOSED:
            values['end_time'] = now

        result = db.session.execute(
            update(DriveSession).where(
                DriveSession.id == session_id,
                DriveSession.status.in_(allowed_from)
            ).values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            current = SessionService.get_session(session_id).status
            raise InvalidStateError(
                f"Session {session_id} is {current.value}; cannot move to {target.value}",
                current=current.value,
                requested=target.value
            )

        revoked = 0
        if target is not SessionStatus.ACTIVE:
            revoked = TokenService.revoke_for_session(session_id, now)

        db.session.commit()
        db.session.refresh(session)

        log_security_event(event, admin_id=admin_id, session_id=session_id, round_id=session.round_id)
        if revoked:
            log_security_event('scan_tokens_revoked', session_id=session_id, count=revoked)
        return session

    @staticmethod
    def temp_close(session_id: int, admin_id: int = None) -> DriveSession:
        """Pause scanning; outstanding tokens die immediately."""
        return SessionService._transition(
            session_id, (SessionStatus.ACTIVE,), SessionStatus.TEMP_CLOSED,
            'session_temp_closed', admin_id
        )

    @staticmethod
    def reopen(session_id: int, admin_id: int = None) -> DriveSession:
        return SessionService._transition(
            session_id, (SessionStatus.TEMP_CLOSED,), SessionStatus.ACTIVE,
            'session_reopened', admin_id
        )

    @staticmethod
    def perm_close(session_id: int, admin_id: int = None) -> DriveSession:
        """Terminal close. Sets end_time and revokes outstanding tokens."""
        return SessionService._transition(
            session_id, (SessionStatus.ACTIVE, SessionStatus.TEMP_CLOSED), SessionStatus.PERM_CLOSED,
            'session_perm_closed', admin_id
        )

    @staticmethod
    def update(session_id: int, action: str, admin_id: int = None) -> DriveSession:
        """Dispatch TEMP_CLOSE, PERM_CLOSE or REOPEN."""
        handler = {
            'TEMP_CLOSE': SessionService.temp_close,
            'PERM_CLOSE': SessionService.perm_close,
            'REOPEN': SessionService.reopen,
        }.get(str(action or '').upper())
        if handler is None:
            raise ValidationError("Invalid action. Use TEMP_CLOSE, PERM_CLOSE, or REOPEN")
        return handler(session_id, admin_id=admin_id)

    @staticmethod
    def serialize(session: DriveSession, attendance_count: int = None) -> dict:
        data = session.to_dict()
        round_ = session.round
        data['round'] = {'id': round_.id, 'name': round_.name, 'order': round_.order} if round_ else None
        if attendance_count is not None:
            data['attendance_count'] = attendance_count
        return data

    @staticmethod
    def list_sessions(job_id: int, round_id: int = None) -> List[dict]:
        """All sessions of a job, newest first."""
        if db.session.get(Job, job_id) is None:
            raise NotFoundError(f"Job {job_id} not found")

        query = DriveSession.query.filter_by(job_id=job_id)
        if round_id is not None:
            query = query.filter_by(round_id=round_id)
        sessions = query.order_by(DriveSession.id.desc()).all()

        counts = AttendanceService.counts_by_session([s.id for s in sessions])
        return [SessionService.serialize(s, counts.get(s.id, 0)) for s in sessions]

