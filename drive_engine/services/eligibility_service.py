"""Per-student round status resolution.

`resolve_round_statuses` is a pure function over snapshots of a job's rounds,
their latest sessions and one student's attendance rows. It is evaluated
fresh on every poll; nothing it returns is cached.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional

from drive_engine import db
from drive_engine.models.drive_session import DriveSession, SessionStatus
from drive_engine.models.job import Job
from drive_engine.models.round import Round
from drive_engine.models.round_attendance import AttendanceStatus, RoundAttendance
from drive_engine.utils.errors import NotFoundError


class RoundState(Enum):
    """Student-visible status labels."""
    NOT_STARTED = 'NOT_STARTED'
    ACTIVE = 'ACTIVE'
    TEMP_CLOSED = 'TEMP_CLOSED'
    PERM_CLOSED = 'PERM_CLOSED'
    NOT_ELIGIBLE = 'NOT_ELIGIBLE'
    ATTENDED_ATTENDED = 'ATTENDED_ATTENDED'
    ATTENDED_PASSED = 'ATTENDED_PASSED'
    ATTENDED_FAILED = 'ATTENDED_FAILED'

    @classmethod
    def attended(cls, status: AttendanceStatus) -> 'RoundState':
        return cls[f'ATTENDED_{status.value}']


_SESSION_STATES = {
    SessionStatus.ACTIVE: RoundState.ACTIVE,
    SessionStatus.TEMP_CLOSED: RoundState.TEMP_CLOSED,
    SessionStatus.PERM_CLOSED: RoundState.PERM_CLOSED,
}


@dataclass(frozen=True)
class RoundSnapshot:
    id: int
    name: str
    order: int
    is_removed: bool = False


@dataclass(frozen=True)
class SessionSnapshot:
    id: int
    round_id: int
    status: SessionStatus


@dataclass(frozen=True)
class AttendanceSnapshot:
    id: int
    round_id: int
    status: AttendanceStatus
    marked_at: Optional[datetime] = None


@dataclass
class ResolvedRound:
    round_id: int
    round_name: str
    round_order: int
    state: RoundState
    session_id: Optional[int] = None
    attendance: Optional[AttendanceSnapshot] = None
    token: Optional[dict] = field(default=None)

    def to_dict(self) -> dict:
        data = {
            'round_id': self.round_id,
            'round_name': self.round_name,
            'round_order': self.round_order,
            'status': self.state.value,
            'token': self.token,
            'attendance': None
        }
        if self.attendance is not None:
            data['attendance'] = {
                'id': self.attendance.id,
                'result': self.attendance.status.value,
                'marked_at': self.attendance.marked_at.isoformat() if self.attendance.marked_at else None
            }
        return data


def _session_state(session: Optional[SessionSnapshot]) -> RoundState:
    if session is None:
        return RoundState.NOT_STARTED
    return _SESSION_STATES[session.status]


def resolve_round_statuses(
    rounds: Iterable[RoundSnapshot],
    latest_sessions: Dict[int, SessionSnapshot],
    attendances: Dict[int, AttendanceSnapshot]
) -> List[ResolvedRound]:
    """Compute one status per visible round, in round order.

    A round the student already attended reports its attendance outcome.
    Otherwise the first visible round mirrors its session, and every later
    round is NOT_ELIGIBLE unless the immediately preceding visible round is
    PASSED, in which case it too mirrors its session.
    """
    visible = sorted((r for r in rounds if not r.is_removed), key=lambda r: r.order)
    resolved = []
    previous = None

    for round_ in visible:
        session = latest_sessions.get(round_.id)
        attendance = attendances.get(round_.id)

        if attendance is not None:
            state = RoundState.attended(attendance.status)
        elif previous is not None and not _passed(attendances.get(previous.id)):
            state = RoundState.NOT_ELIGIBLE
        else:
            state = _session_state(session)

        resolved.append(ResolvedRound(
            round_id=round_.id,
            round_name=round_.name,
            round_order=round_.order,
            state=state,
            session_id=session.id if session else None,
            attendance=attendance
        ))
        previous = round_

    return resolved


def _passed(attendance: Optional[AttendanceSnapshot]) -> bool:
    return attendance is not None and attendance.status is AttendanceStatus.PASSED


class EligibilityService:
    """Loads snapshots from the database and resolves them."""

    @staticmethod
    def latest_sessions(round_ids: List[int]) -> Dict[int, SessionSnapshot]:
        """Most recently started session per round."""
        if not round_ids:
            return {}
        sessions = DriveSession.query.filter(
            DriveSession.round_id.in_(round_ids)
        ).order_by(DriveSession.round_id, DriveSession.id.desc()).all()

        latest = {}
        for session in sessions:
            if session.round_id not in latest:
                latest[session.round_id] = SessionSnapshot(
                    id=session.id, round_id=session.round_id, status=session.status
                )
        return latest

    @staticmethod
    def snapshot(job_id: int, user_id: int):
        """Return (rounds, latest_sessions, attendances) for one student."""
        if db.session.get(Job, job_id) is None:
            raise NotFoundError(f"Job {job_id} not found")

        rounds = [
            RoundSnapshot(id=r.id, name=r.name, order=r.order, is_removed=r.is_removed)
            for r in Round.query.filter_by(job_id=job_id).all()
        ]
        latest = EligibilityService.latest_sessions([r.id for r in rounds])
        attendances = {
            a.round_id: AttendanceSnapshot(
                id=a.id, round_id=a.round_id, status=a.status, marked_at=a.marked_at
            )
            for a in RoundAttendance.query.filter_by(job_id=job_id, user_id=user_id).all()
        }
        return rounds, latest, attendances

    @staticmethod
    def resolve(job_id: int, user_id: int) -> List[ResolvedRound]:
        """Side-effect free resolution for one student."""
        return resolve_round_statuses(*EligibilityService.snapshot(job_id, user_id))

    @staticmethod
    def resolve_round(job_id: int, user_id: int, round_id: int) -> Optional[ResolvedRound]:
        """Resolved status of a single round, or None if the round is not visible."""
        for resolved in EligibilityService.resolve(job_id, user_id):
            if resolved.round_id == round_id:
                return resolved
        return None

    @staticmethod
    def get_my_round_statuses(job_id: int, user_id: int) -> List[dict]:
        """Poll: resolve every round and mint a scan token for each ACTIVE one."""
        from drive_engine.services.token_service import TokenService

        resolved = EligibilityService.resolve(job_id, user_id)
        active = [r for r in resolved if r.state is RoundState.ACTIVE]
        if active:
            issued = TokenService.mint_for_resolved(job_id, user_id, active)
            for r in active:
                r.token = issued[r.round_id].to_dict()

        return [r.to_dict() for r in resolved]
