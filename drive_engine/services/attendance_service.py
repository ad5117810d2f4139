"""Attendance ledger service."""
import math
from typing import Dict, Optional, Union

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from drive_engine import db
from drive_engine.models.job import Job
from drive_engine.models.round import Round
from drive_engine.models.round_attendance import AttendanceStatus, RoundAttendance
from drive_engine.utils.errors import DuplicateAttendanceError, NotFoundError, ValidationError
from drive_engine.utils.helpers import isoformat, log_security_event, utcnow


class AttendanceService:
    """Records at most one attendance fact per (student, round)."""

    OUTCOMES = (AttendanceStatus.PASSED, AttendanceStatus.FAILED)

    @staticmethod
    def record_attendance(
        user_id: int,
        round_id: int,
        session_id: int,
        marked_by: int = None,
        commit: bool = True
    ) -> RoundAttendance:
        """Insert an ATTENDED row.

        Called from token redemption with ``commit=False`` so the insert
        shares the redemption transaction. The unique constraint on
        (user_id, round_id) backs up the existence check.
        """
        round_ = db.session.get(Round, round_id)
        if round_ is None:
            raise NotFoundError(f"Round {round_id} not found")

        existing = RoundAttendance.query.filter_by(user_id=user_id, round_id=round_id).first()
        if existing:
            raise DuplicateAttendanceError(
                f"Attendance already recorded for round '{round_.name}'",
                attendance_id=existing.id,
                marked_at=isoformat(existing.marked_at)
            )

        attendance = RoundAttendance(
            user_id=user_id,
            job_id=round_.job_id,
            round_id=round_id,
            session_id=session_id,
            status=AttendanceStatus.ATTENDED,
            marked_at=utcnow(),
            marked_by=marked_by
        )
        db.session.add(attendance)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateAttendanceError(f"Attendance already recorded for round '{round_.name}'")

        if not commit:
            return attendance

        db.session.commit()
        log_security_event(
            'round_attendance_recorded',
            admin_id=marked_by,
            user_id=user_id,
            job_id=round_.job_id,
            round_id=round_id,
            session_id=session_id,
            attendance_id=attendance.id
        )
        return attendance

    @staticmethod
    def parse_outcome(status: Union[str, AttendanceStatus]) -> AttendanceStatus:
        """Accept PASSED or FAILED (case-insensitive)."""
        if isinstance(status, AttendanceStatus):
            outcome = status
        else:
            try:
                outcome = AttendanceStatus(str(status).upper())
            except ValueError:
                outcome = None
        if outcome not in AttendanceService.OUTCOMES:
            raise ValidationError("Invalid status. Use PASSED or FAILED")
        return outcome

    @staticmethod
    def set_outcome(attendance_id: int, status, decided_by: int = None) -> RoundAttendance:
        """Mark an attendance PASSED or FAILED. Decisions may be flipped freely."""
        outcome = AttendanceService.parse_outcome(status)

        attendance = db.session.get(RoundAttendance, attendance_id)
        if attendance is None:
            raise NotFoundError(f"Attendance record {attendance_id} not found")

        old_status = attendance.status
        attendance.status = outcome
        attendance.decided_by = decided_by
        db.session.commit()

        log_security_event(
            'attendance_outcome_updated',
            admin_id=decided_by,
            attendance_id=attendance_id,
            old_status=old_status.value,
            new_status=outcome.value
        )
        return attendance

    @staticmethod
    def counts_by_round(round_ids) -> Dict[int, Dict[str, int]]:
        """Attendance counts per round, split by status."""
        counts = {round_id: {'total': 0, 'ATTENDED': 0, 'PASSED': 0, 'FAILED': 0} for round_id in round_ids}
        if not counts:
            return counts
        rows = db.session.query(
            RoundAttendance.round_id, RoundAttendance.status, func.count(RoundAttendance.id)
        ).filter(
            RoundAttendance.round_id.in_(list(counts))
        ).group_by(RoundAttendance.round_id, RoundAttendance.status).all()

        for round_id, status, count in rows:
            counts[round_id][status.value] = count
            counts[round_id]['total'] += count
        return counts

    @staticmethod
    def counts_by_session(session_ids) -> Dict[int, int]:
        if not session_ids:
            return {}
        rows = db.session.query(
            RoundAttendance.session_id, func.count(RoundAttendance.id)
        ).filter(
            RoundAttendance.session_id.in_(list(session_ids))
        ).group_by(RoundAttendance.session_id).all()
        return dict(rows)

    @staticmethod
    def serialize(attendance: RoundAttendance) -> dict:
        user = attendance.user
        round_ = attendance.round
        session = attendance.session
        return {
            'id': attendance.id,
            'user_id': attendance.user_id,
            'job_id': attendance.job_id,
            'round_id': attendance.round_id,
            'session_id': attendance.session_id,
            'status': attendance.status.value,
            'marked_at': isoformat(attendance.marked_at),
            'marked_by': attendance.marked_by,
            'decided_by': attendance.decided_by,
            'user': {
                'id': user.id,
                'name': user.name,
                'email': user.email,
                'usn': user.usn
            } if user else None,
            'round': {
                'id': round_.id,
                'name': round_.name,
                'order': round_.order,
                'is_removed': round_.is_removed
            } if round_ else None,
            'session': session.to_summary() if session else None
        }

    @staticmethod
    def list_attendance(
        job_id: int,
        round_id: Optional[int] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = None
    ) -> dict:
        """Paginated attendance rows for a job, newest first.

        Rows of removed rounds stay listed for audit and export.
        """
        if db.session.get(Job, job_id) is None:
            raise NotFoundError(f"Job {job_id} not found")

        limit = limit or current_app.config.get('DEFAULT_PAGE_SIZE', 50)
        query = RoundAttendance.query.filter_by(job_id=job_id)
        if round_id is not None:
            query = query.filter_by(round_id=round_id)
        if status:
            try:
                query = query.filter_by(status=AttendanceStatus(str(status).upper()))
            except ValueError:
                raise ValidationError("Invalid status. Use ATTENDED, PASSED, or FAILED")

        total = query.count()
        records = query.order_by(
            RoundAttendance.marked_at.desc(), RoundAttendance.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()

        return {
            'attendances': [AttendanceService.serialize(a) for a in records],
            'pagination': {
                'total': total,
                'page': page,
                'limit': limit,
                'pages': math.ceil(total / limit) if total else 0
            }
        }
