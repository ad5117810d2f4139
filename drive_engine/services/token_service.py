"""Scan token issuance and redemption."""
import base64
import io
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

import qrcode
from flask import current_app
from sqlalchemy import update

from drive_engine import db
from drive_engine.models.drive_session import DriveSession, SessionStatus
from drive_engine.models.round import Round
from drive_engine.models.round_attendance import RoundAttendance
from drive_engine.models.scan_token import ScanToken
from drive_engine.models.user import User
from drive_engine.services.attendance_service import AttendanceService
from drive_engine.services.eligibility_service import EligibilityService, ResolvedRound, RoundState
from drive_engine.utils.errors import (
    DriveError, DuplicateAttendanceError, NotActiveError, NotEligibleError, NotFoundError,
    TokenConsumedError, TokenExpiredError, TokenNotFoundError
)
from drive_engine.utils.helpers import isoformat, log_security_event, utcnow


@dataclass
class IssuedToken:
    """A freshly minted token as handed to the student client."""
    value: str
    round_id: int
    session_id: int
    issued_at: datetime
    expires_at: datetime
    refresh_in: int
    qr_image: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            'value': self.value,
            'round_id': self.round_id,
            'session_id': self.session_id,
            'issued_at': self.issued_at.isoformat(),
            'expires_at': self.expires_at.isoformat(),
            'refresh_in': self.refresh_in
        }
        if self.qr_image:
            data['qr_image'] = self.qr_image
        return data


class TokenService:
    """Mints and redeems single-use scan tokens.

    Tokens are rotated on every issue for the same (user, round, session):
    the previous one is revoked, so a screenshot is useless after one
    refresh. Redemption consumes the token with a compare-and-swap and
    writes the ledger row in the same transaction.
    """

    @staticmethod
    def render_qr_image(value: str) -> str:
        """Render the token as a PNG data URI."""
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=8,
            border=4,
        )
        qr.add_data(value)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")

        buffered = io.BytesIO()
        img.save(buffered, format="PNG")
        img_str = base64.b64encode(buffered.getvalue()).decode()
        return f"data:image/png;base64,{img_str}"

    @staticmethod
    def _mint(user_id: int, job_id: int, round_id: int, session_id: int, now: datetime) -> IssuedToken:
        """Revoke the outstanding token for this binding and add a new one. No commit."""
        db.session.execute(
            update(ScanToken).where(
                ScanToken.user_id == user_id,
                ScanToken.round_id == round_id,
                ScanToken.session_id == session_id,
                ScanToken.consumed_at.is_(None),
                ScanToken.revoked_at.is_(None)
            ).values(revoked_at=now).execution_options(synchronize_session=False)
        )

        ttl = current_app.config.get('SCAN_TOKEN_TTL_SECONDS', 60)
        value = ScanToken.generate_value()
        token = ScanToken(
            token_hash=ScanToken.hash_value(value),
            user_id=user_id,
            job_id=job_id,
            round_id=round_id,
            session_id=session_id,
            issued_at=now,
            expires_at=now + timedelta(seconds=ttl)
        )
        db.session.add(token)

        return IssuedToken(
            value=value,
            round_id=round_id,
            session_id=session_id,
            issued_at=now,
            expires_at=token.expires_at,
            refresh_in=current_app.config.get('SCAN_TOKEN_REFRESH_SECONDS', max(ttl - 5, 1)),
            qr_image=TokenService.render_qr_image(value) if current_app.config.get('SCAN_TOKEN_QR_IMAGE') else None
        )

    @staticmethod
    def mint_for_resolved(job_id: int, user_id: int, resolved: List[ResolvedRound]) -> Dict[int, IssuedToken]:
        """Mint one token per ACTIVE resolved round in a single transaction."""
        now = utcnow()
        issued = {
            r.round_id: TokenService._mint(user_id, job_id, r.round_id, r.session_id, now)
            for r in resolved
        }
        db.session.commit()
        return issued

    @staticmethod
    def issue(user_id: int, round_id: int) -> IssuedToken:
        """Mint a token for a round the student can attend right now."""
        round_ = db.session.get(Round, round_id)
        if round_ is None:
            raise NotFoundError(f"Round {round_id} not found")
        if round_.is_removed:
            raise NotActiveError(f"Round '{round_.name}' has been removed")

        resolved = EligibilityService.resolve_round(round_.job_id, user_id, round_id)
        if resolved is None or resolved.state is not RoundState.ACTIVE:
            state = resolved.state.value if resolved else 'NOT_VISIBLE'
            raise NotActiveError(f"Round '{round_.name}' is {state}", round_status=state)

        issued = TokenService._mint(user_id, round_.job_id, round_id, resolved.session_id, utcnow())
        db.session.commit()
        return issued

    @staticmethod
    def revoke_for_session(session_id: int, now: datetime) -> int:
        """Invalidate every outstanding token of a session. No commit."""
        result = db.session.execute(
            update(ScanToken).where(
                ScanToken.session_id == session_id,
                ScanToken.consumed_at.is_(None),
                ScanToken.revoked_at.is_(None)
            ).values(revoked_at=now).execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    def _lookup(value: str) -> ScanToken:
        if not value or not isinstance(value, str):
            raise TokenNotFoundError("Scan token is not recognised")
        token = ScanToken.query.filter_by(token_hash=ScanToken.hash_value(value.strip())).first()
        if token is None:
            raise TokenNotFoundError("Scan token is not recognised")
        return token

    @staticmethod
    def _ensure_usable(token: ScanToken, now: datetime) -> None:
        if token.consumed_at is not None:
            raise TokenConsumedError("Scan token has already been used")
        if token.revoked_at is not None:
            raise TokenExpiredError("Scan token was invalidated; ask the student to refresh")
        if token.is_expired(now):
            raise TokenExpiredError("Scan token has expired; ask the student to refresh")

    @staticmethod
    def _validate(token: ScanToken, now: datetime) -> Tuple[Round, DriveSession]:
        """Every check redemption performs before writing."""
        TokenService._ensure_usable(token, now)

        round_ = db.session.get(Round, token.round_id)
        session = db.session.get(DriveSession, token.session_id)
        if round_ is None or round_.is_removed:
            raise NotActiveError("Round is no longer part of this drive")
        if session is None or session.status is not SessionStatus.ACTIVE:
            status = session.status.value if session else 'MISSING'
            raise NotActiveError(f"Session is {status}; scan token is no longer valid", session_status=status)

        existing = RoundAttendance.query.filter_by(user_id=token.user_id, round_id=token.round_id).first()
        if existing:
            raise DuplicateAttendanceError(
                f"Attendance already recorded for round '{round_.name}'",
                attendance_id=existing.id,
                marked_at=isoformat(existing.marked_at)
            )

        resolved = EligibilityService.resolve_round(round_.job_id, token.user_id, round_.id)
        if resolved is None:
            raise NotActiveError("Round is no longer part of this drive")
        if resolved.state is RoundState.NOT_ELIGIBLE:
            raise NotEligibleError(f"Student is not eligible for round '{round_.name}'")
        if resolved.state is not RoundState.ACTIVE:
            raise NotActiveError(f"Round '{round_.name}' is {resolved.state.value}")

        return round_, session

    @staticmethod
    def _consume(token_id: int, now: datetime) -> bool:
        """Compare-and-swap the consumed flag."""
        result = db.session.execute(
            update(ScanToken).where(
                ScanToken.id == token_id,
                ScanToken.consumed_at.is_(None),
                ScanToken.revoked_at.is_(None)
            ).values(consumed_at=now).execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def _describe(token: ScanToken, round_: Round, session: DriveSession) -> dict:
        student = db.session.get(User, token.user_id)
        return {
            'user_id': token.user_id,
            'job_id': token.job_id,
            'round_id': token.round_id,
            'session_id': token.session_id,
            'student': {
                'id': student.id,
                'name': student.name,
                'email': student.email,
                'usn': student.usn
            } if student else None,
            'round': {'id': round_.id, 'name': round_.name, 'order': round_.order},
            'session_status': session.status.value,
            'expires_at': isoformat(token.expires_at)
        }

    @staticmethod
    def inspect(value: str) -> dict:
        """Validate a token for the scanner without consuming it."""
        now = utcnow()
        token = TokenService._lookup(value)
        round_, session = TokenService._validate(token, now)
        return TokenService._describe(token, round_, session)

    @staticmethod
    def redeem(value: str, admin_id: int = None) -> dict:
        """Consume a token and record ATTENDED, atomically."""
        now = utcnow()
        try:
            token = TokenService._lookup(value)
            try:
                round_, session = TokenService._validate(token, now)
            except DuplicateAttendanceError:
                # the ledger row may come from a concurrent redeem of this same token
                db.session.rollback()
                if db.session.get(ScanToken, token.id).consumed_at is not None:
                    raise TokenConsumedError("Scan token has already been used")
                raise

            if not TokenService._consume(token.id, now):
                db.session.rollback()
                fresh = db.session.get(ScanToken, token.id)
                if fresh is not None and fresh.consumed_at is not None:
                    raise TokenConsumedError("Scan token has already been used")
                raise TokenExpiredError("Scan token was invalidated; ask the student to refresh")

            attendance = AttendanceService.record_attendance(
                token.user_id, token.round_id, token.session_id,
                marked_by=admin_id, commit=False
            )
            result = TokenService._describe(token, round_, session)
            db.session.commit()
        except DriveError as e:
            db.session.rollback()
            current_app.logger.warning(
                'Scan rejected (%s): %s', e.__class__.__name__, e.message
            )
            raise

        log_security_event(
            'round_attendance_recorded',
            admin_id=admin_id,
            user_id=token.user_id,
            job_id=token.job_id,
            round_id=token.round_id,
            session_id=token.session_id,
            attendance_id=attendance.id
        )
        result.update({
            'attendance_id': attendance.id,
            'outcome': attendance.status.value,
            'marked_at': isoformat(attendance.marked_at)
        })
        return result

    @staticmethod
    def purge_stale(now: datetime = None) -> int:
        """Delete tokens past their expiry. Expiry is also checked on every read."""
        now = now or utcnow()
        deleted = ScanToken.query.filter(ScanToken.expires_at < now).delete(synchronize_session=False)
        db.session.commit()
        return deleted
