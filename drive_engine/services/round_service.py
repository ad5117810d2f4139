"""Round registry for a job's drive."""
from typing import List, Tuple

from sqlalchemy.exc import IntegrityError

from drive_engine import db
from drive_engine.models.drive_session import DriveSession, SessionStatus
from drive_engine.models.job import Job
from drive_engine.models.round import Round
from drive_engine.services.attendance_service import AttendanceService
from drive_engine.services.eligibility_service import EligibilityService
from drive_engine.utils.errors import ConflictError, InvalidStateError, NotFoundError
from drive_engine.utils.helpers import log_security_event
from drive_engine.utils.locks import job_lock
from drive_engine.utils.validators import Validator


class RoundService:
    """Service for creating, renaming, ordering and removing rounds.

    Changes here never touch attendance history; they only change what the
    eligibility resolver sees on the next poll.
    """

    @staticmethod
    def get_job(job_id: int) -> Job:
        job = db.session.get(Job, job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        return job

    @staticmethod
    def get_round(round_id: int) -> Round:
        round_ = db.session.get(Round, round_id)
        if round_ is None:
            raise NotFoundError(f"Round {round_id} not found")
        return round_

    @staticmethod
    def visible_rounds(job_id: int) -> List[Round]:
        return Round.query.filter_by(job_id=job_id, is_removed=False).order_by(Round.order.asc()).all()

    @staticmethod
    def open_session(round_id: int):
        return DriveSession.query.filter(
            DriveSession.round_id == round_id,
            DriveSession.status != SessionStatus.PERM_CLOSED
        ).first()

    @staticmethod
    def _ensure_no_open_session(round_: Round, action: str) -> None:
        session = RoundService.open_session(round_.id)
        if session is not None:
            raise InvalidStateError(
                f"Cannot {action} round '{round_.name}' while its session is {session.status.value}",
                current=session.status.value
            )

    @staticmethod
    def create_round(job_id: int, name: str, order: int, admin_id: int = None) -> Round:
        """Add a round. Order must be unused among the job's visible rounds."""
        RoundService.get_job(job_id)
        name = Validator.validate_round_name(name)
        order = Validator.validate_order(order)

        if Round.query.filter_by(job_id=job_id, order=order, is_removed=False).first():
            raise ConflictError(f"A round with order {order} already exists for this job", order=order)

        round_ = Round(job_id=job_id, name=name, order=order, is_removed=False)
        db.session.add(round_)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"A round with order {order} already exists for this job", order=order)

        log_security_event('round_created', admin_id=admin_id, job_id=job_id, round_id=round_.id, order=order)
        return round_

    @staticmethod
    def rename_round(round_id: int, name: str, admin_id: int = None) -> Round:
        """Rename a round that is not mid-session."""
        round_ = RoundService.get_round(round_id)
        name = Validator.validate_round_name(name)
        RoundService._ensure_no_open_session(round_, 'rename')

        old_name = round_.name
        round_.name = name
        db.session.commit()

        log_security_event('round_renamed', admin_id=admin_id, round_id=round_id, old_name=old_name, new_name=name)
        return round_

    @staticmethod
    def reorder(round_id: int, direction: str, admin_id: int = None) -> Tuple[Round, Round]:
        """Swap a round's order with its visible neighbour in ``direction``.

        Both order values change in one transaction or not at all.
        """
        direction = Validator.validate_direction(direction)
        round_ = RoundService.get_round(round_id)

        with job_lock(round_.job_id):
            db.session.refresh(round_)
            if round_.is_removed:
                raise InvalidStateError(f"Round '{round_.name}' is removed")

            rounds = RoundService.visible_rounds(round_.job_id)
            index = next(i for i, r in enumerate(rounds) if r.id == round_.id)
            neighbour_index = index - 1 if direction == 'up' else index + 1
            if neighbour_index < 0 or neighbour_index >= len(rounds):
                raise InvalidStateError(f"Round '{round_.name}' cannot move {direction}")
            neighbour = rounds[neighbour_index]

            RoundService._ensure_no_open_session(round_, 'reorder')
            RoundService._ensure_no_open_session(neighbour, 'reorder')

            first_order, second_order = round_.order, neighbour.order
            try:
                # the partial unique index forbids a transient duplicate
                round_.order = -first_order
                db.session.flush()
                neighbour.order = first_order
                db.session.flush()
                round_.order = second_order
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                raise ConflictError("Round order changed concurrently; retry the reorder")

        log_security_event(
            'round_reordered',
            admin_id=admin_id,
            job_id=round_.job_id,
            round_id=round_.id,
            swapped_with=neighbour.id,
            direction=direction
        )
        return round_, neighbour

    @staticmethod
    def remove(round_id: int, admin_id: int = None) -> Round:
        """Soft-delete a round and close the gap it leaves in the order."""
        round_ = RoundService.get_round(round_id)
        if round_.is_removed:
            raise InvalidStateError(f"Round '{round_.name}' is already removed")
        RoundService._ensure_no_open_session(round_, 'remove')

        with job_lock(round_.job_id):
            try:
                round_.is_removed = True
                db.session.flush()
                later = Round.query.filter(
                    Round.job_id == round_.job_id,
                    Round.is_removed.is_(False),
                    Round.order > round_.order
                ).order_by(Round.order.asc()).all()
                # one flush per row keeps the partial index satisfied
                for r in later:
                    r.order -= 1
                    db.session.flush()
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                raise ConflictError("Round order changed concurrently; retry the removal")

        log_security_event('round_removed', admin_id=admin_id, job_id=round_.job_id, round_id=round_id)
        return round_

    @staticmethod
    def restore(round_id: int, admin_id: int = None) -> Round:
        """Bring a removed round back as the last visible round.

        Visible orders stay contiguous from 1, so the next round created
        after a restore still takes ``count + 1``.
        """
        round_ = RoundService.get_round(round_id)
        if not round_.is_removed:
            raise InvalidStateError(f"Round '{round_.name}' is not removed")

        with job_lock(round_.job_id):
            visible = RoundService.visible_rounds(round_.job_id)
            round_.order = (visible[-1].order if visible else 0) + 1
            round_.is_removed = False
            try:
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                raise ConflictError("Round order changed concurrently; retry the restore")

        log_security_event(
            'round_restored', admin_id=admin_id, job_id=round_.job_id, round_id=round_id, order=round_.order
        )
        return round_

    @staticmethod
    def serialize(round_: Round, latest_session=None, counts: dict = None) -> dict:
        data = round_.to_dict()
        data['latest_session'] = latest_session
        data['attendance_counts'] = counts or {'total': 0, 'ATTENDED': 0, 'PASSED': 0, 'FAILED': 0}
        return data

    @staticmethod
    def list_rounds(job_id: int, include_removed: bool = True) -> List[dict]:
        """Rounds in order with their latest session and attendance counts."""
        RoundService.get_job(job_id)
        query = Round.query.filter_by(job_id=job_id)
        if not include_removed:
            query = query.filter_by(is_removed=False)
        rounds = query.order_by(Round.is_removed.asc(), Round.order.asc(), Round.id.asc()).all()

        round_ids = [r.id for r in rounds]
        latest = EligibilityService.latest_sessions(round_ids)
        sessions = {
            s.id: s for s in DriveSession.query.filter(
                DriveSession.id.in_([snap.id for snap in latest.values()])
            ).all()
        } if latest else {}
        counts = AttendanceService.counts_by_round(round_ids)

        result = []
        for round_ in rounds:
            snap = latest.get(round_.id)
            summary = sessions[snap.id].to_summary() if snap else None
            result.append(RoundService.serialize(round_, summary, counts.get(round_.id)))
        return result
