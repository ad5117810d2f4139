"""Tests for the round registry."""
from unittest import mock

import pytest
import redis

from drive_engine.models.round import Round
from drive_engine.services.round_service import RoundService
from drive_engine.services.session_service import SessionService
from drive_engine.utils.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from drive_engine.utils.locks import job_lock


def orders(job_id):
    return [(r.name, r.order) for r in RoundService.visible_rounds(job_id)]


def test_create_round(job):
    round_ = RoundService.create_round(job.id, '  Aptitude  ', 1)

    assert round_.id is not None
    assert round_.name == 'Aptitude'
    assert round_.order == 1
    assert round_.is_removed is False


def test_create_round_rejects_duplicate_order(job, rounds):
    with pytest.raises(ConflictError):
        RoundService.create_round(job.id, 'Group Discussion', 2)


@pytest.mark.parametrize('name,order', [('', 1), ('GD', 0), ('GD', -3), ('GD', '2'), ('GD', True)])
def test_create_round_validates_input(job, name, order):
    with pytest.raises(ValidationError):
        RoundService.create_round(job.id, name, order)


def test_create_round_unknown_job(app):
    with pytest.raises(NotFoundError):
        RoundService.create_round(999, 'Aptitude', 1)


def test_rename_round(rounds):
    renamed = RoundService.rename_round(rounds[0].id, 'Online Aptitude')
    assert renamed.name == 'Online Aptitude'


def test_rename_blocked_while_session_open(rounds):
    session = SessionService.start(rounds[0].id)

    with pytest.raises(InvalidStateError):
        RoundService.rename_round(rounds[0].id, 'Online Aptitude')

    SessionService.perm_close(session.id)
    assert RoundService.rename_round(rounds[0].id, 'Online Aptitude').name == 'Online Aptitude'


def test_reorder_swaps_with_neighbour(job, rounds):
    moved, neighbour = RoundService.reorder(rounds[1].id, 'up')

    assert (moved.order, neighbour.order) == (1, 2)
    assert orders(job.id) == [('Technical', 1), ('Aptitude', 2), ('HR', 3)]


def test_reorder_up_then_down_restores_order(job, rounds):
    before = orders(job.id)

    RoundService.reorder(rounds[2].id, 'up')
    RoundService.reorder(rounds[2].id, 'down')

    assert orders(job.id) == before


def test_reorder_at_edge_is_rejected(job, rounds):
    with pytest.raises(InvalidStateError):
        RoundService.reorder(rounds[0].id, 'up')
    with pytest.raises(InvalidStateError):
        RoundService.reorder(rounds[2].id, 'down')
    assert orders(job.id) == [('Aptitude', 1), ('Technical', 2), ('HR', 3)]


def test_reorder_invalid_direction(rounds):
    with pytest.raises(ValidationError):
        RoundService.reorder(rounds[0].id, 'sideways')


def test_reorder_blocked_when_either_round_has_open_session(job, rounds):
    SessionService.start(rounds[0].id)

    with pytest.raises(InvalidStateError):
        RoundService.reorder(rounds[1].id, 'up')
    with pytest.raises(InvalidStateError):
        RoundService.reorder(rounds[0].id, 'down')
    assert orders(job.id) == [('Aptitude', 1), ('Technical', 2), ('HR', 3)]


def test_remove_compacts_later_rounds(job, rounds):
    removed = RoundService.remove(rounds[1].id)

    assert removed.is_removed is True
    assert orders(job.id) == [('Aptitude', 1), ('HR', 2)]


def test_remove_blocked_while_session_open(rounds):
    SessionService.start(rounds[1].id)
    with pytest.raises(InvalidStateError):
        RoundService.remove(rounds[1].id)


def test_remove_twice_is_rejected(rounds):
    RoundService.remove(rounds[2].id)
    with pytest.raises(InvalidStateError):
        RoundService.remove(rounds[2].id)


def test_restore_appends_when_order_taken(job, rounds):
    RoundService.remove(rounds[0].id)
    restored = RoundService.restore(rounds[0].id)

    assert restored.is_removed is False
    assert orders(job.id) == [('Technical', 1), ('HR', 2), ('Aptitude', 3)]


def test_restore_of_last_round_returns_to_end(job, rounds):
    RoundService.remove(rounds[2].id)
    restored = RoundService.restore(rounds[2].id)

    assert restored.order == 3
    assert orders(job.id) == [('Aptitude', 1), ('Technical', 2), ('HR', 3)]


def test_restore_keeps_orders_contiguous(job, rounds):
    RoundService.remove(rounds[2].id)
    RoundService.remove(rounds[0].id)
    RoundService.restore(rounds[2].id)

    assert orders(job.id) == [('Technical', 1), ('HR', 2)]

    created = RoundService.create_round(job.id, 'Group Discussion', len(orders(job.id)) + 1)
    assert created.order == 3
    assert [order for _, order in orders(job.id)] == [1, 2, 3]


def test_restore_requires_removed_round(rounds):
    with pytest.raises(InvalidStateError):
        RoundService.restore(rounds[0].id)


def test_order_reusable_after_removal(job, rounds):
    RoundService.remove(rounds[2].id)
    round_ = RoundService.create_round(job.id, 'Managerial', 3)
    assert round_.order == 3
    assert Round.query.filter_by(job_id=job.id).count() == 4


def test_list_rounds_includes_sessions_and_counts(job, rounds, student):
    from drive_engine.services.attendance_service import AttendanceService

    session = SessionService.start(rounds[0].id)
    AttendanceService.record_attendance(student.id, rounds[0].id, session.id)
    RoundService.remove(rounds[2].id)

    listed = RoundService.list_rounds(job.id)

    assert [r['name'] for r in listed] == ['Aptitude', 'Technical', 'HR']
    assert listed[0]['latest_session']['status'] == 'ACTIVE'
    assert listed[0]['attendance_counts'] == {'total': 1, 'ATTENDED': 1, 'PASSED': 0, 'FAILED': 0}
    assert listed[1]['latest_session'] is None
    assert listed[2]['is_removed'] is True

    visible = RoundService.list_rounds(job.id, include_removed=False)
    assert [r['name'] for r in visible] == ['Aptitude', 'Technical']


def test_job_lock_without_redis_is_a_no_op(app):
    with job_lock(1):
        pass


def test_job_lock_uses_redis_lock(app):
    client = mock.MagicMock()
    client.lock.return_value.acquire.return_value = True
    app.extensions['redis'] = client

    with job_lock(7):
        client.lock.return_value.release.assert_not_called()

    client.lock.assert_called_once_with('drive:job:7:reorder', timeout=5, blocking_timeout=1)
    client.lock.return_value.release.assert_called_once()


def test_job_lock_busy_raises_conflict(app, rounds):
    client = mock.MagicMock()
    client.lock.return_value.acquire.return_value = False
    app.extensions['redis'] = client

    with pytest.raises(ConflictError):
        RoundService.reorder(rounds[1].id, 'up')
    assert RoundService.get_round(rounds[1].id).order == 2


def test_job_lock_redis_down_raises_conflict(app):
    client = mock.MagicMock()
    client.lock.return_value.acquire.side_effect = redis.ConnectionError('refused')
    app.extensions['redis'] = client

    with pytest.raises(ConflictError):
        with job_lock(1):
            pass


def test_visible_order_is_unique_in_database(job, rounds):
    from sqlalchemy.exc import IntegrityError

    from drive_engine import db

    db.session.add(Round(job_id=job.id, name='Shadow', order=2, is_removed=False))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()

    db.session.add(Round(job_id=job.id, name='Archived', order=2, is_removed=True))
    db.session.commit()
    assert Round.query.filter_by(job_id=job.id, order=2).count() == 2
