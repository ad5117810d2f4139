"""End-to-end drive flows through the HTTP API."""
import json

import pytest


@pytest.fixture
def drive(job, client, admin, auth_headers):
    """Aptitude=1, Technical=2 created through the admin API."""
    headers = auth_headers(admin)
    ids = []
    for order, name in enumerate(['Aptitude', 'Technical'], start=1):
        response = client.post(f'/api/admin/jobs/{job.id}/rounds', json={'name': name, 'order': order}, headers=headers)
        assert response.status_code == 201
        ids.append(response.get_json()['data']['round']['id'])
    return ids


def poll(client, job, student, auth_headers):
    response = client.get(f'/api/attendance/jobs/{job.id}/my-rounds', headers=auth_headers(student))
    assert response.status_code == 200
    return response.get_json()['data']['rounds']


def start(client, round_id, admin, auth_headers):
    response = client.post(f'/api/admin/rounds/{round_id}/sessions', headers=auth_headers(admin))
    assert response.status_code == 201
    return response.get_json()['data']['session']['id']


def scan(client, value, admin, auth_headers):
    return client.post('/api/attendance/scan', json={'token': value}, headers=auth_headers(admin))


def test_health(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert json.loads(response.data)['status'] == 'healthy'


def test_swagger_spec_served(client):
    response = client.get('/api/swagger.json')
    assert response.status_code == 200
    paths = response.get_json()['paths']
    assert '/attendance/scan' in paths
    assert '/admin/rounds/{round_id}/reorder' in paths


def test_error_envelope(client, admin, auth_headers):
    response = client.get('/api/admin/jobs/999/rounds', headers=auth_headers(admin))

    assert response.status_code == 404
    data = response.get_json()
    assert data['error'] is True
    assert data['status_code'] == 404
    assert data['code'] == 'not_found'
    assert 'Job 999' in data['message']


def test_request_body_must_be_json(client, job, admin, auth_headers):
    response = client.post(f'/api/admin/jobs/{job.id}/rounds', data='name=x', headers=auth_headers(admin))
    assert response.status_code == 400
    assert response.get_json()['code'] == 'validation_error'


def test_sequential_rounds_flow(client, job, drive, admin, student, auth_headers):
    aptitude_id, technical_id = drive
    start(client, aptitude_id, admin, auth_headers)

    rounds = poll(client, job, student, auth_headers)
    assert [r['status'] for r in rounds] == ['ACTIVE', 'NOT_ELIGIBLE']
    t1 = rounds[0]['token']['value']

    verify = client.post('/api/attendance/scan/verify', json={'token': t1}, headers=auth_headers(admin))
    assert verify.status_code == 200
    assert verify.get_json()['data']['student']['name'] == 'Asha Rao'

    response = scan(client, t1, admin, auth_headers)
    assert response.status_code == 201
    body = response.get_json()
    assert body['message'] == 'Attendance recorded for Aptitude'
    attendance_id = body['data']['attendance_id']

    rounds = poll(client, job, student, auth_headers)
    assert [r['status'] for r in rounds] == ['ATTENDED_ATTENDED', 'NOT_ELIGIBLE']

    response = client.put(
        f'/api/admin/attendance/{attendance_id}', json={'status': 'PASSED'}, headers=auth_headers(admin)
    )
    assert response.status_code == 200
    assert response.get_json()['data']['attendance']['status'] == 'PASSED'

    # Technical has no session yet
    rounds = poll(client, job, student, auth_headers)
    assert [r['status'] for r in rounds] == ['ATTENDED_PASSED', 'NOT_STARTED']

    start(client, technical_id, admin, auth_headers)
    rounds = poll(client, job, student, auth_headers)
    assert [r['status'] for r in rounds] == ['ATTENDED_PASSED', 'ACTIVE']
    assert rounds[0]['token'] is None
    t2 = rounds[1]['token']['value']
    assert t2 != t1

    # the Aptitude token stays spent
    response = scan(client, t1, admin, auth_headers)
    assert response.status_code == 409
    assert response.get_json()['code'] == 'token_consumed'

    response = scan(client, t2, admin, auth_headers)
    assert response.status_code == 201
    assert response.get_json()['data']['round']['id'] == technical_id

    listing = client.get(f'/api/admin/jobs/{job.id}/attendance', headers=auth_headers(admin)).get_json()['data']
    assert listing['pagination']['total'] == 2


def test_temp_close_invalidates_tokens_flow(client, job, drive, admin, student, auth_headers):
    aptitude_id, _ = drive
    session_id = start(client, aptitude_id, admin, auth_headers)
    token = poll(client, job, student, auth_headers)[0]['token']['value']

    response = client.put(f'/api/admin/sessions/{session_id}', json={'action': 'TEMP_CLOSE'}, headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.get_json()['data']['session']['status'] == 'TEMP_CLOSED'

    rounds = poll(client, job, student, auth_headers)
    assert rounds[0]['status'] == 'TEMP_CLOSED'
    assert rounds[0]['token'] is None

    response = scan(client, token, admin, auth_headers)
    assert response.status_code == 410
    assert response.get_json()['code'] == 'token_expired'

    response = client.post(f'/api/attendance/rounds/{aptitude_id}/token', headers=auth_headers(student))
    assert response.status_code == 409
    assert response.get_json()['code'] == 'not_active'

    response = client.put(f'/api/admin/sessions/{session_id}', json={'action': 'REOPEN'}, headers=auth_headers(admin))
    assert response.status_code == 200

    response = client.post(f'/api/attendance/rounds/{aptitude_id}/token', headers=auth_headers(student))
    assert response.status_code == 200
    fresh = response.get_json()['data']['token']['value']

    assert scan(client, fresh, admin, auth_headers).status_code == 201


def test_session_transition_errors(client, drive, admin, auth_headers):
    session_id = start(client, drive[0], admin, auth_headers)

    response = client.post(f'/api/admin/rounds/{drive[0]}/sessions', headers=auth_headers(admin))
    assert response.status_code == 409
    assert response.get_json()['code'] == 'invalid_state'

    response = client.put(f'/api/admin/sessions/{session_id}', json={'action': 'REOPEN'}, headers=auth_headers(admin))
    assert response.status_code == 409

    response = client.put(f'/api/admin/sessions/{session_id}', json={'action': 'SNOOZE'}, headers=auth_headers(admin))
    assert response.status_code == 400


def test_round_management_endpoints(client, job, drive, admin, auth_headers):
    headers = auth_headers(admin)
    aptitude_id, technical_id = drive

    response = client.post(f'/api/admin/jobs/{job.id}/rounds', json={'name': 'HR', 'order': 2}, headers=headers)
    assert response.status_code == 409

    response = client.patch(f'/api/admin/rounds/{technical_id}', json={'name': 'Coding Interview'}, headers=headers)
    assert response.get_json()['data']['round']['name'] == 'Coding Interview'

    response = client.post(f'/api/admin/rounds/{technical_id}/reorder', json={'direction': 'up'}, headers=headers)
    assert response.status_code == 200
    assert response.get_json()['data']['round']['order'] == 1
    assert response.get_json()['data']['swapped_with']['id'] == aptitude_id

    response = client.post(f'/api/admin/rounds/{technical_id}/reorder', json={'direction': 'up'}, headers=headers)
    assert response.status_code == 409

    response = client.post(f'/api/admin/rounds/{technical_id}/remove', headers=headers)
    assert response.get_json()['data']['round']['is_removed'] is True

    rounds = client.get(f'/api/admin/jobs/{job.id}/rounds', headers=headers).get_json()['data']['rounds']
    assert [(r['name'], r['order'], r['is_removed']) for r in rounds] == [
        ('Aptitude', 1, False), ('Coding Interview', 1, True)
    ]

    response = client.post(f'/api/admin/rounds/{technical_id}/restore', headers=headers)
    assert response.get_json()['data']['round']['order'] == 2

    sessions = client.get(f'/api/admin/jobs/{job.id}/sessions', headers=headers).get_json()['data']['sessions']
    assert sessions == []


def test_scan_requires_admin(client, student, auth_headers):
    response = client.post('/api/attendance/scan', json={'token': 'x'}, headers=auth_headers(student))
    assert response.status_code == 403


def test_unknown_scan_token(client, admin, auth_headers):
    response = scan(client, 'made-up', admin, auth_headers)
    assert response.status_code == 404
    assert response.get_json()['code'] == 'token_not_found'


def test_reorder_retries_once_after_lost_race(client, job, drive, admin, auth_headers, monkeypatch):
    from drive_engine.services.round_service import RoundService
    from drive_engine.utils.errors import ConflictError

    aptitude_id, technical_id = drive
    original = RoundService.reorder
    calls = []

    def reorder(round_id, direction, admin_id=None):
        calls.append(round_id)
        if len(calls) == 1:
            raise ConflictError("Round order changed concurrently; retry the reorder")
        return original(round_id, direction, admin_id=admin_id)

    monkeypatch.setattr(RoundService, 'reorder', staticmethod(reorder))

    response = client.post(f'/api/admin/rounds/{technical_id}/reorder', json={'direction': 'up'}, headers=auth_headers(admin))

    assert response.status_code == 200
    assert calls == [technical_id, technical_id]
    rounds = client.get(f'/api/admin/jobs/{job.id}/rounds', headers=auth_headers(admin)).get_json()['data']['rounds']
    assert [(r['id'], r['order']) for r in rounds] == [(technical_id, 1), (aptitude_id, 2)]


def test_reorder_gives_up_after_second_conflict(client, job, drive, admin, auth_headers, monkeypatch):
    from drive_engine.services.round_service import RoundService
    from drive_engine.utils.errors import ConflictError

    def reorder(round_id, direction, admin_id=None):
        raise ConflictError("Round order changed concurrently; retry the reorder")

    monkeypatch.setattr(RoundService, 'reorder', staticmethod(reorder))

    response = client.post(f'/api/admin/rounds/{drive[1]}/reorder', json={'direction': 'up'}, headers=auth_headers(admin))

    assert response.status_code == 409
    assert response.get_json()['code'] == 'conflict'
