from conftest import ADMIN
from quizblast import socketio


def _events(sio_client, name):
    return [pkt['args'][0] for pkt in sio_client.get_received('/ws') if pkt['name'] == name]


def _host_game(client, quiz_payload):
    quiz = client.post('/api/quizzes', json=quiz_payload, headers=ADMIN).get_json()
    res = client.post('/api/games/create', json={'quiz_id': quiz['id']}, headers=ADMIN)
    return res.get_json()['game_code']


def test_socket_connect_and_join(sio_client):
    # Ensure we are connected to /ws
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')

    sio_client.emit('join_game', {'game_code': 'abcd12'}, namespace='/ws')
    received = sio_client.get_received('/ws')
    names = [pkt['name'] for pkt in received]
    assert 'joined' in names
    joined = next(pkt['args'][0] for pkt in received if pkt['name'] == 'joined')
    assert joined['room'] == 'game:ABCD12'


def test_join_game_requires_code(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('join_game', {}, namespace='/ws')
    errors = _events(sio_client, 'error')
    assert errors and errors[0]['message'] == 'game_code is required'


def test_late_viewer_gets_snapshot(client, sio_client, quiz_payload):
    code = _host_game(client, quiz_payload)
    sio_client.get_received('/ws')
    sio_client.emit('join_game', {'game_code': code, 'is_host': True}, namespace='/ws')
    updates = _events(sio_client, 'state_update')
    assert len(updates) == 1
    assert updates[0]['event'] == 'snapshot'
    assert updates[0]['game']['stage'] == 'lobby'
    assert updates[0]['game']['remaining_seconds'] == 0


def test_room_receives_every_change(client, sio_client, quiz_payload):
    code = _host_game(client, quiz_payload)
    sio_client.emit('join_game', {'game_code': code}, namespace='/ws')
    sio_client.get_received('/ws')

    ada = client.post('/api/games/join', json={'game_code': code, 'nickname': 'Ada'}).get_json()
    updates = _events(sio_client, 'state_update')
    assert [u['event'] for u in updates] == ['player_joined']
    assert [p['nickname'] for p in updates[0]['game']['players']] == ['Ada']

    client.post(f'/api/games/{code}/start', headers=ADMIN)
    updates = _events(sio_client, 'state_update')
    assert [u['event'] for u in updates] == ['question_started']
    question = updates[0]['game']['current_question']
    assert question['id'] == 'q1'
    assert all('is_correct' not in a for a in question['answers'])

    client.post(f'/api/games/{code}/answers', json={
        'player_id': ada['id'],
        'player_token': ada['player_token'],
        'question_index': 0,
        'answer_id': 'a1',
    })
    client.post(f'/api/games/{code}/close', headers=ADMIN)
    updates = _events(sio_client, 'state_update')
    assert [u['event'] for u in updates] == ['answer_submitted', 'question_closed']
    assert updates[-1]['game']['stage'] == 'question_results'
    assert any(a['is_correct'] for a in updates[-1]['game']['current_question']['answers'])


def test_other_rooms_stay_quiet(flask_app, client, sio_client, quiz_payload):
    code = _host_game(client, quiz_payload)
    other = _host_game(client, quiz_payload)
    sio_client.emit('join_game', {'game_code': other}, namespace='/ws')
    sio_client.get_received('/ws')

    client.post('/api/games/join', json={'game_code': code, 'nickname': 'Ada'})
    assert _events(sio_client, 'state_update') == []

    sio_client.emit('leave_game', {'game_code': other}, namespace='/ws')
    assert _events(sio_client, 'left')[0]['room'] == f'game:{other}'
    client.post('/api/games/join', json={'game_code': other, 'nickname': 'Bob'})
    assert _events(sio_client, 'state_update') == []


def test_ping(flask_app):
    test_client = socketio.test_client(flask_app, namespace='/ws')
    test_client.get_received('/ws')
    test_client.emit('ping', {'n': 1}, namespace='/ws')
    assert _events(test_client, 'pong') == [{'n': 1}]
    test_client.disconnect(namespace='/ws')
