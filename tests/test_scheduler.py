import pytest

from conftest import ADMIN
from quizblast.services.games import scheduler


@pytest.fixture()
def timed_app(flask_app, clock, monkeypatch):
    flask_app.config['ENABLE_SCHEDULER_IN_TESTS'] = True
    slept = []

    def fake_sleep(seconds):
        slept.append(seconds)
        clock.advance(seconds)

    monkeypatch.setattr(scheduler.time, 'sleep', fake_sleep)
    return flask_app, slept


def _started_game(client, quiz_payload):
    quiz = client.post('/api/quizzes', json=quiz_payload, headers=ADMIN).get_json()
    code = client.post('/api/games/create', json={'quiz_id': quiz['id']}, headers=ADMIN).get_json()['game_code']
    client.post('/api/games/join', json={'game_code': code, 'nickname': 'Ada'})
    client.post(f'/api/games/{code}/start', headers=ADMIN)
    return code


def test_question_closes_when_time_runs_out(timed_app, client, quiz_payload):
    _, slept = timed_app
    code = _started_game(client, quiz_payload)
    assert slept == [20]
    state = client.get(f'/api/games/{code}/state').get_json()
    assert state['stage'] == 'question_results'
    assert state['current_question_index'] == 0


def test_heartbeat_splits_the_wait(timed_app, client, quiz_payload):
    flask_app, slept = timed_app
    flask_app.config['TIMER_HEARTBEAT_SEC'] = 8
    code = _started_game(client, quiz_payload)
    assert slept == [8, 8, 4]
    assert client.get(f'/api/games/{code}/state').get_json()['stage'] == 'question_results'


def test_timer_is_scheduled_once_per_question(timed_app, client, quiz_payload, monkeypatch):
    flask_app, slept = timed_app
    monkeypatch.setattr(scheduler, '_scheduled_question_keys', {('ABC123', 0)})
    scheduler.schedule_question_timer(flask_app, 'ABC123', 0, 20)
    assert slept == []


def test_disabled_auto_close_leaves_question_open(timed_app, client, quiz_payload):
    flask_app, slept = timed_app
    flask_app.config['AUTO_CLOSE_QUESTIONS'] = False
    code = _started_game(client, quiz_payload)
    assert slept == []
    assert client.get(f'/api/games/{code}/state').get_json()['stage'] == 'question_active'
