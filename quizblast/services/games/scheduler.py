import time
from typing import Set, Tuple

from quizblast import socketio
from .progression import EVENT_QUESTION_STARTED


_scheduled_question_keys: Set[Tuple[str, int]] = set()


def schedule_question_timer(app, game_code: str, question_index: int, duration: int) -> None:
    """Schedule the auto-close of question ``question_index`` after ``duration`` seconds.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single timer per (game_code, question_index)
    - The timer only asks the service to expire the question; the service
      re-checks the authoritative start time and current index before closing
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return
    if not app.config.get('AUTO_CLOSE_QUESTIONS', True):
        return

    key = (game_code, question_index)
    if key in _scheduled_question_keys:
        app.logger.info(f"[timer-skip] game={game_code} index={question_index} already scheduled")
        return
    _scheduled_question_keys.add(key)
    app.logger.info(f"[timer-set] game={game_code} index={question_index} duration={duration}s")

    def _worker(gid: str, expected_index: int, delay: int):
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0) or 0)
        if hb > 0:
            slept = 0
            while slept < delay:
                step = min(hb, delay - slept)
                time.sleep(step)
                slept += step
                app.logger.info(
                    f"[timer-heartbeat] game={gid} index={expected_index} remaining={max(0, delay - slept)}s"
                )
        else:
            time.sleep(delay)
        with app.app_context():
            _scheduled_question_keys.discard((gid, expected_index))
            service = app.extensions['quizblast']
            closed = service.expire_question(gid, expected_index)
            if closed:
                app.logger.info(f"[timer-fire] game={gid} index={expected_index} closed")
            else:
                app.logger.info(f"[timer-abort] game={gid} index={expected_index} question already moved on")

    if app.config.get('TESTING'):
        _worker(game_code, question_index, duration)
    else:
        socketio.start_background_task(_worker, game_code, question_index, duration)


def question_timer_listener(app):
    """Store listener that starts a countdown whenever a question opens."""
    def _listener(event, session):
        if event != EVENT_QUESTION_STARTED or session is None or session.current_question is None:
            return
        schedule_question_timer(app, session.game_code, session.current_question_index, session.current_question.time_limit)
    return _listener
