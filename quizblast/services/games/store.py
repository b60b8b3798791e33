"""Session storage behind one interface.

The game rules in ``progression`` and ``scoring`` never talk to storage
directly; ``GameService`` drives them against a ``SessionStore``. Stores
publish every change to subscribed listeners in the order it was applied,
which is how the Socket.IO layer keeps every screen on the same stage.
"""
import copy
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

from .errors import DuplicateSubmission, SessionNotFound, StaleStateError
from .progression import accepts_submissions
from .scoring import apply_to_player
from .state import GameSession, PlayerState, Submission

logger = logging.getLogger(__name__)

EVENT_GAME_CREATED = 'game_created'
EVENT_PLAYER_JOINED = 'player_joined'
EVENT_ANSWER_SUBMITTED = 'answer_submitted'

Listener = Callable[[str, GameSession], None]


class SessionStore(ABC):

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self, event: str, session: GameSession) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                # The change is already committed; a failed broadcast must not undo it
                logger.exception(f"[publish-failed] game={session.game_code} event={event}")

    @abstractmethod
    def code_in_use(self, code: str) -> bool:
        ...

    @abstractmethod
    def add_session(self, session: GameSession) -> GameSession:
        ...

    @abstractmethod
    def get_session(self, code: str) -> Optional[GameSession]:
        ...

    @abstractmethod
    def get_session_for_player(self, player_id) -> Optional[GameSession]:
        ...

    @abstractmethod
    def add_player(self, code: str, nickname: str, now: float, token: str = '') -> PlayerState:
        ...

    @abstractmethod
    def update_progress(self, session: GameSession, event: str, expected_stage: str, expected_index: int) -> None:
        """Persist stage, status, question index and timestamps in one step.

        The write only happens while the stored game is still at
        ``expected_stage``/``expected_index``; otherwise StaleStateError is
        raised and nothing changes.
        """

    @abstractmethod
    def get_submission(self, player_id, question_index: int) -> Optional[Submission]:
        ...

    @abstractmethod
    def record_submission(self, code: str, submission: Submission) -> PlayerState:
        """Insert the submission and apply it to the player's score and streak.

        Raises DuplicateSubmission when the player already answered that
        question, and StaleStateError when the game no longer accepts answers
        for it; nothing is changed in either case.
        """

    @abstractmethod
    def list_submissions(self, code: str, question_index: Optional[int] = None) -> List[Submission]:
        ...


class InMemoryStore(SessionStore):
    """Process-local store for single-process hosting and tests."""

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.RLock()
        self._sessions: Dict[str, GameSession] = {}
        self._player_codes: Dict[int, str] = {}
        self._submissions: Dict[Tuple[int, int], Submission] = {}
        self._submission_codes: Dict[Tuple[int, int], str] = {}
        self._player_ids = itertools.count(1)

    def code_in_use(self, code: str) -> bool:
        with self._lock:
            return code in self._sessions

    def add_session(self, session: GameSession) -> GameSession:
        with self._lock:
            self._sessions[session.game_code] = copy.deepcopy(session)
            self._publish(EVENT_GAME_CREATED, copy.deepcopy(session))
            return copy.deepcopy(session)

    def get_session(self, code: str) -> Optional[GameSession]:
        with self._lock:
            session = self._sessions.get(code)
            return copy.deepcopy(session) if session else None

    def get_session_for_player(self, player_id) -> Optional[GameSession]:
        with self._lock:
            code = self._player_codes.get(player_id)
            return self.get_session(code) if code else None

    def _stored(self, code: str) -> GameSession:
        session = self._sessions.get(code)
        if session is None:
            raise SessionNotFound(f'Game {code} not found')
        return session

    def add_player(self, code: str, nickname: str, now: float, token: str = '') -> PlayerState:
        with self._lock:
            session = self._stored(code)
            player = PlayerState(id=next(self._player_ids), nickname=nickname, joined_at=now, token=token)
            session.players.append(player)
            self._player_codes[player.id] = code
            self._publish(EVENT_PLAYER_JOINED, copy.deepcopy(session))
            return copy.deepcopy(player)

    def update_progress(self, session: GameSession, event: str, expected_stage: str, expected_index: int) -> None:
        with self._lock:
            stored = self._stored(session.game_code)
            if (stored.stage, stored.current_question_index) != (expected_stage, expected_index):
                raise StaleStateError('The game has moved on since this action was requested')
            stored.stage = session.stage
            stored.status = session.status
            stored.current_question_index = session.current_question_index
            stored.question_started_at = session.question_started_at
            stored.ended_at = session.ended_at
            self._publish(event, copy.deepcopy(stored))

    def get_submission(self, player_id, question_index: int) -> Optional[Submission]:
        with self._lock:
            submission = self._submissions.get((player_id, question_index))
            return copy.deepcopy(submission) if submission else None

    def record_submission(self, code: str, submission: Submission) -> PlayerState:
        key = (submission.player_id, submission.question_index)
        with self._lock:
            existing = self._submissions.get(key)
            if existing is not None:
                raise DuplicateSubmission(copy.deepcopy(existing))
            session = self._stored(code)
            player = session.player(submission.player_id)
            if player is None:
                raise SessionNotFound(f'Player {submission.player_id} is not in game {code}')
            if not accepts_submissions(session, submission.question_index):
                raise StaleStateError('Answers are not being accepted right now')
            self._submissions[key] = copy.deepcopy(submission)
            self._submission_codes[key] = code
            apply_to_player(player, submission)
            self._publish(EVENT_ANSWER_SUBMITTED, copy.deepcopy(session))
            return copy.deepcopy(player)

    def list_submissions(self, code: str, question_index: Optional[int] = None) -> List[Submission]:
        with self._lock:
            return [
                copy.deepcopy(s)
                for key, s in self._submissions.items()
                if self._submission_codes.get(key) == code
                and (question_index is None or s.question_index == question_index)
            ]
