import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from celery.result import EagerResult

from codecollab.services.code_execution_service import PROCESS_ERROR, REJECTED
from codecollab.services.room_service import ConnectionId
from codecollab.services.throttle import SKIPPED, ThrottleGate
from codecollab.tasks.session_tasks import append_version_task

logger = logging.getLogger(__name__)

# Client -> server
JOIN_SESSION = 'joinSession'
CODE_CHANGE = 'codeChange'
CURSOR_CHANGE = 'cursorChange'
EXECUTE_CODE = 'executeCode'
EDIT_HIGHLIGHT = 'editHighlight'
EDITOR_ERROR = 'editorError'
LEAVE_SESSION = 'leaveSession'

# Server -> client
USER_JOINED = 'userJoined'
CODE_UPDATE = 'codeUpdate'
CURSOR_CHANGED = 'cursorChanged'
EXECUTION_RESULT = 'executionResult'
USER_LEFT = 'userLeft'


class SaveOutcome(Enum):
    SAVED = 'saved'
    SKIPPED = 'skipped'
    FAILED = 'failed'


class FailureKind(Enum):
    QUEUE_UNAVAILABLE = 'queue_unavailable'
    STORE_ERROR = 'store_error'
    NOT_FOUND = 'not_found'


@dataclass(frozen=True)
class SaveResult:
    outcome: SaveOutcome
    failure: Optional[FailureKind] = None
    detail: str = ''


def queue_snapshot(session_id, code) -> SaveResult:
    """Hand a snapshot to the task queue for appending to the session."""
    try:
        result = append_version_task.delay(session_id, code)
    except Exception as e:
        return SaveResult(SaveOutcome.FAILED, FailureKind.QUEUE_UNAVAILABLE, str(e))

    # eager runs (tests, CELERY_TASK_ALWAYS_EAGER) already know how it went
    if isinstance(result, EagerResult):
        if result.failed():
            return SaveResult(SaveOutcome.FAILED, FailureKind.STORE_ERROR, str(result.result))
        if result.result.get('status') == 'NOT_FOUND':
            return SaveResult(SaveOutcome.FAILED, FailureKind.NOT_FOUND, f'Session {session_id} not found')

    return SaveResult(SaveOutcome.SAVED)


def _field(params, name):
    if isinstance(params, dict):
        return params.get(name)
    return None


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class CollaborationController:
    """Handles the events of a live coding session.

    Every handler is fire-and-forget: nothing is returned to the client and
    no failure is raised back to the transport. Code changes are always
    broadcast; persisting them goes through a throttle that drops calls
    arriving inside an open window.
    """

    def __init__(self, broadcaster, runner, persist=queue_snapshot, throttle_ms=5000,
                 throttle_scope='session', dedupe_sender=False, run_in_background=None,
                 gate=None):
        self.broadcaster = broadcaster
        self.runner = runner
        self.dedupe_sender = dedupe_sender
        self._persist = persist
        self._run_in_background = run_in_background
        self.gate = gate or ThrottleGate()

        key = None
        if throttle_scope == 'session':
            key = lambda session_id, code: session_id
        self._throttled_save = self.gate.wrap(self._save_version, throttle_ms, key=key)

    @classmethod
    def from_config(cls, config, broadcaster, runner, run_in_background=None):
        return cls(
            broadcaster,
            runner,
            throttle_ms=config['COLLAB_THROTTLE_MS'],
            throttle_scope=config['COLLAB_THROTTLE_SCOPE'],
            dedupe_sender=config['COLLAB_DEDUPE_SENDER'],
            run_in_background=run_in_background if config['COLLAB_EXECUTE_IN_BACKGROUND'] else None,
        )

    # -- persistence ------------------------------------------------------

    def _save_version(self, session_id, code) -> SaveResult:
        try:
            return self._persist(session_id, code)
        except Exception as e:
            return SaveResult(SaveOutcome.FAILED, FailureKind.STORE_ERROR, str(e))

    def save_snapshot(self, session_id, code) -> SaveResult:
        result = self._throttled_save(session_id, code)
        if result is SKIPPED:
            return SaveResult(SaveOutcome.SKIPPED)

        if result.outcome is SaveOutcome.FAILED:
            # the live session carries on without this snapshot
            logger.error(f"Snapshot for session {session_id} not saved ({result.failure.value}): {result.detail}")
        return result

    # -- presence -----------------------------------------------------------

    def join_session(self, connection: ConnectionId, session_id, username):
        self.broadcaster.join(connection, session_id)
        self.broadcaster.broadcast_to_others(connection, session_id, USER_JOINED, username)

    def leave_session(self, connection: ConnectionId, session_id, username):
        self.broadcaster.leave(connection, session_id)
        self.broadcaster.broadcast_to_others(connection, session_id, USER_LEFT, username)

    def disconnect(self, connection: ConnectionId):
        return self.broadcaster.leave_all(connection)

    # -- editing ------------------------------------------------------------

    def code_change(self, connection: ConnectionId, params):
        session_id = _field(params, 'codingSessionID')
        code = _field(params, 'code')

        self.broadcaster.broadcast_to_others(connection, session_id, CODE_UPDATE, code)
        self.save_snapshot(session_id, code)

    def cursor_change(self, connection: ConnectionId, params):
        self.broadcaster.broadcast_to_others(
            connection,
            _field(params, 'codingSessionID'),
            CURSOR_CHANGED,
            {
                'username': _field(params, 'username'),
                'cursorPosition': _field(params, 'cursorPosition'),
            },
        )

    def edit_highlight(self, connection: ConnectionId, params):
        line_number = _field(params, 'lineNumber')
        editor_id = _field(params, 'editorId')
        timestamp = _field(params, 'timestamp')

        if not _is_number(line_number) or not editor_id or not timestamp:
            logger.debug(f"Dropped malformed editHighlight from {connection}")
            return

        self.broadcaster.broadcast_to_others(
            connection,
            _field(params, 'codingSessionID'),
            EDIT_HIGHLIGHT,
            {'lineNumber': line_number, 'editorId': editor_id, 'timestamp': timestamp},
        )

    def editor_error(self, connection: ConnectionId, params):
        self.broadcaster.broadcast_to_others(
            connection,
            _field(params, 'codingSessionID'),
            EDITOR_ERROR,
            _field(params, 'errorMessage'),
        )

    # -- execution ----------------------------------------------------------

    def execute_code(self, connection: ConnectionId, params):
        session_id = _field(params, 'codingSessionID')
        code = _field(params, 'code')
        username = _field(params, 'username')

        self.save_snapshot(session_id, code)

        if self._run_in_background:
            self._run_in_background(self.run_and_report, connection, session_id, code, username)
        else:
            self.run_and_report(connection, session_id, code, username)

    def run_and_report(self, connection: ConnectionId, session_id, code, username=None):
        logger.info(f"Session {session_id}: executing code for {username or connection}")
        result = self.runner.execute(code)

        if result.succeeded:
            self._to_room_and_sender(connection, session_id, EXECUTION_RESULT, result.stdout)
        elif result.is_program_error:
            logger.warning(f"Session {session_id}: program error: {result.error_line}")
            self.broadcaster.send(connection, EXECUTION_RESULT, f"Error: {result.stderr}")
            self._to_room_and_sender(
                connection, session_id, EDITOR_ERROR, f"Code execution error: {result.error_line}"
            )
        elif result.status == REJECTED:
            self.broadcaster.send(connection, EDITOR_ERROR, f"Execution rejected: {result.stderr}")
        elif result.status == PROCESS_ERROR:
            logger.error(f"Session {session_id}: process error: {result.stderr}")
            self._to_room_and_sender(connection, session_id, EDITOR_ERROR, f"Process error: {result.stderr}")

        return result

    def _to_room_and_sender(self, connection, session_id, event, payload):
        self.broadcaster.broadcast_to_all(session_id, event, payload)
        if self.dedupe_sender and connection in self.broadcaster.members(session_id):
            return
        self.broadcaster.send(connection, event, payload)
