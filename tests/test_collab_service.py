from unittest.mock import MagicMock

import pytest

from codecollab.services.code_execution_service import (
    COMPLETED,
    FAILED,
    PROCESS_ERROR,
    REJECTED,
    TIMEOUT,
    ExecutionResult,
)
from codecollab.services.collab_service import (
    CollaborationController,
    FailureKind,
    SaveOutcome,
    SaveResult,
)
from codecollab.services.room_service import ConnectionId, RoomBroadcaster
from codecollab.services.throttle import ThrottleGate

ALICE = ConnectionId('sid-alice')
BOB = ConnectionId('sid-bob')
EVE = ConnectionId('sid-eve')


class FakeClock:
    def __init__(self):
        self.now = 0

    def __call__(self):
        return self.now


class Outbox:
    def __init__(self):
        self.sent = []

    def __call__(self, event, payload, to):
        self.sent.append((to, event, payload))

    def to(self, connection, event=None):
        return [payload for to, name, payload in self.sent
                if to == connection and (event is None or name == event)]


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def runner():
    return MagicMock()


@pytest.fixture
def persist():
    return MagicMock(return_value=SaveResult(SaveOutcome.SAVED))


def make_controller(outbox, runner, persist, clock, **kwargs):
    return CollaborationController(
        RoomBroadcaster(outbox),
        runner,
        persist=persist,
        throttle_ms=5000,
        gate=ThrottleGate(clock),
        **kwargs
    )


@pytest.fixture
def controller(outbox, runner, persist, clock):
    controller = make_controller(outbox, runner, persist, clock)
    controller.join_session(ALICE, 's1', 'alice')
    controller.join_session(BOB, 's1', 'bob')
    controller.join_session(EVE, 'other', 'eve')
    outbox.sent.clear()
    return controller


def test_join_notifies_existing_members_only(outbox, runner, persist, clock):
    controller = make_controller(outbox, runner, persist, clock)

    controller.join_session(ALICE, 's1', 'alice')
    controller.join_session(BOB, 's1', 'bob')

    assert outbox.to(ALICE) == ['bob']
    assert outbox.to(BOB) == []


def test_join_then_leave(controller, outbox):
    controller.leave_session(BOB, 's1', 'bob')

    assert BOB not in controller.broadcaster.members('s1')
    assert outbox.to(ALICE, 'userLeft') == ['bob']
    assert outbox.to(BOB) == []


def test_code_change_reaches_other_members(controller, outbox, persist):
    controller.code_change(ALICE, {'codingSessionID': 's1', 'code': 'x = 1', 'username': 'alice'})

    assert outbox.to(BOB, 'codeUpdate') == ['x = 1']
    assert outbox.to(ALICE) == []
    assert outbox.to(EVE) == []
    persist.assert_called_once_with('s1', 'x = 1')


def test_rapid_code_changes_are_all_broadcast_but_saved_once(controller, outbox, persist, clock):
    for n in range(3):
        clock.now += 100
        controller.code_change(ALICE, {'codingSessionID': 's1', 'code': f'v{n}'})

    assert outbox.to(BOB, 'codeUpdate') == ['v0', 'v1', 'v2']
    persist.assert_called_once_with('s1', 'v0')


def test_sessions_have_separate_save_windows(controller, persist):
    controller.code_change(ALICE, {'codingSessionID': 's1', 'code': 'a'})
    controller.code_change(EVE, {'codingSessionID': 'other', 'code': 'b'})

    assert persist.call_count == 2


def test_global_scope_shares_one_save_window(outbox, runner, persist, clock):
    controller = make_controller(outbox, runner, persist, clock, throttle_scope='global')

    controller.code_change(ALICE, {'codingSessionID': 's1', 'code': 'a'})
    result = controller.save_snapshot('other', 'b')

    assert result.outcome is SaveOutcome.SKIPPED
    persist.assert_called_once_with('s1', 'a')


def test_save_failure_does_not_block_broadcast(controller, outbox, persist):
    persist.side_effect = RuntimeError('database unreachable')

    controller.code_change(ALICE, {'codingSessionID': 's1', 'code': 'y = 2'})

    assert outbox.to(BOB, 'codeUpdate') == ['y = 2']


def test_save_failure_is_reported_as_result(controller, persist):
    persist.side_effect = RuntimeError('database unreachable')

    result = controller.save_snapshot('s1', 'y = 2')

    assert result.outcome is SaveOutcome.FAILED
    assert result.failure is FailureKind.STORE_ERROR
    assert 'database unreachable' in result.detail


def test_cursor_change_carries_username_and_position(controller, outbox):
    position = {'lineNumber': 3, 'column': 7}

    controller.cursor_change(ALICE, {'codingSessionID': 's1', 'cursorPosition': position, 'username': 'alice'})

    assert outbox.to(BOB, 'cursorChanged') == [{'username': 'alice', 'cursorPosition': position}]
    assert outbox.to(ALICE) == []


def test_missing_fields_propagate_as_none(controller, outbox):
    controller.cursor_change(ALICE, {'codingSessionID': 's1'})

    assert outbox.to(BOB, 'cursorChanged') == [{'username': None, 'cursorPosition': None}]


def test_valid_highlight_is_stripped_to_three_fields(controller, outbox):
    controller.edit_highlight(ALICE, {
        'codingSessionID': 's1',
        'lineNumber': 10,
        'editorId': 'e1',
        'timestamp': 1234,
        'extra': 'ignored',
    })

    assert outbox.to(BOB, 'editHighlight') == [{'lineNumber': 10, 'editorId': 'e1', 'timestamp': 1234}]
    assert outbox.to(ALICE) == []


@pytest.mark.parametrize('payload', [
    {'codingSessionID': 's1', 'lineNumber': 'abc', 'editorId': 'e1', 'timestamp': 1234},
    {'codingSessionID': 's1', 'lineNumber': True, 'editorId': 'e1', 'timestamp': 1234},
    {'codingSessionID': 's1', 'lineNumber': 10, 'timestamp': 1234},
    {'codingSessionID': 's1', 'lineNumber': 10, 'editorId': '', 'timestamp': 1234},
    {'codingSessionID': 's1', 'lineNumber': 10, 'editorId': 'e1'},
    {'codingSessionID': 's1', 'lineNumber': 10, 'editorId': 'e1', 'timestamp': 0},
    None,
    'not a dict',
])
def test_malformed_highlight_is_dropped(controller, outbox, payload):
    controller.edit_highlight(ALICE, payload)

    assert outbox.sent == []


def test_zero_line_number_is_valid(controller, outbox):
    controller.edit_highlight(ALICE, {'codingSessionID': 's1', 'lineNumber': 0, 'editorId': 'e1', 'timestamp': 5})

    assert outbox.to(BOB, 'editHighlight') == [{'lineNumber': 0, 'editorId': 'e1', 'timestamp': 5}]


def test_editor_error_is_relayed_to_others(controller, outbox):
    controller.editor_error(ALICE, {'codingSessionID': 's1', 'errorMessage': 'Formatting failed'})

    assert outbox.to(BOB, 'editorError') == ['Formatting failed']
    assert outbox.to(ALICE) == []


def test_disconnect_leaves_every_room(controller, outbox):
    controller.join_session(ALICE, 'other', 'alice')
    outbox.sent.clear()

    assert controller.disconnect(ALICE) == ['other', 's1']
    assert controller.broadcaster.rooms_of(ALICE) == set()

    controller.code_change(BOB, {'codingSessionID': 's1', 'code': 'z'})
    controller.code_change(EVE, {'codingSessionID': 'other', 'code': 'z'})

    assert outbox.to(ALICE) == []


def test_successful_execution_goes_to_room_and_sender(controller, outbox, runner, persist):
    runner.execute.return_value = ExecutionResult(status=COMPLETED, stdout='Hello World\n')

    controller.execute_code(ALICE, {'codingSessionID': 's1', 'code': 'print("Hello World")', 'username': 'alice'})

    assert outbox.to(BOB) == [('Hello World\n')]
    assert outbox.to(ALICE, 'executionResult') == ['Hello World\n', 'Hello World\n']
    assert outbox.to(ALICE, 'editorError') == []
    assert outbox.to(EVE) == []
    persist.assert_called_once_with('s1', 'print("Hello World")')
    runner.execute.assert_called_once_with('print("Hello World")')


def test_dedupe_delivers_result_to_sender_once(outbox, runner, persist, clock):
    controller = make_controller(outbox, runner, persist, clock, dedupe_sender=True)
    controller.join_session(ALICE, 's1', 'alice')
    runner.execute.return_value = ExecutionResult(status=COMPLETED, stdout='ok\n')

    controller.execute_code(ALICE, {'codingSessionID': 's1', 'code': 'print("ok")'})

    assert outbox.to(ALICE, 'executionResult') == ['ok\n']


def test_dedupe_still_reaches_sender_outside_room(outbox, runner, persist, clock):
    controller = make_controller(outbox, runner, persist, clock, dedupe_sender=True)
    runner.execute.return_value = ExecutionResult(status=COMPLETED, stdout='ok\n')

    controller.execute_code(ALICE, {'codingSessionID': 's1', 'code': 'print("ok")'})

    assert outbox.to(ALICE, 'executionResult') == ['ok\n']


def test_program_error_reports_to_sender_and_room(controller, outbox, runner):
    runner.execute.return_value = ExecutionResult(status=FAILED, stderr='NameError: x\nmore\n', exit_code=1)

    controller.execute_code(ALICE, {'codingSessionID': 's1', 'code': 'x'})

    assert outbox.to(ALICE, 'executionResult') == ['Error: NameError: x\nmore\n']
    assert outbox.to(ALICE, 'editorError') == ['Code execution error: NameError: x'] * 2
    assert outbox.to(BOB, 'editorError') == ['Code execution error: NameError: x']
    assert outbox.to(BOB, 'executionResult') == []


def test_timeout_is_reported_like_program_error(controller, outbox, runner):
    runner.execute.return_value = ExecutionResult(status=TIMEOUT, stderr='Execution timeout exceeded (30 seconds)')

    controller.execute_code(ALICE, {'codingSessionID': 's1', 'code': 'while True: pass'})

    assert outbox.to(BOB, 'editorError') == ['Code execution error: Execution timeout exceeded (30 seconds)']


def test_process_error_uses_editor_error_channel(controller, outbox, runner):
    runner.execute.return_value = ExecutionResult(status=PROCESS_ERROR, stderr='[Errno 2] No such file')

    controller.execute_code(ALICE, {'codingSessionID': 's1', 'code': 'print(1)'})

    assert outbox.to(BOB) == ['Process error: [Errno 2] No such file']
    assert outbox.to(ALICE, 'editorError') == ['Process error: [Errno 2] No such file'] * 2
    assert outbox.to(ALICE, 'executionResult') == []


def test_rejected_execution_only_tells_sender(controller, outbox, runner):
    runner.execute.return_value = ExecutionResult(status=REJECTED, stderr='Too many concurrent executions (limit 8)')

    controller.execute_code(ALICE, {'codingSessionID': 's1', 'code': 'print(1)'})

    assert outbox.to(ALICE) == ['Execution rejected: Too many concurrent executions (limit 8)']
    assert outbox.to(BOB) == []


def test_execute_shares_save_window_with_code_change(controller, persist, runner, clock):
    runner.execute.return_value = ExecutionResult(status=COMPLETED, stdout='')

    controller.code_change(ALICE, {'codingSessionID': 's1', 'code': 'a'})
    clock.now += 10
    controller.execute_code(ALICE, {'codingSessionID': 's1', 'code': 'a'})

    persist.assert_called_once()
    runner.execute.assert_called_once_with('a')


def test_execution_can_run_in_background(outbox, runner, persist, clock):
    background = MagicMock()
    controller = make_controller(outbox, runner, persist, clock, run_in_background=background)

    controller.execute_code(ALICE, {'codingSessionID': 's1', 'code': 'print(1)', 'username': 'alice'})

    runner.execute.assert_not_called()
    background.assert_called_once_with(controller.run_and_report, ALICE, 's1', 'print(1)', 'alice')
