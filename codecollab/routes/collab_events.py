import logging
from flask import current_app, request
from codecollab.services.collab_service import (
    CODE_CHANGE,
    CURSOR_CHANGE,
    EDIT_HIGHLIGHT,
    EDITOR_ERROR,
    EXECUTE_CODE,
    JOIN_SESSION,
    LEAVE_SESSION,
)
from codecollab.services.room_service import ConnectionId
from codecollab.socketio_app import socketio

logger = logging.getLogger(__name__)


def _controller():
    return current_app.extensions['collab']


def _connection():
    return ConnectionId(request.sid)


@socketio.on('connect')
def on_connect(auth=None):
    logger.info(f"Client connected -> {request.sid}")


@socketio.on(JOIN_SESSION)
def on_join_session(session_id=None, username=None):
    _controller().join_session(_connection(), session_id, username)


@socketio.on(CODE_CHANGE)
def on_code_change(params=None):
    _controller().code_change(_connection(), params)


@socketio.on(CURSOR_CHANGE)
def on_cursor_change(params=None):
    _controller().cursor_change(_connection(), params)


@socketio.on(EXECUTE_CODE)
def on_execute_code(params=None):
    _controller().execute_code(_connection(), params)


@socketio.on(EDIT_HIGHLIGHT)
def on_edit_highlight(params=None):
    _controller().edit_highlight(_connection(), params)


@socketio.on(EDITOR_ERROR)
def on_editor_error(params=None):
    _controller().editor_error(_connection(), params)


@socketio.on(LEAVE_SESSION)
def on_leave_session(session_id=None, username=None):
    _controller().leave_session(_connection(), session_id, username)


@socketio.on('disconnect')
def on_disconnect(*args):
    rooms = _controller().disconnect(_connection())
    logger.info(f"Client disconnected -> {request.sid} (left {len(rooms)} rooms)")
