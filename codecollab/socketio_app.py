from flask_socketio import SocketIO

socketio = SocketIO()


def init_socketio(app):
    """Attach Socket.IO to the Flask app using its transport settings"""
    socketio.init_app(
        app,
        async_mode=app.config['SOCKETIO_ASYNC_MODE'],
        message_queue=app.config['SOCKETIO_MESSAGE_QUEUE'],
        cors_allowed_origins=app.config['CORS_ALLOWED_ORIGINS'],
    )
    return socketio
