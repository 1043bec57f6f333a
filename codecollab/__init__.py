import logging
from flask import Flask, jsonify
from codecollab.config import Config
from codecollab.models.db import db
from codecollab.celery_app import init_celery
from codecollab.socketio_app import socketio, init_socketio
from codecollab.api import api


def create_app(config_object=Config):
    logging.basicConfig(level=logging.INFO)

    app = Flask(__name__)
    app.config.from_object(config_object)

    db.init_app(app)
    init_celery(app)

    # Socket.IO handlers must be registered before the server is created
    from codecollab.routes import collab_events  # noqa: F401
    init_socketio(app)

    with app.app_context():
        from codecollab.models import code_sessions_model, session_version_model  # noqa: F401
        db.create_all()

    from codecollab.services.room_service import RoomBroadcaster
    from codecollab.services.code_execution_service import CodeExecutionService
    from codecollab.services.collab_service import CollaborationController

    app.extensions['collab'] = CollaborationController.from_config(
        app.config,
        broadcaster=RoomBroadcaster(socketio.emit),
        runner=CodeExecutionService.from_config(app.config),
        run_in_background=socketio.start_background_task,
    )

    # Register API namespaces once, then bind them to this app
    from codecollab.routes.session_api import ns as session_ns
    if session_ns not in api.namespaces:
        api.add_namespace(session_ns, path='/sessions')

    # Initialize API with Swagger
    api.init_app(app)

    from codecollab.routes import health_routes
    app.register_blueprint(health_routes.bp)

    @app.route("/")
    def home():
        return jsonify({
            "message": "CodeCollab API is running!",
            "status": "success",
            "documentation": "/docs"
        })

    @app.route("/health")
    def health():
        return jsonify({"status": "healthy"})

    return app
