from flask_restx import Namespace, Resource, fields
from codecollab.services.code_session_service import Session_Service
from codecollab.socketio_app import socketio

# Create namespace
ns = Namespace('sessions', description='Collaborative coding session operations')

# Define models for Swagger documentation
session_create_model = ns.model('SessionCreate', {
    'username': fields.String(required=True, description='Username of the session owner')
})

version_model = ns.model('VersionCreate', {
    'version': fields.String(required=True, description='Code snapshot to append')
})

session_response_model = ns.model('SessionResponse', {
    'session_id': fields.String(description='Session ID'),
    'owner': fields.String(description='Username of the session owner'),
    'versions': fields.List(fields.String, description='Code snapshots, oldest first'),
    'created_at': fields.String(description='Creation timestamp'),
    'updated_at': fields.String(description='Update timestamp')
})

error_model = ns.model('Error', {
    'message': fields.String(description='Error message')
})


def _notify(session, change_type):
    socketio.emit('sessionUpdate', {'session': session, 'type': change_type})


def _append_version(session_id):
    data = ns.payload or {}
    version = data.get('version')

    if not isinstance(version, str) or version.strip() == '':
        ns.abort(400, 'Invalid version in request body')

    session = Session_Service.append_version(session_id, version)

    if session is None:
        ns.abort(404, 'Session not found')

    _notify(session, 'updated')
    return session, 200


@ns.route('')
class SessionList(Resource):
    @ns.doc('create_session')
    @ns.expect(session_create_model, validate=False)
    @ns.marshal_with(session_response_model, code=201)
    @ns.response(201, 'Session created successfully')
    @ns.response(400, 'Missing username', error_model)
    def post(self):
        """Create a new collaborative coding session

        Example payload:
        {
            "username": "ada"
        }
        """
        data = ns.payload or {}
        username = data.get('username')

        if not username:
            ns.abort(400, 'Missing username')

        session = Session_Service.create_session(owner=username)
        _notify(session, 'created')
        return session, 201


@ns.route('/<string:session_id>')
@ns.param('session_id', 'The session identifier')
class SessionDetail(Resource):
    @ns.doc('get_session')
    @ns.marshal_with(session_response_model)
    @ns.response(404, 'Session not found', error_model)
    def get(self, session_id):
        """Get a session with its full version history"""
        result = Session_Service.get_session(session_id=session_id)

        if result is None:
            ns.abort(404, "Session not found")

        return result, 200

    @ns.doc('update_session')
    @ns.expect(version_model, validate=False)
    @ns.marshal_with(session_response_model)
    @ns.response(400, 'Invalid version', error_model)
    @ns.response(404, 'Session not found', error_model)
    def patch(self, session_id):
        """Append a code snapshot to the session"""
        return _append_version(session_id)


@ns.route('/<string:session_id>/versions')
@ns.param('session_id', 'The session identifier')
class SessionVersions(Resource):
    @ns.doc('add_version')
    @ns.expect(version_model, validate=False)
    @ns.marshal_with(session_response_model)
    @ns.response(400, 'Invalid version', error_model)
    @ns.response(404, 'Session not found', error_model)
    def post(self, session_id):
        """Append a code snapshot to the session"""
        return _append_version(session_id)


@ns.route('/<string:username>/sessions')
@ns.param('username', 'The session owner')
class UserSessionList(Resource):
    @ns.doc('get_user_sessions')
    @ns.marshal_list_with(session_response_model)
    def get(self, username):
        """List the sessions created by a user, newest first"""
        return Session_Service.get_user_sessions(username), 200
