import uuid
import logging
from datetime import datetime
from sqlalchemy.exc import IntegrityError
from codecollab.models.db import db
from codecollab.models.code_sessions_model import CodeSession
from codecollab.models.session_version_model import SessionVersion

logger = logging.getLogger(__name__)


def _to_uuid(session_id):
    if isinstance(session_id, uuid.UUID):
        return session_id
    try:
        return uuid.UUID(str(session_id))
    except (ValueError, TypeError):
        return None


def _serialize(session):
    return {
        "session_id": str(session.id),
        "owner": session.owner,
        "versions": [version.code for version in session.versions],
        "created_at": session.created_at.isoformat(),
        "updated_at": session.updated_at.isoformat()
    }


class Session_Service:
    @staticmethod
    def create_session(owner=None):
        new_code_session = CodeSession(owner=owner)
        #adding new code session to database
        db.session.add(new_code_session)
        db.session.commit()

        logger.info(f"Session {new_code_session.id} created by {owner or 'anonymous'}")

        return _serialize(new_code_session)

    #get a coding session by session_id
    @staticmethod
    def get_session(session_id):
        key = _to_uuid(session_id)
        if key is None:
            return None

        session = db.session.get(CodeSession, key)

        if not session:
            return None

        return _serialize(session)

    @staticmethod
    def get_user_sessions(owner):
        sessions = CodeSession.query.filter_by(owner=owner).order_by(CodeSession.created_at.desc()).all()

        return [_serialize(session) for session in sessions]

    #append a snapshot to the end of the version history
    @staticmethod
    def append_version(session_id, snapshot):
        key = _to_uuid(session_id)
        if key is None:
            return None

        for attempt in range(2):
            code_session = db.session.get(CodeSession, key)

            if not code_session:
                return None

            code_session.versions.append(SessionVersion(
                position=len(code_session.versions),
                code=snapshot
            ))
            code_session.updated_at = datetime.utcnow()
            try:
                db.session.commit()
                break
            except IntegrityError:
                # another writer took this position first
                db.session.rollback()
                if attempt:
                    raise
                logger.warning(f"Session {key}: version position taken, retrying")

        logger.info(f"Session {code_session.id}: version {len(code_session.versions)} saved")

        return _serialize(code_session)
