import logging
from codecollab.celery_app import celery
from codecollab.services.code_session_service import Session_Service

logger = logging.getLogger(__name__)


# Snapshots are never retried: a failed save is dropped and the next
# throttle window carries a newer one anyway.
@celery.task(name='append_version_task', bind=True, max_retries=0)
def append_version_task(self, session_id, snapshot):
    session = Session_Service.append_version(session_id, snapshot)

    if session is None:
        logger.error(f"Session {session_id} not found, snapshot dropped")
        return {'session_id': str(session_id), 'status': 'NOT_FOUND'}

    return {
        'session_id': session['session_id'],
        'status': 'SAVED',
        'version_count': len(session['versions'])
    }
