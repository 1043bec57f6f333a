from celery import Celery, Task
from flask import has_app_context


class ContextTask(Task):
    def __call__(self, *args, **kwargs):
        # eager tasks started from a request or socket handler already have one
        if has_app_context():
            return self.run(*args, **kwargs)
        with self.app.flask_app.app_context():
            return self.run(*args, **kwargs)


celery = Celery('codecollab', task_cls=ContextTask)
celery.flask_app = None


def init_celery(app):
    """Initialize Celery with Flask app context"""
    celery.conf.update(
        broker_url=app.config['CELERY_BROKER_URL'],
        result_backend=app.config['CELERY_RESULT_BACKEND'],
        task_serializer='json',
        result_serializer='json',
        accept_content=['json'],
        timezone='UTC',
        enable_utc=True,
        task_always_eager=app.config['CELERY_TASK_ALWAYS_EAGER'],
        imports=['codecollab.tasks.session_tasks'],  # Auto-discover tasks
    )
    celery.flask_app = app
    return celery
