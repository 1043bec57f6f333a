from codecollab import create_app
from codecollab.celery_app import celery

# Create Flask app context
app = create_app()
app.app_context().push()

# Import tasks to register them with Celery
from codecollab.tasks import session_tasks
