"""
Celery configuration for Newsdesk project.

Includes request ID propagation so scheduled publications can be
correlated with the request that dispatched them.
"""

import os
from celery import Celery
from celery.signals import task_prerun, task_postrun

# Set default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

app = Celery('newsdesk')

# Load configuration from Django settings with CELERY namespace
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks from all installed apps
app.autodiscover_tasks()

app.conf.task_routes = {
    'apps.articles.tasks.*': {'queue': 'editorial'},
}

# Default queue if not specified
app.conf.task_default_queue = 'default'


@task_prerun.connect
def setup_task_request_context(task_id, task, args, kwargs, **signals_kwargs):
    """
    Open the request context of a task from its message headers.

    Depending on the message protocol, custom headers arrive either in
    ``request.headers`` or as attributes of the task request.
    """
    from apps.core.middleware import TASK_CONTEXT_HEADERS, begin_task_context

    request = task.request
    headers = getattr(request, 'headers', None) or {
        name: getattr(request, name, None) for name in TASK_CONTEXT_HEADERS
    }
    begin_task_context(headers)


@task_postrun.connect
def cleanup_task_request_context(task_id, task, args, kwargs, retval, state, **signals_kwargs):
    from apps.core.middleware import clear_context
    clear_context()
