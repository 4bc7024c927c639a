"""
Request correlation for Newsdesk.

Each API request and each Celery task runs inside a ``RequestContext``: the
request id plus, once known, the article being worked on and the workflow
event applied to it. ``RequestContextFilter`` copies the context onto log
records, so a scheduled publication can be followed from the moderator's
request through the beat sweep to the task that fired it.

Usage:
    MIDDLEWARE = [
        ...
        'apps.core.middleware.RequestIDMiddleware',
    ]
"""

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = 'X-Request-ID'

# Celery message headers carrying the context into workers
TASK_REQUEST_ID = 'request_id'
TASK_ARTICLE_ID = 'article_id'
TASK_CONTEXT_HEADERS = (TASK_REQUEST_ID, TASK_ARTICLE_ID)

_local = threading.local()


@dataclass(frozen=True)
class RequestContext:
    request_id: str
    article_id: Optional[str] = None
    event: Optional[str] = None

    def log_fields(self) -> Dict[str, str]:
        return {
            'request_id': self.request_id,
            'article_id': self.article_id or '-',
            'event': self.event or '-',
        }


EMPTY_LOG_FIELDS = {'request_id': '-', 'article_id': '-', 'event': '-'}


def current_context() -> Optional[RequestContext]:
    return getattr(_local, 'context', None)


def get_request_id() -> Optional[str]:
    context = current_context()
    return context.request_id if context else None


def begin_context(request_id: Optional[str] = None, article_id: Any = None) -> RequestContext:
    """Open a context for the current thread, generating an id when none is given."""
    context = RequestContext(
        request_id=request_id or str(uuid.uuid4()),
        article_id=str(article_id) if article_id else None,
    )
    _local.context = context
    return context


def bind_context(article_id: Any = None, event: Optional[str] = None) -> Optional[RequestContext]:
    """
    Attach the article and/or event to the running context.

    Does nothing outside a request or task, so the lifecycle service can
    call it unconditionally.
    """
    context = current_context()
    if context is None:
        return None

    changes = {}
    if article_id is not None:
        changes['article_id'] = str(article_id)
    if event is not None:
        changes['event'] = event
    _local.context = replace(context, **changes)
    return _local.context


def clear_context():
    _local.context = None


def accepted_request_id(value: Optional[str]) -> Optional[str]:
    """Client-supplied ids are only trusted when they are UUIDs."""
    if not value:
        return None
    try:
        uuid.UUID(value)
    except (ValueError, TypeError, AttributeError):
        return None
    return value


class RequestIDMiddleware:
    """
    Open a context per request and echo its id in the response.

    Article routes bind the article id from the URL before the view runs;
    the lifecycle service adds the event when it applies one.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        context = begin_context(accepted_request_id(request.headers.get(REQUEST_ID_HEADER)))
        request.request_id = context.request_id
        try:
            response = self.get_response(request)
        finally:
            clear_context()

        response[REQUEST_ID_HEADER] = request.request_id
        return response

    def process_view(self, request, view_func, view_args, view_kwargs):
        article_id = view_kwargs.get('pk')
        if article_id:
            bind_context(article_id=article_id)
        return None


class RequestContextFilter(logging.Filter):
    """
    Adds request_id, article_id and event to every record.

    Referenced from LOGGING['filters'] in settings. Values passed through
    ``extra`` win over the context.
    """

    def filter(self, record):
        context = current_context()
        fields = context.log_fields() if context else EMPTY_LOG_FIELDS
        for name, value in fields.items():
            record.__dict__.setdefault(name, value)
        return True


# =============================================================================
# Celery propagation
# =============================================================================

def task_headers(article_id: Any = None) -> Dict[str, str]:
    """
    Headers for ``apply_async`` so the task logs under the caller's request id.

    Usage:
        fire_scheduled_publish.apply_async(
            args=[str(article.id)],
            headers=task_headers(article.id),
        )
    """
    headers = {}
    request_id = get_request_id()
    if request_id:
        headers[TASK_REQUEST_ID] = request_id
    if article_id:
        headers[TASK_ARTICLE_ID] = str(article_id)
    return headers


def begin_task_context(headers: Optional[Mapping[str, Any]]) -> RequestContext:
    """Open the context of a Celery task from the headers it was sent with."""
    headers = headers or {}
    return begin_context(
        headers.get(TASK_REQUEST_ID),
        article_id=headers.get(TASK_ARTICLE_ID),
    )
