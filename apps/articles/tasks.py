"""
Celery tasks for scheduled publication and homepage maintenance.

``publish_due_articles`` runs from Celery beat and dispatches one
``fire_scheduled_publish`` per due article. Firing is idempotent, so a
duplicate trigger or an overlapping sweep is harmless. Engine errors are
logged and not retried here; an article that could not be fired stays due
and is picked up by the next sweep.
"""

import logging

from celery import shared_task
from django.utils import timezone

from apps.core.exceptions import ConflictError, NewsdeskException, NotFoundError
from apps.core.middleware import bind_context, task_headers

from .services import ArticleLifecycleService

logger = logging.getLogger(__name__)


@shared_task(bind=True, ignore_result=False)
def fire_scheduled_publish(self, article_id: str):
    bind_context(article_id=article_id)
    service = ArticleLifecycleService()
    try:
        article = service.fire_scheduled_publish(article_id)
        return {
            "article_id": str(article.id),
            "status": article.status,
            "published_at": article.published_at.isoformat() if article.published_at else None,
        }
    except NotFoundError:
        logger.error("Article %s not found for scheduled publication", article_id)
        return {"error": "not_found", "article_id": article_id}
    except ConflictError as exc:
        logger.warning("Scheduled publication of %s conflicted: %s", article_id, exc.message)
        return {"error": "conflict", "article_id": article_id}
    except NewsdeskException as exc:
        logger.warning(
            "Scheduled publication of %s refused (%s): %s",
            article_id, exc.error_code.value, exc.message,
        )
        hint = exc.retry_hint
        return {
            "error": exc.error_code.value,
            "article_id": article_id,
            "retry": hint.value if hint else None,
        }


@shared_task(bind=True)
def publish_due_articles(self):
    """Dispatch every approved article whose scheduled time has passed."""
    service = ArticleLifecycleService()
    now = timezone.now()
    due = service.repository.due_for_publication(now)

    for article_id in due:
        fire_scheduled_publish.apply_async(
            args=[str(article_id)],
            headers=task_headers(article_id),
        )

    if due:
        logger.info("Dispatched %d scheduled publication(s)", len(due))
    return {"dispatched": len(due)}


@shared_task(bind=True)
def expire_featured_home(self):
    """Drop homepage features whose window has lapsed."""
    expired = ArticleLifecycleService().expire_featured_home()
    return {"expired": expired}
