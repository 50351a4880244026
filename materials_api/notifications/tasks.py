from celery import shared_task

from .services import dispatch_pending


@shared_task
def task_dispatch_outbox(limit=100):
    return dispatch_pending(limit=limit)
