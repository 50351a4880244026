from celery import shared_task

from .services import EscrowService


@shared_task
def task_dispatch_release(payment_id):
    return EscrowService().dispatch_release(payment_id)


@shared_task
def task_dispatch_pending_releases(limit=50):
    return EscrowService().dispatch_pending_releases(limit=limit)
