from celery import shared_task
from django.db import DatabaseError
import logging

from core_backend.exceptions import ConflictError
from .models import StockDiscrepancy
from .services import InventoryService

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def retry_stock_discrepancy(self, discrepancy_id, user_id=None):
    """
    Re-attempt one failed deduction or restoration.

    Returns:
        dict: Status and details of the retry
    """
    from users.models import User

    user = User.objects.filter(pk=user_id).first() if user_id else None

    try:
        resolved = InventoryService.retry_discrepancy(discrepancy_id, user=user)
    except StockDiscrepancy.DoesNotExist:
        logger.error(f"Stock discrepancy {discrepancy_id} not found for retry")
        return {"status": "failed", "error": "Discrepancy not found", "discrepancy_id": discrepancy_id}
    except ConflictError:
        return {"status": "skipped", "reason": "already_resolved", "discrepancy_id": discrepancy_id}
    except DatabaseError as exc:
        logger.error(f"Database error retrying stock discrepancy {discrepancy_id}: {exc}")
        raise self.retry(exc=exc)

    return {
        "status": "resolved" if resolved else "still_open",
        "discrepancy_id": discrepancy_id,
    }


@shared_task
def retry_open_discrepancies():
    """
    Periodic pass over open discrepancies; a restock since the failure may
    let the deduction through now.
    """
    open_ids = list(
        StockDiscrepancy.objects.filter(status=StockDiscrepancy.Status.OPEN)
        .order_by("created_at")
        .values_list("pk", flat=True)
    )
    resolved = 0
    for discrepancy_id in open_ids:
        try:
            if InventoryService.retry_discrepancy(discrepancy_id):
                resolved += 1
        except ConflictError:
            continue

    logger.info(f"Discrepancy retry pass: {resolved} of {len(open_ids)} resolved")
    return {"status": "completed", "checked": len(open_ids), "resolved": resolved}


@shared_task
def low_stock_sweep():
    """
    Safety net for low-stock crossings that never produced a notification.
    """
    logger.info("Starting low stock sweep...")
    notified = InventoryService.notify_missed_low_stock()
    logger.info(f"Low stock sweep completed: {notified} item(s) notified")
    return {"status": "completed", "items_notified": notified}
