"""
Celery tasks for screening.

This module provides async tasks for:
- Settling payment rail webhooks after they have been acknowledged
- Periodic sweep of webhooks stuck in processing

Webhook status is monotonic: a record in ``error`` is never picked up
again and there is no automatic retry. Failed settlements are left for an
operator, since re-running fund movement blindly is unsafe.

Usage:
    from screening.tasks import process_webhook_record

    # Queue a webhook for async processing
    process_webhook_record.delay(str(webhook_record.id))
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import InvalidOperation
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.db import DataError, transaction
from django.utils import timezone

from screening.models import WebhookRecord
from screening.state_machines import WebhookRecordStatus

logger = logging.getLogger(__name__)

# Columns written when a record leaves processing
FINISH_FIELDS = ["status", "error_message", "processed_at", "updated_at"]


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(bind=True, acks_late=True)
def process_webhook_record(self, webhook_record_id: str) -> dict:
    """
    Settle a stored webhook record.

    This task:
    1. Claims the record by moving it from received to processing under a
       row lock (a concurrent or redelivered task sees it already claimed)
    2. Dispatches to the handler for its event type
    3. Marks it processed, or error with the failure details, under a row
       lock so a concurrent stuck-webhook sweep is never overwritten

    A row that cannot be loaded is moved straight to error.

    Returns:
        Dict with processing result status

    Raises:
        Exception: Unexpected failures are recorded, then re-raised
    """
    # Import here to avoid circular imports
    from screening.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_record_id, str):
        webhook_record_id = UUID(webhook_record_id)
    record_id = str(webhook_record_id)

    try:
        with transaction.atomic():
            webhook_record = (
                WebhookRecord.objects.select_for_update().filter(id=webhook_record_id).first()
            )
            if webhook_record is None:
                logger.error("WebhookRecord not found", extra={"webhook_record_id": record_id})
                return {"status": "not_found", "webhook_record_id": record_id}

            if webhook_record.status != WebhookRecordStatus.RECEIVED:
                logger.info(
                    "WebhookRecord already claimed, skipping",
                    extra={
                        "webhook_record_id": record_id,
                        "event_id": webhook_record.event_id,
                        "status": webhook_record.status,
                    },
                )
                return {
                    "status": f"already_{webhook_record.status}",
                    "webhook_record_id": record_id,
                }

            webhook_record.start_processing()
            webhook_record.save(update_fields=["status", "updated_at"])
    except (InvalidOperation, DataError) as e:
        error_msg = f"Unreadable webhook record: {type(e).__name__}"
        WebhookRecord.objects.filter(
            id=webhook_record_id,
            status__in=[WebhookRecordStatus.RECEIVED, WebhookRecordStatus.PROCESSING],
        ).update(
            status=WebhookRecordStatus.ERROR,
            error_message=error_msg,
            processed_at=timezone.now(),
            updated_at=timezone.now(),
        )
        logger.error(
            "WebhookRecord could not be loaded, marked as error",
            extra={"webhook_record_id": record_id, "error": error_msg},
            exc_info=True,
        )
        return {"status": "unreadable", "webhook_record_id": record_id, "error": error_msg}

    logger.info(
        "Processing webhook: %s",
        webhook_record.event_type,
        extra={
            "webhook_record_id": record_id,
            "event_id": webhook_record.event_id,
            "account_id": webhook_record.account_id,
        },
    )

    try:
        result = dispatch_webhook(webhook_record)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        _finish_processing(webhook_record_id, error_msg)

        logger.exception(
            "Webhook processing failed with exception",
            extra={
                "webhook_record_id": record_id,
                "event_id": webhook_record.event_id,
                "error": error_msg,
            },
        )
        raise

    if not result.success:
        error_msg = result.error or "Handler returned failure"
        _finish_processing(webhook_record_id, error_msg)
        logger.warning(
            "Webhook handler failed: %s",
            error_msg,
            extra={
                "webhook_record_id": record_id,
                "event_id": webhook_record.event_id,
                "error_code": result.error_code,
            },
        )
        return {"status": "handler_failed", "webhook_record_id": record_id, "error": error_msg}

    if not _finish_processing(webhook_record_id):
        return {"status": "superseded", "webhook_record_id": record_id, "result": result.data}
    logger.info(
        "Webhook processed successfully",
        extra={"webhook_record_id": record_id, "event_id": webhook_record.event_id},
    )
    return {
        "status": "processed",
        "webhook_record_id": record_id,
        "result": result.data,
    }


def _finish_processing(webhook_record_id: UUID, error_msg: str | None = None) -> bool:
    """
    Move a processing record to processed, or to error when error_msg is set.

    Returns False if the record already left processing (the stuck sweep
    got there first); its status is then left as it is.
    """
    with transaction.atomic():
        webhook_record = WebhookRecord.objects.select_for_update().get(id=webhook_record_id)
        if webhook_record.status != WebhookRecordStatus.PROCESSING:
            logger.warning(
                "WebhookRecord left processing before settlement finished",
                extra={
                    "webhook_record_id": str(webhook_record_id),
                    "status": webhook_record.status,
                    "error": error_msg,
                },
            )
            return False

        if error_msg is None:
            webhook_record.mark_processed()
        else:
            webhook_record.mark_error(error_msg)
        webhook_record.save(update_fields=FINISH_FIELDS)
    return True


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Periodic task to fail webhooks stuck in processing.

    A worker that crashed mid-settlement leaves its record in processing.
    Such records are marked error for manual follow-up, never re-queued.
    Each record is re-read under a row lock, so one a worker finished in
    the meantime keeps its status.

    Returns:
        Dict with count of webhooks marked as error
    """
    threshold = timezone.now() - timedelta(minutes=settings.STUCK_WEBHOOK_THRESHOLD_MINUTES)

    stuck_ids = list(
        WebhookRecord.objects.filter(
            status=WebhookRecordStatus.PROCESSING,
            updated_at__lt=threshold,
        ).values_list("id", flat=True)
    )

    failed_count = 0
    for stuck_id in stuck_ids:
        with transaction.atomic():
            webhook_record = (
                WebhookRecord.objects.select_for_update()
                .filter(
                    id=stuck_id,
                    status=WebhookRecordStatus.PROCESSING,
                    updated_at__lt=threshold,
                )
                .first()
            )
            if webhook_record is None:
                continue
            stuck_since = webhook_record.updated_at
            webhook_record.mark_error("Processing timed out, manual review required")
            webhook_record.save(update_fields=FINISH_FIELDS)
        failed_count += 1
        logger.warning(
            "Marked stuck webhook as error",
            extra={
                "webhook_record_id": str(webhook_record.id),
                "event_id": webhook_record.event_id,
                "stuck_since": stuck_since.isoformat(),
            },
        )

    if failed_count > 0:
        logger.info("Marked %d stuck webhooks as error", failed_count)

    return {"failed_count": failed_count}
