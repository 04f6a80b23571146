"""
Webhook endpoint view for the payment rail.

The view:
1. Verifies the webhook signature (when a signing secret is configured)
2. Validates and normalizes the notification
3. Creates/retrieves the WebhookRecord (idempotent)
4. Queues the record for async settlement
5. Returns immediately

Usage:
    # In urls.py
    from screening.webhooks.views import rail_webhook

    urlpatterns = [
        path("webhooks/rail/", rail_webhook, name="rail_webhook"),
    ]
"""

from __future__ import annotations

import json
import logging

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from screening.adapters import SIGNATURE_HEADER, PaymentRailAdapter
from screening.exceptions import InvalidWebhookError, WebhookSignatureError
from screening.models import WebhookRecord
from screening.state_machines import WebhookRecordStatus
from screening.webhooks.normalizer import normalize_notification, resolve_account


logger = logging.getLogger(__name__)


def _error(message: str, error_code: str) -> JsonResponse:
    return JsonResponse(
        {"success": False, "error": message, "error_code": error_code},
        status=400,
    )


def _acknowledgement(webhook_record: WebhookRecord) -> dict:
    amount = None
    if webhook_record.extracted_amount is not None:
        amount = {
            "amount": format(webhook_record.extracted_amount.normalize(), "f"),
            "currency": webhook_record.extracted_currency,
        }
    return {
        "id": webhook_record.event_id,
        "type": webhook_record.event_type,
        "accountId": webhook_record.account_id,
        "paymentAmount": amount,
    }


@csrf_exempt
@require_POST
def rail_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive and queue payment rail notifications.

    The rail expects a fast 2xx, so settlement runs in a Celery task and
    its errors are captured on the WebhookRecord, not in this response.

    Idempotency:
    - WebhookRecord.event_id is unique
    - Redelivered notifications return 200 without settling again

    Returns:
        JsonResponse with status:
        - 200: Notification accepted (new or duplicate)
        - 400: Invalid signature or payload
    """
    payload = request.body

    if settings.PAYMENT_RAIL_WEBHOOK_SECRET:
        signature = request.headers.get(SIGNATURE_HEADER, "")
        try:
            PaymentRailAdapter.verify_webhook_signature(payload, signature)
        except WebhookSignatureError as e:
            logger.warning(
                "Webhook signature verification failed",
                extra={"error": e.message},
            )
            return _error("Invalid signature", e.error_code)

    try:
        body = json.loads(payload)
        notification = normalize_notification(body)
    except ValueError:
        logger.warning("Webhook body is not valid JSON")
        return _error("Invalid webhook format", InvalidWebhookError.default_error_code)
    except InvalidWebhookError as e:
        logger.warning("Webhook missing required fields", extra=e.details)
        return _error(e.message, e.error_code)

    logger.info(
        "Received rail webhook: %s",
        notification.event_type,
        extra={
            "event_id": notification.event_id,
            "event_type": notification.event_type,
            "forwarded_by": request.headers.get("X-Forwarded-By", ""),
        },
    )

    account = resolve_account(notification.wallet_address_id)

    webhook_record, created = WebhookRecord.objects.get_or_create(
        event_id=notification.event_id,
        defaults={
            "event_type": notification.event_type,
            "payload": body,
            "account": account,
            "wallet_address_id": notification.wallet_address_id,
            "extracted_amount": notification.amount.value if notification.amount else None,
            "extracted_currency": notification.amount.currency if notification.amount else "",
            "forwarded_by": request.headers.get("X-Forwarded-By", "")[:255],
            "forwarded_at": request.headers.get("X-Forwarded-At", "")[:64],
            "original_source": request.headers.get("X-Original-Source", "")[:255],
        },
    )

    if not created and webhook_record.status != WebhookRecordStatus.RECEIVED:
        logger.info(
            "Webhook already %s, returning success",
            webhook_record.status,
            extra={"event_id": notification.event_id},
        )
        return JsonResponse(
            {
                "success": True,
                "message": "Already processed",
                "data": _acknowledgement(webhook_record),
            }
        )

    try:
        from screening.tasks import process_webhook_record

        process_webhook_record.delay(str(webhook_record.id))
        logger.info(
            "Webhook queued for processing",
            extra={
                "event_id": notification.event_id,
                "webhook_record_id": str(webhook_record.id),
            },
        )
    except Exception as e:
        # The record is stored as received; a redelivery re-queues it
        logger.error(
            "Failed to queue webhook: %s",
            type(e).__name__,
            extra={"webhook_record_id": str(webhook_record.id)},
            exc_info=True,
        )

    return JsonResponse(
        {
            "success": True,
            "message": "Webhook received",
            "data": _acknowledgement(webhook_record),
        }
    )
