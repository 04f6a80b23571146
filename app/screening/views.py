"""
API views for the screening review console.

Provides:
- PendingPaymentListView: Review queue with risk stats
- ReviewDecisionView: APPROVE / REJECT a pending payment
- WebhookRecordListView: Webhook history with stats
- BlockListView: List and add block list entries
- BlockListDeactivateView: Deactivate a block list entry
- BlockListCheckView: Screen a name on demand
- BlockedPaymentListView / BlockedPaymentStatsView: Blocked payment audit

All endpoints require a staff user (JWT or session).
"""

from __future__ import annotations

from django.db.models import Count, Q, Sum
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
)
from core.services import ServiceResult

from screening.models import PendingPayment, WebhookRecord
from screening.serializers import (
    BlockedPaymentSerializer,
    BlockListCheckSerializer,
    BlockListEntryCreateSerializer,
    BlockListEntrySerializer,
    BlockListQuerySerializer,
    PaginationQuerySerializer,
    PendingPaymentQuerySerializer,
    PendingPaymentSerializer,
    ReviewDecisionSerializer,
    WebhookRecordQuerySerializer,
    WebhookRecordSerializer,
)
from screening.services import BlockListMatcher, BlockListService, get_screening_engine
from screening.state_machines import PendingPaymentStatus, RiskLevel, WebhookRecordStatus

RISK_LEVEL_FILTERS = {
    RiskLevel.LOW: Q(risk_score__lte=30),
    RiskLevel.MEDIUM: Q(risk_score__gt=30, risk_score__lte=70),
    RiskLevel.HIGH: Q(risk_score__gt=70),
}


def _error_status(exc: BaseApplicationError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, ExternalServiceError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_400_BAD_REQUEST


def _invalid(serializer) -> Response:
    result = ServiceResult.failure(
        "Invalid request", error_code="VALIDATION_ERROR", errors=serializer.errors
    )
    return Response(result.to_response(), status=status.HTTP_400_BAD_REQUEST)


# =============================================================================
# Pending Payments
# =============================================================================


class PendingPaymentListView(APIView):
    """
    Review queue of pending payments.

    GET /api/v1/screening/pending-payments/
        Payments filtered by status (default PENDING), risk level and
        reversal status, newest first, with aggregate stats over the
        PENDING queue.
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="list_pending_payments",
        summary="List pending payments",
        description=(
            "List payments held for AML review, joined with account identity, "
            "balances and the originating webhook. Stats always describe the "
            "PENDING queue."
        ),
        parameters=[PendingPaymentQuerySerializer],
        responses={
            200: OpenApiResponse(
                response=PendingPaymentSerializer(many=True),
                description="Pending payments, stats and pagination",
            ),
            400: OpenApiResponse(description="Invalid query parameters"),
        },
        tags=["Screening - Review"],
    )
    def get(self, request):
        query = PendingPaymentQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return _invalid(query)
        params = query.validated_data

        queryset = PendingPayment.objects.select_related("account", "webhook").filter(
            status=params["status"]
        )
        if risk_level := params.get("riskLevel"):
            queryset = queryset.filter(RISK_LEVEL_FILTERS[risk_level])
        if reversal_status := params.get("reversalStatus"):
            queryset = queryset.filter(reversal_status=reversal_status)
        queryset = queryset.order_by("-created_at")

        total = queryset.count()
        page = queryset[params["offset"] : params["offset"] + params["limit"]]

        return Response(
            {
                "success": True,
                "data": {
                    "pendingPayments": PendingPaymentSerializer(page, many=True).data,
                    "stats": self._stats(),
                    "pagination": {
                        "limit": params["limit"],
                        "offset": params["offset"],
                        "total": total,
                    },
                },
            }
        )

    @staticmethod
    def _stats() -> dict:
        stats = PendingPayment.objects.filter(status=PendingPaymentStatus.PENDING).aggregate(
            totalPending=Count("id"),
            lowRisk=Count("id", filter=RISK_LEVEL_FILTERS[RiskLevel.LOW]),
            mediumRisk=Count("id", filter=RISK_LEVEL_FILTERS[RiskLevel.MEDIUM]),
            highRisk=Count("id", filter=RISK_LEVEL_FILTERS[RiskLevel.HIGH]),
            totalAmount=Sum("amount"),
            autoEligible=Count("id", filter=Q(auto_approval_eligible=True)),
        )
        stats["totalAmount"] = str(stats["totalAmount"] or "0.00")
        return stats


class ReviewDecisionView(APIView):
    """
    Approve or reject a pending payment.

    POST /api/v1/screening/pending-payments/decision/

    Response:
        200 OK: Decision applied (REJECT includes the reversal outcome)
        400 Bad Request: Invalid body
        404 Not Found: No such pending payment
        409 Conflict: Payment already decided
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="decide_pending_payment",
        summary="Approve or reject a pending payment",
        description=(
            "APPROVE releases the funds to the available balance. REJECT records "
            "a settled credit and an offsetting reversal debit, then sends the "
            "funds back to the sender. A failed reversal does not undo the "
            "rejection and is reported for manual intervention."
        ),
        request=ReviewDecisionSerializer,
        responses={
            200: OpenApiResponse(description="Decision applied"),
            400: OpenApiResponse(description="Invalid request"),
            404: OpenApiResponse(description="Pending payment not found"),
            409: OpenApiResponse(description="Pending payment already processed"),
        },
        tags=["Screening - Review"],
    )
    def post(self, request):
        serializer = ReviewDecisionSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        data = serializer.validated_data

        try:
            outcome = get_screening_engine().decide(
                data["paymentId"],
                data["action"],
                screened_by=data["screenedBy"] or request.user.get_username(),
                notes=data["screeningNotes"],
            )
        except BaseApplicationError as e:
            result = ServiceResult.from_exception(e)
            return Response(result.to_response(), status=_error_status(e))

        return Response(ServiceResult.success(outcome.to_dict()).to_response())


# =============================================================================
# Webhook History
# =============================================================================


class WebhookRecordListView(APIView):
    """
    Webhook history.

    GET /api/v1/screening/webhooks/
        Most recent webhook records filtered by type and status, with
        counts by status and type.
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="list_webhook_records",
        summary="List webhook history",
        parameters=[WebhookRecordQuerySerializer],
        responses={
            200: OpenApiResponse(
                response=WebhookRecordSerializer(many=True),
                description="Webhook records and stats",
            ),
        },
        tags=["Screening - Webhooks"],
    )
    def get(self, request):
        query = WebhookRecordQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return _invalid(query)
        params = query.validated_data

        queryset = WebhookRecord.objects.order_by("-created_at")
        if event_type := params.get("type"):
            queryset = queryset.filter(event_type=event_type)
        if record_status := params.get("status"):
            queryset = queryset.filter(status=record_status)

        return Response(
            {
                "success": True,
                "data": {
                    "webhooks": WebhookRecordSerializer(
                        queryset[: params["limit"]], many=True
                    ).data,
                    "stats": self._stats(),
                },
            }
        )

    @staticmethod
    def _stats() -> dict:
        by_status = {value: 0 for value in WebhookRecordStatus.values}
        for row in WebhookRecord.objects.values("status").annotate(count=Count("id")):
            by_status[row["status"]] = row["count"]

        by_type = {
            row["event_type"]: row["count"]
            for row in WebhookRecord.objects.values("event_type")
            .annotate(count=Count("id"))
            .order_by("event_type")
        }
        last = (
            WebhookRecord.objects.order_by("-created_at")
            .values_list("created_at", flat=True)
            .first()
        )

        return {
            "total": sum(by_status.values()),
            "byStatus": by_status,
            "byType": by_type,
            "lastWebhook": last.isoformat() if last else None,
        }


# =============================================================================
# Block List
# =============================================================================


class BlockListView(APIView):
    """
    Block list entries.

    GET  /api/v1/screening/block-list/  - List entries (activeOnly, default true)
    POST /api/v1/screening/block-list/  - Add an entry
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="list_block_list_entries",
        summary="List block list entries",
        parameters=[BlockListQuerySerializer],
        responses={200: BlockListEntrySerializer(many=True)},
        tags=["Screening - Block List"],
    )
    def get(self, request):
        query = BlockListQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return _invalid(query)

        entries = BlockListService.list_entries(active_only=query.validated_data["activeOnly"])
        return Response(
            ServiceResult.success(BlockListEntrySerializer(entries, many=True).data).to_response()
        )

    @extend_schema(
        operation_id="add_block_list_entry",
        summary="Add block list entry",
        request=BlockListEntryCreateSerializer,
        responses={
            201: OpenApiResponse(description="Entry created, returns its id"),
            400: OpenApiResponse(description="name, type and reason are required"),
        },
        tags=["Screening - Block List"],
    )
    def post(self, request):
        serializer = BlockListEntryCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        data = serializer.validated_data

        entry = BlockListService.add_entry(
            name=data["name"],
            type=data["type"],
            reason=data["reason"],
            severity=data["severity"],
            added_by=data["addedBy"],
            notes=data["notes"],
        )
        return Response(
            ServiceResult.success({"id": entry.pk}).to_response(),
            status=status.HTTP_201_CREATED,
        )


class BlockListDeactivateView(APIView):
    """POST /api/v1/screening/block-list/{entry_id}/deactivate/"""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="deactivate_block_list_entry",
        summary="Deactivate block list entry",
        request=None,
        responses={
            200: OpenApiResponse(description="Entry deactivated"),
            404: OpenApiResponse(description="Entry not found"),
        },
        tags=["Screening - Block List"],
    )
    def post(self, request, entry_id: int):
        result = BlockListService.deactivate(entry_id)
        if result:
            return Response(result.to_response())
        return Response(result.to_response(), status=status.HTTP_404_NOT_FOUND)


class BlockListCheckView(APIView):
    """POST /api/v1/screening/block-list/check/ - screen a name on demand."""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="check_block_list",
        summary="Check a name against the block list",
        request=BlockListCheckSerializer,
        responses={
            200: OpenApiResponse(description="Match result"),
            503: OpenApiResponse(description="Block list unavailable (fail-closed)"),
        },
        tags=["Screening - Block List"],
    )
    def post(self, request):
        serializer = BlockListCheckSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)

        try:
            match = BlockListMatcher().check(serializer.validated_data["name"])
        except BaseApplicationError as e:
            return Response(ServiceResult.from_exception(e).to_response(), status=_error_status(e))

        return Response(ServiceResult.success(match.to_dict()).to_response())


# =============================================================================
# Blocked Payments
# =============================================================================


class BlockedPaymentListView(APIView):
    """GET /api/v1/screening/blocked-payments/ - newest first."""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="list_blocked_payments",
        summary="List blocked payments",
        parameters=[
            OpenApiParameter(
                name="limit",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                description="Maximum number of results (default: 50, max: 200)",
                required=False,
                default=50,
            ),
            OpenApiParameter(
                name="offset",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                description="Number of results to skip (default: 0)",
                required=False,
                default=0,
            ),
        ],
        responses={200: BlockedPaymentSerializer(many=True)},
        tags=["Screening - Blocked Payments"],
    )
    def get(self, request):
        query = PaginationQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return _invalid(query)
        params = query.validated_data

        queryset = BlockListService.blocked_payments()
        page = queryset[params["offset"] : params["offset"] + params["limit"]]

        return Response(
            {
                "success": True,
                "data": {
                    "blockedPayments": BlockedPaymentSerializer(page, many=True).data,
                    "pagination": {
                        "limit": params["limit"],
                        "offset": params["offset"],
                        "total": queryset.count(),
                    },
                },
            }
        )


class BlockedPaymentStatsView(APIView):
    """GET /api/v1/screening/blocked-payments/stats/"""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="blocked_payment_stats",
        summary="Blocked payment stats",
        responses={200: OpenApiResponse(description="Counts by period and severity")},
        tags=["Screening - Blocked Payments"],
    )
    def get(self, request):
        stats = BlockListService.blocked_payment_stats()
        return Response(ServiceResult.success(stats).to_response())
