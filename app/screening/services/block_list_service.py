"""
Block list screening and management.

This module provides:
- normalize_name / match_name: Pure name matching against block list entries
- BlockListMatcher: Loads active entries and screens a candidate name
- BlockListService: Adds and deactivates entries, records and reports
  blocked payments

Matching precedence per entry (entries ordered by severity, highest first;
the first entry that hits wins):
    1. exact: normalized names are equal
    2. contains: either normalized name contains the other
    3. partial: more than 60% of the entry's tokens overlap the candidate

Usage:
    from screening.services.block_list_service import BlockListMatcher

    match = BlockListMatcher().check("Jane  Doe!")
    if match.is_blocked:
        print(match.reason, match.entry.severity)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Count
from django.utils import timezone

from core.services import BaseService, ServiceResult

from screening.exceptions import ScreeningUnavailableError
from screening.models import BlockedPayment, BlockListEntry

if TYPE_CHECKING:
    from collections.abc import Iterable
    from decimal import Decimal
    from typing import Any

    from django.db.models import QuerySet

    from screening.models import WebhookRecord


PARTIAL_MATCH_THRESHOLD = 0.6
MIN_PARTIAL_TOKEN_LENGTH = 3

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


class MatchType:
    EXACT = "exact"
    CONTAINS = "contains"
    PARTIAL = "partial"


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of screening one name against the block list.

    Attributes:
        is_blocked: Whether any active entry matched
        entry: The matching entry, if any
        reason: Human-readable description of the match
        match_type: exact, contains, or partial
        screening_skipped: True when the block list could not be read
            and screening failed open
    """

    is_blocked: bool
    entry: BlockListEntry | None = None
    reason: str | None = None
    match_type: str | None = None
    screening_skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "isBlocked": self.is_blocked,
            "reason": self.reason,
            "matchType": self.match_type,
            "matchedEntity": (
                {
                    "id": self.entry.pk,
                    "name": self.entry.name,
                    "type": self.entry.type,
                    "severity": self.entry.severity,
                }
                if self.entry
                else None
            ),
            "screeningSkipped": self.screening_skipped,
        }


NOT_BLOCKED = MatchResult(is_blocked=False)


def normalize_name(name: str | None) -> str:
    """
    Normalize a name for comparison.

    Lowercases, strips everything that is not a word character or
    whitespace, collapses whitespace runs and trims.

        normalize_name("  Jane   O'Doe ") -> "jane odoe"
    """
    if not name:
        return ""
    stripped = _NON_WORD.sub("", str(name).lower())
    return _WHITESPACE.sub(" ", stripped).strip()


def _partial_overlap(entry_name: str, candidate_name: str) -> bool:
    entry_tokens = entry_name.split()
    candidate_tokens = candidate_name.split()
    if not entry_tokens:
        return False

    matched = sum(
        1
        for token in entry_tokens
        if len(token) >= MIN_PARTIAL_TOKEN_LENGTH
        and any(token in word or word in token for word in candidate_tokens)
    )
    return matched / len(entry_tokens) > PARTIAL_MATCH_THRESHOLD


def match_name(candidate_name: str | None, entries: Iterable[BlockListEntry]) -> MatchResult:
    """
    Screen a candidate name against already-ordered block list entries.

    Empty candidates and entries whose name normalizes to nothing never
    match.
    """
    candidate = normalize_name(candidate_name)
    if not candidate:
        return NOT_BLOCKED

    for entry in entries:
        listed = normalize_name(entry.name)
        if not listed:
            continue

        label = f"{entry.name} ({entry.reason})"
        if candidate == listed:
            return MatchResult(
                is_blocked=True,
                entry=entry,
                reason=f"Exact match with blocked entity: {label}",
                match_type=MatchType.EXACT,
            )
        if listed in candidate or candidate in listed:
            return MatchResult(
                is_blocked=True,
                entry=entry,
                reason=f"Fuzzy match with blocked entity: {label}",
                match_type=MatchType.CONTAINS,
            )
        if _partial_overlap(listed, candidate):
            return MatchResult(
                is_blocked=True,
                entry=entry,
                reason=f"Partial name match with blocked entity: {label}",
                match_type=MatchType.PARTIAL,
            )

    return NOT_BLOCKED


class BlockListMatcher(BaseService):
    """
    Screens names against the active block list.

    If the block list cannot be read, screening either lets the payment
    through (fail-open, logged loudly) or raises ScreeningUnavailableError
    (fail-closed), depending on BLOCK_LIST_FAIL_OPEN.
    """

    def __init__(self, fail_open: bool | None = None):
        self.fail_open = settings.BLOCK_LIST_FAIL_OPEN if fail_open is None else fail_open

    def active_entries(self) -> list[BlockListEntry]:
        return list(
            BlockListEntry.objects.filter(is_active=True).order_by("-severity", "name")
        )

    def check(self, candidate_name: str | None) -> MatchResult:
        """
        Screen one name.

        Raises:
            ScreeningUnavailableError: Block list unreadable and failing closed
        """
        logger = self.get_logger()

        try:
            # Savepoint so a failed read does not poison the caller's transaction
            with transaction.atomic():
                entries = self.active_entries()
        except DatabaseError as exc:
            if not self.fail_open:
                logger.error(
                    "Block list unavailable, failing closed",
                    extra={"error": f"{type(exc).__name__}: {exc}"},
                )
                raise ScreeningUnavailableError(
                    "Block list screening is currently unavailable"
                ) from exc

            logger.error(
                "Block list unavailable, screening skipped (fail-open)",
                extra={"candidate_name": candidate_name, "error": f"{type(exc).__name__}: {exc}"},
            )
            return MatchResult(is_blocked=False, screening_skipped=True)

        result = match_name(candidate_name, entries)
        if result.is_blocked:
            logger.warning(
                "Block list match for %r",
                candidate_name,
                extra={
                    "match_type": result.match_type,
                    "block_list_entry_id": result.entry.pk,
                    "severity": result.entry.severity,
                },
            )
        return result


class BlockListService(BaseService):
    """
    Block list administration and blocked payment reporting.

    All methods are classmethods - no instance state is maintained.
    """

    @classmethod
    def add_entry(
        cls,
        name: str,
        type: str,
        reason: str,
        severity: int = 8,
        added_by: str = "ADMIN",
        notes: str = "",
    ) -> BlockListEntry:
        entry = BlockListEntry.objects.create(
            name=name,
            type=type,
            reason=reason,
            severity=severity,
            added_by=added_by or "ADMIN",
            notes=notes or "",
        )
        cls.get_logger().info(
            "Added block list entry %s",
            entry.pk,
            extra={
                "block_list_entry_id": entry.pk,
                "severity": severity,
                "added_by": entry.added_by,
            },
        )
        return entry

    @classmethod
    def deactivate(cls, entry_id: int) -> ServiceResult[bool]:
        updated = BlockListEntry.objects.filter(pk=entry_id).update(
            is_active=False, updated_at=timezone.now()
        )
        if not updated:
            return ServiceResult.failure(
                "Block list entry not found", error_code="BLOCK_LIST_ENTRY_NOT_FOUND"
            )
        cls.get_logger().info("Deactivated block list entry %s", entry_id)
        return ServiceResult.success(True)

    @classmethod
    def list_entries(cls, active_only: bool = True) -> QuerySet[BlockListEntry]:
        queryset = BlockListEntry.objects.all()
        if active_only:
            queryset = queryset.filter(is_active=True)
        return queryset.order_by("-severity", "name")

    # =========================================================================
    # Blocked payments
    # =========================================================================

    @classmethod
    def record_blocked_payment(
        cls,
        webhook: WebhookRecord,
        match: MatchResult,
        candidate_name: str,
        amount: Decimal,
        currency: str,
    ) -> BlockedPayment:
        """Write the audit record for a blocked payment in its own unit of work."""
        with transaction.atomic():
            blocked, created = BlockedPayment.objects.get_or_create(
                webhook=webhook,
                defaults={
                    "account_id": webhook.account_id,
                    "matched_entry": match.entry,
                    "candidate_name": candidate_name[:255],
                    "amount": amount,
                    "currency": currency,
                    "blocked_reason": (match.reason or "Blocked by screening")[:1000],
                },
            )

        if created:
            cls.get_logger().warning(
                "Payment blocked: %s",
                blocked.blocked_reason,
                extra={
                    "webhook_record_id": str(webhook.pk),
                    "account_id": webhook.account_id,
                    "block_list_entry_id": match.entry.pk if match.entry else None,
                },
            )
        return blocked

    @classmethod
    def blocked_payments(cls) -> QuerySet[BlockedPayment]:
        return BlockedPayment.objects.select_related("matched_entry", "account").order_by(
            "-blocked_at"
        )

    @classmethod
    def blocked_payment_stats(cls) -> dict[str, Any]:
        """
        Counts of blocked payments overall, today, this week (from Monday),
        this month, and by severity of the matched entry.
        """
        today = timezone.localtime().replace(hour=0, minute=0, second=0, microsecond=0)
        week_start = today - timedelta(days=today.weekday())
        month_start = today.replace(day=1)

        queryset = BlockedPayment.objects.all()
        by_severity = (
            queryset.filter(matched_entry__isnull=False)
            .values("matched_entry__severity")
            .annotate(count=Count("id"))
            .order_by("-matched_entry__severity")
        )

        return {
            "total": queryset.count(),
            "today": queryset.filter(blocked_at__gte=today).count(),
            "thisWeek": queryset.filter(blocked_at__gte=week_start).count(),
            "thisMonth": queryset.filter(blocked_at__gte=month_start).count(),
            "bySeverity": {
                str(row["matched_entry__severity"]): row["count"] for row in by_severity
            },
        }
