"""
Screening admin configuration.

Registers accounts, the transaction trail, webhook records, pending and
blocked payments, and the block list with the Django admin. Balances and
statuses are read-only here; they change only through the screening engine.
"""

from django.contrib import admin

from screening.models import (
    Account,
    BlockedPayment,
    BlockListEntry,
    PendingPayment,
    Transaction,
    WebhookRecord,
)
from screening.services.currency_service import format_currency_amount

__all__ = [
    "AccountAdmin",
    "BlockedPaymentAdmin",
    "BlockListEntryAdmin",
    "PendingPaymentAdmin",
    "TransactionAdmin",
    "WebhookRecordAdmin",
]


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    """
    Admin configuration for Account.

    Identity fields are editable; balances are maintained by the ledger.
    """

    list_display = [
        "id",
        "name",
        "email",
        "currency",
        "wallet_id",
        "book_balance_display",
        "available_balance_display",
        "is_active",
    ]
    list_filter = ["currency", "is_active"]
    search_fields = ["name", "email", "iban", "wallet_id"]
    readonly_fields = ["book_balance", "available_balance", "balance", "created_at", "updated_at"]
    ordering = ["name"]

    fieldsets = (
        (None, {"fields": ("name", "email", "iban", "currency", "is_active")}),
        ("Payment Rail", {"fields": ("wallet_id", "wallet_address")}),
        ("Balances", {"fields": ("book_balance", "available_balance", "balance")}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    @admin.display(description="Book balance")
    def book_balance_display(self, obj: Account) -> str:
        return format_currency_amount(obj.book_balance, obj.currency)

    @admin.display(description="Available balance")
    def available_balance_display(self, obj: Account) -> str:
        return format_currency_amount(obj.available_balance, obj.currency)


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    """Read-only view of the ledger audit trail."""

    list_display = [
        "reference_number",
        "account",
        "transaction_type",
        "amount_display",
        "status",
        "created_at",
    ]
    list_filter = ["transaction_type", "status", "currency"]
    search_fields = ["reference_number", "account__name", "pending_payment__id"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    @admin.display(description="Amount")
    def amount_display(self, obj: Transaction) -> str:
        return format_currency_amount(obj.amount, obj.currency)

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(WebhookRecord)
class WebhookRecordAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookRecord.

    Webhook records are immutable once received.
    """

    list_display = [
        "id",
        "event_id",
        "event_type",
        "status",
        "account",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "event_id", "event_type", "wallet_address_id"]
    readonly_fields = [
        "id",
        "event_id",
        "event_type",
        "status",
        "payload",
        "account",
        "wallet_address_id",
        "extracted_amount",
        "extracted_currency",
        "forwarded_by",
        "forwarded_at",
        "original_source",
        "processed_at",
        "error_message",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "event_id", "event_type", "status")}),
        (
            "Normalized",
            {"fields": ("account", "wallet_address_id", "extracted_amount", "extracted_currency")},
        ),
        (
            "Forwarding",
            {
                "fields": ("forwarded_by", "forwarded_at", "original_source"),
                "classes": ("collapse",),
            },
        ),
        ("Processing", {"fields": ("processed_at", "error_message")}),
        ("Payload", {"fields": ("payload",), "classes": ("collapse",)}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(PendingPayment)
class PendingPaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for PendingPayment.

    Decisions go through the review API so the ledger stays consistent;
    the admin only shows them.
    """

    list_display = [
        "id",
        "account",
        "amount_display",
        "risk_score",
        "status",
        "reversal_status",
        "created_at",
    ]
    list_filter = ["status", "reversal_status", "auto_approval_eligible", "currency"]
    search_fields = ["id", "payment_reference", "account__name", "screened_by"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    @admin.display(description="Amount")
    def amount_display(self, obj: PendingPayment) -> str:
        shown = format_currency_amount(obj.amount, obj.currency)
        if obj.was_converted:
            shown += f" (from {format_currency_amount(obj.original_amount, obj.original_currency)})"
        return shown

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(BlockListEntry)
class BlockListEntryAdmin(admin.ModelAdmin):
    list_display = ["name", "type", "severity", "is_active", "added_by", "created_at"]
    list_filter = ["type", "is_active", "severity"]
    search_fields = ["name", "reason"]
    ordering = ["-severity", "name"]
    actions = ["activate_entries", "deactivate_entries"]

    @admin.action(description="Activate selected entries")
    def activate_entries(self, request, queryset):
        count = queryset.update(is_active=True)
        self.message_user(request, f"{count} entries activated.")

    @admin.action(description="Deactivate selected entries")
    def deactivate_entries(self, request, queryset):
        count = queryset.update(is_active=False)
        self.message_user(request, f"{count} entries deactivated.")

    def has_delete_permission(self, request, obj=None) -> bool:
        """Entries are deactivated, never deleted (audit trail)."""
        return False


@admin.register(BlockedPayment)
class BlockedPaymentAdmin(admin.ModelAdmin):
    list_display = ["id", "candidate_name", "amount_display", "matched_entry", "blocked_at"]
    list_filter = ["blocked_at"]
    search_fields = ["candidate_name", "blocked_reason"]
    date_hierarchy = "blocked_at"
    ordering = ["-blocked_at"]

    @admin.display(description="Amount")
    def amount_display(self, obj: BlockedPayment) -> str:
        return format_currency_amount(obj.amount, obj.currency)

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
