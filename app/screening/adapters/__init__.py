"""
External service adapters for screening.

This package contains adapters for external services:
- PaymentRailAdapter: Payment rail GraphQL API (reversals, webhook signatures)

Adapters encapsulate all external API interactions, providing:
- Consistent error handling
- Idempotency support
- Timeout configuration
- Structured logging
"""

from screening.adapters.rail_adapter import (
    SIGNATURE_HEADER,
    IdempotencyKeyGenerator,
    PaymentRailAdapter,
    ReversalResult,
    to_minor_units,
)

__all__ = [
    "IdempotencyKeyGenerator",
    "PaymentRailAdapter",
    "ReversalResult",
    "SIGNATURE_HEADER",
    "to_minor_units",
]
