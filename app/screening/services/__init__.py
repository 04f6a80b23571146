"""
Screening services.

Public API:
    ScreeningEngine - Intake, approve and reject state machine
    CurrencyConversionService - USD to PKR rates, conversion, conversion risk
    BlockListMatcher - Screens names against the active block list
    BlockListService - Block list administration and blocked payment reporting
    get_screening_engine - Engine wired with collaborators from settings
"""

from __future__ import annotations

from screening.services.block_list_service import (
    BlockListMatcher,
    BlockListService,
    MatchResult,
    match_name,
    normalize_name,
)
from screening.services.currency_service import (
    ConversionResult,
    CurrencyConversionService,
    currency_symbol,
    format_currency_amount,
)
from screening.services.screening_engine import (
    DecisionOutcome,
    IntakeOutcome,
    IntakeStatus,
    ReversalOutcome,
    ScreeningEngine,
    heuristic_risk_score,
)


def get_screening_engine() -> ScreeningEngine:
    """
    Build the screening engine with collaborators configured from settings.

    Usage:
        engine = get_screening_engine()
        outcome = engine.intake(webhook_record)
    """
    from screening.adapters import PaymentRailAdapter

    return ScreeningEngine(
        block_list_matcher=BlockListMatcher(),
        currency_service=CurrencyConversionService(),
        reversal_client=PaymentRailAdapter,
    )


__all__ = [
    "BlockListMatcher",
    "BlockListService",
    "ConversionResult",
    "CurrencyConversionService",
    "DecisionOutcome",
    "IntakeOutcome",
    "IntakeStatus",
    "MatchResult",
    "ReversalOutcome",
    "ScreeningEngine",
    "currency_symbol",
    "format_currency_amount",
    "get_screening_engine",
    "heuristic_risk_score",
    "match_name",
    "normalize_name",
]
