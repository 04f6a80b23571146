"""
Screening app for incoming payment intake and AML review.

This app handles:
- Payment rail webhook intake (idempotent, async settlement)
- Provisional book-balance credits held as pending payments
- Block list screening and USD to PKR conversion with risk scoring
- Approve / reject decisions, including reversal to the sender

Usage:
    from screening.services import get_screening_engine

    engine = get_screening_engine()
    outcome = engine.decide(payment_id, "APPROVE", screened_by="officer")
"""
