"""
Stripe Webhook Endpoint

Reads the raw request body: the signature covers the exact bytes Stripe
sent, so the payload must not pass through JSON parsing first.

Response codes tell Stripe whether to redeliver:
- 200: handled, duplicate, unmatched or ignored (no retry)
- 400: bad signature (no retry)
- 5xx: store failure, nothing committed (Stripe retries)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool

from bazaar.api.dependencies import get_payment_reconciliation_service
from bazaar.services.payment_reconciliation_service import PaymentReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    reconciler: PaymentReconciliationService = Depends(get_payment_reconciliation_service),
):
    payload = await request.body()
    result = await run_in_threadpool(reconciler.handle_webhook, payload, stripe_signature)

    return {
        "received": True,
        "type": result.event_type,
        "outcome": result.outcome.value,
    }
