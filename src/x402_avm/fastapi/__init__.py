"""
FastAPI bindings for x402 payments on Algorand.

Usage:   from x402_avm.fastapi import require_payment, create_pay_router

Example:
    from fastapi import FastAPI
    from x402_avm.fastapi import require_payment

    app = FastAPI()
    app.middleware("http")(
        require_payment(
            routes={"GET /premium/*": "$0.01"},
            pay_to_address="<ALGORAND ADDRESS>",
            facilitator=facilitator,
        )
    )
"""

from .links import CONTENT_TYPES, create_pay_router
from .middleware import require_payment

__all__ = ["CONTENT_TYPES", "create_pay_router", "require_payment"]
