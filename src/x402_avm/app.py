"""FastAPI application serving pay-per-link content behind x402 payments."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from x402_avm.avm.rpc import AlgodClientPool
from x402_avm.avm.wallet import create_account_from_mnemonic
from x402_avm.config import Settings, load_settings
from x402_avm.facilitator import Facilitator, FacilitatorClient
from x402_avm.facilitator.client import FacilitatorConfig, HTTPFacilitatorClient
from x402_avm.facilitator.server import create_facilitator_router
from x402_avm.fastapi import create_pay_router
from x402_avm.settlement import SettlementScheduler
from x402_avm.storage import (
    ContentStore,
    FileSystemContentStore,
    InMemoryLinkStore,
    InMemoryPaymentRecorder,
    LinkStore,
    PaymentRecorder,
)

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    links: Optional[LinkStore] = None,
    content: Optional[ContentStore] = None,
    recorder: Optional[PaymentRecorder] = None,
    facilitator: Optional[FacilitatorClient] = None,
) -> FastAPI:
    """Create the application.

    Args:
        settings: Application settings. Loaded from the environment if omitted.
        links: Link store. Defaults to an empty in-memory store.
        content: Uploaded content store. Defaults to `settings.upload_dir`.
        recorder: Sink for settled payments. Defaults to an in-memory recorder.
        facilitator: Facilitator to use. Defaults to a remote facilitator when
            FACILITATOR_URL is set, and to a local one signing with
            FACILITATOR_MNEMONIC otherwise.
    """
    settings = settings or load_settings()
    links = links or InMemoryLinkStore()
    content = content or FileSystemContentStore(settings.upload_dir)
    recorder = recorder or InMemoryPaymentRecorder()

    algod_pool = None
    if facilitator is None:
        if settings.facilitator_url:
            facilitator = HTTPFacilitatorClient(
                FacilitatorConfig(url=settings.facilitator_url)
            )
        else:
            account = create_account_from_mnemonic(settings.facilitator_mnemonic)
            algod_pool = AlgodClientPool(settings.algod_urls, token=settings.algod_token)
            facilitator = Facilitator(
                account, algod_pool, fee_payer=settings.facilitator_fee_payer
            )
            logger.info(f"Facilitator account: {account.address}")

    scheduler = SettlementScheduler(facilitator)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await scheduler.drain(settings.settlement_drain_timeout)
        if algod_pool is not None:
            await algod_pool.aclose()
        if isinstance(facilitator, HTTPFacilitatorClient):
            await facilitator.aclose()

    app = FastAPI(
        title="x402 AVM",
        description="Pay-per-link content gated by x402 payments on Algorand",
        lifespan=lifespan,
    )
    app.state.facilitator = facilitator
    app.state.scheduler = scheduler
    app.state.links = links
    app.state.recorder = recorder

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-PAYMENT-RESPONSE"],
    )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.url.path}", exc_info=exc)
        return JSONResponse(content={"error": "Internal server error"}, status_code=500)

    @app.get("/")
    async def root():
        """Health check endpoint"""
        return {"status": "healthy", "service": "x402-avm"}

    app.include_router(
        create_pay_router(facilitator, links, content, recorder, scheduler),
        prefix="/pay",
    )
    if isinstance(facilitator, Facilitator):
        app.include_router(create_facilitator_router(facilitator), prefix="/facilitator")

    return app
