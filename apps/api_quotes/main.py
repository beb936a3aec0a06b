import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .adapters.entry.http.quote_router import router as quote_router
from .adapters.entry.http.token_router import router as token_router
from .workers.quote_gateway_supervisor import QuoteGatewaySupervisor


def _setup_logging():
    """
    Configure basic logging.
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


supervisor = QuoteGatewaySupervisor()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context for startup/shutdown lifecycle.
    """
    _setup_logging()
    logging.getLogger(__name__).info("Starting api-quotes (lifespan startup)...")
    await supervisor.start()

    app.state.gateway = supervisor
    app.state.db = supervisor.db

    try:
        yield
    finally:
        logging.getLogger(__name__).info("Shutting down api-quotes (lifespan shutdown)...")
        await supervisor.stop()


app = FastAPI(title="api-quotes", version="0.1.0", lifespan=lifespan)
app.include_router(quote_router, prefix="/api")
app.include_router(token_router, prefix="/api")


@app.get("/healthz")
async def healthz():
    """
    Liveness probe endpoint.
    """
    return {"status": "ok"}
