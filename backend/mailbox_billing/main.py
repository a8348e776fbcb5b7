import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mailbox_billing.core.config import settings
from mailbox_billing.core.database import engine
from mailbox_billing.core.schema_state import check_schema_state
from mailbox_billing.routers import billing

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {
        "name": "Billing",
        "description": (
            "Internal billing triggers: invoice finalization, orphan repair, manual "
            "generation, recompute and charge recording."
        ),
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Raises SchemaStateError (refusing to start) on an unusable schema
    app.state.schema_state = check_schema_state(
        engine, allow_degraded=not settings.is_production
    )
    logger.info("Billing schema state: %s", app.state.schema_state)
    yield


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Periodic billing pipeline for virtual mailbox subscriptions. "
        "Turns the charge ledger into one invoice per user and billing period."
    ),
    openapi_tags=OPENAPI_TAGS,
    lifespan=lifespan,
)

app.include_router(billing.router, prefix="/api/internal/billing", tags=["Billing"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "environment": settings.APP_ENV,
        "status": "running",
    }
