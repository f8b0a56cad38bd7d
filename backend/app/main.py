"""
Communications Backend API
FastAPI application for notification dispatch and provider webhooks.
"""

import logging
import time

from fastapi import FastAPI

from app.config import get_port
from app.dependencies import get_rate_limiter, get_template_resolver
from app.routers import send, webhooks
from app.services.dispatcher import dropped_events

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Communications API",
    description="Validated notification dispatch and signed provider webhooks",
    version="0.1.0",
)

# Include routers
app.include_router(send.router, tags=["send"])
app.include_router(webhooks.router, tags=["webhooks"])


@app.on_event("startup")
async def load_template_registry() -> None:
    """
    Scan the template store and build the rate limiter before the first
    request, so the allowlist reflects the filesystem at boot time.
    """
    resolver = get_template_resolver()
    limiter = get_rate_limiter()
    logger.info(
        "Communications API ready: %d templates under %s, rate limit %d/%ss",
        len(resolver.registry),
        resolver.registry.root,
        limiter.max_requests,
        limiter.window_seconds,
    )


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "timestamp": int(time.time() * 1000),
        "templates": len(get_template_resolver().registry),
        "dropped_events": dropped_events.snapshot(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=get_port())
