"""FastAPI application entry point for the promotion service.

The service accepts promotion requests, runs each attempt in the
background and exposes the shared promotion status for polling. Only one
promotion runs at a time; further requests wait for the running one.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from .client.artifactory import ArtifactoryClient
from .config import PromotionSettings, get_settings
from .metrics import PromotionMetrics
from .models import PromotionContext
from .orchestrator import PromotionOrchestrator
from .status import PromotionStatusSnapshot, SharedPromotionStatus

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Global instances, initialized during lifespan startup
settings: Optional[PromotionSettings] = None
promotion_status: Optional[SharedPromotionStatus] = None
orchestrator: Optional[PromotionOrchestrator] = None
metrics: Optional[PromotionMetrics] = None


class PromotionTrigger(BaseModel):
    """Body of a promotion request."""

    context: PromotionContext
    ci_user: str = Field(..., min_length=1)


def _redact_secret(value: str, visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters."""
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(cfg: PromotionSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Promotion service configuration:")
    logger.info(f"  Repository URL: {cfg.artifactory_url}")
    logger.info(f"  Repository User: {cfg.artifactory_username or '<anonymous>'}")
    logger.info(f"  Repository Password: {_redact_secret(cfg.artifactory_password)}")
    logger.info(f"  Request Timeout Seconds: {cfg.request_timeout_seconds}")
    logger.info(f"  Push Plugin Name: {cfg.push_plugin_name}")
    logger.info(f"  Push Property Prefix: {cfg.push_property_prefix}")
    logger.info(f"  Host: {cfg.host}")
    logger.info(f"  Port: {cfg.port}")


def _build_client(cfg: PromotionSettings) -> ArtifactoryClient:
    """Create a client owned by a single promotion attempt."""
    return ArtifactoryClient(
        base_url=cfg.artifactory_url,
        username=cfg.artifactory_username,
        password=cfg.artifactory_password,
        timeout=cfg.request_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load settings and create the shared status and orchestrator."""
    global settings, promotion_status, orchestrator, metrics

    logger.info("Promotion service starting up...")

    settings = get_settings()
    _log_configuration(settings)

    promotion_status = SharedPromotionStatus()
    if metrics is None:
        metrics = PromotionMetrics()
    orchestrator = PromotionOrchestrator(
        status=promotion_status,
        settings=settings,
        metrics=metrics,
    )

    logger.info("Promotion service started successfully")

    yield

    logger.info("Promotion service shutdown complete")


app = FastAPI(
    title="Artifact Promotion Service",
    description="Staged build promotion against a repository server",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health():
    """Liveness check endpoint."""
    return {"status": "healthy"}


@app.get("/metrics", response_class=PlainTextResponse)
async def metrics_endpoint():
    """Prometheus metrics endpoint."""
    if metrics is None:
        return ""
    return metrics.generate().decode("utf-8")


@app.post("/promotions", status_code=202)
async def trigger_promotion(trigger: PromotionTrigger):
    """Start a promotion attempt in the background.

    Returns immediately; progress is reported through /promotions/status.
    """
    if orchestrator is None or settings is None:
        logger.error("Promotion service not initialized")
        return JSONResponse(
            status_code=503,
            content={"status": "error", "message": "Service not initialized"},
        )

    orchestrator.start(trigger.context, _build_client(settings), trigger.ci_user)

    return {
        "status": "accepted",
        "build_key": trigger.context.build_key,
        "build_number": trigger.context.build_number,
    }


@app.get("/promotions/status", response_model=PromotionStatusSnapshot)
async def promotion_status_endpoint():
    """Return the status and log of the current or last promotion."""
    if promotion_status is None:
        return PromotionStatusSnapshot()
    return promotion_status.snapshot()


if __name__ == "__main__":
    import uvicorn

    dev_settings = get_settings()
    uvicorn.run(
        "artifact_promotion.main:app",
        host=dev_settings.host,
        port=dev_settings.port,
    )
